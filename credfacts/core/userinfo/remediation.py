from __future__ import annotations

from typing import Any, Callable, Mapping, Optional

from credfacts.core.errors import FormValidationError
from credfacts.core.forms.models import FormField
from credfacts.core.policy.models import ForceSetupPolicy
from credfacts.core.userinfo.models import OtpUserRecord, PasswordStatus


# Inputs are thunks: each one is called only once the short-circuit order reaches it.

FORCING_OTP_POLICIES = frozenset({ForceSetupPolicy.FORCE, ForceSetupPolicy.FORCE_ALLOW_SKIP})


def _debug(logger: Any, msg: str) -> None:
    if logger is not None:
        logger.debug(msg)


def requires_new_password(
    *,
    has_change_permission: Callable[[], bool],
    password_status: Callable[[], PasswordStatus],
    logger: Any = None,
) -> bool:
    if not has_change_permission():
        _debug(logger, "checkPassword: user does not have permission to change password")
        return False

    status = password_status()
    if status.expired:
        _debug(logger, "checkPassword: password is expired, marking new password as required")
        return True
    if status.pre_expired:
        _debug(logger, "checkPassword: password is pre-expired, marking new password as required")
        return True
    if status.warn_period:
        _debug(logger, "checkPassword: password is within warn period, marking new password as required")
        return True
    if status.violates_policy:
        _debug(logger, "checkPassword: current password violates password policy, marking new password as required")
        return True
    return False


def requires_otp_setup(
    *,
    otp_enabled: Callable[[], bool],
    otp_user_record: Callable[[], Optional[OtpUserRecord]],
    has_setup_permission: Callable[[], bool],
    force_policy: Callable[[], ForceSetupPolicy],
    logger: Any = None,
) -> bool:
    if not otp_enabled():
        _debug(logger, "checkOtp: OTP is not enabled, user OTP setup is not required")
        return False

    record = otp_user_record()
    if record is not None and record.has_secret():
        _debug(logger, "checkOtp: user has existing valid otp record, user OTP setup is not required")
        return False

    if not has_setup_permission():
        _debug(logger, "checkOtp: user is not eligible for otp setup due to permission match")
        return False

    policy = force_policy()
    required = policy in FORCING_OTP_POLICIES
    _debug(logger, f"checkOtp: user has no stored otp secret, force policy {policy.value}, setup required={required}")
    return required


def requires_profile_update(
    *,
    enabled: Callable[[], bool],
    profile_id: Callable[[], Optional[str]],
    profile_exists: Callable[[str], bool],
    force_setup: Callable[[str], bool],
    populate: Callable[[str], Mapping[FormField, str]],
    validate: Callable[[Mapping[FormField, str]], None],
    logger: Any = None,
) -> bool:
    """
    FormValidationError means the profile is incomplete (update required);
    any other error propagates.
    """
    if not enabled():
        _debug(logger, "checkProfiles: profile module is not enabled")
        return False

    pid = profile_id()
    if not pid or not profile_exists(pid):
        _debug(logger, "checkProfiles: no update attributes profile assigned")
        return False

    if not force_setup(pid):
        _debug(logger, f"checkProfiles: profile {pid} force setup is not enabled")
        return False

    values = populate(pid)
    try:
        validate(values)
    except FormValidationError as e:
        _debug(logger, f"checkProfiles: attributes incomplete ({e.user_message}), update profile will be required")
        return True
    _debug(logger, "checkProfiles: has value for attributes, update profile will not be required")
    return False
