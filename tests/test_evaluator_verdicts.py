from __future__ import annotations

import pytest

from credfacts.core.config.lookup import ConfigPolicyLookup, Setting
from credfacts.core.config.manager import ConfigManager
from credfacts.core.errors import DirectoryOperationError, DirectoryUnavailableError
from credfacts.core.policy.permissions import AttributePermissionChecker
from credfacts.core.userinfo.evaluator import CredentialEvaluator
from credfacts.core.userinfo.models import OtpUserRecord, ProfileType, RemediationVerdict

from .helpers.config_builders import build_otp_section, build_password_section, build_update_profile_section
from .helpers.fakes import (
    FakeChallengeService,
    FakeDirectory,
    FakeOtpService,
    FakePermissionChecker,
    FakeProfileMatcher,
    challenge_profile,
)


def test_expired_password_requires_new_password(make_evaluator):
    ev = make_evaluator(directory=FakeDirectory(expired=True))
    assert ev.requires_new_password() is True


def test_no_change_permission_never_reads_status(make_evaluator):
    d = FakeDirectory(expired=True)
    ev = make_evaluator(directory=d, config={"change_password": {"permission": []}})
    assert ev.requires_new_password() is False
    assert d.calls["is_password_expired"] == 0


def test_change_permission_by_dn_base(make_evaluator):
    perm = [{"type": "DN_BASE", "base": "ou=staff,o=example"}]
    ev = make_evaluator(directory=FakeDirectory(expired=True), config={"change_password": {"permission": perm}})
    assert ev.requires_new_password() is False


def test_current_password_violation_requires_new_password(make_evaluator):
    rules = {"enforce_at_login": True, "minimum_numeric": 2}
    ev = make_evaluator(config={"password": build_password_section(rules=rules)}, current_password="nodigits")
    assert ev.requires_new_password() is True


def test_response_setup_delegates_to_challenge_service(make_evaluator):
    svc = FakeChallengeService(profile=challenge_profile("cs-7"), needs_setup=True)
    ev = make_evaluator(challenges=svc)
    assert ev.requires_response_setup() is True
    check = [s for s in svc.seen if s[0] == "check"][0]
    assert check[1].identifier == "cs-7"
    assert check[2] is None


def test_response_setup_with_no_challenge_profile_still_delegates(make_evaluator):
    svc = FakeChallengeService(profile=None, needs_setup=False)
    ev = make_evaluator(challenges=svc)
    assert ev.requires_response_setup() is False
    assert ("check", None, None) in svc.seen


def test_otp_disabled_leaves_store_untouched(make_evaluator):
    otp = FakeOtpService()
    ev = make_evaluator(otp=otp, config={"otp": build_otp_section(enabled=False)})
    assert ev.requires_otp_setup() is False
    assert otp.reads == 0


def test_otp_forced_without_secret(make_evaluator):
    otp = FakeOtpService(record=None)
    ev = make_evaluator(otp=otp, config={"otp": build_otp_section(force_setup="FORCE_ALLOW_SKIP")})
    assert ev.requires_otp_setup() is True
    ev.requires_otp_setup()
    assert otp.reads == 1


def test_otp_existing_secret(make_evaluator):
    otp = FakeOtpService(record=OtpUserRecord(secret="abc"))
    ev = make_evaluator(otp=otp, config={"otp": build_otp_section()})
    assert ev.requires_otp_setup() is False


def test_otp_without_setup_permission(make_evaluator):
    ev = make_evaluator(
        otp=FakeOtpService(),
        config={"otp": build_otp_section(permission=[])},
    )
    assert ev.requires_otp_setup() is False


def test_otp_not_forced(make_evaluator):
    ev = make_evaluator(otp=FakeOtpService(), config={"otp": build_otp_section(force_setup="NONE")})
    assert ev.requires_otp_setup() is False


class _LookupWithOverrides(ConfigPolicyLookup):
    def __init__(self, cfg, overrides):
        super().__init__(cfg)
        self.overrides = overrides

    def read_setting(self, setting, scope=None):  # noqa: ANN001
        key = Setting(setting)
        if key in self.overrides:
            return self.overrides[key]
        return super().read_setting(setting, scope)


def _otp_evaluator(identity, force_setup):
    directory = FakeDirectory()
    cfg = ConfigManager.validate({"otp": build_otp_section()})
    return CredentialEvaluator(
        identity=identity,
        directory=directory,
        policy=_LookupWithOverrides(cfg, {Setting.OTP_FORCE_SETUP: force_setup}),
        permissions=AttributePermissionChecker(directory=directory),
        profiles=FakeProfileMatcher(),
        challenges=FakeChallengeService(),
        otp=FakeOtpService(),
    )


@pytest.mark.parametrize("value", ["OPTIONAL", "", None, 3])
def test_unrecognized_otp_force_policy_is_not_forced(identity, value):
    assert _otp_evaluator(identity, value).requires_otp_setup() is False


@pytest.mark.parametrize("value", ["force", "force-allow-skip", "FORCE_ALLOW_SKIP"])
def test_otp_force_policy_names_are_normalized(identity, value):
    assert _otp_evaluator(identity, value).requires_otp_setup() is True


def _profile_config(**kw):
    form = [{"name": "mail", "type": "email", "required": True}, {"name": "title"}]
    return {"update_profile": build_update_profile_section(form=form, **kw)}


def _assigned():
    return FakeProfileMatcher({ProfileType.UPDATE_ATTRIBUTES: "profile1"})


def test_profile_update_required_when_form_incomplete(make_evaluator):
    ev = make_evaluator(directory=FakeDirectory({"title": "Engineer"}), profiles=_assigned(), config=_profile_config())
    assert ev.requires_profile_update() is True


def test_profile_update_not_required_when_complete(make_evaluator):
    d = FakeDirectory({"mail": "alice@example.org"})
    ev = make_evaluator(directory=d, profiles=_assigned(), config=_profile_config())
    assert ev.requires_profile_update() is False
    assert d.attribute_requests[-1] == ["mail", "title"]


def test_profile_update_disabled(make_evaluator):
    d = FakeDirectory()
    ev = make_evaluator(directory=d, profiles=_assigned(), config=_profile_config(enabled=False))
    assert ev.requires_profile_update() is False
    assert d.calls["read_attributes"] == 0


def test_profile_update_not_forced(make_evaluator):
    ev = make_evaluator(profiles=_assigned(), config=_profile_config(force_setup=False))
    assert ev.requires_profile_update() is False


def test_profile_update_unassigned_or_unknown(make_evaluator):
    assert make_evaluator(config=_profile_config()).requires_profile_update() is False
    other = FakeProfileMatcher({ProfileType.UPDATE_ATTRIBUTES: "elsewhere"})
    assert make_evaluator(profiles=other, config=_profile_config()).requires_profile_update() is False


def test_profile_update_propagates_unavailable_directory(make_evaluator):
    d = FakeDirectory(fail={"read_attributes": DirectoryUnavailableError()})
    ev = make_evaluator(directory=d, profiles=_assigned(), config=_profile_config())
    with pytest.raises(DirectoryUnavailableError):
        ev.requires_profile_update()


def test_profile_update_degrades_failed_form_read_to_empty_values(make_evaluator):
    d = FakeDirectory({"mail": "alice@example.org"}, fail={"read_attributes": DirectoryOperationError("no such attr")})
    ev = make_evaluator(directory=d, profiles=_assigned(), config=_profile_config())
    assert ev.username() is None
    # mail is required, so empty values make the form incomplete
    assert ev.requires_profile_update() is True


def test_profile_update_failed_read_with_optional_fields_needs_no_update(make_evaluator):
    d = FakeDirectory(fail={"read_attributes": DirectoryOperationError()})
    cfg = {"update_profile": build_update_profile_section(form=[{"name": "title"}])}
    ev = make_evaluator(directory=d, profiles=_assigned(), config=cfg)
    assert ev.requires_profile_update() is False


def test_verdicts_are_recomputed_but_facts_are_not(make_evaluator):
    perms = FakePermissionChecker(True)
    d = FakeDirectory(expired=True)
    ev = make_evaluator(directory=d, permissions=perms)
    assert ev.requires_new_password() is True
    assert ev.requires_new_password() is True
    assert perms.calls == 2
    assert d.calls["is_password_expired"] == 1


def test_remediation_bundle(make_evaluator):
    ev = make_evaluator(
        directory=FakeDirectory(expired=True),
        otp=FakeOtpService(),
        config={"otp": build_otp_section()},
    )
    assert ev.remediation() == RemediationVerdict(
        requires_new_password=True,
        requires_response_setup=False,
        requires_otp_setup=True,
        requires_profile_update=False,
    )
