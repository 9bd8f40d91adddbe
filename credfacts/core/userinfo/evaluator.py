from __future__ import annotations

import datetime as dt
import time
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional

from credfacts.core.config.lookup import ConfigPolicyLookup, Setting
from credfacts.core.config.models import CredFactsConfigFile
from credfacts.core.errors import DirectoryOperationError
from credfacts.core.facts.cache import FactCache
from credfacts.core.facts.models import FactName, FactResult
from credfacts.core.forms.models import FormField
from credfacts.core.forms.validator import RuleFormValidator, populate_form_values
from credfacts.core.logger import SessionLogAdapter, get_logger
from credfacts.core.policy.models import ForceSetupPolicy, PasswordPolicy, PasswordRule
from credfacts.core.policy.permissions import AttributePermissionChecker
from credfacts.core.policy.rules import figure_password_rule_attributes
from credfacts.core.policy.validator import PolicyPasswordValidator
from credfacts.core.ports.interface import (
    ChallengeService,
    DirectoryReader,
    FormValidator,
    GuidGenerator,
    OtpService,
    PasswordValidator,
    PermissionChecker,
    PolicyLookup,
    ProfileMatcher,
)
from credfacts.core.redaction import redact
from credfacts.core.trace import bound_session, resolve_session_label
from credfacts.core.userinfo import remediation
from credfacts.core.userinfo.models import (
    ChallengeProfile,
    OtpUserRecord,
    PasswordStatus,
    ProfileType,
    RemediationVerdict,
    ResponseInfo,
    TimestampKind,
    UserIdentity,
)
from credfacts.core.userinfo.status import check_policy_violation, compute_password_status


_RULE_NAMES = {r.value for r in PasswordRule}


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class CredentialEvaluator:
    """
    Lazily resolved facts about one identity for one session.

    Every fact goes through the evaluator's FactCache, including the facts
    other facts depend on, so each is computed at most once per instance.
    Non-fatal directory read failures become empty values; a
    DirectoryUnavailableError fails the fact and is replayed on every later
    request. Verdicts (requires_*) are recomputed on each call.
    """

    def __init__(
        self,
        *,
        identity: UserIdentity,
        directory: DirectoryReader,
        policy: PolicyLookup,
        permissions: PermissionChecker,
        profiles: ProfileMatcher,
        challenges: ChallengeService,
        otp: Optional[OtpService] = None,
        form_validator: Optional[FormValidator] = None,
        password_validator: Optional[PasswordValidator] = None,
        guid_generator: Optional[GuidGenerator] = None,
        current_password: Optional[str] = None,
        session_label: Optional[str] = None,
        cache: Optional[FactCache] = None,
        now: Callable[[], dt.datetime] = _utcnow,
        logger=None,
    ):
        self.identity = identity
        self.directory = directory
        self.policy = policy
        self.permissions = permissions
        self.profiles = profiles
        self.challenges = challenges
        self.otp = otp
        self.form_validator = form_validator or RuleFormValidator()
        self.password_validator = password_validator or PolicyPasswordValidator()
        self.guid_generator = guid_generator
        self._current_password = current_password
        self.session_label = resolve_session_label(session_label)
        self.cache = cache or FactCache()
        self.now = now
        self.log = SessionLogAdapter(logger or get_logger("userinfo"), {"session": self.session_label})
        self._computers: Dict[FactName, Callable[[], Any]] = {
            FactName.USERNAME: self._read_username,
            FactName.USER_EMAIL_ADDRESS: self._read_email_address,
            FactName.USER_SMS_NUMBER: self._read_sms_number,
            FactName.USER_GUID: self._read_guid,
            FactName.LAST_LDAP_LOGIN_TIME: lambda: self._read_timestamp(TimestampKind.LAST_LOGIN, "last ldap login time"),
            FactName.ACCOUNT_EXPIRATION_TIME: lambda: self._read_timestamp(TimestampKind.ACCOUNT_EXPIRATION, "account expiration time"),
            FactName.PASSWORD_EXPIRATION_TIME: lambda: self._read_timestamp(TimestampKind.PASSWORD_EXPIRATION, "password expiration time"),
            FactName.PASSWORD_LAST_MODIFIED_TIME: lambda: self._read_timestamp(TimestampKind.PASSWORD_LAST_MODIFIED, "password last modified time"),
            FactName.CACHED_PASSWORD_RULE_ATTRIBUTES: self._read_password_rule_attributes,
            FactName.CACHED_ATTRIBUTE_VALUES: self._read_cached_attribute_values,
            FactName.PASSWORD_POLICY: self._resolve_password_policy,
            FactName.CHALLENGE_PROFILE: self._read_challenge_profile,
            FactName.PASSWORD_STATUS: self._compute_password_status,
            FactName.RESPONSE_INFO: self._read_response_info,
            FactName.OTP_USER_RECORD: self._read_otp_user_record,
            FactName.PROFILE_IDS: self._discover_profile_ids,
        }

    # ---------- fact access ----------
    def lookup(self, fact: FactName | str) -> FactResult:
        name = FactName(fact)
        with bound_session(self.session_label):
            return self.cache.resolve(self.identity.key, name.value, self._computers[name])

    def get(self, fact: FactName | str) -> Any:
        return self.lookup(fact).unwrap()

    def username(self) -> Optional[str]:
        return self.get(FactName.USERNAME)

    def user_email_address(self) -> Optional[str]:
        return self.get(FactName.USER_EMAIL_ADDRESS)

    def user_sms_number(self) -> Optional[str]:
        return self.get(FactName.USER_SMS_NUMBER)

    def user_guid(self) -> Optional[str]:
        return self.get(FactName.USER_GUID)

    def last_ldap_login_time(self) -> Optional[dt.datetime]:
        return self.get(FactName.LAST_LDAP_LOGIN_TIME)

    def account_expiration_time(self) -> Optional[dt.datetime]:
        return self.get(FactName.ACCOUNT_EXPIRATION_TIME)

    def password_expiration_time(self) -> Optional[dt.datetime]:
        return self.get(FactName.PASSWORD_EXPIRATION_TIME)

    def password_last_modified_time(self) -> Optional[dt.datetime]:
        return self.get(FactName.PASSWORD_LAST_MODIFIED_TIME)

    def cached_password_rule_attributes(self) -> Mapping[str, str]:
        return self.get(FactName.CACHED_PASSWORD_RULE_ATTRIBUTES)

    def cached_attribute_values(self) -> Mapping[str, str]:
        return self.get(FactName.CACHED_ATTRIBUTE_VALUES)

    def password_policy(self) -> PasswordPolicy:
        return self.get(FactName.PASSWORD_POLICY)

    def challenge_profile(self) -> Optional[ChallengeProfile]:
        return self.get(FactName.CHALLENGE_PROFILE)

    def password_status(self) -> PasswordStatus:
        return self.get(FactName.PASSWORD_STATUS)

    def response_info(self) -> Optional[ResponseInfo]:
        return self.get(FactName.RESPONSE_INFO)

    def otp_user_record(self) -> Optional[OtpUserRecord]:
        return self.get(FactName.OTP_USER_RECORD)

    def profile_ids(self) -> Mapping[ProfileType, Optional[str]]:
        return self.get(FactName.PROFILE_IDS)

    # ---------- remediation verdicts ----------
    def requires_new_password(self) -> bool:
        return remediation.requires_new_password(
            has_change_permission=lambda: self._has_permission(Setting.CHANGE_PASSWORD_PERMISSION),
            password_status=self.password_status,
            logger=self.log,
        )

    def requires_response_setup(self) -> bool:
        profile = self.challenge_profile()
        return bool(
            self.challenges.check_if_response_config_needed(
                self.identity,
                profile.challenge_set if profile is not None else None,
                self.response_info(),
            )
        )

    def requires_otp_setup(self) -> bool:
        self.log.debug("checkOtp: beginning process to check if user OTP setup is required")
        return remediation.requires_otp_setup(
            otp_enabled=lambda: bool(self.policy.read_setting(Setting.OTP_ENABLED)),
            otp_user_record=self.otp_user_record,
            has_setup_permission=lambda: self._has_permission(Setting.OTP_SETUP_PERMISSION),
            force_policy=self._otp_force_policy,
            logger=self.log,
        )

    def requires_profile_update(self) -> bool:
        return remediation.requires_profile_update(
            enabled=lambda: bool(self.policy.read_setting(Setting.UPDATE_PROFILE_ENABLED)),
            profile_id=lambda: self.profile_ids().get(ProfileType.UPDATE_ATTRIBUTES),
            profile_exists=lambda pid: pid in set(self.policy.read_setting(Setting.UPDATE_PROFILE_IDS) or []),
            force_setup=lambda pid: bool(self.policy.read_setting(Setting.UPDATE_PROFILE_FORCE_SETUP, pid)),
            populate=self._populate_update_form,
            validate=self.form_validator.validate,
            logger=self.log,
        )

    def remediation(self) -> RemediationVerdict:
        return RemediationVerdict(
            requires_new_password=self.requires_new_password(),
            requires_response_setup=self.requires_response_setup(),
            requires_otp_setup=self.requires_otp_setup(),
            requires_profile_update=self.requires_profile_update(),
        )

    def snapshot(self) -> Dict[str, Any]:
        """
        Every fact resolved (or its error), in a JSON-friendly, redacted form.
        """
        out: Dict[str, Any] = {}
        for name in FactName:
            res = self.lookup(name)
            if res.ok:
                out[name.value] = _plain(res.value)
            else:
                out[name.value] = {"error": res.error.code, "message": res.error.user_message}
        return redact(out)

    # ---------- fact computations ----------
    def _read_username(self) -> Optional[str]:
        return self._read_profile_attribute(Setting.LDAP_USERNAME_ATTRIBUTE, "userID")

    def _read_email_address(self) -> Optional[str]:
        return self._read_profile_attribute(Setting.LDAP_EMAIL_ATTRIBUTE, "email address")

    def _read_sms_number(self) -> Optional[str]:
        return self._read_profile_attribute(Setting.LDAP_SMS_ATTRIBUTE, "sms number")

    def _read_guid(self) -> Optional[str]:
        attr = str(self.policy.read_setting(Setting.LDAP_GUID_ATTRIBUTE, self.identity.ldap_profile) or "")
        if attr.upper() == "DN":
            return self.identity.user_dn
        value = self._read_attribute(attr, "guid")
        if value:
            return value
        if self.guid_generator is not None and bool(self.policy.read_setting(Setting.LDAP_GUID_AUTO_GENERATE, self.identity.ldap_profile)):
            generated = self.guid_generator.generate(self.identity)
            self.log.info(f"generated guid for {self.identity.to_display_string()}")
            return generated
        return None

    def _read_timestamp(self, kind: TimestampKind, what: str) -> Optional[dt.datetime]:
        try:
            return self.directory.read_timestamp(self.identity, kind)
        except DirectoryOperationError as e:
            self.log.warning(f"error reading user's {what}: {e}")
            return None

    def _read_password_rule_attributes(self) -> Mapping[str, str]:
        names = figure_password_rule_attributes(self.password_policy())
        return self._read_attribute_batch(names, "cached password rule attributes")

    def _read_cached_attribute_values(self) -> Mapping[str, str]:
        names = self.policy.read_setting(Setting.LDAP_CACHED_ATTRIBUTES, self.identity.ldap_profile) or []
        return self._read_attribute_batch(set(names), "cached attributes")

    def _resolve_password_policy(self) -> PasswordPolicy:
        pid = self.profiles.discover_profile_id(self.identity, ProfileType.PASSWORD_POLICY) or "default"
        rules = self.policy.read_setting(Setting.PASSWORD_POLICY_RULES, pid) or {}
        profile_policy = PasswordPolicy(profile_id=pid, rules=rules)

        try:
            overrides = self.directory.read_password_policy(self.identity) or {}
        except DirectoryOperationError as e:
            self.log.warning(f"error reading directory password policy, using profile {pid} only: {e}")
            overrides = {}
        unknown = sorted(str(k) for k in overrides if str(k) not in _RULE_NAMES)
        if unknown:
            self.log.debug(f"ignoring unknown directory password rules: {', '.join(unknown)}")
        user_policy = PasswordPolicy(
            profile_id=pid,
            rules={PasswordRule(str(k)): v for k, v in overrides.items() if str(k) in _RULE_NAMES},
        )
        merged = profile_policy.merge(user_policy)
        self.log.debug(f"resolved password policy profile {pid} ({len(merged.rules)} rules) for {self.identity.to_display_string()}")
        return merged

    def _read_challenge_profile(self) -> Optional[ChallengeProfile]:
        return self.challenges.read_challenge_profile(self.identity, self.password_policy())

    def _read_response_info(self) -> Optional[ResponseInfo]:
        return self.challenges.read_response_info(self.identity)

    def _read_otp_user_record(self) -> Optional[OtpUserRecord]:
        if self.otp is None or not self.otp.is_open():
            return None
        return self.otp.read_otp_user_record(self.identity)

    def _compute_password_status(self) -> PasswordStatus:
        started = time.perf_counter()
        display = self.identity.to_display_string()
        policy = self.password_policy()
        self.log.debug(f"beginning password status check process for {display}")

        violates = False
        if policy.read_bool(PasswordRule.ENFORCE_AT_LOGIN) and self._current_password is not None:
            password = self._current_password
            violates = check_policy_violation(
                lambda: self.password_validator.test_password(password, policy, self.cached_password_rule_attributes()),
                on_violation=lambda e: self.log.debug(
                    f"user {display} password does not conform to current password policy ({e.user_message}), marking as requiring change."
                ),
            )

        expired = False
        try:
            expired = bool(self.directory.is_password_expired(self.identity))
            self.log.debug(f"password for {display} {'appears' if expired else 'does not appear'} to be expired")
        except DirectoryOperationError as e:
            self.log.info(f"error reading directory attributes for {display} while reading password expired flag: {e}")

        expiration_time = self.password_expiration_time()
        status = compute_password_status(
            expired=expired,
            expiration_time=expiration_time,
            now=self.now(),
            pre_expire_seconds=int(self.policy.read_setting(Setting.PASSWORD_EXPIRE_PRE_TIME) or 0),
            warn_seconds=int(self.policy.read_setting(Setting.PASSWORD_EXPIRE_WARN_TIME) or 0),
            violates_policy=violates,
        )
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        self.log.debug(f"completed user password status check for {display} {status.model_dump()} ({elapsed_ms:.1f}ms)")
        return status

    def _discover_profile_ids(self) -> Mapping[ProfileType, Optional[str]]:
        out: Dict[ProfileType, Optional[str]] = {}
        display = self.identity.to_display_string()
        for profile_type in ProfileType:
            if not profile_type.authenticated:
                continue
            pid = self.profiles.discover_profile_id(self.identity, profile_type)
            out[profile_type] = pid
            if pid is not None:
                self.log.debug(f'assigned {profile_type.value} profileID "{pid}" to {display}')
            else:
                self.log.debug(f"{profile_type.value} has no matching profiles for user {display}")
        return MappingProxyType(out)

    # ---------- helpers ----------
    def _has_permission(self, setting: Setting) -> bool:
        rules = self.policy.read_setting(setting) or []
        return bool(self.permissions.test_user_permissions(self.identity, list(rules)))

    def _otp_force_policy(self) -> ForceSetupPolicy:
        raw = self.policy.read_setting(Setting.OTP_FORCE_SETUP)
        if isinstance(raw, ForceSetupPolicy):
            return raw
        name = str(raw or "").strip().upper().replace("-", "_")
        try:
            return ForceSetupPolicy(name)
        except ValueError:
            self.log.debug(f"checkOtp: unrecognized otp force setup policy {raw!r}, treating as NONE")
            return ForceSetupPolicy.NONE

    def _populate_update_form(self, profile_id: str) -> Mapping[FormField, str]:
        fields = list(self.policy.read_setting(Setting.UPDATE_PROFILE_FORM, profile_id) or [])
        try:
            return populate_form_values(self.directory, self.identity, fields)
        except DirectoryOperationError as e:
            self.log.warning(f"checkProfiles: error reading form values for profile {profile_id}, treating them as empty: {e}")
            return {f: "" for f in fields}

    def _read_profile_attribute(self, setting: Setting, what: str) -> Optional[str]:
        attr = str(self.policy.read_setting(setting, self.identity.ldap_profile) or "")
        return self._read_attribute(attr, what)

    def _read_attribute(self, attr: str, what: str) -> Optional[str]:
        if not attr:
            return None
        try:
            values = self.directory.read_attributes(self.identity, [attr])
        except DirectoryOperationError as e:
            self.log.error(f"error reading {what} attribute: {e}")
            return None
        v = values.get(attr)
        return str(v) if v not in (None, "") else None

    def _read_attribute_batch(self, names: set, what: str) -> Mapping[str, str]:
        if not names:
            return MappingProxyType({})
        try:
            values = self.directory.read_attributes(self.identity, sorted(names))
        except DirectoryOperationError as e:
            self.log.warning(f"error retrieving user {what}: {e}")
            return MappingProxyType({})
        return MappingProxyType({str(k): str(v) for k, v in values.items() if v is not None})


def _plain(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if isinstance(value, dt.datetime):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {getattr(k, "value", k): _plain(v) for k, v in value.items()}
    return value


def create_evaluator(
    identity: UserIdentity,
    *,
    config: CredFactsConfigFile,
    directory: DirectoryReader,
    profiles: ProfileMatcher,
    challenges: ChallengeService,
    otp: Optional[OtpService] = None,
    permissions: Optional[PermissionChecker] = None,
    guid_generator: Optional[GuidGenerator] = None,
    current_password: Optional[str] = None,
    session_label: Optional[str] = None,
    now: Callable[[], dt.datetime] = _utcnow,
    logger=None,
) -> CredentialEvaluator:
    """
    Wire an evaluator with config-backed policy lookup and the attribute
    permission checker. A new evaluator (and so a fresh cache) per session.
    """
    return CredentialEvaluator(
        identity=identity,
        directory=directory,
        policy=ConfigPolicyLookup(config),
        permissions=permissions or AttributePermissionChecker(directory=directory),
        profiles=profiles,
        challenges=challenges,
        otp=otp,
        guid_generator=guid_generator,
        current_password=current_password,
        session_label=session_label,
        now=now,
        logger=logger,
    )
