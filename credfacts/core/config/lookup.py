from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, Optional

from credfacts.core.config.models import CredFactsConfigFile
from credfacts.core.errors import ConfigError
from credfacts.core.ports.interface import PolicyLookup


class Setting(str, Enum):
    PASSWORD_EXPIRE_PRE_TIME = "password.expire.pre_time"
    PASSWORD_EXPIRE_WARN_TIME = "password.expire.warn_time"
    PASSWORD_POLICY_RULES = "password.policy.rules"  # scope: password policy profile id

    LDAP_USERNAME_ATTRIBUTE = "ldap.username_attribute"  # scope: ldap profile id
    LDAP_EMAIL_ATTRIBUTE = "ldap.email_attribute"
    LDAP_SMS_ATTRIBUTE = "ldap.sms_attribute"
    LDAP_GUID_ATTRIBUTE = "ldap.guid_attribute"
    LDAP_GUID_AUTO_GENERATE = "ldap.guid_auto_generate"
    LDAP_CACHED_ATTRIBUTES = "ldap.cached_attributes"

    CHANGE_PASSWORD_PERMISSION = "change_password.permission"

    OTP_ENABLED = "otp.enabled"
    OTP_FORCE_SETUP = "otp.force_setup"
    OTP_SETUP_PERMISSION = "otp.setup_permission"

    UPDATE_PROFILE_ENABLED = "update_profile.enabled"
    UPDATE_PROFILE_IDS = "update_profile.ids"
    UPDATE_PROFILE_FORCE_SETUP = "update_profile.force_setup"  # scope: update profile id
    UPDATE_PROFILE_FORM = "update_profile.form"  # scope: update profile id


class ConfigPolicyLookup(PolicyLookup):
    """
    PolicyLookup served from a validated CredFactsConfigFile.

    Scoped settings raise ConfigError when the scope names no configured profile.
    """

    def __init__(self, cfg: CredFactsConfigFile):
        self.cfg = cfg
        self._readers: Dict[Setting, Callable[[Optional[str]], Any]] = {
            Setting.PASSWORD_EXPIRE_PRE_TIME: lambda _s: int(cfg.password.expire_pre_time_seconds),
            Setting.PASSWORD_EXPIRE_WARN_TIME: lambda _s: int(cfg.password.expire_warn_time_seconds),
            Setting.PASSWORD_POLICY_RULES: lambda s: dict(self._scoped(cfg.password.policies, s, "password.policies").rules),
            Setting.LDAP_USERNAME_ATTRIBUTE: lambda s: self._ldap(s).username_attribute,
            Setting.LDAP_EMAIL_ATTRIBUTE: lambda s: self._ldap(s).email_attribute,
            Setting.LDAP_SMS_ATTRIBUTE: lambda s: self._ldap(s).sms_attribute,
            Setting.LDAP_GUID_ATTRIBUTE: lambda s: self._ldap(s).guid_attribute,
            Setting.LDAP_GUID_AUTO_GENERATE: lambda s: bool(self._ldap(s).guid_auto_generate),
            Setting.LDAP_CACHED_ATTRIBUTES: lambda s: list(self._ldap(s).cached_attributes),
            Setting.CHANGE_PASSWORD_PERMISSION: lambda _s: list(cfg.change_password.permission),
            Setting.OTP_ENABLED: lambda _s: bool(cfg.otp.enabled),
            Setting.OTP_FORCE_SETUP: lambda _s: cfg.otp.force_setup,
            Setting.OTP_SETUP_PERMISSION: lambda _s: list(cfg.otp.setup_permission),
            Setting.UPDATE_PROFILE_ENABLED: lambda _s: bool(cfg.update_profile.enabled),
            Setting.UPDATE_PROFILE_IDS: lambda _s: sorted(cfg.update_profile.profiles),
            Setting.UPDATE_PROFILE_FORCE_SETUP: lambda s: bool(self._update_profile(s).force_setup),
            Setting.UPDATE_PROFILE_FORM: lambda s: list(self._update_profile(s).form),
        }

    def read_setting(self, setting: Any, scope: Optional[str] = None) -> Any:
        try:
            key = Setting(setting)
        except ValueError as e:
            raise ConfigError(f"Unknown setting {setting!r}.", setting=str(setting)) from e
        return self._readers[key](scope)

    # ---- internals ----
    def _ldap(self, scope: Optional[str]):
        return self._scoped(self.cfg.ldap, scope, "ldap")

    def _update_profile(self, scope: Optional[str]):
        return self._scoped(self.cfg.update_profile.profiles, scope, "update_profile.profiles")

    @staticmethod
    def _scoped(profiles: Dict[str, Any], scope: Optional[str], section: str) -> Any:
        sid = str(scope or "default")
        if sid not in profiles:
            raise ConfigError(f"No profile {sid!r} configured under {section}.", section=section, scope=sid)
        return profiles[sid]
