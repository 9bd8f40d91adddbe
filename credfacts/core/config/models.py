from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, model_validator

from credfacts.core.forms.models import FormField
from credfacts.core.policy.models import ForceSetupPolicy, PasswordRule, UserPermission


def _everyone() -> List[UserPermission]:
    return [UserPermission()]


class LdapProfileConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    username_attribute: str = Field(default="cn", min_length=1)
    email_attribute: str = Field(default="mail", min_length=1)
    sms_attribute: str = Field(default="mobile", min_length=1)
    guid_attribute: str = Field(default="guid", min_length=1)  # "DN" means use the entry DN
    guid_auto_generate: bool = False
    cached_attributes: List[str] = Field(default_factory=list)


class PasswordPolicyProfileConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    rules: Dict[PasswordRule, Any] = Field(default_factory=dict)


class PasswordConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    expire_pre_time_seconds: int = Field(default=5 * 24 * 3600, ge=0)
    expire_warn_time_seconds: int = Field(default=0, ge=0)
    policies: Dict[str, PasswordPolicyProfileConfig] = Field(default_factory=lambda: {"default": PasswordPolicyProfileConfig()})

    @model_validator(mode="after")
    def _default_policy_present(self) -> "PasswordConfig":
        if "default" not in self.policies:
            self.policies["default"] = PasswordPolicyProfileConfig()
        return self


class ChangePasswordConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    permission: List[UserPermission] = Field(default_factory=_everyone)


class OtpConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    force_setup: ForceSetupPolicy = ForceSetupPolicy.NONE
    setup_permission: List[UserPermission] = Field(default_factory=_everyone)


class UpdateAttributesProfileConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    force_setup: bool = False
    form: List[FormField] = Field(default_factory=list)
    permission: List[UserPermission] = Field(default_factory=_everyone)


class UpdateProfileConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    profiles: Dict[str, UpdateAttributesProfileConfig] = Field(default_factory=dict)


class CredFactsConfigFile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    schema_version: int = Field(default=1, ge=1, le=10)
    ldap: Dict[str, LdapProfileConfig] = Field(default_factory=lambda: {"default": LdapProfileConfig()})
    password: PasswordConfig = Field(default_factory=PasswordConfig)
    change_password: ChangePasswordConfig = Field(default_factory=ChangePasswordConfig)
    otp: OtpConfig = Field(default_factory=OtpConfig)
    update_profile: UpdateProfileConfig = Field(default_factory=UpdateProfileConfig)
