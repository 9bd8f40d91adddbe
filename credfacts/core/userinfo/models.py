from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class UserIdentity(BaseModel):
    """
    A directory entry: DN plus the directory (LDAP) profile it lives under.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    user_dn: str = Field(min_length=1)
    ldap_profile: str = "default"

    @property
    def key(self) -> str:
        return f"{self.ldap_profile}|{self.user_dn}"

    def to_display_string(self) -> str:
        return f"{self.user_dn} ({self.ldap_profile})"


class TimestampKind(str, Enum):
    LAST_LOGIN = "LAST_LOGIN"
    ACCOUNT_EXPIRATION = "ACCOUNT_EXPIRATION"
    PASSWORD_EXPIRATION = "PASSWORD_EXPIRATION"
    PASSWORD_LAST_MODIFIED = "PASSWORD_LAST_MODIFIED"


class ProfileType(str, Enum):
    HELPDESK = "helpdesk"
    UPDATE_ATTRIBUTES = "update_attributes"
    DELETE_ACCOUNT = "delete_account"
    CHANGE_PASSWORD = "change_password"
    FORGOTTEN_PASSWORD = "forgotten_password"
    NEW_USER = "new_user"
    PASSWORD_POLICY = "password_policy"

    @property
    def authenticated(self) -> bool:
        return self in _AUTHENTICATED_PROFILE_TYPES


_AUTHENTICATED_PROFILE_TYPES = frozenset(
    {
        ProfileType.HELPDESK,
        ProfileType.UPDATE_ATTRIBUTES,
        ProfileType.DELETE_ACCOUNT,
        ProfileType.CHANGE_PASSWORD,
    }
)


class PasswordStatus(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    expired: bool = False
    pre_expired: bool = False
    warn_period: bool = False
    violates_policy: bool = False

    def any(self) -> bool:
        return self.expired or self.pre_expired or self.warn_period or self.violates_policy


class Challenge(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    text: str
    required: bool = True
    admin_defined: bool = True
    min_length: int = Field(default=2, ge=0)
    max_length: int = Field(default=255, ge=0)


class ChallengeSet(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    identifier: str = ""
    challenges: List[Challenge] = Field(default_factory=list)
    min_random_required: int = Field(default=0, ge=0)

    def required_challenges(self) -> List[Challenge]:
        return [c for c in self.challenges if c.required]


class ChallengeProfile(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    profile_id: str = "default"
    challenge_set: Optional[ChallengeSet] = None
    helpdesk_challenge_set: Optional[ChallengeSet] = None


class ResponseInfo(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    cs_identifier: str = ""
    timestamp: Optional[dt.datetime] = None
    challenges: List[str] = Field(default_factory=list)
    helpdesk_challenges: List[str] = Field(default_factory=list)
    min_random_required: int = 0


class OtpUserRecord(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    identifier: str = ""
    secret: Optional[str] = None
    timestamp: Optional[dt.datetime] = None
    recovery_codes: List[str] = Field(default_factory=list)

    def has_secret(self) -> bool:
        return bool(self.secret)


class RemediationVerdict(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    requires_new_password: bool = False
    requires_response_setup: bool = False
    requires_otp_setup: bool = False
    requires_profile_update: bool = False
