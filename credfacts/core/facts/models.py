from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from credfacts.core.errors import CredFactsError


class FactName(str, Enum):
    USERNAME = "Username"
    USER_EMAIL_ADDRESS = "UserEmailAddress"
    USER_SMS_NUMBER = "UserSmsNumber"
    USER_GUID = "UserGuid"
    LAST_LDAP_LOGIN_TIME = "LastLdapLoginTime"
    ACCOUNT_EXPIRATION_TIME = "AccountExpirationTime"
    PASSWORD_EXPIRATION_TIME = "PasswordExpirationTime"
    PASSWORD_LAST_MODIFIED_TIME = "PasswordLastModifiedTime"
    CACHED_PASSWORD_RULE_ATTRIBUTES = "CachedPasswordRuleAttributes"
    CACHED_ATTRIBUTE_VALUES = "CachedAttributeValues"
    PASSWORD_POLICY = "PasswordPolicy"
    CHALLENGE_PROFILE = "ChallengeProfile"
    PASSWORD_STATUS = "PasswordStatus"
    RESPONSE_INFO = "ResponseInfo"
    OTP_USER_RECORD = "OtpUserRecord"
    PROFILE_IDS = "ProfileIDs"


class SlotState(str, Enum):
    EMPTY = "EMPTY"
    COMPUTING = "COMPUTING"
    RESOLVED = "RESOLVED"


@dataclass(frozen=True)
class FactResult:
    """
    Outcome of one fact computation: a value, or the error it failed with.
    """

    value: Any = None
    error: Optional[CredFactsError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        if self.error is not None:
            raise self.error
        return self.value
