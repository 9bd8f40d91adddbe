from __future__ import annotations

import datetime as dt
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional

from credfacts.core.forms.models import FormField
from credfacts.core.policy.models import PasswordPolicy, UserPermission
from credfacts.core.userinfo.models import (
    ChallengeProfile,
    ChallengeSet,
    OtpUserRecord,
    ProfileType,
    ResponseInfo,
    TimestampKind,
    UserIdentity,
)


class DirectoryReader(ABC):
    """
    Synchronous request/response access to the directory.

    Implementations raise DirectoryOperationError for a failed read the caller
    can degrade from, and DirectoryUnavailableError when the directory cannot
    be reached at all.
    """

    @abstractmethod
    def read_attributes(self, identity: UserIdentity, names: Iterable[str]) -> Dict[str, str]:
        """Read named attributes; absent attributes are simply missing from the result."""
        raise NotImplementedError

    @abstractmethod
    def read_timestamp(self, identity: UserIdentity, kind: TimestampKind) -> Optional[dt.datetime]:
        raise NotImplementedError

    @abstractmethod
    def is_password_expired(self, identity: UserIdentity) -> bool:
        raise NotImplementedError

    def read_password_policy(self, identity: UserIdentity) -> Dict[str, Any]:
        """Directory-side password rules for this entry, keyed by rule name."""
        return {}


class PolicyLookup(ABC):
    @abstractmethod
    def read_setting(self, setting: Any, scope: Optional[str] = None) -> Any:
        raise NotImplementedError


class PermissionChecker(ABC):
    @abstractmethod
    def test_user_permissions(self, identity: UserIdentity, permissions: List[UserPermission]) -> bool:
        raise NotImplementedError


class ChallengeService(ABC):
    @abstractmethod
    def read_challenge_profile(self, identity: UserIdentity, policy: PasswordPolicy) -> Optional[ChallengeProfile]:
        raise NotImplementedError

    @abstractmethod
    def read_response_info(self, identity: UserIdentity) -> Optional[ResponseInfo]:
        raise NotImplementedError

    @abstractmethod
    def check_if_response_config_needed(
        self,
        identity: UserIdentity,
        challenge_set: Optional[ChallengeSet],
        response_info: Optional[ResponseInfo],
    ) -> bool:
        raise NotImplementedError


class OtpService(ABC):
    def is_open(self) -> bool:
        return True

    @abstractmethod
    def read_otp_user_record(self, identity: UserIdentity) -> Optional[OtpUserRecord]:
        raise NotImplementedError


class ProfileMatcher(ABC):
    @abstractmethod
    def discover_profile_id(self, identity: UserIdentity, profile_type: ProfileType) -> Optional[str]:
        raise NotImplementedError


class FormValidator(ABC):
    @abstractmethod
    def validate(self, values: Mapping[FormField, str]) -> None:
        """Raise FormValidationError when the values do not satisfy the form."""
        raise NotImplementedError


class PasswordValidator(ABC):
    @abstractmethod
    def test_password(
        self,
        password: str,
        policy: PasswordPolicy,
        user_attributes: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Raise PasswordValidationError when the password does not conform."""
        raise NotImplementedError


class GuidGenerator(ABC):
    @abstractmethod
    def generate(self, identity: UserIdentity) -> Optional[str]:
        raise NotImplementedError
