"""
Interfaces of the external collaborators the evaluator consumes.

Everything here is synchronous and may block for a network round trip; the
evaluator adds no timeouts or retries of its own.
"""

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

__all__ = [
    "ChallengeService",
    "DirectoryReader",
    "FormValidator",
    "GuidGenerator",
    "OtpService",
    "PasswordValidator",
    "PermissionChecker",
    "PolicyLookup",
    "ProfileMatcher",
]
