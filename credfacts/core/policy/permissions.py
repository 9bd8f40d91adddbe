from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from credfacts.core.errors import DirectoryOperationError
from credfacts.core.logger import get_logger
from credfacts.core.policy.models import PermissionType, UserPermission
from credfacts.core.ports.interface import DirectoryReader, PermissionChecker
from credfacts.core.userinfo.models import UserIdentity


GROUP_MEMBERSHIP_ATTRIBUTE = "groupMembership"


def _norm_dn(dn: Optional[str]) -> str:
    return ",".join(p.strip() for p in str(dn or "").lower().split(","))


@dataclass
class AttributePermissionChecker(PermissionChecker):
    """
    Evaluates permission rules against the directory entry.

    A rule list matches when any one rule matches; an empty list matches nobody.
    """

    directory: DirectoryReader
    group_attribute: str = GROUP_MEMBERSHIP_ATTRIBUTE
    logger: object = field(default=None)

    def __post_init__(self) -> None:
        if self.logger is None:
            self.logger = get_logger("permissions")

    def test_user_permissions(self, identity: UserIdentity, permissions: List[UserPermission]) -> bool:
        for p in permissions or []:
            if self.matches(identity, p):
                return True
        return False

    def matches(self, identity: UserIdentity, p: UserPermission) -> bool:
        # profile scope
        if p.ldap_profile and p.ldap_profile != "all" and p.ldap_profile != identity.ldap_profile:
            return False

        if p.type == PermissionType.ALL:
            return True

        if p.type == PermissionType.DN_BASE:
            base = _norm_dn(p.base)
            if not base:
                return False
            dn = _norm_dn(identity.user_dn)
            return dn == base or dn.endswith("," + base)

        if p.type == PermissionType.ATTRIBUTE:
            if not p.attribute:
                return False
            actual = self._read(identity, p.attribute)
            if actual is None:
                return False
            if p.value is None or p.value == "*":
                return bool(actual)
            return actual.strip().lower() == str(p.value).strip().lower()

        if p.type == PermissionType.GROUP:
            want = _norm_dn(p.group_dn)
            if not want:
                return False
            raw = self._read(identity, self.group_attribute) or ""
            groups = {_norm_dn(g) for g in raw.split(";") if g.strip()}
            return want in groups

        return False

    def _read(self, identity: UserIdentity, attribute: str) -> Optional[str]:
        try:
            values = self.directory.read_attributes(identity, [attribute])
        except DirectoryOperationError as e:
            # a failed read means the rule cannot match
            self.logger.warning(f"permission check could not read {attribute} for {identity.to_display_string()}: {e}")
            return None
        v = values.get(attribute)
        return str(v) if v is not None else None
