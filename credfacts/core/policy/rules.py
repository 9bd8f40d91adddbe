from __future__ import annotations

from typing import Set

from credfacts.core.policy.models import PasswordPolicy, PasswordRule


AD_COMPLEXITY_ATTRIBUTES = ("sAMAccountName", "displayName", "fullname", "cn")


def figure_password_rule_attributes(policy: PasswordPolicy) -> Set[str]:
    """
    Directory attributes the password rules need to look at for this policy.
    """
    out: Set[str] = set(policy.disallowed_attributes())
    if policy.read_bool(PasswordRule.AD_COMPLEXITY):
        out.update(AD_COMPLEXITY_ATTRIBUTES)
    return out
