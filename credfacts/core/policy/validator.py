from __future__ import annotations

from typing import Dict, List, Mapping, Optional

from credfacts.core.errors import PasswordValidationError
from credfacts.core.policy.models import PasswordPolicy, PasswordRule
from credfacts.core.policy.rules import AD_COMPLEXITY_ATTRIBUTES
from credfacts.core.ports.interface import PasswordValidator


_MIN_ATTRIBUTE_TOKEN = 3


def _max_run(s: str) -> int:
    best = 0
    run = 0
    prev = None
    for ch in s:
        run = run + 1 if ch == prev else 1
        prev = ch
        best = max(best, run)
    return best


def _counts(s: str) -> Dict[str, int]:
    return {
        "upper": sum(1 for c in s if c.isupper()),
        "lower": sum(1 for c in s if c.islower()),
        "numeric": sum(1 for c in s if c.isdigit()),
        "special": sum(1 for c in s if not c.isalnum()),
    }


class PolicyPasswordValidator(PasswordValidator):
    """
    Checks a password against a resolved PasswordPolicy.

    Raises PasswordValidationError listing every violated rule; returns None
    when the password conforms.
    """

    def test_password(
        self,
        password: str,
        policy: PasswordPolicy,
        user_attributes: Optional[Mapping[str, str]] = None,
    ) -> None:
        violations = self.violations(password, policy, user_attributes)
        if violations:
            raise PasswordValidationError(
                f"Password violates {len(violations)} rule(s): {', '.join(violations)}.",
                violations=violations,
                profile_id=policy.profile_id,
            )

    def violations(
        self,
        password: str,
        policy: PasswordPolicy,
        user_attributes: Optional[Mapping[str, str]] = None,
    ) -> List[str]:
        pw = str(password or "")
        attrs = dict(user_attributes or {})
        out: List[str] = []
        counts = _counts(pw)

        min_len = policy.read_int(PasswordRule.MINIMUM_LENGTH)
        if min_len and len(pw) < min_len:
            out.append(PasswordRule.MINIMUM_LENGTH.value)
        max_len = policy.read_int(PasswordRule.MAXIMUM_LENGTH)
        if max_len and len(pw) > max_len:
            out.append(PasswordRule.MAXIMUM_LENGTH.value)

        for rule, bucket in (
            (PasswordRule.MINIMUM_UPPERCASE, "upper"),
            (PasswordRule.MINIMUM_LOWERCASE, "lower"),
            (PasswordRule.MINIMUM_NUMERIC, "numeric"),
            (PasswordRule.MINIMUM_SPECIAL, "special"),
        ):
            need = policy.read_int(rule)
            if need and counts[bucket] < need:
                out.append(rule.value)

        max_repeat = policy.read_int(PasswordRule.MAXIMUM_REPEAT)
        if max_repeat and _max_run(pw) > max_repeat:
            out.append(PasswordRule.MAXIMUM_REPEAT.value)

        case_sensitive = policy.read_bool(PasswordRule.CASE_SENSITIVE)
        cmp = pw if case_sensitive else pw.lower()
        for bad in policy.read_list(PasswordRule.DISALLOWED_VALUES):
            if cmp == (bad if case_sensitive else bad.lower()):
                out.append(PasswordRule.DISALLOWED_VALUES.value)
                break

        lowered = pw.lower()
        for name in policy.disallowed_attributes():
            v = str(attrs.get(name) or "").strip().lower()
            if len(v) >= _MIN_ATTRIBUTE_TOKEN and v in lowered:
                out.append(PasswordRule.DISALLOWED_ATTRIBUTES.value)
                break

        if policy.read_bool(PasswordRule.AD_COMPLEXITY):
            categories = sum(1 for n in counts.values() if n > 0)
            if categories < 3 or self._contains_account_tokens(lowered, attrs):
                out.append(PasswordRule.AD_COMPLEXITY.value)

        return out

    @staticmethod
    def _contains_account_tokens(lowered: str, attrs: Mapping[str, str]) -> bool:
        for name in AD_COMPLEXITY_ATTRIBUTES:
            raw = str(attrs.get(name) or "")
            for token in raw.replace(",", " ").replace(".", " ").replace("-", " ").replace("_", " ").split():
                if len(token) >= _MIN_ATTRIBUTE_TOKEN and token.lower() in lowered:
                    return True
        return False
