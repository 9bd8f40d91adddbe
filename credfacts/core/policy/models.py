from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RuleKind(str, Enum):
    MIN = "MIN"  # larger value is stricter
    MAX = "MAX"  # smaller non-zero value is stricter, 0 means unset
    BOOLEAN = "BOOLEAN"
    LIST = "LIST"
    TEXT = "TEXT"


class PasswordRule(str, Enum):
    MINIMUM_LENGTH = "minimum_length"
    MAXIMUM_LENGTH = "maximum_length"
    MINIMUM_UPPERCASE = "minimum_uppercase"
    MINIMUM_LOWERCASE = "minimum_lowercase"
    MINIMUM_NUMERIC = "minimum_numeric"
    MINIMUM_SPECIAL = "minimum_special"
    MAXIMUM_REPEAT = "maximum_repeat"
    MINIMUM_LIFETIME = "minimum_lifetime"
    CASE_SENSITIVE = "case_sensitive"
    ENFORCE_AT_LOGIN = "enforce_at_login"
    AD_COMPLEXITY = "ad_complexity"
    DISALLOWED_VALUES = "disallowed_values"
    DISALLOWED_ATTRIBUTES = "disallowed_attributes"
    CHALLENGE_PROFILE_ID = "challenge_profile_id"

    @property
    def kind(self) -> RuleKind:
        return _RULE_KINDS[self]

    @property
    def default(self) -> Any:
        return _RULE_DEFAULTS.get(self)


_RULE_KINDS: Dict[PasswordRule, RuleKind] = {
    PasswordRule.MINIMUM_LENGTH: RuleKind.MIN,
    PasswordRule.MAXIMUM_LENGTH: RuleKind.MAX,
    PasswordRule.MINIMUM_UPPERCASE: RuleKind.MIN,
    PasswordRule.MINIMUM_LOWERCASE: RuleKind.MIN,
    PasswordRule.MINIMUM_NUMERIC: RuleKind.MIN,
    PasswordRule.MINIMUM_SPECIAL: RuleKind.MIN,
    PasswordRule.MAXIMUM_REPEAT: RuleKind.MAX,
    PasswordRule.MINIMUM_LIFETIME: RuleKind.MIN,
    PasswordRule.CASE_SENSITIVE: RuleKind.BOOLEAN,
    PasswordRule.ENFORCE_AT_LOGIN: RuleKind.BOOLEAN,
    PasswordRule.AD_COMPLEXITY: RuleKind.BOOLEAN,
    PasswordRule.DISALLOWED_VALUES: RuleKind.LIST,
    PasswordRule.DISALLOWED_ATTRIBUTES: RuleKind.LIST,
    PasswordRule.CHALLENGE_PROFILE_ID: RuleKind.TEXT,
}

_RULE_DEFAULTS: Dict[PasswordRule, Any] = {
    PasswordRule.MINIMUM_LENGTH: 0,
    PasswordRule.MAXIMUM_LENGTH: 0,
    PasswordRule.MINIMUM_UPPERCASE: 0,
    PasswordRule.MINIMUM_LOWERCASE: 0,
    PasswordRule.MINIMUM_NUMERIC: 0,
    PasswordRule.MINIMUM_SPECIAL: 0,
    PasswordRule.MAXIMUM_REPEAT: 0,
    PasswordRule.MINIMUM_LIFETIME: 0,
    PasswordRule.CASE_SENSITIVE: True,
    PasswordRule.ENFORCE_AT_LOGIN: False,
    PasswordRule.AD_COMPLEXITY: False,
    PasswordRule.DISALLOWED_VALUES: [],
    PasswordRule.DISALLOWED_ATTRIBUTES: [],
    PasswordRule.CHALLENGE_PROFILE_ID: "",
}


def _as_bool(v: Any) -> bool:
    if isinstance(v, str):
        return v.strip().lower() in {"true", "1", "yes", "on"}
    return bool(v)


def _as_int(v: Any) -> int:
    if v is None or v == "":
        return 0
    return int(v)


def _as_list(v: Any) -> List[str]:
    if v is None:
        return []
    if isinstance(v, str):
        return [p.strip() for p in v.split(",") if p.strip()]
    return [str(x) for x in v if str(x).strip()]


class PasswordPolicy(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    profile_id: str = "default"
    rules: Dict[PasswordRule, Any] = Field(default_factory=dict)

    def value(self, rule: PasswordRule) -> Any:
        return self.rules.get(rule, rule.default)

    def read_bool(self, rule: PasswordRule) -> bool:
        return _as_bool(self.value(rule))

    def read_int(self, rule: PasswordRule) -> int:
        return _as_int(self.value(rule))

    def read_list(self, rule: PasswordRule) -> List[str]:
        return _as_list(self.value(rule))

    def disallowed_attributes(self) -> List[str]:
        return self.read_list(PasswordRule.DISALLOWED_ATTRIBUTES)

    def merge(self, other: Optional["PasswordPolicy"]) -> "PasswordPolicy":
        """
        Combine two policies rule by rule, keeping the stricter side.
        """
        if other is None or not other.rules:
            return self
        merged: Dict[PasswordRule, Any] = {}
        for rule in set(self.rules) | set(other.rules):
            mine = rule in self.rules
            theirs = rule in other.rules
            if mine and not theirs:
                merged[rule] = self.rules[rule]
                continue
            if theirs and not mine:
                merged[rule] = other.rules[rule]
                continue
            merged[rule] = _merge_rule(rule, self.rules[rule], other.rules[rule])
        return PasswordPolicy(profile_id=self.profile_id, rules=merged)


def _merge_rule(rule: PasswordRule, a: Any, b: Any) -> Any:
    kind = rule.kind
    if kind == RuleKind.MIN:
        return max(_as_int(a), _as_int(b))
    if kind == RuleKind.MAX:
        x, y = _as_int(a), _as_int(b)
        if x == 0 or y == 0:
            return max(x, y)
        return min(x, y)
    if kind == RuleKind.BOOLEAN:
        return _as_bool(a) or _as_bool(b)
    if kind == RuleKind.LIST:
        out: List[str] = []
        for item in _as_list(a) + _as_list(b):
            if item not in out:
                out.append(item)
        return out
    return a if str(a or "").strip() else b


class ForceSetupPolicy(str, Enum):
    NONE = "NONE"
    FORCE = "FORCE"
    FORCE_ALLOW_SKIP = "FORCE_ALLOW_SKIP"


class PermissionType(str, Enum):
    ALL = "ALL"
    DN_BASE = "DN_BASE"
    ATTRIBUTE = "ATTRIBUTE"
    GROUP = "GROUP"


class UserPermission(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    type: PermissionType = PermissionType.ALL
    ldap_profile: str = "all"
    base: Optional[str] = None  # DN_BASE
    attribute: Optional[str] = None  # ATTRIBUTE
    value: Optional[str] = None  # ATTRIBUTE
    group_dn: Optional[str] = None  # GROUP
