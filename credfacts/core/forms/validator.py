from __future__ import annotations

import re
from typing import Dict, List, Mapping

from credfacts.core.errors import ConfigError, FormValidationError
from credfacts.core.forms.models import FormField, FormFieldType
from credfacts.core.ports.interface import DirectoryReader, FormValidator
from credfacts.core.userinfo.models import UserIdentity


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_RE = re.compile(r"^\+?[0-9 ()\-.]{3,}$")


def populate_form_values(directory: DirectoryReader, identity: UserIdentity, fields: List[FormField]) -> Dict[FormField, str]:
    """
    Read every form field's attribute in one call; absent values become "".

    DirectoryOperationError / DirectoryUnavailableError propagate to the caller.
    """
    if not fields:
        return {}
    values = directory.read_attributes(identity, [f.name for f in fields])
    return {f: str(values.get(f.name) or "") for f in fields}


class RuleFormValidator(FormValidator):
    """
    Validates populated values against each field's declared constraints.
    """

    def validate(self, values: Mapping[FormField, str]) -> None:
        problems: List[str] = []
        for f, raw in values.items():
            problem = self._check(f, str(raw or ""))
            if problem:
                problems.append(f"{f.name}: {problem}")
        if problems:
            raise FormValidationError(f"{len(problems)} form field(s) invalid.", problems=problems)

    @staticmethod
    def _check(f: FormField, value: str) -> str:
        v = value.strip()
        if not v:
            return "required" if f.required and not f.read_only else ""
        if f.minimum_length and len(v) < f.minimum_length:
            return "too short"
        if f.maximum_length and len(v) > f.maximum_length:
            return "too long"
        if f.type == FormFieldType.EMAIL and not _EMAIL_RE.match(v):
            return "not an email address"
        if f.type == FormFieldType.TELEPHONE and not _PHONE_RE.match(v):
            return "not a telephone number"
        if f.type == FormFieldType.NUMBER:
            try:
                float(v)
            except ValueError:
                return "not a number"
        if f.regex:
            try:
                pattern = re.compile(f.regex)
            except re.error as e:
                raise ConfigError(f"Invalid regex for form field {f.name}.", field=f.name, error=str(e)) from e
            if not pattern.fullmatch(v):
                return f.regex_error or "does not match required pattern"
        return ""
