from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from credfacts.core.redaction import redact


class Severity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class CredFactsError(Exception):
    code: str
    user_message: str
    severity: Severity = Severity.ERROR
    recoverable: bool = True
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.code)

    def __str__(self) -> str:
        return f"{self.code}: {self.user_message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "user_message": self.user_message,
            "severity": self.severity.value,
            "recoverable": bool(self.recoverable),
            "context": redact(self.context or {}),
        }


# ---- Directory ----
class DirectoryUnavailableError(CredFactsError):
    def __init__(self, user_message: str = "The directory service is unavailable.", **ctx: Any):
        super().__init__("directory_unavailable", user_message, severity=Severity.CRITICAL, recoverable=False, context=ctx)


class DirectoryOperationError(CredFactsError):
    def __init__(self, user_message: str = "Directory operation failed.", **ctx: Any):
        super().__init__("directory_operation_error", user_message, severity=Severity.WARN, recoverable=True, context=ctx)


# ---- Fact resolution ----
class FactCycleError(CredFactsError):
    def __init__(self, user_message: str = "Fact dependency cycle detected.", **ctx: Any):
        super().__init__("fact_cycle", user_message, severity=Severity.CRITICAL, recoverable=False, context=ctx)


class FactComputationError(CredFactsError):
    def __init__(self, user_message: str = "Fact computation failed.", **ctx: Any):
        super().__init__("fact_computation_error", user_message, severity=Severity.ERROR, recoverable=False, context=ctx)


# ---- Configuration ----
class ConfigError(CredFactsError):
    def __init__(self, user_message: str = "Configuration error.", **ctx: Any):
        super().__init__("config_error", user_message, severity=Severity.CRITICAL, recoverable=False, context=ctx)


# ---- Expected validation outcomes ----
class PasswordValidationError(CredFactsError):
    def __init__(self, user_message: str = "Password does not meet policy.", **ctx: Any):
        super().__init__("password_validation_error", user_message, severity=Severity.INFO, recoverable=True, context=ctx)


class FormValidationError(CredFactsError):
    def __init__(self, user_message: str = "Form values are incomplete.", **ctx: Any):
        super().__init__("form_validation_error", user_message, severity=Severity.INFO, recoverable=True, context=ctx)


def normalize_exception(exc: BaseException, *, fact: str = "", context: Dict[str, Any] | None = None) -> CredFactsError:
    """
    Map an arbitrary exception into the CredFactsError hierarchy.

    Domain errors pass through untouched; everything else is wrapped so callers
    only ever see one error family.
    """
    if isinstance(exc, CredFactsError):
        return exc
    ctx = dict(context or {})
    if fact:
        ctx["fact"] = fact
    ctx["exception_type"] = type(exc).__name__
    err = FactComputationError(f"Unexpected error while computing {fact or 'fact'}: {exc}", **ctx)
    err.__cause__ = exc
    return err
