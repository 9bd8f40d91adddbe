"""
Password aging state machine.

Three inputs drive it: the directory's own expired flag, the expiration
time (when known) and two lead windows from policy.

- pre_expired: expired, or expiring within pre_expire_seconds
- warn_period: only when warn_seconds != 0 and warn_seconds >= pre_expire_seconds;
  then expired, or expiring within warn_seconds

A window is open only while 0 < remaining < window; an expiration time in the
past never opens one by itself.
"""

from __future__ import annotations

import datetime as dt
from typing import Callable, Optional

from credfacts.core.errors import DirectoryOperationError, DirectoryUnavailableError, PasswordValidationError
from credfacts.core.userinfo.models import PasswordStatus


def _aware(t: dt.datetime) -> dt.datetime:
    return t if t.tzinfo is not None else t.replace(tzinfo=dt.timezone.utc)


def remaining_seconds(expiration_time: Optional[dt.datetime], now: dt.datetime) -> Optional[float]:
    if expiration_time is None:
        return None
    return (_aware(expiration_time) - _aware(now)).total_seconds()


def in_window(remaining: Optional[float], window_seconds: int) -> bool:
    if remaining is None:
        return False
    return 0 < remaining < float(window_seconds)


def warn_window_active(pre_expire_seconds: int, warn_seconds: int) -> bool:
    return int(warn_seconds) != 0 and int(warn_seconds) >= int(pre_expire_seconds)


def compute_password_status(
    *,
    expired: bool,
    expiration_time: Optional[dt.datetime],
    now: dt.datetime,
    pre_expire_seconds: int,
    warn_seconds: int,
    violates_policy: bool = False,
) -> PasswordStatus:
    remaining = remaining_seconds(expiration_time, now)

    pre_expired = bool(expired) or in_window(remaining, pre_expire_seconds)

    warn_period = False
    if warn_window_active(pre_expire_seconds, warn_seconds):
        warn_period = bool(expired) or in_window(remaining, warn_seconds)

    return PasswordStatus(
        expired=bool(expired),
        pre_expired=pre_expired,
        warn_period=warn_period,
        violates_policy=bool(violates_policy),
    )


def check_policy_violation(validate: Callable[[], None], *, on_violation: Optional[Callable[[Exception], None]] = None) -> bool:
    """
    Run a password validation callback and fold its outcome into a boolean.

    A failed validation (or a directory read the validator could not complete)
    counts as a violation. DirectoryUnavailableError aborts the status check.
    """
    try:
        validate()
    except DirectoryUnavailableError:
        raise
    except (PasswordValidationError, DirectoryOperationError) as e:
        if on_violation is not None:
            on_violation(e)
        return True
    return False
