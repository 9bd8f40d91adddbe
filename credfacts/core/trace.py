from __future__ import annotations

import contextlib
import contextvars
import uuid
from typing import Iterator, Optional

# Label of the evaluator session whose facts the current thread is resolving.
_ACTIVE_SESSION: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("credfacts.active_session", default=None)


def current_session_label() -> Optional[str]:
    return _ACTIVE_SESSION.get()


def resolve_session_label(label: Optional[str] = None) -> str:
    """Explicit label, else the session already bound to this context, else a fresh one."""
    return str(label or _ACTIVE_SESSION.get() or uuid.uuid4().hex[:12])


@contextlib.contextmanager
def bound_session(label: str) -> Iterator[None]:
    """
    Bind `label` while fact computations run, so loggers without a fixed
    session (the fact cache's) still tag their lines with it.
    """
    token = _ACTIVE_SESSION.set(label)
    try:
        yield
    finally:
        _ACTIVE_SESSION.reset(token)
