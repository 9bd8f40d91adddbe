from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from credfacts.core.trace import current_session_label


def setup_logging(log_dir: Optional[str] = "logs", level: int = logging.INFO) -> logging.Logger:
    logger = logging.getLogger("credfacts")
    logger.setLevel(level)
    logger.propagate = False

    if log_dir and not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        os.makedirs(log_dir, exist_ok=True)
        text_path = os.path.join(log_dir, "credfacts.log")
        h = RotatingFileHandler(text_path, maxBytes=1_000_000, backupCount=5, encoding="utf-8")
        fmt = logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
        h.setFormatter(fmt)
        logger.addHandler(h)

    if not any(isinstance(h, logging.StreamHandler) and not isinstance(h, RotatingFileHandler) for h in logger.handlers):
        sh = logging.StreamHandler()
        sh.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        logger.addHandler(sh)

    return logger


def get_logger(subsystem: str) -> logging.Logger:
    return logging.getLogger(f"credfacts.{subsystem}")


class SessionLogAdapter(logging.LoggerAdapter):
    """Prefixes every message with its own session label, or the one bound by the caller."""

    def process(self, msg, kwargs):  # noqa: ANN001
        session = (self.extra or {}).get("session") or current_session_label() or "-"
        return f"[{session}] {msg}", kwargs
