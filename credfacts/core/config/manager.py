from __future__ import annotations

import threading
from typing import Any, Dict, Optional

from pydantic import ValidationError

from credfacts.core.config.io import read_json_file
from credfacts.core.config.models import CredFactsConfigFile
from credfacts.core.errors import ConfigError
from credfacts.core.logger import get_logger


class ConfigManager:
    """
    Loads and validates the credfacts config file.

    A missing file yields the built-in defaults; a corrupt or invalid file is a
    ConfigError. The loaded model is read-only for the rest of the process.
    """

    def __init__(self, *, path: str = "config/credfacts.json", logger=None):
        self.path = path
        self.logger = logger or get_logger("config")
        self._lock = threading.Lock()
        self._cfg: Optional[CredFactsConfigFile] = None

    def load(self) -> CredFactsConfigFile:
        with self._lock:
            if self._cfg is not None:
                return self._cfg
            rr = read_json_file(self.path)
            if not rr.ok:
                if rr.error == "missing":
                    self.logger.warning(f"config file {self.path} not found; using defaults")
                    self._cfg = CredFactsConfigFile()
                    return self._cfg
                raise ConfigError(f"Unable to read config file {self.path}.", path=self.path, error=rr.error)
            self._cfg = self.validate(rr.data, source=self.path)
            return self._cfg

    def get(self) -> CredFactsConfigFile:
        return self.load()

    @staticmethod
    def validate(raw: Dict[str, Any], *, source: str = "<dict>") -> CredFactsConfigFile:
        try:
            return CredFactsConfigFile.model_validate(raw)
        except ValidationError as e:
            errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
            raise ConfigError(f"Invalid configuration in {source}.", source=source, errors=errors) from e
