"""
NexaDB Environment
==================

Loads ``.env`` files and exposes typed getters used when building
connection settings from the environment.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Dict, List, Optional, Union


_VARIABLE = re.compile(r"\$\{([^}]+)\}|\$(\w+)")


class Env:
    """
    Environment variable reader.

    Values from the ``.env`` file never replace variables that are
    already set in the process unless ``override`` is true.

    Example:
        env = Env(".env").load()

        driver = env.str("DB_CONNECTION", "sqlite")
        port = env.int("DB_PORT", 5432)
    """

    def __init__(
        self,
        env_file: Optional[Union[str, Path]] = None,
        override: bool = False,
    ) -> None:
        self._env_file = Path(env_file) if env_file else None
        self._override = override
        self._values: Dict[str, str] = {}

    def load(self, env_file: Optional[Union[str, Path]] = None) -> Env:
        """Read the env file, if one exists, and return self."""
        path = Path(env_file) if env_file else self._env_file
        if path is None:
            candidate = Path.cwd() / ".env"
            path = candidate if candidate.exists() else None

        if path is not None and path.exists():
            self._parse(path.read_text())

        return self

    def _parse(self, content: str) -> None:
        for line in content.splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            if line.startswith("export "):
                line = line[7:]

            key, sep, value = line.partition("=")
            if not sep:
                continue

            key = key.strip()
            value = value.strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
                value = value[1:-1]

            value = _VARIABLE.sub(self._expand, value)
            self._values[key] = value

            if self._override or key not in os.environ:
                os.environ[key] = value

    def _expand(self, match: re.Match) -> str:
        name = match.group(1) or match.group(2)
        return os.getenv(name, self._values.get(name, ""))

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get a raw value, process environment first."""
        return os.getenv(key, self._values.get(key, default))

    def str(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.get(key, default)

    def int(self, key: str, default: Optional[int] = None) -> Optional[int]:
        value = self.get(key)
        if value is None or value == "":
            return default
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"Environment variable '{key}' is not a valid integer")

    def bool(self, key: str, default: Optional[bool] = None) -> Optional[bool]:
        value = self.get(key)
        if value is None:
            return default
        if value.lower() in ("true", "1", "yes", "on"):
            return True
        if value.lower() in ("false", "0", "no", "off", ""):
            return False
        raise ValueError(f"Environment variable '{key}' is not a valid boolean")

    def list(
        self,
        key: str,
        default: Optional[List[str]] = None,
        separator: str = ",",
    ) -> Optional[List[str]]:
        value = self.get(key)
        if value is None:
            return default
        return [item.strip() for item in value.split(separator) if item.strip()]

    def __contains__(self, key: str) -> bool:
        return key in os.environ or key in self._values
