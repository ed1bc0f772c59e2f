"""
Library settings for groveconf.

Purpose
-------
Provide the handful of settings that govern groveconf itself (logging
behaviour, debug output, default polling intervals). These are read from
``GROVECONF_*`` environment variables, optionally after loading a ``.env``
file, and are distinct from the application options a `Registry` manages.

Responsibilities
----------------
- Load library settings from environment variables with .env support
- Validate values with bounds checking and fall back to defaults
- Record which values came from the environment

Non-Responsibilities
--------------------
- Application configuration (handled by Registry and its sources)
- Configuring logging handlers (handled by core.logging)

Architecture Notes
------------------
- Class-level attributes with classmethods; no instantiation
- Nothing is loaded on import; call `Settings.load()` explicitly
- Invalid values log a warning and keep the documented default

Environment Variables
---------------------
- GROVECONF_LOG_LEVEL: logging level (default: INFO)
- GROVECONF_LOG_JSON: emit JSON logs on the console (default: False)
- GROVECONF_LOG_COLORS: colour human-readable logs on a TTY (default: True)
- GROVECONF_LOG_DIR: directory for the daily JSON log file (default: unset)
- GROVECONF_DEBUG: verbose registration/update logging (default: False)
- GROVECONF_BACKUP_INTERVAL: backup file flush period in seconds (default: 60)
- GROVECONF_WATCH_INTERVAL: file source poll period in seconds (default: 10)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from dotenv import load_dotenv

ENV_PREFIX = "GROVECONF_"

_TRUE_VALUES = {"1", "t", "true", "yes", "y", "on"}
_FALSE_VALUES = {"0", "f", "false", "no", "n", "off"}


class Settings:
    """
    Static settings for the groveconf library.

    Usage
    -----
    >>> Settings.load()
    >>> Settings.LOG_LEVEL
    'INFO'
    >>> Settings.get_summary()["from_environment"]
    0
    """

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    LOG_COLORS: bool = True
    LOG_DIR: Optional[Path] = None
    DEBUG: bool = False

    BACKUP_INTERVAL: float = 60.0
    WATCH_INTERVAL: float = 10.0

    _from_env: Dict[str, bool] = {}
    _errors: Dict[str, str] = {}
    _loaded: bool = False

    # =========================================================================
    # Helper Methods
    # =========================================================================

    @classmethod
    def _raw(cls, key: str) -> Optional[str]:
        value = os.getenv(ENV_PREFIX + key)
        cls._from_env[key] = value is not None
        return value

    @classmethod
    def _reject(cls, key: str, raw: str, default: Any, reason: str) -> None:
        error = f"{ENV_PREFIX}{key}='{raw}' {reason}, using default {default!r}"
        logging.getLogger(__name__).warning(error)
        cls._errors[key] = error
        cls._from_env[key] = False

    @classmethod
    def _safe_bool(cls, key: str, default: bool) -> bool:
        """
        Safely parse boolean from environment.

        Recognizes: true/false, yes/no, 1/0, on/off (case-insensitive).
        """
        raw = cls._raw(key)
        if raw is None:
            return default

        value = raw.strip().lower()
        if value in _TRUE_VALUES:
            return True
        if value in _FALSE_VALUES:
            return False

        cls._reject(key, raw, default, "is not a valid boolean")
        return default

    @classmethod
    def _safe_float(
        cls,
        key: str,
        default: float,
        min_val: Optional[float] = None,
    ) -> float:
        """
        Safely parse a positive number from environment.

        Parameters
        ----------
        key:
            Variable name without the GROVECONF_ prefix.
        default:
            Default value if not set or invalid.
        min_val:
            Minimum allowed value (inclusive).
        """
        raw = cls._raw(key)
        if raw is None:
            return default

        try:
            value = float(raw)
        except ValueError:
            cls._reject(key, raw, default, "is not a valid number")
            return default

        if min_val is not None and value < min_val:
            cls._reject(key, raw, default, f"is below minimum {min_val}")
            return default
        return value

    @classmethod
    def _safe_str(cls, key: str, default: str, allowed: Optional[set] = None) -> str:
        raw = cls._raw(key)
        if raw is None or not raw.strip():
            return default

        value = raw.strip()
        if allowed is not None and value.upper() not in allowed:
            cls._reject(key, raw, default, f"is not one of {sorted(allowed)}")
            return default
        return value

    # =========================================================================
    # Loading
    # =========================================================================

    @classmethod
    def load(
        cls,
        dotenv_path: Optional[Union[str, Path]] = None,
        use_dotenv: bool = True,
    ) -> None:
        """
        Load settings from the environment.

        Parameters
        ----------
        dotenv_path:
            Explicit .env file. When None, python-dotenv searches upwards from
            the current working directory.
        use_dotenv:
            Set to False to read the process environment only.
        """
        if use_dotenv:
            load_dotenv(dotenv_path=dotenv_path, override=False)

        cls._from_env = {}
        cls._errors = {}

        cls.LOG_LEVEL = cls._safe_str(
            "LOG_LEVEL",
            "INFO",
            allowed={"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"},
        ).upper()
        cls.LOG_JSON = cls._safe_bool("LOG_JSON", False)
        cls.LOG_COLORS = cls._safe_bool("LOG_COLORS", True)

        log_dir = cls._safe_str("LOG_DIR", "")
        cls.LOG_DIR = Path(log_dir).expanduser().resolve() if log_dir else None

        cls.DEBUG = cls._safe_bool("DEBUG", False)
        cls.BACKUP_INTERVAL = cls._safe_float("BACKUP_INTERVAL", 60.0, min_val=0.01)
        cls.WATCH_INTERVAL = cls._safe_float("WATCH_INTERVAL", 10.0, min_val=0.01)

        cls._loaded = True

    @classmethod
    def ensure_loaded(cls) -> None:
        if not cls._loaded:
            cls.load(use_dotenv=False)

    @classmethod
    def reset(cls) -> None:
        """Restore every setting to its default; intended for tests."""
        cls.LOG_LEVEL = "INFO"
        cls.LOG_JSON = False
        cls.LOG_COLORS = True
        cls.LOG_DIR = None
        cls.DEBUG = False
        cls.BACKUP_INTERVAL = 60.0
        cls.WATCH_INTERVAL = 10.0
        cls._from_env = {}
        cls._errors = {}
        cls._loaded = False

    @classmethod
    def get_summary(cls) -> Dict[str, Any]:
        """Summarize where settings came from and which values were rejected."""
        return {
            "loaded": cls._loaded,
            "from_environment": sum(1 for v in cls._from_env.values() if v),
            "from_defaults": sum(1 for v in cls._from_env.values() if not v),
            "validation_errors": dict(cls._errors),
            "log_level": cls.LOG_LEVEL,
            "log_json": cls.LOG_JSON,
            "log_dir": str(cls.LOG_DIR) if cls.LOG_DIR else None,
            "debug": cls.DEBUG,
        }


__all__ = ["Settings", "ENV_PREFIX"]
