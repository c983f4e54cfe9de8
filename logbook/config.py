"""Configuration management for the logbook service."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from datetime import timedelta
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .database import resolve_database_path

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_flag(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return default


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the HTTP service and its database."""

    database_path: Path
    listen_host: str = "0.0.0.0"
    listen_port: int = 4000
    allow_registration: bool = False
    secure_cookies: bool = True
    session_ttl_hours: int = 24 * 30

    @property
    def session_ttl(self) -> timedelta:
        return timedelta(hours=self.session_ttl_hours)

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw dictionary data."""

        raw_db = data.get("database_path")
        if raw_db:
            db_path = Path(str(raw_db)).expanduser()
            if not db_path.is_absolute() and base_path is not None:
                db_path = base_path / db_path
            database_path = db_path.resolve(strict=False)
        else:
            database_path = resolve_database_path(None)

        ttl_hours = int(data.get("session_ttl_hours", 24 * 30))
        if ttl_hours <= 0:
            raise ValueError("session_ttl_hours must be positive")

        return Settings(
            database_path=database_path,
            listen_host=str(data.get("listen_host", "0.0.0.0")),
            listen_port=int(data.get("listen_port", 4000)),
            allow_registration=bool(data.get("allow_registration", False)),
            secure_cookies=bool(data.get("secure_cookies", True)),
            session_ttl_hours=ttl_hours,
        )

    def public(self) -> Dict[str, object]:
        """Settings safe to expose to unauthenticated clients."""

        return {"allow_registration": self.allow_registration}


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "logbook.yaml").resolve(strict=False)
    return candidate


def load_settings(
    config_path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from YAML, then apply environment overrides.

    A missing configuration file is not an error; defaults apply.
    """

    env = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get("LOGBOOK_CONFIG"))

    raw: Mapping[str, object] = {}
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
        if not isinstance(raw, Mapping):
            raise ValueError(f"Configuration file {path} must contain a mapping")

    settings = Settings.from_dict(raw, base_path=path.parent)

    db_override = env.get("LOGBOOK_DB_PATH")
    if db_override:
        settings = replace(settings, database_path=resolve_database_path(db_override))
    settings = replace(
        settings,
        allow_registration=_env_flag(env.get("LOGBOOK_ALLOW_REGISTRATION"), settings.allow_registration),
        secure_cookies=_env_flag(env.get("LOGBOOK_SESSION_SECURE"), settings.secure_cookies),
    )
    return settings


__all__ = ["Settings", "load_settings", "resolve_config_path"]
