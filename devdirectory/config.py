"""Configuration management for the developer directory service."""
from __future__ import annotations

import logging
import os
import secrets
from dataclasses import dataclass, field, replace
from datetime import timedelta
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import yaml

from .query import DEFAULT_PAGE_SIZE
from .store import resolve_data_path

logger = logging.getLogger("devdirectory.config")

ENV_PREFIX = "DEVDIR_"


@dataclass(frozen=True)
class Settings:
    """Runtime settings resolved from defaults, an optional YAML file and the environment."""

    data_path: Path
    token_secret: str
    token_ttl: timedelta = timedelta(hours=1)
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:5173", "http://localhost:3000"])
    admin_name: str = "Administrator"
    admin_email: str = "admin@devdirectory.local"
    admin_password: str = "changeme"
    default_page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        if self.token_ttl <= timedelta(0):
            raise ValueError("Token lifetime must be positive")
        if self.default_page_size <= 0:
            raise ValueError("Default page size must be positive")
        if not self.token_secret:
            raise ValueError("Token secret must not be empty")


def _split_list(value: object) -> List[str]:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    raise ValueError("Expected a list or comma separated string")


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the optional YAML configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "devdirectory.yaml").resolve(strict=False)
    return candidate


def load_config_file(config_path: Path) -> Dict[str, object]:
    """Load raw settings from a YAML file, returning an empty mapping if it is absent."""
    if not config_path.exists():
        return {}
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")
    return raw


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build :class:`Settings` from the config file and ``DEVDIR_*`` variables."""

    env = os.environ if environ is None else environ
    raw: Dict[str, object] = dict(load_config_file(resolve_config_path(env.get(f"{ENV_PREFIX}CONFIG"))))

    env_keys = {
        "data_path": "DATA_PATH",
        "token_secret": "TOKEN_SECRET",
        "token_ttl_minutes": "TOKEN_TTL_MINUTES",
        "cors_origins": "CORS_ORIGINS",
        "admin_name": "ADMIN_NAME",
        "admin_email": "ADMIN_EMAIL",
        "admin_password": "ADMIN_PASSWORD",
        "default_page_size": "DEFAULT_PAGE_SIZE",
    }
    for key, suffix in env_keys.items():
        value = env.get(ENV_PREFIX + suffix)
        if value is not None and value.strip():
            raw[key] = value.strip()

    unknown = set(raw) - set(env_keys)
    if unknown:
        raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

    token_secret = raw.get("token_secret")
    if not token_secret:
        logger.warning(
            "No token secret configured; generated a temporary one. Issued credentials"
            " will stop working when the process restarts. Set %sTOKEN_SECRET.",
            ENV_PREFIX,
        )
        token_secret = secrets.token_urlsafe(32)

    settings = Settings(
        data_path=resolve_data_path(str(raw["data_path"]) if raw.get("data_path") else None),
        token_secret=str(token_secret),
    )

    overrides: Dict[str, object] = {}
    if "token_ttl_minutes" in raw:
        overrides["token_ttl"] = timedelta(minutes=int(str(raw["token_ttl_minutes"])))
    if "cors_origins" in raw:
        overrides["cors_origins"] = _split_list(raw["cors_origins"])
    for key in ("admin_name", "admin_email", "admin_password"):
        if key in raw:
            overrides[key] = str(raw[key])
    if "default_page_size" in raw:
        overrides["default_page_size"] = int(str(raw["default_page_size"]))

    return replace(settings, **overrides) if overrides else settings


__all__ = ["Settings", "load_config_file", "load_settings", "resolve_config_path"]
