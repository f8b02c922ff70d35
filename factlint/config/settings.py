"""
Runtime settings for factlint.

Settings come from three places, later ones winning:
    1. Module defaults (DEFAULT_* below)
    2. config/factlint.yaml (or the file named by FACTLINT_CONFIG)
    3. Environment variables, with .env loaded on import

Usage:
    from factlint.config.settings import load_settings

    settings = load_settings()
    settings.content_dir

CLI check:
    factlint check-config
"""

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Find .env file - walk up from this file to repo root
_repo_root = Path(__file__).resolve().parent.parent.parent  # factlint/config/settings.py -> repo root
_env_path = _repo_root / ".env"

if _env_path.exists():
    load_dotenv(_env_path)
else:
    # Also try current working directory
    load_dotenv()


DEFAULT_CONFIG_PATH = "config/factlint.yaml"
DEFAULT_CONTENT_DIR = "content/docs"
DEFAULT_FACTS_DIR = "data/facts"
DEFAULT_DERIVED_OVERLAY = "data/database.json"
DEFAULT_CONFLICT_THRESHOLD_PCT = 5.0
DEFAULT_SKIP_PREFIXES = ("internal/",)
DEFAULT_SERVER_TIMEOUT = 5.0

SERVER_URL_ENV = "FACTLINT_SERVER_URL"
SERVER_API_KEY_ENV = "FACTLINT_SERVER_API_KEY"
CONFIG_PATH_ENV = "FACTLINT_CONFIG"


class MissingSettingError(Exception):
    """Raised when a required setting is not configured."""
    pass


@dataclass(frozen=True)
class Settings:
    """Resolved settings for one run."""
    content_dir: str = DEFAULT_CONTENT_DIR
    facts_dir: str = DEFAULT_FACTS_DIR
    derived_overlay: Optional[str] = DEFAULT_DERIVED_OVERLAY
    conflict_threshold_pct: float = DEFAULT_CONFLICT_THRESHOLD_PCT
    skip_prefixes: Tuple[str, ...] = field(default=DEFAULT_SKIP_PREFIXES)
    server_url: str = ""
    server_api_key: str = ""
    server_timeout: float = DEFAULT_SERVER_TIMEOUT


def load_config_file(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load factlint configuration from YAML.

    Args:
        path: Explicit config path. Defaults to $FACTLINT_CONFIG, then
            config/factlint.yaml in the working directory or repo root.

    Returns:
        Config dict or empty dict if no readable file is found
    """
    if path:
        config_paths = [path]
    else:
        config_paths = [
            os.environ.get(CONFIG_PATH_ENV, "").strip(),
            DEFAULT_CONFIG_PATH,
            str(_repo_root / DEFAULT_CONFIG_PATH),
        ]

    for candidate in config_paths:
        if candidate and os.path.exists(candidate):
            try:
                with open(candidate, 'r') as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                logger.warning(f"Failed to load config from {candidate}: {e}")
                continue
            if not isinstance(data, dict):
                logger.warning(f"Ignoring config {candidate}: top level must be a mapping")
                continue
            return data

    return {}


def load_settings(config_path: Optional[str] = None, **overrides: Any) -> Settings:
    """
    Build Settings from defaults, the YAML config, and the environment.

    Args:
        config_path: Optional explicit YAML path
        **overrides: Field values that win over everything else (None is ignored)

    Returns:
        Frozen Settings instance
    """
    config = load_config_file(config_path)
    paths = config.get('paths', {}) or {}
    conflicts = config.get('conflicts', {}) or {}
    server = config.get('server', {}) or {}

    skip_prefixes = config.get('skip_prefixes', DEFAULT_SKIP_PREFIXES)
    if isinstance(skip_prefixes, str):
        skip_prefixes = (skip_prefixes,)

    settings = Settings(
        content_dir=paths.get('content_dir', DEFAULT_CONTENT_DIR),
        facts_dir=paths.get('facts_dir', DEFAULT_FACTS_DIR),
        derived_overlay=paths.get('derived_overlay', DEFAULT_DERIVED_OVERLAY),
        conflict_threshold_pct=float(conflicts.get('threshold_pct', DEFAULT_CONFLICT_THRESHOLD_PCT)),
        skip_prefixes=tuple(skip_prefixes),
        server_url=os.environ.get(SERVER_URL_ENV, "").strip() or server.get('url', ""),
        server_api_key=os.environ.get(SERVER_API_KEY_ENV, "").strip(),
        server_timeout=float(server.get('timeout', DEFAULT_SERVER_TIMEOUT)),
    )

    overrides = {k: v for k, v in overrides.items() if v is not None}
    if overrides:
        settings = replace(settings, **overrides)
    return settings


def require_server_url(settings: Settings) -> str:
    """
    Get the edit-log server URL.

    Returns:
        str: The base URL without a trailing slash

    Raises:
        MissingSettingError: If no server URL is configured
    """
    if not settings.server_url:
        raise MissingSettingError(
            f"{SERVER_URL_ENV} not found. "
            "Set it in the environment or in .env to enable edit logging."
        )
    return settings.server_url.rstrip("/")


def check_settings(settings: Optional[Settings] = None) -> Dict[str, str]:
    """
    Check which settings are usable.

    Returns:
        dict: Status of each setting ("OK" or "MISSING")
    """
    settings = settings or load_settings()
    return {
        "content_dir": "OK" if os.path.isdir(settings.content_dir) else "MISSING",
        "facts_dir": "OK" if os.path.isdir(settings.facts_dir) else "MISSING",
        SERVER_URL_ENV: "OK" if settings.server_url else "MISSING",
        SERVER_API_KEY_ENV: "OK" if settings.server_api_key else "MISSING",
    }
