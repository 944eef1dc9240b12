"""Configuration for the SalesBinder document cache."""

import json
import os
import re
import stat
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger

from salesbinder_cache.exceptions import ConfigError

# Account credentials and preferences. Must be chmod 600.
CONFIG_PATH: Path = Path("~/.salesbinder/config.json").expanduser()

# Directory holding one cache database per account.
CACHE_DIR: Path = Path("~/.salesbinder/cache").expanduser()

# Environment override for the staleness threshold, in seconds.
STALE_SECONDS_ENV = "SALESBINDER_CACHE_STALE_SECONDS"

DEFAULT_STALE_SECONDS = 3600
DEFAULT_ACCOUNT = "default"

_REQUIRED_CONFIG_MODE = 0o600


@dataclass(frozen=True)
class AccountConfig:
    """Credentials for one SalesBinder account."""

    name: str
    subdomain: str
    api_key: str
    api_version: str = "2.0"
    timeout: float = 30.0


@dataclass(frozen=True)
class CacheSettings:
    """Tunables for the document indexer.

    Attributes:
        stale_seconds: Age of the last sync after which the cache is stale.
        page_size: Documents requested per list page.
        record_delay: Pause after each single-document fetch, in seconds.
        page_delay: Pause between list pages, in seconds.
    """

    stale_seconds: int = DEFAULT_STALE_SECONDS
    page_size: int = 50
    record_delay: float = 0.2
    page_delay: float = 0.5

    @classmethod
    def resolve(
        cls,
        preferences: Mapping[str, Any] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "CacheSettings":
        """Build settings with precedence environment > preferences > default."""
        env = os.environ if environ is None else environ
        stale_seconds = DEFAULT_STALE_SECONDS

        pref_value = (preferences or {}).get("cacheStaleSeconds")
        if isinstance(pref_value, int) and not isinstance(pref_value, bool) and pref_value >= 0:
            stale_seconds = pref_value

        env_value = env.get(STALE_SECONDS_ENV)
        if env_value:
            try:
                stale_seconds = int(env_value)
            except ValueError:
                logger.warning("Ignoring non-integer {}={!r}", STALE_SECONDS_ENV, env_value)

        return cls(stale_seconds=stale_seconds)


def sanitize_account_name(name: str) -> str:
    """Make an account name safe for use in a file name."""
    return re.sub(r"[^a-zA-Z0-9_-]", "_", name)


def resolve_cache_path(account: str, cache_dir: Path | None = None) -> Path:
    """Return the cache database path for an account."""
    directory = cache_dir or CACHE_DIR
    return directory / f"salesbinder-{sanitize_account_name(account)}.db"


def _read_config(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        msg = f"Failed to parse config file {path}: {e}"
        raise ConfigError(msg) from e
    if not isinstance(data, dict):
        msg = f"Config file {path} must contain a JSON object"
        raise ConfigError(msg)
    return data


def load_account(name: str | None = None, *, path: Path | None = None) -> AccountConfig:
    """Load credentials for an account from the config file.

    Args:
        name: Account to load. Falls back to ``defaultAccount``, then the
            first configured account.
        path: Config file location (defaults to ``CONFIG_PATH``).

    Raises:
        ConfigError: The file is missing, readable by others, or lacks the
            account or its required fields.
    """
    config_path = path or CONFIG_PATH
    if not config_path.exists():
        msg = f"Configuration file not found at {config_path}"
        raise ConfigError(msg)

    mode = stat.S_IMODE(config_path.stat().st_mode)
    if mode != _REQUIRED_CONFIG_MODE:
        msg = f"Insecure config file permissions {mode:o} on {config_path}; run: chmod 600 {config_path}"
        raise ConfigError(msg)

    config = _read_config(config_path)
    accounts = config.get("accounts") or {}
    if not accounts:
        msg = "No accounts configured in config file"
        raise ConfigError(msg)

    target = name or config.get("defaultAccount") or next(iter(accounts))
    account = accounts.get(target)
    if account is None:
        msg = f"Account {target!r} not found. Available: {', '.join(accounts)}"
        raise ConfigError(msg)

    for field_name in ("subdomain", "apiKey"):
        if not account.get(field_name):
            msg = f"Account {target!r} missing {field_name}"
            raise ConfigError(msg)

    timeout_ms = account.get("timeout")
    return AccountConfig(
        name=target,
        subdomain=account["subdomain"],
        api_key=account["apiKey"],
        api_version=account.get("apiVersion") or "2.0",
        timeout=timeout_ms / 1000 if timeout_ms else 30.0,
    )


def load_preferences(path: Path | None = None) -> dict[str, Any] | None:
    """Return the ``preferences`` section of the config file, if any.

    Never raises: a missing or unreadable file simply has no preferences.
    """
    config_path = path or CONFIG_PATH
    if not config_path.exists():
        return None
    try:
        config = _read_config(config_path)
    except (OSError, ConfigError):
        logger.debug("Could not read preferences from {}", config_path)
        return None
    prefs = config.get("preferences")
    return prefs if isinstance(prefs, dict) else None
