"""Configuration management for wacli.

Settings come from, in increasing priority:
1. ~/.config/wacli/config.cfg ([DEFAULT] section)
2. a ``.env`` file in the store directory
3. environment variables (WACLI_STORE_DIR, WACLI_SESSION_BACKEND, WACLI_DIAL_TIMEOUT_S)
4. explicit CLI flags
"""

import configparser
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from dotenv import dotenv_values

from wacli.core.errors import ConfigError
from wacli.daemon.protocol import DIAL_TIMEOUT

# Default location for user configuration.
CONFIG_PATH = Path.home() / ".config" / "wacli" / "config.cfg"
DEFAULT_STORE_DIR = Path.home() / ".wacli"

_ENV_KEYS = {
    "WACLI_STORE_DIR": "store_dir",
    "WACLI_SESSION_BACKEND": "session_backend",
    "WACLI_DIAL_TIMEOUT_S": "dial_timeout",
}


@dataclass
class Settings:
    store_dir: Path
    session_backend: str = ""
    dial_timeout: float = DIAL_TIMEOUT


def load_raw_config(path: Path = CONFIG_PATH) -> Dict[str, str]:
    """
    Load configuration values from the config file.
    Values are returned with lowercase keys for convenience.
    """
    cfg = configparser.ConfigParser()
    data: Dict[str, str] = {}

    if path.exists():
        try:
            cfg.read(path)
        except configparser.Error as e:
            raise ConfigError(f"Cannot parse {path}: {e}") from e
        if "DEFAULT" in cfg:
            data.update({k.lower(): v for k, v in cfg["DEFAULT"].items()})

    return data


def _env_overrides(environ: Dict[str, str]) -> Dict[str, str]:
    return {
        key: environ[name]
        for name, key in _ENV_KEYS.items()
        if str(environ.get(name, "")).strip() != ""
    }


def _get_float(raw: Dict[str, str], key: str, default: float) -> float:
    value = raw.get(key)
    if value is None or str(value).strip() == "":
        return default
    try:
        parsed = float(value)
    except ValueError:
        raise ConfigError(f"Invalid number for {key}: {value!r}") from None
    if parsed <= 0:
        raise ConfigError(f"{key} must be positive, got {value!r}")
    return parsed


def get_settings(
    raw: Optional[Dict[str, str]] = None,
    store_dir: Optional[str] = None,
    environ: Optional[Dict[str, str]] = None,
) -> Settings:
    """
    Build Settings from raw config values, the store's .env and the environment.

    Args:
        raw: Values from load_raw_config() (loaded if omitted)
        store_dir: Explicit store directory (``--store``), highest priority
        environ: Environment mapping (defaults to os.environ)

    Raises:
        ConfigError: If a numeric value is invalid
    """
    raw = dict(raw if raw is not None else load_raw_config())
    environ = dict(os.environ if environ is None else environ)

    resolved = dict(raw)
    resolved.update(_env_overrides(environ))
    if store_dir:
        resolved["store_dir"] = store_dir

    store = Path(resolved.get("store_dir") or DEFAULT_STORE_DIR).expanduser().resolve()

    # The store's .env sits below environment variables and flags.
    env_file = store / ".env"
    if env_file.exists():
        file_values = {
            _ENV_KEYS.get(k.upper(), k.lower()): v
            for k, v in dotenv_values(env_file).items()
            if v is not None
        }
        merged = dict(raw)
        merged.update({k: v for k, v in file_values.items() if k != "store_dir"})
        merged.update(_env_overrides(environ))
        resolved = merged

    return Settings(
        store_dir=store,
        session_backend=str(resolved.get("session_backend", "")).strip(),
        dial_timeout=_get_float(resolved, "dial_timeout", DIAL_TIMEOUT),
    )
