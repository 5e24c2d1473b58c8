"""Token storage in a small YAML file.

Default location: ``~/.config/pro/config.yml``. ``PRO_CONFIG`` overrides the
path, ``PRO_GITHUB_TOKEN`` / ``PRO_GITLAB_TOKEN`` override stored tokens for a
single run.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import yaml

from pull_request_opener.exceptions import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV = "PRO_CONFIG"
TOKEN_ENV = {
    "github_token": "PRO_GITHUB_TOKEN",
    "gitlab_token": "PRO_GITLAB_TOKEN",
}


@dataclass
class Config:
    """Provider tokens."""

    github_token: str = ""
    gitlab_token: str = ""

    def token_for(self, provider: str) -> str:
        return getattr(self, f"{provider}_token")

    def with_token(self, provider: str, token: str) -> Config:
        values = asdict(self)
        values[f"{provider}_token"] = token
        return Config(**values)


def get_config_path() -> Path:
    """Get the config file path."""
    override = os.environ.get(CONFIG_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "pro" / "config.yml"


def load_env_tokens() -> dict[str, str]:
    """Read token overrides from the environment."""
    result: dict[str, str] = {}
    for key, env_key in TOKEN_ENV.items():
        val = os.environ.get(env_key)
        if val:
            result[key] = val.strip()
    return result


def _read_file(path: Path) -> dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except FileNotFoundError:
        return {}
    except OSError as e:
        raise ConfigError(f"Unable to read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping: {path}")
    return data


def load_config(path: Path | None = None, use_env: bool = True) -> Config:
    """Load the config file. Returns an empty config when it does not exist."""
    config_path = path or get_config_path()
    raw = _read_file(config_path)
    logger.info(f"Loaded config from {config_path}" if raw else f"No config at {config_path}")

    values = {key: str(raw.get(key) or "") for key in TOKEN_ENV}
    if use_env:
        values.update(load_env_tokens())
    return Config(**values)


def save_config(config: Config, path: Path | None = None) -> Path:
    """Write the config atomically with owner-only permissions."""
    config_path = path or get_config_path()
    try:
        config_path.parent.mkdir(mode=0o750, parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{config_path.name}.", suffix=".tmp", dir=config_path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                yaml.safe_dump(asdict(config), handle, default_flow_style=False, sort_keys=False)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, config_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as e:
        raise ConfigError(f"Unable to write config file {config_path}: {e}") from e

    logger.info(f"Saved config to {config_path}")
    return config_path
