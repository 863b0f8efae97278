"""Configuration loading for gh-secrets.

Settings come from, in increasing priority:
    1. Defaults on the Settings dataclass
    2. A YAML file: the explicit path, $GH_SECRETS_CONFIG, or
       ~/.config/gh-secrets/config.yml when it exists
    3. The GH_SECRETS_CLIENT_ID environment variable

``${VAR}`` and ``${VAR:-default}`` references inside YAML strings are
expanded from the environment, which is itself seeded from .env.local via
python-dotenv. The plain .env file is left alone since it usually holds the
secrets being uploaded.
"""
import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml
from dotenv import load_dotenv
from loguru import logger

from .errors import ConfigError

# Public OAuth App client ID (not a secret). Users may configure their own.
DEFAULT_CLIENT_ID = "Ov23li3xgnuTj9rfcWSt"

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "gh-secrets" / "config.yml"


@dataclass
class Settings:
    client_id: str = DEFAULT_CLIENT_ID
    scopes: list[str] = field(default_factory=lambda: ["repo"])
    org_scopes: list[str] = field(default_factory=lambda: ["repo", "admin:org", "write:org"])
    api_url: str = "https://api.github.com"
    device_code_url: str = "https://github.com/login/device/code"
    token_url: str = "https://github.com/login/oauth/access_token"
    api_version: str = "2022-11-28"
    request_timeout: float = 30.0


# ${NAME} or ${NAME:-fallback}
_ENV_REF = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")


def _substitute(match: re.Match) -> str:
    name, fallback = match.group(1), match.group(2)
    value = os.environ.get(name)
    if value:
        return value
    if fallback is not None:
        return fallback
    if value is None:
        logger.warning(f"Config references unset variable {name}; leaving it as written")
        return match.group(0)
    return value


def expand_env_vars(obj):
    """
    Expand environment references in strings nested in dicts and lists.

    ``${NAME}`` takes the variable's value. ``${NAME:-fallback}`` uses the
    fallback when the variable is unset or empty. A bare reference to an
    unset variable is left as written and logged at warning level.
    """
    if isinstance(obj, str):
        return _ENV_REF.sub(_substitute, obj)
    if isinstance(obj, dict):
        return {k: expand_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [expand_env_vars(v) for v in obj]
    return obj


def _resolve_config_path(path: str | None) -> Path | None:
    if path:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise ConfigError(f"Configuration file not found at: {config_path}")
        return config_path

    env_path = os.environ.get("GH_SECRETS_CONFIG")
    if env_path:
        config_path = Path(env_path).expanduser()
        if config_path.exists():
            return config_path
        logger.warning(f"GH_SECRETS_CONFIG points to a missing file: {config_path}")

    if DEFAULT_CONFIG_PATH.exists():
        return DEFAULT_CONFIG_PATH
    return None


def _read_yaml(config_path: Path) -> dict:
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML config at {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config file at {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file at {config_path} must contain a mapping")
    return data


def load_settings(path: str | None = None) -> Settings:
    """
    Build Settings from defaults, the YAML file and the environment.

    Args:
        path: Explicit config file. Must exist when given.

    Returns:
        Settings

    Raises:
        ConfigError: If the file is missing, unreadable or malformed
    """
    load_dotenv(".env.local")

    values: dict = {}
    config_path = _resolve_config_path(path)
    if config_path is not None:
        data = expand_env_vars(_read_yaml(config_path))
        known = {f.name for f in fields(Settings)}
        for key, value in data.items():
            if key in known:
                values[key] = value
            else:
                logger.warning(f"Ignoring unknown config key '{key}' in {config_path}")
        logger.debug(f"Configuration loaded from {config_path}")

    client_id = os.environ.get("GH_SECRETS_CLIENT_ID")
    if client_id:
        values["client_id"] = client_id

    for key in ("scopes", "org_scopes"):
        if key in values and isinstance(values[key], str):
            values[key] = values[key].split()
    if "request_timeout" in values:
        try:
            values["request_timeout"] = float(values["request_timeout"])
        except (TypeError, ValueError) as e:
            raise ConfigError(f"request_timeout must be a number: {e}") from e

    return Settings(**values)
