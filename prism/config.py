"""
Gateway configuration: YAML file, environment overrides and validation
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"
CONFIG_PATH_ENV = "PRISM_CONFIG"
LOG_LEVELS = ("debug", "info", "warning", "error")

# env var -> dotted config key
ENV_OVERRIDES = {
    "SERVER_HOST": "server.host",
    "SERVER_PORT": "server.port",
    "LOG_LEVEL": "server.log_level",
    "GLM_API_KEY": "adapters.glm.api_key",
    "GLM_BASE_URL": "adapters.glm.base_url",
    "GLM_TIMEOUT": "adapters.glm.timeout",
}


class ConfigError(Exception):
    """Raised when the configuration cannot be loaded or is invalid"""


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "info"


class AdapterSettings(BaseModel):
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    timeout: Optional[float] = None
    models: List[str] = Field(default_factory=list)
    health_model: Optional[str] = None


class Settings(BaseModel):
    server: ServerSettings = Field(default_factory=ServerSettings)
    stream_buffer: int = Field(default=10, ge=1)
    adapters: Dict[str, AdapterSettings] = Field(default_factory=dict)


def _set_dotted(data: Dict[str, Any], key: str, value: Any) -> None:
    node = data
    parts = key.split(".")
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = value


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to read config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return data


def validate_settings(settings: Settings) -> None:
    if not 0 < settings.server.port <= 65535:
        raise ConfigError(f"invalid server port: {settings.server.port}")
    if settings.server.log_level.lower() not in LOG_LEVELS:
        raise ConfigError(f"invalid logging level: {settings.server.log_level}")
    if not settings.adapters:
        raise ConfigError("no adapters configured")
    for name, adapter in settings.adapters.items():
        if not adapter.models:
            raise ConfigError(f"adapter '{name}' has no models configured")
        if name == "glm" and not adapter.api_key:
            raise ConfigError(f"adapter '{name}' missing API key")


def load_settings(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Dict[str, str]] = None,
) -> Settings:
    """
    Load settings from YAML, then apply environment overrides.

    Args:
        path: config file (defaults to $PRISM_CONFIG, then config.yaml)
        environ: environment mapping (defaults to os.environ)
    """
    env = os.environ if environ is None else environ
    config_path = Path(path or env.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)

    if config_path.is_file():
        logger.info(f"Using config file: {config_path}")
        data = _read_yaml(config_path)
    else:
        logger.warning(f"Config file {config_path} not found, using environment variables and defaults")
        data = {}

    for env_name, key in ENV_OVERRIDES.items():
        value = env.get(env_name)
        if value:
            _set_dotted(data, key, value)

    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"failed to parse config: {e}") from e

    validate_settings(settings)
    return settings
