import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml
from dotenv import load_dotenv

from vsphere_iso.config.models import BuildConfig, ConfigError

logger = logging.getLogger(__name__)

# Connection secrets usually live in .env rather than in the build file
ENV_FALLBACKS = {
    "vcenter_server": "VSPHERE_SERVER",
    "username": "VSPHERE_USER",
    "password": "VSPHERE_PASSWORD",
}


def _expand(value: Any) -> Any:
    if isinstance(value, str):
        return os.path.expandvars(value)
    if isinstance(value, list):
        return [_expand(v) for v in value]
    if isinstance(value, dict):
        return {k: _expand(v) for k, v in value.items()}
    return value


def load_raw_config(path: str) -> Dict[str, Any]:
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError([f"Build file not found: {config_path}"])

    with open(config_path, "r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError([f"Cannot parse {config_path}: {e}"]) from e

    if not isinstance(raw, dict):
        raise ConfigError([f"{config_path}: top level must be a mapping"])

    return raw


def load_build_config(path: str) -> BuildConfig:
    """
    Read a build yaml, expand environment variables and validate it.
    """
    load_dotenv()

    raw = _expand(load_raw_config(path))

    for key, env_name in ENV_FALLBACKS.items():
        if not raw.get(key) and os.getenv(env_name):
            logger.debug("Using %s from environment", env_name)
            raw[key] = os.getenv(env_name)

    try:
        config = BuildConfig.from_dict(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError([f"{path}: {e}"]) from e

    return config.validate()
