"""
Gate configuration loader

Loads the static GateConfig from an optional YAML file and lets environment
variables override selected fields.
"""

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from accessgate.errors import ConfigurationError
from accessgate.platform_utils import get_data_dir

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "accessgate.yaml"
ENV_CONFIG_PATH = "ACCESSGATE_CONFIG"
ENV_CONTROL_ENDPOINT = "ACCESSGATE_CONTROL_ENDPOINT"
ENV_DATA_DIR = "ACCESSGATE_DATA_DIR"


@dataclass(frozen=True)
class GateConfig:
    """Static configuration, constructed once at startup"""

    expected_token: str = "GJDFHDFHFDJGSDAGKGHK"
    auth_code: str = "Bs2675kDjkb5Ga"
    control_endpoint: str = "https://wallen-eatery.space/ios-st-9/server.php"
    cache_url_key: str = "storedTrustedURL"
    cache_token_key: str = "storedVerificationToken"

    request_timeout_seconds: float = 30.0
    backoff_base_seconds: float = 2.0
    backoff_max_exponent: int = 6
    backoff_cap_seconds: float = 30.0

    data_dir: Path = field(default_factory=get_data_dir)

    @property
    def settings_path(self) -> Path:
        return self.data_dir / "settings.json"

    @property
    def secrets_path(self) -> Path:
        return self.data_dir / "secrets.json"

    @property
    def secrets_key_path(self) -> Path:
        return self.data_dir / "secrets.key"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GateConfig":
        """Create from dictionary (unknown keys are ignored)"""
        known = {f.name: f for f in fields(cls)}
        kwargs: Dict[str, Any] = {}

        for key, value in data.items():
            if key not in known:
                logger.warning(f"Ignoring unknown config key: {key}")
                continue
            kwargs[key] = _coerce(key, value)

        return cls(**kwargs)


_FLOAT_FIELDS = ("request_timeout_seconds", "backoff_base_seconds", "backoff_cap_seconds")
_INT_FIELDS = ("backoff_max_exponent",)


def _coerce(key: str, value: Any) -> Any:
    try:
        if key in _FLOAT_FIELDS:
            return float(value)
        if key in _INT_FIELDS:
            return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Config key {key!r} must be numeric, got {value!r}") from e

    if key == "data_dir":
        return Path(value).expanduser()
    return str(value)


def load_gate_config(config_path: Optional[Path] = None) -> GateConfig:
    """
    Load the gate configuration.

    Priority (highest first):
    1. Environment variable ACCESSGATE_CONFIG (path)
    2. Argument config_path
    3. <data_dir>/accessgate.yaml
    4. Hard-coded defaults

    ACCESSGATE_CONTROL_ENDPOINT and ACCESSGATE_DATA_DIR are applied on top.

    Args:
        config_path: Path to YAML config file (optional)

    Returns:
        GateConfig: Configuration object
    """
    env_config_path = os.getenv(ENV_CONFIG_PATH)
    if env_config_path:
        config_path = Path(env_config_path)

    if config_path is None:
        default_path = get_data_dir() / CONFIG_FILENAME
        if default_path.exists():
            config_path = default_path

    config_data: Dict[str, Any] = {}
    if config_path and Path(config_path).exists():
        with open(config_path, encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}

        if not isinstance(config_data, dict):
            raise ConfigurationError(f"Config file {config_path} must contain a mapping")

        logger.debug(f"Loaded gate config from {config_path}")
    elif config_path:
        logger.warning(f"Config file not found, using defaults: {config_path}")

    config = GateConfig.from_dict(config_data)

    endpoint = os.getenv(ENV_CONTROL_ENDPOINT)
    if endpoint:
        config = replace(config, control_endpoint=endpoint)

    data_dir = os.getenv(ENV_DATA_DIR)
    if data_dir:
        config = replace(config, data_dir=Path(data_dir).expanduser())

    return config
