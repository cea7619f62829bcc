import os
from pathlib import Path

import yaml

from gedcom_reconcile.core.exceptions import ConfigurationError

CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "gedcom_reconcile.yml"
CONFIG_ENV_VAR = "GEDCOM_RECONCILE_CONFIG"


class GRConfig:
    def __init__(self, data):
        self.paths = data.get("paths", {}) or {}
        self.logging = data.get("logging", {}) or {}
        self.matching = data.get("matching", {}) or {}
        self.compare = data.get("compare", {}) or {}
        self.names = data.get("names", {}) or {}
        self.photos = data.get("photos", {}) or {}
        self.debug = data.get("debug", False)


def resolve_config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    return CONFIG_PATH


def load_config(path: Path | None = None) -> 'GRConfig':
    """
    Read the YAML config. A missing file means "all defaults";
    a file that is not a YAML mapping is a configuration error.
    """
    path = path or resolve_config_path()
    if not path.exists():
        return GRConfig({})

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping at the top level")

    return GRConfig(data)


_config_cache = None


def get_config() -> 'GRConfig':
    global _config_cache
    if _config_cache is None:
        _config_cache = load_config()
    return _config_cache


def reset_config_cache() -> None:
    global _config_cache
    _config_cache = None
