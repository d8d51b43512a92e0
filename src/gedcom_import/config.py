import os
from pathlib import Path

import yaml

CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "gedcom_import.yml"
CONFIG_ENV_VAR = "GEDCOM_IMPORT_CONFIG"

DEFAULT_WEIGHTS = {
    "name": 0.4,
    "birthDate": 0.3,
    "birthPlace": 0.1,
    "parents": 0.2,
}


class GIConfig:
    def __init__(self, data):
        self.paths = data.get("paths", {})
        self.logging = data.get("logging", {})
        self.matching = data.get("matching", {})
        self.session = data.get("session", {})
        self.upload = data.get("upload", {})
        self.progress = data.get("progress", {})
        self.debug = data.get("debug", False)

    # Typed accessors so callers never repeat the defaults.

    @property
    def min_confidence(self) -> int:
        return int(self.matching.get("min_confidence", 50))

    @property
    def weights(self) -> dict:
        weights = dict(DEFAULT_WEIGHTS)
        weights.update(self.matching.get("weights") or {})
        return weights

    @property
    def blocking(self) -> bool:
        return bool(self.matching.get("blocking", False))

    @property
    def retention_seconds(self) -> int:
        return int(self.session.get("retention_seconds", 24 * 60 * 60))

    @property
    def max_upload_bytes(self) -> int:
        return int(self.upload.get("max_bytes", 10 * 1024 * 1024))

    @property
    def upload_extensions(self) -> list:
        return [e.lower() for e in self.upload.get("extensions", [".ged"])]

    @property
    def batch_size(self) -> int:
        return max(1, int(self.progress.get("batch_size", 100)))


def config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    return Path(override) if override else CONFIG_PATH


def load_config() -> 'GIConfig':
    path = config_path()
    if not path.exists():
        if os.environ.get(CONFIG_ENV_VAR):
            raise FileNotFoundError(f"Config file not found: {path}")
        # Installed without the repository config directory.
        return GIConfig({})

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return GIConfig(data)

_config_cache = None

def get_config() -> 'GIConfig':
    global _config_cache
    if _config_cache is None:
        _config_cache = load_config()
    return _config_cache


def reset_config() -> None:
    """Drop the cached config (tests swap config files between cases)."""
    global _config_cache
    _config_cache = None
