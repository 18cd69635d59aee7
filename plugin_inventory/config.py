"""Configuration loading for the plugin inventory tools."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

# Pause between successive image uploads, in seconds
DEFAULT_UPLOAD_DELAY = 3.0


class ConfigError(Exception):
    """Raised when configuration is invalid."""

    pass


def _parse_seconds(value: Any, name: str) -> float:
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"'{name}' must be a number of seconds, got: {value!r}")
    if seconds < 0:
        raise ConfigError(f"'{name}' must not be negative, got: {value!r}")
    return seconds


@dataclass
class UploadSettings:
    """Settings for publishing plugin bundles."""

    destination_repo: Optional[str] = None
    upload_delay: float = DEFAULT_UPLOAD_DELAY
    imgpkg_path: str = "imgpkg"
    imgpkg_timeout: Optional[float] = None

    @classmethod
    def from_file(cls, path: Path) -> "UploadSettings":
        """Load settings from a YAML file."""
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}")
        except FileNotFoundError:
            raise ConfigError(f"Config file not found: {path}")

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"Invalid config in {path}: expected a mapping")

        settings = cls(
            destination_repo=data.get("destination_repo"),
            upload_delay=_parse_seconds(data.get("upload_delay", DEFAULT_UPLOAD_DELAY), "upload_delay"),
            imgpkg_path=data.get("imgpkg_path") or "imgpkg",
        )
        if data.get("imgpkg_timeout") is not None:
            settings.imgpkg_timeout = _parse_seconds(data["imgpkg_timeout"], "imgpkg_timeout")

        return settings

    def apply_env(self) -> "UploadSettings":
        """Override settings from PLUGIN_INVENTORY_* environment variables."""
        imgpkg_path = os.environ.get("PLUGIN_INVENTORY_IMGPKG")
        if imgpkg_path:
            self.imgpkg_path = imgpkg_path

        upload_delay = os.environ.get("PLUGIN_INVENTORY_UPLOAD_DELAY")
        if upload_delay:
            self.upload_delay = _parse_seconds(upload_delay, "PLUGIN_INVENTORY_UPLOAD_DELAY")

        return self


def get_config_path() -> Optional[Path]:
    """
    Get the path to the configuration file.

    Priority:
    1. PLUGIN_INVENTORY_CONFIG environment variable
    2. ~/.config/plugin-inventory/config.yaml

    Returns None if no config file exists.
    """
    env_path = os.environ.get("PLUGIN_INVENTORY_CONFIG")
    if env_path:
        path = Path(env_path)
        if path.exists():
            return path
        return None

    default_path = Path.home() / ".config" / "plugin-inventory" / "config.yaml"
    if default_path.exists():
        return default_path

    return None


def load_settings(config_path: Optional[Path] = None) -> UploadSettings:
    """
    Load upload settings from file and environment.

    Args:
        config_path: Explicit config file. Defaults to get_config_path().
    """
    path = config_path or get_config_path()
    settings = UploadSettings.from_file(path) if path else UploadSettings()
    return settings.apply_env()


def get_inventory_dir() -> Path:
    """
    Get the directory holding the local plugin inventory.

    Priority:
    1. PLUGIN_INVENTORY_DIR environment variable
    2. ~/.local/share/plugin-inventory/
    """
    env_dir = os.environ.get("PLUGIN_INVENTORY_DIR")
    if env_dir:
        return Path(env_dir)

    return Path.home() / ".local" / "share" / "plugin-inventory"
