"""Plugin Inventory - CLI plugin catalog and air-gapped plugin bundle publishing."""

import logging
from pathlib import Path
from typing import Optional, Union

__version__ = "0.1.0"

logger = logging.getLogger(__name__)


def upload_plugin_bundle(
    tar: Union[str, Path],
    destination_repo: Optional[str] = None,
    config_path: Optional[Path] = None,
) -> str:
    """
    Publish a plugin bundle using the configured image tooling.

    Settings come from the config file and PLUGIN_INVENTORY_* environment
    variables; destination_repo overrides the configured repository.

    Returns:
        Address of the published plugin inventory image
    """
    # Import here to avoid circular imports
    from .config import load_settings
    from .uploader import PluginBundleUploader

    settings = load_settings(config_path)
    uploader = PluginBundleUploader.from_settings(tar, settings, destination_repo=destination_repo)

    logger.debug(f"Publishing {tar} to {uploader.destination_repo}")
    return uploader.upload_plugin_bundle()


# Re-export key classes for convenience
from .config import ConfigError, UploadSettings, get_config_path, get_inventory_dir, load_settings
from .core.schema import InventoryStoreError, PluginBinaryRow
from .core.inventory import (
    VERSION_LATEST,
    Artifact,
    PluginInventory,
    PluginInventoryEntry,
    PluginInventoryFilter,
    SQLiteInventory,
)
from .core.merge import SQLiteInventoryMetadata
from .manifest import ManifestError, PluginMigrationManifest
from .uploader import BundleUploadError, PluginBundleUploader
from .sources.images import ImageNotFoundError, ImageProcessor, ImageTransferError, ImgpkgImageProcessor

__all__ = [
    "upload_plugin_bundle",
    "ConfigError",
    "UploadSettings",
    "get_config_path",
    "get_inventory_dir",
    "load_settings",
    "InventoryStoreError",
    "PluginBinaryRow",
    "VERSION_LATEST",
    "Artifact",
    "PluginInventory",
    "PluginInventoryEntry",
    "PluginInventoryFilter",
    "SQLiteInventory",
    "SQLiteInventoryMetadata",
    "ManifestError",
    "PluginMigrationManifest",
    "BundleUploadError",
    "PluginBundleUploader",
    "ImageNotFoundError",
    "ImageProcessor",
    "ImageTransferError",
    "ImgpkgImageProcessor",
]
