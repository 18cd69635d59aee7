"""Core components for the plugin inventory."""

from .schema import InventoryStoreError, PluginBinaryRow, create_inventory_schema, open_inventory_engine
from .inventory import (
    VERSION_LATEST,
    SQLITE_DB_FILE_NAME,
    Artifact,
    PluginInventory,
    PluginInventoryEntry,
    PluginInventoryFilter,
    SQLiteInventory,
)
from .merge import SQLITE_INVENTORY_METADATA_DB_FILE_NAME, SQLiteInventoryMetadata

__all__ = [
    "InventoryStoreError",
    "PluginBinaryRow",
    "create_inventory_schema",
    "open_inventory_engine",
    "VERSION_LATEST",
    "SQLITE_DB_FILE_NAME",
    "Artifact",
    "PluginInventory",
    "PluginInventoryEntry",
    "PluginInventoryFilter",
    "SQLiteInventory",
    "SQLITE_INVENTORY_METADATA_DB_FILE_NAME",
    "SQLiteInventoryMetadata",
]
