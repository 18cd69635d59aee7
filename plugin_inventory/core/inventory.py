"""
Plugin inventory read model and its SQLite-backed query engine.

The inventory stores one row per platform build of a plugin version. Queries
filter those rows and aggregate them into one PluginInventoryEntry per
plugin/target pair, so callers can ask "which plugins exist and which version
should be installed" without knowing how the inventory is stored.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .schema import (
    PluginBinaryRow,
    create_inventory_schema,
    insert_rows,
    open_inventory_engine,
    plugin_binaries,
    read_rows,
)
from .versions import is_valid_version, max_version, sort_versions

logger = logging.getLogger(__name__)

SQLITE_DB_FILE_NAME = "plugin_inventory.db"

# Filter version that resolves to the recommended version of each plugin
VERSION_LATEST = "latest"

# Stored target spellings and the target they denote
TARGET_ALIASES = {
    "": "",
    "global": "",
    "k8s": "kubernetes",
    "kubernetes": "kubernetes",
    "tmc": "mission-control",
    "mission-control": "mission-control",
}


def normalize_target(target: Optional[str]) -> str:
    """Map a stored or user-supplied target to its canonical name."""
    if target is None:
        return ""
    return TARGET_ALIASES.get(target.strip().lower(), target)


def target_spellings(target: str) -> List[str]:
    """Get every stored spelling that denotes the same target."""
    canonical = normalize_target(target)
    spellings = {alias for alias, value in TARGET_ALIASES.items() if value == canonical}
    spellings.add(target)
    return sorted(spellings)


@dataclass
class Artifact:
    """A single platform build of a plugin version."""

    os: str
    arch: str
    digest: str
    image: str
    uri: str = ""


@dataclass
class PluginInventoryEntry:
    """Inventory information about a single plugin for one target."""

    name: str
    target: str
    description: str = ""
    publisher: str = ""
    vendor: str = ""
    # Version to install by default
    recommended_version: str = ""
    # Ascending semantic version order
    available_versions: List[str] = field(default_factory=list)
    # Artifact list for every available version
    artifacts: Dict[str, List[Artifact]] = field(default_factory=dict)


@dataclass
class PluginInventoryFilter:
    """
    Criteria used to select inventory rows.

    Unset (None or empty) fields match everything. A version of
    VERSION_LATEST selects the recommended version of each plugin.
    """

    name: Optional[str] = None
    target: Optional[str] = None
    version: Optional[str] = None
    os: Optional[str] = None
    arch: Optional[str] = None
    publisher: Optional[str] = None
    vendor: Optional[str] = None
    include_hidden: bool = True


class PluginInventory(ABC):
    """Interface to interact with a plugin inventory."""

    @abstractmethod
    def get_all_plugins(self) -> List[PluginInventoryEntry]:
        """Get every plugin in the inventory."""

    @abstractmethod
    def get_plugins(self, plugin_filter: PluginInventoryFilter) -> List[PluginInventoryEntry]:
        """Get the plugins matching a filter."""

    @abstractmethod
    def create_schema(self) -> None:
        """Create the inventory storage if it does not exist."""

    @abstractmethod
    def insert_plugin(self, entry: PluginInventoryEntry) -> None:
        """Add every artifact of a plugin entry to the inventory."""


class SQLiteInventory(PluginInventory):
    """
    Plugin inventory backed by a SQLite file.

    Two locations are involved: the directory holding the inventory file and
    the prefix artifact URIs are resolved against. They are usually the same
    repository, but can differ when metadata is read from somewhere else.
    """

    def __init__(
        self,
        inventory_dir: Union[str, Path],
        image_prefix: Optional[str] = None,
    ):
        """
        Initialize the inventory.

        Args:
            inventory_dir: Directory containing plugin_inventory.db
            image_prefix: Prefix to resolve artifact URIs against.
                Defaults to inventory_dir.
        """
        self.inventory_dir = Path(inventory_dir)
        self.image_prefix = str(inventory_dir) if image_prefix is None else image_prefix
        self.db_file = self.inventory_dir / SQLITE_DB_FILE_NAME

    def get_all_plugins(self) -> List[PluginInventoryEntry]:
        return self.get_plugins(PluginInventoryFilter())

    def get_plugins(self, plugin_filter: PluginInventoryFilter) -> List[PluginInventoryEntry]:
        """
        Get the plugins matching a filter.

        The filter is applied to rows before aggregation, so artifacts and
        available versions of each entry only reflect matching rows.

        Raises:
            InventoryStoreError: If the inventory cannot be opened or read
        """
        engine = open_inventory_engine(self.db_file)

        if plugin_filter.version == VERSION_LATEST:
            rows = self._rows_at_recommended_version(engine, plugin_filter)
        else:
            rows = read_rows(engine, *self._where_clauses(plugin_filter))
            if not plugin_filter.include_hidden:
                rows = [r for r in rows if not r.hidden]

        return self._aggregate(rows)

    def create_schema(self) -> None:
        create_inventory_schema(self.db_file)

    def insert_plugin(self, entry: PluginInventoryEntry) -> None:
        """
        Add every artifact of a plugin entry to the inventory.

        Artifact URIs are stored relative to the image prefix.

        Raises:
            InventoryStoreError: If a row with the same key already exists
        """
        engine = open_inventory_engine(self.db_file)

        rows = []
        for version, artifacts in entry.artifacts.items():
            for artifact in artifacts:
                rows.append(PluginBinaryRow(
                    plugin_name=entry.name,
                    target=entry.target,
                    version=version,
                    os=artifact.os,
                    architecture=artifact.arch,
                    recommended_version=entry.recommended_version,
                    description=entry.description,
                    publisher=entry.publisher,
                    vendor=entry.vendor,
                    digest=artifact.digest,
                    uri=artifact.uri or self._relative_uri(artifact.image),
                ))

        count = insert_rows(engine, rows)
        logger.debug(f"Inserted {count} artifact(s) for plugin '{entry.name}'")

    def _where_clauses(self, plugin_filter: PluginInventoryFilter, with_version: bool = True,
                       with_platform: bool = True) -> list:
        c = plugin_binaries.c
        clauses = []

        if plugin_filter.name:
            clauses.append(c.PluginName == plugin_filter.name)
        if plugin_filter.target:
            clauses.append(c.Target.in_(target_spellings(plugin_filter.target)))
        if plugin_filter.publisher:
            clauses.append(c.Publisher == plugin_filter.publisher)
        if plugin_filter.vendor:
            clauses.append(c.Vendor == plugin_filter.vendor)
        if with_version and plugin_filter.version:
            clauses.append(c.Version == plugin_filter.version)
        if with_platform and plugin_filter.os:
            clauses.append(c.OS == plugin_filter.os)
        if with_platform and plugin_filter.arch:
            clauses.append(c.Architecture == plugin_filter.arch)

        return clauses

    def _rows_at_recommended_version(self, engine, plugin_filter: PluginInventoryFilter) -> List[PluginBinaryRow]:
        """Select rows at each plugin's recommended version, then apply the platform filter."""
        candidates = read_rows(engine, *self._where_clauses(plugin_filter, with_version=False, with_platform=False))
        if not plugin_filter.include_hidden:
            candidates = [r for r in candidates if not r.hidden]

        recommended = {
            (entry.name, entry.target): entry.recommended_version
            for entry in self._aggregate(candidates)
        }

        return [
            r for r in candidates
            if r.version == recommended.get(_entry_key(r))
            and (not plugin_filter.os or r.os == plugin_filter.os)
            and (not plugin_filter.arch or r.architecture == plugin_filter.arch)
        ]

    def _aggregate(self, rows: List[PluginBinaryRow]) -> List[PluginInventoryEntry]:
        """Group rows into one entry per plugin/target pair."""
        entries: Dict[Tuple[str, str], PluginInventoryEntry] = {}

        for row in rows:
            if not is_valid_version(row.version):
                logger.warning(
                    f"Skipping plugin '{row.plugin_name}' ({row.os}/{row.architecture}): "
                    f"invalid version '{row.version}'"
                )
                continue

            key = _entry_key(row)
            entry = entries.get(key)
            if entry is None:
                entry = PluginInventoryEntry(name=row.plugin_name, target=key[1])
                entries[key] = entry
            elif (entry.description, entry.publisher, entry.vendor) != (row.description, row.publisher, row.vendor):
                logger.debug(f"Plugin '{row.plugin_name}' has inconsistent metadata across versions; using the last seen")

            entry.description = row.description
            entry.publisher = row.publisher
            entry.vendor = row.vendor
            if row.recommended_version:
                entry.recommended_version = row.recommended_version

            entry.artifacts.setdefault(row.version, []).append(Artifact(
                os=row.os,
                arch=row.architecture,
                digest=row.digest,
                image=self._resolve_image(row.uri),
                uri=row.uri,
            ))

        for entry in entries.values():
            entry.available_versions = sort_versions(entry.artifacts.keys())
            if not entry.recommended_version:
                entry.recommended_version = max_version(entry.available_versions)

        return [entries[key] for key in sorted(entries)]

    def _resolve_image(self, uri: str) -> str:
        if not self.image_prefix:
            return uri
        return f"{self.image_prefix.rstrip('/')}/{uri.lstrip('/')}"

    def _relative_uri(self, image: str) -> str:
        prefix = self.image_prefix.rstrip("/") + "/" if self.image_prefix else ""
        if prefix and image.startswith(prefix):
            return image[len(prefix):]
        return image


def _entry_key(row: PluginBinaryRow) -> Tuple[str, str]:
    return (row.plugin_name, normalize_target(row.target))
