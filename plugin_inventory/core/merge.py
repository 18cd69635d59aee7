"""Merging of plugin inventory metadata stores."""

import logging
from pathlib import Path
from typing import Dict, List, Tuple, Union

import sqlalchemy as sa
from filelock import FileLock
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from .inventory import normalize_target
from .schema import (
    PRIMARY_KEY_COLUMNS,
    InventoryStoreError,
    PluginBinaryRow,
    open_inventory_engine,
    plugin_binaries,
    read_rows,
)

logger = logging.getLogger(__name__)

SQLITE_INVENTORY_METADATA_DB_FILE_NAME = "plugin_inventory_metadata.db"


class SQLiteInventoryMetadata:
    """
    Inventory metadata store that can absorb another store.

    A destination repository may already hold metadata from an earlier,
    independent publish. Merging keeps those rows so a new publish never
    removes plugins or versions published before.
    """

    def __init__(self, db_file: Union[str, Path]):
        """
        Initialize the metadata store.

        Args:
            db_file: Path to the local SQLite store that receives merged rows
        """
        self.db_file = Path(db_file)
        self.lock_file = self.db_file.with_name(self.db_file.name + ".lock")

    def merge_inventory_metadata_database(self, incoming_db_file: Union[str, Path]) -> bool:
        """
        Merge the rows of another store into this one.

        Rows are matched by primary key, with aliased target spellings
        (k8s/kubernetes, tmc/mission-control, global/empty) denoting the
        same target. Rows only present on one side are kept. When both sides
        hold the same build, the incoming row and its target spelling win
        since it is what has already been published. Merging the same store
        twice gives the same result as merging it once.

        Args:
            incoming_db_file: Path to the store to merge in

        Returns:
            True if rows were merged, False if the incoming store doesn't exist

        Raises:
            InventoryStoreError: If either store is unreadable or the write fails
        """
        incoming_db_file = Path(incoming_db_file)
        if not incoming_db_file.exists():
            logger.info(f"No inventory metadata at {incoming_db_file}, nothing to merge")
            return False

        local_engine = open_inventory_engine(self.db_file)
        incoming_rows = read_rows(open_inventory_engine(incoming_db_file))

        if not incoming_rows:
            logger.info(f"Inventory metadata at {incoming_db_file} is empty, nothing to merge")
            return True

        stmt = sqlite_insert(plugin_binaries)
        stmt = stmt.on_conflict_do_update(
            index_elements=PRIMARY_KEY_COLUMNS,
            set_={
                column.name: stmt.excluded[column.name]
                for column in plugin_binaries.columns
                if column.name not in PRIMARY_KEY_COLUMNS
            },
        )
        delete_stmt = sa.delete(plugin_binaries).where(
            *[plugin_binaries.c[name] == sa.bindparam(f"key_{name}") for name in PRIMARY_KEY_COLUMNS]
        )

        # One row per build across target aliases; the last incoming spelling wins
        incoming_by_build = {_build_key(row): row for row in incoming_rows}
        incoming_rows = list(incoming_by_build.values())

        with FileLock(str(self.lock_file)):
            existing: Dict[Tuple[str, ...], List[PluginBinaryRow]] = {}
            for row in read_rows(local_engine):
                existing.setdefault(_build_key(row), []).append(row)

            added = 0
            replaced = 0
            shadowed = []
            for row in incoming_rows:
                local_rows = existing.get(_build_key(row), [])
                if not local_rows:
                    added += 1
                elif any(not local.same_content(row) for local in local_rows):
                    replaced += 1
                # Rows stored under another spelling of the same target
                shadowed.extend(local for local in local_rows if local.key != row.key)

            try:
                with local_engine.begin() as conn:
                    if shadowed:
                        conn.execute(delete_stmt, [
                            {f"key_{name}": value for name, value in zip(PRIMARY_KEY_COLUMNS, local.key)}
                            for local in shadowed
                        ])
                    conn.execute(stmt, [row.to_db() for row in incoming_rows])
            except SQLAlchemyError as e:
                raise InventoryStoreError(
                    f"unable to merge inventory metadata from '{incoming_db_file}' into '{self.db_file}': {e}"
                ) from e

        logger.info(
            f"Merged {len(incoming_rows)} row(s) from {incoming_db_file}: "
            f"{added} added, {replaced} replaced by published data"
        )
        return True


def _build_key(row: PluginBinaryRow) -> Tuple[str, ...]:
    return (row.plugin_name, normalize_target(row.target), row.version, row.os, row.architecture)
