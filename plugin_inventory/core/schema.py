"""SQLite schema and row model for the plugin inventory store."""

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Tuple, Union

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool
from sqlalchemy.types import TypeDecorator

logger = logging.getLogger(__name__)

PLUGIN_BINARIES_TABLE = "PluginBinaries"


class InventoryStoreError(Exception):
    """Raised when an inventory store is missing, uninitialized or unreadable."""

    pass


class HiddenFlag(TypeDecorator):
    """
    Boolean column stored the way published inventories store it.

    Older inventories hold the text 'true'/'false' in the INTEGER column,
    newer ones hold 0/1. Both read back as bool.
    """

    impl = sa.Integer
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return None
        return "true" if parse_bool(value) else "false"

    def process_result_value(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return False
        return parse_bool(value)


def parse_bool(value: Any) -> bool:
    """Interpret a stored flag value ('true', 'false', 0, 1, ...) as bool."""
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


metadata = sa.MetaData()

plugin_binaries = sa.Table(
    PLUGIN_BINARIES_TABLE,
    metadata,
    sa.Column("PluginName", sa.Text, nullable=False),
    sa.Column("Target", sa.Text, nullable=False),
    sa.Column("RecommendedVersion", sa.Text, nullable=False),
    sa.Column("Version", sa.Text, nullable=False),
    sa.Column("Hidden", HiddenFlag, nullable=False),
    sa.Column("Description", sa.Text, nullable=False),
    sa.Column("Publisher", sa.Text, nullable=False),
    sa.Column("Vendor", sa.Text, nullable=False),
    sa.Column("OS", sa.Text, nullable=False),
    sa.Column("Architecture", sa.Text, nullable=False),
    sa.Column("Digest", sa.Text, nullable=False),
    sa.Column("URI", sa.Text, nullable=False),
    sa.PrimaryKeyConstraint("PluginName", "Target", "Version", "OS", "Architecture"),
)

PRIMARY_KEY_COLUMNS = [c.name for c in plugin_binaries.primary_key.columns]


@dataclass
class PluginBinaryRow:
    """One platform build of one plugin version."""

    plugin_name: str
    target: str
    version: str
    os: str
    architecture: str
    recommended_version: str = ""
    hidden: bool = False
    description: str = ""
    publisher: str = ""
    vendor: str = ""
    digest: str = ""
    uri: str = ""

    @property
    def key(self) -> Tuple[str, str, str, str, str]:
        """Primary key of this row."""
        return (self.plugin_name, self.target, self.version, self.os, self.architecture)

    @classmethod
    def from_db(cls, record: Mapping[str, Any]) -> "PluginBinaryRow":
        """Build a row from a PluginBinaries result mapping."""
        return cls(
            plugin_name=record["PluginName"],
            target=record["Target"],
            version=record["Version"],
            os=record["OS"],
            architecture=record["Architecture"],
            recommended_version=record["RecommendedVersion"] or "",
            hidden=bool(record["Hidden"]),
            description=record["Description"],
            publisher=record["Publisher"],
            vendor=record["Vendor"],
            digest=record["Digest"],
            uri=record["URI"],
        )

    def to_db(self) -> dict:
        """Get the PluginBinaries column mapping for this row."""
        return {
            "PluginName": self.plugin_name,
            "Target": self.target,
            "RecommendedVersion": self.recommended_version,
            "Version": self.version,
            "Hidden": self.hidden,
            "Description": self.description,
            "Publisher": self.publisher,
            "Vendor": self.vendor,
            "OS": self.os,
            "Architecture": self.architecture,
            "Digest": self.digest,
            "URI": self.uri,
        }

    def same_content(self, other: "PluginBinaryRow") -> bool:
        """Check if two rows carry identical data."""
        return all(getattr(self, f.name) == getattr(other, f.name) for f in fields(self))


def _make_engine(db_file: Path) -> sa.Engine:
    # NullPool so no connection outlives the call that used it; stores
    # frequently live in temporary directories that get removed.
    return sa.create_engine(f"sqlite:///{db_file}", poolclass=NullPool)


def open_inventory_engine(db_file: Union[str, Path]) -> sa.Engine:
    """
    Open an existing inventory store.

    Args:
        db_file: Path to the SQLite file

    Returns:
        SQLAlchemy engine bound to the store

    Raises:
        InventoryStoreError: If the file is absent, unreadable, or has no
            PluginBinaries table
    """
    db_file = Path(db_file)

    # sqlite would silently create a missing file
    if not db_file.is_file():
        raise InventoryStoreError(f"unable to setup DB at '{db_file}': file does not exist")

    engine = _make_engine(db_file)
    try:
        has_table = sa.inspect(engine).has_table(PLUGIN_BINARIES_TABLE)
    except SQLAlchemyError as e:
        raise InventoryStoreError(f"unable to setup DB at '{db_file}': {e}") from e

    if not has_table:
        raise InventoryStoreError(
            f"unable to setup DB at '{db_file}': table '{PLUGIN_BINARIES_TABLE}' does not exist"
        )

    return engine


def create_inventory_schema(db_file: Union[str, Path]) -> sa.Engine:
    """
    Create the inventory store file and its table if they don't exist.

    Args:
        db_file: Path to the SQLite file

    Returns:
        SQLAlchemy engine bound to the store
    """
    db_file = Path(db_file)
    db_file.parent.mkdir(parents=True, exist_ok=True)

    engine = _make_engine(db_file)
    try:
        metadata.create_all(engine)
    except SQLAlchemyError as e:
        raise InventoryStoreError(f"unable to create DB schema at '{db_file}': {e}") from e

    logger.debug(f"Initialized inventory schema at {db_file}")
    return engine


def read_rows(engine: sa.Engine, *clauses: Any) -> List[PluginBinaryRow]:
    """
    Read PluginBinaries rows, in primary key order.

    Args:
        engine: Engine returned by open_inventory_engine()
        clauses: Optional SQLAlchemy where clauses

    Returns:
        List of matching rows
    """
    stmt = sa.select(plugin_binaries)
    if clauses:
        stmt = stmt.where(*clauses)
    stmt = stmt.order_by(*[plugin_binaries.c[name] for name in PRIMARY_KEY_COLUMNS])

    try:
        with engine.connect() as conn:
            return [PluginBinaryRow.from_db(record) for record in conn.execute(stmt).mappings()]
    except SQLAlchemyError as e:
        raise InventoryStoreError(f"unable to read plugin inventory: {e}") from e


def insert_rows(engine: sa.Engine, rows: Iterable[PluginBinaryRow]) -> int:
    """
    Insert rows into PluginBinaries.

    Returns:
        Number of rows inserted

    Raises:
        InventoryStoreError: If a row already exists or the write fails
    """
    values = [row.to_db() for row in rows]
    if not values:
        return 0

    try:
        with engine.begin() as conn:
            conn.execute(sa.insert(plugin_binaries), values)
    except SQLAlchemyError as e:
        raise InventoryStoreError(f"unable to insert plugin rows: {e}") from e

    return len(values)
