"""Pytest configuration and shared fixtures."""

import tarfile
import tempfile
from pathlib import Path
from typing import Callable, Generator, List, Sequence

import pytest
import sqlalchemy as sa
import yaml

CREATE_TABLE_STMT = """
CREATE TABLE IF NOT EXISTS "PluginBinaries" (
    "PluginName"         TEXT NOT NULL,
    "Target"             TEXT NOT NULL,
    "RecommendedVersion" TEXT NOT NULL,
    "Version"            TEXT NOT NULL,
    "Hidden"             INTEGER NOT NULL,
    "Description"        TEXT NOT NULL,
    "Publisher"          TEXT NOT NULL,
    "Vendor"             TEXT NOT NULL,
    "OS"                 TEXT NOT NULL,
    "Architecture"       TEXT NOT NULL,
    "Digest"             TEXT NOT NULL,
    "URI"                TEXT NOT NULL,
    PRIMARY KEY("PluginName", "Target", "Version", "OS", "Architecture")
)
"""

INSERT_PLUGINS_STMTS = [
    """INSERT INTO PluginBinaries VALUES(
        'management-cluster', 'k8s', 'v0.28.0', 'v0.28.0', 'false',
        'Kubernetes management cluster operations', 'tkg', 'vmware', 'linux', 'amd64',
        '0000000000', 'vmware/tkg/linux/amd64/k8s/management-cluster:v0.28.0')""",
    """INSERT INTO PluginBinaries VALUES(
        'management-cluster', 'k8s', 'v0.28.0', 'v0.28.0', 'false',
        'Kubernetes management cluster operations', 'tkg', 'vmware', 'darwin', 'amd64',
        '1111111111', 'vmware/tkg/darwin/amd64/k8s/management-cluster:v0.28.0')""",
    """INSERT INTO PluginBinaries VALUES(
        'management-cluster', 'k8s', 'v0.28.0', 'v0.26.0', 'false',
        'Kubernetes management cluster operations', 'tkg', 'vmware', 'windows', 'amd64',
        '2222222222', 'vmware/tkg/windows/amd64/k8s/management-cluster:v0.26.0')""",
    """INSERT INTO PluginBinaries VALUES(
        'isolated-cluster', 'global', 'v1.2.3', 'v1.2.3', 'false',
        'Isolated cluster plugin', 'otherpublisher', 'othervendor', 'linux', 'amd64',
        '3333333333', 'othervendor/otherpublisher/linux/amd64/global/isolated-cluster:v1.2.3')""",
]

INSERT_TMC_NO_RECOMMENDED_VERSION_STMTS = [
    """INSERT INTO PluginBinaries VALUES(
        'management-cluster', 'tmc', '', 'v0.0.1', 'false',
        'Mission-control management cluster operations', 'tmc', 'vmware', 'linux', 'amd64',
        '0000000000', 'vmware/tmc/linux/amd64/tmc/management-cluster:v0.0.1')""",
    """INSERT INTO PluginBinaries VALUES(
        'management-cluster', 'tmc', '', 'v0.0.2', 'false',
        'Mission-control management cluster operations', 'tmc', 'vmware', 'linux', 'amd64',
        '1111111111', 'vmware/tmc/linux/amd64/tmc/management-cluster:v0.0.2')""",
]


def run_sql(db_file: Path, statements: Sequence[str]) -> None:
    """Execute raw SQL statements against a SQLite file."""
    engine = sa.create_engine(f"sqlite:///{db_file}")
    try:
        with engine.begin() as conn:
            for stmt in statements:
                conn.exec_driver_sql(stmt)
    finally:
        engine.dispose()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def make_inventory_db(temp_dir: Path) -> Callable[..., Path]:
    """Factory creating an inventory DB file with the given inserts."""

    def _make(*inserts: str, name: str = "plugin_inventory.db", subdir: str = "") -> Path:
        directory = temp_dir / subdir if subdir else temp_dir
        directory.mkdir(parents=True, exist_ok=True)
        db_file = directory / name
        run_sql(db_file, [CREATE_TABLE_STMT, *inserts])
        return db_file

    return _make


@pytest.fixture
def plugins_inventory_dir(make_inventory_db) -> Path:
    """Inventory holding management-cluster (k8s) and isolated-cluster (global)."""
    return make_inventory_db(*INSERT_PLUGINS_STMTS).parent


@pytest.fixture
def tmc_inventory_dir(make_inventory_db) -> Path:
    """Inventory holding one plugin without a stored recommended version."""
    return make_inventory_db(*INSERT_TMC_NO_RECOMMENDED_VERSION_STMTS).parent


@pytest.fixture
def make_bundle(temp_dir: Path) -> Callable[..., Path]:
    """
    Factory creating a plugin bundle archive.

    The bundle holds one fake image tarball per image path, a metadata DB
    with the given inserts, and the migration manifest.
    """

    def _make(image_paths: List[str], metadata_inserts: Sequence[str] = (), manifest: dict = None) -> Path:
        bundle_root = temp_dir / "bundle-src"
        bundle_dir = bundle_root / "plugin_bundle"
        bundle_dir.mkdir(parents=True)

        images = []
        for i, image_path in enumerate(image_paths):
            tar_name = f"image-{i}.tar.gz"
            (bundle_dir / tar_name).write_bytes(b"image-data")
            images.append({"sourceTarFilePath": tar_name, "relativeImagePath": image_path})

        run_sql(bundle_dir / "plugin_inventory_metadata.db", [CREATE_TABLE_STMT, *metadata_inserts])

        if manifest is None:
            manifest = {
                "relativeInventoryImagePathWithTag": "/plugin-inventory:latest",
                "inventoryMetadataImage": {
                    "sourceFilePath": "plugin_inventory_metadata.db",
                    "relativeImagePathWithTag": "/plugin-inventory-metadata:latest",
                },
                "imagesToCopy": images,
            }
        (bundle_dir / "plugin_migration_manifest.yaml").write_text(yaml.safe_dump(manifest))

        archive = temp_dir / "plugin_bundle.tar.gz"
        with tarfile.open(archive, "w:gz") as tar:
            tar.add(bundle_dir, arcname="plugin_bundle")
        return archive

    return _make
