"""Tests for plugin migration manifest parsing."""

from pathlib import Path

import pytest


@pytest.fixture
def sample_manifest_yaml(temp_dir: Path) -> Path:
    """Create a sample plugin migration manifest."""
    manifest_file = temp_dir / "plugin_migration_manifest.yaml"
    manifest_file.write_text("""
relativeInventoryImagePathWithTag: /plugin-inventory:latest
inventoryMetadataImage:
  sourceFilePath: plugin_inventory_metadata.db
  relativeImagePathWithTag: /plugin-inventory-metadata:latest
imagesToCopy:
  - sourceTarFilePath: plugin-inventory-image.tar.gz
    relativeImagePath: /plugin-inventory
  - sourceTarFilePath: vmware_tkg_linux_amd64_kubernetes_cluster.tar.gz
    relativeImagePath: /vmware/tkg/linux/amd64/kubernetes/cluster
""")
    return manifest_file


class TestPluginMigrationManifest:
    """Tests for PluginMigrationManifest."""

    def test_load_from_yaml_file(self, sample_manifest_yaml: Path):
        """Test loading a manifest."""
        from plugin_inventory.manifest import PluginMigrationManifest

        manifest = PluginMigrationManifest.from_file(sample_manifest_yaml)

        assert manifest.relative_inventory_image_path_with_tag == "/plugin-inventory:latest"
        assert manifest.inventory_metadata_image.source_file_path == "plugin_inventory_metadata.db"
        assert manifest.inventory_metadata_image.relative_image_path_with_tag == "/plugin-inventory-metadata:latest"
        assert [i.relative_image_path for i in manifest.images_to_copy] == [
            "/plugin-inventory",
            "/vmware/tkg/linux/amd64/kubernetes/cluster",
        ]

    def test_pascal_case_keys(self, temp_dir: Path):
        """Test that PascalCase field names are accepted."""
        from plugin_inventory.manifest import PluginMigrationManifest

        manifest_file = temp_dir / "manifest.yaml"
        manifest_file.write_text("""
RelativeInventoryImagePathWithTag: /plugin-inventory:latest
InventoryMetadataImage:
  SourceFilePath: plugin_inventory_metadata.db
  RelativeImagePathWithTag: /plugin-inventory-metadata:latest
ImagesToCopy:
  - SourceTarFilePath: a.tar.gz
    RelativeImagePath: /a
""")

        manifest = PluginMigrationManifest.from_file(manifest_file)

        assert manifest.images_to_copy[0].source_tar_file_path == "a.tar.gz"
        assert manifest.inventory_metadata_image.source_file_path == "plugin_inventory_metadata.db"

    def test_round_trip_through_dict(self, sample_manifest_yaml: Path, temp_dir: Path):
        """Test that to_dict() output loads back to the same manifest."""
        import yaml

        from plugin_inventory.manifest import PluginMigrationManifest

        manifest = PluginMigrationManifest.from_file(sample_manifest_yaml)
        copy_file = temp_dir / "copy.yaml"
        copy_file.write_text(yaml.safe_dump(manifest.to_dict()))

        assert PluginMigrationManifest.from_file(copy_file) == manifest

    def test_missing_file(self, temp_dir: Path):
        """Test error on a missing manifest."""
        from plugin_inventory.manifest import ManifestError, PluginMigrationManifest

        with pytest.raises(ManifestError, match="not found"):
            PluginMigrationManifest.from_file(temp_dir / "missing.yaml")

    def test_invalid_yaml(self, temp_dir: Path):
        """Test error on malformed YAML."""
        from plugin_inventory.manifest import ManifestError, PluginMigrationManifest

        manifest_file = temp_dir / "manifest.yaml"
        manifest_file.write_text("imagesToCopy: [unclosed")

        with pytest.raises(ManifestError, match="Invalid YAML"):
            PluginMigrationManifest.from_file(manifest_file)

    def test_missing_metadata_image(self, temp_dir: Path):
        """Test that the inventory metadata image is required."""
        from plugin_inventory.manifest import ManifestError, PluginMigrationManifest

        manifest_file = temp_dir / "manifest.yaml"
        manifest_file.write_text("relativeInventoryImagePathWithTag: /plugin-inventory:latest\nimagesToCopy: []\n")

        with pytest.raises(ManifestError, match="inventoryMetadataImage"):
            PluginMigrationManifest.from_file(manifest_file)

    def test_image_missing_relative_path(self, temp_dir: Path):
        """Test that image entries need a destination path."""
        from plugin_inventory.manifest import ManifestError, PluginMigrationManifest

        manifest_file = temp_dir / "manifest.yaml"
        manifest_file.write_text("""
relativeInventoryImagePathWithTag: /plugin-inventory:latest
inventoryMetadataImage:
  sourceFilePath: plugin_inventory_metadata.db
  relativeImagePathWithTag: /plugin-inventory-metadata:latest
imagesToCopy:
  - sourceTarFilePath: a.tar.gz
""")

        with pytest.raises(ManifestError, match="relativeImagePath"):
            PluginMigrationManifest.from_file(manifest_file)

    def test_images_to_copy_not_a_list(self, temp_dir: Path):
        """Test that a scalar imagesToCopy is rejected with the manifest path."""
        from plugin_inventory.manifest import ManifestError, PluginMigrationManifest

        manifest_file = temp_dir / "manifest.yaml"
        manifest_file.write_text("""
relativeInventoryImagePathWithTag: /plugin-inventory:latest
inventoryMetadataImage:
  sourceFilePath: plugin_inventory_metadata.db
  relativeImagePathWithTag: /plugin-inventory-metadata:latest
imagesToCopy: 5
""")

        with pytest.raises(ManifestError, match="imagesToCopy' must be a list") as exc_info:
            PluginMigrationManifest.from_file(manifest_file)

        assert str(manifest_file) in str(exc_info.value)

    @pytest.mark.parametrize("field_yaml,field_name", [
        ("relativeInventoryImagePathWithTag: 7\n"
         "inventoryMetadataImage:\n"
         "  sourceFilePath: plugin_inventory_metadata.db\n"
         "  relativeImagePathWithTag: /plugin-inventory-metadata:latest\n",
         "relativeInventoryImagePathWithTag"),
        ("relativeInventoryImagePathWithTag: /plugin-inventory:latest\n"
         "inventoryMetadataImage:\n"
         "  sourceFilePath: [a, b]\n"
         "  relativeImagePathWithTag: /plugin-inventory-metadata:latest\n",
         "sourceFilePath"),
        ("relativeInventoryImagePathWithTag: /plugin-inventory:latest\n"
         "inventoryMetadataImage:\n"
         "  sourceFilePath: plugin_inventory_metadata.db\n"
         "  relativeImagePathWithTag: {tag: latest}\n",
         "relativeImagePathWithTag"),
        ("relativeInventoryImagePathWithTag: /plugin-inventory:latest\n"
         "inventoryMetadataImage:\n"
         "  sourceFilePath: plugin_inventory_metadata.db\n"
         "  relativeImagePathWithTag: /plugin-inventory-metadata:latest\n"
         "imagesToCopy:\n"
         "  - sourceTarFilePath: 12\n"
         "    relativeImagePath: /a\n",
         "sourceTarFilePath"),
        ("relativeInventoryImagePathWithTag: /plugin-inventory:latest\n"
         "inventoryMetadataImage:\n"
         "  sourceFilePath: plugin_inventory_metadata.db\n"
         "  relativeImagePathWithTag: /plugin-inventory-metadata:latest\n"
         "imagesToCopy:\n"
         "  - sourceTarFilePath: a.tar.gz\n"
         "    relativeImagePath: true\n",
         "relativeImagePath"),
    ])
    def test_non_string_path_field(self, temp_dir: Path, field_yaml: str, field_name: str):
        """Test that path fields of the wrong type are named in the error."""
        from plugin_inventory.manifest import ManifestError, PluginMigrationManifest

        manifest_file = temp_dir / "manifest.yaml"
        manifest_file.write_text(field_yaml)

        with pytest.raises(ManifestError, match=f"'{field_name}' must be a string") as exc_info:
            PluginMigrationManifest.from_file(manifest_file)

        assert str(manifest_file) in str(exc_info.value)
