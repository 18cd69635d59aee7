"""Plugin migration manifest shipped inside a plugin bundle."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

# Layout of an extracted plugin bundle
PLUGIN_BUNDLE_DIR_NAME = "plugin_bundle"
PLUGIN_MIGRATION_MANIFEST_FILE = "plugin_migration_manifest.yaml"


class ManifestError(Exception):
    """Raised when a migration manifest is missing or invalid."""

    pass


def _get(data: Dict[str, Any], key: str, default: Any = None) -> Any:
    """Look up a camelCase key, also accepting its PascalCase spelling."""
    if key in data:
        return data[key]
    return data.get(key[:1].upper() + key[1:], default)


def _get_str(data: Dict[str, Any], key: str) -> str:
    """Look up a path field, which must be a string when present."""
    value = _get(data, key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ManifestError(f"field '{key}' must be a string, got {type(value).__name__}: {value!r}")
    return value


@dataclass
class ImageCopy:
    """An image archived in the bundle and where it gets published."""

    source_tar_file_path: str
    relative_image_path: str

    def validate(self) -> None:
        """Validate the image entry."""
        if not self.source_tar_file_path:
            raise ManifestError("Image entry missing 'sourceTarFilePath' field")
        if not self.relative_image_path:
            raise ManifestError(f"Image '{self.source_tar_file_path}' missing 'relativeImagePath' field")


@dataclass
class InventoryMetadataImage:
    """The inventory metadata store shipped in the bundle."""

    source_file_path: str
    relative_image_path_with_tag: str

    def validate(self) -> None:
        """Validate the metadata image entry."""
        if not self.source_file_path:
            raise ManifestError("Inventory metadata image missing 'sourceFilePath' field")
        if not self.relative_image_path_with_tag:
            raise ManifestError("Inventory metadata image missing 'relativeImagePathWithTag' field")


@dataclass
class PluginMigrationManifest:
    """Describes the images and metadata a plugin bundle publishes."""

    relative_inventory_image_path_with_tag: str = ""
    inventory_metadata_image: Optional[InventoryMetadataImage] = None
    images_to_copy: List[ImageCopy] = field(default_factory=list)

    @classmethod
    def from_file(cls, path: Path) -> "PluginMigrationManifest":
        """Load a manifest from a YAML file."""
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ManifestError(f"Invalid YAML in {path}: {e}")
        except FileNotFoundError:
            raise ManifestError(f"Manifest file not found: {path}")

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ManifestError(f"Invalid manifest in {path}: expected a mapping")

        try:
            manifest = cls.from_dict(data)
            manifest.validate()
        except ManifestError as e:
            raise ManifestError(f"Invalid manifest in {path}: {e}")

        return manifest

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PluginMigrationManifest":
        """Build a manifest from its parsed YAML mapping, checking field types."""
        images_data = _get(data, "imagesToCopy")
        if images_data is None:
            images_data = []
        if not isinstance(images_data, list):
            raise ManifestError(f"field 'imagesToCopy' must be a list, got {type(images_data).__name__}")

        images = []
        for image_data in images_data:
            if not isinstance(image_data, dict):
                raise ManifestError(f"Invalid image entry: {image_data}")
            images.append(ImageCopy(
                source_tar_file_path=_get_str(image_data, "sourceTarFilePath"),
                relative_image_path=_get_str(image_data, "relativeImagePath"),
            ))

        metadata_data = _get(data, "inventoryMetadataImage")
        metadata_image = None
        if metadata_data is not None:
            if not isinstance(metadata_data, dict):
                raise ManifestError(f"Invalid inventory metadata image entry: {metadata_data}")
            metadata_image = InventoryMetadataImage(
                source_file_path=_get_str(metadata_data, "sourceFilePath"),
                relative_image_path_with_tag=_get_str(metadata_data, "relativeImagePathWithTag"),
            )

        return cls(
            relative_inventory_image_path_with_tag=_get_str(data, "relativeInventoryImagePathWithTag"),
            inventory_metadata_image=metadata_image,
            images_to_copy=images,
        )

    def validate(self) -> None:
        """Validate the manifest."""
        if self.inventory_metadata_image is None:
            raise ManifestError("Manifest missing 'inventoryMetadataImage' field")
        self.inventory_metadata_image.validate()

        if not self.relative_inventory_image_path_with_tag:
            raise ManifestError("Manifest missing 'relativeInventoryImagePathWithTag' field")

        for image in self.images_to_copy:
            image.validate()

    def to_dict(self) -> Dict[str, Any]:
        """Get the YAML representation of the manifest."""
        data: Dict[str, Any] = {
            "relativeInventoryImagePathWithTag": self.relative_inventory_image_path_with_tag,
            "imagesToCopy": [
                {
                    "sourceTarFilePath": image.source_tar_file_path,
                    "relativeImagePath": image.relative_image_path,
                }
                for image in self.images_to_copy
            ],
        }
        if self.inventory_metadata_image is not None:
            data["inventoryMetadataImage"] = {
                "sourceFilePath": self.inventory_metadata_image.source_file_path,
                "relativeImagePathWithTag": self.inventory_metadata_image.relative_image_path_with_tag,
            }
        return data
