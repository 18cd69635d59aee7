"""Plugin bundle uploader - publishes a plugin bundle to an air-gapped repository."""

import logging
import tempfile
import time
from pathlib import Path
from typing import Callable, Optional, Union

from .config import DEFAULT_UPLOAD_DELAY, UploadSettings
from .core.merge import SQLiteInventoryMetadata
from .core.schema import InventoryStoreError
from .manifest import (
    PLUGIN_BUNDLE_DIR_NAME,
    PLUGIN_MIGRATION_MANIFEST_FILE,
    ManifestError,
    PluginMigrationManifest,
)
from .sources.archive import ArchiveError, extract_tar
from .sources.images import ImageNotFoundError, ImageProcessor, ImageTransferError, ImgpkgImageProcessor

logger = logging.getLogger(__name__)

# Scratch directory for previously published inventory metadata
INVENTORY_METADATA_DOWNLOAD_DIR = "inventory-metadata"


class BundleUploadError(Exception):
    """Raised when a plugin bundle cannot be published."""

    pass


def join_url(base: str, relative: str) -> str:
    """Join a repository address and a repository-relative image path."""
    if not base:
        raise BundleUploadError("destination repository must not be empty")
    if not relative:
        return base
    return f"{base.rstrip('/')}/{relative.lstrip('/')}"


class PluginBundleUploader:
    """
    Publishes a plugin bundle to a destination repository.

    Steps:
    - Extract the bundle into a temporary directory
    - Upload every plugin image, one at a time
    - Merge the bundled inventory metadata with what the destination
      already has, then publish the merged metadata

    Images are uploaded sequentially with a pause in between to stay under
    registry rate limits. A failed upload stops the run; images already
    uploaded stay published and a re-run picks up from there.
    """

    def __init__(
        self,
        tar: Union[str, Path],
        destination_repo: str,
        image_processor: ImageProcessor,
        upload_delay: float = DEFAULT_UPLOAD_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the uploader.

        Args:
            tar: Path to the plugin bundle archive
            destination_repo: Repository the bundle is published to
            image_processor: Used to push and pull images
            upload_delay: Seconds to wait between successive image uploads
            sleep: Function used to wait
        """
        self.tar = Path(tar)
        self.destination_repo = destination_repo
        self.image_processor = image_processor
        self.upload_delay = upload_delay
        self.sleep = sleep

    @classmethod
    def from_settings(
        cls,
        tar: Union[str, Path],
        settings: UploadSettings,
        destination_repo: Optional[str] = None,
    ) -> "PluginBundleUploader":
        """Create an uploader using imgpkg as configured in settings."""
        destination = destination_repo or settings.destination_repo
        if not destination:
            raise BundleUploadError("no destination repository given")

        return cls(
            tar=tar,
            destination_repo=destination,
            image_processor=ImgpkgImageProcessor(
                imgpkg_path=settings.imgpkg_path,
                timeout=settings.imgpkg_timeout,
            ),
            upload_delay=settings.upload_delay,
        )

    def upload_plugin_bundle(self) -> str:
        """
        Publish the plugin bundle.

        Returns:
            Address of the published plugin inventory image

        Raises:
            BundleUploadError: On the first step that fails
        """
        with tempfile.TemporaryDirectory() as tmpdir:
            temp_dir = Path(tmpdir)

            logger.info(f"Extracting '{self.tar}' for processing...")
            try:
                extract_tar(self.tar, temp_dir)
            except ArchiveError as e:
                raise BundleUploadError(f"unable to extract provided file: {e}") from e

            bundle_dir = temp_dir / PLUGIN_BUNDLE_DIR_NAME
            try:
                manifest = PluginMigrationManifest.from_file(bundle_dir / PLUGIN_MIGRATION_MANIFEST_FILE)
            except ManifestError as e:
                raise BundleUploadError(f"error while reading plugin migration manifest: {e}") from e

            self._check_bundle_files(bundle_dir, manifest)
            self._upload_images(bundle_dir, manifest)
            return self._publish_inventory_metadata(bundle_dir, manifest, temp_dir)

    def _check_bundle_files(self, bundle_dir: Path, manifest: PluginMigrationManifest) -> None:
        """Make sure every file the manifest refers to was extracted."""
        paths = [image.source_tar_file_path for image in manifest.images_to_copy]
        paths.append(manifest.inventory_metadata_image.source_file_path)

        for relative_path in paths:
            if not (bundle_dir / relative_path).is_file():
                raise BundleUploadError(f"file '{relative_path}' listed in the manifest is missing from '{self.tar}'")

    def _upload_images(self, bundle_dir: Path, manifest: PluginMigrationManifest) -> None:
        total = len(manifest.images_to_copy)
        logger.info(f"Uploading {total} plugin image(s) to '{self.destination_repo}'")

        for index, image in enumerate(manifest.images_to_copy, start=1):
            if index > 1 and self.upload_delay > 0:
                self.sleep(self.upload_delay)

            self._upload_image(
                image_tar=bundle_dir / image.source_tar_file_path,
                repo_image_path=join_url(self.destination_repo, image.relative_image_path),
                index=index,
                total=total,
            )

    def _upload_image(self, image_tar: Path, repo_image_path: str, index: int, total: int) -> None:
        logger.info(f"[{index}/{total}] uploading image '{repo_image_path}'")

        try:
            self.image_processor.copy_image_from_tar(image_tar, repo_image_path)
        except ImageTransferError as e:
            logger.error(f"[{index}/{total}] error while uploading image '{repo_image_path}'")
            raise BundleUploadError(f"[{index}/{total}] error while uploading image '{repo_image_path}': {e}") from e

        logger.info(f"[{index}/{total}] uploaded image '{repo_image_path}'")

    def _publish_inventory_metadata(self, bundle_dir: Path, manifest: PluginMigrationManifest, temp_dir: Path) -> str:
        metadata_db_file = bundle_dir / manifest.inventory_metadata_image.source_file_path
        metadata_image = join_url(self.destination_repo, manifest.inventory_metadata_image.relative_image_path_with_tag)

        logger.info("Publishing plugin inventory metadata image...")
        self._merge_inventory_metadata(metadata_image, metadata_db_file, temp_dir)

        logger.info(f"Uploading image '{metadata_image}'")
        try:
            self.image_processor.push_image(metadata_image, [metadata_db_file])
        except ImageTransferError as e:
            raise BundleUploadError(f"error while uploading image '{metadata_image}': {e}") from e

        inventory_image = join_url(self.destination_repo, manifest.relative_inventory_image_path_with_tag)
        logger.info(f"Successfully published all plugin images to '{inventory_image}'")
        return inventory_image

    def _merge_inventory_metadata(self, metadata_image: str, metadata_db_file: Path, temp_dir: Path) -> bool:
        """
        Merge inventory metadata already published at the destination into the bundled one.

        Returns:
            True if published metadata was found and merged
        """
        download_dir = temp_dir / INVENTORY_METADATA_DOWNLOAD_DIR
        download_dir.mkdir(parents=True, exist_ok=True)

        try:
            self.image_processor.download_image_and_save_files_to_dir(metadata_image, download_dir)
        except ImageNotFoundError:
            logger.info(
                f"Plugin inventory metadata image '{metadata_image}' is not present. "
                f"Skipping merging of the plugin inventory metadata"
            )
            return False
        except ImageTransferError as e:
            raise BundleUploadError(f"error while downloading image '{metadata_image}': {e}") from e

        logger.info(
            f"Plugin inventory metadata image '{metadata_image}' is present. "
            f"Merging the plugin inventory metadata"
        )
        try:
            return SQLiteInventoryMetadata(metadata_db_file).merge_inventory_metadata_database(
                download_dir / metadata_db_file.name
            )
        except InventoryStoreError as e:
            raise BundleUploadError(
                f"error while merging the plugin inventory metadata database before uploading metadata image: {e}"
            ) from e
