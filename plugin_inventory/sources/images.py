"""Image transfer to and from OCI registries."""

import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)


class ImageTransferError(Exception):
    """Raised when an image cannot be pushed or pulled."""

    pass


class ImageNotFoundError(ImageTransferError):
    """Raised when the image being pulled does not exist."""

    pass


class ImageProcessor(ABC):
    """Operations on registry images used by the bundle uploader."""

    @abstractmethod
    def copy_image_from_tar(self, image_tar: Union[str, Path], destination: str) -> None:
        """Publish a locally archived image to a destination address."""

    @abstractmethod
    def push_image(self, destination: str, files: Sequence[Union[str, Path]]) -> None:
        """Publish local files as an image at a destination address."""

    @abstractmethod
    def download_image_and_save_files_to_dir(self, source: str, destination_dir: Union[str, Path]) -> None:
        """
        Save the files of an image into a local directory.

        Raises:
            ImageNotFoundError: If the image does not exist
            ImageTransferError: For any other failure
        """


class ImgpkgImageProcessor(ImageProcessor):
    """
    Image processor that drives the imgpkg CLI.

    Registry credentials and TLS settings are whatever imgpkg picks up from
    its own environment.
    """

    DEFAULT_TIMEOUT = 600  # 10 minutes

    # Registry error codes imgpkg reports for an absent image. A bare
    # "404 Not Found" from a proxy does not count.
    NOT_FOUND_MARKERS = (
        "MANIFEST_UNKNOWN",
        "NAME_UNKNOWN",
        "NOT_FOUND",
    )

    def __init__(self, imgpkg_path: str = "imgpkg", timeout: Optional[float] = None):
        """
        Initialize the image processor.

        Args:
            imgpkg_path: imgpkg executable name or path
            timeout: Timeout for each imgpkg command in seconds
        """
        self.imgpkg_path = imgpkg_path
        self.timeout = timeout or self.DEFAULT_TIMEOUT

    def _run_imgpkg(self, args: List[str]) -> Tuple[bool, str]:
        """
        Run an imgpkg command.

        Args:
            args: Arguments to pass to imgpkg

        Returns:
            Tuple of (success, output)
        """
        cmd = [self.imgpkg_path] + args

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )

            output = result.stdout + result.stderr
            success = result.returncode == 0

            if not success:
                logger.debug(f"imgpkg command failed: {' '.join(cmd)}")
                logger.debug(f"Output: {output}")

            return success, output

        except subprocess.TimeoutExpired:
            return False, f"Command timed out after {self.timeout} seconds"
        except OSError as e:
            return False, f"Error running imgpkg: {e}"

    def copy_image_from_tar(self, image_tar: Union[str, Path], destination: str) -> None:
        success, output = self._run_imgpkg(["copy", "--tar", str(image_tar), "--to-repo", destination])
        if not success:
            raise ImageTransferError(f"copying image from {image_tar} to {destination} failed: {output.strip()}")

    def push_image(self, destination: str, files: Sequence[Union[str, Path]]) -> None:
        args = ["push", "-i", destination]
        for path in files:
            args.extend(["-f", str(path)])

        success, output = self._run_imgpkg(args)
        if not success:
            raise ImageTransferError(f"pushing image {destination} failed: {output.strip()}")

    def download_image_and_save_files_to_dir(self, source: str, destination_dir: Union[str, Path]) -> None:
        success, output = self._run_imgpkg(["pull", "-i", source, "-o", str(destination_dir)])
        if success:
            return

        if any(marker in output for marker in self.NOT_FOUND_MARKERS):
            raise ImageNotFoundError(f"image {source} does not exist")
        raise ImageTransferError(f"pulling image {source} failed: {output.strip()}")
