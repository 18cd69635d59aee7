"""Collaborators for moving bundles and images."""

from .archive import ArchiveError, extract_tar
from .images import ImageNotFoundError, ImageProcessor, ImageTransferError, ImgpkgImageProcessor

__all__ = [
    "ArchiveError",
    "extract_tar",
    "ImageNotFoundError",
    "ImageProcessor",
    "ImageTransferError",
    "ImgpkgImageProcessor",
]
