"""
Catalog of the installation's source images.

Each image file in the images directory is one selectable object. Its
identity (used by the card reader and as the classification cache key) is the
file stem with whitespace replaced by underscores.
"""

from pathlib import Path
from typing import Any, Dict, List, Union

from chimera.gateway.exceptions import ImageNotFoundError, InvalidImagePathError
from chimera.gateway.models import ImageIdentity
from chimera.utils.logging import get_logger

logger = get_logger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")
DISPLAY_PREFIX = "ele_"


def display_name(filename: str) -> str:
    """Human-readable name: "ele_back.jpg" -> "Back", "ele_tail fur.jpg" -> "Tail Fur"."""
    name = Path(filename).stem
    if name.startswith(DISPLAY_PREFIX):
        name = name[len(DISPLAY_PREFIX):]
    words = name.replace("_", " ").split()
    return " ".join(word[:1].upper() + word[1:].lower() for word in words)


class ImageCatalog:
    """Lists and loads the images available for classification."""

    def __init__(self, images_dir: Union[str, Path]):
        self.images_dir = Path(images_dir)

    def list_images(self) -> List[Dict[str, Any]]:
        """
        List catalog images in file-name order.

        Raises:
            ImageNotFoundError: If the images directory does not exist
        """
        if not self.images_dir.is_dir():
            raise ImageNotFoundError(f"Images directory not found: {self.images_dir.name}")

        images = []
        for path in sorted(self.images_dir.iterdir()):
            if not path.is_file() or path.suffix.lower() not in IMAGE_EXTENSIONS:
                continue
            images.append(
                {
                    "id": str(ImageIdentity.from_filename(path.name)),
                    "filename": path.name,
                    "name": display_name(path.name),
                }
            )
        return images

    def resolve(self, filename: str) -> Path:
        """
        Resolve a file name inside the catalog directory.

        Raises:
            InvalidImagePathError: If the name points outside the directory
            ImageNotFoundError: If no such file exists
        """
        root = self.images_dir.resolve()
        candidate = (root / filename).resolve()
        if candidate != root and root not in candidate.parents:
            logger.warning("Rejected image path outside the catalog")
            raise InvalidImagePathError("Invalid path")
        if not candidate.is_file():
            raise ImageNotFoundError(f"Image not found: {Path(filename).name}")
        return candidate
