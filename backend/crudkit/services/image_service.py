"""
crudkit Backend — Image Resizing Service
=========================================

What:  Produces the configured avatar variants from a stored original.
How:   Pillow does the work in a worker thread (asyncio.to_thread) so the
       event loop keeps serving requests while images are decoded and
       re-encoded.

Output (settings.avatar_sizes = {"small": [64, 64], "medium": [256, 256]}):
    {
        "original": "avatar/user/<uid>/3f2a.jpg",
        "small":    "avatar/user/<uid>/3f2a-small.jpg",
        "medium":   "avatar/user/<uid>/3f2a-medium.jpg"
    }
"""

import asyncio
import logging
from pathlib import Path
from typing import Dict, Mapping, Sequence, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from crudkit.exceptions import FileStorageError, ValidationError
from crudkit.services.file_service import FileService, StoredFile

logger = logging.getLogger(__name__)


def _resize(source: Path, target: Path, size: Tuple[int, int]) -> None:
    with Image.open(source) as image:
        # Honor camera orientation before shrinking
        image = ImageOps.exif_transpose(image)
        if image.mode not in ("RGB", "RGBA", "L"):
            image = image.convert("RGBA" if "A" in image.getbands() else "RGB")
        if target.suffix.lower() in (".jpg", ".jpeg") and image.mode == "RGBA":
            image = image.convert("RGB")
        image.thumbnail(size)
        target.parent.mkdir(parents=True, exist_ok=True)
        image.save(target)


class ImageService:
    def __init__(self, file_service: FileService):
        self.file_service = file_service

    async def resize_image(
        self,
        stored: StoredFile,
        sizes: Mapping[str, Sequence[int]],
    ) -> Dict[str, str]:
        """
        Resize `stored` into every named size.

        Returns:
            {size name: relative path}, plus "original"
        Raises:
            ValidationError if Pillow cannot decode the image
            FileStorageError if a variant cannot be written
        """
        source = Path(stored.absolute_path)
        images: Dict[str, str] = {"original": stored.relative_path}

        for name, (width, height) in sizes.items():
            relative = f"{Path(stored.relative_path).with_suffix('')}-{name}{source.suffix}"
            target = self.file_service.absolute(relative)
            try:
                await asyncio.to_thread(_resize, source, target, (int(width), int(height)))
            except (UnidentifiedImageError, OSError) as e:
                # The caller owns the original; only the variants are removed here
                variants = {key: path for key, path in images.items() if key != "original"}
                await self.cleanup(variants)
                if isinstance(e, UnidentifiedImageError):
                    raise ValidationError(
                        message="Uploaded file is not a readable image",
                        field="file",
                        context={"error": str(e)},
                    )
                logger.error("Failed to resize %s to %s: %s", source.name, name, e)
                raise FileStorageError(
                    message="Failed to process uploaded image. Please try again.",
                    context={"path": str(target), "os_error": str(e)},
                )
            images[name] = relative

        logger.info("Resized %s into %d variants", stored.relative_path, len(sizes))
        return images

    async def cleanup(self, images: Mapping[str, str]) -> None:
        for relative in images.values():
            await self.file_service.cleanup_file(str(self.file_service.absolute(relative)))

