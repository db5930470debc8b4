"""
Product image uploads stored on local disk and served under /uploads.
"""

from pathlib import Path
from uuid import uuid4

from fastapi import UploadFile
from loguru import logger

from jewelry_shop.core.config import settings
from jewelry_shop.core.exceptions import BadRequestError

PRODUCT_IMAGE_SUBDIR = "products"


class ImageStorage:
    """
    Saves uploaded product images under ``{upload_dir}/products``.

    Usage:
        storage = ImageStorage()
        urls = await storage.save_all(files)
    """

    def __init__(
        self,
        upload_dir: str | Path | None = None,
        max_size_mb: int | None = None,
        allowed_types: list[str] | None = None,
    ) -> None:
        self.root = Path(upload_dir or settings.upload_dir)
        self.max_size = (max_size_mb or settings.max_upload_size_mb) * 1024 * 1024
        self.allowed_types = allowed_types or settings.allowed_image_types

    @property
    def directory(self) -> Path:
        return self.root / PRODUCT_IMAGE_SUBDIR

    def ensure_directory(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    async def save(self, file: UploadFile) -> str:
        """
        Validate and store one image.

        Returns:
            Public URL of the stored file

        Raises:
            BadRequestError: If the file is not an allowed image or too large
        """
        if file.content_type not in self.allowed_types:
            raise BadRequestError("Only image files are allowed")

        content = await file.read()
        if len(content) > self.max_size:
            raise BadRequestError(
                f"File {file.filename} exceeds {self.max_size // (1024 * 1024)}MB"
            )

        extension = Path(file.filename or "").suffix.lower()
        filename = f"{uuid4()}{extension}"

        self.ensure_directory()
        (self.directory / filename).write_bytes(content)
        logger.info(f"Stored product image {filename} ({len(content)} bytes)")

        return f"/uploads/{PRODUCT_IMAGE_SUBDIR}/{filename}"

    async def save_all(self, files: list[UploadFile]) -> list[str]:
        """Store several images after checking all their types."""
        for file in files:
            if file.content_type not in self.allowed_types:
                raise BadRequestError("Only image files are allowed")
        return [await self.save(file) for file in files]


def get_image_storage() -> ImageStorage:
    """FastAPI dependency for image storage."""
    return ImageStorage()
