from typing import Iterable, Optional

from fastapi import UploadFile

import config
from app.errors import ValidationError
from app.models.file import UploadResult
from app.services.storage_manager import StorageManager
from logger_config import setup_logger

logger = setup_logger()


class UploadService:
    def __init__(self, storage_manager: StorageManager,
                 max_size: int = config.MAX_FILE_SIZE,
                 allowed_types: Iterable[str] = config.ALLOWED_FILE_TYPES):
        self.storage_manager = storage_manager
        self.max_size = max_size
        self.allowed_types = frozenset(allowed_types)

    def validate(self, content_type: Optional[str], size: int) -> None:
        """Check the declared type and size before anything touches the disk."""
        if content_type not in self.allowed_types:
            raise ValidationError("Unsupported file type")
        if size > self.max_size:
            raise ValidationError(f"File size cannot exceed {self.max_size // (1024 * 1024)}MB")

    async def upload(self, file: Optional[UploadFile]) -> UploadResult:
        if file is None or not file.filename:
            raise ValidationError("No file provided")

        # Get content length from the file
        file.file.seek(0, 2)
        size = file.file.tell()
        file.file.seek(0)
        logger.debug(f"Upload {file.filename!r}: {size} bytes, type {file.content_type}")

        self.validate(file.content_type, size)
        clean_name = self.storage_manager.clean_filename(file.filename)

        async def chunks():
            while chunk := await file.read(config.CHUNK_SIZE):
                yield chunk

        file_name, written = await self.storage_manager.write_blob(clean_name, chunks(), self.max_size)
        logger.info(f"Stored upload {file.filename!r} as {file_name!r} ({written} bytes)")

        return UploadResult(
            file_url=self.storage_manager.file_url(file_name),
            file_name=file_name,
            original_name=file.filename,
            size=written,
            type=file.content_type,
        )
