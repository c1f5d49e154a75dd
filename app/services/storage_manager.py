import os
import re
import stat
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, List, Optional, Tuple
from urllib.parse import quote, unquote

import aiofiles
import aiofiles.os

import config
from app.errors import NotFoundError, StorageError, ValidationError
from app.models.file import FileInfo, FileStats, OperationResult
from logger_config import setup_logger
from monitor import Monitor

logger = setup_logger()

# Characters that are not allowed in stored file names
UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1F]')


class StorageManager:
    def __init__(self, upload_dir: Path, monitor: Optional[Monitor] = None,
                 public_path: str = config.PUBLIC_UPLOAD_PATH):
        self.upload_dir = Path(upload_dir)
        self.public_path = public_path.rstrip("/")
        self.monitor = monitor

    async def initialize(self):
        """Create the upload directory and report what is already stored."""
        logger.info("Initializing storage manager...")
        await aiofiles.os.makedirs(self.upload_dir, exist_ok=True)
        existing = await aiofiles.os.listdir(self.upload_dir)
        logger.info(f"Upload directory {self.upload_dir} holds {len(existing)} entries")

    def _storage_error(self, message: str, error: Exception) -> StorageError:
        logger.error(f"{message}: {error}", exc_info=error)
        if self.monitor:
            self.monitor.fail()
        return StorageError(message)

    def _storage_ok(self) -> None:
        if self.monitor:
            self.monitor.pass_()

    def file_url(self, file_name: str) -> str:
        return f"{self.public_path}/{quote(file_name)}"

    @staticmethod
    def clean_filename(original_name: str) -> str:
        """Decode a client supplied name and replace characters illegal in file names."""
        clean_name = UNSAFE_CHARS.sub("_", unquote(original_name)).strip()
        if clean_name in ("", ".", ".."):
            raise ValidationError("Invalid file name")
        return clean_name

    def get_blob_path(self, file_id: str) -> Path:
        """Map a stored name to its path, refusing anything outside the upload root."""
        root = self.upload_dir.resolve()
        blob_path = (root / file_id).resolve()
        if blob_path == root or root not in blob_path.parents:
            logger.warning(f"Rejected path outside upload directory: {file_id!r}")
            raise ValidationError("Invalid file path")
        return blob_path

    async def exists(self, file_id: str) -> bool:
        return await aiofiles.os.path.isfile(self.get_blob_path(file_id))

    async def _discard(self, path: Path) -> None:
        if await aiofiles.os.path.exists(path):
            await aiofiles.os.unlink(path)

    async def write_blob(self, clean_name: str, chunks: AsyncIterator[bytes],
                         max_size: int) -> Tuple[str, int]:
        """Store the chunks under a free name derived from `clean_name`.

        Candidates are `name.ext`, `name_1.ext`, `name_2.ext`, ... and each one
        is claimed with an exclusive create, so concurrent uploads of the same
        name end up with different files.

        Returns:
            Tuple of the stored name and the number of bytes written
        """
        stem, ext = os.path.splitext(clean_name)
        file_name = clean_name
        counter = 1

        try:
            await aiofiles.os.makedirs(self.upload_dir, exist_ok=True)
            while True:
                blob_path = self.upload_dir / file_name
                try:
                    blob_file = await aiofiles.open(blob_path, 'xb')
                    break
                except FileExistsError:
                    file_name = f"{stem}_{counter}{ext}"
                    counter += 1
        except OSError as e:
            raise self._storage_error("Failed to store file", e)

        logger.debug(f"Reserved stored name {file_name!r} for {clean_name!r}")

        size = 0
        try:
            try:
                async for chunk in chunks:
                    size += len(chunk)
                    if size > max_size:
                        raise ValidationError(f"File size cannot exceed {max_size // (1024 * 1024)}MB")
                    await blob_file.write(chunk)
            finally:
                await blob_file.close()
        except ValidationError:
            await self._discard(blob_path)
            raise
        except OSError as e:
            await self._discard(blob_path)
            raise self._storage_error("Failed to store file", e)

        self._storage_ok()
        return file_name, size

    async def list_files(self) -> List[FileInfo]:
        """Describe every stored file, sorted by name. The directory is the catalog."""
        if not await aiofiles.os.path.isdir(self.upload_dir):
            return []

        files = []
        try:
            for file_name in sorted(await aiofiles.os.listdir(self.upload_dir)):
                try:
                    file_stat = await aiofiles.os.stat(self.upload_dir / file_name)
                except FileNotFoundError:
                    # Deleted while listing
                    continue
                if not stat.S_ISREG(file_stat.st_mode):
                    continue

                created = getattr(file_stat, "st_birthtime", file_stat.st_ctime)
                files.append(FileInfo(
                    id=file_name,
                    file_name=file_name,
                    original_name=file_name,
                    file_url=self.file_url(file_name),
                    size=file_stat.st_size,
                    type=os.path.splitext(file_name)[1][1:],
                    created_at=datetime.fromtimestamp(created, tz=timezone.utc),
                ))
        except OSError as e:
            raise self._storage_error("Failed to list files", e)

        return files

    async def get_stats(self) -> FileStats:
        files = await self.list_files()
        return FileStats(
            total_files=len(files),
            total_size=sum(f.size for f in files),
            type_distribution=dict(Counter(f.type.lower() or "other" for f in files)),
            upload_trend=dict(sorted(Counter(f.created_at.date().isoformat() for f in files).items())),
        )

    async def delete_file(self, file_id: str) -> OperationResult:
        """Delete a stored file. `file_id` may still be percent-encoded."""
        blob_path = self.get_blob_path(unquote(file_id))
        if not await aiofiles.os.path.isfile(blob_path):
            raise NotFoundError("File not found")

        try:
            await aiofiles.os.unlink(blob_path)
        except FileNotFoundError:
            raise NotFoundError("File not found")
        except OSError as e:
            raise self._storage_error("Failed to delete file", e)

        self._storage_ok()
        logger.info(f"Deleted file: {blob_path.name}")
        return OperationResult(message="File deleted successfully")
