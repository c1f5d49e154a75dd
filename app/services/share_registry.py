import asyncio
import json
import secrets
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Tuple

import aiofiles
import aiofiles.os
from pydantic import TypeAdapter
from pydantic import ValidationError as SchemaError

import config
from app.errors import GoneError, NotFoundError, StorageError, ValidationError
from app.models.share import ShareAccess, ShareRecord
from app.services.storage_manager import StorageManager
from logger_config import setup_logger
from monitor import Monitor

logger = setup_logger()

_records_adapter = TypeAdapter(List[ShareRecord])


def partition(records: List[ShareRecord], now: datetime) -> Tuple[List[ShareRecord], List[ShareRecord]]:
    """Split records into (still valid, expired) as of `now`."""
    valid, expired = [], []
    for record in records:
        (expired if record.is_expired(now) else valid).append(record)
    return valid, expired


def generate_share_id() -> str:
    return secrets.token_hex(config.SHARE_ID_BYTES)


class ShareRegistry:
    """Share records persisted as one JSON array.

    Every read-modify-write of the file happens under `self.lock`, so
    concurrent requests in this process cannot lose each other's updates.
    Methods prefixed with an underscore expect the caller to hold the lock.
    """

    def __init__(self, share_file: Path, storage_manager: StorageManager,
                 monitor: Optional[Monitor] = None,
                 verify_blob: bool = config.VERIFY_SHARED_BLOB):
        self.share_file = Path(share_file)
        self.storage_manager = storage_manager
        self.monitor = monitor
        self.verify_blob = verify_blob
        self.lock = asyncio.Lock()

    def _storage_error(self, message: str, error: Exception) -> StorageError:
        logger.error(f"{message}: {error}", exc_info=error)
        if self.monitor:
            self.monitor.fail()
        return StorageError(message)

    async def _load(self) -> List[ShareRecord]:
        try:
            async with aiofiles.open(self.share_file, 'r', encoding='utf-8') as f:
                content = await f.read()
        except FileNotFoundError:
            return []
        except OSError as e:
            raise self._storage_error("Failed to read share registry", e)

        try:
            return _records_adapter.validate_json(content)
        except SchemaError as e:
            raise self._storage_error("Share registry is corrupted", e)

    async def _save(self, records: List[ShareRecord]) -> None:
        """Rewrite the whole registry through a temp file and an atomic replace."""
        payload = json.dumps(
            [record.model_dump(mode="json", by_alias=True) for record in records],
            indent=2,
            ensure_ascii=False,
        )
        temp_path = self.share_file.with_name(f"{self.share_file.name}.tmp")
        try:
            await aiofiles.os.makedirs(self.share_file.parent, exist_ok=True)
            async with aiofiles.open(temp_path, 'w', encoding='utf-8') as f:
                await f.write(payload)
            await aiofiles.os.replace(temp_path, self.share_file)
        except OSError as e:
            raise self._storage_error("Failed to save share registry", e)

        if self.monitor:
            self.monitor.pass_()
        logger.debug(f"Share registry saved with {len(records)} records")

    @staticmethod
    def _find(records: List[ShareRecord], share_id: str) -> Optional[ShareRecord]:
        return next((r for r in records if r.id == share_id), None)

    async def get(self, share_id: str) -> Optional[ShareRecord]:
        async with self.lock:
            return self._find(await self._load(), share_id)

    async def upsert(self, record: ShareRecord) -> None:
        """Insert `record`, or replace the stored record with the same id."""
        async with self.lock:
            records = await self._load()
            for index, existing in enumerate(records):
                if existing.id == record.id:
                    records[index] = record
                    break
            else:
                records.append(record)
            await self._save(records)

    async def delete(self, share_id: str) -> bool:
        async with self.lock:
            records = await self._load()
            remaining = [r for r in records if r.id != share_id]
            if len(remaining) == len(records):
                return False
            await self._save(remaining)
            return True

    async def create(self, file_id: str, file_name: str, expires_in: Optional[int] = None) -> str:
        """Create a share link for a stored file and return its id.

        Sharing a file that already has a record returns the existing id and
        leaves its expiry untouched. `expires_in` is in seconds; None or 0
        means the link never expires.
        """
        if not await self.storage_manager.exists(file_id):
            raise NotFoundError("File not found")

        async with self.lock:
            records = await self._load()

            existing = next((r for r in records if r.file_id == file_id), None)
            if existing:
                logger.info(f"Reusing share {existing.id} for {file_id!r}")
                return existing.id

            now = datetime.now(timezone.utc)
            try:
                expires_at = now + timedelta(seconds=expires_in) if expires_in else None
            except OverflowError:
                raise ValidationError("Invalid expiry")
            record = ShareRecord(
                id=generate_share_id(),
                file_id=file_id,
                file_name=file_name,
                created_at=now,
                expires_at=expires_at,
                downloads=0,
            )
            records.append(record)
            await self._save(records)

        logger.info(f"Created share {record.id} for {file_id!r} (expires at {record.expires_at})")
        return record.id

    async def list_active(self, now: Optional[datetime] = None) -> List[ShareRecord]:
        """Return unexpired shares, dropping expired ones from the registry."""
        now = now or datetime.now(timezone.utc)
        async with self.lock:
            valid, expired = partition(await self._load(), now)
            if expired:
                await self._save(valid)
                logger.info(f"Purged {len(expired)} expired shares")
        return valid

    async def resolve(self, share_id: str) -> ShareAccess:
        """Count a download for a share link and return what it points to."""
        async with self.lock:
            records = await self._load()
            record = self._find(records, share_id)
            if record is None:
                raise NotFoundError("Share link not found")
            if record.is_expired(datetime.now(timezone.utc)):
                raise GoneError("Share link has expired")
            if self.verify_blob and not await self.storage_manager.exists(record.file_id):
                logger.info(f"Share {share_id} points at missing file {record.file_id!r}")
                raise NotFoundError("Shared file no longer exists")

            record.downloads += 1
            await self._save(records)

        return ShareAccess(
            file_name=record.file_name,
            file_url=self.storage_manager.file_url(record.file_id),
            downloads=record.downloads,
        )

    async def revoke(self, share_id: str) -> None:
        if not await self.delete(share_id):
            raise NotFoundError("Share link not found")
        logger.info(f"Revoked share {share_id}")
