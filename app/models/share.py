from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ShareRecord(CamelModel):
    id: str
    file_id: str
    file_name: str
    created_at: datetime
    expires_at: Optional[datetime] = None
    downloads: int = 0

    @field_validator('created_at', 'expires_at')
    @classmethod
    def assume_utc(cls, v):
        # Timestamps without an offset are read as UTC
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


class ShareCreate(CamelModel):
    file_id: str
    file_name: str
    expires_in: Optional[int] = None

    @field_validator('file_id')
    @classmethod
    def validate_file_id(cls, v):
        if not v:
            raise ValueError('fileId must not be empty')
        return v


class ShareCreated(CamelModel):
    share_id: str


class ShareList(CamelModel):
    shares: List[ShareRecord]


class ShareAccess(CamelModel):
    file_name: str
    file_url: str
    downloads: int
