from datetime import datetime
from typing import Dict, List

from app.models.share import CamelModel


class FileInfo(CamelModel):
    id: str
    file_name: str
    original_name: str
    file_url: str
    size: int
    type: str
    created_at: datetime


class FileList(CamelModel):
    files: List[FileInfo]


class UploadResult(CamelModel):
    success: bool = True
    file_url: str
    file_name: str
    original_name: str
    size: int
    type: str


class FileStats(CamelModel):
    total_files: int
    total_size: int
    type_distribution: Dict[str, int]
    upload_trend: Dict[str, int]


class OperationResult(CamelModel):
    success: bool = True
    message: str
