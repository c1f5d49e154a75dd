from typing import Optional

from fastapi import APIRouter, File, Request, UploadFile

from app.models.file import FileList, FileStats, OperationResult, UploadResult
from logger_config import setup_logger

logger = setup_logger()

router = APIRouter()


@router.post("/files", response_model=UploadResult)
async def upload_file(request: Request, file: Optional[UploadFile] = File(None)):
    """Upload a single document from the multipart field `file`."""
    upload_service = request.app.state.upload_service
    logger.info(f"Receiving upload request for {file.filename if file else None!r}")
    return await upload_service.upload(file)


@router.get("/files", response_model=FileList)
async def list_files(request: Request):
    storage_manager = request.app.state.storage_manager
    return FileList(files=await storage_manager.list_files())


@router.get("/files/stats", response_model=FileStats)
async def file_stats(request: Request):
    """Totals, per-extension counts and uploads per day."""
    storage_manager = request.app.state.storage_manager
    return await storage_manager.get_stats()


@router.delete("/files/{file_id:path}", response_model=OperationResult)
async def delete_file(file_id: str, request: Request):
    storage_manager = request.app.state.storage_manager
    logger.info(f"Receiving delete request for file: {file_id}")
    return await storage_manager.delete_file(file_id)
