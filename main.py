from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
import uvicorn

import config
from app.errors import FileShareError, StorageError
from app.routes import file_routes, share_routes
from app.services.share_registry import ShareRegistry
from app.services.storage_manager import StorageManager
from app.services.upload_service import UploadService
from logger_config import setup_logger
from monitor import Monitor

# Data storage paths
UPLOAD_DIR = Path(config.UPLOAD_DIR)
SHARE_FILE = Path(config.SHARE_FILE)

# Logger setup
logger = setup_logger()


def attach_services(app: FastAPI, upload_dir: Path, share_file: Path) -> StorageManager:
    """Build the services and put them on `app.state`, where the routes look them up."""
    monitor = Monitor(config.FAILURE_THRESHOLD, config.FAILURE_WINDOW_SECONDS)
    storage_manager = StorageManager(upload_dir, monitor=monitor)

    app.state.monitor = monitor
    app.state.storage_manager = storage_manager
    app.state.upload_service = UploadService(storage_manager)
    app.state.share_registry = ShareRegistry(share_file, storage_manager, monitor=monitor)
    return storage_manager


@asynccontextmanager
async def lifespan(app: FastAPI):
    storage_manager = attach_services(app, UPLOAD_DIR, SHARE_FILE)
    await storage_manager.initialize()
    yield


app = FastAPI(title="Fileshare Server", lifespan=lifespan)
app.include_router(file_routes.router)
app.include_router(share_routes.router)
app.mount(config.PUBLIC_UPLOAD_PATH, StaticFiles(directory=UPLOAD_DIR, check_dir=False), name="uploads")


@app.exception_handler(FileShareError)
async def fileshare_error_handler(request: Request, exc: FileShareError):
    # Storage errors are logged with their cause where they are raised
    if not isinstance(exc, StorageError):
        logger.info(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
        for error in exc.errors()
    )
    logger.info(f"{request.method} {request.url.path} rejected (422): {problems}")
    return JSONResponse(status_code=422, content={"error": f"Invalid request: {problems}"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


if __name__ == "__main__":
    logger.info("Starting Fileshare Server...")
    logger.info(f"Upload directory: {UPLOAD_DIR}")
    logger.info(f"Share registry: {SHARE_FILE}")
    logger.info(f"Maximum upload size: {config.MAX_FILE_SIZE / (1024*1024):.2f} MB")
    uvicorn.run(app, host=config.HOST, port=config.PORT)
