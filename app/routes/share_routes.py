from fastapi import APIRouter, Request

from app.models.file import OperationResult
from app.models.share import ShareAccess, ShareCreate, ShareCreated, ShareList
from logger_config import setup_logger

logger = setup_logger()

router = APIRouter()


@router.post("/share", response_model=ShareCreated)
async def create_share(share: ShareCreate, request: Request):
    share_registry = request.app.state.share_registry
    logger.info(f"Receiving share request for file: {share.file_id}")
    share_id = await share_registry.create(share.file_id, share.file_name, share.expires_in)
    return ShareCreated(share_id=share_id)


@router.get("/share", response_model=ShareList)
async def list_shares(request: Request):
    share_registry = request.app.state.share_registry
    return ShareList(shares=await share_registry.list_active())


@router.get("/share/{share_id}", response_model=ShareAccess)
async def access_share(share_id: str, request: Request):
    """Resolve a share link; every successful call counts one download."""
    share_registry = request.app.state.share_registry
    logger.info(f"Receiving share access for: {share_id}")
    return await share_registry.resolve(share_id)


@router.delete("/share/{share_id}", response_model=OperationResult)
async def revoke_share(share_id: str, request: Request):
    share_registry = request.app.state.share_registry
    await share_registry.revoke(share_id)
    return OperationResult(message=f"Share {share_id} revoked")
