from datetime import datetime, timezone
import logging
from fastapi import APIRouter, HTTPException, Depends, UploadFile, File, Form, Query
from dtos.application_dtos import UploadResponse
from services.auth_svc import verify_firebase_user, AuthenticatedUser
from services import document_slots
from services.errors import UploadError, ValidationError
from services.storage_svc import get_storage

router = APIRouter()
logger = logging.getLogger(__name__)


async def _read_limited(file: UploadFile) -> bytes:
    """Read at most one byte past the size limit so oversized bodies are never buffered whole."""
    limit = document_slots.MAX_FILE_SIZE
    if file.size is not None and file.size > limit:
        return b""
    return await file.read(limit + 1)


@router.post("", response_model=UploadResponse)
async def upload_document(
    file: UploadFile = File(...),
    slot_key: str = Form(...),
    user: AuthenticatedUser = Depends(verify_firebase_user)
):
    """Store one document for a slot; the client records the returned URL in its draft."""
    content = await _read_limited(file)
    size = max(file.size or 0, len(content))
    try:
        document_slots.validate_upload(slot_key, file.filename, size)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.message)

    try:
        stored = get_storage().store(content, file.filename, slot_key, user.uid)
    except UploadError as e:
        raise HTTPException(status_code=502, detail=str(e))

    logger.info(f"📎 {user.uid} uploaded {file.filename} to slot {slot_key}")
    return UploadResponse(
        slot_key=slot_key,
        filename=stored["filename"],
        url=stored["url"],
        uploaded_at=datetime.now(timezone.utc),
    )


@router.delete("")
def delete_document(
    url: str = Query(...),
    user: AuthenticatedUser = Depends(verify_firebase_user)
):
    """Best-effort removal of a replaced file. Users can only delete their own uploads."""
    storage = get_storage()
    if not storage.owns(url, user.uid):
        logger.warning(f"🚫 {user.uid} tried to delete a file they do not own: {url}")
        raise HTTPException(status_code=403, detail="You can only delete your own uploads")
    return {"deleted": storage.delete(url, user.uid), "url": url}
