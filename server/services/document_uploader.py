"""
Client-side document upload tracking.

Each slot position has its own status, keyed by `{slot_key}-{array_index or 0}`:
pending -> uploading -> uploaded | error. Uploads on different keys run
independently. A failed upload leaves the previous DocumentRef in place.

Known race: re-invoking upload on a slot while an earlier call is still in
flight is last-resolver-wins; a slow earlier call can overwrite a newer result.
"""
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Optional

import httpx

from dtos.application_dtos import ApplicationDocuments, DocumentRef
from services.document_slots import progress_key, set_document, slot_value, get_slot, validate_upload
from services.errors import UploadError

logger = logging.getLogger(__name__)

PENDING = "pending"
UPLOADING = "uploading"
UPLOADED = "uploaded"
ERROR = "error"

# (slot_key, filename, content) -> DocumentRef
UploadTransport = Callable[[str, str, bytes], Awaitable[DocumentRef]]


class DocumentUploader:
    def __init__(self, documents: ApplicationDocuments, transport: UploadTransport):
        self.documents = documents
        self.transport = transport
        self._status: Dict[str, str] = {}
        self.errors: Dict[str, str] = {}

    def status(self, slot_key: str, array_index: Optional[int] = None) -> str:
        key = progress_key(slot_key, array_index)
        if key in self._status:
            return self._status[key]
        slot = get_slot(slot_key, array_index)
        if slot.is_array:
            items = getattr(self.documents, slot_key)
            index = array_index or 0
            present = index < len(items) and items[index] is not None
        else:
            present = slot_value(self.documents, slot) is not None
        return UPLOADED if present else PENDING

    @property
    def statuses(self) -> Dict[str, str]:
        return dict(self._status)

    async def upload_document(
        self,
        slot_key: str,
        array_index: Optional[int],
        filename: str,
        content: bytes,
    ) -> DocumentRef:
        # Raises ValidationError before any state changes
        validate_upload(slot_key, filename, len(content), array_index)

        key = progress_key(slot_key, array_index)
        self._status[key] = UPLOADING
        self.errors.pop(key, None)

        try:
            ref = await self.transport(slot_key, filename, content)
        except Exception as e:
            self._status[key] = ERROR
            self.errors[key] = str(e)
            logger.error(f"Upload failed for {key}: {e}")
            raise UploadError(f"Failed to upload {filename}: {e}", slot_key=slot_key) from e

        if ref.uploaded_at is None:
            ref.uploaded_at = datetime.now(timezone.utc)
        set_document(self.documents, slot_key, array_index, ref)
        self._status[key] = UPLOADED
        logger.info(f"Document uploaded: {key} -> {ref.url}")
        return ref


class HttpUploadTransport:
    """Posts files to the upload endpoint of the application server."""

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport

    async def __call__(self, slot_key: str, filename: str, content: bytes) -> DocumentRef:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            response = await client.post(
                "/api/v1/uploads",
                files={"file": (filename, content)},
                data={"slot_key": slot_key},
                headers={"Authorization": f"Bearer {self.token}"},
            )

        if response.status_code != 200:
            try:
                detail = response.json().get("detail")
            except ValueError:
                detail = response.text
            raise UploadError(f"Upload rejected ({response.status_code}): {detail}", slot_key=slot_key)

        body = response.json()
        return DocumentRef(
            filename=body.get("filename"),
            url=body["url"],
            uploaded_at=body.get("uploaded_at"),
        )
