"""
Storage backends for uploaded application documents.

LocalDiskStorage writes under UPLOAD_DIR and is served by the app's static
mount; FirebaseStorage is used when FIREBASE_STORAGE_BUCKET is configured.
Both return {"url", "filename"} and raise UploadError on failure.

Objects are named `{owner_uid}/{slot_key}/{uuid}.{ext}`, so a URL can be
traced back to the user who uploaded it and deletes stay within that user's
own files.
"""
import os
import uuid
import logging
from pathlib import Path
from typing import Dict, Optional

from services.document_slots import file_extension
from services.errors import UploadError

logger = logging.getLogger(__name__)

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "static/uploads")
UPLOAD_BASE_URL = os.getenv("UPLOAD_BASE_URL", "/uploads")
FIREBASE_PREFIX = "applications"


def _object_name(filename: str, slot_key: str, owner_uid: str) -> str:
    return f"{owner_uid}/{slot_key}/{uuid.uuid4()}.{file_extension(filename)}"


class LocalDiskStorage:
    def __init__(self, root: str = UPLOAD_DIR, base_url: str = UPLOAD_BASE_URL):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def store(self, content: bytes, filename: str, slot_key: str, owner_uid: str) -> Dict[str, str]:
        name = _object_name(filename, slot_key, owner_uid)
        path = self.root / name
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as e:
            raise UploadError(f"Failed to store {filename}: {e}", slot_key=slot_key) from e

        logger.info(f"Stored {filename} at {path}")
        return {"url": f"{self.base_url}/{name}", "filename": filename}

    def _path(self, url: str, owner_uid: str) -> Optional[Path]:
        """Resolved file path for one of the owner's URLs, else None."""
        prefix = f"{self.base_url}/{owner_uid}/"
        if not owner_uid or not url.startswith(prefix):
            return None
        owner_root = (self.root / owner_uid).resolve()
        path = (self.root / url[len(self.base_url) + 1:]).resolve()
        if owner_root not in path.parents:
            logger.warning(f"Refusing path outside {owner_uid}'s uploads: {url}")
            return None
        return path

    def owns(self, url: str, owner_uid: str) -> bool:
        return self._path(url, owner_uid) is not None

    def delete(self, url: str, owner_uid: str) -> bool:
        """Best-effort removal of one of the owner's files; False when nothing was deleted."""
        path = self._path(url, owner_uid)
        if path is None:
            return False
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Could not delete {path}: {e}")
            return False


class FirebaseStorage:
    def __init__(self, bucket_name: str):
        self.bucket_name = bucket_name

    def _bucket(self):
        from firebase_admin import storage
        return storage.bucket(self.bucket_name)

    def store(self, content: bytes, filename: str, slot_key: str, owner_uid: str) -> Dict[str, str]:
        name = f"{FIREBASE_PREFIX}/{_object_name(filename, slot_key, owner_uid)}"
        try:
            blob = self._bucket().blob(name)
            blob.upload_from_string(content)
            blob.make_public()
        except Exception as e:
            raise UploadError(f"Failed to store {filename}: {e}", slot_key=slot_key) from e

        logger.info(f"Uploaded {filename} to gs://{self.bucket_name}/{name}")
        return {"url": blob.public_url, "filename": filename}

    def _blob_name(self, url: str, owner_uid: str) -> Optional[str]:
        marker = f"/{self.bucket_name}/"
        if not owner_uid or marker not in url:
            return None
        name = url.split(marker, 1)[1]
        parts = name.split("/")
        if name.startswith(f"{FIREBASE_PREFIX}/{owner_uid}/") and ".." not in parts:
            return name
        return None

    def owns(self, url: str, owner_uid: str) -> bool:
        return self._blob_name(url, owner_uid) is not None

    def delete(self, url: str, owner_uid: str) -> bool:
        name = self._blob_name(url, owner_uid)
        if name is None:
            return False
        try:
            self._bucket().blob(name).delete()
            return True
        except Exception as e:
            logger.warning(f"Could not delete gs://{self.bucket_name}/{name}: {e}")
            return False


_storage = None


def get_storage():
    global _storage
    if _storage is None:
        bucket: Optional[str] = os.getenv("FIREBASE_STORAGE_BUCKET")
        _storage = FirebaseStorage(bucket) if bucket else LocalDiskStorage()
        logger.info(f"Document storage: {type(_storage).__name__}")
    return _storage


def set_storage(storage) -> None:
    global _storage
    _storage = storage
