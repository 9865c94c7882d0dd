"""
Scholarship lookups used when a student starts an application.

Scholarship records live in the `scholarships` Firestore collection. Only
the fields needed to accept an application are read here: the name, the
status and the application deadline.
"""
from datetime import date, datetime, timezone
import logging
import os
import threading
from typing import Any, Dict, Optional

from services.errors import ScholarshipNotFound, ValidationError

logger = logging.getLogger(__name__)

COLLECTION = os.getenv("SCHOLARSHIPS_COLLECTION", "scholarships")
ACTIVE = "active"


# ==================== Record helpers ====================

def scholarship_name(record: Dict[str, Any]) -> Optional[str]:
    return record.get("name") or record.get("Scholarship_Name")


def application_deadline(record: Dict[str, Any]) -> Optional[date]:
    """Last day applications are accepted, or None when the record has no deadline."""
    deadlines = record.get("deadlines") or {}
    raw = record.get("deadline") or record.get("End_Date") or deadlines.get("application")
    if not raw:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw

    # Handle ISO format
    if "T" in raw:
        return datetime.fromisoformat(raw.replace("Z", "")).date()
    return datetime.strptime(raw, "%Y-%m-%d").date()


# ==================== Catalogs ====================

class FirestoreScholarshipCatalog:
    def __init__(self, collection: str = COLLECTION):
        self.collection = collection

    def get(self, scholarship_id: str) -> Optional[Dict[str, Any]]:
        from firebase_admin import firestore

        snap = firestore.client().collection(self.collection).document(scholarship_id).get()
        return {**snap.to_dict(), "id": snap.id} if snap.exists else None


class MemoryScholarshipCatalog:
    """Process-local catalog used for development and tests."""

    def __init__(self):
        self._records: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def add(self, scholarship_id: str, record: Dict[str, Any]) -> None:
        with self._lock:
            self._records[scholarship_id] = dict(record)

    def get(self, scholarship_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._records.get(scholarship_id)
            return {**record, "id": scholarship_id} if record is not None else None


_catalog = None


def get_scholarship_catalog():
    global _catalog
    if _catalog is None:
        backend = os.getenv("APPLICATION_STORE", "firestore").lower()
        _catalog = MemoryScholarshipCatalog() if backend == "memory" else FirestoreScholarshipCatalog()
    return _catalog


def set_scholarship_catalog(catalog) -> None:
    global _catalog
    _catalog = catalog


# ==================== Lookup ====================

def get_open_scholarship(scholarship_id: str) -> Dict[str, Any]:
    """
    Return the scholarship record if it is accepting applications.

    Raises ScholarshipNotFound when the record is missing or not active, and
    ValidationError once its application deadline has passed. A record
    without a status is treated as active.
    """
    record = get_scholarship_catalog().get(scholarship_id)
    if record is None or (record.get("status") or ACTIVE) != ACTIVE:
        raise ScholarshipNotFound(scholarship_id)

    deadline = application_deadline(record)
    if deadline is not None and datetime.now(timezone.utc).date() > deadline:
        logger.info(f"Scholarship {scholarship_id} closed on {deadline.isoformat()}")
        raise ValidationError("Application deadline has passed", ["deadline"])

    return record
