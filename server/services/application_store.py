"""
Persistence for Application documents.

Both stores expose the same operations. `transition` is the single
authoritative read-modify-write per application id: the status precondition
is checked and the update applied atomically (Firestore transaction, or a
lock in the in-memory store), so two concurrent reviews cannot both succeed.
"""
import copy
import logging
import os
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from services.errors import ApplicationNotFound, InvalidTransition

logger = logging.getLogger(__name__)

COLLECTION = os.getenv("APPLICATIONS_COLLECTION", "applications")

UpdateBuilder = Callable[[Dict[str, Any]], Dict[str, Any]]


def _matches(doc: Dict[str, Any], applicant_id, scholarship_id, statuses) -> bool:
    if applicant_id and doc.get("applicant_id") != applicant_id:
        return False
    if scholarship_id and doc.get("scholarship_id") != scholarship_id:
        return False
    if statuses and doc.get("status") not in statuses:
        return False
    return True


class FirestoreApplicationStore:
    def __init__(self, collection: str = COLLECTION):
        self.collection = collection

    def _col(self):
        from firebase_admin import firestore
        return firestore.client().collection(self.collection)

    def create_if_absent(self, app_id: str, data: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        """Create the document unless the id is taken; returns (document, created)."""
        from google.api_core.exceptions import AlreadyExists

        ref = self._col().document(app_id)
        try:
            ref.create(data)
        except AlreadyExists:
            existing = self.get(app_id)
            if existing is None:
                raise
            return existing, False
        return {**data, "id": app_id}, True

    def get(self, app_id: str) -> Optional[Dict[str, Any]]:
        snap = self._col().document(app_id).get()
        return {**snap.to_dict(), "id": snap.id} if snap.exists else None

    def _query(self, applicant_id=None, scholarship_id=None, statuses=None):
        query = self._col()
        if applicant_id:
            query = query.where("applicant_id", "==", applicant_id)
        if scholarship_id:
            query = query.where("scholarship_id", "==", scholarship_id)
        if statuses:
            query = query.where("status", "in", list(statuses))
        return query

    def find(
        self,
        applicant_id: Optional[str] = None,
        scholarship_id: Optional[str] = None,
        statuses: Optional[Iterable[str]] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        from firebase_admin import firestore

        query = self._query(applicant_id, scholarship_id, statuses)
        total = query.count().get()[0][0].value

        page = query.order_by("updated_at", direction=firestore.Query.DESCENDING).offset(offset)
        if limit:
            page = page.limit(limit)
        return [{**doc.to_dict(), "id": doc.id} for doc in page.stream()], total

    def count_by_status(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for doc in self._col().select(["status"]).stream():
            status = doc.to_dict().get("status")
            counts[status] = counts.get(status, 0) + 1
        return counts

    def update(self, app_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        ref = self._col().document(app_id)
        snap = ref.get()
        if not snap.exists:
            raise ApplicationNotFound(app_id)
        ref.update(updates)
        return {**snap.to_dict(), **updates, "id": app_id}

    def transition(self, app_id: str, allowed_from: Iterable[str], build_updates: UpdateBuilder,
                   target_status: Optional[str] = None) -> Dict[str, Any]:
        from firebase_admin import firestore

        allowed = set(allowed_from)
        ref = self._col().document(app_id)
        transaction = firestore.client().transaction()

        @firestore.transactional
        def _apply(txn):
            snap = ref.get(transaction=txn)
            if not snap.exists:
                raise ApplicationNotFound(app_id)
            current = snap.to_dict()
            if current.get("status") not in allowed:
                raise InvalidTransition(app_id, current.get("status"), target_status)
            updates = build_updates(current)
            txn.update(ref, updates)
            return {**current, **updates, "id": snap.id}

        return _apply(transaction)

    def ping(self) -> bool:
        list(self._col().limit(1).stream())
        return True


class MemoryApplicationStore:
    """Process-local store used for development and tests."""

    def __init__(self):
        self._docs: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def create_if_absent(self, app_id: str, data: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        with self._lock:
            created = app_id not in self._docs
            if created:
                self._docs[app_id] = copy.deepcopy(data)
            return {**copy.deepcopy(self._docs[app_id]), "id": app_id}, created

    def get(self, app_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._docs.get(app_id)
            return {**copy.deepcopy(doc), "id": app_id} if doc is not None else None

    def find(self, applicant_id=None, scholarship_id=None, statuses=None, offset=0, limit=None):
        statuses = set(statuses) if statuses else None
        with self._lock:
            rows = [
                {**copy.deepcopy(doc), "id": app_id}
                for app_id, doc in self._docs.items()
                if _matches(doc, applicant_id, scholarship_id, statuses)
            ]
        rows.sort(key=lambda d: d.get("updated_at") or "", reverse=True)
        end = offset + limit if limit else None
        return rows[offset:end], len(rows)

    def count_by_status(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        with self._lock:
            for doc in self._docs.values():
                counts[doc.get("status")] = counts.get(doc.get("status"), 0) + 1
        return counts

    def update(self, app_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            doc = self._docs.get(app_id)
            if doc is None:
                raise ApplicationNotFound(app_id)
            doc.update(copy.deepcopy(updates))
            return {**copy.deepcopy(doc), "id": app_id}

    def transition(self, app_id, allowed_from, build_updates, target_status=None):
        with self._lock:
            doc = self._docs.get(app_id)
            if doc is None:
                raise ApplicationNotFound(app_id)
            if doc.get("status") not in set(allowed_from):
                raise InvalidTransition(app_id, doc.get("status"), target_status)
            updates = build_updates(copy.deepcopy(doc))
            doc.update(copy.deepcopy(updates))
            return {**copy.deepcopy(doc), "id": app_id}

    def ping(self) -> bool:
        return True


# ==================== Store selection ====================

_store = None


def get_application_store():
    global _store
    if _store is None:
        backend = os.getenv("APPLICATION_STORE", "firestore").lower()
        _store = MemoryApplicationStore() if backend == "memory" else FirestoreApplicationStore()
        logger.info(f"Application store: {type(_store).__name__}")
    return _store


def set_application_store(store) -> None:
    global _store
    _store = store
