"""
Document slot catalog and completion model.

A slot is a named document requirement of the application. Slots are either
single (one DocumentRef) or arrays (an ordered list of DocumentRef, e.g.
marksheets where index 0 is the 10th standard and index 1 the 12th).
Only the value at index 0 of an array slot takes part in required-step gating.
"""
import os
from typing import Any, List, Optional, Sequence

from dtos.application_dtos import ApplicationDocuments, DocumentRef
from services.errors import ValidationError

MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE", str(5 * 1024 * 1024)))

IMAGE_TYPES = ("jpg", "jpeg", "png")
DEFAULT_TYPES = ("pdf",) + IMAGE_TYPES
ATTACHMENT_TYPES = DEFAULT_TYPES + ("doc", "docx")


class DocumentSlot:
    def __init__(
        self,
        key: str,
        label: str,
        required: bool = False,
        is_array: bool = False,
        array_index: Optional[int] = None,
        accepted_types: Sequence[str] = DEFAULT_TYPES,
    ):
        self.key = key
        self.label = label
        self.required = required
        self.is_array = is_array
        self.array_index = array_index
        self.accepted_types = tuple(accepted_types)

    @property
    def progress_key(self) -> str:
        return progress_key(self.key, self.array_index)

    def __repr__(self):
        return f"DocumentSlot({self.progress_key!r}, required={self.required})"


DOCUMENT_SLOTS: List[DocumentSlot] = [
    DocumentSlot("id_proof", "Identity Proof", required=True),
    DocumentSlot("photograph", "Passport Photograph", required=True, accepted_types=IMAGE_TYPES),
    DocumentSlot("marksheets", "10th Marksheet", required=True, is_array=True, array_index=0),
    DocumentSlot("marksheets", "12th Marksheet", is_array=True, array_index=1),
    DocumentSlot("income_certificate", "Income Certificate", required=True),
    DocumentSlot("caste_certificate", "Caste/Community Certificate"),
    DocumentSlot("recommendation_letters", "Recommendation Letter", is_array=True, array_index=0,
                 accepted_types=ATTACHMENT_TYPES),
    DocumentSlot("additional_documents", "Additional Documents", is_array=True, array_index=0,
                 accepted_types=ATTACHMENT_TYPES),
]

ARRAY_SLOT_KEYS = {slot.key for slot in DOCUMENT_SLOTS if slot.is_array}
SLOT_KEYS = {slot.key for slot in DOCUMENT_SLOTS}


def progress_key(slot_key: str, array_index: Optional[int] = None) -> str:
    return f"{slot_key}-{array_index or 0}"


def get_slot(slot_key: str, array_index: Optional[int] = None) -> DocumentSlot:
    """Find the catalog entry for a slot key (and position, for array slots)."""
    if slot_key not in SLOT_KEYS:
        raise ValidationError(f"Unknown document slot '{slot_key}'", [slot_key])

    candidates = [slot for slot in DOCUMENT_SLOTS if slot.key == slot_key]
    for slot in candidates:
        if slot.array_index == (array_index or 0) or not slot.is_array:
            return slot
    # Array positions beyond the catalog share the rules of the first entry
    return candidates[0]


def _url_of(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, DocumentRef):
        return value.url
    if isinstance(value, dict):
        return value.get("url")
    return getattr(value, "url", None)


def is_document_slot_satisfied(value: Any) -> bool:
    """
    True iff the slot holds a DocumentRef with a non-empty url.
    For array slots only index 0 counts.
    """
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    url = _url_of(value)
    return bool(url)


def slot_value(documents: ApplicationDocuments, slot: DocumentSlot):
    value = getattr(documents, slot.key)
    if not slot.is_array:
        return value
    index = slot.array_index or 0
    return value[index] if index < len(value) else None


def missing_required_documents(documents: ApplicationDocuments) -> List[str]:
    return [
        slot.label
        for slot in DOCUMENT_SLOTS
        if slot.required and not is_document_slot_satisfied(slot_value(documents, slot))
    ]


def file_extension(filename: str) -> str:
    _, ext = os.path.splitext(filename or "")
    return ext.lower().lstrip(".")


def validate_upload(slot_key: str, filename: str, size: int, array_index: Optional[int] = None) -> DocumentSlot:
    """
    Check size and extension before any transfer happens.
    Raises ValidationError; nothing is mutated on failure.
    """
    slot = get_slot(slot_key, array_index)

    if size > MAX_FILE_SIZE:
        limit_mb = MAX_FILE_SIZE / (1024 * 1024)
        raise ValidationError(f"File size must be less than {limit_mb:.1f}MB", [slot.label])

    ext = file_extension(filename)
    if ext not in slot.accepted_types:
        raise ValidationError(
            f"File type .{ext} is not allowed for {slot.label}. Allowed types: {', '.join(slot.accepted_types)}",
            [slot.label],
        )
    return slot


def set_document(
    documents: ApplicationDocuments,
    slot_key: str,
    array_index: Optional[int],
    ref: DocumentRef,
) -> None:
    """Write a DocumentRef into its slot, replacing whatever was there."""
    if slot_key not in SLOT_KEYS:
        raise ValidationError(f"Unknown document slot '{slot_key}'", [slot_key])

    if slot_key not in ARRAY_SLOT_KEYS:
        setattr(documents, slot_key, ref)
        return

    items = list(getattr(documents, slot_key))
    if array_index is None:
        items.append(ref)
    else:
        while len(items) <= array_index:
            items.append(None)
        items[array_index] = ref
    setattr(documents, slot_key, items)
