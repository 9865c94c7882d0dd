from typing import List, Optional


class ApplicationError(Exception):
    """Base class for application domain errors."""


class ValidationError(ApplicationError):
    """A required field, document or essay is missing for the attempted action."""
    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []


class InvalidTransition(ApplicationError):
    """Review action targets an application that is not in a reviewable status."""
    def __init__(self, app_id: str, current_status: Optional[str], target_status: Optional[str] = None):
        self.app_id = app_id
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Application {app_id} cannot move from '{current_status}' to '{target_status}'"
        )


class ApplicationNotFound(ApplicationError):
    def __init__(self, app_id: str):
        self.app_id = app_id
        super().__init__(f"Application {app_id} not found")


class UploadError(ApplicationError):
    """Storage failure while uploading a document into a slot."""
    def __init__(self, message: str, slot_key: Optional[str] = None):
        super().__init__(message)
        self.slot_key = slot_key


class NotificationError(ApplicationError):
    """Email delivery failure. Logged, never surfaced as a failed review."""


class ScholarshipNotFound(ApplicationError):
    """The scholarship does not exist or is not accepting applications."""
    def __init__(self, scholarship_id: str):
        self.scholarship_id = scholarship_id
        super().__init__(f"Scholarship {scholarship_id} not found or not active")
