"""Error taxonomy shared by the service layer and the API.

Each error carries the HTTP status it maps to and a short category code the
client uses to pick a message (e.g. a specific "unsupported retailer" notice
instead of a retry prompt).
"""

from typing import Optional


class PurrViewError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    category = "internal_error"
    retryable = False

    def __init__(self, message: str, category: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if category:
            self.category = category

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": self.message,
            "errorCategory": self.category,
        }


class AuthorizationError(PurrViewError):
    """Missing or invalid session."""

    status_code = 401
    category = "unauthorized"


class NotFoundError(PurrViewError):
    """Row does not exist or is not owned by the caller."""

    status_code = 404
    category = "not_found"


class ValidationError(PurrViewError):
    """Request is well-formed but cannot be acted on."""

    status_code = 400
    category = "invalid_request"


class UnsupportedSourceError(PurrViewError):
    """Retailer layout not recognized by the extraction rules."""

    status_code = 200
    category = "unsupported_retailer"

    def __init__(
        self,
        message: str,
        category: Optional[str] = None,
        store_name: Optional[str] = None,
        support_level: Optional[str] = None,
    ):
        super().__init__(message, category)
        self.store_name = store_name
        self.support_level = support_level


class TransientFetchError(PurrViewError):
    """Network failure, timeout or non-2xx response from the retailer."""

    status_code = 200
    category = "network_error"
    retryable = True

    def __init__(
        self,
        message: str,
        category: Optional[str] = None,
        store_name: Optional[str] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message, category)
        self.store_name = store_name
        self.status = status


class StorageError(PurrViewError):
    """Database failure. The message returned to callers is always generic."""

    status_code = 500
    category = "storage_error"

    def __init__(self, detail: str = ""):
        super().__init__("A storage error occurred. Please try again later.")
        self.detail = detail
