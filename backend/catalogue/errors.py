"""
Exception hierarchy shared by the clients, the pipeline and the routes.

Every error carries the HTTP status it maps to; the application-level
handler in ``catalogue.main`` renders it as ``{error, detailedError}``.
"""
from typing import Any, Dict, Optional


class CatalogueError(Exception):
    """Base error. Unhandled subclasses surface as HTTP 500."""

    status_code: int = 500

    def __init__(self, message: str, detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.detail:
            body["detailedError"] = self.detail
        return body


class ValidationError(CatalogueError):
    """Missing or malformed request input."""

    status_code = 400


class AuthError(CatalogueError):
    """Bad credentials, or a missing, invalid or expired token."""

    status_code = 401


class NotFoundError(CatalogueError):
    status_code = 404


class ExtractionError(CatalogueError):
    """The hosted model call failed or produced no text."""


class ExtractionParseError(ExtractionError):
    """The model reply was not a JSON object."""


class StorageError(CatalogueError):
    """Uploading to the object store failed."""


class EntityLookupError(CatalogueError):
    """The resolver could not read the table."""


class EntityCreationError(CatalogueError):
    """The resolver's insert failed or returned no row."""


class ProductCreationError(CatalogueError):
    """The product insert failed; nothing after it runs."""


# Errors a route lets through unchanged instead of wrapping as a 500
CLIENT_ERRORS = (ValidationError, AuthError, NotFoundError)
