"""
Exception hierarchy for catalog synchronization.

Exception Hierarchy:
    CatalogSyncError (base)
    ├── FetchError                  - Remote catalog call failed (transient or permanent)
    ├── ValidationError             - Upstream payload failed shape checks
    ├── PersistenceError            - Document store read/write failed
    ├── SyncAlreadyInProgressError  - Single-flight rejection, try again later
    └── NotFoundError               - Read-path lookup found nothing
"""

from typing import Any


class CatalogSyncError(Exception):
    """Base exception for all catalog sync errors."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class FetchError(CatalogSyncError):
    """
    Remote catalog request failed.

    ``transient`` is True for network errors, timeouts, 429 and 5xx
    responses; False for other 4xx responses and malformed bodies.
    """

    def __init__(
        self,
        message: str,
        details: str | None = None,
        status_code: int | None = None,
        transient: bool = True,
    ):
        super().__init__(message, details)
        self.status_code = status_code
        self.transient = transient


class ValidationError(CatalogSyncError):
    """Upstream payload is missing required fields or has malformed values."""

    def __init__(
        self,
        entity: str,
        entity_id: Any = None,
        errors: list[str] | None = None,
    ):
        self.entity = entity
        self.entity_id = entity_id
        self.errors = errors or []
        label = f"{entity} {entity_id}" if entity_id is not None else entity
        super().__init__(f"{label} validation failed", "; ".join(self.errors) or None)


class PersistenceError(CatalogSyncError):
    """Document store operation failed."""


class SyncAlreadyInProgressError(CatalogSyncError):
    """A sync run is already executing in this process."""

    def __init__(self, message: str = "Sync already in progress"):
        super().__init__(message)


class NotFoundError(CatalogSyncError):
    """Requested order or product does not exist locally."""

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} not found", f"id={entity_id}")
