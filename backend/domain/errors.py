"""
Error taxonomy for templates, rendering and batch distribution.

Every failure in the core is reported as one of these exceptions so callers
(API routes, scripts) can decide whether to retry, skip or abort.
"""
from enum import Enum
from typing import Optional


class CertMailError(Exception):
    """Base class for all domain errors."""


class ValidationError(CertMailError):
    """A template or settings payload is missing required fields or is malformed."""


class SettingsImportError(ValidationError):
    """An exported settings file could not be imported."""


class PersistenceError(CertMailError):
    """A persisted blob exists but cannot be read back."""


class NotFoundError(CertMailError):
    """A template or recipient lookup failed."""


class TemplateNotFoundError(NotFoundError):
    def __init__(self, name: str):
        super().__init__(f"Template not found: {name!r}")
        self.name = name


class RecipientNotFoundError(NotFoundError):
    def __init__(self, recipient_id: int):
        super().__init__(f"Recipient not found: {recipient_id}")
        self.recipient_id = recipient_id


class BatchErrorKind(str, Enum):
    MISSING_COLUMNS = "missing_columns"
    EMPTY = "empty"
    NO_VALID_ROWS = "no_valid_rows"
    MALFORMED = "malformed"


class BatchError(CertMailError):
    """Recipient import was rejected before any recipient was created."""

    def __init__(self, kind: BatchErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


class RenderError(CertMailError):
    """The compositor could not produce an image."""


class UnrenderableImage(RenderError):
    """The base image could not be decoded."""


class TransportError(CertMailError):
    """A transport collaborator could not hand the artifact over."""


class DispatchError(CertMailError):
    """A per-recipient dispatch failed; the recipient keeps its status."""

    def __init__(self, message: str, recipient_id: Optional[int] = None):
        super().__init__(message)
        self.recipient_id = recipient_id


class NoTemplateSelected(DispatchError):
    pass


class DispatchInProgress(DispatchError):
    pass


class RenderFailed(DispatchError):
    pass


class TransportFailed(DispatchError):
    pass
