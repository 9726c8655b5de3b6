"""Map domain errors onto HTTP responses."""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from domain.errors import (
    BatchError,
    CertMailError,
    DispatchError,
    DispatchInProgress,
    NoTemplateSelected,
    NotFoundError,
    PersistenceError,
    RenderError,
    RenderFailed,
    TransportError,
    TransportFailed,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific first; the first match wins.
STATUS_CODES = (
    (NotFoundError, 404),
    (ValidationError, 400),
    (BatchError, 400),
    (NoTemplateSelected, 400),
    (DispatchInProgress, 409),
    (RenderFailed, 422),
    (RenderError, 422),
    (TransportFailed, 502),
    (TransportError, 502),
    (PersistenceError, 500),
)


def status_for(exc: CertMailError) -> int:
    for error_cls, status_code in STATUS_CODES:
        if isinstance(exc, error_cls):
            return status_code
    return 500


def error_payload(exc: CertMailError) -> dict:
    payload = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, BatchError):
        payload["kind"] = exc.kind.value
    if isinstance(exc, DispatchError) and exc.recipient_id is not None:
        payload["recipient_id"] = exc.recipient_id
    return payload


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(CertMailError)
    async def certmail_error_handler(request: Request, exc: CertMailError) -> JSONResponse:
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content=error_payload(exc))
