"""
Recipient batch API routes.

The batch is process-local: importing a CSV replaces it, and dispatching a
recipient renders its image into the media outbox and returns the mailto
link for the client to open.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel

from api.dependencies import get_recipient_batch, get_template_store
from api.downloads import file_response
from domain.models import BatchStats, DispatchResult, Recipient
from services.compositor import output_filename, render_png
from services.recipient_batch import RecipientBatch
from services.template_store import TemplateStore

router = APIRouter()
logger = logging.getLogger(__name__)


class RecipientResponse(BaseModel):
    id: int
    name: str
    email: str
    status: str


class BatchStatsResponse(BaseModel):
    total: int
    pending: int
    sent: int
    progress_pct: float


class BatchResponse(BaseModel):
    pending: List[RecipientResponse]
    sent: List[RecipientResponse]
    stats: BatchStatsResponse
    in_flight_id: Optional[int] = None


class DispatchResponse(BaseModel):
    recipient: RecipientResponse
    text: str
    subject: str
    body: str
    mailto_url: str
    resent: bool
    artifact_path: Optional[str] = None


def recipient_to_response(recipient: Recipient) -> RecipientResponse:
    return RecipientResponse(**recipient.to_dict())


def stats_to_response(stats: BatchStats) -> BatchStatsResponse:
    return BatchStatsResponse(
        total=stats.total,
        pending=stats.pending,
        sent=stats.sent,
        progress_pct=stats.progress_pct,
    )


def batch_to_response(batch: RecipientBatch) -> BatchResponse:
    return BatchResponse(
        pending=[recipient_to_response(r) for r in batch.pending],
        sent=[recipient_to_response(r) for r in batch.sent],
        stats=stats_to_response(batch.stats()),
        in_flight_id=batch.in_flight_id,
    )


def dispatch_to_response(result: DispatchResult) -> DispatchResponse:
    return DispatchResponse(
        recipient=recipient_to_response(result.recipient),
        text=result.text,
        subject=result.subject,
        body=result.body,
        mailto_url=result.mailto_url,
        resent=result.resent,
        artifact_path=result.artifact_path,
    )


@router.post("/import", response_model=BatchResponse)
async def import_batch(
    file: UploadFile = File(...),
    batch: RecipientBatch = Depends(get_recipient_batch),
):
    """Replace the batch with the recipients of an uploaded CSV (name, email columns)."""
    content = await file.read()
    batch.import_csv(content)
    logger.info("Imported %s: %d recipients", file.filename, batch.total)
    return batch_to_response(batch)


@router.get("", response_model=BatchResponse)
async def get_batch(batch: RecipientBatch = Depends(get_recipient_batch)):
    return batch_to_response(batch)


@router.post("/recipients/{recipient_id}/dispatch", response_model=DispatchResponse)
async def dispatch_recipient(
    recipient_id: int,
    template: Optional[str] = None,
    batch: RecipientBatch = Depends(get_recipient_batch),
    store: TemplateStore = Depends(get_template_store),
):
    """
    Send the personalized image to one recipient.

    An unknown or missing `template` is reported as no template selected.
    """
    selected = store.get(template) if template else None
    return dispatch_to_response(batch.dispatch(recipient_id, selected))


@router.get("/recipients/{recipient_id}/image")
async def download_recipient_image(
    recipient_id: int,
    template: str,
    batch: RecipientBatch = Depends(get_recipient_batch),
    store: TemplateStore = Depends(get_template_store),
):
    """Download one recipient's personalized PNG without changing their status."""
    recipient = batch.require(recipient_id)
    selected = store.require(template)
    if selected.image_data is None:
        raise HTTPException(status_code=400, detail=f"Template {template!r} has no image")
    png = render_png(selected, recipient.name)
    return file_response(png, "image/png", output_filename(recipient.name))
