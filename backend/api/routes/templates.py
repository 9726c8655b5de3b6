"""
Template API routes.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel

from api.dependencies import get_template_store
from api.downloads import file_response
from domain.models import (
    DEFAULT_EMAIL_BODY,
    DEFAULT_EMAIL_SUBJECT,
    DEFAULT_FONT_FAMILY,
    DEFAULT_OVERLAY_TEXT,
    DEFAULT_Y_POSITION,
    Template,
    TemplateSettings,
)
from services.compositor import output_filename, render_png
from services.template_store import TemplateStore

router = APIRouter()


class TemplatePayload(BaseModel):
    image_data: Optional[str] = None
    font_size_px: Optional[float] = None
    font_color: Optional[str] = None
    overlay_text: str = DEFAULT_OVERLAY_TEXT
    y_position_pct: float = DEFAULT_Y_POSITION
    font_family: str = DEFAULT_FONT_FAMILY
    email_subject: str = DEFAULT_EMAIL_SUBJECT
    email_body_template: str = DEFAULT_EMAIL_BODY


class TemplateSettingsResponse(BaseModel):
    name: str
    font_size_px: int
    font_color: str
    overlay_text: str
    y_position_pct: int
    font_family: str
    email_subject: str
    email_body_template: str


class TemplateSummary(TemplateSettingsResponse):
    has_image: bool


class TemplateResponse(TemplateSettingsResponse):
    image_data: Optional[str] = None


def settings_to_response(settings: TemplateSettings) -> TemplateSettingsResponse:
    return TemplateSettingsResponse(**settings.to_dict())


def template_to_summary(template: Template) -> TemplateSummary:
    return TemplateSummary(**template.settings().to_dict(), has_image=template.image_data is not None)


def template_to_response(template: Template) -> TemplateResponse:
    return TemplateResponse(**template.to_dict())


@router.get("", response_model=List[TemplateSummary])
async def list_templates(store: TemplateStore = Depends(get_template_store)):
    """List saved templates without their images."""
    return [template_to_summary(t) for t in store.list()]


@router.post("/import", response_model=TemplateSettingsResponse)
async def import_template_settings(request: Request, store: TemplateStore = Depends(get_template_store)):
    """
    Parse an exported settings file posted as the request body.

    Nothing is saved; the client applies the settings to an image and PUTs
    the result.
    """
    payload = await request.body()
    if not payload:
        raise HTTPException(status_code=400, detail="Request body is empty")
    return settings_to_response(store.import_settings(payload))


@router.get("/{name}", response_model=TemplateResponse)
async def get_template(name: str, store: TemplateStore = Depends(get_template_store)):
    return template_to_response(store.require(name))


@router.put("/{name}", response_model=TemplateResponse)
async def save_template(
    name: str,
    payload: TemplatePayload,
    store: TemplateStore = Depends(get_template_store),
):
    """Create or replace a template. Font size and position are clamped."""
    template = Template(name=name, **payload.model_dump())
    return template_to_response(store.upsert(template))


@router.delete("/{name}", status_code=204)
async def delete_template(name: str, store: TemplateStore = Depends(get_template_store)):
    store.delete(name)
    return Response(status_code=204)


@router.get("/{name}/export")
async def export_template_settings(name: str, store: TemplateStore = Depends(get_template_store)):
    """Download a template's settings (everything but the image) as JSON."""
    return file_response(store.export_settings(name), "application/json", store.export_filename(name))


@router.get("/{name}/preview")
async def preview_template(
    name: str,
    display_name: str = "",
    store: TemplateStore = Depends(get_template_store),
):
    """Render the template for `display_name` (blank uses the template's own text)."""
    template = store.require(name)
    if template.image_data is None:
        raise HTTPException(status_code=400, detail=f"Template {name!r} has no image")
    png = render_png(template, display_name)
    return file_response(png, "image/png", output_filename(display_name), disposition="inline")
