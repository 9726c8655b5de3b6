"""
Single-image preview session (the template editor).

Holds the editor's working state: a base image, the name being previewed
and the style/email fields. Nothing redraws implicitly: callers invoke
`on_template_or_image_changed()` after changing any field, and the methods
below that change fields call it themselves.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from domain.errors import TransportError, ValidationError
from domain.models import (
    DEFAULT_EMAIL_BODY,
    DEFAULT_EMAIL_SUBJECT,
    DEFAULT_FONT_COLOR,
    DEFAULT_FONT_FAMILY,
    DEFAULT_FONT_SIZE,
    DEFAULT_OVERLAY_TEXT,
    DEFAULT_Y_POSITION,
    FONT_SIZE_MAX,
    FONT_SIZE_MIN,
    Y_POSITION_MAX,
    Y_POSITION_MIN,
    RenderRequest,
    Template,
    TemplateSettings,
    clamp,
)
from services.compositor import encode_png, load_image, output_filename, render, to_data_url
from services.email_compose import build_mailto, compose_body, is_valid_email
from services.transport import ClipboardTransport, MailClient

logger = logging.getLogger(__name__)


@dataclass
class PreviewSession:
    image_data: Any = None
    display_name: str = DEFAULT_OVERLAY_TEXT
    recipient_email: str = ""
    font_size_px: int = DEFAULT_FONT_SIZE
    font_color: str = DEFAULT_FONT_COLOR
    y_position_pct: int = DEFAULT_Y_POSITION
    font_family: str = DEFAULT_FONT_FAMILY
    email_subject: str = DEFAULT_EMAIL_SUBJECT
    email_body_template: str = DEFAULT_EMAIL_BODY
    preview_png: Optional[bytes] = field(default=None, repr=False)

    def render_request(self) -> RenderRequest:
        return RenderRequest(
            overlay_text=self.display_name,
            font_size_px=self.font_size_px,
            font_color=self.font_color,
            y_position_pct=self.y_position_pct,
            font_family=self.font_family,
        )

    def on_template_or_image_changed(self) -> Optional[bytes]:
        """Redraw the preview. Returns the PNG, or None while no image is loaded."""
        if self.image_data is None:
            self.preview_png = None
            return None
        image = render(self.image_data, self.render_request(), self.display_name)
        self.preview_png = encode_png(image)
        return self.preview_png

    # ------------------------------------------------------------------ Editing

    def set_image(self, image_data: Any) -> Optional[bytes]:
        """Load a new base image; undecodable data raises UnrenderableImage."""
        load_image(image_data)
        if isinstance(image_data, (bytes, bytearray, memoryview)):
            image_data = to_data_url(bytes(image_data))
        self.image_data = image_data
        return self.on_template_or_image_changed()

    def adjust_font_size(self, delta: int) -> int:
        self.font_size_px = clamp(self.font_size_px + delta, FONT_SIZE_MIN, FONT_SIZE_MAX)
        self.on_template_or_image_changed()
        return self.font_size_px

    def adjust_y_position(self, delta: int) -> int:
        self.y_position_pct = clamp(self.y_position_pct + delta, Y_POSITION_MIN, Y_POSITION_MAX)
        self.on_template_or_image_changed()
        return self.y_position_pct

    def _apply(self, settings: TemplateSettings) -> None:
        self.display_name = settings.overlay_text
        self.font_size_px = settings.font_size_px
        self.font_color = settings.font_color
        self.y_position_pct = settings.y_position_pct
        self.font_family = settings.font_family
        self.email_subject = settings.email_subject or DEFAULT_EMAIL_SUBJECT
        self.email_body_template = settings.email_body_template

    def load_template(self, template: Template) -> Optional[bytes]:
        self._apply(template.settings())
        self.image_data = template.image_data
        return self.on_template_or_image_changed()

    def apply_settings(self, settings: TemplateSettings) -> Optional[bytes]:
        """Apply imported settings to the current image."""
        self._apply(settings)
        logger.info("Applied settings from %r to the current image", settings.name)
        return self.on_template_or_image_changed()

    def to_template(self, name: str) -> Template:
        name = (name or "").strip()
        if not name or self.image_data is None:
            raise ValidationError("Please provide a template name and upload an image before saving.")
        return Template(
            name=name,
            image_data=self.image_data,
            overlay_text=self.display_name,
            font_size_px=self.font_size_px,
            font_color=self.font_color,
            y_position_pct=self.y_position_pct,
            font_family=self.font_family,
            email_subject=self.email_subject,
            email_body_template=self.email_body_template,
        )

    # ------------------------------------------------------------------ Output

    def _current_png(self) -> bytes:
        png = self.preview_png or self.on_template_or_image_changed()
        if png is None:
            raise ValidationError("Please upload an image first.")
        return png

    def download_filename(self) -> str:
        return output_filename(self.display_name)

    def copy_image(self, clipboard: ClipboardTransport) -> Optional[str]:
        png = self._current_png()
        try:
            return clipboard.copy_image(png)
        except TransportError:
            raise
        except Exception as exc:
            raise TransportError("Could not copy image to clipboard") from exc

    def send_via_email(self, clipboard: ClipboardTransport, mail_client: Optional[MailClient] = None) -> str:
        """
        Copy the preview and open a mail to `recipient_email`.

        Returns the mailto URL. Raises ValidationError for a malformed address
        and TransportError when the copy fails (the mail client is not opened).
        A mail client that fails to open is logged and does not fail the send.
        """
        if not is_valid_email(self.recipient_email):
            raise ValidationError(f"Invalid recipient email: {self.recipient_email!r}")
        self.copy_image(clipboard)
        body = compose_body(self.email_body_template, self.display_name)
        if mail_client is not None:
            try:
                mail_client.open(self.recipient_email, self.email_subject, body)
            except Exception:
                logger.warning("Mail client did not open for %s", self.recipient_email, exc_info=True)
        return build_mailto(self.recipient_email, self.email_subject, body)
