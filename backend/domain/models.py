"""
Core domain models for the certificate mailer.
These are framework-agnostic and can be used across all services.
"""
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional


FONT_SIZE_MIN = 10
FONT_SIZE_MAX = 300
Y_POSITION_MIN = 0
Y_POSITION_MAX = 100

# Fonts offered by the template editor, with the generic class used when the
# named face cannot be realized.
SUPPORTED_FONTS = ("Great Vibes", "Poppins", "Merriweather", "Playfair Display")
FONT_FALLBACKS = {
    "Great Vibes": "cursive",
    "Poppins": "sans-serif",
    "Merriweather": "serif",
    "Playfair Display": "serif",
}
DEFAULT_FONT_CLASS = "sans-serif"

NAME_PLACEHOLDER = "{{name}}"
DEFAULT_OVERLAY_TEXT = "Jane Doe"
DEFAULT_FONT_SIZE = 80
DEFAULT_FONT_COLOR = "#000000"
DEFAULT_Y_POSITION = 50
DEFAULT_FONT_FAMILY = "Great Vibes"
DEFAULT_EMAIL_SUBJECT = "A personalized image for you"
DEFAULT_EMAIL_BODY = (
    "Hi {{name}},\n\nHere is your personalized image. Just paste it into this email!\n\nBest regards,"
)

# Keys used by settings files exported from the browser version of the tool.
LEGACY_KEYS = {
    "imageDataUrl": "image_data",
    "textOnImage": "overlay_text",
    "fontSize": "font_size_px",
    "fontColor": "font_color",
    "yPosition": "y_position_pct",
    "selectedFont": "font_family",
    "subject": "email_subject",
    "emailBodyTemplate": "email_body_template",
}


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def normalize_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    """Map legacy camelCase keys onto field names; explicit field names win."""
    result = {LEGACY_KEYS.get(k, k): v for k, v in data.items() if k in LEGACY_KEYS}
    result.update({k: v for k, v in data.items() if k not in LEGACY_KEYS})
    return result


@dataclass(frozen=True)
class RenderRequest:
    """Style fields handed to the compositor alongside the base image."""
    overlay_text: str
    font_size_px: int
    font_color: str
    y_position_pct: int
    font_family: str


@dataclass(frozen=True)
class TemplateSettings:
    """
    Everything a template carries except its image.

    This is the shape of an exported settings file. Merging it back into an
    image-bearing Template is an explicit caller decision (see `with_image`).
    """
    name: str
    font_size_px: int
    font_color: str
    overlay_text: str = DEFAULT_OVERLAY_TEXT
    y_position_pct: int = DEFAULT_Y_POSITION
    font_family: str = DEFAULT_FONT_FAMILY
    email_subject: str = DEFAULT_EMAIL_SUBJECT
    email_body_template: str = DEFAULT_EMAIL_BODY

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def with_image(self, image_data: Any) -> "Template":
        return Template(image_data=image_data, **asdict(self))


@dataclass(frozen=True)
class Template:
    """
    One personalization configuration: a base image plus text and email styling.

    `image_data` is normally a ``data:`` URL so that the whole collection can be
    persisted as JSON; raw encoded bytes are accepted by the compositor too.
    """
    name: str
    image_data: Any
    font_size_px: int
    font_color: str
    overlay_text: str = DEFAULT_OVERLAY_TEXT
    y_position_pct: int = DEFAULT_Y_POSITION
    font_family: str = DEFAULT_FONT_FAMILY
    email_subject: str = DEFAULT_EMAIL_SUBJECT
    email_body_template: str = DEFAULT_EMAIL_BODY

    def settings(self) -> TemplateSettings:
        data = asdict(self)
        data.pop("image_data")
        return TemplateSettings(**data)

    def render_request(self) -> RenderRequest:
        return RenderRequest(
            overlay_text=self.overlay_text,
            font_size_px=self.font_size_px,
            font_color=self.font_color,
            y_position_pct=self.y_position_pct,
            font_family=self.font_family,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Template":
        data = normalize_keys(data)
        return cls(
            name=data.get("name"),
            image_data=data.get("image_data"),
            font_size_px=data.get("font_size_px"),
            font_color=data.get("font_color"),
            overlay_text=data.get("overlay_text") or "",
            y_position_pct=data.get("y_position_pct", DEFAULT_Y_POSITION),
            font_family=data.get("font_family") or DEFAULT_FONT_FAMILY,
            email_subject=data.get("email_subject") or "",
            email_body_template=data.get("email_body_template") or "",
        )


class RecipientStatus(str, Enum):
    """Dispatch status of a recipient. SENT is terminal."""
    PENDING = "pending"
    SENT = "sent"


@dataclass(frozen=True)
class Recipient:
    """
    A row of an imported mailing list.

    `id` is the row's zero-based ingestion index and never changes or gets
    reused for the life of the batch.
    """
    id: int
    name: str
    email: str
    status: RecipientStatus = RecipientStatus.PENDING

    def mark_sent(self) -> "Recipient":
        return replace(self, status=RecipientStatus.SENT)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class BatchStats:
    total: int
    pending: int
    sent: int
    progress_pct: float


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of a successful dispatch."""
    recipient: Recipient
    text: str
    png: bytes
    subject: str
    body: str
    mailto_url: str
    resent: bool = False
    artifact_path: Optional[str] = None
