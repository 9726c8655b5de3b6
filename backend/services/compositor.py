"""
Certificate compositor using Pillow.

Draws one line of personalized text over a base image and encodes the
result as PNG. Rendering is pure: identical base image bytes, request and
display name give pixel-identical output. Fonts are resolved synchronously
from a finite candidate list before anything is drawn, so a missing face
degrades to its fallback class instead of racing or blocking.
"""
import base64
import binascii
import io
import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, List, Tuple
from urllib.parse import unquote_to_bytes

from PIL import Image, ImageColor, ImageDraw, ImageFont, ImageOps, UnidentifiedImageError

from domain.errors import RenderError, UnrenderableImage
from domain.models import DEFAULT_FONT_CLASS, FONT_FALLBACKS, RenderRequest, Template
from settings import settings
from storage.file_storage import safe_filename

logger = logging.getLogger(__name__)

# Font files for the editor's named faces, looked up in settings.FONTS_DIR
# first and then on the system font path.
FONT_FILES = {
    "Great Vibes": "GreatVibes-Regular.ttf",
    "Poppins": "Poppins-Regular.ttf",
    "Merriweather": "Merriweather-Regular.ttf",
    "Playfair Display": "PlayfairDisplay-Regular.ttf",
}

# Faces tried, in order, for each generic class.
GENERIC_FONT_FILES = {
    "cursive": ("DejaVuSerif-Italic.ttf", "LiberationSerif-Italic.ttf", "Times New Roman Italic.ttf"),
    "serif": ("DejaVuSerif.ttf", "LiberationSerif-Regular.ttf", "Times New Roman.ttf"),
    "sans-serif": ("DejaVuSans.ttf", "LiberationSans-Regular.ttf", "Arial.ttf"),
}

DOWNLOAD_PREFIX = "Personalized-"
DOWNLOAD_FALLBACK_NAME = "personalized_image"

_LINE_BREAKS = re.compile(r"[\r\n\t\f\v]")


def _named_candidates(family: str) -> List[str]:
    filename = FONT_FILES.get(family)
    if not filename:
        return []
    return [str(Path(settings.FONTS_DIR) / filename), filename]


@lru_cache(maxsize=128)
def resolve_font(family: str, size: int) -> ImageFont.FreeTypeFont:
    """
    Realize `family` at `size` pixels.

    Falls back to the generic class from FONT_FALLBACKS, then to Pillow's
    bundled scalable default. Never raises for a missing font.
    """
    for candidate in _named_candidates(family):
        try:
            return ImageFont.truetype(candidate, size)
        except OSError:
            continue

    generic = FONT_FALLBACKS.get(family, DEFAULT_FONT_CLASS)
    for candidate in GENERIC_FONT_FILES[generic]:
        try:
            font = ImageFont.truetype(candidate, size)
        except OSError:
            continue
        logger.warning("Font %r unavailable; using %s face %s", family, generic, candidate)
        return font

    logger.warning("Font %r unavailable and no %s face found; using Pillow default", family, generic)
    return ImageFont.load_default(size=size)


def decode_image_data(image_data: Any) -> bytes:
    """Turn a raster reference (bytes or ``data:`` URL) into encoded image bytes."""
    if isinstance(image_data, (bytes, bytearray, memoryview)):
        return bytes(image_data)
    if isinstance(image_data, str) and image_data.startswith("data:"):
        header, sep, payload = image_data.partition(",")
        if not sep:
            raise UnrenderableImage("Malformed data URL")
        if header.endswith(";base64"):
            try:
                return base64.b64decode(payload, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise UnrenderableImage("Data URL payload is not valid base64") from exc
        return unquote_to_bytes(payload)
    raise UnrenderableImage(f"Unsupported image reference: {type(image_data).__name__}")


def load_image(image_data: Any) -> Image.Image:
    """Decode a raster reference into an upright Pillow image."""
    if isinstance(image_data, Image.Image):
        return image_data
    raw = decode_image_data(image_data)
    if not raw:
        raise UnrenderableImage("Image data is empty")
    try:
        img = Image.open(io.BytesIO(raw))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
        raise UnrenderableImage("Base image could not be decoded") from exc
    return ImageOps.exif_transpose(img)


def to_data_url(image_bytes: bytes) -> str:
    """Embed encoded image bytes as a ``data:`` URL, sniffing the MIME type."""
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            mime = Image.MIME.get(img.format or "", "application/octet-stream")
    except (UnidentifiedImageError, OSError) as exc:
        raise UnrenderableImage("Image could not be identified") from exc
    encoded = base64.b64encode(image_bytes).decode("ascii")
    return f"data:{mime};base64,{encoded}"


def resolve_text(display_name: str | None, overlay_text: str) -> str:
    """The recipient's trimmed name, or the template's default text when blank."""
    name = (display_name or "").strip()
    return name or overlay_text


def drawn_text(display_name: str | None, overlay_text: str) -> str:
    """The text `render` draws: `resolve_text` on a single line."""
    return _LINE_BREAKS.sub(" ", resolve_text(display_name, overlay_text or ""))


def text_anchor(size: Tuple[int, int], y_position_pct: float) -> Tuple[float, float]:
    """Center point of the text: horizontal middle, `y_position_pct` of the height."""
    width, height = size
    return width / 2, height * y_position_pct / 100


def render(base_image: Any, request: RenderRequest, display_name: str | None) -> Image.Image:
    """
    Composite personalized text over `base_image`.

    The output has exactly the base image's size; the text is centered both
    ways on `text_anchor` and filled with `request.font_color` as given.

    Raises:
        UnrenderableImage: the base image cannot be decoded.
        RenderError: the color cannot be parsed.
    """
    base = load_image(base_image)
    try:
        fill = ImageColor.getcolor(request.font_color, "RGBA")
    except (ValueError, AttributeError) as exc:
        raise RenderError(f"Unsupported font color: {request.font_color!r}") from exc

    # convert() always returns a new image, so the caller's base is never drawn on
    canvas = base.convert("RGBA")

    text = drawn_text(display_name, request.overlay_text)
    if text:
        font = resolve_font(request.font_family, max(1, int(request.font_size_px)))
        draw = ImageDraw.Draw(canvas)
        draw.text(text_anchor(canvas.size, request.y_position_pct), text, font=font, fill=fill, anchor="mm")
    return canvas


def encode_png(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def render_template(template: Template, display_name: str | None) -> Image.Image:
    return render(template.image_data, template.render_request(), display_name)


def render_png(template: Template, display_name: str | None) -> bytes:
    """Render a template for one recipient and encode it as PNG."""
    return encode_png(render_template(template, display_name))


def output_filename(display_name: str | None) -> str:
    safe = safe_filename(display_name or "") or DOWNLOAD_FALLBACK_NAME
    return f"{DOWNLOAD_PREFIX}{safe}.png"
