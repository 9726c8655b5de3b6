"""
Template store.

Keeps the name -> Template mapping in memory and mirrors the whole
collection to a key-value persistence backend after every change. The
collection is small, so there is no incremental persistence: the stored
value is always the last committed mapping, as a JSON array.
"""
import json
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

from domain.errors import (
    PersistenceError,
    RenderError,
    SettingsImportError,
    TemplateNotFoundError,
    ValidationError,
)
from domain.models import (
    DEFAULT_EMAIL_BODY,
    DEFAULT_EMAIL_SUBJECT,
    DEFAULT_FONT_FAMILY,
    DEFAULT_OVERLAY_TEXT,
    DEFAULT_Y_POSITION,
    FONT_SIZE_MAX,
    FONT_SIZE_MIN,
    Y_POSITION_MAX,
    Y_POSITION_MIN,
    Template,
    TemplateSettings,
    clamp,
    normalize_keys,
)
from services.compositor import to_data_url
from storage.file_storage import safe_filename
from storage.persistence import KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATES_KEY = "certificateTemplates"
EXPORT_SUFFIX = "-settings.json"
REQUIRED_FIELDS = ("name", "font_size_px", "font_color")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _as_int(value: Any, field_name: str, error_cls=ValidationError) -> int:
    if isinstance(value, bool):
        raise error_cls(f"{field_name} must be a number, got {value!r}")
    try:
        return int(round(float(value)))
    except (TypeError, ValueError, OverflowError) as exc:
        raise error_cls(f"{field_name} must be a number, got {value!r}") from exc


def _text(data: Dict[str, Any], key: str, default: str) -> str:
    value = data.get(key)
    return default if value is None else str(value)


def validate_template(template: Template) -> Template:
    """
    Check required fields and clamp the ranged ones.

    Returns the form that gets stored: trimmed name, integer font size in
    [10, 300], integer vertical position in [0, 100], and image bytes
    embedded as a ``data:`` URL.

    Raises:
        ValidationError: a required field is missing or a number is malformed.
    """
    missing = [f for f in REQUIRED_FIELDS if _is_blank(getattr(template, f))]
    if missing:
        raise ValidationError(f"Template is missing required fields: {', '.join(missing)}")
    if not isinstance(template.name, str):
        raise ValidationError("Template name must be a string")

    image_data = template.image_data
    if isinstance(image_data, (bytes, bytearray, memoryview)):
        try:
            image_data = to_data_url(bytes(image_data))
        except RenderError as exc:
            raise ValidationError("Template image is not a readable image") from exc

    return replace(
        template,
        name=template.name.strip(),
        image_data=image_data,
        font_color=str(template.font_color),
        font_size_px=clamp(_as_int(template.font_size_px, "font_size_px"), FONT_SIZE_MIN, FONT_SIZE_MAX),
        y_position_pct=clamp(
            _as_int(template.y_position_pct, "y_position_pct"), Y_POSITION_MIN, Y_POSITION_MAX
        ),
    )


def parse_settings(payload: str | bytes) -> TemplateSettings:
    """
    Parse an exported settings file.

    Accepts both the field names written by `TemplateStore.export_settings`
    and the camelCase keys of files exported by the browser version. Any
    embedded image is ignored.

    Raises:
        SettingsImportError: unreadable JSON, or name/font size/font color missing.
    """
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = bytes(payload).decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise SettingsImportError("Settings file is not UTF-8 text") from exc
    try:
        data = json.loads(payload)
    except (TypeError, ValueError) as exc:
        raise SettingsImportError("Settings file is not valid JSON") from exc
    if not isinstance(data, dict):
        raise SettingsImportError("Settings file must contain a JSON object")

    data = normalize_keys(data)
    missing = [f for f in REQUIRED_FIELDS if _is_blank(data.get(f))]
    if missing:
        raise SettingsImportError(
            f"Invalid template file. Missing required properties: {', '.join(missing)}"
        )

    return TemplateSettings(
        name=str(data["name"]),
        font_size_px=_as_int(data["font_size_px"], "font_size_px", SettingsImportError),
        font_color=str(data["font_color"]),
        overlay_text=_text(data, "overlay_text", DEFAULT_OVERLAY_TEXT),
        y_position_pct=_as_int(
            data.get("y_position_pct", DEFAULT_Y_POSITION), "y_position_pct", SettingsImportError
        ),
        font_family=_text(data, "font_family", DEFAULT_FONT_FAMILY),
        email_subject=_text(data, "email_subject", DEFAULT_EMAIL_SUBJECT),
        email_body_template=_text(data, "email_body_template", DEFAULT_EMAIL_BODY),
    )


def export_filename(name: str) -> str:
    return f"{safe_filename(name)}{EXPORT_SUFFIX}"


class TemplateStore:
    """CRUD, persistence and settings import/export for templates."""

    def __init__(self, persistence: KeyValueStore, key: str = DEFAULT_TEMPLATES_KEY):
        self._persistence = persistence
        self._key = key
        self._templates: Dict[str, Template] = {}
        self._load()

    # ------------------------------------------------------------------ Load

    def _load(self) -> None:
        try:
            data = self._persistence.load(self._key)
        except PersistenceError:
            logger.warning("Persisted templates under %r are unreadable; starting empty", self._key, exc_info=True)
            return
        if data is None:
            return
        if not isinstance(data, list):
            logger.warning("Persisted templates under %r are not a list; starting empty", self._key)
            return

        for item in data:
            try:
                if not isinstance(item, dict):
                    raise ValidationError("Template record is not an object")
                template = validate_template(Template.from_dict(item))
            except ValidationError:
                logger.warning("Skipping invalid persisted template record", exc_info=True)
                continue
            self._templates[template.name] = template

    def _commit(self, templates: Dict[str, Template]) -> None:
        self._persistence.save(self._key, [t.to_dict() for t in templates.values()])
        self._templates = templates

    # ------------------------------------------------------------------ Query

    def get(self, name: str) -> Optional[Template]:
        return self._templates.get(name)

    def require(self, name: str) -> Template:
        template = self._templates.get(name)
        if template is None:
            raise TemplateNotFoundError(name)
        return template

    def list(self) -> List[Template]:
        return list(self._templates.values())

    def names(self) -> List[str]:
        return list(self._templates)

    def __contains__(self, name: object) -> bool:
        return name in self._templates

    def __len__(self) -> int:
        return len(self._templates)

    # ------------------------------------------------------------------ Mutations

    def upsert(self, template: Template) -> Template:
        """Validate, clamp and save a template, replacing any with the same name."""
        stored = validate_template(template)
        templates = dict(self._templates)
        replaced = stored.name in templates
        templates[stored.name] = stored
        self._commit(templates)
        logger.info("%s template %r", "Replaced" if replaced else "Saved", stored.name)
        return stored

    def delete(self, name: str) -> None:
        if name not in self._templates:
            raise TemplateNotFoundError(name)
        templates = dict(self._templates)
        del templates[name]
        self._commit(templates)
        logger.info("Deleted template %r", name)

    # ------------------------------------------------------------------ Import / export

    def export_settings(self, name: str) -> str:
        """Serialize every field of a template except its image."""
        settings_record = self.require(name).settings()
        return json.dumps(settings_record.to_dict(), ensure_ascii=False, indent=2)

    def export_filename(self, name: str) -> str:
        return export_filename(name)

    def import_settings(self, payload: str | bytes) -> TemplateSettings:
        """
        Parse a settings file without touching the store.

        Merging the result into an image-bearing template is up to the caller.
        """
        return parse_settings(payload)
