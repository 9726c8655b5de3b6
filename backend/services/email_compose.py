"""
Email composition helpers for the manual mail-client handoff.
"""
import re
from urllib.parse import quote

from domain.models import DEFAULT_EMAIL_SUBJECT, NAME_PLACEHOLDER, Template

NAME_FALLBACK = "there"

# Characters encodeURIComponent leaves alone besides alphanumerics and "_.-".
_URI_COMPONENT_SAFE = "!~*'()"

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def compose_subject(template: Template) -> str:
    return template.email_subject or DEFAULT_EMAIL_SUBJECT


def compose_body(body_template: str, name: str | None) -> str:
    """Replace every ``{{name}}`` with the recipient's name, or "there" when blank."""
    return (body_template or "").replace(NAME_PLACEHOLDER, name or NAME_FALLBACK)


def encode_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def build_mailto(address: str, subject: str, body: str) -> str:
    return f"mailto:{address}?subject={encode_component(subject)}&body={encode_component(body)}"


def is_valid_email(address: str | None) -> bool:
    return bool(address) and bool(_EMAIL_RE.match(address))
