"""
Outbound transport collaborators.

A dispatch hands the rendered PNG to a clipboard-like channel (which may
fail, e.g. permission denied) and then opens the user's mail client, which
is fire-and-forget.
"""
import logging
import webbrowser
from typing import Optional, Protocol

from domain.errors import TransportError
from services.email_compose import build_mailto
from storage.file_storage import FileStorage

logger = logging.getLogger(__name__)


class ClipboardTransport(Protocol):
    def copy_image(self, png_bytes: bytes) -> Optional[str]:
        """Hand the image over. Returns an optional artifact location; raises TransportError."""
        ...


class MailClient(Protocol):
    def open(self, address: str, subject: str, body: str) -> None:
        ...


class OutboxTransport:
    """
    Headless stand-in for the system clipboard.

    Rendered images are written to the media outbox where the operator (or a
    download endpoint) picks them up before pasting into the email.
    """

    def __init__(self, storage: Optional[FileStorage] = None):
        self.storage = storage or FileStorage()
        self.last_path: Optional[str] = None

    def copy_image(self, png_bytes: bytes) -> Optional[str]:
        if not png_bytes:
            raise TransportError("Nothing to copy: image is empty")
        try:
            rel_path = self.storage.save_outbox_image(png_bytes)
        except OSError as exc:
            raise TransportError(f"Could not write image to outbox: {exc}") from exc
        self.last_path = rel_path
        logger.info("Image placed in outbox at %s", rel_path)
        return rel_path


class BrowserMailClient:
    """Opens a mailto link with the operating system's default handler."""

    def open(self, address: str, subject: str, body: str) -> None:
        webbrowser.open(build_mailto(address, subject, body))
