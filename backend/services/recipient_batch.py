"""
Recipient batch distribution.

Owns the pending/sent partition of an imported mailing list and the
per-recipient dispatch sequence:

    render -> copy to clipboard-like transport -> open mail client -> mark sent

A recipient moves to SENT only after the image has been handed to the
transport. The mail client cannot report back, so its outcome never gates
the transition. Render and transport failures leave the recipient exactly
as it was, so the same dispatch can simply be retried.

Only one recipient may be in flight at a time; a second dispatch while one
is running is rejected with DispatchInProgress rather than queued.
"""
import contextlib
import logging
from typing import Any, Callable, Iterable, Iterator, List, Mapping, Optional, Sequence

from domain.errors import (
    DispatchInProgress,
    NoTemplateSelected,
    RecipientNotFoundError,
    RenderFailed,
    TransportFailed,
    ValidationError,
)
from domain.models import BatchStats, DispatchResult, Recipient, RecipientStatus, Template
from services.batch_import import parse_csv, validate_rows
from services.compositor import drawn_text, render_png
from services.email_compose import build_mailto, compose_body, compose_subject
from services.template_store import validate_template
from services.transport import ClipboardTransport, MailClient

logger = logging.getLogger(__name__)

Renderer = Callable[[Template, str], bytes]


class RecipientBatch:
    """Pending/sent state machine for one imported recipient list."""

    def __init__(
        self,
        renderer: Renderer = render_png,
        clipboard: Optional[ClipboardTransport] = None,
        mail_client: Optional[MailClient] = None,
    ):
        self._renderer = renderer
        self._clipboard = clipboard
        self._mail_client = mail_client
        self._pending: List[Recipient] = []
        self._sent: List[Recipient] = []
        # Transient busy marker; never persisted
        self._in_flight_id: Optional[int] = None

    # ------------------------------------------------------------------ Import

    def import_rows(
        self,
        rows: Sequence[Mapping[str, Any]],
        fieldnames: Optional[Iterable[str]] = None,
    ) -> List[Recipient]:
        """
        Replace the whole batch with recipients built from `rows`.

        Validation happens first; on BatchError the current batch is untouched.
        """
        recipients = validate_rows(rows, fieldnames)
        self._pending = sorted(recipients, key=lambda r: r.id)
        self._sent = []
        logger.info("Loaded %d recipients", len(recipients))
        return list(self._pending)

    def import_csv(self, text: str | bytes) -> List[Recipient]:
        return self.import_rows(parse_csv(text))

    # ------------------------------------------------------------------ Query

    @property
    def pending(self) -> List[Recipient]:
        return list(self._pending)

    @property
    def sent(self) -> List[Recipient]:
        return list(self._sent)

    @property
    def recipients(self) -> List[Recipient]:
        return sorted(self._pending + self._sent, key=lambda r: r.id)

    @property
    def in_flight_id(self) -> Optional[int]:
        return self._in_flight_id

    @property
    def total(self) -> int:
        return len(self._pending) + len(self._sent)

    @property
    def progress_pct(self) -> float:
        total = self.total
        if total == 0:
            return 0.0
        return 100.0 * len(self._sent) / total

    def stats(self) -> BatchStats:
        return BatchStats(
            total=self.total,
            pending=len(self._pending),
            sent=len(self._sent),
            progress_pct=self.progress_pct,
        )

    def get(self, recipient_id: int) -> Optional[Recipient]:
        for recipient in self._pending + self._sent:
            if recipient.id == recipient_id:
                return recipient
        return None

    def require(self, recipient_id: int) -> Recipient:
        recipient = self.get(recipient_id)
        if recipient is None:
            raise RecipientNotFoundError(recipient_id)
        return recipient

    # ------------------------------------------------------------------ Dispatch

    @contextlib.contextmanager
    def _in_flight(self, recipient_id: int) -> Iterator[None]:
        self._in_flight_id = recipient_id
        try:
            yield
        finally:
            self._in_flight_id = None

    def _mark_sent(self, recipient: Recipient) -> Recipient:
        sent = recipient.mark_sent()
        self._pending = [r for r in self._pending if r.id != recipient.id]
        self._sent = sorted(self._sent + [sent], key=lambda r: r.id)
        return sent

    def dispatch(self, recipient_id: int, selected_template: Optional[Template]) -> DispatchResult:
        """
        Render, hand over and mail the personalized image for one recipient.

        Re-sending to an already SENT recipient repeats the handoff without
        changing the batch.

        Raises:
            NoTemplateSelected: `selected_template` is missing or invalid.
            RecipientNotFoundError: no recipient with this id.
            DispatchInProgress: another recipient is currently in flight.
            RenderFailed: the image could not be rendered.
            TransportFailed: the image could not be handed to the transport.
        """
        if selected_template is None:
            raise NoTemplateSelected("Please select a valid template first.", recipient_id)
        try:
            template = validate_template(selected_template)
        except ValidationError as exc:
            raise NoTemplateSelected("Please select a valid template first.", recipient_id) from exc

        recipient = self.require(recipient_id)
        if self._in_flight_id is not None:
            raise DispatchInProgress(
                f"Recipient {self._in_flight_id} is still being processed", recipient_id
            )

        with self._in_flight(recipient_id):
            try:
                png = self._renderer(template, recipient.name)
            except Exception as exc:
                logger.warning("Rendering failed for recipient %s", recipient_id, exc_info=True)
                raise RenderFailed(f"Failed to generate image for {recipient.name}", recipient_id) from exc

            if self._clipboard is None:
                raise TransportFailed("No clipboard transport is configured", recipient_id)
            try:
                artifact_path = self._clipboard.copy_image(png)
            except Exception as exc:
                logger.warning("Could not copy image for recipient %s", recipient_id, exc_info=True)
                raise TransportFailed(
                    f"Could not copy the image for {recipient.name}. The action may have been blocked.",
                    recipient_id,
                ) from exc

            subject = compose_subject(template)
            body = compose_body(template.email_body_template, recipient.name)
            if self._mail_client is not None:
                try:
                    self._mail_client.open(recipient.email, subject, body)
                except Exception:
                    logger.warning("Mail client did not open for %s", recipient.email, exc_info=True)

            resent = recipient.status is RecipientStatus.SENT
            if not resent:
                recipient = self._mark_sent(recipient)
            logger.info("%s image to recipient %s", "Re-sent" if resent else "Sent", recipient_id)

            return DispatchResult(
                recipient=recipient,
                text=drawn_text(recipient.name, template.overlay_text),
                png=png,
                subject=subject,
                body=body,
                mailto_url=build_mailto(recipient.email, subject, body),
                resent=resent,
                artifact_path=artifact_path,
            )
