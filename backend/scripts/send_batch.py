"""Send a saved template to every recipient of a CSV file.

Usage (from backend/):
    python -m scripts.send_batch --csv recipients.csv --template "Course Certificate" [--limit 10] [--open-mail] [--media-root media]

Each recipient's image is written to <media-root>/outbox/ and the matching
mailto link is printed (or opened with --open-mail). A failed recipient is
reported and skipped; the exit code is 1 if any recipient failed.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from domain.errors import BatchError, DispatchError, NotFoundError
from services.recipient_batch import RecipientBatch
from services.template_store import TemplateStore
from services.transport import BrowserMailClient, OutboxTransport
from settings import settings
from storage.file_storage import FileStorage
from storage.persistence import build_key_value_store

logger = logging.getLogger("send_batch")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Send a personalized image to every recipient in a CSV file.")
    parser.add_argument("--csv", required=True, help="CSV file with name and email columns.")
    parser.add_argument("--template", required=True, help="Name of a saved template.")
    parser.add_argument("--limit", type=int, default=None, help="Only send to the first N pending recipients.")
    parser.add_argument(
        "--open-mail",
        action="store_true",
        default=settings.OPEN_MAIL_CLIENT,
        help="Open each mailto link with the system mail client.",
    )
    parser.add_argument("--media-root", default=str(settings.MEDIA_ROOT))
    return parser


def main(argv: Optional[List[str]] = None, store: Optional[TemplateStore] = None) -> int:
    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(message)s")
    args = build_parser().parse_args(argv)

    if store is None:
        store = TemplateStore(build_key_value_store(), settings.TEMPLATES_KEY)
    template = store.get(args.template)
    if template is None:
        print(f"Template not found: {args.template!r}. Saved templates: {', '.join(store.names()) or '(none)'}")
        return 2

    batch = RecipientBatch(
        clipboard=OutboxTransport(FileStorage(args.media_root)),
        mail_client=BrowserMailClient() if args.open_mail else None,
    )
    try:
        batch.import_csv(Path(args.csv).read_bytes())
    except OSError as exc:
        print(f"Could not read {args.csv}: {exc}")
        return 2
    except BatchError as exc:
        print(f"Import failed ({exc.kind.value}): {exc}")
        return 2

    queue = batch.pending
    if args.limit is not None:
        queue = queue[: max(0, args.limit)]

    failures = 0
    for recipient in queue:
        try:
            result = batch.dispatch(recipient.id, template)
        except (DispatchError, NotFoundError) as exc:
            failures += 1
            logger.error("Failed for %s <%s>: %s", recipient.name, recipient.email, exc)
            continue
        print(f"[{result.recipient.id}] {result.recipient.name} <{result.recipient.email}> -> {result.artifact_path}")
        if not args.open_mail:
            print(f"    {result.mailto_url}")

    stats = batch.stats()
    print(f"Sent {stats.sent} of {stats.total} ({stats.progress_pct:.0f}%), {failures} failed, {stats.pending} pending")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
