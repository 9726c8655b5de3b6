"""
Process-wide state shared by the API routes.

Templates persist through the configured key-value backend. The recipient
batch lives in memory for the life of the process; rendered images are
handed to the media outbox in place of a system clipboard.
"""
from functools import lru_cache

from services.recipient_batch import RecipientBatch
from services.template_store import TemplateStore
from services.transport import OutboxTransport
from settings import settings
from storage.file_storage import FileStorage
from storage.persistence import build_key_value_store


@lru_cache(maxsize=1)
def get_storage() -> FileStorage:
    return FileStorage(settings.MEDIA_ROOT)


@lru_cache(maxsize=1)
def get_template_store() -> TemplateStore:
    return TemplateStore(build_key_value_store(), settings.TEMPLATES_KEY)


@lru_cache(maxsize=1)
def get_recipient_batch() -> RecipientBatch:
    return RecipientBatch(clipboard=OutboxTransport(get_storage()))
