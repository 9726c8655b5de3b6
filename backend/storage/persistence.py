"""
Key-value persistence capability.

The template collection is read once at start-up and rewritten in full on
every change, so the only operations a backend needs are whole-value
`load(key)` and `save(key, value)`. Values must be JSON-serializable.
"""
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from domain.errors import PersistenceError
from repositories import KeyValueRepository

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def load(self, key: str) -> Optional[Any]:
        ...

    def save(self, key: str, value: Any) -> None:
        ...


class InMemoryKeyValueStore:
    """Dict-backed store. Values are copied through JSON so callers never share state."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.save(key, value)

    def load(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def save(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)


class JsonFileKeyValueStore:
    """One pretty-printed ``<key>.json`` file per key inside a directory."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def load(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Could not read {path}") from exc

    def save(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(json.dumps(value, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp_path.replace(path)


class SqlKeyValueStore:
    """Store backed by the ``kv_store`` table."""

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        if session_factory is None:
            from db import SessionLocal, init_db

            init_db()
            session_factory = SessionLocal
        self._session_factory = session_factory
        self._repo = KeyValueRepository()

    def load(self, key: str) -> Optional[Any]:
        try:
            with self._session_factory() as session:
                return self._repo.get_value(session, key)
        except (SQLAlchemyError, ValueError) as exc:
            raise PersistenceError(f"Could not read {key!r} from kv_store") from exc

    def save(self, key: str, value: Any) -> None:
        try:
            with self._session_factory() as session:
                self._repo.put_value(session, key, value)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not write {key!r} to kv_store") from exc


def build_key_value_store(config=None) -> KeyValueStore:
    """Select a persistence backend from settings."""
    if config is None:
        from settings import settings as config

    backend = config.PERSISTENCE
    if backend == "memory":
        return InMemoryKeyValueStore()
    if backend == "json":
        return JsonFileKeyValueStore(config.DATA_DIR)
    if backend != "sqlite":
        logger.warning("Unknown persistence backend %r; using sqlite", backend)
    return SqlKeyValueStore()
