"""
Key-value repository backed by SQLAlchemy/SQLite.
"""
from datetime import datetime
from typing import Any, Optional
from sqlalchemy import update
from sqlalchemy.orm import Session

from repositories.models import KeyValueORM


class KeyValueRepository:
    """Whole-value reads and writes keyed by a string."""

    def get_value(self, session: Session, key: str) -> Optional[Any]:
        orm = session.get(KeyValueORM, key)
        return orm.value if orm else None

    def put_value(self, session: Session, key: str, value: Any) -> None:
        # Update in place so an unreadable stored value never has to be loaded.
        now = datetime.utcnow()
        result = session.execute(
            update(KeyValueORM).where(KeyValueORM.key == key).values(value=value, updated_at=now)
        )
        if result.rowcount == 0:
            session.add(KeyValueORM(key=key, value=value, updated_at=now))
        session.commit()
