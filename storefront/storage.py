from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Callable, Dict, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import StorageCorrupt
from .models import StorageEntry

logger = logging.getLogger(__name__)


class KeyValueStore:
    """Durable string key/value store shared by every execution context.

    Each instance is one execution context: it stamps its writes with its own
    ``context_id`` so a watcher can tell local writes from writes made by other
    contexts. There is no locking between contexts; the last writer wins.
    """

    def __init__(self, session_factory: Callable[[], Session], context_id: Optional[str] = None):
        self._session_factory = session_factory
        self.context_id = context_id or uuid.uuid4().hex

    def get_item(self, key: str) -> Optional[str]:
        db = self._session_factory()
        try:
            entry = db.get(StorageEntry, key)
            if entry is None:
                return None
            return entry.value
        finally:
            db.close()

    def set_item(self, key: str, value: Optional[str]) -> int:
        """Write ``value`` (``None`` removes the key) and return the new revision."""
        db = self._session_factory()
        try:
            try:
                entry = db.get(StorageEntry, key)
                if entry is None:
                    entry = StorageEntry(key=key, value=value, revision=1, writer_id=self.context_id)
                    db.add(entry)
                else:
                    entry.value = value
                    entry.revision = (entry.revision or 0) + 1
                    entry.writer_id = self.context_id
                db.commit()
            except IntegrityError:
                # another context created the key between our read and insert
                db.rollback()
                entry = db.get(StorageEntry, key)
                entry.value = value
                entry.revision = (entry.revision or 0) + 1
                entry.writer_id = self.context_id
                db.commit()
            return int(entry.revision)
        finally:
            db.close()

    def remove_item(self, key: str) -> None:
        self.set_item(key, None)

    def revisions(self) -> Dict[str, Tuple[int, Optional[str]]]:
        """Return ``{key: (revision, writer_id)}`` for every entry."""
        db = self._session_factory()
        try:
            rows = db.query(StorageEntry.key, StorageEntry.revision, StorageEntry.writer_id).all()
            return {k: (int(rev or 0), writer) for k, rev, writer in rows}
        finally:
            db.close()

    def get_json(self, key: str) -> Any:
        """Return the decoded value, ``None`` when absent.

        Raises StorageCorrupt when the stored text is not valid JSON.
        """
        raw = self.get_item(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            raise StorageCorrupt(key, str(e)) from e

    def set_json(self, key: str, value: Any) -> int:
        return self.set_item(key, json.dumps(value, ensure_ascii=False))
