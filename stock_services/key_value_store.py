"""
stock_services.key_value_store -- KeyValueStore adapters.

Responsibility:
    Wholesale get/set/remove of one opaque string per key, in memory or in
    the ``draft_session_state`` table through SQLAlchemy.

Architecture position:
    Services layer.  SqlKeyValueStore uses the kernel's engine/session
    helpers and the DraftSessionState model; nothing else touches the
    table.

Invariants enforced:
    - set() replaces the whole value; there are no partial writes.
    - remove() of an absent key is a no-op.
"""

from __future__ import annotations

from sqlalchemy.orm import Session, sessionmaker

from stock_kernel.db.engine import session_scope
from stock_kernel.logging_config import get_logger
from stock_kernel.models.session_state import DraftSessionState

logger = get_logger("services.key_value_store")


class InMemoryKeyValueStore:
    """Dict-backed store for a single process."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._data


class SqlKeyValueStore:
    """
    KeyValueStore on the ``draft_session_state`` table.

    Each call runs in its own transaction (session_scope).  Without an
    explicit session factory the module-level one from
    ``stock_kernel.db.engine`` is used, so init_engine_from_url() must have
    been called first.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None):
        self._session_factory = session_factory

    def get(self, key: str) -> str | None:
        with session_scope(self._session_factory) as session:
            row = session.get(DraftSessionState, key)
            return row.payload if row is not None else None

    def set(self, key: str, value: str) -> None:
        with session_scope(self._session_factory) as session:
            row = session.get(DraftSessionState, key)
            if row is None:
                session.add(DraftSessionState(key=key, payload=value))
            else:
                row.payload = value
        logger.debug("session_state_written", extra={"key": key, "size": len(value)})

    def remove(self, key: str) -> None:
        with session_scope(self._session_factory) as session:
            row = session.get(DraftSessionState, key)
            if row is not None:
                session.delete(row)
        logger.debug("session_state_removed", extra={"key": key})
