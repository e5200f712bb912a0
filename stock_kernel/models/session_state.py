"""
Module: stock_kernel.models.session_state
Responsibility: ORM persistence for drafted-session blobs.  One row per
    storage key; the payload is an opaque JSON document read and written
    wholesale.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - key is the primary key: at most one blob per workflow key.
    - payload is replaced as a whole; there are no field-level writes.

Non-goals:
    - This model does NOT understand the blob; schema validation lives in
      stock_services.state_codec.
"""

from __future__ import annotations

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TimestampedBase


class DraftSessionState(TimestampedBase):
    """Persistent storage for one key/value pair of the session store."""

    __tablename__ = "draft_session_state"

    key: Mapped[str] = mapped_column(
        String(200),
        primary_key=True,
    )

    payload: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<DraftSessionState {self.key} ({len(self.payload)} chars)>"
