"""
stock_services -- Package init and public API.

Responsibility:
    Stateful orchestration over the pure engines: the allocation validator,
    the draft line store and its reducer, the session blob codec, the
    key/value store and notifier adapters, and DraftSession, the async
    coordinator that awaits the record-fetch collaborator.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction (enforced by tests/architecture/test_layer_boundaries.py):
        stock_services/ -> stock_engines/  (allowed)
        stock_services/ -> stock_kernel/   (allowed)
        stock_services/ -> stock_config/   (allowed)
        stock_engines/  -> stock_services/ (FORBIDDEN)
        stock_kernel/   -> stock_services/ (FORBIDDEN)

Invariants enforced:
    - Layer isolation: stock_kernel and stock_engines never import from
      this package.
    - Only DraftSession awaits collaborators or writes the session blob.
"""

from stock_kernel.logging_config import get_logger

logger = get_logger("services")

from stock_services.draft_store import DraftLineStore
from stock_services.key_value_store import InMemoryKeyValueStore, SqlKeyValueStore
from stock_services.notifier import LoggingNotifier
from stock_services.ports import (
    AllocationRecord,
    KeyValueStore,
    NotificationKind,
    Notifier,
    RecordFetch,
    StockFilter,
)
from stock_services.reducer import (
    ClearStore,
    CommitDetail,
    DeselectStock,
    ReduceResult,
    RemoveDetail,
    RepackLine,
    SelectStock,
    reduce,
)
from stock_services.session import CommitOutcome, CommitStatus, DraftSession
from stock_services.state_codec import decode_store, encode_store
from stock_services.validator import AllocationCandidate, AllocationValidator

__all__ = [
    "AllocationCandidate",
    "AllocationRecord",
    "AllocationValidator",
    "ClearStore",
    "CommitDetail",
    "CommitOutcome",
    "CommitStatus",
    "DeselectStock",
    "DraftLineStore",
    "DraftSession",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "LoggingNotifier",
    "NotificationKind",
    "Notifier",
    "RecordFetch",
    "ReduceResult",
    "RemoveDetail",
    "RepackLine",
    "SelectStock",
    "SqlKeyValueStore",
    "StockFilter",
    "decode_store",
    "encode_store",
    "reduce",
]
