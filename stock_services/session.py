"""
stock_services.session -- DraftSession, the per-workflow coordinator.

Responsibility:
    Owns one workflow's DraftLineStore for the life of a document: loads
    and saves it through the KeyValueStore, runs external checks through
    AllocationValidator, applies events through the reducer, reports
    rejections through the Notifier, and hands the finished lines to a
    poster on submit.

Architecture position:
    Services layer.  The only place that awaits collaborators and the only
    place that writes the session blob.

Invariants enforced:
    - One outstanding check per (stock_id, line_number): a second
      select/add on a key with a check in flight raises
      DraftLineLockedError.
    - Stale results are dropped: each key has a generation counter that
      deselection, line removal, submit and discard bump.  A check whose
      generation moved while it was awaiting returns DISCARDED and does
      not touch the store.
    - Every applied event is followed by a wholesale save of the blob.
    - Rejections never raise; they come back in CommitOutcome and are
      reported to the Notifier.

Failure modes:
    - DraftLineLockedError (raised) on a concurrent action on a busy key.
    - LookupFailedError is reported and returned as a LOOKUP_FAILED
      rejection.
    - Exceptions raised by the poster propagate; the store is kept.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import uuid4

from stock_config.schema import WorkflowConfig
from stock_engines.ledger import QuantityLedger
from stock_engines.serial import contiguous_runs
from stock_kernel.domain.drafts import DraftLine, DraftLineKey
from stock_kernel.domain.dtos import Rejection, ValidationResult
from stock_kernel.domain.stock import StockRecord
from stock_kernel.domain.values import PackingUnit
from stock_kernel.exceptions import (
    DraftLineLockedError,
    LookupFailedError,
    StockKernelError,
)
from stock_kernel.logging_config import LogContext, get_logger
from stock_services.draft_store import DraftLineStore
from stock_services.ports import KeyValueStore, NotificationKind, Notifier, RecordFetch
from stock_services.reducer import (
    ClearStore,
    CommitDetail,
    DeselectStock,
    Event,
    ReduceResult,
    RemoveDetail,
    RepackLine,
    SelectStock,
    reduce,
)
from stock_services.state_codec import decode_store, encode_store
from stock_services.validator import AllocationCandidate, AllocationValidator

logger = get_logger("services.session")

Poster = Callable[[tuple[DraftLine, ...]], Any | Awaitable[Any]]


class CommitStatus(str, Enum):
    """How an add/select ended."""

    COMMITTED = "committed"
    REJECTED = "rejected"
    DISCARDED = "discarded"  # Line deselected/removed while the check was out


@dataclass(frozen=True)
class CommitOutcome:
    status: CommitStatus
    rejections: tuple[Rejection, ...] = ()
    line: DraftLine | None = None

    @property
    def committed(self) -> bool:
        return self.status is CommitStatus.COMMITTED


class DraftSession:
    """
    Draft lines of one workflow for one document.

    Contract:
        select_stock() and add_detail() are coroutines; every other
        operation is synchronous and applies immediately.

    Guarantees:
        - The store seen through .store is always a fully applied state.
        - After submit() or discard() the store is empty and the blob is
          removed.

    Non-goals:
        - No retries of failed lookups; the caller may call again.
        - No locking across processes; the key/value store is per session.
    """

    def __init__(
        self,
        workflow: WorkflowConfig,
        record_fetch: RecordFetch,
        key_value_store: KeyValueStore,
        notifier: Notifier,
        validator: AllocationValidator | None = None,
        session_id: str | None = None,
    ):
        self.workflow = workflow
        self._fetch = record_fetch
        self._kv = key_value_store
        self._notifier = notifier
        self.validator = validator or AllocationValidator(
            record_fetch=record_fetch,
            policy=workflow.field_policy,
        )
        self.session_id = session_id or str(uuid4())
        self._store = DraftLineStore()
        self._in_flight: set[DraftLineKey] = set()
        self._generations: dict[DraftLineKey, int] = {}
        self._epoch = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def store(self) -> DraftLineStore:
        return self._store

    @property
    def ledger(self) -> QuantityLedger:
        return self.validator.ledger

    @property
    def storage_key(self) -> str:
        return self.workflow.storage_key

    def is_locked(self, key: DraftLineKey) -> bool:
        return key in self._in_flight

    def load(self) -> ValidationResult:
        """
        Replace the in-memory store with the persisted blob.

        A missing blob yields an empty store.  An unreadable one is reported
        as a LOOKUP_FAILED-family rejection and also yields an empty store.
        """
        with self._log_context():
            try:
                text = self._kv.get(self.storage_key)
            except Exception as e:
                error = LookupFailedError("session_state_read", repr(e))
                return self._load_failed(error)
            if text is None:
                self._store = DraftLineStore()
                return ValidationResult.success()
            try:
                self._store = decode_store(text, self.storage_key, self.workflow.name)
            except LookupFailedError as e:
                return self._load_failed(e)
            logger.info("session_state_loaded", extra={"line_count": len(self._store)})
            return ValidationResult.success()

    def save(self) -> None:
        """Write the whole store under the workflow's storage key."""
        try:
            self._kv.set(self.storage_key, encode_store(self._store, self.workflow.name))
        except Exception as e:
            error = LookupFailedError("session_state_write", repr(e))
            logger.error("session_state_save_failed", extra={
                "key": self.storage_key,
                "reason": error.reason,
            }, exc_info=True)
            self._notifier.report(NotificationKind.ERROR, str(error))

    def _load_failed(self, error: LookupFailedError) -> ValidationResult:
        logger.warning("session_state_corrupt", extra={
            "key": self.storage_key,
            "code": error.code,
            "reason": error.reason,
        })
        self._store = DraftLineStore()
        self._notifier.report(NotificationKind.ERROR, str(error))
        return ValidationResult.failure(Rejection.from_error(error))

    # ------------------------------------------------------------------
    # Ledger views
    # ------------------------------------------------------------------

    def residual(
        self,
        stock: StockRecord,
        line_number: int | None = None,
        conversion_factor: Decimal | None = None,
    ) -> Decimal:
        """Residual in the active packing unit; with line_number, that line's own details are left out."""
        exclude = DraftLineKey(stock.stock_id, line_number) if line_number is not None else None
        return self.ledger.residual(
            stock, self._store.lines, conversion_factor=conversion_factor, exclude_line=exclude,
        )

    def display_residual(
        self,
        stock: StockRecord,
        unit: PackingUnit | None = None,
        conversion_factor: Decimal | None = None,
    ) -> Decimal:
        return self.ledger.display_residual(
            stock, self._store.lines, unit=unit, conversion_factor=conversion_factor,
        )

    def quantity_to_move(
        self,
        stock: StockRecord,
        proposed: Decimal | None = None,
        conversion_factor: Decimal | None = None,
    ) -> Decimal:
        return self.ledger.quantity_to_move(
            stock, self._store.lines, proposed=proposed, conversion_factor=conversion_factor,
        )

    # ------------------------------------------------------------------
    # Async actions
    # ------------------------------------------------------------------

    async def select_stock(
        self,
        stock: StockRecord,
        line_number: int = 1,
        packing_unit: PackingUnit | None = None,
        conversion_factor: Decimal | None = None,
        quantity_in_packing_unit: Decimal | None = None,
    ) -> CommitOutcome:
        """
        Row selection.  For range-tracked products the record's serials are
        fetched and split into contiguous runs, one detail per run.

        Runs come from the server's own serial list for this record, so only
        the local checks run on them.  The external sequence and allocation
        checks (steps 4 and 5) belong to add_detail, where the operator
        types the starting serial.
        """
        key = DraftLineKey(stock.stock_id, line_number)
        with self._log_context(key), self._lock(key):
            token = self._token(key)
            runs = ()
            policy = self.validator.resolve(stock)
            if policy.serial_range_tracking:
                try:
                    serials = await self._fetch.fetch_serial_numbers(
                        stock.product, stock.site, stock.stock_id,
                    )
                    runs = tuple(contiguous_runs(serials))
                except StockKernelError as e:
                    return self._rejected(key, (Rejection.from_error(e),))
                except Exception as e:
                    return self._lookup_failed(key, LookupFailedError("fetch_serial_numbers", repr(e)))
            if self._token(key) != token:
                return self._discarded(key)
            return self._apply_commit(key, SelectStock(
                stock=stock,
                line_number=line_number,
                packing_unit=packing_unit,
                conversion_factor=conversion_factor,
                quantity_in_packing_unit=quantity_in_packing_unit,
                runs=runs,
            ))

    async def add_detail(self, candidate: AllocationCandidate) -> CommitOutcome:
        """Add action: full validation, then commit through the reducer."""
        key = candidate.line_key
        with self._log_context(key), self._lock(key):
            token = self._token(key)
            result = await self.validator.validate(candidate, self._store)
            if self._token(key) != token:
                return self._discarded(key)
            if not result:
                return self._rejected(key, result.errors)
            return self._apply_commit(key, CommitDetail(candidate))

    # ------------------------------------------------------------------
    # Sync actions
    # ------------------------------------------------------------------

    def remove_detail(self, key: DraftLineKey, index: int) -> DraftLineStore:
        with self._log_context(key):
            self._apply(RemoveDetail(key, index))
            logger.info("detail_removed", extra={"index": index})
        return self._store

    def deselect_stock(self, key: DraftLineKey) -> DraftLineStore:
        """Drop the line and invalidate any check outstanding on it."""
        with self._log_context(key):
            self._bump(key)
            self._apply(DeselectStock(key))
            logger.info("stock_deselected")
        return self._store

    def remove_line(self, key: DraftLineKey) -> DraftLineStore:
        """Like deselect_stock, but the line must exist."""
        self._store.require(key)
        return self.deselect_stock(key)

    def repack_line(
        self,
        key: DraftLineKey,
        packing_unit: PackingUnit,
        conversion_factor: Decimal,
    ) -> DraftLineStore:
        with self._log_context(key):
            self._apply(RepackLine(key, packing_unit, conversion_factor))
            logger.info("line_repacked", extra={
                "packing_unit": packing_unit.code,
                "conversion_factor": str(conversion_factor),
            })
        return self._store

    async def submit(self, poster: Poster) -> Any:
        """
        Hand the lines to the poster (the ERP mutation).  On success the
        store is cleared, the blob removed and outstanding checks voided.
        """
        with self._log_context():
            lines = self._store.lines
            result = poster(lines)
            if inspect.isawaitable(result):
                result = await result
            logger.info("session_submitted", extra={"line_count": len(lines)})
            self._reset()
            return result

    def discard(self) -> None:
        """Abandon the document."""
        with self._log_context():
            logger.info("session_discarded", extra={"line_count": len(self._store)})
            self._reset()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _apply(self, event: Event) -> ReduceResult:
        result = reduce(self._store, event, self.validator)
        if result.store is not self._store:
            self._store = result.store
            self.save()
        return result

    def _apply_commit(self, key: DraftLineKey, event: Event) -> CommitOutcome:
        result = self._apply(event)
        if not result.accepted:
            return self._rejected(key, result.rejections)
        return CommitOutcome(CommitStatus.COMMITTED, line=self._store.get(key))

    def _reset(self) -> None:
        self._epoch += 1
        self._generations.clear()
        self._store = self._store.clear()
        try:
            self._kv.remove(self.storage_key)
        except Exception as e:
            error = LookupFailedError("session_state_remove", repr(e))
            logger.error("session_state_remove_failed", extra={
                "key": self.storage_key,
                "reason": error.reason,
            }, exc_info=True)
            self._notifier.report(NotificationKind.ERROR, str(error))

    def _token(self, key: DraftLineKey) -> tuple[int, int]:
        return (self._epoch, self._generations.get(key, 0))

    def _bump(self, key: DraftLineKey) -> None:
        self._generations[key] = self._generations.get(key, 0) + 1

    @contextmanager
    def _lock(self, key: DraftLineKey) -> Iterator[None]:
        if key in self._in_flight:
            logger.warning("draft_line_locked")
            raise DraftLineLockedError(key.stock_id, key.line_number)
        self._in_flight.add(key)
        try:
            yield
        finally:
            self._in_flight.discard(key)

    def _log_context(self, key: DraftLineKey | None = None):
        return LogContext.bind(
            session_id=self.session_id,
            workflow=self.workflow.name,
            stock_id=key.stock_id if key else None,
            line_number=key.line_number if key else None,
        )

    def _rejected(self, key: DraftLineKey, rejections: tuple[Rejection, ...]) -> CommitOutcome:
        for rejection in rejections:
            self._notifier.report(NotificationKind.ERROR, rejection.message)
        return CommitOutcome(CommitStatus.REJECTED, rejections=tuple(rejections))

    def _lookup_failed(self, key: DraftLineKey, error: LookupFailedError) -> CommitOutcome:
        logger.error("lookup_failed", extra={
            "operation": error.operation,
            "reason": error.reason,
        }, exc_info=True)
        return self._rejected(key, (Rejection.from_error(error),))

    def _discarded(self, key: DraftLineKey) -> CommitOutcome:
        logger.info("stale_check_discarded")
        return CommitOutcome(CommitStatus.DISCARDED)
