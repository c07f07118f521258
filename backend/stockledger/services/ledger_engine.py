# Overview: Ledger engine; the only writer of stock quantities. Applies and reverses movements atomically.

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError

from ..errors import (
    AlreadyVoidedError,
    ChainedReversalError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
    VoidedError,
)
from ..models import LedgerEntry, MovementKind, StockRecord
from ..time_utils import utcnow
from ..validation import (
    MAX_QUANTITY,
    MovementRequest,
    ReversalRequest,
    validate_kind,
    validate_movement_quantity,
    validate_reason,
)
from .audit_sink import AuditSink
from .concurrency import apply_lock_timeout, lock_for_update, run_with_retry

"""
Ledger Invariants (authoritative)

- quantity_on_hand is written only here, and always together with the
  LedgerEntry that explains it, inside one transaction.
- A movement whose resulting balance would be negative is refused before any
  mutation. The check is uniform across inbound, outbound, adjustment and
  reversal.
- The stock record row is locked (FOR UPDATE where supported, version_id
  otherwise) for the read-compute-write sequence. Lost updates surface as
  StaleDataError and are retried; exhausting retries raises LedgerBusyError.
- Reversal never edits or deletes history: the original entry is flagged
  voided and a compensating entry with reversal_of_entry_id is appended.
  Reversals cannot be reversed.
- Fold: quantity_on_hand == SUM(signed_delta) over every entry of the record.
  A voided original and its reversal cancel out, so the same total is obtained
  by summing only entries that are neither voided nor reversals.
- Audit notification happens after commit/rollback and never affects the result.
"""

OPENING_BALANCE_REASON = "Opening balance"


def _signed_delta_expr():
    return case(
        (LedgerEntry.kind == MovementKind.OUTBOUND.value, -LedgerEntry.quantity_delta),
        else_=LedgerEntry.quantity_delta,
    )


class LedgerEngine:
    """
    Applies movements and reversals against stock records.

    The session handle and audit sink are injected; nothing here reaches for a
    process-wide database client.
    """

    def __init__(
        self,
        session,
        audit_sink: AuditSink,
        *,
        retry_attempts: int = 5,
        backoff_base: float = 0.05,
        lock_timeout_ms: int = 500,
    ):
        self.session = session
        self.audit_sink = audit_sink
        self.retry_attempts = retry_attempts
        self.backoff_base = backoff_base
        self.lock_timeout_ms = lock_timeout_ms

    @classmethod
    def from_config(cls, config, session, audit_sink: AuditSink) -> "LedgerEngine":
        return cls(
            session,
            audit_sink,
            retry_attempts=config["LEDGER_RETRY_ATTEMPTS"],
            backoff_base=config["LEDGER_RETRY_BACKOFF_SECONDS"],
            lock_timeout_ms=config["LEDGER_LOCK_TIMEOUT_MS"],
        )

    # ------------------------------------------------------------------
    # Locking and posting primitives
    # ------------------------------------------------------------------

    def run_atomic(self, func):
        return run_with_retry(
            self.session,
            func,
            attempts=self.retry_attempts,
            backoff_base=self.backoff_base,
        )

    def load_for_update(self, stock_record_id: int) -> StockRecord:
        """Load a stock record under row lock inside the current transaction."""
        apply_lock_timeout(self.session, self.lock_timeout_ms)
        record = lock_for_update(
            self.session.query(StockRecord).filter(StockRecord.id == stock_record_id)
        ).first()
        if record is None:
            raise NotFoundError(f"Stock record {stock_record_id} not found")
        return record

    def _post(
        self,
        record: StockRecord,
        *,
        kind: MovementKind,
        quantity_delta: int,
        reason: str,
        actor_id: int | None,
        reversal_of_entry_id: int | None = None,
    ) -> LedgerEntry:
        """Balance check, balance write and entry insert. Flushes; never commits."""
        delta = kind.signed(quantity_delta)
        new_balance = record.quantity_on_hand + delta
        if new_balance < 0:
            raise InsufficientStockError(
                "Insufficient stock for this movement",
                details={
                    "stock_record_id": record.id,
                    "quantity_on_hand": record.quantity_on_hand,
                    "requested_delta": delta,
                },
            )
        if new_balance > MAX_QUANTITY:
            raise ValidationError(
                f"Resulting balance would exceed {MAX_QUANTITY}",
                details={
                    "stock_record_id": record.id,
                    "quantity_on_hand": record.quantity_on_hand,
                    "requested_delta": delta,
                },
            )

        now = utcnow()
        record.quantity_on_hand = new_balance
        record.modified_by = actor_id
        record.modified_at = now

        entry = LedgerEntry(
            stock_record_id=record.id,
            kind=kind.value,
            quantity_delta=quantity_delta,
            resulting_balance=new_balance,
            reason=reason,
            actor_id=actor_id,
            occurred_at=now,
            voided=False,
            reversal_of_entry_id=reversal_of_entry_id,
        )
        self.session.add(entry)
        self.session.flush()
        return entry

    def post_opening_balance(self, record: StockRecord, quantity: int, *, actor_id: int | None) -> LedgerEntry | None:
        """
        Record a new stock record's initial quantity as an inbound entry.

        Runs inside the caller's transaction (stock record creation).
        """
        if quantity <= 0:
            return None
        return self._post(
            record,
            kind=MovementKind.INBOUND,
            quantity_delta=quantity,
            reason=OPENING_BALANCE_REASON,
            actor_id=actor_id,
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def apply_movement(self, req: MovementRequest, *, actor_id: int | None = None) -> LedgerEntry:
        """
        Apply an inbound, outbound or adjustment movement.

        Raises NotFoundError, VoidedError, ValidationError, InsufficientStockError
        or LedgerBusyError. State is untouched on any failure.
        """
        with self.audit_sink.track(
            "ledger.movement",
            "ledger_entry",
            actor_id=actor_id,
            session=self.session,
        ) as scope:
            scope.description = f"Movement on stock record {req.stock_record_id}"
            kind = validate_kind(req.kind)
            quantity = validate_movement_quantity(kind, req.quantity)
            reason = validate_reason(req.reason)
            scope.description = f"{kind.value} of {quantity} on stock record {req.stock_record_id}"

            def _op():
                record = self.load_for_update(req.stock_record_id)
                if record.is_voided:
                    raise VoidedError("Cannot record movements on a voided stock record")

                entry = self._post(
                    record,
                    kind=kind,
                    quantity_delta=quantity,
                    reason=reason,
                    actor_id=actor_id,
                )
                self.session.commit()
                return entry

            entry = self.run_atomic(_op)
            scope.entity_id = entry.id
            scope.description = (
                f"{kind.value} of {quantity} on stock record {req.stock_record_id}, "
                f"balance {entry.resulting_balance}. Reason: {reason}"
            )

        current_app.logger.info(
            "Ledger movement %s kind=%s delta=%s record=%s balance=%s",
            entry.id,
            entry.kind,
            entry.signed_delta,
            entry.stock_record_id,
            entry.resulting_balance,
        )
        return entry

    def reverse_movement(self, req: ReversalRequest, *, actor_id: int | None = None) -> LedgerEntry:
        """
        Compensate a prior entry with its exact negation.

        The original is flagged voided (otherwise untouched) and a new entry of
        the opposite kind pointing back at it is appended.
        """
        with self.audit_sink.track(
            "ledger.reversal",
            "ledger_entry",
            actor_id=actor_id,
            entity_id=req.entry_id,
            session=self.session,
        ) as scope:
            scope.description = f"Reversal of ledger entry {req.entry_id}"
            reason = validate_reason(req.reason)

            def _op():
                original = self.session.get(LedgerEntry, req.entry_id)
                if original is None:
                    raise NotFoundError(f"Ledger entry {req.entry_id} not found")

                record = self.load_for_update(original.stock_record_id)
                # Re-read under the record lock so a concurrent reversal is visible
                self.session.refresh(original)

                if original.voided:
                    raise AlreadyVoidedError("Ledger entry has already been reversed")
                if original.is_reversal:
                    raise ChainedReversalError("A reversal entry cannot be reversed")
                if record.is_voided:
                    raise VoidedError("Stock record for this entry is voided")

                original_kind = original.movement_kind
                if original_kind is MovementKind.ADJUSTMENT:
                    compensating_delta = -original.quantity_delta
                else:
                    compensating_delta = original.quantity_delta

                now = utcnow()
                original.voided = True
                original.voided_at = now
                original.voided_by = actor_id

                entry = self._post(
                    record,
                    kind=original_kind.opposite(),
                    quantity_delta=compensating_delta,
                    reason=reason,
                    actor_id=actor_id,
                    reversal_of_entry_id=original.id,
                )
                self.session.commit()
                return entry

            try:
                entry = self.run_atomic(_op)
            except IntegrityError as exc:
                raise AlreadyVoidedError("Ledger entry has already been reversed") from exc
            scope.description = (
                f"Entry {req.entry_id} reversed by entry {entry.id}, "
                f"balance {entry.resulting_balance}. Reason: {reason}"
            )

        current_app.logger.info(
            "Ledger reversal %s of entry %s record=%s balance=%s",
            entry.id,
            req.entry_id,
            entry.stock_record_id,
            entry.resulting_balance,
        )
        return entry

    # ------------------------------------------------------------------
    # Ledger reads
    # ------------------------------------------------------------------

    def get_entry(self, entry_id: int) -> LedgerEntry:
        entry = self.session.get(LedgerEntry, entry_id)
        if entry is None:
            raise NotFoundError(f"Ledger entry {entry_id} not found")
        return entry

    def list_entries(
        self,
        stock_record_id: int,
        *,
        limit: int | None = None,
        include_voided: bool = True,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[LedgerEntry]:
        """Entries for a record, newest first. since/until bound occurred_at inclusively."""
        q = self.session.query(LedgerEntry).filter(LedgerEntry.stock_record_id == stock_record_id)
        if not include_voided:
            q = q.filter(LedgerEntry.voided.is_(False))
        if since is not None:
            q = q.filter(LedgerEntry.occurred_at >= since)
        if until is not None:
            q = q.filter(LedgerEntry.occurred_at <= until)
        q = q.order_by(LedgerEntry.occurred_at.desc(), LedgerEntry.id.desc())
        if limit is not None:
            q = q.limit(limit)
        return q.all()

    def ledger_balance(self, stock_record_id: int) -> int:
        """Fold of signed deltas over every entry of the record."""
        total = self.session.query(
            func.coalesce(func.sum(_signed_delta_expr()), 0)
        ).filter(LedgerEntry.stock_record_id == stock_record_id).scalar()
        return int(total or 0)

    def effective_balance(self, stock_record_id: int) -> int:
        """Fold over entries that are neither voided nor reversals."""
        total = self.session.query(
            func.coalesce(func.sum(_signed_delta_expr()), 0)
        ).filter(
            LedgerEntry.stock_record_id == stock_record_id,
            LedgerEntry.voided.is_(False),
            LedgerEntry.reversal_of_entry_id.is_(None),
        ).scalar()
        return int(total or 0)

    def verify_record(self, record: StockRecord) -> dict:
        ledger = self.ledger_balance(record.id)
        return {
            "stock_record_id": record.id,
            "quantity_on_hand": record.quantity_on_hand,
            "ledger_balance": ledger,
            "drift": record.quantity_on_hand - ledger,
        }
