# Overview: Fire-and-forget audit delivery, emitted once per ledger operation outcome.

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Optional

from flask import current_app, has_request_context, request
from sqlalchemy.orm import Session

"""
Audit delivery rules (authoritative)

- One notification per operation outcome, emitted after the ledger transaction
  has committed or rolled back. Never inside it.
- Delivery writes through its own Session so it cannot join or commit the
  caller's unit of work.
- Delivery failures are logged and swallowed. They never fail, block or roll
  back a ledger operation.
- AUDIT_ASYNC=True hands delivery to a single background worker, except on
  in-memory SQLite where the pool holds one shared connection and delivery
  stays on the calling thread.
"""

OUTCOME_SUCCESS = "success"
OUTCOME_FAILURE = "failure"


def _is_memory_sqlite(engine) -> bool:
    return engine.dialect.name == "sqlite" and engine.url.database in (None, "", ":memory:")


@dataclass(frozen=True)
class AuditEvent:
    action: str
    entity_type: str
    outcome: str
    entity_id: Optional[int] = None
    actor_id: Optional[int] = None
    description: Optional[str] = None
    ip_address: Optional[str] = None
    module: str = "inventory"


@dataclass
class AuditScope:
    """Mutable handle yielded by AuditSink.track(); the operation fills it in."""
    entity_id: Optional[int] = None
    description: Optional[str] = None
    extra: dict = field(default_factory=dict)


class AuditSink:
    """Flask extension delivering AuditEvents to the audit_logs table."""

    def __init__(self, app=None):
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()
        self._pending: set[Future] = set()
        self._pending_lock = threading.Lock()
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        app.config.setdefault("AUDIT_ASYNC", True)
        app.extensions["audit_sink"] = self

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="audit-sink")
            return self._executor

    def notify(self, event: AuditEvent) -> None:
        """Deliver an event without ever raising into the caller."""
        logger = current_app.logger
        try:
            from ..extensions import db

            engine = db.engine
            if current_app.config.get("AUDIT_ASYNC", True) and not _is_memory_sqlite(engine):
                future = self._get_executor().submit(self._deliver, engine, event, logger)
                with self._pending_lock:
                    self._pending.add(future)
                future.add_done_callback(self._forget)
            else:
                self._deliver(engine, event, logger)
        except Exception:
            logger.exception("Failed to dispatch audit event %s", event.action)

    def _forget(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def _deliver(self, engine, event: AuditEvent, logger) -> None:
        try:
            self._write(engine, event)
        except Exception:
            logger.exception(
                "Failed to write audit event action=%s entity=%s:%s outcome=%s",
                event.action,
                event.entity_type,
                event.entity_id,
                event.outcome,
            )

    def _write(self, engine, event: AuditEvent) -> None:
        from ..models import AuditLog

        with Session(engine) as session:
            session.add(AuditLog(
                actor_id=event.actor_id,
                action=event.action,
                entity_type=event.entity_type,
                entity_id=event.entity_id,
                description=event.description,
                outcome=event.outcome,
                module=event.module,
                ip_address=event.ip_address,
            ))
            session.commit()

    @contextmanager
    def track(
        self,
        action: str,
        entity_type: str,
        *,
        actor_id: int | None = None,
        entity_id: int | None = None,
        session=None,
    ):
        """
        Post-commit hook around one ledger operation.

        The wrapped block commits its own transaction and fills the yielded
        AuditScope. Exactly one event is emitted: success when the block
        returns, failure (with the error message) when it raises. On failure
        the optional session is rolled back before the event goes out.
        """
        scope = AuditScope(entity_id=entity_id)
        ip_address = request.remote_addr if has_request_context() else None
        try:
            yield scope
        except Exception as exc:
            if session is not None:
                session.rollback()
            self.notify(AuditEvent(
                action=action,
                entity_type=entity_type,
                outcome=OUTCOME_FAILURE,
                entity_id=scope.entity_id,
                actor_id=actor_id,
                description=f"{scope.description + ': ' if scope.description else ''}{exc}",
                ip_address=ip_address,
            ))
            raise
        self.notify(AuditEvent(
            action=action,
            entity_type=entity_type,
            outcome=OUTCOME_SUCCESS,
            entity_id=scope.entity_id,
            actor_id=actor_id,
            description=scope.description,
            ip_address=ip_address,
        ))

    def flush(self, timeout: float | None = None) -> None:
        """Wait for queued deliveries (used by the CLI and tests)."""
        with self._pending_lock:
            pending = list(self._pending)
        for future in pending:
            future.result(timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)
