"""
InvoiceSequencer -- reset-aware, gap-free B2B invoice numbers.

Responsibility:
    Mints the next invoice number for a tenant/series, honouring the
    numbering config's reset policy, and records which order received it.
    The counter row is the only shared mutable resource of the tax engine.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by the order-close workflow after the tax snapshot is computed,
    only when B2B invoice numbering is enabled.

Invariants enforced:
    - Atomic increment: the counter is advanced by ONE UPDATE statement
      (``CASE`` on the stored period key, ``RETURNING`` the new value), so
      the read and the write happen under the same row lock.  A separate
      read-then-write is never used.
    - Reset: when the period key computed from ``now`` is later than the
      stored one, the counter restarts at 1.  The stored period never moves
      backwards; a late issue dated in an earlier period continues the
      current period's sequence, so no number is handed out twice.
    - Order idempotency: with ``order_id`` the number and its assignment
      row commit in the same transaction; a repeat call returns the
      existing number and consumes nothing.

Failure modes:
    - InvoiceNumberingDisabledError: numbering is off (ConfigurationError).
    - SequenceConflictError: lock/serialization/unique-key conflicts kept
      recurring for ``max_attempts`` attempts (TransientError).  The caller
      retries the whole close operation.
    - Any other database error propagates unchanged.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import String, UniqueConstraint, case, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from tax_kernel.db.base import Base
from tax_kernel.db.engine import session_scope
from tax_kernel.domain.clock import Clock, SystemClock
from tax_kernel.domain.rules import InvoiceNumberingConfig, ResetPolicy
from tax_kernel.exceptions import InvoiceNumberingDisabledError, SequenceConflictError
from tax_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.invoice_sequencer")

# PostgreSQL SQLSTATEs worth another attempt: serialization failure,
# deadlock detected, lock not available.
_RETRYABLE_SQLSTATES = frozenset({"40001", "40P01", "55P03"})
_RETRYABLE_MESSAGES = ("database is locked", "deadlock", "could not serialize")


class InvoiceSequenceCounter(Base):
    """
    One counter per tenant and series.

    ``period_key`` is the period the current value belongs to; empty for
    the ``never`` reset policy.
    """

    __tablename__ = "invoice_sequence_counters"
    __table_args__ = (
        UniqueConstraint("tenant_id", "series", name="uq_invoice_counter_tenant_series"),
    )

    tenant_id: Mapped[str] = mapped_column(String(100), nullable=False)
    series: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    current_value: Mapped[int] = mapped_column(nullable=False, default=0)
    period_key: Mapped[str] = mapped_column(String(10), nullable=False, default="")


class InvoiceAssignment(Base):
    """Invoice number issued to an order. Never updated, never deleted."""

    __tablename__ = "invoice_assignments"
    __table_args__ = (
        UniqueConstraint("tenant_id", "order_id", name="uq_invoice_assignment_order"),
    )

    tenant_id: Mapped[str] = mapped_column(String(100), nullable=False)
    order_id: Mapped[str] = mapped_column(String(100), nullable=False)
    series: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    period_key: Mapped[str] = mapped_column(String(10), nullable=False, default="")
    sequence_value: Mapped[int] = mapped_column(nullable=False)
    invoice_number: Mapped[str] = mapped_column(String(200), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(nullable=False)


@dataclass(frozen=True)
class IssuedInvoice:
    """
    Result of ``InvoiceSequencer.issue``.

    ``reused`` is True when the order already held a number and nothing
    was consumed by this call.
    """

    number: str
    sequence_value: int
    period_key: str
    series: str
    order_id: str | None = None
    reused: bool = False


@dataclass(frozen=True)
class CounterState:
    current_value: int
    period_key: str


def period_key_for(policy: ResetPolicy, now: datetime) -> str:
    """The period ``now`` falls in: '', 'YYYY', 'YYYY-MM' or 'YYYY-MM-DD'."""
    if policy is ResetPolicy.NEVER:
        return ""
    if policy is ResetPolicy.YEARLY:
        return f"{now.year:04d}"
    if policy is ResetPolicy.MONTHLY:
        return f"{now.year:04d}-{now.month:02d}"
    if policy is ResetPolicy.DAILY:
        return now.date().isoformat()
    raise ValueError(f"Unsupported reset policy: {policy!r}")


def format_invoice_number(config: InvoiceNumberingConfig, value: int) -> str:
    """``prefix + series + zero-padded value + suffix``."""
    return f"{config.prefix}{config.series}{str(value).zfill(config.padding)}{config.suffix}"


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, (IntegrityError, StaleDataError)):
        return True
    if isinstance(exc, OperationalError):
        sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
        if sqlstate in _RETRYABLE_SQLSTATES:
            return True
        message = str(exc.orig).lower()
        return any(m in message for m in _RETRYABLE_MESSAGES)
    return False


class InvoiceSequencer:
    """
    Issue invoice numbers against the counter table.

    Contract:
        Each ``issue()`` attempt runs in its own session from
        ``session_factory`` and commits before returning, so a returned
        number is durable.  Numbers are never revoked.

    Guarantees:
        - N concurrent issues against one counter within a period yield N
          distinct values with no gaps.
        - Retryable conflicts are retried with linear backoff up to
          ``max_attempts`` before ``SequenceConflictError``.

    Non-goals:
        - Does NOT participate in the caller's transaction.
        - Does NOT renumber or fill gaps left by external deletes.

    Usage:
        sequencer = InvoiceSequencer(get_session_factory())
        issued = sequencer.issue("tenant-1", numbering, order_id="ord-42")
        print(issued.number)  # e.g. "FAC-A000042"
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        max_attempts: int = 5,
        backoff_seconds: float = 0.02,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds

    def issue(
        self,
        tenant_id: str,
        config: InvoiceNumberingConfig | None,
        now: datetime | None = None,
        order_id: str | None = None,
    ) -> IssuedInvoice:
        """
        Mint (or, for an already numbered order, return) an invoice number.

        Raises:
            InvoiceNumberingDisabledError: numbering is missing or disabled.
            SequenceConflictError: retry budget exhausted.
        """
        if config is None or not config.enabled:
            logger.error("invoice_numbering_disabled", extra={"tenant_id": tenant_id})
            raise InvoiceNumberingDisabledError(tenant_id)

        now = now or self._clock.now()
        period_key = period_key_for(config.reset_policy, now)

        last_exc: Exception | None = None
        with LogContext.bind(tenant_id=tenant_id, order_id=order_id):
            for attempt in range(1, self._max_attempts + 1):
                try:
                    with session_scope(self._session_factory) as session:
                        issued = self._issue_once(
                            session, tenant_id, config, period_key, now, order_id,
                        )
                except (IntegrityError, OperationalError, StaleDataError) as exc:
                    if not _is_retryable(exc):
                        raise
                    last_exc = exc
                    logger.warning("invoice_sequence_conflict_retry", extra={
                        "series": config.series,
                        "attempt": attempt,
                        "max_attempts": self._max_attempts,
                        "error_type": type(exc).__name__,
                    })
                    if attempt < self._max_attempts:
                        time.sleep(self._backoff_seconds * attempt)
                    continue

                logger.info("invoice_number_issued", extra={
                    "series": issued.series,
                    "period_key": issued.period_key,
                    "sequence_value": issued.sequence_value,
                    "invoice_number": issued.number,
                    "reused": issued.reused,
                    "attempt": attempt,
                })
                return issued

            logger.error("invoice_sequence_conflict_exhausted", extra={
                "series": config.series,
                "attempts": self._max_attempts,
            })
        raise SequenceConflictError(tenant_id, config.series, self._max_attempts) from last_exc

    def assignment_for(self, tenant_id: str, order_id: str) -> IssuedInvoice | None:
        """The number already issued to ``order_id``, or None."""
        with session_scope(self._session_factory) as session:
            return self._find_assignment(session, tenant_id, order_id)

    def current(self, tenant_id: str, series: str = "") -> CounterState | None:
        """Read the counter without incrementing. None if never issued."""
        with session_scope(self._session_factory) as session:
            row = session.execute(
                select(InvoiceSequenceCounter.current_value, InvoiceSequenceCounter.period_key)
                .where(InvoiceSequenceCounter.tenant_id == tenant_id)
                .where(InvoiceSequenceCounter.series == series)
            ).one_or_none()
        if row is None:
            return None
        return CounterState(current_value=row.current_value, period_key=row.period_key)

    # ------------------------------------------------------------------

    def _issue_once(
        self,
        session: Session,
        tenant_id: str,
        config: InvoiceNumberingConfig,
        period_key: str,
        now: datetime,
        order_id: str | None,
    ) -> IssuedInvoice:
        if order_id is not None:
            existing = self._find_assignment(session, tenant_id, order_id)
            if existing is not None:
                return existing

        value, stored_key = self._next_value(session, tenant_id, config.series, period_key)
        if stored_key != period_key:
            logger.warning("invoice_issue_in_past_period", extra={
                "series": config.series,
                "requested_period_key": period_key,
                "period_key": stored_key,
            })
            period_key = stored_key
        number = format_invoice_number(config, value)

        if order_id is not None:
            session.add(InvoiceAssignment(
                tenant_id=tenant_id,
                order_id=order_id,
                series=config.series,
                period_key=period_key,
                sequence_value=value,
                invoice_number=number,
                issued_at=now,
            ))
            session.flush()

        return IssuedInvoice(
            number=number,
            sequence_value=value,
            period_key=period_key,
            series=config.series,
            order_id=order_id,
        )

    def _next_value(
        self,
        session: Session,
        tenant_id: str,
        series: str,
        period_key: str,
    ) -> tuple[int, str]:
        """
        Advance the counter in one statement; create it on first use.

        Returns the new value and the period it belongs to, which is the
        stored period when ``period_key`` is older than it.
        """
        counter = InvoiceSequenceCounter
        new_period = counter.period_key < period_key
        stmt = (
            update(counter)
            .where(counter.tenant_id == tenant_id)
            .where(counter.series == series)
            .values(
                current_value=case((new_period, 1), else_=counter.current_value + 1),
                period_key=case((new_period, period_key), else_=counter.period_key),
            )
            .returning(counter.current_value, counter.period_key)
            .execution_options(synchronize_session=False)
        )

        row = session.execute(stmt).one_or_none()
        if row is not None:
            return row.current_value, row.period_key

        # First issue for this tenant/series. A concurrent creator makes the
        # INSERT fail; the savepoint keeps the rest of the transaction.
        savepoint = session.begin_nested()
        try:
            session.add(counter(
                tenant_id=tenant_id,
                series=series,
                current_value=1,
                period_key=period_key,
            ))
            session.flush()
            savepoint.commit()
            logger.debug("invoice_counter_created", extra={"series": series})
            return 1, period_key
        except IntegrityError:
            logger.debug("invoice_counter_race_retry", extra={"series": series})
            savepoint.rollback()

        row = session.execute(stmt).one()
        return row.current_value, row.period_key

    @staticmethod
    def _find_assignment(
        session: Session,
        tenant_id: str,
        order_id: str,
    ) -> IssuedInvoice | None:
        row = session.execute(
            select(InvoiceAssignment)
            .where(InvoiceAssignment.tenant_id == tenant_id)
            .where(InvoiceAssignment.order_id == order_id)
        ).scalar_one_or_none()
        if row is None:
            return None
        return IssuedInvoice(
            number=row.invoice_number,
            sequence_value=row.sequence_value,
            period_key=row.period_key,
            series=row.series,
            order_id=row.order_id,
            reused=True,
        )
