"""Balance ledger — pending/used day accounting per (employee, year, balance type).

Every mutation is a single conditional UPDATE guarded by the row's
``version``: read the counters, compute the new values, and write only if
nobody else wrote in between. A lost race re-reads and retries up to
``settings.LEDGER_MAX_RETRIES`` times.

``remaining = total + carried_over - used - pending`` is always derived and
never stored.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.exceptions import (
    ConcurrentModificationException,
    LedgerInvariantException,
    ValidationException,
)
from leaveflow.config import settings
from leaveflow.leave.models import LeaveBalance, LeaveRequest, LeaveType

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class BalanceSnapshot:
    id: uuid.UUID
    version: int
    total_days: Decimal
    carried_over_days: Decimal
    used_days: Decimal
    pending_days: Decimal

    @property
    def remaining(self) -> Decimal:
        return self.total_days + self.carried_over_days - self.used_days - self.pending_days


def compute_prorata(hire_date: date, reference_date: date, annual_days: Decimal) -> Decimal:
    """Allocation for the reference year given the hire date.

    Hired in an earlier year: full allocation. Hired in a later year: zero.
    Hired during the year: one twelfth per month from the hire month on,
    rounded to one decimal.
    """
    annual = Decimal(annual_days)
    if hire_date.year < reference_date.year:
        return annual
    if hire_date.year > reference_date.year:
        return ZERO
    months = 12 - (hire_date.month - 1)
    prorata = annual / Decimal(12) * Decimal(months)
    return prorata.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


def ledger_applies(request: LeaveRequest, leave_type: LeaveType) -> bool:
    """Whether a post-submit transition of ``request`` should move the ledger.

    Only a request that reserved at submission can release or consume, and
    the leave type's current policy must still deduct.
    """
    if not request.balance_reserved:
        return False
    if not leave_type.affects_ledger:
        logger.warning(
            "Leave type %s no longer deducts; leaving reservation of request %s untouched",
            leave_type.code, request.id,
        )
        return False
    return True


class BalanceLedger:
    """Atomic pending/used mutations on ``leave_balances``."""

    def __init__(self, max_retries: Optional[int] = None) -> None:
        self.max_retries = max_retries or settings.LEDGER_MAX_RETRIES

    # ── Reads ───────────────────────────────────────────────────────

    async def read(
        self,
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
        balance_type: str,
    ) -> Optional[BalanceSnapshot]:
        result = await db.execute(
            select(
                LeaveBalance.id,
                LeaveBalance.version,
                LeaveBalance.total_days,
                LeaveBalance.carried_over_days,
                LeaveBalance.used_days,
                LeaveBalance.pending_days,
            ).where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.year == year,
                LeaveBalance.balance_type == balance_type,
            )
        )
        row = result.first()
        if row is None:
            return None
        return BalanceSnapshot(
            id=row.id,
            version=row.version,
            total_days=Decimal(row.total_days),
            carried_over_days=Decimal(row.carried_over_days),
            used_days=Decimal(row.used_days),
            pending_days=Decimal(row.pending_days),
        )

    async def require(
        self,
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
        balance_type: str,
    ) -> BalanceSnapshot:
        snapshot = await self.read(db, employee_id, year, balance_type)
        if snapshot is None:
            raise ValidationException(
                {"balance": [
                    f"No '{balance_type}' balance found for {year}. "
                    "Please contact HR."
                ]}
            )
        return snapshot

    # ── Mutations ───────────────────────────────────────────────────

    async def reserve(
        self,
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
        balance_type: str,
        days: Decimal,
    ) -> BalanceSnapshot:
        """pending += days, refused when ``days`` exceeds the remaining balance."""
        return await self._apply(
            db, employee_id, year, balance_type,
            pending_delta=days, used_delta=ZERO, require_remaining=days,
        )

    async def commit_reservation(
        self,
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
        balance_type: str,
        days: Decimal,
    ) -> BalanceSnapshot:
        """pending -= days; used += days."""
        return await self._apply(
            db, employee_id, year, balance_type,
            pending_delta=-days, used_delta=days,
        )

    async def release_reservation(
        self,
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
        balance_type: str,
        days: Decimal,
    ) -> BalanceSnapshot:
        """pending -= days."""
        return await self._apply(
            db, employee_id, year, balance_type,
            pending_delta=-days, used_delta=ZERO,
        )

    async def consume(
        self,
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
        balance_type: str,
        days: Decimal,
    ) -> BalanceSnapshot:
        """used += days directly, for requests approved at submission."""
        return await self._apply(
            db, employee_id, year, balance_type,
            pending_delta=ZERO, used_delta=days, require_remaining=days,
        )

    async def _apply(
        self,
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
        balance_type: str,
        *,
        pending_delta: Decimal,
        used_delta: Decimal,
        require_remaining: Optional[Decimal] = None,
    ) -> BalanceSnapshot:
        snapshot: Optional[BalanceSnapshot] = None
        for attempt in range(1, self.max_retries + 1):
            snapshot = await self.require(db, employee_id, year, balance_type)

            new_pending = snapshot.pending_days + pending_delta
            new_used = snapshot.used_days + used_delta
            if new_pending < ZERO:
                raise LedgerInvariantException(snapshot.id, "pending_days")
            if new_used < ZERO:
                raise LedgerInvariantException(snapshot.id, "used_days")
            if require_remaining is not None and snapshot.remaining < require_remaining:
                raise ValidationException(
                    {"balance": [
                        f"Insufficient '{balance_type}' balance. "
                        f"Available: {snapshot.remaining}, Requested: {require_remaining}."
                    ]}
                )

            result = await db.execute(
                update(LeaveBalance)
                .where(
                    LeaveBalance.id == snapshot.id,
                    LeaveBalance.version == snapshot.version,
                )
                .values(
                    pending_days=LeaveBalance.pending_days + pending_delta,
                    used_days=LeaveBalance.used_days + used_delta,
                    version=LeaveBalance.version + 1,
                    updated_at=func.now(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                return BalanceSnapshot(
                    id=snapshot.id,
                    version=snapshot.version + 1,
                    total_days=snapshot.total_days,
                    carried_over_days=snapshot.carried_over_days,
                    used_days=new_used,
                    pending_days=new_pending,
                )

            logger.warning(
                "Balance %s changed concurrently (attempt %s/%s)",
                snapshot.id, attempt, self.max_retries,
            )

        raise ConcurrentModificationException(
            "LeaveBalance", snapshot.id if snapshot else balance_type,
        )


ledger = BalanceLedger()
