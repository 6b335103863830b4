"""
Monthly mileage totals derived from logged trips.

This is the total-miles provider the workflow reads at get-or-create
time.  Totals are always computed from ``trips``; nothing is cached.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from sqlalchemy import func, select

from mileage_kernel.domain.voucher import month_start
from mileage_kernel.models.trip import TripModel
from mileage_kernel.selectors.base import BaseSelector


class MileageTotalProvider(Protocol):
    """Supplies the live non-negative total for (employee, month)."""

    def total_miles(self, employee_id: UUID, month: date) -> Decimal:
        ...


def _next_month(first: date) -> date:
    if first.month == 12:
        return first.replace(year=first.year + 1, month=1)
    return first.replace(month=first.month + 1)


class TripSelector(BaseSelector):
    """Trip aggregates per employee and calendar month."""

    def total_miles(self, employee_id: UUID, month: date) -> Decimal:
        start = month_start(month)
        total = self.session.execute(
            select(func.coalesce(func.sum(TripModel.miles), 0)).where(
                TripModel.user_id == employee_id,
                TripModel.trip_date >= start,
                TripModel.trip_date < _next_month(start),
            )
        ).scalar_one()
        return Decimal(str(total))

    def trip_count(self, employee_id: UUID, month: date) -> int:
        start = month_start(month)
        return self.session.execute(
            select(func.count(TripModel.id)).where(
                TripModel.user_id == employee_id,
                TripModel.trip_date >= start,
                TripModel.trip_date < _next_month(start),
            )
        ).scalar_one()
