"""
Module: mileage_kernel.models.trip
Responsibility: ORM persistence for logged business trips.

The workflow only reads trips, through ``TripSelector``, to obtain the live
monthly total that refreshes a voucher's ``total_miles``.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mileage_kernel.db.base import TrackedBase, UUIDString


class TripModel(TrackedBase):
    """A single logged trip."""

    __tablename__ = "trips"

    __table_args__ = (
        Index("ix_trips_user_date", "user_id", "trip_date"),
        CheckConstraint("miles >= 0", name="ck_trips_non_negative_miles"),
    )

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    trip_date: Mapped[date] = mapped_column(Date, nullable=False)
    miles: Mapped[Decimal] = mapped_column(nullable=False)
    start_address: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    end_address: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    purpose: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Trip {self.id} user={self.user_id} {self.trip_date} {self.miles}mi>"
