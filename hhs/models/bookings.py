"""
Booking model - consultations requested by clients.
"""
from datetime import date, datetime, timezone
from typing import Optional
from uuid import uuid4, UUID
import enum

from sqlalchemy import String, Date, DateTime, ForeignKey, Enum as SQLEnum, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from hhs.lib.db import Base


class ConsultationType(str, enum.Enum):
    """How the consultation takes place."""
    VIRTUAL = "VIRTUAL"
    IN_PERSON = "IN_PERSON"
    ON_SITE = "ON_SITE"


class BookingStatus(str, enum.Enum):
    """Booking status state machine."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Booking(Base):
    """
    Booking entity - consultation appointments.
    State machine: PENDING → CONFIRMED → COMPLETED (or CANCELLED before completion).
    Rows are never deleted.
    """
    __tablename__ = "bookings"

    # Primary key
    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )

    # Relationships
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    artist_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("artist_profiles.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    design_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("designs.id", ondelete="SET NULL"),
        nullable=True,
    )

    consultation_type: Mapped[ConsultationType] = mapped_column(
        SQLEnum(ConsultationType, name="consultation_type"),
        nullable=False,
    )
    status: Mapped[BookingStatus] = mapped_column(
        SQLEnum(BookingStatus, name="booking_status"),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True,
    )

    # Timing
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    scheduled_time: Mapped[str] = mapped_column(String(16), nullable=False)
    event_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Human-shareable reference, e.g. HHS-7KQ2MX
    confirmation_code: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        unique=True,
        index=True,
    )

    message: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, code={self.confirmation_code}, status={self.status})>"
