"""
Review model - client ratings of artists.
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4, UUID

from sqlalchemy import String, Integer, DateTime, ForeignKey, CheckConstraint, UniqueConstraint, JSON, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hhs.lib.db import Base
from hhs.models.users import User


class Review(Base):
    """
    Review entity - at most one per (reviewer, artist); resubmission overwrites.
    """
    __tablename__ = "reviews"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )

    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    artist_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("artist_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Rating (1-5 scale)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)
    images: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

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

    reviewer: Mapped[User] = relationship()

    __table_args__ = (
        UniqueConstraint("user_id", "artist_id", name="review_user_artist_unique"),
        CheckConstraint(
            "rating >= 1 AND rating <= 5",
            name="review_rating_range",
        ),
    )

    def __repr__(self) -> str:
        return f"<Review(id={self.id}, artist_id={self.artist_id}, rating={self.rating})>"
