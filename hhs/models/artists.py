"""
Artist profile model - extends User for service providers.
"""
from typing import Optional
from uuid import uuid4, UUID

from sqlalchemy import String, Integer, Float, Boolean, ForeignKey, JSON, Uuid, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hhs.lib.db import Base
from hhs.models.users import User


class ArtistProfile(Base):
    """
    Artist profile (1:1 with User).

    rating and review_count are derived from the reviews table and are only
    written by ReviewService.
    """
    __tablename__ = "artist_profiles"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    bio: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)
    specialties: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    experience: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    portfolio: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Ordered image references",
    )
    available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    # Derived aggregates
    rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    user: Mapped[User] = relationship()

    __table_args__ = (
        CheckConstraint("rating >= 0 AND rating <= 5", name="artist_rating_range"),
        CheckConstraint("review_count >= 0", name="artist_review_count_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<ArtistProfile(id={self.id}, rating={self.rating}, reviews={self.review_count})>"
