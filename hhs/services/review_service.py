"""Review upserts and artist rating aggregation.

ArtistProfile.rating and ArtistProfile.review_count are never patched
incrementally. After every review write they are re-derived from the full set
of review rows for the artist, in the same transaction as the write, with the
artist row locked so writes for one artist are serialized.
"""
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import select, func, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from hhs.api.middleware.error_handler import NotFoundException, ValidationException
from hhs.lib.logging import get_logger
from hhs.lib.metrics import get_metrics_collector
from hhs.models.artists import ArtistProfile
from hhs.models.reviews import Review


logger = get_logger(__name__)


MIN_RATING = 1
MAX_RATING = 5


def validate_rating(rating) -> int:
    """Accept integers 1-5 only (booleans are not ratings)."""
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationException("Rating must be an integer", errors={"rating": "not_an_integer"})
    if rating < MIN_RATING or rating > MAX_RATING:
        raise ValidationException(
            f"Rating must be between {MIN_RATING} and {MAX_RATING}",
            errors={"rating": "out_of_range"},
        )
    return rating


class ReviewService:
    """Maintains reviews and the derived artist aggregates."""

    def __init__(self, session: Session):
        self.session = session
        self.metrics = get_metrics_collector()

    def _lock_artist(self, artist_id: UUID) -> ArtistProfile:
        artist = self.session.execute(
            select(ArtistProfile)
            .where(ArtistProfile.id == artist_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if artist is None:
            raise NotFoundException("Artist", str(artist_id))
        return artist

    def _recompute(self, artist: ArtistProfile) -> None:
        avg_rating, count = self.session.execute(
            select(func.avg(Review.rating), func.count(Review.id))
            .where(Review.artist_id == artist.id)
        ).one()
        artist.rating = float(avg_rating) if avg_rating is not None else 0.0
        artist.review_count = int(count)

    def _find_review(self, reviewer_id: UUID, artist_id: UUID) -> Optional[Review]:
        return self.session.execute(
            select(Review).where(
                Review.user_id == reviewer_id,
                Review.artist_id == artist_id,
            )
        ).scalar_one_or_none()

    def _upsert(
        self,
        reviewer_id: UUID,
        artist_id: UUID,
        rating: int,
        comment: Optional[str],
        images: list[str],
    ) -> tuple[Review, str]:
        review = self._find_review(reviewer_id, artist_id)
        if review is None:
            review = Review(
                user_id=reviewer_id,
                artist_id=artist_id,
                rating=rating,
                comment=comment,
                images=images,
            )
            self.session.add(review)
            return review, "created"

        review.rating = rating
        review.comment = comment
        review.images = images
        return review, "updated"

    def submit_review(
        self,
        reviewer_id: UUID,
        artist_id: UUID,
        rating: int,
        comment: Optional[str] = None,
        images: Optional[Sequence[str]] = None,
    ) -> Review:
        """
        Insert or overwrite the reviewer's review of the artist, then
        recompute the artist's aggregate rating.

        Raises:
            ValidationException: Rating is not an integer in [1, 5]
            NotFoundException: Unknown artist
        """
        rating = validate_rating(rating)
        images = list(images or [])

        # Two first submissions can both miss the existing-row check; the
        # unique (user_id, artist_id) constraint rejects the second insert,
        # which is then replayed once as an update.
        for attempt in (1, 2):
            try:
                artist = self._lock_artist(artist_id)
                review, outcome = self._upsert(reviewer_id, artist_id, rating, comment, images)
                self.session.flush()
                self._recompute(artist)
                self.session.commit()
                break
            except IntegrityError:
                self.session.rollback()
                if attempt == 2 or self._find_review(reviewer_id, artist_id) is None:
                    raise
                logger.warning(
                    "Concurrent review insert, retrying as update",
                    extra={"artist_id": str(artist_id)},
                )
            except Exception:
                self.session.rollback()
                raise

        self.session.refresh(review)
        logger.info(
            "Review saved",
            extra={
                "artist_id": str(artist_id),
                "outcome": outcome,
                "rating": artist.rating,
                "review_count": artist.review_count,
            },
        )
        self.metrics.increment_reviews(outcome)
        return review

    def delete_review(self, reviewer_id: UUID, artist_id: UUID) -> ArtistProfile:
        """
        Remove the reviewer's review of the artist and recompute.

        Raises:
            NotFoundException: Unknown artist, or no review by this reviewer
        """
        try:
            artist = self._lock_artist(artist_id)
            result = self.session.execute(
                delete(Review).where(
                    Review.user_id == reviewer_id,
                    Review.artist_id == artist_id,
                )
            )
            if result.rowcount == 0:
                raise NotFoundException("Review")

            self._recompute(artist)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info("Review deleted", extra={"artist_id": str(artist_id)})
        self.metrics.increment_reviews("deleted")
        return artist

    def recompute_artist_rating(self, artist_id: UUID) -> ArtistProfile:
        """Re-derive an artist's aggregates from the review rows."""
        try:
            artist = self._lock_artist(artist_id)
            self._recompute(artist)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return artist

    def recent_reviews(self, artist_id: UUID, limit: int = 10) -> list[Review]:
        """Newest reviews first, with the reviewer loaded."""
        stmt = (
            select(Review)
            .options(joinedload(Review.reviewer))
            .where(Review.artist_id == artist_id)
            .order_by(Review.created_at.desc())
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars().all())
