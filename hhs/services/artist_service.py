"""
Artist profile service.

Creating a profile promotes the owner to ARTIST in the same transaction. The
derived rating fields are owned by ReviewService and never written here.
"""
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from hhs.api.middleware.error_handler import NotFoundException, ValidationException
from hhs.lib.logging import get_logger
from hhs.models.artists import ArtistProfile
from hhs.models.users import User, UserRole


logger = get_logger(__name__)


class ArtistService:
    """Reads and maintains artist profiles."""

    def __init__(self, session: Session):
        self.session = session

    def list_artists(self, available_only: bool = False) -> list[ArtistProfile]:
        stmt = select(ArtistProfile)
        if available_only:
            stmt = stmt.where(ArtistProfile.available.is_(True))
        stmt = stmt.order_by(ArtistProfile.rating.desc(), ArtistProfile.review_count.desc())
        return list(self.session.execute(stmt).scalars().all())

    def get_artist(self, artist_id: UUID) -> ArtistProfile:
        artist = self.session.get(ArtistProfile, artist_id)
        if artist is None:
            raise NotFoundException("Artist", str(artist_id))
        return artist

    def get_by_user(self, user_id: UUID) -> Optional[ArtistProfile]:
        return self.session.execute(
            select(ArtistProfile).where(ArtistProfile.user_id == user_id)
        ).scalar_one_or_none()

    def upsert_profile(
        self,
        user_id: UUID,
        bio: Optional[str] = None,
        specialties: Optional[Sequence[str]] = None,
        experience: Optional[int] = None,
        portfolio: Optional[Sequence[str]] = None,
    ) -> tuple[ArtistProfile, bool]:
        """
        Create or update the caller's artist profile.

        Returns:
            (profile, created) where created is True for a new profile
        """
        if experience is not None and experience < 0:
            raise ValidationException("Experience must not be negative", errors={"experience": "negative"})

        profile = self.get_by_user(user_id)
        if profile is not None:
            if bio:
                profile.bio = bio
            if specialties is not None:
                profile.specialties = list(specialties)
            if experience is not None:
                profile.experience = experience
            if portfolio is not None:
                profile.portfolio = list(portfolio)
            self.session.commit()
            self.session.refresh(profile)
            return profile, False

        user = self.session.get(User, user_id)
        if user is None:
            raise NotFoundException("User", str(user_id))

        # Admins keep their role; everyone else becomes an artist
        if user.role != UserRole.ADMIN:
            user.role = UserRole.ARTIST

        profile = ArtistProfile(
            user_id=user_id,
            bio=bio,
            specialties=list(specialties or []),
            experience=experience or 0,
            portfolio=list(portfolio or []),
        )
        self.session.add(profile)
        self.session.commit()
        self.session.refresh(profile)

        logger.info("Artist profile created", extra={"user_id": str(user_id), "artist_id": str(profile.id)})
        return profile, True

    def set_availability(self, user_id: UUID, available: bool) -> ArtistProfile:
        profile = self.get_by_user(user_id)
        if profile is None:
            raise NotFoundException("Artist profile")
        profile.available = available
        self.session.commit()
        self.session.refresh(profile)
        return profile
