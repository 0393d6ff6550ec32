"""
Artist API routes: directory, profiles, availability and reviews.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from hhs.api.dependencies import (
    get_artist_service,
    get_current_identity,
    get_review_service,
    require_roles,
)
from hhs.models.artists import ArtistProfile
from hhs.models.reviews import Review
from hhs.models.users import UserRole
from hhs.services.artist_service import ArtistService
from hhs.services.review_service import ReviewService
from hhs.services.role_guard import AuthorizedIdentity


# Pydantic schemas
class ArtistProfileRequest(BaseModel):
    bio: Optional[str] = Field(None, max_length=2000)
    specialties: Optional[List[str]] = None
    experience: Optional[int] = None
    portfolio: Optional[List[str]] = None


class AvailabilityRequest(BaseModel):
    available: bool


class ReviewRequest(BaseModel):
    """Range is enforced by ReviewService so out-of-range ratings surface as 400."""
    rating: int
    comment: Optional[str] = Field(None, max_length=2000)
    images: Optional[List[str]] = None


class ReviewerResponse(BaseModel):
    id: UUID
    name: str
    avatar: Optional[str] = None


class ReviewResponse(BaseModel):
    id: UUID
    user_id: UUID
    reviewer: ReviewerResponse
    artist_id: UUID
    rating: int
    comment: Optional[str] = None
    images: List[str] = []
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ArtistResponse(BaseModel):
    id: UUID
    user_id: UUID
    name: str
    avatar: Optional[str] = None
    bio: Optional[str] = None
    specialties: List[str] = []
    experience: int = 0
    portfolio: List[str] = []
    available: bool = True
    rating: float = 0.0
    review_count: int = 0


class ArtistDetailResponse(ArtistResponse):
    reviews: List[ReviewResponse] = []


class ArtistRatingResponse(BaseModel):
    artist_id: UUID
    rating: float
    review_count: int


def _artist_fields(artist: ArtistProfile) -> dict:
    return dict(
        id=artist.id,
        user_id=artist.user_id,
        name=artist.user.name,
        avatar=artist.user.avatar,
        bio=artist.bio,
        specialties=list(artist.specialties or []),
        experience=artist.experience,
        portfolio=list(artist.portfolio or []),
        available=artist.available,
        rating=artist.rating,
        review_count=artist.review_count,
    )


def _review_response(review: Review) -> ReviewResponse:
    return ReviewResponse(
        id=review.id,
        user_id=review.user_id,
        reviewer=ReviewerResponse(
            id=review.reviewer.id,
            name=review.reviewer.name,
            avatar=review.reviewer.avatar,
        ),
        artist_id=review.artist_id,
        rating=review.rating,
        comment=review.comment,
        images=list(review.images or []),
        created_at=review.created_at,
        updated_at=review.updated_at,
    )


# Router
router = APIRouter(prefix="/artists", tags=["artists"])


@router.get("", response_model=List[ArtistResponse])
def list_artists(
    available_only: bool = Query(False, description="Show only artists accepting bookings"),
    artist_service: ArtistService = Depends(get_artist_service),
) -> List[ArtistResponse]:
    """Public artist directory, highest rated first."""
    return [ArtistResponse(**_artist_fields(a)) for a in artist_service.list_artists(available_only)]


@router.post("/profile", response_model=ArtistResponse)
def upsert_profile(
    request: ArtistProfileRequest,
    response: Response,
    identity: AuthorizedIdentity = Depends(get_current_identity),
    artist_service: ArtistService = Depends(get_artist_service),
) -> ArtistResponse:
    """
    Create or update the caller's artist profile.

    Creating a profile promotes a CLIENT to ARTIST. Returns 201 on create
    and 200 on update.
    """
    profile, created = artist_service.upsert_profile(
        identity.user_id,
        bio=request.bio,
        specialties=request.specialties,
        experience=request.experience,
        portfolio=request.portfolio,
    )
    if created:
        response.status_code = status.HTTP_201_CREATED
    return ArtistResponse(**_artist_fields(profile))


@router.patch("/availability", response_model=ArtistResponse)
def set_availability(
    request: AvailabilityRequest,
    actor: AuthorizedIdentity = Depends(require_roles(UserRole.ARTIST)),
    artist_service: ArtistService = Depends(get_artist_service),
) -> ArtistResponse:
    profile = artist_service.set_availability(actor.user_id, request.available)
    return ArtistResponse(**_artist_fields(profile))


@router.get("/{artist_id}", response_model=ArtistDetailResponse)
def get_artist(
    artist_id: UUID,
    artist_service: ArtistService = Depends(get_artist_service),
    review_service: ReviewService = Depends(get_review_service),
) -> ArtistDetailResponse:
    """Artist profile with the ten most recent reviews."""
    artist = artist_service.get_artist(artist_id)
    reviews = review_service.recent_reviews(artist.id)
    return ArtistDetailResponse(
        **_artist_fields(artist),
        reviews=[_review_response(r) for r in reviews],
    )


@router.post("/{artist_id}/review", response_model=ReviewResponse)
def submit_review(
    artist_id: UUID,
    request: ReviewRequest,
    identity: AuthorizedIdentity = Depends(get_current_identity),
    review_service: ReviewService = Depends(get_review_service),
) -> ReviewResponse:
    """
    Create or replace the caller's review of an artist.

    A reviewer holds at most one review per artist; resubmitting overwrites
    it. The artist's rating and review_count are recomputed from all
    reviews in the same transaction.
    """
    review = review_service.submit_review(
        identity.user_id,
        artist_id,
        rating=request.rating,
        comment=request.comment,
        images=request.images,
    )
    return _review_response(review)


@router.delete("/{artist_id}/review", response_model=ArtistRatingResponse)
def delete_review(
    artist_id: UUID,
    identity: AuthorizedIdentity = Depends(get_current_identity),
    review_service: ReviewService = Depends(get_review_service),
) -> ArtistRatingResponse:
    artist = review_service.delete_review(identity.user_id, artist_id)
    return ArtistRatingResponse(
        artist_id=artist.id,
        rating=artist.rating,
        review_count=artist.review_count,
    )
