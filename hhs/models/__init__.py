"""
SQLAlchemy models package.
Import all models here to ensure they're registered with Base.metadata.
"""
from hhs.models.users import User, UserRole
from hhs.models.artists import ArtistProfile
from hhs.models.designs import Design
from hhs.models.bookings import Booking, BookingStatus, ConsultationType
from hhs.models.reviews import Review

__all__ = [
    "User",
    "UserRole",
    "ArtistProfile",
    "Design",
    "Booking",
    "BookingStatus",
    "ConsultationType",
    "Review",
]
