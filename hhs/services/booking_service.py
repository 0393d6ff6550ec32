"""Booking lifecycle: creation, status transitions and cancellation.

State machine::

    PENDING ──► CONFIRMED ──► COMPLETED
       │            │
       └────────────┴──► CANCELLED

COMPLETED and CANCELLED are terminal. Every transition is applied with a
conditional UPDATE on the status read from the database, so two concurrent
requests cannot both move the same booking out of the same state.
"""
import secrets
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hhs.api.middleware.error_handler import (
    ConflictException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
)
from hhs.lib.logging import get_logger
from hhs.lib.metrics import get_metrics_collector
from hhs.models.artists import ArtistProfile
from hhs.models.bookings import Booking, BookingStatus, ConsultationType
from hhs.models.designs import Design
from hhs.models.users import User, UserRole
from hhs.services.notification_service import NotificationDispatcher, booking_confirmation_payload
from hhs.services.role_guard import AuthorizedIdentity


logger = get_logger(__name__)


CONFIRMATION_CODE_PREFIX = "HHS-"
# No 0/O or 1/I: codes get read aloud and typed by hand
CONFIRMATION_CODE_ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZ"
CONFIRMATION_CODE_LENGTH = 6

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

CANCELLABLE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


def generate_confirmation_code() -> str:
    """Return a code like HHS-7KQ2MX."""
    suffix = "".join(
        secrets.choice(CONFIRMATION_CODE_ALPHABET) for _ in range(CONFIRMATION_CODE_LENGTH)
    )
    return f"{CONFIRMATION_CODE_PREFIX}{suffix}"


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


@dataclass
class BookingDetails:
    """Client-supplied fields for a new booking."""
    consultation_type: ConsultationType
    scheduled_date: date
    scheduled_time: str
    design_id: Optional[UUID] = None
    artist_id: Optional[UUID] = None
    event_date: Optional[date] = None
    message: Optional[str] = None


class BookingService:
    """Creates bookings and drives them through the status state machine."""

    def __init__(
        self,
        session: Session,
        dispatcher: NotificationDispatcher,
        code_generator: Callable[[], str] = generate_confirmation_code,
    ):
        self.session = session
        self.dispatcher = dispatcher
        self.code_generator = code_generator
        self.metrics = get_metrics_collector()

    # ===== Queries =====

    def _get(self, booking_id: UUID) -> Booking:
        booking = self.session.get(Booking, booking_id, populate_existing=True)
        if booking is None:
            raise NotFoundException("Booking", str(booking_id))
        return booking

    def _artist_profile_id(self, user_id: UUID) -> Optional[UUID]:
        return self.session.execute(
            select(ArtistProfile.id).where(ArtistProfile.user_id == user_id)
        ).scalar_one_or_none()

    def _is_assigned_artist(self, booking: Booking, actor: AuthorizedIdentity) -> bool:
        if actor.role != UserRole.ARTIST or booking.artist_id is None:
            return False
        return self._artist_profile_id(actor.user_id) == booking.artist_id

    def get_booking(self, booking_id: UUID, actor: AuthorizedIdentity) -> Booking:
        """Fetch a booking visible to actor: owner, ADMIN, or assigned ARTIST.

        Invisible bookings are reported as not found.
        """
        booking = self._get(booking_id)
        if booking.user_id == actor.user_id or actor.is_admin or self._is_assigned_artist(booking, actor):
            return booking
        raise NotFoundException("Booking", str(booking_id))

    def list_for_user(self, user_id: UUID) -> list[Booking]:
        """Bookings requested by user, latest scheduled date first."""
        stmt = (
            select(Booking)
            .where(Booking.user_id == user_id)
            .order_by(Booking.scheduled_date.desc(), Booking.created_at.desc())
        )
        return list(self.session.execute(stmt).scalars().all())

    def list_bookings(
        self,
        actor: AuthorizedIdentity,
        status: Optional[BookingStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Booking], int]:
        """
        Paginated booking list for staff.

        Admins see everything; artists only see bookings assigned to them.

        Returns:
            (bookings on the requested page, total matching)
        """
        conditions = []
        if status is not None:
            conditions.append(Booking.status == status)

        if actor.role == UserRole.ARTIST:
            profile_id = self._artist_profile_id(actor.user_id)
            if profile_id is None:
                return [], 0
            conditions.append(Booking.artist_id == profile_id)

        total = self.session.execute(
            select(func.count()).select_from(Booking).where(*conditions)
        ).scalar_one()
        stmt = (
            select(Booking)
            .where(*conditions)
            .order_by(Booking.scheduled_date.asc(), Booking.created_at.asc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars().all()), total

    # ===== Commands =====

    def create(self, requester: AuthorizedIdentity, details: BookingDetails) -> Booking:
        """
        Create a PENDING booking with a fresh confirmation code.

        Raises:
            NotFoundException: Design not owned by requester, or unknown artist
            ConflictException: Confirmation code collided twice in a row
        """
        if details.design_id is not None:
            design = self.session.get(Design, details.design_id)
            if design is None or design.user_id != requester.user_id:
                raise NotFoundException("Design", str(details.design_id))

        if details.artist_id is not None and self.session.get(ArtistProfile, details.artist_id) is None:
            raise NotFoundException("Artist", str(details.artist_id))

        user = self.session.get(User, requester.user_id)
        if user is None:
            raise NotFoundException("User", str(requester.user_id))

        booking = self._insert_with_unique_code(requester.user_id, details)

        logger.info(
            "Booking created",
            extra={"booking_id": str(booking.id), "confirmation_code": booking.confirmation_code},
        )
        self.metrics.increment_bookings_created(details.consultation_type.value)

        self.dispatcher.notify(
            user.email,
            booking_confirmation_payload(
                name=user.name,
                confirmation_code=booking.confirmation_code,
                scheduled_date=booking.scheduled_date,
                scheduled_time=booking.scheduled_time,
                consultation_type=booking.consultation_type.value,
            ),
        )
        return booking

    def _insert_with_unique_code(self, user_id: UUID, details: BookingDetails) -> Booking:
        # The unique index is the authority; one regeneration on collision.
        # Only reads precede the insert, so the failed commit is rolled back whole.
        for attempt in (1, 2):
            code = self.code_generator()
            booking = Booking(
                user_id=user_id,
                artist_id=details.artist_id,
                design_id=details.design_id,
                consultation_type=details.consultation_type,
                status=BookingStatus.PENDING,
                scheduled_date=details.scheduled_date,
                scheduled_time=details.scheduled_time,
                event_date=details.event_date,
                message=details.message,
                confirmation_code=code,
            )
            self.session.add(booking)
            try:
                self.session.commit()
                return booking
            except IntegrityError:
                self.session.rollback()
                if not self._code_exists(code):
                    raise
                self.metrics.increment_code_collisions()
                logger.warning(
                    "Confirmation code collision",
                    extra={"confirmation_code": code, "attempt": attempt},
                )
        raise ConflictException("Could not allocate a unique confirmation code")

    def _code_exists(self, code: str) -> bool:
        return self.session.execute(
            select(Booking.id).where(Booking.confirmation_code == code)
        ).first() is not None

    def _transition(
        self,
        booking: Booking,
        target: BookingStatus,
        allowed_from: tuple[BookingStatus, ...],
        notes: Optional[str] = None,
    ) -> Booking:
        previous = booking.status
        values = {"status": target}
        if notes:
            values["notes"] = notes

        result = self.session.execute(
            update(Booking)
            .where(Booking.id == booking.id, Booking.status.in_(allowed_from))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.session.rollback()
            current = self._get(booking.id)
            raise InvalidTransitionException(current.status.value, target.value)

        self.session.commit()
        refreshed = self._get(booking.id)
        logger.info(
            "Booking status changed",
            extra={"booking_id": str(booking.id), "from": previous.value, "to": target.value},
        )
        self.metrics.increment_transitions(previous.value, target.value)
        return refreshed

    def set_status(
        self,
        booking_id: UUID,
        actor: AuthorizedIdentity,
        new_status: BookingStatus,
        notes: Optional[str] = None,
    ) -> Booking:
        """
        Move a booking to new_status.

        Raises:
            NotFoundException: Unknown booking
            ForbiddenException: Actor is neither ADMIN nor the assigned ARTIST
            InvalidTransitionException: new_status not reachable from current status
        """
        booking = self._get(booking_id)
        if not (actor.is_admin or self._is_assigned_artist(booking, actor)):
            raise ForbiddenException("Only an admin or the assigned artist may change this booking")

        if not can_transition(booking.status, new_status):
            raise InvalidTransitionException(booking.status.value, new_status.value)

        return self._transition(booking, new_status, (booking.status,), notes=notes)

    def cancel(self, booking_id: UUID, actor: AuthorizedIdentity) -> Booking:
        """
        Cancel a booking that has not completed.

        Raises:
            NotFoundException: Unknown booking
            ForbiddenException: Actor is neither the owner nor ADMIN
            InvalidTransitionException: Booking already COMPLETED or CANCELLED
        """
        booking = self._get(booking_id)
        if booking.user_id != actor.user_id and not actor.is_admin:
            raise ForbiddenException("Access denied")

        if booking.status not in CANCELLABLE_STATUSES:
            raise InvalidTransitionException(booking.status.value, BookingStatus.CANCELLED.value)

        return self._transition(booking, BookingStatus.CANCELLED, CANCELLABLE_STATUSES)
