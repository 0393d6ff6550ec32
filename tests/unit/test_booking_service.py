"""Unit tests for the booking lifecycle."""
import re
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import select

from hhs.api.middleware.error_handler import (
    ConflictException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
)
from hhs.lib.db import SessionLocal
from hhs.lib.metrics import get_metrics_collector
from hhs.models.bookings import Booking, BookingStatus, ConsultationType
from hhs.models.users import UserRole
from hhs.services.booking_service import (
    ALLOWED_TRANSITIONS,
    BookingDetails,
    BookingService,
    can_transition,
    generate_confirmation_code,
)
from hhs.services.notification_service import NotificationDispatcher, NotificationProvider


CODE_PATTERN = re.compile(r"^HHS-[23456789ABCDEFGHJKLMNPQRSTUVWXYZ]{6}$")


def details(**overrides):
    values = dict(
        consultation_type=ConsultationType.IN_PERSON,
        scheduled_date=date(2030, 3, 1),
        scheduled_time="10:30",
    )
    values.update(overrides)
    return BookingDetails(**values)


def scripted_codes(*codes):
    """Code generator that replays the given codes in order."""
    remaining = list(codes)
    return lambda: remaining.pop(0)


# ===== Confirmation codes =====

@pytest.mark.unit
def test_confirmation_code_format():
    codes = [generate_confirmation_code() for _ in range(10_000)]

    assert all(CODE_PATTERN.match(code) for code in codes)


@pytest.mark.unit
def test_confirmation_codes_are_practically_unique():
    codes = [generate_confirmation_code() for _ in range(10_000)]

    # 32^6 combinations; a handful of duplicates in 10k draws would be suspicious
    assert len(set(codes)) >= 9_990


@pytest.mark.unit
def test_confirmation_code_has_no_ambiguous_characters():
    joined = "".join(generate_confirmation_code()[4:] for _ in range(2_000))

    assert not set(joined) & set("01IO")


# ===== State machine =====

@pytest.mark.unit
@pytest.mark.parametrize(
    "current,target,allowed",
    [
        (BookingStatus.PENDING, BookingStatus.CONFIRMED, True),
        (BookingStatus.PENDING, BookingStatus.CANCELLED, True),
        (BookingStatus.PENDING, BookingStatus.COMPLETED, False),
        (BookingStatus.CONFIRMED, BookingStatus.COMPLETED, True),
        (BookingStatus.CONFIRMED, BookingStatus.CANCELLED, True),
        (BookingStatus.CONFIRMED, BookingStatus.PENDING, False),
        (BookingStatus.COMPLETED, BookingStatus.CANCELLED, False),
        (BookingStatus.CANCELLED, BookingStatus.PENDING, False),
        (BookingStatus.PENDING, BookingStatus.PENDING, False),
    ],
)
def test_can_transition(current, target, allowed):
    assert can_transition(current, target) is allowed


@pytest.mark.unit
def test_terminal_states_have_no_exits():
    assert ALLOWED_TRANSITIONS[BookingStatus.COMPLETED] == frozenset()
    assert ALLOWED_TRANSITIONS[BookingStatus.CANCELLED] == frozenset()


# ===== create =====

@pytest.mark.unit
def test_create_starts_pending_with_code_and_notifies(db, factory, dispatcher, identity_for):
    client = factory.user(email="client@example.com", name="Amira")
    service = BookingService(db, dispatcher)

    booking = service.create(identity_for(client), details(message="Bridal party of six"))

    assert booking.status == BookingStatus.PENDING
    assert CODE_PATTERN.match(booking.confirmation_code)
    assert booking.user_id == client.id
    dispatcher.notify.assert_called_once()
    email, payload = dispatcher.notify.call_args.args
    assert email == "client@example.com"
    assert payload.kind == "booking_confirmation"
    assert booking.confirmation_code in payload.subject


@pytest.mark.unit
def test_create_retries_once_on_code_collision(db, factory, dispatcher, identity_for):
    client = factory.user()
    factory.booking(client, code="HHS-AAAAAA")
    service = BookingService(db, dispatcher, code_generator=scripted_codes("HHS-AAAAAA", "HHS-BBBBBB"))

    booking = service.create(identity_for(client), details())

    assert booking.confirmation_code == "HHS-BBBBBB"
    assert get_metrics_collector().get_counter_value("confirmation_code_collisions_total", {}) == 1


@pytest.mark.unit
def test_created_bookings_have_distinct_codes(db, factory, dispatcher, identity_for):
    client = identity_for(factory.user())
    service = BookingService(db, dispatcher)

    for _ in range(200):
        service.create(client, details())

    codes = db.execute(select(Booking.confirmation_code)).scalars().all()
    assert len(codes) == 200
    assert len(set(codes)) == 200
    assert all(CODE_PATTERN.match(code) for code in codes)


@pytest.mark.unit
def test_create_fails_after_second_collision(db, factory, dispatcher, identity_for):
    client = factory.user()
    factory.booking(client, code="HHS-AAAAAA")
    factory.booking(client, code="HHS-BBBBBB")
    service = BookingService(db, dispatcher, code_generator=scripted_codes("HHS-AAAAAA", "HHS-BBBBBB"))

    with pytest.raises(ConflictException):
        service.create(identity_for(client), details())

    assert db.query(Booking).count() == 2
    dispatcher.notify.assert_not_called()


@pytest.mark.unit
def test_create_with_unknown_artist(db, factory, dispatcher, identity_for):
    client = factory.user()

    with pytest.raises(NotFoundException):
        BookingService(db, dispatcher).create(identity_for(client), details(artist_id=uuid4()))


@pytest.mark.unit
def test_create_with_someone_elses_design(db, factory, dispatcher, identity_for):
    owner = factory.user()
    other = factory.user()
    design = factory.design(owner)

    with pytest.raises(NotFoundException):
        BookingService(db, dispatcher).create(identity_for(other), details(design_id=design.id))


@pytest.mark.unit
def test_notification_failure_does_not_fail_create(db, factory, identity_for):
    class BrokenProvider(NotificationProvider):
        def send(self, to, payload):
            raise ConnectionError("mail server down")

    real_dispatcher = NotificationDispatcher(BrokenProvider(), max_workers=1)
    client = factory.user()

    booking = BookingService(db, real_dispatcher).create(identity_for(client), details())
    real_dispatcher.shutdown(wait=True)

    assert db.get(Booking, booking.id) is not None
    assert get_metrics_collector().get_counter_value(
        "notifications_total", {"kind": "booking_confirmation", "status": "failed"}
    ) == 1


# ===== set_status =====

@pytest.mark.unit
def test_admin_confirms_then_completes(db, factory, dispatcher, identity_for):
    admin = factory.user(role=UserRole.ADMIN)
    booking = factory.booking(factory.user())
    service = BookingService(db, dispatcher)

    confirmed = service.set_status(booking.id, identity_for(admin), BookingStatus.CONFIRMED, notes="Call ahead")
    completed = service.set_status(booking.id, identity_for(admin), BookingStatus.COMPLETED)

    assert confirmed.status == BookingStatus.CONFIRMED
    assert confirmed.notes == "Call ahead"
    assert completed.status == BookingStatus.COMPLETED
    assert get_metrics_collector().get_counter_value(
        "booking_transitions_total", {"from": "PENDING", "to": "CONFIRMED"}
    ) == 1


@pytest.mark.unit
def test_pending_cannot_skip_to_completed(db, factory, dispatcher, identity_for):
    admin = factory.user(role=UserRole.ADMIN)
    booking = factory.booking(factory.user())

    with pytest.raises(InvalidTransitionException) as exc_info:
        BookingService(db, dispatcher).set_status(booking.id, identity_for(admin), BookingStatus.COMPLETED)

    assert exc_info.value.details == {"current_status": "PENDING", "requested_status": "COMPLETED"}
    db.refresh(booking)
    assert booking.status == BookingStatus.PENDING


@pytest.mark.unit
def test_assigned_artist_may_set_status(db, factory, dispatcher, identity_for):
    artist = factory.artist()
    artist_user = artist.user
    booking = factory.booking(factory.user(), artist=artist)

    updated = BookingService(db, dispatcher).set_status(
        booking.id, identity_for(artist_user), BookingStatus.CONFIRMED
    )

    assert updated.status == BookingStatus.CONFIRMED


@pytest.mark.unit
def test_unassigned_artist_may_not_set_status(db, factory, dispatcher, identity_for):
    assigned = factory.artist()
    other = factory.artist()
    booking = factory.booking(factory.user(), artist=assigned)

    with pytest.raises(ForbiddenException):
        BookingService(db, dispatcher).set_status(booking.id, identity_for(other.user), BookingStatus.CONFIRMED)


@pytest.mark.unit
def test_set_status_unknown_booking(db, factory, dispatcher, identity_for):
    admin = factory.user(role=UserRole.ADMIN)

    with pytest.raises(NotFoundException):
        BookingService(db, dispatcher).set_status(uuid4(), identity_for(admin), BookingStatus.CONFIRMED)


# ===== cancel =====

@pytest.mark.unit
@pytest.mark.parametrize("status", [BookingStatus.PENDING, BookingStatus.CONFIRMED])
def test_owner_cancels_open_booking(db, factory, dispatcher, identity_for, status):
    client = factory.user()
    booking = factory.booking(client, status=status)

    cancelled = BookingService(db, dispatcher).cancel(booking.id, identity_for(client))

    assert cancelled.status == BookingStatus.CANCELLED


@pytest.mark.unit
@pytest.mark.parametrize("status", [BookingStatus.COMPLETED, BookingStatus.CANCELLED])
def test_cancel_closed_booking_is_invalid_transition(db, factory, dispatcher, identity_for, status):
    client = factory.user()
    booking = factory.booking(client, status=status)

    with pytest.raises(InvalidTransitionException):
        BookingService(db, dispatcher).cancel(booking.id, identity_for(client))

    db.refresh(booking)
    assert booking.status == status


@pytest.mark.unit
def test_cancel_is_conditional_on_current_status(db, factory, dispatcher, identity_for):
    """A completion committed after the booking was read wins over the cancel."""
    client = factory.user()
    admin = factory.user(role=UserRole.ADMIN)
    booking = factory.booking(client, status=BookingStatus.CONFIRMED)
    service = BookingService(db, dispatcher)
    stale = service._get(booking.id)

    service.set_status(booking.id, identity_for(admin), BookingStatus.COMPLETED)

    with pytest.raises(InvalidTransitionException) as exc_info:
        service._transition(stale, BookingStatus.CANCELLED, (BookingStatus.CONFIRMED,))
    assert exc_info.value.details["current_status"] == "COMPLETED"


class RendezvousBookingService(BookingService):
    """Holds after the first booking read until every peer has read too."""

    def __init__(self, session, dispatcher, barrier):
        super().__init__(session, dispatcher)
        self.barrier = barrier
        self.waited = False

    def _get(self, booking_id):
        booking = super()._get(booking_id)
        if not self.waited:
            self.waited = True
            self.barrier.wait(timeout=10)
        return booking


@pytest.mark.unit
def test_concurrent_cancels_exactly_one_wins(factory, dispatcher, identity_for):
    owner = factory.user()
    booking_id = factory.booking(owner, status=BookingStatus.CONFIRMED).id
    actor = identity_for(owner)
    barrier = threading.Barrier(2)

    def cancel():
        session = SessionLocal()
        try:
            service = RendezvousBookingService(session, dispatcher, barrier)
            return service.cancel(booking_id, actor).status
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=2) as pool:
        futures = [pool.submit(cancel) for _ in range(2)]
        outcomes = []
        for future in futures:
            try:
                outcomes.append(future.result(timeout=30))
            except InvalidTransitionException as exc:
                outcomes.append(exc)

    wins = [o for o in outcomes if o == BookingStatus.CANCELLED]
    losses = [o for o in outcomes if isinstance(o, InvalidTransitionException)]
    assert len(wins) == 1
    assert len(losses) == 1
    assert losses[0].details["current_status"] == "CANCELLED"
    assert get_metrics_collector().get_counter_value(
        "booking_transitions_total", {"from": "CONFIRMED", "to": "CANCELLED"}
    ) == 1


@pytest.mark.unit
def test_stranger_cannot_cancel(db, factory, dispatcher, identity_for):
    booking = factory.booking(factory.user())
    stranger = factory.user()

    with pytest.raises(ForbiddenException):
        BookingService(db, dispatcher).cancel(booking.id, identity_for(stranger))


@pytest.mark.unit
def test_admin_can_cancel_any_booking(db, factory, dispatcher, identity_for):
    booking = factory.booking(factory.user())
    admin = factory.user(role=UserRole.ADMIN)

    cancelled = BookingService(db, dispatcher).cancel(booking.id, identity_for(admin))

    assert cancelled.status == BookingStatus.CANCELLED


# ===== queries =====

@pytest.mark.unit
def test_get_booking_hides_other_clients_bookings(db, factory, dispatcher, identity_for):
    booking = factory.booking(factory.user())
    stranger = factory.user()

    with pytest.raises(NotFoundException):
        BookingService(db, dispatcher).get_booking(booking.id, identity_for(stranger))


@pytest.mark.unit
def test_list_bookings_scopes_artists_to_assignments(db, factory, dispatcher, identity_for):
    client = factory.user()
    mine = factory.artist()
    theirs = factory.artist()
    factory.booking(client, artist=mine)
    factory.booking(client, artist=theirs)
    factory.booking(client)
    admin = factory.user(role=UserRole.ADMIN)
    service = BookingService(db, dispatcher)

    artist_view, artist_total = service.list_bookings(identity_for(mine.user))
    admin_view, admin_total = service.list_bookings(identity_for(admin))

    assert artist_total == 1
    assert [b.artist_id for b in artist_view] == [mine.id]
    assert admin_total == 3


@pytest.mark.unit
def test_list_bookings_artist_without_profile(db, factory, dispatcher, identity_for):
    artist_user = factory.user(role=UserRole.ARTIST)
    factory.booking(factory.user())

    assert BookingService(db, dispatcher).list_bookings(identity_for(artist_user)) == ([], 0)


@pytest.mark.unit
def test_list_bookings_pagination_and_filter(db, factory, dispatcher, identity_for):
    client = factory.user()
    for _ in range(3):
        factory.booking(client)
    factory.booking(client, status=BookingStatus.CONFIRMED)
    admin = factory.user(role=UserRole.ADMIN)
    service = BookingService(db, dispatcher)

    page, total = service.list_bookings(identity_for(admin), page=2, limit=2)
    confirmed, confirmed_total = service.list_bookings(identity_for(admin), status=BookingStatus.CONFIRMED)

    assert total == 4
    assert len(page) == 2
    assert confirmed_total == 1
    assert confirmed[0].status == BookingStatus.CONFIRMED
