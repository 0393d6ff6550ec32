"""
Unit tests for AuthService.
"""
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from hhs.api.middleware.error_handler import (
    BadRequestException,
    ConflictException,
    IdentityNotFoundException,
    InvalidCredentialException,
    ValidationException,
)
from hhs.lib.metrics import get_metrics_collector
from hhs.lib.passwords import verify_password
from hhs.models.users import User, UserRole
from hhs.services.auth_service import AuthService


@pytest.fixture
def auth_service(db, authority, dispatcher):
    return AuthService(db, authority, dispatcher)


@pytest.mark.unit
def test_register_then_login_same_identity(auth_service):
    registered = auth_service.register("a@x.com", "pw12345", "A")
    logged_in = auth_service.login("a@x.com", "pw12345")

    assert registered.user.id == logged_in.user.id
    assert registered.user.role == UserRole.CLIENT


@pytest.mark.unit
def test_register_stores_hash_not_password(db, auth_service):
    issued = auth_service.register("a@x.com", "pw12345", "A")

    user = db.get(User, issued.user.id)
    assert user.password_hash != "pw12345"
    assert verify_password("pw12345", user.password_hash)


@pytest.mark.unit
def test_register_issues_verifiable_credentials(auth_service, authority):
    issued = auth_service.register("a@x.com", "pw12345", "A")

    claims = authority.verify(issued.token)
    assert claims.user_id == str(issued.user.id)
    assert claims.role == "CLIENT"
    assert authority.verify_renewal(issued.refresh_token) == str(issued.user.id)


@pytest.mark.unit
def test_register_sends_welcome(auth_service, dispatcher):
    auth_service.register("a@x.com", "pw12345", "Amira")

    dispatcher.notify.assert_called_once()
    email, payload = dispatcher.notify.call_args.args
    assert email == "a@x.com"
    assert payload.kind == "welcome"


@pytest.mark.unit
def test_register_normalizes_email(auth_service):
    auth_service.register("  Mixed@Example.COM ", "pw12345", "A")

    assert auth_service.login("mixed@example.com", "pw12345").user.email == "mixed@example.com"


@pytest.mark.unit
def test_register_duplicate_email(auth_service):
    auth_service.register("a@x.com", "pw12345", "A")

    with pytest.raises(ConflictException):
        auth_service.register("A@X.com", "other-pass", "B")
    assert get_metrics_collector().get_counter_value(
        "auth_events_total", {"event": "register", "outcome": "conflict"}
    ) == 1


@pytest.mark.unit
def test_register_short_password(auth_service, dispatcher):
    with pytest.raises(ValidationException):
        auth_service.register("a@x.com", "12345", "A")
    dispatcher.notify.assert_not_called()


@pytest.mark.unit
@pytest.mark.parametrize("name", ["", "   ", "\t\n"])
def test_register_blank_name(db, auth_service, dispatcher, name):
    with pytest.raises(ValidationException) as exc_info:
        auth_service.register("a@x.com", "pw12345", name)

    assert exc_info.value.details["errors"] == {"name": "empty"}
    assert db.query(User).count() == 0
    dispatcher.notify.assert_not_called()


@pytest.mark.unit
def test_register_strips_name(auth_service):
    issued = auth_service.register("a@x.com", "pw12345", "  Amira  ")

    assert issued.user.name == "Amira"


@pytest.mark.unit
def test_login_wrong_password(auth_service):
    auth_service.register("a@x.com", "pw12345", "A")

    with pytest.raises(InvalidCredentialException):
        auth_service.login("a@x.com", "wrong-password")


@pytest.mark.unit
def test_login_unknown_email(auth_service):
    with pytest.raises(InvalidCredentialException):
        auth_service.login("nobody@x.com", "pw12345")


@pytest.mark.unit
def test_refresh_reflects_current_role(db, auth_service, authority):
    issued = auth_service.register("a@x.com", "pw12345", "A")
    user = db.get(User, issued.user.id)
    user.role = UserRole.ARTIST
    db.commit()

    renewed = auth_service.refresh(issued.refresh_token)

    assert authority.verify(renewed.token).role == "ARTIST"
    assert renewed.refresh_token is None


@pytest.mark.unit
def test_refresh_rejects_session_token(auth_service):
    issued = auth_service.register("a@x.com", "pw12345", "A")

    with pytest.raises(InvalidCredentialException):
        auth_service.refresh(issued.token)


@pytest.mark.unit
def test_refresh_rejects_expired_renewal(auth_service, authority):
    old = datetime.now(timezone.utc) - timedelta(days=31)
    token = authority.issue_renewal(str(uuid4()), now=old)

    with pytest.raises(InvalidCredentialException):
        auth_service.refresh(token)


@pytest.mark.unit
def test_refresh_for_deleted_identity(auth_service, authority):
    token = authority.issue_renewal(str(uuid4()))

    with pytest.raises(IdentityNotFoundException):
        auth_service.refresh(token)


@pytest.mark.unit
def test_get_profile_counts(auth_service, factory):
    user = factory.user()
    factory.design(user)
    factory.booking(user)
    factory.booking(user)

    profile, design_count, booking_count = auth_service.get_profile(user.id)

    assert profile.id == user.id
    assert (design_count, booking_count) == (1, 2)


@pytest.mark.unit
def test_update_profile(auth_service, factory):
    user = factory.user(name="Old Name")

    updated = auth_service.update_profile(user.id, name="New Name", phone="+15550100")

    assert updated.name == "New Name"
    assert updated.phone == "+15550100"


@pytest.mark.unit
def test_update_profile_blank_name_keeps_old(db, auth_service, factory):
    user = factory.user(name="Old Name")

    with pytest.raises(ValidationException):
        auth_service.update_profile(user.id, name="   ")

    db.refresh(user)
    assert user.name == "Old Name"


@pytest.mark.unit
def test_change_password(auth_service):
    issued = auth_service.register("a@x.com", "pw12345", "A")

    auth_service.change_password(issued.user.id, "pw12345", "new-secret")

    assert auth_service.login("a@x.com", "new-secret").user.id == issued.user.id
    with pytest.raises(InvalidCredentialException):
        auth_service.login("a@x.com", "pw12345")


@pytest.mark.unit
def test_change_password_wrong_current(auth_service):
    issued = auth_service.register("a@x.com", "pw12345", "A")

    with pytest.raises(BadRequestException):
        auth_service.change_password(issued.user.id, "not-it", "new-secret")
