from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from src.application.booking_service import BookingService
from src.application.points_service import PointsService
from src.domain.exceptions import (
    InvalidStateTransitionError,
    PastShowtimeError,
    SeatAlreadyBookedError,
)
from src.domain.state_machine import BookingStatus
from src.infrastructure.db.models import BookingSeat, PointsTransaction, User
from src.infrastructure.repositories.booking_repository import BookingRepository
from src.infrastructure.repositories.points_repository import PointsRepository


def _assert_points_conserved(db_session, user_id):
    db_session.expire_all()
    user = db_session.get(User, user_id)
    assert user.points == PointsRepository(db_session).ledger_total(user_id)


def test_price_is_frozen_across_transitions(db_session, catalog):
    service = BookingService(db_session)
    booking = service.create_booking(
        catalog["user_id"], catalog["showtime_id"], catalog["seat_ids"][:3]
    )
    assert booking.total_price == 135_000

    booking.showtime.cinema.price = 50_000
    db_session.commit()

    confirmed = service.confirm_payment(booking.id)
    assert confirmed.total_price == 135_000
    assert confirmed.points_transactions[0].points == 135


def test_points_conserved_through_lifecycle(db_session, catalog):
    user_id = catalog["user_id"]
    bookings = BookingService(db_session)
    points = PointsService(db_session)

    first = bookings.create_booking(user_id, catalog["showtime_id"], catalog["seat_ids"][:2])
    _assert_points_conserved(db_session, user_id)

    bookings.confirm_payment(first.id)
    _assert_points_conserved(db_session, user_id)

    second = bookings.create_booking(user_id, catalog["showtime_id"], catalog["seat_ids"][2:3])
    bookings.cancel_booking(second.id)
    _assert_points_conserved(db_session, user_id)

    points.redeem_points(user_id, 40, booking_id=first.id)
    _assert_points_conserved(db_session, user_id)

    earn = db_session.execute(
        select(PointsTransaction).where(PointsTransaction.points > 0)
    ).scalar_one()
    points.void_transaction(earn.id)
    _assert_points_conserved(db_session, user_id)

    db_session.expire_all()
    assert db_session.get(User, user_id).points == -40


def test_failed_confirmation_writes_nothing(db_session, catalog):
    service = BookingService(db_session)
    first = service.create_booking(catalog["user_id"], catalog["showtime_id"], catalog["seat_ids"][:1])
    rival = service.create_booking(
        catalog["other_user_id"], catalog["showtime_id"], catalog["seat_ids"][:1]
    )
    service.confirm_payment(first.id)

    with pytest.raises(SeatAlreadyBookedError) as exc_info:
        service.confirm_payment(rival.id)

    assert exc_info.value.seat_ids == catalog["seat_ids"][:1]
    db_session.expire_all()
    rival = service.get_booking(rival.id)
    assert rival.payment_status is BookingStatus.PENDING
    assert {bs.status.value for bs in rival.booking_seats} == {"selected"}
    assert db_session.get(User, catalog["other_user_id"]).points == 0


def test_cancelled_booking_cannot_be_confirmed(db_session, catalog):
    service = BookingService(db_session)
    booking = service.create_booking(catalog["user_id"], catalog["showtime_id"], catalog["seat_ids"][:1])
    service.cancel_booking(booking.id)

    with pytest.raises(InvalidStateTransitionError):
        service.confirm_payment(booking.id)

    assert db_session.execute(select(PointsTransaction)).first() is None
    assert db_session.execute(select(BookingSeat)).first() is None


def test_cancel_rejected_once_showtime_started(db_session, catalog):
    booking = BookingService(db_session).create_booking(
        catalog["user_id"], catalog["showtime_id"], catalog["seat_ids"][:1]
    )
    after_start = BookingService(
        db_session,
        clock=lambda: datetime.now(timezone.utc) + timedelta(days=2),
    )

    with pytest.raises(PastShowtimeError):
        after_start.cancel_booking(booking.id)

    assert after_start.get_booking(booking.id).payment_status is BookingStatus.PENDING


def test_cancelled_seats_can_be_booked_and_completed_by_others(db_session, catalog):
    service = BookingService(db_session)
    seat_ids = catalog["seat_ids"][:2]
    first = service.create_booking(catalog["user_id"], catalog["showtime_id"], seat_ids)
    service.cancel_booking(first.id)

    rebooked = service.create_booking(catalog["other_user_id"], catalog["showtime_id"], seat_ids)
    confirmed = service.confirm_payment(rebooked.id)

    assert confirmed.payment_status is BookingStatus.COMPLETE
    assert service.get_booking(first.id).booking_seats == []


def _commit_first(monkeypatch, repository, competing_request):
    """Lets a competing request commit just before this repository takes its lock."""
    original = repository.lock

    def lock_after_competitor(*args, **kwargs):
        competing_request()
        return original(*args, **kwargs)

    monkeypatch.setattr(repository, "lock", lock_after_competitor)


def test_concurrent_confirmation_awards_points_once(
    monkeypatch, db_session, second_session, catalog
):
    booking = BookingService(db_session).create_booking(
        catalog["user_id"], catalog["showtime_id"], catalog["seat_ids"][:2]
    )
    booking_id = booking.id
    service = BookingService(db_session)
    _commit_first(
        monkeypatch,
        service.showtime_repository,
        lambda: BookingService(second_session).confirm_payment(booking_id),
    )

    with pytest.raises(InvalidStateTransitionError) as exc_info:
        service.confirm_payment(booking_id)

    assert str(exc_info.value) == "Booking is not in pending status"
    earned = db_session.execute(
        select(PointsTransaction).where(PointsTransaction.booking_id == booking_id)
    ).scalars().all()
    assert [entry.points for entry in earned] == [90]
    _assert_points_conserved(db_session, catalog["user_id"])
    assert db_session.get(User, catalog["user_id"]).points == 90


def test_cancel_loses_to_concurrent_confirmation(
    monkeypatch, db_session, second_session, catalog
):
    booking = BookingService(db_session).create_booking(
        catalog["user_id"], catalog["showtime_id"], catalog["seat_ids"][:2]
    )
    booking_id = booking.id
    service = BookingService(db_session)
    _commit_first(
        monkeypatch,
        service.showtime_repository,
        lambda: BookingService(second_session).confirm_payment(booking_id),
    )

    with pytest.raises(InvalidStateTransitionError) as exc_info:
        service.cancel_booking(booking_id)

    assert str(exc_info.value) == "Cannot cancel completed booking"
    db_session.expire_all()
    stored = service.get_booking(booking_id)
    assert stored.payment_status is BookingStatus.COMPLETE
    assert {bs.status.value for bs in stored.booking_seats} == {"booked"}
    _assert_points_conserved(db_session, catalog["user_id"])


def test_status_write_refuses_stale_source_status(db_session, second_session, catalog):
    booking = BookingService(db_session).create_booking(
        catalog["user_id"], catalog["showtime_id"], catalog["seat_ids"][:1]
    )
    BookingService(second_session).cancel_booking(booking.id)

    applied = BookingRepository(db_session).transition_status(
        booking, BookingStatus.PENDING, BookingStatus.COMPLETE
    )
    db_session.rollback()

    assert applied is False
    assert BookingService(db_session).get_booking(booking.id).payment_status is (
        BookingStatus.CANCELLED
    )
