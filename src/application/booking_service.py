import logging
import math
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from src.domain.enums import PaymentMethod, PointType, SeatStatus
from src.domain.exceptions import (
    InvalidStateTransitionError,
    NotFoundError,
    PastShowtimeError,
    SeatAlreadyBookedError,
    ValidationError,
)
from src.domain.loyalty import as_utc, points_for_price, utc_now
from src.domain.state_machine import BookingStateMachine, BookingStatus, BookingTransition
from src.infrastructure.db.models import Booking, Showtime
from src.infrastructure.db.session import transaction
from src.infrastructure.repositories.booking_repository import BookingRepository
from src.infrastructure.repositories.seat_repository import SeatRepository
from src.infrastructure.repositories.showtime_repository import ShowtimeRepository
from src.infrastructure.repositories.user_repository import UserRepository
from src.application.points_service import PointsService

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

CONFIRM_REJECTED = "Booking is not in pending status"


def validate_pagination(page: int, limit: int) -> None:
    if page < 1:
        raise ValidationError("Page must be greater than 0")
    if limit < 1:
        raise ValidationError("Limit must be greater than 0")
    if limit > MAX_PAGE_SIZE:
        raise ValidationError(f"Limit cannot exceed {MAX_PAGE_SIZE}")


def page_meta(page: int, limit: int, total: int) -> dict:
    total_pages = math.ceil(total / limit)
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }


def _cancel_rejection(status: BookingStatus) -> str:
    if status is BookingStatus.COMPLETE:
        return "Cannot cancel completed booking"
    return "Booking is already cancelled"


class BookingService:
    """
    Application service coordinating booking workflow.

    Owns the pending -> complete / cancelled lifecycle, the seat
    allocation checks and the points award on completion. Every
    multi-row write runs inside one transaction.
    """

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utc_now,
        points_service: PointsService | None = None,
    ):
        self.db = db
        self.clock = clock
        self.booking_repository = BookingRepository(db)
        self.seat_repository = SeatRepository(db)
        self.showtime_repository = ShowtimeRepository(db)
        self.user_repository = UserRepository(db)
        self.points_service = points_service or PointsService(db, clock=clock)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------
    def create_booking(
        self,
        user_id: int,
        showtime_id: int,
        seat_ids: list[int],
    ) -> Booking:
        user = self.user_repository.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")

        showtime = self.showtime_repository.get_by_id(showtime_id)
        if not showtime:
            raise NotFoundError("Showtime not found")
        if self._has_started(showtime):
            raise PastShowtimeError("Cannot book for past showtime")

        if not seat_ids:
            raise ValidationError("At least one seat must be selected")

        matching = self.seat_repository.count_in_cinema(showtime.cinema_id, seat_ids)
        if matching != len(seat_ids):
            raise ValidationError("Invalid seat selection for this cinema")

        taken = self.booking_repository.booked_seat_ids(showtime_id, seat_ids)
        if taken:
            logger.warning(
                "Seat conflict on showtime_id=%s seats=%s",
                showtime_id,
                sorted(taken),
            )
            raise SeatAlreadyBookedError(sorted(taken))

        total_price = showtime.cinema.price * len(seat_ids)

        with transaction(self.db):
            booking = self.booking_repository.create_booking(
                user_id=user_id,
                showtime_id=showtime_id,
                total_price=total_price,
                seat_ids=seat_ids,
                status=BookingStateMachine.target_of(BookingTransition.CREATE),
            )
            self.db.flush()
            booking_id = booking.id

        logger.info(
            "Booking created id=%s user_id=%s showtime_id=%s seats=%s total_price=%s",
            booking_id,
            user_id,
            showtime_id,
            len(seat_ids),
            total_price,
        )
        return self.get_booking(booking_id)

    # ------------------------------------------------------------------
    # Confirm
    # ------------------------------------------------------------------
    def confirm_payment(
        self,
        booking_id: int,
        payment_method: PaymentMethod | None = None,
    ) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")

        BookingStateMachine.apply(
            booking.payment_status,
            BookingTransition.CONFIRM,
            message=CONFIRM_REJECTED,
        )

        with transaction(self.db):
            self.showtime_repository.lock(booking.showtime_id)
            # Another request may have moved the booking while we waited for the lock.
            booking = self._lock_booking(booking_id)
            new_status = BookingStateMachine.apply(
                booking.payment_status,
                BookingTransition.CONFIRM,
                message=CONFIRM_REJECTED,
            )

            seat_ids = [bs.seat_id for bs in booking.booking_seats]
            taken = self.booking_repository.booked_seat_ids(
                booking.showtime_id,
                seat_ids,
                exclude_booking_id=booking.id,
            )
            if taken:
                logger.warning(
                    "Refusing confirmation of booking id=%s, seats %s already booked",
                    booking.id,
                    sorted(taken),
                )
                raise SeatAlreadyBookedError(sorted(taken))

            self._set_status(booking, new_status, CONFIRM_REJECTED)
            self.booking_repository.mark_seats(booking, SeatStatus.BOOKED)
            if booking.payment is not None:
                booking.payment.status = new_status
                booking.payment.paid_at = self.clock()
                if payment_method is not None:
                    booking.payment.method = payment_method

            points_earned = points_for_price(booking.total_price)
            self.points_service.record(
                user_id=booking.user_id,
                booking_id=booking.id,
                point_type=PointType.EARN,
                points=points_earned,
            )

        logger.info(
            "Booking confirmed id=%s user_id=%s points_earned=%s",
            booking_id,
            booking.user_id,
            points_earned,
        )
        return self.get_booking(booking_id)

    # ------------------------------------------------------------------
    # Cancel
    # ------------------------------------------------------------------
    def cancel_booking(self, booking_id: int) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")

        if self._has_started(booking.showtime):
            raise PastShowtimeError("Cannot cancel booking for past showtime")

        BookingStateMachine.apply(
            booking.payment_status,
            BookingTransition.CANCEL,
            message=_cancel_rejection(booking.payment_status),
        )

        with transaction(self.db):
            self.showtime_repository.lock(booking.showtime_id)
            booking = self._lock_booking(booking_id)
            message = _cancel_rejection(booking.payment_status)
            new_status = BookingStateMachine.apply(
                booking.payment_status,
                BookingTransition.CANCEL,
                message=message,
            )

            self._set_status(booking, new_status, message)
            released = self.booking_repository.release_seats(booking)
            if booking.payment is not None:
                booking.payment.status = new_status

        logger.info("Booking cancelled id=%s seats_released=%s", booking_id, released)
        return self.get_booking(booking_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_booking(self, booking_id: int) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    def list_bookings(
        self,
        page: int = 1,
        limit: int = 10,
        user_id: int | None = None,
        status: BookingStatus | str | None = None,
    ) -> tuple[list[Booking], dict]:
        validate_pagination(page, limit)
        if status is not None:
            status = BookingStatus.parse(status)
        bookings, total = self.booking_repository.list_bookings(
            offset=(page - 1) * limit,
            limit=limit,
            user_id=user_id,
            status=status,
        )
        return bookings, page_meta(page, limit, total)

    def list_user_bookings(
        self,
        user_id: int,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Booking], dict]:
        if not self.user_repository.get_by_id(user_id):
            raise NotFoundError("User not found")
        return self.list_bookings(page=page, limit=limit, user_id=user_id)

    def available_seats(self, showtime_id: int) -> dict:
        showtime = self.showtime_repository.get_by_id(showtime_id)
        if not showtime:
            raise NotFoundError("Showtime not found")

        taken = self.booking_repository.booked_seat_ids(showtime_id)
        seats = [
            {
                "id": seat.id,
                "seat_number": seat.seat_number,
                "is_available": seat.id not in taken,
            }
            for seat in self.seat_repository.list_for_cinema(showtime.cinema_id)
        ]
        return {
            "showtime_id": showtime.id,
            "cinema_id": showtime.cinema_id,
            "seats": seats,
            "total_available": sum(1 for seat in seats if seat["is_available"]),
        }

    def _lock_booking(self, booking_id: int) -> Booking:
        booking = self.booking_repository.lock(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    def _set_status(
        self,
        booking: Booking,
        new_status: BookingStatus,
        message: str,
    ) -> None:
        from_status = booking.payment_status
        if not self.booking_repository.transition_status(booking, from_status, new_status):
            raise InvalidStateTransitionError(
                from_state=from_status.value,
                to_state=new_status.value,
                message=message,
            )

    def _has_started(self, showtime: Showtime) -> bool:
        return as_utc(showtime.start_time) <= as_utc(self.clock())
