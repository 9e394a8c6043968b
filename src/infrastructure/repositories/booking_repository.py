# src/infrastructure/repositories/booking_repository.py

from sqlalchemy.orm import Session, selectinload
from sqlalchemy import func, select, update

from src.infrastructure.db.models import Booking, BookingSeat, Showtime, Cinema
from src.domain.enums import SeatStatus
from src.domain.state_machine import BookingStatus


def _with_details(stmt):
    return stmt.options(
        selectinload(Booking.user),
        selectinload(Booking.showtime).selectinload(Showtime.movie),
        selectinload(Booking.showtime)
        .selectinload(Showtime.cinema)
        .selectinload(Cinema.theater),
        selectinload(Booking.booking_seats).selectinload(BookingSeat.seat),
        selectinload(Booking.payment),
        selectinload(Booking.points_transactions),
    )


class BookingRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(
        self,
        booking_id: int,
    ) -> Booking | None:

        stmt = _with_details(select(Booking).where(Booking.id == booking_id))
        return self.db.execute(stmt).scalar_one_or_none()

    def list_bookings(
        self,
        offset: int,
        limit: int,
        user_id: int | None = None,
        status: BookingStatus | None = None,
    ) -> tuple[list[Booking], int]:
        filters = []
        if user_id is not None:
            filters.append(Booking.user_id == user_id)
        if status is not None:
            filters.append(Booking.payment_status == status)

        stmt = _with_details(
            select(Booking)
            .where(*filters)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .offset(offset)
            .limit(limit)
        )
        total = self.db.execute(
            select(func.count()).select_from(Booking).where(*filters)
        ).scalar_one()
        return list(self.db.execute(stmt).scalars().all()), total

    def booked_seat_ids(
        self,
        showtime_id: int,
        seat_ids: list[int] | None = None,
        exclude_booking_id: int | None = None,
    ) -> set[int]:
        """
        Seat ids held by completed bookings on a showtime.
        Pending bookings never block a seat.
        """
        stmt = (
            select(BookingSeat.seat_id)
            .join(Booking, BookingSeat.booking_id == Booking.id)
            .where(Booking.showtime_id == showtime_id)
            .where(Booking.payment_status == BookingStatus.COMPLETE)
        )
        if seat_ids is not None:
            stmt = stmt.where(BookingSeat.seat_id.in_(seat_ids))
        if exclude_booking_id is not None:
            stmt = stmt.where(Booking.id != exclude_booking_id)

        return set(self.db.execute(stmt).scalars().all())

    def create_booking(
        self,
        user_id: int,
        showtime_id: int,
        total_price: int,
        seat_ids: list[int],
        status: BookingStatus,
    ) -> Booking:

        booking = Booking(
            user_id=user_id,
            showtime_id=showtime_id,
            total_price=total_price,
            payment_status=status,
        )
        booking.booking_seats = [
            BookingSeat(seat_id=seat_id, status=SeatStatus.SELECTED)
            for seat_id in seat_ids
        ]

        self.db.add(booking)
        return booking

    def lock(self, booking_id: int) -> Booking | None:
        """
        SELECT ... FOR UPDATE, refreshing any copy already in the session.
        Status checks that precede a write must read this row.
        """
        stmt = _with_details(
            select(Booking)
            .where(Booking.id == booking_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def transition_status(
        self,
        booking: Booking,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> bool:
        """
        Compare-and-set on payment_status.
        Returns False when the stored status is no longer from_status.
        """
        stmt = (
            update(Booking)
            .where(Booking.id == booking.id)
            .where(Booking.payment_status == from_status)
            .values(payment_status=to_status)
        )
        return self.db.execute(stmt).rowcount == 1

    def mark_seats(self, booking: Booking, status: SeatStatus) -> None:
        for booking_seat in booking.booking_seats:
            booking_seat.status = status

    def release_seats(self, booking: Booking) -> int:
        released = len(booking.booking_seats)
        # delete-orphan cascade removes the rows on flush
        booking.booking_seats.clear()
        return released
