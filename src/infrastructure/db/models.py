# src/infrastructure/db/models.py

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    Enum,
    UniqueConstraint,
    CheckConstraint,
    ForeignKey,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime
from typing import Optional

from src.infrastructure.db.session import Base
from src.domain.enums import PaymentMethod, PointType, SeatStatus
from src.domain.loyalty import utc_now
from src.domain.state_machine import BookingStatus


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    # Denormalized running balance; kept equal to the sum of the user's ledger rows.
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    bookings: Mapped[list["Booking"]] = relationship(back_populates="user")
    points_transactions: Mapped[list["PointsTransaction"]] = relationship(
        back_populates="user",
    )


class Movie(Base):
    __tablename__ = "movies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    genre: Mapped[str | None] = mapped_column(String(128), nullable=True)
    rating: Mapped[str | None] = mapped_column(String(16), nullable=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    showtimes: Mapped[list["Showtime"]] = relationship(back_populates="movie")


class Theater(Base):
    __tablename__ = "theaters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False)

    cinemas: Mapped[list["Cinema"]] = relationship(back_populates="theater")


class Cinema(Base):
    """A screening room inside a theater, with one ticket price for every seat."""

    __tablename__ = "cinemas"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    theater_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("theaters.id"),
        nullable=False,
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    total_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)

    theater: Mapped[Theater] = relationship(back_populates="cinemas")
    seats: Mapped[list["Seat"]] = relationship(back_populates="cinema")
    showtimes: Mapped[list["Showtime"]] = relationship(back_populates="cinema")

    __table_args__ = (
        UniqueConstraint("theater_id", "type", name="uq_cinema_theater_type"),
        CheckConstraint("price >= 0", name="ck_cinema_price_nonnegative"),
        CheckConstraint("total_seats >= 0", name="ck_cinema_total_seats_nonnegative"),
    )


class Seat(Base):
    __tablename__ = "seats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    cinema_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("cinemas.id"),
        nullable=False,
    )
    seat_number: Mapped[str] = mapped_column(String(8), nullable=False)

    cinema: Mapped[Cinema] = relationship(back_populates="seats")

    __table_args__ = (
        UniqueConstraint("cinema_id", "seat_number", name="uq_seat_cinema_number"),
    )


class Showtime(Base):
    __tablename__ = "showtimes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    movie_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("movies.id"),
        nullable=False,
    )
    cinema_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("cinemas.id"),
        nullable=False,
    )
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    movie: Mapped[Movie] = relationship(back_populates="showtimes")
    cinema: Mapped[Cinema] = relationship(back_populates="showtimes")
    bookings: Mapped[list["Booking"]] = relationship(back_populates="showtime")


class Booking(Base):
    """
    Booking table reflecting domain state.
    Domain controls transitions.
    DB stores current state safely.
    """

    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id"),
        nullable=False,
    )
    showtime_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("showtimes.id"),
        nullable=False,
    )
    # Frozen at creation: cinema price x seat count.
    total_price: Mapped[int] = mapped_column(Integer, nullable=False)
    payment_status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name="booking_status"),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    user: Mapped[User] = relationship(back_populates="bookings")
    showtime: Mapped[Showtime] = relationship(back_populates="bookings")
    booking_seats: Mapped[list["BookingSeat"]] = relationship(
        back_populates="booking",
        cascade="all, delete-orphan",
    )
    payment: Mapped[Optional["Payment"]] = relationship(
        back_populates="booking",
        uselist=False,
    )
    points_transactions: Mapped[list["PointsTransaction"]] = relationship(
        back_populates="booking",
    )

    __table_args__ = (
        CheckConstraint("total_price >= 0", name="ck_booking_total_price_nonnegative"),
    )


class BookingSeat(Base):
    __tablename__ = "booking_seats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    booking_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("bookings.id"),
        nullable=False,
    )
    seat_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("seats.id"),
        nullable=False,
    )
    status: Mapped[SeatStatus] = mapped_column(
        Enum(SeatStatus, name="seat_status"),
        nullable=False,
        default=SeatStatus.SELECTED,
    )

    booking: Mapped[Booking] = relationship(back_populates="booking_seats")
    seat: Mapped[Seat] = relationship()

    __table_args__ = (
        UniqueConstraint("booking_id", "seat_id", name="uq_booking_seat"),
    )


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    booking_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("bookings.id"),
        nullable=False,
    )
    method: Mapped[PaymentMethod] = mapped_column(
        Enum(PaymentMethod, name="payment_method"),
        nullable=False,
    )
    # Mirrors the booking's payment_status.
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name="booking_status"),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    booking: Mapped[Booking] = relationship(back_populates="payment")

    __table_args__ = (
        UniqueConstraint("booking_id", name="uq_payment_booking_id"),
    )


class PointsTransaction(Base):
    """Append-only ledger row. Earn is stored positive, redeem negative."""

    __tablename__ = "points_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id"),
        nullable=False,
    )
    booking_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("bookings.id"),
        nullable=True,
    )
    type: Mapped[PointType] = mapped_column(
        Enum(PointType, name="point_type"),
        nullable=False,
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        nullable=False,
    )

    user: Mapped[User] = relationship(back_populates="points_transactions")
    booking: Mapped[Booking | None] = relationship(back_populates="points_transactions")
