# src/infrastructure/repositories/payment_repository.py

from sqlalchemy.orm import Session, selectinload
from sqlalchemy import select

from src.infrastructure.db.models import Payment, Booking
from src.domain.enums import PaymentMethod
from src.domain.state_machine import BookingStatus


class PaymentRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, payment_id: int) -> Payment | None:
        stmt = (
            select(Payment)
            .where(Payment.id == payment_id)
            .options(selectinload(Payment.booking).selectinload(Booking.showtime))
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_booking_id(self, booking_id: int) -> Payment | None:
        stmt = select(Payment).where(Payment.booking_id == booking_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def create_payment(
        self,
        booking_id: int,
        method: PaymentMethod,
    ) -> Payment:
        payment = Payment(
            booking_id=booking_id,
            method=method,
            status=BookingStatus.PENDING,
        )
        self.db.add(payment)
        return payment
