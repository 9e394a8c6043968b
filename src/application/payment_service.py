import logging
import os
import random

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.application.booking_service import BookingService
from src.domain.enums import PaymentMethod
from src.domain.exceptions import (
    BusinessRuleError,
    DuplicatePaymentError,
    NotFoundError,
    PaymentProcessingError,
)
from src.domain.state_machine import BookingStatus
from src.infrastructure.db.models import Payment
from src.infrastructure.db.session import transaction
from src.infrastructure.repositories.booking_repository import BookingRepository
from src.infrastructure.repositories.payment_repository import PaymentRepository

logger = logging.getLogger(__name__)

PAYMENT_SUCCESS_RATE = float(os.getenv("PAYMENT_SUCCESS_RATE", "0.9"))


class PaymentService:
    """
    Payments attached one-to-one to bookings.
    Processing is simulated: a weighted coin flip decides success.
    """

    def __init__(
        self,
        db: Session,
        booking_service: BookingService | None = None,
        rng: random.Random | None = None,
        success_rate: float | None = None,
    ):
        self.db = db
        self.payment_repository = PaymentRepository(db)
        self.booking_repository = BookingRepository(db)
        self.booking_service = booking_service or BookingService(db)
        self.rng = rng or random.Random()
        self.success_rate = PAYMENT_SUCCESS_RATE if success_rate is None else success_rate

    def create_payment(self, booking_id: int, method: str | PaymentMethod) -> Payment:
        booking = self.booking_repository.get_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")

        if booking.payment is not None:
            raise DuplicatePaymentError("Booking already has a payment")

        if booking.payment_status is not BookingStatus.PENDING:
            raise BusinessRuleError(
                f"Cannot create payment for {booking.payment_status.value} booking"
            )

        method_value = PaymentMethod.parse(method)

        try:
            with transaction(self.db):
                payment = self.payment_repository.create_payment(
                    booking_id=booking_id,
                    method=method_value,
                )
                self.db.flush()
                payment_id = payment.id
        except IntegrityError as exc:
            raise DuplicatePaymentError("Booking already has a payment") from exc

        logger.info(
            "Payment created id=%s booking_id=%s method=%s",
            payment_id,
            booking_id,
            method_value.value,
        )
        return self.get_payment(payment_id)

    def get_payment(self, payment_id: int) -> Payment:
        payment = self.payment_repository.get_by_id(payment_id)
        if not payment:
            raise NotFoundError("Payment not found")
        return payment

    def get_payment_for_booking(self, booking_id: int) -> Payment:
        if not self.booking_repository.get_by_id(booking_id):
            raise NotFoundError("Booking not found")

        payment = self.payment_repository.get_by_booking_id(booking_id)
        if not payment:
            raise NotFoundError("Payment not found for this booking")
        return payment

    def process_payment(
        self,
        payment_id: int,
        method: str | PaymentMethod | None = None,
    ) -> Payment:
        payment = self.get_payment(payment_id)

        if payment.status is BookingStatus.COMPLETE:
            raise BusinessRuleError("Payment already completed")

        booking_status = payment.booking.payment_status
        if booking_status is not BookingStatus.PENDING:
            raise BusinessRuleError(
                f"Cannot process payment for {booking_status.value} booking"
            )

        method_value = PaymentMethod.parse(method) if method else payment.method

        if self.rng.random() >= self.success_rate:
            logger.warning(
                "Simulated payment declined id=%s booking_id=%s",
                payment_id,
                payment.booking_id,
            )
            raise PaymentProcessingError("Payment processing failed")

        self.booking_service.confirm_payment(payment.booking_id, payment_method=method_value)

        logger.info("Payment processed id=%s booking_id=%s", payment_id, payment.booking_id)
        return self.get_payment(payment_id)

    def cancel_payment(self, payment_id: int) -> Payment:
        payment = self.get_payment(payment_id)

        if payment.status is BookingStatus.COMPLETE:
            raise BusinessRuleError("Cannot cancel completed payment")

        self.booking_service.cancel_booking(payment.booking_id)

        logger.info("Payment cancelled id=%s booking_id=%s", payment_id, payment.booking_id)
        return self.get_payment(payment_id)
