import logging
from typing import Callable
from datetime import datetime

from sqlalchemy.orm import Session

from src.domain.enums import PointType
from src.domain.exceptions import (
    InsufficientPointsError,
    NotFoundError,
    ValidationError,
    VoidWindowExpiredError,
)
from src.domain.loyalty import is_voidable, utc_now
from src.infrastructure.db.models import PointsTransaction
from src.infrastructure.db.session import transaction
from src.infrastructure.repositories.booking_repository import BookingRepository
from src.infrastructure.repositories.points_repository import PointsRepository
from src.infrastructure.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


class PointsService:
    """Loyalty ledger writes. Every row written moves User.points by the same delta."""

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.clock = clock
        self.points_repository = PointsRepository(db)
        self.user_repository = UserRepository(db)
        self.booking_repository = BookingRepository(db)

    def record(
        self,
        user_id: int,
        booking_id: int | None,
        point_type: PointType,
        points: int,
    ) -> PointsTransaction:
        """
        Appends a ledger row and moves the user's balance.
        Runs inside the caller's transaction; never commits.
        """
        delta = points if point_type is PointType.EARN else -points
        entry = self.points_repository.add(
            user_id=user_id,
            booking_id=booking_id,
            point_type=point_type,
            points=delta,
        )
        self.user_repository.adjust_points(user_id, delta)
        return entry

    def redeem_points(
        self,
        user_id: int,
        points: int,
        booking_id: int | None = None,
    ) -> PointsTransaction:
        if points <= 0:
            raise ValidationError("Points must be greater than 0")

        user = self.user_repository.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")

        if points > user.points:
            raise InsufficientPointsError("Insufficient points")

        if booking_id is not None:
            booking = self.booking_repository.get_by_id(booking_id)
            if not booking:
                raise NotFoundError("Booking not found")
            if booking.user_id != user_id:
                raise ValidationError("Booking does not belong to this user")

        with transaction(self.db):
            # Balance may have moved since the check above.
            user = self.user_repository.lock(user_id)
            if points > user.points:
                raise InsufficientPointsError("Insufficient points")
            entry = self.record(user_id, booking_id, PointType.REDEEM, points)

        logger.info("Redeemed %s points for user_id=%s", points, user_id)
        return entry

    def void_transaction(self, transaction_id: int) -> dict:
        entry = self.points_repository.get_by_id(transaction_id)
        if not entry:
            raise NotFoundError("Points transaction not found")

        if not is_voidable(entry.created_at, self.clock()):
            raise VoidWindowExpiredError("Cannot void transaction older than 30 days")

        points_adjusted = -entry.points
        user_id = entry.user_id

        with transaction(self.db):
            self.user_repository.adjust_points(user_id, points_adjusted)
            self.points_repository.delete(entry)

        logger.info(
            "Voided points transaction id=%s user_id=%s adjusted=%s",
            transaction_id,
            user_id,
            points_adjusted,
        )
        return {
            "message": "Transaction voided successfully",
            "points_adjusted": points_adjusted,
        }
