# src/infrastructure/repositories/points_repository.py

from sqlalchemy.orm import Session
from sqlalchemy import func, select

from src.infrastructure.db.models import PointsTransaction
from src.domain.enums import PointType


class PointsRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, transaction_id: int) -> PointsTransaction | None:
        stmt = select(PointsTransaction).where(PointsTransaction.id == transaction_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def add(
        self,
        user_id: int,
        booking_id: int | None,
        point_type: PointType,
        points: int,
    ) -> PointsTransaction:
        entry = PointsTransaction(
            user_id=user_id,
            booking_id=booking_id,
            type=point_type,
            points=points,
        )
        self.db.add(entry)
        return entry

    def delete(self, entry: PointsTransaction) -> None:
        self.db.delete(entry)

    def ledger_total(self, user_id: int) -> int:
        stmt = (
            select(func.coalesce(func.sum(PointsTransaction.points), 0))
            .where(PointsTransaction.user_id == user_id)
        )
        return self.db.execute(stmt).scalar_one()
