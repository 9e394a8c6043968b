# src/infrastructure/repositories/user_repository.py

from sqlalchemy.orm import Session
from sqlalchemy import select, update

from src.infrastructure.db.models import User


class UserRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: int) -> User | None:
        stmt = select(User).where(User.id == user_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def lock(self, user_id: int) -> User | None:
        stmt = (
            select(User)
            .where(User.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def adjust_points(self, user_id: int, delta: int) -> None:
        # In-database increment so concurrent adjustments never overwrite each other.
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(points=User.points + delta)
        )
        self.db.execute(stmt)
