# src/infrastructure/repositories/showtime_repository.py

from sqlalchemy.orm import Session, selectinload
from sqlalchemy import select

from src.infrastructure.db.models import Cinema, Showtime


class ShowtimeRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, showtime_id: int) -> Showtime | None:
        stmt = (
            select(Showtime)
            .where(Showtime.id == showtime_id)
            .options(
                selectinload(Showtime.movie),
                selectinload(Showtime.cinema).selectinload(Cinema.theater),
            )
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def lock(self, showtime_id: int) -> Showtime | None:
        """
        SELECT ... FOR UPDATE
        Serialises seat-claiming writes on one showtime.
        """

        stmt = (
            select(Showtime)
            .where(Showtime.id == showtime_id)
            .with_for_update()
        )
        return self.db.execute(stmt).scalar_one_or_none()
