# src/infrastructure/repositories/seat_repository.py

from sqlalchemy.orm import Session
from sqlalchemy import func, select

from src.infrastructure.db.models import Seat


class SeatRepository:

    def __init__(self, db: Session):
        self.db = db

    def list_for_cinema(self, cinema_id: int) -> list[Seat]:
        stmt = (
            select(Seat)
            .where(Seat.cinema_id == cinema_id)
            .order_by(Seat.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def count_in_cinema(
        self,
        cinema_id: int,
        seat_ids: list[int],
    ) -> int:
        """
        Number of distinct requested seats that exist in the cinema.
        Unknown ids and seats of other cinemas are not counted.
        """
        stmt = (
            select(func.count())
            .select_from(Seat)
            .where(Seat.cinema_id == cinema_id)
            .where(Seat.id.in_(seat_ids))
        )
        return self.db.execute(stmt).scalar_one()

    def create_grid(
        self,
        cinema_id: int,
        rows: int,
        seats_per_row: int,
    ) -> list[Seat]:
        existing = {
            seat.seat_number for seat in self.list_for_cinema(cinema_id)
        }
        created = []
        for row_index in range(rows):
            row_letter = chr(ord("A") + row_index)
            for number in range(1, seats_per_row + 1):
                label = f"{row_letter}{number}"
                if label in existing:
                    continue
                seat = Seat(cinema_id=cinema_id, seat_number=label)
                self.db.add(seat)
                created.append(seat)
        return created
