from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from src.infrastructure.db.models import Base, Cinema, Movie, Showtime, Theater, User
from src.infrastructure.db.session import engine, get_db_session
from src.infrastructure.repositories.seat_repository import SeatRepository


CINEMA_CONFIGS = [
    {"type": "Reguler", "rows": 10, "seats_per_row": 12, "price": 45_000},
    {"type": "IMAX", "rows": 8, "seats_per_row": 10, "price": 65_000},
    {"type": "Premier", "rows": 6, "seats_per_row": 6, "price": 85_000},
]


def _dt(days_from_now: int, hour: int, minute: int) -> datetime:
    now_utc = datetime.now(timezone.utc)
    target = now_utc + timedelta(days=days_from_now)
    return target.replace(hour=hour, minute=minute, second=0, microsecond=0)


def seed_users(db) -> None:
    users = [
        {"name": "John Doe", "email": "john@example.com", "phone": "081234567890"},
        {"name": "Jane Smith", "email": "jane@example.com", "phone": "081234567891"},
        {"name": "Alice Johnson", "email": "alice@example.com", "phone": "081234567893"},
    ]

    for item in users:
        existing = db.execute(
            select(User).where(User.email == item["email"])
        ).scalar_one_or_none()
        if existing:
            existing.name = item["name"]
            existing.phone = item["phone"]
            continue
        # Balances start at zero so they match the (empty) ledger.
        db.add(User(points=0, **item))


def seed_cinemas(db) -> list[Cinema]:
    theater = db.execute(
        select(Theater).where(Theater.name == "Grand Indonesia XXI")
    ).scalar_one_or_none()
    if not theater:
        theater = Theater(name="Grand Indonesia XXI", location="Jakarta Pusat")
        db.add(theater)
        db.flush()

    seats = SeatRepository(db)
    cinemas = []
    for config in CINEMA_CONFIGS:
        cinema = db.execute(
            select(Cinema)
            .where(Cinema.theater_id == theater.id)
            .where(Cinema.type == config["type"])
        ).scalar_one_or_none()
        total_seats = config["rows"] * config["seats_per_row"]
        if cinema:
            cinema.price = config["price"]
            cinema.total_seats = total_seats
        else:
            cinema = Cinema(
                theater_id=theater.id,
                type=config["type"],
                total_seats=total_seats,
                price=config["price"],
            )
            db.add(cinema)
            db.flush()

        seats.create_grid(cinema.id, config["rows"], config["seats_per_row"])
        cinemas.append(cinema)
    return cinemas


def seed_showtimes(db, cinemas: list[Cinema]) -> None:
    movie_defs = [
        {"title": "Avengers: Endgame", "genre": "Adventure, Drama", "rating": "13+", "duration_minutes": 181},
        {"title": "John Wick", "genre": "Action, Thriller", "rating": "17+", "duration_minutes": 101},
        {"title": "Drifting Home", "genre": "Adventure, Drama", "rating": "13+", "duration_minutes": 120},
    ]

    movies = []
    for item in movie_defs:
        movie = db.execute(
            select(Movie).where(Movie.title == item["title"])
        ).scalar_one_or_none()
        if not movie:
            movie = Movie(**item)
            db.add(movie)
            db.flush()
        movies.append(movie)

    for offset, (movie, cinema) in enumerate(zip(movies, cinemas), start=1):
        for hour in (13, 19):
            start_time = _dt(days_from_now=offset, hour=hour, minute=0)
            existing = db.execute(
                select(Showtime)
                .where(Showtime.cinema_id == cinema.id)
                .where(Showtime.start_time == start_time)
            ).scalar_one_or_none()
            if existing:
                existing.movie_id = movie.id
                continue
            db.add(Showtime(movie_id=movie.id, cinema_id=cinema.id, start_time=start_time))


def main() -> None:
    Base.metadata.create_all(bind=engine)
    with get_db_session() as db:
        seed_users(db)
        cinemas = seed_cinemas(db)
        seed_showtimes(db, cinemas)
    print("Seed complete: users, Grand Indonesia XXI cinemas with seats, movies and showtimes added.")


if __name__ == "__main__":
    main()
