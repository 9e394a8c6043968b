import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

_DB_PATH = os.path.join(tempfile.gettempdir(), "cinema_booking_test.db")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_PATH}"
os.environ["DB_CONNECT_MAX_RETRIES"] = "1"

from fastapi.testclient import TestClient  # noqa: E402

from src.infrastructure.db.session import SessionLocal, engine  # noqa: E402
from src.infrastructure.db.models import (  # noqa: E402
    Base,
    Cinema,
    Movie,
    Seat,
    Showtime,
    Theater,
    User,
)
from src.main import app  # noqa: E402


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def second_session():
    """An independent session standing in for a concurrent request."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def catalog(db_session):
    """
    One user, one cinema priced 45000 with a 2x5 seat grid (A1..B5),
    a showtime tomorrow and one that already started.
    """
    theater = Theater(name="Grand Indonesia XXI", location="Jakarta Pusat")
    cinema = Cinema(theater=theater, type="Reguler", total_seats=10, price=45_000)
    other_cinema = Cinema(theater=theater, type="IMAX", total_seats=1, price=65_000)
    seats = [
        Seat(cinema=cinema, seat_number=f"{row}{number}")
        for row in "AB"
        for number in range(1, 6)
    ]
    foreign_seat = Seat(cinema=other_cinema, seat_number="A1")
    movie = Movie(title="John Wick", duration_minutes=101)
    now = datetime.now(timezone.utc)
    showtime = Showtime(movie=movie, cinema=cinema, start_time=now + timedelta(days=1))
    past_showtime = Showtime(movie=movie, cinema=cinema, start_time=now - timedelta(hours=1))
    user = User(name="John Doe", email="john@example.com", points=0)
    other_user = User(name="Jane Smith", email="jane@example.com", points=0)

    db_session.add_all(
        [theater, cinema, other_cinema, *seats, foreign_seat, movie,
         showtime, past_showtime, user, other_user]
    )
    db_session.commit()

    return {
        "user_id": user.id,
        "other_user_id": other_user.id,
        "showtime_id": showtime.id,
        "past_showtime_id": past_showtime.id,
        "seat_ids": [seat.id for seat in seats],
        "foreign_seat_id": foreign_seat.id,
    }
