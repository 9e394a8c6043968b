# src/domain/loyalty.py

from datetime import datetime, timedelta, timezone

# One point per this many currency units of a completed booking.
PRICE_PER_POINT = 1000

VOID_WINDOW = timedelta(days=30)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite drops tzinfo) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def points_for_price(total_price: int) -> int:
    return total_price // PRICE_PER_POINT


def is_voidable(created_at: datetime, now: datetime) -> bool:
    return as_utc(now) - as_utc(created_at) <= VOID_WINDOW
