import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from src.infrastructure.db.session import SessionLocal
from src.infrastructure.db.models import Booking, Payment, PointsTransaction
from src.application.booking_service import BookingService
from src.application.payment_service import PaymentService
from src.application.points_service import PointsService
from src.api.schemas.schemas import (
    BookingCreateRequest,
    BookingPageResponse,
    BookingResponse,
    PaymentCreateRequest,
    PaymentResponse,
    PointsTransactionResponse,
    RedeemPointsRequest,
    ShowtimeSeatsResponse,
    VoidTransactionResponse,
)
from src.domain.exceptions import (
    BusinessRuleError,
    CinemaBookingError,
    ConflictError,
    NotFoundError,
    ValidationError,
)


router = APIRouter()
logger = logging.getLogger(__name__)


def get_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def _http_error(exc: CinemaBookingError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, ConflictError):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, (ValidationError, BusinessRuleError)):
        status_code = status.HTTP_400_BAD_REQUEST
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    logger.debug("Request rejected with %s: %s", status_code, exc)
    return HTTPException(status_code=status_code, detail=str(exc))


def _points_transaction_dict(entry: PointsTransaction) -> dict:
    return {
        "id": entry.id,
        "user_id": entry.user_id,
        "booking_id": entry.booking_id,
        "type": entry.type.value,
        "points": entry.points,
        "created_at": entry.created_at,
    }


def _booking_dict(booking: Booking) -> dict:
    showtime = booking.showtime
    cinema = showtime.cinema
    payment = booking.payment
    return {
        "id": booking.id,
        "user_id": booking.user_id,
        "showtime_id": booking.showtime_id,
        "total_price": booking.total_price,
        "payment_status": booking.payment_status.value,
        "created_at": booking.created_at,
        "user": {
            "id": booking.user.id,
            "name": booking.user.name,
            "email": booking.user.email,
            "points": booking.user.points,
        },
        "showtime": {
            "id": showtime.id,
            "start_time": showtime.start_time,
            "movie": {
                "id": showtime.movie.id,
                "title": showtime.movie.title,
            },
            "cinema": {
                "id": cinema.id,
                "type": cinema.type,
                "price": cinema.price,
                "theater": {
                    "name": cinema.theater.name,
                    "location": cinema.theater.location,
                },
            },
        },
        "seats": [
            {
                "seat_id": booking_seat.seat_id,
                "seat_number": booking_seat.seat.seat_number,
                "status": booking_seat.status.value,
            }
            for booking_seat in sorted(booking.booking_seats, key=lambda bs: bs.seat_id)
        ],
        "payment": (
            {
                "id": payment.id,
                "method": payment.method.value,
                "status": payment.status.value,
                "paid_at": payment.paid_at,
            }
            if payment is not None
            else None
        ),
        "points_transactions": [
            _points_transaction_dict(entry) for entry in booking.points_transactions
        ],
    }


def _payment_response(payment: Payment) -> PaymentResponse:
    return PaymentResponse(
        id=payment.id,
        booking_id=payment.booking_id,
        method=payment.method.value,
        status=payment.status.value,
        paid_at=payment.paid_at,
        created_at=payment.created_at,
        booking_payment_status=payment.booking.payment_status.value,
    )


@router.get("/health")
def health():
    return {"message": "Cinema Booking Engine is running"}


# -----------------------------
# Bookings
# -----------------------------
@router.post(
    "/bookings",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_booking(
    request: BookingCreateRequest,
    db: Session = Depends(get_db),
):

    service = BookingService(db)

    try:
        booking = service.create_booking(
            user_id=request.user_id,
            showtime_id=request.showtime_id,
            seat_ids=[seat.seat_id for seat in request.seats],
        )
    except CinemaBookingError as exc:
        raise _http_error(exc) from exc

    return _booking_dict(booking)


@router.get("/bookings", response_model=BookingPageResponse)
def list_bookings(
    page: int = 1,
    limit: int = 10,
    user_id: int | None = Query(default=None, alias="userId"),
    payment_status: str | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
):
    try:
        bookings, meta = BookingService(db).list_bookings(
            page=page,
            limit=limit,
            user_id=user_id,
            status=payment_status,
        )
    except CinemaBookingError as exc:
        raise _http_error(exc) from exc

    return {"data": [_booking_dict(b) for b in bookings], "meta": meta}


@router.get("/bookings/user/{user_id}", response_model=BookingPageResponse)
def list_user_bookings(
    user_id: int,
    page: int = 1,
    limit: int = 10,
    db: Session = Depends(get_db),
):
    try:
        bookings, meta = BookingService(db).list_user_bookings(
            user_id=user_id,
            page=page,
            limit=limit,
        )
    except CinemaBookingError as exc:
        raise _http_error(exc) from exc

    return {"data": [_booking_dict(b) for b in bookings], "meta": meta}


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
def get_booking(booking_id: int, db: Session = Depends(get_db)):
    try:
        booking = BookingService(db).get_booking(booking_id)
    except CinemaBookingError as exc:
        raise _http_error(exc) from exc

    return _booking_dict(booking)


@router.put("/bookings/{booking_id}/confirm-payment", response_model=BookingResponse)
def confirm_booking_payment(
    booking_id: int,
    db: Session = Depends(get_db),
):
    try:
        booking = BookingService(db).confirm_payment(booking_id)
    except CinemaBookingError as exc:
        raise _http_error(exc) from exc

    return _booking_dict(booking)


@router.put("/bookings/{booking_id}/cancel", response_model=BookingResponse)
@router.delete("/bookings/{booking_id}", response_model=BookingResponse)
def cancel_booking(
    booking_id: int,
    db: Session = Depends(get_db),
):
    try:
        booking = BookingService(db).cancel_booking(booking_id)
    except CinemaBookingError as exc:
        raise _http_error(exc) from exc

    return _booking_dict(booking)


@router.get("/showtimes/{showtime_id}/seats", response_model=ShowtimeSeatsResponse)
def showtime_seats(showtime_id: int, db: Session = Depends(get_db)):
    try:
        return BookingService(db).available_seats(showtime_id)
    except CinemaBookingError as exc:
        raise _http_error(exc) from exc


# -----------------------------
# Payments
# -----------------------------
@router.post(
    "/payments",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_payment(
    request: PaymentCreateRequest,
    db: Session = Depends(get_db),
):
    try:
        payment = PaymentService(db).create_payment(
            booking_id=request.booking_id,
            method=request.method,
        )
    except CinemaBookingError as exc:
        raise _http_error(exc) from exc

    return _payment_response(payment)


@router.get("/payments/booking/{booking_id}", response_model=PaymentResponse)
def get_payment_for_booking(booking_id: int, db: Session = Depends(get_db)):
    try:
        payment = PaymentService(db).get_payment_for_booking(booking_id)
    except CinemaBookingError as exc:
        raise _http_error(exc) from exc

    return _payment_response(payment)


@router.get("/payments/{payment_id}", response_model=PaymentResponse)
def get_payment(payment_id: int, db: Session = Depends(get_db)):
    try:
        payment = PaymentService(db).get_payment(payment_id)
    except CinemaBookingError as exc:
        raise _http_error(exc) from exc

    return _payment_response(payment)


@router.put("/payments/{payment_id}/process", response_model=PaymentResponse)
def process_payment(
    payment_id: int,
    method: str | None = None,
    db: Session = Depends(get_db),
):
    try:
        payment = PaymentService(db).process_payment(payment_id, method=method)
    except CinemaBookingError as exc:
        raise _http_error(exc) from exc

    return _payment_response(payment)


@router.put("/payments/{payment_id}/cancel", response_model=PaymentResponse)
def cancel_payment(payment_id: int, db: Session = Depends(get_db)):
    try:
        payment = PaymentService(db).cancel_payment(payment_id)
    except CinemaBookingError as exc:
        raise _http_error(exc) from exc

    return _payment_response(payment)


# -----------------------------
# Points ledger
# -----------------------------
@router.post(
    "/points-transactions/redeem",
    response_model=PointsTransactionResponse,
    status_code=status.HTTP_201_CREATED,
)
def redeem_points(
    request: RedeemPointsRequest,
    db: Session = Depends(get_db),
):
    try:
        entry = PointsService(db).redeem_points(
            user_id=request.user_id,
            points=request.points,
            booking_id=request.booking_id,
        )
    except CinemaBookingError as exc:
        raise _http_error(exc) from exc

    return _points_transaction_dict(entry)


@router.post(
    "/points-transactions/{transaction_id}/void",
    response_model=VoidTransactionResponse,
)
def void_points_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
):
    try:
        return PointsService(db).void_transaction(transaction_id)
    except CinemaBookingError as exc:
        raise _http_error(exc) from exc
