from datetime import datetime

from pydantic import BaseModel, Field


class SeatSelection(BaseModel):
    seat_id: int


class BookingCreateRequest(BaseModel):
    user_id: int
    showtime_id: int
    # Emptiness is a business validation, reported as 400 by the service.
    seats: list[SeatSelection]


class BookingUserResponse(BaseModel):
    id: int
    name: str
    email: str
    points: int


class TheaterResponse(BaseModel):
    name: str
    location: str


class CinemaResponse(BaseModel):
    id: int
    type: str
    price: int
    theater: TheaterResponse


class MovieResponse(BaseModel):
    id: int
    title: str


class ShowtimeResponse(BaseModel):
    id: int
    start_time: datetime
    movie: MovieResponse
    cinema: CinemaResponse


class BookingSeatResponse(BaseModel):
    seat_id: int
    seat_number: str
    status: str


class PaymentSummaryResponse(BaseModel):
    id: int
    method: str
    status: str
    paid_at: datetime | None = None


class PointsTransactionResponse(BaseModel):
    id: int
    user_id: int
    booking_id: int | None = None
    type: str
    points: int
    created_at: datetime


class BookingResponse(BaseModel):
    id: int
    user_id: int
    showtime_id: int
    total_price: int
    payment_status: str
    created_at: datetime
    user: BookingUserResponse
    showtime: ShowtimeResponse
    seats: list[BookingSeatResponse]
    payment: PaymentSummaryResponse | None = None
    points_transactions: list[PointsTransactionResponse] = []


class PageMeta(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class BookingPageResponse(BaseModel):
    data: list[BookingResponse]
    meta: PageMeta


class SeatAvailabilityResponse(BaseModel):
    id: int
    seat_number: str
    is_available: bool


class ShowtimeSeatsResponse(BaseModel):
    showtime_id: int
    cinema_id: int
    seats: list[SeatAvailabilityResponse]
    total_available: int


class PaymentCreateRequest(BaseModel):
    booking_id: int
    method: str


class PaymentResponse(BaseModel):
    id: int
    booking_id: int
    method: str
    status: str
    paid_at: datetime | None = None
    created_at: datetime
    booking_payment_status: str


class RedeemPointsRequest(BaseModel):
    user_id: int
    points: int
    booking_id: int | None = None


class VoidTransactionResponse(BaseModel):
    message: str
    points_adjusted: int = Field(description="Signed change applied to the user's balance")
