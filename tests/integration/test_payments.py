import random

import pytest

from src.application import payment_service
from src.application.booking_service import BookingService
from src.application.payment_service import PaymentService
from src.domain.exceptions import PaymentProcessingError
from src.domain.state_machine import BookingStatus
from src.infrastructure.db.models import PointsTransaction, User


def _booking(client, catalog, seat_ids):
    response = client.post(
        "/bookings",
        json={
            "user_id": catalog["user_id"],
            "showtime_id": catalog["showtime_id"],
            "seats": [{"seat_id": seat_id} for seat_id in seat_ids],
        },
    )
    assert response.status_code == 201
    return response.json()["id"]


def _payment(client, booking_id, method="qris"):
    return client.post("/payments", json={"booking_id": booking_id, "method": method})


@pytest.fixture
def always_approve(monkeypatch):
    monkeypatch.setattr(payment_service, "PAYMENT_SUCCESS_RATE", 1.0)


@pytest.fixture
def always_decline(monkeypatch):
    monkeypatch.setattr(payment_service, "PAYMENT_SUCCESS_RATE", 0.0)


def test_create_payment(client, catalog):
    booking_id = _booking(client, catalog, catalog["seat_ids"][:1])

    response = _payment(client, booking_id, method="e-wallet")

    assert response.status_code == 201
    body = response.json()
    assert body["booking_id"] == booking_id
    assert body["method"] == "e_wallet"
    assert body["status"] == "pending"
    assert body["paid_at"] is None
    assert body["booking_payment_status"] == "pending"

    by_booking = client.get(f"/payments/booking/{booking_id}")
    assert by_booking.status_code == 200
    assert by_booking.json()["id"] == body["id"]


def test_duplicate_payment_conflicts(client, catalog):
    booking_id = _booking(client, catalog, catalog["seat_ids"][:1])
    assert _payment(client, booking_id).status_code == 201

    response = _payment(client, booking_id, method="bank_transfer")

    assert response.status_code == 409
    assert client.get(f"/payments/booking/{booking_id}").json()["method"] == "qris"


def test_payment_rejected_for_non_pending_booking(client, catalog):
    booking_id = _booking(client, catalog, catalog["seat_ids"][:1])
    client.put(f"/bookings/{booking_id}/cancel")

    response = _payment(client, booking_id)

    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot create payment for cancelled booking"


def test_payment_rejects_unknown_method(client, catalog):
    booking_id = _booking(client, catalog, catalog["seat_ids"][:1])

    response = _payment(client, booking_id, method="cash")

    assert response.status_code == 400
    assert client.get(f"/payments/booking/{booking_id}").status_code == 404


def test_process_payment_completes_booking(client, catalog, always_approve):
    booking_id = _booking(client, catalog, catalog["seat_ids"][:2])
    payment_id = _payment(client, booking_id).json()["id"]

    response = client.put(
        f"/payments/{payment_id}/process",
        params={"method": "bank_transfer"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "complete"
    assert body["method"] == "bank_transfer"
    assert body["paid_at"] is not None
    assert body["booking_payment_status"] == "complete"

    booking = client.get(f"/bookings/{booking_id}").json()
    assert booking["user"]["points"] == 90
    assert [seat["status"] for seat in booking["seats"]] == ["booked", "booked"]

    again = client.put(f"/payments/{payment_id}/process")
    assert again.status_code == 400
    assert again.json()["detail"] == "Payment already completed"


def test_declined_payment_changes_nothing(client, catalog, always_decline):
    booking_id = _booking(client, catalog, catalog["seat_ids"][:1])
    payment_id = _payment(client, booking_id).json()["id"]

    response = client.put(f"/payments/{payment_id}/process", params={"method": "e_wallet"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Payment processing failed"
    payment = client.get(f"/payments/{payment_id}").json()
    assert payment["status"] == "pending"
    assert payment["method"] == "qris"
    booking = client.get(f"/bookings/{booking_id}").json()
    assert booking["payment_status"] == "pending"
    assert booking["points_transactions"] == []


def test_cancel_payment(client, catalog):
    booking_id = _booking(client, catalog, catalog["seat_ids"][:1])
    payment_id = _payment(client, booking_id).json()["id"]

    response = client.put(f"/payments/{payment_id}/cancel")

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert response.json()["booking_payment_status"] == "cancelled"
    assert client.get(f"/bookings/{booking_id}").json()["seats"] == []


def test_completed_payment_cannot_be_cancelled(client, catalog, always_approve):
    booking_id = _booking(client, catalog, catalog["seat_ids"][:1])
    payment_id = _payment(client, booking_id).json()["id"]
    client.put(f"/payments/{payment_id}/process")

    response = client.put(f"/payments/{payment_id}/cancel")

    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot cancel completed payment"


def test_confirming_booking_directly_completes_its_payment(client, catalog):
    booking_id = _booking(client, catalog, catalog["seat_ids"][:1])
    payment_id = _payment(client, booking_id).json()["id"]

    client.put(f"/bookings/{booking_id}/confirm-payment")

    payment = client.get(f"/payments/{payment_id}").json()
    assert payment["status"] == "complete"
    assert payment["paid_at"] is not None


def test_missing_payments(client, catalog):
    booking_id = _booking(client, catalog, catalog["seat_ids"][:1])

    assert client.get("/payments/404").status_code == 404
    assert client.put("/payments/404/process").status_code == 404
    assert client.put("/payments/404/cancel").status_code == 404
    assert client.get("/payments/booking/404").json()["detail"] == "Booking not found"
    missing = client.get(f"/payments/booking/{booking_id}")
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Payment not found for this booking"
    assert _payment(client, 404).status_code == 404


def test_processing_follows_the_random_source(db_session, catalog):
    booking = BookingService(db_session).create_booking(
        catalog["user_id"], catalog["showtime_id"], catalog["seat_ids"][:1]
    )
    service = PaymentService(db_session, rng=random.Random(7), success_rate=0.0)
    payment = service.create_payment(booking.id, "qris")

    with pytest.raises(PaymentProcessingError):
        service.process_payment(payment.id)

    db_session.expire_all()
    assert db_session.query(PointsTransaction).count() == 0

    service.success_rate = 1.0
    processed = service.process_payment(payment.id)

    assert processed.status is BookingStatus.COMPLETE
    assert processed.booking.payment_status is BookingStatus.COMPLETE
    assert db_session.get(User, catalog["user_id"]).points == 45


@pytest.mark.parametrize("success_rate", [0.0, 1.0])
def test_cancelled_payment_is_never_processed(monkeypatch, client, catalog, success_rate):
    monkeypatch.setattr(payment_service, "PAYMENT_SUCCESS_RATE", success_rate)
    booking_id = _booking(client, catalog, catalog["seat_ids"][:1])
    payment_id = _payment(client, booking_id).json()["id"]
    client.put(f"/payments/{payment_id}/cancel")

    response = client.put(f"/payments/{payment_id}/process")

    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot process payment for cancelled booking"
    assert client.get(f"/payments/{payment_id}").json()["status"] == "cancelled"
