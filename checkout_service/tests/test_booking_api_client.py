from __future__ import annotations

import asyncio
import json
from typing import Any, Callable

import httpx
import pytest

from checkout_service.app.clients.booking_api import (
    BookingApiClient,
    BookingPaymentSubmitter,
    CertificatePurchaseSubmitter,
    to_wire_methods,
)
from checkout_service.app.exceptions import ApiError, SubmissionFailedError
from checkout_service.app.models.credit import CreditStatus
from checkout_service.app.models.money import Money
from checkout_service.app.models.payment import PaymentStatus
from checkout_service.app.services.payment_method_builder import build


BASE_URL = "https://api.example.test"

PAYMENT_BODY: dict[str, Any] = {
    "id": "pay-1",
    "bookingId": "booking-1",
    "amount": {"currency": "RUB", "amountMinor": 150000},
    "status": "PENDING",
    "createdAt": "2026-05-01T09:00:00Z",
    "provider": "telegram",
    "nextAction": {"type": "openInvoice", "slugOrUrl": "invoice-abc"},
}


class RecordingTransport:
    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]) -> None:
        self.responder = responder
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)


def _build_client(
    responder: Callable[[httpx.Request], httpx.Response], **kwargs: Any
) -> tuple[BookingApiClient, RecordingTransport]:
    transport = RecordingTransport(responder)
    http_client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(transport))
    return BookingApiClient(BASE_URL, http_client=http_client, **kwargs), transport


def test_to_wire_methods_translates_credit_and_external() -> None:
    request = build(True, 150000, "RUB")

    assert to_wire_methods(request) == [
        {"method": "bonus", "amount": {"currency": "RUB", "amountMinor": 150000}},
        {"method": "card", "provider": "telegram"},
    ]


def test_pay_booking_sends_idempotency_key_and_wire_body() -> None:
    client, transport = _build_client(lambda request: httpx.Response(201, json=PAYMENT_BODY))

    payment = asyncio.run(
        client.pay_booking("booking-1", build(False, 0, "RUB"), "payment-booking-1")
    )

    assert payment.id == "pay-1"
    assert payment.status == PaymentStatus.PENDING
    assert payment.next_action is not None
    assert payment.next_action.type == "openInvoice"
    assert payment.next_action.payload == {"slugOrUrl": "invoice-abc"}

    sent = transport.requests[0]
    assert sent.method == "POST"
    assert sent.url.path == "/bookings/booking-1/payment"
    assert sent.headers["Idempotency-Key"] == "payment-booking-1"
    assert sent.headers["X-Request-Id"]
    assert json.loads(sent.content) == [{"method": "card", "provider": "telegram"}]


def test_token_provider_adds_bearer_header() -> None:
    async def token_provider() -> str | None:
        return "token-123"

    client, transport = _build_client(
        lambda request: httpx.Response(200, json=PAYMENT_BODY),
        token_provider=token_provider,
    )

    asyncio.run(client.get_payment("pay-1"))

    assert transport.requests[0].headers["Authorization"] == "Bearer token-123"
    assert "Idempotency-Key" not in transport.requests[0].headers


def test_error_body_is_mapped_to_api_error() -> None:
    client, _ = _build_client(
        lambda request: httpx.Response(
            409, json={"code": "HOLD_EXPIRED", "message": "hold expired", "details": None}
        )
    )

    with pytest.raises(ApiError) as exc_info:
        asyncio.run(client.get_payment("pay-1"))

    assert exc_info.value.code == "HOLD_EXPIRED"
    assert exc_info.value.status == 409
    assert exc_info.value.is_transient is False


def test_unparseable_error_becomes_provider_unavailable() -> None:
    client, _ = _build_client(lambda request: httpx.Response(503, text="<html>down</html>"))

    with pytest.raises(ApiError) as exc_info:
        asyncio.run(client.get_payment("pay-1"))

    assert exc_info.value.code == "PROVIDER_UNAVAILABLE"
    assert exc_info.value.status == 503
    assert exc_info.value.is_transient is True


def test_transport_error_has_status_zero() -> None:
    def responder(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client, _ = _build_client(responder)

    with pytest.raises(ApiError) as exc_info:
        asyncio.run(client.get_payment("pay-1"))

    assert exc_info.value.code == "PROVIDER_UNAVAILABLE"
    assert exc_info.value.status == 0


def test_submitter_converts_api_error_to_submission_failure() -> None:
    def responder(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client, transport = _build_client(responder)
    submitter = BookingPaymentSubmitter(client, "booking-1")

    with pytest.raises(SubmissionFailedError) as exc_info:
        asyncio.run(submitter.submit_payment(build(False, 0, "RUB"), "payment-booking-1"))

    assert exc_info.value.transient is True
    assert exc_info.value.code == "PROVIDER_UNAVAILABLE"
    assert len(transport.requests) == 1


def test_certificate_purchase_unwraps_payment_and_sends_amount() -> None:
    client, transport = _build_client(
        lambda request: httpx.Response(
            201, json={"certificate": {"id": "cert-1"}, "payment": PAYMENT_BODY}
        )
    )
    submitter = CertificatePurchaseSubmitter(
        client, "denomination", Money(amount_minor=500000, currency="RUB")
    )

    payment = asyncio.run(submitter.submit_payment(build(False, 0, "RUB"), "certificate-x-1"))

    assert payment.id == "pay-1"
    sent = transport.requests[0]
    assert sent.url.path == "/certificates/purchase"
    assert json.loads(sent.content) == {
        "type": "denomination",
        "paymentMethods": [{"method": "card", "provider": "telegram"}],
        "amount": {"currency": "RUB", "amountMinor": 500000},
    }


def test_get_active_credits_follows_cursor_and_maps_season_tickets() -> None:
    pages = {
        None: {
            "items": [
                {
                    "id": "ticket-1",
                    "plan": {"id": "plan-1", "name": "8 classes", "eventType": "training"},
                    "clientId": "user-1",
                    "status": "ACTIVE",
                    "remainingPasses": 3,
                    "validUntil": "2026-06-01T00:00:00Z",
                }
            ],
            "next": "cursor-2",
        },
        "cursor-2": {
            "items": [
                {
                    "id": "ticket-2",
                    "plan": {"id": "plan-2", "name": "tour pass"},
                    "clientId": "user-1",
                    "status": "ACTIVE",
                    "remainingPasses": 1,
                    "validUntil": "2026-07-01T00:00:00",
                },
                {"id": "broken"},
            ],
            "next": None,
        },
    }

    def responder(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=pages[request.url.params.get("cursor")])

    client, transport = _build_client(responder)

    credits = asyncio.run(client.get_active_credits("user-1"))

    assert [credit.id for credit in credits] == ["ticket-1", "ticket-2"]
    assert credits[0].status == CreditStatus.ACTIVE
    assert credits[0].remaining_units == 3
    assert credits[1].eligible_event_type == "training"
    assert credits[1].expires_at.tzinfo is not None
    first = transport.requests[0]
    assert first.url.path == "/season-tickets"
    assert first.url.params["userId"] == "user-1"
    assert first.url.params["hasRemainingPasses"] == "true"


def test_create_booking_and_redeem_subscription() -> None:
    def responder(request: httpx.Request) -> httpx.Response:
        status = "CONFIRMED" if request.url.path.endswith("redeem-subscription") else "HOLD"
        return httpx.Response(
            200, json={"id": "booking-1", "sessionId": "session-1", "status": status}
        )

    client, transport = _build_client(responder)

    held = asyncio.run(client.create_booking("session-1", "booking-session-1"))
    redeemed = asyncio.run(client.redeem_subscription(held.id))

    assert held.status == "HOLD"
    assert redeemed.status == "CONFIRMED"
    assert transport.requests[0].url.path == "/sessions/session-1/book"
    assert transport.requests[0].headers["Idempotency-Key"] == "booking-session-1"
    assert transport.requests[1].url.path == "/bookings/booking-1/redeem-subscription"
