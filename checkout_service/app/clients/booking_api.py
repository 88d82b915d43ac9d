"""예약/결제 API HTTP 클라이언트.

원격 API 와의 와이어 형식(camelCase, 결제 수단 이름 bonus/card)은 이 모듈 안에서만 다룬다.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from ..exceptions import ApiError, SubmissionFailedError
from ..models.booking import Booking
from ..models.credit import Credit, CreditStatus
from ..models.money import Money
from ..models.payment import CreditMethod, Payment, PaymentRequest
from .interfaces import BookingApiInterface


logger = logging.getLogger(__name__)


REQUEST_ID_HEADER = "X-Request-Id"
IDEMPOTENCY_KEY_HEADER = "Idempotency-Key"
DEFAULT_TIMEOUT_SECONDS = 30.0

# 정기권 플랜에 이벤트 타입이 명시되지 않으면 일반 트레이닝용으로 본다.
DEFAULT_CREDIT_EVENT_TYPE = "training"

# 무한 페이지 루프 방지
MAX_PAGES = 20

TokenProvider = Callable[[], Awaitable[str | None]]


def to_wire_methods(request: PaymentRequest) -> list[dict[str, Any]]:
    """provider 중립 결제 수단을 원격 API 의 결제 수단 배열로 변환한다."""

    methods: list[dict[str, Any]] = []
    for entry in request.methods:
        if isinstance(entry, CreditMethod):
            methods.append({"method": "bonus", "amount": entry.amount.to_wire()})
        else:
            methods.append({"method": "card", "provider": entry.provider})
    return methods


def credit_from_season_ticket(data: dict[str, Any]) -> Credit:
    """원격 정기권 리소스를 Credit 스냅샷으로 변환한다."""

    plan = data.get("plan") or {}
    return Credit(
        id=data["id"],
        status=CreditStatus(str(data["status"]).upper()),
        eligible_event_type=plan.get("eventType") or DEFAULT_CREDIT_EVENT_TYPE,
        remaining_units=data["remainingPasses"],
        expires_at=data["validUntil"],
    )


def _error_from_response(response: httpx.Response) -> ApiError:
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict) and isinstance(body.get("code"), str):
        return ApiError(body["code"], str(body.get("message") or ""), response.status_code)

    return ApiError(
        "PROVIDER_UNAVAILABLE",
        response.reason_phrase or "An unexpected error occurred",
        response.status_code,
    )


class BookingApiClient:
    """httpx.AsyncClient 기반 예약 API 클라이언트.

    - 모든 요청에 X-Request-Id 를 붙인다.
    - 결제/예약 생성 요청에는 Idempotency-Key 를 붙인다.
    - 오류 응답은 ApiError 로, 전송 실패는 status=0 의 PROVIDER_UNAVAILABLE 로 변환한다.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        token_provider: TokenProvider | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._token_provider = token_provider
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> BookingApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ── 예약 ──────────────────────────────────────────────────────

    async def create_booking(self, session_id: str, idempotency_key: str) -> Booking:
        data = await self._request(
            "POST",
            f"/sessions/{quote(session_id, safe='')}/book",
            json={},
            idempotency_key=idempotency_key,
        )
        return self._parse(Booking, data)

    async def list_my_bookings(self) -> list[Booking]:
        data = await self._request("GET", "/users/me/bookings")
        items = data.get("items", []) if isinstance(data, dict) else data
        return [self._parse(Booking, item) for item in items or []]

    async def redeem_subscription(self, booking_id: str) -> Booking:
        data = await self._request(
            "POST", f"/bookings/{quote(booking_id, safe='')}/redeem-subscription"
        )
        return self._parse(Booking, data)

    # ── 크레딧 ────────────────────────────────────────────────────

    async def get_active_credits(self, user_id: str) -> list[Credit]:
        credits: list[Credit] = []
        params: dict[str, Any] = {
            "userId": user_id,
            "status": "ACTIVE",
            "hasRemainingPasses": "true",
        }
        for _ in range(MAX_PAGES):
            data = await self._request("GET", "/season-tickets", params=params)
            for item in data.get("items", []):
                try:
                    credits.append(credit_from_season_ticket(item))
                except (KeyError, ValueError, ValidationError):
                    logger.warning("skipping malformed season ticket id=%s", item.get("id"))
            cursor = data.get("next")
            if not cursor:
                break
            params = {**params, "cursor": cursor}
        return credits

    # ── 결제 ──────────────────────────────────────────────────────

    async def get_payment(self, payment_id: str) -> Payment:
        data = await self._request("GET", f"/payments/{quote(payment_id, safe='')}")
        return self._parse(Payment, data)

    async def pay_booking(
        self, booking_id: str, request: PaymentRequest, idempotency_key: str
    ) -> Payment:
        data = await self._request(
            "POST",
            f"/bookings/{quote(booking_id, safe='')}/payment",
            json=to_wire_methods(request),
            idempotency_key=idempotency_key,
        )
        return self._parse(Payment, data)

    async def purchase_season_ticket(
        self, plan_id: str, request: PaymentRequest, idempotency_key: str
    ) -> Payment:
        data = await self._request(
            "POST",
            f"/season-ticket-plans/{quote(plan_id, safe='')}/purchase",
            json=to_wire_methods(request),
            idempotency_key=idempotency_key,
        )
        return self._parse(Payment, data)

    async def purchase_certificate(
        self,
        product_type: str,
        request: PaymentRequest,
        idempotency_key: str,
        amount: Money | None = None,
    ) -> Payment:
        body: dict[str, Any] = {"type": product_type, "paymentMethods": to_wire_methods(request)}
        if amount is not None:
            body["amount"] = amount.to_wire()
        data = await self._request(
            "POST",
            "/certificates/purchase",
            json=body,
            idempotency_key=idempotency_key,
        )
        # 응답은 {certificate, payment}. 결제 흐름에는 payment 만 필요하다.
        return self._parse(Payment, data.get("payment") if isinstance(data, dict) else None)

    # ── 내부 ──────────────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> Any:
        request_id = uuid.uuid4().hex
        headers = {REQUEST_ID_HEADER: request_id}
        if idempotency_key is not None:
            headers[IDEMPOTENCY_KEY_HEADER] = idempotency_key
        if self._token_provider is not None:
            token = await self._token_provider()
            if token:
                headers["Authorization"] = f"Bearer {token}"

        start = time.monotonic()
        try:
            response = await self._client.request(
                method, path, json=json, params=params, headers=headers
            )
        except httpx.RequestError as exc:
            logger.warning(
                "api request failed %s %s: %s",
                method,
                path,
                exc,
                extra={"request_id": request_id, "idempotency_key": idempotency_key},
            )
            raise ApiError("PROVIDER_UNAVAILABLE", str(exc) or "Network error occurred", 0) from exc

        duration_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "api %s %s -> %d",
            method,
            path,
            response.status_code,
            extra={
                "request_id": request_id,
                "idempotency_key": idempotency_key,
                "status": response.status_code,
                "duration": duration_ms,
            },
        )

        if response.is_error:
            raise _error_from_response(response)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(
                "PROVIDER_UNAVAILABLE", "invalid JSON response", response.status_code
            ) from exc

    @staticmethod
    def _parse(model: Any, data: Any) -> Any:
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            logger.error("unexpected %s payload: %s", model.__name__, exc)
            # 응답은 받았으나 형식이 계약과 다르다. 게이트웨이 오류로 취급한다.
            raise ApiError(
                "PROVIDER_UNAVAILABLE", f"invalid {model.__name__} payload", 502
            ) from exc


# ── PaymentSubmitterInterface 어댑터 ───────────────────────────────


class _ApiSubmitter:
    async def submit_payment(self, request: PaymentRequest, idempotency_key: str) -> Payment:
        try:
            return await self._submit(request, idempotency_key)
        except ApiError as exc:
            raise SubmissionFailedError.from_api_error(exc) from exc

    async def _submit(
        self, request: PaymentRequest, idempotency_key: str
    ) -> Payment:  # pragma: no cover - abstract
        raise NotImplementedError


class BookingPaymentSubmitter(_ApiSubmitter):
    def __init__(self, client: BookingApiInterface, booking_id: str) -> None:
        self._client = client
        self._booking_id = booking_id

    async def _submit(self, request: PaymentRequest, idempotency_key: str) -> Payment:
        return await self._client.pay_booking(self._booking_id, request, idempotency_key)


class SeasonTicketPurchaseSubmitter(_ApiSubmitter):
    def __init__(self, client: BookingApiInterface, plan_id: str) -> None:
        self._client = client
        self._plan_id = plan_id

    async def _submit(self, request: PaymentRequest, idempotency_key: str) -> Payment:
        return await self._client.purchase_season_ticket(self._plan_id, request, idempotency_key)


class CertificatePurchaseSubmitter(_ApiSubmitter):
    def __init__(
        self,
        client: BookingApiInterface,
        product_type: str,
        amount: Money | None = None,
    ) -> None:
        self._client = client
        self._product_type = product_type
        self._amount = amount

    async def _submit(self, request: PaymentRequest, idempotency_key: str) -> Payment:
        return await self._client.purchase_certificate(
            self._product_type, request, idempotency_key, self._amount
        )
