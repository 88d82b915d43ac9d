from __future__ import annotations

from typing import Protocol

from ..models.booking import Booking
from ..models.credit import Credit
from ..models.money import Money
from ..models.payment import ActionResult, Payment, PaymentRequest


class PaymentSubmitterInterface(Protocol):
    """결제 요청을 원격 시스템에 제출하는 최소한의 계약.

    같은 idempotency_key 로 몇 번을 다시 보내도 원격 시스템은 하나의 결제로 취급해야 한다.
    실패 시 SubmissionFailedError 를 발생시킨다.
    """

    async def submit_payment(
        self, request: PaymentRequest, idempotency_key: str
    ) -> Payment:  # pragma: no cover - Protocol
        ...


class PaymentActionHandlerInterface(Protocol):
    """호스트 런타임이 소유하는 결제 액션 브리지 (인보이스 열기, 리다이렉트 등).

    사용자 상호작용을 기다리느라 무기한 대기할 수 있으며, 취소는 호스트의 책임이다.
    """

    async def handle_payment_action(
        self, payment: Payment
    ) -> ActionResult:  # pragma: no cover - Protocol
        ...


class PaymentLookupInterface(Protocol):
    async def get_payment(self, payment_id: str) -> Payment:  # pragma: no cover - Protocol
        ...


class CreditSourceInterface(Protocol):
    async def get_active_credits(
        self, user_id: str
    ) -> list[Credit]:  # pragma: no cover - Protocol
        ...


class BookingApiInterface(Protocol):
    """체크아웃 흐름에서 사용하는 예약 API 의 부분 집합."""

    async def list_my_bookings(self) -> list[Booking]:  # pragma: no cover - Protocol
        ...

    async def create_booking(
        self, session_id: str, idempotency_key: str
    ) -> Booking:  # pragma: no cover - Protocol
        ...

    async def redeem_subscription(
        self, booking_id: str
    ) -> Booking:  # pragma: no cover - Protocol
        ...

    async def get_active_credits(
        self, user_id: str
    ) -> list[Credit]:  # pragma: no cover - Protocol
        ...

    async def get_payment(self, payment_id: str) -> Payment:  # pragma: no cover - Protocol
        ...

    async def pay_booking(
        self, booking_id: str, request: PaymentRequest, idempotency_key: str
    ) -> Payment:  # pragma: no cover - Protocol
        ...

    async def purchase_season_ticket(
        self, plan_id: str, request: PaymentRequest, idempotency_key: str
    ) -> Payment:  # pragma: no cover - Protocol
        ...

    async def purchase_certificate(
        self,
        product_type: str,
        request: PaymentRequest,
        idempotency_key: str,
        amount: Money | None = None,
    ) -> Payment:  # pragma: no cover - Protocol
        ...
