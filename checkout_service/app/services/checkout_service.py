"""구매 흐름(세션 결제, 정기권 구매, 기프트 인증서 구매) 조립.

각 흐름은 구매 대상에 맞는 submitter 와 idempotency prefix 를 골라
PaymentOrchestrator 한 번의 실행으로 위임한다.
"""

from __future__ import annotations

import logging

from ..clients.booking_api import (
    BookingPaymentSubmitter,
    CertificatePurchaseSubmitter,
    SeasonTicketPurchaseSubmitter,
)
from ..clients.interfaces import (
    BookingApiInterface,
    PaymentActionHandlerInterface,
    PaymentSubmitterInterface,
)
from ..config import PaymentConfig
from ..constants import API_ERROR_MESSAGES, GENERIC_PAYMENT_ERROR, PLAN_NOT_SELECTED
from ..exceptions import ApiError
from ..models.booking import Session
from ..models.money import Money
from ..models.outcome import Failed, FailureKind, PaymentOutcome, SuccessType
from .diagnostics import DiagnosticRecorderInterface
from .idempotency import (
    booking_payment_prefix,
    certificate_prefix,
    new_one_shot_key,
    season_ticket_prefix,
)
from .payment_orchestrator import PaymentOrchestrator
from .redemption_service import find_or_create_hold


logger = logging.getLogger(__name__)


def success_type_from_labels(labels: list[str] | None) -> SuccessType:
    """이벤트 라벨로 성공 화면 종류를 정한다. tour > activity > training 순."""

    labels = labels or []
    if "tour" in labels:
        return SuccessType.TOUR
    if "activity" in labels:
        return SuccessType.ACTIVITY
    return SuccessType.TRAINING


def api_error_message(error: ApiError) -> str:
    return API_ERROR_MESSAGES.get(error.code, GENERIC_PAYMENT_ERROR)


class CheckoutService:
    def __init__(
        self,
        api: BookingApiInterface,
        action_handler: PaymentActionHandlerInterface,
        recorder: DiagnosticRecorderInterface,
        payment_config: PaymentConfig | None = None,
    ) -> None:
        self._api = api
        self._action_handler = action_handler
        self._recorder = recorder
        self._config = payment_config or PaymentConfig()

    async def pay_for_session(
        self,
        session: Session,
        *,
        use_credit: bool = False,
        credit_amount_minor: int = 0,
        currency: str | None = None,
        available_credit_minor: int | None = None,
    ) -> PaymentOutcome:
        """세션 예약 결제. HOLD 예약을 재사용하거나 만든 뒤 payment-{booking_id} 로 결제한다."""

        try:
            booking = await find_or_create_hold(self._api, session.id)
        except ApiError as exc:
            logger.warning(
                "failed to prepare booking for session_id=%s code=%s",
                session.id,
                exc.code,
            )
            return Failed(FailureKind.SUBMISSION_FAILED, api_error_message(exc))

        orchestrator = self._orchestrator(
            BookingPaymentSubmitter(self._api, booking.id),
            success_type_from_labels(session.event.labels),
        )
        return await orchestrator.submit(
            booking_payment_prefix(booking.id),
            use_credit,
            credit_amount_minor,
            currency or self._config.default_currency,
            available_credit_minor=available_credit_minor,
        )

    async def purchase_season_ticket(
        self,
        plan_id: str,
        *,
        use_credit: bool = False,
        credit_amount_minor: int = 0,
        currency: str | None = None,
        available_credit_minor: int | None = None,
    ) -> PaymentOutcome:
        if not plan_id or not plan_id.strip():
            return Failed(FailureKind.INVALID_REQUEST, PLAN_NOT_SELECTED)

        orchestrator = self._orchestrator(
            SeasonTicketPurchaseSubmitter(self._api, plan_id),
            SuccessType.SEASON_TICKET,
        )
        return await orchestrator.submit(
            season_ticket_prefix(plan_id),
            use_credit,
            credit_amount_minor,
            currency or self._config.default_currency,
            available_credit_minor=available_credit_minor,
        )

    async def purchase_certificate(
        self,
        product_type: str,
        *,
        amount: Money | None = None,
        currency: str | None = None,
    ) -> PaymentOutcome:
        """기프트 인증서 구매. 카드 결제만 허용한다.

        서버 식별자가 없는 일회성 구매라 매번 새 키를 만든다.
        같은 화면에서 다시 시도하려면 호출 측이 반환된 결과를 보고 새로 호출해야 한다.
        """

        if product_type == "denomination" and amount is None:
            return Failed(FailureKind.INVALID_REQUEST, GENERIC_PAYMENT_ERROR)

        orchestrator = self._orchestrator(
            CertificatePurchaseSubmitter(self._api, product_type, amount),
            SuccessType.CERTIFICATE,
        )
        return await orchestrator.submit(
            new_one_shot_key(certificate_prefix(product_type)),
            False,
            0,
            currency or (amount.currency if amount else self._config.default_currency),
        )

    async def refresh_status(
        self, payment_id: str, success_type: SuccessType = SuccessType.TRAINING
    ) -> PaymentOutcome:
        """Pending 결제를 다시 조회한다 (앱 재진입 시 호출 측이 트리거)."""

        orchestrator = self._orchestrator(_NoSubmit(), success_type)
        return await orchestrator.refresh_status(payment_id)

    def _orchestrator(
        self, submitter: PaymentSubmitterInterface, success_type: SuccessType
    ) -> PaymentOrchestrator:
        return PaymentOrchestrator(
            submitter,
            self._action_handler,
            self._recorder,
            success_type=success_type,
            provider=self._config.provider,
            max_submit_attempts=self._config.submit_max_attempts,
            lookup=self._api,
        )


class _NoSubmit:
    """상태 재조회 전용 오케스트레이터용. 제출은 절대 일어나지 않아야 한다."""

    async def submit_payment(self, request, idempotency_key):  # noqa: ANN001
        raise RuntimeError("refresh_status must never resubmit a payment")
