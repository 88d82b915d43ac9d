"""결제 제출 오케스트레이터.

Idle -> Submitting -> AwaitingAction -> Resolving -> {Succeeded, Pending, Failed}

한 번의 사용자 동작에 한 번의 run 이 대응한다. 같은 인스턴스에 대한 동시 호출은
호출 측이 버튼을 비활성화하는 식으로 막아야 한다 (내부 락은 두지 않는다).
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from typing import Any, TypeVar

from common.events.payment import PaymentEventType

from ..clients.interfaces import (
    PaymentActionHandlerInterface,
    PaymentLookupInterface,
    PaymentSubmitterInterface,
)
from ..constants import (
    API_ERROR_MESSAGES,
    COMPLETED_ACTION_STATUSES,
    DEFAULT_PROVIDER,
    GENERIC_PAYMENT_ERROR,
    PENDING_ACTION_STATUS,
)
from ..exceptions import (
    ActionFailedError,
    InvalidAmountError,
    MissingNextActionError,
    SubmissionFailedError,
)
from ..models.outcome import (
    Failed,
    FailureKind,
    PaymentOutcome,
    PaymentState,
    Pending,
    StateTransition,
    Succeeded,
    SuccessType,
)
from ..models.payment import ActionResult, NextAction, Payment, PaymentRequest, PaymentStatus
from . import payment_method_builder
from .diagnostics import AttemptHandle, DiagnosticRecorderInterface
from .idempotency import derive_key


logger = logging.getLogger(__name__)

T = TypeVar("T")


def submission_error_message(error: SubmissionFailedError) -> str:
    """오류 코드 표 -> 서버 메시지 -> 일반 메시지 순으로 사용자 메시지를 고른다."""

    if error.code and error.code in API_ERROR_MESSAGES:
        return API_ERROR_MESSAGES[error.code]
    if error.server_message:
        return error.server_message
    return GENERIC_PAYMENT_ERROR


def _require_next_action(payment: Payment) -> NextAction:
    if payment.next_action is None:
        raise MissingNextActionError(payment.id)
    return payment.next_action


class PaymentOrchestrator:
    def __init__(
        self,
        submitter: PaymentSubmitterInterface,
        action_handler: PaymentActionHandlerInterface,
        recorder: DiagnosticRecorderInterface,
        *,
        success_type: SuccessType,
        provider: str = DEFAULT_PROVIDER,
        max_submit_attempts: int = 1,
        lookup: PaymentLookupInterface | None = None,
    ) -> None:
        if max_submit_attempts < 1:
            raise ValueError("max_submit_attempts must be >= 1")
        self._submitter = submitter
        self._action_handler = action_handler
        self._recorder = recorder
        self._success_type = success_type
        self._provider = provider
        self._max_submit_attempts = max_submit_attempts
        self._lookup = lookup

    async def submit(
        self,
        intent_prefix: str,
        use_credit: bool,
        credit_amount_minor: int,
        currency: str,
        *,
        available_credit_minor: int | None = None,
    ) -> PaymentOutcome:
        """run 을 끝까지 소비하고 최종 결과만 돌려준다."""

        outcome: PaymentOutcome | None = None
        async for transition in self.run(
            intent_prefix,
            use_credit,
            credit_amount_minor,
            currency,
            available_credit_minor=available_credit_minor,
        ):
            if transition.outcome is not None:
                outcome = transition.outcome
        if outcome is None:  # pragma: no cover - run 은 항상 결과로 끝난다
            raise RuntimeError("payment flow ended without an outcome")
        return outcome

    async def run(
        self,
        intent_prefix: str,
        use_credit: bool,
        credit_amount_minor: int,
        currency: str,
        *,
        available_credit_minor: int | None = None,
    ) -> AsyncIterator[StateTransition]:
        """상태 전이를 순서대로 내보낸다. 마지막 전이에 outcome 이 실린다.

        빈 intent_prefix 는 호출 측 계약 위반이므로 ValueError 를 그대로 올린다.
        """

        idempotency_key = derive_key(intent_prefix)
        attempt_id = self._start(
            amount=credit_amount_minor if use_credit else None,
            currency=currency,
            provider=self._provider,
            metadata={"idempotency_key": idempotency_key, "use_credit": use_credit},
        )
        yield StateTransition(PaymentState.IDLE, PaymentState.SUBMITTING, attempt_id=attempt_id)

        # 요청 조립: 네트워크에 닿기 전에 로컬에서 실패한다.
        try:
            request = payment_method_builder.build(
                use_credit,
                credit_amount_minor,
                currency,
                provider=self._provider,
                available_credit_minor=available_credit_minor,
            )
        except InvalidAmountError as exc:
            logger.warning(
                "invalid payment request: %s",
                exc,
                extra={"attempt_id": attempt_id, "idempotency_key": idempotency_key},
            )
            yield self._fail(
                PaymentState.SUBMITTING,
                attempt_id,
                Failed(FailureKind.INVALID_AMOUNT, GENERIC_PAYMENT_ERROR),
                error=str(exc),
            )
            return

        try:
            payment = await self._submit(request, idempotency_key, attempt_id)
        except SubmissionFailedError as exc:
            logger.warning(
                "payment submission failed: %s",
                exc,
                extra={"attempt_id": attempt_id, "idempotency_key": idempotency_key},
            )
            yield self._fail(
                PaymentState.SUBMITTING,
                attempt_id,
                Failed(FailureKind.SUBMISSION_FAILED, submission_error_message(exc)),
                error=str(exc),
            )
            return
        except Exception as exc:
            logger.exception(
                "unexpected error while submitting payment",
                extra={"attempt_id": attempt_id, "idempotency_key": idempotency_key},
            )
            yield self._fail(
                PaymentState.SUBMITTING,
                attempt_id,
                Failed(FailureKind.SUBMISSION_FAILED, GENERIC_PAYMENT_ERROR),
                error=repr(exc),
            )
            return

        self._log(
            PaymentEventType.PAYMENT_API_RESPONSE,
            attempt_id,
            payment_id=payment.id,
            booking_id=payment.booking_id,
            amount=payment.amount.amount_minor,
            currency=payment.amount.currency,
            status=payment.status.value,
            metadata={"next_action": payment.next_action.type if payment.next_action else None},
        )

        try:
            _require_next_action(payment)
        except MissingNextActionError as exc:
            logger.error(
                "payment has no next action",
                extra={"attempt_id": attempt_id, "payment_id": payment.id},
            )
            yield self._fail(
                PaymentState.SUBMITTING,
                attempt_id,
                Failed(FailureKind.MISSING_NEXT_ACTION, GENERIC_PAYMENT_ERROR, payment),
                error=str(exc),
            )
            return

        yield StateTransition(
            PaymentState.SUBMITTING,
            PaymentState.AWAITING_ACTION,
            attempt_id=attempt_id,
            payment_id=payment.id,
        )

        # 호스트 액션은 사용자 입력을 기다리며 무기한 대기할 수 있다. 로컬 타임아웃은 두지 않는다.
        result: ActionResult | None = None
        action_error: str | None = None
        try:
            result = await self._action_handler.handle_payment_action(payment)
        except ActionFailedError as exc:
            logger.warning(
                "payment action could not be performed: %s",
                exc.reason,
                extra={"attempt_id": attempt_id, "payment_id": payment.id},
            )
            action_error = exc.reason
        except Exception as exc:
            logger.exception(
                "payment action handler raised",
                extra={"attempt_id": attempt_id, "payment_id": payment.id},
            )
            action_error = repr(exc)

        yield StateTransition(
            PaymentState.AWAITING_ACTION,
            PaymentState.RESOLVING,
            attempt_id=attempt_id,
            payment_id=payment.id,
        )

        if result is None:
            self._log(
                PaymentEventType.ERROR_OCCURRED,
                attempt_id,
                payment_id=payment.id,
                error=action_error,
            )
            yield self._fail(
                PaymentState.RESOLVING,
                attempt_id,
                Failed(FailureKind.ACTION_FAILED, GENERIC_PAYMENT_ERROR, payment),
                error=action_error,
            )
            return

        self._log(
            PaymentEventType.INVOICE_STATUS_RECEIVED,
            attempt_id,
            payment_id=payment.id,
            status=result.status,
            error=result.error,
            metadata={"success": result.success},
        )

        yield self._resolve(attempt_id, payment, result)

    async def refresh_status(self, payment_id: str) -> PaymentOutcome:
        """Pending 이후 재진입 시 결제 상태를 다시 조회한다. 절대 재제출하지 않는다.

        조회 실패(ApiError)는 그대로 올린다. 결제 결과와 조회 실패는 구분되어야 한다.
        """

        if self._lookup is None:
            raise RuntimeError("payment lookup is not configured")

        payment = await self._lookup.get_payment(payment_id)
        logger.info(
            "refreshed payment status",
            extra={"payment_id": payment.id, "status": payment.status.value},
        )

        if payment.status in (PaymentStatus.PAID, PaymentStatus.NONE):
            return Succeeded(payment, self._success_type)
        if payment.status == PaymentStatus.PENDING:
            return Pending(payment)
        return Failed(FailureKind.ACTION_FAILED, GENERIC_PAYMENT_ERROR, payment)

    # ── 내부 ──────────────────────────────────────────────────────

    async def _submit(
        self, request: PaymentRequest, idempotency_key: str, attempt_id: AttemptHandle | None
    ) -> Payment:
        """일시적 실패는 같은 요청, 같은 키로 다시 보낸다. 마지막 실패는 그대로 올린다."""

        submit_attempt = 1
        while True:
            self._log(
                PaymentEventType.PAYMENT_API_CALLED,
                attempt_id,
                provider=self._provider,
                metadata={
                    "idempotency_key": idempotency_key,
                    "submit_attempt": submit_attempt,
                    "methods": [entry.method for entry in request.methods],
                },
            )
            try:
                return await self._submitter.submit_payment(request, idempotency_key)
            except SubmissionFailedError as exc:
                self._log(
                    PaymentEventType.ERROR_OCCURRED,
                    attempt_id,
                    error=str(exc),
                    metadata={"code": exc.code, "transient": exc.transient},
                )
                if not exc.transient or submit_attempt >= self._max_submit_attempts:
                    raise

            submit_attempt += 1
            logger.info(
                "retrying payment submission (%d/%d)",
                submit_attempt,
                self._max_submit_attempts,
                extra={"attempt_id": attempt_id, "idempotency_key": idempotency_key},
            )

    def _resolve(
        self, attempt_id: AttemptHandle | None, payment: Payment, result: ActionResult
    ) -> StateTransition:
        status = (result.status or "").lower()

        if result.success and status in COMPLETED_ACTION_STATUSES:
            self._end(attempt_id, success=True, invoice_status=status)
            logger.info(
                "payment completed",
                extra={"attempt_id": attempt_id, "payment_id": payment.id, "status": status},
            )
            return StateTransition(
                PaymentState.RESOLVING,
                PaymentState.SUCCEEDED,
                attempt_id=attempt_id,
                payment_id=payment.id,
                outcome=Succeeded(payment, self._success_type),
            )

        if result.success and status == PENDING_ACTION_STATUS:
            # 시도 기록은 닫지 않는다. 이후 refresh_status 로 재조회한다.
            logger.info(
                "payment pending external confirmation",
                extra={"attempt_id": attempt_id, "payment_id": payment.id},
            )
            return StateTransition(
                PaymentState.RESOLVING,
                PaymentState.PENDING,
                attempt_id=attempt_id,
                payment_id=payment.id,
                outcome=Pending(payment),
            )

        if result.success:
            logger.warning(
                "unexpected payment action status %r",
                result.status,
                extra={"attempt_id": attempt_id, "payment_id": payment.id},
            )
            return self._fail(
                PaymentState.RESOLVING,
                attempt_id,
                Failed(FailureKind.ACTION_FAILED, GENERIC_PAYMENT_ERROR, payment),
                error=f"unexpected action status: {result.status}",
                invoice_status=result.status,
            )

        return self._fail(
            PaymentState.RESOLVING,
            attempt_id,
            Failed(FailureKind.ACTION_FAILED, result.error or GENERIC_PAYMENT_ERROR, payment),
            error=result.error,
            invoice_status=result.status,
        )

    def _fail(
        self,
        previous: PaymentState,
        attempt_id: AttemptHandle | None,
        failure: Failed,
        *,
        error: str | None = None,
        invoice_status: str | None = None,
    ) -> StateTransition:
        self._end(attempt_id, success=False, invoice_status=invoice_status, error=error)
        return StateTransition(
            previous,
            PaymentState.FAILED,
            attempt_id=attempt_id,
            payment_id=failure.payment.id if failure.payment else None,
            outcome=failure,
        )

    # 진단 호출 경계. 기록기 구현이 무엇이든 예외가 결제 흐름으로 새지 않는다.

    def _start(self, **context: Any) -> AttemptHandle | None:
        return self._guard("start_attempt", lambda: self._recorder.start_attempt(**context))

    def _log(self, event_type: str, attempt_id: AttemptHandle | None, **fields: Any) -> None:
        self._guard("log", lambda: self._recorder.log(event_type, attempt_id, **fields))

    def _end(
        self,
        attempt_id: AttemptHandle | None,
        *,
        success: bool,
        invoice_status: str | None = None,
        error: str | None = None,
    ) -> None:
        if attempt_id is None:
            return
        self._guard(
            "end_attempt",
            lambda: self._recorder.end_attempt(
                attempt_id, success=success, invoice_status=invoice_status, error=error
            ),
        )

    def _guard(self, name: str, call: Callable[[], T]) -> T | None:
        try:
            return call()
        except Exception:  # noqa: BLE001
            logger.exception("diagnostic recorder failed in %s", name)
            return None
