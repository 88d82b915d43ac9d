"""결제 오케스트레이터 상태/결과 타입.

콜백 대신 명시적인 결과 타입을 돌려주므로, 호출 측은 match 로 모든 경우를 처리할 수 있다.

    match outcome:
        case Succeeded(destination=destination): ...
        case Pending(payment=payment): ...
        case Failed(kind=kind, message=message): ...
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from ..constants import SUCCESS_DESTINATION_TEMPLATE
from .payment import Payment


class PaymentState(StrEnum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    AWAITING_ACTION = "awaiting_action"
    RESOLVING = "resolving"
    SUCCEEDED = "succeeded"
    PENDING = "pending"
    FAILED = "failed"


class FailureKind(StrEnum):
    INVALID_AMOUNT = "invalid_amount"
    MISSING_NEXT_ACTION = "missing_next_action"
    SUBMISSION_FAILED = "submission_failed"
    ACTION_FAILED = "action_failed"
    INVALID_REQUEST = "invalid_request"


class SuccessType(StrEnum):
    """결제 성공 후 이동할 화면 종류 (구매 카테고리)."""

    TRAINING = "training"
    ACTIVITY = "activity"
    TOUR = "tour"
    SEASON_TICKET = "season-ticket"
    CERTIFICATE = "certificate"


@dataclass(frozen=True, slots=True)
class Succeeded:
    payment: Payment
    success_type: SuccessType

    @property
    def destination(self) -> str:
        return SUCCESS_DESTINATION_TEMPLATE.format(success_type=self.success_type.value)

    @property
    def state(self) -> PaymentState:
        return PaymentState.SUCCEEDED


@dataclass(frozen=True, slots=True)
class Pending:
    """외부 확인(은행 리다이렉트 등)을 기다리는 상태. 시도 기록은 열린 채로 남는다."""

    payment: Payment

    @property
    def state(self) -> PaymentState:
        return PaymentState.PENDING


@dataclass(frozen=True, slots=True)
class Failed:
    kind: FailureKind
    message: str  # 사용자에게 보여줄 단 하나의 메시지
    payment: Payment | None = None

    @property
    def state(self) -> PaymentState:
        return PaymentState.FAILED


PaymentOutcome = Succeeded | Pending | Failed


@dataclass(frozen=True, slots=True)
class StateTransition:
    """오케스트레이터가 상태를 옮길 때마다 내보내는 이벤트."""

    previous: PaymentState
    state: PaymentState
    attempt_id: str | None = None
    payment_id: str | None = None
    outcome: PaymentOutcome | None = None
