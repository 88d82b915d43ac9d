"""결제 진단 이벤트 정의."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Mapping, Self


class PaymentEventType:
    """결제 진단 이벤트 타입 상수.

    하나의 결제 시도(attempt) 안에서는
    PAYMENT_API_CALLED -> PAYMENT_API_RESPONSE -> INVOICE_STATUS_RECEIVED 순서로 기록된다.
    """

    PAYMENT_INITIATED = "payment_initiated"
    PAYMENT_API_CALLED = "payment_api_called"
    PAYMENT_API_RESPONSE = "payment_api_response"
    INVOICE_STATUS_RECEIVED = "invoice_status_received"
    PAYMENT_COMPLETED = "payment_completed"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_CANCELLED = "payment_cancelled"
    ERROR_OCCURRED = "error_occurred"

    ERROR_TYPES: frozenset[str] = frozenset({PAYMENT_FAILED, ERROR_OCCURRED})


@dataclass(slots=True)
class PaymentLogEntry:
    """결제 진단 로그 한 줄.

    attempt_id 가 없으면 특정 시도에 묶이지 않은 로그(예: 시도 시작 전 검증 실패)다.
    """

    timestamp: str
    event_type: str
    attempt_id: str | None = None
    payment_id: str | None = None
    booking_id: str | None = None
    amount: int | None = None
    currency: str | None = None
    provider: str | None = None
    status: str | None = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value not in (None, {})}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        amount = data.get("amount")
        return cls(
            timestamp=str(data["timestamp"]),
            event_type=str(data["event_type"]),
            attempt_id=data.get("attempt_id"),
            payment_id=data.get("payment_id"),
            booking_id=data.get("booking_id"),
            amount=int(amount) if amount is not None else None,
            currency=data.get("currency"),
            provider=data.get("provider"),
            status=data.get("status"),
            error=data.get("error"),
            metadata=dict(data.get("metadata") or {}),
        )
