"""결제 요청/결제 리소스 모델.

- PaymentRequest: 클라이언트가 만드는 결제 수단 배열 (provider 중립적인 표현)
- Payment: 원격 시스템이 소유하는 결제 리소스의 읽기 전용 투영
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..constants import MAX_PAYMENT_METHODS
from .money import Money


class CreditMethod(BaseModel):
    """보유 크레딧(보너스 잔액)으로 결제하는 부분."""

    model_config = ConfigDict(frozen=True)

    method: Literal["credit"] = "credit"
    amount: Money


class ExternalMethod(BaseModel):
    """외부 결제 수단(카드). 잔액 분할은 서버가 결정한다."""

    model_config = ConfigDict(frozen=True)

    method: Literal["external"] = "external"
    provider: str = Field(min_length=1)


PaymentMethodEntry = Annotated[CreditMethod | ExternalMethod, Field(discriminator="method")]


class PaymentRequest(BaseModel):
    """순서가 있는 결제 수단 목록."""

    model_config = ConfigDict(frozen=True)

    methods: list[PaymentMethodEntry] = Field(min_length=1, max_length=MAX_PAYMENT_METHODS)

    @model_validator(mode="after")
    def validate_credit_entries(self) -> PaymentRequest:
        credit_entries = [m for m in self.methods if isinstance(m, CreditMethod)]
        if len(credit_entries) > 1:
            raise ValueError("at most one credit entry is allowed")
        if credit_entries and credit_entries[0].amount.amount_minor <= 0:
            raise ValueError("credit entry amount must be positive")
        return self

    @property
    def credit_entry(self) -> CreditMethod | None:
        for method in self.methods:
            if isinstance(method, CreditMethod):
                return method
        return None


class PaymentStatus(StrEnum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    NONE = "none"
    CANCELLED = "cancelled"


# 원격 API 는 대문자 상태값을 사용한다.
_REMOTE_STATUS_ALIASES: dict[str, str] = {
    "succeeded": PaymentStatus.PAID.value,
}


class NextAction(BaseModel):
    """결제 완료를 위해 호스트가 수행해야 할 후속 동작.

    원격 응답은 {"type": "openInvoice", "slugOrUrl": "..."} 처럼 평평한 형태로 오므로,
    type 이외의 필드는 모두 payload 로 모은다.
    """

    type: str = Field(min_length=1)
    payload: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def collect_payload(cls, data: Any) -> Any:
        if isinstance(data, Mapping) and "payload" not in data:
            return {
                "type": data.get("type"),
                "payload": {key: value for key, value in data.items() if key != "type"},
            }
        return data


class Payment(BaseModel):
    """결제 리소스 스냅샷."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    booking_id: str | None = Field(default=None, alias="bookingId")
    amount: Money
    status: PaymentStatus
    provider: str | None = None
    next_action: NextAction | None = Field(default=None, alias="nextAction")

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            lowered = value.strip().lower()
            return _REMOTE_STATUS_ALIASES.get(lowered, lowered)
        return value


class ActionResult(BaseModel):
    """호스트 결제 액션 핸들러의 결과."""

    success: bool
    status: str | None = None
    error: str | None = None
