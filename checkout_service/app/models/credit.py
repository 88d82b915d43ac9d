"""크레딧(정기권/패스) 도메인 모델.

클라이언트가 보는 크레딧은 서버 상태의 스냅샷일 뿐이다.
최종 사용 가능 여부는 예약 시점에 원격 시스템이 다시 검증한다.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from common.types.datetime import UtcDateTime


class CreditStatus(StrEnum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    EXHAUSTED = "EXHAUSTED"
    CANCELLED = "CANCELLED"


class Credit(BaseModel):
    """개별 크레딧 스냅샷."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    status: CreditStatus
    eligible_event_type: str | None = Field(default=None, alias="eligibleEventType")
    remaining_units: int = Field(ge=0, alias="remainingUnits")  # 남은 이용 횟수
    expires_at: UtcDateTime = Field(alias="expiresAt")


class BookingTarget(BaseModel):
    """크레딧으로 결제하려는 예약 대상."""

    model_config = ConfigDict(populate_by_name=True)

    event_type: str = Field(alias="eventType")
    starts_at: datetime = Field(alias="startsAt")
