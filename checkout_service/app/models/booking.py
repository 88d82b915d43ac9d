from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from common.types.datetime import UtcDateTime

from .credit import BookingTarget


class BookingStatus(StrEnum):
    HOLD = "HOLD"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class EventInfo(BaseModel):
    """세션이 속한 이벤트(트레이닝/투어/액티비티)의 요약."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str = ""
    event_type: str = Field(alias="eventType")
    labels: list[str] = Field(default_factory=list)


class Session(BaseModel):
    """예약 가능한 개별 세션(수업 일정)."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    starts_at: UtcDateTime = Field(alias="startsAt")
    event: EventInfo

    def to_booking_target(self) -> BookingTarget:
        return BookingTarget(event_type=self.event.event_type, starts_at=self.starts_at)


class Booking(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    session_id: str = Field(alias="sessionId")
    status: str  # BookingStatus 외의 값도 그대로 보존한다.
