"""크레딧 차감(결제 없는 예약) 판단 및 실행.

판단은 로컬 스냅샷 기준의 참고용이다. 실제로 어떤 크레딧이 차감될지는 원격 시스템이 정한다.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from common.types.datetime import ensure_utc, utc_now

from ..clients.interfaces import BookingApiInterface
from ..constants import API_ERROR_MESSAGES, GENERIC_PAYMENT_ERROR, NO_USABLE_CREDIT
from ..exceptions import ApiError
from ..models.booking import Booking, BookingStatus, Session
from ..models.credit import BookingTarget, Credit, CreditStatus
from .idempotency import booking_hold_prefix, derive_key


logger = logging.getLogger(__name__)


def is_usable(
    credit: Credit, booking: BookingTarget | None, *, now: datetime | None = None
) -> bool:
    """ACTIVE, 잔여 횟수 > 0, 만료 시각이 현재보다 엄격히 이후, 이벤트 타입 일치.

    booking 이 None 이면 이벤트 타입 검사는 생략한다 (목록 표시용).
    """

    current = ensure_utc(now) if now is not None else utc_now()
    if credit.status != CreditStatus.ACTIVE:
        return False
    if credit.remaining_units <= 0:
        return False
    if not credit.expires_at > current:
        return False
    if booking is not None and credit.eligible_event_type != booking.event_type:
        return False
    return True


def usable_credits(
    credits: list[Credit],
    booking: BookingTarget | None = None,
    *,
    now: datetime | None = None,
) -> list[Credit]:
    """사용 가능한 크레딧을 만료 임박 순으로 돌려준다 (동률이면 입력 순서 유지)."""

    current = ensure_utc(now) if now is not None else utc_now()
    usable = [credit for credit in credits if is_usable(credit, booking, now=current)]
    return sorted(usable, key=lambda credit: credit.expires_at)


def can_redeem(
    credits: list[Credit], booking: BookingTarget, *, now: datetime | None = None
) -> bool:
    current = ensure_utc(now) if now is not None else utc_now()
    return any(is_usable(credit, booking, now=current) for credit in credits)


def pick_best(
    credits: list[Credit],
    booking: BookingTarget | None = None,
    *,
    now: datetime | None = None,
) -> Credit | None:
    """화면 표시용 추천 크레딧. 곧 만료되는 것부터 소진하도록 만료 임박 순 첫 번째를 고른다."""

    candidates = usable_credits(credits, booking, now=now)
    return candidates[0] if candidates else None


@dataclass(frozen=True, slots=True)
class RedemptionResult:
    redeemed: bool
    booking: Booking | None = None
    reason: str | None = None  # 실패 사유 코드
    message: str | None = None  # 사용자 노출 메시지
    suggested_credit: Credit | None = None


class RedemptionService:
    """세션을 크레딧으로 예약한다."""

    def __init__(self, api: BookingApiInterface) -> None:
        self._api = api

    async def redeem_for_session(
        self, session: Session, user_id: str, *, now: datetime | None = None
    ) -> RedemptionResult:
        target = session.to_booking_target()

        try:
            credits = await self._api.get_active_credits(user_id)
        except ApiError as exc:
            logger.warning(
                "failed to load credits user_id=%s code=%s status=%s",
                user_id,
                exc.code,
                exc.status,
            )
            return RedemptionResult(
                redeemed=False,
                reason=exc.code,
                message=API_ERROR_MESSAGES.get(exc.code, GENERIC_PAYMENT_ERROR),
            )

        if not can_redeem(credits, target, now=now):
            return RedemptionResult(
                redeemed=False,
                reason="no_usable_credit",
                message=NO_USABLE_CREDIT,
            )

        suggested = pick_best(credits, target, now=now)

        try:
            booking = await find_or_create_hold(self._api, session.id)
            redeemed = await self._api.redeem_subscription(booking.id)
        except ApiError as exc:
            logger.warning(
                "failed to redeem credit session_id=%s code=%s status=%s",
                session.id,
                exc.code,
                exc.status,
            )
            return RedemptionResult(
                redeemed=False,
                reason=exc.code,
                message=API_ERROR_MESSAGES.get(exc.code, GENERIC_PAYMENT_ERROR),
                suggested_credit=suggested,
            )

        logger.info(
            "redeemed credit for session_id=%s booking_id=%s",
            session.id,
            redeemed.id,
        )
        return RedemptionResult(redeemed=True, booking=redeemed, suggested_credit=suggested)


async def find_or_create_hold(api: BookingApiInterface, session_id: str) -> Booking:
    """세션에 대한 HOLD 예약을 재사용하거나 새로 만든다.

    생성 키는 booking-{session_id} 로 고정이라, 응답을 못 받고 다시 눌러도 예약이 중복되지 않는다.
    """

    bookings = await api.list_my_bookings()
    for booking in bookings:
        if booking.session_id == session_id and booking.status == BookingStatus.HOLD:
            logger.debug("reusing HOLD booking booking_id=%s", booking.id)
            return booking

    return await api.create_booking(session_id, derive_key(booking_hold_prefix(session_id)))
