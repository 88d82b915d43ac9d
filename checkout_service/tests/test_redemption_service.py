from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from checkout_service.app.constants import HOLD_EXPIRED, NO_USABLE_CREDIT
from checkout_service.app.exceptions import ApiError
from checkout_service.app.models.booking import Booking, EventInfo, Session
from checkout_service.app.models.credit import BookingTarget, Credit, CreditStatus
from checkout_service.app.services.redemption_service import (
    RedemptionService,
    can_redeem,
    is_usable,
    pick_best,
    usable_credits,
)


NOW = datetime(2026, 5, 1, 9, 0, tzinfo=timezone.utc)


def _build_credit(
    *,
    credit_id: str = "ticket-1",
    status: CreditStatus = CreditStatus.ACTIVE,
    event_type: str = "training",
    remaining: int = 5,
    expires_at: datetime | None = None,
) -> Credit:
    return Credit(
        id=credit_id,
        status=status,
        eligible_event_type=event_type,
        remaining_units=remaining,
        expires_at=expires_at or NOW + timedelta(days=10),
    )


def _target(event_type: str = "training") -> BookingTarget:
    return BookingTarget(event_type=event_type, starts_at=NOW + timedelta(days=1))


def test_can_redeem_true_for_single_eligible_credit() -> None:
    assert can_redeem([_build_credit()], _target(), now=NOW) is True


def test_can_redeem_false_when_no_remaining_units() -> None:
    assert can_redeem([_build_credit(remaining=0)], _target(), now=NOW) is False


def test_can_redeem_false_when_credit_expired() -> None:
    expired = _build_credit(expires_at=NOW - timedelta(minutes=1))

    assert can_redeem([expired], _target(), now=NOW) is False


def test_credit_expiring_exactly_now_is_not_usable() -> None:
    assert is_usable(_build_credit(expires_at=NOW), _target(), now=NOW) is False


def test_can_redeem_false_for_inactive_or_mismatched_credit() -> None:
    cancelled = _build_credit(status=CreditStatus.CANCELLED)
    tour_only = _build_credit(event_type="tour")

    assert can_redeem([cancelled, tour_only], _target("training"), now=NOW) is False
    assert can_redeem([], _target(), now=NOW) is False


def test_naive_expiry_is_read_as_utc() -> None:
    credit = _build_credit(expires_at=datetime(2026, 5, 1, 10, 0))

    assert credit.expires_at.tzinfo is not None
    assert is_usable(credit, _target(), now=NOW) is True


def test_pick_best_prefers_soonest_expiry() -> None:
    later = _build_credit(credit_id="later", expires_at=NOW + timedelta(days=30))
    sooner = _build_credit(credit_id="sooner", expires_at=NOW + timedelta(days=2))
    unusable = _build_credit(credit_id="empty", remaining=0, expires_at=NOW + timedelta(days=1))

    best = pick_best([later, unusable, sooner], _target(), now=NOW)

    assert best is not None
    assert best.id == "sooner"
    assert [c.id for c in usable_credits([later, unusable, sooner], now=NOW)] == [
        "sooner",
        "later",
    ]


def test_pick_best_returns_none_without_usable_credit() -> None:
    assert pick_best([_build_credit(remaining=0)], _target(), now=NOW) is None


class FakeBookingApi:
    def __init__(self) -> None:
        self.credits: list[Credit] = []
        self.bookings: list[Booking] = []
        self.redeem_error: ApiError | None = None
        self.created: list[tuple[str, str]] = []
        self.redeemed: list[str] = []

    async def get_active_credits(self, user_id: str) -> list[Credit]:
        return self.credits

    async def list_my_bookings(self) -> list[Booking]:
        return self.bookings

    async def create_booking(self, session_id: str, idempotency_key: str) -> Booking:
        self.created.append((session_id, idempotency_key))
        return Booking(id="booking-new", session_id=session_id, status="HOLD")

    async def redeem_subscription(self, booking_id: str) -> Booking:
        if self.redeem_error is not None:
            raise self.redeem_error
        self.redeemed.append(booking_id)
        return Booking(id=booking_id, session_id="session-1", status="CONFIRMED")


@dataclass
class RedemptionFixture:
    service: RedemptionService
    api: FakeBookingApi
    session: Session


def _build_fixture() -> RedemptionFixture:
    api = FakeBookingApi()
    session = Session(
        id="session-1",
        starts_at=NOW + timedelta(days=1),
        event=EventInfo(id="event-1", title="Surf", event_type="training"),
    )
    return RedemptionFixture(service=RedemptionService(api), api=api, session=session)


def test_redeem_for_session_without_credit_does_not_touch_bookings() -> None:
    fixture = _build_fixture()

    result = asyncio.run(fixture.service.redeem_for_session(fixture.session, "user-1", now=NOW))

    assert result.redeemed is False
    assert result.reason == "no_usable_credit"
    assert result.message == NO_USABLE_CREDIT
    assert fixture.api.created == []
    assert fixture.api.redeemed == []


def test_redeem_for_session_reuses_existing_hold() -> None:
    fixture = _build_fixture()
    fixture.api.credits = [_build_credit()]
    fixture.api.bookings = [
        Booking(id="booking-old", session_id="session-1", status="CANCELLED"),
        Booking(id="booking-hold", session_id="session-1", status="HOLD"),
    ]

    result = asyncio.run(fixture.service.redeem_for_session(fixture.session, "user-1", now=NOW))

    assert result.redeemed is True
    assert result.booking is not None
    assert result.booking.id == "booking-hold"
    assert fixture.api.created == []
    assert fixture.api.redeemed == ["booking-hold"]


def test_redeem_for_session_creates_hold_with_session_key() -> None:
    fixture = _build_fixture()
    fixture.api.credits = [_build_credit()]

    result = asyncio.run(fixture.service.redeem_for_session(fixture.session, "user-1", now=NOW))

    assert result.redeemed is True
    assert fixture.api.created == [("session-1", "booking-session-1")]
    assert fixture.api.redeemed == ["booking-new"]


def test_redeem_for_session_maps_api_error_to_message() -> None:
    fixture = _build_fixture()
    fixture.api.credits = [_build_credit()]
    fixture.api.redeem_error = ApiError("HOLD_EXPIRED", "hold expired", 409)

    result = asyncio.run(fixture.service.redeem_for_session(fixture.session, "user-1", now=NOW))

    assert result.redeemed is False
    assert result.reason == "HOLD_EXPIRED"
    assert result.message == HOLD_EXPIRED
