"""Idempotency 키 생성기.

두 생성기는 용도가 다르므로 서로 바꿔 쓰면 안 된다.

- derive_key: 재시도 안전 키. 같은 논리적 의도(prefix)는 항상 같은 키를 돌려준다.
  타임스탬프나 랜덤 값을 붙이는 순간 재시도가 새 결제로 취급되어 이중 결제가 생긴다.
- new_one_shot_key: 아직 서버 식별자가 없는 일회성 구매용. 매번 다른 키를 만든다.
"""

from __future__ import annotations

import secrets
import time


def derive_key(intent_prefix: str) -> str:
    if not intent_prefix or not intent_prefix.strip():
        raise ValueError("intent_prefix must not be blank")
    return intent_prefix


def new_one_shot_key(prefix: str) -> str:
    if not prefix or not prefix.strip():
        raise ValueError("prefix must not be blank")
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def booking_hold_prefix(session_id: str) -> str:
    return f"booking-{session_id}"


def booking_payment_prefix(booking_id: str) -> str:
    return f"payment-{booking_id}"


def season_ticket_prefix(plan_id: str) -> str:
    return f"plan-{plan_id}"


def certificate_prefix(product_type: str) -> str:
    return f"certificate-{product_type}"
