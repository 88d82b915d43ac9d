"""checkout_service 전역에서 사용하는 공통 상수."""

from __future__ import annotations

# ── 사용자 노출 메시지 (서비스 로케일: ru) ─────────────────────────────
# 예외 메시지나 스택은 절대 사용자에게 그대로 보여주지 않는다.

GENERIC_PAYMENT_ERROR = "Произошла ошибка при обработке платежа. Попробуйте снова."
AMOUNT_MISMATCH = "Несоответствие суммы платежа. Попробуйте снова."
PROVIDER_UNAVAILABLE = "Платежная система временно недоступна. Попробуйте позже."
HOLD_EXPIRED = "Время бронирования истекло. Пожалуйста, создайте новое бронирование."
NO_SEATS_AVAILABLE = "Нет свободных мест на эту тренировку"
TRAINING_NOT_FOUND = "Тренировка не найдена"
PLAN_NOT_SELECTED = "Выберите план абонемента"
PLAN_NOT_FOUND = "План абонемента не найден"
NO_USABLE_CREDIT = "Нет подходящего абонемента для этой тренировки"

# 원격 API 오류 코드 -> 사용자 메시지
API_ERROR_MESSAGES: dict[str, str] = {
    "HOLD_EXPIRED": HOLD_EXPIRED,
    "NO_SEATS": NO_SEATS_AVAILABLE,
    "AMOUNT_MISMATCH": AMOUNT_MISMATCH,
    "PROVIDER_UNAVAILABLE": PROVIDER_UNAVAILABLE,
    "NOT_FOUND": TRAINING_NOT_FOUND,
}

# ── 결제 상태 ───────────────────────────────────────────────────────

# 호스트 결제 액션이 성공으로 끝났을 때 즉시 완료로 보는 상태 ("none" 은 0원 결제)
COMPLETED_ACTION_STATUSES: frozenset[str] = frozenset({"paid", "none"})
PENDING_ACTION_STATUS = "pending"

SUCCESS_DESTINATION_TEMPLATE = "payment-success?type={success_type}"

DEFAULT_PROVIDER = "telegram"
DEFAULT_CURRENCY = "RUB"

# 원격 API 가 허용하는 결제 수단 배열 최대 길이
MAX_PAYMENT_METHODS = 10
