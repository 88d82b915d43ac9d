from __future__ import annotations

import math

from pydantic import ValidationError

from ..constants import DEFAULT_PROVIDER
from ..exceptions import InvalidAmountError
from ..models.money import Money
from ..models.payment import CreditMethod, ExternalMethod, PaymentRequest


def _validate_amount(credit_amount_minor: object) -> int:
    if isinstance(credit_amount_minor, bool) or not isinstance(
        credit_amount_minor, (int, float)
    ):
        raise InvalidAmountError(f"credit amount must be a number, got {credit_amount_minor!r}")

    if isinstance(credit_amount_minor, float):
        if not math.isfinite(credit_amount_minor) or not credit_amount_minor.is_integer():
            raise InvalidAmountError(
                f"credit amount must be a finite integer, got {credit_amount_minor!r}"
            )
        credit_amount_minor = int(credit_amount_minor)

    if credit_amount_minor < 0:
        raise InvalidAmountError(f"credit amount must not be negative, got {credit_amount_minor}")

    return credit_amount_minor


def build(
    use_credit: bool,
    credit_amount_minor: int,
    currency: str,
    *,
    provider: str = DEFAULT_PROVIDER,
    available_credit_minor: int | None = None,
) -> PaymentRequest:
    """선택한 결제 조합으로 PaymentRequest 를 만든다.

    - 크레딧 사용 + 금액 > 0: [크레딧(정확히 해당 금액), 카드]
    - 그 외: [카드]

    남은 금액 계산은 하지 않는다. 총액 분할은 서버가 기준이며,
    클라이언트에 가격 로직을 두면 서버 가격과 어긋날 수 있다.
    """

    amount = _validate_amount(credit_amount_minor)

    # 통화, provider 같은 모델 제약 위반도 로컬 요청 조립 실패로 취급한다.
    try:
        external = ExternalMethod(provider=provider)
        if not (use_credit and amount > 0):
            return PaymentRequest(methods=[external])

        if available_credit_minor is not None and amount > available_credit_minor:
            raise InvalidAmountError(
                f"credit amount {amount} exceeds available balance {available_credit_minor}"
            )

        credit = CreditMethod(amount=Money(amount_minor=amount, currency=currency))
        return PaymentRequest(methods=[credit, external])
    except ValidationError as exc:
        raise InvalidAmountError(f"invalid payment request: {exc.error_count()} error(s)") from exc
