from __future__ import annotations

import pytest
from pydantic import ValidationError

from checkout_service.app.exceptions import InvalidAmountError
from checkout_service.app.models.money import Money
from checkout_service.app.models.payment import (
    CreditMethod,
    ExternalMethod,
    PaymentRequest,
)
from checkout_service.app.services.payment_method_builder import build


def test_build_without_credit_returns_only_external_method() -> None:
    request = build(False, 150000, "RUB")

    assert len(request.methods) == 1
    assert isinstance(request.methods[0], ExternalMethod)
    assert request.methods[0].provider == "telegram"
    assert request.credit_entry is None


def test_build_with_credit_puts_credit_first_then_external() -> None:
    request = build(True, 150000, "RUB")

    assert len(request.methods) == 2
    credit, external = request.methods
    assert isinstance(credit, CreditMethod)
    assert credit.amount == Money(amount_minor=150000, currency="RUB")
    assert isinstance(external, ExternalMethod)


def test_build_with_zero_credit_skips_credit_entry() -> None:
    request = build(True, 0, "RUB")

    assert [entry.method for entry in request.methods] == ["external"]


def test_build_accepts_integral_float_amount() -> None:
    request = build(True, 500.0, "rub")

    assert request.credit_entry is not None
    assert request.credit_entry.amount.amount_minor == 500
    assert request.credit_entry.amount.currency == "RUB"


@pytest.mark.parametrize(
    "amount",
    [-1, float("nan"), float("inf"), 10.5, True, "100", None],
)
def test_build_rejects_invalid_amount(amount: object) -> None:
    with pytest.raises(InvalidAmountError):
        build(True, amount, "RUB")  # type: ignore[arg-type]


def test_build_validates_amount_even_without_credit() -> None:
    with pytest.raises(InvalidAmountError):
        build(False, -1, "RUB")


def test_build_rejects_credit_over_available_balance() -> None:
    with pytest.raises(InvalidAmountError):
        build(True, 1001, "RUB", available_credit_minor=1000)


def test_build_reports_blank_currency_or_provider_as_invalid_amount() -> None:
    with pytest.raises(InvalidAmountError):
        build(True, 100, " ")
    with pytest.raises(InvalidAmountError):
        build(False, 0, "RUB", provider="")


def test_build_uses_custom_provider() -> None:
    request = build(False, 0, "RUB", provider="yookassa")

    assert request.methods[0].provider == "yookassa"


def test_payment_request_rejects_two_credit_entries() -> None:
    credit = CreditMethod(amount=Money(amount_minor=100, currency="RUB"))

    with pytest.raises(ValidationError):
        PaymentRequest(methods=[credit, credit, ExternalMethod(provider="telegram")])


def test_payment_request_rejects_empty_and_oversized_method_lists() -> None:
    with pytest.raises(ValidationError):
        PaymentRequest(methods=[])
    with pytest.raises(ValidationError):
        PaymentRequest(methods=[ExternalMethod(provider="telegram")] * 11)
