from __future__ import annotations

import asyncio
from typing import Any

import pytest

from checkout_service.app.clients.invoice_action_handler import InvoiceActionHandler
from checkout_service.app.exceptions import ActionFailedError, MissingNextActionError
from checkout_service.app.models.payment import ActionResult, Payment


def _build_payment(next_action: dict[str, Any] | None) -> Payment:
    return Payment.model_validate(
        {
            "id": "pay-1",
            "bookingId": None,
            "amount": {"currency": "RUB", "amountMinor": 990000},
            "status": "PENDING",
            "nextAction": next_action,
        }
    )


class FakeHost:
    def __init__(self, invoice_status: str = "paid") -> None:
        self.invoice_status = invoice_status
        self.opened_invoices: list[str] = []
        self.opened_links: list[str] = []

    async def open_invoice(self, slug_or_url: str) -> str:
        self.opened_invoices.append(slug_or_url)
        return self.invoice_status

    async def open_link(self, url: str) -> None:
        self.opened_links.append(url)


@pytest.mark.parametrize(
    ("invoice_status", "expected"),
    [
        ("paid", ActionResult(success=True, status="paid")),
        ("pending", ActionResult(success=True, status="pending")),
        ("cancelled", ActionResult(success=False, status="cancelled")),
        ("failed", ActionResult(success=False, status="failed", error="failed")),
    ],
)
def test_open_invoice_maps_host_status(invoice_status: str, expected: ActionResult) -> None:
    host = FakeHost(invoice_status)
    handler = InvoiceActionHandler(host.open_invoice, host.open_link)

    result = asyncio.run(
        handler.handle_payment_action(
            _build_payment({"type": "openInvoice", "slugOrUrl": "invoice-abc"})
        )
    )

    assert result == expected
    assert host.opened_invoices == ["invoice-abc"]


def test_redirect_opens_link_and_reports_pending() -> None:
    host = FakeHost()
    handler = InvoiceActionHandler(host.open_invoice, host.open_link)

    result = asyncio.run(
        handler.handle_payment_action(
            _build_payment({"type": "redirect", "url": "https://bank.example/3ds"})
        )
    )

    assert result == ActionResult(success=True, status="pending")
    assert host.opened_links == ["https://bank.example/3ds"]


def test_redirect_without_link_opener_fails() -> None:
    host = FakeHost()
    handler = InvoiceActionHandler(host.open_invoice)

    with pytest.raises(ActionFailedError) as excinfo:
        asyncio.run(
            handler.handle_payment_action(_build_payment({"type": "redirect", "url": "https://x"}))
        )

    assert excinfo.value.reason == "redirect_not_supported"
    assert excinfo.value.payment_id == "pay-1"


def test_open_invoice_without_slug_fails_before_opening() -> None:
    host = FakeHost()
    handler = InvoiceActionHandler(host.open_invoice, host.open_link)

    with pytest.raises(ActionFailedError) as excinfo:
        asyncio.run(handler.handle_payment_action(_build_payment({"type": "openInvoice"})))

    assert excinfo.value.reason == "missing_invoice_url"
    assert host.opened_invoices == []


def test_missing_next_action_is_reported() -> None:
    host = FakeHost()
    handler = InvoiceActionHandler(host.open_invoice)

    with pytest.raises(MissingNextActionError):
        asyncio.run(handler.handle_payment_action(_build_payment(None)))


def test_none_action_is_zero_due_success() -> None:
    host = FakeHost()
    handler = InvoiceActionHandler(host.open_invoice)

    result = asyncio.run(handler.handle_payment_action(_build_payment({"type": "none"})))

    assert result == ActionResult(success=True, status="none")
    assert host.opened_invoices == []


def test_unknown_action_type_is_unsupported() -> None:
    host = FakeHost()
    handler = InvoiceActionHandler(host.open_invoice)

    with pytest.raises(ActionFailedError) as excinfo:
        asyncio.run(handler.handle_payment_action(_build_payment({"type": "confirm"})))

    assert excinfo.value.reason == "unsupported_next_action"
