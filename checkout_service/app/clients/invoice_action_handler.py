"""호스트(텔레그램 미니앱) 결제 액션 브리지.

호스트 SDK 호출 자체는 주입받은 콜백이 담당하고, 여기서는 NextAction 종류별로
호스트 결과를 ActionResult 로 정규화하기만 한다. 호스트가 수행할 수 없는 액션은
ActionFailedError 로 알린다.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from ..exceptions import ActionFailedError, MissingNextActionError
from ..models.payment import ActionResult, Payment


logger = logging.getLogger(__name__)


# 인보이스 slug/URL 을 받아 호스트가 돌려준 상태(paid/cancelled/pending/failed)를 반환한다.
OpenInvoice = Callable[[str], Awaitable[str]]
OpenLink = Callable[[str], Awaitable[None]]

OPEN_INVOICE = "openInvoice"
REDIRECT = "redirect"
NONE = "none"


class InvoiceActionHandler:
    def __init__(self, open_invoice: OpenInvoice, open_link: OpenLink | None = None) -> None:
        self._open_invoice = open_invoice
        self._open_link = open_link

    async def handle_payment_action(self, payment: Payment) -> ActionResult:
        action = payment.next_action
        if action is None:
            raise MissingNextActionError(payment.id)

        if action.type == OPEN_INVOICE:
            slug_or_url = action.payload.get("slugOrUrl")
            if not slug_or_url:
                raise ActionFailedError("missing_invoice_url", payment.id)

            status = (await self._open_invoice(str(slug_or_url))).lower()
            logger.info(
                "invoice closed with status=%s",
                status,
                extra={"payment_id": payment.id, "status": status},
            )
            if status == "paid":
                return ActionResult(success=True, status="paid")
            if status == "pending":
                return ActionResult(success=True, status="pending")
            if status == "cancelled":
                return ActionResult(success=False, status="cancelled")
            return ActionResult(success=False, status=status, error=status)

        if action.type == REDIRECT:
            url = action.payload.get("url")
            if not url:
                raise ActionFailedError("missing_redirect_url", payment.id)
            if self._open_link is None:
                raise ActionFailedError("redirect_not_supported", payment.id)
            await self._open_link(str(url))
            # 외부 페이지 결과는 알 수 없으므로 확인 대기 상태로 둔다.
            return ActionResult(success=True, status="pending")

        if action.type == NONE:
            return ActionResult(success=True, status="none")

        logger.warning(
            "unsupported next action type=%s",
            action.type,
            extra={"payment_id": payment.id},
        )
        raise ActionFailedError("unsupported_next_action", payment.id)
