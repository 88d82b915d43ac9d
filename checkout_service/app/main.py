from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import dataclass

import httpx

from common.logger import setup_logger

from .clients.booking_api import BookingApiClient, TokenProvider
from .clients.interfaces import PaymentActionHandlerInterface
from .config import AppConfig, load_config
from .exceptions import ActionFailedError
from .models.outcome import Failed, Pending, Succeeded, SuccessType
from .services.checkout_service import CheckoutService
from .services.diagnostics import PaymentDiagnostics


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Checkout:
    """한 사용자 세션 동안 공유하는 체크아웃 구성 요소 묶음."""

    service: CheckoutService
    client: BookingApiClient
    diagnostics: PaymentDiagnostics

    async def aclose(self) -> None:
        await self.client.aclose()


def create_checkout(
    config: AppConfig,
    action_handler: PaymentActionHandlerInterface,
    *,
    token_provider: TokenProvider | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> Checkout:
    """설정으로부터 클라이언트, 진단 기록기, CheckoutService 를 조립한다.

    진단 기록기는 세션마다 새로 만든다. 모듈 전역 인스턴스를 두지 않는다.
    """

    client = BookingApiClient(
        config.api.base_url,
        timeout=config.api.timeout_seconds,
        token_provider=token_provider,
        http_client=http_client,
    )
    diagnostics = PaymentDiagnostics(
        max_logs=config.diagnostics.max_logs,
        max_attempts=config.diagnostics.max_attempts,
    )
    service = CheckoutService(client, action_handler, diagnostics, config.payment)
    return Checkout(service=service, client=client, diagnostics=diagnostics)


class _NoActionHandler:
    """CLI 에서는 호스트 결제 UI 가 없으므로 액션을 처리하지 않는다."""

    async def handle_payment_action(self, payment):  # noqa: ANN001
        raise ActionFailedError("actions_unavailable_in_cli", payment.id)


async def _refresh(payment_id: str, success_type: SuccessType) -> int:
    checkout = create_checkout(load_config(), _NoActionHandler())
    try:
        outcome = await checkout.service.refresh_status(payment_id, success_type)
    finally:
        await checkout.aclose()

    match outcome:
        case Succeeded(destination=destination):
            logger.info("payment %s succeeded -> %s", payment_id, destination)
            return 0
        case Pending():
            logger.info("payment %s is still pending", payment_id)
            return 2
        case Failed(kind=kind, message=message):
            logger.warning("payment %s failed (%s): %s", payment_id, kind, message)
            return 1
    return 1  # pragma: no cover


def main(argv: list[str] | None = None) -> int:
    """Pending 결제 상태 재조회용 운영 도구."""

    parser = argparse.ArgumentParser(prog="checkout-refresh")
    parser.add_argument("payment_id")
    parser.add_argument(
        "--type",
        dest="success_type",
        choices=[member.value for member in SuccessType],
        default=SuccessType.TRAINING.value,
    )
    args = parser.parse_args(argv)

    setup_logger(name="checkout-service")
    logger.info("checkout-service (python) refreshing payment %s", args.payment_id)
    return asyncio.run(_refresh(args.payment_id, SuccessType(args.success_type)))


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
