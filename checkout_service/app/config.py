from __future__ import annotations

import os
from dataclasses import dataclass


CHECKOUT_API_BASE_URL = "CHECKOUT_API_BASE_URL"
CHECKOUT_API_TIMEOUT_SECONDS = "CHECKOUT_API_TIMEOUT_SECONDS"
CHECKOUT_DEFAULT_CURRENCY = "CHECKOUT_DEFAULT_CURRENCY"
CHECKOUT_PAYMENT_PROVIDER = "CHECKOUT_PAYMENT_PROVIDER"
CHECKOUT_SUBMIT_MAX_ATTEMPTS = "CHECKOUT_SUBMIT_MAX_ATTEMPTS"
CHECKOUT_DIAGNOSTICS_MAX_LOGS = "CHECKOUT_DIAGNOSTICS_MAX_LOGS"
CHECKOUT_DIAGNOSTICS_MAX_ATTEMPTS = "CHECKOUT_DIAGNOSTICS_MAX_ATTEMPTS"


@dataclass(slots=True)
class ApiConfig:
    base_url: str
    timeout_seconds: float = 30.0


@dataclass(slots=True)
class PaymentConfig:
    default_currency: str = "RUB"
    provider: str = "telegram"
    # 1 이면 일시적 네트워크 오류에도 자동 재전송하지 않는다.
    submit_max_attempts: int = 1


@dataclass(slots=True)
class DiagnosticsConfig:
    max_logs: int = 50
    max_attempts: int = 20


@dataclass(slots=True)
class AppConfig:
    """checkout-service 전체 설정 루트."""

    api: ApiConfig
    payment: PaymentConfig
    diagnostics: DiagnosticsConfig


def _get_positive_int(name: str, default: int) -> int:
    raw_value = os.getenv(name, "").strip()
    if not raw_value:
        return default

    try:
        value = int(raw_value)
    except ValueError as exc:  # noqa: TRY003
        raise RuntimeError(f"{name} must be an integer value, got: {raw_value!r}") from exc

    if value <= 0:
        raise RuntimeError(f"{name} must be positive, got: {value}")
    return value


def _get_positive_float(name: str, default: float) -> float:
    raw_value = os.getenv(name, "").strip()
    if not raw_value:
        return default

    try:
        value = float(raw_value)
    except ValueError as exc:  # noqa: TRY003
        raise RuntimeError(f"{name} must be a number, got: {raw_value!r}") from exc

    if value <= 0:
        raise RuntimeError(f"{name} must be positive, got: {value}")
    return value


def load_api_config() -> ApiConfig:
    """예약/카탈로그 API 접속 설정을 읽는다.

    base URL 은 기본값을 두지 않는다. 잘못된 서버로 결제 요청이 나가는 것보다
    기동 시점에 바로 실패하는 편이 낫다.
    """

    base_url = os.getenv(CHECKOUT_API_BASE_URL, "").strip()
    if not base_url:
        raise RuntimeError(
            f"{CHECKOUT_API_BASE_URL} environment variable is required for checkout-service",
        )

    return ApiConfig(
        base_url=base_url.rstrip("/"),
        timeout_seconds=_get_positive_float(CHECKOUT_API_TIMEOUT_SECONDS, 30.0),
    )


def load_payment_config() -> PaymentConfig:
    currency = os.getenv(CHECKOUT_DEFAULT_CURRENCY, "").strip().upper() or "RUB"
    provider = os.getenv(CHECKOUT_PAYMENT_PROVIDER, "").strip() or "telegram"
    return PaymentConfig(
        default_currency=currency,
        provider=provider,
        submit_max_attempts=_get_positive_int(CHECKOUT_SUBMIT_MAX_ATTEMPTS, 1),
    )


def load_diagnostics_config() -> DiagnosticsConfig:
    return DiagnosticsConfig(
        max_logs=_get_positive_int(CHECKOUT_DIAGNOSTICS_MAX_LOGS, 50),
        max_attempts=_get_positive_int(CHECKOUT_DIAGNOSTICS_MAX_ATTEMPTS, 20),
    )


def load_config() -> AppConfig:
    """checkout-service 설정을 로드하여 AppConfig 로 반환한다."""

    return AppConfig(
        api=load_api_config(),
        payment=load_payment_config(),
        diagnostics=load_diagnostics_config(),
    )
