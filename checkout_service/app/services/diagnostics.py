"""결제 진단 기록기.

결제 사고를 사후에 추적할 수 있도록 시도(attempt) 단위로 이벤트를 남긴다.
모든 public 메서드는 내부 오류를 삼킨다. 진단이 실패해도 결제 결과는 바뀌면 안 된다.

전역 싱글턴이 아니라 세션마다 만들어 오케스트레이터에 주입한다.
"""

from __future__ import annotations

import functools
import json
import logging
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Protocol, TypeVar

from common.events.payment import PaymentEventType, PaymentLogEntry
from common.types.datetime import utc_now

from ..exceptions import DiagnosticFailure


logger = logging.getLogger(__name__)

# 진단 이벤트 전용 로거. JSON 포맷터가 extra 필드를 그대로 출력한다.
payment_logger = logging.getLogger("checkout.payment")

T = TypeVar("T")

AttemptHandle = str


class DiagnosticRecorderInterface(Protocol):
    def start_attempt(self, **context: Any) -> AttemptHandle:  # pragma: no cover - Protocol
        ...

    def log(
        self, event_type: str, attempt_id: AttemptHandle | None = None, **fields: Any
    ) -> None:  # pragma: no cover - Protocol
        ...

    def end_attempt(
        self,
        handle: AttemptHandle,
        *,
        success: bool,
        invoice_status: str | None = None,
        error: str | None = None,
    ) -> None:  # pragma: no cover - Protocol
        ...


@dataclass(slots=True)
class Attempt:
    """제출 한 번에 대응하는 진단 기록. 정확히 한 번만 닫힌다 (Pending 은 열린 채로 남는다)."""

    attempt_id: str
    attempt_number: int
    started_at: datetime
    payment_id: str | None = None
    booking_id: str | None = None
    amount: int | None = None
    currency: str | None = None
    provider: str | None = None
    ended_at: datetime | None = None
    duration_ms: int | None = None
    success: bool | None = None
    invoice_status: str | None = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def closed(self) -> bool:
        return self.ended_at is not None

    def to_report(self) -> dict[str, Any]:
        return {
            "attempt_id": self.attempt_id,
            "attempt_number": self.attempt_number,
            "started_at": self.started_at.isoformat(),
            "duration": f"{self.duration_ms}ms" if self.duration_ms is not None else "N/A",
            "success": self.success if self.success is not None else "in_progress",
            "payment_id": self.payment_id or "N/A",
            "booking_id": self.booking_id or "N/A",
            "amount": (
                f"{self.amount / 100:.2f} {self.currency}" if self.amount is not None else "N/A"
            ),
            "provider": self.provider or "N/A",
            "invoice_status": self.invoice_status or "N/A",
            "error": self.error,
        }


def _guarded(default: Any = None) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """진단 경계. 내부 예외는 로그만 남기고 삼킨다."""

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            try:
                return func(*args, **kwargs)
            except Exception:  # noqa: BLE001
                logger.exception("diagnostics failure in %s", func.__name__)
                return default

        return wrapper

    return decorator


class PaymentDiagnostics:
    """메모리 링 버퍼 기반 진단 기록기."""

    def __init__(self, max_logs: int = 50, max_attempts: int = 20) -> None:
        self._logs: deque[PaymentLogEntry] = deque(maxlen=max_logs)
        self._attempts: deque[Attempt] = deque(maxlen=max_attempts)
        self._attempt_counter = 0
        self._lock = threading.Lock()

    # ── 기록 ──────────────────────────────────────────────────────

    @_guarded(default="attempt-unrecorded")
    def start_attempt(self, **context: Any) -> AttemptHandle:
        with self._lock:
            self._attempt_counter += 1
            attempt = Attempt(
                attempt_id=f"attempt-{uuid.uuid4().hex[:12]}",
                attempt_number=self._attempt_counter,
                started_at=utc_now(),
                booking_id=context.get("booking_id"),
                amount=context.get("amount"),
                currency=context.get("currency"),
                provider=context.get("provider"),
                metadata=dict(context.get("metadata") or {}),
            )
            self._attempts.append(attempt)

        self._append(
            PaymentEventType.PAYMENT_INITIATED,
            attempt_id=attempt.attempt_id,
            booking_id=attempt.booking_id,
            amount=attempt.amount,
            currency=attempt.currency,
            provider=attempt.provider,
            metadata={"attempt_number": attempt.attempt_number, **attempt.metadata},
        )
        return attempt.attempt_id

    @_guarded()
    def log(
        self, event_type: str, attempt_id: AttemptHandle | None = None, **fields: Any
    ) -> None:
        if attempt_id is not None:
            attempt = self._find(attempt_id)
            if attempt is not None:
                with self._lock:
                    for key in ("payment_id", "booking_id", "amount", "currency", "provider"):
                        if fields.get(key) is not None:
                            setattr(attempt, key, fields[key])
        self._append(event_type, attempt_id=attempt_id, **fields)

    @_guarded()
    def end_attempt(
        self,
        handle: AttemptHandle,
        *,
        success: bool,
        invoice_status: str | None = None,
        error: str | None = None,
    ) -> None:
        attempt = self._find(handle)
        if attempt is None:
            logger.warning("end_attempt for unknown attempt_id=%s", handle)
            return

        with self._lock:
            if attempt.closed:
                logger.warning("attempt already closed attempt_id=%s", handle)
                return
            attempt.ended_at = utc_now()
            attempt.duration_ms = int(
                (attempt.ended_at - attempt.started_at).total_seconds() * 1000
            )
            attempt.success = success
            attempt.invoice_status = invoice_status
            attempt.error = error

        common = {
            "attempt_id": attempt.attempt_id,
            "payment_id": attempt.payment_id,
            "booking_id": attempt.booking_id,
        }
        if error:
            self._append(
                PaymentEventType.PAYMENT_FAILED,
                error=error,
                status=invoice_status,
                metadata={"duration_ms": attempt.duration_ms},
                **common,
            )
        elif success:
            self._append(
                PaymentEventType.PAYMENT_COMPLETED,
                amount=attempt.amount,
                currency=attempt.currency,
                status=invoice_status,
                **common,
            )
        elif invoice_status == "cancelled":
            self._append(
                PaymentEventType.PAYMENT_CANCELLED,
                status=invoice_status,
                metadata={"reason": "user cancelled invoice"},
                **common,
            )
        else:
            self._append(
                PaymentEventType.PAYMENT_FAILED,
                status=invoice_status,
                metadata={"duration_ms": attempt.duration_ms},
                **common,
            )

    # ── 조회 ──────────────────────────────────────────────────────

    @_guarded()
    def get_attempt(self, handle: AttemptHandle) -> Attempt | None:
        return self._find(handle)

    @_guarded(default=[])
    def get_attempts(self) -> list[Attempt]:
        with self._lock:
            return list(self._attempts)

    @_guarded(default=[])
    def get_payment_attempts(self, payment_id: str) -> list[Attempt]:
        with self._lock:
            return [a for a in self._attempts if a.payment_id == payment_id]

    @_guarded(default=[])
    def get_logs(self, attempt_id: AttemptHandle | None = None) -> list[PaymentLogEntry]:
        with self._lock:
            if attempt_id is None:
                return list(self._logs)
            return [entry for entry in self._logs if entry.attempt_id == attempt_id]

    @_guarded(default=[])
    def get_recent_logs(self, count: int = 10) -> list[PaymentLogEntry]:
        with self._lock:
            return list(self._logs)[-count:] if count > 0 else []

    @_guarded(default="[]")
    def export_logs(self) -> str:
        entries = [entry.to_dict() for entry in self.get_logs()]
        return json.dumps(entries, ensure_ascii=False, indent=2, default=str)

    @_guarded(default="No payment attempts recorded")
    def generate_report(self) -> str:
        """지원 문의용 JSON 진단 리포트."""

        attempts = self.get_attempts()
        if not attempts:
            return "No payment attempts recorded"

        current = attempts[-1]
        report = {
            "summary": {
                "total_attempts": len(attempts),
                "current_attempt_number": current.attempt_number,
                "last_attempt_status": "SUCCESS" if current.success else "FAILED",
            },
            "current_attempt": current.to_report(),
            "recent_attempts": [attempt.to_report() for attempt in attempts[-5:]],
            "payment_logs": [entry.to_dict() for entry in self.get_recent_logs(20)],
        }
        return json.dumps(report, ensure_ascii=False, indent=2, default=str)

    @_guarded()
    def get_error_summary(self) -> dict[str, str] | None:
        attempts = self.get_attempts()
        if not attempts:
            return None
        current = attempts[-1]
        if current.error is None and current.invoice_status not in ("failed", "cancelled"):
            return None

        if current.invoice_status == "failed":
            return {
                "title": "Платеж отклонён",
                "description": "Платёж был отклонён платёжной системой.",
                "technical_details": (
                    f"Status: {current.invoice_status}, Provider: {current.provider or 'unknown'}"
                ),
                "suggested_action": "Попробуйте другой способ оплаты или свяжитесь с поддержкой.",
            }
        if current.invoice_status == "cancelled":
            return {
                "title": "Платеж отменён",
                "description": "Вы отменили платёж.",
                "technical_details": f"Attempt: {current.attempt_id}",
                "suggested_action": "Попробуйте снова, если это было сделано случайно.",
            }
        return {
            "title": "Ошибка платежа",
            "description": current.error or "",
            "technical_details": f"Attempt: {current.attempt_id}",
            "suggested_action": "Попробуйте снова или свяжитесь с поддержкой.",
        }

    @_guarded()
    def clear(self) -> None:
        with self._lock:
            self._logs.clear()
            self._attempts.clear()
            self._attempt_counter = 0

    # ── 내부 ──────────────────────────────────────────────────────

    def _find(self, handle: AttemptHandle) -> Attempt | None:
        with self._lock:
            for attempt in reversed(self._attempts):
                if attempt.attempt_id == handle:
                    return attempt
        return None

    def _append(self, event_type: str, **fields: Any) -> None:
        try:
            entry = PaymentLogEntry(
                timestamp=utc_now().isoformat(),
                event_type=event_type,
                **fields,
            )
        except TypeError as exc:
            raise DiagnosticFailure(f"invalid diagnostic fields for {event_type}") from exc

        with self._lock:
            self._logs.append(entry)

        level = logging.ERROR if event_type in PaymentEventType.ERROR_TYPES else logging.INFO
        payment_logger.log(
            level,
            "payment event %s",
            event_type,
            extra=entry.to_dict(),
        )


class NullRecorder:
    """아무것도 기록하지 않는 진단 기록기 (테스트/진단 비활성화용)."""

    def start_attempt(self, **context: Any) -> AttemptHandle:
        return "attempt-null"

    def log(
        self, event_type: str, attempt_id: AttemptHandle | None = None, **fields: Any
    ) -> None:
        return None

    def end_attempt(
        self,
        handle: AttemptHandle,
        *,
        success: bool,
        invoice_status: str | None = None,
        error: str | None = None,
    ) -> None:
        return None
