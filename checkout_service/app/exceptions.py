from __future__ import annotations


class CheckoutError(Exception):
    """Base exception for all checkout-service errors."""


class InvalidAmountError(CheckoutError, ValueError):
    """Local contract violation while building a payment request. Never reaches the network."""


class CurrencyMismatchError(CheckoutError, ValueError):
    """Arithmetic attempted on Money values with different currencies."""


class MissingNextActionError(CheckoutError):
    """The remote side returned a Payment without a continuation instruction."""

    def __init__(self, payment_id: str) -> None:
        super().__init__(f"payment {payment_id} has no next action")
        self.payment_id = payment_id


class ApiError(CheckoutError):
    """Error response (or transport failure) from the booking API.

    status 0 means the request never got an HTTP response.
    """

    def __init__(self, code: str, message: str, status: int = 0) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
        self.status = status

    @property
    def is_transient(self) -> bool:
        return self.status == 0 or self.status >= 500


class SubmissionFailedError(CheckoutError):
    """The initial submit call failed. Safe to retry with the same idempotency key."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        server_message: str | None = None,
        transient: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.server_message = server_message
        self.transient = transient

    @classmethod
    def from_api_error(cls, error: ApiError) -> SubmissionFailedError:
        return cls(
            str(error),
            code=error.code,
            server_message=error.message or None,
            transient=error.is_transient,
        )


class ActionFailedError(CheckoutError):
    """The host could not carry out the payment's next action (unsupported type, missing URL)."""

    def __init__(self, reason: str, payment_id: str | None = None) -> None:
        super().__init__(reason if payment_id is None else f"{reason} (payment {payment_id})")
        self.reason = reason
        self.payment_id = payment_id


class DiagnosticFailure(CheckoutError):
    """Internal diagnostics error. Always swallowed at the recorder boundary."""
