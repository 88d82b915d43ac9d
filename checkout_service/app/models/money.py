from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..exceptions import CurrencyMismatchError


class Money(BaseModel):
    """최소 화폐 단위(코펙 등) 정수 금액."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    amount_minor: int = Field(ge=0, alias="amountMinor")
    currency: str = Field(min_length=1)

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, value: str) -> str:
        normalized = value.strip().upper()
        if not normalized:
            raise ValueError("currency must not be blank")
        return normalized

    def __add__(self, other: object) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        if other.currency != self.currency:
            raise CurrencyMismatchError(
                f"cannot add {other.currency} to {self.currency}",
            )
        return Money(amount_minor=self.amount_minor + other.amount_minor, currency=self.currency)

    def to_wire(self) -> dict[str, object]:
        return self.model_dump(by_alias=True)
