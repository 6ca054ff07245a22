from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Currency:
    code: str

    def __post_init__(self) -> None:
        if len(self.code) != 3 or not self.code.isalpha() or not self.code.isupper():
            raise ValueError(f"Currency code must be 3 upper-case letters, got {self.code!r}")

    def __str__(self) -> str:
        return self.code


@dataclass(frozen=True)
class IborIndex:
    """
    Term deposit index (LIBOR/EURIBOR style).

    spot_lag is in calendar days; fixing date = accrual start - spot_lag.
    """
    name: str
    currency: Currency
    tenor_months: int
    day_count: str = "ACT/360"
    spot_lag: int = 2

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class OvernightIndex:
    name: str
    currency: Currency
    day_count: str = "ACT/360"

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class IssuerKey:
    issuer: str
    currency: Currency

    def __str__(self) -> str:
        return f"{self.issuer}/{self.currency}"


USD = Currency("USD")
EUR = Currency("EUR")
GBP = Currency("GBP")
JPY = Currency("JPY")
CHF = Currency("CHF")
AUD = Currency("AUD")
