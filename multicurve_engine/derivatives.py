"""
Time-based derivatives and the visitor protocol used to price them.

The set of derivative kinds is closed. DerivativeVisitor declares one
abstract method per kind, so a calculator missing a kind cannot be
instantiated. DerivativeVisitorAdapter fills every method with a default
that raises UnsupportedVisitationError; it is meant for calculators that
only make sense for a few kinds (model-specific greeks).

All times are ACT/365 year fractions from the valuation instant.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Tuple, Union

import pandas as pd

from .conventions import Currency, IborIndex, IssuerKey
from .errors import UnsupportedVisitationError


class Derivative(ABC):
    @abstractmethod
    def accept(self, visitor: "DerivativeVisitor", provider: Any):
        ...


@dataclass(frozen=True)
class FixedCoupon(Derivative):
    currency: Currency
    payment_time: float
    payment_year_fraction: float
    notional: float
    rate: float
    accrual_start_date: Optional[pd.Timestamp] = None
    accrual_end_date: Optional[pd.Timestamp] = None

    @property
    def amount(self) -> float:
        return self.notional * self.rate * self.payment_year_fraction

    def accept(self, visitor, provider):
        return visitor.visit_fixed_coupon(self, provider)


@dataclass(frozen=True)
class IborCoupon(Derivative):
    currency: Currency
    payment_time: float
    payment_year_fraction: float
    notional: float
    index: IborIndex
    fixing_time: float
    fixing_period_start_time: float
    fixing_period_end_time: float
    fixing_accrual_factor: float
    spread: float = 0.0

    def accept(self, visitor, provider):
        return visitor.visit_ibor_coupon(self, provider)


@dataclass(frozen=True)
class IborCompoundingCoupon(Derivative):
    """
    Ibor compounding coupon with flat spread, possibly partially fixed.

    compounding_period_amount_accumulated is the amount already known from
    fixed sub-periods; the sub-period arrays cover only the remaining ones.
    """
    currency: Currency
    payment_time: float
    payment_year_fraction: float
    notional: float
    compounding_period_amount_accumulated: float
    index: IborIndex
    subperiods_accrual_factors: Tuple[float, ...]
    fixing_times: Tuple[float, ...]
    fixing_period_start_times: Tuple[float, ...]
    fixing_period_end_times: Tuple[float, ...]
    fixing_period_accrual_factors: Tuple[float, ...]
    spread: float

    def __post_init__(self) -> None:
        n = len(self.subperiods_accrual_factors)
        for name in ("fixing_times", "fixing_period_start_times", "fixing_period_end_times", "fixing_period_accrual_factors"):
            if len(getattr(self, name)) != n:
                raise ValueError(f"{name} must have one entry per remaining sub-period")

    @property
    def remaining_subperiods(self) -> int:
        return len(self.subperiods_accrual_factors)

    def accept(self, visitor, provider):
        return visitor.visit_ibor_compounding_coupon(self, provider)


Coupon = Union[FixedCoupon, IborCoupon, IborCompoundingCoupon]


@dataclass(frozen=True)
class Swap(Derivative):
    """Two legs of coupons; amounts are signed through the coupon notionals."""
    currency: Currency
    first_leg: Tuple[Coupon, ...]
    second_leg: Tuple[Coupon, ...]

    @property
    def coupons(self) -> Tuple[Coupon, ...]:
        return self.first_leg + self.second_leg

    def accept(self, visitor, provider):
        return visitor.visit_swap(self, provider)


@dataclass(frozen=True)
class BondTransaction(Derivative):
    """
    Fixed-coupon bond purchase: quantity units of a bond with `notional` face,
    against a settlement amount (opposite sign to quantity) paid at settlement_time.
    """
    currency: Currency
    issuer: IssuerKey
    coupons: Tuple[FixedCoupon, ...]
    nominal_time: float
    notional: float
    quantity: float
    settlement_time: float
    settlement_amount: float

    def __post_init__(self) -> None:
        if self.quantity * self.settlement_amount > 0:
            raise ValueError("settlement amount should be opposite sign from quantity")

    def accept(self, visitor, provider):
        return visitor.visit_bond_transaction(self, provider)


@dataclass(frozen=True)
class SwaptionPhysical(Derivative):
    expiry_time: float
    underlying: Swap
    settlement_time: float
    is_long: bool = True

    @property
    def currency(self) -> Currency:
        return self.underlying.currency

    def accept(self, visitor, provider):
        return visitor.visit_swaption_physical(self, provider)


@dataclass(frozen=True)
class SwaptionCash(Derivative):
    expiry_time: float
    underlying: Swap
    settlement_time: float
    is_long: bool = True

    @property
    def currency(self) -> Currency:
        return self.underlying.currency

    def accept(self, visitor, provider):
        return visitor.visit_swaption_cash(self, provider)


@dataclass(frozen=True)
class DeliverableSwapFuture(Derivative):
    """Swap futures position; the underlying is a unit-notional receiver swap starting at delivery."""
    currency: Currency
    last_trading_time: float
    delivery_time: float
    underlying: Swap
    notional: float
    reference_price: float
    quantity: float

    def accept(self, visitor, provider):
        return visitor.visit_deliverable_swap_future(self, provider)


class DerivativeVisitor(ABC):
    """One method per derivative kind; `visit` is the uniform entry point."""

    def visit(self, derivative: Derivative, provider: Any):
        return derivative.accept(self, provider)

    @abstractmethod
    def visit_fixed_coupon(self, coupon: FixedCoupon, provider): ...

    @abstractmethod
    def visit_ibor_coupon(self, coupon: IborCoupon, provider): ...

    @abstractmethod
    def visit_ibor_compounding_coupon(self, coupon: IborCompoundingCoupon, provider): ...

    @abstractmethod
    def visit_swap(self, swap: Swap, provider): ...

    @abstractmethod
    def visit_bond_transaction(self, bond: BondTransaction, provider): ...

    @abstractmethod
    def visit_swaption_physical(self, swaption: SwaptionPhysical, provider): ...

    @abstractmethod
    def visit_swaption_cash(self, swaption: SwaptionCash, provider): ...

    @abstractmethod
    def visit_deliverable_swap_future(self, future: DeliverableSwapFuture, provider): ...


class DerivativeVisitorAdapter(DerivativeVisitor):
    def _unsupported(self, derivative: Derivative):
        raise UnsupportedVisitationError(type(derivative).__name__, type(self).__name__)

    def visit_fixed_coupon(self, coupon, provider):
        return self._unsupported(coupon)

    def visit_ibor_coupon(self, coupon, provider):
        return self._unsupported(coupon)

    def visit_ibor_compounding_coupon(self, coupon, provider):
        return self._unsupported(coupon)

    def visit_swap(self, swap, provider):
        return self._unsupported(swap)

    def visit_bond_transaction(self, bond, provider):
        return self._unsupported(bond)

    def visit_swaption_physical(self, swaption, provider):
        return self._unsupported(swaption)

    def visit_swaption_cash(self, swaption, provider):
        return self._unsupported(swaption)

    def visit_deliverable_swap_future(self, future, provider):
        return self._unsupported(future)
