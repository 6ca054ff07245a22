"""
Date-based instrument definitions and their conversion to time-based derivatives.

A definition holds calendar dates; `to_derivative(valuation, ...)` turns it
into the pricing-ready object of derivatives.py, measuring every date as a
signed ACT/365 time from the valuation instant. Fixings are looked up at
calendar-date granularity.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import pandas as pd

from .conventions import Currency, IborIndex, IssuerKey
from .derivatives import (
    BondTransaction,
    DeliverableSwapFuture,
    FixedCoupon,
    IborCompoundingCoupon,
    IborCoupon,
    Swap,
    SwaptionCash,
    SwaptionPhysical,
)
from .errors import MissingFixingError, StaleValuationError
from .fixings import FixingTimeSeries
from .utils import (
    accrued_interest,
    add_months,
    as_date,
    cached_schedule,
    fixing_date,
    period_end_dates,
    time_between,
    yearfrac,
)

logger = logging.getLogger(__name__)


def _check_not_after(valuation: pd.Timestamp, limit: pd.Timestamp, what: str) -> None:
    if as_date(valuation) > as_date(limit):
        raise StaleValuationError(f"Valuation date {as_date(valuation).date()} is after {what} {as_date(limit).date()}")


# ---------- Coupons ----------

@dataclass(frozen=True)
class FixedCouponDefinition:
    currency: Currency
    payment_date: pd.Timestamp
    accrual_start_date: pd.Timestamp
    accrual_end_date: pd.Timestamp
    payment_year_fraction: float
    notional: float
    rate: float

    @classmethod
    def from_accrual_dates(
        cls,
        currency: Currency,
        accrual_start: pd.Timestamp,
        accrual_end: pd.Timestamp,
        notional: float,
        rate: float,
        day_count: str = "30/360",
    ) -> "FixedCouponDefinition":
        start, end = pd.Timestamp(accrual_start), pd.Timestamp(accrual_end)
        return cls(currency, end, start, end, yearfrac(start, end, day_count), notional, rate)

    def to_derivative(self, valuation: pd.Timestamp, fixings: Optional[FixingTimeSeries] = None) -> FixedCoupon:
        _check_not_after(valuation, self.payment_date, "payment date")
        return FixedCoupon(
            self.currency,
            time_between(valuation, self.payment_date),
            self.payment_year_fraction,
            self.notional,
            self.rate,
            self.accrual_start_date,
            self.accrual_end_date,
        )


@dataclass(frozen=True)
class IborCouponDefinition:
    currency: Currency
    payment_date: pd.Timestamp
    accrual_start_date: pd.Timestamp
    accrual_end_date: pd.Timestamp
    payment_year_fraction: float
    notional: float
    index: IborIndex
    fixing_date: pd.Timestamp
    fixing_period_start_date: pd.Timestamp
    fixing_period_end_date: pd.Timestamp
    fixing_period_accrual_factor: float
    spread: float = 0.0

    @classmethod
    def from_accrual_dates(
        cls,
        index: IborIndex,
        accrual_start: pd.Timestamp,
        accrual_end: pd.Timestamp,
        notional: float,
        spread: float = 0.0,
    ) -> "IborCouponDefinition":
        start, end = pd.Timestamp(accrual_start), pd.Timestamp(accrual_end)
        fixing_end = add_months(start, index.tenor_months)
        return cls(
            currency=index.currency,
            payment_date=end,
            accrual_start_date=start,
            accrual_end_date=end,
            payment_year_fraction=yearfrac(start, end, index.day_count),
            notional=notional,
            index=index,
            fixing_date=fixing_date(start, index.spot_lag),
            fixing_period_start_date=start,
            fixing_period_end_date=fixing_end,
            fixing_period_accrual_factor=yearfrac(start, fixing_end, index.day_count),
            spread=spread,
        )

    def _fixed(self, valuation: pd.Timestamp, rate: float) -> FixedCoupon:
        return FixedCoupon(
            self.currency,
            time_between(valuation, self.payment_date),
            self.payment_year_fraction,
            self.notional,
            rate + self.spread,
            self.accrual_start_date,
            self.accrual_end_date,
        )

    def to_derivative(self, valuation: pd.Timestamp, fixings: Optional[FixingTimeSeries] = None):
        """IborCoupon while the rate is unknown, FixedCoupon once it has fixed."""
        day = as_date(valuation)
        fixing_day = as_date(self.fixing_date)

        if fixings is None:
            _check_not_after(valuation, self.fixing_date, "fixing date")
        else:
            _check_not_after(valuation, self.payment_date, "payment date")
            rate = fixings.get(fixing_day)
            if fixing_day < day:
                if rate is None:
                    raise MissingFixingError(f"No {self.index} fixing for {fixing_day.date()}")
                return self._fixed(valuation, rate)
            if fixing_day == day and rate is not None:
                logger.debug("%s fixing on valuation date %s is known: %s", self.index, day.date(), rate)
                return self._fixed(valuation, rate)

        return IborCoupon(
            self.currency,
            time_between(valuation, self.payment_date),
            self.payment_year_fraction,
            self.notional,
            self.index,
            time_between(valuation, self.fixing_date),
            time_between(valuation, self.fixing_period_start_date),
            time_between(valuation, self.fixing_period_end_date),
            self.fixing_period_accrual_factor,
            self.spread,
        )


@dataclass(frozen=True)
class IborCompoundingFlatSpreadCouponDefinition:
    """
    Ibor coupon compounded over sub-periods with a flat spread.

    Each sub-period adds interest on the amount accrued so far at the Ibor
    rate alone, then the notional's interest at Ibor plus spread; the spread
    itself is not compounded.
    """
    currency: Currency
    payment_date: pd.Timestamp
    accrual_start_date: pd.Timestamp
    accrual_end_date: pd.Timestamp
    payment_year_fraction: float
    notional: float
    index: IborIndex
    subperiods_accrual_start_dates: Tuple[pd.Timestamp, ...]
    subperiods_accrual_end_dates: Tuple[pd.Timestamp, ...]
    subperiods_accrual_factors: Tuple[float, ...]
    fixing_dates: Tuple[pd.Timestamp, ...]
    fixing_period_start_dates: Tuple[pd.Timestamp, ...]
    fixing_period_end_dates: Tuple[pd.Timestamp, ...]
    fixing_period_accrual_factors: Tuple[float, ...]
    spread: float

    def __post_init__(self) -> None:
        n = len(self.subperiods_accrual_factors)
        if n == 0:
            raise ValueError("Compounding coupon needs at least one sub-period")
        sizes = {
            len(self.subperiods_accrual_start_dates),
            len(self.subperiods_accrual_end_dates),
            len(self.fixing_dates),
            len(self.fixing_period_start_dates),
            len(self.fixing_period_end_dates),
            len(self.fixing_period_accrual_factors),
        }
        if sizes != {n}:
            raise ValueError("Sub-period arrays must all have the same length")
        if list(self.fixing_dates) != sorted(self.fixing_dates):
            raise ValueError("Fixing dates must be in increasing order")

    @classmethod
    def from_accrual_dates(
        cls,
        index: IborIndex,
        accrual_start: pd.Timestamp,
        accrual_end: pd.Timestamp,
        notional: float,
        spread: float,
        payment_date: Optional[pd.Timestamp] = None,
    ) -> "IborCompoundingFlatSpreadCouponDefinition":
        """Sub-periods of the index tenor from accrual_start, short final stub."""
        start, end = pd.Timestamp(accrual_start), pd.Timestamp(accrual_end)
        ends = period_end_dates(start, end, index.tenor_months)
        starts = [start] + ends[:-1]
        factors = tuple(yearfrac(s, e, index.day_count) for s, e in zip(starts, ends))
        fixing_ends = [add_months(s, index.tenor_months) for s in starts]

        return cls(
            currency=index.currency,
            payment_date=pd.Timestamp(payment_date) if payment_date is not None else end,
            accrual_start_date=start,
            accrual_end_date=end,
            payment_year_fraction=float(sum(factors)),
            notional=notional,
            index=index,
            subperiods_accrual_start_dates=tuple(starts),
            subperiods_accrual_end_dates=tuple(ends),
            subperiods_accrual_factors=factors,
            fixing_dates=tuple(fixing_date(s, index.spot_lag) for s in starts),
            fixing_period_start_dates=tuple(starts),
            fixing_period_end_dates=tuple(fixing_ends),
            fixing_period_accrual_factors=tuple(yearfrac(s, e, index.day_count) for s, e in zip(starts, fixing_ends)),
            spread=spread,
        )

    @property
    def subperiod_count(self) -> int:
        return len(self.subperiods_accrual_factors)

    def _fixed_count(self, day: pd.Timestamp, fixings: FixingTimeSeries) -> int:
        k = sum(1 for d in self.fixing_dates if as_date(d) < day)
        if k < self.subperiod_count and as_date(self.fixing_dates[k]) == day and fixings.get(day) is not None:
            logger.debug("%s fixing on valuation date %s is known, sub-period %d treated as fixed", self.index, day.date(), k)
            k += 1
        return k

    def compounded_amount(self, fixings: FixingTimeSeries, periods: int) -> float:
        """Compounding period amount accumulated over the first `periods` sub-periods."""
        cpa = 0.0
        for i in range(periods):
            d = as_date(self.fixing_dates[i])
            rate = fixings.get(d)
            if rate is None:
                raise MissingFixingError(f"No {self.index} fixing for {d.date()} (sub-period {i})")
            af = self.subperiods_accrual_factors[i]
            cpa += cpa * rate * af
            cpa += self.notional * (rate + self.spread) * af
        return cpa

    def to_derivative(self, valuation: pd.Timestamp, fixings: Optional[FixingTimeSeries] = None):
        payment_time = time_between(valuation, self.payment_date)

        if fixings is None:
            _check_not_after(valuation, self.fixing_dates[0], "first fixing date")
            k, cpa = 0, 0.0
        else:
            _check_not_after(valuation, self.payment_date, "payment date")
            k = self._fixed_count(as_date(valuation), fixings)
            cpa = self.compounded_amount(fixings, k)

        logger.debug("%s compounding coupon: %d of %d sub-periods fixed, cpa=%s", self.index, k, self.subperiod_count, cpa)

        if k == self.subperiod_count:
            rate = cpa / (self.notional * self.payment_year_fraction)
            return FixedCoupon(
                self.currency,
                payment_time,
                self.payment_year_fraction,
                self.notional,
                rate,
                self.accrual_start_date,
                self.accrual_end_date,
            )

        return IborCompoundingCoupon(
            currency=self.currency,
            payment_time=payment_time,
            payment_year_fraction=self.payment_year_fraction,
            notional=self.notional,
            compounding_period_amount_accumulated=cpa,
            index=self.index,
            subperiods_accrual_factors=tuple(self.subperiods_accrual_factors[k:]),
            fixing_times=tuple(time_between(valuation, d) for d in self.fixing_dates[k:]),
            fixing_period_start_times=tuple(time_between(valuation, d) for d in self.fixing_period_start_dates[k:]),
            fixing_period_end_times=tuple(time_between(valuation, d) for d in self.fixing_period_end_dates[k:]),
            fixing_period_accrual_factors=tuple(self.fixing_period_accrual_factors[k:]),
            spread=self.spread,
        )


# ---------- Swaps ----------

@dataclass(frozen=True)
class SwapFixedIborDefinition:
    """Fixed leg against an Ibor leg. A payer swap has negative fixed-leg notionals."""
    currency: Currency
    fixed_leg: Tuple[FixedCouponDefinition, ...]
    ibor_leg: Tuple[IborCouponDefinition, ...]

    def __post_init__(self) -> None:
        if not self.fixed_leg or not self.ibor_leg:
            raise ValueError("Both swap legs need at least one coupon")

    @classmethod
    def from_tenor(
        cls,
        start: pd.Timestamp,
        tenor_years: int,
        index: IborIndex,
        fixed_rate: float,
        notional: float,
        is_payer: bool,
        fixed_period_months: int = 12,
        fixed_day_count: str = "30/360",
    ) -> "SwapFixedIborDefinition":
        start = pd.Timestamp(start)
        end = add_months(start, 12 * tenor_years)
        fixed_notional = -notional if is_payer else notional

        fixed_ends = period_end_dates(start, end, fixed_period_months)
        fixed_leg = tuple(
            FixedCouponDefinition.from_accrual_dates(index.currency, s, e, fixed_notional, fixed_rate, fixed_day_count)
            for s, e in zip([start] + fixed_ends[:-1], fixed_ends)
        )
        ibor_ends = period_end_dates(start, end, index.tenor_months)
        ibor_leg = tuple(
            IborCouponDefinition.from_accrual_dates(index, s, e, -fixed_notional)
            for s, e in zip([start] + ibor_ends[:-1], ibor_ends)
        )
        return cls(index.currency, fixed_leg, ibor_leg)

    @property
    def fixed_rate(self) -> float:
        return self.fixed_leg[0].rate

    @property
    def is_payer(self) -> bool:
        return self.fixed_leg[0].notional < 0

    @property
    def start_date(self) -> pd.Timestamp:
        return self.fixed_leg[0].accrual_start_date

    def to_derivative(self, valuation: pd.Timestamp, fixings: Optional[FixingTimeSeries] = None) -> Swap:
        """Coupons paid before the valuation date are dropped."""
        day = as_date(valuation)
        fixed = tuple(c.to_derivative(valuation) for c in self.fixed_leg if as_date(c.payment_date) >= day)
        ibor = tuple(c.to_derivative(valuation, fixings) for c in self.ibor_leg if as_date(c.payment_date) >= day)
        return Swap(self.currency, fixed, ibor)


# ---------- Bonds ----------

@dataclass(frozen=True)
class BondFixedSecurityDefinition:
    currency: Currency
    issuer: IssuerKey
    maturity_date: pd.Timestamp
    coupon_rate: float
    frequency: int = 2
    day_count: str = "30/360"
    notional: float = 1.0
    settlement_days: int = 2

    def __post_init__(self) -> None:
        if self.frequency not in (1, 2, 4, 12):
            raise ValueError("Supported frequencies: 1, 2, 4, 12.")

    def coupons_after(self, date: pd.Timestamp, inclusive: bool = False) -> List[FixedCouponDefinition]:
        """Coupons paid after `date` (or on it when inclusive), schedule anchored at maturity."""
        months = 12 // self.frequency
        first = as_date(date) - pd.Timedelta(days=1) if inclusive else as_date(date)
        out: List[FixedCouponDefinition] = []
        for pay in cached_schedule(first, pd.Timestamp(self.maturity_date), self.frequency):
            start = pay - pd.DateOffset(months=months)
            out.append(
                FixedCouponDefinition(
                    self.currency,
                    pay,
                    start,
                    pay,
                    yearfrac(start, pay, self.day_count),
                    self.notional,
                    self.coupon_rate,
                )
            )
        return out

    def accrued_interest(self, settle: pd.Timestamp) -> float:
        return accrued_interest(settle, self.maturity_date, self.coupon_rate, self.notional, self.frequency, self.day_count)


@dataclass(frozen=True)
class BondFixedTransactionDefinition:
    """`quantity` bonds bought at `clean_price` (per unit of notional) for settlement on settlement_date."""
    security: BondFixedSecurityDefinition
    quantity: float
    settlement_date: pd.Timestamp
    clean_price: float

    @property
    def dirty_price(self) -> float:
        sec = self.security
        return self.clean_price + sec.accrued_interest(self.settlement_date) / sec.notional

    def to_derivative(self, valuation: pd.Timestamp, fixings: Optional[FixingTimeSeries] = None) -> BondTransaction:
        sec = self.security
        _check_not_after(valuation, sec.maturity_date, "bond maturity")

        # before settlement the buyer only gets coupons paid after the settlement date
        if as_date(self.settlement_date) < as_date(valuation):
            schedule = sec.coupons_after(valuation, inclusive=True)
            settlement_time, settlement_amount = 0.0, 0.0
        else:
            schedule = sec.coupons_after(self.settlement_date)
            settlement_time = time_between(valuation, self.settlement_date)
            settlement_amount = -self.quantity * self.dirty_price * sec.notional
        coupons = tuple(c.to_derivative(valuation) for c in schedule)

        return BondTransaction(
            currency=sec.currency,
            issuer=sec.issuer,
            coupons=coupons,
            nominal_time=time_between(valuation, sec.maturity_date),
            notional=sec.notional,
            quantity=self.quantity,
            settlement_time=settlement_time,
            settlement_amount=settlement_amount,
        )


# ---------- Swaptions ----------

@dataclass(frozen=True)
class SwaptionDefinition:
    """European option to enter the underlying swap; cash-settled swaptions pay the cash annuity value."""
    expiry_date: pd.Timestamp
    underlying: SwapFixedIborDefinition
    is_long: bool = True
    is_cash: bool = False
    settlement_date: Optional[pd.Timestamp] = None

    def __post_init__(self) -> None:
        if as_date(self.expiry_date) > as_date(self.underlying.start_date):
            raise ValueError("Swaption expiry must not be after the underlying swap start")

    def to_derivative(self, valuation: pd.Timestamp, fixings: Optional[FixingTimeSeries] = None):
        _check_not_after(valuation, self.expiry_date, "swaption expiry")
        settle = self.settlement_date if self.settlement_date is not None else self.underlying.start_date
        swap = self.underlying.to_derivative(valuation)
        cls = SwaptionCash if self.is_cash else SwaptionPhysical
        return cls(time_between(valuation, self.expiry_date), swap, time_between(valuation, settle), self.is_long)


# ---------- Deliverable swap futures ----------

@dataclass(frozen=True)
class DeliverableSwapFuturesSecurityDefinition:
    """Futures on a unit-notional receiver swap starting at delivery."""
    last_trading_date: pd.Timestamp
    underlying: SwapFixedIborDefinition
    notional: float

    def __post_init__(self) -> None:
        if self.underlying.is_payer:
            raise ValueError("Deliverable swap futures underlying must receive fixed")
        if abs(abs(self.underlying.fixed_leg[0].notional) - 1.0) > 1e-12:
            raise ValueError("Deliverable swap futures underlying must have notional 1")

    @classmethod
    def from_tenor(
        cls,
        last_trading_date: pd.Timestamp,
        delivery_date: pd.Timestamp,
        tenor_years: int,
        index: IborIndex,
        fixed_rate: float,
        notional: float,
    ) -> "DeliverableSwapFuturesSecurityDefinition":
        swap = SwapFixedIborDefinition.from_tenor(delivery_date, tenor_years, index, fixed_rate, 1.0, is_payer=False)
        return cls(pd.Timestamp(last_trading_date), swap, notional)

    @property
    def currency(self) -> Currency:
        return self.underlying.currency

    @property
    def delivery_date(self) -> pd.Timestamp:
        return self.underlying.start_date

    def to_derivative(self, valuation: pd.Timestamp, reference_price: float, quantity: float = 1.0) -> DeliverableSwapFuture:
        _check_not_after(valuation, self.last_trading_date, "last trading date")
        return DeliverableSwapFuture(
            currency=self.currency,
            last_trading_time=time_between(valuation, self.last_trading_date),
            delivery_time=time_between(valuation, self.delivery_date),
            underlying=self.underlying.to_derivative(valuation),
            notional=self.notional,
            reference_price=reference_price,
            quantity=quantity,
        )


@dataclass(frozen=True)
class DeliverableSwapFuturesTransactionDefinition:
    security: DeliverableSwapFuturesSecurityDefinition
    quantity: float
    trade_date: pd.Timestamp
    trade_price: float

    def reference_price(self, valuation: pd.Timestamp, last_margin_price: Optional[float]) -> float:
        """Trade price on (or before) the trade date, last margin price afterwards."""
        if as_date(valuation) <= as_date(self.trade_date):
            return self.trade_price
        if last_margin_price is None:
            raise MissingFixingError(f"No last margin price for valuation on {as_date(valuation).date()}")
        return last_margin_price

    def to_derivative(self, valuation: pd.Timestamp, last_margin_price: Optional[float] = None) -> DeliverableSwapFuture:
        ref = self.reference_price(valuation, last_margin_price)
        return self.security.to_derivative(valuation, ref, self.quantity)
