"""Money-weighted return (XIRR) for an irregular, dated cash-flow schedule.

The rate r satisfies

    sum(amount_i / (1 + r) ** (days_i / 365)) == 0

with days_i counted from the earliest event. Newton-Raphson (analytic
derivative) runs first from a 10% guess; when it fails or lands outside the
valid domain, Brent's method takes over on a fixed bracket. The solver never
raises for numeric trouble: callers get either ``XirrRate`` or
``XirrNonConvergent`` and must handle both.
"""

from __future__ import annotations

import datetime as dt
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from scipy import optimize

logger = logging.getLogger(__name__)

TOLERANCE = 1e-6
MAX_ITERATIONS = 100
INITIAL_GUESS = 0.1
BRACKET = (-0.9999, 100.0)
DAYS_PER_YEAR = 365.0


@dataclass(frozen=True)
class CashFlowEvent:
    when: dt.date
    amount: Decimal | float  # signed: money into the investment is negative


@dataclass(frozen=True)
class XirrRate:
    rate: float
    method: str  # "newton" or "brentq"


@dataclass(frozen=True)
class XirrNonConvergent:
    reason: str


XirrResult = XirrRate | XirrNonConvergent


def _year_fractions(events: Sequence[CashFlowEvent]) -> tuple[list[float], list[float]]:
    start = min(e.when for e in events)
    years = [(e.when - start).days / DAYS_PER_YEAR for e in events]
    amounts = [float(e.amount) for e in events]
    return years, amounts


def npv(rate: float, years: Sequence[float], amounts: Sequence[float]) -> float:
    if rate <= -1.0:
        return math.inf
    base = 1.0 + rate
    try:
        return sum(a / base**y for a, y in zip(amounts, years))
    except (OverflowError, ZeroDivisionError):
        # discount factor out of float range near the bracket edge
        return math.inf


def _npv_derivative(
    rate: float, years: Sequence[float], amounts: Sequence[float]
) -> float:
    if rate <= -1.0:
        return math.nan
    base = 1.0 + rate
    try:
        return sum(-y * a / base ** (y + 1.0) for a, y in zip(amounts, years))
    except (OverflowError, ZeroDivisionError):
        return math.nan


def _is_valid_rate(rate: float, years: Sequence[float], amounts: Sequence[float]) -> bool:
    if not math.isfinite(rate) or rate <= -1.0:
        return False
    residual = npv(rate, years, amounts)
    scale = max(1.0, max(abs(a) for a in amounts))
    return math.isfinite(residual) and abs(residual) <= TOLERANCE * scale


def solve(
    events: Sequence[CashFlowEvent],
    *,
    guess: float = INITIAL_GUESS,
    tolerance: float = TOLERANCE,
    max_iterations: int = MAX_ITERATIONS,
) -> XirrResult:
    """Annualized rate that zeroes the schedule's net present value."""
    if not events:
        return XirrNonConvergent("no cash flows")
    years, amounts = _year_fractions(events)
    if not all(math.isfinite(a) for a in amounts):
        return XirrNonConvergent("non-finite cash flow")
    if not (any(a > 0 for a in amounts) and any(a < 0 for a in amounts)):
        return XirrNonConvergent("cash flows never change sign")
    if max(years) == 0:
        return XirrNonConvergent("all cash flows fall on the same day")

    try:
        rate = optimize.newton(
            npv,
            x0=guess,
            fprime=_npv_derivative,
            args=(years, amounts),
            tol=tolerance,
            maxiter=max_iterations,
        )
        rate = float(rate)
        if _is_valid_rate(rate, years, amounts):
            return XirrRate(rate=rate, method="newton")
        logger.debug("Newton result %s rejected; trying brentq", rate)
    except (RuntimeError, OverflowError, ZeroDivisionError) as exc:
        logger.debug("Newton failed (%s); trying brentq", exc)

    lo, hi = BRACKET
    npv_lo = npv(lo, years, amounts)
    npv_hi = npv(hi, years, amounts)
    if not (math.isfinite(npv_lo) and math.isfinite(npv_hi)) or npv_lo * npv_hi > 0:
        return XirrNonConvergent(
            f"no root bracketed in [{lo}, {hi}] (npv {npv_lo:.6g}, {npv_hi:.6g})"
        )
    try:
        rate = optimize.brentq(
            npv,
            lo,
            hi,
            args=(years, amounts),
            xtol=tolerance,
            maxiter=max_iterations,
        )
    except (RuntimeError, ValueError, OverflowError) as exc:
        return XirrNonConvergent(f"brentq failed: {exc}")
    return XirrRate(rate=float(rate), method="brentq")


def rate_or_none(result: XirrResult) -> float | None:
    if isinstance(result, XirrRate):
        return result.rate
    return None
