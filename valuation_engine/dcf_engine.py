import logging
import math
from typing import List, Sequence, Tuple, Union

from .config import PROJECTION_YEARS
from .models import Assumptions, DiscountedCashFlow, FcffYear, ValuationResult

logger = logging.getLogger(__name__)

WACC_NOT_ABOVE_GROWTH = "wacc_not_above_growth"
INSUFFICIENT_PROJECTION_YEARS = "insufficient_projection_years"
DISCOUNT_RATE_NOT_ABOVE_MINUS_ONE = "discount_rate_not_above_minus_one"

FcffSeries = Sequence[Union[FcffYear, float]]


def fcff_values(series: FcffSeries) -> List[float]:
    return [item.fcff if isinstance(item, FcffYear) else float(item) for item in series]


def discount_cash_flows(values: Sequence[float], wacc: float) -> Tuple[List[DiscountedCashFlow], float]:
    """Discount year t (1-based) at (1 + wacc)^t; returns the rows and their sum. No rows when wacc <= -1."""
    rows: List[DiscountedCashFlow] = []
    if 1.0 + wacc <= 0:
        return rows, math.nan
    pv_sum = 0.0
    for t, fcff in enumerate(values, start=1):
        discount_factor = 1.0 / math.pow(1.0 + wacc, t)
        present_value = fcff * discount_factor
        pv_sum += present_value
        rows.append(DiscountedCashFlow(year=t, fcff=fcff, discount_factor=discount_factor, present_value=present_value))
    return rows, pv_sum


def terminal_value(last_fcff: float, wacc: float, terminal_growth_rate: float) -> float:
    """Gordon growth value at the end of the horizon. Caller guarantees wacc > g."""
    return last_fcff * (1.0 + terminal_growth_rate) / (wacc - terminal_growth_rate)


def compute_net_debt(assumptions: Assumptions) -> float:
    return assumptions.total_debt - (assumptions.cash_and_equivalents + assumptions.additional_cash_like_assets)


def evaluate(
    values: Sequence[float],
    wacc: float,
    terminal_growth_rate: float,
    assumptions: Assumptions,
) -> ValuationResult:
    """
    Discount `values` at (wacc, g) and bridge to a per-share value.

    Shared by the base case and every sensitivity cell, so identical inputs
    produce identical floats.
    """
    rows, pv_sum = discount_cash_flows(values, wacc)
    if 1.0 + wacc <= 0:
        return ValuationResult(
            wacc=wacc,
            terminal_growth_rate=terminal_growth_rate,
            is_valid=False,
            reason=DISCOUNT_RATE_NOT_ABOVE_MINUS_ONE,
        )
    if wacc <= terminal_growth_rate:
        return ValuationResult(
            wacc=wacc,
            terminal_growth_rate=terminal_growth_rate,
            discounted_cash_flows=rows,
            is_valid=False,
            reason=WACC_NOT_ABOVE_GROWTH,
        )

    horizon = len(values)
    last_fcff = values[-1]
    tv = terminal_value(last_fcff, wacc, terminal_growth_rate)
    pv_tv = tv / math.pow(1.0 + wacc, horizon)
    ev = pv_sum + pv_tv
    net_debt = compute_net_debt(assumptions)
    equity_value = ev - net_debt
    shares = assumptions.shares_outstanding
    per_share = equity_value / shares if shares > 0 else 0.0

    return ValuationResult(
        wacc=wacc,
        terminal_growth_rate=terminal_growth_rate,
        discounted_cash_flows=rows,
        sum_of_pv_fcff=pv_sum,
        last_fcff=last_fcff,
        terminal_value=tv,
        pv_of_terminal_value=pv_tv,
        enterprise_value=ev,
        net_debt=net_debt,
        equity_value=equity_value,
        intrinsic_value_per_share=per_share,
    )


def run_valuation(
    fcff: FcffSeries,
    wacc: float,
    assumptions: Assumptions,
    required_years: int = PROJECTION_YEARS,
) -> ValuationResult:
    """
    Enterprise value, equity value and intrinsic value per share from an FCFF
    series. Never raises for business-rule failures: when WACC does not
    exceed terminal growth, or the series is shorter than `required_years`,
    the result comes back with is_valid=False and every valuation field None.
    """
    values = fcff_values(fcff)
    g = assumptions.terminal_growth_rate

    if len(values) < max(required_years, 1):
        logger.warning(
            "Valuation not computable: %s projected years, %s required", len(values), required_years
        )
        rows, _ = discount_cash_flows(values, wacc)
        return ValuationResult(
            wacc=wacc,
            terminal_growth_rate=g,
            discounted_cash_flows=rows,
            is_valid=False,
            reason=INSUFFICIENT_PROJECTION_YEARS,
        )

    result = evaluate(values, wacc, g, assumptions)
    if result.reason == WACC_NOT_ABOVE_GROWTH:
        logger.warning("Valuation not computable: WACC %.4f does not exceed terminal growth %.4f", wacc, g)
    elif not result.is_valid:
        logger.warning("Valuation not computable: WACC %.4f gives no discount factor", wacc)
    return result
