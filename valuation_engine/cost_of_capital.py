import math
from bisect import bisect_right
from typing import Optional, Sequence, Tuple

from .models import Assumptions, CostOfCapital

BETA_MAX = 2.0
MIN_MARKET_CAP = 1.0

# (D/E threshold, credit premium over the base cost of debt), ascending.
DEBT_PREMIUM_SCHEDULE: Tuple[Tuple[float, float], ...] = (
    (0.0, 0.000),
    (0.2, 0.002),
    (0.4, 0.005),
    (0.6, 0.010),
    (1.0, 0.020),
    (1.5, 0.030),
    (2.0, 0.040),
    (3.0, 0.050),
    (5.0, 0.060),
)
_PREMIUM_THRESHOLDS = [threshold for threshold, _ in DEBT_PREMIUM_SCHEDULE]


def compute_cost_of_equity(beta: float, risk_free_rate: float, equity_risk_premium: float) -> float:
    """CAPM cost of equity."""
    return risk_free_rate + beta * equity_risk_premium


def compute_after_tax_cost_of_debt(cost_of_debt: float, tax_rate: float) -> float:
    return cost_of_debt * (1.0 - tax_rate)


def compute_capital_weights(market_cap: Optional[float], total_debt: Optional[float]) -> Tuple[float, float]:
    """Equity and debt weights, market cap floored at 1. Both weights are 0 when total capital is not positive."""
    equity = market_cap if market_cap is not None and market_cap > 0 else MIN_MARKET_CAP
    debt = total_debt or 0.0
    total_capital = equity + debt
    if total_capital <= 0:
        return 0.0, 0.0
    equity_weight = equity / total_capital
    return equity_weight, 1.0 - equity_weight


def compute_wacc(
    cost_of_equity: float,
    after_tax_cost_of_debt: float,
    equity_weight: float,
    debt_weight: float,
) -> float:
    return equity_weight * cost_of_equity + debt_weight * after_tax_cost_of_debt


def compute_cost_of_capital(assumptions: Assumptions) -> CostOfCapital:
    cost_of_equity = compute_cost_of_equity(
        assumptions.beta, assumptions.risk_free_rate, assumptions.equity_risk_premium
    )
    after_tax_cost_of_debt = compute_after_tax_cost_of_debt(assumptions.cost_of_debt, assumptions.tax_rate)
    equity_weight, debt_weight = compute_capital_weights(assumptions.market_cap, assumptions.total_debt)
    return CostOfCapital(
        cost_of_equity=cost_of_equity,
        after_tax_cost_of_debt=after_tax_cost_of_debt,
        equity_weight=equity_weight,
        debt_weight=debt_weight,
        wacc=compute_wacc(cost_of_equity, after_tax_cost_of_debt, equity_weight, debt_weight),
    )


def compute_unlevered_beta(levered_beta: float, debt: float, market_cap: float, tax_rate: float) -> float:
    """Hamada: strip the observed capital structure out of the equity beta."""
    debt_equity = debt / market_cap if debt > 0 and market_cap > 0 else 0.0
    return levered_beta / (1.0 + (1.0 - tax_rate) * debt_equity)


def compute_relevered_beta(unlevered_beta: float, debt_equity: float, tax_rate: float) -> float:
    """Re-lever an asset beta to a target D/E, capped at BETA_MAX."""
    return min(BETA_MAX, unlevered_beta * (1.0 + (1.0 - tax_rate) * debt_equity))


def debt_premium_for(
    debt_equity: float,
    schedule: Sequence[Tuple[float, float]] = DEBT_PREMIUM_SCHEDULE,
) -> float:
    """
    Premium of the highest schedule tier whose threshold is <= `debt_equity`.
    A ratio exactly on a threshold takes that tier; infinite D/E takes the
    top tier and anything below the first threshold pays nothing.
    """
    if debt_equity is None or math.isnan(debt_equity):
        return 0.0
    thresholds = _PREMIUM_THRESHOLDS if schedule is DEBT_PREMIUM_SCHEDULE else [t for t, _ in schedule]
    idx = bisect_right(thresholds, debt_equity) - 1
    if idx < 0:
        return 0.0
    return schedule[idx][1]
