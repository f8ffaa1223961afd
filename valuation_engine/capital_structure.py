"""
Capital structure simulation.

The current beta is unlevered once, then re-levered across debt ratios of
0%..90%. Each scenario gets a schedule-based cost of debt, a capped beta, a
WACC and an enterprise value on the same FCFF series.

The optimum is the scenario with the lowest WACC, not the highest enterprise
value. The two can disagree for small or mixed-sign FCFF series, so
`CapitalStructureAnalysis.max_enterprise_value_index` is exposed next to it.
"""

import logging
import math
from typing import List, Optional

from .config import PROJECTION_YEARS
from .cost_of_capital import (
    compute_after_tax_cost_of_debt,
    compute_cost_of_equity,
    compute_relevered_beta,
    compute_unlevered_beta,
    debt_premium_for,
)
from .dcf_engine import FcffSeries, evaluate, fcff_values
from .models import Assumptions, CapitalStructureAnalysis, CapitalStructureScenario

logger = logging.getLogger(__name__)

BASE_CREDIT_PREMIUM = 0.01
DEBT_STEPS = 10
DEBT_RATIOS = tuple(i / DEBT_STEPS for i in range(DEBT_STEPS))
MIN_EQUITY_RATIO = 0.001


def optimize_capital_structure(
    fcff: FcffSeries,
    assumptions: Assumptions,
    required_years: int = PROJECTION_YEARS,
) -> Optional[CapitalStructureAnalysis]:
    values = fcff_values(fcff)
    if not assumptions.beta or not assumptions.market_cap or not assumptions.total_debt:
        logger.warning("Capital structure analysis skipped: beta, market cap and total debt are required")
        return None
    if len(values) < max(required_years, 1):
        logger.warning("Capital structure analysis skipped: %s projected years, %s required", len(values), required_years)
        return None

    tax_rate = assumptions.tax_rate
    g = assumptions.terminal_growth_rate
    unlevered_beta = compute_unlevered_beta(
        assumptions.beta, assumptions.total_debt, assumptions.market_cap, tax_rate
    )
    base_cost_of_debt = assumptions.risk_free_rate + BASE_CREDIT_PREMIUM

    scenarios: List[CapitalStructureScenario] = []
    for step, debt_ratio in enumerate(DEBT_RATIOS):
        equity_ratio = 1.0 - debt_ratio
        # D/E from integer steps lands exactly on premium thresholds (60% debt -> 1.5).
        debt_equity = step / (DEBT_STEPS - step) if equity_ratio > MIN_EQUITY_RATIO else math.inf
        cost_of_debt = base_cost_of_debt + debt_premium_for(debt_equity)
        after_tax_cost_of_debt = compute_after_tax_cost_of_debt(cost_of_debt, tax_rate)
        levered_beta = compute_relevered_beta(unlevered_beta, debt_equity, tax_rate)
        cost_of_equity = compute_cost_of_equity(levered_beta, assumptions.risk_free_rate, assumptions.equity_risk_premium)
        wacc = equity_ratio * cost_of_equity + debt_ratio * after_tax_cost_of_debt

        result = evaluate(values, wacc, g, assumptions)
        ev = result.enterprise_value if result.is_valid else -math.inf

        scenarios.append(
            CapitalStructureScenario(
                debt_ratio=debt_ratio,
                equity_ratio=equity_ratio,
                debt_to_equity=debt_equity,
                levered_beta=levered_beta,
                cost_of_debt=cost_of_debt,
                after_tax_cost_of_debt=after_tax_cost_of_debt,
                cost_of_equity=cost_of_equity,
                wacc=wacc,
                enterprise_value=ev,
            )
        )

    optimal_index = -1
    min_wacc = math.inf
    for idx, scenario in enumerate(scenarios):
        if not math.isfinite(scenario.enterprise_value):
            continue
        if math.isfinite(scenario.wacc) and scenario.wacc < min_wacc:
            min_wacc = scenario.wacc
            optimal_index = idx
    if optimal_index >= 0:
        scenarios[optimal_index].is_optimal = True

    return CapitalStructureAnalysis(
        scenarios=scenarios,
        optimal_index=optimal_index,
        unlevered_beta=unlevered_beta,
        base_cost_of_debt=base_cost_of_debt,
    )
