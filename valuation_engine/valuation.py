"""
Single entry point for a full recomputation.

`compute` is a pure function of a statement set and an assumption set. Callers
run it again on every input change; nothing is cached between calls.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .capital_structure import optimize_capital_structure
from .config import PROJECTION_YEARS
from .cost_of_capital import compute_cost_of_capital
from .dcf_engine import run_valuation
from .models import (
    Assumptions,
    CapitalStructureAnalysis,
    CostOfCapital,
    FcffYear,
    HistoricalRatios,
    ProjectionYear,
    SensitivityGrid,
    ValuationResult,
    to_payload,
)
from .projections import project_fcff, project_three_statement
from .ratios import extract_historical_ratios, summarize_history
from .sensitivity import build_sensitivity_grid
from .statements import StatementSet

logger = logging.getLogger(__name__)


@dataclass
class ValuationReport:
    assumptions: Assumptions
    cost_of_capital: CostOfCapital
    fcff: List[FcffYear]
    valuation: ValuationResult
    sensitivity: Optional[SensitivityGrid] = None
    capital_structure: Optional[CapitalStructureAnalysis] = None
    ratios: Optional[HistoricalRatios] = None
    history: Dict[str, list] = field(default_factory=dict)
    three_statement: Optional[List[ProjectionYear]] = None
    company_name: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload = to_payload(self)
        if self.capital_structure is not None:
            payload["capitalStructure"]["optimal"] = to_payload(self.capital_structure.optimal)
            payload["capitalStructure"]["maxEnterpriseValueIndex"] = self.capital_structure.max_enterprise_value_index
        return payload


def compute(
    statements: Optional[StatementSet],
    assumptions: Assumptions,
    years: int = PROJECTION_YEARS,
) -> ValuationReport:
    ratios = extract_historical_ratios(statements)
    history = summarize_history(statements)
    three_statement = project_three_statement(statements, assumptions, ratios, years=years)

    base_year = None
    if statements is not None:
        trailing = statements.trailing_years()
        base_year = trailing[-1] if trailing else None
    fcff = project_fcff(assumptions, years=years, base_year=base_year)

    cost_of_capital = compute_cost_of_capital(assumptions)
    wacc = cost_of_capital.wacc
    valuation = run_valuation(fcff, wacc, assumptions, required_years=years)
    sensitivity = build_sensitivity_grid(fcff, wacc, assumptions)
    capital_structure = optimize_capital_structure(fcff, assumptions, required_years=years)

    logger.debug(
        "Computed valuation: wacc=%.6f valid=%s per_share=%s",
        wacc,
        valuation.is_valid,
        valuation.intrinsic_value_per_share,
    )
    return ValuationReport(
        assumptions=assumptions,
        cost_of_capital=cost_of_capital,
        fcff=fcff,
        valuation=valuation,
        sensitivity=sensitivity,
        capital_structure=capital_structure,
        ratios=ratios,
        history=history,
        three_statement=three_statement,
        company_name=statements.company_name if statements is not None else None,
    )
