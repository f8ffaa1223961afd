"""
Shared data layer for the valuation modules.

Inputs (Assumptions) and every derived result are plain dataclasses.
`to_payload` turns any of them into a camelCase, JSON-safe dict for the
HTTP layer.
"""

import math
from dataclasses import asdict, dataclass, field, is_dataclass
from typing import Any, List, Optional

import pandas as pd


@dataclass(frozen=True)
class Assumptions:
    """
    User-adjustable valuation inputs. Rates are decimals (0.13 == 13%);
    monetary amounts share one fixed unit.
    """
    base_revenue: float = 30_090_000.0
    growth_rate: float = 0.13
    ebit_margin: float = 0.15
    tax_rate: float = 0.25
    depreciation_rate: float = 0.13
    capex_rate: float = 0.15
    nwc_rate: float = 0.22
    risk_free_rate: float = 0.03
    beta: float = 1.3
    equity_risk_premium: float = 0.09
    cost_of_debt: float = 0.03
    terminal_growth_rate: float = 0.015
    market_cap: float = 4_430_000.0
    total_debt: float = 198_000.0
    cash_and_equivalents: float = 1_148_000.0
    additional_cash_like_assets: float = 0.0
    shares_outstanding: float = 1.0


@dataclass
class HistoricalRatios:
    years: List[int]
    revenue_growth_rates: List[float]
    operating_margins: List[float]
    net_margins: List[float]
    depreciation_rates: List[float]
    capex_rates: List[float]
    nwc_rates: List[float]
    interest_rates: List[float]
    gross_margins: List[float]
    rd_to_opex_rates: List[float]
    interest_income_rates: List[float]
    other_expense_rates: List[float]
    receivables_ratios: List[float]
    inventory_ratios: List[float]
    payables_ratios: List[float]
    avg_revenue_growth_rate: float = 0.0
    avg_operating_margin: float = 0.0
    avg_net_margin: float = 0.0
    avg_depreciation_rate: float = 0.0
    avg_capex_rate: float = 0.0
    avg_nwc_rate: float = 0.0
    avg_interest_rate: float = 0.0
    avg_gross_margin: float = 0.0
    avg_rd_to_opex_rate: float = 0.0
    avg_interest_income_rate: float = 0.0
    avg_other_expense_rate: float = 0.0
    avg_receivables_ratio: float = 0.0
    avg_inventory_ratio: float = 0.0
    avg_payables_ratio: float = 0.0


@dataclass
class FcffYear:
    """One year of the lightweight FCFF series used for valuation."""
    year: int
    revenue: float
    ebit: float
    nopat: float
    depreciation: float
    capex: float
    nwc_change: float
    fcff: float


@dataclass
class ProjectionYear:
    """One forecast year of the detailed three-statement model."""
    year: int
    # Income statement
    revenue: float = 0.0
    cogs: float = 0.0
    gross_profit: float = 0.0
    ebit: float = 0.0
    rd: float = 0.0
    sga: float = 0.0
    interest_income: float = 0.0
    interest_expense: float = 0.0
    other_expenses: float = 0.0
    ebt: float = 0.0
    taxes: float = 0.0
    net_income: float = 0.0
    depreciation: float = 0.0
    capex: float = 0.0
    # Balance sheet
    cash: float = 0.0
    receivables: float = 0.0
    inventory: float = 0.0
    other_current_assets: float = 0.0
    net_ppe: float = 0.0
    other_non_current_assets: float = 0.0
    total_assets: float = 0.0
    payables: float = 0.0
    other_current_liabilities: float = 0.0
    total_debt: float = 0.0
    other_non_current_liabilities: float = 0.0
    total_liabilities: float = 0.0
    capital_stock: float = 0.0
    retained_earnings: float = 0.0
    oci: float = 0.0
    equity: float = 0.0
    balance_check: float = 0.0
    # Cash flow statement
    change_in_operating_assets: float = 0.0
    change_in_operating_liabilities: float = 0.0
    change_in_other_non_current_assets: float = 0.0
    change_in_other_non_current_liabilities: float = 0.0
    cfo: float = 0.0
    cfi: float = 0.0
    change_in_debt: float = 0.0
    share_repurchases: float = 0.0
    dividends: float = 0.0
    cff: float = 0.0
    net_change_in_cash: float = 0.0
    cash_flow_gap: float = 0.0


@dataclass
class CostOfCapital:
    cost_of_equity: float
    after_tax_cost_of_debt: float
    equity_weight: float
    debt_weight: float
    wacc: float


@dataclass
class DiscountedCashFlow:
    year: int
    fcff: float
    discount_factor: float
    present_value: float


@dataclass
class ValuationResult:
    """
    DCF outcome. When `is_valid` is False every valuation-dependent field
    is None and `reason` names the failed precondition.
    """
    wacc: float
    terminal_growth_rate: float
    discounted_cash_flows: List[DiscountedCashFlow] = field(default_factory=list)
    sum_of_pv_fcff: Optional[float] = None
    last_fcff: Optional[float] = None
    terminal_value: Optional[float] = None
    pv_of_terminal_value: Optional[float] = None
    enterprise_value: Optional[float] = None
    net_debt: Optional[float] = None
    equity_value: Optional[float] = None
    intrinsic_value_per_share: Optional[float] = None
    is_valid: bool = True
    reason: Optional[str] = None


@dataclass
class SensitivityGrid:
    base_wacc: float
    base_terminal_growth_rate: float
    offsets: List[float]
    wacc_values: List[float]
    terminal_growth_values: List[float]
    values: List[List[Optional[float]]]

    def center(self) -> Optional[float]:
        mid = len(self.offsets) // 2
        return self.values[mid][mid]

    def to_frame(self) -> pd.DataFrame:
        """Intrinsic values, rows indexed by WACC and columns by terminal growth."""
        return pd.DataFrame(
            self.values,
            index=pd.Index(self.wacc_values, name="wacc"),
            columns=pd.Index(self.terminal_growth_values, name="terminal_growth_rate"),
        )


@dataclass
class CapitalStructureScenario:
    debt_ratio: float
    equity_ratio: float
    debt_to_equity: float
    levered_beta: float
    cost_of_debt: float
    after_tax_cost_of_debt: float
    cost_of_equity: float
    wacc: float
    enterprise_value: float
    is_optimal: bool = False


@dataclass
class CapitalStructureAnalysis:
    scenarios: List[CapitalStructureScenario]
    optimal_index: int
    unlevered_beta: float
    base_cost_of_debt: float

    @property
    def optimal(self) -> Optional[CapitalStructureScenario]:
        if self.optimal_index < 0:
            return None
        return self.scenarios[self.optimal_index]

    @property
    def max_enterprise_value_index(self) -> int:
        """Scenario with the highest finite EV; may differ from the min-WACC optimum."""
        best_index = -1
        best_value = -math.inf
        for idx, scenario in enumerate(self.scenarios):
            if math.isfinite(scenario.enterprise_value) and scenario.enterprise_value > best_value:
                best_value = scenario.enterprise_value
                best_index = idx
        return best_index


def clean_number(value: Any) -> Optional[float]:
    # Non-finite floats are not JSON compliant; they become null on the wire.
    if value is None:
        return None
    try:
        numeric = float(value)
    except Exception:
        return None
    if not math.isfinite(numeric):
        return None
    return numeric


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _clean(value: Any) -> Any:
    if isinstance(value, dict):
        return {_camel(str(k)) if isinstance(k, str) else k: _clean(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_clean(v) for v in value]
    if isinstance(value, bool) or isinstance(value, (str, int)) or value is None:
        return value
    if isinstance(value, float):
        return clean_number(value)
    return value


def to_payload(obj: Any) -> Any:
    """Convert a result dataclass (or list/dict of them) to a JSON-safe camelCase payload."""
    if obj is None:
        return None
    if is_dataclass(obj) and not isinstance(obj, type):
        return _clean(asdict(obj))
    return _clean(obj)
