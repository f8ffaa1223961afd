import logging
import math
from dataclasses import asdict
from typing import List, Optional, Sequence, Union

import pandas as pd

from .config import HISTORY_YEARS, PROJECTION_YEARS
from .models import Assumptions, FcffYear, HistoricalRatios, ProjectionYear
from .statements import (
    CURRENT_CASH_ACCOUNTS,
    NON_CURRENT_INVESTMENT_ACCOUNTS,
    AccountKey,
    StatementSet,
    get_latest_value,
    get_sum_of_values_for_years,
)


logger = logging.getLogger(__name__)

BALANCE_TOLERANCE = 1e-6


def _year_label(base_year: Optional[int], offset: int) -> int:
    return base_year + offset if isinstance(base_year, int) else offset


def _opening_balances(
    statements: StatementSet,
    assumptions: Assumptions,
    ratios: HistoricalRatios,
    latest_year: int,
) -> ProjectionYear:
    """Year-zero balances: statement values for the latest year, revenue/cash/debt from assumptions."""
    balance = statements.balance_sheet

    def latest(key: AccountKey) -> float:
        return get_latest_value(balance, key, latest_year)

    current_cash = get_sum_of_values_for_years(balance, CURRENT_CASH_ACCOUNTS, [latest_year])[0]
    investments = get_sum_of_values_for_years(balance, NON_CURRENT_INVESTMENT_ACCOUNTS, [latest_year])[0]
    net_ppe = latest(AccountKey.NET_PPE)
    base_revenue = assumptions.base_revenue

    opening = ProjectionYear(
        year=latest_year,
        revenue=base_revenue,
        cash=assumptions.cash_and_equivalents,
        receivables=base_revenue * ratios.avg_receivables_ratio,
        inventory=base_revenue * ratios.avg_inventory_ratio,
        other_current_assets=(
            latest(AccountKey.CURRENT_ASSETS)
            - current_cash
            - latest(AccountKey.ACCOUNTS_RECEIVABLE)
            - latest(AccountKey.INVENTORY)
        ),
        net_ppe=net_ppe,
        other_non_current_assets=latest(AccountKey.NON_CURRENT_ASSETS) - net_ppe - investments,
        payables=base_revenue * ratios.avg_payables_ratio,
        other_current_liabilities=(
            latest(AccountKey.CURRENT_LIABILITIES)
            - latest(AccountKey.ACCOUNTS_PAYABLE)
            - latest(AccountKey.SHORT_TERM_BORROWINGS)
        ),
        total_debt=assumptions.total_debt,
        other_non_current_liabilities=(
            latest(AccountKey.NON_CURRENT_LIABILITIES)
            - latest(AccountKey.BONDS)
            - latest(AccountKey.LONG_TERM_BORROWINGS)
        ),
        capital_stock=latest(AccountKey.CAPITAL_STOCK),
        retained_earnings=latest(AccountKey.RETAINED_EARNINGS),
        oci=latest(AccountKey.ACCUMULATED_OCI),
    )
    opening.equity = opening.capital_stock + opening.retained_earnings + opening.oci
    return opening


def project_three_statement(
    statements: Optional[StatementSet],
    assumptions: Assumptions,
    ratios: Optional[HistoricalRatios],
    years: int = PROJECTION_YEARS,
) -> Optional[List[ProjectionYear]]:
    """
    Detailed income statement / balance sheet / cash flow forecast.

    Cash is the balancing plug, so `balance_check` is zero up to rounding.
    The cash-flow statement is derived from the balance-sheet deltas and is
    not forced to agree with the plug; `cash_flow_gap` records the
    difference.
    """
    if statements is None or ratios is None:
        return None
    trailing = statements.trailing_years(HISTORY_YEARS)
    if not trailing:
        logger.warning("Three-statement projection skipped: no fiscal years on the income statement")
        return None

    growth = assumptions.growth_rate
    tax_rate = assumptions.tax_rate
    previous = _opening_balances(statements, assumptions, ratios, trailing[-1])
    results: List[ProjectionYear] = []

    for _ in range(years):
        row = ProjectionYear(year=_year_label(previous.year, 1))

        row.revenue = previous.revenue * (1.0 + growth)
        row.gross_profit = row.revenue * ratios.avg_gross_margin
        row.cogs = row.revenue - row.gross_profit
        row.ebit = row.revenue * assumptions.ebit_margin
        operating_expenses = row.gross_profit - row.ebit
        row.rd = operating_expenses * ratios.avg_rd_to_opex_rate
        row.sga = operating_expenses * (1.0 - ratios.avg_rd_to_opex_rate)
        row.interest_income = row.revenue * ratios.avg_interest_income_rate
        row.interest_expense = previous.total_debt * assumptions.cost_of_debt
        row.other_expenses = row.revenue * ratios.avg_other_expense_rate
        row.ebt = row.ebit + row.interest_income - row.interest_expense - row.other_expenses
        row.taxes = max(0.0, row.ebt * tax_rate)
        row.net_income = row.ebt - row.taxes

        row.depreciation = row.revenue * assumptions.depreciation_rate
        row.capex = row.revenue * assumptions.capex_rate

        row.receivables = row.revenue * ratios.avg_receivables_ratio
        row.inventory = row.revenue * ratios.avg_inventory_ratio
        row.other_current_assets = previous.other_current_assets * (1.0 + growth)
        row.net_ppe = previous.net_ppe + row.capex - row.depreciation
        row.other_non_current_assets = previous.other_non_current_assets * (1.0 + growth)

        row.payables = row.revenue * ratios.avg_payables_ratio
        row.other_current_liabilities = previous.other_current_liabilities * (1.0 + growth)
        # No amortisation: debt stays at the assumed level.
        row.total_debt = assumptions.total_debt
        row.other_non_current_liabilities = previous.other_non_current_liabilities * (1.0 + growth)

        row.capital_stock = previous.capital_stock
        row.oci = previous.oci
        row.retained_earnings = previous.retained_earnings + row.net_income
        row.equity = row.capital_stock + row.retained_earnings + row.oci

        assets_ex_cash = (
            row.receivables + row.inventory + row.other_current_assets + row.net_ppe + row.other_non_current_assets
        )
        row.total_liabilities = (
            row.payables + row.other_current_liabilities + row.total_debt + row.other_non_current_liabilities
        )
        row.cash = row.total_liabilities + row.equity - assets_ex_cash
        row.total_assets = assets_ex_cash + row.cash
        row.balance_check = row.total_assets - (row.total_liabilities + row.equity)

        row.change_in_operating_assets = (row.receivables + row.inventory) - (previous.receivables + previous.inventory)
        row.change_in_operating_liabilities = row.payables - previous.payables
        row.change_in_other_non_current_assets = row.other_non_current_assets - previous.other_non_current_assets
        row.change_in_other_non_current_liabilities = (
            row.other_non_current_liabilities - previous.other_non_current_liabilities
        )
        row.cfo = (
            row.net_income
            + row.depreciation
            - row.change_in_operating_assets
            + row.change_in_operating_liabilities
            - row.change_in_other_non_current_assets
            + row.change_in_other_non_current_liabilities
        )
        row.cfi = -row.capex
        row.change_in_debt = row.total_debt - previous.total_debt
        row.share_repurchases = 0.0
        row.dividends = 0.0
        row.cff = row.change_in_debt - row.share_repurchases - row.dividends
        row.net_change_in_cash = row.cfo + row.cfi + row.cff
        row.cash_flow_gap = row.net_change_in_cash - (row.cash - previous.cash)

        if abs(row.balance_check) > BALANCE_TOLERANCE:
            logger.debug("Balance check off by %s in %s", row.balance_check, row.year)
        if abs(row.cash_flow_gap) > BALANCE_TOLERANCE:
            logger.debug("Cash flow statement differs from cash plug by %s in %s", row.cash_flow_gap, row.year)

        results.append(row)
        previous = row

    return results


def project_fcff(
    assumptions: Assumptions,
    years: int = PROJECTION_YEARS,
    base_year: Optional[int] = None,
) -> List[FcffYear]:
    """Lightweight FCFF series driven only by the assumptions."""
    base_revenue = assumptions.base_revenue
    growth = assumptions.growth_rate
    previous_revenue = base_revenue
    series: List[FcffYear] = []

    for t in range(1, years + 1):
        revenue = base_revenue * math.pow(1.0 + growth, t)
        ebit = revenue * assumptions.ebit_margin
        nopat = ebit * (1.0 - assumptions.tax_rate)
        depreciation = revenue * assumptions.depreciation_rate
        capex = revenue * assumptions.capex_rate
        nwc_change = (revenue - previous_revenue) * assumptions.nwc_rate
        series.append(
            FcffYear(
                year=_year_label(base_year, t),
                revenue=revenue,
                ebit=ebit,
                nopat=nopat,
                depreciation=depreciation,
                capex=capex,
                nwc_change=nwc_change,
                fcff=nopat + depreciation - capex - nwc_change,
            )
        )
        previous_revenue = revenue

    return series


def projections_to_frame(rows: Optional[Sequence[Union[ProjectionYear, FcffYear]]]) -> pd.DataFrame:
    """One row per line item, one column per forecast year."""
    if not rows:
        return pd.DataFrame()
    frame = pd.DataFrame([asdict(row) for row in rows]).set_index("year")
    return frame.T
