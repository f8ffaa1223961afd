"""
Trailing historical ratios.

Ratios cover the trailing fiscal years (three by default) plus one anchor
year before them for growth and PP&E deltas. Every division guards a zero
or negative denominator by substituting 0.0.
"""

import logging
import math
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from .config import HISTORY_YEARS
from .models import Assumptions, HistoricalRatios
from .statements import (
    CURRENT_CASH_ACCOUNTS,
    INTEREST_BEARING_DEBT_ACCOUNTS,
    NON_CURRENT_INVESTMENT_ACCOUNTS,
    OTHER_EXPENSE_ACCOUNTS,
    AccountKey,
    StatementSet,
    get_latest_value,
    get_sum_of_values_for_years,
    get_values_for_years,
)

logger = logging.getLogger(__name__)

# Fallbacks used when a seeded ratio average is not positive.
DEFAULT_GROWTH_RATE = 0.10
DEFAULT_EBIT_MARGIN = 0.15
DEFAULT_DEPRECIATION_RATE = 0.13
DEFAULT_CAPEX_RATE = 0.15
DEFAULT_NWC_RATE = 0.22
DEFAULT_COST_OF_DEBT = 0.045


def safe_divide(numerator: float, denominator: float) -> float:
    if denominator is None or not math.isfinite(denominator) or denominator <= 0:
        return 0.0
    result = numerator / denominator
    return result if math.isfinite(result) else 0.0


def finite_mean(values: Sequence[float]) -> float:
    usable = [v for v in values if v is not None and math.isfinite(v)]
    if not usable:
        return 0.0
    return sum(usable) / len(usable)


def _rates(values: Sequence[float], bases: Sequence[float]) -> List[float]:
    return [safe_divide(v, b) for v, b in zip(values, bases)]


def total_depreciation(statements: StatementSet, years: Sequence[int]) -> List[float]:
    """Income-statement depreciation plus manufacturing-cost depreciation."""
    from_income = get_values_for_years(statements.income_statement, AccountKey.DEPRECIATION, years)
    from_cogm = get_values_for_years(statements.cost_of_goods_manufactured, AccountKey.DEPRECIATION, years)
    return [a + b for a, b in zip(from_income, from_cogm)]


def extract_historical_ratios(
    statements: Optional[StatementSet],
    years: Optional[Sequence[int]] = None,
) -> Optional[HistoricalRatios]:
    if statements is None:
        return None
    if years is None:
        years = statements.trailing_years(HISTORY_YEARS)
    years = list(years)
    if not years:
        return None

    income = statements.income_statement
    balance = statements.balance_sheet
    all_years = [years[0] - 1] + years

    all_revenues = get_values_for_years(income, AccountKey.REVENUE, all_years)
    revenues = all_revenues[1:]
    operating_incomes = get_values_for_years(income, AccountKey.OPERATING_INCOME, years)
    net_incomes = get_values_for_years(income, AccountKey.NET_INCOME, years)
    depreciations = total_depreciation(statements, years)

    all_ppe = get_values_for_years(balance, AccountKey.NET_PPE, all_years)
    capexes = [all_ppe[i + 1] - all_ppe[i] + depreciations[i] for i in range(len(years))]

    receivables = get_values_for_years(balance, AccountKey.ACCOUNTS_RECEIVABLE, years)
    inventories = get_values_for_years(balance, AccountKey.INVENTORY, years)
    payables = get_values_for_years(balance, AccountKey.ACCOUNTS_PAYABLE, years)
    nwcs = [r + inv - p for r, inv, p in zip(receivables, inventories, payables)]

    growth_rates = [
        safe_divide(all_revenues[i + 1] - all_revenues[i], all_revenues[i]) for i in range(len(years))
    ]

    interest_expenses = get_values_for_years(income, AccountKey.INTEREST_EXPENSE, years)
    debts = get_sum_of_values_for_years(balance, INTEREST_BEARING_DEBT_ACCOUNTS, years)
    interest_rates = _rates(interest_expenses, debts)

    gross_profits = get_values_for_years(income, AccountKey.GROSS_PROFIT, years)
    rd_values = get_values_for_years(income, AccountKey.RESEARCH_AND_DEVELOPMENT, years)
    sga_values = get_values_for_years(income, AccountKey.SGA, years)
    opex_values = [rd + sga for rd, sga in zip(rd_values, sga_values)]
    interest_incomes = get_values_for_years(income, AccountKey.INTEREST_INCOME, years)
    other_expenses = get_sum_of_values_for_years(income, OTHER_EXPENSE_ACCOUNTS, years)

    ratios = HistoricalRatios(
        years=years,
        revenue_growth_rates=growth_rates,
        operating_margins=_rates(operating_incomes, revenues),
        net_margins=_rates(net_incomes, revenues),
        depreciation_rates=_rates(depreciations, revenues),
        capex_rates=_rates(capexes, revenues),
        nwc_rates=_rates(nwcs, revenues),
        interest_rates=interest_rates,
        gross_margins=_rates(gross_profits, revenues),
        rd_to_opex_rates=_rates(rd_values, opex_values),
        interest_income_rates=_rates(interest_incomes, revenues),
        other_expense_rates=_rates(other_expenses, revenues),
        receivables_ratios=_rates(receivables, revenues),
        inventory_ratios=_rates(inventories, revenues),
        payables_ratios=_rates(payables, revenues),
    )
    ratios.avg_revenue_growth_rate = finite_mean(ratios.revenue_growth_rates)
    ratios.avg_operating_margin = finite_mean(ratios.operating_margins)
    ratios.avg_net_margin = finite_mean(ratios.net_margins)
    ratios.avg_depreciation_rate = finite_mean(ratios.depreciation_rates)
    ratios.avg_capex_rate = finite_mean(ratios.capex_rates)
    ratios.avg_nwc_rate = finite_mean(ratios.nwc_rates)
    ratios.avg_interest_rate = finite_mean(ratios.interest_rates)
    ratios.avg_gross_margin = finite_mean(ratios.gross_margins)
    ratios.avg_rd_to_opex_rate = finite_mean(ratios.rd_to_opex_rates)
    ratios.avg_interest_income_rate = finite_mean(ratios.interest_income_rates)
    ratios.avg_other_expense_rate = finite_mean(ratios.other_expense_rates)
    ratios.avg_receivables_ratio = finite_mean(ratios.receivables_ratios)
    ratios.avg_inventory_ratio = finite_mean(ratios.inventory_ratios)
    ratios.avg_payables_ratio = finite_mean(ratios.payables_ratios)
    return ratios


_BALANCE_KEYS = frozenset(
    {
        AccountKey.CURRENT_ASSETS,
        AccountKey.ACCOUNTS_RECEIVABLE,
        AccountKey.INVENTORY,
        AccountKey.NET_PPE,
        AccountKey.NON_CURRENT_ASSETS,
        AccountKey.TOTAL_ASSETS,
        AccountKey.ACCOUNTS_PAYABLE,
        AccountKey.SHORT_TERM_BORROWINGS,
        AccountKey.CURRENT_LIABILITIES,
        AccountKey.NON_CURRENT_LIABILITIES,
        AccountKey.TOTAL_LIABILITIES,
        AccountKey.CAPITAL_STOCK,
        AccountKey.RETAINED_EARNINGS,
        AccountKey.ACCUMULATED_OCI,
        AccountKey.TOTAL_EQUITY,
    }
)


def summarize_history(
    statements: Optional[StatementSet],
    years: Optional[Sequence[int]] = None,
) -> Dict[str, list]:
    """
    Condensed historical income statement and balance sheet, one list per
    line item aligned with `years`. "Other" lines are residuals of their
    section totals, so the buckets add back to the reported totals.
    """
    if statements is None:
        return {}
    if years is None:
        years = statements.trailing_years(HISTORY_YEARS)
    years = list(years)
    if not years:
        return {}

    income = statements.income_statement
    balance = statements.balance_sheet

    def values(key: AccountKey) -> List[float]:
        return get_values_for_years(balance if key in _BALANCE_KEYS else income, key, years)

    operating_income = values(AccountKey.OPERATING_INCOME)
    depreciation_income = get_values_for_years(income, AccountKey.DEPRECIATION, years)
    depreciation_cogm = get_values_for_years(statements.cost_of_goods_manufactured, AccountKey.DEPRECIATION, years)
    depreciation = [a + b for a, b in zip(depreciation_income, depreciation_cogm)]

    cash = get_sum_of_values_for_years(balance, CURRENT_CASH_ACCOUNTS, years)
    receivables = values(AccountKey.ACCOUNTS_RECEIVABLE)
    inventory = values(AccountKey.INVENTORY)
    current_assets = values(AccountKey.CURRENT_ASSETS)
    net_ppe = values(AccountKey.NET_PPE)
    investments = get_sum_of_values_for_years(balance, NON_CURRENT_INVESTMENT_ACCOUNTS, years)
    non_current_assets = values(AccountKey.NON_CURRENT_ASSETS)
    payables = values(AccountKey.ACCOUNTS_PAYABLE)
    short_term_debt = values(AccountKey.SHORT_TERM_BORROWINGS)
    current_liabilities = values(AccountKey.CURRENT_LIABILITIES)
    long_term_debt = get_sum_of_values_for_years(
        balance, [AccountKey.BONDS, AccountKey.LONG_TERM_BORROWINGS], years
    )
    non_current_liabilities = values(AccountKey.NON_CURRENT_LIABILITIES)
    total_assets = values(AccountKey.TOTAL_ASSETS)
    total_liabilities = values(AccountKey.TOTAL_LIABILITIES)
    total_equity = values(AccountKey.TOTAL_EQUITY)

    return {
        "years": years,
        "revenue": values(AccountKey.REVENUE),
        "cost_of_sales": values(AccountKey.COST_OF_SALES),
        "gross_profit": values(AccountKey.GROSS_PROFIT),
        "sga": values(AccountKey.SGA),
        "research_and_development": values(AccountKey.RESEARCH_AND_DEVELOPMENT),
        "operating_income": operating_income,
        "interest_income": values(AccountKey.INTEREST_INCOME),
        "interest_expense": values(AccountKey.INTEREST_EXPENSE),
        "other_expenses": get_sum_of_values_for_years(income, OTHER_EXPENSE_ACCOUNTS, years),
        "pretax_income": values(AccountKey.PRETAX_INCOME),
        "income_tax": values(AccountKey.INCOME_TAX),
        "net_income": values(AccountKey.NET_INCOME),
        "depreciation_income_statement": depreciation_income,
        "depreciation_manufacturing": depreciation_cogm,
        "depreciation": depreciation,
        "ebitda": [oi + d for oi, d in zip(operating_income, depreciation)],
        "cash_and_equivalents": cash,
        "receivables": receivables,
        "inventory": inventory,
        "other_current_assets": [
            ca - c - r - i for ca, c, r, i in zip(current_assets, cash, receivables, inventory)
        ],
        "net_ppe": net_ppe,
        "non_current_investments": investments,
        "other_non_current_assets": [nca - p - inv for nca, p, inv in zip(non_current_assets, net_ppe, investments)],
        "total_assets": total_assets,
        "payables": payables,
        "short_term_borrowings": short_term_debt,
        "other_current_liabilities": [
            cl - p - std for cl, p, std in zip(current_liabilities, payables, short_term_debt)
        ],
        "long_term_debt": long_term_debt,
        "other_non_current_liabilities": [ncl - ltd for ncl, ltd in zip(non_current_liabilities, long_term_debt)],
        "total_liabilities": total_liabilities,
        "capital_stock": values(AccountKey.CAPITAL_STOCK),
        "retained_earnings": values(AccountKey.RETAINED_EARNINGS),
        "oci": values(AccountKey.ACCUMULATED_OCI),
        "total_equity": total_equity,
        "balance_check": [a - (l + e) for a, l, e in zip(total_assets, total_liabilities, total_equity)],
    }


def _positive_or(value: float, fallback: float) -> float:
    return value if value > 0 else fallback


def seed_assumptions(
    statements: StatementSet,
    base: Optional[Assumptions] = None,
    ratios: Optional[HistoricalRatios] = None,
) -> Assumptions:
    """
    Prefill assumptions from the latest trailing year and the ratio averages.
    Book equity stands in for market capitalisation. Ratio averages that are
    not positive fall back to fixed defaults.
    """
    base = base or Assumptions()
    years = statements.trailing_years(HISTORY_YEARS)
    if not years:
        logger.warning("No fiscal years found; keeping default assumptions")
        return base
    latest = years[-1]
    balance = statements.balance_sheet

    updates = {
        "base_revenue": get_latest_value(statements.income_statement, AccountKey.REVENUE, latest),
        "market_cap": get_latest_value(balance, AccountKey.TOTAL_EQUITY, latest),
        "total_debt": get_sum_of_values_for_years(balance, INTEREST_BEARING_DEBT_ACCOUNTS, [latest])[0],
        "cash_and_equivalents": get_sum_of_values_for_years(balance, CURRENT_CASH_ACCOUNTS, [latest])[0],
    }

    if ratios is None:
        ratios = extract_historical_ratios(statements, years)
    if ratios is not None:
        updates.update(
            growth_rate=_positive_or(ratios.avg_revenue_growth_rate, DEFAULT_GROWTH_RATE),
            ebit_margin=_positive_or(ratios.avg_operating_margin, DEFAULT_EBIT_MARGIN),
            depreciation_rate=_positive_or(ratios.avg_depreciation_rate, DEFAULT_DEPRECIATION_RATE),
            capex_rate=_positive_or(ratios.avg_capex_rate, DEFAULT_CAPEX_RATE),
            nwc_rate=_positive_or(ratios.avg_nwc_rate, DEFAULT_NWC_RATE),
            cost_of_debt=_positive_or(ratios.avg_interest_rate, DEFAULT_COST_OF_DEBT),
        )
    return replace(base, **updates)
