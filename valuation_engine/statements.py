"""
Statement access layer.

Statement rows arrive as loosely shaped records: an account label whose
leading whitespace encodes hierarchy depth, plus one cell per fiscal year.
Rows are resolved once, when the StatementSet is built, into tagged rows
carrying an AccountKey, the trimmed label, the depth and the subtotal flag,
so lookups never re-parse labels.

Lookups never raise. A missing row, a missing year or a non-numeric cell
all read as 0.0.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

logger = logging.getLogger(__name__)


class StatementSetError(ValueError):
    """Raised when a statement payload lacks a required statement."""
    pass


class AccountKey(str, Enum):
    # Income statement
    REVENUE = "revenue"
    COST_OF_SALES = "cost_of_sales"
    GROSS_PROFIT = "gross_profit"
    SGA = "sga"
    RESEARCH_AND_DEVELOPMENT = "research_and_development"
    OPERATING_INCOME = "operating_income"
    INTEREST_INCOME = "interest_income"
    INTEREST_EXPENSE = "interest_expense"
    PRETAX_INCOME = "pretax_income"
    INCOME_TAX = "income_tax"
    NET_INCOME = "net_income"
    DEPRECIATION = "depreciation"
    LOSS_ON_DISPOSAL_OF_PPE = "loss_on_disposal_of_ppe"
    LOSS_ON_DISPOSAL_OF_LEASE_ASSETS = "loss_on_disposal_of_lease_assets"
    OTHER_NON_OPERATING_EXPENSES = "other_non_operating_expenses"
    OTHER_EXPENSES = "other_expenses"
    # Balance sheet
    CURRENT_ASSETS = "current_assets"
    CASH_AND_EQUIVALENTS = "cash_and_equivalents"
    SHORT_TERM_DEPOSITS = "short_term_deposits"
    TRADING_SECURITIES = "trading_securities"
    SHORT_TERM_LOANS = "short_term_loans"
    SHORT_TERM_FINANCIAL_INSTRUMENTS = "short_term_financial_instruments"
    SHORT_TERM_INVESTMENTS = "short_term_investments"
    ACCOUNTS_RECEIVABLE = "accounts_receivable"
    INVENTORY = "inventory"
    NON_CURRENT_ASSETS = "non_current_assets"
    NET_PPE = "net_ppe"
    INVESTMENT_ASSETS = "investment_assets"
    TOTAL_ASSETS = "total_assets"
    CURRENT_LIABILITIES = "current_liabilities"
    ACCOUNTS_PAYABLE = "accounts_payable"
    SHORT_TERM_BORROWINGS = "short_term_borrowings"
    NON_CURRENT_LIABILITIES = "non_current_liabilities"
    BONDS = "bonds"
    LONG_TERM_BORROWINGS = "long_term_borrowings"
    TOTAL_LIABILITIES = "total_liabilities"
    CAPITAL_STOCK = "capital_stock"
    RETAINED_EARNINGS = "retained_earnings"
    ACCUMULATED_OCI = "accumulated_oci"
    TOTAL_EQUITY = "total_equity"


# Alias order is lookup precedence. Korean labels follow K-IFRS filings as
# exported by DART; English labels cover translated exports.
ACCOUNT_ALIASES: Dict[AccountKey, Tuple[str, ...]] = {
    AccountKey.REVENUE: ("매출액", "Revenue", "Sales", "Total Revenue"),
    AccountKey.COST_OF_SALES: ("매출원가", "Cost of Sales", "Cost Of Revenue"),
    AccountKey.GROSS_PROFIT: ("매출총이익", "Gross Profit"),
    AccountKey.SGA: (
        "판매관리비",
        "판매비와관리비",
        "Selling General Administrative",
        "Selling, General and Administrative Expenses",
    ),
    AccountKey.RESEARCH_AND_DEVELOPMENT: ("연구개발비", "Research Development", "Research and Development"),
    AccountKey.OPERATING_INCOME: ("영업이익", "Operating Income", "EBIT"),
    AccountKey.INTEREST_INCOME: ("이자수익", "Interest Income"),
    AccountKey.INTEREST_EXPENSE: ("이자비용", "Interest Expense"),
    AccountKey.PRETAX_INCOME: ("세전이익", "법인세비용차감전순손익", "Income Before Tax", "Pretax Income"),
    AccountKey.INCOME_TAX: ("세금", "법인세비용", "Income Tax Expense"),
    AccountKey.NET_INCOME: ("당기순이익", "Net Income"),
    AccountKey.DEPRECIATION: ("감가상각비", "Depreciation", "Depreciation And Amortization"),
    AccountKey.LOSS_ON_DISPOSAL_OF_PPE: ("유형자산처분손실", "Loss on Disposal of PP&E"),
    AccountKey.LOSS_ON_DISPOSAL_OF_LEASE_ASSETS: ("리스자산처분손실", "Loss on Disposal of Lease Assets"),
    AccountKey.OTHER_NON_OPERATING_EXPENSES: ("기타영업외비용", "Other Non-Operating Expenses"),
    AccountKey.OTHER_EXPENSES: ("기타비용", "Other Expenses"),
    AccountKey.CURRENT_ASSETS: ("유동자산", "Total Current Assets", "Current Assets"),
    AccountKey.CASH_AND_EQUIVALENTS: ("현금및현금성자산", "Cash And Cash Equivalents", "Cash"),
    AccountKey.SHORT_TERM_DEPOSITS: ("단기예금", "Short Term Deposits"),
    AccountKey.TRADING_SECURITIES: ("단기매매증권", "Trading Securities"),
    AccountKey.SHORT_TERM_LOANS: ("단기대여금", "Short Term Loans Receivable"),
    AccountKey.SHORT_TERM_FINANCIAL_INSTRUMENTS: ("단기금융상품", "Short Term Financial Instruments"),
    AccountKey.SHORT_TERM_INVESTMENTS: ("단기투자자산", "Short Term Investments"),
    AccountKey.ACCOUNTS_RECEIVABLE: ("매출채권", "Accounts Receivable", "Receivables"),
    AccountKey.INVENTORY: ("재고자산", "Inventory", "Inventories"),
    AccountKey.NON_CURRENT_ASSETS: ("비유동자산", "Total Non Current Assets", "Non Current Assets"),
    AccountKey.NET_PPE: ("유형자산", "Property Plant Equipment", "Property Plant Equipment Net"),
    AccountKey.INVESTMENT_ASSETS: ("투자자산", "Long Term Investments", "Investment Assets"),
    AccountKey.TOTAL_ASSETS: ("자산", "자산총계", "Total Assets"),
    AccountKey.CURRENT_LIABILITIES: ("유동부채", "Total Current Liabilities", "Current Liabilities"),
    AccountKey.ACCOUNTS_PAYABLE: ("매입채무", "Accounts Payable"),
    AccountKey.SHORT_TERM_BORROWINGS: ("단기차입금", "Short Term Borrowings", "Short Long Term Debt"),
    AccountKey.NON_CURRENT_LIABILITIES: (
        "비유동부채",
        "Total Non Current Liabilities",
        "Non Current Liabilities",
    ),
    AccountKey.BONDS: ("사채", "Bonds Payable", "Bonds"),
    AccountKey.LONG_TERM_BORROWINGS: ("장기차입금", "Long Term Borrowings", "Long Term Debt"),
    AccountKey.TOTAL_LIABILITIES: ("부채", "부채총계", "Total Liabilities"),
    AccountKey.CAPITAL_STOCK: ("자본금", "Capital Stock", "Common Stock"),
    AccountKey.RETAINED_EARNINGS: ("이익잉여금", "Retained Earnings"),
    AccountKey.ACCUMULATED_OCI: (
        "기타포괄손익누계액",
        "Accumulated Other Comprehensive Income",
    ),
    AccountKey.TOTAL_EQUITY: ("자본", "자본총계", "Total Equity", "Stockholders Equity"),
}

_KEY_BY_ALIAS: Dict[str, AccountKey] = {
    alias: key for key, aliases in ACCOUNT_ALIASES.items() for alias in aliases
}

CURRENT_CASH_ACCOUNTS: Tuple[AccountKey, ...] = (
    AccountKey.CASH_AND_EQUIVALENTS,
    AccountKey.SHORT_TERM_DEPOSITS,
    AccountKey.TRADING_SECURITIES,
    AccountKey.SHORT_TERM_LOANS,
    AccountKey.SHORT_TERM_FINANCIAL_INSTRUMENTS,
    AccountKey.SHORT_TERM_INVESTMENTS,
)
NON_CURRENT_INVESTMENT_ACCOUNTS: Tuple[AccountKey, ...] = (AccountKey.INVESTMENT_ASSETS,)
INTEREST_BEARING_DEBT_ACCOUNTS: Tuple[AccountKey, ...] = (
    AccountKey.SHORT_TERM_BORROWINGS,
    AccountKey.BONDS,
    AccountKey.LONG_TERM_BORROWINGS,
)
OTHER_EXPENSE_ACCOUNTS: Tuple[AccountKey, ...] = (
    AccountKey.LOSS_ON_DISPOSAL_OF_PPE,
    AccountKey.LOSS_ON_DISPOSAL_OF_LEASE_ASSETS,
    AccountKey.OTHER_NON_OPERATING_EXPENSES,
    AccountKey.OTHER_EXPENSES,
)

ACCOUNT_LABEL_FIELDS = ("계정과목", "account", "label")
SUBTOTAL_FLAG_FIELDS = ("isSubtotal", "is_subtotal", "isHeader")
COGM_PAYLOAD_KEYS = ("costOfGoodsManufactured", "제조원가명세서", "statementOfCostOfGoodsManufactured")

_YEAR_RE = re.compile(r"^\s*(\d+)")

Year = int
AccountRef = Union[str, AccountKey, Sequence[Union[str, AccountKey]]]


def to_year(label: Any) -> Optional[int]:
    """Parse the leading integer of a column label ("2023", "2023-12-31")."""
    if isinstance(label, bool):
        return None
    if isinstance(label, int):
        return label
    if isinstance(label, float):
        return int(label) if math.isfinite(label) else None
    if hasattr(label, "year"):
        try:
            return int(label.year)
        except Exception:
            return None
    match = _YEAR_RE.match(str(label))
    if match:
        return int(match.group(1))
    return None


def to_number(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(numeric):
        return 0.0
    return numeric


def _expand_aliases(account: AccountRef) -> List[str]:
    items: Iterable[Union[str, AccountKey]]
    if isinstance(account, (str, AccountKey)):
        items = [account]
    else:
        items = account
    aliases: List[str] = []
    for item in items:
        if isinstance(item, AccountKey):
            aliases.extend(ACCOUNT_ALIASES[item])
        else:
            aliases.append(str(item).strip())
    return aliases


@dataclass(frozen=True)
class StatementRow:
    label: str
    values: Mapping[Year, float]
    is_subtotal: bool = False
    depth: int = 0
    account_key: Optional[AccountKey] = None

    def value(self, year: Any) -> float:
        parsed = to_year(year)
        if parsed is None:
            return 0.0
        return self.values.get(parsed, 0.0)


def resolve_row(raw_label: Any, cells: Mapping[Any, Any], is_subtotal: bool = False) -> StatementRow:
    text = "" if raw_label is None else str(raw_label)
    label = text.strip()
    depth = len(text) - len(text.lstrip())
    values: Dict[Year, float] = {}
    for key, cell in cells.items():
        year = to_year(key)
        if year is None or year in values:
            continue
        values[year] = to_number(cell)
    return StatementRow(
        label=label,
        values=values,
        is_subtotal=bool(is_subtotal),
        depth=depth,
        account_key=_KEY_BY_ALIAS.get(label),
    )


@dataclass(frozen=True)
class Statement:
    name: str
    rows: Tuple[StatementRow, ...] = ()
    _index: Dict[str, StatementRow] = field(init=False, default_factory=dict, repr=False, compare=False)

    def __post_init__(self) -> None:
        index: Dict[str, StatementRow] = {}
        for row in self.rows:
            if row.label and row.label not in index:
                index[row.label] = row
        object.__setattr__(self, "_index", index)

    @classmethod
    def from_records(cls, name: str, records: Optional[Iterable[Mapping[str, Any]]]) -> "Statement":
        rows: List[StatementRow] = []
        for record in records or []:
            if not isinstance(record, Mapping):
                continue
            label = next((record[f] for f in ACCOUNT_LABEL_FIELDS if f in record), None)
            if label is None:
                continue
            subtotal = next((record[f] for f in SUBTOTAL_FLAG_FIELDS if f in record), False)
            rows.append(resolve_row(label, record, is_subtotal=subtotal))
        return cls(name=name, rows=tuple(rows))

    @classmethod
    def from_frame(cls, name: str, frame: Optional[pd.DataFrame]) -> "Statement":
        """Build from a frame indexed by account label with one column per period."""
        if frame is None or frame.empty:
            return cls(name=name)
        rows: List[StatementRow] = []
        for label, series in frame.iterrows():
            cells = {column: value for column, value in series.items() if not pd.isna(value)}
            rows.append(resolve_row(label, cells))
        return cls(name=name, rows=tuple(rows))

    def find(self, account: AccountRef) -> Optional[StatementRow]:
        for alias in _expand_aliases(account):
            row = self._index.get(alias)
            if row is not None:
                return row
        return None

    def years(self) -> List[Year]:
        found = {year for row in self.rows for year in row.values}
        return sorted(found)


def get_latest_value(statement: Optional[Statement], account: AccountRef, year: Any) -> float:
    if statement is None:
        return 0.0
    row = statement.find(account)
    if row is None:
        return 0.0
    return row.value(year)


def get_values_for_years(statement: Optional[Statement], account: AccountRef, years: Sequence[Any]) -> List[float]:
    row = statement.find(account) if statement is not None else None
    if row is None:
        return [0.0 for _ in years]
    return [row.value(year) for year in years]


def get_sum_of_values_for_years(
    statement: Optional[Statement],
    accounts: Sequence[Union[str, AccountKey]],
    years: Sequence[Any],
) -> List[float]:
    """Sum the first matching row of each account, year by year."""
    totals = [0.0 for _ in years]
    if statement is None:
        return totals
    for account in accounts:
        row = statement.find(account)
        if row is None:
            continue
        for idx, year in enumerate(years):
            totals[idx] += row.value(year)
    return totals


@dataclass(frozen=True)
class StatementSet:
    income_statement: Statement
    balance_sheet: Statement
    cost_of_goods_manufactured: Optional[Statement] = None
    company_name: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "StatementSet":
        if not isinstance(payload, Mapping):
            raise StatementSetError("Statement payload must be an object")
        income = payload.get("incomeStatement")
        balance = payload.get("balanceSheet")
        if not isinstance(income, list) or not isinstance(balance, list):
            raise StatementSetError("Statement payload requires 'incomeStatement' and 'balanceSheet' arrays")
        cogm_records = next((payload[k] for k in COGM_PAYLOAD_KEYS if payload.get(k)), None)
        profile = payload.get("companyProfile") or {}
        company_name = None
        if isinstance(profile, Mapping):
            company_name = profile.get("기업명") or profile.get("companyName") or profile.get("name")
        return cls(
            income_statement=Statement.from_records("incomeStatement", income),
            balance_sheet=Statement.from_records("balanceSheet", balance),
            cost_of_goods_manufactured=(
                Statement.from_records("costOfGoodsManufactured", cogm_records)
                if isinstance(cogm_records, list)
                else None
            ),
            company_name=company_name,
        )

    @classmethod
    def from_frames(
        cls,
        income_statement: Optional[pd.DataFrame],
        balance_sheet: Optional[pd.DataFrame],
        cost_of_goods_manufactured: Optional[pd.DataFrame] = None,
        company_name: Optional[str] = None,
    ) -> "StatementSet":
        return cls(
            income_statement=Statement.from_frame("incomeStatement", income_statement),
            balance_sheet=Statement.from_frame("balanceSheet", balance_sheet),
            cost_of_goods_manufactured=(
                Statement.from_frame("costOfGoodsManufactured", cost_of_goods_manufactured)
                if cost_of_goods_manufactured is not None
                else None
            ),
            company_name=company_name,
        )

    def trailing_years(self, count: int = 3) -> List[Year]:
        years = self.income_statement.years()
        if not years:
            logger.warning("Income statement carries no fiscal-year columns")
            return []
        return years[-count:]
