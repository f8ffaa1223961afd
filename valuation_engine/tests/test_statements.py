import unittest

import pandas as pd

from valuation_engine.statements import (
    CURRENT_CASH_ACCOUNTS,
    AccountKey,
    Statement,
    StatementSet,
    StatementSetError,
    get_latest_value,
    get_sum_of_values_for_years,
    get_values_for_years,
    resolve_row,
    to_year,
)
from valuation_engine.tests.statement_fixtures import REVENUE, statement_payload


class StatementAccessTests(unittest.TestCase):
    def setUp(self):
        self.statements = StatementSet.from_dict(statement_payload())

    def test_rows_resolve_to_account_keys_at_load(self):
        row = self.statements.balance_sheet.find("매출채권")
        self.assertIsNotNone(row)
        self.assertEqual(row.label, "매출채권")
        self.assertEqual(row.depth, 2)
        self.assertEqual(row.account_key, AccountKey.ACCOUNTS_RECEIVABLE)
        self.assertFalse(row.is_subtotal)

        revenue = self.statements.income_statement.find(AccountKey.REVENUE)
        self.assertTrue(revenue.is_subtotal)
        self.assertEqual(revenue.depth, 0)

    def test_latest_value_by_label_or_key(self):
        self.assertEqual(get_latest_value(self.statements.income_statement, "매출액", 2023), 1331.0)
        self.assertEqual(get_latest_value(self.statements.income_statement, AccountKey.REVENUE, "2022"), 1210.0)
        self.assertEqual(
            get_latest_value(self.statements.income_statement, ["Revenue", "매출액"], "2021-12-31"),
            1100.0,
        )

    def test_unknown_account_or_year_reads_zero(self):
        income = self.statements.income_statement
        self.assertEqual(get_latest_value(income, "영업외수익", 2023), 0.0)
        self.assertEqual(get_latest_value(income, "매출액", 1999), 0.0)
        self.assertEqual(get_latest_value(income, "매출액", "not-a-year"), 0.0)
        self.assertEqual(get_latest_value(None, "매출액", 2023), 0.0)
        self.assertEqual(get_values_for_years(income, "없는계정", [2021, 2022]), [0.0, 0.0])
        self.assertEqual(get_sum_of_values_for_years(None, CURRENT_CASH_ACCOUNTS, [2023]), [0.0])

    def test_non_numeric_cells_coerce_to_zero(self):
        statement = Statement.from_records(
            "incomeStatement",
            [{"계정과목": "매출액", "2022": "n/a", "2023": float("nan"), "2021": None, "2020": "12.5"}],
        )
        self.assertEqual(get_values_for_years(statement, "매출액", [2020, 2021, 2022, 2023]), [12.5, 0.0, 0.0, 0.0])

    def test_first_matching_row_wins(self):
        statement = Statement.from_records(
            "balanceSheet",
            [
                {"계정과목": "매출채권", "2023": 10},
                {"계정과목": "  매출채권", "2023": 99},
            ],
        )
        self.assertEqual(get_latest_value(statement, "매출채권", 2023), 10.0)

    def test_sum_of_cash_accounts(self):
        totals = get_sum_of_values_for_years(self.statements.balance_sheet, CURRENT_CASH_ACCOUNTS, [2020, 2023])
        self.assertEqual(totals, [200.0, 230.0])

    def test_values_for_years_follow_requested_order(self):
        values = get_values_for_years(self.statements.income_statement, AccountKey.REVENUE, [2023, 2021])
        self.assertEqual(values, [REVENUE[2023], REVENUE[2021]])

    def test_trailing_years_are_ascending(self):
        self.assertEqual(self.statements.trailing_years(), [2021, 2022, 2023])
        self.assertEqual(self.statements.trailing_years(2), [2022, 2023])

    def test_cost_of_goods_manufactured_alias_and_company_name(self):
        self.assertIsNotNone(self.statements.cost_of_goods_manufactured)
        self.assertAlmostEqual(
            get_latest_value(self.statements.cost_of_goods_manufactured, AccountKey.DEPRECIATION, 2023),
            0.02 * 1331.0,
        )
        self.assertEqual(self.statements.company_name, "테스트전자")

    def test_missing_statement_array_is_rejected(self):
        with self.assertRaises(StatementSetError):
            StatementSet.from_dict({"incomeStatement": []})
        with self.assertRaises(StatementSetError):
            StatementSet.from_dict({"balanceSheet": [], "incomeStatement": "oops"})


class StatementFrameTests(unittest.TestCase):
    def test_from_frames_matches_dataframe_layout(self):
        income = pd.DataFrame(
            {
                "2023-12-31": {"Total Revenue": 1000, "Operating Income": 150},
                "2022-12-31": {"Total Revenue": 900, "Operating Income": float("nan")},
            }
        )
        balance = pd.DataFrame({"2023-12-31": {"Accounts Receivable": 120}})
        statements = StatementSet.from_frames(income, balance)

        self.assertEqual(statements.trailing_years(), [2022, 2023])
        self.assertEqual(get_latest_value(statements.income_statement, AccountKey.REVENUE, 2022), 900.0)
        self.assertEqual(get_latest_value(statements.income_statement, AccountKey.OPERATING_INCOME, 2022), 0.0)
        self.assertEqual(get_latest_value(statements.balance_sheet, AccountKey.ACCOUNTS_RECEIVABLE, 2023), 120.0)
        self.assertIsNone(statements.cost_of_goods_manufactured)

    def test_empty_frames_have_no_years(self):
        statements = StatementSet.from_frames(pd.DataFrame(), None)
        self.assertEqual(statements.trailing_years(), [])


class YearParsingTests(unittest.TestCase):
    def test_to_year_accepts_common_labels(self):
        self.assertEqual(to_year("2023"), 2023)
        self.assertEqual(to_year("2023-12-31"), 2023)
        self.assertEqual(to_year(2021), 2021)
        self.assertEqual(to_year(pd.Timestamp("2020-12-31")), 2020)
        self.assertIsNone(to_year("계정과목"))
        self.assertIsNone(to_year(True))

    def test_resolve_row_skips_non_year_keys(self):
        row = resolve_row("    유형자산", {"계정과목": "유형자산", "2023": "500", "note": "x"})
        self.assertEqual(row.values, {2023: 500.0})
        self.assertEqual(row.depth, 4)
        self.assertEqual(row.account_key, AccountKey.NET_PPE)


if __name__ == "__main__":
    unittest.main()
