import unittest

from valuation_engine.cost_of_capital import compute_cost_of_capital
from valuation_engine.dcf_engine import run_valuation
from valuation_engine.models import Assumptions
from valuation_engine.projections import project_fcff
from valuation_engine.sensitivity import SENSITIVITY_OFFSETS, build_sensitivity_grid


class SensitivityGridTests(unittest.TestCase):
    def setUp(self):
        self.assumptions = Assumptions()
        self.fcff = project_fcff(self.assumptions)
        self.wacc = compute_cost_of_capital(self.assumptions).wacc
        self.grid = build_sensitivity_grid(self.fcff, self.wacc, self.assumptions)

    def test_center_cell_equals_base_valuation(self):
        base = run_valuation(self.fcff, self.wacc, self.assumptions)
        self.assertEqual(self.grid.center(), base.intrinsic_value_per_share)
        self.assertEqual(self.grid.wacc_values[2], self.wacc)
        self.assertEqual(self.grid.terminal_growth_values[2], self.assumptions.terminal_growth_rate)

    def test_grid_is_five_by_five(self):
        self.assertEqual(len(self.grid.values), len(SENSITIVITY_OFFSETS))
        for row in self.grid.values:
            self.assertEqual(len(row), len(SENSITIVITY_OFFSETS))
        self.assertAlmostEqual(self.grid.wacc_values[0], self.wacc - 0.01)
        self.assertAlmostEqual(self.grid.terminal_growth_values[-1], self.assumptions.terminal_growth_rate + 0.01)

    def test_value_falls_with_wacc_and_rises_with_growth(self):
        values = self.grid.values
        for col in range(5):
            column = [values[row][col] for row in range(5)]
            self.assertEqual(column, sorted(column, reverse=True))
        for row in values:
            self.assertEqual(row, sorted(row))

    def test_degenerate_base_wacc_gives_empty_cells(self):
        grid = build_sensitivity_grid(self.fcff, -1.0, self.assumptions)
        for row in grid.values:
            self.assertEqual(row, [None] * len(SENSITIVITY_OFFSETS))

    def test_cells_with_wacc_not_above_growth_are_none(self):
        assumptions = Assumptions(terminal_growth_rate=0.02)
        grid = build_sensitivity_grid(self.fcff, 0.025, assumptions)
        for i, wacc in enumerate(grid.wacc_values):
            for j, growth in enumerate(grid.terminal_growth_values):
                with self.subTest(wacc=wacc, growth=growth):
                    if wacc <= growth:
                        self.assertIsNone(grid.values[i][j])
                    else:
                        self.assertIsNotNone(grid.values[i][j])
        self.assertIsNone(grid.values[0][4])
        self.assertIsNotNone(grid.values[4][0])

    def test_not_computable_series_returns_none(self):
        self.assertIsNone(build_sensitivity_grid([], self.wacc, self.assumptions))
        self.assertIsNone(build_sensitivity_grid([1.0, float("inf")], self.wacc, self.assumptions))

    def test_frame_export(self):
        frame = self.grid.to_frame()
        self.assertEqual(frame.shape, (5, 5))
        self.assertEqual(frame.index.name, "wacc")
        self.assertEqual(frame.columns.name, "terminal_growth_rate")
        self.assertEqual(frame.iloc[2, 2], self.grid.center())


if __name__ == "__main__":
    unittest.main()
