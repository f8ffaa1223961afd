import asyncio
import unittest
from unittest.mock import patch

from fastapi import HTTPException
from pydantic import ValidationError

from valuation_engine import main as engine_main
from valuation_engine.config import parse_origins
from valuation_engine.tests.statement_fixtures import statement_payload


def _valuation_request(body=None):
    return engine_main.ValuationRequest.model_validate(body or {})


class ApiTests(unittest.TestCase):
    def test_root_reports_status(self):
        payload = asyncio.run(engine_main.root())
        self.assertIn("message", payload)

    def test_valuation_with_defaults_only(self):
        payload = asyncio.run(engine_main.create_valuation(_valuation_request()))
        for key in ["assumptions", "costOfCapital", "fcff", "valuation", "sensitivity", "capitalStructure"]:
            self.assertIn(key, payload)
        self.assertIsNone(payload["ratios"])
        self.assertIsNone(payload["threeStatement"])
        self.assertEqual(payload["history"], {})

        valuation = payload["valuation"]
        self.assertTrue(valuation["isValid"])
        self.assertIn("intrinsicValuePerShare", valuation)
        self.assertEqual(len(valuation["discountedCashFlows"]), 5)
        self.assertAlmostEqual(payload["costOfCapital"]["wacc"], 0.14167, places=4)
        self.assertEqual(
            payload["sensitivity"]["values"][2][2],
            valuation["intrinsicValuePerShare"],
        )
        self.assertIn("optimal", payload["capitalStructure"])
        self.assertIn("maxEnterpriseValueIndex", payload["capitalStructure"])

    def test_valuation_seeds_from_statements_and_applies_overrides(self):
        request = _valuation_request(
            {
                "statements": statement_payload(),
                "assumptions": {"growthRate": 0.05, "sharesOutstanding": 10},
                "projectionYears": 3,
            }
        )
        payload = asyncio.run(engine_main.create_valuation(request))

        assumptions = payload["assumptions"]
        self.assertEqual(assumptions["baseRevenue"], 1331.0)
        self.assertEqual(assumptions["totalDebt"], 400.0)
        self.assertEqual(assumptions["growthRate"], 0.05)
        self.assertEqual(assumptions["sharesOutstanding"], 10)
        self.assertEqual(payload["companyName"], "테스트전자")
        self.assertEqual(len(payload["fcff"]), 3)
        self.assertEqual(payload["fcff"][0]["year"], 2024)
        self.assertEqual(len(payload["threeStatement"]), 3)
        self.assertEqual(payload["ratios"]["years"], [2021, 2022, 2023])
        self.assertIn("ebitda", payload["history"])

    def test_seeding_can_be_disabled(self):
        request = _valuation_request({"statements": statement_payload(), "seedFromStatements": False})
        payload = asyncio.run(engine_main.create_valuation(request))
        self.assertEqual(payload["assumptions"]["baseRevenue"], 30_090_000)
        self.assertIsNotNone(payload["ratios"])

    def test_invalid_valuation_serializes_nulls(self):
        request = _valuation_request({"assumptions": {"terminalGrowthRate": 0.5}})
        payload = asyncio.run(engine_main.create_valuation(request))
        valuation = payload["valuation"]
        self.assertFalse(valuation["isValid"])
        self.assertEqual(valuation["reason"], "wacc_not_above_growth")
        self.assertIsNone(valuation["enterpriseValue"])
        for scenario in payload["capitalStructure"]["scenarios"]:
            self.assertIsNone(scenario["enterpriseValue"])
        self.assertIsNone(payload["capitalStructure"]["optimal"])

    def test_malformed_statements_return_400(self):
        request = _valuation_request({"statements": {"incomeStatement": []}})
        with self.assertRaises(HTTPException) as ctx:
            asyncio.run(engine_main.create_valuation(request))
        self.assertEqual(ctx.exception.status_code, 400)

    def test_unexpected_failure_returns_500(self):
        with patch.object(engine_main, "compute", side_effect=RuntimeError("boom")):
            with self.assertRaises(HTTPException) as ctx:
                asyncio.run(engine_main.create_valuation(_valuation_request()))
        self.assertEqual(ctx.exception.status_code, 500)

    def test_projection_years_are_validated(self):
        with self.assertRaises(ValidationError):
            _valuation_request({"projectionYears": 0})

    def test_seed_endpoint(self):
        body = engine_main.SeedRequest(statements=statement_payload())
        payload = asyncio.run(engine_main.seed(body))
        self.assertEqual(payload["companyName"], "테스트전자")
        self.assertEqual(payload["years"], [2021, 2022, 2023])
        self.assertAlmostEqual(payload["assumptions"]["capexRate"], 0.12)
        self.assertAlmostEqual(payload["ratios"]["avgNwcRate"], 0.15)
        self.assertIn("balanceCheck", payload["history"])

    def test_seed_endpoint_rejects_missing_balance_sheet(self):
        body = engine_main.SeedRequest(statements={"incomeStatement": []})
        with self.assertRaises(HTTPException) as ctx:
            asyncio.run(engine_main.seed(body))
        self.assertEqual(ctx.exception.status_code, 400)


class ConfigTests(unittest.TestCase):
    def test_parse_origins_strips_blanks(self):
        self.assertEqual(
            parse_origins(" http://a.test, ,http://b.test "),
            ["http://a.test", "http://b.test"],
        )


if __name__ == "__main__":
    unittest.main()
