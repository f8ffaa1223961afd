import logging
from dataclasses import replace
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .config import ALLOWED_ORIGINS, HISTORY_YEARS, PROJECTION_YEARS, configure_logging, parse_origins
from .models import Assumptions, to_payload
from .ratios import extract_historical_ratios, seed_assumptions, summarize_history
from .statements import StatementSet, StatementSetError
from .valuation import compute

configure_logging()
logger = logging.getLogger(__name__)


class AssumptionsInput(BaseModel):
    """Partial assumption overrides; omitted fields keep their seeded or default value."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    base_revenue: Optional[float] = None
    growth_rate: Optional[float] = None
    ebit_margin: Optional[float] = None
    tax_rate: Optional[float] = None
    depreciation_rate: Optional[float] = None
    capex_rate: Optional[float] = None
    nwc_rate: Optional[float] = None
    risk_free_rate: Optional[float] = None
    beta: Optional[float] = None
    equity_risk_premium: Optional[float] = None
    cost_of_debt: Optional[float] = None
    terminal_growth_rate: Optional[float] = None
    market_cap: Optional[float] = None
    total_debt: Optional[float] = None
    cash_and_equivalents: Optional[float] = None
    additional_cash_like_assets: Optional[float] = None
    shares_outstanding: Optional[float] = None


class ValuationRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    statements: Optional[Dict[str, Any]] = None
    assumptions: Optional[AssumptionsInput] = None
    projection_years: int = Field(default=PROJECTION_YEARS, ge=1, le=50)
    seed_from_statements: bool = True


class SeedRequest(BaseModel):
    statements: Dict[str, Any]


def _load_statements(raw: Optional[Dict[str, Any]]) -> Optional[StatementSet]:
    if raw is None:
        return None
    try:
        return StatementSet.from_dict(raw)
    except StatementSetError as exc:
        logger.warning("Rejected statement payload: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc))


def _apply_overrides(base: Assumptions, overrides: Optional[AssumptionsInput]) -> Assumptions:
    if overrides is None:
        return base
    return replace(base, **overrides.model_dump(exclude_none=True))


app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=parse_origins(ALLOWED_ORIGINS),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    return {"message": "Valuation engine is running. POST statements and assumptions to /api/valuation."}


@app.post("/api/valuation")
async def create_valuation(body: ValuationRequest):
    statements = _load_statements(body.statements)

    assumptions = Assumptions()
    if statements is not None and body.seed_from_statements:
        assumptions = seed_assumptions(statements, assumptions)
    assumptions = _apply_overrides(assumptions, body.assumptions)

    try:
        report = compute(statements, assumptions, years=body.projection_years)
    except Exception:
        logger.exception("Valuation failed")
        raise HTTPException(status_code=500, detail="Valuation could not be computed.")
    return report.to_payload()


@app.post("/api/assumptions/seed")
async def seed(body: SeedRequest):
    statements = _load_statements(body.statements)
    years = statements.trailing_years(HISTORY_YEARS)
    ratios = extract_historical_ratios(statements, years)
    return {
        "companyName": statements.company_name,
        "years": years,
        "assumptions": to_payload(seed_assumptions(statements, ratios=ratios)),
        "ratios": to_payload(ratios),
        "history": to_payload(summarize_history(statements, years)),
    }
