import logging
import math
from typing import List, Optional, Sequence

from .dcf_engine import FcffSeries, evaluate, fcff_values
from .models import Assumptions, SensitivityGrid

logger = logging.getLogger(__name__)

SENSITIVITY_OFFSETS = (-0.01, -0.005, 0.0, 0.005, 0.01)


def build_sensitivity_grid(
    fcff: FcffSeries,
    wacc: float,
    assumptions: Assumptions,
    offsets: Sequence[float] = SENSITIVITY_OFFSETS,
) -> Optional[SensitivityGrid]:
    """
    Intrinsic value per share over WACC x terminal-growth offsets. Rows vary
    WACC, columns vary g; cells where WACC' <= g' are None. Returns None when
    the series is empty or ends in a non-finite FCFF.
    """
    values = fcff_values(fcff)
    if not values:
        return None
    if not math.isfinite(values[-1]):
        logger.warning("Sensitivity grid skipped: last FCFF is not finite")
        return None

    g = assumptions.terminal_growth_rate
    # A zero offset must reuse the base inputs untouched so the center cell matches exactly.
    wacc_values = [wacc + d if d else wacc for d in offsets]
    growth_values = [g + d if d else g for d in offsets]

    grid: List[List[Optional[float]]] = []
    for row_wacc in wacc_values:
        grid.append(
            [evaluate(values, row_wacc, cell_g, assumptions).intrinsic_value_per_share for cell_g in growth_values]
        )

    return SensitivityGrid(
        base_wacc=wacc,
        base_terminal_growth_rate=g,
        offsets=list(offsets),
        wacc_values=wacc_values,
        terminal_growth_values=growth_values,
        values=grid,
    )
