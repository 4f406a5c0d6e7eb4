"""
Income what-if scenarios.

Re-runs compare_regimes() on scaled gross incomes so a taxpayer can see how a raise
or side income moves the recommendation. Deduction claims are held constant.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional, Sequence

from taxengine.evaluator.schemas import ScenarioResult
from taxengine.evaluator.slab_tables import SlabTableRegistry, default_registry
from taxengine.evaluator.tax_engine import compare_regimes, validate_gross_income
from taxengine.intake.schemas import IncomeSnapshot
from taxengine.intake.validator import build_claims

logger = logging.getLogger(__name__)

PAISE = Decimal("0.01")


@dataclass(frozen=True)
class IncomeScenario:
    name: str
    description: str
    multiplier: Decimal   # applied to the snapshot's gross income


DEFAULT_SCENARIOS: tuple[IncomeScenario, ...] = (
    IncomeScenario("Current Income", "Your entered income", Decimal("1")),
    IncomeScenario("10% Increase", "10% salary hike", Decimal("1.1")),
    IncomeScenario("20% Increase", "20% salary hike", Decimal("1.2")),
    IncomeScenario("Freelance Income", "Additional freelance income of 30%", Decimal("1.3")),
)


def simulate_income_scenarios(
    income: IncomeSnapshot,
    claims: Optional[Iterable[Any]] = None,
    scenarios: Sequence[IncomeScenario] = DEFAULT_SCENARIOS,
    registry: SlabTableRegistry = default_registry,
) -> tuple[ScenarioResult, ...]:
    """
    One ScenarioResult per scenario, in the order given.

    Nothing to project from a zero income: returns () when gross_income == 0.
    Errors are the same as compare_regimes() and surface before any scenario runs
    (a negative gross income raises InvalidInputError).
    """
    gross = validate_gross_income(income)
    if gross == 0:
        return ()

    normalised = build_claims(claims)
    results = []
    for scenario in scenarios:
        scaled = (gross * scenario.multiplier).quantize(PAISE, rounding=ROUND_HALF_UP)
        snapshot = income.model_copy(update={"gross_income": scaled})
        results.append(ScenarioResult(
            name=scenario.name,
            description=scenario.description,
            gross_income=scaled,
            comparison=compare_regimes(snapshot, normalised, registry=registry),
        ))

    logger.info("Simulated %d income scenario(s) fy=%s", len(results), income.fiscal_year)
    return tuple(results)


__all__ = ["IncomeScenario", "DEFAULT_SCENARIOS", "simulate_income_scenarios"]
