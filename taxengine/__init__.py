"""
taxengine — Indian personal income tax computation engine.

Re-exports the public API so callers can `from taxengine import compare_regimes`.
"""
from taxengine.errors import (
    InvalidInputError,
    NotFoundError,
    TaxEngineError,
    UnknownDeductionSectionError,
)
from taxengine.evaluator.scenarios import DEFAULT_SCENARIOS, simulate_income_scenarios
from taxengine.evaluator.schemas import RegimeComparisonResult, RegimeSlabTable, TaxComputationResult
from taxengine.evaluator.slab_tables import SlabTableRegistry, default_registry, table_from_config
from taxengine.evaluator.tax_engine import compare_regimes, compute_for_regime, compute_tax_liability
from taxengine.intake.schemas import (
    DeductionClaim,
    DeductionSection,
    IncomeSnapshot,
    Regime,
    TaxpayerCategory,
)
from taxengine.intake.validator import build_claims, build_income_snapshot

__version__ = "0.1.0"

__all__ = [
    "TaxEngineError",
    "InvalidInputError",
    "NotFoundError",
    "UnknownDeductionSectionError",
    "DEFAULT_SCENARIOS",
    "simulate_income_scenarios",
    "RegimeComparisonResult",
    "RegimeSlabTable",
    "TaxComputationResult",
    "SlabTableRegistry",
    "default_registry",
    "table_from_config",
    "compare_regimes",
    "compute_for_regime",
    "compute_tax_liability",
    "DeductionClaim",
    "DeductionSection",
    "IncomeSnapshot",
    "Regime",
    "TaxpayerCategory",
    "build_claims",
    "build_income_snapshot",
]
