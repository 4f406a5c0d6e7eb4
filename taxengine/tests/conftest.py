"""
Test configuration for taxengine tests.

sys.path gets the project root so 'from taxengine...' resolves whether pytest runs
from the project root or from taxengine/tests/, installed or not.

Fixtures use FY 2023-24 because its slabs are the ones the worked examples use:
  old (individual): 0–2.5L 0%, 2.5L–5L 5%, 5L–10L 20%, above 10L 30%
  new:              0–3L 0%, 3L–6L 5%, 6L–9L 10%, 9L–12L 15%, 12L–15L 20%, above 15L 30%
"""
import sys
from decimal import Decimal
from pathlib import Path

import pytest

_project_root = Path(__file__).parent.parent.parent   # .../package/

if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from taxengine.config import settings  # noqa: E402
from taxengine.evaluator.slab_tables import SlabTableRegistry, builtin_tables, default_registry  # noqa: E402
from taxengine.intake.schemas import IncomeSnapshot, Regime, TaxpayerCategory  # noqa: E402

FY = "2023-24"


@pytest.fixture
def old_table():
    return default_registry.lookup(Regime.old, TaxpayerCategory.individual, FY)


@pytest.fixture
def new_table():
    return default_registry.lookup(Regime.new, TaxpayerCategory.individual, FY)


@pytest.fixture
def income_9l() -> IncomeSnapshot:
    return IncomeSnapshot(gross_income=Decimal("900000"), fiscal_year=FY)


@pytest.fixture
def registry() -> SlabTableRegistry:
    """Private registry, so tests that register tables never touch default_registry."""
    return SlabTableRegistry(builtin_tables())


@pytest.fixture
def suggestion_settings(monkeypatch):
    """Reset suggestion filters to their defaults; tests override individual fields."""
    monkeypatch.setattr(settings, "suggestion_min_saving", Decimal("0"))
    monkeypatch.setattr(settings, "max_suggestions", None)
    return settings
