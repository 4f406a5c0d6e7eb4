"""
Slab Table Provider

Holds one RegimeSlabTable per (regime, category, fiscal_year). The registry is
write-once-per-fiscal-year, read-many:

  - lookup() reads a single immutable mapping reference, with no locking on the read path
  - register() copies the mapping, adds the new tables and swaps the reference in one
    assignment under a writer lock, so a concurrent reader sees either the old year set
    or the complete new one, never a half-populated year

Built-in tables cover FY 2023-24, 2024-25 and 2025-26 (AY 2024-25 → AY 2026-27).
Slab breakpoints (the new regime was revised in both Budget 2024 and Budget 2025):
  FY 2023-24 new: 3L/6L/9L/12L/15L
  FY 2024-25 new: 3L/7L/10L/12L/15L
  FY 2025-26 new: 4L/8L/12L/16L/20L/24L
  Old regime: 2.5L/5L/10L (senior 3L, super senior 5L), unchanged across all three years.
"""
from __future__ import annotations

import json
import logging
import threading
from decimal import Decimal
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Sequence

from pydantic import ValidationError

from taxengine.config import settings
from taxengine.errors import ErrorDetail, InvalidInputError, NotFoundError
from taxengine.evaluator.schemas import RebateRule, RegimeSlabTable, SurchargeBand, TaxSlab
from taxengine.intake.schemas import Regime, TaxpayerCategory

logger = logging.getLogger(__name__)

TableKey = tuple[Regime, TaxpayerCategory, str]

# ===========================================================================
# STATUTORY CONSTANTS
# ===========================================================================

CESS_RATE = Decimal("0.04")   # Health & Education Cess

# Old regime surcharge: 10% above ₹50L, 15% above ₹1Cr, 25% above ₹2Cr, 37% above ₹5Cr
OLD_SURCHARGE_BANDS: tuple[tuple[int, str], ...] = (
    (5_000_000, "0.10"),
    (10_000_000, "0.15"),
    (20_000_000, "0.25"),
    (50_000_000, "0.37"),
)
# New regime caps the surcharge at 25% (no 37% band)
NEW_SURCHARGE_BANDS: tuple[tuple[int, str], ...] = OLD_SURCHARGE_BANDS[:3]

OLD_87A = (500_000, 12_500)        # (taxable income ceiling, max rebate), all three years
OLD_STD_DEDUCTION = 50_000

# Slab layouts as (lower_bound, marginal_rate); each slab ends where the next begins.
OLD_SLABS_INDIVIDUAL = ((0, "0"), (250_000, "0.05"), (500_000, "0.20"), (1_000_000, "0.30"))
OLD_SLABS_SENIOR = ((0, "0"), (300_000, "0.05"), (500_000, "0.20"), (1_000_000, "0.30"))
OLD_SLABS_SUPER_SENIOR = ((0, "0"), (500_000, "0.20"), (1_000_000, "0.30"))

NEW_SLABS_FY2023_24 = (
    (0, "0"), (300_000, "0.05"), (600_000, "0.10"), (900_000, "0.15"),
    (1_200_000, "0.20"), (1_500_000, "0.30"),
)
NEW_SLABS_FY2024_25 = (
    (0, "0"), (300_000, "0.05"), (700_000, "0.10"), (1_000_000, "0.15"),
    (1_200_000, "0.20"), (1_500_000, "0.30"),
)
NEW_SLABS_FY2025_26 = (
    (0, "0"), (400_000, "0.05"), (800_000, "0.10"), (1_200_000, "0.15"),
    (1_600_000, "0.20"), (2_000_000, "0.25"), (2_400_000, "0.30"),
)

NEW_87A = {
    "2023-24": (700_000, 25_000),
    "2024-25": (700_000, 25_000),
    "2025-26": (1_200_000, 60_000),
}
NEW_STD_DEDUCTION = {
    "2023-24": 50_000,
    "2024-25": 75_000,   # Raised by Finance Act 2024
    "2025-26": 75_000,
}
NEW_SLABS = {
    "2023-24": NEW_SLABS_FY2023_24,
    "2024-25": NEW_SLABS_FY2024_25,
    "2025-26": NEW_SLABS_FY2025_26,
}
OLD_SLABS = {
    TaxpayerCategory.individual: OLD_SLABS_INDIVIDUAL,
    TaxpayerCategory.huf: OLD_SLABS_INDIVIDUAL,
    TaxpayerCategory.senior_citizen: OLD_SLABS_SENIOR,
    TaxpayerCategory.super_senior_citizen: OLD_SLABS_SUPER_SENIOR,
}


# ===========================================================================
# TABLE BUILDERS
# ===========================================================================

def build_slabs(layout: Sequence[tuple[int, str]]) -> tuple[TaxSlab, ...]:
    """Expand (lower_bound, rate) pairs into contiguous TaxSlabs; the last one is unbounded."""
    slabs = []
    for index, (lower, rate) in enumerate(layout):
        upper = layout[index + 1][0] if index + 1 < len(layout) else None
        slabs.append(TaxSlab(
            lower_bound=Decimal(lower),
            upper_bound=None if upper is None else Decimal(upper),
            marginal_rate=Decimal(rate),
        ))
    return tuple(slabs)


def _bands(bands: Sequence[tuple[int, str]]) -> tuple[SurchargeBand, ...]:
    return tuple(SurchargeBand(threshold=Decimal(t), rate=Decimal(r)) for t, r in bands)


def _rebate(category: TaxpayerCategory, rule: tuple[int, int]) -> Optional[RebateRule]:
    # 87A is for resident individuals only; an HUF never gets it.
    if category is TaxpayerCategory.huf:
        return None
    return RebateRule(income_ceiling=Decimal(rule[0]), max_rebate=Decimal(rule[1]))


def builtin_tables() -> tuple[RegimeSlabTable, ...]:
    tables = []
    for fiscal_year in ("2023-24", "2024-25", "2025-26"):
        for category in TaxpayerCategory:
            tables.append(RegimeSlabTable(
                regime=Regime.old,
                category=category,
                fiscal_year=fiscal_year,
                slabs=build_slabs(OLD_SLABS[category]),
                cess_rate=CESS_RATE,
                surcharge_bands=_bands(OLD_SURCHARGE_BANDS),
                rebate=_rebate(category, OLD_87A),
                standard_deduction_cap=Decimal(OLD_STD_DEDUCTION),
            ))
            # New regime has one slab structure for every age group
            tables.append(RegimeSlabTable(
                regime=Regime.new,
                category=category,
                fiscal_year=fiscal_year,
                slabs=build_slabs(NEW_SLABS[fiscal_year]),
                cess_rate=CESS_RATE,
                surcharge_bands=_bands(NEW_SURCHARGE_BANDS),
                rebate=_rebate(category, NEW_87A[fiscal_year]),
                standard_deduction_cap=Decimal(NEW_STD_DEDUCTION[fiscal_year]),
            ))
    return tuple(tables)


def table_from_config(config: Mapping[str, Any]) -> RegimeSlabTable:
    """
    Build a table from the onboarding configuration surface:
      {regime, category, fiscal_year, slabs: [{lower_bound, upper_bound, marginal_rate}],
       cess_rate, surcharge_bands: [{threshold, rate}], rebate?: {income_ceiling, max_rebate},
       standard_deduction_cap?}
    camelCase keys (fiscalYear, cessRate, ...) are accepted too.

    Raises:
        InvalidInputError: with one ErrorDetail per schema violation.
    """
    try:
        return RegimeSlabTable.model_validate(config)
    except ValidationError as exc:
        details = [
            ErrorDetail(
                field=".".join(str(loc) for loc in error["loc"]) or None,
                issue=error["msg"],
            )
            for error in exc.errors()
        ]
        raise InvalidInputError("Invalid slab table configuration", details) from None


def load_tables_file(path: str | Path) -> tuple[RegimeSlabTable, ...]:
    """Read a JSON file holding a list of table configurations."""
    with open(path, encoding="utf-8") as fh:
        payload = json.load(fh, parse_float=Decimal)
    if not isinstance(payload, list):
        raise InvalidInputError.for_field(None, f"{path}: expected a JSON list of slab tables.")
    return tuple(table_from_config(entry) for entry in payload)


# ===========================================================================
# REGISTRY
# ===========================================================================

class SlabTableRegistry:
    """Process-wide, read-mostly store of slab tables keyed by (regime, category, fiscal_year)."""

    def __init__(self, tables: Iterable[RegimeSlabTable] = ()) -> None:
        self._write_lock = threading.Lock()
        self._tables: Mapping[TableKey, RegimeSlabTable] = MappingProxyType({})
        tables = tuple(tables)
        if tables:
            self.register(*tables)

    def lookup(self, regime: Regime, category: TaxpayerCategory, fiscal_year: str) -> RegimeSlabTable:
        """
        Return the table for the tuple.

        Raises:
            NotFoundError: nothing is registered. Callers must not fall back to another year.
        """
        table = self._tables.get((regime, category, fiscal_year))
        if table is None:
            raise NotFoundError(
                f"Tax tables for FY {fiscal_year} are not yet available",
                [ErrorDetail(
                    field="fiscal_year",
                    issue=(
                        f"No {getattr(regime, 'value', regime)} regime slab table registered for "
                        f"category '{getattr(category, 'value', category)}' in FY {fiscal_year}."
                    ),
                )],
            )
        return table

    def register(self, *tables: RegimeSlabTable, replace: bool = False) -> None:
        """
        Install tables atomically.

        Raises:
            InvalidInputError: a key is already registered (and replace=False) or is
                repeated within this batch.
        """
        with self._write_lock:
            updated = dict(self._tables)
            seen: set[TableKey] = set()
            for table in tables:
                if table.key in seen or (table.key in updated and not replace):
                    raise InvalidInputError.for_field(
                        "fiscal_year",
                        f"Slab table already registered for {table.regime.value}/"
                        f"{table.category.value}/{table.fiscal_year}.",
                    )
                seen.add(table.key)
                updated[table.key] = table
            self._tables = MappingProxyType(updated)
        logger.info(
            "Registered %d slab table(s) for fiscal year(s) %s",
            len(tables),
            ", ".join(sorted({t.fiscal_year for t in tables})),
        )

    def fiscal_years(self) -> list[str]:
        return sorted({key[2] for key in self._tables})

    def tables(self) -> tuple[RegimeSlabTable, ...]:
        return tuple(self._tables.values())

    def __contains__(self, key: object) -> bool:
        return key in self._tables


def _build_default_registry() -> SlabTableRegistry:
    registry = SlabTableRegistry(builtin_tables())
    if settings.slab_tables_file:
        registry.register(*load_tables_file(settings.slab_tables_file), replace=True)
    return registry


# Module-level singleton, filled before any computation traffic
default_registry = _build_default_registry()


__all__ = [
    "CESS_RATE",
    "SlabTableRegistry",
    "build_slabs",
    "builtin_tables",
    "table_from_config",
    "load_tables_file",
    "default_registry",
]
