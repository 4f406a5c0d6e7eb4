"""
schemas.py — evaluator Pydantic v2 data contracts.

Reference data (immutable, registered once per fiscal year):
  - TaxSlab, SurchargeBand, RebateRule, RegimeSlabTable
  - CapKind, DeductionRule

Results (derived, produced fresh per call):
  - DeductionLine, SlabBreakdownRow, TaxComputationResult
  - OptimizationSuggestion, RegimeComparisonResult, ScenarioResult

Rates are Decimal fractions (0.05 = 5%). Money is Decimal INR.
effective_rate is the one exception: it is a percentage (7.22 = 7.22%).
"""
from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import FrozenSet, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from taxengine.intake.schemas import DeductionSection, Regime, TaxpayerCategory


# camelCase aliases let onboarding configs use either "fiscal_year" or "fiscalYear".
_FROZEN = ConfigDict(extra="forbid", frozen=True, alias_generator=to_camel, populate_by_name=True)

_UNBOUNDED_MARKERS = {"unbounded", "inf", "infinity", "above"}


# ---------------------------------------------------------------------------
# Slab reference data
# ---------------------------------------------------------------------------

class TaxSlab(BaseModel):
    """One progressive bracket. upper_bound=None means unbounded (the top slab)."""
    model_config = _FROZEN

    lower_bound: Decimal = Field(..., ge=0)
    upper_bound: Optional[Decimal] = None
    marginal_rate: Decimal = Field(..., ge=0, le=1)

    @field_validator("upper_bound", mode="before")
    @classmethod
    def parse_unbounded(cls, value):
        if isinstance(value, str) and value.strip().lower() in _UNBOUNDED_MARKERS:
            return None
        return value

    @property
    def label(self) -> str:
        if self.upper_bound is None:
            return f"Above ₹{self.lower_bound:,.0f}"
        return f"₹{self.lower_bound:,.0f} – ₹{self.upper_bound:,.0f}"


class SurchargeBand(BaseModel):
    """Once taxable income reaches threshold, surcharge = rate × tax (flat, not progressive)."""
    model_config = _FROZEN

    threshold: Decimal = Field(..., ge=0)
    rate: Decimal = Field(..., ge=0, le=1)


class RebateRule(BaseModel):
    """Section 87A: rebate = min(slab tax, max_rebate) when taxable income <= income_ceiling."""
    model_config = _FROZEN

    income_ceiling: Decimal = Field(..., ge=0)
    max_rebate: Decimal = Field(..., ge=0)


class RegimeSlabTable(BaseModel):
    """
    Complete rate card for one (regime, category, fiscal_year).

    Invariants (checked at construction, so a registered table is always well-formed):
      - slabs start at 0, are contiguous and ascending
      - only the final slab is unbounded, and it must be
      - surcharge band thresholds are strictly ascending
    """
    model_config = _FROZEN

    regime: Regime
    category: TaxpayerCategory
    fiscal_year: str = Field(..., min_length=1)
    slabs: Tuple[TaxSlab, ...] = Field(..., min_length=1)
    cess_rate: Decimal = Field(..., ge=0, le=1)
    surcharge_bands: Tuple[SurchargeBand, ...] = ()
    rebate: Optional[RebateRule] = None
    # Standard deduction changes by regime and year (50000, or 75000 in the new regime from FY 2024-25).
    # None keeps the catalogue cap.
    standard_deduction_cap: Optional[Decimal] = Field(default=None, ge=0)

    @property
    def key(self) -> tuple[Regime, TaxpayerCategory, str]:
        return (self.regime, self.category, self.fiscal_year)

    @property
    def cap_overrides(self) -> dict[DeductionSection, Decimal]:
        """Per-table caps that replace the deduction catalogue's."""
        if self.standard_deduction_cap is None:
            return {}
        return {DeductionSection.standard_deduction: self.standard_deduction_cap}

    @model_validator(mode="after")
    def validate_slab_layout(self) -> "RegimeSlabTable":
        if self.slabs[0].lower_bound != 0:
            raise ValueError("first slab must start at 0")

        for index, slab in enumerate(self.slabs):
            is_last = index == len(self.slabs) - 1
            if slab.upper_bound is None and not is_last:
                raise ValueError(f"slab {index} is unbounded but is not the final slab")
            if is_last and slab.upper_bound is not None:
                raise ValueError("final slab must be unbounded (upper_bound=None)")
            if slab.upper_bound is not None and slab.upper_bound <= slab.lower_bound:
                raise ValueError(f"slab {index} upper_bound must exceed lower_bound")
            if index > 0 and slab.lower_bound != self.slabs[index - 1].upper_bound:
                raise ValueError(
                    f"slab {index} must start where slab {index - 1} ends (slabs are contiguous)"
                )

        thresholds = [band.threshold for band in self.surcharge_bands]
        if any(b <= a for a, b in zip(thresholds, thresholds[1:])):
            raise ValueError("surcharge bands must be strictly ascending by threshold")
        return self


# ---------------------------------------------------------------------------
# Deduction reference data
# ---------------------------------------------------------------------------

class CapKind(str, Enum):
    fixed = "fixed"                          # cap is an INR amount
    unbounded = "unbounded"                  # claim allowed in full
    percent_of_income = "percent_of_income"  # cap = cap × gross_income


class DeductionRule(BaseModel):
    """Statutory cap and eligibility for one DeductionSection."""
    model_config = _FROZEN

    section: DeductionSection
    label: str
    cap_kind: CapKind
    cap: Optional[Decimal] = Field(default=None, ge=0)   # INR for fixed, fraction for percent_of_income
    senior_cap: Optional[Decimal] = Field(default=None, ge=0)   # fixed cap for 60+ categories, if higher
    eligible_regimes: FrozenSet[Regime]
    eligible_categories: FrozenSet[TaxpayerCategory] = frozenset(TaxpayerCategory)

    @model_validator(mode="after")
    def validate_cap(self) -> "DeductionRule":
        if self.cap_kind is CapKind.unbounded and self.cap is not None:
            raise ValueError("unbounded sections take no cap")
        if self.cap_kind is not CapKind.unbounded and self.cap is None:
            raise ValueError(f"{self.cap_kind.value} sections need a cap")
        if self.senior_cap is not None and self.cap_kind is not CapKind.fixed:
            raise ValueError("senior_cap only applies to fixed-cap sections")
        return self


# ---------------------------------------------------------------------------
# Per-regime computation result
# ---------------------------------------------------------------------------

class DeductionLine(BaseModel):
    """
    One section's contribution to a regime.

    capped_amount is what actually reduced taxable income: 0 when the section is not
    eligible in this regime/category, otherwise min(claimed_amount, statutory cap).
    """
    model_config = _FROZEN

    section: DeductionSection
    claimed_amount: Decimal
    capped_amount: Decimal


class SlabBreakdownRow(BaseModel):
    model_config = _FROZEN

    slab_label: str
    taxable_amount_in_slab: Decimal
    rate: Decimal
    tax_in_slab: Decimal


class TaxComputationResult(BaseModel):
    """
    Tax liability under a single regime.

    Computation sequence (order determines correctness):
      1. taxable_income = max(0, gross_income - total_deductions)
      2. base_tax = progressive slab tax
      3. rebate (87A) when the table has one and taxable_income <= ceiling
      4. surcharge = (base_tax - rebate) × highest band reached
      5. cess = (base_tax - rebate + surcharge) × cess_rate   ← always last
      6. total_tax = base_tax - rebate + surcharge + cess
    """
    model_config = _FROZEN

    regime: Regime
    fiscal_year: str
    category: TaxpayerCategory
    gross_income: Decimal
    taxable_income: Decimal
    deduction_breakdown: Tuple[DeductionLine, ...] = ()
    total_deductions: Decimal = Decimal("0")
    base_tax: Decimal
    rebate: Decimal = Decimal("0")
    surcharge: Decimal
    cess: Decimal
    total_tax: Decimal
    effective_rate: Decimal                # percentage of gross income, 2 dp
    slab_breakdown: Tuple[SlabBreakdownRow, ...] = ()

    def capped_amount(self, section: DeductionSection) -> Decimal:
        """Total capped amount applied for section (0 if never claimed)."""
        return sum(
            (line.capped_amount for line in self.deduction_breakdown if line.section is section),
            Decimal("0"),
        )


# ---------------------------------------------------------------------------
# Comparison output
# ---------------------------------------------------------------------------

class OptimizationSuggestion(BaseModel):
    model_config = _FROZEN

    section: DeductionSection
    currently_used: Decimal
    available_headroom: Decimal
    potential_savings_at_marginal_rate: Decimal
    message: str


class RegimeComparisonResult(BaseModel):
    """
    Output of compare_regimes(), the public API of the engine.

    savings is abs(old.total_tax - new.total_tax), never negative.
    Ties recommend the new regime.
    """
    model_config = _FROZEN

    old_regime: TaxComputationResult
    new_regime: TaxComputationResult
    savings: Decimal = Field(..., ge=0)
    recommended_regime: Regime
    optimization_suggestions: Tuple[OptimizationSuggestion, ...] = ()
    rationale: str = ""


class ScenarioResult(BaseModel):
    """One what-if income scenario and the regime comparison it produces."""
    model_config = _FROZEN

    name: str
    description: str
    gross_income: Decimal
    comparison: RegimeComparisonResult


__all__ = [
    "TaxSlab",
    "SurchargeBand",
    "RebateRule",
    "RegimeSlabTable",
    "CapKind",
    "DeductionRule",
    "DeductionLine",
    "SlabBreakdownRow",
    "TaxComputationResult",
    "OptimizationSuggestion",
    "RegimeComparisonResult",
    "ScenarioResult",
]
