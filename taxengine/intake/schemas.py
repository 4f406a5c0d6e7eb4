"""
schemas.py — intake Pydantic v2 data contracts.

Defines:
  - Regime, TaxpayerCategory, DeductionSection enums
  - IncomeSnapshot   (gross income + fiscal year + category for one computation)
  - DeductionClaim   (one claimed amount under one deduction section)

Both models are frozen value objects: each computation takes its own snapshot,
so concurrent calls never share caller-owned mutable state.

All monetary fields are Decimal INR. Build them through intake.validator
(build_income_snapshot / build_claims) when the figures come from form strings.
"""
from __future__ import annotations

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Regime(str, Enum):
    old = "old"
    new = "new"


class TaxpayerCategory(str, Enum):
    individual = "individual"
    senior_citizen = "senior_citizen"              # 60–79
    super_senior_citizen = "super_senior_citizen"  # 80+
    huf = "huf"                                    # Hindu Undivided Family


class DeductionSection(str, Enum):
    """
    Closed set of deduction sections understood by the engine.
    Cap and eligibility metadata for each member lives in evaluator.deductions.DEDUCTION_RULES.
    """
    sec_80c = "80C"
    sec_80d = "80D"
    sec_80e = "80E"
    sec_80g = "80G"
    sec_80tta = "80TTA"
    sec_80ttb = "80TTB"
    sec_80ccd_1b = "80CCD(1B)"
    sec_24b = "24(b)"
    hra = "HRA"
    conveyance_allowance = "CONVEYANCE_ALLOWANCE"
    lta = "LTA"
    standard_deduction = "STANDARD_DEDUCTION"
    professional_tax = "PROFESSIONAL_TAX"


# ---------------------------------------------------------------------------
# IncomeSnapshot
# ---------------------------------------------------------------------------

class IncomeSnapshot(BaseModel):
    """
    Caller-supplied income figures for one computation request. Never persisted here.

    fiscal_year uses the "YYYY-YY" form, e.g. "2024-25" (FY, not AY).
    gross_income may be any Decimal at construction; compare_regimes rejects negatives.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    gross_income: Decimal = Field(..., description="Annual gross income in INR.")
    fiscal_year: str = Field(..., min_length=1, description='Fiscal year, e.g. "2024-25".')
    category: TaxpayerCategory = Field(
        default=TaxpayerCategory.individual,
        description="Selects the slab table (senior citizens get a higher exemption in the old regime).",
    )


# ---------------------------------------------------------------------------
# DeductionClaim
# ---------------------------------------------------------------------------

class DeductionClaim(BaseModel):
    """One raw claim. claimed_amount is the amount asked for, before any statutory cap."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    section: DeductionSection
    claimed_amount: Decimal = Field(..., ge=0)


__all__ = [
    "Regime",
    "TaxpayerCategory",
    "DeductionSection",
    "IncomeSnapshot",
    "DeductionClaim",
]
