"""
taxengine Tax Engine
Pure Python, Decimal arithmetic, deterministic. Same input → same output.

  compute_tax_liability()  — slab tax, 87A rebate, surcharge, cess for one taxable income
  compute_for_regime()     — deductions + liability for one regime
  compare_regimes()        — both regimes, recommendation, optimisation suggestions

Validation happens up front (claims, gross income, table lookups). After that the
computation is total: it cannot raise, and it never returns a partial result.
"""
from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional, Sequence

from taxengine.errors import InvalidInputError
from taxengine.evaluator.deductions import apply_deductions, rule_for
from taxengine.evaluator.optimizer import generate_suggestions
from taxengine.evaluator.schemas import (
    RebateRule,
    RegimeComparisonResult,
    RegimeSlabTable,
    SlabBreakdownRow,
    SurchargeBand,
    TaxComputationResult,
    TaxSlab,
)
from taxengine.evaluator.slab_tables import SlabTableRegistry, default_registry
from taxengine.intake.schemas import DeductionClaim, IncomeSnapshot, Regime
from taxengine.intake.validator import build_claims, parse_money, parse_regime

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
PAISE = Decimal("0.01")
HUNDRED = Decimal("100")


# ===========================================================================
# INTERNAL HELPERS (pure functions — no side effects, no I/O)
# ===========================================================================

def _money(value: Decimal) -> Decimal:
    return value.quantize(PAISE, rounding=ROUND_HALF_UP)


def _calculate_slab_tax(
    taxable_income: Decimal,
    slabs: Sequence[TaxSlab],
) -> tuple[Decimal, tuple[SlabBreakdownRow, ...]]:
    """
    Progressive slab tax. Only slabs the income actually reaches get a breakdown row,
    so an untouched slab never shows up as "₹0 tax".
    """
    tax = ZERO
    rows: list[SlabBreakdownRow] = []
    for slab in slabs:
        ceiling = taxable_income if slab.upper_bound is None else min(taxable_income, slab.upper_bound)
        in_slab = max(ZERO, ceiling - slab.lower_bound)
        if in_slab == 0:
            continue
        slab_tax = _money(in_slab * slab.marginal_rate)
        tax += slab_tax
        rows.append(SlabBreakdownRow(
            slab_label=slab.label,
            taxable_amount_in_slab=in_slab,
            rate=slab.marginal_rate,
            tax_in_slab=slab_tax,
        ))
    return tax, tuple(rows)


def _apply_87a(taxable_income: Decimal, tax: Decimal, rule: Optional[RebateRule]) -> Decimal:
    """
    Section 87A rebate amount.
    If taxable_income <= ceiling: rebate = min(tax, max_rebate). Above the ceiling: no rebate at all.
    """
    if rule is None or taxable_income > rule.income_ceiling:
        return ZERO
    return min(tax, rule.max_rebate)


def _surcharge_band(taxable_income: Decimal, bands: Sequence[SurchargeBand]) -> Optional[SurchargeBand]:
    """Highest band whose threshold has been reached (threshold is inclusive)."""
    selected = None
    for band in bands:
        if band.threshold <= taxable_income:
            selected = band
    return selected


def _effective_rate(total_tax: Decimal, gross_income: Decimal) -> Decimal:
    if gross_income <= 0:
        return ZERO
    return _money(total_tax / gross_income * HUNDRED)


# ===========================================================================
# TAX LIABILITY CALCULATOR
# ===========================================================================

def compute_tax_liability(
    taxable_income: Any,
    table: RegimeSlabTable,
    gross_income: Any = None,
) -> TaxComputationResult:
    """
    Apply a slab table to a taxable income.

    Steps:
      1. taxable_income <= 0 → clamp to 0, all-zero result
      2. base_tax = Σ rate × income inside each slab
      3. rebate (87A) if the table has one and income is within its ceiling
      4. surcharge = (base_tax - rebate) × rate of the highest band reached.
         Flat multiplier, not progressive; no marginal relief.
      5. cess = (base_tax - rebate + surcharge) × cess_rate   ← always last
      6. total_tax = base_tax - rebate + surcharge + cess

    gross_income only feeds effective_rate; it defaults to taxable_income.
    deduction_breakdown / total_deductions are left empty for the caller to fill.

    Raises:
        InvalidInputError: taxable_income or gross_income is non-numeric, NaN, infinite
            or beyond MAX_AMOUNT.
    """
    income = max(parse_money(taxable_income, "taxable_income"), ZERO)
    gross = income if gross_income is None else parse_money(gross_income, "gross_income")

    if income == 0:
        return TaxComputationResult(
            regime=table.regime,
            fiscal_year=table.fiscal_year,
            category=table.category,
            gross_income=gross,
            taxable_income=ZERO,
            base_tax=ZERO,
            surcharge=ZERO,
            cess=ZERO,
            total_tax=ZERO,
            effective_rate=ZERO,
        )

    base_tax, slab_rows = _calculate_slab_tax(income, table.slabs)
    rebate = _money(_apply_87a(income, base_tax, table.rebate))
    tax_after_rebate = base_tax - rebate

    band = _surcharge_band(income, table.surcharge_bands)
    surcharge = _money(tax_after_rebate * band.rate) if band is not None else ZERO

    cess = _money((tax_after_rebate + surcharge) * table.cess_rate)
    total_tax = tax_after_rebate + surcharge + cess

    return TaxComputationResult(
        regime=table.regime,
        fiscal_year=table.fiscal_year,
        category=table.category,
        gross_income=gross,
        taxable_income=income,
        base_tax=base_tax,
        rebate=rebate,
        surcharge=surcharge,
        cess=cess,
        total_tax=total_tax,
        effective_rate=_effective_rate(total_tax, gross),
        slab_breakdown=slab_rows,
    )


# ===========================================================================
# REGIME CALCULATION
# ===========================================================================

def validate_gross_income(income: IncomeSnapshot) -> Decimal:
    """
    Re-check a snapshot built without the intake validator.

    Raises:
        InvalidInputError: gross_income is negative, non-finite or beyond MAX_AMOUNT.
    """
    gross = parse_money(income.gross_income, "gross_income")
    if gross < 0:
        raise InvalidInputError.for_field("gross_income", "gross_income cannot be negative.")
    return gross


def _compute_regime(
    income: IncomeSnapshot,
    claims: Sequence[DeductionClaim],
    table: RegimeSlabTable,
) -> TaxComputationResult:
    """Deductions → taxable income → liability. Inputs are already validated."""
    lines, total_deductions = apply_deductions(
        claims, table.regime, income.category, income.gross_income,
        cap_overrides=table.cap_overrides,
    )
    taxable_income = max(ZERO, income.gross_income - total_deductions)
    result = compute_tax_liability(taxable_income, table, gross_income=income.gross_income)
    return result.model_copy(update={
        "deduction_breakdown": lines,
        "total_deductions": total_deductions,
    })


def compute_for_regime(
    income: IncomeSnapshot,
    claims: Optional[Iterable[Any]],
    regime: Any,
    registry: SlabTableRegistry = default_registry,
) -> TaxComputationResult:
    """
    Full computation for a single regime, deduction breakdown included.

    Raises:
        InvalidInputError, UnknownDeductionSectionError, NotFoundError
    """
    regime = parse_regime(regime)
    validate_gross_income(income)
    normalised = build_claims(claims)
    table = registry.lookup(regime, income.category, income.fiscal_year)
    return _compute_regime(income, normalised, table)


# ===========================================================================
# COMPARE REGIMES — public API
# ===========================================================================

def _build_rationale(
    old: TaxComputationResult,
    new: TaxComputationResult,
    recommended: Regime,
    savings: Decimal,
) -> str:
    if savings == 0:
        return (
            f"Both regimes result in the same tax (₹{old.total_tax:,.0f}). "
            "New Regime recommended as the simpler option with no investment proofs to maintain."
        )
    if recommended is Regime.old:
        top_lines = sorted(
            (line for line in old.deduction_breakdown if line.capped_amount > 0),
            key=lambda line: line.capped_amount,
            reverse=True,
        )[:3]
        key_deds = ", ".join(
            f"{rule_for(line.section).label} ₹{line.capped_amount:,.0f}" for line in top_lines
        ) or "available deductions"
        return (
            f"Old Regime saves ₹{savings:,.0f} over the New Regime. "
            f"Old Regime tax: ₹{old.total_tax:,.0f} vs New Regime tax: ₹{new.total_tax:,.0f}. "
            f"Key deductions: {key_deds}."
        )
    return (
        f"New Regime saves ₹{savings:,.0f} over the Old Regime. "
        f"New Regime tax: ₹{new.total_tax:,.0f} vs Old Regime tax: ₹{old.total_tax:,.0f}. "
        f"Your eligible Old Regime deductions (₹{old.total_deductions:,.0f}) "
        "are not enough to overcome the lower New Regime slab rates."
    )


def compare_regimes(
    income: IncomeSnapshot,
    claims: Optional[Iterable[Any]] = None,
    registry: SlabTableRegistry = default_registry,
) -> RegimeComparisonResult:
    """
    Compare old and new regime tax for one income snapshot.

    claims may hold DeductionClaim objects, {"section", "claimed_amount"} mappings or
    (section, amount) pairs; they are normalised once by build_claims().

    Recommends the lower-tax regime; ties go to the New Regime.

    Raises:
        UnknownDeductionSectionError: a claim names a section outside DeductionSection.
        InvalidInputError: negative/non-numeric gross income or claim amount.
        NotFoundError: no slab table for either regime in income.fiscal_year / category.
    """
    validate_gross_income(income)
    normalised = build_claims(claims)
    old_table = registry.lookup(Regime.old, income.category, income.fiscal_year)
    new_table = registry.lookup(Regime.new, income.category, income.fiscal_year)

    old = _compute_regime(income, normalised, old_table)
    new = _compute_regime(income, normalised, new_table)

    if old.total_tax < new.total_tax:
        recommended = Regime.old
    else:
        recommended = Regime.new   # lower tax, or a tie
    savings = abs(old.total_tax - new.total_tax)

    logger.info(
        "Regime comparison fy=%s category=%s claims=%d recommended=%s",
        income.fiscal_year,
        income.category.value,
        len(normalised),
        recommended.value,
    )

    return RegimeComparisonResult(
        old_regime=old,
        new_regime=new,
        savings=savings,
        recommended_regime=recommended,
        optimization_suggestions=generate_suggestions(
            income, old, cap_overrides=old_table.cap_overrides,
        ),
        rationale=_build_rationale(old, new, recommended, savings),
    )


__all__ = [
    "compute_tax_liability",
    "compute_for_regime",
    "compare_regimes",
    "validate_gross_income",
]
