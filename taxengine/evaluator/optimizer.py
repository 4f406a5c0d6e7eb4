"""
Optimizer — unused old-regime deduction headroom.
Pure functions. No I/O.

For every old-regime section the taxpayer's category may claim, with a finite cap and
unused headroom, estimate the tax saved by filling that headroom at the current
marginal slab rate. Unbounded sections (HRA, LTA, 80E) have no headroom to suggest.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping, Optional

from taxengine.config import settings
from taxengine.evaluator.deductions import DEDUCTION_RULES, is_eligible, statutory_cap
from taxengine.evaluator.schemas import OptimizationSuggestion, TaxComputationResult
from taxengine.intake.schemas import DeductionSection, IncomeSnapshot, Regime

PAISE = Decimal("0.01")
ZERO = Decimal("0")


def marginal_rate(result: TaxComputationResult) -> Decimal:
    """
    Rate of the highest slab actually reached: the last non-zero-rate breakdown row.
    0 when income never leaves the exempt slab.
    """
    for row in reversed(result.slab_breakdown):
        if row.rate > 0:
            return row.rate
    return ZERO


def _message(label: str, headroom: Decimal, saving: Decimal) -> str:
    if saving > 0:
        return (
            f"Claim ₹{headroom:,.0f} more under {label} "
            f"to save ₹{saving:,.0f} in the Old Regime."
        )
    return (
        f"₹{headroom:,.0f} of {label} is unused, but your income is in the exempt slab "
        "so it would not reduce tax this year."
    )


def generate_suggestions(
    income: IncomeSnapshot,
    old_result: TaxComputationResult,
    min_saving: Optional[Decimal] = None,
    limit: Optional[int] = None,
    cap_overrides: Optional[Mapping[DeductionSection, Decimal]] = None,
) -> tuple[OptimizationSuggestion, ...]:
    """
    Build suggestions sorted by potential saving, highest first.
    Ties keep DeductionSection declaration order (stable sort).

    min_saving / limit default to settings.suggestion_min_saving / settings.max_suggestions.
    Sections already at or over their cap never produce a suggestion.
    cap_overrides are the old-regime table's own caps (RegimeSlabTable.cap_overrides).
    """
    if min_saving is None:
        min_saving = settings.suggestion_min_saving
    if limit is None:
        limit = settings.max_suggestions

    rate = marginal_rate(old_result)
    candidates: list[OptimizationSuggestion] = []

    for section, rule in DEDUCTION_RULES.items():
        if not is_eligible(rule, Regime.old, income.category):
            continue
        cap = statutory_cap(rule, income.gross_income, income.category, cap_overrides)
        if cap is None:
            continue
        used = old_result.capped_amount(section)
        if used >= cap:
            continue

        headroom = cap - used
        saving = (headroom * rate).quantize(PAISE, rounding=ROUND_HALF_UP)
        if saving < min_saving:
            continue
        candidates.append(OptimizationSuggestion(
            section=section,
            currently_used=used,
            available_headroom=headroom,
            potential_savings_at_marginal_rate=saving,
            message=_message(rule.label, headroom, saving),
        ))

    candidates.sort(key=lambda s: s.potential_savings_at_marginal_rate, reverse=True)
    if limit is not None:
        candidates = candidates[:limit]
    return tuple(candidates)


__all__ = ["marginal_rate", "generate_suggestions"]
