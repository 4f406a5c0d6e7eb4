"""
Deduction section catalogue

One DeductionRule per DeductionSection member: statutory cap plus the regimes and
taxpayer categories in which the section may be claimed. The catalogue is a
read-only mapping built at import and never mutated.

New regime (Section 115BAC): only the standard deduction survives. Every other
section is silently excluded there; that is the statutory rule, not an error.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from taxengine.evaluator.schemas import CapKind, DeductionLine, DeductionRule
from taxengine.intake.schemas import DeductionClaim, DeductionSection, Regime, TaxpayerCategory

# ===========================================================================
# CAP CONSTANTS
# ===========================================================================

CAP_80C                  = Decimal("150000")
CAP_80D                  = Decimal("25000")    # Self/family, below 60
CAP_80D_SENIOR           = Decimal("50000")    # Self/family, 60 and above
CAP_80G_PCT              = Decimal("0.10")     # 10% of gross income
CAP_80TTA                = Decimal("10000")    # Savings interest, below 60
CAP_80TTB                = Decimal("50000")    # All deposit interest, 60 and above
CAP_80CCD1B              = Decimal("50000")    # Employee NPS
CAP_24B                  = Decimal("200000")   # Home loan interest, self-occupied
CAP_CONVEYANCE           = Decimal("19200")
CAP_STANDARD_DEDUCTION   = Decimal("50000")    # Slab tables may override per regime and year
CAP_PROFESSIONAL_TAX     = Decimal("2500")

PAISE = Decimal("0.01")

_OLD_ONLY = frozenset({Regime.old})
_BOTH = frozenset({Regime.old, Regime.new})

_INDIVIDUALS = frozenset({
    TaxpayerCategory.individual,
    TaxpayerCategory.senior_citizen,
    TaxpayerCategory.super_senior_citizen,
})
_SENIORS = frozenset({TaxpayerCategory.senior_citizen, TaxpayerCategory.super_senior_citizen})
_NON_SENIORS = frozenset({TaxpayerCategory.individual, TaxpayerCategory.huf})
_EVERYONE = frozenset(TaxpayerCategory)


def _rule(
    section, label, cap_kind, cap=None, regimes=_OLD_ONLY, categories=_EVERYONE, senior_cap=None,
) -> DeductionRule:
    return DeductionRule(
        section=section,
        label=label,
        cap_kind=cap_kind,
        cap=cap,
        senior_cap=senior_cap,
        eligible_regimes=regimes,
        eligible_categories=categories,
    )


DEDUCTION_RULES: Mapping[DeductionSection, DeductionRule] = MappingProxyType({
    DeductionSection.sec_80c: _rule(
        DeductionSection.sec_80c, "Section 80C (PPF, ELSS, LIC, EPF, tuition fees)",
        CapKind.fixed, CAP_80C,
    ),
    DeductionSection.sec_80d: _rule(
        DeductionSection.sec_80d, "Section 80D (health insurance premium)",
        CapKind.fixed, CAP_80D, senior_cap=CAP_80D_SENIOR,
    ),
    DeductionSection.sec_80e: _rule(
        DeductionSection.sec_80e, "Section 80E (education loan interest)",
        CapKind.unbounded, categories=_INDIVIDUALS,
    ),
    DeductionSection.sec_80g: _rule(
        DeductionSection.sec_80g, "Section 80G (donations)",
        CapKind.percent_of_income, CAP_80G_PCT,
    ),
    DeductionSection.sec_80tta: _rule(
        DeductionSection.sec_80tta, "Section 80TTA (savings account interest)",
        CapKind.fixed, CAP_80TTA, categories=_NON_SENIORS,
    ),
    DeductionSection.sec_80ttb: _rule(
        DeductionSection.sec_80ttb, "Section 80TTB (deposit interest, senior citizens)",
        CapKind.fixed, CAP_80TTB, categories=_SENIORS,
    ),
    DeductionSection.sec_80ccd_1b: _rule(
        DeductionSection.sec_80ccd_1b, "Section 80CCD(1B) (additional NPS contribution)",
        CapKind.fixed, CAP_80CCD1B, categories=_INDIVIDUALS,
    ),
    DeductionSection.sec_24b: _rule(
        DeductionSection.sec_24b, "Section 24(b) (home loan interest)",
        CapKind.fixed, CAP_24B,
    ),
    DeductionSection.hra: _rule(
        DeductionSection.hra, "HRA exemption",
        CapKind.unbounded, categories=_INDIVIDUALS,
    ),
    DeductionSection.conveyance_allowance: _rule(
        DeductionSection.conveyance_allowance, "Conveyance allowance",
        CapKind.fixed, CAP_CONVEYANCE, categories=_INDIVIDUALS,
    ),
    DeductionSection.lta: _rule(
        DeductionSection.lta, "Leave travel allowance",
        CapKind.unbounded, categories=_INDIVIDUALS,
    ),
    DeductionSection.standard_deduction: _rule(
        DeductionSection.standard_deduction, "Standard deduction (salaried)",
        CapKind.fixed, CAP_STANDARD_DEDUCTION, regimes=_BOTH, categories=_INDIVIDUALS,
    ),
    DeductionSection.professional_tax: _rule(
        DeductionSection.professional_tax, "Professional tax (Section 16(iii))",
        CapKind.fixed, CAP_PROFESSIONAL_TAX, categories=_INDIVIDUALS,
    ),
})


# ===========================================================================
# HELPERS (pure functions — no side effects, no I/O)
# ===========================================================================

def rule_for(section: DeductionSection) -> DeductionRule:
    return DEDUCTION_RULES[section]


def is_eligible(rule: DeductionRule, regime: Regime, category: TaxpayerCategory) -> bool:
    return regime in rule.eligible_regimes and category in rule.eligible_categories


def statutory_cap(
    rule: DeductionRule,
    gross_income: Decimal,
    category: Optional[TaxpayerCategory] = None,
    cap_overrides: Optional[Mapping[DeductionSection, Decimal]] = None,
) -> Optional[Decimal]:
    """
    INR cap for rule at this gross income and category. None means unbounded.

    cap_overrides (a slab table's own caps) win over the catalogue. Seniors get
    rule.senior_cap where the section has one.
    """
    if cap_overrides and rule.section in cap_overrides:
        return cap_overrides[rule.section]
    if rule.cap_kind is CapKind.unbounded:
        return None
    if rule.cap_kind is CapKind.percent_of_income:
        return (rule.cap * max(gross_income, Decimal("0"))).quantize(PAISE, rounding=ROUND_HALF_UP)
    if rule.senior_cap is not None and category in _SENIORS:
        return rule.senior_cap
    return rule.cap


def _total_by_section(claims: Iterable[DeductionClaim]) -> dict[DeductionSection, Decimal]:
    """Sum repeated claims per section, keeping first-seen order."""
    totals: dict[DeductionSection, Decimal] = {}
    for claim in claims:
        totals[claim.section] = totals.get(claim.section, Decimal("0")) + claim.claimed_amount
    return totals


def apply_deductions(
    claims: Iterable[DeductionClaim],
    regime: Regime,
    category: TaxpayerCategory,
    gross_income: Decimal,
    cap_overrides: Optional[Mapping[DeductionSection, Decimal]] = None,
) -> tuple[tuple[DeductionLine, ...], Decimal]:
    """
    Filter claims by regime/category eligibility and clamp each to its statutory cap
    (or the slab table's override, see statutory_cap).

    Every claimed section gets a DeductionLine; ineligible sections carry capped_amount=0.
    Returns (lines, total_capped_deductions).
    """
    lines: list[DeductionLine] = []
    total = Decimal("0")
    for section, claimed in _total_by_section(claims).items():
        rule = rule_for(section)
        if not is_eligible(rule, regime, category):
            capped = Decimal("0")
        else:
            cap = statutory_cap(rule, gross_income, category, cap_overrides)
            capped = claimed if cap is None else min(claimed, cap)
        lines.append(DeductionLine(section=section, claimed_amount=claimed, capped_amount=capped))
        total += capped
    return tuple(lines), total


__all__ = [
    "DEDUCTION_RULES",
    "rule_for",
    "is_eligible",
    "statutory_cap",
    "apply_deductions",
]
