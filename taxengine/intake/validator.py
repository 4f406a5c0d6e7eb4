"""
Intake boundary validator

Turns caller-supplied figures (often raw form strings) into strict value objects
exactly once, before anything reaches the tax engine:

  1. parse_money          — Decimal, int, finite float or numeric string ("₹1,50,000"), below MAX_AMOUNT
  2. parse_section        — canonical DeductionSection value or a known alias ("section80C", "24")
  3. parse_regime / parse_category
  4. build_income_snapshot — IncomeSnapshot, gross income must be >= 0
  5. build_claims          — tuple of DeductionClaim, amounts must be >= 0

Builders collect every violation in a single pass and raise one error carrying all
of them as ErrorDetail entries, so callers can show every field problem at once.
"""
from __future__ import annotations

import logging
import math
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from taxengine.errors import (
    ErrorDetail,
    InvalidInputError,
    TaxEngineError,
    UnknownDeductionSectionError,
)
from taxengine.intake.schemas import (
    DeductionClaim,
    DeductionSection,
    IncomeSnapshot,
    Regime,
    TaxpayerCategory,
)

logger = logging.getLogger(__name__)

_CURRENCY_PREFIX = re.compile(r"^(?:₹|rs\.?|inr)\s*", re.IGNORECASE)
_DIGIT_GROUPING = re.compile(r"(?<=\d)[,_](?=\d)")   # "1,50,000", "12_00_000"

# 10^15 rupees. Larger magnitudes are not incomes and overflow paise quantisation.
MAX_AMOUNT = Decimal("1e15")

_NON_ALNUM = re.compile(r"[^0-9a-z]")
_FISCAL_YEAR = re.compile(r"^(\d{4})-(\d{2})$")


def _normalise_key(value: str) -> str:
    return _NON_ALNUM.sub("", value.lower())


# ---------------------------------------------------------------------------
# Alias tables
# ---------------------------------------------------------------------------

_SECTION_ALIASES: dict[str, DeductionSection] = {
    _normalise_key(s.value): s for s in DeductionSection
}
_SECTION_ALIASES.update({
    "24": DeductionSection.sec_24b,
    "homeloaninterest": DeductionSection.sec_24b,
    "conveyance": DeductionSection.conveyance_allowance,
    "standard": DeductionSection.standard_deduction,
    "leavetravelallowance": DeductionSection.lta,
    "houserentallowance": DeductionSection.hra,
})

_CATEGORY_ALIASES: dict[str, TaxpayerCategory] = {
    _normalise_key(c.value): c for c in TaxpayerCategory
}
_CATEGORY_ALIASES.update({
    "senior": TaxpayerCategory.senior_citizen,
    "supersenior": TaxpayerCategory.super_senior_citizen,
    "hinduundividedfamily": TaxpayerCategory.huf,
})

_REGIME_ALIASES: dict[str, Regime] = {
    "old": Regime.old,
    "oldregime": Regime.old,
    "new": Regime.new,
    "newregime": Regime.new,
    "115bac": Regime.new,
}


# ---------------------------------------------------------------------------
# Scalar parsers
# ---------------------------------------------------------------------------

def parse_money(value: Any, field: str = "amount") -> Decimal:
    """
    Parse a monetary value into a finite Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not its binary expansion.
    Sign is NOT checked here; callers decide whether negatives are allowed.

    Raises:
        InvalidInputError: bool, None, NaN, infinity, empty or non-numeric input,
            whitespace inside the number ("12 5"), or a magnitude of MAX_AMOUNT or more.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidInputError.for_field(field, f"{field} must be a number, got {value!r}.")

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidInputError.for_field(field, f"{field} must be finite, got {value!r}.")
        amount = Decimal(str(value))
    elif isinstance(value, str):
        cleaned = _DIGIT_GROUPING.sub("", _CURRENCY_PREFIX.sub("", value.strip()))
        if not cleaned:
            raise InvalidInputError.for_field(field, f"{field} is empty.")
        try:
            amount = Decimal(cleaned)
        except InvalidOperation:
            raise InvalidInputError.for_field(
                field, f"{field} must be numeric, got {value!r}."
            ) from None
    else:
        raise InvalidInputError.for_field(
            field, f"{field} must be a number, got {type(value).__name__}."
        )

    if not amount.is_finite():
        raise InvalidInputError.for_field(field, f"{field} must be finite, got {value!r}.")
    if abs(amount) >= MAX_AMOUNT:
        raise InvalidInputError.for_field(
            field, f"{field} must be below ₹{MAX_AMOUNT:,.0f}, got {value!r}."
        )
    return amount


def parse_section(value: Any, field: str = "section") -> DeductionSection:
    """Resolve a section value or alias. Anything outside the closed enumeration is an error."""
    if isinstance(value, DeductionSection):
        return value
    if isinstance(value, str):
        key = _normalise_key(value)
        if key.startswith("section"):
            key = key[len("section"):]
        elif key.startswith("sec") and key[3:4].isdigit():
            key = key[3:]
        section = _SECTION_ALIASES.get(key)
        if section is not None:
            return section
    raise UnknownDeductionSectionError.for_field(
        field, f"Unknown deduction section {value!r}."
    )


def parse_regime(value: Any, field: str = "regime") -> Regime:
    if isinstance(value, Regime):
        return value
    if isinstance(value, str) and _normalise_key(value) in _REGIME_ALIASES:
        return _REGIME_ALIASES[_normalise_key(value)]
    raise InvalidInputError.for_field(field, f"Unknown regime {value!r}; expected 'old' or 'new'.")


def parse_category(value: Any, field: str = "category") -> TaxpayerCategory:
    if isinstance(value, TaxpayerCategory):
        return value
    if isinstance(value, str) and _normalise_key(value) in _CATEGORY_ALIASES:
        return _CATEGORY_ALIASES[_normalise_key(value)]
    raise InvalidInputError.for_field(
        field,
        f"Unknown taxpayer category {value!r}; expected one of "
        f"{', '.join(c.value for c in TaxpayerCategory)}.",
    )


def parse_fiscal_year(value: Any, field: str = "fiscal_year") -> str:
    """Accept "2024-25" style fiscal years where the suffix is the following year."""
    if isinstance(value, str):
        match = _FISCAL_YEAR.match(value.strip())
        if match and (int(match.group(1)) + 1) % 100 == int(match.group(2)):
            return value.strip()
    raise InvalidInputError.for_field(
        field, f'Fiscal year must look like "2024-25", got {value!r}.'
    )


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def build_income_snapshot(
    gross_income: Any,
    fiscal_year: Any,
    category: Any = TaxpayerCategory.individual,
) -> IncomeSnapshot:
    """
    Build an IncomeSnapshot from raw caller figures.

    Raises:
        InvalidInputError: listing every invalid field (non-numeric or negative gross
            income, malformed fiscal year, unknown category).
    """
    violations: list[ErrorDetail] = []
    parsed: dict[str, Any] = {}

    for name, parser, raw in (
        ("gross_income", parse_money, gross_income),
        ("fiscal_year", parse_fiscal_year, fiscal_year),
        ("category", parse_category, category),
    ):
        try:
            parsed[name] = parser(raw, name)
        except TaxEngineError as exc:
            violations.extend(exc.details)

    if "gross_income" in parsed and parsed["gross_income"] < 0:
        violations.append(ErrorDetail(field="gross_income", issue="gross_income cannot be negative."))

    if violations:
        logger.info("Income snapshot rejected: %d violation(s)", len(violations))
        raise InvalidInputError("Invalid income snapshot", violations)

    return IncomeSnapshot(**parsed)


def _claim_parts(raw: Any) -> tuple[Any, Any]:
    """Split one raw claim into (section, amount) regardless of its shape."""
    if isinstance(raw, DeductionClaim):
        return raw.section, raw.claimed_amount
    if isinstance(raw, Mapping):
        amount = raw.get("claimed_amount", raw.get("amount"))
        return raw.get("section"), amount
    if isinstance(raw, (tuple, list)) and len(raw) == 2:
        return raw[0], raw[1]
    return raw, None


def build_claims(claims: Iterable[Any] | None) -> tuple[DeductionClaim, ...]:
    """
    Normalise claims into an immutable tuple of DeductionClaim.

    Each item may be a DeductionClaim, a mapping with "section" and "claimed_amount"
    (or "amount"), or a (section, amount) pair.

    Raises:
        UnknownDeductionSectionError: if any claim names a section outside the enumeration.
            Takes precedence; details include every violation found.
        InvalidInputError: if any amount is non-numeric or negative.
    """
    if claims is None:
        return ()

    violations: list[ErrorDetail] = []
    unknown_section = False
    normalised: list[DeductionClaim] = []

    for index, raw in enumerate(claims):
        raw_section, raw_amount = _claim_parts(raw)
        section = amount = None
        try:
            section = parse_section(raw_section, f"claims.{index}.section")
        except UnknownDeductionSectionError as exc:
            unknown_section = True
            violations.extend(exc.details)
        try:
            amount = parse_money(raw_amount, f"claims.{index}.claimed_amount")
            if amount < 0:
                violations.append(ErrorDetail(
                    field=f"claims.{index}.claimed_amount",
                    issue="Deduction claims cannot be negative.",
                ))
                amount = None
        except InvalidInputError as exc:
            violations.extend(exc.details)

        if section is not None and amount is not None:
            normalised.append(DeductionClaim(section=section, claimed_amount=amount))

    if violations:
        logger.info(
            "Deduction claims rejected: %d violation(s) unknown_section=%s",
            len(violations),
            unknown_section,
        )
        if unknown_section:
            raise UnknownDeductionSectionError("Claims reference an unknown deduction section", violations)
        raise InvalidInputError("Invalid deduction claims", violations)

    return tuple(normalised)


__all__ = [
    "MAX_AMOUNT",
    "parse_money",
    "parse_section",
    "parse_regime",
    "parse_category",
    "parse_fiscal_year",
    "build_income_snapshot",
    "build_claims",
]
