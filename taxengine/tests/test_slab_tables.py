"""
Slab Table Provider tests — built-in coverage, lookup, registration, onboarding configs.
"""
from __future__ import annotations

import json
import threading
from decimal import Decimal

import pytest

from taxengine.errors import InvalidInputError, NotFoundError
from taxengine.evaluator.slab_tables import (
    CESS_RATE,
    SlabTableRegistry,
    build_slabs,
    builtin_tables,
    default_registry,
    load_tables_file,
    table_from_config,
)
from taxengine.intake.schemas import DeductionSection, Regime, TaxpayerCategory

D = Decimal


def _config(**overrides) -> dict:
    config = {
        "regime": "new",
        "category": "individual",
        "fiscal_year": "2026-27",
        "slabs": [
            {"lower_bound": 0, "upper_bound": 400_000, "marginal_rate": "0"},
            {"lower_bound": 400_000, "upper_bound": 800_000, "marginal_rate": "0.05"},
            {"lower_bound": 800_000, "upper_bound": None, "marginal_rate": "0.10"},
        ],
        "cess_rate": "0.04",
        "surcharge_bands": [{"threshold": 5_000_000, "rate": "0.10"}],
    }
    config.update(overrides)
    return config


# ===========================================================================
# Built-in tables
# ===========================================================================

def test_builtin_tables_cover_every_year_category_and_regime() -> None:
    tables = builtin_tables()
    assert len(tables) == 3 * len(TaxpayerCategory) * len(Regime)
    assert len({t.key for t in tables}) == len(tables)
    assert default_registry.fiscal_years() == ["2023-24", "2024-25", "2025-26"]


def test_builtin_tables_are_well_formed() -> None:
    for table in builtin_tables():
        assert table.slabs[0].lower_bound == 0
        assert table.slabs[-1].upper_bound is None
        assert table.cess_rate == CESS_RATE


def test_new_regime_slabs_same_for_every_category() -> None:
    for fiscal_year in default_registry.fiscal_years():
        layouts = {
            default_registry.lookup(Regime.new, category, fiscal_year).slabs
            for category in TaxpayerCategory
        }
        assert len(layouts) == 1


def test_super_senior_old_regime_exempts_5_lakh() -> None:
    table = default_registry.lookup(Regime.old, TaxpayerCategory.super_senior_citizen, "2024-25")
    assert table.slabs[0].upper_bound == D("500000")
    assert table.slabs[1].marginal_rate == D("0.20")


def test_fy_2025_26_new_regime_rebate() -> None:
    table = default_registry.lookup(Regime.new, TaxpayerCategory.individual, "2025-26")
    assert table.rebate.income_ceiling == D("1200000")
    assert table.rebate.max_rebate == D("60000")


@pytest.mark.parametrize(
    "regime, fiscal_year, cap",
    [
        (Regime.old, "2023-24", D("50000")),
        (Regime.old, "2025-26", D("50000")),
        (Regime.new, "2023-24", D("50000")),
        (Regime.new, "2024-25", D("75000")),
        (Regime.new, "2025-26", D("75000")),
    ],
    ids=["old-2023-24", "old-2025-26", "new-2023-24", "new-2024-25", "new-2025-26"],
)
def test_standard_deduction_cap_per_regime_and_year(regime, fiscal_year, cap) -> None:
    table = default_registry.lookup(regime, TaxpayerCategory.individual, fiscal_year)
    assert table.standard_deduction_cap == cap
    assert table.cap_overrides == {DeductionSection.standard_deduction: cap}


def test_config_without_standard_deduction_cap_has_no_overrides() -> None:
    assert table_from_config(_config()).cap_overrides == {}


def test_build_slabs_chains_bounds() -> None:
    slabs = build_slabs(((0, "0"), (100, "0.1"), (200, "0.2")))
    assert [(s.lower_bound, s.upper_bound) for s in slabs] == [
        (D("0"), D("100")), (D("100"), D("200")), (D("200"), None),
    ]


# ===========================================================================
# Lookup
# ===========================================================================

def test_lookup_missing_year_raises_not_found(registry) -> None:
    with pytest.raises(NotFoundError) as exc_info:
        registry.lookup(Regime.old, TaxpayerCategory.individual, "2019-20")

    envelope = exc_info.value.to_response().model_dump()
    assert envelope["error"]["code"] == "NOT_FOUND"
    assert envelope["error"]["message"] == "Tax tables for FY 2019-20 are not yet available"
    assert envelope["error"]["details"][0]["field"] == "fiscal_year"


def test_lookup_never_falls_back_to_another_year(registry) -> None:
    assert (Regime.old, TaxpayerCategory.individual, "2025-26") in registry
    with pytest.raises(NotFoundError):
        registry.lookup(Regime.old, TaxpayerCategory.individual, "2026-27")


# ===========================================================================
# Registration
# ===========================================================================

def test_register_new_year(registry) -> None:
    table = table_from_config(_config())
    registry.register(table)
    assert registry.lookup(Regime.new, TaxpayerCategory.individual, "2026-27") is table
    assert "2026-27" in registry.fiscal_years()


def test_register_duplicate_rejected(registry) -> None:
    existing = registry.lookup(Regime.new, TaxpayerCategory.individual, "2025-26")
    with pytest.raises(InvalidInputError):
        registry.register(table_from_config(_config(fiscal_year="2025-26")))
    assert registry.lookup(Regime.new, TaxpayerCategory.individual, "2025-26") is existing


def test_register_duplicate_within_batch_rejected(registry) -> None:
    table = table_from_config(_config())
    with pytest.raises(InvalidInputError):
        registry.register(table, table)
    # batch is all-or-nothing
    assert "2026-27" not in registry.fiscal_years()


def test_register_replace(registry) -> None:
    replacement = table_from_config(_config(fiscal_year="2025-26"))
    registry.register(replacement, replace=True)
    assert registry.lookup(Regime.new, TaxpayerCategory.individual, "2025-26") is replacement


def test_register_does_not_disturb_earlier_snapshot(registry) -> None:
    before = registry.tables()
    registry.register(table_from_config(_config()))
    assert len(registry.tables()) == len(before) + 1
    assert all(t.fiscal_year != "2026-27" for t in before)


def test_concurrent_lookups_during_registration(registry) -> None:
    errors: list[Exception] = []
    stop = threading.Event()

    def reader() -> None:
        while not stop.is_set():
            try:
                registry.lookup(Regime.old, TaxpayerCategory.individual, "2023-24")
            except Exception as exc:
                errors.append(exc)
                return

    readers = [threading.Thread(target=reader) for _ in range(4)]
    for thread in readers:
        thread.start()
    for year in range(2026, 2036):
        fiscal_year = f"{year}-{(year + 1) % 100:02d}"
        registry.register(table_from_config(_config(fiscal_year=fiscal_year)))
    stop.set()
    for thread in readers:
        thread.join()

    assert errors == []
    assert len(registry.fiscal_years()) == 13


def test_empty_registry() -> None:
    registry = SlabTableRegistry()
    assert registry.tables() == ()
    with pytest.raises(NotFoundError):
        registry.lookup(Regime.new, TaxpayerCategory.huf, "2024-25")


# ===========================================================================
# Onboarding configs
# ===========================================================================

def test_table_from_camel_case_config() -> None:
    config = {
        "regime": "old",
        "category": "senior_citizen",
        "fiscalYear": "2026-27",
        "slabs": [
            {"lowerBound": 0, "upperBound": 300_000, "marginalRate": "0"},
            {"lowerBound": 300_000, "upperBound": "unbounded", "marginalRate": "0.1"},
        ],
        "cessRate": "0.04",
        "surchargeBands": [],
        "rebate": {"incomeCeiling": 500_000, "maxRebate": 12_500},
        "standardDeductionCap": 60_000,
    }
    table = table_from_config(config)
    assert table.key == (Regime.old, TaxpayerCategory.senior_citizen, "2026-27")
    assert table.slabs[-1].upper_bound is None
    assert table.rebate.max_rebate == D("12500")
    assert table.cap_overrides == {DeductionSection.standard_deduction: D("60000")}


@pytest.mark.parametrize(
    "overrides, issue",
    [
        pytest.param(
            {"slabs": [
                {"lower_bound": 100, "upper_bound": 200, "marginal_rate": "0"},
                {"lower_bound": 200, "upper_bound": None, "marginal_rate": "0.1"},
            ]},
            "first slab must start at 0",
            id="first_slab_not_zero",
        ),
        pytest.param(
            {"slabs": [
                {"lower_bound": 0, "upper_bound": 300, "marginal_rate": "0"},
                {"lower_bound": 400, "upper_bound": None, "marginal_rate": "0.1"},
            ]},
            "contiguous",
            id="gap_between_slabs",
        ),
        pytest.param(
            {"slabs": [
                {"lower_bound": 0, "upper_bound": 300, "marginal_rate": "0"},
                {"lower_bound": 300, "upper_bound": 600, "marginal_rate": "0.1"},
            ]},
            "final slab must be unbounded",
            id="last_slab_bounded",
        ),
        pytest.param(
            {"slabs": [
                {"lower_bound": 0, "upper_bound": None, "marginal_rate": "0"},
                {"lower_bound": 300, "upper_bound": None, "marginal_rate": "0.1"},
            ]},
            "not the final slab",
            id="unbounded_middle_slab",
        ),
        pytest.param(
            {"surcharge_bands": [
                {"threshold": 10_000_000, "rate": "0.15"},
                {"threshold": 5_000_000, "rate": "0.10"},
            ]},
            "strictly ascending",
            id="descending_surcharge_bands",
        ),
        pytest.param(
            {"standard_deduction_cap": -1},
            "greater than or equal to 0",
            id="negative_standard_deduction_cap",
        ),
    ],
)
def test_invalid_layout_rejected(overrides, issue) -> None:
    with pytest.raises(InvalidInputError) as exc_info:
        table_from_config(_config(**overrides))
    assert any(issue in detail.issue for detail in exc_info.value.details)


def test_field_errors_carry_dotted_path() -> None:
    with pytest.raises(InvalidInputError) as exc_info:
        table_from_config(_config(cess_rate="-0.04", regime="middle"))
    fields = {detail.field for detail in exc_info.value.details}
    assert {"cess_rate", "regime"} <= fields


def test_negative_slab_rate_rejected() -> None:
    slabs = [{"lower_bound": 0, "upper_bound": None, "marginal_rate": "-0.1"}]
    with pytest.raises(InvalidInputError) as exc_info:
        table_from_config(_config(slabs=slabs))
    assert exc_info.value.details[0].field == "slabs.0.marginal_rate"


def test_load_tables_file(tmp_path) -> None:
    path = tmp_path / "tables.json"
    path.write_text(json.dumps([_config(), _config(regime="old")]), encoding="utf-8")

    tables = load_tables_file(path)
    assert [t.regime for t in tables] == [Regime.new, Regime.old]
    assert tables[0].cess_rate == D("0.04")


def test_load_tables_file_keeps_float_precision(tmp_path) -> None:
    path = tmp_path / "tables.json"
    path.write_text(
        '[{"regime": "new", "category": "huf", "fiscalYear": "2026-27", "cessRate": 0.04,'
        ' "slabs": [{"lowerBound": 0, "upperBound": null, "marginalRate": 0.1}]}]',
        encoding="utf-8",
    )
    (table,) = load_tables_file(path)
    assert table.slabs[0].marginal_rate == D("0.1")
    assert table.cess_rate == D("0.04")


def test_load_tables_file_requires_list(tmp_path) -> None:
    path = tmp_path / "tables.json"
    path.write_text(json.dumps(_config()), encoding="utf-8")
    with pytest.raises(InvalidInputError):
        load_tables_file(path)
