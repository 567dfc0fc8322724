from datetime import date
from decimal import Decimal

import pytest

from fencecalc.core.errors import RuleDefinitionError, UnknownCatalogEntry
from fencecalc.database import SessionLocal
from fencecalc.models.formula_parameter import FormulaParameter
from fencecalc.models.labor import LaborCode
from fencecalc.models.product_rule import ProductRule
from fencecalc.services.catalog_store import load_snapshot
from fencecalc.services.configuration import ProductConfiguration
from fencecalc.services.estimate_service import calculate_line_item
from fencecalc.tests.catalog_fixtures import (
    BUSINESS_UNIT,
    LABOR_RULES,
    PRODUCT_TYPE,
    RULES,
    seed_catalog,
)


def test_load_snapshot_maps_ids_to_codes():
    db = SessionLocal()
    try:
        ids = seed_catalog(db)
        snapshot = load_snapshot(db)
    finally:
        db.close()

    assert snapshot.product_type(PRODUCT_TYPE).default_post_spacing == Decimal("8")
    assert snapshot.style(PRODUCT_TYPE, "good-neighbor").formula_adjustments["postSpacing"] == 7.71
    assert snapshot.required_components[PRODUCT_TYPE] == frozenset({"post", "picket", "rail"})
    assert snapshot.business_unit_code(ids["business_unit"]) == BUSINESS_UNIT

    sku = snapshot.sku_by_code("S06")
    assert sku.post_type == "STEEL"
    assert sku.config == {"rail_count": 2}
    assert sku.components["bracket"] == ids["materials"]["BR-STL"]

    assert [r.name for r in snapshot.rules] == [r["name"] for r in RULES]
    assert all(r.product_type == PRODUCT_TYPE for r in snapshot.rules)
    assert len(snapshot.labor_rules) == len(LABOR_RULES)
    good_neighbor = [r for r in snapshot.labor_rules if r.style == "good-neighbor"]
    assert len(good_neighbor) == 2

    waste = [p for p in snapshot.parameters if p.key == "waste_factor"]
    assert len(waste) == 1
    assert waste[0].product_type is None
    assert waste[0].value == Decimal("1.025")

    rates = [r for r in snapshot.labor_rates if r.labor_code_id == ids["labor"]["W02"]]
    assert {r.effective_date for r in rates} == {date(2025, 1, 1), date(2026, 1, 1)}


def test_loaded_catalog_calculates_like_the_in_memory_one():
    db = SessionLocal()
    try:
        seed_catalog(db)
        snapshot = load_snapshot(db)
    finally:
        db.close()

    configuration = ProductConfiguration.from_sku(
        snapshot.sku_by_code("GN06"), total_footage=Decimal("105"), buffer=Decimal("5")
    )
    result = calculate_line_item(snapshot, configuration)

    quantities = {m.material.sku: m.quantity for m in result.materials}
    assert quantities["PS-4X4-8"] == Decimal("14")
    assert quantities["PK-1X6-6"] == Decimal("246")
    assert {labor.labor_code.sku for labor in result.labor} == {"W02", "W03", "W06"}


def test_scoped_parameter_rows_are_loaded_with_their_scope():
    db = SessionLocal()
    try:
        ids = seed_catalog(db)
        db.add(
            FormulaParameter(
                product_type_id=ids["product_type"],
                product_style_id=ids["styles"]["board-on-board"],
                component_id=ids["components"]["picket"],
                parameter_key="picket_multiplier",
                parameter_value=Decimal("1.15"),
            )
        )
        db.commit()
        snapshot = load_snapshot(db)
    finally:
        db.close()

    row = [p for p in snapshot.parameters if p.key == "picket_multiplier"][0]
    assert (row.product_type, row.style, row.component) == (PRODUCT_TYPE, "board-on-board", "picket")


def test_malformed_rule_row_fails_the_load():
    db = SessionLocal()
    try:
        ids = seed_catalog(db)
        db.add(
            ProductRule(
                product_type_id=ids["product_type"],
                rule_type="constraint",
                name="Broken constraint",
                condition_json={"height": {"~": 8}},
                action_json={"field": "rail_count", "allowed": [3]},
            )
        )
        db.commit()

        with pytest.raises(RuleDefinitionError) as exc:
            load_snapshot(db)
        assert exc.value.rule_name == "Broken constraint"
    finally:
        db.close()


def test_double_applying_rule_rows_fail_the_load():
    db = SessionLocal()
    try:
        seed_catalog(db)
        db.add(
            ProductRule(
                rule_type="conditional_component",
                name="Any gate adds a post",
                condition_json={"gates": {">": 0}},
                action_json={"add": {"component": "post", "quantity": "gates"}},
            )
        )
        db.commit()

        with pytest.raises(RuleDefinitionError):
            load_snapshot(db)
    finally:
        db.close()


def test_unknown_sku_code():
    db = SessionLocal()
    try:
        seed_catalog(db)
        snapshot = load_snapshot(db)
    finally:
        db.close()

    with pytest.raises(UnknownCatalogEntry):
        snapshot.sku_by_code("ZZ99")


def test_deactivated_labor_code_drops_its_rules():
    db = SessionLocal()
    try:
        seed_catalog(db)
        db.query(LaborCode).filter(LaborCode.labor_sku == "W03").update({"is_active": False})
        db.commit()
        snapshot = load_snapshot(db)
    finally:
        db.close()

    assert "W03" not in {code.sku for code in snapshot.labor_codes.values()}
    assert all(snapshot.labor_codes.get(rule.labor_code_id) for rule in snapshot.labor_rules)

    configuration = ProductConfiguration.from_sku(
        snapshot.sku_by_code("A06"), total_footage=Decimal("105"), buffer=Decimal("5")
    )
    result = calculate_line_item(snapshot, configuration)
    assert {labor.labor_code.sku for labor in result.labor} == {"W02"}
