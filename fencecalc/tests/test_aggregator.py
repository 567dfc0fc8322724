from dataclasses import replace
from decimal import Decimal

import pytest

from fencecalc.services import aggregator
from fencecalc.services.aggregator import BolLine, BomLine, round_labor, round_to_purchasable
from fencecalc.services.labor_selector import LaborQuantity
from fencecalc.services.quantity_calculator import MaterialQuantity
from fencecalc.tests.catalog_fixtures import build_snapshot


def test_round_to_purchasable_units():
    assert round_to_purchasable(Decimal("12.5"), Decimal("1")) == Decimal("13")
    assert round_to_purchasable(Decimal("13"), Decimal("1")) == Decimal("13")
    assert round_to_purchasable(Decimal("23"), Decimal("10")) == Decimal("30")
    assert round_to_purchasable(Decimal("0.2"), None) == Decimal("1")


def test_labor_rounds_to_the_cent_half_up():
    assert round_labor(Decimal("10.005")) == Decimal("10.01")
    assert round_labor(Decimal("10.004")) == Decimal("10.00")


def test_lines_are_summed_before_rounding():
    snapshot = build_snapshot()
    cap = snapshot.material_by_sku("CP-2X6-8")

    bom = aggregator.aggregate_materials(
        [
            MaterialQuantity("cap", cap, Decimal("12.5")),
            MaterialQuantity("cap", cap, Decimal("12.5")),
        ]
    )

    assert len(bom) == 1
    assert bom[0].calculated_quantity == Decimal("25")
    assert bom[0].rounded_quantity == Decimal("25")


def test_manual_quantity_takes_precedence_even_when_zero():
    snapshot = build_snapshot()
    post = snapshot.material_by_sku("PS-4X4-8")

    line = BomLine(post, Decimal("13.2"))
    assert line.final_quantity == Decimal("14")
    assert line.extended_cost == Decimal("175.00")

    line.manual_quantity = Decimal("0")
    assert line.final_quantity == Decimal("0")
    assert line.extended_cost == Decimal("0")

    line.manual_quantity = Decimal("20")
    assert line.extended_cost == Decimal("250.00")


def test_pack_sized_material():
    snapshot = build_snapshot()
    screws = replace(snapshot.material_by_sku("BR-STL"), quantity_per_unit=Decimal("50"), unit_cost=Decimal("0.10"))

    line = BomLine(screws, Decimal("28"))
    assert line.rounded_quantity == Decimal("50")
    assert line.extended_cost == Decimal("5.00")


def test_labor_lines_sum_per_code_and_price():
    snapshot = build_snapshot()
    w02 = snapshot.labor_code(1)

    bol = aggregator.aggregate_labor(
        [
            LaborQuantity(w02, "net_length", Decimal("60.004"), "Set Post labor"),
            LaborQuantity(w02, "net_length", Decimal("40.002"), "Set Post labor"),
        ],
        lambda code: Decimal("2.50"),
    )

    assert len(bol) == 1
    assert bol[0].calculated_quantity == Decimal("100.01")
    assert bol[0].extended_cost == Decimal("250.025")

    bol[0].manual_quantity = Decimal("90")
    assert bol[0].final_quantity == Decimal("90")
    assert bol[0].extended_cost == Decimal("225.00")


def test_three_part_concrete():
    snapshot = build_snapshot()
    lines, issues = aggregator.concrete_quantities(snapshot, "3-part", Decimal("15"))

    assert issues == []
    assert {line.material.sku: line.quantity for line in lines} == {
        "CTS": Decimal("2"),
        "CTP": Decimal("1"),
        "CTQ": Decimal("7.5"),
    }


def test_bagged_concrete():
    snapshot = build_snapshot()

    yellow, _ = aggregator.concrete_quantities(snapshot, "yellow-bags", Decimal("15"))
    assert [(line.material.sku, line.quantity) for line in yellow] == [("CTY", Decimal("10"))]

    red, _ = aggregator.concrete_quantities(snapshot, "red-bags", Decimal("15"))
    assert [(line.material.sku, line.quantity) for line in red] == [("CTR", Decimal("15"))]


def test_no_concrete_without_posts():
    snapshot = build_snapshot()
    assert aggregator.concrete_quantities(snapshot, "3-part", Decimal("0")) == ([], [])


def test_missing_concrete_material_is_reported():
    snapshot = build_snapshot()
    portland = snapshot.material_by_sku("CTP")
    snapshot.materials[portland.id] = replace(portland, status="Inactive")

    lines, issues = aggregator.concrete_quantities(snapshot, "3-part", Decimal("14"))

    assert [line.material.sku for line in lines] == ["CTS", "CTQ"]
    assert [issue.as_dict() for issue in issues] == [
        {"component": "concrete", "filter": {"material_sku": "CTP"}, "message": "concrete: material CTP not available"}
    ]


def test_unknown_concrete_type():
    with pytest.raises(ValueError):
        aggregator.concrete_quantities(build_snapshot(), "blue-bags", Decimal("10"))


def test_totals_and_cost_per_foot():
    snapshot = build_snapshot()
    bom = [BomLine(snapshot.material_by_sku("PS-4X4-8"), Decimal("14"))]
    bol = [BolLine(snapshot.labor_code(1), Decimal("100"), Decimal("2.50"))]

    totals = aggregator.totals(Decimal("100"), bom, bol)

    assert totals.material_cost == Decimal("175.00")
    assert totals.labor_cost == Decimal("250.00")
    assert totals.project_cost == Decimal("425.00")
    assert totals.cost_per_foot == Decimal("4.25")


def test_cost_per_foot_without_footage_is_zero():
    assert aggregator.totals(Decimal("0"), [], []).cost_per_foot == Decimal("0")
