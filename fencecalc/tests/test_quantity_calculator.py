from dataclasses import replace
from decimal import Decimal

import pytest

from fencecalc.core.errors import CalculatorError, ParameterNotFound
from fencecalc.services.parameter_resolver import FormulaParameterResolver
from fencecalc.services.quantity_calculator import calculate_quantities, line_post_count
from fencecalc.services.rule_engine import RuleEngine
from fencecalc.tests.catalog_fixtures import (
    HORIZONTAL_TYPE,
    IRON_TYPE,
    PRODUCT_TYPE,
    ad_hoc_configuration,
    add_other_product_types,
    build_snapshot,
    configuration_for,
)


def _calculate(snapshot, configuration):
    evaluation = RuleEngine(snapshot.rules).evaluate(
        configuration.product_type, configuration.style, configuration.attributes()
    )
    assert evaluation.ok, evaluation.violations
    return calculate_quantities(snapshot, FormulaParameterResolver(snapshot), configuration, evaluation)


def _by_sku(result):
    out = {}
    for line in result.materials:
        out[line.material.sku] = out.get(line.material.sku, Decimal("0")) + line.quantity
    return out


def test_line_post_count():
    assert line_post_count(Decimal("100"), Decimal("8"), 1) == Decimal("14")
    assert line_post_count(Decimal("96"), Decimal("8"), 1) == Decimal("13")
    # every two lines past the second add one end post
    assert line_post_count(Decimal("100"), Decimal("8"), 3) == Decimal("15")
    assert line_post_count(Decimal("100"), Decimal("8"), 4) == Decimal("15")
    assert line_post_count(Decimal("100"), Decimal("8"), 5) == Decimal("16")


def test_line_post_count_rejects_zero_spacing():
    with pytest.raises(ValueError):
        line_post_count(Decimal("100"), Decimal("0"), 1)


def test_standard_six_foot_wood():
    snapshot = build_snapshot()
    result = _calculate(snapshot, configuration_for(snapshot, "A06"))

    assert result.issues == []
    assert result.post_spacing == Decimal("8")
    assert result.line_posts == Decimal("14")
    assert result.total_posts == Decimal("14")
    assert _by_sku(result) == {
        "PS-4X4-8": Decimal("14"),
        "PK-1X6-6": Decimal("224"),
        "RL-2X4-8": Decimal("26"),
    }


def test_good_neighbor_spacing_and_multiplier():
    snapshot = build_snapshot()
    result = _calculate(snapshot, configuration_for(snapshot, "GN06"))

    assert result.post_spacing == Decimal("7.71")
    assert _by_sku(result)["PS-4X4-8"] == Decimal("14")
    # 100 * 12 * 1.025 * 1.1 / 5.5 is exactly 246
    assert _by_sku(result)["PK-1X6-6"] == Decimal("246")


def test_steel_posts_with_gate():
    snapshot = build_snapshot()
    result = _calculate(snapshot, configuration_for(snapshot, "S06", gates=1))

    quantities = _by_sku(result)
    assert result.total_posts == Decimal("15")
    assert quantities["PS-STL-8"] == Decimal("15")
    assert quantities["PC-DOME"] == Decimal("15")
    assert "PC-PLUG" not in quantities
    # rails and brackets follow the line posts, before gate posts
    assert quantities["RL-2X4-8"] == Decimal("26")
    assert quantities["BR-STL"] == Decimal("28")


def test_steel_with_cap_and_trim_uses_plug_caps():
    snapshot = build_snapshot()
    result = _calculate(snapshot, configuration_for(snapshot, "S06-CT"))

    quantities = _by_sku(result)
    assert quantities["PC-PLUG"] == Decimal("14")
    assert "PC-DOME" not in quantities
    assert quantities["CP-2X6-8"] == Decimal("12.5")
    assert quantities["TR-1X4-8"] == Decimal("12.5")


def test_wood_posts_with_gate_get_separate_steel_post_line():
    snapshot = build_snapshot()
    result = _calculate(snapshot, configuration_for(snapshot, "A06", gates=1))

    quantities = _by_sku(result)
    assert quantities["PS-4X4-8"] == Decimal("13")
    assert quantities["PS-STL-8"] == Decimal("2")
    assert result.total_posts == Decimal("15")
    assert quantities["RL-2X4-8"] == Decimal("26")

    gate_line = [line for line in result.materials if line.material.sku == "PS-STL-8"][0]
    assert gate_line.component == "post"
    assert gate_line.note == "Gate posts for wood fences"


def test_removal_never_goes_negative():
    snapshot = build_snapshot()
    # 3 ft net: 2 line posts, 3 gates remove 3
    result = _calculate(snapshot, configuration_for(snapshot, "A06", total_footage="8", gates=3))

    quantities = _by_sku(result)
    assert "PS-4X4-8" not in quantities
    assert quantities["PS-STL-8"] == Decimal("6")
    assert result.total_posts == Decimal("6")


def test_ineligible_assignment_is_reported_and_rest_still_calculated():
    snapshot = build_snapshot()
    eight_foot_picket = snapshot.material_by_sku("PK-1X6-8").id
    configuration = configuration_for(snapshot, "A06")
    configuration = replace(configuration, components={**configuration.components, "picket": eight_foot_picket})

    result = _calculate(snapshot, configuration)

    assert [issue.component for issue in result.issues] == ["picket"]
    assert "PK-1X6-8" in result.issues[0].message
    assert result.issues[0].material_filter == {"length_ft": "6"}
    assert _by_sku(result) == {"PS-4X4-8": Decimal("14"), "RL-2X4-8": Decimal("26")}


def test_inactive_assignment_is_not_eligible():
    snapshot = build_snapshot()
    old_picket = snapshot.material_by_sku("PK-1X6-6-OLD").id
    configuration = configuration_for(snapshot, "A06")
    configuration = replace(configuration, components={**configuration.components, "picket": old_picket})

    result = _calculate(snapshot, configuration)
    assert [issue.component for issue in result.issues] == ["picket"]


def test_missing_required_component_is_reported():
    snapshot = build_snapshot()
    configuration = configuration_for(snapshot, "A06")
    configuration = replace(
        configuration, components={k: v for k, v in configuration.components.items() if k != "rail"}
    )

    result = _calculate(snapshot, configuration)

    assert [(i.component, i.reason) for i in result.issues] == [("rail", "no material assigned")]
    assert "RL-2X4-8" not in _by_sku(result)
    assert _by_sku(result)["PS-4X4-8"] == Decimal("14")


def test_empty_eligible_set_is_reported():
    snapshot = build_snapshot()
    for material_id, material in list(snapshot.materials.items()):
        if material.sub_category == "Dome":
            snapshot.materials[material_id] = replace(material, status="Inactive")

    result = _calculate(snapshot, configuration_for(snapshot, "S06"))

    issues = [i for i in result.issues if i.component == "steel-post-cap"]
    assert len(issues) == 1
    assert issues[0].material_filter == {"sub_category": "Dome"}
    assert "PC-PLUG" not in _by_sku(result)


def test_net_length_zero_produces_nothing():
    snapshot = build_snapshot()
    result = _calculate(snapshot, configuration_for(snapshot, "A06", total_footage="4"))

    assert result.materials == []
    assert result.issues == []
    assert result.total_posts == Decimal("0")


def test_missing_post_spacing_raises():
    snapshot = build_snapshot()
    snapshot.product_types[PRODUCT_TYPE] = replace(snapshot.product_types[PRODUCT_TYPE], default_post_spacing=None)

    with pytest.raises(ParameterNotFound) as exc:
        _calculate(snapshot, configuration_for(snapshot, "A06"))
    assert exc.value.key == "post_spacing"


def test_sku_post_spacing_overrides_catalog():
    snapshot = build_snapshot()
    configuration = replace(configuration_for(snapshot, "A06"), post_spacing=Decimal("6"))
    result = _calculate(snapshot, configuration)

    assert result.post_spacing == Decimal("6")
    assert result.line_posts == Decimal("18")


def test_unknown_calculator_class():
    snapshot = build_snapshot()
    snapshot.product_types[PRODUCT_TYPE] = replace(snapshot.product_types[PRODUCT_TYPE], calculator_class="chain_link")

    with pytest.raises(CalculatorError) as exc:
        _calculate(snapshot, configuration_for(snapshot, "A06"))
    assert "chain_link" in str(exc.value)


def test_multiple_lines_add_end_posts():
    snapshot = build_snapshot()
    result = _calculate(snapshot, configuration_for(snapshot, "A06", lines=3))

    assert result.line_posts == Decimal("15")
    assert _by_sku(result)["RL-2X4-8"] == Decimal("28")


def test_board_on_board_picket_multiplier():
    snapshot = build_snapshot()
    configuration = replace(configuration_for(snapshot, "A06"), style="board-on-board")
    result = _calculate(snapshot, configuration)

    # ceil(100 * 12 * 1.025 * 1.14 / 5.5) = ceil(254.95)
    assert _by_sku(result)["PK-1X6-6"] == Decimal("255")
    assert _by_sku(result)["PS-4X4-8"] == Decimal("14")


HORIZONTAL_PARTS = {"post": "PS-4X4-8", "board": "BD-1X6-8", "nailer": "NL-2X4-8", "vertical-trim": "VT-1X4-6"}
IRON_PARTS = {"post": "IP-2X2-6", "panel": "IPN-6X8", "bracket": "IB-BRK", "iron-post-cap": "IPC-BALL"}


def test_wood_horizontal_boards_nailers_and_trim():
    snapshot = add_other_product_types(build_snapshot())
    configuration = ad_hoc_configuration(snapshot, HORIZONTAL_TYPE, "standard", "WOOD", HORIZONTAL_PARTS)
    result = _calculate(snapshot, configuration)

    assert result.issues == []
    assert result.post_spacing == Decimal("6")
    assert _by_sku(result) == {
        # ceil(100 / 6) + 1
        "PS-4X4-8": Decimal("18"),
        # ceil(6 * 12 / 5.5) = 14 rows of 8 ft boards over 100 ft
        "BD-1X6-8": Decimal("175"),
        "NL-2X4-8": Decimal("17"),
        "VT-1X4-6": Decimal("18"),
    }


def test_wood_horizontal_style_board_multiplier():
    snapshot = add_other_product_types(build_snapshot())
    configuration = ad_hoc_configuration(snapshot, HORIZONTAL_TYPE, "shadow-box", "WOOD", HORIZONTAL_PARTS)
    assert _by_sku(_calculate(snapshot, configuration))["BD-1X6-8"] == Decimal("350")


def test_wood_horizontal_board_width_from_options():
    snapshot = add_other_product_types(build_snapshot())
    parts = {**HORIZONTAL_PARTS, "board": "BD-1X8-8"}
    configuration = ad_hoc_configuration(
        snapshot, HORIZONTAL_TYPE, "standard", "WOOD", parts, options={"board_width": "7.25"}
    )
    # ceil(72 / 7.25) = 10 rows
    assert _by_sku(_calculate(snapshot, configuration))["BD-1X8-8"] == Decimal("125")


def test_wood_horizontal_board_without_width_raises():
    snapshot = add_other_product_types(build_snapshot())
    parts = {**HORIZONTAL_PARTS, "board": "BD-1X8-8"}
    configuration = ad_hoc_configuration(snapshot, HORIZONTAL_TYPE, "standard", "WOOD", parts)

    with pytest.raises(ParameterNotFound) as exc:
        _calculate(snapshot, configuration)
    assert exc.value.key == "board_width"
    assert exc.value.component == "board"


def test_iron_panels_brackets_and_caps():
    snapshot = add_other_product_types(build_snapshot())
    configuration = ad_hoc_configuration(snapshot, IRON_TYPE, "standard", "IRON", IRON_PARTS)
    result = _calculate(snapshot, configuration)

    assert result.issues == []
    assert result.post_spacing == Decimal("8")
    assert _by_sku(result) == {
        "IP-2X2-6": Decimal("14"),
        "IPN-6X8": Decimal("12.5"),
        # 12.5 panels * 2 rails * 2 ends
        "IB-BRK": Decimal("50"),
        "IPC-BALL": Decimal("14"),
    }


def test_iron_panel_width_option_overrides_parameter():
    snapshot = add_other_product_types(build_snapshot())
    configuration = ad_hoc_configuration(
        snapshot, IRON_TYPE, "standard", "IRON", IRON_PARTS, options={"panel_width": 6}
    )
    result = _calculate(snapshot, configuration)

    assert result.line_posts == Decimal("18")
    assert _by_sku(result)["IPN-6X8"] == Decimal("100") / Decimal("6")


def test_iron_without_panel_width_raises():
    snapshot = add_other_product_types(build_snapshot())
    snapshot.parameters[:] = [p for p in snapshot.parameters if p.key != "panel_width"]
    configuration = ad_hoc_configuration(snapshot, IRON_TYPE, "standard", "IRON", IRON_PARTS)

    with pytest.raises(ParameterNotFound) as exc:
        _calculate(snapshot, configuration)
    assert exc.value.key == "panel_width"
