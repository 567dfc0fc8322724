from decimal import Decimal

import pytest

from fencecalc.core.errors import RuleDefinitionError
from fencecalc.services.rule_engine import (
    RuleEngine,
    compile_condition,
    compile_rule,
    pick_derived_values,
    validate_rule_set,
)
from fencecalc.tests.catalog_fixtures import PRODUCT_TYPE, build_snapshot, configuration_for


def _evaluate(sku_code, **kwargs):
    snapshot = build_snapshot()
    configuration = configuration_for(snapshot, sku_code, **kwargs)
    engine = RuleEngine(snapshot.rules)
    return engine.evaluate(configuration.product_type, configuration.style, configuration.attributes())


def test_eight_foot_fence_with_two_rails_is_rejected():
    evaluation = _evaluate("A08-2R")

    assert not evaluation.ok
    assert len(evaluation.violations) == 1
    violation = evaluation.violations[0]
    assert violation.rule_name == "Rail count for 8ft fence"
    assert violation.field == "rail_count"
    assert violation.value == 2
    assert violation.message == "8-foot fences require 3 or 4 rails"
    assert violation.as_dict() == {
        "rule": "Rail count for 8ft fence",
        "field": "rail_count",
        "value": 2,
        "message": "8-foot fences require 3 or 4 rails",
    }


def test_eight_foot_fence_with_three_rails_passes():
    evaluation = _evaluate("A08")
    assert evaluation.ok
    assert [f.length_ft for f in evaluation.filters_for("picket")] == [Decimal("8")]


def test_material_match_filters_follow_height_and_post_type():
    evaluation = _evaluate("A06")
    assert [f.length_ft for f in evaluation.filters_for("picket")] == [Decimal("6")]
    assert [f.sub_category for f in evaluation.filters_for("post")] == ["Wood 4x4"]

    steel = _evaluate("S06")
    assert [f.sub_category for f in steel.filters_for("post")] == ["Steel Post"]


def test_plug_caps_win_over_dome_when_cap_and_trim_present():
    evaluation = _evaluate("S06-CT")
    assert evaluation.derived["steel-post-cap"].material_filter.sub_category == "Plug"


def test_dome_caps_by_default_on_steel():
    evaluation = _evaluate("S06")
    assert evaluation.derived["steel-post-cap"].material_filter.sub_category == "Dome"
    assert evaluation.filters_for("steel-post-cap")[-1].sub_category == "Dome"


def test_wood_posts_get_no_post_cap_preference():
    assert "steel-post-cap" not in _evaluate("A06").derived


def test_equal_priority_derived_values_later_rule_wins():
    first = compile_rule(
        name="first",
        rule_type="derived_value",
        condition_json={},
        action_json={"field": "cap_style", "value": "flat"},
        priority=5,
        order=0,
    )
    second = compile_rule(
        name="second",
        rule_type="derived_value",
        condition_json={},
        action_json={"field": "cap_style", "value": "bevel"},
        priority=5,
        order=1,
    )
    low = compile_rule(
        name="low",
        rule_type="derived_value",
        condition_json={},
        action_json={"field": "cap_style", "value": "round"},
        priority=1,
        order=2,
    )

    assert pick_derived_values([second, first, low])["cap_style"].value == "bevel"


def test_wood_gate_adds_steel_posts_and_removes_wood_post():
    evaluation = _evaluate("A06", gates=1)

    assert len(evaluation.additions) == 1
    addition = evaluation.additions[0]
    assert addition.component == "post"
    assert addition.quantity == Decimal("2")
    assert addition.material_filter.sub_category == "Steel Post"

    assert [(r.component, r.quantity) for r in evaluation.removals] == [("post", Decimal("1"))]


def test_steel_gate_adds_one_post_per_gate():
    evaluation = _evaluate("S06", gates=2)
    assert [(a.component, a.quantity, a.material_filter) for a in evaluation.additions] == [
        ("post", Decimal("2"), None)
    ]
    assert evaluation.removals == []


def test_no_gate_rules_without_gates():
    evaluation = _evaluate("A06")
    assert evaluation.additions == []
    assert evaluation.removals == []


def test_overlapping_conditional_rules_are_rejected_at_load():
    snapshot = build_snapshot(
        extra_rules=[
            {
                "name": "Extra gate post",
                "rule_type": "conditional_component",
                "condition_json": {"gates": {">": 0}},
                "action_json": {"add": {"component": "post", "quantity": "gates"}},
                "priority": 1,
            }
        ]
    )

    with pytest.raises(RuleDefinitionError) as exc:
        RuleEngine(snapshot.rules)
    assert exc.value.rule_name == "Extra gate post"
    assert "double-apply" in str(exc.value)


def test_disjoint_conditional_rules_are_accepted():
    snapshot = build_snapshot(
        extra_rules=[
            {
                "name": "Tall fence extra rail",
                "rule_type": "conditional_component",
                "condition_json": {"height": {"min": 7}},
                "action_json": {"add": {"component": "rail", "quantity": "1"}},
                "priority": 1,
            },
            {
                "name": "Short fence fewer rails",
                "rule_type": "conditional_component",
                "condition_json": {"height": {"max": 6}},
                "action_json": {"remove": {"component": "rail", "quantity": "1"}},
                "priority": 1,
            },
        ]
    )

    validate_rule_set(snapshot.rules)


def test_overlap_check_ignores_different_product_types():
    first = compile_rule(
        name="a",
        rule_type="conditional_component",
        condition_json={},
        action_json={"add": {"component": "post", "quantity": "1"}},
        product_type="wood-vertical",
    )
    second = compile_rule(
        name="b",
        rule_type="conditional_component",
        condition_json={},
        action_json={"add": {"component": "post", "quantity": "1"}},
        product_type="iron",
    )
    validate_rule_set([first, second])


@pytest.mark.parametrize(
    "kwargs",
    [
        {"rule_type": "mystery", "condition_json": {}, "action_json": {}},
        {"rule_type": "constraint", "condition_json": {"height": {"~": 8}}, "action_json": {"field": "x", "min": 1}},
        {"rule_type": "constraint", "condition_json": {}, "action_json": {"allowed": [1]}},
        {"rule_type": "constraint", "condition_json": {}, "action_json": {"field": "rail_count"}},
        {"rule_type": "material_match", "condition_json": {}, "action_json": {"filter_materials": {"length_ft": 6}}},
        {
            "rule_type": "material_match",
            "condition_json": {"component": "picket"},
            "action_json": {"filter_materials": {"colour": "red"}},
        },
        {
            "rule_type": "conditional_component",
            "condition_json": {},
            "action_json": {"add": {"component": "post", "quantity": "gates ** 2"}},
        },
        {
            "rule_type": "conditional_component",
            "condition_json": {},
            "action_json": {"add": {"component": "post", "quantity": "ceil(gates, 2)"}},
        },
        {"rule_type": "conditional_component", "condition_json": {}, "action_json": {}},
        {"rule_type": "derived_value", "condition_json": {}, "action_json": {"field": "x"}},
        {"rule_type": "constraint", "condition_json": {"height": None}, "action_json": {"field": "x", "min": 1}},
        {"rule_type": "constraint", "condition_json": ["height"], "action_json": {"field": "x", "min": 1}},
    ],
)
def test_malformed_rules_fail_at_compile(kwargs):
    with pytest.raises(RuleDefinitionError) as exc:
        compile_rule(name="broken", **kwargs)
    assert exc.value.rule_name == "broken"


def test_unscoped_rules_apply_to_every_product_type():
    rule = compile_rule(
        name="Minimum footage",
        rule_type="constraint",
        condition_json={},
        action_json={"field": "net_length", "min": 10},
        error_message="Runs shorter than 10 feet are quoted by hand",
    )
    engine = RuleEngine([rule])

    evaluation = engine.evaluate("iron", "flat-top", {"net_length": Decimal("4")})
    assert [v.message for v in evaluation.violations] == ["Runs shorter than 10 feet are quoted by hand"]
    assert engine.evaluate("wood-vertical", "standard", {"net_length": Decimal("40")}).ok


def test_style_scoped_rule_only_applies_to_its_style():
    rule = compile_rule(
        name="Good neighbor rails",
        rule_type="constraint",
        condition_json={},
        action_json={"field": "rail_count", "allowed": [3]},
        product_type=PRODUCT_TYPE,
        style="good-neighbor",
    )
    engine = RuleEngine([rule])

    assert not engine.evaluate(PRODUCT_TYPE, "good-neighbor", {"rail_count": 2}).ok
    assert engine.evaluate(PRODUCT_TYPE, "standard", {"rail_count": 2}).ok


def test_inactive_rules_are_ignored():
    rule = compile_rule(
        name="Retired",
        rule_type="constraint",
        condition_json={},
        action_json={"field": "rail_count", "allowed": [9]},
        is_active=False,
    )
    assert RuleEngine([rule]).evaluate(PRODUCT_TYPE, "standard", {"rail_count": 2}).ok


def test_missing_constrained_field_is_a_violation():
    rule = compile_rule(
        name="Rails required",
        rule_type="constraint",
        condition_json={},
        action_json={"field": "rail_count", "min": 2},
    )
    evaluation = RuleEngine([rule]).evaluate(PRODUCT_TYPE, "standard", {})
    assert evaluation.violations[0].message == "rail_count=None is not allowed"


def test_applicable_rules_sorted_by_priority_then_order():
    snapshot = build_snapshot()
    configuration = configuration_for(snapshot, "S06-CT", gates=1)
    rules = RuleEngine(snapshot.rules).applicable_rules(
        configuration.product_type, configuration.style, configuration.attributes()
    )

    priorities = [r.priority for r in rules]
    assert priorities == sorted(priorities, reverse=True)
    assert rules[0].name == "Gate posts for steel fences"


def test_condition_predicates():
    condition, target = compile_condition(
        "conditions",
        {
            "style": {"in": ["Standard", "good-neighbor"]},
            "post_type": "steel",
            "gates": {">=": 1},
            "height": {"min": 6, "max": 8},
            "has_component": ["cap"],
            "not_has_component": "trim",
            "component": "post",
        },
    )
    attributes = {
        "style": "standard",
        "post_type": "STEEL",
        "gates": 1,
        "height": Decimal("6"),
        "components": frozenset({"post", "cap"}),
    }

    assert target == "post"
    assert condition.matches(attributes)
    assert not condition.matches({**attributes, "components": frozenset({"cap", "trim"})})
    assert not condition.matches({**attributes, "gates": 0})
    assert not condition.matches({**attributes, "height": Decimal("9")})
    assert not condition.matches({k: v for k, v in attributes.items() if k != "style"})
