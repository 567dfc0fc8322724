from decimal import Decimal

import pytest

from fencecalc.core.errors import ParameterNotFound
from fencecalc.services.catalog import ParameterRecord
from fencecalc.services.parameter_resolver import FormulaParameterResolver, scope_chain
from fencecalc.tests.catalog_fixtures import PRODUCT_TYPE, build_snapshot


def _resolver(*extra):
    snapshot = build_snapshot()
    snapshot.parameters.extend(extra)
    return FormulaParameterResolver(snapshot)


def test_scope_chain_goes_from_most_specific_to_global():
    assert list(scope_chain("wood-vertical", "standard", "picket")) == [
        ("wood-vertical", "standard", "picket"),
        ("wood-vertical", "standard", None),
        ("wood-vertical", None, "picket"),
        ("wood-vertical", None, None),
        (None, None, None),
    ]


def test_global_row_applies_to_every_scope():
    resolver = _resolver()
    assert resolver.resolve("waste_factor", PRODUCT_TYPE, "standard", "picket") == Decimal("1.025")
    assert resolver.resolve("waste_factor", "iron") == Decimal("1.025")


def test_more_specific_row_wins():
    resolver = _resolver(
        ParameterRecord(key="waste_factor", value=Decimal("1.05"), product_type=PRODUCT_TYPE),
        ParameterRecord(key="waste_factor", value=Decimal("1.10"), product_type=PRODUCT_TYPE, component="picket"),
        ParameterRecord(
            key="waste_factor", value=Decimal("1.20"), product_type=PRODUCT_TYPE, style="board-on-board"
        ),
    )

    assert resolver.resolve("waste_factor", PRODUCT_TYPE, "standard", "rail") == Decimal("1.05")
    assert resolver.resolve("waste_factor", PRODUCT_TYPE, "standard", "picket") == Decimal("1.10")
    # style scope ranks above component-without-style
    assert resolver.resolve("waste_factor", PRODUCT_TYPE, "board-on-board", "picket") == Decimal("1.20")


def test_style_adjustments_fill_in_when_no_row_exists():
    resolver = _resolver()
    assert resolver.resolve("post_spacing", PRODUCT_TYPE, "good-neighbor", "post") == Decimal("7.71")
    assert resolver.resolve("picket_multiplier", PRODUCT_TYPE, "good-neighbor", "picket") == Decimal("1.1")


def test_style_adjustment_beats_type_and_global_rows():
    resolver = _resolver(
        ParameterRecord(key="post_spacing", value=Decimal("8"), product_type=None),
        ParameterRecord(key="post_spacing", value=Decimal("6"), product_type=PRODUCT_TYPE),
    )
    assert resolver.resolve("post_spacing", PRODUCT_TYPE, "good-neighbor", "post") == Decimal("7.71")
    assert resolver.resolve("post_spacing", PRODUCT_TYPE, "standard", "post") == Decimal("6")


def test_style_scoped_row_beats_style_adjustment():
    resolver = _resolver(
        ParameterRecord(key="post_spacing", value=Decimal("7.5"), product_type=PRODUCT_TYPE, style="good-neighbor"),
    )
    assert resolver.resolve("post_spacing", PRODUCT_TYPE, "good-neighbor", "post") == Decimal("7.5")


def test_type_default_spacing_beats_global_row():
    resolver = _resolver(ParameterRecord(key="post_spacing", value=Decimal("6")))
    assert resolver.resolve("post_spacing", PRODUCT_TYPE, "standard", "post") == Decimal("8")
    assert resolver.resolve("post_spacing", "chain-link") == Decimal("6")


def test_product_type_default_post_spacing():
    resolver = _resolver()
    assert resolver.resolve("post_spacing", PRODUCT_TYPE, "standard", "post") == Decimal("8")


def test_neutral_multiplier_default():
    resolver = _resolver()
    assert resolver.resolve("picket_multiplier", PRODUCT_TYPE, "standard", "picket") == Decimal("1")


def test_find_returns_none_without_fallbacks():
    resolver = _resolver()
    assert resolver.find("post_spacing", PRODUCT_TYPE, "good-neighbor", "post") is None


def test_missing_parameter_raises():
    resolver = _resolver()
    with pytest.raises(ParameterNotFound) as exc:
        resolver.resolve("rail_count", PRODUCT_TYPE, "standard", "rail")

    assert exc.value.key == "rail_count"
    assert "rail_count" in str(exc.value)
    assert "component=rail" in str(exc.value)
