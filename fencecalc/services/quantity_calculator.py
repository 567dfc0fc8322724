"""
Per-component quantity formulas.

One strategy per ProductType.calculator_class. Strategies return line
quantities before rule deltas; gate add/remove instructions and per-post
components are applied afterwards by `calculate_quantities`. Everything is
a Decimal and nothing is rounded here except the ceil terms the formulas
themselves contain.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from fencecalc.core.errors import CalculatorError, NoEligibleMaterial
from fencecalc.services.catalog import CatalogSnapshot, MaterialRecord
from fencecalc.services.configuration import ProductConfiguration
from fencecalc.services.eligibility import eligible_materials
from fencecalc.services.expressions import ceil_decimal, to_decimal
from fencecalc.services.parameter_resolver import FormulaParameterResolver
from fencecalc.services.rule_engine import MaterialFilter, RuleEvaluation

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
DEFAULT_PICKET_WIDTH = Decimal("5.5")
DEFAULT_STOCK_LENGTH_FT = Decimal("8")

# bought by the linear foot of fence: net_length / stock length
LINEAR_COMPONENTS = ("cap", "trim", "rot-board")


@dataclass(frozen=True)
class MaterialQuantity:
    component: str
    material: MaterialRecord
    quantity: Decimal
    note: Optional[str] = None


@dataclass
class QuantityResult:
    materials: List[MaterialQuantity] = field(default_factory=list)
    issues: List[NoEligibleMaterial] = field(default_factory=list)
    line_posts: Decimal = ZERO
    total_posts: Decimal = ZERO
    post_spacing: Optional[Decimal] = None


@dataclass(frozen=True)
class StrategyOutput:
    line_posts: Decimal
    quantities: Dict[str, Decimal]
    spacing: Decimal
    per_post: Tuple[str, ...] = ()


class CalculationContext:
    def __init__(
        self,
        snapshot: CatalogSnapshot,
        resolver: FormulaParameterResolver,
        configuration: ProductConfiguration,
        selected: Dict[str, MaterialRecord],
    ):
        self.snapshot = snapshot
        self.resolver = resolver
        self.configuration = configuration
        self.selected = selected

    @property
    def net_length(self) -> Decimal:
        return self.configuration.net_length

    @property
    def is_steel(self) -> bool:
        return self.configuration.post_type.upper() == "STEEL"

    def has(self, component: str) -> bool:
        return component in self.selected

    def material(self, component: str) -> MaterialRecord:
        return self.selected[component]

    def param(self, key: str, component: Optional[str] = None) -> Decimal:
        return self.resolver.resolve(
            key, self.configuration.product_type, self.configuration.style, component
        )

    def post_spacing(self) -> Decimal:
        if self.configuration.post_spacing is not None:
            return to_decimal(self.configuration.post_spacing)
        return self.param("post_spacing", "post")

    def rail_count(self) -> Decimal:
        if self.configuration.rail_count is not None:
            return to_decimal(self.configuration.rail_count)
        return self.param("rail_count", "rail")

    def option_or_param(self, key: str, component: Optional[str] = None) -> Decimal:
        value = self.configuration.option(key)
        if value is not None:
            return value
        return self.param(key, component)

    def stock_length(self, component: str) -> Decimal:
        length = self.material(component).length_ft
        return to_decimal(length) if length else DEFAULT_STOCK_LENGTH_FT


def line_post_count(net_length: Decimal, spacing: Decimal, lines: int) -> Decimal:
    if spacing <= 0:
        raise ValueError(f"Post spacing must be positive, got {spacing}")
    sections = ceil_decimal(net_length / spacing)
    extra_for_lines = ceil_decimal(Decimal(max(lines - 2, 0)) / 2)
    return sections + 1 + extra_for_lines


def _linear_components(ctx: CalculationContext, quantities: Dict[str, Decimal]) -> None:
    for component in LINEAR_COMPONENTS:
        if ctx.has(component):
            quantities[component] = ctx.net_length / ctx.stock_length(component)


def wood_vertical(ctx: CalculationContext) -> StrategyOutput:
    net = ctx.net_length
    spacing = ctx.post_spacing()
    posts = line_post_count(net, spacing, ctx.configuration.lines)
    quantities: Dict[str, Decimal] = {"post": posts}

    if ctx.has("picket"):
        width = ctx.material("picket").actual_width or DEFAULT_PICKET_WIDTH
        waste = ctx.param("waste_factor", "picket")
        multiplier = ctx.param("picket_multiplier", "picket")
        # multiply before dividing so exact products (1353 / 5.5) stay exact
        quantities["picket"] = ceil_decimal(net * 12 * waste * multiplier / to_decimal(width))

    needs_brackets = ctx.is_steel and ctx.has("bracket")
    if ctx.has("rail") or needs_brackets:
        rail_count = ctx.rail_count()
        if ctx.has("rail"):
            quantities["rail"] = (posts - 1) * rail_count
        if needs_brackets:
            quantities["bracket"] = posts * rail_count

    _linear_components(ctx, quantities)

    per_post = ("steel-post-cap",) if ctx.is_steel else ()
    return StrategyOutput(line_posts=posts, quantities=quantities, spacing=spacing, per_post=per_post)


def wood_horizontal(ctx: CalculationContext) -> StrategyOutput:
    net = ctx.net_length
    spacing = ctx.post_spacing()
    posts = line_post_count(net, spacing, ctx.configuration.lines)
    quantities: Dict[str, Decimal] = {"post": posts}

    if ctx.has("board"):
        board = ctx.material("board")
        if board.actual_width:
            board_width = to_decimal(board.actual_width)
        else:
            board_width = ctx.option_or_param("board_width", "board")
        board_length = to_decimal(board.length_ft) if board.length_ft else DEFAULT_STOCK_LENGTH_FT
        rows = ceil_decimal(to_decimal(ctx.configuration.height) * 12 / board_width)
        multiplier = ctx.param("board_multiplier", "board")
        quantities["board"] = rows * net * multiplier / board_length

    if ctx.has("nailer"):
        quantities["nailer"] = ceil_decimal(net / spacing)

    _linear_components(ctx, quantities)

    per_post = ("vertical-trim",)
    if ctx.is_steel:
        per_post += ("steel-post-cap",)
    return StrategyOutput(line_posts=posts, quantities=quantities, spacing=spacing, per_post=per_post)


def iron(ctx: CalculationContext) -> StrategyOutput:
    net = ctx.net_length
    panel_width = ctx.option_or_param("panel_width", "panel")
    posts = line_post_count(net, panel_width, ctx.configuration.lines)
    panels = net / panel_width
    quantities: Dict[str, Decimal] = {"post": posts}

    if ctx.has("panel"):
        quantities["panel"] = panels

    if ctx.has("bracket"):
        rails_per_panel = ctx.option_or_param("rails_per_panel", "bracket")
        quantities["bracket"] = panels * rails_per_panel * 2

    return StrategyOutput(line_posts=posts, quantities=quantities, spacing=panel_width, per_post=("iron-post-cap",))


STRATEGIES: Dict[str, Callable[[CalculationContext], StrategyOutput]] = {
    "wood_vertical": wood_vertical,
    "wood_horizontal": wood_horizontal,
    "iron": iron,
}


def _merged_filter(filters: Sequence[MaterialFilter]) -> Dict[str, object]:
    merged: Dict[str, object] = {}
    for f in filters:
        merged.update(f.as_dict())
    return merged


def select_materials(
    snapshot: CatalogSnapshot,
    configuration: ProductConfiguration,
    evaluation: RuleEvaluation,
) -> Tuple[Dict[str, MaterialRecord], List[NoEligibleMaterial]]:
    """
    Check every assigned material against its component's eligible set.

    Components with a derived material preference and no assignment take the
    first eligible material. Required components with no assignment and
    assignments outside the eligible set are reported, never raised.
    """
    product_type, style = configuration.product_type, configuration.style
    required = snapshot.required_components.get(product_type, frozenset())
    derived = {target for target, action in evaluation.derived.items() if action.material_filter is not None}

    ordered: List[str] = []
    for code in list(configuration.components) + sorted(required) + sorted(derived):
        if code not in ordered:
            ordered.append(code)

    selected: Dict[str, MaterialRecord] = {}
    issues: List[NoEligibleMaterial] = []

    for component in ordered:
        filters = evaluation.filters_for(component)
        eligible = eligible_materials(snapshot, component, product_type, style, filters)
        filter_dict = _merged_filter(filters)

        if not eligible:
            issues.append(NoEligibleMaterial(component, filter_dict))
            continue

        assigned_id = configuration.components.get(component)
        if assigned_id is None:
            if component in derived:
                selected[component] = eligible[0]
            else:
                issues.append(NoEligibleMaterial(component, filter_dict, reason="no material assigned"))
            continue

        material = snapshot.materials.get(int(assigned_id))
        if material is None or material not in eligible:
            label = material.sku if material is not None else f"id {assigned_id}"
            issues.append(
                NoEligibleMaterial(component, filter_dict, reason=f"assigned material {label} is not eligible")
            )
            continue
        selected[component] = material

    return selected, issues


def calculate_quantities(
    snapshot: CatalogSnapshot,
    resolver: FormulaParameterResolver,
    configuration: ProductConfiguration,
    evaluation: RuleEvaluation,
) -> QuantityResult:
    product_type = snapshot.product_type(configuration.product_type)
    strategy = STRATEGIES.get(product_type.calculator_class)
    if strategy is None:
        raise CalculatorError(
            f"Unknown calculator class '{product_type.calculator_class}' for product type '{product_type.code}'"
        )

    result = QuantityResult()
    if configuration.net_length <= 0:
        return result

    selected, issues = select_materials(snapshot, configuration, evaluation)
    result.issues.extend(issues)

    ctx = CalculationContext(snapshot, resolver, configuration, selected)
    output = strategy(ctx)
    result.line_posts = output.line_posts
    result.post_spacing = output.spacing

    quantities = dict(output.quantities)
    extra_lines: List[MaterialQuantity] = []

    for addition in evaluation.additions:
        if addition.material_filter is not None:
            # gate hardware is picked on its own filter, not the component's material_match filter
            candidates = eligible_materials(
                snapshot,
                addition.component,
                configuration.product_type,
                configuration.style,
                [addition.material_filter],
            )
            if not candidates:
                result.issues.append(NoEligibleMaterial(addition.component, addition.material_filter.as_dict()))
                continue
            extra_lines.append(
                MaterialQuantity(addition.component, candidates[0], addition.quantity, note=addition.rule_name)
            )
        else:
            quantities[addition.component] = quantities.get(addition.component, ZERO) + addition.quantity

    for removal in evaluation.removals:
        if removal.component in quantities:
            quantities[removal.component] = max(quantities[removal.component] - removal.quantity, ZERO)

    total_posts = quantities.get("post", ZERO) + sum(
        (line.quantity for line in extra_lines if line.component == "post"), ZERO
    )
    result.total_posts = total_posts

    for component in output.per_post:
        if component in selected:
            quantities[component] = total_posts

    for component, quantity in quantities.items():
        if component not in selected:
            continue
        if quantity > 0:
            result.materials.append(MaterialQuantity(component, selected[component], quantity))
    result.materials.extend(line for line in extra_lines if line.quantity > 0)

    if result.issues:
        logger.warning(
            "Material selection issues",
            extra={
                "product_type": configuration.product_type,
                "style": configuration.style,
                "issues": [issue.message for issue in result.issues],
            },
        )
    return result
