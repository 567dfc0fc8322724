"""
Product rule engine.

Rule rows (`product_rules`) store a JSON condition and a JSON action. They
are compiled once into the closed set of predicate and action types below;
malformed rows fail at compile time with RuleDefinitionError instead of
surfacing halfway through a calculation.

Condition JSON (all keys must hold):
  {"height": 8}                        equality
  {"height": {"min": 7, "max": 8}}     inclusive range
  {"gates": {">": 0}}                  comparison (>, >=, <, <=, !=)
  {"style": {"in": ["a", "b"]}}        membership (a bare list works too)
  {"has_component": ["cap", "trim"]}   all listed components selected
  {"not_has_component": ["trim"]}      none of the listed components selected
  {"component": "picket"}              target component (material_match only)

Action JSON by rule type:
  constraint             {"field": "rail_count", "allowed": [3, 4]} or {"field": ..., "min": .., "max": ..}
  material_match         {"filter_materials": {"sub_category": "Steel Post", "length_ft": 8}}
  conditional_component  {"add": {"component": "post", "quantity": "gates * 2", "material_filter": {...}},
                          "remove": {"component": "post", "quantity": "gates * 1"}}
  derived_value          {"component": "steel-post-cap", "filter_materials": {...}} or {"field": ..., "value": ...}
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from fencecalc.core.errors import ConstraintViolation, RuleDefinitionError
from fencecalc.services.catalog import MaterialRecord
from fencecalc.services.expressions import Expression, ExpressionError, compile_expression, to_decimal

RULE_TYPES = ("constraint", "material_match", "conditional_component", "derived_value")

_COMPARISONS = {
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    "!=": lambda a, b: a != b,
}


def _normalize(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        return to_decimal(value)
    if isinstance(value, str):
        return value.strip().casefold()
    return value


def _components_of(attributes: Mapping[str, Any]) -> FrozenSet[str]:
    return frozenset(attributes.get("components") or ())


# ---------- Predicates ----------


@dataclass(frozen=True)
class Equals:
    field: str
    value: Any

    def matches(self, attributes: Mapping[str, Any]) -> bool:
        actual = attributes.get(self.field)
        if actual is None:
            return False
        return _normalize(actual) == _normalize(self.value)


@dataclass(frozen=True)
class Range:
    field: str
    minimum: Optional[Decimal] = None
    maximum: Optional[Decimal] = None

    def matches(self, attributes: Mapping[str, Any]) -> bool:
        actual = attributes.get(self.field)
        if actual is None:
            return False
        actual = to_decimal(actual)
        if self.minimum is not None and actual < self.minimum:
            return False
        if self.maximum is not None and actual > self.maximum:
            return False
        return True


@dataclass(frozen=True)
class Comparison:
    field: str
    operator: str
    operand: Decimal

    def matches(self, attributes: Mapping[str, Any]) -> bool:
        actual = attributes.get(self.field)
        if actual is None:
            return False
        return _COMPARISONS[self.operator](to_decimal(actual), self.operand)


@dataclass(frozen=True)
class Membership:
    field: str
    values: FrozenSet[Any]

    def matches(self, attributes: Mapping[str, Any]) -> bool:
        actual = attributes.get(self.field)
        if actual is None:
            return False
        return _normalize(actual) in self.values


@dataclass(frozen=True)
class HasComponent:
    components: FrozenSet[str]

    def matches(self, attributes: Mapping[str, Any]) -> bool:
        return self.components <= _components_of(attributes)


@dataclass(frozen=True)
class NotHasComponent:
    components: FrozenSet[str]

    def matches(self, attributes: Mapping[str, Any]) -> bool:
        return not (self.components & _components_of(attributes))


Predicate = Union[Equals, Range, Comparison, Membership, HasComponent, NotHasComponent]


@dataclass(frozen=True)
class Condition:
    predicates: Tuple[Predicate, ...] = ()

    def matches(self, attributes: Mapping[str, Any]) -> bool:
        return all(p.matches(attributes) for p in self.predicates)

    def excludes(self, other: "Condition") -> bool:
        """True when no attribute set can satisfy both conditions."""
        return any(_disjoint(a, b) for a in self.predicates for b in other.predicates)


def _disjoint(a: Predicate, b: Predicate) -> bool:
    if isinstance(a, HasComponent) and isinstance(b, NotHasComponent):
        return bool(a.components & b.components)
    if isinstance(a, NotHasComponent) and isinstance(b, HasComponent):
        return bool(a.components & b.components)

    a_field = getattr(a, "field", None)
    if a_field is None or a_field != getattr(b, "field", None):
        return False

    if isinstance(a, Equals):
        return not b.matches({a.field: a.value})
    if isinstance(b, Equals):
        return not a.matches({b.field: b.value})
    if isinstance(a, Membership) and isinstance(b, Membership):
        return not (a.values & b.values)
    if isinstance(a, Range) and isinstance(b, Range):
        if a.maximum is not None and b.minimum is not None and a.maximum < b.minimum:
            return True
        if b.maximum is not None and a.minimum is not None and b.maximum < a.minimum:
            return True
    return False


# ---------- Actions ----------


@dataclass(frozen=True)
class MaterialFilter:
    category: Optional[str] = None
    sub_category: Optional[str] = None
    length_ft: Optional[Decimal] = None
    min_length_ft: Optional[Decimal] = None
    max_length_ft: Optional[Decimal] = None
    attributes: Tuple[Tuple[str, Any], ...] = ()

    def matches(self, material: MaterialRecord) -> bool:
        if self.category is not None and material.category != self.category:
            return False
        if self.sub_category is not None and material.sub_category != self.sub_category:
            return False
        if self.length_ft is not None or self.min_length_ft is not None or self.max_length_ft is not None:
            if material.length_ft is None:
                return False
            length = to_decimal(material.length_ft)
            if self.length_ft is not None and length != self.length_ft:
                return False
            if self.min_length_ft is not None and length < self.min_length_ft:
                return False
            if self.max_length_ft is not None and length > self.max_length_ft:
                return False
        material_attributes = material.attributes or {}
        for key, expected in self.attributes:
            if _normalize(material_attributes.get(key)) != _normalize(expected):
                return False
        return True

    def as_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.category is not None:
            out["category"] = self.category
        if self.sub_category is not None:
            out["sub_category"] = self.sub_category
        if self.length_ft is not None:
            out["length_ft"] = str(self.length_ft)
        if self.min_length_ft is not None or self.max_length_ft is not None:
            out["length_ft_range"] = [
                None if self.min_length_ft is None else str(self.min_length_ft),
                None if self.max_length_ft is None else str(self.max_length_ft),
            ]
        if self.attributes:
            out["attributes"] = dict(self.attributes)
        return out


@dataclass(frozen=True)
class AllowedValues:
    field: str
    values: Optional[FrozenSet[Any]] = None
    minimum: Optional[Decimal] = None
    maximum: Optional[Decimal] = None

    def permits(self, value: Any) -> bool:
        if value is None:
            return False
        if self.values is not None and _normalize(value) not in self.values:
            return False
        if self.minimum is not None or self.maximum is not None:
            try:
                number = to_decimal(value)
            except ExpressionError:
                return False
            if self.minimum is not None and number < self.minimum:
                return False
            if self.maximum is not None and number > self.maximum:
                return False
        return True


@dataclass(frozen=True)
class ComponentMaterialFilter:
    component: str
    material_filter: MaterialFilter


@dataclass(frozen=True)
class AddComponent:
    component: str
    quantity: Expression
    material_filter: Optional[MaterialFilter] = None


@dataclass(frozen=True)
class RemoveComponent:
    component: str
    quantity: Expression


@dataclass(frozen=True)
class DeriveValue:
    target: str
    value: Any = None
    material_filter: Optional[MaterialFilter] = None


Action = Union[AllowedValues, ComponentMaterialFilter, AddComponent, RemoveComponent, DeriveValue]


@dataclass(frozen=True)
class CompiledRule:
    name: str
    rule_type: str
    condition: Condition
    actions: Tuple[Action, ...]
    product_type: Optional[str] = None
    style: Optional[str] = None
    priority: int = 0
    error_message: Optional[str] = None
    is_active: bool = True
    order: int = 0
    rule_id: Optional[int] = None

    def in_scope(self, product_type: str, style: Optional[str]) -> bool:
        if self.product_type is not None and self.product_type != product_type:
            return False
        if self.style is not None and self.style != style:
            return False
        return True

    @property
    def touched_components(self) -> FrozenSet[str]:
        return frozenset(
            a.component for a in self.actions if isinstance(a, (AddComponent, RemoveComponent))
        )


# ---------- Compilation ----------


def _decimal_or_none(rule_name: str, raw: Any) -> Optional[Decimal]:
    if raw is None:
        return None
    try:
        return to_decimal(raw)
    except ExpressionError as exc:
        raise RuleDefinitionError(rule_name, f"expected a number, got {raw!r}") from exc


def _string_set(rule_name: str, raw: Any, key: str) -> FrozenSet[str]:
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, (list, tuple)) or not raw or not all(isinstance(x, str) for x in raw):
        raise RuleDefinitionError(rule_name, f"'{key}' must be a non-empty list of component codes")
    return frozenset(raw)


def compile_condition(rule_name: str, raw: Optional[Mapping[str, Any]]) -> Tuple[Condition, Optional[str]]:
    """Returns the condition and the target component named by a "component" key, if any."""
    if raw is None:
        return Condition(), None
    if not isinstance(raw, Mapping):
        raise RuleDefinitionError(rule_name, "condition must be a JSON object")

    predicates: List[Predicate] = []
    target: Optional[str] = None

    for key, clause in raw.items():
        if key == "component":
            if not isinstance(clause, str) or not clause:
                raise RuleDefinitionError(rule_name, "'component' must be a component code")
            target = clause
        elif key == "has_component":
            predicates.append(HasComponent(_string_set(rule_name, clause, key)))
        elif key == "not_has_component":
            predicates.append(NotHasComponent(_string_set(rule_name, clause, key)))
        elif isinstance(clause, Mapping):
            predicates.append(_compile_operator_predicate(rule_name, key, clause))
        elif isinstance(clause, (list, tuple)):
            if not clause:
                raise RuleDefinitionError(rule_name, f"empty value list for '{key}'")
            predicates.append(Membership(key, frozenset(_normalize(v) for v in clause)))
        elif clause is None:
            raise RuleDefinitionError(rule_name, f"null condition value for '{key}'")
        else:
            predicates.append(Equals(key, clause))

    return Condition(tuple(predicates)), target


def _compile_operator_predicate(rule_name: str, key: str, clause: Mapping[str, Any]) -> Predicate:
    if not clause:
        raise RuleDefinitionError(rule_name, f"empty operator object for '{key}'")

    if set(clause) <= {"min", "max"}:
        return Range(
            key,
            minimum=_decimal_or_none(rule_name, clause.get("min")),
            maximum=_decimal_or_none(rule_name, clause.get("max")),
        )

    if set(clause) == {"in"}:
        values = clause["in"]
        if not isinstance(values, (list, tuple)) or not values:
            raise RuleDefinitionError(rule_name, f"'in' for '{key}' must be a non-empty list")
        return Membership(key, frozenset(_normalize(v) for v in values))

    if len(clause) == 1:
        operator, operand = next(iter(clause.items()))
        if operator in _COMPARISONS:
            return Comparison(key, operator, _decimal_or_none(rule_name, operand))
        if operator == "==":
            return Equals(key, operand)

    raise RuleDefinitionError(rule_name, f"unsupported operator object for '{key}': {dict(clause)!r}")


def compile_material_filter(rule_name: str, raw: Any) -> MaterialFilter:
    if not isinstance(raw, Mapping) or not raw:
        raise RuleDefinitionError(rule_name, "material filter must be a non-empty JSON object")

    allowed = {"category", "sub_category", "length_ft", "attributes"}
    unknown = set(raw) - allowed
    if unknown:
        raise RuleDefinitionError(rule_name, f"unknown material filter keys: {sorted(unknown)}")

    length = raw.get("length_ft")
    exact = min_len = max_len = None
    if isinstance(length, Mapping):
        min_len = _decimal_or_none(rule_name, length.get("min"))
        max_len = _decimal_or_none(rule_name, length.get("max"))
    else:
        exact = _decimal_or_none(rule_name, length)

    attributes = raw.get("attributes") or {}
    if not isinstance(attributes, Mapping):
        raise RuleDefinitionError(rule_name, "'attributes' filter must be a JSON object")

    return MaterialFilter(
        category=raw.get("category"),
        sub_category=raw.get("sub_category"),
        length_ft=exact,
        min_length_ft=min_len,
        max_length_ft=max_len,
        attributes=tuple(sorted(attributes.items())),
    )


def _compile_quantity(rule_name: str, raw: Any) -> Expression:
    try:
        return compile_expression(raw)
    except ExpressionError as exc:
        raise RuleDefinitionError(rule_name, str(exc)) from exc


def _compile_actions(
    rule_name: str, rule_type: str, raw: Any, target: Optional[str]
) -> Tuple[Action, ...]:
    if not isinstance(raw, Mapping):
        raise RuleDefinitionError(rule_name, "action must be a JSON object")

    if rule_type == "constraint":
        field_name = raw.get("field")
        if not isinstance(field_name, str) or not field_name:
            raise RuleDefinitionError(rule_name, "constraint needs a 'field'")
        allowed = raw.get("allowed")
        if allowed is not None and (not isinstance(allowed, (list, tuple)) or not allowed):
            raise RuleDefinitionError(rule_name, "'allowed' must be a non-empty list")
        action = AllowedValues(
            field=field_name,
            values=None if allowed is None else frozenset(_normalize(v) for v in allowed),
            minimum=_decimal_or_none(rule_name, raw.get("min")),
            maximum=_decimal_or_none(rule_name, raw.get("max")),
        )
        if action.values is None and action.minimum is None and action.maximum is None:
            raise RuleDefinitionError(rule_name, "constraint needs 'allowed', 'min' or 'max'")
        return (action,)

    if rule_type == "material_match":
        component = raw.get("component") or target
        if not component:
            raise RuleDefinitionError(rule_name, "material_match needs a target component")
        return (ComponentMaterialFilter(component, compile_material_filter(rule_name, raw.get("filter_materials"))),)

    if rule_type == "conditional_component":
        actions: List[Action] = []
        add = raw.get("add")
        if add is not None:
            if not isinstance(add, Mapping) or not add.get("component"):
                raise RuleDefinitionError(rule_name, "'add' needs a component")
            material_filter = None
            if add.get("material_filter") is not None:
                material_filter = compile_material_filter(rule_name, add["material_filter"])
            actions.append(
                AddComponent(add["component"], _compile_quantity(rule_name, add.get("quantity")), material_filter)
            )
        remove = raw.get("remove")
        if remove is not None:
            if not isinstance(remove, Mapping) or not remove.get("component"):
                raise RuleDefinitionError(rule_name, "'remove' needs a component")
            actions.append(RemoveComponent(remove["component"], _compile_quantity(rule_name, remove.get("quantity"))))
        if not actions:
            raise RuleDefinitionError(rule_name, "conditional_component needs 'add' and/or 'remove'")
        return tuple(actions)

    if rule_type == "derived_value":
        if "filter_materials" in raw:
            component = raw.get("component") or target
            if not component:
                raise RuleDefinitionError(rule_name, "derived material filter needs a component")
            return (DeriveValue(component, material_filter=compile_material_filter(rule_name, raw["filter_materials"])),)
        field_name = raw.get("field")
        if not isinstance(field_name, str) or "value" not in raw:
            raise RuleDefinitionError(rule_name, "derived_value needs 'field' and 'value'")
        return (DeriveValue(field_name, value=raw["value"]),)

    raise RuleDefinitionError(rule_name, f"unknown rule_type '{rule_type}'")


def compile_rule(
    *,
    name: str,
    rule_type: str,
    condition_json: Optional[Mapping[str, Any]],
    action_json: Any,
    product_type: Optional[str] = None,
    style: Optional[str] = None,
    priority: int = 0,
    error_message: Optional[str] = None,
    is_active: bool = True,
    order: int = 0,
    rule_id: Optional[int] = None,
) -> CompiledRule:
    if rule_type not in RULE_TYPES:
        raise RuleDefinitionError(name, f"unknown rule_type '{rule_type}'")

    condition, target = compile_condition(name, condition_json)
    actions = _compile_actions(name, rule_type, action_json, target)

    return CompiledRule(
        name=name,
        rule_type=rule_type,
        condition=condition,
        actions=actions,
        product_type=product_type,
        style=style,
        priority=int(priority or 0),
        error_message=error_message,
        is_active=bool(is_active),
        order=order,
        rule_id=rule_id,
    )


def _scopes_overlap(a: CompiledRule, b: CompiledRule) -> bool:
    if a.product_type is not None and b.product_type is not None and a.product_type != b.product_type:
        return False
    if a.style is not None and b.style is not None and a.style != b.style:
        return False
    return True


def validate_rule_set(rules: Sequence[CompiledRule]) -> None:
    """
    Reject conditional_component rules that could both fire for the same
    component on one configuration. Adjustments are never summed across
    overlapping rules.
    """
    conditional = [r for r in rules if r.is_active and r.rule_type == "conditional_component"]
    for i, first in enumerate(conditional):
        for second in conditional[i + 1:]:
            shared = first.touched_components & second.touched_components
            if not shared or not _scopes_overlap(first, second):
                continue
            if first.condition.excludes(second.condition):
                continue
            raise RuleDefinitionError(
                second.name,
                f"may double-apply with '{first.name}' on component(s) {sorted(shared)}",
            )


# ---------- Evaluation ----------


@dataclass(frozen=True)
class ComponentDelta:
    component: str
    quantity: Decimal
    rule_name: str
    material_filter: Optional[MaterialFilter] = None


@dataclass
class RuleEvaluation:
    matched: List[CompiledRule] = field(default_factory=list)
    violations: List[ConstraintViolation] = field(default_factory=list)
    material_filters: Dict[str, List[MaterialFilter]] = field(default_factory=dict)
    additions: List[ComponentDelta] = field(default_factory=list)
    removals: List[ComponentDelta] = field(default_factory=list)
    derived: Dict[str, DeriveValue] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.violations

    def filters_for(self, component: str) -> List[MaterialFilter]:
        filters = list(self.material_filters.get(component, []))
        derived = self.derived.get(component)
        if derived is not None and derived.material_filter is not None:
            filters.append(derived.material_filter)
        return filters


def pick_derived_values(rules: Iterable[CompiledRule]) -> Dict[str, DeriveValue]:
    """
    Per target, the highest-priority rule wins; among equal priorities the
    rule listed last wins.
    """
    winners: Dict[str, DeriveValue] = {}
    ordered = sorted(
        (r for r in rules if r.rule_type == "derived_value"),
        key=lambda r: (r.priority, r.order),
    )
    for rule in ordered:
        for action in rule.actions:
            if isinstance(action, DeriveValue):
                winners[action.target] = action
    return winners


class RuleEngine:
    def __init__(self, rules: Sequence[CompiledRule]):
        validate_rule_set(rules)
        self._rules = list(rules)

    @property
    def rules(self) -> List[CompiledRule]:
        return list(self._rules)

    def applicable_rules(
        self, product_type: str, style: Optional[str], attributes: Mapping[str, Any]
    ) -> List[CompiledRule]:
        matching = [
            r
            for r in self._rules
            if r.is_active and r.in_scope(product_type, style) and r.condition.matches(attributes)
        ]
        return sorted(matching, key=lambda r: (-r.priority, r.order))

    def evaluate(
        self, product_type: str, style: Optional[str], attributes: Mapping[str, Any]
    ) -> RuleEvaluation:
        matched = self.applicable_rules(product_type, style, attributes)
        result = RuleEvaluation(matched=matched)

        touched: Dict[str, str] = {}

        for rule in matched:
            if rule.rule_type == "constraint":
                for action in rule.actions:
                    value = attributes.get(action.field)
                    if not action.permits(value):
                        result.violations.append(
                            ConstraintViolation(
                                rule_name=rule.name,
                                field=action.field,
                                value=value,
                                message=rule.error_message or f"{action.field}={value!r} is not allowed",
                            )
                        )

            elif rule.rule_type == "material_match":
                for action in rule.actions:
                    result.material_filters.setdefault(action.component, []).append(action.material_filter)

            elif rule.rule_type == "conditional_component":
                for component in rule.touched_components:
                    if component in touched and touched[component] != rule.name:
                        raise RuleDefinitionError(
                            rule.name, f"double-applies to '{component}' with '{touched[component]}'"
                        )
                    touched[component] = rule.name
                for action in rule.actions:
                    try:
                        quantity = action.quantity.evaluate(attributes)
                    except ExpressionError as exc:
                        raise RuleDefinitionError(rule.name, str(exc)) from exc
                    if isinstance(action, AddComponent):
                        result.additions.append(
                            ComponentDelta(action.component, quantity, rule.name, action.material_filter)
                        )
                    else:
                        result.removals.append(ComponentDelta(action.component, quantity, rule.name))

        result.derived = pick_derived_values(matched)
        return result
