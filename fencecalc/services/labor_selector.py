from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from fencecalc.core.errors import RateNotFound, RuleDefinitionError
from fencecalc.services.catalog import CatalogSnapshot, LaborCodeRecord
from fencecalc.services.rule_engine import Condition, compile_condition

QUANTITY_FORMULAS = ("net_length", "gates", "posts")


@dataclass(frozen=True)
class CompiledLaborRule:
    name: str
    labor_code_id: int
    condition: Condition
    quantity_formula: str = "net_length"
    product_type: Optional[str] = None
    style: Optional[str] = None
    is_base_labor: bool = False
    priority: int = 0
    is_active: bool = True
    order: int = 0

    def in_scope(self, product_type: str, style: Optional[str]) -> bool:
        if self.product_type is not None and self.product_type != product_type:
            return False
        if self.style is not None and self.style != style:
            return False
        return True


@dataclass(frozen=True)
class LaborQuantity:
    labor_code: LaborCodeRecord
    quantity_formula: str
    quantity: Decimal
    rule_name: str


def compile_labor_rule(
    *,
    name: str,
    labor_code_id: int,
    condition_json: Optional[Mapping[str, Any]],
    quantity_formula: str = "net_length",
    product_type: Optional[str] = None,
    style: Optional[str] = None,
    is_base_labor: bool = False,
    priority: int = 0,
    is_active: bool = True,
    order: int = 0,
) -> CompiledLaborRule:
    if quantity_formula not in QUANTITY_FORMULAS:
        raise RuleDefinitionError(name, f"unknown quantity_formula '{quantity_formula}'")
    condition, target = compile_condition(name, condition_json)
    if target is not None:
        raise RuleDefinitionError(name, "labor rule conditions cannot name a target component")
    return CompiledLaborRule(
        name=name,
        labor_code_id=int(labor_code_id),
        condition=condition,
        quantity_formula=quantity_formula,
        product_type=product_type,
        style=style,
        is_base_labor=bool(is_base_labor),
        priority=int(priority or 0),
        is_active=bool(is_active),
        order=order,
    )


class LaborSelector:
    def __init__(self, snapshot: CatalogSnapshot, rules: Optional[Sequence[CompiledLaborRule]] = None):
        self._snapshot = snapshot
        self._rules = list(snapshot.labor_rules if rules is None else rules)

    def applicable_labor(
        self, product_type: str, style: Optional[str], attributes: Mapping[str, Any]
    ) -> List[Tuple[LaborCodeRecord, str, str]]:
        """(labor code, quantity formula, rule name); base labor always applies, one entry per labor code."""
        matching = [
            r
            for r in self._rules
            if r.is_active
            and r.labor_code_id in self._snapshot.labor_codes
            and r.in_scope(product_type, style)
            and (r.is_base_labor or r.condition.matches(attributes))
        ]
        matching.sort(key=lambda r: (not r.is_base_labor, -r.priority, r.order))

        seen = set()
        out = []
        for rule in matching:
            if rule.labor_code_id in seen:
                continue
            seen.add(rule.labor_code_id)
            out.append((self._snapshot.labor_code(rule.labor_code_id), rule.quantity_formula, rule.name))
        return out

    def labor_quantities(
        self,
        product_type: str,
        style: Optional[str],
        attributes: Mapping[str, Any],
        total_posts: Decimal,
    ) -> List[LaborQuantity]:
        variables: Dict[str, Decimal] = {
            "net_length": Decimal(attributes.get("net_length") or 0),
            "gates": Decimal(attributes.get("gates") or 0),
            "posts": Decimal(total_posts),
        }
        out = []
        for labor_code, formula, rule_name in self.applicable_labor(product_type, style, attributes):
            quantity = variables[formula]
            if quantity > 0:
                out.append(LaborQuantity(labor_code, formula, quantity, rule_name))
        return out

    def rate_for(self, labor_code: LaborCodeRecord, business_unit: str, as_of: date) -> Decimal:
        """Rate in effect on `as_of`: the latest effective_date not after it."""
        candidates = [
            r
            for r in self._snapshot.labor_rates
            if r.labor_code_id == labor_code.id
            and r.business_unit == business_unit
            and r.effective_date <= as_of
        ]
        if not candidates:
            raise RateNotFound(labor_code.sku, business_unit, as_of)
        return Decimal(max(candidates, key=lambda r: r.effective_date).rate)
