"""
Calculator error taxonomy.

Lookup failures (missing parameter, missing labor rate) abort the single
calculation they affect. Constraint violations and material-selection
problems are not raised: they are collected into result objects so a caller
can show all of them at once.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional


class CalculatorError(ValueError):
    """Base class; routers map ValueError to 400."""


class ParameterNotFound(CalculatorError):
    def __init__(
        self,
        key: str,
        product_type: Optional[str],
        style: Optional[str] = None,
        component: Optional[str] = None,
    ):
        self.key = key
        self.product_type = product_type
        self.style = style
        self.component = component
        super().__init__(
            f"No formula parameter '{key}' for "
            f"type={product_type or '*'} style={style or '*'} component={component or '*'}"
        )


class RateNotFound(CalculatorError):
    def __init__(self, labor_sku: str, business_unit: str, as_of: date):
        self.labor_sku = labor_sku
        self.business_unit = business_unit
        self.as_of = as_of
        super().__init__(
            f"No labor rate for {labor_sku} in business unit {business_unit} effective {as_of.isoformat()}"
        )


class RuleDefinitionError(CalculatorError):
    def __init__(self, rule_name: str, detail: str):
        self.rule_name = rule_name
        self.detail = detail
        super().__init__(f"Invalid rule '{rule_name}': {detail}")


class UnknownCatalogEntry(CalculatorError, LookupError):
    """Unknown code or id; routers that catch LookupError answer 404."""


@dataclass(frozen=True)
class ConstraintViolation:
    rule_name: str
    field: str
    value: Any
    message: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "rule": self.rule_name,
            "field": self.field,
            "value": str(self.value) if isinstance(self.value, Decimal) else self.value,
            "message": self.message,
        }


@dataclass(frozen=True)
class NoEligibleMaterial:
    component: str
    material_filter: Dict[str, Any] = field(default_factory=dict)
    reason: str = "no active material matches the component filter"

    @property
    def message(self) -> str:
        return f"{self.component}: {self.reason}"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "component": self.component,
            "filter": dict(self.material_filter),
            "message": self.message,
        }
