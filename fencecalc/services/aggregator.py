"""
Project-level merge of per-line quantities.

Rounding happens here and only here: summed material quantities are rounded
up to the material's purchasable unit, labor to the cent. Final quantity and
extended cost are properties, so an override can never leave a stale cost.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from fencecalc.core.errors import NoEligibleMaterial
from fencecalc.services.catalog import CatalogSnapshot, LaborCodeRecord, MaterialRecord
from fencecalc.services.expressions import ceil_decimal
from fencecalc.services.labor_selector import LaborQuantity
from fencecalc.services.quantity_calculator import MaterialQuantity

ZERO = Decimal("0")
CENT = Decimal("0.01")

CONCRETE_TYPES = ("3-part", "yellow-bags", "red-bags")

# concrete type -> [(material sku, quantity from total posts)]
CONCRETE_MIXES: Dict[str, List[Tuple[str, Callable[[Decimal], Decimal]]]] = {
    "3-part": [
        ("CTS", lambda posts: ceil_decimal(posts / 10)),
        ("CTP", lambda posts: ceil_decimal(posts / 20)),
        ("CTQ", lambda posts: posts * Decimal("0.5")),
    ],
    "yellow-bags": [("CTY", lambda posts: ceil_decimal(posts * Decimal("0.65")))],
    "red-bags": [("CTR", lambda posts: posts)],
}


def round_to_purchasable(quantity: Decimal, quantity_per_unit: Optional[Decimal]) -> Decimal:
    pack = Decimal(quantity_per_unit or 1)
    if pack <= 0:
        pack = Decimal("1")
    return ceil_decimal(Decimal(quantity) / pack) * pack


def round_labor(quantity: Decimal) -> Decimal:
    return Decimal(quantity).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class BomLine:
    material: MaterialRecord
    calculated_quantity: Decimal
    manual_quantity: Optional[Decimal] = None
    is_manual_addition: bool = False
    note: Optional[str] = None

    @property
    def rounded_quantity(self) -> Decimal:
        return round_to_purchasable(self.calculated_quantity, self.material.quantity_per_unit)

    @property
    def final_quantity(self) -> Decimal:
        if self.manual_quantity is not None:
            return Decimal(self.manual_quantity)
        return self.rounded_quantity

    @property
    def unit_cost(self) -> Decimal:
        return Decimal(self.material.unit_cost)

    @property
    def extended_cost(self) -> Decimal:
        return self.final_quantity * self.unit_cost

    def as_dict(self) -> dict:
        return {
            "material_id": self.material.id,
            "material_sku": self.material.sku,
            "material_name": self.material.name,
            "calculated_quantity": self.calculated_quantity,
            "rounded_quantity": self.rounded_quantity,
            "manual_quantity": self.manual_quantity,
            "final_quantity": self.final_quantity,
            "unit_cost": self.unit_cost,
            "extended_cost": self.extended_cost,
            "is_manual_addition": self.is_manual_addition,
        }


@dataclass
class BolLine:
    labor_code: LaborCodeRecord
    calculated_quantity: Decimal
    rate: Decimal
    manual_quantity: Optional[Decimal] = None
    is_manual_addition: bool = False

    @property
    def final_quantity(self) -> Decimal:
        if self.manual_quantity is not None:
            return Decimal(self.manual_quantity)
        return self.calculated_quantity

    @property
    def extended_cost(self) -> Decimal:
        return self.final_quantity * Decimal(self.rate)

    def as_dict(self) -> dict:
        return {
            "labor_code_id": self.labor_code.id,
            "labor_sku": self.labor_code.sku,
            "description": self.labor_code.description,
            "calculated_quantity": self.calculated_quantity,
            "manual_quantity": self.manual_quantity,
            "final_quantity": self.final_quantity,
            "rate": Decimal(self.rate),
            "extended_cost": self.extended_cost,
            "is_manual_addition": self.is_manual_addition,
        }


@dataclass(frozen=True)
class Totals:
    linear_feet: Decimal
    material_cost: Decimal
    labor_cost: Decimal

    @property
    def project_cost(self) -> Decimal:
        return self.material_cost + self.labor_cost

    @property
    def cost_per_foot(self) -> Decimal:
        if self.linear_feet <= 0:
            return ZERO
        return (self.project_cost / self.linear_feet).quantize(CENT, rounding=ROUND_HALF_UP)


def aggregate_materials(quantities: Iterable[MaterialQuantity]) -> List[BomLine]:
    merged: Dict[int, BomLine] = {}
    for row in quantities:
        line = merged.get(row.material.id)
        if line is None:
            merged[row.material.id] = BomLine(row.material, Decimal(row.quantity))
        else:
            line.calculated_quantity += Decimal(row.quantity)
    return list(merged.values())


def aggregate_labor(
    quantities: Iterable[LaborQuantity], rate_for: Callable[[LaborCodeRecord], Decimal]
) -> List[BolLine]:
    summed: Dict[int, Tuple[LaborCodeRecord, Decimal]] = {}
    for row in quantities:
        code, total = summed.get(row.labor_code.id, (row.labor_code, ZERO))
        summed[row.labor_code.id] = (code, total + Decimal(row.quantity))
    return [BolLine(code, round_labor(total), rate_for(code)) for code, total in summed.values()]


def concrete_quantities(
    snapshot: CatalogSnapshot, concrete_type: str, total_posts: Decimal
) -> Tuple[List[MaterialQuantity], List[NoEligibleMaterial]]:
    if concrete_type not in CONCRETE_MIXES:
        raise ValueError(f"Unknown concrete type '{concrete_type}'")

    lines: List[MaterialQuantity] = []
    issues: List[NoEligibleMaterial] = []
    if total_posts <= 0:
        return lines, issues

    for sku, formula in CONCRETE_MIXES[concrete_type]:
        material = snapshot.material_by_sku(sku)
        if material is None or not material.is_active:
            issues.append(NoEligibleMaterial("concrete", {"material_sku": sku}, reason=f"material {sku} not available"))
            continue
        lines.append(MaterialQuantity("concrete", material, formula(Decimal(total_posts)), note=concrete_type))
    return lines, issues


def totals(linear_feet: Decimal, bom: Iterable[BomLine], bol: Iterable[BolLine]) -> Totals:
    return Totals(
        linear_feet=Decimal(linear_feet),
        material_cost=sum((line.extended_cost for line in bom), ZERO),
        labor_cost=sum((line.extended_cost for line in bol), ZERO),
    )
