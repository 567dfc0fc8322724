"""
Immutable catalog snapshot the calculator reads from.

`catalog_store.load_snapshot` builds one of these from the database in a
single read; tests build them directly. Nothing in the calculation path
touches the database.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from fencecalc.core.errors import UnknownCatalogEntry


@dataclass(frozen=True)
class MaterialRecord:
    id: int
    sku: str
    name: str
    category: str
    sub_category: Optional[str]
    unit_type: str
    unit_cost: Decimal
    quantity_per_unit: Decimal = Decimal("1")
    length_ft: Optional[Decimal] = None
    actual_width: Optional[Decimal] = None
    status: str = "Active"
    attributes: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        return self.status.lower() == "active"


@dataclass(frozen=True)
class LaborCodeRecord:
    id: int
    sku: str
    description: str
    unit_type: str


@dataclass(frozen=True)
class LaborRateRecord:
    labor_code_id: int
    business_unit: str
    rate: Decimal
    effective_date: date


@dataclass(frozen=True)
class ProductTypeRecord:
    id: int
    code: str
    name: str
    calculator_class: str
    default_post_spacing: Optional[Decimal] = None


@dataclass(frozen=True)
class ProductStyleRecord:
    id: int
    product_type: str
    code: str
    name: str
    formula_adjustments: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ComponentRecord:
    id: int
    code: str
    name: str
    category: str = "primary"
    unit_type: str = "Each"


@dataclass(frozen=True)
class ParameterRecord:
    key: str
    value: Decimal
    product_type: Optional[str] = None
    style: Optional[str] = None
    component: Optional[str] = None


@dataclass(frozen=True)
class EligibilityRecord:
    component: str
    product_type: Optional[str] = None
    style: Optional[str] = None
    category: Optional[str] = None
    sub_category: Optional[str] = None
    material_id: Optional[int] = None
    is_default: bool = False
    display_order: int = 0

    def admits(self, material: MaterialRecord) -> bool:
        if self.material_id is not None:
            return material.id == self.material_id
        if self.sub_category is not None:
            return material.sub_category == self.sub_category
        if self.category is not None:
            return material.category == self.category
        return False


@dataclass(frozen=True)
class SkuRecord:
    id: int
    code: str
    name: str
    product_type: str
    style: str
    height: Decimal
    post_type: str
    post_spacing: Optional[Decimal] = None
    config: Mapping[str, Any] = field(default_factory=dict)
    # component code -> material id
    components: Mapping[str, int] = field(default_factory=dict)


@dataclass
class CatalogSnapshot:
    materials: Dict[int, MaterialRecord] = field(default_factory=dict)
    labor_codes: Dict[int, LaborCodeRecord] = field(default_factory=dict)
    labor_rates: List[LaborRateRecord] = field(default_factory=list)
    product_types: Dict[str, ProductTypeRecord] = field(default_factory=dict)
    styles: Dict[Tuple[str, str], ProductStyleRecord] = field(default_factory=dict)
    components: Dict[str, ComponentRecord] = field(default_factory=dict)
    required_components: Dict[str, FrozenSet[str]] = field(default_factory=dict)
    parameters: List[ParameterRecord] = field(default_factory=list)
    eligibility: List[EligibilityRecord] = field(default_factory=list)
    skus: Dict[int, SkuRecord] = field(default_factory=dict)
    business_units: Dict[int, str] = field(default_factory=dict)
    # compiled rule objects; see rule_engine / labor_selector
    rules: List[Any] = field(default_factory=list)
    labor_rules: List[Any] = field(default_factory=list)

    def product_type(self, code: str) -> ProductTypeRecord:
        try:
            return self.product_types[code]
        except KeyError:
            raise UnknownCatalogEntry(f"Unknown product type '{code}'") from None

    def style(self, product_type: str, code: str) -> ProductStyleRecord:
        try:
            return self.styles[(product_type, code)]
        except KeyError:
            raise UnknownCatalogEntry(f"Unknown style '{code}' for product type '{product_type}'") from None

    def material(self, material_id: int) -> MaterialRecord:
        try:
            return self.materials[int(material_id)]
        except KeyError:
            raise UnknownCatalogEntry(f"Unknown material id {material_id}") from None

    def material_by_sku(self, sku: str) -> Optional[MaterialRecord]:
        for material in self.materials.values():
            if material.sku == sku:
                return material
        return None

    def sku(self, sku_id: int) -> SkuRecord:
        try:
            return self.skus[int(sku_id)]
        except KeyError:
            raise UnknownCatalogEntry(f"Unknown SKU id {sku_id}") from None

    def sku_by_code(self, code: str) -> SkuRecord:
        for sku in self.skus.values():
            if sku.code == code:
                return sku
        raise UnknownCatalogEntry(f"Unknown SKU '{code}'")

    def business_unit_code(self, business_unit_id: int) -> str:
        try:
            return self.business_units[int(business_unit_id)]
        except KeyError:
            raise UnknownCatalogEntry(f"Unknown business unit id {business_unit_id}") from None

    def labor_code(self, labor_code_id: int) -> LaborCodeRecord:
        try:
            return self.labor_codes[int(labor_code_id)]
        except KeyError:
            raise UnknownCatalogEntry(f"Unknown labor code id {labor_code_id}") from None
