from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class PreviewRequest(BaseModel):
    # either a catalog SKU or an ad-hoc product definition
    sku_code: Optional[str] = None
    product_type: Optional[str] = None
    style: Optional[str] = None
    height: Optional[Decimal] = None
    post_type: Optional[str] = None
    rail_count: Optional[int] = None
    post_spacing: Optional[Decimal] = None
    components: Dict[str, int] = Field(default_factory=dict)
    options: Dict[str, Any] = Field(default_factory=dict)

    total_footage: Decimal = Field(..., ge=0)
    buffer: Decimal = Field(Decimal("5"), ge=0)
    number_of_lines: int = Field(1, ge=1, le=5)
    number_of_gates: int = Field(0, ge=0, le=3)

    business_unit_code: str
    concrete_type: str = "3-part"
    as_of: Optional[date] = None


class BomLineResponse(BaseModel):
    material_id: int
    material_sku: str
    material_name: str
    calculated_quantity: Decimal
    rounded_quantity: Decimal
    manual_quantity: Optional[Decimal] = None
    final_quantity: Decimal
    unit_cost: Decimal
    extended_cost: Decimal
    is_manual_addition: bool = False


class BolLineResponse(BaseModel):
    labor_code_id: int
    labor_sku: str
    description: str
    calculated_quantity: Decimal
    manual_quantity: Optional[Decimal] = None
    final_quantity: Decimal
    rate: Decimal
    extended_cost: Decimal
    is_manual_addition: bool = False


class TotalsResponse(BaseModel):
    linear_feet: Decimal
    material_cost: Decimal
    labor_cost: Decimal
    project_cost: Decimal
    cost_per_foot: Decimal


class PreviewResponse(BaseModel):
    materials: List[BomLineResponse]
    labor: List[BolLineResponse]
    totals: TotalsResponse
    total_posts: Decimal
    issues: List[Dict[str, Any]]


class StandardCostResponse(BaseModel):
    sku_code: str
    business_unit_code: str
    footage: Decimal
    standard_material_cost: Decimal
    standard_labor_cost: Decimal
    standard_cost_per_foot: Decimal
