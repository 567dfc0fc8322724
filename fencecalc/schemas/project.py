from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from fencecalc.schemas.calculator import BolLineResponse, BomLineResponse


class ProjectCreate(BaseModel):
    project_name: str
    customer_name: Optional[str] = None
    business_unit_code: str
    concrete_type: str = Field("3-part", pattern="^(3-part|yellow-bags|red-bags)$")


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    project_name: str
    customer_name: Optional[str] = None
    business_unit_id: int
    concrete_type: str
    status: str
    total_linear_feet: Optional[Decimal] = None
    total_material_cost: Optional[Decimal] = None
    total_labor_cost: Optional[Decimal] = None
    total_project_cost: Optional[Decimal] = None
    cost_per_foot: Optional[Decimal] = None
    calculated_at: Optional[datetime] = None
    created_at: datetime


class LineItemCreate(BaseModel):
    sku_code: str
    total_footage: Decimal = Field(..., ge=0)
    buffer: Decimal = Field(Decimal("5"), ge=0)
    number_of_lines: int = Field(1, ge=1, le=5)
    number_of_gates: int = Field(0, ge=0, le=3)
    sort_order: int = 0


class LineItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    sku_id: int
    total_footage: Decimal
    buffer: Decimal
    net_length: Decimal
    number_of_lines: int
    number_of_gates: int
    status: str
    issues: Optional[List[Any]] = None
    sort_order: int


class OverrideRequest(BaseModel):
    # null clears the override
    manual_quantity: Optional[Decimal] = Field(None, ge=0)


class BomResponse(BaseModel):
    project: ProjectResponse
    line_items: List[LineItemResponse]
    materials: List[BomLineResponse]
    labor: List[BolLineResponse]
