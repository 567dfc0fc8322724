from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)

from fencecalc.database import Base, JsonDocument


class Project(Base):
    __tablename__ = "bom_projects"

    __table_args__ = (
        CheckConstraint(
            "concrete_type IN ('3-part', 'yellow-bags', 'red-bags')",
            name="ck_bom_projects_concrete_type",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    project_name = Column(String, nullable=False)
    customer_name = Column(String, nullable=True)
    business_unit_id = Column(Integer, ForeignKey("business_units.id"), nullable=False, index=True)
    concrete_type = Column(String, nullable=False, default="3-part")
    status = Column(String, nullable=False, default="draft")

    # cached by recalculation
    total_linear_feet = Column(Numeric(12, 2), nullable=True)
    total_material_cost = Column(Numeric(14, 2), nullable=True)
    total_labor_cost = Column(Numeric(14, 2), nullable=True)
    total_project_cost = Column(Numeric(14, 2), nullable=True)
    cost_per_foot = Column(Numeric(12, 2), nullable=True)
    calculated_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class ProjectLineItem(Base):
    __tablename__ = "project_line_items"

    __table_args__ = (
        CheckConstraint("number_of_lines BETWEEN 1 AND 5", name="ck_line_items_lines"),
        CheckConstraint("number_of_gates BETWEEN 0 AND 3", name="ck_line_items_gates"),
        CheckConstraint("total_footage >= 0", name="ck_line_items_footage_nonnegative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("bom_projects.id", ondelete="CASCADE"), nullable=False, index=True)
    sku_id = Column(Integer, ForeignKey("product_skus.id"), nullable=False, index=True)

    total_footage = Column(Numeric(10, 2), nullable=False)
    buffer = Column(Numeric(10, 2), nullable=False, default=Decimal("5"))
    number_of_lines = Column(Integer, nullable=False, default=1)
    number_of_gates = Column(Integer, nullable=False, default=0)

    status = Column(String, nullable=False, default="pending")  # pending | calculated | invalid
    issues = Column(JsonDocument, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def net_length(self) -> Decimal:
        net = Decimal(self.total_footage) - Decimal(self.buffer or 0)
        return net if net > 0 else Decimal("0")


class LineItemMaterial(Base):
    """Unrounded per-line quantity; rounding happens only at project aggregation."""

    __tablename__ = "line_item_materials"

    id = Column(Integer, primary_key=True, index=True)
    line_item_id = Column(
        Integer, ForeignKey("project_line_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    material_id = Column(Integer, ForeignKey("materials.id"), nullable=False, index=True)
    component_code = Column(String, nullable=False)
    calculated_quantity = Column(Numeric(14, 4), nullable=False)


class LineItemLabor(Base):
    __tablename__ = "line_item_labor"

    id = Column(Integer, primary_key=True, index=True)
    line_item_id = Column(
        Integer, ForeignKey("project_line_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    labor_code_id = Column(Integer, ForeignKey("labor_codes.id"), nullable=False, index=True)
    calculated_quantity = Column(Numeric(14, 4), nullable=False)


class ProjectMaterial(Base):
    __tablename__ = "project_materials"

    __table_args__ = (
        UniqueConstraint("project_id", "material_id", name="uq_project_materials_project_material"),
        CheckConstraint(
            "manual_quantity IS NULL OR manual_quantity >= 0",
            name="ck_project_materials_manual_nonnegative",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("bom_projects.id", ondelete="CASCADE"), nullable=False, index=True)
    material_id = Column(Integer, ForeignKey("materials.id"), nullable=False, index=True)

    calculated_quantity = Column(Numeric(14, 4), nullable=False)
    rounded_quantity = Column(Numeric(14, 4), nullable=False)
    manual_quantity = Column(Numeric(14, 4), nullable=True)
    unit_cost = Column(Numeric(12, 4), nullable=False)

    is_manual_addition = Column(Boolean, nullable=False, default=False)
    calculation_note = Column(String, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def final_quantity(self) -> Decimal:
        if self.manual_quantity is not None:
            return Decimal(self.manual_quantity)
        return Decimal(self.rounded_quantity)

    @property
    def extended_cost(self) -> Decimal:
        return self.final_quantity * Decimal(self.unit_cost)


class ProjectLabor(Base):
    __tablename__ = "project_labor"

    __table_args__ = (
        UniqueConstraint("project_id", "labor_code_id", name="uq_project_labor_project_code"),
        CheckConstraint(
            "manual_quantity IS NULL OR manual_quantity >= 0",
            name="ck_project_labor_manual_nonnegative",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("bom_projects.id", ondelete="CASCADE"), nullable=False, index=True)
    labor_code_id = Column(Integer, ForeignKey("labor_codes.id"), nullable=False, index=True)

    calculated_quantity = Column(Numeric(14, 4), nullable=False)
    manual_quantity = Column(Numeric(14, 4), nullable=True)
    labor_rate = Column(Numeric(12, 4), nullable=False)

    is_manual_addition = Column(Boolean, nullable=False, default=False)
    calculation_note = Column(String, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def final_quantity(self) -> Decimal:
        if self.manual_quantity is not None:
            return Decimal(self.manual_quantity)
        return Decimal(self.calculated_quantity)

    @property
    def extended_cost(self) -> Decimal:
        return self.final_quantity * Decimal(self.labor_rate)

