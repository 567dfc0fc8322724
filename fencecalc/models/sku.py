from datetime import datetime

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


class ProductSku(Base):
    __tablename__ = "product_skus"

    __table_args__ = (
        CheckConstraint("post_type IN ('WOOD', 'STEEL')", name="ck_product_skus_post_type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    sku_code = Column(String, unique=True, nullable=False)  # A01, CL01
    sku_name = Column(String, nullable=False)

    product_type_id = Column(Integer, ForeignKey("product_types.id"), nullable=False, index=True)
    product_style_id = Column(Integer, ForeignKey("product_styles.id"), nullable=False, index=True)

    height = Column(Integer, nullable=False)
    post_type = Column(String, nullable=False)
    post_spacing = Column(Numeric(10, 2), nullable=True)  # NULL = style/type default

    # rail_count, panel_width, board_width, rails_per_panel ...
    config_json = Column(JsonDocument, nullable=False, default=dict)

    standard_material_cost = Column(Numeric(12, 2), nullable=True)
    standard_labor_cost = Column(Numeric(12, 2), nullable=True)
    standard_cost_per_foot = Column(Numeric(12, 2), nullable=True)
    standard_cost_calculated_at = Column(DateTime, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class SkuComponent(Base):
    __tablename__ = "sku_components"

    __table_args__ = (
        UniqueConstraint("sku_id", "component_id", name="uq_sku_components_sku_component"),
    )

    id = Column(Integer, primary_key=True, index=True)
    sku_id = Column(Integer, ForeignKey("product_skus.id", ondelete="CASCADE"), nullable=False, index=True)
    component_id = Column(Integer, ForeignKey("component_definitions.id"), nullable=False)
    material_id = Column(Integer, ForeignKey("materials.id"), nullable=False, index=True)
