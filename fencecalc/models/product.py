from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint

from fencecalc.database import Base, JsonDocument


class ProductType(Base):
    __tablename__ = "product_types"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String, unique=True, nullable=False)  # wood-vertical, wood-horizontal, iron
    name = Column(String, nullable=False)
    default_post_spacing = Column(Numeric(10, 2), nullable=True)
    calculator_class = Column(String, nullable=False)  # wood_vertical | wood_horizontal | iron
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class ProductStyle(Base):
    __tablename__ = "product_styles"

    __table_args__ = (
        UniqueConstraint("product_type_id", "code", name="uq_product_styles_type_code"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_type_id = Column(Integer, ForeignKey("product_types.id"), nullable=False, index=True)
    code = Column(String, nullable=False)  # standard, good-neighbor, board-on-board
    name = Column(String, nullable=False)
    # {"postSpacing": 7.71, "picketMultiplier": 1.1, "boardMultiplier": 2}
    formula_adjustments = Column(JsonDocument, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class ComponentDefinition(Base):
    __tablename__ = "component_definitions"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String, unique=True, nullable=False)  # post, picket, rail, cap ...
    name = Column(String, nullable=False)
    category = Column(String, nullable=False, default="primary")  # primary | optional | accessory
    unit_type = Column(String, nullable=False, default="Each")
    display_order = Column(Integer, nullable=False, default=0)


class ProductTypeComponent(Base):
    __tablename__ = "product_type_components"

    __table_args__ = (
        UniqueConstraint("product_type_id", "component_id", name="uq_product_type_components"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_type_id = Column(Integer, ForeignKey("product_types.id"), nullable=False, index=True)
    component_id = Column(Integer, ForeignKey("component_definitions.id"), nullable=False, index=True)
    is_required = Column(Boolean, nullable=False, default=False)


class ComponentMaterialRule(Base):
    """Base eligible-material set for a component, optionally narrowed to a type or style."""

    __tablename__ = "component_material_rules"

    id = Column(Integer, primary_key=True, index=True)
    product_type_id = Column(Integer, ForeignKey("product_types.id"), nullable=True, index=True)
    product_style_id = Column(Integer, ForeignKey("product_styles.id"), nullable=True, index=True)
    component_id = Column(Integer, ForeignKey("component_definitions.id"), nullable=False, index=True)

    material_category = Column(String, nullable=True)
    material_sub_category = Column(String, nullable=True)
    material_id = Column(Integer, ForeignKey("materials.id"), nullable=True)

    is_default = Column(Boolean, nullable=False, default=False)
    display_order = Column(Integer, nullable=False, default=0)
