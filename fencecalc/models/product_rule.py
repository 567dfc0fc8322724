from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text

from fencecalc.database import Base, JsonDocument


class ProductRule(Base):
    __tablename__ = "product_rules"

    __table_args__ = (
        CheckConstraint(
            "rule_type IN ('constraint', 'material_match', 'conditional_component', 'derived_value')",
            name="ck_product_rules_rule_type",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_type_id = Column(Integer, ForeignKey("product_types.id"), nullable=True, index=True)
    product_style_id = Column(Integer, ForeignKey("product_styles.id"), nullable=True, index=True)

    rule_type = Column(String, nullable=False)  # constraint | material_match | conditional_component | derived_value
    name = Column(String, nullable=False)
    plain_english = Column(Text, nullable=True)

    condition_json = Column(JsonDocument, nullable=False, default=dict)  # {"height": 8}
    action_json = Column(JsonDocument, nullable=False)  # {"field": "rail_count", "allowed": [3, 4]}
    error_message = Column(String, nullable=True)

    priority = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class ProductLaborRule(Base):
    __tablename__ = "product_labor_rules"

    __table_args__ = (
        CheckConstraint(
            "quantity_formula IN ('net_length', 'gates', 'posts')",
            name="ck_product_labor_rules_quantity_formula",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_type_id = Column(Integer, ForeignKey("product_types.id"), nullable=False, index=True)
    product_style_id = Column(Integer, ForeignKey("product_styles.id"), nullable=True, index=True)
    labor_code_id = Column(Integer, ForeignKey("labor_codes.id"), nullable=False, index=True)

    name = Column(String, nullable=False)
    condition_json = Column(JsonDocument, nullable=False, default=dict)  # {"height": {"max": 6}, "post_type": "WOOD"}
    quantity_formula = Column(String, nullable=False, default="net_length")  # net_length | gates | posts
    is_base_labor = Column(Boolean, nullable=False, default=False)

    priority = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
