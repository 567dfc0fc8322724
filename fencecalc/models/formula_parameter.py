from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint, event

from fencecalc.database import Base

ANY_SCOPE = "*"


def scope_key_for(
    product_type_id: Optional[int],
    product_style_id: Optional[int],
    component_id: Optional[int],
) -> str:
    """NULL scope parts collapse to the same sentinel so uniqueness is null-safe on any store."""
    parts = [product_type_id, product_style_id, component_id]
    return "|".join(ANY_SCOPE if p is None else str(int(p)) for p in parts)


class FormulaParameter(Base):
    __tablename__ = "formula_parameters"

    __table_args__ = (
        UniqueConstraint("scope_key", "parameter_key", name="uq_formula_parameters_scope_key"),
    )

    id = Column(Integer, primary_key=True, index=True)

    product_type_id = Column(Integer, ForeignKey("product_types.id"), nullable=True, index=True)
    product_style_id = Column(Integer, ForeignKey("product_styles.id"), nullable=True, index=True)
    component_id = Column(Integer, ForeignKey("component_definitions.id"), nullable=True, index=True)

    parameter_key = Column(String, nullable=False)  # waste_factor, picket_multiplier, post_spacing
    parameter_value = Column(Numeric(12, 4), nullable=False)
    description = Column(String, nullable=True)

    scope_key = Column(String, nullable=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


@event.listens_for(FormulaParameter, "before_insert")
@event.listens_for(FormulaParameter, "before_update")
def _normalize_scope_key(_mapper, _connection, target: FormulaParameter) -> None:
    target.scope_key = scope_key_for(target.product_type_id, target.product_style_id, target.component_id)
