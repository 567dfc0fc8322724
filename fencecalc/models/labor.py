from datetime import date, datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint

from fencecalc.database import Base, JsonDocument


class LaborCode(Base):
    __tablename__ = "labor_codes"

    id = Column(Integer, primary_key=True, index=True)
    labor_sku = Column(String, unique=True, nullable=False)  # W02, M03, IR01 ...
    description = Column(String, nullable=False)
    fence_categories = Column(JsonDocument, nullable=True)
    unit_type = Column(String, nullable=False)  # LF | Each
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class LaborRate(Base):
    __tablename__ = "labor_rates"

    __table_args__ = (
        UniqueConstraint(
            "labor_code_id",
            "business_unit_id",
            "effective_date",
            name="uq_labor_rates_code_unit_effective",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    labor_code_id = Column(Integer, ForeignKey("labor_codes.id"), nullable=False, index=True)
    business_unit_id = Column(Integer, ForeignKey("business_units.id"), nullable=False, index=True)
    rate = Column(Numeric(12, 4), nullable=False)
    effective_date = Column(Date, nullable=False, default=date.today)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
