from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from fencecalc.database import Base


class BusinessUnit(Base):
    __tablename__ = "business_units"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String, unique=True, nullable=False)  # ATX-RES, SA-HB, HOU-RES
    name = Column(String, nullable=False)
    location = Column(String, nullable=False)
    business_type = Column(String, nullable=False)  # Residential | Home Builders
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
