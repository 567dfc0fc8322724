from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, Numeric, String

from fencecalc.database import Base, JsonDocument


class Material(Base):
    __tablename__ = "materials"

    id = Column(Integer, primary_key=True, index=True)

    material_sku = Column(String, unique=True, nullable=False)
    material_name = Column(String, nullable=False)
    category = Column(String, nullable=False, index=True)  # 01-Post, 02-Pickets, 03-Rails ...
    sub_category = Column(String, nullable=True, index=True)

    unit_type = Column(String, nullable=False)
    unit_cost = Column(Numeric(12, 4), nullable=False)
    quantity_per_unit = Column(Numeric(12, 4), nullable=False, default=1)

    length_ft = Column(Numeric(10, 2), nullable=True)
    actual_width = Column(Numeric(10, 3), nullable=True)  # inches, 5.5 for a 1x6
    thickness = Column(String, nullable=True)
    attributes = Column(JsonDocument, nullable=True)

    status = Column(String, nullable=False, default="Active")  # Active | Inactive
    default_stocking_area = Column(String, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
