"""
Driver model - each driver owns one delivery route
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from backoffice.database import Base
from backoffice.utils.helpers import utcnow


class Driver(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    email = Column(String, nullable=True)
    route = Column(String, nullable=False)  # e.g. "North - Yishun"

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
