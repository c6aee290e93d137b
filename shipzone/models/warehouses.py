"""Warehouse and zone models — owned by the admin tool, read-only to the core."""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, CheckConstraint, Column, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from ..database import UTCDateTime
from .base import Base

WAREHOUSE_STATUSES = ("active", "inactive")


class Warehouse(Base):
    __tablename__ = "warehouses"
    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    address = Column(String(255))
    suburb = Column(String(100))
    state = Column(String(50))
    postcode = Column(String(10))
    status = Column(String(20), nullable=False, default=WAREHOUSE_STATUSES[0])
    shopify_location_id = Column(BigInteger)
    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))

    zones = relationship("Zone", back_populates="warehouse", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_warehouses_status", "status"),
        CheckConstraint(status.in_(WAREHOUSE_STATUSES), name="ck_warehouses_status"),
    )


class Zone(Base):
    """A postcode pattern bound to one warehouse.

    ``postcode`` holds either an exact 4-digit value ("3000") or, when
    ``prefix`` is true, a prefix pattern that may carry a trailing
    wildcard ("30" or "30*").
    """

    __tablename__ = "zones"
    id = Column(Integer, primary_key=True)
    warehouse_id = Column(
        Integer, ForeignKey("warehouses.id", ondelete="CASCADE"), nullable=False
    )
    postcode = Column(String(10), nullable=False)
    prefix = Column(Boolean, nullable=False, default=False)
    note = Column(String(255))
    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))

    warehouse = relationship("Warehouse", back_populates="zones")

    __table_args__ = (
        Index("ix_zones_postcode", "postcode"),
        Index("ix_zones_warehouse", "warehouse_id"),
    )
