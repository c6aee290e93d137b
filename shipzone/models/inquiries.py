"""Inquiry (sales lead) model.

Rows are created and updated only by the inquiry pipeline; status moves
new -> reviewed -> closed only through the admin tool.
"""

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, Index, Integer, String, Text

from ..database import UTCDateTime
from .base import Base

INQUIRY_STATUSES = ("new", "reviewed", "closed")


class Inquiry(Base):
    __tablename__ = "inquiries"
    id = Column(Integer, primary_key=True)
    customer_name = Column(String(150))
    email = Column(String(200))
    phone = Column(String(50))
    address = Column(Text)
    postcode = Column(String(10))
    product_details = Column(Text)
    external_order_id = Column(String(64))
    status = Column(String(20), nullable=False, default=INQUIRY_STATUSES[0])
    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        UTCDateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_inquiries_status", "status"),
        Index("ix_inquiries_postcode", "postcode"),
        Index("ix_inquiries_email_status_created", "email", "status", "created_at"),
        CheckConstraint(status.in_(INQUIRY_STATUSES), name="ck_inquiries_status"),
    )
