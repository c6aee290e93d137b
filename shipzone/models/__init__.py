"""Database models — re-exports all models.

Import from here:  from shipzone.models import Warehouse, Zone, Inquiry
"""

from .base import Base  # noqa: F401

# Warehouses & Zones
from .warehouses import WAREHOUSE_STATUSES, Warehouse, Zone  # noqa: F401

# Inquiries (sales leads)
from .inquiries import INQUIRY_STATUSES, Inquiry  # noqa: F401
