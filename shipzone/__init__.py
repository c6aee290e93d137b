"""ShipZone — carrier-calculated shipping rates from warehouse postcode zones."""

__version__ = "1.0.0"
