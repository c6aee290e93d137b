"""
schemas/ — Pydantic request/response models for the ShipZone API

Carrier-rate payload parsing (lenient) and the fixed rate/error response
shapes.
"""
