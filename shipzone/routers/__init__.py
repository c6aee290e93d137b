"""
routers/ — FastAPI route modules.

Each file contains a thin APIRouter. All business logic
lives in services/ and cache/. Routers read input, call those,
and return responses.
"""
