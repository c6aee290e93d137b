"""
schemas/errors.py — Structured error response model

Shared by the HTTPException and RequestValidationError handlers in main.py.
The carrier-rate endpoint never uses it: it always answers with a rate.
"""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    error: str
    status_code: int
    request_id: str = ""
    detail: list | None = None
