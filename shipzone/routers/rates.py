"""Carrier rates endpoint, called by the checkout platform during checkout.

Always answers 200 with exactly one rate. The body is read as raw JSON
and handed to RateDecisionEngine unvalidated: a malformed or empty body
is a missing postcode, not a 422.
"""

import asyncio
import contextvars
import functools

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from loguru import logger

from ..dependencies import get_rate_engine
from ..services.rate_service import RateDecisionEngine

router = APIRouter(tags=["rates"])


@router.post("/carrier/rates")
async def carrier_rates(request: Request, engine: RateDecisionEngine = Depends(get_rate_engine)):
    try:
        payload = await request.json()
    except (ValueError, UnicodeDecodeError):
        logger.warning("Carrier rates request body is not valid JSON")
        payload = {}

    loop = asyncio.get_running_loop()
    # Carry the request-id context into the worker thread
    ctx = contextvars.copy_context()
    body = await loop.run_in_executor(None, functools.partial(ctx.run, engine.quote, payload))
    return JSONResponse(body, status_code=200)
