"""API error handling and response helpers."""

import logging
from typing import Any, Dict

from fastapi import Request
from fastapi.responses import JSONResponse

from condoledger.services.errors import BillingError

logger = logging.getLogger(__name__)


def error_response(error: BillingError) -> Dict[str, Any]:
    """Create a standardized error response."""
    return {"error": error.to_dict()}


async def billing_error_handler(request: Request, exc: BillingError) -> JSONResponse:
    """Map engine errors to their HTTP status with the standard error body."""
    if exc.http_status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.http_status, content=error_response(exc))
