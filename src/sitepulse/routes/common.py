"""Helpers shared by the route modules."""
import json
import logging
import uuid

from fastapi import Request
from fastapi.responses import JSONResponse

from ..errors import AnalyticsError, InvalidRequest

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "An error occurred processing your request"


async def json_object(request: Request, message: str = "Invalid request body") -> dict:
    """Decode the request body as a JSON object or raise InvalidRequest."""
    try:
        data = json.loads(await request.body())
    except (ValueError, TypeError):
        raise InvalidRequest(message) from None
    if not isinstance(data, dict):
        raise InvalidRequest(message)
    return data


def error_response(exc: AnalyticsError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def internal_error_response(exc: BaseException, context: str) -> JSONResponse:
    """Log an unexpected failure under a fresh request id and hide its detail."""
    request_id = str(uuid.uuid4())
    logger.error(
        f"[{context}] Request ID: {request_id}: {type(exc).__name__}: {exc}",
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={"error": INTERNAL_ERROR_MESSAGE, "requestId": request_id},
    )
