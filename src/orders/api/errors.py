"""Map domain errors onto HTTP responses.

Every error body has the same shape::

    {"error": "<code>", "messages": {"<field>": ["..."]}, "retryable": false}
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.integrations.fastapi import register_exception_handlers

from orders.errors import OrderingError

logger = structlog.get_logger(__name__)


def _messages(exc) -> dict:
    messages = getattr(exc, "messages", None)
    if isinstance(messages, dict):
        return messages
    return {"_entity": [str(messages or exc)]}


def _body(code: str, messages: dict, retryable: bool = False) -> dict:
    return {"error": code, "messages": messages, "retryable": retryable}


async def ordering_error_handler(request: Request, exc: OrderingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=exc.code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content=_body("validation_error", _messages(exc)))


async def not_found_handler(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content=_body("not_found", _messages(exc)))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages: dict[str, list[str]] = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "header")]
        messages.setdefault(".".join(location) or "_entity", []).append(error.get("msg", "Invalid value"))
    return JSONResponse(status_code=400, content=_body("validation_error", messages))


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(OrderingError, ordering_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(ObjectNotFoundError, not_found_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
