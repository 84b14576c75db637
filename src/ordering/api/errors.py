"""Translate domain errors into JSON responses.

Protean's own handlers are registered first; the handlers below then take
over for the storefront error taxonomy. Starlette picks the handler of the
most specific class, so ``InsufficientStock`` and ``InvalidTransition`` get a
409 even though they are ``ValidationError`` subclasses.

Every response body has the shape ``{"success": false, "message": ...}``
plus ``errors`` when there is field-level detail.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.integrations.fastapi import register_exception_handlers as register_protean_handlers

from shared.errors import DuplicateKey, Forbidden, InsufficientStock, InvalidTransition, SignatureMismatch

logger = structlog.get_logger(__name__)


def _error(status_code: int, message: str, errors=None, **extra) -> JSONResponse:
    content = {"success": False, "message": message}
    if errors is not None:
        content["errors"] = errors
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def _first_message(messages: dict, default: str) -> str:
    for field_messages in messages.values():
        if field_messages:
            return field_messages[0] if isinstance(field_messages, list) else str(field_messages)
    return default


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    logger.info("request_rejected", path=request.url.path, errors=exc.messages)
    return _error(400, _first_message(exc.messages, "Validation failed"), errors=exc.messages)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(loc) for loc in error["loc"]), "message": error["msg"], "type": error["type"]}
        for error in exc.errors()
    ]
    logger.info("request_invalid", path=request.url.path, errors=errors)
    return _error(422, "Validation failed", errors=errors)


async def insufficient_stock_handler(request: Request, exc: InsufficientStock) -> JSONResponse:
    logger.info("insufficient_stock", path=request.url.path, product_id=exc.product_id, available=exc.available)
    return _error(
        409,
        _first_message(exc.messages, "Insufficient stock"),
        errors=exc.messages,
        product=exc.product_id,
        available=exc.available,
    )


async def invalid_transition_handler(request: Request, exc: InvalidTransition) -> JSONResponse:
    logger.info("invalid_transition", path=request.url.path, current=exc.current, target=exc.target)
    return _error(409, _first_message(exc.messages, "Invalid status transition"), errors=exc.messages)


async def not_found_handler(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    return _error(404, str(exc) or "Not found")


async def forbidden_handler(request: Request, exc: Forbidden) -> JSONResponse:
    logger.warning("forbidden", path=request.url.path, detail=str(exc))
    return _error(403, str(exc) or "Forbidden")


async def signature_mismatch_handler(request: Request, exc: SignatureMismatch) -> JSONResponse:
    logger.warning("signature_mismatch", path=request.url.path)
    return _error(400, str(exc) or "Invalid signature")


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", method=request.method, path=request.url.path, error=str(exc))
    return _error(500, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application."""
    register_protean_handlers(app)

    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(InsufficientStock, insufficient_stock_handler)
    app.add_exception_handler(InvalidTransition, invalid_transition_handler)
    app.add_exception_handler(ObjectNotFoundError, not_found_handler)
    app.add_exception_handler(Forbidden, forbidden_handler)
    app.add_exception_handler(SignatureMismatch, signature_mismatch_handler)
    # Regenerated internally; reaching here means numbering gave up
    app.add_exception_handler(DuplicateKey, unhandled_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
