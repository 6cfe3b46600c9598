"""Domain errors raised by the storefront workflows.

Each error carries the HTTP status it maps to and a short machine readable
``code``; ``register_exception_handlers`` turns them into JSON responses.
"""
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class StoreError(Exception):
    status_code = 400
    code = "store_error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.__class__.__doc__ or self.code
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        return {"detail": self.detail, "code": self.code}


class ValidationError(StoreError):
    """Invalid input"""
    status_code = 422
    code = "validation_error"


class EmptyCartError(StoreError):
    """Cart is empty"""
    status_code = 400
    code = "empty_cart"


class InsufficientStockError(StoreError):
    status_code = 409
    code = "insufficient_stock"

    def __init__(self, product_id: int, name: str, requested: int, available: int):
        self.product_id = product_id
        self.name = name
        self.requested = requested
        self.available = available
        super().__init__(f"Insufficient stock for {name}: requested {requested}, available {available}")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update(product_id=self.product_id, requested=self.requested, available=self.available)
        return data


class PaymentDeclinedError(StoreError):
    status_code = 402
    code = "payment_declined"

    def __init__(self, reason: str = "card_declined", requires_action: bool = False):
        self.reason = reason
        self.requires_action = requires_action
        super().__init__(f"Payment declined: {reason}")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update(reason=self.reason, requires_action=self.requires_action)
        return data


class PaymentGatewayError(StoreError):
    """Payment provider unavailable"""
    status_code = 502
    code = "payment_gateway_error"


class NotFoundError(StoreError):
    """Not found"""
    status_code = 404
    code = "not_found"


class ConflictError(StoreError):
    """Conflict"""
    status_code = 409
    code = "conflict"


class InvalidOrderStateError(StoreError):
    """Order cannot transition from its current status"""
    status_code = 409
    code = "invalid_order_state"


class PersistenceError(StoreError):
    """Something went wrong, please try again"""
    status_code = 503
    code = "persistence_error"


async def _store_error_handler(request: Request, exc: StoreError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _backend_error_handler(request: Request, exc: Exception):
    logger.error("backend failure on %s %s: %s", request.method, request.url.path, exc)
    err = PersistenceError()
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StoreError, _store_error_handler)
    app.add_exception_handler(SQLAlchemyError, _backend_error_handler)
    app.add_exception_handler(RedisError, _backend_error_handler)
