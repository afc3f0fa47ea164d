from fastapi import HTTPException
from ..application.errors import (
    InventoryError, InsufficientStock, NoStockAvailable, OverReceipt, InvalidTransition,
    CrossTenantViolation, UnknownSku, OrderNotFound, PurchaseOrderNotFound, TenantNotFound,
    InvalidQuantity, DuplicateSku,
)
import logging

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = (
    (CrossTenantViolation, 500),
    (InsufficientStock, 409),
    (NoStockAvailable, 409),
    (OverReceipt, 409),
    (InvalidTransition, 409),
    (UnknownSku, 404),
    (OrderNotFound, 404),
    (PurchaseOrderNotFound, 404),
    (TenantNotFound, 404),
    (InvalidQuantity, 400),
    (DuplicateSku, 400),
)


def to_http_error(exc: InventoryError) -> HTTPException:
    """Traduce un error del núcleo a HTTPException con {code, message}"""
    status_code = next((code for kind, code in STATUS_BY_ERROR if isinstance(exc, kind)), 400)
    if isinstance(exc, CrossTenantViolation):
        logger.error("Violación de aislamiento entre tenants: %s", exc, exc_info=exc)
        return HTTPException(status_code=status_code, detail={"code": "CrossTenantViolation", "message": "Error interno"})
    detail = {"code": type(exc).__name__, "message": str(exc)}
    if isinstance(exc, NoStockAvailable):
        detail["order_id"] = exc.order_id
        detail["skus"] = exc.skus
    return HTTPException(status_code=status_code, detail=detail)
