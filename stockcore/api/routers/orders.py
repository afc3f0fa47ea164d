"""
API de Pedidos
==============

Consumida por el API de recepción de pedidos. Un pedido parcialmente atendido
se responde con 201 y estado PartiallyFulfilled; solo el rechazo total
(NoStockAvailable) responde 409, y aun así el pedido queda registrado.
"""
from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.orm import Session

from ...dependencies import get_db, get_tenant_id
from ...infrastructure.unit_of_work import UnitOfWork
from ...application.dtos import OrderIn, OrderOut
from ...application.errors import InventoryError
from ...application.services_orders import OrderService
from ..errors import to_http_error
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderOut, status_code=201)
def place_order(payload: OrderIn, tenant_id: int = Depends(get_tenant_id), db: Session = Depends(get_db)):
    uow = UnitOfWork(db)
    try:
        order = OrderService(uow).place_order(tenant_id, payload.lines)
        uow.commit()
        return OrderOut.model_validate(order)
    except InventoryError as e:
        # NoStockAvailable: el pedido rechazado también se persiste
        if e.commit_on_raise:
            uow.commit()
        else:
            uow.rollback()
        raise to_http_error(e)
    except Exception as e:
        uow.rollback()
        logger.error(f"Error al registrar pedido: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error inesperado: {str(e)}")
    finally:
        uow.close()


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: int, tenant_id: int = Depends(get_tenant_id), db: Session = Depends(get_db)):
    uow = UnitOfWork(db)
    try:
        return OrderOut.model_validate(OrderService(uow).get_order(tenant_id, order_id))
    except InventoryError as e:
        raise to_http_error(e)
    finally:
        uow.close()


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(order_id: int, tenant_id: int = Depends(get_tenant_id), db: Session = Depends(get_db)):
    """Cancela un pedido Pending o PartiallyFulfilled y devuelve al stock lo reservado"""
    uow = UnitOfWork(db)
    try:
        order = OrderService(uow).cancel_order(tenant_id, order_id)
        uow.commit()
        return OrderOut.model_validate(order)
    except InventoryError as e:
        uow.rollback()
        raise to_http_error(e)
    except Exception as e:
        uow.rollback()
        logger.error(f"Error al cancelar pedido {order_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error inesperado: {str(e)}")
    finally:
        uow.close()


@router.post("/{order_id}/backorder", response_model=OrderOut)
def fulfill_backorder(order_id: int, tenant_id: int = Depends(get_tenant_id), db: Session = Depends(get_db)):
    """Reintenta las líneas pendientes de un pedido PartiallyFulfilled"""
    uow = UnitOfWork(db)
    try:
        order = OrderService(uow).fulfill_backorder(tenant_id, order_id)
        uow.commit()
        return OrderOut.model_validate(order)
    except InventoryError as e:
        uow.rollback()
        raise to_http_error(e)
    except Exception as e:
        uow.rollback()
        logger.error(f"Error en backorder del pedido {order_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error inesperado: {str(e)}")
    finally:
        uow.close()
