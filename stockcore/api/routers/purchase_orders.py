"""
API de Órdenes de Compra - consumida por el API de abastecimiento.
Enviar y confirmar no mueven stock; solo las recepciones lo hacen.
"""
from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.orm import Session
from typing import List

from ...dependencies import get_db, get_tenant_id
from ...infrastructure.unit_of_work import UnitOfWork
from ...application.dtos import (
    PurchaseOrderIn, PurchaseOrderItemIn, PurchaseOrderOut, ReceiveIn, PriceVarianceOut,
)
from ...application.errors import InventoryError
from ...application.services_purchasing import PurchaseOrderService
from ..errors import to_http_error
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/purchase-orders", tags=["purchase-orders"])


def _run(db: Session, action: str, operation):
    """Ejecuta una operación de escritura sobre una OC dentro de un UnitOfWork"""
    uow = UnitOfWork(db)
    try:
        po = operation(PurchaseOrderService(uow))
        uow.commit()
        return PurchaseOrderOut.model_validate(po)
    except InventoryError as e:
        uow.rollback()
        raise to_http_error(e)
    except Exception as e:
        uow.rollback()
        logger.error(f"Error al {action}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error inesperado: {str(e)}")
    finally:
        uow.close()


@router.post("", response_model=PurchaseOrderOut, status_code=201)
def create_purchase_order(payload: PurchaseOrderIn, tenant_id: int = Depends(get_tenant_id), db: Session = Depends(get_db)):
    return _run(db, "crear orden de compra",
                lambda s: s.create_purchase_order(tenant_id, payload.supplier_id, payload.items))


@router.post("/{po_id}/items", response_model=PurchaseOrderOut)
def add_item(po_id: int, payload: PurchaseOrderItemIn, tenant_id: int = Depends(get_tenant_id), db: Session = Depends(get_db)):
    def operation(service: PurchaseOrderService):
        service.add_item(tenant_id, po_id, payload.sku, payload.ordered_qty, payload.unit_price)
        return service.get_purchase_order(tenant_id, po_id)
    return _run(db, f"agregar línea a la OC {po_id}", operation)


@router.post("/{po_id}/send", response_model=PurchaseOrderOut)
def send_purchase_order(po_id: int, tenant_id: int = Depends(get_tenant_id), db: Session = Depends(get_db)):
    return _run(db, f"enviar la OC {po_id}", lambda s: s.send(tenant_id, po_id))


@router.post("/{po_id}/confirm", response_model=PurchaseOrderOut)
def confirm_purchase_order(po_id: int, tenant_id: int = Depends(get_tenant_id), db: Session = Depends(get_db)):
    return _run(db, f"confirmar la OC {po_id}", lambda s: s.confirm(tenant_id, po_id))


@router.post("/{po_id}/receipts", response_model=PurchaseOrderOut)
def receive_items(po_id: int, payload: ReceiveIn, tenant_id: int = Depends(get_tenant_id), db: Session = Depends(get_db)):
    """Recepción física (total o parcial). Incrementa stock vía ledger."""
    return _run(db, f"recibir la OC {po_id}", lambda s: s.receive_items(tenant_id, po_id, payload.receipts))


@router.get("/{po_id}", response_model=PurchaseOrderOut)
def get_purchase_order(po_id: int, tenant_id: int = Depends(get_tenant_id), db: Session = Depends(get_db)):
    uow = UnitOfWork(db)
    try:
        return PurchaseOrderOut.model_validate(PurchaseOrderService(uow).get_purchase_order(tenant_id, po_id))
    except InventoryError as e:
        raise to_http_error(e)
    finally:
        uow.close()


@router.get("/{po_id}/price-variance", response_model=List[PriceVarianceOut])
def price_variance(po_id: int, tenant_id: int = Depends(get_tenant_id), db: Session = Depends(get_db)):
    """Diferencia entre precio pactado y precio recibido (promedio ponderado) por línea"""
    uow = UnitOfWork(db)
    try:
        rows = PurchaseOrderService(uow).price_variance(tenant_id, po_id)
        return [PriceVarianceOut.model_validate(r) for r in rows]
    except InventoryError as e:
        raise to_http_error(e)
    finally:
        uow.close()
