"""
API de Inventario
=================

Catálogo (productos con variantes), ajustes manuales, consulta del ledger,
conciliación y alertas de stock bajo. Todo queda acotado al tenant del
header X-Tenant-Id.
"""
from fastapi import APIRouter, HTTPException, Query, Depends
from sqlalchemy.orm import Session
from datetime import datetime
from itertools import islice
from typing import List, Optional

from ...dependencies import get_db, get_tenant_id
from ...infrastructure.unit_of_work import UnitOfWork
from ...application.dtos import (
    ProductIn, ProductOut, AdjustmentIn, MovementOut, ReconciliationOut, LowStockOut,
)
from ...application.errors import InventoryError
from ...application.services_catalog import CatalogService
from ...application.services_ledger import StockLedger
from ...application.services_low_stock import LowStockEvaluator
from ..errors import to_http_error
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/inventory", tags=["inventory"])

# ===== PRODUCTOS =====

@router.post("/products", response_model=ProductOut, status_code=201)
def create_product(payload: ProductIn, tenant_id: int = Depends(get_tenant_id), db: Session = Depends(get_db)):
    uow = UnitOfWork(db)
    try:
        product = CatalogService(uow).create_product(tenant_id, payload.name, payload.category, payload.variants)
        uow.commit()
        return ProductOut.model_validate(product)
    except InventoryError as e:
        uow.rollback()
        raise to_http_error(e)
    except Exception as e:
        uow.rollback()
        logger.error(f"Error al crear producto: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error inesperado: {str(e)}")
    finally:
        uow.close()


@router.get("/products", response_model=List[ProductOut])
def list_products(
    category: Optional[str] = Query(None, description="Filtrar por categoría"),
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    """Lista productos del tenant con el stock vigente de cada variante"""
    uow = UnitOfWork(db)
    try:
        return [ProductOut.model_validate(p) for p in CatalogService(uow).list_products(tenant_id, category)]
    finally:
        uow.close()

# ===== LEDGER =====

@router.post("/variants/{sku}/adjustments", response_model=MovementOut, status_code=201)
def adjust_stock(sku: str, payload: AdjustmentIn, tenant_id: int = Depends(get_tenant_id), db: Session = Depends(get_db)):
    """Ajuste manual de stock (conteo físico, merma). Nunca deja stock negativo."""
    uow = UnitOfWork(db)
    try:
        movement = StockLedger(uow).adjust_stock(tenant_id, sku, payload.delta, payload.note)
        uow.commit()
        return MovementOut.model_validate(movement)
    except InventoryError as e:
        uow.rollback()
        raise to_http_error(e)
    except Exception as e:
        uow.rollback()
        logger.error(f"Error al ajustar stock de {sku}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error inesperado: {str(e)}")
    finally:
        uow.close()


@router.get("/movements", response_model=List[MovementOut])
def query_movements(
    sku: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    limit: int = Query(1000, ge=1, le=10000),
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    """Movimientos del ledger en orden cronológico (auditoría / conciliación)"""
    uow = UnitOfWork(db)
    try:
        movements = StockLedger(uow).query_movements(tenant_id, sku=sku, date_from=date_from, date_to=date_to)
        return [MovementOut.model_validate(m) for m in islice(movements, limit)]
    finally:
        uow.close()


@router.get("/reconciliation", response_model=List[ReconciliationOut])
def reconcile(sku: Optional[str] = Query(None), tenant_id: int = Depends(get_tenant_id), db: Session = Depends(get_db)):
    uow = UnitOfWork(db)
    try:
        return [ReconciliationOut.model_validate(r) for r in StockLedger(uow).reconcile(tenant_id, sku)]
    except InventoryError as e:
        raise to_http_error(e)
    finally:
        uow.close()

# ===== STOCK BAJO =====

@router.get("/low-stock", response_model=List[LowStockOut])
def evaluate_low_stock(tenant_id: int = Depends(get_tenant_id), db: Session = Depends(get_db)):
    """Alertas de reposición: stock + pendiente de OCs abiertas < umbral"""
    uow = UnitOfWork(db)
    try:
        return [LowStockOut.model_validate(a) for a in LowStockEvaluator(uow).evaluate_low_stock(tenant_id)]
    finally:
        uow.close()


@router.get("/low-stock/{sku}", response_model=LowStockOut)
def evaluate_sku(sku: str, tenant_id: int = Depends(get_tenant_id), db: Session = Depends(get_db)):
    uow = UnitOfWork(db)
    try:
        return LowStockOut.model_validate(LowStockEvaluator(uow).evaluate_sku(tenant_id, sku))
    except InventoryError as e:
        raise to_http_error(e)
    finally:
        uow.close()
