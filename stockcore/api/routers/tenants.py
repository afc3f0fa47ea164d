from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.orm import Session

from ...dependencies import get_db, get_tenant_id
from ...infrastructure.unit_of_work import UnitOfWork
from ...application.dtos import TenantIn, TenantOut
from ...application.errors import InventoryError
from ...application.services_tenants import create_tenant, get_tenant
from ..errors import to_http_error

router = APIRouter(prefix="/tenants", tags=["tenants"])


@router.post("", response_model=TenantOut, status_code=201)
def create(payload: TenantIn, db: Session = Depends(get_db)):
    uow = UnitOfWork(db)
    try:
        tenant = create_tenant(uow, payload.name)
        uow.commit()
        return TenantOut.model_validate(tenant)
    except InventoryError as e:
        uow.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    finally:
        uow.close()


@router.get("/info", response_model=TenantOut)
def info(tenant_id: int = Depends(get_tenant_id), db: Session = Depends(get_db)):
    """Datos del tenant activo"""
    uow = UnitOfWork(db)
    try:
        return TenantOut.model_validate(get_tenant(uow, tenant_id))
    except InventoryError as e:
        raise to_http_error(e)
    finally:
        uow.close()
