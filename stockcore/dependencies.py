from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from .db import SessionLocal
from .domain.models import Tenant


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_tenant_id(
    x_tenant_id: int = Header(..., alias="X-Tenant-Id", description="Tenant activo de la operación"),
    db: Session = Depends(get_db),
) -> int:
    """Tenant obligatorio en toda operación; nunca hay un tenant por defecto."""
    tenant = db.get(Tenant, x_tenant_id)
    if not tenant or not tenant.active:
        raise HTTPException(status_code=404, detail={"code": "TenantNotFound", "message": f"Tenant {x_tenant_id} no encontrado"})
    return tenant.id
