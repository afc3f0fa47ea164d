from ..domain.models import Tenant
from ..infrastructure.unit_of_work import UnitOfWork
from .errors import InventoryError, TenantNotFound
import logging

logger = logging.getLogger(__name__)


def create_tenant(uow: UnitOfWork, name: str) -> Tenant:
    name = (name or "").strip()
    if not name:
        raise InventoryError("El nombre del tenant es obligatorio")
    if uow.tenants.by_name(name):
        raise InventoryError(f"Ya existe un tenant con nombre {name}")
    tenant = uow.tenants.add(Tenant(name=name))
    logger.info("Tenant creado id=%s nombre=%s", tenant.id, tenant.name)
    return tenant


def get_tenant(uow: UnitOfWork, tenant_id: int) -> Tenant:
    """Obtiene el tenant activo o lanza TenantNotFound"""
    tenant = uow.tenants.get(tenant_id)
    if not tenant or not tenant.active:
        raise TenantNotFound(f"Tenant {tenant_id} no encontrado o inactivo")
    return tenant
