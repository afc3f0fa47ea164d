"""
Catálogo de productos: productos con sus variantes embebidas.

El stock inicial de una variante se fija al crearla y queda guardado en
initial_stock; desde ese momento solo el ledger modifica el contador.
"""
from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Optional

from ..config import settings
from ..domain.models import Product, Variant
from ..infrastructure.unit_of_work import UnitOfWork
from .errors import DuplicateSku, InvalidQuantity, InventoryError
from .services_tenants import get_tenant
import logging

logger = logging.getLogger(__name__)


def _field(spec: Any, name: str, default=None):
    if isinstance(spec, Mapping):
        return spec.get(name, default)
    return getattr(spec, name, default)


class CatalogService:
    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    def create_product(
        self,
        tenant_id: int,
        name: str,
        category: Optional[str],
        variants: Iterable[Any],
    ) -> Product:
        """
        Crea un producto con sus variantes.

        Cada variante admite sku, attributes, price, stock y reorder_threshold
        (como dict o como objeto con esos atributos).
        """
        get_tenant(self.uow, tenant_id)
        if not name or not name.strip():
            raise InventoryError("El nombre del producto es obligatorio")

        specs = list(variants)
        skus = [(_field(s, "sku") or "").strip() for s in specs]
        if any(not sku for sku in skus):
            raise InventoryError("Todas las variantes deben tener SKU")

        seen = set()
        for sku in skus:
            if sku in seen:
                raise DuplicateSku(sku)
            seen.add(sku)
        taken = self.uow.variants.existing_skus(tenant_id, skus)
        if taken:
            raise DuplicateSku(sorted(taken)[0])

        product = Product(tenant_id=tenant_id, name=name.strip(), category=category)
        for position, (sku, spec) in enumerate(zip(skus, specs)):
            stock = _field(spec, "stock", 0) or 0
            threshold = _field(spec, "reorder_threshold")
            if threshold is None:
                threshold = settings.default_reorder_threshold
            if isinstance(stock, bool) or not isinstance(stock, int) or stock < 0:
                raise InvalidQuantity(f"Stock inicial no válido para {sku}: {stock!r}")
            if threshold < 0:
                raise InvalidQuantity(f"Umbral de reposición no válido para {sku}: {threshold!r}")
            product.variants.append(Variant(
                tenant_id=tenant_id,
                position=position,
                sku=sku,
                attributes=dict(_field(spec, "attributes") or {}),
                price=Decimal(str(_field(spec, "price", 0) or 0)),
                stock=stock,
                initial_stock=stock,
                reorder_threshold=threshold,
            ))

        self.uow.products.add(product)
        logger.info("Producto creado tenant=%s id=%s variantes=%s", tenant_id, product.id, len(skus))
        return product

    def list_products(self, tenant_id: int, category: Optional[str] = None) -> List[Product]:
        """Productos del tenant con el stock vigente de sus variantes"""
        return self.uow.products.list(tenant_id, category)
