from datetime import datetime
from typing import Iterable, Iterator, Optional
from sqlalchemy import update, select, func
from sqlalchemy.orm import Session, selectinload
from ..domain.models import Tenant, Product, Variant
from ..domain.models_ledger import StockMovement
from ..domain.models_orders import Order
from ..domain.models_purchasing import PurchaseOrder, PurchaseOrderItem
from ..domain.enums import PurchaseOrderStatus

class TenantRepository:
    def __init__(self, db: Session): self.db = db
    def add(self, t: Tenant): self.db.add(t); self.db.flush(); return t
    def get(self, tenant_id: int): return self.db.get(Tenant, tenant_id)
    def by_name(self, name: str):
        return self.db.query(Tenant).filter(Tenant.name == name).first()

class ProductRepository:
    def __init__(self, db: Session): self.db = db
    def add(self, p: Product): self.db.add(p); self.db.flush(); return p
    def list(self, tenant_id: int, category: Optional[str] = None):
        q = (self.db.query(Product)
             .options(selectinload(Product.variants))
             .filter(Product.tenant_id == tenant_id)
             .populate_existing())
        if category is not None:
            q = q.filter(Product.category == category)
        return q.order_by(Product.name, Product.id).all()

class VariantRepository:
    """
    Acceso a los contadores de stock direccionados por (tenant_id, sku).
    decrement/increment son las únicas escrituras de Variant.stock y solo
    las invoca el ledger.
    """
    def __init__(self, db: Session): self.db = db

    def by_sku(self, tenant_id: int, sku: str):
        return (self.db.query(Variant)
                .filter(Variant.tenant_id == tenant_id, Variant.sku == sku)
                .populate_existing()
                .first())

    def existing_skus(self, tenant_id: int, skus: Iterable[str]) -> set:
        skus = list(skus)
        if not skus:
            return set()
        rows = self.db.execute(
            select(Variant.sku).where(Variant.tenant_id == tenant_id, Variant.sku.in_(skus))
        ).scalars().all()
        return set(rows)

    def owner_tenants(self, sku: str) -> set:
        """Tenants que tienen una variante con este SKU"""
        return set(self.db.execute(select(Variant.tenant_id).where(Variant.sku == sku)).scalars().all())

    def list(self, tenant_id: int, sku: Optional[str] = None):
        q = self.db.query(Variant).filter(Variant.tenant_id == tenant_id).populate_existing()
        if sku is not None:
            q = q.filter(Variant.sku == sku)
        return q.order_by(Variant.sku).all()

    def stock_of(self, tenant_id: int, sku: str) -> Optional[int]:
        return self.db.execute(
            select(Variant.stock).where(Variant.tenant_id == tenant_id, Variant.sku == sku)
        ).scalar_one_or_none()

    def decrement(self, tenant_id: int, sku: str, quantity: int) -> bool:
        """Check-and-decrement atómico: solo afecta la fila si stock >= quantity"""
        result = self.db.execute(
            update(Variant)
            .where(Variant.tenant_id == tenant_id, Variant.sku == sku, Variant.stock >= quantity)
            .values(stock=Variant.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def increment(self, tenant_id: int, sku: str, quantity: int) -> bool:
        result = self.db.execute(
            update(Variant)
            .where(Variant.tenant_id == tenant_id, Variant.sku == sku)
            .values(stock=Variant.stock + quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

class MovementRepository:
    """Solo inserción y lectura: el ledger no tiene camino de update ni delete."""
    def __init__(self, db: Session): self.db = db
    def add(self, m: StockMovement): self.db.add(m); self.db.flush(); return m

    def stream(self, tenant_id: int, sku: Optional[str] = None,
               date_from: Optional[datetime] = None, date_to: Optional[datetime] = None,
               batch_size: int = 500) -> Iterator[StockMovement]:
        stmt = select(StockMovement).where(StockMovement.tenant_id == tenant_id)
        if sku is not None:
            stmt = stmt.where(StockMovement.sku == sku)
        if date_from is not None:
            stmt = stmt.where(StockMovement.timestamp >= date_from)
        if date_to is not None:
            stmt = stmt.where(StockMovement.timestamp <= date_to)
        stmt = stmt.order_by(StockMovement.timestamp, StockMovement.id)
        return self.db.execute(stmt.execution_options(yield_per=batch_size)).scalars()

    def totals_by_sku(self, tenant_id: int, sku: Optional[str] = None) -> dict:
        stmt = (select(StockMovement.sku, func.coalesce(func.sum(StockMovement.quantity), 0))
                .where(StockMovement.tenant_id == tenant_id)
                .group_by(StockMovement.sku))
        if sku is not None:
            stmt = stmt.where(StockMovement.sku == sku)
        return {row[0]: int(row[1]) for row in self.db.execute(stmt).all()}

class OrderRepository:
    def __init__(self, db: Session): self.db = db
    def add(self, o: Order): self.db.add(o); self.db.flush(); return o
    def get(self, order_id: int):
        return (self.db.query(Order)
                .options(selectinload(Order.lines))
                .filter(Order.id == order_id)
                .populate_existing()
                .first())

    def transition(self, tenant_id: int, order_id: int, from_statuses: Iterable[str], to_status: str) -> bool:
        """Cambio de estado condicional; False si el estado actual no está en from_statuses"""
        result = self.db.execute(
            update(Order)
            .where(Order.id == order_id, Order.tenant_id == tenant_id, Order.status.in_(list(from_statuses)))
            .values(status=to_status, updated_at=datetime.now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def count(self, tenant_id: int) -> int:
        return self.db.query(func.count(Order.id)).filter(Order.tenant_id == tenant_id).scalar()

class PurchaseOrderRepository:
    def __init__(self, db: Session): self.db = db
    def add(self, po: PurchaseOrder): self.db.add(po); self.db.flush(); return po
    def get(self, po_id: int):
        return (self.db.query(PurchaseOrder)
                .options(selectinload(PurchaseOrder.items))
                .filter(PurchaseOrder.id == po_id)
                .populate_existing()
                .first())

    def transition(self, tenant_id: int, po_id: int, from_statuses: Iterable[str], to_status: str) -> bool:
        result = self.db.execute(
            update(PurchaseOrder)
            .where(PurchaseOrder.id == po_id, PurchaseOrder.tenant_id == tenant_id,
                   PurchaseOrder.status.in_(list(from_statuses)))
            .values(status=to_status, updated_at=datetime.now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def receive_quantity(self, item_id: int, quantity: int) -> bool:
        """Incremento condicional: received_qty + quantity <= ordered_qty"""
        result = self.db.execute(
            update(PurchaseOrderItem)
            .where(PurchaseOrderItem.id == item_id,
                   PurchaseOrderItem.received_qty + quantity <= PurchaseOrderItem.ordered_qty)
            .values(received_qty=PurchaseOrderItem.received_qty + quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def pending_by_sku(self, tenant_id: int, sku: Optional[str] = None) -> dict:
        """Σ(ordered_qty - received_qty) por SKU en órdenes aún no recibidas"""
        stmt = (select(PurchaseOrderItem.sku,
                       func.coalesce(func.sum(PurchaseOrderItem.ordered_qty - PurchaseOrderItem.received_qty), 0))
                .join(PurchaseOrder, PurchaseOrder.id == PurchaseOrderItem.purchase_order_id)
                .where(PurchaseOrder.tenant_id == tenant_id,
                       PurchaseOrder.status != PurchaseOrderStatus.RECEIVED.value)
                .group_by(PurchaseOrderItem.sku))
        if sku is not None:
            stmt = stmt.where(PurchaseOrderItem.sku == sku)
        return {row[0]: int(row[1]) for row in self.db.execute(stmt).all()}
