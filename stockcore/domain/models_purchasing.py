"""
Modelos de Compras
==================

- PurchaseOrder: orden de compra a proveedor (Draft → Sent → Confirmed → Received)
- PurchaseOrderItem: línea con cantidad pedida / recibida y precio
- PurchaseOrderReceipt: historial de recepciones parciales por línea
"""
from sqlalchemy import Integer, String, ForeignKey, DateTime, Numeric, CheckConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column
from datetime import datetime
from decimal import Decimal
from ..db import Base
from .enums import PurchaseOrderStatus


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), index=True)
    supplier_id: Mapped[str] = mapped_column(String(64), index=True)
    status: Mapped[str] = mapped_column(String(20), default=PurchaseOrderStatus.DRAFT.value, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)

    items = relationship(
        "PurchaseOrderItem",
        back_populates="purchase_order",
        order_by="PurchaseOrderItem.position",
        cascade="all, delete-orphan",
    )

    @property
    def fully_received(self) -> bool:
        return bool(self.items) and all(i.pending_qty == 0 for i in self.items)


class PurchaseOrderItem(Base):
    __tablename__ = "purchase_order_items"
    __table_args__ = (
        CheckConstraint("received_qty >= 0 AND received_qty <= ordered_qty", name="ck_po_item_received"),
    )
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    purchase_order_id: Mapped[int] = mapped_column(ForeignKey("purchase_orders.id"), index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    sku: Mapped[str] = mapped_column(String(64), index=True)
    ordered_qty: Mapped[int] = mapped_column(Integer)
    received_qty: Mapped[int] = mapped_column(Integer, default=0)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    received_unit_price: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)  # Promedio ponderado de recepciones

    purchase_order = relationship("PurchaseOrder", back_populates="items")
    receipts = relationship(
        "PurchaseOrderReceipt",
        back_populates="item",
        order_by="PurchaseOrderReceipt.id",
        cascade="all, delete-orphan",
    )

    @property
    def pending_qty(self) -> int:
        return self.ordered_qty - (self.received_qty or 0)


class PurchaseOrderReceipt(Base):
    __tablename__ = "purchase_order_receipts"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), index=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("purchase_order_items.id"), index=True)
    quantity: Mapped[int] = mapped_column(Integer)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    movement_id: Mapped[int] = mapped_column(ForeignKey("stock_movements.id"))
    received_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    item = relationship("PurchaseOrderItem", back_populates="receipts")
