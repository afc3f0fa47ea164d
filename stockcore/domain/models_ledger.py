"""
Ledger de Stock
===============

Historial inmutable de todo evento que afecta stock (compra, venta,
devolución, ajuste). Cada fila se crea una sola vez, en la misma transacción
que la mutación de Variant.stock correspondiente, y nunca se actualiza ni
se elimina: es la fuente de verdad para auditoría y conciliación.
"""
from sqlalchemy import Integer, String, ForeignKey, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from ..db import Base


class StockMovement(Base):
    __tablename__ = "stock_movements"
    __table_args__ = (
        Index("ix_movement_tenant_sku_ts", "tenant_id", "sku", "timestamp"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), index=True)
    sku: Mapped[str] = mapped_column(String(64))
    type: Mapped[str] = mapped_column("movement_type", String(20))  # purchase | sale | return | adjustment
    quantity: Mapped[int] = mapped_column(Integer)  # Delta con signo: venta negativa, compra/devolución positiva
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    reference_type: Mapped[str | None] = mapped_column(String(30), nullable=True)  # ORDER | PURCHASE_ORDER | MANUAL
    reference_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    note: Mapped[str | None] = mapped_column(String(500), nullable=True)
