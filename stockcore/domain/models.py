from sqlalchemy import Integer, String, Boolean, ForeignKey, DateTime, Numeric, UniqueConstraint, CheckConstraint, JSON
from datetime import datetime
from decimal import Decimal
from typing import Dict
from sqlalchemy.orm import relationship, Mapped, mapped_column
from ..db import Base

class Tenant(Base):
    __tablename__ = "tenants"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

class Product(Base):
    __tablename__ = "products"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), index=True)
    name: Mapped[str] = mapped_column(String(200))
    category: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    # Las variantes pertenecen al producto (embebidas), ordenadas por posición
    variants = relationship(
        "Variant",
        back_populates="product",
        order_by="Variant.position",
        cascade="all, delete-orphan",
    )

class Variant(Base):
    """
    Variante de producto (talla/color).
    stock es el contador autoritativo: solo lo modifica el ledger mediante
    actualizaciones condicionales direccionadas por (tenant_id, sku).
    """
    __tablename__ = "variants"
    __table_args__ = (
        UniqueConstraint("tenant_id", "sku", name="uq_variant_tenant_sku"),
        CheckConstraint("stock >= 0", name="ck_variant_stock_non_negative"),
    )
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), index=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    sku: Mapped[str] = mapped_column(String(64), index=True)
    attributes: Mapped[Dict[str, str]] = mapped_column(JSON, default=dict)
    price: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    stock: Mapped[int] = mapped_column(Integer, default=0)
    initial_stock: Mapped[int] = mapped_column(Integer, default=0)  # Base para conciliación con el ledger
    reorder_threshold: Mapped[int] = mapped_column(Integer, default=0)

    product = relationship("Product", back_populates="variants")
