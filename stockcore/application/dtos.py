from pydantic import BaseModel, Field, constr
from typing import List, Optional, Dict
from datetime import datetime
from decimal import Decimal

# ===== TENANTS =====

class TenantIn(BaseModel):
    name: constr(strip_whitespace=True, min_length=1)

class TenantOut(BaseModel):
    id: int
    name: str
    active: bool

    class Config:
        from_attributes = True

# ===== CATÁLOGO =====

class VariantIn(BaseModel):
    sku: constr(strip_whitespace=True, min_length=1, max_length=64)
    attributes: Dict[str, str] = Field(default_factory=dict)  # ej: {"size": "M", "color": "red"}
    price: Decimal = Decimal("0")
    stock: int = Field(default=0, ge=0)
    reorder_threshold: Optional[int] = Field(default=None, ge=0)  # None = umbral por defecto

class ProductIn(BaseModel):
    name: constr(strip_whitespace=True, min_length=1)
    category: Optional[str] = None
    variants: List[VariantIn] = Field(..., min_length=1)

class VariantOut(BaseModel):
    sku: str
    attributes: Dict[str, str]
    price: Decimal
    stock: int
    reorder_threshold: int

    class Config:
        from_attributes = True

class ProductOut(BaseModel):
    id: int
    tenant_id: int
    name: str
    category: Optional[str] = None
    variants: List[VariantOut]

    class Config:
        from_attributes = True

# ===== LEDGER =====

class AdjustmentIn(BaseModel):
    delta: int  # Con signo: positivo suma, negativo resta
    note: Optional[str] = None

class MovementOut(BaseModel):
    id: int
    tenant_id: int
    sku: str
    type: str
    quantity: int
    timestamp: datetime
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    note: Optional[str] = None

    class Config:
        from_attributes = True

class ReconciliationOut(BaseModel):
    sku: str
    stock: int
    initial_stock: int
    ledger_total: int
    consistent: bool

    class Config:
        from_attributes = True

class LowStockOut(BaseModel):
    sku: str
    stock: int
    pending_qty: int
    reorder_threshold: int
    is_low: bool

    class Config:
        from_attributes = True

# ===== PEDIDOS =====

class OrderLineIn(BaseModel):
    sku: str
    quantity: int = Field(..., gt=0)

class OrderIn(BaseModel):
    lines: List[OrderLineIn] = Field(..., min_length=1)

class OrderLineOut(BaseModel):
    sku: str
    quantity: int
    reserved_quantity: int
    owed: int

    class Config:
        from_attributes = True

class OrderOut(BaseModel):
    id: int
    tenant_id: int
    status: str
    created_at: datetime
    lines: List[OrderLineOut]

    class Config:
        from_attributes = True

# ===== ÓRDENES DE COMPRA =====

class PurchaseOrderItemIn(BaseModel):
    sku: str
    ordered_qty: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)

class PurchaseOrderIn(BaseModel):
    supplier_id: constr(strip_whitespace=True, min_length=1)
    items: List[PurchaseOrderItemIn] = Field(default_factory=list)

class ReceiptIn(BaseModel):
    sku: str
    qty: int = Field(..., gt=0)
    unit_price: Optional[Decimal] = Field(default=None, ge=0)  # None = precio pactado

class ReceiveIn(BaseModel):
    receipts: List[ReceiptIn] = Field(..., min_length=1)

class PurchaseOrderItemOut(BaseModel):
    sku: str
    ordered_qty: int
    received_qty: int
    unit_price: Decimal
    received_unit_price: Optional[Decimal] = None

    class Config:
        from_attributes = True

class PurchaseOrderOut(BaseModel):
    id: int
    tenant_id: int
    supplier_id: str
    status: str
    items: List[PurchaseOrderItemOut]

    class Config:
        from_attributes = True

class PriceVarianceOut(BaseModel):
    sku: str
    ordered_qty: int
    received_qty: int
    unit_price: Decimal
    received_unit_price: Optional[Decimal] = None
    variance: Optional[Decimal] = None

    class Config:
        from_attributes = True
