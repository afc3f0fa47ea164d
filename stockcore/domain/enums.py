from enum import Enum

class MovementType(str, Enum):
    PURCHASE = "purchase"
    SALE = "sale"
    RETURN = "return"
    ADJUSTMENT = "adjustment"  # Signo explícito en la cantidad

class OrderStatus(str, Enum):
    PENDING = "Pending"
    PARTIALLY_FULFILLED = "PartiallyFulfilled"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

class PurchaseOrderStatus(str, Enum):
    DRAFT = "Draft"
    SENT = "Sent"
    CONFIRMED = "Confirmed"
    RECEIVED = "Received"

class ReferenceType(str, Enum):
    ORDER = "ORDER"
    PURCHASE_ORDER = "PURCHASE_ORDER"
    MANUAL = "MANUAL"

# Transiciones legales de cada máquina de estados
ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PARTIALLY_FULFILLED, OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.PARTIALLY_FULFILLED: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}

PURCHASE_ORDER_TRANSITIONS = {
    PurchaseOrderStatus.DRAFT: {PurchaseOrderStatus.SENT},
    PurchaseOrderStatus.SENT: {PurchaseOrderStatus.CONFIRMED, PurchaseOrderStatus.RECEIVED},
    PurchaseOrderStatus.CONFIRMED: {PurchaseOrderStatus.RECEIVED},
    PurchaseOrderStatus.RECEIVED: set(),
}

# Estados en los que una OC admite recepciones
RECEIVABLE_STATUSES = (PurchaseOrderStatus.SENT, PurchaseOrderStatus.CONFIRMED)
