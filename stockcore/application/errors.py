"""
Errores del núcleo de inventario.

Todos se propagan al llamador como fallos tipados; ninguno se reintenta dentro
del núcleo. El cumplimiento parcial (pedidos PartiallyFulfilled, recepciones
parciales) no es un error: se informa mediante el estado de la entidad.
"""


class InventoryError(Exception):
    """Excepción base para errores del núcleo de inventario"""
    # True si el trabajo hecho antes del error debe confirmarse igualmente
    commit_on_raise = False


class InvalidQuantity(InventoryError):
    """Cantidad no válida para el tipo de movimiento u operación"""
    pass


class UnknownSku(InventoryError):
    """El SKU no existe dentro del tenant"""

    def __init__(self, sku: str, message: str | None = None):
        self.sku = sku
        super().__init__(message or f"SKU {sku} no encontrado")


class DuplicateSku(InventoryError):
    """El SKU ya existe dentro del tenant"""

    def __init__(self, sku: str, message: str | None = None):
        self.sku = sku
        super().__init__(message or f"Ya existe una variante con SKU {sku} en este tenant")


class TenantNotFound(InventoryError):
    pass


class OrderNotFound(InventoryError):
    pass


class PurchaseOrderNotFound(InventoryError):
    pass


class InsufficientStock(InventoryError):
    """La actualización condicional (stock >= cantidad) no afectó ninguna fila"""

    def __init__(self, sku: str, requested: int, available: int | None = None):
        self.sku = sku
        self.requested = requested
        self.available = available
        super().__init__(
            f"Stock insuficiente para {sku}. Disponible: {available}, Solicitado: {requested}"
        )


class NoStockAvailable(InventoryError):
    """
    Ninguna línea del pedido pudo reservarse.
    El pedido igualmente queda registrado; order_id lo identifica.
    """
    commit_on_raise = True

    def __init__(self, order_id: int, skus: list[str]):
        self.order_id = order_id
        self.skus = skus
        super().__init__(f"Pedido {order_id} rechazado: sin stock para {', '.join(skus)}")


class OverReceipt(InventoryError):
    def __init__(self, sku: str, ordered: int, received: int, attempted: int):
        self.sku = sku
        self.ordered = ordered
        self.received = received
        self.attempted = attempted
        super().__init__(
            f"Recepción excede lo pedido para {sku}: pedido {ordered}, recibido {received}, intento {attempted}"
        )


class InvalidTransition(InventoryError):
    def __init__(self, entity: str, entity_id: int, current: str, target: str):
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.target = target
        super().__init__(f"{entity} {entity_id}: transición inválida {current} → {target}")


class CrossTenantViolation(InventoryError):
    """
    Una operación resolvió entidades de tenants distintos.
    Es una ruptura de contrato de programación, nunca un resultado de negocio.
    """

    def __init__(self, entity: str, entity_id, tenant_id: int, owner_tenant_id: int):
        self.entity = entity
        self.entity_id = entity_id
        self.tenant_id = tenant_id
        self.owner_tenant_id = owner_tenant_id
        super().__init__(
            f"{entity} {entity_id} pertenece al tenant {owner_tenant_id}, no al tenant {tenant_id}"
        )
