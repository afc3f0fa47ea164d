"""
Motor de Pedidos
================

Convierte un pedido de cliente en movimientos de venta del ledger bajo la
máquina de estados:

    Pending → {PartiallyFulfilled, Completed, Cancelled}
    PartiallyFulfilled → {Completed, Cancelled}
    Completed, Cancelled: terminales

Cada línea es una venta condicional independiente sobre su SKU; no hay lock
global entre SKUs. Un pedido parcialmente atendido es un resultado de negocio,
no un error.
"""
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from ..domain.enums import MovementType, OrderStatus, ReferenceType, ORDER_TRANSITIONS
from ..domain.models_orders import Order, OrderLine
from ..infrastructure.unit_of_work import UnitOfWork
from .errors import (
    CrossTenantViolation, InsufficientStock, InvalidQuantity, InvalidTransition,
    NoStockAvailable, OrderNotFound,
)
from .services_ledger import StockLedger
from .services_tenants import get_tenant
import logging

logger = logging.getLogger(__name__)

CANCELLABLE = (OrderStatus.PENDING.value, OrderStatus.PARTIALLY_FULFILLED.value)


def _normalize_lines(lines: Iterable[Any]) -> List[Tuple[str, int]]:
    normalized = []
    for line in lines:
        if isinstance(line, Mapping):
            sku, quantity = line.get("sku"), line.get("quantity")
        else:
            sku, quantity = getattr(line, "sku", None), getattr(line, "quantity", None)
        if not sku:
            raise InvalidQuantity("Cada línea debe indicar un SKU")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidQuantity(f"Cantidad no válida para {sku}: {quantity!r}")
        normalized.append((sku, quantity))
    if not normalized:
        raise InvalidQuantity("El pedido debe tener al menos una línea")
    return normalized


def target_status(lines: List[OrderLine]) -> OrderStatus:
    reserved = sum(1 for line in lines if line.reserved_quantity)
    if reserved == len(lines):
        return OrderStatus.COMPLETED
    if reserved:
        return OrderStatus.PARTIALLY_FULFILLED
    return OrderStatus.CANCELLED


class OrderService:
    def __init__(self, uow: UnitOfWork, ledger: Optional[StockLedger] = None):
        self.uow = uow
        self.ledger = ledger or StockLedger(uow)

    def _get_order(self, tenant_id: int, order_id: int) -> Order:
        order = self.uow.orders.get(order_id)
        if not order:
            raise OrderNotFound(f"Pedido {order_id} no encontrado")
        if order.tenant_id != tenant_id:
            logger.error("Acceso cruzado a pedido %s: tenant=%s dueño=%s", order_id, tenant_id, order.tenant_id)
            raise CrossTenantViolation("Order", order_id, tenant_id, order.tenant_id)
        return order

    def _transition(self, tenant_id: int, order: Order, from_statuses, to_status: OrderStatus) -> Order:
        if not self.uow.orders.transition(tenant_id, order.id, from_statuses, to_status.value):
            current = self.uow.orders.get(order.id)
            raise InvalidTransition("Order", order.id, current.status, to_status.value)
        return self.uow.orders.get(order.id)

    def _reserve(self, tenant_id: int, order: Order, lines: List[OrderLine]) -> List[str]:
        """Intenta la venta condicional de cada línea, en el orden dado. Devuelve los SKU fallidos."""
        failed = []
        for line in lines:
            try:
                self.ledger.apply_movement(
                    tenant_id, line.sku, MovementType.SALE, line.owed,
                    reference_id=order.id, reference_type=ReferenceType.ORDER.value,
                )
            except InsufficientStock:
                failed.append(line.sku)
                continue
            line.reserved_quantity = line.quantity
        self.uow.db.flush()
        return failed

    def place_order(self, tenant_id: int, lines: Iterable[Any]) -> Order:
        """
        Registra un pedido y reserva stock línea por línea.

        Returns:
            Order en Completed o PartiallyFulfilled

        Raises:
            UnknownSku: alguna línea referencia un SKU que no existe en el tenant
            CrossTenantViolation: alguna línea referencia un SKU de otro tenant
            NoStockAvailable: ninguna línea pudo reservarse; el pedido queda
                registrado como Cancelled y sin movimientos
        """
        get_tenant(self.uow, tenant_id)
        requested = _normalize_lines(lines)
        known = self.uow.variants.existing_skus(tenant_id, [sku for sku, _ in requested])
        for sku, _ in requested:
            if sku not in known:
                raise self.ledger.unresolved_sku(tenant_id, sku)

        order = Order(tenant_id=tenant_id, status=OrderStatus.PENDING.value)
        for position, (sku, quantity) in enumerate(requested):
            order.lines.append(OrderLine(position=position, sku=sku, quantity=quantity, reserved_quantity=0))
        self.uow.orders.add(order)

        with self.uow.savepoint() as scope:
            failed = self._reserve(tenant_id, order, order.lines)
            if len(failed) == len(order.lines):
                scope.rollback()

        status = target_status(order.lines)
        order = self._transition(tenant_id, order, [OrderStatus.PENDING.value], status)

        if status == OrderStatus.CANCELLED:
            logger.warning("Pedido %s rechazado tenant=%s: sin stock para %s", order.id, tenant_id, failed)
            raise NoStockAvailable(order.id, failed)

        logger.info(
            "Pedido %s registrado tenant=%s estado=%s líneas=%s fallidas=%s",
            order.id, tenant_id, order.status, len(order.lines), failed,
        )
        return order

    def cancel_order(self, tenant_id: int, order_id: int) -> Order:
        """
        Cancela un pedido Pending o PartiallyFulfilled devolviendo al stock lo reservado.

        El cambio de estado es condicional, por lo que dos cancelaciones
        concurrentes no pueden generar devoluciones duplicadas.
        """
        order = self._get_order(tenant_id, order_id)
        if OrderStatus.CANCELLED not in ORDER_TRANSITIONS[OrderStatus(order.status)]:
            raise InvalidTransition("Order", order_id, order.status, OrderStatus.CANCELLED.value)

        order = self._transition(tenant_id, order, CANCELLABLE, OrderStatus.CANCELLED)

        for line in order.lines:
            if line.reserved_quantity:
                self.ledger.apply_movement(
                    tenant_id, line.sku, MovementType.RETURN, line.reserved_quantity,
                    reference_id=order.id, reference_type=ReferenceType.ORDER.value,
                    note="Devolución por cancelación",
                )

        logger.info("Pedido %s cancelado tenant=%s", order_id, tenant_id)
        return self.uow.orders.get(order_id)

    def fulfill_backorder(self, tenant_id: int, order_id: int) -> Order:
        """
        Reintenta las líneas pendientes de un pedido PartiallyFulfilled.
        Si todas quedan reservadas el pedido pasa a Completed.
        """
        order = self._get_order(tenant_id, order_id)
        partial = OrderStatus.PARTIALLY_FULFILLED
        if OrderStatus(order.status) != partial:
            raise InvalidTransition("Order", order_id, order.status, OrderStatus.COMPLETED.value)

        # Reclama el pedido: falla si otra operación lo movió de estado
        order = self._transition(tenant_id, order, [partial.value], partial)

        with self.uow.savepoint():
            failed = self._reserve(tenant_id, order, order.unfulfilled_lines)

        if not failed:
            order = self._transition(tenant_id, order, [partial.value], OrderStatus.COMPLETED)
        logger.info("Backorder pedido %s tenant=%s estado=%s pendientes=%s", order_id, tenant_id, order.status, failed)
        return self.uow.orders.get(order_id)

    def get_order(self, tenant_id: int, order_id: int) -> Order:
        return self._get_order(tenant_id, order_id)
