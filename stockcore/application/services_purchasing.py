"""
Motor de Órdenes de Compra
==========================

Draft → Sent → Confirmed → Received

PRINCIPIOS:
- Enviar y confirmar NO mueven stock: el inventario refleja la recepción
  física, no el estado del documento.
- Cada recepción incrementa received_qty de forma condicional
  (received_qty + cantidad <= ordered_qty) y genera un movimiento purchase
  en la misma transacción.
- La OC pasa a Received solo cuando todas sus líneas están completas; con
  recepciones parciales queda Confirmed.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Optional

from ..domain.enums import (
    MovementType, PurchaseOrderStatus, ReferenceType, RECEIVABLE_STATUSES, PURCHASE_ORDER_TRANSITIONS,
)
from ..domain.models_purchasing import PurchaseOrder, PurchaseOrderItem, PurchaseOrderReceipt
from ..infrastructure.unit_of_work import UnitOfWork
from .errors import (
    CrossTenantViolation, DuplicateSku, InvalidQuantity, InvalidTransition,
    OverReceipt, PurchaseOrderNotFound, UnknownSku,
)
from .services_ledger import StockLedger
from .services_tenants import get_tenant
import logging

logger = logging.getLogger(__name__)

RECEIVABLE = [s.value for s in RECEIVABLE_STATUSES]
PRICE_QUANTUM = Decimal("0.01")


@dataclass(frozen=True)
class PriceVariance:
    sku: str
    ordered_qty: int
    received_qty: int
    unit_price: Decimal
    received_unit_price: Optional[Decimal]

    @property
    def variance(self) -> Optional[Decimal]:
        if self.received_unit_price is None:
            return None
        return self.received_unit_price - self.unit_price


def _field(spec: Any, name: str, default=None):
    if isinstance(spec, Mapping):
        return spec.get(name, default)
    return getattr(spec, name, default)


def _positive_int(value, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidQuantity(f"{label} debe ser un entero positivo, se recibió {value!r}")
    return value


def _price(value, sku: str) -> Decimal:
    price = Decimal(str(value if value is not None else 0))
    if price < 0:
        raise InvalidQuantity(f"Precio no válido para {sku}: {value!r}")
    return price.quantize(PRICE_QUANTUM)


def weighted_unit_price(receipts: Iterable[PurchaseOrderReceipt]) -> Optional[Decimal]:
    """
    Precio unitario recibido promedio ponderado.

    Fórmula: Σ(cantidad * precio) / Σ(cantidad)
    """
    total_qty = 0
    total_cost = Decimal("0")
    for receipt in receipts:
        total_qty += receipt.quantity
        total_cost += Decimal(str(receipt.unit_price)) * receipt.quantity
    if total_qty == 0:
        return None
    return (total_cost / total_qty).quantize(PRICE_QUANTUM)


class PurchaseOrderService:
    def __init__(self, uow: UnitOfWork, ledger: Optional[StockLedger] = None):
        self.uow = uow
        self.ledger = ledger or StockLedger(uow)

    def _get(self, tenant_id: int, po_id: int) -> PurchaseOrder:
        po = self.uow.purchase_orders.get(po_id)
        if not po:
            raise PurchaseOrderNotFound(f"Orden de compra {po_id} no encontrada")
        if po.tenant_id != tenant_id:
            logger.error("Acceso cruzado a OC %s: tenant=%s dueño=%s", po_id, tenant_id, po.tenant_id)
            raise CrossTenantViolation("PurchaseOrder", po_id, tenant_id, po.tenant_id)
        return po

    def _transition(self, tenant_id: int, po: PurchaseOrder, from_statuses, to_status: PurchaseOrderStatus) -> PurchaseOrder:
        if not self.uow.purchase_orders.transition(tenant_id, po.id, from_statuses, to_status.value):
            current = self.uow.purchase_orders.get(po.id)
            raise InvalidTransition("PurchaseOrder", po.id, current.status, to_status.value)
        return self.uow.purchase_orders.get(po.id)

    def _require(self, po: PurchaseOrder, target: PurchaseOrderStatus):
        if target not in PURCHASE_ORDER_TRANSITIONS[PurchaseOrderStatus(po.status)]:
            raise InvalidTransition("PurchaseOrder", po.id, po.status, target.value)

    def create_purchase_order(self, tenant_id: int, supplier_id: str, items: Iterable[Any] = ()) -> PurchaseOrder:
        get_tenant(self.uow, tenant_id)
        if not supplier_id:
            raise InvalidQuantity("supplier_id es obligatorio")
        po = self.uow.purchase_orders.add(
            PurchaseOrder(tenant_id=tenant_id, supplier_id=str(supplier_id), status=PurchaseOrderStatus.DRAFT.value)
        )
        for item in items:
            self.add_item(tenant_id, po.id, _field(item, "sku"), _field(item, "ordered_qty"), _field(item, "unit_price"))
        logger.info("OC %s creada tenant=%s proveedor=%s", po.id, tenant_id, supplier_id)
        return self.uow.purchase_orders.get(po.id)

    def add_item(self, tenant_id: int, po_id: int, sku: str, ordered_qty: int, unit_price) -> PurchaseOrderItem:
        """Agrega una línea; solo permitido en Draft"""
        po = self._get(tenant_id, po_id)
        if po.status != PurchaseOrderStatus.DRAFT.value:
            raise InvalidTransition("PurchaseOrder", po_id, po.status, PurchaseOrderStatus.DRAFT.value)
        if not self.uow.variants.existing_skus(tenant_id, [sku]):
            raise self.ledger.unresolved_sku(tenant_id, sku)
        if any(i.sku == sku for i in po.items):
            raise DuplicateSku(sku, f"La OC {po_id} ya tiene una línea para {sku}")

        item = PurchaseOrderItem(
            position=len(po.items),
            sku=sku,
            ordered_qty=_positive_int(ordered_qty, "ordered_qty"),
            received_qty=0,
            unit_price=_price(unit_price, sku),
        )
        po.items.append(item)
        self.uow.db.flush()
        return item

    def send(self, tenant_id: int, po_id: int) -> PurchaseOrder:
        po = self._get(tenant_id, po_id)
        self._require(po, PurchaseOrderStatus.SENT)
        if not po.items:
            raise InvalidTransition("PurchaseOrder", po_id, po.status, PurchaseOrderStatus.SENT.value)
        po = self._transition(tenant_id, po, [PurchaseOrderStatus.DRAFT.value], PurchaseOrderStatus.SENT)
        logger.info("OC %s enviada tenant=%s", po_id, tenant_id)
        return po

    def confirm(self, tenant_id: int, po_id: int) -> PurchaseOrder:
        po = self._get(tenant_id, po_id)
        self._require(po, PurchaseOrderStatus.CONFIRMED)
        po = self._transition(tenant_id, po, [PurchaseOrderStatus.SENT.value], PurchaseOrderStatus.CONFIRMED)
        logger.info("OC %s confirmada tenant=%s", po_id, tenant_id)
        return po

    def receive_items(self, tenant_id: int, po_id: int, receipts: Iterable[Any]) -> PurchaseOrder:
        """
        Registra recepciones (sku, qty, unit_price) contra la OC.

        Toda la llamada es atómica: si una recepción excede lo pedido se lanza
        OverReceipt y ninguna de las recepciones de la llamada queda aplicada.
        """
        po = self._get(tenant_id, po_id)
        if po.status not in RECEIVABLE:
            raise InvalidTransition("PurchaseOrder", po_id, po.status, PurchaseOrderStatus.RECEIVED.value)

        requested = []
        for receipt in receipts:
            sku = _field(receipt, "sku")
            qty = _positive_int(_field(receipt, "qty"), f"qty de {sku}")
            requested.append((sku, qty, _field(receipt, "unit_price")))
        if not requested:
            raise InvalidQuantity("Debe indicar al menos una recepción")

        with self.uow.savepoint():
            # Reclama la OC: falla si otra operación la sacó de un estado recibible
            current = PurchaseOrderStatus(po.status)
            po = self._transition(tenant_id, po, RECEIVABLE, current)
            items = {item.sku: item for item in po.items}

            for sku, qty, unit_price in requested:
                item = items.get(sku)
                if item is None:
                    raise UnknownSku(sku, f"SKU {sku} no pertenece a la OC {po_id}")
                price = _price(unit_price if unit_price is not None else item.unit_price, sku)

                if not self.uow.purchase_orders.receive_quantity(item.id, qty):
                    self.uow.db.refresh(item)
                    logger.warning(
                        "Sobre-recepción OC %s sku=%s pedido=%s recibido=%s intento=%s",
                        po_id, sku, item.ordered_qty, item.received_qty, qty,
                    )
                    raise OverReceipt(sku, item.ordered_qty, item.received_qty, qty)

                movement = self.ledger.apply_movement(
                    tenant_id, sku, MovementType.PURCHASE, qty,
                    reference_id=po_id, reference_type=ReferenceType.PURCHASE_ORDER.value,
                )
                self.uow.db.add(PurchaseOrderReceipt(
                    tenant_id=tenant_id, item_id=item.id, quantity=qty,
                    unit_price=price, movement_id=movement.id,
                ))
            self.uow.db.flush()

            po = self.uow.purchase_orders.get(po_id)
            touched = {sku for sku, _, _ in requested}
            for item in po.items:
                self.uow.db.refresh(item)
                if item.sku in touched:
                    self.uow.db.refresh(item, ["receipts"])
                    item.received_unit_price = weighted_unit_price(item.receipts)
            self.uow.db.flush()

            if po.fully_received:
                po = self._transition(tenant_id, po, RECEIVABLE, PurchaseOrderStatus.RECEIVED)
            elif po.status == PurchaseOrderStatus.SENT.value:
                po = self._transition(tenant_id, po, [PurchaseOrderStatus.SENT.value], PurchaseOrderStatus.CONFIRMED)

        logger.info("Recepción OC %s tenant=%s estado=%s líneas=%s", po_id, tenant_id, po.status, len(requested))
        return po

    def get_purchase_order(self, tenant_id: int, po_id: int) -> PurchaseOrder:
        return self._get(tenant_id, po_id)

    def price_variance(self, tenant_id: int, po_id: int) -> List[PriceVariance]:
        po = self._get(tenant_id, po_id)
        return [
            PriceVariance(
                sku=item.sku,
                ordered_qty=item.ordered_qty,
                received_qty=item.received_qty,
                unit_price=Decimal(str(item.unit_price)),
                received_unit_price=(
                    Decimal(str(item.received_unit_price)) if item.received_unit_price is not None else None
                ),
            )
            for item in po.items
        ]
