"""
Ledger de Stock e Inventario
============================

Único punto de escritura de Variant.stock. Cada movimiento:
1. Aplica el delta con una actualización condicional atómica sobre la fila
   (tenant_id, sku): las salidas solo afectan la fila si stock >= cantidad,
   nunca como lectura-y-luego-escritura.
2. Inserta el StockMovement inmutable.
Ambos pasos ocurren dentro de un SAVEPOINT de la transacción del llamador:
o se aplican los dos o ninguno.

Los motores de pedidos y de compras (y el ajuste manual) son los únicos
llamadores de apply_movement.
"""
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Iterator, List, Optional

from ..config import settings
from ..domain.enums import MovementType, ReferenceType
from ..domain.models_ledger import StockMovement
from ..infrastructure.unit_of_work import UnitOfWork
from .errors import CrossTenantViolation, InsufficientStock, InvalidQuantity, InventoryError, UnknownSku
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconciliationRow:
    sku: str
    stock: int
    initial_stock: int
    ledger_total: int

    @property
    def consistent(self) -> bool:
        return self.stock - self.initial_stock == self.ledger_total


def _as_datetime(value, end_of_day: bool = False) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.max if end_of_day else time.min)
    raise TypeError(f"Fecha no válida: {value!r}")


def signed_delta(movement_type: MovementType, quantity: int) -> int:
    """
    Convierte la cantidad recibida en el delta con signo del ledger.

    sale resta; purchase y return suman; adjustment ya trae su signo.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantity(f"La cantidad debe ser un entero, se recibió {quantity!r}")
    if movement_type == MovementType.ADJUSTMENT:
        if quantity == 0:
            raise InvalidQuantity("Un ajuste debe tener una cantidad distinta de cero")
        return quantity
    if quantity <= 0:
        raise InvalidQuantity(f"La cantidad de un movimiento {movement_type.value} debe ser positiva")
    if movement_type == MovementType.SALE:
        return -quantity
    return quantity


class StockLedger:
    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    def unresolved_sku(self, tenant_id: int, sku: str) -> InventoryError:
        """
        Error para un SKU que no existe en el tenant.
        Si solo existe bajo otro tenant es una ruptura de aislamiento, no un SKU desconocido.
        """
        owners = self.uow.variants.owner_tenants(sku)
        if owners:
            owner = min(owners)
            logger.error("SKU %s de otro tenant referenciado: tenant=%s dueño=%s", sku, tenant_id, owner)
            return CrossTenantViolation("Variant", sku, tenant_id, owner)
        return UnknownSku(sku)

    def apply_movement(
        self,
        tenant_id: int,
        sku: str,
        movement_type: MovementType | str,
        quantity: int,
        reference_id: Optional[int] = None,
        reference_type: Optional[str] = None,
        note: Optional[str] = None,
    ) -> StockMovement:
        """
        Aplica un movimiento de stock y lo registra en el ledger.

        Returns:
            StockMovement creado (su id es el MovementId)

        Raises:
            InvalidQuantity: cantidad no válida para el tipo
            UnknownSku: el SKU no existe en el tenant
            CrossTenantViolation: el SKU solo existe bajo otro tenant
            InsufficientStock: la salida dejaría el stock en negativo (sin mutación)
        """
        movement_type = MovementType(movement_type)
        delta = signed_delta(movement_type, quantity)

        with self.uow.savepoint():
            if delta < 0:
                applied = self.uow.variants.decrement(tenant_id, sku, -delta)
            else:
                applied = self.uow.variants.increment(tenant_id, sku, delta)

            if not applied:
                available = self.uow.variants.stock_of(tenant_id, sku)
                if available is None:
                    raise self.unresolved_sku(tenant_id, sku)
                logger.warning(
                    "Stock insuficiente tenant=%s sku=%s solicitado=%s disponible=%s ref=%s:%s",
                    tenant_id, sku, -delta, available, reference_type, reference_id,
                )
                raise InsufficientStock(sku, -delta, available)

            movement = self.uow.movements.add(StockMovement(
                tenant_id=tenant_id,
                sku=sku,
                type=movement_type.value,
                quantity=delta,
                timestamp=datetime.now(),
                reference_type=reference_type,
                reference_id=reference_id,
                note=note,
            ))

        logger.info(
            "Movimiento %s aplicado tenant=%s sku=%s delta=%+d ref=%s:%s id=%s",
            movement_type.value, tenant_id, sku, delta, reference_type, reference_id, movement.id,
        )
        return movement

    def adjust_stock(self, tenant_id: int, sku: str, delta: int, note: Optional[str] = None) -> StockMovement:
        """Ajuste manual (conteo físico, merma). Un ajuste negativo nunca deja stock < 0."""
        return self.apply_movement(
            tenant_id, sku, MovementType.ADJUSTMENT, delta,
            reference_type=ReferenceType.MANUAL.value, note=note,
        )

    def query_movements(
        self,
        tenant_id: int,
        sku: Optional[str] = None,
        date_from: Optional[date | datetime] = None,
        date_to: Optional[date | datetime] = None,
    ) -> Iterator[StockMovement]:
        """
        Secuencia perezosa de movimientos del tenant, en orden cronológico.

        Se lee por lotes (yield_per); cada llamada vuelve a empezar desde el
        primer movimiento. La sesión del UnitOfWork debe seguir abierta
        mientras se consume.
        """
        yield from self.uow.movements.stream(
            tenant_id,
            sku=sku,
            date_from=_as_datetime(date_from),
            date_to=_as_datetime(date_to, end_of_day=True),
            batch_size=settings.movement_stream_batch_size or 500,
        )

    def reconcile(self, tenant_id: int, sku: Optional[str] = None) -> List[ReconciliationRow]:
        """Compara cada contador con la suma de deltas del ledger: stock - inicial == Σ deltas"""
        totals = self.uow.movements.totals_by_sku(tenant_id, sku)
        rows = []
        for variant in self.uow.variants.list(tenant_id, sku):
            row = ReconciliationRow(
                sku=variant.sku,
                stock=variant.stock,
                initial_stock=variant.initial_stock,
                ledger_total=totals.get(variant.sku, 0),
            )
            if not row.consistent:
                logger.error(
                    "Ledger y contador divergen tenant=%s sku=%s stock=%s inicial=%s ledger=%s",
                    tenant_id, row.sku, row.stock, row.initial_stock, row.ledger_total,
                )
            rows.append(row)
        if sku is not None and not rows:
            raise UnknownSku(sku)
        return rows
