"""
Evaluador de stock bajo.

Función de solo lectura sobre el estado vigente: no guarda alertas, se
recalcula en cada llamada para quedar siempre alineada con el stock y las
órdenes de compra abiertas.

    pending_qty = Σ(ordered_qty - received_qty) en OCs aún no Received
    alerta  ⇔  stock + pending_qty < reorder_threshold
"""
from dataclasses import dataclass
from typing import List

from ..infrastructure.unit_of_work import UnitOfWork
from .errors import UnknownSku


@dataclass(frozen=True)
class LowStockAlert:
    sku: str
    stock: int
    pending_qty: int
    reorder_threshold: int

    @property
    def is_low(self) -> bool:
        return is_low_stock(self.stock, self.pending_qty, self.reorder_threshold)


def is_low_stock(stock: int, pending_qty: int, reorder_threshold: int) -> bool:
    return stock + pending_qty < reorder_threshold


class LowStockEvaluator:
    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    def _assess(self, tenant_id: int, sku: str | None = None) -> List[LowStockAlert]:
        pending = self.uow.purchase_orders.pending_by_sku(tenant_id, sku)
        return [
            LowStockAlert(
                sku=variant.sku,
                stock=variant.stock,
                pending_qty=pending.get(variant.sku, 0),
                reorder_threshold=variant.reorder_threshold,
            )
            for variant in self.uow.variants.list(tenant_id, sku)
        ]

    def evaluate_low_stock(self, tenant_id: int) -> List[LowStockAlert]:
        """SKUs del tenant cuyo stock más lo pendiente de recibir queda bajo el umbral"""
        return [a for a in self._assess(tenant_id) if a.is_low]

    def evaluate_sku(self, tenant_id: int, sku: str) -> LowStockAlert:
        """Evaluación de un SKU, dispare o no la alerta"""
        assessments = self._assess(tenant_id, sku)
        if not assessments:
            raise UnknownSku(sku)
        return assessments[0]
