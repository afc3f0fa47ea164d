"""
Tests del Motor de Pedidos

Cubre:
- Completed / PartiallyFulfilled / rechazo total (NoStockAvailable)
- Cancelación con devoluciones compensatorias y transiciones inválidas
- Backorder: PartiallyFulfilled → Completed
- Concurrencia: dos pedidos por la última unidad, N pedidos sobre un SKU y cancelaciones simultáneas
"""
import random
import threading

import pytest

from stockcore.domain.enums import OrderStatus
from stockcore.application.errors import (
    CrossTenantViolation, InvalidQuantity, InvalidTransition, NoStockAvailable, OrderNotFound, UnknownSku,
)
from stockcore.application.services_ledger import StockLedger
from stockcore.application.services_orders import OrderService


def place(make_uow, tenant_id, lines):
    """Registra un pedido en su propia transacción, como lo haría el API"""
    uow = make_uow()
    try:
        order = OrderService(uow).place_order(tenant_id, lines)
        uow.commit()
        return order.id, order.status
    except NoStockAvailable as e:
        uow.commit()
        return e.order_id, OrderStatus.CANCELLED.value
    except Exception:
        uow.rollback()
        raise
    finally:
        uow.close()


def movements(make_uow, tenant_id, sku=None):
    uow = make_uow()
    try:
        return [(m.type, m.quantity, m.reference_id) for m in StockLedger(uow).query_movements(tenant_id, sku=sku)]
    finally:
        uow.close()


class TestPlaceOrder:

    def test_all_lines_reserved_completes_order(self, make_uow, tenant_id, seed, stock_of):
        seed(tenant_id, {"SKU-A": 5, "SKU-B": 2})
        with make_uow().transaction() as uow:
            order = OrderService(uow).place_order(
                tenant_id, [{"sku": "SKU-A", "quantity": 3}, {"sku": "SKU-B", "quantity": 2}]
            )
            assert order.status == OrderStatus.COMPLETED.value
            assert [(l.sku, l.reserved_quantity, l.owed) for l in order.lines] == [("SKU-A", 3, 0), ("SKU-B", 2, 0)]
            order_id = order.id

        assert stock_of(tenant_id, "SKU-A") == 2
        assert stock_of(tenant_id, "SKU-B") == 0
        assert movements(make_uow, tenant_id) == [("sale", -3, order_id), ("sale", -2, order_id)]

    def test_partial_fulfillment_records_owed_lines(self, make_uow, tenant_id, seed, stock_of):
        seed(tenant_id, {"SKU-A": 5, "SKU-B": 1})
        with make_uow().transaction() as uow:
            order = OrderService(uow).place_order(
                tenant_id, [{"sku": "SKU-A", "quantity": 2}, {"sku": "SKU-B", "quantity": 4}]
            )
            assert order.status == OrderStatus.PARTIALLY_FULFILLED.value
            (owed,) = order.unfulfilled_lines
            assert owed.sku == "SKU-B"
            assert owed.owed == 4

        assert stock_of(tenant_id, "SKU-A") == 3
        assert stock_of(tenant_id, "SKU-B") == 1

    def test_no_line_reserved_rejects_but_persists_order(self, make_uow, tenant_id, seed, stock_of):
        seed(tenant_id, {"SKU-A": 0, "SKU-B": 1})
        uow = make_uow()
        with pytest.raises(NoStockAvailable) as exc:
            OrderService(uow).place_order(
                tenant_id, [{"sku": "SKU-A", "quantity": 1}, {"sku": "SKU-B", "quantity": 2}]
            )
        assert exc.value.skus == ["SKU-A", "SKU-B"]
        uow.commit()

        with make_uow().transaction() as check:
            order = OrderService(check).get_order(tenant_id, exc.value.order_id)
            assert order.status == OrderStatus.CANCELLED.value
            assert all(line.reserved_quantity == 0 for line in order.lines)
        assert stock_of(tenant_id, "SKU-B") == 1
        assert movements(make_uow, tenant_id) == []

    def test_unknown_sku_creates_nothing(self, uow, tenant_id, seed):
        seed(tenant_id, {"SKU-A": 5})
        with pytest.raises(UnknownSku):
            OrderService(uow).place_order(tenant_id, [{"sku": "SKU-A", "quantity": 1}, {"sku": "GHOST", "quantity": 1}])
        assert uow.orders.count(tenant_id) == 0

    def test_invalid_lines(self, uow, tenant_id, seed):
        seed(tenant_id, {"SKU-A": 5})
        with pytest.raises(InvalidQuantity):
            OrderService(uow).place_order(tenant_id, [])
        with pytest.raises(InvalidQuantity):
            OrderService(uow).place_order(tenant_id, [{"sku": "SKU-A", "quantity": 0}])

    def test_rejected_order_survives_transaction_scope(self, make_uow, tenant_id, seed):
        seed(tenant_id, {"SKU-Z": 0})
        with pytest.raises(NoStockAvailable) as exc:
            with make_uow().transaction() as uow:
                OrderService(uow).place_order(tenant_id, [{"sku": "SKU-Z", "quantity": 1}])

        with make_uow().transaction() as check:
            order = check.orders.get(exc.value.order_id)
            assert order is not None
            assert order.tenant_id == tenant_id
            assert order.status == OrderStatus.CANCELLED.value
            assert [(l.sku, l.reserved_quantity) for l in order.lines] == [("SKU-Z", 0)]

    def test_other_errors_still_roll_back_transaction_scope(self, make_uow, tenant_id, seed):
        seed(tenant_id, {"SKU-A": 5})
        with pytest.raises(UnknownSku):
            with make_uow().transaction() as uow:
                OrderService(uow).place_order(tenant_id, [{"sku": "SKU-A", "quantity": 1}])
                OrderService(uow).place_order(tenant_id, [{"sku": "GHOST", "quantity": 1}])

        with make_uow().transaction() as check:
            assert check.orders.count(tenant_id) == 0
            assert check.variants.stock_of(tenant_id, "SKU-A") == 5

    def test_sku_of_other_tenant_is_a_contract_breach(self, uow, tenant_id, other_tenant_id, seed):
        seed(other_tenant_id, {"SKU-X": 5})
        with pytest.raises(CrossTenantViolation):
            OrderService(uow).place_order(tenant_id, [{"sku": "SKU-X", "quantity": 1}])
        assert uow.orders.count(tenant_id) == 0


class TestCancelOrder:

    def test_cancel_partial_order_returns_reserved_stock(self, make_uow, tenant_id, seed, stock_of):
        seed(tenant_id, {"SKU-A": 5, "SKU-B": 0})
        order_id, status = place(make_uow, tenant_id, [{"sku": "SKU-A", "quantity": 4}, {"sku": "SKU-B", "quantity": 1}])
        assert status == OrderStatus.PARTIALLY_FULFILLED.value
        assert stock_of(tenant_id, "SKU-A") == 1

        with make_uow().transaction() as uow:
            order = OrderService(uow).cancel_order(tenant_id, order_id)
            assert order.status == OrderStatus.CANCELLED.value

        assert stock_of(tenant_id, "SKU-A") == 5
        assert movements(make_uow, tenant_id, "SKU-A") == [("sale", -4, order_id), ("return", 4, order_id)]
        assert movements(make_uow, tenant_id, "SKU-B") == []

    def test_cancel_completed_order_is_rejected(self, make_uow, tenant_id, seed, stock_of):
        seed(tenant_id, {"SKU-B": 3})
        order_id, status = place(make_uow, tenant_id, [{"sku": "SKU-B", "quantity": 3}])
        assert status == OrderStatus.COMPLETED.value

        uow = make_uow()
        with pytest.raises(InvalidTransition) as exc:
            OrderService(uow).cancel_order(tenant_id, order_id)
        assert exc.value.current == OrderStatus.COMPLETED.value
        uow.rollback()
        assert stock_of(tenant_id, "SKU-B") == 0

    def test_second_cancel_fails_without_double_compensation(self, make_uow, tenant_id, seed, stock_of):
        seed(tenant_id, {"SKU-A": 2, "SKU-B": 0})
        order_id, _ = place(make_uow, tenant_id, [{"sku": "SKU-A", "quantity": 2}, {"sku": "SKU-B", "quantity": 1}])
        with make_uow().transaction() as uow:
            OrderService(uow).cancel_order(tenant_id, order_id)

        uow = make_uow()
        with pytest.raises(InvalidTransition):
            OrderService(uow).cancel_order(tenant_id, order_id)
        uow.rollback()
        assert stock_of(tenant_id, "SKU-A") == 2

    def test_cancel_order_of_other_tenant_is_a_contract_breach(self, make_uow, tenant_id, other_tenant_id, seed):
        seed(tenant_id, {"SKU-A": 2, "SKU-B": 0})
        order_id, _ = place(make_uow, tenant_id, [{"sku": "SKU-A", "quantity": 1}, {"sku": "SKU-B", "quantity": 1}])
        uow = make_uow()
        with pytest.raises(CrossTenantViolation):
            OrderService(uow).cancel_order(other_tenant_id, order_id)

    def test_missing_order(self, uow, tenant_id):
        with pytest.raises(OrderNotFound):
            OrderService(uow).cancel_order(tenant_id, 999)


class TestBackorder:

    def test_backorder_completes_after_restock(self, make_uow, tenant_id, seed, stock_of):
        seed(tenant_id, {"SKU-A": 5, "SKU-B": 0})
        order_id, _ = place(make_uow, tenant_id, [{"sku": "SKU-A", "quantity": 1}, {"sku": "SKU-B", "quantity": 2}])

        with make_uow().transaction() as uow:
            order = OrderService(uow).fulfill_backorder(tenant_id, order_id)
            assert order.status == OrderStatus.PARTIALLY_FULFILLED.value

        with make_uow().transaction() as uow:
            StockLedger(uow).adjust_stock(tenant_id, "SKU-B", 2, note="reposición")

        with make_uow().transaction() as uow:
            order = OrderService(uow).fulfill_backorder(tenant_id, order_id)
            assert order.status == OrderStatus.COMPLETED.value
            assert order.unfulfilled_lines == []

        assert stock_of(tenant_id, "SKU-A") == 4
        assert stock_of(tenant_id, "SKU-B") == 0

    def test_backorder_requires_partial_order(self, make_uow, tenant_id, seed):
        seed(tenant_id, {"SKU-A": 5})
        order_id, _ = place(make_uow, tenant_id, [{"sku": "SKU-A", "quantity": 1}])
        uow = make_uow()
        with pytest.raises(InvalidTransition):
            OrderService(uow).fulfill_backorder(tenant_id, order_id)


def run_concurrently(workers):
    barrier = threading.Barrier(len(workers))
    results = [None] * len(workers)
    errors = []

    def runner(i, work):
        barrier.wait()
        try:
            results[i] = work()
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=runner, args=(i, w)) for i, w in enumerate(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    assert not errors, errors
    return results


class TestConcurrency:

    def test_two_orders_race_for_last_unit(self, make_uow, tenant_id, seed, stock_of):
        seed(tenant_id, {"SKU-A": 1})
        results = run_concurrently([
            lambda: place(make_uow, tenant_id, [{"sku": "SKU-A", "quantity": 1}]),
            lambda: place(make_uow, tenant_id, [{"sku": "SKU-A", "quantity": 1}]),
        ])

        statuses = sorted(status for _, status in results)
        assert statuses == [OrderStatus.CANCELLED.value, OrderStatus.COMPLETED.value]
        assert stock_of(tenant_id, "SKU-A") == 0
        assert [q for _, q, _ in movements(make_uow, tenant_id)] == [-1]

    def test_concurrent_orders_never_oversell(self, make_uow, tenant_id, seed, stock_of):
        initial = 25
        seed(tenant_id, {"SKU-A": initial, "SKU-B": 100})
        rng = random.Random(7)
        requests = [rng.randint(1, 6) for _ in range(12)]

        results = run_concurrently([
            (lambda q=q: place(make_uow, tenant_id, [{"sku": "SKU-A", "quantity": q}, {"sku": "SKU-B", "quantity": 1}]))
            for q in requests
        ])

        with make_uow().transaction() as uow:
            reserved = 0
            for order_id, _ in results:
                order = OrderService(uow).get_order(tenant_id, order_id)
                reserved += sum(l.reserved_quantity for l in order.lines if l.sku == "SKU-A")
            final = uow.variants.stock_of(tenant_id, "SKU-A")
            consistent = StockLedger(uow).reconcile(tenant_id, "SKU-A")[0].consistent

        assert reserved <= initial
        assert final >= 0
        assert final == initial - reserved
        assert consistent

    def test_concurrent_cancels_compensate_once(self, make_uow, tenant_id, seed, stock_of):
        seed(tenant_id, {"SKU-A": 5, "SKU-B": 3, "SKU-C": 0})
        order_id, status = place(make_uow, tenant_id, [
            {"sku": "SKU-A", "quantity": 2}, {"sku": "SKU-B", "quantity": 1}, {"sku": "SKU-C", "quantity": 1},
        ])
        assert status == OrderStatus.PARTIALLY_FULFILLED.value

        def cancel():
            uow = make_uow()
            try:
                OrderService(uow).cancel_order(tenant_id, order_id)
                uow.commit()
                return "cancelled"
            except InvalidTransition:
                uow.rollback()
                return "rejected"
            finally:
                uow.close()

        results = run_concurrently([cancel, cancel])

        assert sorted(results) == ["cancelled", "rejected"]
        returns = [(t, q) for t, q, _ in movements(make_uow, tenant_id) if t == "return"]
        assert sorted(returns) == [("return", 1), ("return", 2)]
        assert stock_of(tenant_id, "SKU-A") == 5
        assert stock_of(tenant_id, "SKU-B") == 3
