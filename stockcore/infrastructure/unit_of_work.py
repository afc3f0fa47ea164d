from contextlib import contextmanager
from sqlalchemy.orm import Session
from ..db import SessionLocal
from .repositories import (
    TenantRepository, ProductRepository, VariantRepository, MovementRepository,
    OrderRepository, PurchaseOrderRepository,
)

class UnitOfWork:
    """
    Alcance transaccional del núcleo: todas las escrituras hechas a través de
    los repositorios se confirman juntas o ninguna.
    """
    def __init__(self, db: Session = None):
        self.db: Session = db if db is not None else SessionLocal()
        self.tenants = TenantRepository(self.db)
        self.products = ProductRepository(self.db)
        self.variants = VariantRepository(self.db)
        self.movements = MovementRepository(self.db)
        self.orders = OrderRepository(self.db)
        self.purchase_orders = PurchaseOrderRepository(self.db)

    def commit(self): self.db.commit()
    def rollback(self): self.db.rollback()
    def close(self): self.db.close()

    @contextmanager
    def savepoint(self):
        """Sub-alcance anidado (SAVEPOINT) dentro de la transacción actual"""
        nested = self.db.begin_nested()
        try:
            yield nested
        except Exception:
            if nested.is_active:
                nested.rollback()
            raise
        else:
            if nested.is_active:
                nested.commit()

    @contextmanager
    def transaction(self):
        try:
            yield self
            self.commit()
        except Exception as e:
            if getattr(e, "commit_on_raise", False):
                self.commit()
            else:
                self.rollback()
            raise
        finally:
            self.close()
