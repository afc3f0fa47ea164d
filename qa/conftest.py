"""
Configuración global de pytest.

Cada test obtiene su propia base SQLite en archivo (tmp_path) para que los
tests de concurrencia usen conexiones reales e independientes.
"""
import os
import tempfile

# Antes de importar stockcore: la app no debe tocar ./data ni ./logs del repo
_RUNTIME_DIR = tempfile.mkdtemp(prefix="stockcore-qa-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_RUNTIME_DIR}/runtime.db")
os.environ.setdefault("LOG_DIR", os.path.join(_RUNTIME_DIR, "logs"))

import pytest
from sqlalchemy.orm import sessionmaker

from stockcore.db import build_engine, init_db
from stockcore.infrastructure.unit_of_work import UnitOfWork
from stockcore.application.services_tenants import create_tenant
from stockcore.application.services_catalog import CatalogService


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'stockcore_test.db'}", busy_timeout=30)
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture
def make_uow(session_factory):
    """Fábrica de UnitOfWork, cada uno con su propia sesión (simula un llamador)"""
    created = []

    def factory():
        uow = UnitOfWork(session_factory())
        created.append(uow)
        return uow

    yield factory
    for uow in created:
        uow.close()


@pytest.fixture
def uow(make_uow):
    return make_uow()


def _new_tenant(make_uow, name):
    with make_uow().transaction() as uow:
        return create_tenant(uow, name).id


@pytest.fixture
def tenant_id(make_uow):
    return _new_tenant(make_uow, "Acme Retail")


@pytest.fixture
def other_tenant_id(make_uow):
    return _new_tenant(make_uow, "Globex Outlet")


@pytest.fixture
def seed(make_uow):
    """
    Crea un producto con una variante por SKU.
    Uso: seed(tenant_id, {"SKU-A": 5, "SKU-B": 0}, reorder_threshold=10)
    """
    def _seed(tenant_id, stocks, reorder_threshold=10, category="apparel", name="Camiseta"):
        with make_uow().transaction() as uow:
            CatalogService(uow).create_product(
                tenant_id, name, category,
                [{"sku": sku, "stock": stock, "price": "19.90",
                  "attributes": {"size": "M"}, "reorder_threshold": reorder_threshold}
                 for sku, stock in stocks.items()],
            )
    return _seed


@pytest.fixture
def stock_of(make_uow):
    def _stock_of(tenant_id, sku):
        uow = make_uow()
        try:
            return uow.variants.stock_of(tenant_id, sku)
        finally:
            uow.close()
    return _stock_of


@pytest.fixture
def client(session_factory):
    """TestClient contra la app real, con get_db apuntando a la base del test"""
    from fastapi.testclient import TestClient
    from stockcore.main import app
    from stockcore.dependencies import get_db

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
