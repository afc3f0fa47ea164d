import os
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import settings

Base = declarative_base()


def configure_sqlite(engine: Engine) -> Engine:
    """
    Hace que SQLite se comporte como el almacén que el núcleo espera.

    pysqlite abre las transacciones de forma perezosa y en modo DEFERRED, lo que
    permite que dos escritores lean antes de bloquear y luego fallen al subir el
    lock. Se desactiva su manejo propio y cada transacción empieza con
    BEGIN IMMEDIATE: los escritores concurrentes se serializan esperando el
    busy timeout en lugar de fallar.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def build_engine(database_url: str, busy_timeout: float = settings.sqlite_busy_timeout) -> Engine:
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False, "timeout": busy_timeout},
        )
        return configure_sqlite(engine)
    return create_engine(database_url, echo=False, future=True, pool_pre_ping=True)


if settings.is_sqlite:
    _db_path = make_url(settings.database_url).database
    if _db_path and _db_path != ":memory:":
        os.makedirs(os.path.dirname(os.path.abspath(_db_path)), exist_ok=True)

engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


def _import_all_models():
    """Importa todos los modelos para que Base.metadata los registre."""
    from .domain import models  # noqa: F401 - Tenant, Product, Variant
    from .domain import models_ledger  # noqa: F401 - StockMovement
    from .domain import models_orders  # noqa: F401 - Order, OrderLine
    from .domain import models_purchasing  # noqa: F401 - PurchaseOrder, PurchaseOrderItem, PurchaseOrderReceipt


def init_db(bind: Engine = None):
    """Crear tablas si no existen (arranque normal)."""
    _import_all_models()
    Base.metadata.create_all(bind=bind or engine)
