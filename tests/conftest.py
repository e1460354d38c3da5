"""Pytest fixtures for storefront tests."""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["GATEWAY_KEY_SECRET"] = "test-secret"

from datetime import timedelta
from decimal import Decimal

import fakeredis
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.celery_worker import celery_app
from storefront.data.database import Base
import storefront.data.models  # noqa: F401
from storefront.data.models.order import OrderModel
from storefront.domain.errors import GatewayUnavailable, ProductUnavailable
from storefront.domain.states import OrderStatus
from storefront.services.cart_service import CartService
from storefront.services.checkout_service import CheckoutService
from storefront.services.gateway_client import sign
from storefront.services.lock_service import LockService
from storefront.services.materializer import OrderMaterializer
from storefront.services.payment_adapter import PaymentGatewayAdapter
from storefront.services.product_client import PriceQuote, ProductClient
from storefront.services.state_machine import OrderStateMachine
from storefront.services.stock_ledger import StockLedger
from storefront.utils.clock import utcnow

SECRET = "test-secret"

celery_app.conf.task_always_eager = True
celery_app.conf.task_eager_propagates = True


class FakeProductClient(ProductClient):
    """Catalog stub: product id -> PriceQuote."""

    def __init__(self, products: dict[int, PriceQuote] | None = None):
        super().__init__(base_url="http://catalog.test")
        self.products = products or {}

    def add(self, product_id: int, price: str, stock: int, active: bool = True, name: str | None = None):
        self.products[product_id] = PriceQuote(
            product_id=product_id,
            name=name or f"Product {product_id}",
            price=Decimal(price),
            stock=stock,
            active=active,
        )

    def fetch_product(self, product_id: int) -> PriceQuote:
        if product_id not in self.products:
            raise ProductUnavailable(product_id)
        return self.products[product_id]


class FakeGatewayClient:
    def __init__(self):
        self.calls = []
        self.down = False

    def create_order(self, amount_minor: int, currency: str, receipt: str) -> str:
        if self.down:
            raise GatewayUnavailable("connection refused")
        self.calls.append({"amount": amount_minor, "currency": currency, "receipt": receipt})
        return f"order_intent_{len(self.calls)}"


class RecordingNotifications:
    def __init__(self):
        self.sent = []

    def send_status_notification(self, owner_id, order_id, old_status, new_status):
        self.sent.append((owner_id, order_id, old_status, new_status))


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite SAVEPOINT support: let SQLAlchemy emit BEGIN itself
    @event.listens_for(engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """File-backed SQLite shared by several threads, one writer at a time."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'storefront.db'}",
        connect_args={"check_same_thread": False, "timeout": 10},
    )

    @event.listens_for(engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        # a waiting writer starts after the other one committed and sees its rows
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def lock_service(redis_client):
    return LockService(client=redis_client, ttl=5, wait=0.2)


@pytest.fixture
def catalog():
    client = FakeProductClient()
    client.add(1, "10.00", stock=2)
    client.add(2, "4.99", stock=10)
    client.add(3, "100.00", stock=1)
    return client


@pytest.fixture
def gateway():
    return FakeGatewayClient()


@pytest.fixture
def notifications():
    return RecordingNotifications()


@pytest.fixture
def state_machine(db, lock_service, notifications):
    return OrderStateMachine(db, lock_service, notifications)


@pytest.fixture
def adapter(db, gateway, state_machine):
    return PaymentGatewayAdapter(db, gateway, state_machine, secret=SECRET)


@pytest.fixture
def ledger(db):
    return StockLedger(db)


@pytest.fixture
def carts(db, catalog):
    return CartService(db, catalog)


@pytest.fixture
def materializer(db):
    return OrderMaterializer(db, payment_window_seconds=900, currency="INR")


@pytest.fixture
def checkout(db, catalog, gateway, lock_service, state_machine):
    svc = CheckoutService(db, catalog, gateway, lock_service, state_machine=state_machine)
    svc.adapter.secret = SECRET
    return svc


@pytest.fixture
def make_order(db):
    """Insert a bare order in any status (no lines, no reservations)."""

    def _make(status: OrderStatus = OrderStatus.AWAITING_PAYMENT, owner_id: int = 1, expires_in: int = 900):
        now = utcnow()
        order = OrderModel(
            owner_id=owner_id,
            status=status.value,
            total_amount=Decimal("0.00"),
            currency="INR",
            created_at=now,
            expires_at=now + timedelta(seconds=expires_in),
        )
        db.add(order)
        db.commit()
        return order

    return _make


def signed(intent_id: str, payment_reference: str) -> str:
    return sign(intent_id, payment_reference, SECRET)


@pytest.fixture
def paid_order(checkout, carts, adapter):
    """Order for 2 x product 1 (10.00), paid through the gateway adapter."""
    carts.add_item(1, product_id=1, quantity=2)
    summary = checkout.checkout(1, "Main St 1")
    adapter.verify(summary["order_id"], summary["gateway_intent_id"], "pay_1", signed(summary["gateway_intent_id"], "pay_1"))
    return summary["order_id"]
