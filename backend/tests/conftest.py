import pytest
from fastapi.testclient import TestClient

from database import Database
from main import create_app
from services.errors import GatewayError
from services.order_service import OrderService
from settings import Settings

KEY_SECRET = "test_key_secret"
WEBHOOK_SECRET = "test_webhook_secret"
ADMIN_KEY = "test_admin_key"


class FakeGateway:
    """게이트웨이 대역: create_order 호출을 기록하고 고정된 주문을 반환"""

    def __init__(self, order_id: str = "order_abc"):
        self.order_id = order_id
        self.calls = []
        self.error = None

    def create_order(self, amount, currency, receipt, notes=None):
        self.calls.append({"amount": amount, "currency": currency, "receipt": receipt, "notes": notes})
        if self.error is not None:
            raise self.error
        return {
            "id": self.order_id,
            "entity": "order",
            "amount": amount,
            "amount_paid": 0,
            "currency": currency,
            "receipt": receipt,
            "status": "created",
            "notes": notes or {},
        }

    def fail_with(self, message: str):
        self.error = GatewayError(message)


@pytest.fixture
def settings():
    return Settings(
        razorpay_key_id="rzp_test_key",
        razorpay_key_secret=KEY_SECRET,
        razorpay_webhook_secret=WEBHOOK_SECRET,
        admin_api_key=ADMIN_KEY,
        database_url="sqlite://",
    )


@pytest.fixture
def database(tmp_path):
    db = Database(f"sqlite:///{tmp_path / 'test.db'}")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def db_session(database):
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def service(settings, gateway):
    return OrderService(settings, gateway)


@pytest.fixture
def app(settings, database, gateway):
    return create_app(settings=settings, database=database, gateway=gateway)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
