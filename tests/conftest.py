import os

# Must be set before any project module reads settings
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ["OTEL_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["OPERATOR_USER_IDS"] = "ops-allowlisted"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"

import itertools

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

from services.payment_service.schemas import PaymentAuthorization
from shared.config import database
from shared.errors import NotFound, UpstreamFailure
from shared.security import create_access_token

CANCELABLE = {"requires_payment_method", "requires_confirmation", "requires_action", "requires_capture"}


class FakeGateway:
    """In-memory stand-in for the Stripe PaymentIntents API."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.authorizations = {}
        self.created = []
        self.cancelled = []
        self.fail_create = False
        self.on_create = None

    async def create_authorization(self, amount, metadata, currency="usd"):
        if self.fail_create:
            raise UpstreamFailure("create_authorization", "api_error", "stripe is down")
        auth_id = f"pi_{next(self._ids)}"
        authorization = PaymentAuthorization(
            id=auth_id,
            status="requires_payment_method",
            amount=amount,
            currency=currency,
            client_secret=f"{auth_id}_secret_abc",
            metadata={k: str(v) for k, v in metadata.items()},
        )
        self.authorizations[auth_id] = authorization
        self.created.append(authorization)
        if self.on_create is not None:
            await self.on_create(authorization)
        return authorization

    async def retrieve_authorization(self, authorization_id):
        if authorization_id not in self.authorizations:
            raise NotFound("Payment authorization not found")
        return self.authorizations[authorization_id]

    async def cancel_authorization(self, authorization_id):
        # Stripe refuses to cancel intents that are paid, in flight or already cancelled
        self.cancelled.append(authorization_id)
        current = self.authorizations.get(authorization_id)
        if current is None or current.status not in CANCELABLE:
            return False
        self.set_status(authorization_id, "canceled")
        return True

    def set_status(self, authorization_id, status):
        current = self.authorizations[authorization_id]
        self.authorizations[authorization_id] = current.model_copy(update={"status": status})

    def succeed(self, authorization_id):
        self.set_status(authorization_id, "succeeded")


class FakeAssetStore:
    def __init__(self, delete_result=True, delete_error=None):
        self.delete_result = delete_result
        self.delete_error = delete_error
        self.deleted = []
        self.stored = []

    async def store(self, data, filename=None):
        self.stored.append((filename, data))
        return f"https://res.cloudinary.com/demo/image/upload/v1700000000/stickers/{filename or 'upload'}.png"

    async def delete(self, url):
        self.deleted.append(url)
        if self.delete_error is not None:
            raise self.delete_error
        return self.delete_result


@pytest.fixture
async def engine():
    engine = await database.init_db(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await database.create_tables()
    yield engine
    await database.close_db()


@pytest.fixture
async def db(engine):
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def assets():
    return FakeAssetStore()


@pytest.fixture
def auth_headers():
    def _headers(user_id, roles=()):
        return {"Authorization": f"Bearer {create_access_token(user_id, roles=roles)}"}
    return _headers


@pytest.fixture
async def client(engine, gateway, assets):
    from main import app
    from services.asset_service.main import asset_app
    from services.asset_service.storage import get_asset_store
    from services.order_service.main import order_app
    from services.payment_service.gateway import get_payment_gateway
    from services.payment_service.main import payment_app

    overrides = {
        get_payment_gateway: lambda: gateway,
        get_asset_store: lambda: assets,
    }
    for sub_app in (order_app, payment_app, asset_app):
        sub_app.dependency_overrides.update(overrides)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    for sub_app in (order_app, payment_app, asset_app):
        sub_app.dependency_overrides.clear()
