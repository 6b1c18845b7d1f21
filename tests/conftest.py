import urllib.parse
from datetime import datetime, timedelta
from typing import Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from storefront.auth import create_access_token
from storefront.core_settings import Settings
from storefront.domain.enums import ProductStatus, Role
from storefront.domain.models import (
    Address, Category, Discount, Product, ProductAsset, ProductColor, ProductVariant, User,
)
from storefront.main import create_app

class FakeProviders:
    """In-process stand-in for Razorpay, NimbusPost and the WhatsApp Cloud API."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.payment_status = "paid"
        self.shipment_ok = True
        self.cancel_ok = True
        self.whatsapp_status = 200
        # raw body served by the payment lookup instead of the usual JSON
        self.payment_body: Optional[str] = None
        self.timeout_hosts: set[str] = set()
        self._shipments = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host, path = request.url.host, request.url.path
        if host in self.timeout_hosts:
            raise httpx.ReadTimeout("timed out", request=request)
        if host == "api.razorpay.com":
            if self.payment_body is not None:
                return httpx.Response(200, text=self.payment_body)
            return httpx.Response(200, json={"id": path.rsplit("/", 1)[-1], "status": self.payment_status})
        if host == "ship.nimbuspost.com":
            if not self.shipment_ok:
                return httpx.Response(200, json={"status": False, "message": "Pincode not serviceable"})
            self._shipments += 1
            return httpx.Response(200, json={"status": True, "data": f"NP{self._shipments:04d}"})
        if host == "api.nimbuspost.com":
            if not self.cancel_ok:
                return httpx.Response(422, json={"status": False, "message": "Already picked up"})
            return httpx.Response(200, json={"status": True, "message": "Cancelled"})
        if host == "graph.facebook.com":
            return httpx.Response(self.whatsapp_status, json={"messages": [{"id": "wamid.1"}]})
        return httpx.Response(404)

    def calls(self, host: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == host]

    @staticmethod
    def form(request: httpx.Request) -> dict:
        return {k: v[0] for k, v in urllib.parse.parse_qs(request.content.decode()).items()}

@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite:///{tmp_path / 'storefront.db'}",
        RUN_MIGRATIONS=False,
        ENVIRONMENT="test",
        LOG_LEVEL="WARNING",
        JWT_SECRET="test-secret",
        RAZORPAY_KEY_ID="rzp_test",
        RAZORPAY_SECRET="rzp_secret",
        NIMBUS_TOKEN="np-token",
        WHATSAPP_TOKEN="wa-token",
        WHATSAPP_PHONE_NUMBER_ID="1000",
        LOW_STOCK_THRESHOLD=5,
    )

@pytest.fixture
def providers():
    return FakeProviders()

@pytest.fixture
def app(settings, providers):
    return create_app(settings, http_transport=httpx.MockTransport(providers))

@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c

@pytest.fixture
def database(app, client):
    # the client fixture has run the lifespan, so the tables exist
    return app.state.database

@pytest.fixture
def db(database):
    session = database.session()
    yield session
    session.close()

class Seeder:
    def __init__(self, db):
        self.db = db
        self._mobile = 9000000000

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def user(self, role: Role = Role.USER, name: str = "Asha Rao", mobile_no: Optional[str] = None) -> User:
        self._mobile += 1
        return self._save(User(name=name, mobile_no=mobile_no or str(self._mobile), role=role.value))

    def address(self, user: User, **overrides) -> Address:
        fields = dict(
            user_id=user.id,
            address_name="Home",
            first_name="Asha",
            last_name="Rao",
            apt_number="12B",
            street="MG Road",
            city="Pune",
            state="Maharashtra",
            country="India",
            zip_code="411001",
            phone_number="9876543210",
        )
        fields.update(overrides)
        return self._save(Address(**fields))

    def category(self, name: str = "Shirts", priority: Optional[int] = None) -> Category:
        if priority is None:
            priority = len(self.db.query(Category).all()) + 1
        return self._save(Category(name=name, priority=priority))

    def product(
        self,
        category: Category,
        name: str = "Linen Shirt",
        price: float = 750,
        status: ProductStatus = ProductStatus.PUBLISHED,
        stock: int = 5,
        color: str = "Black",
        size: str = "M",
        image: Optional[str] = "https://cdn.example.com/linen.jpg",
    ) -> Product:
        slug = name.lower().replace(" ", "-")
        product = Product(
            name=name,
            slug=slug,
            description=f"{name} description",
            price=price,
            status=status.value,
            category_id=category.id,
            assets=[ProductAsset(asset_url=image)] if image else [],
            colors=[ProductColor(color=color, variants=[ProductVariant(size=size, stock=stock)])],
        )
        return self._save(product)

    def discount(self, code: str = "WELCOME10", **overrides) -> Discount:
        fields = dict(
            code=code,
            type="PERCENTAGE",
            value=10,
            start_date=datetime.utcnow() - timedelta(days=1),
            end_date=datetime.utcnow() + timedelta(days=30),
            status="ACTIVE",
            usage_count=0,
        )
        fields.update(overrides)
        return self._save(Discount(**fields))

@pytest.fixture
def seed(db):
    return Seeder(db)

@pytest.fixture
def auth(settings):
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(str(user.id), settings=settings)}"}
    return _headers

@pytest.fixture
def admin(seed):
    return seed.user(Role.ADMIN, name="Store Admin")

@pytest.fixture
def customer(seed):
    return seed.user(Role.USER)

@pytest.fixture
def customer_address(seed, customer):
    return seed.address(customer)

@pytest.fixture
def catalog(seed):
    """One published product with a single Black/M variant holding 5 units."""
    category = seed.category("Shirts")
    product = seed.product(category)
    variant = product.colors[0].variants[0]
    return {"category": category, "product": product, "variant": variant}

@pytest.fixture
def order_payload(customer, customer_address, catalog):
    def _payload(quantity: int = 2, **overrides) -> dict:
        product, variant = catalog["product"], catalog["variant"]
        body = {
            "user_id": customer.id,
            "address_id": customer_address.id,
            "items": [{
                "product_id": product.id,
                "product_variant_id": variant.id,
                "quantity": quantity,
                "price_at_order": 750,
                "size": "M",
                "color": "Black",
                "product_name": "Linen Shirt",
                "product_image": "https://cdn.example.com/linen.jpg",
            }],
            "total": 750 * quantity,
            "paid": True,
            "provider_order_id": "order_RZP123",
        }
        body.update(overrides)
        return body
    return _payload
