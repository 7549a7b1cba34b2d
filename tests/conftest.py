"""
Pytest configuration and fixtures
"""
import os

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-hoodskool-cart-service-0123456789")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "10000/minute")
os.environ.setdefault("DEBUG", "false")

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

import pytest
from fastapi.testclient import TestClient

from hoodskool.core.redis import RedisClient
from hoodskool.core.security import create_access_token
from hoodskool.database import build_engine, build_session_maker, init_db, close_db
from hoodskool.models.product import Product, ProductVariant
from hoodskool.schemas.cart import (
    CartItem,
    CartItemCreate,
    CartResult,
    AddToCartResult,
    GatewayResult,
)
from hoodskool.services.cart_session import CartStoreRegistry
from hoodskool.services.cart_store import CartStore
from hoodskool.services.cart_utils import is_same_cart_item, clamp_quantity
from hoodskool.services.guest_storage import GuestCartStorage

CLIENT_ID = "client-1"
STORAGE_KEY = f"hoodskool-cart:{CLIENT_ID}"


@dataclass
class FakeRedis:
    """Async stand-in for redis.asyncio.Redis"""
    data: Dict[str, str] = field(default_factory=dict)
    expiry: Dict[str, int] = field(default_factory=dict)

    async def ping(self) -> bool:
        return True

    async def get(self, key: str):
        return self.data.get(key)

    async def set(self, key: str, value: str):
        self.data[key] = value
        return True

    async def setex(self, key: str, ttl: int, value: str):
        self.data[key] = value
        self.expiry[key] = ttl
        return True

    async def delete(self, key: str) -> int:
        existed = 1 if key in self.data else 0
        self.data.pop(key, None)
        self.expiry.pop(key, None)
        return existed

    async def close(self):
        return None


class FakeCartGateway:
    """In-memory remote cart with failure injection"""

    def __init__(self):
        self.carts: Dict[str, List[CartItem]] = {}
        self.calls: List[tuple] = []
        self.errors: Dict[str, str] = {}
        self.raises: Set[str] = set()
        self.gate: Optional[asyncio.Event] = None
        # get_cart fails once it has been called more than this many times
        self.reads_before_failure: Optional[int] = None
        self._next_id = 0

    def _new_id(self) -> str:
        self._next_id += 1
        return f"doc-{self._next_id}"

    async def _enter(self, name: str, *args) -> Optional[str]:
        self.calls.append((name, *args))
        if self.gate is not None:
            await self.gate.wait()
        if name in self.raises:
            raise RuntimeError(f"{name} exploded")
        return self.errors.get(name)

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]

    def seed(self, user_id: str, *items: CartItemCreate) -> List[CartItem]:
        stored = [CartItem(id=self._new_id(), **item.model_dump()) for item in items]
        self.carts.setdefault(user_id, []).extend(stored)
        return stored

    async def get_cart(self, user_id: str) -> CartResult:
        error = await self._enter("get_cart", user_id)
        if self.reads_before_failure is not None and self.call_names().count("get_cart") > self.reads_before_failure:
            error = "read timeout"
        if error:
            return CartResult(items=[], error=error)
        return CartResult(items=list(self.carts.get(user_id, [])))

    async def add_to_cart(self, user_id: str, item: CartItemCreate) -> AddToCartResult:
        error = await self._enter("add_to_cart", user_id, item)
        if error:
            return AddToCartResult(error=error)
        cart = self.carts.setdefault(user_id, [])
        for index, existing in enumerate(cart):
            if is_same_cart_item(existing, item):
                cart[index] = existing.model_copy(update={
                    "quantity": clamp_quantity(existing.quantity + item.quantity, item.max_quantity)
                })
                return AddToCartResult(cart_item_id=existing.id)
        stored = CartItem(id=self._new_id(), **item.model_dump())
        cart.append(stored)
        return AddToCartResult(cart_item_id=stored.id)

    async def update_cart_item_quantity(self, user_id: str, cart_item_id: str, quantity: int) -> GatewayResult:
        error = await self._enter("update_cart_item_quantity", user_id, cart_item_id, quantity)
        if error:
            return GatewayResult(error=error)
        cart = self.carts.get(user_id, [])
        for index, existing in enumerate(cart):
            if existing.id == cart_item_id:
                cart[index] = existing.model_copy(update={"quantity": quantity})
                return GatewayResult()
        return GatewayResult(error="Cart item not found")

    async def remove_from_cart(self, user_id: str, cart_item_id: str) -> GatewayResult:
        error = await self._enter("remove_from_cart", user_id, cart_item_id)
        if error:
            return GatewayResult(error=error)
        self.carts[user_id] = [item for item in self.carts.get(user_id, []) if item.id != cart_item_id]
        return GatewayResult()

    async def clear_cart(self, user_id: str) -> GatewayResult:
        error = await self._enter("clear_cart", user_id)
        if error:
            return GatewayResult(error=error)
        self.carts[user_id] = []
        return GatewayResult()

    async def sync_cart(self, user_id: str, items: List[CartItem]) -> GatewayResult:
        error = await self._enter("sync_cart", user_id, list(items))
        if error:
            return GatewayResult(error=error)
        cart = self.carts.setdefault(user_id, [])
        for item in items:
            cart.append(CartItem(id=self._new_id(), **item.model_dump(exclude={"id"})))
        return GatewayResult()


class FakeCatalog:
    def __init__(self):
        self.products: Dict[str, Product] = {}

    def add(self, product: Product) -> Product:
        self.products[product.id] = product
        return product

    async def get_product(self, product_id: str):
        product = self.products.get(product_id)
        if not product:
            return None, "Product not found"
        return product, None


class FakeOrders:
    def __init__(self):
        self.orders = []
        self.error: Optional[str] = None

    async def create_order(self, order_data):
        if self.error:
            return None, self.error
        self.orders.append(order_data)
        return f"order-{len(self.orders)}", None


@pytest.fixture
def make_item():
    """Build a CartItemCreate with sensible defaults"""
    def _make_item(product_id: str = "p1", **overrides) -> CartItemCreate:
        data = {
            "product_id": product_id,
            "name": f"Hoodie {product_id}",
            "slug": f"hoodie-{product_id}",
            "price": 4990.0,
            "quantity": 1,
            "max_quantity": 5,
            "image": f"https://res.cloudinary.com/hoodskool/{product_id}.jpg",
            "sku": f"SKU-{product_id}",
            "in_stock": True,
        }
        data.update(overrides)
        return CartItemCreate(**data)
    return _make_item


@pytest.fixture
def make_product():
    def _make_product(product_id: str = "p1", price: float = 4990.0, total_stock: int = 10, variants=None) -> Product:
        return Product(
            id=product_id,
            name=f"Hoodie {product_id}",
            slug=f"hoodie-{product_id}",
            price=price,
            sku=f"SKU-{product_id}",
            in_stock=total_stock > 0,
            total_stock=total_stock,
            variants=variants or [],
        )
    return _make_product


@pytest.fixture
def make_variant():
    def _make_variant(variant_id: str = "v1", product_id: str = "p1", price=None, stock_count: int = 10, **extra) -> ProductVariant:
        return ProductVariant(
            id=variant_id,
            product_id=product_id,
            sku=f"SKU-{product_id}-{variant_id}",
            price=price,
            stock_count=stock_count,
            in_stock=stock_count > 0,
            **extra,
        )
    return _make_variant


@pytest.fixture
def gateway():
    return FakeCartGateway()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def redis_client(fake_redis):
    return RedisClient(redis=fake_redis)


@pytest.fixture
def guest_storage(redis_client):
    return GuestCartStorage(redis_client, prefix="hoodskool-cart", ttl_seconds=3600)


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest.fixture
def orders():
    return FakeOrders()


@pytest.fixture
def store(gateway, guest_storage, catalog, orders):
    return CartStore(gateway, storage=guest_storage, storage_key=STORAGE_KEY, catalog=catalog, orders=orders)


@pytest.fixture
def registry(gateway, guest_storage, catalog, orders):
    return CartStoreRegistry(gateway=gateway, storage=guest_storage, catalog=catalog, orders=orders)


@pytest.fixture
async def session_maker():
    """Fresh in-memory database per test"""
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await init_db(engine)
    yield build_session_maker(engine)
    await close_db(engine)


@pytest.fixture(scope="function")
def client(registry):
    """Create test client with fake collaborators instead of database and Redis"""
    from hoodskool.main import app

    # Mock the lifespan context manager
    @asynccontextmanager
    async def mock_lifespan(app):
        yield {}

    app.router.lifespan_context = mock_lifespan
    app.state.cart_registry = registry

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

    app.state.cart_registry = None


@pytest.fixture
def user_token():
    return create_access_token({"user_id": "user-1"})


@pytest.fixture
def guest_headers():
    return {"X-Client-Id": CLIENT_ID}


@pytest.fixture
def auth_headers(user_token):
    return {"X-Client-Id": CLIENT_ID, "Authorization": f"Bearer {user_token}"}
