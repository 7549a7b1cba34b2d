"""
Tests for cart sessions: one-shot merge on login, logout and the session registry
"""
import json

import pytest

from hoodskool.services.cart_session import CartSession, CartStoreRegistry

from conftest import CLIENT_ID, STORAGE_KEY


@pytest.fixture
def session(store, guest_storage):
    return CartSession(CLIENT_ID, store, guest_storage)


class TestLoginSync:

    @pytest.mark.asyncio
    async def test_guest_cart_is_merged_once(self, session, gateway, make_item):
        await session.authenticate(None)
        await session.store.add_item(make_item("p2", size="L"))
        gateway.seed("user-1", make_item("p1", size="M"))

        await session.authenticate("user-1")
        await session.authenticate("user-1")
        await session.authenticate("user-1")

        assert session.has_synced is True
        assert gateway.call_names().count("sync_cart") == 1
        assert {item.product_id for item in session.store.items} == {"p1", "p2"}

    @pytest.mark.asyncio
    async def test_guest_storage_is_cleared_after_sync(self, session, gateway, fake_redis, make_item):
        await session.authenticate(None)
        await session.store.add_item(make_item("p1"))
        assert STORAGE_KEY in fake_redis.data

        await session.authenticate("user-1")

        assert STORAGE_KEY not in fake_redis.data

    @pytest.mark.asyncio
    async def test_failed_sync_is_retried_on_next_request(self, session, gateway, fake_redis, make_item):
        await session.authenticate(None)
        await session.store.add_item(make_item("p1"))
        gateway.errors["get_cart"] = "offline"

        await session.authenticate("user-1")

        assert session.has_synced is False
        assert STORAGE_KEY in fake_redis.data

        del gateway.errors["get_cart"]
        await session.authenticate("user-1")

        assert session.has_synced is True
        assert [item.product_id for item in gateway.carts["user-1"]] == ["p1"]

    @pytest.mark.asyncio
    async def test_failed_reload_after_push_keeps_guest_cart(self, session, gateway, fake_redis, make_item):
        await session.authenticate(None)
        await session.store.add_item(make_item("p1"))
        gateway.reads_before_failure = 1

        await session.authenticate("user-1")

        assert session.has_synced is False
        assert STORAGE_KEY in fake_redis.data
        assert [item.product_id for item in gateway.carts["user-1"]] == ["p1"]

        gateway.reads_before_failure = None
        await session.authenticate("user-1")

        assert session.has_synced is True
        assert STORAGE_KEY not in fake_redis.data
        assert gateway.call_names().count("sync_cart") == 1
        assert [item.id for item in session.store.items] == [item.id for item in gateway.carts["user-1"]]

    @pytest.mark.asyncio
    async def test_persisted_guest_cart_is_rehydrated_before_merge(self, session, gateway, fake_redis, make_item):
        fake_redis.data[STORAGE_KEY] = json.dumps({
            "items": [{**make_item("p3", quantity=2).model_dump(mode="json"), "id": "temp_1"}]
        })

        await session.authenticate("user-1")

        assert [item.product_id for item in gateway.carts["user-1"]] == ["p3"]
        assert session.store.item_count == 2

    @pytest.mark.asyncio
    async def test_switching_users_does_not_merge_carts(self, session, gateway, make_item):
        gateway.seed("user-1", make_item("p1"))
        gateway.seed("user-2", make_item("p2"))

        await session.authenticate("user-1")
        await session.authenticate("user-2")

        assert [item.product_id for item in session.store.items] == ["p2"]
        assert [item.product_id for item in gateway.carts["user-2"]] == ["p2"]
        assert "sync_cart" not in gateway.call_names()


class TestLogout:

    @pytest.mark.asyncio
    async def test_guest_logout_keeps_guest_cart(self, session, fake_redis, make_item):
        await session.authenticate(None)
        await session.store.add_item(make_item("p1"))

        await session.logout()
        await session.authenticate(None)
        await session.store.add_item(make_item("p2"))

        assert [item.product_id for item in session.store.items] == ["p1", "p2"]
        stored = json.loads(fake_redis.data[STORAGE_KEY])
        assert [item["product_id"] for item in stored["items"]] == ["p1", "p2"]

    @pytest.mark.asyncio
    async def test_logout_falls_back_to_persisted_guest_cart(self, session, gateway, guest_storage, make_item):
        gateway.seed("user-1", make_item("p1"))
        await session.authenticate("user-1")
        guest_items = [item.model_copy(update={"id": "temp_1", "product_id": "p9"}) for item in session.store.items]
        await guest_storage.save(STORAGE_KEY, guest_items)

        await session.logout()

        assert [item.product_id for item in session.store.items] == ["p9"]
        assert session.store.item_count == 1

    @pytest.mark.asyncio
    async def test_logout_resets_state(self, session, gateway, make_item):
        gateway.seed("user-1", make_item("p1", quantity=3))
        await session.authenticate("user-1")
        assert session.store.item_count == 3

        await session.logout()

        assert session.user_id is None
        assert session.has_synced is False
        assert session.store.items == []
        assert session.store.item_count == 0
        assert session.store.last_synced is None
        assert len(gateway.carts["user-1"]) == 1

    @pytest.mark.asyncio
    async def test_guest_request_after_login_logs_out(self, session, gateway, make_item):
        gateway.seed("user-1", make_item("p1"))
        await session.authenticate("user-1")

        await session.authenticate(None)

        assert session.user_id is None
        assert session.store.items == []

    @pytest.mark.asyncio
    async def test_login_after_logout_syncs_again(self, session, gateway, make_item):
        gateway.seed("user-1", make_item("p1"))
        await session.authenticate("user-1")
        await session.logout()

        await session.store.add_item(make_item("p2"))
        await session.authenticate("user-1")

        assert session.has_synced is True
        assert [item.product_id for item in gateway.carts["user-1"]] == ["p1", "p2"]


class TestRegistry:

    def test_same_client_gets_same_session(self, registry):
        assert registry.get("a") is registry.get("a")
        assert registry.get("a") is not registry.get("b")
        assert len(registry) == 2

    def test_storage_key_is_namespaced_per_client(self, registry):
        assert registry.get("abc").store.storage_key == "hoodskool-cart:abc"

    def test_least_recently_used_session_is_evicted(self, gateway, guest_storage):
        registry = CartStoreRegistry(gateway=gateway, storage=guest_storage, max_sessions=2)
        first = registry.get("a")
        registry.get("b")
        registry.get("a")
        registry.get("c")

        assert len(registry) == 2
        assert registry.get("a") is first
        assert len(registry) == 2

    @pytest.mark.asyncio
    async def test_busy_session_is_not_evicted(self, gateway, guest_storage):
        registry = CartStoreRegistry(gateway=gateway, storage=guest_storage, max_sessions=2)
        busy = registry.get("a")
        idle = registry.get("b")

        async with busy.lock:
            registry.get("c")
            assert registry.get("a") is busy

        assert registry.get("b") is not idle

    @pytest.mark.asyncio
    async def test_close_waits_for_pending_operations(self, registry, make_item):
        session = registry.get("a")
        task = session.store.dispatch(session.store.add_item(make_item("p1")))

        await registry.close()

        assert task.done()
        assert len(registry) == 0
