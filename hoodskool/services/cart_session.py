"""Per-client cart sessions: login merge, logout reset and the session registry"""
from collections import OrderedDict
from typing import Optional
import asyncio
import logging
from hoodskool.services.cart_store import CartStore
from hoodskool.services.guest_storage import GuestCartStorage

logger = logging.getLogger(__name__)


class CartSession:
    """
    Cart state of one cart client (one browser profile).

    Tracks which user the client is signed in as and merges the guest cart
    exactly once per login. ``lock`` serializes the client's operations.
    """

    def __init__(self, client_id: str, store: CartStore, storage: Optional[GuestCartStorage] = None):
        self.client_id = client_id
        self.store = store
        self.storage = storage
        self.user_id: Optional[str] = None
        self.has_synced = False
        self.lock = asyncio.Lock()
        self._rehydrated = False

    @property
    def storage_key(self) -> Optional[str]:
        return self.store.storage_key

    async def authenticate(self, user_id: Optional[str]):
        """Apply a (possibly unchanged) auth state before running an operation"""
        if not self._rehydrated:
            self._rehydrated = True
            await self.store.rehydrate()

        if not user_id:
            if self.user_id:
                await self.logout()
            await self.store.load_cart()
            return

        if user_id != self.user_id:
            if self.user_id:
                # Switching accounts never merges one user's cart into another's
                logger.info(f"[CART] Client {self.client_id} switched user {self.user_id} -> {user_id}")
                self.store.reset()
            self.user_id = user_id
            self.has_synced = False

        if self.has_synced:
            return

        if await self.store.sync_with_remote(user_id):
            self.has_synced = True
            # Guest cart now lives remotely; a later guest session must not re-merge it
            if self.storage and self.storage_key:
                await self.storage.clear(self.storage_key)
            logger.info(f"[CART] Client {self.client_id} synced with cart of user {user_id}")

    async def logout(self):
        """Forget the signed-in user; the client falls back to its persisted guest cart"""
        if not self.user_id:
            return
        logger.info(f"[CART] Client {self.client_id} logged out user {self.user_id}")
        self.user_id = None
        self.has_synced = False
        self.store.reset()
        await self.store.rehydrate()


class CartStoreRegistry:
    """Creates and keeps one CartSession per cart client (least recently used evicted first)"""

    def __init__(
        self,
        gateway,
        storage: Optional[GuestCartStorage] = None,
        catalog=None,
        orders=None,
        max_sessions: int = 10000,
    ):
        self.gateway = gateway
        self.storage = storage
        self.catalog = catalog
        self.orders = orders
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, CartSession]" = OrderedDict()

    def get(self, client_id: str) -> CartSession:
        """Session of a client; idle sessions are evicted least recently used first"""
        session = self._sessions.get(client_id)
        if session:
            self._sessions.move_to_end(client_id)
            return session

        store = CartStore(
            self.gateway,
            storage=self.storage,
            storage_key=self.storage.key_for(client_id) if self.storage else None,
            catalog=self.catalog,
            orders=self.orders,
        )
        session = CartSession(client_id, store, self.storage)
        self._sessions[client_id] = session

        self._evict(keep=client_id)
        return session

    def _evict(self, keep: str):
        # Sessions with a request in flight are never evicted, so the bound may be exceeded briefly
        excess = len(self._sessions) - self.max_sessions
        if excess <= 0:
            return
        idle = [
            client_id for client_id, session in self._sessions.items()
            if client_id != keep and not session.lock.locked()
        ]
        for client_id in idle[:excess]:
            del self._sessions[client_id]
            logger.debug(f"[CART] Evicted cart session {client_id}")

    def __len__(self):
        return len(self._sessions)

    async def close(self):
        """Wait for fire-and-forget operations of every session"""
        for session in list(self._sessions.values()):
            await session.store.wait_pending()
        self._sessions.clear()
