"""
Single-use derivation prefixes for payment challenges.

A derivation prefix is base64(random || hmac), where the HMAC is computed by
the server wallet over the 16 random bytes. The HMAC proves the prefix was
minted by this wallet; the nonce store makes it single-use and bounds its
lifetime.

Configuration:
- BSV_NONCE_TTL_SECONDS: How long an issued prefix stays redeemable (default: 300)

The in-memory store is per process. Deployments running several instances
behind a load balancer need a NonceStore shared by all of them.
"""
import base64
import binascii
from abc import ABC, abstractmethod
import logging
import secrets
import threading
import time
from typing import Dict, Optional

from paywall.core.config import settings
from paywall.payment.wallet import Wallet, call_collaborator

logger = logging.getLogger(__name__)

NONCE_RANDOM_BYTES = 16
NONCE_PROTOCOL_ID = (2, "server hmac")
NONCE_COUNTERPARTY = "self"


class NonceStore(ABC):
    """Tracks issued prefixes until they are consumed or expire."""

    @abstractmethod
    def add(self, nonce: str, expires_at: float) -> None:
        ...

    @abstractmethod
    def consume(self, nonce: str, now: float) -> bool:
        """Remove the nonce and report whether it was present and unexpired."""


class InMemoryNonceStore(NonceStore):
    """
    Lock-guarded in-process nonce store.

    Thread-safe: sync wallets run in the threadpool, so issuance and
    verification can race.
    """

    def __init__(self, cleanup_interval_seconds: int = 60):
        self._entries: Dict[str, float] = {}
        self._lock = threading.Lock()
        self._cleanup_interval = cleanup_interval_seconds
        self._last_cleanup = time.time()

    def add(self, nonce: str, expires_at: float) -> None:
        with self._lock:
            self._entries[nonce] = expires_at
            self._maybe_cleanup(time.time())

    def consume(self, nonce: str, now: float) -> bool:
        with self._lock:
            expires_at = self._entries.pop(nonce, None)
        if expires_at is None:
            return False
        return now < expires_at

    def _maybe_cleanup(self, now: float) -> None:
        # Caller holds the lock
        if now - self._last_cleanup < self._cleanup_interval:
            return
        expired = [nonce for nonce, expires_at in self._entries.items() if expires_at <= now]
        for nonce in expired:
            del self._entries[nonce]
        self._last_cleanup = now
        if expired:
            logger.debug(f"Purged {len(expired)} expired derivation prefixes")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class NonceManager:
    """Mints and verifies derivation prefixes bound to a wallet."""

    def __init__(
        self,
        store: Optional[NonceStore] = None,
        ttl_seconds: Optional[int] = None
    ):
        """
        Initialize the nonce manager.

        Args:
            store: Where issued prefixes are tracked. Defaults to an in-memory store.
            ttl_seconds: Prefix lifetime. If None, uses config.
        """
        self._store = store if store is not None else InMemoryNonceStore()
        self._ttl_seconds = ttl_seconds

    @property
    def ttl_seconds(self) -> int:
        """Get the prefix lifetime (lazy load from settings if not set)."""
        if self._ttl_seconds is not None:
            return self._ttl_seconds
        return settings.BSV_NONCE_TTL_SECONDS

    @property
    def store(self) -> NonceStore:
        return self._store

    async def create_nonce(self, wallet: Wallet) -> str:
        """Mint a fresh prefix and record it as outstanding."""
        random_part = secrets.token_bytes(NONCE_RANDOM_BYTES)
        key_id = base64.b64encode(random_part).decode("ascii")
        hmac = await call_collaborator(
            wallet.create_hmac,
            random_part,
            NONCE_PROTOCOL_ID,
            key_id,
            NONCE_COUNTERPARTY,
        )
        nonce = base64.b64encode(random_part + bytes(hmac)).decode("ascii")
        self._store.add(nonce, time.time() + self.ttl_seconds)
        return nonce

    async def verify_nonce(self, nonce: str, wallet: Wallet) -> bool:
        """
        Check that the prefix was minted by this wallet and not used before.

        A prefix is consumed by its first verification attempt, whatever the
        outcome of the HMAC check.
        """
        try:
            raw = base64.b64decode(nonce, validate=True)
        except (binascii.Error, ValueError):
            return False
        if len(raw) <= NONCE_RANDOM_BYTES:
            return False

        if not self._store.consume(nonce, time.time()):
            return False

        random_part, hmac = raw[:NONCE_RANDOM_BYTES], raw[NONCE_RANDOM_BYTES:]
        key_id = base64.b64encode(random_part).decode("ascii")
        valid = await call_collaborator(
            wallet.verify_hmac,
            random_part,
            hmac,
            NONCE_PROTOCOL_ID,
            key_id,
            NONCE_COUNTERPARTY,
        )
        return bool(valid)


# Global nonce manager instance
_nonce_manager: Optional[NonceManager] = None
_nonce_manager_lock = threading.Lock()


def get_nonce_manager() -> NonceManager:
    """Get or create the global nonce manager instance."""
    global _nonce_manager
    if _nonce_manager is None:
        with _nonce_manager_lock:
            if _nonce_manager is None:
                _nonce_manager = NonceManager()

    return _nonce_manager


def reset_nonce_manager() -> None:
    """Reset the global nonce manager (useful for testing)."""
    global _nonce_manager
    with _nonce_manager_lock:
        _nonce_manager = None
