"""
Valkey (Redis-compatible) client for shared counters across processes.

Simple wrapper around redis-py. Connection URL from Vault.
Fail-fast: raises on connection failure, never returns fallback values.
"""

import logging

import redis

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Redis-compatible client for Valkey.

    Usage:
        client = ValkeyClient("redis://localhost:6379/0")
        generation = client.incr_with_ttl(f"preview:{tenant_id}:{draft_key}", 600)
        current = client.get(f"preview:{tenant_id}:{draft_key}")
    """

    def __init__(self, url: str):
        """
        Initialize Valkey connection.

        Args:
            url: Redis-compatible connection URL (e.g., redis://localhost:6379/0)

        Raises:
            redis.ConnectionError: If connection fails
        """
        self._client = redis.from_url(url, decode_responses=True)
        # Verify connectivity immediately (fail-fast)
        self._client.ping()
        logger.info("ValkeyClient connected")

    def ping(self) -> bool:
        """
        Health check.

        Returns True if Valkey responds.
        Raises redis.ConnectionError if unreachable.
        """
        self._client.ping()
        return True

    def get(self, key: str) -> str | None:
        """
        Get value by key.

        Returns None if key doesn't exist (not an error).
        Raises on connection failure.
        """
        return self._client.get(key)

    def delete(self, key: str) -> bool:
        """
        Delete key.

        Returns True if key existed and was deleted, False if key didn't exist.
        """
        return self._client.delete(key) > 0

    def incr(self, key: str) -> int:
        """
        Increment key by 1.

        Creates key with value 1 if it doesn't exist.
        Returns the new value. Atomic across all clients.
        """
        return self._client.incr(key)

    def expire(self, key: str, seconds: int) -> bool:
        """Set a TTL on key. Returns False if the key doesn't exist."""
        return bool(self._client.expire(key, seconds))

    def incr_with_ttl(self, key: str, seconds: int) -> int:
        """
        Increment key and (re)set its TTL in one MULTI/EXEC round trip.

        A counter never outlives its TTL, even if the caller dies between
        the two commands.
        """
        pipe = self._client.pipeline(transaction=True)
        pipe.incr(key)
        pipe.expire(key, seconds)
        value, _ = pipe.execute()
        return value

    def close(self) -> None:
        """Close the connection."""
        self._client.close()
        logger.info("ValkeyClient closed")
