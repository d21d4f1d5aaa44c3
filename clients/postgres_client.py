"""
PostgreSQL client with connection pooling and RLS tenant isolation.

Uses psycopg2 with ThreadedConnectionPool. Tenant isolation enforced via
PostgreSQL Row Level Security - every call names the tenant explicitly and
the client sets app.current_tenant_id on the connection before running it.

Security: No tenant id = no access to tenant-owned rows. This is safe.
True admin bypass requires connecting as billing_admin with BYPASSRLS.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Tuple
from uuid import UUID

import psycopg2
import psycopg2.extras
import psycopg2.pool

logger = logging.getLogger(__name__)

# Global JSONB/UUID registration flag
_jsonb_registered = False


class PostgresClient:
    """
    PostgreSQL client with RLS context taken from an explicit tenant id.

    - tenant_id given → sees only that tenant's rows (RLS filtered)
    - tenant_id None → tenant-owned tables are off limits (RLS cast fails)

    Usage:
        db = PostgresClient(database_url)

        rows = db.execute("SELECT * FROM financial_documents", tenant_id=ctx.tenant_id)

        # Several statements that must commit or fail together
        with db.transaction(tenant_id=ctx.tenant_id) as cur:
            cur.execute("INSERT ...")
            cur.execute("UPDATE ...")
    """

    # Class-level connection pools shared across instances
    _connection_pools: Dict[str, psycopg2.pool.ThreadedConnectionPool] = {}
    _pools_lock = threading.RLock()

    def __init__(self, database_url: str):
        self._database_url = database_url
        self._ensure_connection_pool()

    def _ensure_connection_pool(self) -> None:
        """Create connection pool if it doesn't exist."""
        with self._pools_lock:
            if self._database_url not in self._connection_pools:
                pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=2,
                    maxconn=20,
                    dsn=self._database_url,
                    connect_timeout=30,
                )

                global _jsonb_registered
                if not _jsonb_registered:
                    psycopg2.extras.register_default_jsonb(globally=True)
                    psycopg2.extras.register_uuid()
                    _jsonb_registered = True

                self._connection_pools[self._database_url] = pool
                logger.info("Connection pool created")

    @contextmanager
    def get_connection(self, tenant_id: UUID | None = None):
        """Get connection with RLS context set for tenant_id."""
        if self._database_url not in self._connection_pools:
            self._ensure_connection_pool()

        pool = self._connection_pools[self._database_url]
        conn = None

        try:
            conn = pool.getconn()
            if conn is None:
                raise RuntimeError("Could not get connection from pool")

            with conn.cursor() as cur:
                if tenant_id is not None:
                    cur.execute("SET app.current_tenant_id = %s", (str(tenant_id),))
                else:
                    # Empty setting fails the ::uuid cast in RLS policies, so tenant-less queries error
                    cur.execute("SET app.current_tenant_id = ''")

            yield conn

        except Exception:
            # Never hand an aborted transaction back to the pool
            if conn:
                conn.rollback()
            raise

        finally:
            if conn:
                pool.putconn(conn)

    def _convert_params(self, params: Tuple | Dict | None) -> Tuple | Dict | None:
        """Convert UUID objects to strings."""
        if params is None:
            return None

        def convert(value: Any) -> Any:
            if isinstance(value, UUID):
                return str(value)
            if isinstance(value, list):
                return [convert(v) for v in value]
            if isinstance(value, tuple):
                return tuple(convert(v) for v in value)
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            return value

        return convert(params)

    def execute(
        self,
        query: str,
        params: Tuple | Dict | None = None,
        tenant_id: UUID | None = None,
    ) -> List[Dict[str, Any]]:
        """Execute query, return list of row dicts. Empty list if no results."""
        params = self._convert_params(params)
        with self.get_connection(tenant_id) as conn:
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute(query, params)
                rows = [dict(row) for row in cur.fetchall()] if cur.description else []
                conn.commit()
                return rows

    def execute_single(
        self,
        query: str,
        params: Tuple | Dict | None = None,
        tenant_id: UUID | None = None,
    ) -> Dict[str, Any] | None:
        """Execute query, return first row or None."""
        results = self.execute(query, params, tenant_id=tenant_id)
        return results[0] if results else None

    def execute_scalar(
        self,
        query: str,
        params: Tuple | Dict | None = None,
        tenant_id: UUID | None = None,
    ) -> Any:
        """Execute query, return first value of first row or None."""
        params = self._convert_params(params)
        with self.get_connection(tenant_id) as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                result = cur.fetchone()
                conn.commit()
                return result[0] if result else None

    def execute_returning(
        self,
        query: str,
        params: Tuple | Dict | None = None,
        tenant_id: UUID | None = None,
    ) -> List[Dict[str, Any]]:
        """Execute INSERT/UPDATE with RETURNING, return results."""
        params = self._convert_params(params)
        with self.get_connection(tenant_id) as conn:
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute(query, params)
                rows = [dict(row) for row in cur.fetchall()]
                conn.commit()
                return rows

    @contextmanager
    def transaction(self, tenant_id: UUID | None = None) -> Iterator["TransactionCursor"]:
        """
        Run several statements as one unit of work.

        Commits when the block exits normally, rolls back on any exception
        and re-raises it.
        """
        with self.get_connection(tenant_id) as conn:
            try:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                    yield TransactionCursor(cur, self._convert_params)
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def close(self) -> None:
        """Close connection pool."""
        with self._pools_lock:
            if self._database_url in self._connection_pools:
                self._connection_pools[self._database_url].closeall()
                del self._connection_pools[self._database_url]


class TransactionCursor:
    """Cursor handed out by PostgresClient.transaction(), same result shapes as the client."""

    def __init__(self, cursor, convert_params):
        self._cursor = cursor
        self._convert_params = convert_params

    def execute(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        self._cursor.execute(query, self._convert_params(params))
        if self._cursor.description:
            return [dict(row) for row in self._cursor.fetchall()]
        return []

    def execute_single(self, query: str, params: Tuple | Dict | None = None) -> Dict[str, Any] | None:
        rows = self.execute(query, params)
        return rows[0] if rows else None
