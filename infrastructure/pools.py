# ============================================================================
# CLAUDE CONTEXT - CONNECTION POOLS
# ============================================================================
# STATUS: Core Infrastructure - Pool wrapper and per-project pool registry
# PURPOSE: Own every long-lived connection pool to user databases
# EXPORTS: PoolSettings, QueryResult, DatabasePool, PoolRegistry, get_pool_registry,
#          REGISTRY_POOL_SETTINGS, USER_POOL_SETTINGS, LIVENESS_QUERY
# DEPENDENCIES: psycopg, psycopg_pool, threading, util_logger
# SCOPE: Connection lifecycle for user-owned PostgreSQL databases
# PATTERNS: Registry pattern, Lazy initialization, Dependency injection
# ============================================================================

"""
Connection Pools for User Databases

DatabasePool wraps psycopg_pool.ConnectionPool with the settings this
service uses for user-owned databases:

    Registry pools (per project, long-lived):  max 10, idle 30s, connect 4s, SSL
    Transient pools (import/execute/ping):     max 5,  idle 30s, connect 4s

SSL uses sslmode=require, which encrypts the transport without verifying
the server certificate. sslmode=disable is used only for the non-SSL
fallback in infrastructure.user_database.

PoolRegistry maps an opaque key (project_<id>) to exactly one pool. It is
created once per process (get_pool_registry) and injected into services,
so tests and multiple app instances can each own a registry.

Usage:
    from infrastructure.pools import get_pool_registry

    registry = get_pool_registry()
    pool = registry.create_pool(f"project_{project_id}", connection_string)
    result = pool.query("SELECT * FROM public.\"users\" LIMIT 200")
    print(result.rows)
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool, PoolTimeout

from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.REGISTRY, "PoolRegistry")

LIVENESS_QUERY = "SELECT 1"

# Rows keep the scalar types adapted by psycopg (str, int, Decimal, bool,
# datetime, UUID, None); JSON rendering happens in the HTTP layer.
Row = Dict[str, Any]
Params = Optional[Union[Sequence[Any], Dict[str, Any]]]


@dataclass(frozen=True)
class PoolSettings:
    """Sizing, timeout and transport settings for one pool."""
    max_size: int
    idle_timeout_s: float = 30.0
    connect_timeout_s: int = 4
    acquire_timeout_s: float = 4.0
    ssl: bool = True

    @property
    def sslmode(self) -> str:
        return "require" if self.ssl else "disable"

    def without_ssl(self) -> "PoolSettings":
        """Same settings with encryption disabled."""
        return PoolSettings(
            max_size=self.max_size,
            idle_timeout_s=self.idle_timeout_s,
            connect_timeout_s=self.connect_timeout_s,
            acquire_timeout_s=self.acquire_timeout_s,
            ssl=False
        )


REGISTRY_POOL_SETTINGS = PoolSettings(max_size=10)
USER_POOL_SETTINGS = PoolSettings(max_size=5)


@dataclass
class QueryResult:
    """Rows plus the cursor's row count and command tag."""
    rows: List[Row] = field(default_factory=list)
    rowcount: int = -1
    command: Optional[str] = None


# ============================================================================
# DATABASE POOL
# ============================================================================

class DatabasePool:
    """
    Connection pool bound to one user database connection string.

    The underlying ConnectionPool opens lazily on the first query, so
    constructing a DatabasePool never touches the network. Connection
    failures on that first query surface as the driver's error, not as a
    pool timeout.

    Thread Safety:
        query() may be called from any number of threads; excess callers
        wait (up to acquire_timeout_s) for a free connection.
    """

    def __init__(self, conninfo: str, settings: PoolSettings = USER_POOL_SETTINGS):
        self.conninfo = conninfo
        self.settings = settings
        self._connect_kwargs = {
            "sslmode": settings.sslmode,
            "connect_timeout": settings.connect_timeout_s,
        }
        self._pool = self._build_pool()
        self._open_lock = threading.Lock()
        self._opened = False
        self._verified = False
        self._closed = False

    def _build_pool(self) -> ConnectionPool:
        return ConnectionPool(
            self.conninfo,
            min_size=1,
            max_size=self.settings.max_size,
            max_idle=self.settings.idle_timeout_s,
            timeout=self.settings.acquire_timeout_s,
            kwargs=dict(self._connect_kwargs),
            open=False,
        )

    @property
    def ssl(self) -> bool:
        return self.settings.ssl

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        """
        Open the underlying pool on first use.

        An unverified pool pings first so an unreachable database fails
        within connect_timeout_s with the driver's own error. The pool is
        then opened and waited on for its first connection; if that times
        out the ConnectionPool is discarded and rebuilt for the next call.
        """
        if self._closed:
            raise RuntimeError("Pool has been closed")
        if self._opened:
            return
        with self._open_lock:
            if self._opened:
                return
            if not self._verified:
                self.ping()
            try:
                self._pool.open(wait=True, timeout=self.settings.connect_timeout_s)
            except PoolTimeout:
                self._pool.close()
                self._pool = self._build_pool()
                self._verified = False
                raise
            self._opened = True

    def query(self, query: str, params: Params = None) -> QueryResult:
        """
        Execute one statement on a pooled connection and commit.

        Args:
            query: SQL text with %s placeholders
            params: Positional values; empty sequences are sent as no parameters

        Returns:
            QueryResult with dict rows (empty for statements without a result set)
        """
        self._ensure_open()
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, params or None)
                rows = cur.fetchall() if cur.description else []
                return QueryResult(rows=rows, rowcount=cur.rowcount, command=cur.statusmessage)

    def ping(self) -> None:
        """
        Run the liveness query.

        Connects directly rather than through the pool: a pool reports
        connection failures as a generic timeout, while a direct connection
        raises the server's own message (e.g. "server does not support SSL").
        """
        with psycopg.connect(self.conninfo, **self._connect_kwargs) as conn:
            conn.execute(LIVENESS_QUERY)
        self._verified = True

    def close(self) -> None:
        """Close all connections. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._opened:
            self._pool.close()
        logger.debug(f"🔒 Pool closed (ssl={self.ssl})")


PoolFactory = Callable[[str, PoolSettings], DatabasePool]


# ============================================================================
# POOL REGISTRY
# ============================================================================

class PoolRegistry:
    """
    Process-wide map of pool key -> DatabasePool.

    Invariants:
    - At most one pool per key.
    - create_pool() on an existing key returns the existing pool untouched.
    - Pools are closed only by remove_pool() or shutdown().

    Registry mutation happens under a lock, so concurrent create_pool()
    calls for the same key build exactly one pool.
    """

    def __init__(self, pool_factory: PoolFactory = DatabasePool,
                 settings: PoolSettings = REGISTRY_POOL_SETTINGS):
        self._pool_factory = pool_factory
        self._settings = settings
        self._pools: Dict[str, DatabasePool] = {}
        self._lock = threading.Lock()
        self._active = True

    def init(self) -> "PoolRegistry":
        """Mark the registry ready to hand out pools (again, after shutdown)."""
        with self._lock:
            self._active = True
        logger.info("✅ Pool registry initialized")
        return self

    def shutdown(self) -> None:
        """Close every registered pool and empty the registry."""
        with self._lock:
            pools = list(self._pools.items())
            self._pools.clear()
            self._active = False

        for key, pool in pools:
            try:
                pool.close()
            except Exception as e:
                logger.error(f"❌ Error closing pool '{key}' during shutdown: {e}")

        logger.info(f"Pool registry shut down ({len(pools)} pools closed)")

    def create_pool(self, key: str, connection_string: str) -> DatabasePool:
        """
        Return the pool registered under key, creating it if absent.

        A second call with the same key does not reconnect and ignores the
        new connection string.
        """
        with self._lock:
            if not self._active:
                raise RuntimeError("Pool registry is shut down")

            existing = self._pools.get(key)
            if existing is not None:
                return existing

            pool = self._pool_factory(connection_string, self._settings)
            self._pools[key] = pool

        logger.info(f"Created pool '{key}'", extra={'custom_dimensions': {'pool_key': key}})
        return pool

    def get_pool(self, key: str) -> Optional[DatabasePool]:
        """Pure lookup."""
        return self._pools.get(key)

    def remove_pool(self, key: str) -> bool:
        """
        Close and unregister the pool under key.

        Returns:
            True if a pool was removed, False if the key was unknown
        """
        with self._lock:
            pool = self._pools.pop(key, None)

        if pool is None:
            return False

        pool.close()
        logger.info(f"Removed pool '{key}'", extra={'custom_dimensions': {'pool_key': key}})
        return True

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "active": self._active,
                "pool_count": len(self._pools),
                "keys": sorted(self._pools),
            }

    def __len__(self) -> int:
        return len(self._pools)

    def __contains__(self, key: str) -> bool:
        return key in self._pools


def project_pool_key(project_id: Any) -> str:
    """Registry key for a project's pool."""
    return f"project_{project_id}"


# Process-wide default registry
_registry: Optional[PoolRegistry] = None
_registry_lock = threading.Lock()


def get_pool_registry() -> PoolRegistry:
    """
    Get the process-wide pool registry, creating it on first use.
    """
    global _registry

    if _registry is None:
        with _registry_lock:
            if _registry is None:
                _registry = PoolRegistry()

    return _registry
