import threading
from unittest.mock import MagicMock

import psycopg
import pytest
from psycopg_pool import PoolTimeout

from infrastructure.pools import (
    REGISTRY_POOL_SETTINGS,
    USER_POOL_SETTINGS,
    DatabasePool,
    PoolRegistry,
    PoolSettings,
    project_pool_key,
)


def make_registry():
    created = []

    def factory(connection_string, settings):
        pool = MagicMock(spec=DatabasePool)
        pool.conninfo = connection_string
        pool.settings = settings
        created.append(pool)
        return pool

    return PoolRegistry(pool_factory=factory), created


class TestPoolSettings:
    def test_defaults(self):
        assert REGISTRY_POOL_SETTINGS.max_size == 10
        assert USER_POOL_SETTINGS.max_size == 5
        assert USER_POOL_SETTINGS.connect_timeout_s == 4
        assert USER_POOL_SETTINGS.idle_timeout_s == 30.0

    def test_sslmode(self):
        assert PoolSettings(max_size=1).sslmode == "require"
        assert PoolSettings(max_size=1).without_ssl().sslmode == "disable"

    def test_without_ssl_keeps_other_settings(self):
        plain = USER_POOL_SETTINGS.without_ssl()
        assert plain.max_size == USER_POOL_SETTINGS.max_size
        assert plain.connect_timeout_s == USER_POOL_SETTINGS.connect_timeout_s
        assert USER_POOL_SETTINGS.ssl is True


class TestPoolRegistry:
    def test_create_pool_uses_registry_settings(self):
        registry, created = make_registry()
        pool = registry.create_pool("project_1", "postgres://u@h:5432/d")

        assert pool is created[0]
        assert pool.conninfo == "postgres://u@h:5432/d"
        assert pool.settings is REGISTRY_POOL_SETTINGS

    def test_create_pool_is_idempotent_per_key(self):
        registry, created = make_registry()
        first = registry.create_pool("k", "postgres://a")
        second = registry.create_pool("k", "postgres://b")

        assert first is second
        assert len(created) == 1
        assert first.conninfo == "postgres://a"

    def test_get_pool_is_pure_lookup(self):
        registry, created = make_registry()
        assert registry.get_pool("missing") is None
        assert created == []

        pool = registry.create_pool("k", "cs")
        assert registry.get_pool("k") is pool

    def test_remove_pool_closes_and_forgets(self):
        registry, _ = make_registry()
        pool = registry.create_pool("k", "cs")

        assert registry.remove_pool("k") is True
        pool.close.assert_called_once()
        assert registry.get_pool("k") is None
        assert "k" not in registry

    def test_remove_unknown_pool_returns_false(self):
        registry, _ = make_registry()
        assert registry.remove_pool("nope") is False

    def test_recreate_after_remove_builds_new_pool(self):
        registry, created = make_registry()
        registry.create_pool("k", "cs")
        registry.remove_pool("k")
        registry.create_pool("k", "cs")
        assert len(created) == 2

    def test_shutdown_closes_everything(self):
        registry, created = make_registry()
        registry.create_pool("a", "cs")
        registry.create_pool("b", "cs")

        registry.shutdown()

        for pool in created:
            pool.close.assert_called_once()
        assert len(registry) == 0
        assert registry.stats()["active"] is False

    def test_shutdown_continues_after_close_error(self):
        registry, created = make_registry()
        registry.create_pool("a", "cs")
        registry.create_pool("b", "cs")
        created[0].close.side_effect = RuntimeError("boom")

        registry.shutdown()

        created[1].close.assert_called_once()

    def test_create_after_shutdown_raises_until_init(self):
        registry, _ = make_registry()
        registry.shutdown()

        with pytest.raises(RuntimeError, match="shut down"):
            registry.create_pool("k", "cs")

        registry.init()
        assert registry.create_pool("k", "cs") is not None

    def test_stats(self):
        registry, _ = make_registry()
        registry.create_pool("b", "cs")
        registry.create_pool("a", "cs")

        assert registry.stats() == {"active": True, "pool_count": 2, "keys": ["a", "b"]}

    def test_concurrent_create_builds_one_pool(self):
        registry, created = make_registry()
        barrier = threading.Barrier(8)
        results = []

        def worker():
            barrier.wait()
            results.append(registry.create_pool("shared", "cs"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(created) == 1
        assert all(r is created[0] for r in results)


def test_project_pool_key():
    assert project_pool_key(42) == "project_42"
    assert project_pool_key("abc") == "project_abc"


class TestDatabasePool:
    def test_construction_does_not_open(self, monkeypatch):
        pool_cls = MagicMock()
        monkeypatch.setattr("infrastructure.pools.ConnectionPool", pool_cls)

        pool = DatabasePool("postgres://u@h/d", USER_POOL_SETTINGS)

        _, kwargs = pool_cls.call_args
        assert kwargs["open"] is False
        assert kwargs["max_size"] == 5
        assert kwargs["kwargs"] == {"sslmode": "require", "connect_timeout": 4}
        pool_cls.return_value.open.assert_not_called()
        assert pool.ssl is True

    def test_close_is_idempotent(self, monkeypatch):
        pool_cls = MagicMock()
        monkeypatch.setattr("infrastructure.pools.ConnectionPool", pool_cls)

        pool = DatabasePool("cs")
        pool.close()
        pool.close()

        assert pool.closed is True
        # never opened, so the underlying pool is left alone
        pool_cls.return_value.close.assert_not_called()

    def test_query_after_close_raises(self, monkeypatch):
        monkeypatch.setattr("infrastructure.pools.ConnectionPool", MagicMock())
        pool = DatabasePool("cs")
        pool.close()

        with pytest.raises(RuntimeError, match="closed"):
            pool.query("SELECT 1")

    def test_query_returns_rows_and_sends_no_params_when_empty(self, monkeypatch):
        pool_cls = MagicMock()
        monkeypatch.setattr("infrastructure.pools.ConnectionPool", pool_cls)
        monkeypatch.setattr("infrastructure.pools.psycopg.connect", MagicMock())
        conn = pool_cls.return_value.connection.return_value.__enter__.return_value
        cur = conn.cursor.return_value.__enter__.return_value
        cur.description = [("id",)]
        cur.fetchall.return_value = [{"id": 1}]
        cur.rowcount = 1
        cur.statusmessage = "SELECT 1"

        pool = DatabasePool("cs")
        result = pool.query("SELECT 100%", [])

        cur.execute.assert_called_once_with("SELECT 100%", None)
        pool_cls.return_value.open.assert_called_once_with(wait=True, timeout=4)
        assert result.rows == [{"id": 1}]
        assert result.rowcount == 1
        assert result.command == "SELECT 1"

    def test_query_without_result_set(self, monkeypatch):
        pool_cls = MagicMock()
        monkeypatch.setattr("infrastructure.pools.ConnectionPool", pool_cls)
        monkeypatch.setattr("infrastructure.pools.psycopg.connect", MagicMock())
        conn = pool_cls.return_value.connection.return_value.__enter__.return_value
        cur = conn.cursor.return_value.__enter__.return_value
        cur.description = None
        cur.rowcount = 3

        result = DatabasePool("cs").query("UPDATE t SET a = %s", [1])

        cur.fetchall.assert_not_called()
        assert result.rows == []
        assert result.rowcount == 3

    def test_ping_connects_directly_with_pool_settings(self, monkeypatch):
        monkeypatch.setattr("infrastructure.pools.ConnectionPool", MagicMock())
        connect = MagicMock()
        monkeypatch.setattr("infrastructure.pools.psycopg.connect", connect)

        DatabasePool("cs", USER_POOL_SETTINGS.without_ssl()).ping()

        connect.assert_called_once_with("cs", sslmode="disable", connect_timeout=4)
        connect.return_value.__enter__.return_value.execute.assert_called_once_with("SELECT 1")

    def test_acquire_timeout_matches_connect_timeout(self):
        assert REGISTRY_POOL_SETTINGS.acquire_timeout_s == REGISTRY_POOL_SETTINGS.connect_timeout_s

    def test_unreachable_database_raises_driver_error(self, monkeypatch):
        pool_cls = MagicMock()
        monkeypatch.setattr("infrastructure.pools.ConnectionPool", pool_cls)
        connect = MagicMock(side_effect=psycopg.OperationalError("connection refused"))
        monkeypatch.setattr("infrastructure.pools.psycopg.connect", connect)

        pool = DatabasePool("postgres://u:p@127.0.0.1:1/db", REGISTRY_POOL_SETTINGS)
        with pytest.raises(psycopg.OperationalError, match="connection refused"):
            pool.query("SELECT 1")

        connect.assert_called_once_with("postgres://u:p@127.0.0.1:1/db", sslmode="require", connect_timeout=4)
        pool_cls.return_value.open.assert_not_called()
        pool_cls.return_value.connection.assert_not_called()

    def test_unreachable_database_is_retried_on_next_query(self, monkeypatch):
        pool_cls = MagicMock()
        monkeypatch.setattr("infrastructure.pools.ConnectionPool", pool_cls)
        connect = MagicMock(side_effect=[psycopg.OperationalError("connection refused"), MagicMock()])
        monkeypatch.setattr("infrastructure.pools.psycopg.connect", connect)
        cur = pool_cls.return_value.connection.return_value.__enter__.return_value \
            .cursor.return_value.__enter__.return_value
        cur.description = None

        pool = DatabasePool("cs", REGISTRY_POOL_SETTINGS)
        with pytest.raises(psycopg.OperationalError):
            pool.query("SELECT 1")
        pool.query("SELECT 1")

        assert connect.call_count == 2
        pool_cls.return_value.open.assert_called_once_with(wait=True, timeout=4)

    def test_open_timeout_rebuilds_pool(self, monkeypatch):
        first, second = MagicMock(), MagicMock()
        first.open.side_effect = PoolTimeout("pool initialization incomplete after 4.0 sec")
        pool_cls = MagicMock(side_effect=[first, second])
        monkeypatch.setattr("infrastructure.pools.ConnectionPool", pool_cls)
        monkeypatch.setattr("infrastructure.pools.psycopg.connect", MagicMock())

        pool = DatabasePool("cs", REGISTRY_POOL_SETTINGS)
        with pytest.raises(PoolTimeout):
            pool.query("SELECT 1")

        first.close.assert_called_once()
        assert pool_cls.call_count == 2
        pool.query("SELECT 1")
        second.open.assert_called_once_with(wait=True, timeout=4)

    def test_ping_marks_pool_verified(self, monkeypatch):
        pool_cls = MagicMock()
        monkeypatch.setattr("infrastructure.pools.ConnectionPool", pool_cls)
        connect = MagicMock()
        monkeypatch.setattr("infrastructure.pools.psycopg.connect", connect)

        pool = DatabasePool("cs")
        pool.ping()
        pool.query("SELECT 1")

        connect.assert_called_once()
