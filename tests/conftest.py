"""Shared fixtures: in-memory fakes of the asyncpg pool, connection and prepared statement."""

from types import SimpleNamespace

import pytest

from pgmcp.lib.mcp_tools import ToolFacade
from pgmcp.services.database_service import DatabaseService


class FakeType:
    def __init__(self, name):
        self.name = name


class FakeAttribute:
    def __init__(self, name, type_name):
        self.name = name
        self.type = FakeType(type_name)


class FakePrepared:
    """Stands in for asyncpg's PreparedStatement.

    ``columns`` is a list of ``(name, type_name)``; when omitted the names
    are taken from the first row and typed as text.
    """

    def __init__(self, rows=None, columns=None, param_types=(), status=None, error=None):
        self.rows = list(rows or [])
        if columns is None:
            columns = [(name, 'text') for name in self.rows[0]] if self.rows else []
        self.attributes = [FakeAttribute(name, type_name) for name, type_name in columns]
        self.param_types = [FakeType(type_name) for type_name in param_types]
        self.status = status if status is not None else f"SELECT {len(self.rows)}"
        self.error = error
        self.fetch_args = None

    def get_parameters(self):
        return tuple(self.param_types)

    def get_attributes(self):
        return tuple(self.attributes)

    def get_statusmsg(self):
        return self.status

    async def fetch(self, *args, timeout=None):
        self.fetch_args = list(args)
        if self.error is not None:
            raise self.error
        return list(self.rows)


class FakeConnection:
    """Replays a script of prepared statements (or exceptions) in order."""

    def __init__(self, script=None):
        self.script = list(script or [])
        self.prepared_sql = []

    async def prepare(self, sql, timeout=None):
        self.prepared_sql.append(sql)
        if not self.script:
            raise AssertionError(f"Unexpected statement: {sql}")
        step = self.script.pop(0)
        if isinstance(step, BaseException):
            raise step
        return step


class FakePool:
    def __init__(self, connections, min_size=1, max_size=5):
        self.connections = list(connections)
        self.acquire_errors = []
        self.acquired = 0
        self.released = []
        self.closed = False
        self.min_size = min_size
        self.max_size = max_size

    async def acquire(self, timeout=None):
        if self.acquire_errors:
            raise self.acquire_errors.pop(0)
        conn = self.connections[min(self.acquired, len(self.connections) - 1)]
        self.acquired += 1
        return conn

    async def release(self, conn):
        self.released.append(conn)

    async def close(self):
        self.closed = True

    def get_size(self):
        return len(self.connections)

    def get_idle_size(self):
        return len(self.connections) - (self.acquired - len(self.released))

    def get_min_size(self):
        return self.min_size

    def get_max_size(self):
        return self.max_size


def make_config(**overrides):
    values = {
        'host': 'db.example.com',
        'port': 5432,
        'database': 'appdb',
        'user': 'tester',
        'connect_timeout': 10,
        'query_timeout': 30,
        'pool_min_size': 1,
        'pool_max_size': 5,
        'mutation_limit': 1000,
    }
    values.update(overrides)
    config = SimpleNamespace(**values)
    config.to_pool_kwargs = lambda: {
        'host': config.host,
        'port': config.port,
        'user': config.user,
        'database': config.database,
        'password': 's3cret',
        'min_size': config.pool_min_size,
        'max_size': config.pool_max_size,
    }
    return config


@pytest.fixture
def fakes():
    """Fake driver classes for building scripted statements."""
    return SimpleNamespace(
        Prepared=FakePrepared,
        Connection=FakeConnection,
        Pool=FakePool,
        make_config=make_config
    )


@pytest.fixture
def make_service():
    """Build a DatabaseService over one fake connection per script.

    Each positional argument is the statement script for one acquired
    connection; acquisitions past the last script reuse the last one.
    """

    def factory(*scripts, **config_overrides):
        connections = [FakeConnection(script) for script in scripts] or [FakeConnection()]
        service = DatabaseService(make_config(**config_overrides))
        service.pool = FakePool(connections)
        return service

    return factory


@pytest.fixture
def make_facade(make_service):
    def factory(*scripts, **config_overrides):
        return ToolFacade(make_service(*scripts, **config_overrides))

    return factory


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every variable the configuration loader reads."""
    for name in ('POSTGRES_CONNECTION_STRING', 'DATABASE_URI', 'DATABASE_PROFILE', 'DATABASES_CONFIG',
                 'DB_HOST', 'DB_PORT', 'DB_DATABASE', 'DB_USER', 'DB_PASSWORD', 'DB_CONNECT_TIMEOUT',
                 'DB_QUERY_TIMEOUT', 'DB_POOL_MIN_SIZE', 'DB_POOL_MAX_SIZE', 'PG_MCP_MUTATION_LIMIT',
                 'PGUSER'):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr('pgmcp.models.config.load_dotenv', lambda *args, **kwargs: False)
    return monkeypatch
