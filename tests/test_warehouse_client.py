try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import asyncio
import threading
import time

import pytest
from snowflake.connector.errors import DatabaseError, ProgrammingError

from app.clients.warehouse import (
    WarehouseClient,
    WarehouseConnectionError,
    WarehouseQueryError,
    is_auth_error,
)
from app.core.config import SnowflakeSettings

pytestmark = pytest.mark.anyio("asyncio")


class FakeCursor:
    def __init__(self, connection: "FakeConnection") -> None:
        self._connection = connection
        self._rows = None

    def __enter__(self) -> "FakeCursor":
        return self

    def __exit__(self, *exc_info) -> None:
        return None

    def execute(self, sql, params=None):
        self._connection.statements.append((sql, params))
        if self._connection.error is not None:
            raise self._connection.error
        self._rows = self._connection.rows
        return self

    def fetchall(self):
        return self._rows


class FakeConnection:
    def __init__(self, rows=None, error=None) -> None:
        self.rows = rows
        self.error = error
        self.closed = False
        self.statements: list = []

    def is_closed(self) -> bool:
        return self.closed

    def cursor(self, cursor_class=None):
        return FakeCursor(self)

    def close(self) -> None:
        self.closed = True


class RecordingConnect:
    def __init__(self, factory=FakeConnection) -> None:
        self.factory = factory
        self.calls: list[dict] = []
        self.connections: list[FakeConnection] = []
        self._lock = threading.Lock()

    def __call__(self, **kwargs):
        with self._lock:
            self.calls.append(kwargs)
            connection = self.factory()
            self.connections.append(connection)
            return connection


def _settings() -> SnowflakeSettings:
    return SnowflakeSettings(
        SNOWFLAKE_ACCOUNT="acme-prod",
        SNOWFLAKE_USER="analyst@example.com",
        SNOWFLAKE_AUTHENTICATOR="snowflake",
        SNOWFLAKE_WAREHOUSE="ANALYST_WH",
    )


async def test_connection_is_cached_and_reused():
    connect = RecordingConnect()
    client = WarehouseClient(_settings(), connect=connect)

    first = await client.get_connection()
    second = await client.get_connection()

    assert first is second
    assert len(connect.calls) == 1
    assert connect.calls[0]["account"] == "acme-prod"
    assert connect.calls[0]["warehouse"] == "ANALYST_WH"
    assert connect.calls[0]["schema"] == "GENERAL"


async def test_closed_connection_is_replaced():
    connect = RecordingConnect()
    client = WarehouseClient(_settings(), connect=connect)

    first = await client.get_connection()
    first.closed = True
    second = await client.get_connection()

    assert second is not first
    assert len(connect.calls) == 2


async def test_concurrent_callers_share_a_single_connect():
    connect = RecordingConnect()
    client = WarehouseClient(_settings(), connect=connect)

    connections = await asyncio.gather(*(client.get_connection() for _ in range(8)))

    assert len(connect.calls) == 1
    assert all(connection is connections[0] for connection in connections)


async def test_concurrent_callers_share_a_single_failed_connect():
    def slow_rejection():
        time.sleep(0.05)
        raise DatabaseError(msg="SAML response is invalid.", errno=390190)

    connect = RecordingConnect(factory=slow_rejection)
    client = WarehouseClient(_settings(), connect=connect)

    results = await asyncio.gather(
        *(client.get_connection() for _ in range(11)), return_exceptions=True
    )

    assert len(connect.calls) == 1
    assert all(isinstance(result, WarehouseConnectionError) for result in results)


async def test_failed_connect_is_retried_by_the_next_caller():
    attempts = iter([DatabaseError(msg="Network is unreachable", errno=250001), None])

    def flaky():
        error = next(attempts)
        if error is not None:
            raise error
        return FakeConnection()

    connect = RecordingConnect(factory=flaky)
    client = WarehouseClient(_settings(), connect=connect)

    with pytest.raises(WarehouseConnectionError):
        await client.get_connection()
    connection = await client.get_connection()

    assert isinstance(connection, FakeConnection)
    assert len(connect.calls) == 2


async def test_cancelled_caller_does_not_abort_shared_connect():
    def slow_connection():
        time.sleep(0.05)
        return FakeConnection()

    connect = RecordingConnect(factory=slow_connection)
    client = WarehouseClient(_settings(), connect=connect)

    impatient = asyncio.create_task(client.get_connection())
    patient = asyncio.create_task(client.get_connection())
    await asyncio.sleep(0)
    impatient.cancel()

    connection = await patient

    assert impatient.cancelled()
    assert isinstance(connection, FakeConnection)
    assert len(connect.calls) == 1


async def test_execute_returns_empty_list_when_driver_returns_none():
    connect = RecordingConnect(factory=lambda: FakeConnection(rows=None))
    client = WarehouseClient(_settings(), connect=connect)

    rows = await client.execute("SELECT 1 WHERE FALSE")

    assert rows == []


async def test_execute_binds_parameters():
    connect = RecordingConnect(factory=lambda: FakeConnection(rows=[{"TOTAL": 3}]))
    client = WarehouseClient(_settings(), connect=connect)

    rows = await client.execute(
        "SELECT COUNT(*) AS TOTAL FROM T WHERE ORG_ID = %(org_id)s", {"org_id": 7}
    )

    assert rows == [{"TOTAL": 3}]
    assert connect.connections[0].statements[0][1] == {"org_id": 7}


async def test_auth_failure_invalidates_cached_connection():
    auth_error = DatabaseError(msg="Authentication token has expired.", errno=390114)
    connect = RecordingConnect(factory=lambda: FakeConnection(error=auth_error))
    client = WarehouseClient(_settings(), connect=connect)

    with pytest.raises(WarehouseQueryError) as excinfo:
        await client.execute("SELECT 1")

    assert excinfo.value.auth_failure is True
    await client.get_connection()
    assert len(connect.calls) == 2


async def test_ordinary_query_failure_keeps_connection():
    sql_error = ProgrammingError(msg="SQL compilation error: invalid identifier", errno=904)
    connect = RecordingConnect(factory=lambda: FakeConnection(error=sql_error))
    client = WarehouseClient(_settings(), connect=connect)

    with pytest.raises(WarehouseQueryError) as excinfo:
        await client.execute("SELECT NOPE")

    assert excinfo.value.auth_failure is False
    await client.get_connection()
    assert len(connect.calls) == 1


async def test_stale_invalidation_does_not_evict_newer_connection():
    connect = RecordingConnect()
    client = WarehouseClient(_settings(), connect=connect)

    stale = await client.get_connection()
    client.invalidate()
    fresh = await client.get_connection()
    client.invalidate(stale)

    assert await client.get_connection() is fresh
    assert len(connect.calls) == 2


async def test_connect_failure_is_wrapped():
    def failing_connect(**_):
        raise DatabaseError(msg="Incorrect username or password was specified.", errno=390100)

    client = WarehouseClient(_settings(), connect=failing_connect)

    with pytest.raises(WarehouseConnectionError):
        await client.get_connection()


async def test_close_releases_cached_connection():
    connect = RecordingConnect()
    client = WarehouseClient(_settings(), connect=connect)
    connection = await client.get_connection()

    await client.close()

    assert connection.closed is True
    await client.get_connection()
    assert len(connect.calls) == 2


@pytest.mark.parametrize(
    "error, expected",
    [
        (DatabaseError(msg="JWT token is invalid.", errno=390144), True),
        (DatabaseError(msg="Authentication token has expired.", errno=390114), True),
        (RuntimeError("SAML authentication failed"), True),
        (ProgrammingError(msg="Object does not exist", errno=2003), False),
    ],
)
def test_is_auth_error(error, expected):
    assert is_auth_error(error) is expected


def test_external_browser_connections_store_temporary_credentials():
    settings = SnowflakeSettings(
        SNOWFLAKE_ACCOUNT="acme-prod",
        SNOWFLAKE_USER="analyst@example.com",
        SNOWFLAKE_AUTHENTICATOR="EXTERNALBROWSER",
    )

    kwargs = settings.connect_kwargs()

    assert kwargs["authenticator"] == "externalbrowser"
    assert kwargs["client_store_temporary_credential"] is True
    assert kwargs["database"] == "REPORTING"
    assert "password" not in kwargs
