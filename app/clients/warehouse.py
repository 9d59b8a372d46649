"""Snowflake adapter shared by every warehouse-backed route."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Mapping, Optional

import snowflake.connector
from snowflake.connector import DictCursor
from snowflake.connector.errors import Error as SnowflakeError

from app.core.config import SnowflakeSettings

logger = logging.getLogger(__name__)

# 390114: authentication token expired, 390144: JWT token invalid.
AUTH_ERROR_CODES = frozenset({390114, 390144})


class WarehouseError(RuntimeError):
    """Base error raised by the warehouse adapter."""


class WarehouseConnectionError(WarehouseError):
    """Raised when a Snowflake session cannot be established."""


class WarehouseQueryError(WarehouseError):
    """Raised when a statement fails to execute."""

    def __init__(self, message: str, *, auth_failure: bool = False) -> None:
        super().__init__(message)
        self.auth_failure = auth_failure


def is_auth_error(exc: BaseException) -> bool:
    """Return ``True`` when ``exc`` signals an expired or rejected session."""
    errno = getattr(exc, "errno", None)
    if errno in AUTH_ERROR_CODES:
        return True
    return "authentication" in str(exc).lower()


class WarehouseClient:
    """Own a single cached Snowflake connection for the whole process.

    The connection is opened lazily, reused while it reports itself open, and
    dropped when a statement fails with an authentication error so the next
    caller re-authenticates. Concurrent callers share one in-flight connect
    attempt, so a burst of requests after an invalidation opens one session
    or sees one failure.
    """

    def __init__(
        self,
        settings: SnowflakeSettings,
        *,
        connect: Optional[Callable[..., Any]] = None,
    ) -> None:
        self._settings = settings
        self._connect = connect or snowflake.connector.connect
        self._connection: Any = None
        self._connecting: Optional["asyncio.Task[Any]"] = None

    @property
    def settings(self) -> SnowflakeSettings:
        return self._settings

    async def get_connection(self) -> Any:
        """Return a live connection, opening one when the cache is empty.

        Concurrent callers share one in-flight attempt and all receive its
        outcome, including its ``WarehouseConnectionError``. The attempt is
        forgotten once settled, so a later call tries again.
        """
        connection = self._connection
        if _is_healthy(connection):
            return connection

        pending = self._connecting
        if pending is None:
            pending = asyncio.create_task(self._open_connection(), name="snowflake-connect")
            pending.add_done_callback(self._connect_settled)
            self._connecting = pending
        # A cancelled caller must not cancel the attempt other callers await.
        return await asyncio.shield(pending)

    async def _open_connection(self) -> Any:
        logger.info(
            "Opening Snowflake connection (account=%s, user=%s, authenticator=%s)",
            self._settings.account,
            self._settings.user,
            self._settings.authenticator,
        )
        try:
            connection = await asyncio.to_thread(
                self._connect, **self._settings.connect_kwargs()
            )
        except SnowflakeError as exc:
            raise WarehouseConnectionError(
                f"Unable to connect to Snowflake: {exc}"
            ) from exc
        self._connection = connection
        return connection

    def _connect_settled(self, task: "asyncio.Task[Any]") -> None:
        if self._connecting is task:
            self._connecting = None
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Snowflake connection attempt failed: %s", task.exception())

    async def execute(
        self,
        sql: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        """Run one statement with bound parameters and return its rows."""
        connection = await self.get_connection()
        try:
            return await asyncio.to_thread(_run_statement, connection, sql, params)
        except SnowflakeError as exc:
            auth_failure = is_auth_error(exc)
            if auth_failure:
                logger.warning(
                    "Snowflake rejected the cached session; clearing it. (%s)", exc
                )
                self.invalidate(connection)
            raise WarehouseQueryError(str(exc), auth_failure=auth_failure) from exc

    def invalidate(self, connection: Any = None) -> None:
        """Drop the cached connection.

        When ``connection`` is given the cache is only cleared if it still holds
        that connection, so late failures from an old session never evict a
        session opened after it.
        """
        if connection is not None and connection is not self._connection:
            return
        if self._connection is not None:
            logger.info("Cached Snowflake connection invalidated.")
        self._connection = None

    async def close(self) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return
        try:
            await asyncio.to_thread(connection.close)
        except SnowflakeError as exc:  # pragma: no cover - shutdown path
            logger.warning("Failed to close Snowflake connection: %s", exc)


def _is_healthy(connection: Any) -> bool:
    return connection is not None and not connection.is_closed()


def _run_statement(
    connection: Any,
    sql: str,
    params: Optional[Mapping[str, Any]],
) -> list[dict[str, Any]]:
    with connection.cursor(DictCursor) as cursor:
        cursor.execute(sql, dict(params) if params else None)
        rows = cursor.fetchall()
    return list(rows or [])


__all__ = [
    "AUTH_ERROR_CODES",
    "WarehouseClient",
    "WarehouseConnectionError",
    "WarehouseError",
    "WarehouseQueryError",
    "is_auth_error",
]
