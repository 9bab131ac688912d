"""Connection management for the single shared MySQL handle."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import pymysql
import pymysql.cursors

from .config import DatabaseSettings, load_config
from .exceptions import ConnectivityError, StatementError

_LOGGER = logging.getLogger(__name__)

DISCONNECTED = "disconnected"
CONNECTED = "connected"

# Server gone away, lost connection during query, lost connection to server.
_MYSQL_DISCONNECT_CODES = frozenset({2006, 2013, 2055})


@dataclass(frozen=True, slots=True)
class QueryOutcome:
    """Rows (as dicts) and affected-row count of one executed statement."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    rowcount: int = 0

    def scalar(self) -> Any:
        """Return the first column of the first row, or None."""
        if not self.rows:
            return None
        first = self.rows[0]
        return next(iter(first.values()), None)


class DatabaseDriver(ABC):
    """Adapter between the connection manager and a DB-API style driver."""

    name: str = "generic"
    errors: tuple[type[BaseException], ...] = ()

    @abstractmethod
    def connect(self, settings: DatabaseSettings) -> Any:
        """Open a server connection and return the raw handle."""

    @abstractmethod
    def select_database(self, connection: Any, name: str) -> None:
        """Switch the handle to the named database."""

    @abstractmethod
    def escape(self, connection: Any, value: str) -> str:
        """Escape a string literal body (without surrounding quotes)."""

    def is_disconnect(self, exc: BaseException) -> bool:
        """Return True if the error means the handle is no longer usable."""
        return False


class MySQLDriver(DatabaseDriver):
    """PyMySQL-backed driver returning dict rows in autocommit mode."""

    name = "mysql"
    errors = (pymysql.err.MySQLError,)

    def connect(self, settings: DatabaseSettings) -> Any:
        return pymysql.connect(
            host=settings.host,
            user=settings.user,
            password=settings.password or "",
            port=settings.port,
            unix_socket=settings.socket,
            charset=settings.charset,
            connect_timeout=settings.connect_timeout,
            autocommit=True,
            cursorclass=pymysql.cursors.DictCursor,
        )

    def select_database(self, connection: Any, name: str) -> None:
        connection.select_db(name)

    def escape(self, connection: Any, value: str) -> str:
        return connection.escape_string(value)

    def is_disconnect(self, exc: BaseException) -> bool:
        if isinstance(exc, pymysql.err.InterfaceError):
            return True
        if isinstance(exc, pymysql.err.OperationalError) and exc.args:
            return exc.args[0] in _MYSQL_DISCONNECT_CODES
        return False


class ConnectionManager:
    """Own one lazily opened database handle plus last-statement diagnostics."""

    def __init__(
        self,
        settings: DatabaseSettings | None = None,
        *,
        driver: DatabaseDriver | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._settings = settings
        self._driver = driver or MySQLDriver()
        self._env = env
        self._connection: Any = None
        self.last_query = ""
        self.last_error = ""
        self.last_total: int | None = None

    @property
    def state(self) -> str:
        return CONNECTED if self._connection is not None else DISCONNECTED

    @property
    def driver(self) -> DatabaseDriver:
        return self._driver

    def connect(self) -> None:
        """Open the connection if needed; raises ConfigurationError/ConnectivityError."""
        if self._connection is not None:
            return
        settings = self._resolve_settings()

        try:
            connection = self._driver.connect(settings)
        except self._driver.errors as exc:
            raise ConnectivityError(f"Server connection failed: {exc}") from exc

        try:
            self._driver.select_database(connection, str(settings.name))
        except self._driver.errors as exc:
            _close_quietly(connection)
            raise ConnectivityError(f"Database selection failed: {exc}") from exc

        _LOGGER.debug("Connected to %s database %s", self._driver.name, settings.name)
        self._connection = connection

    def close(self) -> None:
        """Release the handle and return to the disconnected state."""
        connection, self._connection = self._connection, None
        if connection is not None:
            _close_quietly(connection)

    def query(self, sql: str) -> QueryOutcome:
        """Execute one statement and return its rows and affected-row count."""
        self.connect()
        self.last_error = ""
        self.last_query = sql
        _LOGGER.debug("SQL: %s", sql)
        try:
            with self._connection.cursor() as cursor:
                cursor.execute(sql)
                rows = [dict(row) for row in cursor.fetchall()] if cursor.description else []
                rowcount = cursor.rowcount
        except self._driver.errors as exc:
            self.last_error = f"Database error: {exc}"
            if self._driver.is_disconnect(exc):
                self.close()
            raise StatementError(self.last_error, sql=sql) from exc
        return QueryOutcome(rows=rows, rowcount=rowcount)

    def escape(self, value: str) -> str:
        """Escape a literal body using the live connection's rules."""
        self.connect()
        return self._driver.escape(self._connection, value)

    def _resolve_settings(self) -> DatabaseSettings:
        if self._settings is None:
            self._settings = load_config(env=self._env).database
        return self._settings.require_complete()


def _close_quietly(connection: Any) -> None:
    try:
        connection.close()
    except Exception as exc:  # pragma: no cover - close failures are not actionable
        _LOGGER.debug("Ignoring error while closing connection: %s", exc)
