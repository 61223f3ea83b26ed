from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Set, Tuple, Type, Union
from urllib.parse import quote, unquote, urlparse

from nestor.exception import DriverException, NestorError

logger = logging.getLogger(__name__)

Params = Optional[Union[Sequence[Any], Dict[str, Any]]]

DEFAULT_PORTS = {"postgres": 5432, "postgresql": 5432, "mysql": 3306}
MASKED_PASSWORD = "..."
SERVER_VERSION = "<server version>"


@dataclass(frozen=True)
class DriverCapabilities:
    """What the backend can do inside a native transaction"""

    supports_savepoints: bool = True
    supports_release_savepoints: bool = True


class BaseDriver(ABC):
    """Statement executor and capability provider for one database session

    A driver holds at most one native session at a time. It knows nothing
    about nesting: it only runs the statements it is handed and reports
    failures as :class:`~nestor.exception.DriverException`.
    """

    scheme = "dummy"
    aliases: Tuple[str, ...] = ()
    capabilities = DriverCapabilities()
    registered_drivers: Set[Type[BaseDriver]] = set()

    BEGIN_SQL: str = "BEGIN"
    COMMIT_SQL: str = "COMMIT"
    ROLLBACK_SQL: str = "ROLLBACK"
    CREATE_SAVEPOINT_SQL: str = "SAVEPOINT {name}"
    RELEASE_SAVEPOINT_SQL: str = "RELEASE SAVEPOINT {name}"
    ROLLBACK_SAVEPOINT_SQL: str = "ROLLBACK TO SAVEPOINT {name}"

    def __init_subclass__(cls) -> None:
        BaseDriver.registered_drivers.add(cls)

    @abstractmethod
    def _setup_driver(self): ...

    @abstractmethod
    async def _open(self) -> Any: ...

    @abstractmethod
    async def _close(self, session: Any) -> None: ...

    @abstractmethod
    async def _execute(
        self, session: Any, sql: str, params: Params
    ) -> int: ...

    @abstractmethod
    async def _fetch_one(self, session: Any, sql: str, params: Params): ...

    @abstractmethod
    async def _server_version(self, session: Any) -> str: ...

    @abstractmethod
    def _convert_exception(
        self, error: Exception, sql: str
    ) -> DriverException: ...

    def __init__(
        self,
        dsn: Optional[str] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        db: Optional[str] = None,
        query: Optional[str] = None,
        persistent: bool = False,
    ) -> None:
        """Driver initialization.

        A `dsn` fills in every part that was not passed explicitly. Parts
        missing from both are left out of the DSN handed to the database
        library, which then applies its own defaults.

        Args:
            dsn (str, optional): DB data source name
            host (str, optional): DB address URL or IP
            port (int, optional): DB port
            user (str, optional): DB user
            password (str, optional): DB password
            db (str, optional): DB name
            query (str, optional): DB query parameters. Defaults to None
            persistent (bool, optional): Lease the native session from a
                process-wide pool and give it back on disconnect instead of
                closing it. Defaults to False

        Raises:
            NestorError: If the arguments conflict or are malformed
        """
        self._params: Dict[str, Any] = {
            key: value
            for key, value in (
                ("dsn", dsn),
                ("host", host),
                ("port", port),
                ("user", user),
                ("password", password),
                ("db", db),
                ("query", query),
            )
            if value is not None
        }
        self._params["persistent"] = persistent

        self._dsn = dsn
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._db = db
        self._query = query
        self._persistent = persistent
        self._full_dsn: Optional[str] = None
        self._session: Any = None

        self._check_arguments()
        self._populate_connection_args()
        self._populate_dsn()
        self._setup_driver()

    def __str__(self) -> str:
        return f"<{self.__class__.__name__} {self.dsn}>"

    def _check_arguments(self) -> None:
        if self._dsn and self._host:
            raise NestorError("Cannot connect to DB using host and dsn")

        port = self._port
        if port is not None and (
            isinstance(port, bool)
            or not isinstance(port, int)
            or not 0 <= port <= 65535
        ):
            raise NestorError("port: must be an integer between 0 and 65535")

        for name in ("host", "password"):
            value = getattr(self, f"_{name}")
            if value is not None and (not isinstance(value, str) or not value):
                raise NestorError(
                    f"{name}: must be a string at least 1 character long"
                )

    def _populate_connection_args(self):
        if not self._dsn:
            self._port = self._port or DEFAULT_PORTS.get(self.scheme)
            return

        parts = urlparse(self._dsn)
        try:
            dsn_port = parts.port
        except ValueError:
            raise NestorError(
                "port: must be an integer between 0 and 65535"
            ) from None

        self._host = parts.hostname or "localhost"
        self._port = self._port or dsn_port or DEFAULT_PORTS.get(self.scheme)
        if self._user is None and parts.username:
            self._user = unquote(parts.username)
        if self._password is None and parts.password:
            self._password = unquote(parts.password)
        self._db = self._db or parts.path.lstrip("/") or None
        self._query = self._query or parts.query or None

    def _populate_dsn(self):
        overridden = set(self._params) & {
            "port",
            "user",
            "password",
            "db",
            "query",
        }
        dsn = self._params.get("dsn")
        schemes = (self.scheme, *self.aliases)
        if dsn and not overridden and urlparse(dsn).scheme in schemes:
            self._full_dsn = dsn
        else:
            self._full_dsn = self._build_dsn(self._password, self._query)
        self._dsn = self._build_dsn(
            MASKED_PASSWORD if self._password else None
        )

    def _build_dsn(
        self, password: Optional[str], query: Optional[str] = None
    ) -> str:
        credentials = ""
        if self._user:
            credentials = quote(self._user, safe="")
            if password:
                secret = (
                    password
                    if password == MASKED_PASSWORD
                    else quote(password, safe="")
                )
                credentials += f":{secret}"
            credentials += "@"

        location = self._host or ""
        if self._port:
            location += f":{self._port}"

        dsn = f"{self.scheme}://{credentials}{location}"
        if self._db:
            dsn += f"/{self._db}"
        if query:
            dsn += f"?{query}"
        return dsn

    @property
    def params(self) -> Dict[str, Any]:
        """The configuration arguments the driver was constructed with"""
        return dict(self._params)

    @property
    def dsn(self):
        return self._dsn

    @property
    def host(self):
        return self._host

    @property
    def port(self):
        return self._port

    @property
    def user(self):
        return self._user

    @property
    def password(self):
        return self._password

    @property
    def db(self):
        return self._db

    @property
    def full_dsn(self):
        return self._full_dsn

    @property
    def persistent(self) -> bool:
        return self._persistent

    @property
    def session(self) -> Any:
        return self._session

    def supports_savepoints(self) -> bool:
        return self.capabilities.supports_savepoints

    def supports_release_savepoints(self) -> bool:
        return self.capabilities.supports_release_savepoints

    async def connect(self) -> None:
        """Open a native session

        Raises:
            DriverException: If the session could not be established
        """
        if self._session is not None:
            return
        try:
            self._session = await self._open()
        except DriverException:
            raise
        except Exception as e:
            raise self._convert_exception(e, "<connect>") from e
        logger.debug(f"Opened session on {self}")

    async def disconnect(self) -> None:
        """Discard the native session without ending its transaction"""
        session, self._session = self._session, None
        if session is None:
            return
        await self._close(session)
        logger.debug(f"Discarded session on {self}")

    async def execute_statement(self, sql: str, params: Params = None) -> int:
        """Run a statement on the open session

        Args:
            sql (str): The statement to run
            params (Sequence | Dict, optional): Bound parameters

        Raises:
            DriverException: Any failure reported by the driver, converted
                to the closest subclass

        Returns:
            int: Number of affected rows, as reported by the driver
        """
        session = self._require_session(sql)
        logger.debug("Executing %s", sql)
        try:
            return await self._execute(session, sql, params)
        except Exception as e:
            raise self._convert_exception(e, sql) from e

    async def fetch_one(self, sql: str, params: Params = None):
        """Return the first column of the first row, or None"""
        session = self._require_session(sql)
        logger.debug("Fetching %s", sql)
        try:
            return await self._fetch_one(session, sql, params)
        except Exception as e:
            raise self._convert_exception(e, sql) from e

    async def get_server_version(self) -> str:
        """Version string reported by the database server"""
        session = self._require_session(SERVER_VERSION)
        try:
            version = await self._server_version(session)
        except Exception as e:
            raise self._convert_exception(e, SERVER_VERSION) from e
        return str(version)

    def _require_session(self, sql: str) -> Any:
        if self._session is None:
            raise DriverException(
                f"Cannot execute '{sql}' without an open session", sql=sql
            )
        return self._session
