# ==============================================================================
# DATABASE HELPERS - Connection Strings, Identifiers and Capabilities
# ==============================================================================
# Relational URLs go through SQLAlchemy's URL object; MongoDB URIs through
# pymongo's uri_parser
# ==============================================================================

from __future__ import annotations

import logging
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field
from pymongo import uri_parser
from pymongo.errors import ConfigurationError
from sqlalchemy.dialects.mysql.base import MySQLDialect
from sqlalchemy.dialects.postgresql.base import PGDialect
from sqlalchemy.dialects.sqlite.base import SQLiteDialect
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from saas_data.core.exceptions import UnsupportedDatabaseError, ValidationError

logger = logging.getLogger(__name__)

# Backend names
POSTGRESQL = "postgresql"
MONGODB = "mongodb"
MYSQL = "mysql"
MARIADB = "mariadb"
SQLITE = "sqlite"

MONGODB_SCHEMES = ("mongodb", "mongodb+srv")
RELATIONAL_BACKENDS = frozenset({POSTGRESQL, MYSQL, MARIADB, SQLITE})

DEFAULT_PORTS: Dict[str, int] = {
    POSTGRESQL: 5432,
    MONGODB: 27017,
    MYSQL: 3306,
    MARIADB: 3306,
}

ASYNC_DRIVERS: Dict[str, str] = {
    POSTGRESQL: "asyncpg",
    SQLITE: "aiosqlite",
    MYSQL: "aiomysql",
    MARIADB: "aiomysql",
}

FEATURES: Dict[str, FrozenSet[str]] = {
    POSTGRESQL: frozenset(
        {"json", "jsonb", "arrays", "transactions", "foreign_keys", "indexes", "views", "functions"}
    ),
    MONGODB: frozenset(
        {"json", "transactions", "indexes", "aggregation", "replication", "sharding"}
    ),
    MYSQL: frozenset({"json", "transactions", "foreign_keys", "indexes", "views", "functions"}),
    MARIADB: frozenset({"json", "transactions", "foreign_keys", "indexes", "views", "functions"}),
    SQLITE: frozenset({"json", "transactions", "foreign_keys", "indexes", "views"}),
}

_DIALECTS = {
    POSTGRESQL: PGDialect(),
    MYSQL: MySQLDialect(),
    MARIADB: MySQLDialect(),
    SQLITE: SQLiteDialect(),
}


class ConnectionParams(BaseModel):
    """
    Parts of a parsed connection string.

    Attributes:
        backend: Backend name (postgresql, mongodb, mysql, mariadb, sqlite)
        host: First host of the URL (None for file databases)
        port: Explicit port, or the backend's default
        database: Database name or file path
        username: User name, if any
        password: Password, if any
        options: Query-string / URI options
    """

    backend: str
    host: Optional[str] = None
    port: Optional[int] = None
    database: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    options: Dict[str, Any] = Field(default_factory=dict)


def _normalize_backend(name: str) -> str:
    name = name.lower()
    if name == "postgres":
        return POSTGRESQL
    if name in MONGODB_SCHEMES:
        return MONGODB
    return name


def detect_database_type(url: str) -> str:
    """
    Backend name of a connection string.

    ``postgres`` / ``postgresql`` (any driver), ``mysql``, ``mariadb``,
    ``sqlite`` and ``mongodb`` / ``mongodb+srv`` are recognised. A bare
    path ending in ``.db`` or ``.sqlite`` counts as SQLite.

    Raises:
        UnsupportedDatabaseError: If the backend is not recognised
    """
    scheme = url.split("://", 1)[0].lower() if "://" in url else ""
    if scheme in MONGODB_SCHEMES:
        return MONGODB
    if not scheme and url.endswith((".db", ".sqlite")):
        return SQLITE

    # "postgresql+asyncpg" -> "postgresql"
    backend = _normalize_backend(scheme.split("+", 1)[0])
    if backend not in RELATIONAL_BACKENDS:
        logger.warning(f"Unrecognised database type for connection string scheme {scheme!r}")
        raise UnsupportedDatabaseError(
            f"Unsupported database type in connection string (scheme {scheme!r})",
            database=scheme or None,
        )
    return backend


def parse_connection_string(url: str) -> ConnectionParams:
    """
    Split a connection string into its parts.

    Example:
        >>> parse_connection_string("postgresql://app:s3cret@db:6432/saas").port
        6432

    Raises:
        UnsupportedDatabaseError: If the backend is not recognised
        ValidationError: If the string is malformed
    """
    backend = detect_database_type(url)

    if backend == SQLITE and "://" not in url:
        return ConnectionParams(backend=backend, database=url)

    if backend == MONGODB:
        try:
            parsed = uri_parser.parse_uri(url, default_port=DEFAULT_PORTS[MONGODB])
        except (ConfigurationError, ValueError) as e:
            raise ValidationError(
                f"Invalid MongoDB connection string: {e}",
                errors={"url": str(e)},
            ) from e
        host, port = parsed["nodelist"][0] if parsed["nodelist"] else (None, None)
        return ConnectionParams(
            backend=backend,
            host=host,
            port=port,
            database=parsed["database"],
            username=parsed["username"],
            password=parsed["password"],
            options=dict(parsed["options"]),
        )

    try:
        sql_url = make_url(url)
        port = sql_url.port
    except (ArgumentError, ValueError) as e:
        raise ValidationError(
            f"Invalid connection string: {e}",
            errors={"url": str(e)},
        ) from e

    return ConnectionParams(
        backend=backend,
        host=sql_url.host,
        port=port or DEFAULT_PORTS.get(backend),
        database=sql_url.database,
        username=sql_url.username,
        password=sql_url.password,
        options=dict(sql_url.query),
    )


def validate_connection_params(
    host: Optional[str] = None,
    port: Optional[int] = None,
    database: Optional[str] = None,
    url: Optional[str] = None,
) -> List[str]:
    """
    Problems with a set of connection parameters.

    A URL, when given, replaces the discrete parts and only has to parse.

    Returns:
        Error messages; empty when the parameters are usable
    """
    if url:
        try:
            parse_connection_string(url)
        except (UnsupportedDatabaseError, ValidationError) as e:
            return [f"Invalid connection URL: {e.message}"]
        return []

    errors: List[str] = []
    if not host:
        errors.append("Host is required")
    if port is None or not 1 <= port <= 65535:
        errors.append("Port must be between 1 and 65535")
    if not database:
        errors.append("Database name is required")
    return errors


def generate_connection_string(
    backend: str,
    host: Optional[str] = None,
    port: Optional[int] = None,
    database: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
    options: Optional[Dict[str, str]] = None,
) -> str:
    """
    Build a connection string; credentials are percent-escaped.

    Raises:
        UnsupportedDatabaseError: If the backend is not recognised
    """
    backend = _normalize_backend(backend)

    if backend == MONGODB:
        # MongoDB needs the "/" between hosts and options even without a database
        return URL.create(
            MONGODB,
            username=username,
            password=password,
            host=host,
            port=port,
            database=database or "",
            query=options or {},
        ).render_as_string(hide_password=False)

    if backend not in RELATIONAL_BACKENDS:
        raise UnsupportedDatabaseError(
            f"Unsupported database type: {backend!r}",
            database=backend,
        )

    if backend == SQLITE:
        return URL.create(SQLITE, database=database).render_as_string(hide_password=False)

    return URL.create(
        backend,
        username=username,
        password=password,
        host=host,
        port=port,
        database=database,
        query=options or {},
    ).render_as_string(hide_password=False)


def to_async_url(url: str) -> str:
    """
    Put a relational URL on its async driver.

    URLs that already name a driver are returned unchanged.

    Example:
        >>> to_async_url("postgres://app@db/saas")
        'postgresql+asyncpg://app@db/saas'
    """
    sql_url = make_url(url)
    if "+" in sql_url.drivername:
        return url
    backend = _normalize_backend(sql_url.get_backend_name())
    driver = ASYNC_DRIVERS.get(backend)
    if driver is None:
        return url
    return sql_url.set(drivername=f"{backend}+{driver}").render_as_string(hide_password=False)


def escape_identifier(identifier: str, backend: str = POSTGRESQL) -> str:
    """
    Quote a table or column name for a backend.

    MongoDB field paths are returned unchanged.

    Raises:
        UnsupportedDatabaseError: If the backend is not recognised
    """
    backend = _normalize_backend(backend)
    if backend == MONGODB:
        return identifier
    dialect = _DIALECTS.get(backend)
    if dialect is None:
        raise UnsupportedDatabaseError(
            f"Unsupported database type: {backend!r}",
            database=backend,
        )
    return dialect.identifier_preparer.quote_identifier(identifier)


def supports_feature(backend: str, feature: str) -> bool:
    """True if ``backend`` supports ``feature``; unknown backends support nothing."""
    return feature in FEATURES.get(_normalize_backend(backend), frozenset())
