from enum import Enum
from functools import lru_cache

from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.sql.compiler import IdentifierPreparer


class DatabaseBackend(str, Enum):
    POSTGRES = "postgres"
    MYSQL = "mysql"
    SQLITE = "sqlite"

    @classmethod
    def from_dialect(cls, dialect_name: str) -> "DatabaseBackend":
        """Map a SQLAlchemy dialect name (``postgresql``, ``mysql``, ``mariadb``, ``sqlite``)."""
        name = dialect_name.lower()
        if name.startswith("postgres"):
            return cls.POSTGRES
        if name in ("mysql", "mariadb"):
            return cls.MYSQL
        if name == "sqlite":
            return cls.SQLITE
        raise ValueError(f"Unsupported database dialect: {dialect_name}")

    @property
    def text_cast_type(self) -> str:
        """Type name usable in ``CAST(x AS ...)`` to obtain a string."""
        return "CHAR" if self is DatabaseBackend.MYSQL else "TEXT"

    def quote_identifier(self, identifier: str) -> str:
        """Quote an identifier when the backend requires it (reserved words, mixed case)."""
        return _identifier_preparer(self).quote(identifier)


@lru_cache(maxsize=None)
def _identifier_preparer(backend: DatabaseBackend) -> IdentifierPreparer:
    dialects = {
        DatabaseBackend.POSTGRES: postgresql.dialect,
        DatabaseBackend.MYSQL: mysql.dialect,
        DatabaseBackend.SQLITE: sqlite.dialect,
    }
    return dialects[backend]().identifier_preparer
