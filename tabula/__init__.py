"""tabula - structured SQL building and declarative schema sync for MySQL."""

from tabula.query.provider import Provider
from tabula.schema.types import ColumnSpec, SchemaChange, TableSchema
from tabula.shared.database import ConnectionManager

__version__ = "0.1.0"
__all__ = [
    "ColumnSpec",
    "ConnectionManager",
    "Provider",
    "SchemaChange",
    "TableSchema",
]
