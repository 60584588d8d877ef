"""Database bootstrap utilities.

Exposes engine construction, the transaction boundary used by every
mutating operation, and schema creation. No ORM models leak into route
handlers; repositories speak textual SQL.
"""

from curlew.db.base import dispose_engine, get_engine, transaction
from curlew.db.schema import create_schema

__all__ = [
    "get_engine",
    "dispose_engine",
    "transaction",
    "create_schema",
]
