"""Database connections for sqlmerge."""

from .sql_server import SqlServerConnection

__all__ = ["SqlServerConnection"]
