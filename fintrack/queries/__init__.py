"""Query execution package."""

from fintrack.queries.executor import QueryExecutor

__all__ = ["QueryExecutor"]
