"""Query execution package."""

from wallet.queries.executor import HistoryQueryExecutor, QueryExecutionError

__all__ = ["HistoryQueryExecutor", "QueryExecutionError"]
