from __future__ import annotations

import abc
from typing import Any, Mapping, Optional


class StatementExecutionError(RuntimeError):
    """Raised when a statement cannot be executed against the database."""

    def __init__(self, sql: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"Unable to run SQL statement {sql}")
        self.sql = sql


class RowCountUnavailableError(StatementExecutionError):
    """Raised when the driver cannot report how many rows a statement affected."""

    def __init__(self, sql: str) -> None:
        super().__init__(sql, f"Affected row count unavailable for SQL statement {sql}")


class ExecutionTool(abc.ABC):
    """Database access used by maintenance commands."""

    @abc.abstractmethod
    def execute_update(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> int:
        """Run a data-modifying statement and return the number of affected rows."""

    def stop(self) -> None:  # pragma: no cover - default no-op
        return None
