from .base import ExecutionTool, RowCountUnavailableError, StatementExecutionError

__all__ = ["ExecutionTool", "RowCountUnavailableError", "StatementExecutionError"]
