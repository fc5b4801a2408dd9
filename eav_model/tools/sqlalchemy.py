from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .base import ExecutionTool, RowCountUnavailableError, StatementExecutionError


class SQLAlchemyTool(ExecutionTool):
    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine

    def execute_update(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> int:
        # engine.begin() commits on exit, so each statement is its own transaction
        try:
            with self._engine.begin() as conn:
                result = conn.execute(text(sql), dict(params or {}))
                count = result.rowcount
        except SQLAlchemyError as exc:
            raise StatementExecutionError(sql) from exc
        if count is None or count < 0:
            raise RowCountUnavailableError(sql)
        return int(count)

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "SQLAlchemyTool":
        runtime = cfg.get("runtime", {})
        sa_cfg = runtime.get("sqlalchemy") or {}
        url = sa_cfg.get("url")
        if not url:
            raise ValueError("runtime.sqlalchemy.url must be provided for SQLAlchemy tool")
        engine = create_engine(url, **{k: v for k, v in sa_cfg.items() if k != "url"})
        return cls(engine)

    def stop(self) -> None:
        if self._engine:
            self._engine.dispose()


__all__ = ["SQLAlchemyTool"]
