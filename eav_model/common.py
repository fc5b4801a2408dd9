from __future__ import annotations

import json
import sys
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

RUN_ID = uuid.uuid4().hex

_LEVELS = {"DEBUG": 10, "INFO": 20, "WARN": 30, "ERROR": 40}


class PrintLogger:
    """Structured logger emitting one JSON document per event."""

    def __init__(
        self,
        job_name: str,
        file_path: Optional[str] = None,
        level: str = "INFO",
        stream: Optional[TextIO] = None,
    ) -> None:
        self.job_name = job_name
        self.file_path = file_path
        self.level = _LEVELS.get(level.upper(), _LEVELS["INFO"])
        self.stream = stream

    def log(self, level: str, msg: str, **fields: Any) -> None:
        level = level.upper()
        if level == "WARNING":
            level = "WARN"
        if _LEVELS.get(level, _LEVELS["INFO"]) < self.level:
            return
        record = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "job": self.job_name,
            "run_id": RUN_ID,
            "msg": msg,
        }
        record.update(fields)
        line = json.dumps(record, default=str)
        print(line, file=self.stream or sys.stderr, flush=True)
        if self.file_path:
            with open(self.file_path, "a", encoding="utf-8") as handle:
                handle.write(line + "\n")

    def debug(self, msg: str, **fields: Any) -> None:
        self.log("DEBUG", msg, **fields)

    def info(self, msg: str, **fields: Any) -> None:
        self.log("INFO", msg, **fields)

    def warn(self, msg: str, **fields: Any) -> None:
        self.log("WARN", msg, **fields)

    def error(self, msg: str, **fields: Any) -> None:
        self.log("ERROR", msg, **fields)


__all__ = ["PrintLogger", "RUN_ID"]
