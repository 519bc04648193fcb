"""Per-run log sink.

Components log through an injected :class:`logging.Logger`. A :class:`RunLog`
attaches to that logger for the duration of one pipeline run and keeps every
record as an ordered, structured entry that tests and callers can inspect.
"""
from __future__ import annotations

import json
import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

RUN_LOGGER_PREFIX = "relish.run"


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    level: str
    logger: str
    message: str
    video_id: Optional[str] = None

    def to_dict(self) -> dict[str, str | None]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


class RunLog(logging.Handler):
    def __init__(self, run_id: str | None = None, level: int = logging.INFO) -> None:
        super().__init__(level=level)
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.logger = logging.getLogger(f"{RUN_LOGGER_PREFIX}.{self.run_id}")
        self.logger.setLevel(level)
        self._entries: list[LogEntry] = []
        self._attached = False

    def emit(self, record: logging.LogRecord) -> None:
        self._entries.append(
            LogEntry(
                timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc),
                level=record.levelname,
                logger=record.name,
                message=record.getMessage(),
                video_id=getattr(record, "video_id", None),
            )
        )

    @property
    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def warnings(self) -> list[LogEntry]:
        return [entry for entry in self._entries if entry.level == "WARNING"]

    def errors(self) -> list[LogEntry]:
        return [entry for entry in self._entries if entry.level in ("ERROR", "CRITICAL")]

    def attach(self) -> logging.Logger:
        if not self._attached:
            self.logger.addHandler(self)
            self._attached = True
        return self.logger

    def detach(self) -> None:
        if self._attached:
            self.logger.removeHandler(self)
            self._attached = False

    def flush_to(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = [entry.to_dict() for entry in self._entries]
        path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        return path

    def __enter__(self) -> "RunLog":
        self.attach()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.detach()


def video_extra(video_id: str) -> dict[str, str]:
    return {"video_id": video_id}
