"""Append-only run event log.

Each stage returns a new log rather than mutating a shared list; the pipeline
threads the value through the run and renders it once in the final comment.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

_LEVEL_ICONS = {"info": "•", "warning": "⚠", "error": "✖"}


@dataclass(frozen=True)
class RunEvent:
    stage: str
    message: str
    level: str = "info"
    at: str = field(default_factory=lambda: datetime.now(timezone.utc).strftime("%H:%M:%S"))


@dataclass(frozen=True)
class EventLog:
    events: tuple[RunEvent, ...] = ()

    def append(self, stage: str, message: str, level: str = "info") -> EventLog:
        return EventLog(self.events + (RunEvent(stage, message, level),))

    def extend(self, stage: str, messages, level: str = "info") -> EventLog:
        log = self
        for message in messages:
            log = log.append(stage, message, level)
        return log

    def has_errors(self) -> bool:
        return any(e.level == "error" for e in self.events)

    def render(self) -> str:
        """Markdown list, one line per event."""
        return "\n".join(
            f"- `{e.at}` {_LEVEL_ICONS.get(e.level, '•')} **{e.stage}**: {e.message}" for e in self.events
        )

    def __len__(self) -> int:
        return len(self.events)
