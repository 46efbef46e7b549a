from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

from .message import Message

Send = Callable[[Message], None]


@dataclass(slots=True)
class SessionStats:
    messages_sent: int = 0
    bytes_sent: int = 0
    messages_received: int = 0
    bytes_received: int = 0
    malformed: int = 0
    start_ts: float = field(default_factory=time.monotonic)
    end_ts: float | None = None

    @property
    def duration_s(self) -> float:
        end = self.end_ts if self.end_ts is not None else time.monotonic()
        return max(0.0, end - self.start_ts)


class Session(Protocol):
    """What the orchestrator needs from either role."""

    stats: SessionStats

    @property
    def running(self) -> bool: ...

    @property
    def result(self) -> Optional[int]: ...

    def on_message(self, message: Message) -> None: ...

    def note_malformed(self) -> None: ...
