from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Optional

from .constants import STEP_DIVISOR
from .message import MalformedMessage, Message, Signal
from .session import Send, SessionStats

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProbeSession:
    """Prober role: grows the payload every tick, reacts to feedback signals.

    A probe is one payload datagram followed by its size announcement. After
    a probe goes out no further probe is sent until a feedback signal for it
    has been processed, so exactly one probe is in flight and the ``2 * step``
    rollback always undoes exactly one advance.
    """

    send: Send
    current_size: int = 0
    step: int = 1
    stats: SessionStats = field(default_factory=SessionStats, init=False)
    signals_received: int = field(default=0, init=False)
    _running: bool = field(default=False, init=False)
    _awaiting_feedback: bool = field(default=False, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def start(self, initial_size: int, initial_step: int) -> None:
        if initial_size < 1:
            raise ValueError(f"initial size must be >= 1, got {initial_size}")
        if initial_step < 1:
            raise ValueError(f"initial step must be >= 1, got {initial_step}")
        with self._lock:
            self.current_size = initial_size
            self.step = initial_step
            self._running = True
            self._awaiting_feedback = False
            self.stats = SessionStats()
        logger.info("prober started; size=%d step=%d", initial_size, initial_step)

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def result(self) -> Optional[int]:
        """Final known-good size once stopped, else None."""
        with self._lock:
            return None if self._running else self.current_size

    def on_tick(self) -> bool:
        """Send the next probe if the previous one has been answered."""
        with self._lock:
            if not self._running or self._awaiting_feedback:
                return False
            size, step = self.current_size, self.step
            self.current_size += step
            self._awaiting_feedback = True

        logger.debug("probe size=%d step=%d", size, step)
        self.send(Message.data(bytes(size)))
        self.send(Message.size(size))
        self.stats.messages_sent += 2
        self.stats.bytes_sent += size
        return True

    def on_signal(self, signal: Signal) -> None:
        with self._lock:
            self.signals_received += 1
            if not self._running:
                logger.debug("ignoring %s after stop", signal.name)
                return
            if not self._awaiting_feedback:
                logger.debug("ignoring stale %s; no probe outstanding", signal.name)
                return

            if signal is Signal.SUCCESS:
                self._awaiting_feedback = False
            elif signal is Signal.FAILED:
                self._roll_back()
                if self.step > 1:
                    old_step = self.step
                    self.step = max(1, self.step // STEP_DIVISOR)
                    self.current_size += 1
                    logger.info(
                        "loss detected; step %d -> %d, resuming at size=%d",
                        old_step,
                        self.step,
                        self.current_size,
                    )
                else:
                    logger.info("loss detected at step 1; retrying from size=%d", self.current_size)
                self._awaiting_feedback = False
            else:
                self._roll_back()
                self._running = False
                self._awaiting_feedback = False
                self.stats.end_ts = time.monotonic()
                logger.info("prober stopped; max safe size=%d", self.current_size)

    def _roll_back(self) -> None:
        # undo the last advance and step back over the probe that was lost
        self.current_size = max(0, self.current_size - 2 * self.step)

    def on_message(self, message: Message) -> None:
        self.stats.messages_received += 1
        try:
            signal = message.as_signal()
        except MalformedMessage as e:
            logger.warning("prober discarding message: %s", e)
            self.note_malformed()
            return
        self.on_signal(signal)

    def note_malformed(self) -> None:
        self.stats.malformed += 1
