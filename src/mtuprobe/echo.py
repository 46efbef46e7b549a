from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Optional

from .message import Address, MalformedMessage, Message, Signal
from .session import Send, SessionStats

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EchoSession:
    """Receiver role: compares each announcement with the last payload seen.

    Payloads only record their length. The verdict on a probe is given when
    its announcement arrives, against whatever payload length was recorded
    last; if the announcement overtakes its own payload the stale length is
    used and the probe is judged lost.
    """

    send: Send
    expected_size: int = field(default=0, init=False)
    last_received_size: int = field(default=0, init=False)
    stats: SessionStats = field(default_factory=SessionStats, init=False)
    _running: bool = field(default=False, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def start(self) -> None:
        with self._lock:
            self.expected_size = 0
            self.last_received_size = 0
            self._running = True
            self.stats = SessionStats()
        logger.info("echo session started")

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def result(self) -> Optional[int]:
        """Last payload size received before convergence, else None."""
        with self._lock:
            return None if self._running else self.last_received_size

    def on_announcement(self, size: int) -> Optional[Signal]:
        with self._lock:
            if not self._running:
                return None
            last_increment = size - self.expected_size
            self.expected_size = size

            if self.expected_size == self.last_received_size:
                signal = Signal.SUCCESS
            elif last_increment > 1:
                signal = Signal.FAILED
                logger.info(
                    "probe of %d bytes lost (last received %d); asking for finer step",
                    size,
                    self.last_received_size,
                )
            else:
                signal = Signal.STOP
                self._running = False
                self.stats.end_ts = time.monotonic()
                logger.info("converged; max safe size=%d", self.last_received_size)

        logger.debug("announcement size=%d -> %s", size, signal.name)
        self.send(Message.signal(signal))
        self.stats.messages_sent += 1
        return signal

    def on_payload(self, payload: bytes) -> None:
        with self._lock:
            if not self._running:
                return
            self.last_received_size = len(payload)
            self.stats.bytes_received += len(payload)
        logger.debug("payload size=%d", len(payload))

    def on_message(self, message: Message) -> None:
        self.stats.messages_received += 1
        try:
            if message.address is Address.SIZE:
                size = message.int_arg()
                if size < 0:
                    raise MalformedMessage(f"negative size announcement: {size}")
                self.on_announcement(size)
            elif message.address is Address.DATA:
                self.on_payload(message.blob_arg())
            else:
                raise MalformedMessage(f"{message.address.value} is not sent to a receiver")
        except MalformedMessage as e:
            logger.warning("echo session discarding message: %s", e)
            self.note_malformed()

    def note_malformed(self) -> None:
        self.stats.malformed += 1
