from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from .config import ProbeConfig
from .echo import EchoSession
from .message import Message
from .net import Impairment, TransportError, UdpEndpoint, resolve, serve
from .prober import ProbeSession
from .session import Session

logger = logging.getLogger(__name__)

THREAD_JOIN_TIMEOUT_S = 5.0


@dataclass(frozen=True, slots=True)
class ProbeResult:
    max_safe_size: int | None
    source: str | None
    duration_s: float
    probes_sent: int
    feedback_signals: int
    malformed: int


class Orchestrator:
    """Owns the sessions of one run, their sockets and threads.

    The prober's socket is bound to the feedback port and carries probes out;
    the echo session's socket is bound to the data port and carries feedback
    out. A tick thread drives the prober and one listener thread per socket
    feeds incoming messages to its session.
    """

    def __init__(self, config: ProbeConfig, impairment: Impairment | None = None):
        config.validate()
        self.config = config
        self.impairment = impairment or Impairment()
        self.prober: Optional[ProbeSession] = None
        self.echo: Optional[EchoSession] = None
        self._endpoints: List[Tuple[UdpEndpoint, Session]] = []
        self._threads: List[threading.Thread] = []
        self._stop = threading.Event()
        self._errors: List[BaseException] = []

    def open(self) -> None:
        """Bind the sockets the configured role needs; nothing runs yet."""
        cfg = self.config
        probe_udp: UdpEndpoint | None = None
        echo_udp: UdpEndpoint | None = None
        try:
            peer, _ = resolve(cfg.host, 0)
            if cfg.role.probes:
                probe_udp = UdpEndpoint.listening(
                    cfg.bind_host, cfg.feedback_port, cfg.timeout_ms, self.impairment, name="prober"
                )
            if cfg.role.echoes:
                echo_udp = UdpEndpoint.listening(
                    cfg.bind_host, cfg.data_port, cfg.timeout_ms, self.impairment, name="echo"
                )
        except TransportError:
            for udp in (probe_udp, echo_udp):
                if udp is not None:
                    udp.close()
            raise

        # in both mode the sessions talk to each other's actual ports
        data_dest = (peer, echo_udp.local_address[1] if echo_udp else cfg.data_port)
        feedback_dest = (peer, probe_udp.local_address[1] if probe_udp else cfg.feedback_port)

        if probe_udp is not None:
            self.prober = ProbeSession(send=_sender(probe_udp, data_dest))
            self._endpoints.append((probe_udp, self.prober))
            logger.info("prober bound to %s:%d; probing %s:%d", *probe_udp.local_address, *data_dest)
        if echo_udp is not None:
            self.echo = EchoSession(send=_sender(echo_udp, feedback_dest))
            self._endpoints.append((echo_udp, self.echo))
            logger.info("echo bound to %s:%d; feedback to %s:%d", *echo_udp.local_address, *feedback_dest)

    def run(self, timeout_s: float | None = None) -> ProbeResult:
        """Probe until a session converges, a fatal error occurs or `timeout_s` passes."""
        if not self._endpoints:
            self.open()
        cfg = self.config
        sessions: List[Session] = [s for _, s in self._endpoints]

        if self.echo is not None:
            self.echo.start()
        if self.prober is not None:
            self.prober.start(cfg.initial_size, cfg.initial_step)

        self._stop.clear()
        for udp, session in self._endpoints:
            self._spawn(f"listen-{udp.name}", _listen_loop(udp, session, self._stop))
        if self.prober is not None:
            self._spawn("tick", _tick_loop(self.prober, cfg.tick_hz, self._stop))

        start = time.monotonic()
        deadline = start + timeout_s if timeout_s is not None else None
        try:
            while all(s.running for s in sessions) and not self._errors:
                if deadline is not None and time.monotonic() >= deadline:
                    logger.warning("no result after %.1fs; giving up", timeout_s)
                    break
                self._stop.wait(cfg.poll_interval_s)
        finally:
            self.close()

        if self._errors:
            raise self._errors[0]

        result = self._result(time.monotonic() - start)
        if result.max_safe_size is not None:
            logger.info("max safe payload size: %d bytes (from %s)", result.max_safe_size, result.source)
        return result

    def _result(self, duration_s: float) -> ProbeResult:
        size: int | None = None
        source: str | None = None
        # the receiver saw the sizes that actually arrived; prefer it
        if self.echo is not None and self.echo.result is not None:
            size, source = self.echo.result, "echo"
        elif self.prober is not None and self.prober.result is not None:
            size, source = self.prober.result, "probe"

        if self.prober is not None:
            probes_sent = self.prober.stats.messages_sent // 2
            feedback = self.prober.signals_received
        else:
            probes_sent = 0
            feedback = self.echo.stats.messages_sent if self.echo is not None else 0

        return ProbeResult(
            max_safe_size=size,
            source=source,
            duration_s=duration_s,
            probes_sent=probes_sent,
            feedback_signals=feedback,
            malformed=sum(s.stats.malformed for _, s in self._endpoints),
        )

    def _spawn(self, name: str, target: Callable[[], None]) -> None:
        def runner() -> None:
            try:
                target()
            except Exception as e:
                logger.error("%s failed: %s", name, e)
                self._errors.append(e)
                self._stop.set()

        t = threading.Thread(target=runner, name=name, daemon=True)
        self._threads.append(t)
        t.start()

    def close(self) -> None:
        self._stop.set()
        for t in self._threads:
            t.join(timeout=THREAD_JOIN_TIMEOUT_S)
        self._threads.clear()
        for udp, _ in self._endpoints:
            udp.close()


def _sender(udp: UdpEndpoint, dest: Tuple[str, int]) -> Callable[[Message], None]:
    def send(message: Message) -> None:
        udp.send_message(message, dest)

    return send


def _listen_loop(
    udp: UdpEndpoint, session: Session, stop: threading.Event
) -> Callable[[], None]:
    return lambda: serve(udp, session.on_message, stop, on_malformed=session.note_malformed)


def _tick_loop(prober: ProbeSession, tick_hz: float, stop: threading.Event) -> Callable[[], None]:
    interval = 1.0 / tick_hz

    def loop() -> None:
        while not stop.wait(interval):
            prober.on_tick()

    return loop
