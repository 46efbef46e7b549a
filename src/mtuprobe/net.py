from __future__ import annotations

import logging
import random
import socket
import threading
import time
from dataclasses import dataclass
from typing import Callable, Tuple

from .constants import MAX_DATAGRAM
from .message import MalformedMessage, Message

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """A socket could not be set up or a datagram could not be sent."""


@dataclass(frozen=True, slots=True)
class Impairment:
    loss_rate: float = 0.0
    delay_ms: int = 0
    max_datagram: int = 0  # 0 = no ceiling

    def should_drop(self, data: bytes) -> bool:
        if self.max_datagram > 0 and len(data) > self.max_datagram:
            return True
        return random.random() < self.loss_rate

    def sleep_if_needed(self) -> None:
        if self.delay_ms > 0:
            time.sleep(self.delay_ms / 1000.0)


class UdpEndpoint:
    def __init__(self, sock: socket.socket, impairment: Impairment | None = None, name: str = ""):
        self.sock = sock
        self.impairment = impairment or Impairment()
        self.name = name

    @classmethod
    def listening(
        cls,
        host: str,
        port: int,
        timeout_ms: int = 0,
        impairment: Impairment | None = None,
        name: str = "",
    ) -> "UdpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.bind((host, port))
        except OSError as e:
            sock.close()
            raise TransportError(f"[{name}] cannot bind {host}:{port}: {e}") from e
        if timeout_ms > 0:
            sock.settimeout(timeout_ms / 1000.0)
        return cls(sock, impairment, name)

    @property
    def local_address(self) -> Tuple[str, int]:
        return self.sock.getsockname()

    def sendto(self, data: bytes, addr: Tuple[str, int]) -> None:
        if self.impairment.should_drop(data):
            logger.debug("[%s] DROPPED outbound %d bytes", self.name, len(data))
            return
        self.impairment.sleep_if_needed()
        try:
            self.sock.sendto(data, addr)
        except OSError as e:
            raise TransportError(f"[{self.name}] send of {len(data)} bytes to {addr} failed: {e}") from e

    def send_message(self, message: Message, addr: Tuple[str, int]) -> None:
        self.sendto(message.to_bytes(), addr)

    def recvfrom(self, bufsize: int = MAX_DATAGRAM) -> Tuple[bytes, Tuple[str, int]]:
        while True:
            data, addr = self.sock.recvfrom(bufsize)
            if self.impairment.should_drop(data):
                logger.debug("[%s] DROPPED inbound %d bytes", self.name, len(data))
                continue
            self.impairment.sleep_if_needed()
            return data, addr

    def close(self) -> None:
        self.sock.close()


def resolve(host: str, port: int) -> Tuple[str, int]:
    try:
        return socket.gethostbyname(host), port
    except OSError as e:
        raise TransportError(f"cannot resolve {host}: {e}") from e


def serve(
    udp: UdpEndpoint,
    handler: Callable[[Message], None],
    stop: threading.Event,
    on_malformed: Callable[[], None] | None = None,
) -> None:
    """Decode datagrams from `udp` and hand them to `handler` until `stop` is set.

    The socket must have a read timeout so `stop` is noticed. Undecodable
    datagrams are logged and discarded.
    """
    while not stop.is_set():
        try:
            raw, addr = udp.recvfrom()
        except TimeoutError:
            continue
        except (ConnectionRefusedError, ConnectionResetError) as e:
            # ICMP port unreachable for an earlier send, reported on some platforms
            logger.debug("[%s] ignoring %s", udp.name, e)
            continue
        except OSError as e:
            if stop.is_set():
                break  # socket closed during shutdown
            raise TransportError(f"[{udp.name}] receive failed: {e}") from e
        try:
            message = Message.from_bytes(raw)
        except MalformedMessage as e:
            logger.warning("[%s] discarding %d-byte datagram from %s: %s", udp.name, len(raw), addr, e)
            if on_malformed is not None:
                on_malformed()
            continue
        handler(message)
