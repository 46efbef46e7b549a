from __future__ import annotations

from typing import Callable, List

import pytest

from mtuprobe.echo import EchoSession
from mtuprobe.message import Address, Message
from mtuprobe.prober import ProbeSession


class Link:
    """Prober and echo session wired back to back through the real codec.

    Delivery is synchronous and in order; `drop` decides which messages
    from prober to echo are lost.
    """

    def __init__(self, drop: Callable[[Message], bool] | None = None, initial_size: int = 1, initial_step: int = 10_000):
        self.drop = drop or (lambda m: False)
        self.prober = ProbeSession(send=self._to_echo)
        self.echo = EchoSession(send=self._to_prober)
        self.history: List[tuple[int, int]] = []
        self.echo.start()
        self.prober.start(initial_size, initial_step)

    def _to_echo(self, message: Message) -> None:
        decoded = Message.from_bytes(message.to_bytes())
        if not self.drop(decoded):
            self.echo.on_message(decoded)

    def _to_prober(self, message: Message) -> None:
        self.prober.on_message(Message.from_bytes(message.to_bytes()))

    def tick(self) -> bool:
        sent = self.prober.on_tick()
        self.history.append((self.prober.current_size, self.prober.step))
        return sent

    def run(self, max_ticks: int = 1000) -> int:
        ticks = 0
        while self.prober.running and ticks < max_ticks:
            self.tick()
            ticks += 1
        return ticks


def drop_payloads_from(limit: int) -> Callable[[Message], bool]:
    def drop(message: Message) -> bool:
        return message.address is Address.DATA and len(message.blob_arg()) >= limit

    return drop


@pytest.fixture
def make_link() -> Callable[..., Link]:
    return Link


@pytest.fixture
def drop_from() -> Callable[[int], Callable[[Message], bool]]:
    return drop_payloads_from
