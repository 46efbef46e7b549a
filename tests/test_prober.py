from __future__ import annotations

import pytest

from mtuprobe.message import Address, Message, Signal
from mtuprobe.net import TransportError
from mtuprobe.prober import ProbeSession


def make_prober(size: int = 1, step: int = 10_000):
    sent: list[Message] = []
    p = ProbeSession(send=sent.append)
    p.start(size, step)
    return p, sent


def test_start_rejects_bad_parameters():
    p = ProbeSession(send=lambda m: None)
    with pytest.raises(ValueError):
        p.start(0, 10)
    with pytest.raises(ValueError):
        p.start(1, 0)
    assert p.running is False


def test_tick_sends_payload_then_announcement_and_advances():
    p, sent = make_prober(5, 100)
    assert p.on_tick() is True
    assert [m.address for m in sent] == [Address.DATA, Address.SIZE]
    assert len(sent[0].blob_arg()) == 5
    assert sent[1].int_arg() == 5
    assert p.current_size == 105


def test_tick_waits_for_feedback():
    p, sent = make_prober(1, 10)
    assert p.on_tick() is True
    for _ in range(5):
        assert p.on_tick() is False
    assert len(sent) == 2
    assert p.current_size == 11

    p.on_signal(Signal.SUCCESS)
    assert p.on_tick() is True
    assert sent[-1].int_arg() == 11
    assert p.current_size == 21


def test_failed_rolls_back_and_shrinks_step():
    p, sent = make_prober(1, 10_000)
    p.on_tick()
    p.on_signal(Signal.SUCCESS)
    p.on_tick()  # 10001 goes out, size now 20001
    p.on_signal(Signal.FAILED)
    assert p.step == 1000
    assert p.current_size == 2
    assert p.running is True
    assert p.on_tick() is True
    assert sent[-1].int_arg() == 2


def test_failed_at_step_one_does_not_shrink():
    p, _ = make_prober(10, 1)
    p.on_tick()
    p.on_signal(Signal.SUCCESS)
    p.on_tick()  # 11 goes out, size now 12
    p.on_signal(Signal.FAILED)
    assert p.step == 1
    assert p.current_size == 10


def test_step_never_drops_below_one():
    p, _ = make_prober(1, 5)
    p.on_tick()
    p.on_signal(Signal.FAILED)
    assert p.step == 1


def test_stop_is_terminal_and_result_is_stable():
    p, sent = make_prober(1460, 1)
    for _ in range(7):
        p.on_tick()
        p.on_signal(Signal.SUCCESS)
    p.on_tick()  # 1467 goes out, size now 1468
    assert p.result is None
    p.on_signal(Signal.STOP)
    assert p.running is False
    assert p.result == 1466

    n_sent = len(sent)
    assert p.on_tick() is False
    p.on_signal(Signal.FAILED)
    p.on_signal(Signal.STOP)
    assert len(sent) == n_sent
    assert p.result == 1466


def test_stop_never_reports_negative_size():
    p, _ = make_prober(1, 10_000)
    p.on_tick()
    p.on_signal(Signal.STOP)
    assert p.result == 0


def test_stale_signal_ignored():
    p, _ = make_prober(1, 10)
    p.on_signal(Signal.FAILED)
    assert (p.current_size, p.step) == (1, 10)
    p.on_tick()
    p.on_signal(Signal.SUCCESS)
    p.on_signal(Signal.FAILED)  # duplicate feedback, no probe outstanding
    assert (p.current_size, p.step) == (11, 10)
    assert p.signals_received == 3


def test_malformed_feedback_leaves_state_untouched():
    p, _ = make_prober(1, 10)
    p.on_tick()
    before = (p.current_size, p.step, p.running)
    p.on_message(Message(Address.FAILED, (1,)))
    p.on_message(Message.size(4))
    p.on_message(Message.data(b"xx"))
    assert (p.current_size, p.step, p.running) == before
    assert p.stats.malformed == 3
    # still waiting for real feedback
    assert p.on_tick() is False


def test_feedback_through_on_message():
    p, _ = make_prober(1, 10)
    p.on_tick()
    p.on_message(Message.signal(Signal.SUCCESS))
    assert p.on_tick() is True


def test_send_failure_propagates():
    def broken(message: Message) -> None:
        raise TransportError("message too long")

    p = ProbeSession(send=broken)
    p.start(1, 10)
    with pytest.raises(TransportError):
        p.on_tick()
