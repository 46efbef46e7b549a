from __future__ import annotations

import pytest

from mtuprobe.config import ProbeConfig, Role


def test_defaults_are_valid():
    ProbeConfig().validate()


@pytest.mark.parametrize(
    "overrides",
    [
        {"host": ""},
        {"data_port": 70_000},
        {"feedback_port": -1},
        {"initial_size": 0},
        {"initial_step": 0},
        {"tick_hz": 0},
        {"poll_interval_s": 0},
        {"timeout_ms": 0},
    ],
)
def test_invalid_values(overrides):
    with pytest.raises(ValueError):
        ProbeConfig(**overrides).validate()


def test_role_capabilities():
    assert Role.SEND.probes and not Role.SEND.echoes
    assert Role.RECV.echoes and not Role.RECV.probes
    assert Role.BOTH.probes and Role.BOTH.echoes
