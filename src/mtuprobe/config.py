from __future__ import annotations

import argparse
import enum
from dataclasses import dataclass

from .constants import (
    DEFAULT_DATA_PORT,
    DEFAULT_FEEDBACK_PORT,
    DEFAULT_HOST,
    DEFAULT_INITIAL_SIZE,
    DEFAULT_INITIAL_STEP,
    DEFAULT_POLL_INTERVAL_S,
    DEFAULT_TICK_HZ,
    DEFAULT_TIMEOUT_MS,
)


class Role(str, enum.Enum):
    SEND = "send"
    RECV = "recv"
    BOTH = "both"

    @property
    def probes(self) -> bool:
        return self in (Role.SEND, Role.BOTH)

    @property
    def echoes(self) -> bool:
        return self in (Role.RECV, Role.BOTH)


@dataclass(frozen=True, slots=True)
class ProbeConfig:
    """Parameters of one probing run.

    ``host`` is the peer: the prober sends probes to ``host:data_port`` and
    the receiver sends feedback to ``host:feedback_port``. In ``both`` mode the
    two sessions talk to each other on this machine and ``host`` is only used
    as the bind address.
    """

    host: str = DEFAULT_HOST
    data_port: int = DEFAULT_DATA_PORT
    feedback_port: int = DEFAULT_FEEDBACK_PORT
    role: Role = Role.BOTH
    initial_size: int = DEFAULT_INITIAL_SIZE
    initial_step: int = DEFAULT_INITIAL_STEP
    tick_hz: float = DEFAULT_TICK_HZ
    poll_interval_s: float = DEFAULT_POLL_INTERVAL_S
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    bind_host: str = "0.0.0.0"

    def validate(self) -> None:
        if not self.host:
            raise ValueError("host is required")
        for name in ("data_port", "feedback_port"):
            port = getattr(self, name)
            if not isinstance(port, int) or not 0 <= port <= 65535:
                raise ValueError(f"{name} must be between 0 and 65535, got {port!r}")
        if self.initial_size < 1:
            raise ValueError(f"initial size must be >= 1, got {self.initial_size}")
        if self.initial_step < 1:
            raise ValueError(f"initial step must be >= 1, got {self.initial_step}")
        if self.tick_hz <= 0:
            raise ValueError(f"tick rate must be positive, got {self.tick_hz}")
        if self.poll_interval_s <= 0:
            raise ValueError(f"poll interval must be positive, got {self.poll_interval_s}")
        if self.timeout_ms <= 0:
            raise ValueError(f"socket timeout must be positive, got {self.timeout_ms}")

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "ProbeConfig":
        config = cls(
            host=args.host,
            data_port=args.data_port,
            feedback_port=args.feedback_port,
            role=Role(args.role),
            initial_size=args.initial_size,
            initial_step=args.initial_step,
            tick_hz=args.tick_hz,
            poll_interval_s=args.poll_ms / 1000.0,
            timeout_ms=args.timeout_ms,
            bind_host=args.bind_host,
        )
        config.validate()
        return config
