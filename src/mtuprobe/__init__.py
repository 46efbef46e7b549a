"""mtuprobe: find the largest datagram payload a path carries reliably.

A prober grows a probe payload step by step, a receiver echoes back whether
each probe arrived, and the step shrinks by 10x on every loss until the
boundary is pinned to a single byte.
"""

from .echo import EchoSession
from .message import Address, Message, Signal
from .orchestrator import Orchestrator, ProbeResult
from .prober import ProbeSession

__all__ = [
    "Address",
    "EchoSession",
    "Message",
    "Orchestrator",
    "ProbeResult",
    "ProbeSession",
    "Signal",
]
