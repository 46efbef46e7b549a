from __future__ import annotations

import argparse
import dataclasses
import json
import logging

from .config import ProbeConfig, Role
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
from .net import Impairment, TransportError
from .orchestrator import Orchestrator

EXIT_OK = 0
EXIT_TRANSPORT_ERROR = 1
EXIT_NO_RESULT = 3


def cmd_probe(args: argparse.Namespace) -> int:
    config = ProbeConfig.from_args(args)
    impair = Impairment(args.loss_rate, args.delay_ms, args.max_datagram)
    orchestrator = Orchestrator(config, impair)
    try:
        result = orchestrator.run(timeout_s=args.deadline_s)
    except TransportError as e:
        logging.error("%s", e)
        return EXIT_TRANSPORT_ERROR

    payload = {"role": config.role.value, **dataclasses.asdict(result)}
    print(json.dumps(payload, indent=2) if args.json else payload)
    return EXIT_OK if result.max_safe_size is not None else EXIT_NO_RESULT


def _check_config(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    try:
        ProbeConfig.from_args(args)
    except ValueError as e:
        parser.error(str(e))


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="mtuprobe",
        description="Find the largest UDP payload a path delivers reliably.",
    )
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    sub = p.add_subparsers(dest="role", required=True)

    def add_common(x: argparse.ArgumentParser) -> None:
        x.add_argument("--host", default=DEFAULT_HOST, help="peer address (bind address in 'both' mode)")
        x.add_argument("--bind-host", default="0.0.0.0")
        x.add_argument("--data-port", type=int, default=DEFAULT_DATA_PORT)
        x.add_argument("--feedback-port", type=int, default=DEFAULT_FEEDBACK_PORT)
        x.add_argument("--tick-hz", type=float, default=DEFAULT_TICK_HZ)
        x.add_argument("--poll-ms", type=int, default=int(DEFAULT_POLL_INTERVAL_S * 1000))
        x.add_argument("--timeout-ms", type=int, default=DEFAULT_TIMEOUT_MS, help="socket read timeout")
        x.add_argument("--deadline-s", type=float, default=None, help="give up without a result after this long")
        x.add_argument("--loss-rate", type=float, default=0.0, help="simulate packet loss")
        x.add_argument("--delay-ms", type=int, default=0, help="simulate per-datagram delay")
        x.add_argument(
            "--max-datagram",
            type=int,
            default=0,
            help="simulate a path that drops datagrams longer than this",
        )
        x.add_argument("--json", action="store_true")
        x.set_defaults(func=cmd_probe)

    def add_probe_args(x: argparse.ArgumentParser) -> None:
        x.add_argument("--initial-size", type=int, default=DEFAULT_INITIAL_SIZE)
        x.add_argument("--initial-step", type=int, default=DEFAULT_INITIAL_STEP)

    send = sub.add_parser(Role.SEND.value, help="probe a remote echo receiver")
    add_common(send)
    add_probe_args(send)

    recv = sub.add_parser(Role.RECV.value, help="echo feedback for a remote prober")
    add_common(recv)
    recv.set_defaults(initial_size=DEFAULT_INITIAL_SIZE, initial_step=DEFAULT_INITIAL_STEP)

    both = sub.add_parser(Role.BOTH.value, help="run prober and receiver in this process")
    add_common(both)
    add_probe_args(both)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _check_config(parser, args)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
