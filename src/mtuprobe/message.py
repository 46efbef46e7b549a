from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from typing import Tuple, Union

from .constants import ADDR_DATA, ADDR_FAILED, ADDR_SIZE, ADDR_STOP, ADDR_SUCCESS

Arg = Union[int, float, str, bytes]

INT32 = struct.Struct(">i")
FLOAT32 = struct.Struct(">f")


class MalformedMessage(ValueError):
    pass


class Address(str, enum.Enum):
    DATA = ADDR_DATA
    SIZE = ADDR_SIZE
    SUCCESS = ADDR_SUCCESS
    FAILED = ADDR_FAILED
    STOP = ADDR_STOP


class Signal(enum.Enum):
    SUCCESS = Address.SUCCESS
    FAILED = Address.FAILED
    STOP = Address.STOP


def _pad(n: int) -> int:
    return (n + 3) & ~3


def _pack_string(s: str) -> bytes:
    raw = s.encode("ascii") + b"\x00"
    return raw.ljust(_pad(len(raw)), b"\x00")


def _unpack_string(raw: bytes, offset: int) -> Tuple[str, int]:
    end = raw.find(b"\x00", offset)
    if end < 0:
        raise MalformedMessage("unterminated string")
    try:
        s = raw[offset:end].decode("ascii")
    except UnicodeDecodeError as e:
        raise MalformedMessage(f"non-ascii string at offset {offset}") from e
    return s, offset + _pad(end - offset + 1)


def _pack_arg(arg: Arg) -> Tuple[str, bytes]:
    # bool is an int subclass but has no OSC tag here
    if isinstance(arg, bool):
        raise ValueError("bool arguments are not supported")
    if isinstance(arg, int):
        try:
            return "i", INT32.pack(arg)
        except struct.error as e:
            raise ValueError(f"int out of int32 range: {arg}") from e
    if isinstance(arg, float):
        return "f", FLOAT32.pack(arg)
    if isinstance(arg, str):
        return "s", _pack_string(arg)
    if isinstance(arg, (bytes, bytearray, memoryview)):
        blob = bytes(arg)
        return "b", INT32.pack(len(blob)) + blob.ljust(_pad(len(blob)), b"\x00")
    raise ValueError(f"unsupported argument type: {type(arg).__name__}")


@dataclass(frozen=True, slots=True)
class Message:
    """One addressed message; encodes to a single datagram (OSC 1.0 framing)."""

    address: Address
    args: Tuple[Arg, ...] = ()

    def to_bytes(self) -> bytes:
        tags = ","
        body = b""
        for arg in self.args:
            tag, packed = _pack_arg(arg)
            tags += tag
            body += packed
        return _pack_string(self.address.value) + _pack_string(tags) + body

    @staticmethod
    def from_bytes(raw: bytes) -> "Message":
        if len(raw) % 4:
            raise MalformedMessage(f"datagram length {len(raw)} is not 4-byte aligned")
        address, offset = _unpack_string(raw, 0)
        try:
            addr = Address(address)
        except ValueError:
            raise MalformedMessage(f"unknown address: {address!r}") from None

        if offset >= len(raw):
            raise MalformedMessage("missing type tag string")
        tags, offset = _unpack_string(raw, offset)
        if not tags.startswith(","):
            raise MalformedMessage(f"bad type tag string: {tags!r}")

        args: list[Arg] = []
        for tag in tags[1:]:
            if tag in "ibf" and offset + 4 > len(raw):
                raise MalformedMessage(f"truncated argument {tag!r}")
            if tag == "i":
                (value,) = INT32.unpack_from(raw, offset)
                args.append(value)
                offset += 4
            elif tag == "f":
                (fvalue,) = FLOAT32.unpack_from(raw, offset)
                args.append(fvalue)
                offset += 4
            elif tag == "s":
                s, offset = _unpack_string(raw, offset)
                args.append(s)
            elif tag == "b":
                (length,) = INT32.unpack_from(raw, offset)
                offset += 4
                if length < 0 or offset + length > len(raw):
                    raise MalformedMessage(f"blob length {length} exceeds datagram")
                args.append(raw[offset : offset + length])
                offset += _pad(length)
            else:
                raise MalformedMessage(f"unsupported type tag {tag!r}")

        if offset != len(raw):
            raise MalformedMessage(f"{len(raw) - offset} trailing bytes")
        return Message(address=addr, args=tuple(args))

    def int_arg(self) -> int:
        if len(self.args) != 1 or isinstance(self.args[0], bool) or not isinstance(self.args[0], int):
            raise MalformedMessage(f"{self.address.value} expects one int32, got {self.describe_args()}")
        return self.args[0]

    def blob_arg(self) -> bytes:
        if len(self.args) != 1 or not isinstance(self.args[0], bytes):
            raise MalformedMessage(f"{self.address.value} expects one blob, got {self.describe_args()}")
        return self.args[0]

    def as_signal(self) -> Signal:
        try:
            signal = Signal(self.address)
        except ValueError:
            raise MalformedMessage(f"{self.address.value} is not a feedback signal") from None
        if self.args:
            raise MalformedMessage(f"{self.address.value} expects no arguments, got {self.describe_args()}")
        return signal

    def describe_args(self) -> str:
        return "(" + ", ".join(type(a).__name__ for a in self.args) + ")"

    @staticmethod
    def size(n: int) -> "Message":
        return Message(address=Address.SIZE, args=(n,))

    @staticmethod
    def data(payload: bytes) -> "Message":
        return Message(address=Address.DATA, args=(payload,))

    @staticmethod
    def signal(signal: Signal) -> "Message":
        return Message(address=signal.value)
