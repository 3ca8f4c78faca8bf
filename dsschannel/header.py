"""Fixed-size record header: one type byte and a big-endian 64-bit length."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import ClassVar, Union

from .errors import ChannelError

_FORMAT = struct.Struct(">BQ")


@dataclass
class Header:
    """Record header.

    Bits 7..3 of ``type`` hold a status code, bit 2 marks a failed response
    and bits 1..0 give the request type.
    """

    type: int = 0
    length: int = 0

    SIZE: ClassVar[int] = _FORMAT.size

    def successful(self, code: int) -> None:
        """Store ``code`` and clear the failure bit."""
        self.type = (self.type | (code << 3)) & 0xFF
        self.type &= ~0x04 & 0xFF

    def failed(self, code: int) -> None:
        """Store ``code`` and set the flag bit."""
        self.type = (self.type | (code << 3)) & 0xFF
        self.type |= 0x02

    def serialize(self) -> bytes:
        """Encode as 9 bytes."""
        try:
            return _FORMAT.pack(self.type, self.length)
        except struct.error as exc:
            raise ValueError(f"header field out of range: {exc}") from exc

    @classmethod
    def deserialize(cls, data: Union[bytes, bytearray, memoryview]) -> "Header":
        """Decode from the first 9 bytes of ``data``."""
        if len(data) < cls.SIZE:
            raise ChannelError("header deserialize failed")
        type_byte, length = _FORMAT.unpack_from(bytes(data[: cls.SIZE]))
        return cls(type_byte, length)