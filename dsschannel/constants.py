"""Protocol constants shared by client and server."""

from __future__ import annotations

from enum import IntEnum

MAX_DOC_SIZE = 10 * 1024 * 1024
"""Largest frame accepted during the key exchange, in bytes."""

DATA_PATH = "data"
"""Directory holding key material."""


class RequestType(IntEnum):
    """Request codes carried in the two low bits of a record's type byte."""

    CREATE_KEYS = 0x00
    SIGN_DOC = 0x01
    GET_PUBLIC_KEY = 0x02
    DELETE_KEYS = 0x03