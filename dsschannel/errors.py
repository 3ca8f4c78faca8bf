"""Exceptions raised by the secure channel."""

from __future__ import annotations


class ChannelError(RuntimeError):
    """A cryptographic, framing or transport step of the channel failed."""