"""Signed FFDHE-2048 key exchange and AES-256-GCM encrypted records over sockets."""

__version__ = "0.1.0"