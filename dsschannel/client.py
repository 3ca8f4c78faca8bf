"""Client that opens a secure channel to the signing server."""

from __future__ import annotations

import argparse
import os
import socket
from pathlib import Path
from typing import Optional, Sequence, Union

from .constants import DATA_PATH, RequestType
from .crypto import SessionKeys, read_pem_public_key
from .errors import ChannelError
from .logs import LogLevel, log
from .protocol import client_handshake, recv_message, send_message

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 4242
DEFAULT_PUBLIC_KEY = Path(DATA_PATH) / "client" / "pub_server.pem"


def connect_to_server(host: str, port: int) -> socket.socket:
    """Open a TCP connection to an IPv4 ``host`` and ``port``."""
    try:
        socket.inet_pton(socket.AF_INET, host)
    except OSError as exc:
        raise ChannelError("inet_pton failed") from exc
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.connect((host, port))
    except OSError as exc:
        sock.close()
        raise ChannelError("connect failed") from exc
    log(LogLevel.INFO, "Connected to server at %s:%d", host, port)
    return sock


class ClientSession:
    """A connection to the server with its session keys and message counter."""

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        public_key_path: Union[str, os.PathLike, None] = None,
    ) -> None:
        self.host = host
        self.port = port
        self.public_key_path = Path(public_key_path or DEFAULT_PUBLIC_KEY)
        self.sock: Optional[socket.socket] = None
        self.keys: Optional[SessionKeys] = None
        self.counter = 0

    def open(self) -> "ClientSession":
        """Connect and run the key exchange."""
        server_key = read_pem_public_key(self.public_key_path)
        self.sock = connect_to_server(self.host, self.port)
        self.keys = client_handshake(self.sock, server_key)
        self.counter = 0
        return self

    def close(self) -> None:
        """Close the socket and wipe the session keys."""
        if self.sock is not None:
            self.sock.close()
            self.sock = None
        if self.keys is not None:
            self.keys.wipe()

    def __enter__(self) -> "ClientSession":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()


def _exercise(session: ClientSession) -> None:
    assert session.sock is not None and session.keys is not None
    sock, keys = session.sock, session.keys

    session.counter = send_message(
        sock, "Hello server!", keys.enc_c2s, session.counter, RequestType.CREATE_KEYS
    )

    payload, type_byte, session.counter = recv_message(sock, keys.enc_s2c, session.counter)
    log(
        LogLevel.DEBUG,
        "[TEST-1] received message: %s. client: %d, counter: %d, type: %x",
        payload.decode(errors="replace"),
        sock.fileno(),
        session.counter,
        type_byte,
    )

    session.counter = send_message(
        sock, b"", keys.enc_c2s, session.counter, RequestType.CREATE_KEYS
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Connect to the server and run the message exchange checks."""
    parser = argparse.ArgumentParser(description="Secure channel client.")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--public-key", default=str(DEFAULT_PUBLIC_KEY))
    args = parser.parse_args(argv)

    session = ClientSession(args.host, args.port, args.public_key)
    try:
        session.open()
        _exercise(session)
    except ChannelError as exc:
        log(LogLevel.ERROR, "Runtime error: %s", exc)
    except Exception as exc:  # noqa: BLE001
        log(LogLevel.ERROR, "Exception: %s", exc)
    finally:
        session.close()
    return 0