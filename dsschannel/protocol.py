"""Framing, encrypted records and the authenticated key exchange.

Two wire formats are used:

* During the key exchange, frames are a 4-byte big-endian length followed by
  the raw bytes.
* Afterwards, every record is an AES-256-GCM encrypted header padded to
  64 bytes plus its 16-byte tag. An optional encrypted payload follows,
  padded to a multiple of 64 bytes, with its own tag. Each encryption uses
  a fresh 12-byte IV built from an incremented message counter.
"""

from __future__ import annotations

import socket
import struct
from typing import Union

from .constants import MAX_DOC_SIZE
from .crypto import (
    TAG_SIZE,
    SessionKeys,
    aes256gcm_decrypt,
    aes256gcm_encrypt,
    derive_session_secrets,
    dh_keygen,
    load_der_public_key,
    sign_rsa_sha256,
    verify_rsa_sha256,
    wipe,
)
from .errors import ChannelError
from .header import Header
from .logs import LogLevel, log

BytesLike = Union[bytes, bytearray, memoryview]

PAD_BLOCK = 64
_FRAME_LEN = struct.Struct(">I")
_UINT32_MAX = 0xFFFFFFFF
_COUNTER_MASK = 0xFFFFFFFFFFFFFFFF


def _send_all(sock: socket.socket, data: BytesLike, what: str) -> None:
    log(LogLevel.DEBUG, "Sending %d bytes", len(data))
    try:
        sock.sendall(data)
    except OSError as exc:
        raise ChannelError(f"send_all {what} failed") from exc


def _recv_exact(sock: socket.socket, size: int) -> bytes:
    buf = bytearray()
    while len(buf) < size:
        try:
            chunk = sock.recv(size - len(buf))
        except OSError as exc:
            raise ChannelError("receive failed") from exc
        if not chunk:
            raise ChannelError("connection closed by peer")
        buf += chunk
    return bytes(buf)


def _nonce(counter: int) -> bytes:
    return bytes(4) + struct.pack(">Q", counter & _COUNTER_MASK)


def _pad(data: BytesLike) -> bytearray:
    pad = PAD_BLOCK - (len(data) % PAD_BLOCK)
    return bytearray(data) + bytes([pad]) * pad


def _unpad(padded: bytearray, what: str) -> bytearray:
    if not padded:
        raise ChannelError(f"empty {what} padded")
    pad = padded[-1]
    if pad == 0 or pad > len(padded):
        raise ChannelError(f"bad {what} padding")
    return padded[: len(padded) - pad]


def _padded_length(length: int) -> int:
    return length + (PAD_BLOCK - length % PAD_BLOCK)


def send_frame(sock: socket.socket, data: BytesLike) -> None:
    """Send ``data`` preceded by its 4-byte big-endian length."""
    if len(data) > _UINT32_MAX:
        raise ChannelError("Data size exceeds maximum limit")
    _send_all(sock, _FRAME_LEN.pack(len(data)), "frame length")
    _send_all(sock, data, "frame body")


def recv_frame(sock: socket.socket) -> bytes:
    """Receive one length-prefixed frame of at most ``MAX_DOC_SIZE`` bytes."""
    (length,) = _FRAME_LEN.unpack(_recv_exact(sock, _FRAME_LEN.size))
    if length > MAX_DOC_SIZE:
        raise ChannelError("frame exceeds maximum size")
    return _recv_exact(sock, length)


def send_message(
    sock: socket.socket,
    msg: Union[str, BytesLike],
    key: BytesLike,
    counter: int,
    type_byte: int,
) -> int:
    """Send one encrypted record and return the updated counter."""
    payload = bytearray(msg.encode() if isinstance(msg, str) else msg)
    header = Header(type=type_byte, length=len(payload))
    hdr_padded = _pad(header.serialize())
    try:
        counter += 1
        _, hdr_ct, hdr_tag = aes256gcm_encrypt(hdr_padded, key, _nonce(counter))
        if len(hdr_ct) != PAD_BLOCK:
            raise ChannelError("encrypted header length mismatch")
        _send_all(sock, hdr_ct, "header ct")
        _send_all(sock, hdr_tag, "header tag")

        if header.length:
            padded = _pad(payload)
            try:
                counter += 1
                _, ct, tag = aes256gcm_encrypt(padded, key, _nonce(counter))
                _send_all(sock, ct, "payload ct")
                _send_all(sock, tag, "payload tag")
            finally:
                wipe(padded)

        log(
            LogLevel.DEBUG,
            "Sent message: payload_size=%d, counter=%d",
            header.length,
            counter,
        )
    finally:
        wipe(hdr_padded)
        wipe(payload)
    return counter


def recv_message(
    sock: socket.socket, key: BytesLike, counter: int
) -> tuple[bytes, int, int]:
    """Receive one encrypted record; return ``(payload, type_byte, counter)``."""
    hdr_ct = _recv_exact(sock, PAD_BLOCK)
    hdr_tag = _recv_exact(sock, TAG_SIZE)

    counter += 1
    hdr_padded = bytearray(aes256gcm_decrypt(hdr_ct, key, _nonce(counter), hdr_tag))
    hdr_plain = _unpad(hdr_padded, "header")
    if len(hdr_plain) != Header.SIZE:
        raise ChannelError("bad header length after unpad")
    header = Header.deserialize(hdr_plain)

    payload = b""
    if header.length:
        ct = _recv_exact(sock, _padded_length(header.length))
        tag = _recv_exact(sock, TAG_SIZE)

        counter += 1
        padded = bytearray(aes256gcm_decrypt(ct, key, _nonce(counter), tag))
        unpadded = _unpad(padded, "payload")
        if len(unpadded) != header.length:
            raise ChannelError("length mismatch after unpad")
        payload = bytes(unpadded)

    return payload, header.type, counter


def server_handshake(sock: socket.socket, server_rsa_private_key) -> SessionKeys:
    """Run the server side of the signed FFDHE-2048 exchange."""
    log(LogLevel.INFO, "Initializing secure conversation with client")

    client_pub_msg = recv_frame(sock)
    client_pub = load_der_public_key(client_pub_msg)

    keypair, my_pub_msg = dh_keygen()
    signature = sign_rsa_sha256(client_pub_msg + my_pub_msg, server_rsa_private_key)

    send_frame(sock, my_pub_msg)
    send_frame(sock, signature)

    keys = derive_session_secrets(keypair, client_pub, b"")
    del keypair

    log(LogLevel.INFO, "secure channel created successfully")
    return keys


def client_handshake(sock: socket.socket, server_rsa_public_key) -> SessionKeys:
    """Run the client side of the exchange and verify the server's signature."""
    log(LogLevel.INFO, "Initializing secure conversation with server")

    keypair, my_pub_msg = dh_keygen()
    send_frame(sock, my_pub_msg)
    log(LogLevel.DEBUG, "Sent client DH public key (%d bytes)", len(my_pub_msg))

    server_pub_msg = recv_frame(sock)
    log(LogLevel.DEBUG, "Received server DH public key (%d bytes)", len(server_pub_msg))

    signature = recv_frame(sock)
    log(LogLevel.DEBUG, "Received server signature (%d bytes)", len(signature))

    server_pub = load_der_public_key(server_pub_msg)
    keys = derive_session_secrets(keypair, server_pub, b"")
    del keypair

    if not verify_rsa_sha256(my_pub_msg + server_pub_msg, signature, server_rsa_public_key):
        keys.wipe()
        raise ChannelError("Server signature verification failed")

    log(LogLevel.DEBUG, "Server signature verified successfully")
    log(LogLevel.INFO, "Secure channel created succefully")
    return keys