"""Key loading, FFDHE-2048 key agreement, RSA signatures and AES-256-GCM."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from cryptography.exceptions import InvalidSignature, InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import dh, padding, rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from .errors import ChannelError

BytesLike = Union[bytes, bytearray, memoryview]

IV_SIZE = 12
TAG_SIZE = 16
AES_KEY_SIZE = 32

# RFC 7919 ffdhe2048 group.
_FFDHE2048_P = int(
    "FFFFFFFFFFFFFFFFADF85458A2BB4A9AAFDC5620273D3CF1"
    "D8B9C583CE2D3695A9E13641146433FBCC939DCE249B3EF9"
    "7D2FE363630C75D8F681B202AEC4617AD3DF1ED5D5FD6561"
    "2433F51F5F066ED0856365553DED1AF3B557135E7F57C935"
    "984F0C70E0E68B77E2A689DAF3EFE8721DF158A136ADE735"
    "30ACCA4F483A797ABC0AB182B324FB61D108A94BB2C8E3FB"
    "B96ADAB760D7F4681D4F42A3DE394DF4AE56EDE76372BB19"
    "0B07A7C8EE0A6D709E02FCE1CDF7E2ECC03404CD28342F61"
    "9172FE9CE98583FF8E4F1232EEF28183C3FE3B1B4C6FAD73"
    "3BB5FCBC2EC22005C58EF1837D1683B2C6F34A26C1B2EFFA"
    "886B423861285C97FFFFFFFFFFFFFFFF",
    16,
)
_FFDHE2048_G = 2

_LABEL_ENC_C2S = b"ffdhe2048 aes-gcm key c2s"
_LABEL_ENC_S2C = b"ffdhe2048 aes-gcm key s2c"
_LABEL_MAC_C2S = b"ffdhe2048 hmac key c2s"
_LABEL_MAC_S2C = b"ffdhe2048 hmac key s2c"


@dataclass
class SessionKeys:
    """The four directional keys derived from one key exchange."""

    enc_c2s: bytearray
    enc_s2c: bytearray
    mac_c2s: bytearray
    mac_s2c: bytearray

    def wipe(self) -> None:
        """Overwrite every key with zeros."""
        for key in (self.enc_c2s, self.enc_s2c, self.mac_c2s, self.mac_s2c):
            wipe(key)


def wipe(buffer: Union[bytearray, memoryview]) -> None:
    """Overwrite a mutable buffer with zeros in place."""
    if len(buffer):
        buffer[:] = bytes(len(buffer))


def _read_file(path: Union[str, os.PathLike]) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as exc:
        raise ChannelError("Failed to open PEM file") from exc


def _load_private(data: bytes, password: bytes | None):
    try:
        return serialization.load_pem_private_key(data, password=password)
    except TypeError:
        # A passphrase given for an unencrypted key is ignored.
        if password is None:
            return None
        return _load_private(data, None)
    except (ValueError, UnsupportedAlgorithm):
        return None


def read_pem_private_key(path: Union[str, os.PathLike], passphrase: Union[str, bytes] = ""):
    """Load a private key from a PEM file, optionally protected by a passphrase."""
    data = _read_file(path)
    if isinstance(passphrase, str):
        passphrase = passphrase.encode()
    key = _load_private(data, passphrase or None)
    if key is None:
        raise ChannelError("Failed to read private key from PEM file")
    return key


def read_pem_public_key(path: Union[str, os.PathLike]):
    """Load a public key from a PEM file."""
    data = _read_file(path)
    try:
        return serialization.load_pem_public_key(data)
    except (ValueError, UnsupportedAlgorithm) as exc:
        raise ChannelError("Failed to read public key from PEM file") from exc


def load_der_public_key(data: BytesLike):
    """Decode a DER SubjectPublicKeyInfo public key."""
    try:
        return serialization.load_der_public_key(bytes(data))
    except (ValueError, UnsupportedAlgorithm) as exc:
        raise ChannelError("Failed to parse DH public key") from exc


def dh_keygen() -> tuple[dh.DHPrivateKey, bytes]:
    """Generate an ephemeral FFDHE-2048 key pair and its DER-encoded public key."""
    try:
        params = dh.DHParameterNumbers(_FFDHE2048_P, _FFDHE2048_G).parameters()
        keypair = params.generate_private_key()
        public_msg = keypair.public_key().public_bytes(
            serialization.Encoding.DER,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise ChannelError("Failed to generate DH keypair") from exc
    return keypair, public_msg


def derive_session_secrets(
    my_keypair,
    peer_public_key,
    salt: BytesLike = b"",
    aes_key_len: int = 32,
    mac_key_len: int = 32,
) -> SessionKeys:
    """Compute the DH shared secret and expand it into four session keys with HKDF-SHA256."""
    if my_keypair is None or peer_public_key is None:
        raise ChannelError("Null key(s) supplied")
    try:
        raw = my_keypair.exchange(peer_public_key)
    except (ValueError, TypeError, AttributeError) as exc:
        raise ChannelError("EVP_PKEY_derive (compute) failed") from exc

    shared = bytearray(raw.lstrip(b"\x00"))
    salt_bytes = bytes(salt) or None

    def expand(label: bytes, length: int) -> bytearray:
        try:
            hkdf = HKDF(algorithm=hashes.SHA256(), length=length, salt=salt_bytes, info=label)
            return bytearray(hkdf.derive(bytes(shared)))
        except (ValueError, TypeError) as exc:
            raise ChannelError("HKDF derive failed") from exc

    try:
        return SessionKeys(
            enc_c2s=expand(_LABEL_ENC_C2S, aes_key_len),
            enc_s2c=expand(_LABEL_ENC_S2C, aes_key_len),
            mac_c2s=expand(_LABEL_MAC_C2S, mac_key_len),
            mac_s2c=expand(_LABEL_MAC_S2C, mac_key_len),
        )
    finally:
        wipe(shared)


def sign_rsa_sha256(data: BytesLike, private_key) -> bytes:
    """Sign ``data`` with RSA PKCS#1 v1.5 over SHA-256."""
    if not isinstance(private_key, rsa.RSAPrivateKey):
        raise ChannelError("EVP_DigestSignInit failed")
    try:
        return private_key.sign(bytes(data), padding.PKCS1v15(), hashes.SHA256())
    except (ValueError, TypeError) as exc:
        raise ChannelError("EVP_DigestSignFinal failed") from exc


def verify_rsa_sha256(data: BytesLike, signature: BytesLike, public_key) -> bool:
    """Return whether ``signature`` is a valid RSA-SHA256 signature of ``data``."""
    if not isinstance(public_key, rsa.RSAPublicKey):
        raise ChannelError("EVP_DigestVerifyInit failed")
    try:
        public_key.verify(bytes(signature), bytes(data), padding.PKCS1v15(), hashes.SHA256())
    except InvalidSignature:
        return False
    return True


def _check_key(key: BytesLike) -> None:
    if len(key) != AES_KEY_SIZE:
        raise ChannelError("Key must be 32 bytes for AES-256-GCM")


def aes256gcm_encrypt(
    plaintext: BytesLike, key: BytesLike, iv: BytesLike | None = None
) -> tuple[bytes, bytes, bytes]:
    """Encrypt with AES-256-GCM; return ``(iv, ciphertext, tag)``.

    A random 12-byte IV is drawn when ``iv`` is empty or omitted.
    """
    _check_key(key)
    iv_bytes = bytes(iv) if iv else os.urandom(IV_SIZE)
    try:
        encryptor = Cipher(algorithms.AES(bytes(key)), modes.GCM(iv_bytes)).encryptor()
        ciphertext = encryptor.update(bytes(plaintext)) + encryptor.finalize()
    except ValueError as exc:
        raise ChannelError("EVP_EncryptInit failed") from exc
    return iv_bytes, ciphertext, encryptor.tag


def aes256gcm_decrypt(
    ciphertext: BytesLike, key: BytesLike, iv: BytesLike, tag: BytesLike
) -> bytes:
    """Decrypt AES-256-GCM and verify the tag."""
    _check_key(key)
    try:
        decryptor = Cipher(
            algorithms.AES(bytes(key)), modes.GCM(bytes(iv), bytes(tag), min_tag_length=4)
        ).decryptor()
    except ValueError as exc:
        raise ChannelError("EVP_DecryptInit failed") from exc
    try:
        return decryptor.update(bytes(ciphertext)) + decryptor.finalize()
    except InvalidTag as exc:
        raise ChannelError("Decryption failed: tag verification failed") from exc