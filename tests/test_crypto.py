import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from dsschannel.crypto import (
    SessionKeys,
    aes256gcm_decrypt,
    aes256gcm_encrypt,
    derive_session_secrets,
    dh_keygen,
    load_der_public_key,
    read_pem_private_key,
    read_pem_public_key,
    sign_rsa_sha256,
    verify_rsa_sha256,
    wipe,
)
from dsschannel.errors import ChannelError

KEY = bytes(range(32))


@pytest.fixture(scope="module")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="module")
def dh_pair():
    return dh_keygen(), dh_keygen()


def _write_private(path, key, passphrase=None):
    encryption = (
        serialization.BestAvailableEncryption(passphrase.encode())
        if passphrase
        else serialization.NoEncryption()
    )
    path.write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, encryption
        )
    )


def _write_public(path, key):
    path.write_bytes(
        key.public_key().public_bytes(
            serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
        )
    )


def test_aes_round_trip_with_given_iv():
    iv = bytes(12)
    out_iv, ct, tag = aes256gcm_encrypt(b"Hello server!", KEY, iv)
    assert out_iv == iv
    assert len(ct) == len(b"Hello server!")
    assert len(tag) == 16
    assert aes256gcm_decrypt(ct, KEY, iv, tag) == b"Hello server!"


def test_aes_random_iv_when_missing():
    iv1, ct1, _ = aes256gcm_encrypt(b"data", KEY)
    iv2, ct2, _ = aes256gcm_encrypt(b"data", KEY, b"")
    assert len(iv1) == 12 and len(iv2) == 12
    assert iv1 != iv2


def test_aes_rejects_wrong_key_size():
    with pytest.raises(ChannelError, match="32 bytes"):
        aes256gcm_encrypt(b"x", bytes(16))
    with pytest.raises(ChannelError, match="32 bytes"):
        aes256gcm_decrypt(b"x", bytes(16), bytes(12), bytes(16))


def test_aes_detects_tampering():
    iv, ct, tag = aes256gcm_encrypt(b"payload", KEY)
    bad_tag = bytes([tag[0] ^ 1]) + tag[1:]
    with pytest.raises(ChannelError, match="tag verification failed"):
        aes256gcm_decrypt(ct, KEY, iv, bad_tag)
    bad_ct = bytes([ct[0] ^ 1]) + ct[1:]
    with pytest.raises(ChannelError):
        aes256gcm_decrypt(bad_ct, KEY, iv, tag)


def test_aes_empty_plaintext_round_trip():
    iv, ct, tag = aes256gcm_encrypt(b"", KEY)
    assert ct == b""
    assert aes256gcm_decrypt(ct, KEY, iv, tag) == b""


def test_sign_and_verify(rsa_key):
    sig = sign_rsa_sha256(b"g^a || g^b", rsa_key)
    assert len(sig) == 256
    assert verify_rsa_sha256(b"g^a || g^b", sig, rsa_key.public_key()) is True
    assert verify_rsa_sha256(b"g^a || g^c", sig, rsa_key.public_key()) is False


def test_verify_with_wrong_key_is_false(rsa_key):
    other = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    sig = sign_rsa_sha256(b"data", other)
    assert verify_rsa_sha256(b"data", sig, rsa_key.public_key()) is False


def test_read_pem_keys(tmp_path, rsa_key):
    priv_path = tmp_path / "priv.pem"
    pub_path = tmp_path / "pub.pem"
    _write_private(priv_path, rsa_key)
    _write_public(pub_path, rsa_key)
    priv = read_pem_private_key(priv_path)
    pub = read_pem_public_key(pub_path)
    sig = sign_rsa_sha256(b"doc", priv)
    assert verify_rsa_sha256(b"doc", sig, pub) is True


def test_read_encrypted_private_key(tmp_path, rsa_key):
    passphrase = "password"
    path = tmp_path / "enc.pem"
    _write_private(path, rsa_key, passphrase)
    priv = read_pem_private_key(path, passphrase)
    assert priv.private_numbers() == rsa_key.private_numbers()
    with pytest.raises(ChannelError, match="Failed to read private key"):
        read_pem_private_key(path)


def test_read_pem_errors(tmp_path):
    with pytest.raises(ChannelError, match="Failed to open PEM file"):
        read_pem_private_key(tmp_path / "missing.pem")
    with pytest.raises(ChannelError, match="Failed to open PEM file"):
        read_pem_public_key(tmp_path / "missing.pem")
    junk = tmp_path / "junk.pem"
    junk.write_bytes(b"not a key")
    with pytest.raises(ChannelError, match="Failed to read private key"):
        read_pem_private_key(junk)
    with pytest.raises(ChannelError, match="Failed to read public key"):
        read_pem_public_key(junk)


def test_dh_keygen_uses_ffdhe2048(dh_pair):
    (keypair, public_msg), _ = dh_pair
    numbers = keypair.parameters().parameter_numbers()
    assert numbers.g == 2
    assert numbers.p.bit_length() == 2048
    decoded = load_der_public_key(public_msg)
    assert decoded.public_numbers() == keypair.public_key().public_numbers()


def test_both_sides_derive_same_keys(dh_pair):
    (a, a_msg), (b, b_msg) = dh_pair
    client = derive_session_secrets(a, load_der_public_key(b_msg))
    server = derive_session_secrets(b, load_der_public_key(a_msg))
    assert client == server
    assert len(client.enc_c2s) == 32 and len(client.mac_s2c) == 32
    keys = {bytes(client.enc_c2s), bytes(client.enc_s2c),
            bytes(client.mac_c2s), bytes(client.mac_s2c)}
    assert len(keys) == 4


def test_salt_and_lengths_change_output(dh_pair):
    (a, _), (_, b_msg) = dh_pair
    peer = load_der_public_key(b_msg)
    plain = derive_session_secrets(a, peer)
    salted = derive_session_secrets(a, peer, b"ffdhe2048")
    assert plain.enc_c2s != salted.enc_c2s
    short = derive_session_secrets(a, peer, b"", 16, 32)
    assert len(short.enc_c2s) == 16
    assert short.enc_c2s == plain.enc_c2s[:16]


def test_derive_rejects_missing_keys(dh_pair):
    (a, _), _ = dh_pair
    with pytest.raises(ChannelError, match="Null key"):
        derive_session_secrets(a, None)
    with pytest.raises(ChannelError, match="Null key"):
        derive_session_secrets(None, a.public_key())


def test_load_der_public_key_rejects_garbage():
    with pytest.raises(ChannelError):
        load_der_public_key(b"\x30\x03garbage")


def test_wipe_zeroes_buffer():
    buf = bytearray(b"sensitive")
    wipe(buf)
    assert buf == bytearray(len(b"sensitive"))
    empty = bytearray()
    wipe(empty)
    assert empty == bytearray()


def test_session_keys_wipe():
    keys = SessionKeys(bytearray(b"a" * 32), bytearray(b"b" * 32),
                       bytearray(b"c" * 32), bytearray(b"d" * 32))
    keys.wipe()
    for key in (keys.enc_c2s, keys.enc_s2c, keys.mac_c2s, keys.mac_s2c):
        assert key == bytearray(32)