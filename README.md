# dsschannel

A small secure-channel library for a client/server digital signature service.
It sets up session keys with a server-signed Diffie-Hellman exchange. After
that it sends and receives AES-256-GCM encrypted records over a TCP socket.

## How a session is set up

1. The client sends an ephemeral FFDHE-2048 public key (g^a), DER encoded.
2. The server replies with two things:
   - its own ephemeral public key (g^b);
   - an RSA PKCS#1 v1.5 / SHA-256 signature over `g^a || g^b`, made with its
     long-term RSA key.
3. Both sides derive four keys from the shared secret with HKDF-SHA256:
   - `enc_c2s`, the AES-256-GCM key from client to server;
   - `enc_s2c`, the AES-256-GCM key from server to client;
   - `mac_c2s`, the HMAC key from client to server;
   - `mac_s2c`, the HMAC key from server to client.
4. The client checks the server's signature. If it does not verify, the client
   wipes the keys and raises `ChannelError`.

During this exchange, every message is a plain frame: a 4-byte big-endian
length, then the bytes. Frames larger than `MAX_DOC_SIZE` (10 MiB) are
rejected.

## Record format

After the handshake, each message is one record, built as follows:

- **Header.** The 9-byte `Header` (one type byte and a big-endian 64-bit
  payload length) is padded to 64 bytes and encrypted. The 64-byte ciphertext
  and its 16-byte tag are sent.
- **Payload.** When the length is non-zero, the payload is padded up to the
  next multiple of 64 bytes and encrypted. It is sent with its own tag. A
  payload that is already a multiple of 64 bytes gets a full extra block of
  padding.
- **Nonce.** Every encryption uses a 12-byte nonce: four zero bytes followed
  by a 64-bit big-endian counter. The counter is incremented before each use.

The caller keeps the counter. `send_message` and `recv_message` return the
updated value.

## Installation

```
pip install .
```

With the test dependencies:

```
pip install ".[test]"
```

## Library use

```python
import socket

from dsschannel.constants import RequestType
from dsschannel.crypto import read_pem_public_key
from dsschannel.protocol import client_handshake, recv_message, send_message

server_key = read_pem_public_key("data/client/pub_server.pem")
sock = socket.create_connection(("127.0.0.1", 4242))
keys = client_handshake(sock, server_key)

counter = send_message(sock, "Hello server!", keys.enc_c2s, 0, RequestType.CREATE_KEYS)
payload, type_byte, counter = recv_message(sock, keys.enc_s2c, counter)
```

On an accepted connection, a server calls `server_handshake(sock,
rsa_private_key)`. It gets back the same `SessionKeys` as the client.

`dsschannel.client.ClientSession` wraps the client side. Its `open()` method
does three things:

1. It loads the server's public key.
2. It connects with `connect_to_server`.
3. It runs the handshake.

`close()` closes the socket and wipes the keys. The session can also be used
as a context manager.

### Modules

- `dsschannel.crypto`:
  - `read_pem_private_key` and `read_pem_public_key` load PEM keys. The private
    key may take an optional passphrase.
  - `load_der_public_key` decodes a DER public key.
  - `dh_keygen` makes an FFDHE-2048 key pair.
  - `derive_session_secrets` derives the four keys and returns `SessionKeys`.
  - `sign_rsa_sha256` signs. `verify_rsa_sha256` returns `True` or `False`.
  - `aes256gcm_encrypt` returns `(iv, ciphertext, tag)`. It draws a random IV
    when none is given. `aes256gcm_decrypt` decrypts and checks the tag.
  - `wipe` zeroes a mutable buffer.
- `dsschannel.header`: `Header` has `serialize` and `deserialize`. It also has
  the status helpers `successful` and `failed`.
- `dsschannel.protocol`:
  - `send_frame` and `recv_frame` handle plain frames.
  - `send_message` and `recv_message` handle encrypted records.
  - `client_handshake` and `server_handshake` run the two sides of the
    exchange.
- `dsschannel.constants`: `RequestType` (`CREATE_KEYS`, `SIGN_DOC`,
  `GET_PUBLIC_KEY`, `DELETE_KEYS`), `MAX_DOC_SIZE` and `DATA_PATH`.
- `dsschannel.logs`: `log(level, message, *args)` prints a coloured,
  timestamped line for a `LogLevel`.

### Errors

Failures raise `dsschannel.errors.ChannelError`. This covers:

- an unreadable key file;
- a bad tag;
- bad padding or a length mismatch;
- an oversized frame;
- a peer that closed the connection;
- a failed server signature check.

## Command-line client

```
dsschannel-client [--host 127.0.0.1] [--port 4242] [--public-key data/client/pub_server.pem]
```

The client runs these steps:

1. It loads the server's public key.
2. It connects and runs the handshake.
3. It sends a `CREATE_KEYS` record with the payload `Hello server!`.
4. It reads one record back and logs it.
5. It sends an empty `CREATE_KEYS` record.
6. It closes the connection.

Errors are logged, and the command exits with status 0.

## What this package does not do

- There is no server program. `server_handshake` and the record functions are
  the building blocks, but nothing here listens for connections.
- The signature-service operations are not implemented. `RequestType` names
  four requests: creating keys, signing a document, fetching a public key and
  deleting keys. Those are only codes carried in the type byte.
- The HMAC keys (`mac_c2s`, `mac_s2c`) are derived but not used. Records are
  protected by AES-GCM alone.