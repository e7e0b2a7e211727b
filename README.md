# ntsclient

A small Network Time Security (NTS, RFC 8915) client.

It covers the client side of a whole NTS exchange:

- **NTS Key Establishment** over TLS 1.3 with the `ntske/1` ALPN protocol.
  This means building the request and decoding the server's response. The
  response gives the negotiated AEAD algorithm, optional NTP server and port
  overrides, and up to eight cookies.
- **Key export** of the client-to-server and server-to-client keys from the
  TLS session, using the TLS 1.3 keying material exporter.
- **NTP extension fields**. It writes the unique identifier, the cookie, the
  cookie placeholders and the authenticated and encrypted extension field. It
  also parses and checks a server's reply.
- **SNTP polling**, with or without NTS. A poll gives the round-trip delay and
  the clock offset.

Five AEAD algorithms are supported:

- AES-SIV-CMAC-256
- AES-SIV-CMAC-384
- AES-SIV-CMAC-512
- AES-128-GCM-SIV
- AES-256-GCM-SIV

All five are implemented in the package on top of the AES and CMAC
primitives of `cryptography`.

## Installation

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## Commands

### `ntsclient-demo`

This command runs a full NTS session against a server:

1. Key establishment on port 4460.
2. One authenticated NTP query. It goes to the server and port that the key
   establishment names. Without them it uses the same host and port 123.

```
ntsclient-demo time.example.com
```

If no host is given, a built-in default host is used.

The command prints:

- the selected AEAD algorithm
- the NTP server and port
- up to eight cookies received, or `<absent>`
- the fresh cookie that replaced the first one (`cookie*`)
- how many fresh cookies arrived, marked `(LESS THAN REQUESTED)` when fewer
  than three came back
- the round-trip delay
- the offset

Up to three preferred AEAD algorithms may follow the host name, in order of
preference. Each argument is looked up as a substring of these names:

- `AEAD_AES_SIV_CMAC_256`
- `AEAD_AES_SIV_CMAC_384`
- `AEAD_AES_SIV_CMAC_512`
- `AEAD_AES_128_GCM_SIV`
- `AEAD_AES_256_GCM_SIV`

The first name that contains the argument is chosen. Arguments shorter than
three characters are ignored. An argument that matches no name ends the
command with an error.

```
ntsclient-demo time.example.com CMAC_512 CMAC_256
```

### `qdntp`

A quick, unauthenticated SNTP query. The port defaults to 123:

```
qdntp time.example.com
qdntp time.example.com 123
```

It prints the round-trip delay and the offset in seconds. Run without
arguments, it prints a usage line and exits with status 1.

## Library use

Plain SNTP:

```python
from ntsclient.sntp import ntp_poll

result = ntp_poll("time.example.com", 123)
print(result.delay, result.offset)
```

A full NTS exchange:

```python
import socket

from ntsclient.aead import get_param
from ntsclient.errors import ErrorType, NTSError
from ntsclient.extfields import Query
from ntsclient.packet import decode_response, encode_request
from ntsclient.sntp import nts_poll
from ntsclient.tls import TLSSession, attach_socket

host = "time.example.com"
sock = attach_socket(host, 4460, socket.SOCK_STREAM)
with TLSSession(host, sock) as session:
    while not session.handshake():
        pass
    session.write(encode_request())

    received = b""
    while True:
        received += session.read(65536)
        try:
            agreement = decode_response(received)
            break
        except NTSError as exc:
            if exc.error != ErrorType.INSUFFICIENT_DATA:
                raise

    c2s, s2c = session.extract_keys(agreement.aead_id, 64)

query = Query(
    cookie=agreement.cookies[0],
    c2s_key=c2s,
    s2c_key=s2c,
    cipher=get_param(agreement.aead_id),
    extra_cookies=2,
)
result = nts_poll(agreement.ntp_server or host, agreement.ntp_port or 123, query)
print(result.delay, result.offset, result.new_cookies)
```

After a successful `nts_poll`, `query.cookie` holds the first fresh cookie
the server sent.

### Modules

- **`ntsclient.packet`**
  - `encode_request(preferred)` builds an NTS-KE request. The default offers
    AES-SIV-CMAC-256, then AES-SIV-CMAC-512.
  - `decode_response(data)` returns an `Agreement` with the fields
    `aead_id`, `ntp_server`, `ntp_port` and `cookies`.
  - `RecordType` lists the record types.
- **`ntsclient.tls`**
  - `attach_socket(host, port, kind)` connects a stream or datagram socket.
  - `TLSSession` is a context manager with these methods:
    - `handshake()` returns `False` when it must be called again.
    - `read(size)` returns empty bytes when the read should be retried. It
      raises `ConnectionError` when the peer has closed the connection.
    - `write(data)` returns the number of bytes sent.
    - `extract_keys(aead_id, key_capacity)` returns the two keys.
    - `close()` closes the session.
- **`ntsclient.extfields`**
  - `add_extension_fields(header, query, unique_id)` appends the NTS fields
    to a 48-byte NTP header.
  - `parse_extension_fields(data, query)` returns a `Receipt` with
    `identifier` and `new_cookies`.
- **`ntsclient.aead`**
  - `get_param`, `encrypt` and `decrypt`, with `AEADAlgorithm`, `AEADParam`
    and `AEADError`.
  - For the GCM-SIV algorithms, the last associated-data item is the nonce.
- **`ntsclient.sntp`**
  - `nts_poll(host, port, query)` and `ntp_poll(host, port)` return a
    `PollResult` with `delay`, `offset` and `new_cookies`.
  - `ntp_time()` gives the current time as a 64-bit NTP timestamp.
- **`ntsclient.errors`**
  - `ErrorType`, `NTSError` (with its `error` code) and `error_string`.

### Errors

- **`NTSError`**: protocol errors reported by the key-establishment server,
  and malformed or unauthentic responses. `decode_response` raises it with
  `INSUFFICIENT_DATA` while a response is still incomplete.
- **`AEADError`**: failed encryption or authentication.
- **`ValueError`**: an NTP reply that is malformed, has the wrong mode, is a
  kiss-of-death packet or does not answer the request.

## Limitations

- It is a client only. There is no NTS-KE server and no NTP server.
- A poll is a single exchange. Nothing adjusts the system clock, filters
  samples or polls repeatedly.
- Cookie placeholders are always sent as plain extension fields, outside the
  encrypted field.
- `TLSSession` gets the exporter secret for `extract_keys` from a TLS key log.
  It writes that log to a temporary file for the length of the session and
  deletes it on `close()`. The Python `ssl` module must support
  `keylog_filename`.