"""TCP connection set-up and the TLS session used for NTS key establishment."""

from __future__ import annotations

import contextlib
import os
import socket
import ssl
import struct
import tempfile

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDFExpand

from .aead import get_param

_ALPN = "ntske/1"
_EXPORTER_LABEL = b"EXPORTER-network-time-security"
_PROTO_NTPV4 = 0


def attach_socket(host: str, port: int, kind: int) -> socket.socket:
    """Connect a socket of the given type (SOCK_STREAM or SOCK_DGRAM) to host:port.

    Every address the host resolves to is tried in turn; OSError is raised
    when none of them can be connected.
    """
    last_error: OSError | None = None
    for family, socktype, proto, _, address in socket.getaddrinfo(host, port, type=kind):
        if family not in (socket.AF_INET, socket.AF_INET6):
            continue
        try:
            sock = socket.socket(family, socktype, proto)
        except OSError as exc:
            last_error = exc
            continue
        try:
            sock.connect(address)
        except OSError as exc:
            sock.close()
            last_error = exc
            continue
        with contextlib.suppress(OSError):
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        return sock

    if last_error is not None:
        raise last_error
    raise OSError(f"no usable address for {host}:{port}")


def _digest(algorithm: hashes.HashAlgorithm, data: bytes) -> bytes:
    hasher = hashes.Hash(algorithm)
    hasher.update(data)
    return hasher.finalize()


def _expand_label(algorithm: hashes.HashAlgorithm, secret: bytes, label: bytes,
                  context: bytes, length: int) -> bytes:
    full_label = b"tls13 " + label
    info = (struct.pack(">HB", length, len(full_label)) + full_label
            + struct.pack(">B", len(context)) + context)
    return HKDFExpand(algorithm, length, info).derive(secret)


def _tls13_export(algorithm: hashes.HashAlgorithm, exporter_secret: bytes, label: bytes,
                  context: bytes, length: int) -> bytes:
    """Keying material exporter of TLS 1.3 (RFC 8446, section 7.5)."""
    derived = _expand_label(algorithm, exporter_secret, label, _digest(algorithm, b""),
                            algorithm.digest_size)
    return _expand_label(algorithm, derived, b"exporter", _digest(algorithm, context), length)


class TLSSession:
    """A TLS 1.3 client session over a connected socket, offering the NTS-KE protocol."""

    def __init__(self, hostname: str, sock: socket.socket) -> None:
        fd, self._keylog_path = tempfile.mkstemp(prefix="ntske-", suffix=".keys")
        os.close(fd)
        try:
            context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
            context.minimum_version = ssl.TLSVersion.TLSv1_3
            context.set_default_verify_paths()
            context.set_alpn_protocols([_ALPN])
            # the exporter secret is only reachable through the key log
            context.keylog_filename = self._keylog_path
            self._context = context
            self._tls = context.wrap_socket(sock, server_hostname=hostname,
                                            do_handshake_on_connect=False)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(self._keylog_path)
            raise
        self._closed = False

    def handshake(self) -> bool:
        """Run the TLS handshake; False means it has to be called again."""
        try:
            self._tls.do_handshake()
        except (ssl.SSLWantReadError, ssl.SSLWantWriteError):
            return False
        return True

    def read(self, size: int) -> bytes:
        """Read up to size bytes; empty when the read should be retried.

        Raises ConnectionError when the peer has closed the connection.
        """
        try:
            data = self._tls.recv(size)
        except (ssl.SSLWantReadError, ssl.SSLWantWriteError):
            return b""
        if not data and size:
            raise ConnectionError("TLS connection closed by peer")
        return data

    def write(self, data: bytes) -> int:
        """Write data and return the number of bytes sent; 0 means retry."""
        try:
            return self._tls.send(data)
        except (ssl.SSLWantReadError, ssl.SSLWantWriteError):
            return 0

    def _exporter_secret(self) -> bytes:
        secret: bytes | None = None
        with open(self._keylog_path, encoding="ascii") as log:
            for line in log:
                parts = line.split()
                if len(parts) == 3 and parts[0] == "EXPORTER_SECRET":
                    secret = bytes.fromhex(parts[2])
        if secret is None:
            raise ssl.SSLError("no TLS exporter secret is available for this session")
        return secret

    def extract_keys(self, aead_id: int, key_capacity: int) -> tuple[bytes, bytes]:
        """Derive the client-to-server and server-to-client keys for an AEAD algorithm."""
        param = get_param(aead_id)
        if param is None:
            raise ValueError(f"unknown AEAD algorithm: {aead_id}")
        if param.key_size > key_capacity:
            raise ValueError(f"key of {param.key_size} bytes exceeds capacity {key_capacity}")

        cipher = self._tls.cipher()
        if cipher is None:
            raise ssl.SSLError("TLS handshake has not completed")
        algorithm: hashes.HashAlgorithm = (
            hashes.SHA384() if cipher[0].endswith("SHA384") else hashes.SHA256()
        )
        secret = self._exporter_secret()
        keys = tuple(
            _tls13_export(
                algorithm, secret, _EXPORTER_LABEL,
                struct.pack(">HHB", _PROTO_NTPV4, aead_id, direction),
                param.key_size,
            )
            for direction in (0, 1)
        )
        return keys[0], keys[1]

    def close(self) -> None:
        """Close the session and the underlying socket."""
        if self._closed:
            return
        self._closed = True
        self._tls.close()
        self._context.keylog_filename = None
        with contextlib.suppress(OSError):
            os.unlink(self._keylog_path)

    def __enter__(self) -> TLSSession:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()