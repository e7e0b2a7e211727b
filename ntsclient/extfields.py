"""NTS extension fields for NTP packets (RFC 8915, section 5)."""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass, field
from enum import IntEnum

from .aead import AEADError, AEADParam, decrypt, encrypt
from .errors import ErrorType, NTSError

_NTP_HEADER_SIZE = 48
_MAX_PACKET_SIZE = 1280
_UNIQUE_ID_SIZE = 32
_MAX_COOKIES = 8


class _FieldType(IntEnum):
    UNIQUE_IDENTIFIER = 0x0104
    COOKIE = 0x0204
    COOKIE_PLACEHOLDER = 0x0304
    AUTH_ENC_EXT_FIELDS = 0x0404


@dataclass
class Query:
    """Client state for an NTS-protected NTP request."""

    cookie: bytes
    c2s_key: bytes
    s2c_key: bytes
    cipher: AEADParam
    extra_cookies: int = 0


@dataclass
class Receipt:
    """Authenticated information from a server's NTP response."""

    identifier: bytes | None = None
    new_cookies: list[bytes] = field(default_factory=list)


def _ext_field(field_type: int, contents: bytes, min_size: int) -> bytes:
    size = max(min_size, len(contents) + 4)
    padded = (size + 3) & ~3
    if padded > 0xFFFF:
        raise ValueError("extension field too large")
    return struct.pack(">HH", field_type, padded) + contents + bytes(padded - 4 - len(contents))


def add_extension_fields(header: bytes, query: Query, unique_id: bytes | None = None) -> bytes:
    """Append NTS extension fields to a 48-byte NTP header and return the whole packet.

    A random unique identifier is generated unless one is given.
    """
    header = bytes(header)
    if len(header) != _NTP_HEADER_SIZE:
        raise ValueError(f"NTP header must be {_NTP_HEADER_SIZE} bytes")
    if unique_id is None:
        unique_id = os.urandom(_UNIQUE_ID_SIZE)
    elif len(unique_id) != _UNIQUE_ID_SIZE:
        raise ValueError(f"unique identifier must be {_UNIQUE_ID_SIZE} bytes")

    nonce_size = query.cipher.nonce_size
    if nonce_size % 4 or nonce_size > 16:
        raise ValueError("unsupported nonce size")

    cookie = bytes(query.cookie)
    fields = [
        _ext_field(_FieldType.UNIQUE_IDENTIFIER, bytes(unique_id), 16),
        _ext_field(_FieldType.COOKIE, cookie, 16),
    ]
    # placeholders travel unauthenticated-but-not-encrypted; the encrypted part stays empty
    fields.extend(
        _ext_field(_FieldType.COOKIE_PLACEHOLDER, bytes(len(cookie)), 16)
        for _ in range(query.extra_cookies)
    )
    authenticated = header + b"".join(fields)

    nonce = os.urandom(nonce_size)
    ciphertext = encrypt(b"", [authenticated, nonce], query.cipher, query.c2s_key)
    contents = struct.pack(">HH", nonce_size, len(ciphertext)) + nonce + ciphertext

    packet = authenticated + _ext_field(_FieldType.AUTH_ENC_EXT_FIELDS, contents, 28)
    if len(packet) > _MAX_PACKET_SIZE:
        raise ValueError("extension fields do not fit in an NTP packet")
    return packet


def _reject() -> NTSError:
    return NTSError(ErrorType.BAD_RESPONSE)


def _cookies(plaintext: bytes) -> list[bytes]:
    cookies: list[bytes] = []
    offset = 0
    while len(plaintext) - offset >= 4:
        field_type, length = struct.unpack_from(">HH", plaintext, offset)
        if len(plaintext) - offset < length or length < 4:
            raise _reject()
        if field_type == _FieldType.COOKIE and len(cookies) < _MAX_COOKIES:
            cookies.append(plaintext[offset + 4:offset + length])
        offset += length
    return cookies


def parse_extension_fields(data: bytes, query: Query) -> Receipt:
    """Verify the extension fields of an NTP response and extract identifier and new cookies.

    Raises NTSError when the fields are malformed or not authentic.
    """
    data = bytes(data)
    if not _NTP_HEADER_SIZE <= len(data) <= _MAX_PACKET_SIZE:
        raise ValueError("NTP packet has an invalid size")

    identifier: bytes | None = None
    offset = _NTP_HEADER_SIZE
    while len(data) - offset >= 4:
        field_type, length = struct.unpack_from(">HH", data, offset)
        if length < 4 or len(data) - offset < length:
            raise _reject()

        if field_type == _FieldType.UNIQUE_IDENTIFIER:
            if length - 4 != _UNIQUE_ID_SIZE:
                raise _reject()
            identifier = data[offset + 4:offset + length]
        elif field_type == _FieldType.AUTH_ENC_EXT_FIELDS:
            if length < 8:
                raise _reject()
            nonce_len, cipher_len = struct.unpack_from(">HH", data, offset + 4)
            if nonce_len + cipher_len + 8 > length:
                raise _reject()
            nonce_start = offset + 8
            content_start = nonce_start + nonce_len
            nonce = data[nonce_start:content_start]
            content = data[content_start:content_start + cipher_len]
            try:
                plaintext = decrypt(content, [data[:offset], nonce], query.cipher, query.s2c_key)
            except AEADError as exc:
                raise _reject() from exc
            cookies = _cookies(plaintext)
            # fields after this one are not authenticated and are ignored
            if identifier is None:
                raise _reject()
            return Receipt(identifier, cookies)

        offset += length

    raise _reject()