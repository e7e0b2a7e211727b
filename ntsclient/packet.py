"""Encoding of NTS key-establishment requests and decoding of the server's response."""

from __future__ import annotations

import struct
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import IntEnum

from .aead import AEADAlgorithm, get_param
from .errors import ErrorType, NTSError

_CRITICAL = 0x8000
_PROTO_NTPV4 = 0
_MAX_COOKIES = 8
_MAX_SERVER_NAME = 255
_DEFAULT_AEAD = (AEADAlgorithm.AES_SIV_CMAC_256, AEADAlgorithm.AES_SIV_CMAC_512)


class RecordType(IntEnum):
    """NTS-KE record types."""

    END_OF_MESSAGE = 0
    NEXT_PROTO = 1
    ERROR = 2
    WARNING = 3
    AEAD_ALGORITHM = 4
    NTPV4_COOKIE = 5
    NTPV4_SERVER = 6
    NTPV4_PORT = 7
    # makes chrony use the compliant key derivation for AES-128-GCM-SIV
    CHRONY_BUG_WORKAROUND = 1024


@dataclass
class Agreement:
    """What the server agreed to during key establishment."""

    aead_id: AEADAlgorithm
    ntp_server: str | None = None
    ntp_port: int = 0
    cookies: list[bytes] = field(default_factory=list)


def _encode_record(record_type: int, words: Iterable[int] = (), critical: bool = False) -> bytes:
    words = list(words)
    if len(words) >= 0x8000:
        raise ValueError("too many values for a single NTS-KE record")
    if critical:
        record_type |= _CRITICAL
    return struct.pack(f">HH{len(words)}H", record_type, 2 * len(words), *words)


def encode_request(preferred: Iterable[int] | None = None) -> bytes:
    """Build an NTS-KE request offering NTPv4 and the given AEAD algorithms, in order of preference."""
    aead = _DEFAULT_AEAD if preferred is None else tuple(preferred)
    return b"".join((
        _encode_record(RecordType.NEXT_PROTO, [_PROTO_NTPV4], critical=True),
        _encode_record(RecordType.AEAD_ALGORITHM, aead, critical=True),
        _encode_record(RecordType.CHRONY_BUG_WORKAROUND),
        _encode_record(RecordType.END_OF_MESSAGE, critical=True),
    ))


def _check_record(record_type: int, size: int, critical: bool) -> None:
    if record_type in (RecordType.ERROR, RecordType.WARNING, RecordType.NTPV4_PORT):
        consistent = size == 2
    elif record_type == RecordType.END_OF_MESSAGE:
        consistent = size == 0
    elif record_type in (RecordType.AEAD_ALGORITHM, RecordType.NEXT_PROTO):
        consistent = size % 2 == 0
    elif record_type in (RecordType.NTPV4_SERVER, RecordType.NTPV4_COOKIE):
        consistent = True
    elif critical:
        raise NTSError(ErrorType.UNKNOWN_CRIT_RECORD)
    else:
        consistent = True
    if not consistent:
        raise NTSError(ErrorType.BAD_RESPONSE)


def _records(data: bytes) -> Iterator[tuple[int, bytes]]:
    offset = 0
    while offset < len(data):
        remaining = len(data) - offset
        if remaining < 4:
            raise NTSError(ErrorType.INSUFFICIENT_DATA)
        raw_type, size = struct.unpack_from(">HH", data, offset)
        if size > remaining - 4:
            raise NTSError(ErrorType.INSUFFICIENT_DATA)
        record_type = raw_type & ~_CRITICAL
        body = data[offset + 4:offset + 4 + size]
        offset += 4 + size
        _check_record(record_type, size, bool(raw_type & _CRITICAL))
        yield record_type, body


def _words(body: bytes) -> list[int]:
    return [word for (word,) in struct.iter_unpack(">H", body)]


def decode_response(data: bytes) -> Agreement:
    """Decode an NTS-KE response.

    Raises NTSError with the server's code on an error record, and with
    INSUFFICIENT_DATA when the message is not complete yet.
    """
    data = bytes(data)
    is_ntp4 = False
    aead_id: AEADAlgorithm | None = None
    ntp_server: str | None = None
    ntp_port = 0
    cookies: list[bytes] = []

    for record_type, body in _records(data):
        if record_type == RecordType.ERROR:
            raise NTSError(_words(body)[0])
        if record_type == RecordType.WARNING:
            raise NTSError(ErrorType.UNEXPECTED_WARNING)
        if record_type == RecordType.END_OF_MESSAGE:
            if is_ntp4 and aead_id is not None:
                return Agreement(aead_id, ntp_server, ntp_port, cookies)
            raise NTSError(ErrorType.BAD_RESPONSE)
        if record_type == RecordType.NEXT_PROTO:
            if _PROTO_NTPV4 not in _words(body):
                raise NTSError(ErrorType.NO_PROTOCOL)
            is_ntp4 = True
        elif record_type == RecordType.AEAD_ALGORITHM:
            offered = _words(body)
            param = get_param(offered[0]) if offered else None
            if param is None:
                raise NTSError(ErrorType.NO_AEAD)
            aead_id = param.aead_id
        elif record_type == RecordType.NTPV4_COOKIE:
            if len(cookies) < _MAX_COOKIES:
                cookies.append(body)
        elif record_type == RecordType.NTPV4_SERVER:
            if len(body) > _MAX_SERVER_NAME or not all(0x21 <= byte <= 0x7E for byte in body):
                raise NTSError(ErrorType.BAD_RESPONSE)
            ntp_server = body.decode("ascii")
        elif record_type == RecordType.NTPV4_PORT:
            ntp_port = _words(body)[0]

    raise NTSError(ErrorType.INSUFFICIENT_DATA)