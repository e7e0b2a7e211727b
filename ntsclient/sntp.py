"""A simple (S)NTP client that can protect its requests with NTS."""

from __future__ import annotations

import os
import socket
import struct
import time
from dataclasses import dataclass

from .errors import ErrorType, NTSError
from .extfields import Query, add_extension_fields, parse_extension_fields
from .tls import attach_socket

_HEADER = struct.Struct(">BBBBII4sQQQQ")
_NTP_EPOCH_OFFSET = 2208988800
_MASK64 = (1 << 64) - 1
_CLIENT_LI_VN_MODE = 0o43
_SERVER_VN_MODE = 0o44
_MAX_PACKET_SIZE = 1280
_UNIQUE_ID_SIZE = 32
_NANOS = 1_000_000_000


@dataclass(frozen=True)
class PollResult:
    """Outcome of one NTP exchange; times are in seconds."""

    delay: float
    offset: float
    new_cookies: int = 0


def ntp_time() -> int:
    """Current time as a 64-bit NTP timestamp (32.32 fixed point since 1900)."""
    seconds, nanos = divmod(time.time_ns(), _NANOS)
    fraction = nanos * (1 << 32) // _NANOS
    return (((seconds + _NTP_EPOCH_OFFSET) << 32) | fraction) & _MASK64


def _check_nts(response: bytes, query: Query, unique: bytes) -> int:
    if len(response) <= _HEADER.size:
        raise NTSError(ErrorType.BAD_RESPONSE)
    receipt = parse_extension_fields(response, query)
    if receipt.identifier != unique or not receipt.new_cookies:
        raise NTSError(ErrorType.BAD_RESPONSE)
    fresh = receipt.new_cookies[0]
    if len(fresh) > len(query.cookie):
        raise NTSError(ErrorType.BAD_RESPONSE)
    query.cookie = fresh
    return len(receipt.new_cookies)


def nts_poll(host: str, port: int, query: Query | None = None) -> PollResult:
    """Query an NTP server once; with a query, the exchange is protected by NTS.

    On success the query's cookie is replaced by the first fresh cookie.
    """
    with attach_socket(host, port, socket.SOCK_DGRAM) as sock:
        start = ntp_time()
        request = _HEADER.pack(_CLIENT_LI_VN_MODE, 0, 0, 0, 0, 0, bytes(4), 0, 0, 0, start)
        unique = b""
        if query is not None:
            unique = os.urandom(_UNIQUE_ID_SIZE)
            request = add_extension_fields(request, query, unique)
        if sock.send(request) != len(request):
            raise OSError("NTP request was not sent completely")
        response = sock.recv(_MAX_PACKET_SIZE)

    if len(response) < _HEADER.size:
        raise ValueError("NTP response is too short")
    li_vn_mode, stratum, _, _, _, _, reference_id, _, origin, receive, transmit = (
        _HEADER.unpack_from(response)
    )
    if li_vn_mode & 0o77 != _SERVER_VN_MODE:
        raise ValueError("NTP response has an unexpected version or mode")
    if stratum == 0:
        code = reference_id.decode("ascii", errors="replace")
        raise ValueError(f"Kiss of death: {code}")
    if origin != start:
        raise ValueError("NTP response does not answer this request")

    new_cookies = _check_nts(response, query, unique) if query is not None else 0

    t1, t2, t3, t4 = start, receive, transmit, ntp_time()
    delay = (t4 - t1) - (t3 - t2)
    offset = ((t2 - t1) + (t3 - t4)) / 2
    return PollResult(delay / (1 << 32), offset / (1 << 32), new_cookies)


def ntp_poll(host: str, port: int) -> PollResult:
    """Query an NTP server once without NTS."""
    return nts_poll(host, port, None)