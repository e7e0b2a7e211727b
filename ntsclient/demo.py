"""Command that performs NTS key establishment with a server and then one NTS-protected NTP poll."""

from __future__ import annotations

import socket
import sys
from collections.abc import Sequence

from .aead import AEADAlgorithm, get_param
from .errors import ErrorType, NTSError
from .extfields import Query
from .packet import Agreement, decode_response, encode_request
from .sntp import nts_poll
from .tls import TLSSession, attach_socket

DEFAULT_HOST = "time.tweede.golf"
NTSKE_PORT = 4460
NTP_PORT = 123
_BUFFER_SIZE = 65536
_MAX_AEADS = 3
_KEY_CAPACITY = 64
_EXTRA_COOKIES = 2
_SHOWN_COOKIES = 8


def _parse_aeads(args: Sequence[str]) -> list[AEADAlgorithm]:
    """Map abbreviated algorithm names to identifiers; arguments shorter than 3 characters are skipped."""
    preferences = []
    for arg in args:
        if len(arg) < 3:
            continue
        for algorithm in AEADAlgorithm:
            name = f"AEAD_{algorithm.name}"
            if arg in name:
                break
        else:
            raise ValueError(f"unknown AEAD: {arg}")
        preferences.append(algorithm)
        if get_param(algorithm) is None:
            print(f"warning: AEAD {name} is not supported by this build")
    return preferences


def _receive_agreement(session: TLSSession) -> Agreement | None:
    buffer = bytearray()
    while True:
        if len(buffer) >= _BUFFER_SIZE:
            print("NTS error: response does not fit in the buffer")
            return None
        chunk = session.read(_BUFFER_SIZE - len(buffer))
        if not chunk:
            continue
        buffer += chunk
        try:
            return decode_response(bytes(buffer))
        except NTSError as exc:
            print(f"NTS error: {exc} (read: {len(chunk)} bytes)")
            if exc.error != ErrorType.INSUFFICIENT_DATA:
                return None


def main(argv: Sequence[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    hostname = args[0] if args else DEFAULT_HOST
    aead_args = args[1:]

    if len(aead_args) > _MAX_AEADS:
        print("too many AEAD's specified")
        return -1
    preferences = None
    if aead_args:
        try:
            preferences = _parse_aeads(aead_args)
        except ValueError as exc:
            print(exc)
            return -1

    sock = attach_socket(hostname, NTSKE_PORT, socket.SOCK_STREAM)
    with TLSSession(hostname, sock) as session:
        while not session.handshake():
            pass

        request = encode_request(preferences)
        if session.write(request) < len(request):
            print("failed to write request")
            return -1

        agreement = _receive_agreement(session)
        if agreement is None:
            return -1

        param = get_param(agreement.aead_id)
        print(f"selected AEAD: {param.cipher_name}")

        ntp_host = agreement.ntp_server or hostname
        ntp_port = agreement.ntp_port or NTP_PORT
        print(f"ntp server: {ntp_host}:{ntp_port}")
        for number in range(_SHOWN_COOKIES):
            if number < len(agreement.cookies):
                shown = agreement.cookies[number].hex()
            else:
                shown = "<absent>"
            print(f"cookie{number + 1}: {shown}")

        if not agreement.cookies:
            print("NTS error: no cookies received")
            return -1

        c2s, s2c = session.extract_keys(agreement.aead_id, _KEY_CAPACITY)

    query = Query(
        cookie=agreement.cookies[0],
        c2s_key=c2s,
        s2c_key=s2c,
        cipher=param,
        extra_cookies=_EXTRA_COOKIES,
    )
    result = nts_poll(ntp_host, ntp_port, query)

    requested = query.extra_cookies + 1
    print(f"cookie*: {query.cookie.hex()}")
    note = " (LESS THAN REQUESTED)" if result.new_cookies < requested else ""
    print(f"fresh cookies: {result.new_cookies}{note}")
    print(f"roundtrip delay: {result.delay:f}")
    print(f"offset: {result.offset:f}")
    return 0


if __name__ == "__main__":
    sys.exit(main())