"""Command that polls an NTP server once and prints the delay and offset."""

from __future__ import annotations

import sys
from collections.abc import Sequence

from .sntp import ntp_poll

NTP_PORT = 123


def main(argv: Sequence[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("qdntp [time server]")
        return 1

    host = args[0]
    port = int(args[1]) if len(args) > 1 else NTP_PORT

    result = ntp_poll(host, port)
    print(f"roundtrip delay: {result.delay:g}")
    print(f"offset: {result.offset:g}")
    return 0


if __name__ == "__main__":
    sys.exit(main())