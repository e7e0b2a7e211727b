import contextlib
import socket
import struct
import threading

from ntsclient.qdntp import main
from ntsclient.sntp import ntp_time

HEADER = struct.Struct(">BBBBII4sQQQQ")


@contextlib.contextmanager
def udp_server(shift):
    server = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    server.bind(("127.0.0.1", 0))
    server.settimeout(10)

    def serve():
        with contextlib.suppress(OSError):
            request, address = server.recvfrom(2048)
            origin = int.from_bytes(request[40:48], "big")
            now = ntp_time() + (shift << 32)
            server.sendto(HEADER.pack(0o44, 1, 0, 0, 0, 0, b"LOCL", 0, origin, now, now), address)

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    try:
        yield server.getsockname()[1]
    finally:
        thread.join(timeout=10)
        server.close()


def test_usage_without_arguments(capsys):
    assert main([]) == 1
    assert capsys.readouterr().out == "qdntp [time server]\n"


def test_poll_prints_results(capsys):
    with udp_server(50) as port:
        assert main(["127.0.0.1", str(port)]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 2
    assert lines[0].startswith("roundtrip delay: ")
    assert lines[1].startswith("offset: ")
    assert abs(float(lines[1].split(": ")[1]) - 50) < 1