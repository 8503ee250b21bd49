from __future__ import annotations

import sys
from typing import Optional, TextIO

from echo_fixture.echo_server import EchoServer
from echo_fixture.settings import ServerSettings


def _publisher(stream: TextIO):
    def publish(base_url: str) -> None:
        # The launching process reads exactly one line: the base URL.
        stream.write(base_url + "\n")
        stream.flush()

    return publish


def main(settings: Optional[ServerSettings] = None, stream: Optional[TextIO] = None) -> int:
    server = EchoServer(settings=settings, on_ready=_publisher(stream or sys.stdout))
    try:
        server.start()
    except OSError as exc:
        print(f"echo-fixture: could not bind: {exc}", file=sys.stderr)
        return 1
    try:
        server.wait()
    except KeyboardInterrupt:
        pass
    finally:
        server.stop()
    return 0
