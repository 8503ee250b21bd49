from __future__ import annotations

from dataclasses import dataclass

LOOPBACK_HOST = "localhost"


@dataclass(frozen=True)
class ServerSettings:
    host: str = LOOPBACK_HOST
    port: int = 0
    quiet: bool = True

    def base_url(self, bound_port: int) -> str:
        return f"http://{self.host}:{int(bound_port)}"
