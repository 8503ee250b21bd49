from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import quote

from flask import Flask, Response, current_app, redirect, request
from werkzeug.routing import Rule
from werkzeug.serving import WSGIRequestHandler, make_server

from echo_fixture.charsets import encode_json, request_encoding, resolve_response_encoding
from echo_fixture.settings import ServerSettings

ReadyFn = Callable[[str], None]
RouteFn = Callable[[], Response]

# RFC 3986 pchar delimiters plus "/"; everything else stays percent-encoded.
PATH_SAFE = "/:@!$&'()*+,;="

# Headers the client stack or a browser adds on its own; never echoed.
IGNORED_HEADERS = frozenset(
    {
        "accept",
        "accept-language",
        "accept-encoding",
        "connection",
        "origin",
        "referer",
        "cookie",
        "host",
    }
)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "X-Random-Header,X-Other-Header,User-Agent,Content-Type",
    "Access-Control-Allow-Methods": "GET, PUT, POST, DELETE, PATCH, HEAD",
}


class QuietRequestHandler(WSGIRequestHandler):
    protocol_version = "HTTP/1.1"

    def log_request(self, _code: int | str = "-", _size: int | str = "-") -> None:
        return

    def log_message(self, _format: str, *args) -> None:
        return


class EchoServer:
    """Local HTTP server that reflects each request back to the caller.

    Besides the echo there are four fixed paths for exercising client edge
    cases:

    * ``/error`` answers 400 with an empty body.
    * ``/loop?<n>`` redirects to ``/loop?<n+1>``, forever.
    * ``/redirect`` redirects to ``/``.
    * ``/no-content-length`` streams ``body`` without a content-length.

    Anything else gets a JSON document::

        {"method": ..., "path": ..., "headers": {...}, "body": ...}

    ``start()`` binds first, hands the base URL to ``on_ready`` and only then
    begins accepting connections.
    """

    def __init__(self, settings: ServerSettings | None = None, on_ready: ReadyFn | None = None) -> None:
        self.settings = settings or ServerSettings()
        self._on_ready = on_ready
        self._app = Flask("echo_fixture_server", static_folder=None)
        self._server = None
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._base_url: Optional[str] = None
        self._routes: Tuple[Tuple[str, RouteFn], ...] = (
            ("error", self._error),
            ("loop", self._loop),
            ("redirect", self._redirect),
            ("no-content-length", self._no_content_length),
        )
        self._configure_logging()
        self._register_routes()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def base_url(self) -> Optional[str]:
        return self._base_url

    def start(self) -> str:
        with self._lock:
            if self.is_running and self._base_url is not None:
                return self._base_url
            server = make_server(
                self.settings.host,
                self.settings.port,
                self._app,
                threaded=True,
                request_handler=QuietRequestHandler if self.settings.quiet else WSGIRequestHandler,
            )
            base_url = self.settings.base_url(server.server_port)
            try:
                if self._on_ready is not None:
                    self._on_ready(base_url)
            except BaseException:
                server.server_close()
                raise
            self._server = server
            self._base_url = base_url
            self._thread = threading.Thread(target=server.serve_forever, name="echo-fixture", daemon=True)
            self._thread.start()
        self._app.logger.info("listening on %s", base_url)
        return base_url

    def stop(self) -> None:
        with self._lock:
            server = self._server
            thread = self._thread
            self._server = None
            self._thread = None
            self._base_url = None
        if server is not None:
            server.shutdown()
            server.server_close()
        if thread is not None:
            thread.join(timeout=2.0)
            self._app.logger.info("stopped")

    def wait(self, poll_interval: float = 0.5) -> None:
        thread = self._thread
        while thread is not None and thread.is_alive():
            thread.join(timeout=poll_interval)

    def __enter__(self) -> str:
        return self.start()

    def __exit__(self, *_exc_info) -> None:
        self.stop()

    def _configure_logging(self) -> None:
        level = logging.ERROR if self.settings.quiet else logging.INFO
        logging.getLogger("werkzeug").setLevel(level)
        self._app.logger.setLevel(level)

    def _register_routes(self) -> None:
        url_map = self._app.url_map
        url_map.merge_slashes = False
        # Rules without a method list match every verb, OPTIONS included.
        url_map.add(Rule("/", endpoint="dispatch", defaults={"path": ""}))
        url_map.add(Rule("/<path:path>", endpoint="dispatch"))
        self._app.view_functions["dispatch"] = self._dispatch

    def _dispatch(self, path: str) -> Response:
        # The path converter hands over a decoded path; match and echo the encoded form.
        path = quote(path, safe=PATH_SAFE)
        for route_path, handler in self._routes:
            if path == route_path:
                return handler()
        return self._echo(path)

    def _public_url(self) -> str:
        # Without a listener (test client) resolve against the request host.
        return self._base_url or request.host_url.rstrip("/")

    def _error(self) -> Response:
        return Response(b"", status=400)

    def _loop(self) -> Response:
        n = int(request.query_string.decode("ascii"))
        return redirect(f"{self._public_url()}/loop?{n + 1}", code=302)

    def _redirect(self) -> Response:
        return redirect(f"{self._public_url()}/", code=302)

    def _no_content_length(self) -> Response:
        # An iterator body leaves the length unknown, so werkzeug chunks it.
        return Response(iter([b"body"]), status=200)

    def _echo(self, path: str) -> Response:
        headers: Dict[str, str] = {}
        content: Dict[str, Any] = {"method": request.method, "path": path, "headers": headers}

        raw = request.get_data(cache=False)
        encoding = request_encoding(request.mimetype_params.get("charset"))
        if encoding is not None:
            text = raw.decode(encoding)
            if text:
                content["body"] = text
        elif raw:
            content["body"] = list(raw)

        for name, value in request.headers.items():
            name = name.lower()
            if name in IGNORED_HEADERS:
                continue
            headers[name] = value

        output_encoding = resolve_response_encoding(request.args.get("response-encoding"))
        return Response(
            encode_json(content, output_encoding, dumps=current_app.json.dumps),
            status=200,
            content_type=f"application/json; charset={output_encoding}",
            headers=CORS_HEADERS,
        )
