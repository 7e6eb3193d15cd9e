"""A small HTTP server that offers proxy.pac to browsers."""

from __future__ import annotations

import socket
import threading
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import urlsplit

from . import logger
from .userrules import pac_dir

SERVER_NAME = "pacrelay"
PAC_CONTENT_TYPE = "application/x-ns-proxy-autoconfig"
PAC_REQUEST_PATH = "/proxy.pac"


def listen_address(enable_ipv6: bool, share_over_lan: bool) -> str:
    """Address to bind to for the given inbound settings."""
    if enable_ipv6:
        return "::" if share_over_lan else "::1"
    return "0.0.0.0" if share_over_lan else "127.0.0.1"


@dataclass(frozen=True)
class PacResponse:
    """Status, headers and body of a reply."""

    status: int
    headers: Dict[str, str]
    body: bytes = b""


class _Handler(BaseHTTPRequestHandler):
    def _respond(self) -> None:
        response = self.server.pac_server.handle_request(self.command, self.path)  # type: ignore[attr-defined]
        self.send_response_only(response.status)
        for name, value in response.headers.items():
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(response.body)))
        self.end_headers()
        if response.body:
            self.wfile.write(response.body)
        self.close_connection = True

    do_GET = do_POST = do_PUT = do_DELETE = do_HEAD = do_OPTIONS = do_PATCH = _respond

    def log_message(self, format: str, *args: object) -> None:
        logger.debug("[PAC Server] " + format % args)


class _Server(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address, pac_server: "PacServer", family: int) -> None:
        self.address_family = family
        self.pac_server = pac_server
        super().__init__(address, _Handler)


@dataclass
class PacServer:
    """Serves the file at *pac_path* under /proxy.pac."""

    pac_path: Path = field(default_factory=lambda: pac_dir() / "proxy.pac")
    port: int = 8070
    enable_ipv6: bool = False
    share_over_lan: bool = False
    _server: Optional[_Server] = field(default=None, init=False, repr=False)
    _thread: Optional[threading.Thread] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.pac_path = Path(self.pac_path)

    @property
    def address(self) -> str:
        """Address the server binds to."""
        return listen_address(self.enable_ipv6, self.share_over_lan)

    @property
    def bound_port(self) -> Optional[int]:
        """Port actually in use, or None when not listening."""
        if self._server is None:
            return None
        return self._server.server_address[1]

    def load_pac_file(self) -> str:
        """Current PAC text, or an empty string when the file is missing."""
        try:
            return self.pac_path.read_bytes().decode("utf-8", errors="replace")
        except FileNotFoundError:
            return ""

    def handle_request(self, method: str, path: str) -> PacResponse:
        """Reply for a request; only GET /proxy.pac is served."""
        if urlsplit(path).path == PAC_REQUEST_PATH and method == "GET":
            headers = {
                "Server": SERVER_NAME,
                "Content-Type": PAC_CONTENT_TYPE,
                "Connection": "close",
            }
            return PacResponse(200, headers, self.load_pac_file().encode("utf-8"))
        return PacResponse(404, {"Server": SERVER_NAME, "Connection": "close"})

    def listen(self) -> bool:
        """Start serving in the background; return False if binding fails."""
        self.close()
        addr = self.address
        family = socket.AF_INET6 if ":" in addr else socket.AF_INET
        try:
            server = _Server((addr, self.port), self, family)
        except OSError:
            logger.warning(
                f"[PAC Server] failed to listen on {addr}:{self.port}, PAC will not be functional"
            )
            return False
        self._server = server
        self._thread = threading.Thread(target=server.serve_forever, daemon=True)
        self._thread.start()
        return True

    def close(self) -> None:
        """Stop serving; harmless when not listening."""
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def __enter__(self) -> "PacServer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()