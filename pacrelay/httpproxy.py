"""An HTTP proxy that forwards every request through an upstream SOCKS5 proxy."""

from __future__ import annotations

import asyncio
import ipaddress
from dataclasses import dataclass
from typing import Dict, Optional, Set, Tuple
from urllib.parse import urlsplit

from . import logger

CONNECT_ESTABLISHED = b"HTTP/1.0 200 Connection established\r\n\r\n"
MAX_PENDING_CONNECTIONS = 1024
DEFAULT_HTTP_PORT = 80

_CHUNK = 65536


@dataclass(frozen=True)
class ProxyRequest:
    """Where a client request goes and the bytes to send there."""

    method: str
    host: str
    port: int
    payload: bytes

    @property
    def is_connect(self) -> bool:
        """True for a CONNECT tunnel request."""
        return self.method == "CONNECT"

    @property
    def key(self) -> str:
        """Identifier of the upstream connection, "host:port"."""
        return f"{self.host}:{self.port}"


def _to_port(raw: bytes) -> int:
    text = raw.strip()
    if text.isdigit():
        value = int(text)
        if value <= 0xFFFF:
            return value
    return 0


def parse_request(data: bytes) -> ProxyRequest:
    """Parse the start of a client request.

    For ordinary requests the absolute URL in the request line is turned
    into a path so that the payload can go straight to the origin server.
    For CONNECT the payload holds whatever followed the request line.
    Raises ValueError when the request line is missing or the URL is unusable.
    """
    line, sep, rest = data.partition(b"\r\n")
    if not sep:
        raise ValueError("incomplete request line")
    entries = line.split(b" ")
    method = entries[0]
    address = entries[1] if len(entries) > 1 else b""
    version = entries[2] if len(entries) > 2 else b""
    method_text = method.decode("latin-1")

    if method == b"CONNECT":
        parts = address.split(b":")
        host = parts[0].decode("utf-8", errors="replace")
        return ProxyRequest(method_text, host, _to_port(parts[-1]), rest)

    try:
        url = urlsplit(address.decode("ascii"))
    except UnicodeDecodeError as exc:
        raise ValueError(f"invalid URL: {address!r}") from exc
    host = url.hostname
    if not host:
        raise ValueError(f"invalid URL: {address!r}")
    port = url.port
    if port is None:
        port = DEFAULT_HTTP_PORT
    target = url.path or "/"
    if url.query:
        target += "?" + url.query
    payload = method + b" " + target.encode("utf-8") + b" " + version + b"\r\n" + rest
    return ProxyRequest(method_text, host, port, payload)


def _encode_address(host: str) -> bytes:
    if not host:
        raise ValueError("empty host name")
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        name = host.encode("idna")
        if len(name) > 255:
            raise ValueError(f"host name too long: {host}") from None
        return b"\x03" + bytes([len(name)]) + name
    if address.version == 4:
        return b"\x01" + address.packed
    return b"\x04" + address.packed


async def socks5_connect(
    host: str, port: int, proxy_host: str, proxy_port: int
) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Open a stream to *host*:*port* through the SOCKS5 proxy at *proxy_host*:*proxy_port*."""
    if not 0 <= port <= 0xFFFF:
        raise ValueError(f"port out of range: {port}")
    request = b"\x05\x01\x00" + _encode_address(host) + port.to_bytes(2, "big")
    reader, writer = await asyncio.open_connection(proxy_host, proxy_port)
    try:
        writer.write(b"\x05\x01\x00")
        await writer.drain()
        if await reader.readexactly(2) != b"\x05\x00":
            raise ConnectionError("SOCKS5 proxy refused the authentication method")
        writer.write(request)
        await writer.drain()
        _, reply, _, atyp = await reader.readexactly(4)
        if reply != 0:
            raise ConnectionError(f"SOCKS5 proxy failed to connect (reply {reply})")
        if atyp == 1:
            await reader.readexactly(4)
        elif atyp == 4:
            await reader.readexactly(16)
        elif atyp == 3:
            await reader.readexactly((await reader.readexactly(1))[0])
        else:
            raise ConnectionError(f"SOCKS5 proxy sent unknown address type {atyp}")
        await reader.readexactly(2)
    except asyncio.IncompleteReadError as exc:
        writer.close()
        raise ConnectionError("SOCKS5 proxy closed the connection") from exc
    except BaseException:
        writer.close()
        raise
    return reader, writer


async def _pipe(src: asyncio.StreamReader, dst: asyncio.StreamWriter) -> None:
    try:
        while data := await src.read(_CHUNK):
            dst.write(data)
            await dst.drain()
    except OSError:
        pass


class HttpProxy:
    """Accepts HTTP and HTTPS (CONNECT) proxy clients and relays them via SOCKS5."""

    def __init__(self, socks_host: str, socks_port: int) -> None:
        self.socks_host = socks_host
        self.socks_port = socks_port
        self._server: Optional[asyncio.AbstractServer] = None
        self._writers: Set[asyncio.StreamWriter] = set()

    @property
    def listening(self) -> bool:
        """Whether the proxy is accepting connections."""
        return self._server is not None

    async def listen(self, host: str, port: int) -> int:
        """Start accepting clients on *host*:*port*; return the bound port."""
        if self._server is not None:
            raise RuntimeError("already listening")
        self._server = await asyncio.start_server(
            self._handle_client, host, port, backlog=MAX_PENDING_CONNECTIONS
        )
        return self._server.sockets[0].getsockname()[1]

    async def close(self) -> None:
        """Stop listening and close every client and upstream connection."""
        server, self._server = self._server, None
        if server is not None:
            server.close()
        for writer in list(self._writers):
            writer.close()
        if server is not None:
            await server.wait_closed()

    async def __aenter__(self) -> "HttpProxy":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        self._writers.add(writer)
        upstreams: Dict[str, asyncio.StreamWriter] = {}
        relays: Set[asyncio.Task] = set()
        try:
            while True:
                data = await reader.read(_CHUNK)
                if not data:
                    return
                try:
                    request = parse_request(data)
                except ValueError as exc:
                    logger.debug(f"[HTTP Proxy] dropping client: {exc}")
                    return
                if not request.is_connect:
                    existing = upstreams.get(request.key)
                    if existing is not None and not existing.is_closing():
                        existing.write(request.payload)
                        await existing.drain()
                        continue
                try:
                    up_reader, up_writer = await socks5_connect(
                        request.host, request.port, self.socks_host, self.socks_port
                    )
                except (OSError, ValueError) as exc:
                    logger.debug(f"[HTTP Proxy] cannot reach {request.key}: {exc}")
                    continue
                self._writers.add(up_writer)
                if request.is_connect:
                    writer.write(CONNECT_ESTABLISHED)
                    await writer.drain()
                    await self._tunnel(reader, writer, up_reader, up_writer)
                    return
                up_writer.write(request.payload)
                await up_writer.drain()
                upstreams[request.key] = up_writer
                task = asyncio.create_task(
                    self._relay(request.key, up_reader, up_writer, writer, upstreams)
                )
                relays.add(task)
                task.add_done_callback(relays.discard)
        except OSError:
            pass
        finally:
            pending = list(relays)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            for up_writer in list(upstreams.values()):
                up_writer.close()
                self._writers.discard(up_writer)
            writer.close()
            self._writers.discard(writer)

    async def _relay(
        self,
        key: str,
        up_reader: asyncio.StreamReader,
        up_writer: asyncio.StreamWriter,
        client_writer: asyncio.StreamWriter,
        upstreams: Dict[str, asyncio.StreamWriter],
    ) -> None:
        try:
            await _pipe(up_reader, client_writer)
        finally:
            if upstreams.get(key) is up_writer:
                del upstreams[key]
            up_writer.close()
            self._writers.discard(up_writer)

    async def _tunnel(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        up_reader: asyncio.StreamReader,
        up_writer: asyncio.StreamWriter,
    ) -> None:
        tasks = {
            asyncio.create_task(_pipe(reader, up_writer)),
            asyncio.create_task(_pipe(up_reader, writer)),
        }
        try:
            _, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
        finally:
            up_writer.close()
            self._writers.discard(up_writer)