"""Generation of the proxy.pac file from bundled templates and rule lists."""

from __future__ import annotations

import base64
import binascii
import http.client
import json
import re
import shutil
import socket
import ssl
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union
from urllib.parse import urlsplit

from .userrules import USER_RULE_FILE, UserRules, pac_dir

PAC_FILE = "proxy.pac"
GFWLIST_FILE = "gfwlist.txt"
GFWLIST_TEMPLATE = "trojan_gfw.pac"
LOCAL_HOST = "127.0.0.1"

PAC_TEMPLATES = {
    "LAN": "trojan_lanip.pac",
    "WHITE": "trojan_white.pac",
    "WHITE_ADVANCED": "trojan_white_advanced.pac",
    "WHITE_R": "trojan_white_r.pac",
    "CNIP": "trojan_cnip.pac",
    "GFWLIST": GFWLIST_TEMPLATE,
}

_BUNDLED_FILES = (USER_RULE_FILE, GFWLIST_FILE, *PAC_TEMPLATES.values())
_NON_BASE64 = re.compile(rb"[^A-Za-z0-9+/]")


def filter_rules(lines: Iterable[str]) -> List[str]:
    """Drop empty lines, comments ("!") and section headers ("[")."""
    return [line for line in lines if line and not line.startswith(("!", "["))]


def decode_gfwlist(data: Union[bytes, str]) -> List[str]:
    """Decode a base64 rule list leniently and split it into lines."""
    if isinstance(data, str):
        data = data.encode("ascii", errors="ignore")
    cleaned = _NON_BASE64.sub(b"", data)
    if len(cleaned) % 4 == 1:
        cleaned = cleaned[:-1]
    cleaned += b"=" * (-len(cleaned) % 4)
    try:
        raw = base64.b64decode(cleaned)
    except binascii.Error:
        raw = b""
    return raw.decode("utf-8", errors="replace").split("\n")


def fill_template(
    text: str,
    socks5_port: int,
    http_port: int,
    rules: Optional[Sequence[str]] = None,
) -> str:
    """Substitute the proxy placeholders and, if given, the rule list."""
    text = text.replace("__SOCKS5__", f"SOCKS5 {LOCAL_HOST}:{socks5_port}")
    text = text.replace("__SOCKS__", f"SOCKS {LOCAL_HOST}:{socks5_port}")
    text = text.replace("__PROXY__", f"PROXY {LOCAL_HOST}:{http_port}")
    if rules is not None:
        text = text.replace("__RULES__", json.dumps(list(rules), indent=4, ensure_ascii=False) + "\n")
    return text


def _recv_exact(sock: socket.socket, count: int) -> bytes:
    data = bytearray()
    while len(data) < count:
        chunk = sock.recv(count - len(data))
        if not chunk:
            raise ConnectionError("SOCKS5 proxy closed the connection")
        data += chunk
    return bytes(data)


def _socks5_tunnel(host: str, port: int, proxy: Tuple[str, int], timeout: float) -> socket.socket:
    sock = socket.create_connection(proxy, timeout=timeout)
    try:
        sock.sendall(b"\x05\x01\x00")
        if _recv_exact(sock, 2) != b"\x05\x00":
            raise ConnectionError("SOCKS5 proxy refused the authentication method")
        name = host.encode("idna")
        if len(name) > 255:
            raise ValueError(f"host name too long: {host}")
        sock.sendall(b"\x05\x01\x00\x03" + bytes([len(name)]) + name + port.to_bytes(2, "big"))
        _, reply, _, atyp = _recv_exact(sock, 4)
        if reply != 0:
            raise ConnectionError(f"SOCKS5 proxy failed to connect (reply {reply})")
        if atyp == 1:
            _recv_exact(sock, 4)
        elif atyp == 4:
            _recv_exact(sock, 16)
        elif atyp == 3:
            _recv_exact(sock, _recv_exact(sock, 1)[0])
        else:
            raise ConnectionError(f"SOCKS5 proxy sent unknown address type {atyp}")
        _recv_exact(sock, 2)
    except BaseException:
        sock.close()
        raise
    return sock


class _SocksHTTPConnection(http.client.HTTPConnection):
    def __init__(self, host: str, port: int, proxy: Tuple[str, int], timeout: float) -> None:
        super().__init__(host, port, timeout=timeout)
        self._proxy = proxy

    def connect(self) -> None:
        self.sock = _socks5_tunnel(self.host, self.port, self._proxy, self.timeout)


class _SocksHTTPSConnection(http.client.HTTPSConnection):
    def __init__(self, host: str, port: int, proxy: Tuple[str, int], timeout: float) -> None:
        self._tls = ssl.create_default_context()
        super().__init__(host, port, timeout=timeout, context=self._tls)
        self._proxy = proxy

    def connect(self) -> None:
        raw = _socks5_tunnel(self.host, self.port, self._proxy, self.timeout)
        self.sock = self._tls.wrap_socket(raw, server_hostname=self.host)


@dataclass
class PacHelper:
    """Keeps the PAC directory populated and regenerates proxy.pac.

    *gfwlist_url* selects a remote rule list fetched through the local
    SOCKS5 proxy; when it is None the local gfwlist.txt is used.
    *on_reload* is called after every mode change so that the system
    proxy settings can be refreshed.
    """

    directory: Path = field(default_factory=pac_dir)
    socks5_port: int = 1080
    http_port: int = 1081
    pac_port: int = 8070
    gfwlist_url: Optional[str] = None
    template_dir: Optional[Path] = None
    on_reload: Optional[Callable[[], None]] = None
    timeout: float = 30.0

    def __post_init__(self) -> None:
        self.directory = Path(self.directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        if self.template_dir is not None:
            source = Path(self.template_dir)
            for name in _BUNDLED_FILES:
                src, dest = source / name, self.directory / name
                if src.is_file() and not dest.exists():
                    shutil.copyfile(src, dest)
        if not self.pac_path.exists() and (self.directory / GFWLIST_TEMPLATE).is_file():
            self.type_modify("GFWLIST")

    @property
    def pac_path(self) -> Path:
        """Path of the generated proxy.pac."""
        return self.directory / PAC_FILE

    @property
    def gfwlist_path(self) -> Path:
        """Path of the local base64 rule list."""
        return self.directory / GFWLIST_FILE

    def request(self, url: str) -> bytes:
        """GET *url* through the local SOCKS5 proxy and return the body."""
        parts = urlsplit(url)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise ValueError(f"unsupported URL: {url}")
        https = parts.scheme == "https"
        port = parts.port or (443 if https else 80)
        target = parts.path or "/"
        if parts.query:
            target += "?" + parts.query
        proxy = (LOCAL_HOST, self.socks5_port)
        factory = _SocksHTTPSConnection if https else _SocksHTTPConnection
        conn = factory(parts.hostname, port, proxy, self.timeout)
        try:
            conn.request("GET", target, headers={"Connection": "close"})
            return conn.getresponse().read()
        finally:
            conn.close()

    def load_rules(self) -> List[str]:
        """Combined rule list from the gfwlist source and the user rules."""
        if self.gfwlist_url is not None:
            data = self.request(self.gfwlist_url)
        else:
            try:
                data = self.gfwlist_path.read_bytes()
            except FileNotFoundError:
                data = b""
        rules = filter_rules(decode_gfwlist(data))
        rules.extend(filter_rules(UserRules(self.directory).load().split("\n")))
        return rules

    def modify(self, filename: Union[str, Path]) -> None:
        """Regenerate proxy.pac from the template *filename*."""
        template = Path(filename)
        text = template.read_bytes().decode("utf-8", errors="replace")
        rules = self.load_rules() if template == self.directory / GFWLIST_TEMPLATE else None
        content = fill_template(text, self.socks5_port, self.http_port, rules)
        self.pac_path.unlink(missing_ok=True)
        self.pac_path.write_bytes(content.encode("utf-8"))

    def type_modify(self, pac_type: str) -> None:
        """Switch proxy.pac to the mode *pac_type*; unknown modes change nothing."""
        name = PAC_TEMPLATES.get(pac_type)
        if name is not None:
            self.modify(self.directory / name)
        if self.on_reload is not None:
            self.on_reload()

    def pac_url(self) -> str:
        """URL at which the local PAC server offers proxy.pac."""
        return f"http://{LOCAL_HOST}:{self.pac_port}/{PAC_FILE}"