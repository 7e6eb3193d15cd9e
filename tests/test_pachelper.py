import base64
import json
import socket
import threading

import pytest

from pacrelay.pachelper import (
    PAC_TEMPLATES,
    PacHelper,
    decode_gfwlist,
    fill_template,
    filter_rules,
)


def _recv_exact(conn, count):
    data = b""
    while len(data) < count:
        chunk = conn.recv(count - len(data))
        if not chunk:
            raise ConnectionError
        data += chunk
    return data


class _FakeSocks:
    def __init__(self, method_reply=b"\x05\x00", body=b"hello"):
        self.method_reply = method_reply
        self.body = body
        self.target = None
        self.request_head = b""
        self.sock = socket.socket()
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(1)
        self.port = self.sock.getsockname()[1]
        self.thread = threading.Thread(target=self._serve, daemon=True)
        self.thread.start()

    def _serve(self):
        try:
            conn, _ = self.sock.accept()
        except OSError:
            return
        with conn:
            conn.settimeout(5)
            _recv_exact(conn, 3)
            conn.sendall(self.method_reply)
            if self.method_reply != b"\x05\x00":
                return
            _recv_exact(conn, 4)
            length = _recv_exact(conn, 1)[0]
            host = _recv_exact(conn, length).decode()
            port = int.from_bytes(_recv_exact(conn, 2), "big")
            self.target = (host, port)
            conn.sendall(b"\x05\x00\x00\x01" + bytes(6))
            data = b""
            while b"\r\n\r\n" not in data:
                chunk = conn.recv(4096)
                if not chunk:
                    break
                data += chunk
            self.request_head = data
            conn.sendall(
                b"HTTP/1.1 200 OK\r\nContent-Length: %d\r\nConnection: close\r\n\r\n"
                % len(self.body)
                + self.body
            )

    def close(self):
        self.sock.close()
        self.thread.join(5)


@pytest.fixture
def templates(tmp_path):
    src = tmp_path / "templates"
    src.mkdir()
    for name in PAC_TEMPLATES.values():
        (src / name).write_text(f"// {name}\nvar proxy = '__SOCKS5__; __PROXY__';\n")
    (src / "trojan_gfw.pac").write_text("var rules = __RULES__;\nvar proxy = '__SOCKS5__';\n")
    gfw = "[AutoProxy]\n! comment\n||example.com\n\n|http://example.org\n"
    (src / "gfwlist.txt").write_bytes(base64.encodebytes(gfw.encode()))
    (src / "user-rule.txt").write_text("! mine\n||example.net\n")
    return src


def _rules_in(text):
    start = text.index("var rules = ") + len("var rules = ")
    end = text.index(";", start)
    return json.loads(text[start:end])


def test_filter_rules_drops_comments_headers_and_blanks():
    lines = ["! comment", "[AutoProxy 0.2.9]", "", "||example.com", "@@||example.org"]
    assert filter_rules(lines) == ["||example.com", "@@||example.org"]


def test_decode_gfwlist_round_trip_with_wrapped_base64():
    text = "[AutoProxy]\n||example.com\n" + "||a.example.com\n" * 10
    encoded = base64.encodebytes(text.encode())
    assert b"\n" in encoded.strip()
    assert decode_gfwlist(encoded) == text.split("\n")


def test_decode_gfwlist_accepts_missing_padding_and_str():
    encoded = base64.b64encode(b"ab").decode().rstrip("=")
    assert decode_gfwlist(encoded) == ["ab"]


def test_fill_template_replaces_proxy_placeholders():
    text = "'__SOCKS5__; __SOCKS__; __PROXY__'"
    result = fill_template(text, 1080, 1081)
    assert result == "'SOCKS5 127.0.0.1:1080; SOCKS 127.0.0.1:1080; PROXY 127.0.0.1:1081'"


def test_fill_template_rules_round_trip():
    rules = ["||example.com", "@@||example.org"]
    result = fill_template("var rules = __RULES__;", 1, 2, rules)
    assert _rules_in(result) == rules


def test_fill_template_without_rules_keeps_placeholder():
    assert fill_template("var rules = __RULES__;", 1, 2) == "var rules = __RULES__;"


def test_init_generates_gfwlist_pac(tmp_path, templates):
    helper = PacHelper(tmp_path / "pac", socks5_port=2000, http_port=2001, template_dir=templates)
    text = helper.pac_path.read_text()
    assert _rules_in(text) == ["||example.com", "|http://example.org", "||example.net"]
    assert "SOCKS5 127.0.0.1:2000" in text


def test_init_keeps_existing_user_rules(tmp_path, templates):
    directory = tmp_path / "pac"
    directory.mkdir()
    (directory / "user-rule.txt").write_text("||keep.example.com\n")
    helper = PacHelper(directory, template_dir=templates)
    assert (directory / "user-rule.txt").read_text() == "||keep.example.com\n"
    assert "||keep.example.com" in helper.load_rules()


def test_type_modify_switches_template_and_reloads(tmp_path, templates):
    calls = []
    helper = PacHelper(
        tmp_path / "pac",
        socks5_port=3000,
        http_port=3001,
        template_dir=templates,
        on_reload=lambda: calls.append(1),
    )
    calls.clear()
    helper.type_modify("LAN")
    text = helper.pac_path.read_text()
    assert text.startswith("// trojan_lanip.pac")
    assert "SOCKS5 127.0.0.1:3000; PROXY 127.0.0.1:3001" in text
    assert calls == [1]


def test_type_modify_unknown_leaves_pac_unchanged(tmp_path, templates):
    calls = []
    helper = PacHelper(tmp_path / "pac", template_dir=templates, on_reload=lambda: calls.append(1))
    before = helper.pac_path.read_text()
    calls.clear()
    helper.type_modify("NOPE")
    assert helper.pac_path.read_text() == before
    assert calls == [1]


def test_modify_non_gfw_template_keeps_rules_placeholder(tmp_path):
    helper = PacHelper(tmp_path / "pac")
    template = tmp_path / "other.pac"
    template.write_text("var rules = __RULES__; '__SOCKS__'")
    helper.modify(template)
    assert helper.pac_path.read_text() == "var rules = __RULES__; 'SOCKS 127.0.0.1:1080'"


def test_modify_missing_template_raises(tmp_path):
    helper = PacHelper(tmp_path / "pac")
    with pytest.raises(FileNotFoundError):
        helper.modify(tmp_path / "missing.pac")


def test_load_rules_without_files_is_empty(tmp_path):
    helper = PacHelper(tmp_path / "pac")
    assert helper.load_rules() == []
    assert not helper.pac_path.exists()


def test_pac_url_uses_pac_port(tmp_path):
    helper = PacHelper(tmp_path / "pac", pac_port=9999)
    assert helper.pac_url() == "http://127.0.0.1:9999/proxy.pac"


def test_request_goes_through_socks5(tmp_path):
    fake = _FakeSocks(body=b"hello")
    try:
        helper = PacHelper(tmp_path / "pac", socks5_port=fake.port, timeout=5)
        body = helper.request("http://example.com/list.txt?q=1")
    finally:
        fake.close()
    assert body == b"hello"
    assert fake.target == ("example.com", 80)
    assert fake.request_head.startswith(b"GET /list.txt?q=1 HTTP/1.1\r\n")


def test_load_rules_from_remote_list(tmp_path):
    fake = _FakeSocks(body=base64.b64encode(b"! c\n||remote.example.com\n"))
    try:
        helper = PacHelper(
            tmp_path / "pac", socks5_port=fake.port, gfwlist_url="http://example.com/gfw", timeout=5
        )
        rules = helper.load_rules()
    finally:
        fake.close()
    assert rules == ["||remote.example.com"]


def test_request_refused_by_proxy(tmp_path):
    fake = _FakeSocks(method_reply=b"\x05\xff")
    try:
        helper = PacHelper(tmp_path / "pac", socks5_port=fake.port, timeout=5)
        with pytest.raises(ConnectionError):
            helper.request("http://example.com/")
    finally:
        fake.close()


def test_request_rejects_other_schemes(tmp_path):
    helper = PacHelper(tmp_path / "pac")
    with pytest.raises(ValueError):
        helper.request("ftp://example.com/file")