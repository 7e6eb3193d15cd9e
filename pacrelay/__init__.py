"""Local PAC file server, GFWList rule builder, HTTP-to-SOCKS5 relay and display helpers."""

__version__ = "1.4.0"

__all__ = [
    "cli",
    "colorgrid",
    "colorpicker",
    "httpproxy",
    "logger",
    "pachelper",
    "pacserver",
    "statusbar",
    "userrules",
]