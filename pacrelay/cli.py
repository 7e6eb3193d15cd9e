"""Command line entry point: serve proxy.pac and, optionally, an HTTP proxy."""

from __future__ import annotations

import argparse
import asyncio
import signal
from pathlib import Path
from typing import Optional, Sequence, Union

from . import logger
from .httpproxy import HttpProxy
from .pachelper import LOCAL_HOST, PAC_TEMPLATES, PacHelper
from .pacserver import PacServer, listen_address

VERSION = "1.4.0"
CONFIG_FILE = "config.ini"
LOG_FILE = "gui.log"


def default_config_path(home: Optional[Union[str, Path]] = None) -> Path:
    """Location of the configuration file below *home* (the user's home by default)."""
    base = Path(home) if home is not None else Path.home()
    return base / ".config" / "trojan-qt5" / CONFIG_FILE


def _port(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a port number: {text}") from None
    if not 0 <= value <= 0xFFFF:
        raise argparse.ArgumentTypeError(f"port out of range: {text}")
    return value


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pacrelay", description="Serve a proxy auto-config file and an HTTP-to-SOCKS5 proxy."
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-c", "--config", metavar="config.ini", help="specify configuration file.")
    parser.add_argument("--log-file", type=Path, help="log file (default: gui.log next to the config)")
    parser.add_argument("--templates", type=Path, help="directory with the bundled PAC templates")
    parser.add_argument("--pac-mode", choices=sorted(PAC_TEMPLATES), help="regenerate proxy.pac in this mode")
    parser.add_argument("--gfwlist-url", help="fetch the rule list from this URL through the SOCKS5 proxy")
    parser.add_argument("--socks-port", type=_port, default=1080, help="local SOCKS5 proxy port")
    parser.add_argument("--http-port", type=_port, default=1081, help="local HTTP proxy port")
    parser.add_argument("--pac-port", type=_port, default=8070, help="PAC server port")
    parser.add_argument("--http-mode", action="store_true", help="also run the HTTP proxy")
    parser.add_argument("--share-over-lan", action="store_true", help="listen on all interfaces")
    parser.add_argument("--ipv6", action="store_true", help="listen on IPv6 addresses")
    return parser


async def _serve(args: argparse.Namespace) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            continue
        installed.append(sig)
    proxy: Optional[HttpProxy] = None
    try:
        if args.http_mode:
            proxy = HttpProxy(LOCAL_HOST, args.socks_port)
            await proxy.listen(listen_address(args.ipv6, args.share_over_lan), args.http_port)
        await stop.wait()
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
        if proxy is not None:
            await proxy.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run until SIGINT or SIGTERM; return the exit status."""
    args = _parser().parse_args(argv)
    config_path = Path(args.config) if args.config else default_config_path()
    config_dir = config_path.parent
    config_dir.mkdir(parents=True, exist_ok=True)
    logger.init(args.log_file or config_dir / LOG_FILE)

    helper = PacHelper(
        directory=config_dir / "pac",
        socks5_port=args.socks_port,
        http_port=args.http_port,
        pac_port=args.pac_port,
        gfwlist_url=args.gfwlist_url,
        template_dir=args.templates,
    )
    if args.pac_mode:
        helper.type_modify(args.pac_mode)

    pac_server = PacServer(
        pac_path=helper.pac_path,
        port=args.pac_port,
        enable_ipv6=args.ipv6,
        share_over_lan=args.share_over_lan,
    )
    pac_server.listen()
    try:
        asyncio.run(_serve(args))
    except KeyboardInterrupt:
        pass
    except OSError as exc:
        logger.error(f"[HTTP Proxy] failed to start: {exc}")
        return 1
    finally:
        pac_server.close()
    return 0