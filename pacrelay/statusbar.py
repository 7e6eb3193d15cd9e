"""Status line showing local listening ports and traffic figures."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

_DEFAULT_ADDR = "127.0.0.1"


@dataclass
class StatusBar:
    """Texts of the status labels for inbound ports and traffic."""

    socks5_label: str = f"SOCKS5   {_DEFAULT_ADDR}: 0"
    http_label: str = f"HTTP   {_DEFAULT_ADDR}: 0"
    pac_label: str = f"PAC   {_DEFAULT_ADDR}: 0"
    download_label: str = ""
    upload_label: str = ""

    def refresh(self, local_addr: str, ports: Sequence[int], stats: Sequence[str]) -> None:
        """Update all labels from (socks5, http, pac) ports and
        (download, upload, download total, upload total) stats."""
        self.update_port_status(local_addr, ports[0], ports[1], ports[2])
        self.update_speed_labels(stats[0], stats[1], stats[2], stats[3])

    def update_port_status(
        self, local_addr: str, socks5_port: int, http_port: int, pac_port: int
    ) -> None:
        """Show the listening address and ports; PAC is always served locally."""
        self.socks5_label = f"SOCKS5   {local_addr}:{socks5_port}"
        self.http_label = f"HTTP   {local_addr}:{http_port}"
        self.pac_label = f"PAC   {_DEFAULT_ADDR}:{pac_port}"

    def update_speed_labels(self, down: str, up: str, down_total: str, up_total: str) -> None:
        """Show current speeds followed by running totals."""
        self.download_label = f"{down}/s ({down_total})"
        self.upload_label = f"{up}/s ({up_total})"