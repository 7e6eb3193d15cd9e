"""Reading and writing the user's own PAC rule file."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

USER_RULE_FILE = "user-rule.txt"


def pac_dir(home: Optional[Union[str, Path]] = None) -> Path:
    """Directory holding the PAC files below *home* (the user's home by default)."""
    base = Path(home) if home is not None else Path.home()
    return base / ".config" / "trojan-qt5" / "pac"


@dataclass
class UserRules:
    """The user-rule.txt file inside a PAC directory."""

    directory: Path = field(default_factory=pac_dir)

    def __post_init__(self) -> None:
        self.directory = Path(self.directory)

    @property
    def path(self) -> Path:
        """Full path of the rule file."""
        return self.directory / USER_RULE_FILE

    def load(self) -> str:
        """Return the rule text, or an empty string if there is no file yet."""
        try:
            return self.path.read_bytes().decode("utf-8")
        except FileNotFoundError:
            return ""

    def save(self, text: str) -> None:
        """Replace the rule file with *text*, normalising line endings to LF."""
        self.directory.mkdir(parents=True, exist_ok=True)
        self.path.write_bytes(text.replace("\r\n", "\n").encode("utf-8"))