"""A colour chooser that keeps a current colour backed by a colour grid."""

from __future__ import annotations

from typing import Callable, List, Optional, Tuple

from .colorgrid import ColorGrid, ColorItem, is_valid_color

ColorCallback = Callable[[str], None]

STANDARD_COLORS: Tuple[Tuple[str, str], ...] = (
    ("#000000", "Black"),
    ("#ffffff", "White"),
    ("#ff0000", "Red"),
    ("#800000", "Dark red"),
    ("#00ff00", "Green"),
    ("#008000", "Dark green"),
    ("#0000ff", "Blue"),
    ("#000080", "Dark blue"),
    ("#00ffff", "Cyan"),
    ("#008080", "Dark cyan"),
    ("#ff00ff", "Magenta"),
    ("#800080", "Dark magenta"),
    ("#ffff00", "Yellow"),
    ("#808000", "Dark yellow"),
    ("#a0a0a4", "Gray"),
    ("#808080", "Dark gray"),
    ("#c0c0c0", "Light gray"),
)
"""The predefined colours and their names, in grid order."""

CUSTOM_TEXT = "Custom"
_INITIAL_COLOR = "#000000"
_INITIAL_TEXT = "Black"


def _canonical(color: str) -> str:
    return ColorItem(color).color


def standard_grid(allow_custom_colors: bool = True) -> ColorGrid:
    """A square grid holding the standard colours, optionally with a "more" cell."""
    grid = ColorGrid(-1, allow_custom_colors)
    for index, (color, text) in enumerate(STANDARD_COLORS):
        grid.insert_color(color, text, index)
    return grid


class ColorPicker:
    """Holds the current colour and its name, and notifies listeners on change.

    The grid is laid out with *columns* columns, or as square as possible
    when *columns* is -1.
    """

    def __init__(self, columns: int = -1, enable_color_dialog: bool = True) -> None:
        self.color_dialog_enabled = enable_color_dialog
        self.grid = ColorGrid(columns, enable_color_dialog)
        self.text = _INITIAL_TEXT
        self._current = _INITIAL_COLOR
        self._first_inserted = False
        self._listeners: List[ColorCallback] = []

    @property
    def current_color(self) -> str:
        """The currently chosen colour."""
        return self._current

    def insert_color(self, color: str, text: str = "", index: int = -1) -> None:
        """Add *color* named *text* to the grid; the first colour added becomes current."""
        self.grid.insert_color(color, text, index)
        if not self._first_inserted:
            self._current = _canonical(color)
            self.text = text
            self._first_inserted = True

    def set_standard_colors(self) -> None:
        """Add the 17 predefined colours."""
        for color, text in STANDARD_COLORS:
            self.insert_color(color, text)

    def set_current_color(self, color: str) -> None:
        """Make *color* current, adding it as "Custom" if the grid lacks it.

        Invalid colours and the colour already current are ignored; otherwise
        every listener is called with the new colour.
        """
        if not is_valid_color(color):
            return
        wanted = _canonical(color)
        if wanted == self._current:
            return
        item: Optional[ColorItem] = self.grid.find(wanted)
        if item is None:
            self.insert_color(wanted, CUSTOM_TEXT)
            item = self.grid.find(wanted)
            assert item is not None
        self._current = wanted
        self.text = item.text
        item.selected = True
        for callback in list(self._listeners):
            callback(wanted)

    def color(self, index: int) -> Optional[str]:
        """Colour at grid position *index*, or None when out of range."""
        return self.grid.color(index)

    def connect(self, callback: ColorCallback) -> None:
        """Call *callback* with the new colour whenever the current colour changes."""
        self._listeners.append(callback)