"""A grid of named colours with keyboard navigation and a single selection."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

_HEX_COLOR = re.compile(r"#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})")

Position = Tuple[int, int]


def is_valid_color(color: object) -> bool:
    """True for "#rgb", "#rrggbb" and "#aarrggbb" colour strings."""
    return isinstance(color, str) and _HEX_COLOR.fullmatch(color) is not None


def _normalize(color: str) -> str:
    """Canonical lower-case form; fully opaque colours lose their alpha part."""
    if not is_valid_color(color):
        raise ValueError(f"invalid color: {color!r}")
    digits = color[1:].lower()
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    elif len(digits) == 8 and digits.startswith("ff"):
        digits = digits[2:]
    return "#" + digits


class Key(Enum):
    """Navigation keys understood by the grid."""

    LEFT = "left"
    RIGHT = "right"
    UP = "up"
    DOWN = "down"


@dataclass(eq=False)
class ColorItem:
    """One cell of the grid: a colour, its name and whether it is selected."""

    color: str
    text: str = ""
    selected: bool = False

    def __post_init__(self) -> None:
        self.color = _normalize(self.color)


class _MoreButton:
    def __repr__(self) -> str:
        return "MORE"


MORE = _MoreButton()
"""Cell content of the "..." button that opens a free colour chooser."""

Cell = Union[ColorItem, _MoreButton]


class ColorGrid:
    """Colours laid out left to right, top to bottom.

    With *columns* of -1 the grid is kept as square as possible. When
    *with_color_dialog* is set, a "more" cell follows the last colour.
    """

    def __init__(self, columns: int = -1, with_color_dialog: bool = True) -> None:
        if columns == 0 or columns < -1:
            raise ValueError(f"invalid column count: {columns}")
        self.columns = columns
        self.with_color_dialog = with_color_dialog
        self._items: List[ColorItem] = []
        self._cells: Dict[Position, Cell] = {}
        self._focus: Optional[Cell] = None
        self._last_selected: Optional[str] = None
        self._regenerate()

    def __len__(self) -> int:
        return len(self._items)

    @property
    def items(self) -> Tuple[ColorItem, ...]:
        """Colour items in grid order."""
        return tuple(self._items)

    @property
    def last_selected(self) -> Optional[str]:
        """Colour most recently selected, or None."""
        return self._last_selected

    @property
    def row_count(self) -> int:
        """Number of rows in use."""
        return max((row for row, _ in self._cells), default=-1) + 1

    @property
    def column_count(self) -> int:
        """Number of columns in use."""
        return max((col for _, col in self._cells), default=-1) + 1

    @property
    def focus_position(self) -> Optional[Position]:
        """Row and column of the focused cell, or None."""
        if self._focus is None:
            return None
        for position, cell in self._cells.items():
            if cell is self._focus:
                return position
        return None

    def _regenerate(self) -> None:
        columns = self.columns
        if columns == -1:
            columns = math.ceil(math.sqrt(len(self._items)))
        cells: Dict[Position, Cell] = {}
        row = col = 0
        for item in self._items:
            cells[(row, col)] = item
            col += 1
            if col == columns:
                row += 1
                col = 0
        if self.with_color_dialog:
            cells[(row, col)] = MORE
        self._cells = cells

    def find(self, color: str) -> Optional[ColorItem]:
        """Item with the given colour, or None."""
        if not is_valid_color(color):
            return None
        wanted = _normalize(color)
        return next((item for item in self._items if item.color == wanted), None)

    def insert_color(self, color: str, text: str = "", index: int = -1) -> None:
        """Add *color* named *text* at *index* (-1 appends).

        A colour already present is focused and selected instead.
        """
        existing = self.find(color)
        last = self.find(self._last_selected) if self._last_selected else None
        if existing is not None:
            if last is not None and last is not existing:
                last.selected = False
            self._focus = existing
            existing.selected = True
            return

        if index == -1:
            index = len(self._items)
        if not 0 <= index <= len(self._items):
            raise IndexError(f"insert position out of range: {index}")
        item = ColorItem(color, text)
        if last is not None:
            last.selected = False
        else:
            item.selected = True
            self._last_selected = item.color
        self._focus = item
        self._items.insert(index, item)
        self._regenerate()

    def color(self, index: int) -> Optional[str]:
        """Colour at *index*, or None when out of range."""
        if 0 <= index < len(self._items):
            return self._items[index].color
        return None

    def cell(self, row: int, column: int) -> Optional[Cell]:
        """Content of the cell at *row*, *column*: a ColorItem, MORE or None."""
        return self._cells.get((row, column))

    def move_focus(self, key: Union[Key, str]) -> Optional[Position]:
        """Move the focus with an arrow key; return the focused position."""
        key = Key(key)
        row, col = self.focus_position or (0, 0)
        rows, cols = self.row_count, self.column_count
        at = self.cell

        if key is Key.LEFT:
            if col > 0:
                col -= 1
            elif row > 0:
                row -= 1
                col = cols - 1
        elif key is Key.RIGHT:
            if col < cols - 1 and at(row, col + 1) is not None:
                col += 1
            elif row < rows - 1:
                row += 1
                col = 0
        elif key is Key.UP:
            if row > 0:
                row -= 1
            else:
                col = 0
        elif key is Key.DOWN:
            if row < rows - 1:
                if at(row + 1, col) is not None:
                    row += 1
                else:
                    for i in range(1, cols):
                        if at(row + 1, i) is None:
                            col = i - 1
                            row += 1
                            break

        target = at(row, col)
        if target is not None:
            self._focus = target
        return self.focus_position

    def _select_item(self, item: ColorItem) -> None:
        for other in self._items:
            if other is not item:
                other.selected = False
        item.selected = True
        self._last_selected = item.color

    def select_focused(self) -> Optional[str]:
        """Select the focused colour and return it; None if no colour has focus."""
        target = self._focus
        if isinstance(target, ColorItem) and any(target is item for item in self._items):
            self._select_item(target)
            return target.color
        return None