"""
Terminal Layout Helpers

Both the client chat screen and the server operator view are drawn as a
fixed header, a body showing the newest items that fit, and a footer.
The screen is recomputed from state on every change, so these helpers are
pure functions of their inputs.
"""

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from rich.cells import cell_len

DEFAULT_WIDTH = 80


@dataclass(frozen=True)
class ScreenFrame:
    """
    One full screen.

    Attributes:
        header: Header lines
        body: Body lines (at most the available body height)
        footer: Footer lines; the last one holds the input prompt if any
        cursor: (row, column) of the cursor within the whole screen
    """

    header: Tuple[str, ...]
    body: Tuple[str, ...]
    footer: Tuple[str, ...]
    cursor: Tuple[int, int]
    body_rows: int = 0

    @property
    def lines(self) -> List[str]:
        """Every row of the screen, with the body padded so the footer sits
        on the bottom rows."""
        padding = [""] * max(self.body_rows - len(self.body), 0)
        return [*self.header, *self.body, *padding, *self.footer]


def center(text: str, width: int) -> str:
    """Center text in a field of ``width`` terminal cells."""
    padding = max(width - cell_len(text), 0)
    left = padding // 2
    return " " * left + text + " " * (padding - left)


def rule(width: int, char: str = "═") -> str:
    return char * max(width, 0)


def body_height(height: int, chrome: int) -> int:
    """Rows left for the body once the header and footer are drawn."""
    return max(height - chrome, 0)


def visible_tail(items: Sequence[str], rows: int) -> Tuple[str, ...]:
    """The most recent ``rows`` items; older ones are simply not shown."""
    if rows <= 0:
        return ()
    return tuple(items[-rows:])


def build_frame(
    header: Sequence[str],
    body: Sequence[str],
    footer: Sequence[str],
    height: int,
) -> ScreenFrame:
    """
    Assemble a screen of the given height.

    The body is cut to the rows left between header and footer. The cursor
    is placed at the end of the last footer line.
    """
    rows = body_height(height, len(header) + len(footer))
    last = footer[-1] if footer else ""
    cursor_row = len(header) + rows + max(len(footer) - 1, 0)
    return ScreenFrame(
        header=tuple(header),
        body=visible_tail(body, rows),
        footer=tuple(footer),
        cursor=(cursor_row, cell_len(last)),
        body_rows=rows,
    )
