"""
Carapace Console Interface
===========================

Rich-powered console abstraction shared by the command-line front end
and the structure renderers.

The class wraps :class:`rich.console.Console` and adds section rules,
severity-coloured messages, key/value panels and tables with a
consistent theme.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from typing import Any, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

_CARAPACE_THEME = Theme(
    {
        "carapace.section": "bold bright_magenta",
        "carapace.warning": "bold yellow",
        "carapace.error": "bold red",
        "carapace.info": "bold bright_blue",
        "carapace.key": "bold bright_cyan",
    }
)


class CarapaceConsole:
    """Unified console interface for Carapace output.

    Usage::

        con = CarapaceConsole()
        con.section("COFF File Header")
        con.key_values("IMAGE_FILE_HEADER", [("machine", "0x8664 (amd64)")])
    """

    def __init__(
        self,
        *,
        quiet: bool = False,
        stderr: bool = False,
        width: int | None = None,
    ) -> None:
        """Initialise the console.

        Args:
            quiet:  Suppress all output.
            stderr: Write to standard error instead of standard output.
            width:  Fixed console width; ``None`` auto-detects.
        """
        self._console = Console(
            theme=_CARAPACE_THEME,
            quiet=quiet,
            stderr=stderr,
            width=width,
            highlight=False,
        )

    def section(self, title: str) -> None:
        """Print a rule introducing one decoded structure."""
        self._console.rule(f"  {title}  ", style="carapace.section", characters="─")

    # ------------------------------------------------------------------ #
    #  Message helpers (severity-coloured)
    # ------------------------------------------------------------------ #

    def warning(self, message: str) -> None:
        self._console.print(
            f"[carapace.warning][⚠] WARNING:[/carapace.warning] {message}"
        )

    def error(self, message: str) -> None:
        self._console.print(
            f"[carapace.error][✘] ERROR:[/carapace.error] {message}"
        )

    def info(self, message: str) -> None:
        self._console.print(
            f"[carapace.info][ℹ] INFO:[/carapace.info] {message}"
        )

    # ------------------------------------------------------------------ #
    #  Tables
    # ------------------------------------------------------------------ #

    def table(
        self,
        title: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
        *,
        caption: str | None = None,
        styles: Sequence[str] | None = None,
    ) -> None:
        """Render a styled Rich table.

        Cell values are stringified and escaped, so section names and
        DLL names taken from the file are never read as Rich markup.

        Args:
            title:    Table title.
            columns:  Column header labels.
            rows:     Row tuples.
            caption:  Optional footer caption.
            styles:   Optional per-column Rich style strings.
        """
        tbl = Table(
            title=title,
            caption=caption,
            border_style="bright_cyan",
            header_style="bold bright_magenta",
            padding=(0, 1),
        )
        for idx, col_name in enumerate(columns):
            style = styles[idx] if styles and idx < len(styles) else ""
            tbl.add_column(col_name, style=style)

        for row in rows:
            tbl.add_row(*(escape(str(cell)) for cell in row))

        self._console.print(tbl)

    def key_values(self, title: str, pairs: Sequence[tuple[str, Any]]) -> None:
        """Render a two-column field/value table."""
        self.table(title, ("Field", "Value"), pairs, styles=("carapace.key", ""))
