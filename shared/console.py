"""
Sonar Console Interface
========================

Rich-powered console abstraction providing the presentation layer for
Sonar: banners, section headers, coloured status messages, tables and
status spinners, all with consistent styling.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Generator, Mapping, Sequence

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

# ---------------------------------------------------------------------------
# Theme -- consistent palette across all Sonar output
# ---------------------------------------------------------------------------
_SONAR_THEME = Theme(
    {
        "sonar.banner": "bold bright_cyan",
        "sonar.section": "bold bright_magenta",
        "sonar.success": "bold green",
        "sonar.warning": "bold yellow",
        "sonar.error": "bold red",
        "sonar.info": "bold bright_blue",
        "sonar.dim": "dim white",
        "sonar.highlight": "bold bright_white",
        "sonar.new": "bold bright_green",
        "sonar.change": "bold yellow",
        "sonar.debug": "dim cyan",
    }
)

# Columns never shrink below this when a max width is requested
_MIN_COLUMN_WIDTH = 4


def truncate(text: str | None, max_len: int) -> str:
    """Shorten *text* to *max_len* characters, ending in ``...`` when cut."""
    if not text:
        return ""
    if len(text) <= max_len:
        return text
    return text[: max(max_len - 3, 0)] + "..."


class SonarConsole:
    """Unified console interface for Sonar.

    Usage::

        con = SonarConsole()
        con.banner("Sonar", "Device Identity Resolver")
        con.section("Scan Summary")
        con.success("Scan complete")
    """

    def __init__(
        self,
        *,
        quiet: bool = False,
        record: bool = False,
        width: int | None = None,
    ) -> None:
        """Initialise the console.

        Args:
            quiet:  Suppress all output (useful in library / test mode).
            record: Enable Rich recording for text / HTML export.
            width:  Force a console width (tests, piped output).
        """
        self._console = Console(
            theme=_SONAR_THEME,
            quiet=quiet,
            record=record,
            highlight=False,
            width=width,
        )

    # ------------------------------------------------------------------ #
    #  Banner and section header
    # ------------------------------------------------------------------ #

    def banner(self, title: str, subtitle: str = "", version: str = "1.0.0") -> None:
        """Display a framed tool banner."""
        text = f"[sonar.banner]{title}[/sonar.banner]"
        if subtitle:
            text += f"\n[sonar.dim]{subtitle}  |  v{version}[/sonar.dim]"
        panel = Panel(
            Align.center(Text.from_markup(text)),
            border_style="bright_cyan",
            padding=(0, 2),
        )
        self._console.print(panel)

    def section(self, title: str) -> None:
        """Print a prominent section header."""
        self._console.rule(
            f"  {title}  ",
            style="sonar.section",
            characters="─",
        )
        self._console.print()

    # ------------------------------------------------------------------ #
    #  Message helpers
    # ------------------------------------------------------------------ #

    def success(self, message: str) -> None:
        """Print a success message."""
        self._console.print(
            f"[sonar.success][✔] SUCCESS:[/sonar.success] {message}"
        )

    def warning(self, message: str) -> None:
        """Print a warning message."""
        self._console.print(
            f"[sonar.warning][⚠] WARNING:[/sonar.warning] {message}"
        )

    def error(self, message: str) -> None:
        """Print an error message."""
        self._console.print(
            f"[sonar.error][✘] ERROR:[/sonar.error] {message}"
        )

    def info(self, message: str) -> None:
        """Print an informational message."""
        self._console.print(
            f"[sonar.info][ℹ] INFO:[/sonar.info] {message}"
        )

    def line(self, message: str, style: str = "") -> None:
        """Print one plain line, optionally styled.

        Message text is not interpreted as Rich markup, so advertised
        device names containing brackets are printed verbatim.
        """
        self._console.print(Text(message, style=style))

    # ------------------------------------------------------------------ #
    #  Table display
    # ------------------------------------------------------------------ #

    def table(
        self,
        title: str | None,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
        *,
        caption: str | None = None,
        max_widths: Mapping[int, int] | None = None,
        styles: Sequence[str] | None = None,
    ) -> None:
        """Render a styled Rich table.

        Args:
            title:      Table title.
            columns:    Column header labels.
            rows:       Row tuples; each element is stringified, ``None`` as empty.
            caption:    Optional footer caption.
            max_widths: Column index -> maximum width; longer cells are
                        truncated with ``...``.
            styles:     Optional per-column Rich style strings.
        """
        if not rows:
            return

        tbl = Table(
            title=title,
            caption=caption,
            border_style="bright_cyan",
            header_style="bold bright_magenta",
            show_lines=False,
            padding=(0, 1),
        )
        widths = dict(max_widths or {})
        for idx, col_name in enumerate(columns):
            style = styles[idx] if styles and idx < len(styles) else ""
            limit = widths.get(idx)
            tbl.add_column(
                col_name,
                style=style,
                max_width=max(limit, _MIN_COLUMN_WIDTH) if limit else None,
                overflow="ellipsis",
                no_wrap=limit is not None,
            )

        for row in rows:
            cells: list[Text] = []
            for idx, cell in enumerate(row):
                value = "" if cell is None else str(cell)
                limit = widths.get(idx)
                if limit:
                    value = truncate(value, limit)
                cells.append(Text(value))
            tbl.add_row(*cells)

        self._console.print(tbl)

    # ------------------------------------------------------------------ #
    #  Status spinner
    # ------------------------------------------------------------------ #

    @contextmanager
    def status(
        self, message: str = "Working..."
    ) -> Generator[Any, None, None]:
        """Context-manager showing a spinner with a status message.

        Example::

            with con.status("Scanning...") as status:
                status.update("Scanning... 12 devices")
        """
        with self._console.status(
            f"[sonar.info]{message}[/sonar.info]",
            spinner="dots",
            spinner_style="bright_cyan",
        ) as status_obj:
            yield status_obj

    # ------------------------------------------------------------------ #
    #  Utility
    # ------------------------------------------------------------------ #

    def blank(self, count: int = 1) -> None:
        """Print *count* blank lines."""
        for _ in range(count):
            self._console.print()

    def divider(self, style: str = "dim") -> None:
        """Print a thin horizontal rule."""
        self._console.rule(style=style)

    def export_text(self) -> str:
        """Export recorded console output as plain text (requires ``record=True``)."""
        return self._console.export_text()
