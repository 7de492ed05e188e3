"""Colour and styling helpers built on :mod:`rich`."""

import os

from rich.console import Console
from rich.markup import escape


console = Console()


class Ansi:
    """Lightweight collection of style names used throughout the app."""

    BOLD = "bold"

    FG_GREEN = "green"
    FG_BRIGHT_GREEN = "bright_green"
    FG_CYAN = "cyan"
    FG_YELLOW = "yellow"
    FG_BRIGHT_YELLOW = "bright_yellow"
    FG_RED = "red"
    FG_GREY = "grey50"

    BG_GREEN = "on green"
    BG_RED = "on red"
    BG_YELLOW = "on yellow"

    @staticmethod
    def style(text: str, *codes: str) -> str:
        """Return *text* wrapped in rich markup unless ``NO_COLOR`` is set.

        Square brackets inside *text* are escaped so labels such as
        ``[chat mode]`` are printed literally instead of parsed as markup.
        """
        text = escape(text)
        if not codes or os.getenv("NO_COLOR") is not None:
            return text
        style = " ".join(codes)
        return f"[{style}]{text}[/]"


# Common labels used throughout the application
USER_LABEL = Ansi.style("you", Ansi.FG_CYAN, Ansi.BOLD)
ASSISTANT_LABEL = Ansi.style("[ChatGPT] assistant", Ansi.FG_BRIGHT_YELLOW, Ansi.BOLD)
ERROR_LABEL = Ansi.style("error", Ansi.FG_RED, Ansi.BOLD)
WARNING_LABEL = Ansi.style("warning", Ansi.FG_YELLOW, Ansi.BOLD)
