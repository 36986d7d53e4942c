"""Console presentation: Nord-themed rich output, figlet banners and operator prompts."""

# ----------------------------------------------------------------
# Dependencies and Imports
# ----------------------------------------------------------------
import shutil
from typing import List, Optional, TextIO

import pyfiglet
from rich import box
from rich.align import Align
from rich.console import Console, Group
from rich.panel import Panel
from rich.prompt import Prompt
from rich.text import Text
from rich.theme import Theme

from letsencrypt_configurator import APP_NAME, VERSION


# ----------------------------------------------------------------
# Nord-Themed Colors and Theme Setup
# ----------------------------------------------------------------
class NordColors:
    """Nord color palette definitions for consistent UI styling."""

    POLAR_NIGHT_3: str = "#434C5E"
    SNOW_STORM_1: str = "#D8DEE9"
    SNOW_STORM_2: str = "#E5E9F0"
    FROST_1: str = "#8FBCBB"
    FROST_2: str = "#88C0D0"
    FROST_3: str = "#81A1C1"
    FROST_4: str = "#5E81AC"
    RED: str = "#BF616A"
    YELLOW: str = "#EBCB8B"
    GREEN: str = "#A3BE8C"

    @classmethod
    def get_frost_gradient(cls, steps: int = 4) -> List[str]:
        """Returns a gradient using the frost color palette."""
        frosts = [cls.FROST_1, cls.FROST_2, cls.FROST_3, cls.FROST_4]
        return frosts[:steps]


nord_theme = Theme(
    {
        "banner": f"bold {NordColors.FROST_2}",
        "info": NordColors.GREEN,
        "warning": NordColors.YELLOW,
        "error": NordColors.RED,
        "debug": NordColors.POLAR_NIGHT_3,
        "success": NordColors.GREEN,
    }
)

console = Console(theme=nord_theme)

BANNER_FONTS: List[str] = ["ansi_shadow", "slant", "small", "mini"]


# ----------------------------------------------------------------
# UI Helper Functions
# ----------------------------------------------------------------
def render_figlet(word: str, width: int) -> str:
    """Render a word with the first font pyfiglet can draw."""
    for font in BANNER_FONTS:
        try:
            art = pyfiglet.Figlet(font=font, width=width).renderText(word)
            if art.strip():
                return art
        except pyfiglet.FigletError:
            continue
    return f"  {word}  "


def _gradient_text(art: str, colors: List[str]) -> Text:
    lines = [line for line in art.splitlines() if line.strip()]
    combined = Text()
    for i, line in enumerate(lines):
        combined.append(Text(line, style=f"bold {colors[i % len(colors)]}"))
        if i < len(lines) - 1:
            combined.append("\n")
    return combined


def create_header(title: str = APP_NAME) -> Panel:
    """
    Generate an ASCII art header with a frost gradient.
    The banner is built line-by-line into a Rich Text object to avoid stray markup tokens.
    """
    term_width, _ = shutil.get_terminal_size((80, 24))
    art = render_figlet(title, min(term_width - 10, 120))
    return Panel(
        Align.center(_gradient_text(art, NordColors.get_frost_gradient())),
        border_style=NordColors.FROST_1,
        padding=(1, 2),
        title=Text(f"v{VERSION}", style=f"bold {NordColors.SNOW_STORM_2}"),
        title_align="right",
        subtitle=Text("nginx + Let's Encrypt", style=f"bold {NordColors.SNOW_STORM_1}"),
        subtitle_align="center",
        box=box.ROUNDED,
    )


def print_message(
    text: str, style: str = NordColors.FROST_2, prefix: str = "•"
) -> None:
    """Print a styled message with a prefix."""
    console.print(f"[{style}]{prefix} {text}[/{style}]")


def print_success(message: str) -> None:
    print_message(message, NordColors.GREEN, "✓")


def print_warning(message: str) -> None:
    print_message(message, NordColors.YELLOW, "⚠")


def print_section(title: str) -> None:
    """Print a framed, numbered step heading."""
    rule = "*" * len(title)
    console.print()
    console.print(f"[{NordColors.FROST_3}]{rule}[/]")
    console.print(f"[bold {NordColors.FROST_2}]{title}[/]")
    console.print(f"[{NordColors.FROST_3}]{rule}[/]")
    console.print()


def display_banner(word: str, message: str, style: str) -> None:
    """Big figlet word above a wrapped message, framed in a panel."""
    art = render_figlet(word, 76)
    body = Group(
        Align.center(_gradient_text(art, [style])),
        Text(""),
        Text(message, style=style),
    )
    console.print(
        Panel(body, border_style=style, padding=(1, 3), width=80, box=box.DOUBLE)
    )
    console.print()


def warning_banner(message: str) -> None:
    display_banner("WARNING", message, NordColors.YELLOW)


def error_banner(message: str) -> None:
    display_banner("ERROR", message, NordColors.RED)


def success_banner(message: str) -> None:
    display_banner("SUCCESS", message, NordColors.GREEN)


# ----------------------------------------------------------------
# Operator Prompts
# ----------------------------------------------------------------
class OperatorPrompt(Prompt):
    """Prompt.ask with the configurator's wording for unrecognised answers."""

    illegal_choice_message = f"[bold {NordColors.RED}]INVALID INPUT![/]"


class Operator:
    """The person at the keyboard: prints messages and reads single lines."""

    def __init__(self, out: Console = console, stream: Optional[TextIO] = None):
        self.out = out
        self.stream = stream

    def print(self, message: str = "") -> None:
        self.out.print(message)

    def read_line(self, prompt: str) -> Optional[str]:
        """Read one line; None means the input stream was closed."""
        try:
            return self.out.input(prompt, stream=self.stream)
        except EOFError:
            return None

    def confirm(self, prompt: str) -> Optional[bool]:
        """Ask until the answer is y, n or cancel; cancel (or EOF) gives None."""
        try:
            answer = OperatorPrompt.ask(
                prompt,
                console=self.out,
                choices=["y", "n", "cancel"],
                case_sensitive=False,
                stream=self.stream,
            )
        except EOFError:
            return None
        answer = answer.lower()
        if answer == "cancel":
            return None
        return answer == "y"

    def ask(self, prompt: str) -> Optional[str]:
        """Free-text answer; blank input cancels."""
        try:
            answer = OperatorPrompt.ask(
                f"{prompt} (leave blank to cancel)",
                console=self.out,
                default="",
                show_default=False,
                stream=self.stream,
            )
        except EOFError:
            return None
        answer = answer.strip()
        return answer or None
