"""
Console alert surfaces rendered with rich.
"""

from collections.abc import Callable

from rich.align import Align
from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .alert import AlertContent, SurfaceBackend, TimedSurface


class ConsoleNotifier(SurfaceBackend):
    """Prints the alert as a large panel on the terminal."""

    name = "console"

    def __init__(self, console: Console | None = None, display_seconds: int = 60):
        self.console = console or Console()
        self.display_seconds = display_seconds

    def displays(self) -> list[str]:
        return ["console"]

    def open(
        self,
        display: str,
        content: AlertContent,
        on_dismiss: Callable[[], None],
        on_join: Callable[[], None],
    ) -> TimedSurface:
        self.console.print(render_alert(content))
        return TimedSurface(on_dismiss, self.display_seconds)


def render_alert(content: AlertContent) -> Panel:
    """Build the rich renderable for an alert."""
    lines = [
        Text("UPCOMING MEETING", style="bold dim"),
        Text(content.title, style="bold white"),
        Text(content.headline),
    ]
    if content.meeting_url:
        join = Text("Join Call", style=f"bold underline blue link {content.meeting_url}")
        lines.append(Text.assemble("\n", join, f"  {content.meeting_url}"))

    return Panel(
        Align.center(Group(*[Align.center(line) for line in lines])),
        title="🔔 FullFocus",
        border_style="red",
        padding=(1, 4),
    )
