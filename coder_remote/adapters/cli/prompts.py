"""
Rich-based user prompts
"""
from typing import Optional, Sequence
from rich.console import Console
from rich.prompt import Prompt, Confirm
from rich.panel import Panel
from rich.text import Text

from ...core.interfaces import ProgressReporter, PromptProvider
from ...core.logging import get_stderr_console, get_stdout_console


class RichPromptProvider(PromptProvider):
    """Rich-based prompt provider"""

    def __init__(self, console: Optional[Console] = None, interactive: bool = True):
        self.console = console or get_stdout_console()
        self.interactive = interactive

    def prompt(self, message: str, default: Optional[str] = None, password: bool = False) -> str:
        """Prompt user for input"""
        if password:
            return Prompt.ask(message, password=True, default=default, console=self.console)
        return Prompt.ask(message, default=default, console=self.console)

    def confirm(self, message: str, default: bool = False) -> bool:
        """Prompt user for confirmation"""
        if not self.interactive:
            return default
        return Confirm.ask(message, default=default, console=self.console)

    def show_message(
        self,
        message: str,
        detail: str = "",
        actions: Sequence[str] = (),
        error: bool = False,
    ) -> Optional[str]:
        """
        Show a modal-style message.

        With actions, the user picks one or presses Enter to dismiss.
        Non-interactive sessions always dismiss.
        """
        body = Text(message, style="bold")
        if detail:
            body.append("\n\n")
            body.append(detail, style="default")
        self.console.print(Panel(body, border_style="red" if error else "blue"))

        if not actions or not self.interactive:
            return None

        dismiss = "Cancel"
        choice = Prompt.ask(
            "Choose an action",
            choices=[*actions, dismiss],
            default=dismiss,
            console=self.console,
        )
        return None if choice == dismiss else choice

    def choose(self, message: str, options: Sequence[str]) -> Optional[str]:
        """Pick one option by number; empty input cancels"""
        if not self.interactive or not options:
            return None

        self.console.print(f"[bold]{message}[/bold]")
        for index, option in enumerate(options, start=1):
            self.console.print(f"  [cyan]{index}[/cyan]. {option}")

        answer = Prompt.ask(
            "Number",
            choices=[str(i) for i in range(1, len(options) + 1)] + [""],
            default="",
            show_choices=False,
            console=self.console,
        )
        if not answer:
            return None
        return options[int(answer) - 1]

    def info(self, message: str) -> None:
        """Display info message"""
        self.console.print(f"[cyan]ℹ[/cyan] {message}")

    def success(self, message: str) -> None:
        """Display success message"""
        self.console.print(f"[green]✓[/green] {message}")

    def warning(self, message: str) -> None:
        """Display warning message"""
        self.console.print(f"[yellow]⚠[/yellow] {message}")

    def error(self, message: str) -> None:
        """Display error message"""
        self.console.print(f"[red]✗[/red] {message}")

    def panel(self, content: str, title: str = "", border_style: str = "blue") -> None:
        """Display content in a panel"""
        self.console.print(Panel(content, title=title, border_style=border_style))


class RichProgressReporter(ProgressReporter):
    """Progress messages and build log lines on stderr"""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or get_stderr_console()
        self._last: Optional[str] = None

    def report(self, message: str) -> None:
        # Repeated messages come from repeated snapshots
        if message == self._last:
            return
        self._last = message
        self.console.print(f"[cyan]…[/cyan] {message}", highlight=False)

    def log(self, line: str) -> None:
        self.console.print(Text(line, style="dim"))
