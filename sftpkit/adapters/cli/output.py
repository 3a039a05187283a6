"""
Rich-based user output
"""
from typing import Optional, Sequence, Iterable

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ...core.logging import get_stdout_console, get_stderr_console


class RichOutput:
    """Rich-based output for CLI commands"""

    def __init__(self, console: Optional[Console] = None, error_console: Optional[Console] = None):
        self.console = console or get_stdout_console()
        self.error_console = error_console or get_stderr_console()

    def info(self, message: str) -> None:
        """Display info message"""
        self.console.print(f"[cyan]ℹ[/cyan] {escape(message)}")

    def success(self, message: str) -> None:
        """Display success message"""
        self.console.print(f"[green]✓[/green] {escape(message)}")

    def warning(self, message: str) -> None:
        """Display warning message"""
        self.error_console.print(f"[yellow]⚠[/yellow] {escape(message)}")

    def error(self, message: str, label: str = "Error") -> None:
        """Display error line on stderr"""
        self.error_console.print(f"[red]{label}:[/red] {escape(message)}")

    def line(self, text: str) -> None:
        """Print text verbatim"""
        self.console.print(text, markup=False, highlight=False, soft_wrap=True)

    def table(self, columns: Sequence[str], rows: Iterable[Sequence[str]], title: str = "") -> None:
        """Display rows as a table"""
        table = Table(title=title or None)
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*row)
        self.console.print(table)
