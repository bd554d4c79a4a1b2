"""Output formatting for boardwalk CLI."""

import json
from dataclasses import dataclass, field
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.markup import escape

from .errors import BoardwalkError
from .redact import DEFAULT_MASKER, SecretMasker


@dataclass
class OutputContext:
    """Context for output formatting.

    Error text passes through ``masker`` before it is shown.
    """

    console: Console
    json_mode: bool = False
    masker: SecretMasker = field(default_factory=lambda: DEFAULT_MASKER)

    def print(self, message: str, style: str | None = None) -> None:
        """Print message respecting output mode."""
        if not self.json_mode:
            self.console.print(message, style=style)

    def print_json(self, data: Any) -> None:
        """Print JSON data."""
        if self.json_mode:
            print(json.dumps(data, indent=2, default=str))

    def result(self, data: Any, message: str = "") -> None:
        """Print result in appropriate format."""
        if self.json_mode:
            self.print_json(data)
        elif message:
            self.console.print(message)

    def error(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Print error in appropriate format."""
        message = self.masker.mask(message)
        if self.json_mode:
            self.print_json({**(data or {}), "error": message})
        else:
            self.console.print(f"[red]Error: {escape(message)}[/red]", highlight=False)

    def success(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Print success message in appropriate format."""
        if self.json_mode:
            self.print_json({"success": message, **(data or {})})
        else:
            self.console.print(f"[green]{message}[/green]")

    def fail(self, error: BoardwalkError) -> NoReturn:
        """Report a boardwalk error and exit with its exit code."""
        data = {k: v for k, v in error.to_dict().items() if k != "message"}
        self.error(error.message, data)
        raise typer.Exit(error.exit_code) from None
