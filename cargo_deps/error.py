import sys
from typing import NoReturn

import click
import rich.console
import rich.markup


class CargoDepsError(click.ClickException):
    """
    Base class for every error cargo-deps reports.

    These are one-shot failures: the graph build is aborted and the message is shown to the user.
    """

    def exit(self, no_color: bool = False) -> NoReturn:
        """Print this error to stderr with a red `error:` prefix and exit with status 1."""
        console = rich.console.Console(stderr=True, no_color=no_color, highlight=False)
        console.print(
            "[bold red]error:[/bold red] " + rich.markup.escape(self.format_message())
        )
        sys.exit(1)


class StructuralInconsistency(CargoDepsError):
    """The manifest and the lock file disagree about the shape of the graph."""


class CycleDetected(CargoDepsError):
    """The dependency graph could not be topologically sorted."""


class MalformedDocument(CargoDepsError):
    """A manifest or lock document is missing required fields."""
