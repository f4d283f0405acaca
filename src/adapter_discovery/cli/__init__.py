"""CLI entry point: registers all subcommands."""

import typer

app = typer.Typer(
    name="adapter-discovery",
    help="Adapter Discovery - find adapter generation candidates across ecosystems",
    add_completion=False,
    rich_markup_mode="rich",
)


# Import subcommands to register them
from .discover import discover as _discover  # noqa: F401, E402
