"""Discover CLI command -- find adapter generation candidates."""

import json
from pathlib import Path
from typing import List, Optional

import typer
from rich.table import Table

from ..discovery import DiscoveryResult, DiscoveryService
from ..exceptions import AdapterDiscoveryError, ConfigurationError, DiscoveryConflictError
from ..logging_config import setup_logging
from . import app
from ._common import console, join_paths, join_rules, resolve_config

EXIT_CONFLICT = 2


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit",
    ),
):
    """Adapter Discovery - find adapter generation candidates across ecosystems."""
    if version:
        from .. import __version__

        console.print(f"[bold cyan]Adapter Discovery[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit(0)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(0)


@app.command()
def discover(
    working_directory: Optional[Path] = typer.Option(
        None,
        "--path",
        "-C",
        help="Base directory for relative paths (default: current directory)",
    ),
    java: Optional[List[str]] = typer.Option(None, "--java", help="Java source root (repeatable)"),
    kotlin: Optional[List[str]] = typer.Option(None, "--kotlin", help="Kotlin source root (repeatable)"),
    typescript: Optional[List[str]] = typer.Option(
        None, "--typescript", help="TypeScript source root (repeatable)"
    ),
    python: Optional[List[str]] = typer.Option(None, "--python", help="Python source root (repeatable)"),
    assembly: Optional[List[str]] = typer.Option(
        None, "--assembly", help="Compiled .NET assembly to load (repeatable)"
    ),
    search_folder: Optional[List[str]] = typer.Option(
        None, "--search-folder", help="Folder searched for assemblies (repeatable)"
    ),
    assembly_pattern: Optional[str] = typer.Option(
        None, "--assembly-pattern", help="File name glob used in search folders (default: *.dll)"
    ),
    ecosystem: Optional[List[str]] = typer.Option(
        None,
        "--ecosystem",
        "-e",
        help="Ecosystem to run: csharp, java, kotlin, typescript, python (repeatable)",
    ),
    attribute: Optional[str] = typer.Option(
        None, "--attribute", "-a", help="Annotation/attribute/decorator marking candidates"
    ),
    pattern: Optional[List[str]] = typer.Option(
        None, "--pattern", "-p", help="Regex over simple or full class names (repeatable)"
    ),
    namespace: Optional[List[str]] = typer.Option(
        None, "--namespace", "-n", help="Namespace glob, * matches any run (repeatable)"
    ),
    file_path: Optional[List[str]] = typer.Option(
        None, "--file-path", "-f", help="File path glob, ** crosses directories (repeatable)"
    ),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude", help="Glob of files to skip (repeatable)"),
    max_files: Optional[int] = typer.Option(None, "--max-files", help="Maximum files per ecosystem", min=1),
    workers: Optional[int] = typer.Option(
        None,
        "-w",
        "--workers",
        help="Parallel workers (default: auto-detect)",
        min=1,
        max=32,
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        help="TOML config file",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show debug logging",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Only log errors",
    ),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Also write logs to this file"),
):
    """
    Discover classes selected for adapter generation.

    Strategies are tried per class in a fixed order: attribute, pattern,
    namespace, file path. A class name matched more than once anywhere in the
    scan fails the whole run.

    [bold cyan]Examples:[/bold cyan]

      adapter-discovery discover --java src/main/java --attribute GenerateAdapter

      adapter-discovery discover --python src --pattern ".*Service$" --json

      adapter-discovery discover --assembly bin/Release/net8.0/App.dll -n "App.Models*"
    """
    logger = setup_logging(verbose=verbose, quiet=quiet, log_file=str(log_file) if log_file else None)

    try:
        settings = resolve_config(
            config=config,
            working_directory=str(working_directory) if working_directory else None,
            java_source_paths=join_paths(java),
            kotlin_source_paths=join_paths(kotlin),
            typescript_source_paths=join_paths(typescript),
            python_source_paths=join_paths(python),
            csharp_assembly_paths=join_paths(assembly),
            csharp_search_folders=join_paths(search_folder),
            csharp_assembly_pattern=assembly_pattern,
            ecosystems=list(ecosystem or []),
            attribute=attribute,
            patterns=join_rules(pattern),
            namespaces=join_rules(namespace),
            file_paths=join_rules(file_path),
            exclude_patterns=list(exclude or []),
            max_files=max_files,
            workers=workers,
            verbose=verbose,
            quiet=quiet,
        )
        result = DiscoveryService(settings).discover()

    except DiscoveryConflictError as e:
        if json_output:
            print(json.dumps({"conflicts": [c.to_dict() for c in e.conflicts]}, indent=2))
        else:
            console.print(f"[red]Discovery failed:[/red] {e.message}")
            console.print(e.report(), markup=False, highlight=False)
        raise typer.Exit(EXIT_CONFLICT)

    except ConfigurationError as e:
        logger.error(f"{e.__class__.__name__}: {e}")
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)

    except AdapterDiscoveryError as e:
        logger.error(f"{e.__class__.__name__}: {e}")
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    except KeyboardInterrupt:
        logger.info("Discovery interrupted by user")
        console.print("\n[yellow]Discovery interrupted[/yellow]")
        raise typer.Exit(130)

    if json_output:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        _output_rich(result)


def _output_rich(result: DiscoveryResult) -> None:
    if not result.classes:
        console.print("[yellow]No classes discovered.[/yellow]")
        return

    table = Table(show_header=True, show_lines=False, pad_edge=True)
    table.add_column("Class", style="bold")
    table.add_column("Full name")
    table.add_column("Ecosystem")
    table.add_column("Matched by")
    table.add_column("Rule")
    table.add_column("Props", justify="right")
    table.add_column("Methods", justify="right")

    for cls in result.classes:
        table.add_row(
            cls.name,
            cls.full_name,
            str(cls.metadata.get("ecosystem", "")),
            cls.discovery_method.value,
            cls.discovery_source,
            str(len(cls.properties)),
            str(len(cls.methods)),
        )

    console.print()
    console.print(table)
    console.print(
        f"[dim]{len(result.classes)} classes, {result.files_scanned} files, "
        f"{result.artifacts_loaded} assemblies, {result.elapsed_seconds:.2f}s[/dim]"
    )
