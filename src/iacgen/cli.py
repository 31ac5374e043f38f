"""iacgen CLI

Usage:
    iacgen templates                      # List available templates
    iacgen expand aws:secret --args a.yaml  # Print an expanded create body
    iacgen compile stack.yaml -o out.yaml # Render the program
    iacgen graph stack.yaml [--dot]       # Creation order or Graphviz DOT
    iacgen plan stack.yaml                # Dry run, prints the build report
    iacgen -v ...                         # INFO logging (IACGEN_DEBUG=1 for DEBUG)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, NoReturn, Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from iacgen.compiler.binder import Binder
from iacgen.compiler.compiler import CompiledStack, Compiler
from iacgen.compiler.evaluator import expand as expand_directives
from iacgen.compiler.renderer import Renderer
from iacgen.compiler.shape import describe_bindings
from iacgen.config import CompilerConfig, load_config
from iacgen.exceptions import IacgenError
from iacgen.registry import TemplateRegistry
from iacgen.runtime.backend import CreateCall, InMemoryBackend
from iacgen.runtime.executor import Executor
from iacgen.stack import decode_refs, load_stack_file

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(help="Resource template compiler.", no_args_is_help=True)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the iacgen CLI.

    Log levels:
    - Normal: Only warnings/errors shown
    - Verbose (-v): INFO level - shows unit dispatch and settlement
    - Debug (IACGEN_DEBUG=1): DEBUG level - shows binding and expansion too
    """
    debug = bool(os.environ.get("IACGEN_DEBUG"))
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler = RichHandler(
        console=err_console,
        show_time=verbose,
        show_path=debug,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger("iacgen")
    logger.setLevel(level)
    logger.handlers = [handler]
    logger.propagate = False


def handle_error(error: Exception) -> NoReturn:
    """Print an error and exit with status 1."""
    if isinstance(error, IacgenError):
        typer.secho(f"Error [{error.kind.value}]: {error.message}", err=True, fg=typer.colors.RED)
    else:
        typer.secho(f"Error: {error}", err=True, fg=typer.colors.RED)
    raise typer.Exit(code=1)


def _config(ctx: typer.Context) -> CompilerConfig:
    return ctx.obj["config"]


def _compile(ctx: typer.Context, stack_file: Path) -> CompiledStack:
    config = _config(ctx)
    compiler = Compiler(TemplateRegistry(config), config)
    return compiler.compile(load_stack_file(stack_file))


def dry_run_attributes(call: CreateCall) -> Dict[str, Any]:
    """Placeholder values for provider-computed attributes during `plan`."""
    host = f"{call.name}.dry-run.invalid"
    stage = call.inputs.get("stageName", call.name)
    return {
        "domainName": host,
        "invokeUrl": f"https://{host}/{stage}",
    }


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Show INFO logs."),
    config_file: Optional[Path] = typer.Option(
        None, "-c", "--config", help="Path to iacgen.yaml (default: ./iacgen.yaml)."
    ),
) -> None:
    setup_logging(verbose)
    try:
        config = load_config(config_file)
    except (ValueError, yaml.YAMLError) as e:
        handle_error(e)
    ctx.obj = {"config": config}


@app.command()
def templates(ctx: typer.Context) -> None:
    """List available templates."""
    try:
        registry = TemplateRegistry(_config(ctx))
    except IacgenError as e:
        handle_error(e)

    if not len(registry):
        console.print("[yellow]No templates found[/yellow]")
        return

    table = Table()
    table.add_column("Template", style="cyan")
    table.add_column("Kind")
    table.add_column("Args", justify="right")
    table.add_column("Description")
    for template_id in registry.ids():
        record = registry.get(template_id)
        table.add_row(template_id, record.kind, str(len(record.args)), record.description)
    console.print(table)


@app.command()
def expand(
    ctx: typer.Context,
    template: str = typer.Argument(..., help="Template id, e.g. aws:cloudfront_distribution."),
    args_file: Path = typer.Option(..., "--args", "-a", help="YAML file with the arguments."),
) -> None:
    """Print a template's create body expanded for the given arguments."""
    try:
        config = _config(ctx)
        record = TemplateRegistry(config).get(template)
        bindings = decode_refs(yaml.safe_load(args_file.read_text()) or {})
        if not isinstance(bindings, dict):
            raise ValueError(f"{args_file}: arguments must be a mapping")
        Binder(config.drop_null_inputs).validate(record, template, bindings)
        text = expand_directives(record.directives, describe_bindings(bindings))
    except (IacgenError, ValueError, OSError, yaml.YAMLError) as e:
        handle_error(e)
    typer.echo(text, nl=False)


@app.command("compile")
def compile_stack(
    ctx: typer.Context,
    stack_file: Path = typer.Argument(..., help="Stack document."),
    output: Optional[Path] = typer.Option(None, "-o", "--output", help="Write to file."),
) -> None:
    """Compile a stack and render the program."""
    try:
        text = Renderer().render(_compile(ctx, stack_file))
    except (IacgenError, ValueError, OSError) as e:
        handle_error(e)

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text, encoding="utf-8")
        typer.echo(f"Wrote program to {output}")
    else:
        typer.echo(text, nl=False)


@app.command()
def graph(
    ctx: typer.Context,
    stack_file: Path = typer.Argument(..., help="Stack document."),
    dot: bool = typer.Option(False, "--dot", help="Print Graphviz DOT."),
) -> None:
    """Print the creation order of a stack's units."""
    try:
        stack = _compile(ctx, stack_file)
    except (IacgenError, ValueError, OSError) as e:
        handle_error(e)

    if dot:
        typer.echo(stack.graph.to_dot(), nl=False)
        return
    for i, unit in enumerate(stack.units, start=1):
        deps = stack.depends_on(unit.name)
        suffix = f" <- {', '.join(deps)}" if deps else ""
        typer.echo(f"{i}. {unit.name} ({unit.template_id}){suffix}")


@app.command()
def plan(
    ctx: typer.Context,
    stack_file: Path = typer.Argument(..., help="Stack document."),
) -> None:
    """Dry-run a stack against an in-memory backend and print the build report."""
    try:
        stack = _compile(ctx, stack_file)
    except (IacgenError, ValueError, OSError) as e:
        handle_error(e)

    backend = InMemoryBackend(auto_attributes=True, attribute_factory=dry_run_attributes)
    report = Executor(stack, backend).run()
    typer.echo(report.model_dump_json(indent=2))

    for unit in report.failed:
        err_console.print(f"[red]{unit.name}[/red]: {unit.error}")
    if report.failed:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
