"""
Clusterwork CLI - Kubernetes cluster infrastructure reconciliation.
"""

import asyncio
import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from .core import ClusterworkCore
from .engine import RunResult
from .errors import PreflightError
from .formatters import TerraformStyleFormatter
from .model.distributions import Distribution
from .settings import get_settings
from .targets import DryRunTarget, TerraformTarget

# Setup
app = typer.Typer(
    name="clusterwork",
    help="Kubernetes cluster infrastructure reconciliation",
    add_completion=False,
)
console = Console()


def configure_logging():
    """Configure logging based on settings."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# Configure logging on module import
configure_logging()


def _get_cluster_file(config: Path) -> Path:
    """Check the cluster file exists.

    Raises:
        SystemExit: If the file is not found
    """
    if not config.exists():
        console.print(
            f"[bold red]✗ Error:[/bold red] Cluster file not found: {config}"
        )
        console.print("[dim]Hint: pass --config with the path to your cluster .hcl file[/dim]")
        raise typer.Exit(code=1)
    return config


def _create_command_panel(title: str, color: str, config: Path, target: str) -> Panel:
    """Create a Rich Panel for command display."""
    settings = get_settings()
    return Panel.fit(
        f"[bold {color}]{title}[/bold {color}]\n"
        f"Cluster file: {config}\n"
        f"Target: {target}\n"
        f"Workers: {settings.max_workers}",
        border_style=color,
    )


def _handle_command_error(e: Exception, command_type: str) -> None:
    """Handle command errors with appropriate formatting.

    Raises:
        SystemExit: Always exits with code 1
    """
    if isinstance(e, PreflightError):
        console.print(f"\n[bold red]✗ Pre-flight check failed:[/bold red] {e}")
        console.print("[dim]No tasks were run.[/dim]")
    else:
        console.print(
            f"\n[bold red]✗ {command_type.capitalize()} failed:[/bold red] {e}"
        )

    raise typer.Exit(code=1)


def _report(core: ClusterworkCore, result: RunResult, output_json: bool) -> None:
    """Print the run result.

    Raises:
        SystemExit: With code 1 if the run did not succeed
    """
    target = core.context.target if core.context is not None else None
    formatter = TerraformStyleFormatter(console)

    if output_json:
        console.print_json(json.dumps(result.to_dict(), default=str))
    elif isinstance(target, DryRunTarget) and result.success:
        console.print(formatter.format_plan(target.changes))
    else:
        console.print(formatter.format_run(result))

    if isinstance(target, TerraformTarget) and target.written:
        console.print(f"\n[dim]Terraform configuration written to {target.out_dir}[/dim]")

    if not result.success:
        raise typer.Exit(code=1)


def _run_command(command_name: str, coro) -> RunResult:
    """Run a pipeline coroutine with common error handling.

    A first Ctrl-C cancels the run task; the executor stops scheduling and
    still returns a result marked cancelled. KeyboardInterrupt only reaches
    this function when the event loop itself is interrupted.
    """
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        console.print("\n[bold yellow]Interrupted[/bold yellow]")
        raise typer.Exit(code=130)
    except Exception as e:
        _handle_command_error(e, command_name)


@app.command()
def cloudup(
    config: Path = typer.Option(
        Path("cluster.hcl"), "--config", "-c", help="Cluster definition file"
    ),
    target: str = typer.Option(
        "dryrun", "--target", "-t", help="Render target: aws, terraform or dryrun"
    ),
    out: Path = typer.Option(
        None, "--out", help="Output directory for the terraform target (overrides .env)"
    ),
    workers: int = typer.Option(
        None, "--workers", help="Concurrent task limit (overrides .env)"
    ),
    fail_fast: bool = typer.Option(
        None, "--fail-fast/--no-fail-fast", help="Stop after the first failed task"
    ),
    output_json: bool = typer.Option(
        False, "--json", help="Print the run result as JSON"
    ),
):
    """Create or update the cloud resources of a cluster."""
    if target not in ("aws", "terraform", "dryrun"):
        console.print(f"[bold red]✗ Error:[/bold red] Unknown target '{target}'")
        raise typer.Exit(code=2)

    config = _get_cluster_file(config)
    console.print(_create_command_panel("Clusterwork Cloudup", "blue", config, target))

    core = ClusterworkCore(max_workers=workers, fail_fast=fail_fast)
    result = _run_command(
        "cloudup", core.cloudup(config, target=target, out_dir=out)
    )
    _report(core, result, output_json)


@app.command()
def nodeup(
    config: Path = typer.Option(
        Path("cluster.hcl"), "--config", "-c", help="Cluster definition file"
    ),
    root: Path = typer.Option(
        None, "--root", help="Filesystem root to configure (overrides .env)"
    ),
    distribution: Distribution = typer.Option(
        None, "--distribution", help="Node distribution (defaults to the cluster's)"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Only show what would change"
    ),
    output_json: bool = typer.Option(
        False, "--json", help="Print the run result as JSON"
    ),
):
    """Configure the node Clusterwork is running on."""
    config = _get_cluster_file(config)
    target = "dryrun" if dry_run else "local"
    console.print(_create_command_panel("Clusterwork Nodeup", "cyan", config, target))

    core = ClusterworkCore()
    result = _run_command(
        "nodeup",
        core.nodeup(config, root=root, dry_run=dry_run, distribution=distribution),
    )
    _report(core, result, output_json)


@app.command()
def version():
    """Show Clusterwork version."""
    from . import __version__

    console.print(f"Clusterwork version: [bold]{__version__}[/bold]")


if __name__ == "__main__":
    app()
