"""Main CLI entry point for mitresync."""

import io
import sys
from pathlib import Path
from typing import NoReturn, Optional

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from mitresync import __version__
from ..catalog import BundleFetcher, ResolvedMitigation, parse_bundle, read_local, resolve
from ..catalog.hierarchy import TACTIC_PHASE_TO_ID
from ..config.loader import DEFAULT_CONFIG_PATH, MitreSyncConfig, load_config, setup_logging
from ..exceptions import ConfigurationError, MitreSyncError
from ..graph import MitigationSync, NebulaOracle, PlanPhase, SyncPlan, VerificationResult, build_plan, render_script
from ..graph import ngql
from ..output import render_csv, render_json, render_table

# Load environment variables from .env file
load_dotenv()

console = Console()
err_console = Console(stderr=True)


def _fail(message: str) -> NoReturn:
    err_console.print(f"[red]Error:[/red] {escape(message)}")
    sys.exit(1)


def mitigation_options(func):
    """Options shared by every command that resolves a mitigation."""
    options = [
        click.option(
            "--mitigation",
            "-m",
            "mitigation_id",
            help="Mitigation external ID (e.g. M1037)",
        ),
        click.option(
            "--mitigation-name",
            "-n",
            help="Full mitigation name (case-insensitive)",
        ),
        click.option(
            "--refresh",
            is_flag=True,
            help="Ignore the cached bundle and download it again",
        ),
        click.option(
            "--bundle",
            type=click.Path(exists=True, dir_okay=False, path_type=Path),
            help="Read the ATT&CK bundle from a local file",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _resolve(
    config: MitreSyncConfig,
    mitigation_id: Optional[str],
    mitigation_name: Optional[str],
    refresh: bool,
    bundle: Optional[Path],
) -> ResolvedMitigation:
    if bool(mitigation_id) == bool(mitigation_name):
        raise click.UsageError("Provide exactly one of --mitigation or --mitigation-name")

    try:
        if bundle:
            raw = read_local(bundle)
        else:
            fetcher = BundleFetcher(
                cache_dir=config.bundle.cache_dir,
                url=config.bundle.url,
                timeout=config.bundle.timeout_seconds,
            )
            raw = fetcher.fetch(force_refresh=refresh)
        return resolve(parse_bundle(raw), mitigation_id=mitigation_id, name=mitigation_name)
    except MitreSyncError as e:
        _fail(e.message)


def _print_mitigation_hint(result: ResolvedMitigation, config: MitreSyncConfig) -> None:
    err_console.print("Create it first with:")
    click.echo(ngql.insert_mitigation(result.external_id, result.name, config.graph) + "\n", err=True)


def _print_summary(plan: SyncPlan) -> None:
    counts = plan.counts()
    table = Table(title=f"Execution Summary for {escape(plan.mitigation_name)} ({plan.mitigation_id})")
    table.add_column("Step", style="cyan")
    table.add_column("Count", justify="right")

    table.add_row("Missing techniques to insert", str(counts["techniques"]))
    table.add_row("has_subtechnique edges to create", str(counts[ngql.SUBTECHNIQUE_EDGE]))
    table.add_row("part_of edges to create", str(counts[ngql.TACTIC_EDGE]))
    table.add_row("mitigates edges to create", str(counts[ngql.MITIGATES_EDGE]))

    err_console.print(table)


def _print_phase(phase: PlanPhase) -> None:
    err_console.print(f"[green]✓[/green] {phase.name}: {len(phase)} statements applied")


def _print_verification(verification: VerificationResult) -> None:
    err_console.print("\n[bold]VERIFICATION RESULTS[/bold]")
    err_console.print(f"Expected mitigates edges: {verification.expected}")
    err_console.print(f"Actual mitigates edges:   {verification.actual}")
    if verification.matched:
        err_console.print("Status:                   [green]✓ SUCCESS[/green]")
    else:
        err_console.print("Status:                   [red]✗ MISMATCH[/red]")


@click.group()
@click.version_option(version=__version__, prog_name="mitresync")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output"
)
@click.option(
    "--debug", is_flag=True, help="Extra diagnostic output, including every executed statement"
)
@click.option(
    "--config",
    "-c",
    default=DEFAULT_CONFIG_PATH,
    help="Configuration file path",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool, config: str) -> None:
    """mitresync: ATT&CK mitigation to Nebula Graph synchronizer.

    Lists every technique and sub-technique a MITRE ATT&CK mitigation
    mitigates, and generates or executes idempotent nGQL statements that
    bring a Nebula Graph space in line with the catalog.
    """
    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = load_config(config)
    except ConfigurationError as e:
        _fail(e.message)

    setup_logging(ctx.obj["config"], debug=debug, verbose=verbose)
    ctx.obj["verbose"] = verbose


@cli.command()
@mitigation_options
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["table", "json", "csv"]),
    default="table",
    help="Output format",
)
@click.pass_context
def show(
    ctx: click.Context,
    mitigation_id: Optional[str],
    mitigation_name: Optional[str],
    refresh: bool,
    bundle: Optional[Path],
    output_format: str,
) -> None:
    """List the techniques a mitigation mitigates."""
    result = _resolve(ctx.obj["config"], mitigation_id, mitigation_name, refresh, bundle)

    if output_format == "json":
        click.echo(render_json(result))
    elif output_format == "csv":
        buffer = io.StringIO()
        render_csv(result, buffer)
        click.echo(buffer.getvalue(), nl=False)
    else:
        render_table(result, console)


@cli.command(name="ngql")
@mitigation_options
@click.option(
    "--no-db",
    is_flag=True,
    help="Skip the database check and treat every technique as missing",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the script to a file instead of stdout",
)
@click.pass_context
def ngql_command(
    ctx: click.Context,
    mitigation_id: Optional[str],
    mitigation_name: Optional[str],
    refresh: bool,
    bundle: Optional[Path],
    no_db: bool,
    output: Optional[Path],
) -> None:
    """Generate the nGQL script that syncs a mitigation."""
    config: MitreSyncConfig = ctx.obj["config"]
    result = _resolve(config, mitigation_id, mitigation_name, refresh, bundle)

    if no_db:
        plan = build_plan(result, result.technique_ids, config.graph)
    else:
        try:
            with NebulaOracle(config.nebula) as oracle:
                mitigation_sync = MitigationSync(result, oracle, config.graph)
                mitigation_sync.check_existence()
                if not mitigation_sync.mitigation_exists:
                    err_console.print(
                        f"[yellow]WARNING:[/yellow] Mitigation {result.external_id} does not exist in database."
                    )
                    _print_mitigation_hint(result, config)
                plan = mitigation_sync.generate_plan()
        except MitreSyncError as e:
            _fail(e.message)

    script = render_script(plan)
    if output:
        output.write_text(script, encoding="utf-8")
        err_console.print(f"[green]Script saved to: {output}[/green]")
    else:
        click.echo(script, nl=False)


@cli.command()
@mitigation_options
@click.option(
    "--yes",
    "-y",
    is_flag=True,
    help="Execute without the interactive confirmation",
)
@click.pass_context
def sync(
    ctx: click.Context,
    mitigation_id: Optional[str],
    mitigation_name: Optional[str],
    refresh: bool,
    bundle: Optional[Path],
    yes: bool,
) -> None:
    """Execute the nGQL statements against Nebula Graph and verify the result."""
    config: MitreSyncConfig = ctx.obj["config"]
    result = _resolve(config, mitigation_id, mitigation_name, refresh, bundle)

    try:
        with NebulaOracle(config.nebula) as oracle:
            mitigation_sync = MitigationSync(result, oracle, config.graph)
            mitigation_sync.check_existence()

            if not mitigation_sync.mitigation_exists:
                err_console.print(
                    f"[red]ERROR:[/red] Mitigation {result.external_id} does not exist in database."
                )
                _print_mitigation_hint(result, config)
                sys.exit(1)

            plan = mitigation_sync.generate_plan()
            click.echo(render_script(plan), err=True, nl=False)
            _print_summary(plan)

            if yes:
                mitigation_sync.skip_confirmation()
            elif not mitigation_sync.confirm(
                lambda _plan: click.confirm("Proceed with execution?", default=False, err=True)
            ):
                err_console.print("[yellow]Execution cancelled by user.[/yellow]")
                return

            err_console.print("\nExecuting statements...")
            mitigation_sync.execute(on_phase=_print_phase)
            _print_verification(mitigation_sync.verify())
    except MitreSyncError as e:
        _fail(e.message)


@cli.command()
def tactics() -> None:
    """Show the tactic phase to tactic ID mapping used for part_of edges."""
    table = Table(title="Enterprise Tactics")
    table.add_column("Phase", style="cyan")
    table.add_column("Tactic ID", style="green")

    for phase_name, tactic in TACTIC_PHASE_TO_ID.items():
        table.add_row(phase_name, tactic)

    console.print(table)


def main() -> int:
    """Main entry point for the CLI."""
    try:
        cli()
        return 0
    except KeyboardInterrupt:
        console.print("\n[red]Operation cancelled by user[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
