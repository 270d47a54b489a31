"""Table, CSV and JSON renderings of a resolved mitigation."""

import csv
import json
from typing import TextIO

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..catalog.models import ResolvedMitigation

CSV_HEADER = ["Mitigation ID", "Mitigation Name", "Technique ID", "Technique Name", "Tactics"]


def render_table(result: ResolvedMitigation, console: Console) -> None:
    """Print the default human-readable table."""
    console.print(f"[bold]MITIGATION[/bold]  {escape(result.name)} ({result.external_id})")
    console.print(
        f"[bold]ACTIVE MITIGATIONS[/bold]  {result.total_mitigations} Enterprise mitigations "
        f"(all others filtered out)"
    )

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("TECHNIQUE ID", style="cyan", no_wrap=True)
    table.add_column("TECHNIQUE NAME", style="white")
    table.add_column("TACTICS", style="dim")

    for technique in result.techniques:
        table.add_row(technique.external_id, escape(technique.name), ", ".join(technique.tactics))

    console.print(table)


def render_csv(result: ResolvedMitigation, stream: TextIO) -> None:
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for technique in result.techniques:
        writer.writerow([
            result.external_id,
            result.name,
            technique.external_id,
            technique.name,
            "; ".join(technique.tactics),
        ])


def render_json(result: ResolvedMitigation) -> str:
    return json.dumps(result.records(), indent=2)
