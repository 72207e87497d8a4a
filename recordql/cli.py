"""
RecordQL CLI - Run declarative queries over JSON record files

Usage:
    recordql --help
    recordql tables --data data/
    recordql run query.yaml --data data/ --format json
    recordql sql query.yaml --dialect postgresql
    recordql analyze query.yaml
    recordql search users alice --data data.json

Query files are YAML or JSON documents in the ``QueryPlan.to_dict()`` shape:

    table: orders
    filters:
      - {field: status, operator: eq, value: shipped}
    groupBy: [customer]
    aggregations:
      - {function: SUM, field: amount, alias: total}

``--data`` is either a JSON file holding ``{table: [records]}`` or a
directory with one ``<table>.json`` file per table.
"""

import csv
import json
import sys
from typing import Any, Dict, List

import click
import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from recordql import __version__
from recordql.core.config import settings
from recordql.core.log_config import configure_logging
from recordql.domain.query import QuerySpec, search as search_records
from recordql.infrastructure.storage import load_store
from recordql.modeling import analyze_performance, export_to_sql
from recordql.shared.exceptions import RecordQLError

# =============================================================================
# CONFIGURATION
# =============================================================================

console = Console()

OUTPUT_FORMATS = ["table", "json", "csv"]


def handle_error(error: RecordQLError):
    """Render a structured error with rich formatting and exit."""
    err = error.to_dict()["error"]
    console.print(f"\n[bold red]Error {err.get('code', 'UNKNOWN')}[/bold red]")
    console.print(f"[red]{err.get('message', 'Unknown error')}[/red]")

    if err.get("suggestion"):
        console.print(f"\n[yellow]Suggestion:[/yellow] {err['suggestion']}")

    if err.get("details"):
        console.print("\n[dim]Details:[/dim]")
        console.print(Syntax(json.dumps(err["details"], indent=2, default=str), "json"))

    sys.exit(1)


def load_query(path: str, store=None) -> QuerySpec:
    """Read a YAML/JSON query file into a QuerySpec."""
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise click.BadParameter(f"not valid YAML/JSON: {e}", param_hint="QUERY_FILE")

    if not isinstance(data, dict) or "table" not in data:
        raise click.BadParameter("query file must be a mapping with a 'table' key", param_hint="QUERY_FILE")
    return QuerySpec.from_dict(data, store)


def _columns(rows: List[Any]) -> List[str]:
    columns: List[str] = []
    for row in rows:
        if isinstance(row, dict):
            for key in row:
                if key not in columns:
                    columns.append(key)
    return columns


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def print_rows(rows: List[Any], output_format: str, title: str):
    """Print result rows as a rich table, JSON or CSV."""
    if output_format == "json":
        click.echo(json.dumps(rows, indent=2, default=str))
        return

    columns = _columns(rows)

    if output_format == "csv":
        writer = csv.writer(sys.stdout, lineterminator="\n")
        writer.writerow(columns)
        for row in rows:
            writer.writerow([_cell(row.get(c)) if isinstance(row, dict) else _cell(row) for c in columns])
        return

    if not rows:
        console.print("[yellow]No results[/yellow]")
        return

    table = Table(title=title, show_header=True)
    for name in columns:
        table.add_column(name, style="cyan")
    for row in rows:
        table.add_row(*[_cell(row.get(c)) if isinstance(row, dict) else _cell(row) for c in columns])
    console.print(table)
    console.print(f"[dim]{len(rows)} rows[/dim]")


# =============================================================================
# MAIN CLI GROUP
# =============================================================================

@click.group()
@click.option("--log-level", envvar="RECORDQL_LOG_LEVEL", default=None, help="Logging level (default: WARNING)")
@click.version_option(version=__version__, prog_name="recordql")
def cli(log_level):
    """
    RecordQL CLI - Query JSON records with joins, grouping and subqueries.

    \b
    Environment Variables:
        RECORDQL_LOG_LEVEL        - Logging level
        RECORDQL_DEFAULT_DIALECT  - Dialect used by `recordql sql`
        RECORDQL_MAX_QUERY_DEPTH  - Maximum subquery/union nesting
    """
    configure_logging(log_level)


# =============================================================================
# QUERY COMMANDS
# =============================================================================

@cli.command()
@click.argument("query_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--data", "data_path", required=True, type=click.Path(exists=True), help="JSON file or directory of tables")
@click.option("--format", "output_format", type=click.Choice(OUTPUT_FORMATS), default="table", help="Output format")
def run(query_file, data_path, output_format):
    """
    Execute a query file against a record store.

    \b
    Examples:
        recordql run top_customers.yaml --data data/
        recordql run orders.json --data data.json --format csv
    """
    try:
        spec = load_query(query_file, load_store(data_path))
        rows = spec.execute()
    except RecordQLError as e:
        handle_error(e)
        return

    print_rows(rows, output_format, f"Query Results: {spec.table}")
    for diagnostic in spec.diagnostics:
        click.echo(f"warning [{diagnostic.stage}]: {diagnostic.message}", err=True)


@cli.command()
@click.argument("query_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--dialect", default=None, help="standard, mysql, postgresql or sqlite")
def sql(query_file, dialect):
    """Print the SQL equivalent of a query file."""
    try:
        text = export_to_sql(load_query(query_file).explain(), dialect or settings.default_dialect)
    except RecordQLError as e:
        handle_error(e)
        return
    click.echo(text)


@cli.command()
@click.argument("query_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def analyze(query_file, output_json):
    """Estimate the cost of a query file and list performance issues."""
    try:
        report = analyze_performance(load_query(query_file).explain())
    except RecordQLError as e:
        handle_error(e)
        return

    if output_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        return

    console.print(f"[bold]Complexity:[/bold] {report.complexity.value}")
    console.print(f"[bold]Estimated cost:[/bold] {report.estimated_cost}")
    if not report.issues:
        console.print("[green]No issues found[/green]")
        return

    table = Table(title="Performance Issues", show_header=True)
    table.add_column("Issue", style="yellow")
    table.add_column("Suggestion", style="dim")
    for issue, suggestion in zip(report.issues, report.suggestions):
        table.add_row(issue, suggestion)
    console.print(table)


@cli.command()
@click.argument("table_name")
@click.argument("term")
@click.option("--data", "data_path", required=True, type=click.Path(exists=True), help="JSON file or directory of tables")
@click.option("--format", "output_format", type=click.Choice(OUTPUT_FORMATS), default="table", help="Output format")
def search(table_name, term, data_path, output_format):
    """Case-insensitive search across every field of a table."""
    try:
        rows = search_records(table_name, term, load_store(data_path))
    except RecordQLError as e:
        handle_error(e)
        return
    print_rows(rows, output_format, f"Search '{term}' in {table_name}")


@cli.command()
@click.option("--data", "data_path", required=True, type=click.Path(exists=True), help="JSON file or directory of tables")
def tables(data_path):
    """List the tables of a record store."""
    counts: Dict[str, int] = {}
    try:
        store = load_store(data_path)
        names = store.discover_tables()
        for name in names:
            data = store.get_table(name)
            counts[name] = len(data) if isinstance(data, list) else int(data is not None)
    except RecordQLError as e:
        handle_error(e)
        return

    table = Table(title="Tables", show_header=True)
    table.add_column("Name", style="cyan")
    table.add_column("Records", style="green", justify="right")
    for name in names:
        table.add_row(name, str(counts[name]))
    console.print(table)


def main():
    cli()


if __name__ == "__main__":
    main()
