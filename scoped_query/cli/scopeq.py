"""Diagnostic CLI for schema probing and scope resolution."""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

import click

from ..catalog import AttributeRegistry, MetadataCache, SchemaProbe
from ..config import Config, DataSourceConfig, build_registry, load_config
from ..datasources import DataSource, DuckDBDataSource, create_datasource
from ..processor import (
    ExecutionResult,
    Pagination,
    QueryAssembler,
    QueryFilters,
    SafeExecutor,
)
from ..scope import (
    CallerIdentity,
    OwnershipLookup,
    ScopeContext,
    ScopeDecision,
    ScopeResolver,
    build_scope_context,
)
from ..utils.logging import setup_logging


class ScopeQRuntime:
    """Wires data source, cache, probe, scope resolver and executor together."""

    def __init__(self, datasource: DataSource, config: Config, registry: AttributeRegistry):
        self.datasource = datasource
        self.config = config
        self.registry = registry
        self.cache = MetadataCache(enabled=config.cache.enabled)
        self.probe = SchemaProbe(datasource, self.cache)
        self.executor = SafeExecutor(datasource)
        self.ownership = OwnershipLookup(self.probe, self.executor, registry)
        self.resolver = ScopeResolver(
            self.probe,
            registry,
            self.ownership,
            manager_includes_branch=config.scope.manager_includes_branch,
        )
        self.assembler = QueryAssembler()

    def context_for(
        self,
        role: str,
        user_id: Optional[str],
        branch: Optional[str],
        hotel_ids: Sequence[str],
    ) -> ScopeContext:
        """Scope context; explicit hotel ids replace the ownership lookup."""
        identity = CallerIdentity(role=role, user_id=user_id, branch=branch)
        if hotel_ids:
            return ScopeContext.from_identity(identity, hotel_ids)
        return build_scope_context(identity, self.ownership)

    def decide(self, context: ScopeContext, table: str, alias: Optional[str] = None) -> ScopeDecision:
        target = self.resolver.target(table, alias)
        return self.resolver.resolve(context, target)

    def rows(
        self,
        context: ScopeContext,
        table: str,
        filters: QueryFilters,
        order_by: Sequence[str],
        pagination: Pagination,
    ) -> ExecutionResult:
        """Run a scoped ``SELECT *`` over table."""
        decision = self.decide(context, table)
        query = self.assembler.assemble(
            self.assembler.select(table),
            decision,
            filters,
            order_by=order_by,
            pagination=pagination,
        )
        return self.executor.run_query(query)

    def close(self) -> None:
        self.datasource.disconnect()


class ResultPrinter:
    """Formats result rows for CLI display."""

    def __init__(self, emit):
        self.emit = emit

    def display(self, result: ExecutionResult, elapsed_ms: float) -> None:
        headers = list(result.columns)
        rows = self._build_rows(headers, result.rows)
        if headers:
            for line in self._format_table(headers, rows):
                self.emit(line)
        summary = f"{result.row_count} rows in {elapsed_ms:.2f} ms ({result.status.value})"
        self.emit(summary)

    def display_rows(self, headers: List[str], rows: List[List[object]]) -> None:
        for line in self._format_table(headers, rows):
            self.emit(line)

    def _build_rows(self, headers: List[str], records: List[Dict[str, Any]]) -> List[List[object]]:
        rows: List[List[object]] = []
        for record in records:
            row = []
            for header in headers:
                row.append(record.get(header))
            rows.append(row)
        return rows

    def _format_table(self, headers: List[str], rows: List[List[object]]) -> List[str]:
        widths = self._compute_widths(headers, rows)
        border = self._build_border(widths)
        lines: List[str] = []
        lines.append(border)
        lines.append(self._format_row(headers, widths))
        lines.append(border)
        for row in rows:
            string_values = self._stringify_row(row)
            lines.append(self._format_row(string_values, widths))
        lines.append(border)
        return lines

    def _compute_widths(self, headers: List[str], rows: List[List[object]]) -> List[int]:
        widths: List[int] = []
        for header in headers:
            widths.append(len(header))
        for row in rows:
            col_index = 0
            while col_index < len(row):
                text = self._stringify_cell(row[col_index])
                if len(text) > widths[col_index]:
                    widths[col_index] = len(text)
                col_index += 1
        return widths

    def _build_border(self, widths: List[int]) -> str:
        parts: List[str] = ["+"]
        for width in widths:
            parts.append("-" * (width + 2))
            parts.append("+")
        return "".join(parts)

    def _format_row(self, values: List[str], widths: List[int]) -> str:
        parts: List[str] = ["|"]
        index = 0
        while index < len(values):
            parts.append(f" {values[index].ljust(widths[index])} ")
            parts.append("|")
            index += 1
        return "".join(parts)

    def _stringify_row(self, row: List[object]) -> List[str]:
        string_values: List[str] = []
        for value in row:
            string_values.append(self._stringify_cell(value))
        return string_values

    def _stringify_cell(self, value: object) -> str:
        if value is None:
            return "NULL"
        return str(value)


def _prepare_runtime(config_path: Optional[str]) -> Tuple[ScopeQRuntime, str]:
    config, note = _load_config_bundle(config_path)
    setup_logging(config.logging.level, config.logging.structured)
    datasource = create_datasource(config.datasource)
    datasource.connect()
    if note:
        _seed_demo_data(datasource)
    runtime = ScopeQRuntime(datasource, config, build_registry(config))
    return runtime, note or ""


def _load_config_bundle(config_path: Optional[str]) -> Tuple[Config, Optional[str]]:
    if config_path:
        return load_config(config_path), None
    config = _build_default_config()
    note = "Using in-memory DuckDB data source with demo tables."
    return config, note


def _build_default_config() -> Config:
    config = Config()
    config.datasource = DataSourceConfig(
        name="duckdb_mem",
        type="duckdb",
        config={"path": ":memory:", "read_only": False},
    )
    config.logging.level = "WARNING"
    return config


def _seed_demo_data(datasource: DataSource) -> None:
    if not isinstance(datasource, DuckDBDataSource) or datasource.connection is None:
        return
    connection = datasource.connection
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS hotels (
            id INTEGER,
            name VARCHAR,
            manager_id INTEGER,
            branch VARCHAR
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER,
            name VARCHAR,
            role VARCHAR,
            "hotelId" INTEGER,
            branch VARCHAR
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS tickets (
            id INTEGER,
            hotel_id VARCHAR,
            title VARCHAR,
            status VARCHAR,
            branch VARCHAR,
            created_at TIMESTAMP
        )
        """
    )
    connection.execute("DELETE FROM hotels")
    connection.execute("DELETE FROM users")
    connection.execute("DELETE FROM tickets")
    connection.execute(
        """
        INSERT INTO hotels VALUES
        (3, 'Harbor View', 10, 'North'),
        (7, 'Lakeside', 10, 'North'),
        (9, 'Summit', 11, 'South')
        """
    )
    connection.execute(
        """
        INSERT INTO users VALUES
        (10, 'Mara', 'manager', NULL, 'North'),
        (11, 'Tomas', 'manager', NULL, 'South'),
        (20, 'Ines', 'staff', 3, 'North'),
        (21, 'Olek', 'staff', 9, 'South')
        """
    )
    connection.execute(
        """
        INSERT INTO tickets VALUES
        (1, '3', 'Broken heater', 'Open', 'North', TIMESTAMP '2024-01-05 09:00:00'),
        (2, '7', 'Lobby light out', 'Closed', 'North', TIMESTAMP '2024-01-20 14:30:00'),
        (3, '9', 'Leaking tap', 'open', 'South', TIMESTAMP '2024-02-02 08:15:00')
        """
    )


def _parse_sort(entries: Sequence[str]) -> List[Any]:
    """``column`` or ``column:desc`` entries."""
    order_by: List[Any] = []
    for entry in entries:
        if ":" in entry:
            column, direction = entry.split(":", 1)
            order_by.append((column, direction))
        else:
            order_by.append(entry)
    return order_by


@click.group()
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, readable=True),
    help="Path to YAML config file. Defaults to an in-memory DuckDB demo.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str]) -> None:
    """Entry point for the scopeq CLI."""
    runtime, note = _prepare_runtime(config_path)
    if note:
        click.echo(note, err=True)
    ctx.obj = runtime
    ctx.call_on_close(runtime.close)


@cli.command()
@click.argument("table")
@click.argument("candidates", nargs=-1, required=True)
@click.option("-k", "--keyword", "keywords", multiple=True, help="Substring tried when no candidate exists.")
@click.pass_obj
def probe(runtime: ScopeQRuntime, table: str, candidates: Tuple[str, ...], keywords: Tuple[str, ...]) -> None:
    """Resolve the first existing column among CANDIDATES on TABLE."""
    column = runtime.probe.resolve(table, candidates, keywords)
    if column is None:
        click.echo(f"{table}: no column among {', '.join(candidates)}")
        return
    type_class = runtime.probe.classify(table, column)
    click.echo(f"{table}.{column} ({type_class.value})")


@cli.command()
@click.pass_obj
def attributes(runtime: ScopeQRuntime) -> None:
    """Show how every registered logical attribute resolves."""
    rows: List[List[object]] = []
    for candidate in runtime.registry.attributes():
        resolved = runtime.probe.resolve_attribute(candidate)
        type_name = resolved.type_class.value if resolved.type_class else None
        rows.append([candidate.key, ", ".join(candidate.candidates), resolved.actual_name, type_name])
    printer = ResultPrinter(click.echo)
    printer.display_rows(["attribute", "candidates", "column", "type"], rows)


@cli.command()
@click.argument("table")
@click.option("--role", required=True, help="Caller role: admin, manager or staff.")
@click.option("--user-id", default=None, help="Caller user id.")
@click.option("--branch", default=None, help="Caller branch.")
@click.option("--hotel-id", "hotel_ids", multiple=True, help="Owned hotel id; skips the ownership lookup.")
@click.option("--alias", default=None, help="Table alias for the column reference.")
@click.pass_obj
def scope(
    runtime: ScopeQRuntime,
    table: str,
    role: str,
    user_id: Optional[str],
    branch: Optional[str],
    hotel_ids: Tuple[str, ...],
    alias: Optional[str],
) -> None:
    """Show the scope predicate a caller gets on TABLE."""
    context = runtime.context_for(role, user_id, branch, hotel_ids)
    decision = runtime.decide(context, table, alias)
    click.echo(f"state: {decision.state.value}")
    click.echo(f"predicate: {decision.predicate.sql}")
    click.echo(f"params: {len(decision.predicate.params)}")
    if decision.short_circuit:
        click.echo("short-circuit: query would not be sent")


@cli.command()
@click.argument("table")
@click.option("--role", required=True, help="Caller role: admin, manager or staff.")
@click.option("--user-id", default=None, help="Caller user id.")
@click.option("--branch", default=None, help="Caller branch.")
@click.option("--hotel-id", "hotel_ids", multiple=True, help="Owned hotel id; skips the ownership lookup.")
@click.option("--date-column", default=None, help="Column the date range applies to.")
@click.option("--start", default=None, help="Range start (YYYY-MM-DD).")
@click.option("--end", default=None, help="Range end (YYYY-MM-DD).")
@click.option("--status", default=None, help="Case-insensitive status filter.")
@click.option("-q", "--search", default=None, help="Free-text term.")
@click.option("--search-column", "search_columns", multiple=True, help="Column searched by the term.")
@click.option("--order-by", "order_by", multiple=True, help="Sort column, optionally column:desc.")
@click.option("--limit", default=None, help="Page size (1-1000).")
@click.option("--offset", default=None, help="Rows to skip.")
@click.pass_obj
def rows(
    runtime: ScopeQRuntime,
    table: str,
    role: str,
    user_id: Optional[str],
    branch: Optional[str],
    hotel_ids: Tuple[str, ...],
    date_column: Optional[str],
    start: Optional[str],
    end: Optional[str],
    status: Optional[str],
    search: Optional[str],
    search_columns: Tuple[str, ...],
    order_by: Tuple[str, ...],
    limit: Optional[str],
    offset: Optional[str],
) -> None:
    """Run a scoped, filtered listing of TABLE."""
    params = {"start": start, "end": end, "status": status, "q": search, "limit": limit, "offset": offset}
    equality_columns = {}
    if status is not None:
        equality_columns["status"] = "status"
    try:
        filters = QueryFilters.from_params(params, date_column, equality_columns, search_columns)
    except ValueError as e:
        raise click.UsageError(f"{e} (use --search-column)")
    context = runtime.context_for(role, user_id, branch, hotel_ids)

    started = time.perf_counter()
    result = runtime.rows(context, table, filters, _parse_sort(order_by), Pagination.from_params(params))
    elapsed = (time.perf_counter() - started) * 1000
    ResultPrinter(click.echo).display(result, elapsed)
