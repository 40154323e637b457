#!/usr/bin/env python3
"""
Command Line Interface for the LakeSchema pipeline.
Shows a run stage by stage as the notification stream arrives.

COMMANDS:
- run FILE...        Parse, infer, generate, validate/correct and execute
- resume SESSION_ID  Continue a checkpointed run
- parse FILE...      Run only the parsers and show what they extracted
- diagnose           Check configuration, model connectivity and the database
"""
import argparse
import asyncio
import sys
import uuid
from pathlib import Path
from typing import List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from configs import (
    CHECKPOINT_DIR,
    DATA_DIR,
    DEFAULT_MAX_ITERATIONS,
    dialect_for_database,
    LOG_LEVEL,
    STORAGE_DIR,
    ConfigurationError,
    validate_configuration,
)
from lakeschema import __version__
from lakeschema.adapters import DatabaseError, DryRunExecutionSink, create_configured_adapter, create_execution_sink
from lakeschema.api.deps import setup_logging
from lakeschema.models import BuildEvent, PipelineState, PipelineStatus, RunOptions, RunRequest
from lakeschema.orchestrator import LLMError, PipelineError, PipelineOrchestrator, build_orchestrator, create_llm_gateway
from lakeschema.parsers import ParseError, parse_file
from lakeschema.storage import (
    EventPublisher,
    EventSink,
    FanoutEventSink,
    FileSource,
    LocalDirectoryStorage,
    LoggingEventSink,
    create_checkpoint_store,
)

console = Console()


# ============================================================
# EVENT DISPLAY
# ============================================================

EVENT_STYLES = {
    "parsing_started": ("📂", "cyan"),
    "file_parsed": ("📄", "white"),
    "inferring_started": ("🧠", "cyan"),
    "entities_inferred": ("🧩", "green"),
    "generating_schema": ("🛠", "cyan"),
    "table_created": ("▪", "white"),
    "validating_schema": ("🔍", "cyan"),
    "validation_complete": ("📋", "white"),
    "drift_detected": ("⚠️", "yellow"),
    "schema_corrected": ("🔧", "magenta"),
    "correction_stalled": ("⏸", "yellow"),
    "data_insertion_started": ("📝", "cyan"),
    "executing_sql": ("⚙️", "cyan"),
    "schema_applied": ("✓", "green"),
    "sql_error": ("✗", "red"),
    "data_inserted": ("✓", "green"),
    "build_succeeded": ("✅", "bold green"),
    "build_failed": ("❌", "bold red"),
}


class ConsoleEventSink(EventSink):
    """Prints each notification as it is published."""

    def __init__(self, console: Console):
        self.console = console

    async def publish(self, event: BuildEvent) -> None:
        icon, style = EVENT_STYLES.get(event.type, ("•", "dim"))
        if event.type == "file_parsed" and "error" in event.payload:
            style = "red"
        self.console.print(f"[dim]{event.sequence:>3}[/dim] {icon} [{style}]{event.message}[/{style}]")


def print_header():
    """Print the application header."""
    console.print(Panel(
        f"[bold cyan]LakeSchema v{__version__}[/bold cyan]\n"
        "[dim]Data lake files → relational schema[/dim]",
        border_style="blue",
        padding=(0, 2),
    ))


def print_summary(state: PipelineState, show_sql: bool = False):
    """Entities, execution outcome and final status of a run."""
    if state.entities:
        table = Table(title="Entities", box=box.SIMPLE_HEAVY)
        table.add_column("Table", style="cyan")
        table.add_column("Columns", justify="right")
        table.add_column("Foreign keys")
        table.add_column("Sources", style="dim")
        for entity in state.entities:
            fks = ", ".join(f"{fk.column} → {fk.references_table}.{fk.references_column}"
                            for fk in entity.foreign_keys)
            table.add_row(entity.table_name, str(len(entity.columns)), fks or "-",
                          ", ".join(entity.source_files))
        console.print(table)

    if show_sql and state.sql_schema:
        console.print(Panel(Syntax(state.sql_schema, "sql", word_wrap=True), title="Schema", border_style="blue"))
    if show_sql and state.sql_inserts:
        console.print(Panel(Syntax(state.sql_inserts, "sql", word_wrap=True), title="Inserts", border_style="blue"))

    info = Table.grid(padding=(0, 2))
    info.add_column(style="cyan", justify="right")
    info.add_column()
    info.add_row("Session:", state.session_id)
    info.add_row("Dialect:", state.target_dialect)
    info.add_row("Corrections:", f"{state.iteration_count}/{state.max_iterations}")
    info.add_row("Open errors:", str(len(state.error_issues)))
    if state.failed_files:
        info.add_row("Failed files:", ", ".join(state.failed_files))
    if state.execution:
        info.add_row("Inserted:", f"{state.execution.inserted_statements}/"
                                  f"{state.execution.total_insert_statements} statements")
    info.add_row("Cost:", f"${state.total_cost:.4f}")

    if state.status == PipelineStatus.COMPLETE:
        title, border = "[bold green]Build complete[/bold green]", "green"
    else:
        title, border = f"[bold red]Build {state.status.value}[/bold red]", "red"
        if state.error:
            info.add_row("Error:", f"[red]{state.error}[/red]")
    console.print(Panel(info, title=title, border_style=border))


# ============================================================
# WIRING
# ============================================================

def _checkpoint_dir(args) -> str:
    return args.checkpoint_dir or CHECKPOINT_DIR or str(Path(DATA_DIR) / "checkpoints")


def make_orchestrator(args) -> PipelineOrchestrator:
    sinks: List[EventSink] = [ConsoleEventSink(console)]
    if args.verbose:
        sinks.append(LoggingEventSink())
    execution_sink = DryRunExecutionSink() if getattr(args, "dry_run", False) else create_execution_sink(args.database)
    return build_orchestrator(
        gateway=create_llm_gateway(verbose=args.verbose),
        publisher=EventPublisher(FanoutEventSink(sinks)),
        file_source=FileSource(LocalDirectoryStorage(STORAGE_DIR), allow_absolute_paths=True),
        execution_sink=execution_sink,
        checkpoints=create_checkpoint_store(checkpoint_dir=_checkpoint_dir(args)),
        verbose=args.verbose,
    )


# ============================================================
# COMMANDS
# ============================================================

async def cmd_run(args) -> int:
    validate_configuration()
    # Absolute paths resolve through the local fallback when not in storage
    keys = [str(Path(f).resolve()) if Path(f).exists() else f for f in args.files]
    session_id = args.session_id or f"run-{uuid.uuid4().hex[:8]}"
    dialect = args.dialect or dialect_for_database(args.database)
    request = RunRequest(
        session_id=session_id,
        file_keys=keys,
        options=RunOptions(target_dialect=dialect, max_iterations=args.max_iterations),
    )
    console.print(f"🚀 Session [bold]{session_id}[/bold]: {len(keys)} file(s), "
                  f"dialect={dialect}, max iterations={args.max_iterations}\n")
    state = await make_orchestrator(args).run(request)
    print_summary(state, show_sql=args.show_sql)
    return 0 if state.status == PipelineStatus.COMPLETE else 1


async def cmd_resume(args) -> int:
    validate_configuration()
    state = await make_orchestrator(args).resume(args.session_id)
    print_summary(state, show_sql=args.show_sql)
    return 0 if state.status == PipelineStatus.COMPLETE else 1


def cmd_parse(args) -> int:
    """Parse files locally without contacting a model or database."""
    failures = 0
    for name in args.files:
        path = Path(name)
        try:
            result = parse_file(path.name, path.read_bytes())
        except (ParseError, OSError) as e:
            failures += 1
            console.print(f"[red]✗ {name}: {e}[/red]")
            continue

        table = Table(title=f"{path.name} ({result.format}, {result.row_count} rows)", box=box.SIMPLE)
        for header in result.headers:
            table.add_column(header, overflow="fold")
        for row in result.sample_rows[:args.rows]:
            table.add_row(*[str(row.get(h, "")) for h in result.headers])
        console.print(table)
    return 1 if failures else 0


async def cmd_diagnose(args) -> int:
    ok = True

    console.print("[bold]Configuration[/bold]")
    try:
        config = validate_configuration()
        for key, value in config.items():
            console.print(f"  [cyan]{key}[/cyan]: {value}")
    except ConfigurationError as e:
        ok = False
        console.print(f"[red]{e}[/red]")

    console.print("\n[bold]Model gateway[/bold]")
    gateway = create_llm_gateway(verbose=args.verbose)
    try:
        response = await gateway.invoke("Reply with the single word: pong", purpose="diagnose")
        console.print(f"  [green]✓ {response.model}[/green] replied in {response.attempts} attempt(s)"
                      + (f" [yellow](fallback: {response.fallback_reason})[/yellow]"
                         if response.fallback_occurred else ""))
    except LLMError as e:
        ok = False
        console.print(f"  [red]✗ {e}[/red]")

    console.print("\n[bold]Execution sink[/bold]")
    adapter = create_configured_adapter(args.database)
    try:
        with adapter:
            adapter.execute("SELECT 1")
        console.print(f"  [green]✓ {adapter.config.db_type.value} reachable at {adapter.config.target}[/green]")
    except DatabaseError as e:
        ok = False
        console.print(f"  [red]✗ {e}[/red]")

    return 0 if ok else 1


# ============================================================
# ENTRY POINT
# ============================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lakeschema",
        description="LakeSchema - turn data lake files into a relational schema",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  lakeschema parse customers.csv orders.json          # Inspect what the parsers see
  lakeschema run customers.csv orders.json            # Full pipeline into the configured database
  lakeschema run data/*.csv --database ./out.db        # SQLite file; dialect follows it
  lakeschema run events.xml --dry-run --show-sql      # Generate SQL without executing it
  lakeschema resume run-1a2b3c4d                      # Continue an interrupted run
  lakeschema diagnose                                 # Check keys, models and database
        """
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every pipeline step")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_run_options(sub):
        sub.add_argument("--database", help="SQLite path or postgres:// URL (default: configured database)")
        sub.add_argument("--checkpoint-dir", dest="checkpoint_dir", help="Directory for JSON checkpoints")
        sub.add_argument("--show-sql", dest="show_sql", action="store_true", help="Print generated SQL")

    run = subparsers.add_parser("run", help="Run the full pipeline")
    run.add_argument("files", nargs="+", help="Input files or storage keys")
    run.add_argument("--dialect", default=None,
                     help="postgres, mysql or sqlite (default: follows --database or the configured target)")
    run.add_argument("--max-iterations", dest="max_iterations", type=int, default=DEFAULT_MAX_ITERATIONS,
                     help="Maximum self-correction iterations")
    run.add_argument("--session-id", dest="session_id", help="Session id (default: generated)")
    run.add_argument("--dry-run", dest="dry_run", action="store_true", help="Do not touch a database")
    add_run_options(run)

    resume = subparsers.add_parser("resume", help="Resume a checkpointed run")
    resume.add_argument("session_id")
    add_run_options(resume)

    parse = subparsers.add_parser("parse", help="Parse files without calling a model")
    parse.add_argument("files", nargs="+")
    parse.add_argument("--rows", type=int, default=5, help="Sample rows to display")

    diagnose = subparsers.add_parser("diagnose", help="Check configuration and connectivity")
    diagnose.add_argument("--database", help="SQLite path or postgres:// URL")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)
    setup_logging("DEBUG" if args.verbose else LOG_LEVEL)
    print_header()

    try:
        if args.command == "parse":
            return cmd_parse(args)
        if args.command == "run":
            return asyncio.run(cmd_run(args))
        if args.command == "resume":
            return asyncio.run(cmd_resume(args))
        return asyncio.run(cmd_diagnose(args))
    except ConfigurationError as e:
        console.print(f"[bold red]{e}[/bold red]")
        return 2
    except PipelineError as e:
        console.print(f"[bold red]{e}[/bold red]")
        return 1
    except KeyboardInterrupt:
        console.print("\n[bold yellow]Interrupted. Resume with `lakeschema resume <session>`.[/bold yellow]")
        return 130


if __name__ == "__main__":
    sys.exit(main())
