"""CLI entry point for ap-query."""

import typer
from typing import Optional
from rich.console import Console
from rich.markup import escape
from ap_query import analyzer
from ap_query.collapsed import read_profile
from ap_query.errors import AssertBelowFailed, QueryError
from ap_query.model import StackFile

DEFAULT_TOP = 10
DEFAULT_DEPTH = 4
DEFAULT_MIN_PCT = 1.0
DEFAULT_TRACE_MIN_PCT = 0.5
DEFAULT_MIN_DELTA = 0.5
DEFAULT_EXPAND = 3
DEFAULT_TOP_THREADS = 10
DEFAULT_TOP_METHODS = 20

app = typer.Typer(
    help="ap-query - Rank, trace and compare sampled call stacks (collapsed text, '-' for stdin)",
    no_args_is_help=True
)
err_console = Console(stderr=True)


def _profile_arg():
    return typer.Argument(..., help="Collapsed-stack profile (.gz accepted, '-' for stdin)")


def _thread_opt():
    return typer.Option(None, "-t", "--thread", help="Only keep stacks whose thread contains this substring")


def _fqn_opt():
    return typer.Option(False, "--fqn", help="Show fully-qualified names instead of Class.method")


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """ap-query - Rank, trace and compare sampled call stacks."""
    if ctx.invoked_subcommand is None:
        # Show help if no subcommand is provided
        pass


def _error(message: str) -> None:
    err_console.print(f"[red]Error:[/red] {escape(message)}")


def _load(profile: str, thread: Optional[str]) -> StackFile:
    try:
        sf = read_profile(profile)
    except QueryError as e:
        _error(str(e))
        raise typer.Exit(code=1)
    return sf.filter_by_thread(thread)


def _require_method(method: Optional[str]) -> str:
    if not method:
        _error("-m/--method required")
        raise typer.Exit(code=2)
    return method


def _emit(text: str) -> None:
    # Report text is written verbatim; rich markup would eat "[12.0%]".
    if text:
        typer.echo(text, nl=False)


@app.command()
def hot(
    profile: str = _profile_arg(),
    top: int = typer.Option(DEFAULT_TOP, "--top", help="Rows per ranking (0 = unlimited)"),
    fqn: bool = _fqn_opt(),
    assert_below: float = typer.Option(0.0, "--assert-below", help="Exit 1 if the top self% is at or above this value"),
    thread: Optional[str] = _thread_opt(),
):
    """Rank methods by self time and by total time."""
    sf = _load(profile, thread)
    try:
        _emit(analyzer.hot(sf, top=top, fqn=fqn, assert_below=assert_below))
    except AssertBelowFailed as e:
        _emit(e.report)
        err_console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1)


@app.command()
def tree(
    profile: str = _profile_arg(),
    method: Optional[str] = typer.Option(None, "-m", "--method", help="Substring of the method to root the tree at"),
    depth: int = typer.Option(DEFAULT_DEPTH, "--depth", help="Maximum tree depth"),
    min_pct: float = typer.Option(DEFAULT_MIN_PCT, "--min-pct", help="Hide nodes below this percentage"),
    thread: Optional[str] = _thread_opt(),
):
    """Call tree descending from a method (whole profile when -m is omitted)."""
    sf = _load(profile, thread)
    _emit(analyzer.tree(sf, method or "", max_depth=depth, min_pct=min_pct))


@app.command()
def callers(
    profile: str = _profile_arg(),
    method: Optional[str] = typer.Option(None, "-m", "--method", help="Substring of the method to find callers of"),
    depth: int = typer.Option(DEFAULT_DEPTH, "--depth", help="Maximum tree depth"),
    min_pct: float = typer.Option(DEFAULT_MIN_PCT, "--min-pct", help="Hide nodes below this percentage"),
    thread: Optional[str] = _thread_opt(),
):
    """Callers ascending from a method to the stack roots."""
    method = _require_method(method)
    sf = _load(profile, thread)
    _emit(analyzer.callers(sf, method, max_depth=depth, min_pct=min_pct))


@app.command()
def trace(
    profile: str = _profile_arg(),
    method: Optional[str] = typer.Option(None, "-m", "--method", help="Substring of the method to trace from"),
    min_pct: float = typer.Option(DEFAULT_TRACE_MIN_PCT, "--min-pct", help="Ignore children below this percentage"),
    fqn: bool = _fqn_opt(),
    thread: Optional[str] = _thread_opt(),
):
    """Follow the hottest child from a method down to the hottest leaf."""
    method = _require_method(method)
    sf = _load(profile, thread)
    _emit(analyzer.trace(sf, method, min_pct=min_pct, fqn=fqn))


@app.command()
def lines(
    profile: str = _profile_arg(),
    method: Optional[str] = typer.Option(None, "-m", "--method", help="Substring of the method to break down"),
    top: int = typer.Option(0, "--top", help="Maximum rows (0 = unlimited)"),
    fqn: bool = _fqn_opt(),
    thread: Optional[str] = _thread_opt(),
):
    """Source-line breakdown inside a method."""
    method = _require_method(method)
    sf = _load(profile, thread)
    try:
        _emit(analyzer.lines(sf, method, top=top, fqn=fqn))
    except QueryError as e:
        _error(str(e))
        raise typer.Exit(code=1)


@app.command()
def threads(
    profile: str = _profile_arg(),
    top: int = typer.Option(0, "--top", help="Maximum rows (0 = unlimited)"),
    thread: Optional[str] = _thread_opt(),
):
    """Sample distribution across threads."""
    sf = _load(profile, thread)
    _emit(analyzer.threads(sf, top=top))


@app.command()
def diff(
    before: str = typer.Argument(..., help="Baseline profile"),
    after: str = typer.Argument(..., help="Profile to compare against the baseline"),
    min_delta: float = typer.Option(DEFAULT_MIN_DELTA, "--min-delta", help="Hide changes smaller than this many percentage points"),
    top: int = typer.Option(0, "--top", help="Maximum rows per section (0 = unlimited)"),
    fqn: bool = _fqn_opt(),
    thread: Optional[str] = _thread_opt(),
):
    """Compare self time of two profiles: REGRESSION / IMPROVEMENT / NEW / GONE."""
    before_sf = _load(before, thread)
    after_sf = _load(after, thread)
    _emit(analyzer.diff(before_sf, after_sf, min_delta=min_delta, top=top, fqn=fqn))


@app.command()
def info(
    profile: str = _profile_arg(),
    expand: int = typer.Option(DEFAULT_EXPAND, "--expand", help="Drill into this many top self-time methods"),
    top_threads: int = typer.Option(DEFAULT_TOP_THREADS, "--top-threads", help="Threads to list"),
    top_methods: int = typer.Option(DEFAULT_TOP_METHODS, "--top-methods", help="Methods per ranking"),
    thread: Optional[str] = _thread_opt(),
):
    """One-shot triage: top threads, hot methods and drill-downs."""
    sf = _load(profile, thread)
    _emit(analyzer.info(sf, expand=expand, top_threads=top_threads, top_methods=top_methods))


@app.command("filter")
def filter_cmd(
    profile: str = _profile_arg(),
    method: Optional[str] = typer.Option(None, "-m", "--method", help="Substring of the method stacks must pass through"),
    include_callers: bool = typer.Option(False, "--include-callers", help="Keep frames above the matched method"),
    thread: Optional[str] = _thread_opt(),
):
    """Emit collapsed text for stacks passing through a method."""
    method = _require_method(method)
    sf = _load(profile, thread)
    _emit(analyzer.filter_stacks(sf, method, include_callers=include_callers))


@app.command()
def collapse(
    profile: str = _profile_arg(),
    thread: Optional[str] = _thread_opt(),
):
    """Emit the (optionally thread-filtered) profile as collapsed text."""
    sf = _load(profile, thread)
    _emit(analyzer.collapse(sf))


if __name__ == "__main__":
    app()
