"""Typer CLI entrypoint for the syndication pipeline."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, NoReturn, Optional, Sequence

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository
from .errors import ConfigError, PipelineError
from .logging_conf import (
    available_site_logs,
    configure_logging,
    site_log_path,
    tail_log,
)
from .models import Article, ArticleStatus, JobLogEntry, Site, Source, SourceKind, ToneOfVoice
from .orchestrator import Pipeline, SiteRunResult
from .pipeline import FetchStats, RewriteStats
from .scheduler import APSchedulerAdapter

app = typer.Typer(
    help="Syndicator command line tool",
    no_args_is_help=True,
    rich_markup_mode=None,
)
site_app = typer.Typer(name="site", help="Site management", no_args_is_help=True, rich_markup_mode=None)
source_app = typer.Typer(name="source", help="Source management", no_args_is_help=True, rich_markup_mode=None)
run_app = typer.Typer(name="run", help="Trigger pipeline runs", no_args_is_help=True, rich_markup_mode=None)
article_app = typer.Typer(name="article", help="Article inspection", no_args_is_help=True, rich_markup_mode=None)
job_app = typer.Typer(name="job", help="Job log inspection", no_args_is_help=True, rich_markup_mode=None)
log_app = typer.Typer(name="log", help="Log file viewing", no_args_is_help=True, rich_markup_mode=None)
schedule_app = typer.Typer(name="schedule", help="Scheduled triggers", no_args_is_help=True, rich_markup_mode=None)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    pipeline: Pipeline


def build_state(verbose: bool) -> AppState:
    repository = ConfigRepository()
    configure_logging(verbose=verbose, log_dir=repository.locator.logs_dir)
    pipeline = Pipeline.from_repository(repository)
    return AppState(repository=repository, pipeline=pipeline)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _fail(exc: PipelineError) -> NoReturn:
    console.print(exc.message, style="red", markup=False)
    raise typer.Exit(code=1)


def _resolve_site(state: AppState, site_ref: str) -> Site:
    try:
        return state.pipeline.repository.get_site(site_ref)
    except ConfigError as exc:
        _fail(exc)


def _fmt_time(value) -> str:
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%d %H:%M:%S")


# ----------------------------------------------------------------------
# Renderers
# ----------------------------------------------------------------------
def _render_sites_table(sites: Sequence[Site]) -> Table:
    table = Table(title=f"Sites · {len(sites)} total", box=box.SIMPLE_HEAD)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Slug", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Tone", style="magenta")
    table.add_column("Cron", style="yellow")
    table.add_column("Status", style="green")
    for site in sites:
        table.add_row(
            site.id,
            site.slug,
            site.name,
            site.tone_of_voice.value,
            "yes" if site.cron_enabled else "no",
            site.status,
        )
    return table


def _render_sources_table(sources: Sequence[Source]) -> Table:
    table = Table(title=f"Sources · {len(sources)} total", box=box.SIMPLE_HEAD)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Type", style="magenta")
    table.add_column("URL", style="cyan", overflow="fold")
    table.add_column("Active")
    table.add_column("Validated")
    table.add_column("Articles", justify="right")
    table.add_column("Last fetched", style="green")
    table.add_column("Last error", style="red", overflow="fold")
    for source in sources:
        table.add_row(
            source.id,
            source.source_type.value,
            source.url,
            "yes" if source.is_active else "no",
            "yes" if source.is_validated else "no",
            str(source.article_count),
            _fmt_time(source.last_fetched_at),
            source.last_error or "",
        )
    return table


def _render_articles_table(articles: Sequence[Article]) -> Table:
    table = Table(title=f"Articles · {len(articles)} shown", box=box.SIMPLE_HEAD)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Status", style="magenta")
    table.add_column("Title", overflow="fold")
    table.add_column("Published", style="green")
    for article in articles:
        table.add_row(
            article.id,
            article.status.value,
            article.title or article.original_title,
            _fmt_time(article.published_at),
        )
    return table


def _render_job_table(entries: Iterable[JobLogEntry]) -> Table:
    table = Table(title="Job log", box=box.SIMPLE_HEAD)
    table.add_column("Started", style="green")
    table.add_column("Job", style="cyan")
    table.add_column("Status", style="magenta")
    table.add_column("Fetched", justify="right")
    table.add_column("Rewritten", justify="right")
    table.add_column("Published", justify="right")
    table.add_column("Duration (ms)", justify="right")
    table.add_column("Error", style="red", overflow="fold")
    for entry in entries:
        table.add_row(
            _fmt_time(entry.started_at),
            entry.job_type.value,
            entry.status.value,
            str(entry.articles_fetched),
            str(entry.articles_rewritten),
            str(entry.articles_published),
            str(entry.duration_ms if entry.duration_ms is not None else "-"),
            entry.error_message or "",
        )
    return table


def _print_fetch_stats(label: str, stats: FetchStats) -> None:
    console.print(
        f"[cyan]{label}[/cyan] fetch: sourced={stats.sourced} new={stats.new_articles} "
        f"duplicates={stats.duplicates} errors={stats.errors}"
    )
    for source in stats.sources:
        if source.failed:
            console.print(f"  {source.url}: {source.error}", style="red", markup=False)


def _print_rewrite_stats(label: str, stats: RewriteStats) -> None:
    console.print(
        f"[cyan]{label}[/cyan] rewrite: processed={stats.processed} published={stats.published} "
        f"filtered={stats.filtered} duplicates={stats.duplicates} errors={stats.errors}"
    )


def _print_site_result(result: SiteRunResult) -> None:
    label = result.slug or result.site_id
    if result.fetch is not None:
        _print_fetch_stats(label, result.fetch)
    if result.rewrite is not None:
        _print_rewrite_stats(label, result.rewrite)
    for reason in result.skipped:
        console.print(f"{label} skipped: {reason}", style="yellow", markup=False)


app.add_typer(site_app, name="site")
app.add_typer(source_app, name="source")
app.add_typer(run_app, name="run")
app.add_typer(article_app, name="article")
app.add_typer(job_app, name="job")
app.add_typer(log_app, name="log")
app.add_typer(schedule_app, name="schedule")


@app.callback()
def main(
    ctx: typer.Context, verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging.")
) -> None:
    if ctx.obj is None:
        ctx.obj = build_state(verbose)


# ----------------------------------------------------------------------
# site
# ----------------------------------------------------------------------
@site_app.command("add", help="Register a new site.")
def site_add(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Display name of the site."),
    slug: Optional[str] = typer.Option(None, "--slug", help="URL slug (derived from the name by default)."),
    tone: ToneOfVoice = typer.Option(ToneOfVoice.PROFESSIONAL, "--tone", help="Tone of voice for rewrites."),
    brand_summary: Optional[str] = typer.Option(None, "--brand", help="Short brand summary for the rewriter."),
    articles_per_day: int = typer.Option(10, "--per-day", min=1, help="Target articles per day."),
    cron: bool = typer.Option(False, "--cron/--no-cron", help="Include the site in scheduled runs."),
) -> None:
    state = _get_state(ctx)
    try:
        site = state.pipeline.repository.create_site(
            name,
            slug=slug,
            tone_of_voice=tone,
            brand_summary=brand_summary,
            articles_per_day=articles_per_day,
            cron_enabled=cron,
        )
    except PipelineError as exc:
        _fail(exc)
    console.print(f"Site created: {site.slug} ({site.id})", style="green")


@site_app.command("list", help="List registered sites.")
def site_list(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    sites = state.pipeline.repository.list_sites()
    if not sites:
        console.print("No sites yet, create one with `syndicator site add`.", style="yellow")
        raise typer.Exit(code=0)
    console.print(_render_sites_table(sites))


# ----------------------------------------------------------------------
# source
# ----------------------------------------------------------------------
@source_app.command("add", help="Attach an RSS feed or sitemap to a site.")
def source_add(
    ctx: typer.Context,
    site: str = typer.Argument(..., help="Site id or slug."),
    url: str = typer.Argument(..., help="Feed or sitemap URL."),
    kind: SourceKind = typer.Option(SourceKind.RSS, "--type", help="Source type."),
    name: Optional[str] = typer.Option(None, "--name", help="Optional label."),
    validate: bool = typer.Option(False, "--validate", help="Validate the source right away."),
) -> None:
    state = _get_state(ctx)
    target = _resolve_site(state, site)
    source = state.pipeline.repository.add_source(target.id, url, kind, name=name)
    console.print(f"Source added: {source.id}", style="green")
    if validate:
        _report_validation(state, source.id)


@source_app.command("list", help="List sources of a site.")
def source_list(
    ctx: typer.Context,
    site: Optional[str] = typer.Argument(None, help="Site id or slug (all sites when omitted)."),
) -> None:
    state = _get_state(ctx)
    site_id = _resolve_site(state, site).id if site else None
    sources = state.pipeline.repository.list_sources(site_id)
    if not sources:
        console.print("No sources configured.", style="yellow")
        raise typer.Exit(code=0)
    console.print(_render_sources_table(sources))


def _report_validation(state: AppState, source_id: str) -> None:
    try:
        result = state.pipeline.validate_source(source_id)
    except ConfigError as exc:
        _fail(exc)
    if result.is_valid:
        console.print(f"Source {source_id} is valid.", style="green")
    else:
        console.print(f"Source {source_id} is invalid: {result.reason}", style="red")


@source_app.command("validate", help="Check that a source answers with a feed or sitemap.")
def source_validate(
    ctx: typer.Context, source_id: str = typer.Argument(..., help="Source id.")
) -> None:
    _report_validation(_get_state(ctx), source_id)


def _set_active(ctx: typer.Context, source_id: str, active: bool) -> None:
    state = _get_state(ctx)
    if not state.pipeline.repository.set_source_active(source_id, active):
        _fail(ConfigError(f"Source not found: {source_id}", source_id=source_id))
    console.print(f"Source {source_id} {'enabled' if active else 'disabled'}.", style="green")


@source_app.command("enable", help="Include a source in fetch runs.")
def source_enable(ctx: typer.Context, source_id: str = typer.Argument(..., help="Source id.")) -> None:
    _set_active(ctx, source_id, True)


@source_app.command("disable", help="Exclude a source from fetch runs.")
def source_disable(ctx: typer.Context, source_id: str = typer.Argument(..., help="Source id.")) -> None:
    _set_active(ctx, source_id, False)


# ----------------------------------------------------------------------
# run
# ----------------------------------------------------------------------
@run_app.command("fetch", help="Fetch every active source of a site.")
def run_fetch(ctx: typer.Context, site: str = typer.Argument(..., help="Site id or slug.")) -> None:
    state = _get_state(ctx)
    target = _resolve_site(state, site)
    try:
        stats = state.pipeline.run_fetch(target.id)
    except PipelineError as exc:
        _fail(exc)
    _print_fetch_stats(target.slug, stats)


@run_app.command("rewrite", help="Rewrite pending articles of a site.")
def run_rewrite(
    ctx: typer.Context,
    site: str = typer.Argument(..., help="Site id or slug."),
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Maximum articles to process."),
) -> None:
    state = _get_state(ctx)
    target = _resolve_site(state, site)
    try:
        stats = state.pipeline.run_rewrite(target.id, limit)
    except PipelineError as exc:
        _fail(exc)
    _print_rewrite_stats(target.slug, stats)


@run_app.command("site", help="Fetch then rewrite one site.")
def run_site(
    ctx: typer.Context,
    site: str = typer.Argument(..., help="Site id or slug."),
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Maximum articles to rewrite."),
) -> None:
    state = _get_state(ctx)
    target = _resolve_site(state, site)
    try:
        result = state.pipeline.run_site(target.id, limit)
    except PipelineError as exc:
        _fail(exc)
    _print_site_result(result)


@run_app.command("all", help="Run every active site in parallel.")
def run_all(
    ctx: typer.Context,
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Maximum articles to rewrite per site."),
    cron_only: bool = typer.Option(False, "--cron-only", help="Only sites with cron enabled."),
) -> None:
    state = _get_state(ctx)
    outcomes = state.pipeline.run_all(limit, cron_only=cron_only)
    if not outcomes:
        console.print("No active sites to run.", style="yellow")
        raise typer.Exit(code=0)
    failures = 0
    for site_id, outcome in outcomes.items():
        if isinstance(outcome, SiteRunResult):
            _print_site_result(outcome)
        else:
            failures += 1
            console.print(f"{site_id} failed: {outcome}", style="red", markup=False)
    if failures:
        raise typer.Exit(code=1)


# ----------------------------------------------------------------------
# article
# ----------------------------------------------------------------------
@article_app.command("list", help="List articles of a site, newest first.")
def article_list(
    ctx: typer.Context,
    site: str = typer.Argument(..., help="Site id or slug."),
    status: Optional[ArticleStatus] = typer.Option(None, "--status", help="Only this status."),
    limit: int = typer.Option(20, "--limit", min=1, help="Maximum rows to show."),
) -> None:
    state = _get_state(ctx)
    target = _resolve_site(state, site)
    articles = state.pipeline.repository.list_articles(
        target.id,
        statuses=[status] if status else None,
        limit=limit,
        newest_first=True,
    )
    if not articles:
        console.print("No articles found.", style="yellow")
        raise typer.Exit(code=0)
    console.print(_render_articles_table(articles))


@article_app.command("unpublish", help="Take a published article offline.")
def article_unpublish(
    ctx: typer.Context, article_id: str = typer.Argument(..., help="Article id.")
) -> None:
    state = _get_state(ctx)
    try:
        article = state.pipeline.repository.unpublish_article(article_id)
    except PipelineError as exc:
        _fail(exc)
    if article is None:
        _fail(ConfigError(f"Article not found: {article_id}", article_id=article_id))
    console.print(f"Article {article_id} unpublished.", style="green")


# ----------------------------------------------------------------------
# job
# ----------------------------------------------------------------------
@job_app.command("list", help="Show recent job log entries.")
def job_list(
    ctx: typer.Context,
    site: Optional[str] = typer.Argument(None, help="Site id or slug (all sites when omitted)."),
    limit: int = typer.Option(20, "--limit", min=1, help="Maximum rows to show."),
) -> None:
    state = _get_state(ctx)
    site_id = _resolve_site(state, site).id if site else None
    entries = state.pipeline.repository.list_job_log(site_id, limit=limit)
    if not entries:
        console.print("No jobs recorded yet.", style="dim")
        raise typer.Exit(code=0)
    console.print(_render_job_table(entries))


# ----------------------------------------------------------------------
# log
# ----------------------------------------------------------------------
@log_app.command("list", help="List available site log files.")
def log_list() -> None:
    logs = list(available_site_logs())
    console.print("Log files:", style="cyan")
    if not logs:
        console.print("No site logs yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("show", help="Show the tail of a log file.")
def log_show(
    ctx: typer.Context,
    site: Optional[str] = typer.Option(None, "--site", help="Site id (global log when omitted)."),
    tail: int = typer.Option(100, "--tail", min=1, help="Number of lines."),
) -> None:
    state = _get_state(ctx)
    if site:
        path = site_log_path(site)
    else:
        path = Path(state.repository.locator.logs_dir) / "syndicator.log"
    lines = tail_log(path, tail)
    if not lines:
        console.print("No log output yet.", style="dim")
        return
    console.print(f"{'Site' if site else 'Global'} log · last {len(lines)} lines", style="cyan")
    console.print("".join(lines), markup=False, highlight=False)


# ----------------------------------------------------------------------
# schedule
# ----------------------------------------------------------------------
def _scheduled_run(state: AppState, site_id: str) -> None:
    try:
        _print_site_result(state.pipeline.run_site(site_id))
    except PipelineError as exc:
        console.print(f"{site_id}: {exc.message}", style="red", markup=False)


@schedule_app.command("start", help="Run cron-enabled sites on the configured schedule.")
def schedule_start(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    config = state.repository.load_global_config()
    adapter = APSchedulerAdapter(config.schedule)
    scheduled = [
        site
        for site in state.pipeline.repository.list_sites(active_only=True)
        if adapter.schedule_site(site, lambda site_id: _scheduled_run(state, site_id))
    ]
    if not scheduled:
        console.print("No cron-enabled sites to schedule.", style="yellow")
        raise typer.Exit(code=0)
    adapter.start()
    console.print(f"Scheduled {len(scheduled)} site(s); press Ctrl+C to stop.", style="green")
    stop = threading.Event()
    try:
        stop.wait()
    except KeyboardInterrupt:
        console.print("Stopping scheduler.", style="dim")
    finally:
        adapter.shutdown()
        state.pipeline.close()


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
