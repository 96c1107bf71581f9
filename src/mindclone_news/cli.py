"""Command-line interface for inspecting and tuning news curation."""

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from mindclone_news.delivery.injector import PROACTIVE_NEWS
from mindclone_news.storage import CurationDatabase

app = typer.Typer(
    name="mindclone-news",
    help="Mindclone News Curator - Inspect curation state and delivered digests",
    no_args_is_help=True,
)
console = Console()


def _fmt(value) -> str:
    if value is None:
        return "[dim]never[/dim]"
    return value.strftime("%Y-%m-%d %H:%M")


@app.command()
def stats() -> None:
    """Show statistics from the last curation run."""
    db = CurationDatabase()
    run = db.read_run_stats()

    if run is None:
        console.print("[yellow]No curation runs recorded yet[/yellow]")
        return

    status_style = {"success": "green", "partial": "yellow", "failed": "red"}.get(
        run.last_run_status.value, "white"
    )
    console.print(
        Panel(
            f"[bold]Last Curation Run[/bold]\n{_fmt(run.last_run_timestamp)}",
            style="blue",
        )
    )
    console.print(f"\n[bold]Status:[/bold] [{status_style}]{run.last_run_status.value}[/{status_style}]")
    console.print(f"[bold]Users Processed:[/bold] {run.users_processed}")
    console.print(f"[bold]Articles Sent:[/bold] {run.articles_sent}")
    console.print(f"[bold]Duration:[/bold] {run.processing_time_ms / 1000:.1f}s")

    if run.errors:
        table = Table(title="Errors")
        table.add_column("User", style="cyan", width=20)
        table.add_column("Error", width=60)
        for error in run.errors:
            table.add_row(error.user_id or "-", error.error[:60])
        console.print(table)


@app.command()
def config(user_id: str = typer.Argument(..., help="User id")) -> None:
    """Show a user's curation config."""
    db = CurationDatabase()
    user_config = db.read_user_curation_config(user_id)

    if user_config is None:
        console.print(f"[yellow]No curation config for {user_id} (defaults apply)[/yellow]")
        return

    table = Table(title=f"Curation Config: {user_id}", show_header=False)
    table.add_column("Field", width=24)
    table.add_column("Value")

    table.add_row("Enabled", "yes" if user_config.enabled else "[red]no[/red]")
    table.add_row("Last check", _fmt(user_config.last_check_timestamp))
    table.add_row("Last success", _fmt(user_config.last_successful_check))
    table.add_row("Consecutive failures", str(user_config.consecutive_failures))
    table.add_row("Articles sent today", str(user_config.articles_sent_today))
    table.add_row("Last reset", _fmt(user_config.last_reset_date))

    console.print(table)


@app.command()
def enable(user_id: str = typer.Argument(..., help="User id")) -> None:
    """Turn news curation on for a user."""
    CurationDatabase().merge_user_curation_config(user_id, {"enabled": True})
    console.print(f"[green]News curation enabled for {user_id}[/green]")


@app.command()
def disable(user_id: str = typer.Argument(..., help="User id")) -> None:
    """Turn news curation off for a user."""
    CurationDatabase().merge_user_curation_config(user_id, {"enabled": False})
    console.print(f"[yellow]News curation disabled for {user_id}[/yellow]")


@app.command()
def seen(
    user_id: str = typer.Argument(..., help="User id"),
    limit: int = typer.Option(20, "--limit", "-l", help="Max articles to show"),
) -> None:
    """List articles already delivered to a user."""
    db = CurationDatabase()
    articles = db.get_seen_articles(user_id, limit=limit)

    if not articles:
        console.print(f"[yellow]No articles delivered to {user_id}[/yellow]")
        return

    table = Table(title=f"Seen Articles: {user_id}")
    table.add_column("Seen", style="dim", width=16)
    table.add_column("Title", width=50)
    table.add_column("URL", style="green", width=40)

    for article in articles:
        table.add_row(
            _fmt(article.seen_at),
            article.title[:50] + ("..." if len(article.title) > 50 else ""),
            article.url[:40],
        )

    console.print(table)


@app.command()
def messages(
    user_id: str = typer.Argument(..., help="User id"),
    limit: int = typer.Option(5, "--limit", "-l", help="Number of digests"),
) -> None:
    """Show the news digests delivered to a user."""
    db = CurationDatabase()
    digests = db.get_messages(user_id, message_type=PROACTIVE_NEWS, limit=limit)

    if not digests:
        console.print(f"[yellow]No news digests for {user_id}[/yellow]")
        return

    for digest in digests:
        count = digest["metadata"].get("article_count", 0)
        console.print(
            Panel(
                digest["content"],
                title=f"{_fmt(digest['created_at'])} - {count} article(s)",
                style="blue",
            )
        )


if __name__ == "__main__":
    app()
