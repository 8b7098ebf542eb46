from __future__ import annotations
import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from .builder import build_dashboard
from .config import ConfigError, DashboardConfig, load_config, resolve_token
from .models import DashboardSnapshot
from .providers.github_api import GitHubClient
from .render import render_dashboard, snapshot_to_json


# Read-only: only GET requests are issued against the CI provider.
app = typer.Typer(help="CI Health: build/test health dashboard for multiple repository branches (read-only).")
console = Console()


def _setup_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load(config_path: Path) -> DashboardConfig:
    try:
        return load_config(config_path)
    except ConfigError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(code=2)


def _client(cfg: DashboardConfig, token: Optional[str], timeout: Optional[float], cache: bool = False) -> GitHubClient:
    return GitHubClient(token=token, api_base=cfg.api_base, timeout=timeout or cfg.timeout, use_cache=cache)


async def poll_once(client: GitHubClient, cfg: DashboardConfig) -> DashboardSnapshot:
    return await build_dashboard(
        client, cfg.enabled_repositories,
        recent_runs=cfg.recent_runs,
        test_job_patterns=cfg.test_job_patterns,
        dashboard_job_patterns=cfg.dashboard_job_patterns,
    )


def _emit(snapshot: DashboardSnapshot, format_: str, output: Optional[Path]):
    feed = snapshot_to_json(snapshot)
    if output:
        output.write_text(feed, encoding="utf-8")
    if format_.lower() == "json":
        console.print_json(feed)
    else:
        render_dashboard(snapshot, out=console)


@app.command("status")
def cmd_status(
    config_path: Path = typer.Option(Path("config.json"), "--config", help="Dashboard configuration file"),
    token: str | None = typer.Option(None, "--token", help="GitHub token (or env GITHUB_TOKEN)"),
    timeout: float | None = typer.Option(None, "--timeout", help="HTTP timeout seconds"),
    format_: str = typer.Option("pretty", "--format", help="pretty|json", case_sensitive=False),
    output: Path | None = typer.Option(None, "--output", help="Also write the JSON data feed to this file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Poll every enabled repository once and print the dashboard."""
    load_dotenv()
    _setup_logging(verbose)
    cfg = _load(config_path)

    async def once() -> DashboardSnapshot:
        client = _client(cfg, resolve_token(token, cfg), timeout)
        try:
            return await poll_once(client, cfg)
        finally:
            await client.aclose()

    _emit(asyncio.run(once()), format_, output)


@app.command("watch")
def cmd_watch(
    config_path: Path = typer.Option(Path("config.json"), "--config", help="Dashboard configuration file"),
    token: str | None = typer.Option(None, "--token", help="GitHub token (or env GITHUB_TOKEN)"),
    timeout: float | None = typer.Option(None, "--timeout", help="HTTP timeout seconds"),
    interval: int | None = typer.Option(None, "--interval", help="Seconds between polls (default: settings.refreshInterval)"),
    output: Path | None = typer.Option(None, "--output", help="Rewrite the JSON data feed to this file on every poll"),
    cache: bool = typer.Option(True, "--cache/--no-cache", help="Send ETag conditional requests between polls"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Re-poll and re-render the dashboard every refresh interval until interrupted."""
    load_dotenv()
    _setup_logging(verbose)
    cfg = _load(config_path)
    every = interval or cfg.refresh_interval
    if every <= 0:
        console.print("[red]--interval must be greater than zero[/red]")
        raise typer.Exit(code=2)

    async def loop():
        # One client for every poll so unchanged resources come back as 304s
        client = _client(cfg, resolve_token(token, cfg), timeout, cache=cache)
        try:
            while True:
                snapshot = await poll_once(client, cfg)
                console.clear()
                _emit(snapshot, "pretty", output)
                console.print(f"[dim]Refreshing every {every}s. Ctrl+C to stop.[/dim]")
                await asyncio.sleep(every)
        finally:
            await client.aclose()

    try:
        asyncio.run(loop())
    except KeyboardInterrupt:
        raise typer.Exit(code=0)


def main():
    app()


if __name__ == "__main__":
    main()
