from __future__ import annotations
import json
from dataclasses import asdict
from typing import Any, Dict, Optional

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from .models import DashboardSnapshot, ErrorReport, RepositoryReport, TestItem
from .utils import format_age


console = Console()

STATUS_STYLE = {"success": "green", "failure": "red", "pending": "yellow", "error": "magenta"}
TEST_DOT = {"passed": "success", "failed": "failure", "pending": "pending", "cancelled": "error"}
COUNT_STYLE = {"passed": "green", "failed": "red", "pending": "yellow", "cancelled": "dim"}


def _dot(verdict: str) -> str:
    return f"[{STATUS_STYLE[verdict]}]●[/]"


def format_test_line(t: TestItem) -> str:
    dot = _dot(TEST_DOT[t.state])
    if t.state == "failed" and t.failures and t.failures.failed_files:
        files = ", ".join(t.failures.failed_files)
        return f"{dot} [bold]{escape(t.failures.source_name)} failed tests:[/bold] {escape(files)}"
    line = f"{dot} {escape(t.name)}"
    if t.state == "failed" and t.description:
        line += f"\n    [dim]{escape(t.description)}[/dim]"
    return line


def repository_card(r: RepositoryReport | ErrorReport) -> Panel:
    if isinstance(r, ErrorReport):
        title = f"[bold]{escape(r.repo)}[/bold]  [cyan]{escape(r.branch)}[/cyan]"
        return Panel(f"[red]{escape(r.error)}[/red]", title=title, title_align="left", border_style="magenta")

    overall = r.overall_status
    title = f"[bold]{escape(r.repo)}[/bold]  [cyan]{escape(r.branch)}[/cyan]"
    parts = [Text.from_markup(f"[dim]{r.commit.sha} • {format_age(r.commit.date)}[/dim]")]
    if r.tests:
        counts = "  ".join(f"[{COUNT_STYLE[k]}]{n} {k}[/]" for k, n in r.test_counts.items() if n)
        parts.append(Text.from_markup(counts))
        parts.extend(Text.from_markup(format_test_line(t)) for t in r.tests)
    else:
        parts.append(Text.from_markup(f"{_dot(overall)} No tests found"))
    border = "red" if overall == "failure" else STATUS_STYLE[overall]
    return Panel(Group(*parts), title=title, title_align="left", border_style=border,
                 subtitle=overall, subtitle_align="right")


def render_dashboard(snapshot: DashboardSnapshot, out: Optional[Console] = None):
    out = out or console
    if not snapshot.repositories:
        out.print("[yellow]No enabled repositories configured.[/yellow]")
    for r in snapshot.repositories:
        out.print(repository_card(r))
    out.print(f"[dim]Last updated: {format_age(snapshot.timestamp)}[/dim]")


def report_to_dict(r: RepositoryReport | ErrorReport) -> Dict[str, Any]:
    if isinstance(r, ErrorReport):
        return {"repo": r.repo, "branch": r.branch, "error": r.error}
    return {
        "repo": r.repo,
        "branch": r.branch,
        "overall_status": r.overall_status,
        "commit": asdict(r.commit),
        "workflow": asdict(r.workflow) if r.workflow else None,
        "checks": [asdict(c) for c in r.checks],
        "test_checks": [asdict(c) for c in r.test_checks],
        "jobs": [
            {"name": j.name, "conclusion": j.conclusion, "url": j.url, "run_recency": j.run_recency}
            for j in r.jobs
        ],
        "failed_jobs": [
            {"name": j.name, "conclusion": j.conclusion, "url": j.url, "steps": [asdict(s) for s in j.steps]}
            for j in r.failed_jobs
        ],
        "failed_test_jobs": [asdict(j) for j in r.failed_test_jobs],
        "statuses": [asdict(s) for s in r.statuses],
        "tests": [asdict(t) for t in r.tests],
        "test_counts": r.test_counts,
    }


def snapshot_to_dict(s: DashboardSnapshot) -> Dict[str, Any]:
    return {"timestamp": s.timestamp, "repositories": [report_to_dict(r) for r in s.repositories]}


def snapshot_to_json(s: DashboardSnapshot) -> str:
    return json.dumps(snapshot_to_dict(s), indent=2)
