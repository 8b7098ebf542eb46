from __future__ import annotations
import asyncio
import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .config import DEFAULT_DASHBOARD_JOB_PATTERNS, DEFAULT_RECENT_RUNS, DEFAULT_TEST_JOB_PATTERNS, RepositoryTarget
from .jobs import deduplicate, failed_steps, filter_by_name, filter_failed_or_cancelled
from .log_parser import extract_failures
from .models import (
    CheckResult, CommitSummary, DashboardSnapshot, ErrorReport, FailedTestJob, JobExecution, RepositoryReport,
    StatusCheck, StepResult, TestItem, WorkflowSummary,
)
from .providers.base import CIProviderClient, ProviderError
from .utils import clean_job_name, first_gist_file_content, gather_settled, parse_gist_id, utc_now_iso


log = logging.getLogger(__name__)

WORKFLOW_RUNS_PER_PAGE = 50
# A payload missing fields we rely on
MALFORMED = (KeyError, TypeError, AttributeError, IndexError, ValueError)


def _describe(error: BaseException) -> str:
    if isinstance(error, ProviderError):
        return error.message
    return f"{type(error).__name__}: {error}"


def commit_from_branch(data: Dict[str, Any]) -> CommitSummary:
    c = data["commit"]
    author = c["commit"].get("author") or {}
    return CommitSummary(sha=c["sha"][:7], message=c["commit"]["message"].split("\n")[0],
                         author=author.get("name"), date=author.get("date"))


def workflow_from_run(r: Optional[Dict[str, Any]]) -> Optional[WorkflowSummary]:
    if not r:
        return None
    return WorkflowSummary(name=r.get("name"), status=r.get("status"), conclusion=r.get("conclusion"),
                           url=r.get("html_url"), created_at=r.get("created_at"), updated_at=r.get("updated_at"))


def check_from_json(c: Dict[str, Any]) -> CheckResult:
    return CheckResult(name=c["name"], status=c.get("status"), conclusion=c.get("conclusion"), url=c.get("html_url"),
                       started_at=c.get("started_at"), completed_at=c.get("completed_at"),
                       details_url=c.get("details_url"))


def status_from_json(s: Dict[str, Any]) -> StatusCheck:
    return StatusCheck(context=s["context"], state=s["state"], description=s.get("description"),
                       target_url=s.get("target_url"), created_at=s.get("created_at"), updated_at=s.get("updated_at"))


def job_from_json(j: Dict[str, Any], run_recency: int) -> JobExecution:
    steps = tuple(StepResult(name=s.get("name", ""), conclusion=s.get("conclusion"), number=s.get("number", 0))
                  for s in (j.get("steps") or []))
    return JobExecution(id=j["id"], name=j["name"], conclusion=j.get("conclusion"), url=j.get("html_url"),
                        steps=steps, run_recency=run_recency, run_id=j.get("run_id"), status=j.get("status"))


def job_state(conclusion: Optional[str]) -> str:
    return {"success": "passed", "failure": "failed", "cancelled": "cancelled"}.get(conclusion or "", "pending")


def status_state(state: str) -> str:
    if state == "success":
        return "passed"
    return "failed" if state in {"failure", "error"} else "pending"


async def _run_jobs(client: CIProviderClient, owner: str, repo: str, run_id: int, recency: int) -> List[JobExecution]:
    return [job_from_json(j, recency) for j in await client.list_run_jobs(owner, repo, run_id)]


async def _with_gist(client: CIProviderClient, status: StatusCheck) -> StatusCheck:
    gist_id = parse_gist_id(status.target_url)
    if status.state != "failure" or not gist_id:
        return status
    content = first_gist_file_content(await client.get_gist(gist_id))
    return replace(status, gist_content=content)


async def fetch_recent_jobs(client: CIProviderClient, owner: str, repo: str,
                            runs: Sequence[Dict[str, Any]]) -> List[JobExecution]:
    """Jobs of ``runs`` concatenated most recent run first; failed runs are skipped."""
    results = await gather_settled(_run_jobs(client, owner, repo, r["id"], i) for i, r in enumerate(runs))
    jobs: List[JobExecution] = []
    for run, res in zip(runs, results):
        if res.ok:
            jobs.extend(res.value or [])
        else:
            log.warning("%s/%s: could not fetch jobs for run %s: %s", owner, repo, run["id"], _describe(res.error))
    return jobs


async def enrich_statuses(client: CIProviderClient, owner: str, repo: str,
                          statuses: Sequence[StatusCheck]) -> List[StatusCheck]:
    results = await gather_settled(_with_gist(client, s) for s in statuses)
    out: List[StatusCheck] = []
    for status, res in zip(statuses, results):
        if res.ok:
            out.append(res.value)
        else:
            log.warning("%s/%s: could not fetch gist for %s: %s", owner, repo, status.context, _describe(res.error))
            out.append(status)
    return out


async def fetch_failed_test_logs(client: CIProviderClient, owner: str, repo: str,
                                 jobs: Sequence[JobExecution]) -> List[FailedTestJob]:
    results = await gather_settled(client.get_job_logs(owner, repo, j.id) for j in jobs)
    out: List[FailedTestJob] = []
    for job, res in zip(jobs, results):
        if not res.ok:
            log.warning("%s/%s: could not fetch logs for job %s: %s", owner, repo, job.id, _describe(res.error))
        else:
            log.debug("%s/%s: got logs for %s, length %d", owner, repo, job.name, len(res.value or ""))
        out.append(FailedTestJob(name=job.name, conclusion=job.conclusion, url=job.url, logs=res.value))
    return out


def build_test_items(jobs: Iterable[JobExecution], statuses: Iterable[StatusCheck],
                     failed_test_jobs: Iterable[FailedTestJob], dashboard_job_patterns: Iterable[str]) -> List[TestItem]:
    logs_by_name = {j.name: j.logs for j in failed_test_jobs}
    items: List[TestItem] = []
    for job in filter_by_name(jobs, dashboard_job_patterns):
        name = clean_job_name(job.name)
        state = job_state(job.conclusion)
        failures = None
        if state == "failed":
            failures = extract_failures(name, job_logs=logs_by_name.get(job.name))
        items.append(TestItem(name=name, kind="job", state=state, url=job.url, failures=failures))
    for s in statuses:
        state = status_state(s.state)
        failures = None
        if state == "failed":
            failures = extract_failures(s.context, description=s.description, gist_content=s.gist_content)
        items.append(TestItem(name=s.context, kind="status", state=state, description=s.description,
                              url=s.target_url, failures=failures))
    return items


async def build_repository_report(client: CIProviderClient, owner: str, repo: str, branch: str, *,
                                  recent_runs: int = DEFAULT_RECENT_RUNS,
                                  test_job_patterns: Iterable[str] = DEFAULT_TEST_JOB_PATTERNS,
                                  dashboard_job_patterns: Iterable[str] = DEFAULT_DASHBOARD_JOB_PATTERNS,
                                  ) -> RepositoryReport | ErrorReport:
    """Build the health report for one branch. Never raises; hard failures yield an ``ErrorReport``."""
    full_name = f"{owner}/{repo}"

    # 1) branch head, runs, checks and statuses
    initial = await gather_settled([
        client.get_branch(owner, repo, branch),
        client.list_workflow_runs(owner, repo, branch, per_page=WORKFLOW_RUNS_PER_PAGE),
        client.list_check_runs(owner, repo, branch),
        client.get_commit_status(owner, repo, branch),
    ])
    errors = [s.error for s in initial if not s.ok]
    if errors:
        log.error("Error fetching status for %s:%s: %s", full_name, branch, _describe(errors[0]))
        return ErrorReport(repo=full_name, branch=branch, error=_describe(errors[0]))
    branch_data, runs, raw_checks, raw_statuses = (s.value for s in initial)
    try:
        commit = commit_from_branch(branch_data)
        workflow = workflow_from_run(runs[0] if runs else None)
        checks = tuple(check_from_json(c) for c in raw_checks)
        statuses = [status_from_json(s) for s in raw_statuses]
        recent = [r for r in runs[:recent_runs] if "id" in r]
    except MALFORMED as e:
        log.error("Unexpected response for %s:%s: %s", full_name, branch, e)
        return ErrorReport(repo=full_name, branch=branch, error=_describe(e))

    # 2) jobs of recent runs and gist content, both fanned out
    all_jobs, enriched = await asyncio.gather(
        fetch_recent_jobs(client, owner, repo, recent),
        enrich_statuses(client, owner, repo, statuses),
    )
    log.debug("Jobs for %s:%s: %s", full_name, branch, [f"{j.name}: {j.conclusion}" for j in all_jobs])

    unique = deduplicate(all_jobs)
    jobs = tuple(unique.values())
    failed = filter_failed_or_cancelled(jobs)

    # 3) logs of failed test jobs
    failed_tests = filter_by_name(failed, test_job_patterns)
    log.info("%s:%s: %d jobs, %d failed, %d failed test jobs", full_name, branch, len(jobs), len(failed),
             len(failed_tests))
    failed_test_jobs = await fetch_failed_test_logs(client, owner, repo, failed_tests)

    tests = build_test_items(jobs, enriched, failed_test_jobs, dashboard_job_patterns)
    return RepositoryReport(
        repo=full_name,
        branch=branch,
        commit=commit,
        workflow=workflow,
        checks=checks,
        jobs=jobs,
        statuses=tuple(enriched),
        failed_jobs=tuple(failed_steps(j) for j in failed),
        failed_test_jobs=tuple(failed_test_jobs),
        tests=tuple(tests),
    )


async def build_dashboard(client: CIProviderClient, targets: Iterable[RepositoryTarget], **options: Any) -> DashboardSnapshot:
    """Build reports for all enabled targets concurrently, in configuration order."""
    enabled = [t for t in targets if t.enabled]
    results = await gather_settled(
        build_repository_report(client, t.owner, t.repo, t.branch, **options) for t in enabled
    )
    reports: List[RepositoryReport | ErrorReport] = []
    for target, res in zip(enabled, results):
        if res.ok:
            reports.append(res.value)
        else:
            log.error("Unexpected failure building %s/%s", target.owner, target.repo, exc_info=res.error)
            reports.append(ErrorReport(repo=f"{target.owner}/{target.repo}", branch=target.branch,
                                       error=_describe(res.error)))
    return DashboardSnapshot(timestamp=utc_now_iso(), repositories=tuple(reports))
