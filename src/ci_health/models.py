from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Literal, Optional, Tuple

from .status import compute_overall_status


Verdict = Literal["success", "failure", "pending", "error"]
TestState = Literal["passed", "failed", "pending", "cancelled"]


@dataclass(frozen=True)
class StepResult:
    name: str
    conclusion: Optional[str]
    number: int


@dataclass(frozen=True)
class JobExecution:
    id: int
    name: str
    conclusion: Optional[str]  # success | failure | cancelled | skipped | None while running
    url: Optional[str]
    steps: Tuple[StepResult, ...]
    run_recency: int  # 0 = most recent workflow run
    run_id: Optional[int] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class CheckResult:
    name: str
    status: Optional[str]
    conclusion: Optional[str]
    url: Optional[str]
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    details_url: Optional[str] = None


@dataclass(frozen=True)
class StatusCheck:
    context: str
    state: str  # success | failure | error | pending
    description: Optional[str]
    target_url: Optional[str]
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    gist_content: Optional[str] = None


@dataclass(frozen=True)
class WorkflowSummary:
    name: Optional[str]
    status: Optional[str]
    conclusion: Optional[str]
    url: Optional[str]
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass(frozen=True)
class CommitSummary:
    sha: str  # abbreviated to 7 characters
    message: str  # first line only
    author: Optional[str]
    date: Optional[str]


@dataclass(frozen=True)
class FailureExtraction:
    """Individual failed tests recovered from free text. Only produced by ``log_parser``."""
    source_name: str
    failed_files: Tuple[str, ...]


@dataclass(frozen=True)
class FailedTestJob:
    name: str
    conclusion: Optional[str]
    url: Optional[str]
    logs: Optional[str]  # None when the log download failed


@dataclass(frozen=True)
class TestItem:
    name: str
    kind: Literal["job", "status"]
    state: TestState
    description: Optional[str] = None
    url: Optional[str] = None
    failures: Optional[FailureExtraction] = None


@dataclass(frozen=True)
class RepositoryReport:
    repo: str
    branch: str
    commit: CommitSummary
    workflow: Optional[WorkflowSummary]
    checks: Tuple[CheckResult, ...]
    jobs: Tuple[JobExecution, ...]  # deduplicated, one per job name
    statuses: Tuple[StatusCheck, ...]  # enriched with gist content
    failed_jobs: Tuple[JobExecution, ...] = ()
    failed_test_jobs: Tuple[FailedTestJob, ...] = ()
    tests: Tuple[TestItem, ...] = ()

    @property
    def overall_status(self) -> Verdict:
        return compute_overall_status(self.workflow, self.checks, self.statuses)

    @property
    def test_checks(self) -> Tuple[CheckResult, ...]:
        return tuple(c for c in self.checks if c.name.startswith("test-run-"))

    @property
    def test_counts(self) -> Dict[str, int]:
        counts = {"passed": 0, "failed": 0, "pending": 0, "cancelled": 0}
        for t in self.tests:
            counts[t.state] += 1
        return counts


@dataclass(frozen=True)
class ErrorReport:
    """Degraded report for a repository whose mandatory fetches failed."""
    repo: str
    branch: str
    error: str


@dataclass(frozen=True)
class DashboardSnapshot:
    timestamp: str
    repositories: Tuple[RepositoryReport | ErrorReport, ...] = field(default_factory=tuple)
