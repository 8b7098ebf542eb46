from __future__ import annotations
from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from .models import CheckResult, StatusCheck, Verdict, WorkflowSummary


def workflow_verdict(status: Optional[str], conclusion: Optional[str]) -> "Verdict":
    """Map a run/check ``status`` + ``conclusion`` pair to a verdict."""
    if status == "completed":
        return "success" if conclusion == "success" else "failure"
    if status in {"in_progress", "queued"}:
        return "pending"
    return "error"


def status_state_verdict(state: Optional[str]) -> "Verdict":
    if state == "success":
        return "success"
    if state in {"failure", "error"}:
        return "failure"
    if state == "pending":
        return "pending"
    return "error"


def compute_overall_status(workflow: Optional["WorkflowSummary"], checks: Sequence["CheckResult"],
                           statuses: Sequence["StatusCheck"]) -> "Verdict":
    """
    Combine the latest workflow run, check-runs and commit statuses.

    Any explicit failure signal outranks a successful workflow; incomplete
    statuses keep the verdict pending even when the workflow finished.
    """
    if workflow is None:
        return "error"
    base = workflow_verdict(workflow.status, workflow.conclusion)

    if any(workflow_verdict(c.status, c.conclusion) == "failure" for c in checks) \
            or any(s.state in {"failure", "error"} for s in statuses):
        return "failure"
    if base == "pending" or any(s.state == "pending" for s in statuses):
        return "pending"
    if base == "success" and statuses:
        # only statuses in an unrecognised state can fail this
        return "success" if all(s.state == "success" for s in statuses) else "pending"
    return base
