from __future__ import annotations
from dataclasses import replace
from functools import reduce
from types import MappingProxyType
from typing import Iterable, List, Mapping, Sequence

from .models import JobExecution


FAILED_CONCLUSIONS = {"failure", "cancelled"}


def deduplicate(jobs: Sequence[JobExecution]) -> Mapping[str, JobExecution]:
    """
    Collapse job executions to one per name; the first one seen wins.

    ``jobs`` must be ordered most-recent-run first, so a fresher run (even a
    pending one) always shadows a stale conclusion from an older run.
    """
    def keep_first(acc: dict[str, JobExecution], job: JobExecution) -> dict[str, JobExecution]:
        if job.name not in acc:
            acc[job.name] = job
        return acc

    return MappingProxyType(reduce(keep_first, jobs, {}))


def filter_failed_or_cancelled(jobs: Iterable[JobExecution]) -> List[JobExecution]:
    return [j for j in jobs if j.conclusion in FAILED_CONCLUSIONS]


def filter_by_name(jobs: Iterable[JobExecution], substrings: Iterable[str]) -> List[JobExecution]:
    """Keep jobs whose name contains any of ``substrings``."""
    subs = tuple(substrings)
    return [j for j in jobs if any(s in j.name for s in subs)]


def failed_steps(job: JobExecution) -> JobExecution:
    """Copy of ``job`` carrying only its failed/cancelled steps."""
    steps = tuple(s for s in job.steps if s.conclusion in FAILED_CONCLUSIONS)
    return replace(job, steps=steps)
