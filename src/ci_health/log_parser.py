"""Best-effort recovery of individual failed test files from free text.

Three sources are tried in order: gist markdown, raw job logs, and the short
status description. Each strategy is a set of independent matchers over the
same immutable text; the first strategy yielding any candidate wins.
"""
from __future__ import annotations
import logging
import re
from typing import Callable, Iterable, List, Optional, Sequence

from .models import FailureExtraction


log = logging.getLogger(__name__)

Matcher = Callable[[str], List[str]]

# "0003-name.py": numbered test files of the test framework
_GIST_RED_CIRCLE = re.compile(r"-\s*:red_circle:\s*:\s*(\d{4}-[a-zA-Z0-9_-]+\.(?:py|sh|yaml))")
_GIST_FAIL = re.compile(r"FAIL:\s*(\d{4}-[a-zA-Z0-9_-]+\.(?:py|sh|yaml))")

_STARTING_TEST = re.compile(r"Starting test (\d{4}-[a-zA-Z0-9_-]+\.py)")
_NOT_OK = "not ok "

_LOG_FILE = re.compile(r"\d{4}-[a-zA-Z0-9_-]+\.(?:py|sh)")
_LOG_IDIOMS = (
    re.compile(r"FAILED\s+[^\s]+\.py::[^\s]+"),
    re.compile(r"FAIL:\s*\d{4}-[a-zA-Z0-9_-]+\.(?:py|sh)"),
    re.compile(r"ERROR.*?\d{4}-[a-zA-Z0-9_-]+\.(?:py|sh)"),
    re.compile(r"\d{4}-[a-zA-Z0-9_-]+\.(?:py|sh).*?AssertionError"),
)

_DESCRIPTION_FILE = re.compile(r"\d{4}-[a-zA-Z-]+\.(?:py|sh)|\w+\.py|\w+\.sh")

_NUMBER_PREFIX = re.compile(r"^\d{4}-")
_EXTENSION = re.compile(r"\.(?:py|sh|yaml)$")
# Marks "some test failed" without naming one
_ALL_SENTINEL = "all"


def _unique(items: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(items))


def _findall(pattern: re.Pattern[str]) -> Matcher:
    return lambda text: [m.group(1) if m.groups() else m.group(0) for m in pattern.finditer(text)]


def _is_test_file(candidate: str) -> bool:
    if not candidate or any(c in candidate for c in "|#:"):
        return False
    return "test" in candidate or re.match(r"^\d{4}", candidate) is not None


def match_gist(text: str) -> List[str]:
    found = _unique(c for matcher in (_findall(_GIST_RED_CIRCLE), _findall(_GIST_FAIL)) for c in matcher(text))
    return [c for c in found if _is_test_file(c)]


def match_not_ok_pairs(text: str) -> List[str]:
    """Attribute each ``not ok`` line to the nearest preceding ``Starting test`` line."""
    started: List[tuple[int, str]] = []
    failed: List[str] = []
    for index, line in enumerate(text.split("\n")):
        m = _STARTING_TEST.search(line)
        if m:
            started.append((index, m.group(1)))
        if _NOT_OK in line:
            preceding = [name for i, name in started if i < index]
            if preceding:
                failed.append(preceding[-1])
    return failed


def match_log_idioms(text: str) -> List[str]:
    found: List[str] = []
    for pattern in _LOG_IDIOMS:
        for m in pattern.finditer(text):
            f = _LOG_FILE.search(m.group(0))
            if f:
                found.append(f.group(0))
    return found


def match_job_log(text: str) -> List[str]:
    return _unique(match_not_ok_pairs(text) + match_log_idioms(text))


def match_description(text: str) -> List[str]:
    return [m.group(0) for m in _DESCRIPTION_FILE.finditer(text)]


def clean_names(candidates: Sequence[str]) -> List[str]:
    cleaned = (_EXTENSION.sub("", _NUMBER_PREFIX.sub("", c)) for c in candidates)
    return [c for c in cleaned if c != _ALL_SENTINEL]


def extract_failures(test_name: str, description: Optional[str] = None, gist_content: Optional[str] = None,
                     job_logs: Optional[str] = None) -> Optional[FailureExtraction]:
    """
    Return the failed test files named in the available text, or None.

    None means nothing individual could be identified; callers should fall
    back to showing the raw name/description.
    """
    strategies = (
        ("gist", gist_content, match_gist),
        ("job log", job_logs, match_job_log),
        ("description", description, match_description),
    )
    for source, text, matcher in strategies:
        if not text:
            continue
        candidates = matcher(text)
        log.debug("%s: %s candidates %s", test_name, source, candidates)
        if candidates:
            cleaned = clean_names(candidates)
            return FailureExtraction(source_name=test_name, failed_files=tuple(cleaned)) if cleaned else None
    return None
