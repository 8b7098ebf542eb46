from __future__ import annotations
import asyncio
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Generic, Iterable, List, Optional, TypeVar
from urllib.parse import urlparse


T = TypeVar("T")

_GIST_HOSTS = {"gist.github.com"}
_GIST_ID = re.compile(r"[a-f0-9]+")


@dataclass(frozen=True)
class Settled(Generic[T]):
    """Outcome of one branch of a fan-out: a value or the exception it raised."""
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def gather_settled(aws: Iterable[Awaitable[T]]) -> List[Settled[T]]:
    """Await all concurrently; one failure never cancels its siblings."""
    results = await asyncio.gather(*aws, return_exceptions=True)
    out: List[Settled[T]] = []
    for r in results:
        if isinstance(r, Exception):
            out.append(Settled(error=r))
        elif isinstance(r, BaseException):
            raise r
        else:
            out.append(Settled(value=r))
    return out


def parse_gist_id(url: Optional[str]) -> Optional[str]:
    """Return the gist id of a ``https://gist.github.com/<user>/<id>`` link, else None."""
    if not url:
        return None
    u = urlparse(url)
    if u.netloc not in _GIST_HOSTS:
        return None
    parts = [p for p in u.path.split("/") if p]
    # /<user>/<id>
    if len(parts) < 2 or not _GIST_ID.fullmatch(parts[1]):
        return None
    return parts[1]


def first_gist_file_content(gist: dict[str, Any]) -> Optional[str]:
    files = list((gist.get("files") or {}).values())
    return files[0].get("content") if files else None


def clean_job_name(name: str) -> str:
    # "CI / Regression Test / test-run-x86" -> "test-run-x86"
    return re.sub(r".*/ ", "", name, count=1)


def iso_to_dt(s: str) -> datetime:
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def format_age(s: str | None, now: datetime | None = None) -> str:
    if not s:
        return "--"
    dt = iso_to_dt(s)
    now = now or datetime.now(timezone.utc)
    minutes = int((now - dt).total_seconds() // 60)
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if minutes < 1440:
        return f"{minutes // 60}h ago"
    return dt.date().isoformat()
