from __future__ import annotations
import logging
import httpx
from typing import Any, Dict, List, Optional

from .base import GitHubAuthError, ProviderError


log = logging.getLogger(__name__)


def _error_message(r: httpx.Response) -> str:
    # GitHub error bodies are {"message": "...", "documentation_url": "..."}
    try:
        body = r.json()
    except ValueError:
        return r.text or r.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return r.text or r.reason_phrase


class GitHubClient:
    """
    Read-only GitHub API client implementing ``CIProviderClient``.

    Every method returns the provider-shaped JSON (or log text) unchanged and
    raises ``ProviderError`` on any failed call. Only GET requests are issued.
    """
    def __init__(self, token: Optional[str] = None, api_base: str = "https://api.github.com", timeout: float = 10.0,
                 use_cache: bool = False, transport: Optional[httpx.AsyncBaseTransport] = None):
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "ci-health/0.1",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.client = httpx.AsyncClient(timeout=timeout, headers=headers, follow_redirects=True, transport=transport)
        self.api_base = api_base.rstrip("/")
        self.use_cache = use_cache
        self._etag: dict[tuple, str] = {}
        self._cached: dict[tuple, httpx.Response] = {}

    async def aclose(self):
        await self.client.aclose()

    async def _get(self, url: str, params: dict | None = None) -> httpx.Response:
        params = params or {}
        key = (url, tuple(sorted(params.items())))
        headers = {}
        if self.use_cache and key in self._etag:
            headers["If-None-Match"] = self._etag[key]
        try:
            r = await self.client.get(url, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise ProviderError(f"GET {url} failed: {e}", url=url) from e
        if r.status_code == 401:
            raise GitHubAuthError("Unauthorized. Check token scopes (actions:read, contents:read).", status_code=401, url=url)
        if r.status_code == 304 and key in self._cached:
            log.debug("cache hit for %s", url)
            return self._cached[key]
        if r.status_code >= 400:
            raise ProviderError(_error_message(r), status_code=r.status_code, url=url)
        if self.use_cache and (et := r.headers.get("ETag")):
            self._etag[key] = et
            self._cached[key] = r
        return r

    async def get_branch(self, owner: str, repo: str, branch: str) -> Dict[str, Any]:
        url = f"{self.api_base}/repos/{owner}/{repo}/branches/{branch}"
        return (await self._get(url)).json()

    async def list_workflow_runs(self, owner: str, repo: str, branch: str, per_page: int = 50) -> List[Dict[str, Any]]:
        url = f"{self.api_base}/repos/{owner}/{repo}/actions/runs"
        r = await self._get(url, params={"branch": branch, "per_page": per_page})
        return r.json().get("workflow_runs", [])

    async def list_check_runs(self, owner: str, repo: str, ref: str) -> List[Dict[str, Any]]:
        url = f"{self.api_base}/repos/{owner}/{repo}/commits/{ref}/check-runs"
        return (await self._get(url)).json().get("check_runs", [])

    async def get_commit_status(self, owner: str, repo: str, ref: str) -> List[Dict[str, Any]]:
        url = f"{self.api_base}/repos/{owner}/{repo}/commits/{ref}/status"
        return (await self._get(url)).json().get("statuses") or []

    async def list_run_jobs(self, owner: str, repo: str, run_id: int) -> List[Dict[str, Any]]:
        url = f"{self.api_base}/repos/{owner}/{repo}/actions/runs/{run_id}/jobs"
        r = await self._get(url, params={"per_page": 100})
        return r.json().get("jobs", [])

    async def get_job_logs(self, owner: str, repo: str, job_id: int) -> str:
        # Redirects to a short-lived plain text download
        url = f"{self.api_base}/repos/{owner}/{repo}/actions/jobs/{job_id}/logs"
        return (await self._get(url)).text

    async def get_gist(self, gist_id: str) -> Dict[str, Any]:
        url = f"{self.api_base}/gists/{gist_id}"
        return (await self._get(url)).json()
