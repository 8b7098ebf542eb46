from __future__ import annotations
from typing import Any, Dict, List, Optional, Protocol


class ProviderError(Exception):
    """Any failed call to the CI provider (network, auth, rate limit, 4xx/5xx)."""

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.url = url


class GitHubAuthError(ProviderError): ...


class CIProviderClient(Protocol):
    async def get_branch(self, owner: str, repo: str, branch: str) -> Dict[str, Any]: ...
    async def list_workflow_runs(self, owner: str, repo: str, branch: str, per_page: int = 50) -> List[Dict[str, Any]]: ...
    async def list_check_runs(self, owner: str, repo: str, ref: str) -> List[Dict[str, Any]]: ...
    async def get_commit_status(self, owner: str, repo: str, ref: str) -> List[Dict[str, Any]]: ...
    async def list_run_jobs(self, owner: str, repo: str, run_id: int) -> List[Dict[str, Any]]: ...
    async def get_job_logs(self, owner: str, repo: str, job_id: int) -> str: ...
    async def get_gist(self, gist_id: str) -> Dict[str, Any]: ...
