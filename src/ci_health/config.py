from __future__ import annotations
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Tuple


log = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL = 300
DEFAULT_RECENT_RUNS = 5
DEFAULT_TIMEOUT = 10.0
DEFAULT_TEST_JOB_PATTERNS = ("test-run-", "Regression Test")
DEFAULT_DASHBOARD_JOB_PATTERNS = ("test-run-", "Regression Test", "Build infix", "build-")


class ConfigError(ValueError): ...


@dataclass(frozen=True)
class RepositoryTarget:
    owner: str
    repo: str
    branch: str
    enabled: bool = True


@dataclass(frozen=True)
class DashboardConfig:
    repositories: Tuple[RepositoryTarget, ...]
    refresh_interval: int = DEFAULT_REFRESH_INTERVAL
    token: Optional[str] = None
    api_base: str = "https://api.github.com"
    timeout: float = DEFAULT_TIMEOUT
    recent_runs: int = DEFAULT_RECENT_RUNS
    test_job_patterns: Tuple[str, ...] = DEFAULT_TEST_JOB_PATTERNS
    dashboard_job_patterns: Tuple[str, ...] = DEFAULT_DASHBOARD_JOB_PATTERNS

    @property
    def enabled_repositories(self) -> List[RepositoryTarget]:
        return [r for r in self.repositories if r.enabled]


def _strip_token_prefix(token: Optional[str]) -> Optional[str]:
    # Tokens pasted as "GITHUB_TOKEN=ghp_..." into the config file
    if token and token.startswith("GITHUB_TOKEN="):
        return token[len("GITHUB_TOKEN="):]
    return token or None


def _parse_target(entry: Any, index: int) -> RepositoryTarget:
    if not isinstance(entry, dict):
        raise ConfigError(f"repositories[{index}] must be an object")
    missing = [k for k in ("owner", "repo", "branch") if not entry.get(k)]
    if missing:
        raise ConfigError(f"repositories[{index}] is missing {', '.join(missing)}")
    enabled = entry.get("enabled", True)
    if not isinstance(enabled, bool):
        raise ConfigError(f"repositories[{index}].enabled must be true or false")
    return RepositoryTarget(owner=str(entry["owner"]), repo=str(entry["repo"]), branch=str(entry["branch"]),
                            enabled=enabled)


def _object(value: Any, name: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' must be an object")
    return value


def _patterns(settings: dict, key: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    value = settings.get(key, default)
    if not isinstance(value, (list, tuple)) or not all(isinstance(p, str) and p for p in value):
        raise ConfigError(f"settings.{key} must be a list of non-empty strings")
    return tuple(value)


def _positive(value: Any, key: str, kind: type) -> Any:
    try:
        n = kind(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"settings.{key} is not a number: {value!r}") from e
    if n <= 0:
        raise ConfigError(f"settings.{key} must be greater than zero")
    return n


def parse_config(data: Any) -> DashboardConfig:
    if not isinstance(data, dict):
        raise ConfigError("config root must be an object")
    repos = data.get("repositories")
    if not isinstance(repos, list):
        raise ConfigError("config must contain a 'repositories' list")
    settings = _object(data.get("settings"), "settings")
    github = _object(settings.get("github"), "settings.github")
    token = github.get("token")
    if token is not None and not isinstance(token, str):
        raise ConfigError("settings.github.token must be a string")
    return DashboardConfig(
        repositories=tuple(_parse_target(e, i) for i, e in enumerate(repos)),
        refresh_interval=_positive(settings.get("refreshInterval", DEFAULT_REFRESH_INTERVAL), "refreshInterval", int),
        token=_strip_token_prefix(token),
        api_base=str(settings.get("apiBase", "https://api.github.com")),
        timeout=_positive(settings.get("timeout", DEFAULT_TIMEOUT), "timeout", float),
        recent_runs=_positive(settings.get("recentRuns", DEFAULT_RECENT_RUNS), "recentRuns", int),
        test_job_patterns=_patterns(settings, "testJobPatterns", DEFAULT_TEST_JOB_PATTERNS),
        dashboard_job_patterns=_patterns(settings, "dashboardJobPatterns", DEFAULT_DASHBOARD_JOB_PATTERNS),
    )


def load_config(path: Path) -> DashboardConfig:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigError(f"config file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"{path} is not valid JSON: {e}") from e
    return parse_config(data)


def resolve_token(cli_token: Optional[str], cfg: DashboardConfig) -> Optional[str]:
    """--token, then GITHUB_TOKEN from the environment, then the config file."""
    token = _strip_token_prefix(cli_token or os.getenv("GITHUB_TOKEN")) or cfg.token
    if not token:
        log.warning("GITHUB_TOKEN not set. API rate limits will apply.")
    return token
