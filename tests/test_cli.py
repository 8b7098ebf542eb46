import json

import httpx
import pytest
from typer.testing import CliRunner

from ci_health import cli
from ci_health.models import DashboardSnapshot
from ci_health.providers.github_api import GitHubClient


runner = CliRunner()

CONFIG = {
    "repositories": [
        {"owner": "kernelkit", "repo": "infix", "branch": "main"},
        {"owner": "kernelkit", "repo": "infix", "branch": "next", "enabled": False},
    ],
    "settings": {"refreshInterval": 60},
}

ROUTES = {
    "/repos/kernelkit/infix/branches/main": {
        "commit": {"sha": "abcdef1234567890",
                   "commit": {"message": "Bump", "author": {"name": "Jane", "date": "2024-01-01T00:00:00Z"}}},
    },
    "/repos/kernelkit/infix/actions/runs": {
        "workflow_runs": [{"id": 7, "name": "CI", "status": "completed", "conclusion": "success",
                           "html_url": "https://gh/runs/7"}],
    },
    "/repos/kernelkit/infix/actions/runs/7/jobs": {
        "jobs": [{"id": 70, "name": "CI / test-run-x86", "conclusion": "success", "html_url": "https://gh/jobs/70"}],
    },
    "/repos/kernelkit/infix/commits/main/check-runs": {"check_runs": []},
    "/repos/kernelkit/infix/commits/main/status": {"state": "success", "statuses": []},
}


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.chdir(tmp_path)
    p = tmp_path / "config.json"
    p.write_text(json.dumps(CONFIG))
    return p


def test_status_json_feed(config_file, tmp_path, monkeypatch):
    seen = []

    def handler(request):
        seen.append(request.url.path)
        return httpx.Response(200, json=ROUTES[request.url.path])

    monkeypatch.setattr(cli, "GitHubClient",
                        lambda **kw: GitHubClient(transport=httpx.MockTransport(handler), **kw))
    feed = tmp_path / "feed.json"
    result = runner.invoke(cli.app, ["status", "--config", str(config_file), "--format", "json",
                                     "--output", str(feed)])

    assert result.exit_code == 0, result.output
    assert "kernelkit/infix" in result.output
    data = json.loads(feed.read_text())
    # the disabled "next" branch is never polled
    assert [(r["repo"], r["branch"]) for r in data["repositories"]] == [("kernelkit/infix", "main")]
    assert data["repositories"][0]["overall_status"] == "success"
    assert data["repositories"][0]["commit"]["sha"] == "abcdef1"
    assert not [p for p in seen if "/next" in p]


@pytest.mark.parametrize("content", [
    "{not json",
    json.dumps({"repositories": "kernelkit/infix"}),
    json.dumps({"repositories": [], "settings": {"refreshInterval": 0}}),
])
def test_bad_config_exits_2(tmp_path, content):
    p = tmp_path / "config.json"
    p.write_text(content)
    result = runner.invoke(cli.app, ["status", "--config", str(p)])
    assert result.exit_code == 2
    assert "Invalid configuration" in result.output


def test_missing_config_exits_2(tmp_path):
    result = runner.invoke(cli.app, ["watch", "--config", str(tmp_path / "nope.json")])
    assert result.exit_code == 2


class RecordingClient:
    instances = []

    def __init__(self, **kw):
        self.kw = kw
        self.closed = False
        RecordingClient.instances.append(self)

    async def aclose(self):
        self.closed = True


class StopWatching(Exception): ...


@pytest.mark.parametrize("flag,use_cache", [([], True), (["--no-cache"], False)])
def test_watch_reuses_one_client(config_file, monkeypatch, flag, use_cache):
    RecordingClient.instances = []
    polled = []

    async def fake_poll(client, cfg):
        polled.append(client)
        if len(polled) == 3:
            raise StopWatching()
        return DashboardSnapshot(timestamp="2024-01-01T00:00:00Z", repositories=())

    async def no_sleep(seconds):
        assert seconds == 60

    monkeypatch.setattr(cli, "GitHubClient", RecordingClient)
    monkeypatch.setattr(cli, "poll_once", fake_poll)
    monkeypatch.setattr(cli.asyncio, "sleep", no_sleep)

    result = runner.invoke(cli.app, ["watch", "--config", str(config_file), *flag])

    assert isinstance(result.exception, StopWatching)
    assert len(RecordingClient.instances) == 1
    client = RecordingClient.instances[0]
    assert polled == [client, client, client]
    assert client.kw["use_cache"] is use_cache
    assert client.closed
