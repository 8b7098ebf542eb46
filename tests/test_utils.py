import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from ci_health.utils import clean_job_name, first_gist_file_content, format_age, gather_settled, iso_to_dt, parse_gist_id


def test_iso_to_dt_z_and_offset():
    dt_z = iso_to_dt("2024-01-01T00:00:00Z")
    dt_off = iso_to_dt("2024-01-01T00:00:00+00:00")
    assert dt_z == dt_off


@pytest.mark.parametrize("url,expected", [
    ("https://gist.github.com/ael-bot/0a1b2c3d4e", "0a1b2c3d4e"),
    ("https://gist.github.com/ael-bot/0a1b2c3d4e#file-report-md", "0a1b2c3d4e"),
    ("https://gist.github.com/0a1b2c3d4e", None),
    ("https://ci.example.com/ael-bot/0a1b2c3d4e", None),
    ("https://ci.example.com/redirect?to=gist.github.com/ael-bot/abc123", None),
    ("https://gist.github.com.evil.example/ael-bot/abc123", None),
    ("https://gist.github.com/ael-bot/not-hex", None),
    ("", None),
    (None, None),
])
def test_parse_gist_id(url, expected):
    assert parse_gist_id(url) == expected


def test_first_gist_file_content():
    assert first_gist_file_content({"files": {"a.md": {"content": "A"}, "b.md": {"content": "B"}}}) == "A"
    assert first_gist_file_content({"files": {}}) is None
    assert first_gist_file_content({}) is None


@pytest.mark.parametrize("name,expected", [
    ("CI / test-run-x86_64", "test-run-x86_64"),
    ("Release / Regression Test / test-run-aarch64", "test-run-aarch64"),
    ("build-x86_64", "build-x86_64"),
])
def test_clean_job_name(name, expected):
    assert clean_job_name(name) == expected


def test_format_age():
    now = datetime(2024, 1, 2, 12, 0, 0, tzinfo=timezone.utc)
    ago = lambda **kw: (now - timedelta(**kw)).isoformat()
    assert format_age(None, now) == "--"
    assert format_age(ago(seconds=30), now) == "just now"
    assert format_age(ago(minutes=5), now) == "5m ago"
    assert format_age(ago(hours=3), now) == "3h ago"
    assert format_age("2023-12-25T08:00:00Z", now) == "2023-12-25"


def test_gather_settled_isolates_failures():
    async def ok(v):
        await asyncio.sleep(0)
        return v

    async def boom():
        raise RuntimeError("boom")

    results = asyncio.run(gather_settled([ok(1), boom(), ok(3)]))
    assert [r.ok for r in results] == [True, False, True]
    assert [r.value for r in results] == [1, None, 3]
    assert str(results[1].error) == "boom"
