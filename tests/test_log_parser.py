from ci_health.log_parser import (
    clean_names, extract_failures, match_gist, match_log_idioms, match_not_ok_pairs,
)


GIST = """\
## Test results

| Test | Result |
|------|--------|
- :green_circle: : 0006-ping.py
- :red_circle: : 0007-foo_bar.py
- :red_circle: : 0009-ospf-basic.sh
"""


def test_gist_red_circles():
    r = extract_failures("ael-bot", gist_content=GIST)
    assert r is not None
    assert r.source_name == "ael-bot"
    assert r.failed_files == ("foo_bar", "ospf-basic")


def test_gist_single_red_circle():
    r = extract_failures("ael-bot", gist_content="- :red_circle: : 0007-foo_bar.py")
    assert r.failed_files == ("foo_bar",)


def test_gist_fail_marker_and_dedupe():
    text = "- :red_circle: : 0003-bar.yaml\nFAIL: 0003-bar.yaml\nFAIL: 0004-baz.sh\n"
    assert match_gist(text) == ["0003-bar.yaml", "0004-baz.sh"]
    assert extract_failures("bot", gist_content=text).failed_files == ("bar", "baz")


def test_gist_only_all_sentinel_is_none():
    assert extract_failures("bot", gist_content="- :red_circle: : 0012-all.sh") is None


def test_gist_strategy_wins_even_if_only_sentinel():
    # the gist produced a candidate, so the description is not consulted
    assert extract_failures("bot", description="0003-foo.py failed", gist_content="FAIL: 0012-all.sh") is None


def test_gist_without_matches_falls_back_to_logs():
    logs = "Starting test 0001-a.py\nnot ok 1 - a\n"
    r = extract_failures("test-run-x86", gist_content="nothing to see", job_logs=logs)
    assert r.failed_files == ("a",)


def test_not_ok_pairs_nearest_preceding():
    lines = [
        "Starting test 0001-a.py",
        "ok 1 - setup",
        "ok 2 - configure",
        "ok 3 - ping",
        "# something",
        "not ok 4 - verify",
        "Starting test 0002-b.py",
        "ok 1 - setup",
        "ok 2 - configure",
        "ok 3 - ping",
        "not ok 4 - verify",
    ]
    logs = "\n".join(lines)
    assert match_not_ok_pairs(logs) == ["0001-a.py", "0002-b.py"]
    assert extract_failures("test-run", job_logs=logs).failed_files == ("a", "b")


def test_not_ok_without_start_is_dropped():
    logs = "not ok 1 - early\nStarting test 0001-a.py\nok 1 - fine\n"
    assert match_not_ok_pairs(logs) == []
    assert extract_failures("test-run", job_logs=logs) is None


def test_log_idioms():
    logs = "\n".join([
        "FAILED tests/0004-net.py::test_ping - assert 1 == 2",
        "ERROR: timeout in 0005-dhcp.sh",
        "0006-vlan.py line 3 AssertionError: mismatch",
    ])
    assert match_log_idioms(logs) == ["0004-net.py", "0005-dhcp.sh", "0006-vlan.py"]
    r = extract_failures("Regression Test", job_logs=logs)
    assert r.failed_files == ("net", "dhcp", "vlan")


def test_primary_and_fallback_merged_without_duplicates():
    logs = "Starting test 0001-a.py\nnot ok 1 - a\nFAIL: 0001-a.py\nFAIL: 0002-b.sh\n"
    assert extract_failures("t", job_logs=logs).failed_files == ("a", "b")


def test_description_fallback():
    r = extract_failures("lint", description="Failed: 0003-ospf-basic.py, helper.sh")
    assert r.failed_files == ("ospf-basic", "helper")


def test_description_used_when_logs_have_nothing():
    r = extract_failures("t", description="see check_x.py", job_logs="all good\n")
    assert r.failed_files == ("check_x",)


def test_description_without_files_is_none():
    assert extract_failures("lint", description="3 tests failed") is None
    assert extract_failures("lint", description="0012-all.sh") is None


def test_nothing_available():
    assert extract_failures("x") is None


def test_clean_names():
    assert clean_names(["0001-foo.py", "0002-bar.sh", "0003-baz.yaml", "plain.py", "0004-all.py"]) == [
        "foo", "bar", "baz", "plain",
    ]
