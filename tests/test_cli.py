# tests/test_cli.py
import json

import pytest

from greenhouse_watch.lib import engine
from service import cli


@pytest.fixture
def fake_transport(monkeypatch, fake_client_cls, make_job):
    client = fake_client_cls({
        "stripe": {"jobs": [make_job(1, "Staff Product Manager", "Remote", board="stripe")]},
        "airbnb": {"jobs": [make_job(2, "Recruiter", "Remote", board="airbnb")]},
    })
    monkeypatch.setattr(engine, "HttpClient", lambda **kw: client)
    return client


def test_parse_kv_pairs_reads_json_values():
    out = cli._parse_kv_pairs(["max_delay_ms=0", "use_search_engine=false", "role=data engineer", "boards=[\"a\"]"])
    assert out == {"max_delay_ms": 0, "use_search_engine": False, "role": "data engineer", "boards": ["a"]}


def test_parse_kv_pairs_rejects_missing_equals():
    with pytest.raises(Exception, match="key=value"):
        cli._parse_kv_pairs(["oops"])


def test_search_prints_text_listing(fake_transport, capsys):
    rc = cli.main(["search", "--only-boards", "stripe,airbnb", "--kwargs", "max_delay_ms=0"])

    out = capsys.readouterr().out
    assert rc == 0
    assert "1. Job Title: Staff Product Manager" in out
    assert "searched 2 boards, 0 failed, found 1 matches" in out
    assert fake_transport.text_calls == []
    assert fake_transport.closed is True


def test_search_json_meta(fake_transport, capsys):
    rc = cli.main(["search", "--only-boards", "stripe,airbnb,lyft", "--json", "--kwargs", "max_delay_ms=0"])

    meta = json.loads(capsys.readouterr().out)
    assert rc == 0
    assert meta["boards"] == 3
    assert meta["boards_failed"] == 1
    assert meta["failures_by_kind"] == {"http_error": 1}
    assert [j["board"] for j in meta["jobs"]] == ["stripe"]


def test_search_html(fake_transport, capsys):
    rc = cli.main(["search", "--only-boards", "stripe", "--html", "--kwargs", "max_delay_ms=0"])
    out = capsys.readouterr().out
    assert rc == 0
    assert "<h3>Stripe</h3>" in out


def test_search_writes_cli_activity(fake_transport, log_dir, frozen_utc):
    cli.main(["search", "--only-boards", "stripe", "--kwargs", "max_delay_ms=0"])

    rows = [json.loads(line) for line in (log_dir / "activity-test-2025-01-01.jsonl").read_text().splitlines()]
    events = [r for r in rows if r.get("event") == "cli_search"]
    assert len(events) == 1
    assert events[0]["matches"] == 1


def test_search_invalid_config_exits_2(capsys):
    rc = cli.main(["search", "--max-concurrency", "0"])
    assert rc == 2
    assert "invalid configuration" in capsys.readouterr().err


def test_search_with_no_boards_exits_1(fake_transport, capsys):
    rc = cli.main(["search", "--no-search-engine", "--kwargs", "fallback_boards=[]"])
    assert rc == 1
    assert "FAILURE" in capsys.readouterr().err


def test_discover_lists_known_boards(fake_transport, monkeypatch, capsys, fake_client_cls):
    monkeypatch.setattr(cli, "HttpClient", lambda **kw: fake_client_cls())
    rc = cli.main(["discover", "--no-search-engine", "--kwargs", 'fallback_boards=["stripe","airbnb"]'])

    captured = capsys.readouterr()
    assert rc == 0
    assert captured.out.split() == ["airbnb", "stripe"]
    assert "2 boards (0 from search engine, 2 known)" in captured.err


def test_discover_reports_search_engine_failure(monkeypatch, capsys, fake_client_cls):
    monkeypatch.setattr(cli, "HttpClient", lambda **kw: fake_client_cls(html=None))
    rc = cli.main(["discover", "--kwargs", 'fallback_boards=["stripe"]'])

    captured = capsys.readouterr()
    assert rc == 0
    assert captured.out.split() == ["stripe"]
    assert "search-engine discovery failed" in captured.err


def test_validate_criteria(tmp_path, capsys):
    good = tmp_path / "criteria.json"
    good.write_text(json.dumps({"role": "data engineer", "location": "Remote"}), encoding="utf-8")
    bad = tmp_path / "bad.json"
    bad.write_text("[]", encoding="utf-8")

    assert cli.main(["validate-criteria", str(good)]) == 0
    out = capsys.readouterr().out
    assert "OK: criteria file is valid." in out
    assert '"role": "data engineer"' in out

    assert cli.main(["validate-criteria", str(bad)]) == 1
    assert "criteria invalid" in capsys.readouterr().err
