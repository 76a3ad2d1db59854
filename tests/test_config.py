# tests/test_config.py
import json

import pytest

from greenhouse_watch.lib import config as gw_config
from greenhouse_watch.lib.config import ConfigError, SearchCriteria, Settings
from greenhouse_watch.lib.discovery import KNOWN_BOARD_TOKENS


def test_defaults_search_principal_pm_near_fremont():
    s = Settings.from_env_and_kwargs({})

    assert s.criteria.role == "principal product manager"
    assert s.criteria.location == "94555"
    assert s.timeout == 30.0
    assert s.user_agent.startswith("Mozilla/5.0")
    assert s.max_concurrency is None
    assert s.deadline_seconds is None
    assert s.max_delay_ms == 200
    assert s.use_search_engine is True
    assert s.fallback_boards == KNOWN_BOARD_TOKENS
    assert s.output == "text"


def test_keyword_groups_expand_synonyms():
    c = SearchCriteria.build("Principal  Product Manager", "94555")

    assert c.role == "Principal Product Manager"
    assert c.keyword_groups == (
        ("principal", "senior", "staff", "lead"),
        ("product",),
        ("manager", "management"),
    )
    assert c.location_targets() == ("94555", "Fremont, CA", "Bay Area", "SF", "Silicon Valley")


def test_criteria_tables_are_read_only():
    c = SearchCriteria.build("pm", "Remote", synonyms={"PM": ["Product Manager"]})
    assert c.synonyms == {"pm": ("pm", "product manager")}
    with pytest.raises(TypeError):
        c.synonyms["x"] = ("y",)  # type: ignore[index]


def test_criteria_file_supplies_tables(tmp_path):
    path = tmp_path / "criteria.json"
    path.write_text(
        json.dumps({
            "role": "data engineer",
            "location": "Boston, MA",
            "synonyms": {"engineer": ["engineering", "developer"]},
            "location_aliases": {"boston, ma": ["Cambridge, MA"]},
            "remote_markers": ["Remote", "Anywhere"],
        }),
        encoding="utf-8",
    )

    s = Settings.from_env_and_kwargs({"criteria_path": str(path), "location": "Boston, MA"})

    assert s.criteria.role == "data engineer"
    assert s.criteria.keyword_groups[1] == ("engineer", "engineering", "developer")
    assert s.criteria.location_targets() == ("Boston, MA", "Cambridge, MA")
    assert s.criteria.remote_markers == ("Remote", "Anywhere")


def test_kwargs_win_over_criteria_file(tmp_path):
    path = tmp_path / "criteria.json"
    path.write_text(json.dumps({"role": "designer", "location": "NYC"}), encoding="utf-8")

    s = Settings.from_env_and_kwargs({"criteria_path": str(path), "role": "product manager"})

    assert s.criteria.role == "product manager"
    assert s.criteria.location == "NYC"


@pytest.mark.parametrize(
    ("contents", "message"),
    [
        ("{not json", "invalid JSON"),
        ("[1, 2]", "JSON object"),
        (json.dumps({"synonyms": {"pm": "product manager"}}), "list of strings"),
        (json.dumps({"synonyms": ["pm"]}), "object mapping"),
    ],
)
def test_bad_criteria_files(tmp_path, contents, message):
    path = tmp_path / "criteria.json"
    path.write_text(contents, encoding="utf-8")
    with pytest.raises(ConfigError, match=message):
        gw_config.load_criteria(str(path))


def test_missing_criteria_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        Settings.from_env_and_kwargs({"criteria_path": str(tmp_path / "nope.json")})


@pytest.mark.parametrize(
    "kwargs",
    [
        {"role": ""},
        {"location": "   "},
        {"max_concurrency": 0},
        {"max_concurrency": "lots"},
        {"timeout": -1},
        {"timeout": 0},
        {"user_agent": "Mozilla/5.0\nX-Evil: 1"},
        {"user_agent": "Mozilla/5.0\r"},
        {"deadline_seconds": 0},
        {"max_delay_ms": -5},
        {"debug_sample_rate": 2},
        {"output": "pdf"},
        {"fallback_boards": 42},
    ],
)
def test_invalid_kwargs_raise_config_error(kwargs):
    with pytest.raises(ConfigError):
        Settings.from_env_and_kwargs(kwargs)


def test_string_kwargs_are_coerced():
    s = Settings.from_env_and_kwargs({
        "use_search_engine": "no",
        "skip_network": "yes",
        "max_concurrency": "4",
        "fallback_boards": "Stripe, airbnb,stripe",
        "extra_boards": ["Figma"],
        "output": "HTML",
        "synonyms": '{"pm": ["product manager"]}',
    })

    assert s.use_search_engine is False
    assert s.skip_network is True
    assert s.max_concurrency == 4
    assert s.fallback_boards == ("stripe", "airbnb")
    assert s.extra_boards == ("figma",)
    assert s.output == "html"
    assert s.criteria.synonyms == {"pm": ("pm", "product manager")}
