# tests/test_matcher.py
import pytest

from greenhouse_watch.lib.config import SearchCriteria
from greenhouse_watch.lib.matcher import matches, matches_location, matches_role, title_tokens


def test_title_tokens_lowercases_and_splits_punctuation():
    assert title_tokens("Sr. Product Manager, Payments") == ["sr", "product", "manager", "payments"]
    assert title_tokens(None) == []


@pytest.mark.parametrize(
    "title",
    [
        "Principal Product Manager",
        "Senior Product Manager",
        "Staff Product Manager, Payments",
        "Lead Product Manager",
        "SENIOR PRODUCT MANAGEMENT LEAD",
    ],
)
def test_role_group_satisfied_by_any_synonym(title, criteria):
    assert matches_role(title, criteria) is True


@pytest.mark.parametrize(
    "title",
    [
        "Software Engineer",
        "Product Manager",  # no member of the principal group
        "Senior Product Designer",  # manager group missing
        "",
        None,
    ],
)
def test_role_requires_every_group(title, criteria):
    assert matches_role(title, criteria) is False


def test_role_matching_is_substring_tolerant():
    c = SearchCriteria.build("engineer", "Remote", synonyms={})
    assert matches_role("Engineering Manager", c) is True
    assert matches_role("Senior Engineers Guild", c) is True
    assert matches_role("Software Developer", c) is False


def test_multi_word_synonym_must_appear_as_phrase():
    c = SearchCriteria.build("pm", "Remote", synonyms={"pm": ["product manager"]})
    assert matches_role("Product Manager, Growth", c) is True
    assert matches_role("Manager, Product Ops", c) is False


def test_role_uses_only_configured_synonyms():
    c = SearchCriteria.build("principal product manager", "94555", synonyms={})
    assert matches_role("Senior Product Manager", c) is False
    assert matches_role("Principal Product Manager", c) is True


@pytest.mark.parametrize("loc", ["94555", "Fremont, CA", "Bay Area", "SF", "Silicon Valley", "  bay area  "])
def test_location_matches_target_and_aliases(loc, criteria):
    assert matches_location(loc, criteria) is True


@pytest.mark.parametrize("loc", ["Remote", "remote", "REMOTE", " Remote "])
def test_remote_always_matches(loc):
    c = SearchCriteria.build("anything", "Boston, MA", location_aliases={})
    assert matches_location(loc, c) is True


@pytest.mark.parametrize("loc", ["", "   ", None])
def test_missing_location_never_matches(loc, criteria):
    assert matches_location(loc, criteria) is False


@pytest.mark.parametrize("loc", ["San Francisco, CA", "Fremont", "Remote - US", "New York, NY"])
def test_location_requires_exact_equality(loc, criteria):
    assert matches_location(loc, criteria) is False


def test_matchers_are_deterministic(criteria):
    inputs = [("Senior Product Manager", "Fremont, CA"), ("Software Engineer", "Remote")]
    first = [matches(t, loc, criteria) for t, loc in inputs]
    second = [matches(t, loc, criteria) for t, loc in inputs]
    assert first == second == [True, False]
