"""
Tests for the Heuristic Match Scorer

Tests cover:
- Title overlap in both directions
- Location matching, including remote-only preferences without locations
- Remote and seniority bonuses
- Determinism and score bounds
"""

import pytest

from jobpipeline.schemas import JobPreferences, Posting, Source
from jobpipeline.services.matcher import (
    calculate_basic_match_score,
    effective_locations,
    match_seniority,
    match_title,
)


def make_posting(title: str, location: str = None) -> Posting:
    return Posting(
        title=title,
        company_name="Acme",
        url=f"https://example.com/jobs/{title.lower().replace(' ', '-')}",
        location=location,
        source=Source.REMOTIVE,
    )


class TestMatchTitle:
    """Test title overlap detection."""

    def test_job_title_contains_preferred(self):
        assert match_title("Senior Backend Developer", ["Backend Developer"])

    def test_preferred_contains_first_word(self):
        assert match_title("Python Engineer", ["Senior Python Developer"])

    def test_case_insensitive(self):
        assert match_title("DATA SCIENTIST", ["data scientist"])

    def test_no_overlap(self):
        assert not match_title("Accountant", ["Backend Developer"])

    def test_blank_preferences_ignored(self):
        assert not match_title("Engineer", ["  "])


class TestEffectiveLocations:
    """Test preferred-location resolution."""

    def test_remote_only_without_locations_means_remote(self):
        prefs = JobPreferences(job_titles=["Dev"], remote_only=True)
        assert effective_locations(prefs) == ["remote"]

    def test_explicit_locations_lowercased(self):
        prefs = JobPreferences(job_titles=["Dev"], locations=["London", "Berlin"])
        assert effective_locations(prefs) == ["london", "berlin"]

    def test_no_locations_no_remote(self):
        prefs = JobPreferences(job_titles=["Dev"])
        assert effective_locations(prefs) == []


class TestSeniority:
    """Test seniority keyword co-occurrence."""

    @pytest.mark.parametrize("keyword", ["senior", "lead", "principal", "staff"])
    def test_keyword_in_both(self, keyword):
        assert match_seniority(f"{keyword.title()} Engineer", [f"{keyword} engineer"])

    def test_keyword_only_in_job(self):
        assert not match_seniority("Senior Engineer", ["Engineer"])


class TestCalculateBasicMatchScore:
    """Test composite heuristic score."""

    def test_remote_backend_example(self):
        """Title substring plus remote match scores at least 0.7."""
        prefs = JobPreferences(job_titles=["Backend Developer"], remote_only=True)
        posting = make_posting("Senior Backend Developer", location="Remote")

        score, reasons = calculate_basic_match_score(posting, prefs)

        assert score >= 0.7
        assert score == 0.9
        assert reasons

    def test_all_components(self):
        prefs = JobPreferences(job_titles=["Senior Backend Developer"], locations=["Remote"], remote_only=True)
        posting = make_posting("Senior Backend Developer", location="Remote (EU)")

        score, reasons = calculate_basic_match_score(posting, prefs)

        assert score == 1.0
        assert len(reasons) == 4

    def test_location_only(self):
        prefs = JobPreferences(job_titles=["Designer"], locations=["London"])
        posting = make_posting("Accountant", location="London, UK")

        score, reasons = calculate_basic_match_score(posting, prefs)

        assert score == 0.3
        assert reasons == ["Location: London, UK"]

    def test_no_match(self):
        prefs = JobPreferences(job_titles=["Designer"], locations=["Paris"])
        posting = make_posting("Accountant", location="Tokyo")

        assert calculate_basic_match_score(posting, prefs) == (0.0, [])

    def test_missing_location(self):
        prefs = JobPreferences(job_titles=["Engineer"], remote_only=True)
        posting = make_posting("Engineer", location=None)

        score, _ = calculate_basic_match_score(posting, prefs)

        assert score == 0.4

    def test_deterministic(self):
        prefs = JobPreferences(job_titles=["Lead Engineer"], locations=["Berlin"])
        posting = make_posting("Lead Engineer", location="Berlin")

        results = [calculate_basic_match_score(posting, prefs) for _ in range(5)]

        assert all(r == results[0] for r in results)

    def test_score_within_bounds(self):
        prefs = JobPreferences(job_titles=["Staff Engineer"], locations=["remote"], remote_only=True)
        posting = make_posting("Staff Engineer", location="Remote")

        score, _ = calculate_basic_match_score(posting, prefs)

        assert 0.0 <= score <= 1.0
