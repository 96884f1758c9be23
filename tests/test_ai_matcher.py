"""
Tests for the AI Matching Batch Processor

Tests cover:
- Response parsing (dict and list forms, clamping, malformed output)
- Cache hits skip the completion service
- Missing ids score 0, threshold filtering, sorting
- Heuristic fallback on service failure (flagged, never cached)
- Batching and grouping
"""

import json
from types import SimpleNamespace

import pytest
from openai import OpenAIError
from unittest.mock import AsyncMock, MagicMock

from jobpipeline.exceptions import MatchingServiceError
from jobpipeline.schemas import JobPreferences, MatchResult, Posting, Source
from jobpipeline.services.ai_matcher import (
    DESCRIPTION_LENGTH,
    MatchingProcessor,
    parse_match_response,
    summarize_posting,
)


def make_posting(n: int, title: str = "Backend Developer", location: str = "Remote") -> Posting:
    return Posting(
        title=title,
        company_name=f"Company {n}",
        description="Build APIs in Python",
        url=f"https://example.com/jobs/{n}",
        location=location,
        source=Source.REMOTIVE,
    )


def completion(payload) -> SimpleNamespace:
    content = payload if isinstance(payload, str) else json.dumps(payload)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=120, completion_tokens=40),
    )


class FakeCache:
    """In-memory stand-in for MatchCache."""

    def __init__(self):
        self.store = {}
        self.set_calls = []

    async def get_match(self, posting_id, user_id):
        return self.store.get((posting_id, user_id))

    async def set_match(self, posting_id, user_id, result, ttl=None):
        self.set_calls.append((posting_id, user_id, ttl))
        self.store[(posting_id, user_id)] = result
        return True


@pytest.fixture
def preferences():
    return JobPreferences(job_titles=["Backend Developer"], remote_only=True)


@pytest.fixture
def client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock()
    client.close = AsyncMock()
    return client


@pytest.fixture
def cache():
    return FakeCache()


@pytest.fixture
def processor(client, cache):
    return MatchingProcessor(client=client, cache=cache, threshold=0.5, group_delay=0)


class TestParseMatchResponse:
    """Test completion output parsing."""

    def test_dict_form(self):
        scores = parse_match_response(json.dumps({
            "matches": {"a": {"score": 0.8, "reasons": ["Title"]}}
        }))
        assert scores == {"a": (0.8, ["Title"])}

    def test_list_form(self):
        scores = parse_match_response(json.dumps({
            "matches": [
                {"jobId": "a", "score": 0.7, "reasons": []},
                {"id": "b", "score": 0.4},
                {"score": 0.9},
            ]
        }))
        assert scores == {"a": (0.7, []), "b": (0.4, [])}

    def test_scores_are_clamped(self):
        scores = parse_match_response(json.dumps({
            "matches": {"hi": {"score": 1.7}, "lo": {"score": -0.2}}
        }))
        assert scores["hi"][0] == 1.0
        assert scores["lo"][0] == 0.0

    def test_non_numeric_score_dropped(self):
        scores = parse_match_response(json.dumps({
            "matches": {"a": {"score": "great"}, "b": {"score": "0.6"}}
        }))
        assert scores == {"b": (0.6, [])}

    def test_lone_reason_string_kept_whole(self):
        scores = parse_match_response(json.dumps({
            "matches": {"a": {"score": 0.9, "reasons": "Good fit"}}
        }))
        assert scores == {"a": (0.9, ["Good fit"])}

    @pytest.mark.parametrize("reasons", [5, {"why": "x"}, None, True])
    def test_unusable_reasons_become_empty(self, reasons):
        scores = parse_match_response(json.dumps({
            "matches": {"a": {"score": 0.9, "reasons": reasons}}
        }))
        assert scores == {"a": (0.9, [])}

    def test_non_string_reason_items_dropped(self):
        scores = parse_match_response(json.dumps({
            "matches": {"a": {"score": 0.9, "reasons": ["Remote", {"nested": 1}, ["x"]]}}
        }))
        assert scores == {"a": (0.9, ["Remote"])}

    @pytest.mark.parametrize("score", ["NaN", "inf"])
    def test_non_finite_score_dropped(self, score):
        scores = parse_match_response(json.dumps({"matches": {"a": {"score": score}}}))
        assert scores == {}

    @pytest.mark.parametrize("content", [None, "", "not json", json.dumps({"scores": {}})])
    def test_unusable_output_raises(self, content):
        with pytest.raises(MatchingServiceError):
            parse_match_response(content)


class TestSummarizePosting:
    """Test the compact posting summary."""

    def test_description_truncated(self):
        posting = make_posting(1)
        posting.description = "x" * 1000

        summary = summarize_posting(posting)

        assert len(summary["description"]) == DESCRIPTION_LENGTH
        assert summary["id"] == posting.id
        assert "salary" not in summary

    def test_missing_location(self):
        summary = summarize_posting(make_posting(1, location=None))
        assert summary["location"] == "Not specified"


class TestBatchMatch:
    """Test batch matching with the completion service."""

    @pytest.mark.asyncio
    async def test_threshold_and_sorting(self, processor, client, preferences):
        postings = [make_posting(i) for i in range(3)]
        client.chat.completions.create.return_value = completion({"matches": {
            postings[0].id: {"score": 0.6, "reasons": ["ok"]},
            postings[1].id: {"score": 0.9, "reasons": ["great"]},
            postings[2].id: {"score": 0.5, "reasons": ["borderline"]},
        }})

        results = await processor.batch_match(postings, preferences, "user-1")

        assert [r.id for r in results] == [postings[1].id, postings[0].id]
        assert [r.similarity_score for r in results] == [0.9, 0.6]
        assert not any(r.fallback for r in results)

    @pytest.mark.asyncio
    async def test_request_uses_json_mode(self, processor, client, preferences):
        client.chat.completions.create.return_value = completion({"matches": {}})

        await processor.batch_match([make_posting(1)], preferences, "user-1")

        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0]["role"] == "system"
        assert make_posting(1).id in kwargs["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_missing_ids_score_zero_and_are_cached(self, processor, client, cache, preferences):
        postings = [make_posting(1), make_posting(2)]
        client.chat.completions.create.return_value = completion({"matches": {
            postings[0].id: {"score": 0.8, "reasons": []},
        }})

        results = await processor.batch_match(postings, preferences, "user-1")

        assert [r.id for r in results] == [postings[0].id]
        assert cache.store[(postings[1].id, "user-1")].similarity_score == 0.0
        assert len(cache.set_calls) == 2
        assert all(ttl == 604800 for _, _, ttl in cache.set_calls)

    @pytest.mark.asyncio
    async def test_second_call_is_pure_cache_hit(self, processor, client, preferences):
        postings = [make_posting(1), make_posting(2)]
        client.chat.completions.create.return_value = completion({"matches": {
            postings[0].id: {"score": 0.8, "reasons": ["Title"]},
            postings[1].id: {"score": 0.3, "reasons": []},
        }})

        first = await processor.batch_match(postings, preferences, "user-1")
        second = await processor.batch_match(postings, preferences, "user-1")

        assert client.chat.completions.create.await_count == 1
        assert len(first) == 1
        # Cached entries come back regardless of score
        assert [r.similarity_score for r in second] == [0.8, 0.3]

    @pytest.mark.asyncio
    async def test_cache_is_per_user(self, processor, client, preferences):
        posting = make_posting(1)
        client.chat.completions.create.return_value = completion({"matches": {
            posting.id: {"score": 0.8, "reasons": []},
        }})

        await processor.batch_match([posting], preferences, "user-1")
        await processor.batch_match([posting], preferences, "user-2")

        assert client.chat.completions.create.await_count == 2

    @pytest.mark.asyncio
    async def test_use_cache_false(self, processor, client, cache, preferences):
        posting = make_posting(1)
        client.chat.completions.create.return_value = completion({"matches": {
            posting.id: {"score": 0.8, "reasons": []},
        }})

        await processor.batch_match([posting], preferences, "user-1", use_cache=False)
        await processor.batch_match([posting], preferences, "user-1", use_cache=False)

        assert client.chat.completions.create.await_count == 2
        assert cache.store == {}

    @pytest.mark.asyncio
    async def test_empty_input(self, processor, client, preferences):
        assert await processor.batch_match([], preferences, "user-1") == []
        client.chat.completions.create.assert_not_called()


class TestFallback:
    """Service failures fall back to the heuristic scorer."""

    @pytest.mark.asyncio
    async def test_api_error_uses_heuristic(self, processor, client, cache, preferences):
        postings = [
            make_posting(1, title="Senior Backend Developer", location="Remote"),
            make_posting(2, title="Accountant", location="Paris"),
        ]
        client.chat.completions.create.side_effect = OpenAIError("rate limited")

        results = await processor.batch_match(postings, preferences, "user-1")

        assert len(results) == 2
        assert all(r.fallback for r in results)
        assert results[0].id == postings[0].id
        assert results[0].similarity_score == 0.9
        assert results[1].similarity_score == 0.0
        assert cache.store == {}

    @pytest.mark.asyncio
    async def test_malformed_output_uses_heuristic(self, processor, client, cache, preferences):
        client.chat.completions.create.return_value = completion("I cannot help with that")

        results = await processor.batch_match([make_posting(1)], preferences, "user-1")

        assert len(results) == 1
        assert results[0].fallback is True
        assert cache.set_calls == []

    @pytest.mark.asyncio
    async def test_fallback_is_per_batch(self, processor, client, preferences):
        postings = [make_posting(i) for i in range(4)]
        client.chat.completions.create.side_effect = [
            OpenAIError("boom"),
            completion({"matches": {
                postings[2].id: {"score": 0.95, "reasons": []},
                postings[3].id: {"score": 0.1, "reasons": []},
            }}),
        ]

        results = await processor.batch_match(postings, preferences, "user-1", batch_size=2, parallelism=1)

        fallback_ids = {r.id for r in results if r.fallback}
        service_ids = {r.id for r in results if not r.fallback}
        assert fallback_ids == {postings[0].id, postings[1].id}
        assert service_ids == {postings[2].id}

    @pytest.mark.asyncio
    async def test_empty_choices_uses_heuristic(self, processor, client, cache, preferences):
        client.chat.completions.create.return_value = SimpleNamespace(choices=[], usage=None)

        results = await processor.batch_match([make_posting(1)], preferences, "user-1")

        assert len(results) == 1
        assert results[0].fallback is True
        assert cache.set_calls == []

    @pytest.mark.asyncio
    async def test_response_without_message_uses_heuristic(self, processor, client, preferences):
        client.chat.completions.create.return_value = SimpleNamespace(choices=[SimpleNamespace()])

        results = await processor.batch_match([make_posting(1)], preferences, "user-1")

        assert [r.fallback for r in results] == [True]

    @pytest.mark.asyncio
    async def test_odd_reasons_do_not_abort_other_batches(self, processor, client, preferences):
        postings = [make_posting(1), make_posting(2)]
        client.chat.completions.create.side_effect = [
            completion({"matches": {postings[0].id: {"score": 0.9, "reasons": 5}}}),
            completion({"matches": {postings[1].id: {"score": 0.8, "reasons": "Good fit"}}}),
        ]

        results = await processor.batch_match(postings, preferences, "user-1", batch_size=1, parallelism=1)

        assert {r.id: r.match_reasons for r in results} == {
            postings[0].id: [],
            postings[1].id: ["Good fit"],
        }
        assert not any(r.fallback for r in results)

    @pytest.mark.asyncio
    async def test_match_postings_raises_service_error(self, processor, client, preferences):
        client.chat.completions.create.side_effect = OpenAIError("auth")

        with pytest.raises(MatchingServiceError):
            await processor.match_postings([make_posting(1)], preferences)


class TestBatching:
    """Test batch splitting and grouping."""

    @pytest.mark.asyncio
    async def test_one_call_per_batch(self, processor, client, preferences):
        postings = [make_posting(i) for i in range(7)]
        client.chat.completions.create.return_value = completion({"matches": {}})

        await processor.batch_match(postings, preferences, "user-1", batch_size=3, parallelism=2)

        assert client.chat.completions.create.await_count == 3

    @pytest.mark.asyncio
    async def test_group_delay_between_groups(self, client, preferences, monkeypatch):
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        monkeypatch.setattr("jobpipeline.services.ai_matcher.asyncio.sleep", fake_sleep)
        processor = MatchingProcessor(client=client, threshold=0.5, group_delay=1.5)
        client.chat.completions.create.return_value = completion({"matches": {}})

        postings = [make_posting(i) for i in range(5)]
        await processor.batch_match(postings, preferences, "user-1", batch_size=1, parallelism=1)

        # 5 batches in groups of 2 -> 3 groups, 2 pauses
        assert sleeps == [1.5, 1.5]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("batch_size,parallelism", [(0, 1), (1, 0)])
    async def test_invalid_sizes(self, processor, preferences, batch_size, parallelism):
        with pytest.raises(ValueError):
            await processor.batch_match([make_posting(1)], preferences, "user-1", batch_size, parallelism)

    @pytest.mark.asyncio
    async def test_close_releases_client(self, processor, client):
        await processor.close()

        client.close.assert_awaited_once()
        assert processor.client is None


class TestMatchResultShape:
    """Results carry the posting plus score fields."""

    @pytest.mark.asyncio
    async def test_result_fields(self, processor, client, preferences):
        posting = make_posting(1)
        client.chat.completions.create.return_value = completion({"matches": {
            posting.id: {"score": 0.77, "reasons": ["Remote friendly"]},
        }})

        result = (await processor.batch_match([posting], preferences, "user-1"))[0]

        assert isinstance(result, MatchResult)
        assert result.url == posting.url
        assert result.company_name == posting.company_name
        assert result.match_reasons == ["Remote friendly"]
