"""
AI Matching Batch Processor

Scores postings against a user's preferences with an OpenAI chat
completion, batching postings into a single call per batch and running a
bounded number of batches concurrently.

Pipeline per batch:
    1. Cache lookup per posting (ai:match:{posting_id}:{user_id})
    2. One completion call for all misses (compact summaries, JSON mode)
    3. Every service result is cached for 7 days; only scores above the
       threshold are returned
    4. If the call fails, misses are scored by the heuristic in
       services.matcher; those results are all returned and never cached

Batches are grouped by `parallelism`; groups run one after another with
`group_delay` seconds between them to stay under provider rate limits.
"""

import asyncio
import json
import logging
import math
from typing import Any, Dict, List, Optional, Sequence, Tuple

from openai import AsyncOpenAI, OpenAIError

from jobpipeline.config import get_settings
from jobpipeline.exceptions import MatchingServiceError
from jobpipeline.metrics import MATCHING_FALLBACKS, MATCHING_REQUESTS, MATCHING_TOKENS
from jobpipeline.schemas import JobPreferences, MatchResult, Posting
from jobpipeline.services.cache import MatchCache
from jobpipeline.services.matcher import calculate_basic_match_score

logger = logging.getLogger(__name__)

DESCRIPTION_LENGTH = 300

SYSTEM_PROMPT = (
    "You are a job matching assistant. Score how well each job fits the "
    "candidate's preferences and return only valid JSON."
)

MATCH_PROMPT = """Rate each job from 0.0 to 1.0 for this candidate.

Candidate preferences:
{preferences}

Jobs:
{jobs}

Return JSON in exactly this shape, one entry per job id:
{{
  "matches": {{
    "<job id>": {{"score": 0.85, "reasons": ["Title matches", "Remote friendly"]}}
  }}
}}"""

MatchScores = Dict[str, Tuple[float, List[str]]]


def summarize_posting(posting: Posting) -> Dict[str, Any]:
    """Compact representation sent to the completion service."""
    summary = {
        "id": posting.id,
        "title": posting.title,
        "company": posting.company_name,
        "description": posting.description[:DESCRIPTION_LENGTH],
        "location": posting.location or "Not specified",
    }
    if posting.salary_range:
        summary["salary"] = posting.salary_range
    return summary


def summarize_preferences(preferences: JobPreferences) -> Dict[str, Any]:
    return {
        "job_titles": preferences.job_titles,
        "locations": preferences.locations,
        "experience_level": preferences.experience_level,
        "remote_only": preferences.remote_only,
        "salary_min": preferences.salary_min,
        "salary_max": preferences.salary_max,
    }


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _reasons(value: Any) -> List[str]:
    """A reasons field as a list of strings; a lone string is one reason."""
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        return [str(r) for r in value if isinstance(r, (str, int, float))]
    return []


def parse_match_response(content: Optional[str]) -> MatchScores:
    """
    Parse a completion response into {posting_id: (score, reasons)}.

    Accepts {"matches": {id: {...}}} and {"matches": [{"jobId"|"id": ...}]}.
    Entries with a non-numeric score are dropped.

    Raises:
        MatchingServiceError: content is not JSON or has no matches
    """
    if not content:
        raise MatchingServiceError("Empty response from completion service")

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise MatchingServiceError(f"Malformed JSON from completion service: {e}") from e

    matches = data.get("matches") if isinstance(data, dict) else None
    if isinstance(matches, dict):
        entries = [(str(key), value) for key, value in matches.items()]
    elif isinstance(matches, list):
        entries = [
            (str(item.get("jobId") or item.get("id")), item)
            for item in matches
            if isinstance(item, dict) and (item.get("jobId") or item.get("id"))
        ]
    else:
        raise MatchingServiceError("Completion response has no 'matches' field")

    scores: MatchScores = {}
    for posting_id, entry in entries:
        if not isinstance(entry, dict):
            continue
        try:
            raw_score = float(entry.get("score", 0.0))
        except (TypeError, ValueError):
            raw_score = math.nan
        if not math.isfinite(raw_score):
            logger.warning(f"Ignoring non-numeric score for {posting_id}: {entry.get('score')!r}")
            continue
        scores[posting_id] = (_clamp(raw_score), _reasons(entry.get("reasons")))

    return scores


def heuristic_result(posting: Posting, preferences: JobPreferences) -> MatchResult:
    score, reasons = calculate_basic_match_score(posting, preferences)
    return MatchResult(
        **posting.model_dump(),
        similarity_score=score,
        match_reasons=reasons,
        fallback=True,
    )


class MatchingProcessor:
    """
    Batch matcher backed by an OpenAI chat completion.

    Attributes:
        client: AsyncOpenAI client (created on first call when not injected)
        cache: Optional MatchCache; without it nothing is cached
        model: Chat model (default: settings.openai_model)
        threshold: Service scores must exceed this to be returned
        group_delay: Seconds slept between groups of concurrent batches
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        cache: Optional[MatchCache] = None,
        model: Optional[str] = None,
        threshold: Optional[float] = None,
        group_delay: Optional[float] = None,
    ):
        settings = get_settings()
        self.client = client
        self.cache = cache
        self.model = model or settings.openai_model
        self.threshold = settings.match_threshold if threshold is None else threshold
        self.group_delay = settings.match_group_delay if group_delay is None else group_delay
        self.temperature = settings.openai_temperature
        self.timeout = settings.openai_timeout
        self.cache_ttl = settings.match_cache_ttl

    def _get_client(self) -> AsyncOpenAI:
        if self.client is None:
            settings = get_settings()
            try:
                self.client = AsyncOpenAI(api_key=settings.openai_api_key or None, timeout=self.timeout)
            except OpenAIError as e:
                raise MatchingServiceError(f"OpenAI client unavailable: {e}") from e
        return self.client

    async def close(self) -> None:
        if self.client is not None:
            await self.client.close()
            self.client = None

    async def match_postings(
        self,
        postings: Sequence[Posting],
        preferences: JobPreferences,
    ) -> MatchScores:
        """
        Score postings with a single completion call.

        Returns:
            Dict of posting id -> (score 0-1, reasons); ids the service
            omitted are absent

        Raises:
            MatchingServiceError: timeout, API/auth error or malformed output
        """
        prompt = MATCH_PROMPT.format(
            preferences=json.dumps(summarize_preferences(preferences)),
            jobs=json.dumps([summarize_posting(p) for p in postings]),
        )

        try:
            response = await self._get_client().chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                response_format={"type": "json_object"},
            )
        except (OpenAIError, asyncio.TimeoutError) as e:
            MATCHING_REQUESTS.labels(status="failure").inc()
            raise MatchingServiceError(f"Completion call failed: {e}") from e

        usage = getattr(response, "usage", None)
        for token_type in ("prompt", "completion"):
            count = getattr(usage, f"{token_type}_tokens", None)
            if isinstance(count, int) and count > 0:
                MATCHING_TOKENS.labels(model=self.model, type=token_type).inc(count)

        try:
            try:
                content = response.choices[0].message.content
            except (AttributeError, IndexError, TypeError) as e:
                raise MatchingServiceError(f"Completion response has no message: {e}") from e
            scores = parse_match_response(content)
        except MatchingServiceError:
            MATCHING_REQUESTS.labels(status="failure").inc()
            raise

        MATCHING_REQUESTS.labels(status="success").inc()
        return scores

    async def _process_batch(
        self,
        batch: Sequence[Posting],
        preferences: JobPreferences,
        user_id: str,
        use_cache: bool,
    ) -> List[MatchResult]:
        cache = self.cache if use_cache else None

        results: List[MatchResult] = []
        misses: List[Posting] = []
        for posting in batch:
            cached = await cache.get_match(posting.id, user_id) if cache else None
            if cached is not None:
                results.append(cached)
            else:
                misses.append(posting)

        if not misses:
            return results

        try:
            scores = await self.match_postings(misses, preferences)
        except MatchingServiceError as e:
            logger.warning(f"Matching service failed for {len(misses)} postings, using heuristic: {e}")
            MATCHING_FALLBACKS.inc(len(misses))
            results.extend(heuristic_result(p, preferences) for p in misses)
            return results

        for posting in misses:
            score, reasons = scores.get(posting.id, (0.0, []))
            result = MatchResult(
                **posting.model_dump(),
                similarity_score=score,
                match_reasons=reasons,
            )
            if cache:
                await cache.set_match(posting.id, user_id, result, ttl=self.cache_ttl)
            if score > self.threshold:
                results.append(result)

        return results

    async def batch_match(
        self,
        postings: Sequence[Posting],
        preferences: JobPreferences,
        user_id: str,
        batch_size: int = 20,
        parallelism: int = 3,
        use_cache: bool = True,
    ) -> List[MatchResult]:
        """
        Match postings for a user.

        Args:
            postings: Postings to score
            preferences: The user's job preferences
            user_id: Owner of the match results (part of the cache key)
            batch_size: Postings per completion call
            parallelism: Batches run concurrently per group
            use_cache: Read and write the match cache

        Returns:
            MatchResults sorted by similarity_score, highest first

        Example:
            >>> results = await processor.batch_match(postings, prefs, "user-1")
            >>> results[0].similarity_score
            0.92
        """
        if batch_size < 1 or parallelism < 1:
            raise ValueError("batch_size and parallelism must be at least 1")

        batches = [list(postings[i:i + batch_size]) for i in range(0, len(postings), batch_size)]

        results: List[MatchResult] = []
        for group_start in range(0, len(batches), parallelism):
            if group_start > 0 and self.group_delay > 0:
                await asyncio.sleep(self.group_delay)

            group = batches[group_start:group_start + parallelism]
            group_results = await asyncio.gather(
                *(self._process_batch(batch, preferences, user_id, use_cache) for batch in group)
            )
            for batch_results in group_results:
                results.extend(batch_results)

        results.sort(key=lambda r: r.similarity_score, reverse=True)

        fallback_count = sum(1 for r in results if r.fallback)
        logger.info(
            f"Matched {len(postings)} postings for user {user_id}: "
            f"{len(results)} returned ({fallback_count} heuristic)"
        )
        return results
