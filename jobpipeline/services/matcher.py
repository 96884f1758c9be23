"""
Basic Job Matching - Deterministic Heuristic Scoring

Used when the completion service is unavailable. Pure function of the
posting and the preferences; no I/O.

Score Composition:
    - Title overlap (0.40): job title contains a preferred title, or a
      preferred title contains the job title's first word
    - Location (0.30): substring match against preferred locations
    - Remote (0.20): remote-only preference and a remote posting
    - Seniority (0.10): same seniority keyword in job and preferred title

Score Range: 0-1 where higher = better match
"""

from typing import List, Tuple

from jobpipeline.schemas import JobPreferences, Posting

TITLE_WEIGHT = 0.40
LOCATION_WEIGHT = 0.30
REMOTE_WEIGHT = 0.20
SENIORITY_WEIGHT = 0.10

SENIORITY_KEYWORDS = ["senior", "lead", "principal", "staff"]

REMOTE_LOCATION = "remote"


def effective_locations(preferences: JobPreferences) -> List[str]:
    """Preferred locations, lower-cased; remote-only with none means Remote."""
    locations = [loc.lower() for loc in preferences.locations if loc.strip()]
    if not locations and preferences.remote_only:
        locations = [REMOTE_LOCATION]
    return locations


def match_title(job_title: str, preferred_titles: List[str]) -> bool:
    title_lower = job_title.lower()
    words = title_lower.split()
    first_word = words[0] if words else ""

    for preferred in preferred_titles:
        preferred_lower = preferred.lower().strip()
        if not preferred_lower:
            continue
        if preferred_lower in title_lower:
            return True
        if first_word and first_word in preferred_lower:
            return True
    return False


def match_location(job_location: str, preferred_locations: List[str]) -> bool:
    location_lower = job_location.lower()
    return any(pref in location_lower for pref in preferred_locations)


def is_remote(posting: Posting) -> bool:
    return REMOTE_LOCATION in (posting.location or "").lower()


def match_seniority(job_title: str, preferred_titles: List[str]) -> bool:
    title_lower = job_title.lower()
    for keyword in SENIORITY_KEYWORDS:
        if keyword in title_lower and any(keyword in p.lower() for p in preferred_titles):
            return True
    return False


def calculate_basic_match_score(
    posting: Posting,
    preferences: JobPreferences,
) -> Tuple[float, List[str]]:
    """
    Score a posting against preferences without the completion service.

    Returns:
        Tuple of (score 0-1, list of match reasons)

    Example:
        >>> score, reasons = calculate_basic_match_score(posting, preferences)
        >>> print(score)  # 0.9
        >>> print(reasons)  # ["Title matches", "Location: Remote", "Remote position"]
    """
    score = 0.0
    reasons = []

    if match_title(posting.title, preferences.job_titles):
        score += TITLE_WEIGHT
        reasons.append("Title matches your preferences")

    if posting.location and match_location(posting.location, effective_locations(preferences)):
        score += LOCATION_WEIGHT
        reasons.append(f"Location: {posting.location}")

    if preferences.remote_only and is_remote(posting):
        score += REMOTE_WEIGHT
        reasons.append("Remote position")

    if match_seniority(posting.title, preferences.job_titles):
        score += SENIORITY_WEIGHT
        reasons.append("Seniority level matches")

    return round(min(score, 1.0), 2), reasons
