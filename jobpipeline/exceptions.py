"""
Pipeline Error Taxonomy

Soft failures are recorded and surfaced but never abort a run:
    - SoftSourceFailure: one adapter/company could not be searched
    - SoftPersistenceFailure: one posting could not be written
    - MatchingServiceError: completion service unreachable or malformed,
      triggers the heuristic fallback for the affected batch only

Fatal:
    - ConfigurationError: invalid ScrapeConfig, raised before any fetch
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(PipelineError):
    """Invalid or empty scrape configuration."""


class SoftSourceFailure(PipelineError):
    """A source adapter could not search its target."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"{source}: {message}")


class SourceUnavailableError(SoftSourceFailure):
    """Raised by adapters when the target cannot be reached or parsed."""


class SoftPersistenceFailure(PipelineError):
    """A single posting could not be written."""

    def __init__(self, url: str, cause: Optional[BaseException] = None):
        self.url = url
        self.cause = cause
        super().__init__(f"Failed to save posting {url}: {cause}")


class MatchingServiceError(PipelineError):
    """The completion service call failed or returned an unusable response."""
