"""Error taxonomy for the recommendation pipeline."""

from __future__ import annotations


class RecommendationError(Exception):
    """Base class for recommendation failures surfaced to callers."""


class InputError(RecommendationError, ValueError):
    """Raised for a missing/invalid user id or a malformed query; never retried."""


class BackendUnavailableError(RecommendationError):
    """Raised when neither the vector store nor the relational store answered."""

    def __init__(self, failures: dict[str, str]) -> None:
        self.failures = failures
        detail = ", ".join(f"{source}: {reason}" for source, reason in sorted(failures.items()))
        super().__init__(f"No recipe store available ({detail})")
