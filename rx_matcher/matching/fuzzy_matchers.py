import time
from typing import List, Sequence

from ..config import (
    DEFAULT_AUTO_MATCH_THRESHOLD,
    DEFAULT_MAX_CANDIDATES,
    DEFAULT_SUGGESTION_THRESHOLD,
)
from ..exceptions import InvalidInputError
from ..secure_logging import get_secure_logger
from .models import CatalogEntry, MatchResult, ScoredCandidate
from .similarity import similarity

logger = get_secure_logger(__name__)


class FuzzyMatcher:
    """Ranks a drug catalog against an extracted medication name."""

    def __init__(
        self,
        auto_match_threshold: float = DEFAULT_AUTO_MATCH_THRESHOLD,
        suggestion_threshold: float = DEFAULT_SUGGESTION_THRESHOLD,
        max_candidates: int = DEFAULT_MAX_CANDIDATES,
    ):
        if not (0.0 <= auto_match_threshold <= 1.0):
            raise ValueError("auto_match_threshold must be between 0.0 and 1.0")
        if not (0.0 <= suggestion_threshold <= 1.0):
            raise ValueError("suggestion_threshold must be between 0.0 and 1.0")
        if suggestion_threshold > auto_match_threshold:
            raise ValueError("suggestion_threshold must not exceed auto_match_threshold")
        if max_candidates < 1:
            raise ValueError("max_candidates must be at least 1")
        self.auto_match_threshold = auto_match_threshold
        self.suggestion_threshold = suggestion_threshold
        self.max_candidates = max_candidates

    def calculate_similarity(self, query_name: str, catalog_name: str) -> float:
        return similarity(query_name, catalog_name)

    def score_catalog(self, query_name: str, catalog: Sequence[CatalogEntry]) -> List[ScoredCandidate]:
        """Score every entry, keep those at or above the suggestion floor, best first."""
        scored = []
        for entry in catalog:
            name = getattr(entry, "name", None)
            if not isinstance(name, str):
                raise InvalidInputError(f"Catalog entry name must be a string, got {type(name).__name__}")
            score = self.calculate_similarity(query_name, name)
            if score >= self.suggestion_threshold:
                scored.append(ScoredCandidate(entry, score))
        # sorted() is stable, so equal scores keep catalog order
        return sorted(scored, key=lambda candidate: candidate.score, reverse=True)

    def match_medication(self, query_name: str, catalog: List[CatalogEntry]) -> MatchResult:
        if not isinstance(query_name, str):
            raise InvalidInputError(f"query_name must be a string, got {type(query_name).__name__}")
        if not isinstance(catalog, list):
            raise InvalidInputError(f"catalog must be a list, got {type(catalog).__name__}")

        start_time = time.perf_counter()
        ranked = self.score_catalog(query_name, catalog)
        candidates = ranked[:self.max_candidates]

        if not candidates:
            result = MatchResult(matched=None, is_auto_matched=False, candidates=[])
        elif candidates[0].score >= self.auto_match_threshold:
            result = MatchResult(matched=candidates[0].entry, is_auto_matched=True, candidates=candidates)
        else:
            result = MatchResult(matched=None, is_auto_matched=False, candidates=candidates)

        logger.log_medication_match(
            query_name,
            catalog_size=len(catalog),
            outcome=result.status,
            best_score=result.best.score if result.best else None,
            candidate_count=len(result.candidates),
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )
        return result


_DEFAULT_MATCHER = FuzzyMatcher()


def match_medication(query_name: str, catalog: List[CatalogEntry]) -> MatchResult:
    """Match a name against a catalog with the default thresholds (0.63 auto, 0.40 suggest, top 5)."""
    return _DEFAULT_MATCHER.match_medication(query_name, catalog)
