"""Medication-name matching against a drug catalog."""

from .fuzzy_matchers import FuzzyMatcher, match_medication
from .models import CatalogEntry, MatchResult, ScoredCandidate
from .reconciliation import (
    ExtractedMedication,
    MedicationReconciler,
    ReconciledMedication,
    parse_extraction_response,
)
from .similarity import (
    jaro_winkler,
    levenshtein_distance,
    levenshtein_similarity,
    ngram_similarity,
    similarity,
)

__all__ = [
    "CatalogEntry",
    "ScoredCandidate",
    "MatchResult",
    "FuzzyMatcher",
    "match_medication",
    "ExtractedMedication",
    "ReconciledMedication",
    "MedicationReconciler",
    "parse_extraction_response",
    "levenshtein_distance",
    "levenshtein_similarity",
    "jaro_winkler",
    "ngram_similarity",
    "similarity",
]
