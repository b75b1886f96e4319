"""rx_matcher package"""
import logging

# Configure a null handler by default
logging.getLogger(__name__).addHandler(logging.NullHandler())

from .exceptions import CatalogLoadError, InvalidInputError, MatchingError
from .matching import (
    CatalogEntry,
    ExtractedMedication,
    FuzzyMatcher,
    MatchResult,
    MedicationReconciler,
    ReconciledMedication,
    ScoredCandidate,
    jaro_winkler,
    levenshtein_distance,
    levenshtein_similarity,
    match_medication,
    ngram_similarity,
    parse_extraction_response,
    similarity,
)

__version__ = "0.1.0"

__all__ = [
    'CatalogEntry',
    'ScoredCandidate',
    'MatchResult',
    'FuzzyMatcher',
    'match_medication',
    'ExtractedMedication',
    'ReconciledMedication',
    'MedicationReconciler',
    'parse_extraction_response',
    'levenshtein_distance',
    'levenshtein_similarity',
    'jaro_winkler',
    'ngram_similarity',
    'similarity',
    'MatchingError',
    'InvalidInputError',
    'CatalogLoadError',
]
