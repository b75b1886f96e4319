"""
String similarity primitives for medication-name matching.

Every function lower-cases its own inputs, so callers can pass names exactly
as they were extracted or stored. None of them clamp their result: the
Jaro-Winkler prefix bonus is applied as-is.
"""
from typing import Set

from rapidfuzz.distance import Levenshtein

from ..config import DEFAULT_NGRAM_SIZE, SIMILARITY_WEIGHTS
from ..exceptions import InvalidInputError

WINKLER_PREFIX_SCALE = 0.1
WINKLER_MAX_PREFIX = 4


def _require_str(value, argument: str) -> str:
    if not isinstance(value, str):
        raise InvalidInputError(f"{argument} must be a string, got {type(value).__name__}")
    return value.lower()


def levenshtein_distance(a: str, b: str) -> int:
    """Minimum number of single-character insertions, deletions or substitutions turning a into b."""
    a = _require_str(a, "a")
    b = _require_str(b, "b")
    return Levenshtein.distance(a, b)


def levenshtein_similarity(a: str, b: str) -> float:
    """Edit distance normalised by the longer string; 1.0 when both strings are empty."""
    a = _require_str(a, "a")
    b = _require_str(b, "b")
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(a, b) / longest


def jaro_winkler(a: str, b: str) -> float:
    """
    Jaro-Winkler similarity.

    The match window is ``max(len) // 2 - 1``. For very short strings it is
    negative and the window scan is empty, so e.g. two single characters never
    match. The Winkler bonus uses the common prefix (up to four characters)
    with no minimum Jaro score.
    """
    a = _require_str(a, "a")
    b = _require_str(b, "b")

    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0

    window = max(len(a), len(b)) // 2 - 1
    a_matched = [False] * len(a)
    b_matched = [False] * len(b)

    matches = 0
    for i, char in enumerate(a):
        start = max(0, i - window)
        end = min(i + window + 1, len(b))
        for j in range(start, end):
            if b_matched[j] or b[j] != char:
                continue
            a_matched[i] = True
            b_matched[j] = True
            matches += 1
            break

    if matches == 0:
        return 0.0

    mismatched = 0
    k = 0
    for i, char in enumerate(a):
        if not a_matched[i]:
            continue
        while not b_matched[k]:
            k += 1
        if char != b[k]:
            mismatched += 1
        k += 1
    transpositions = mismatched / 2

    jaro = (matches / len(a) + matches / len(b) + (matches - transpositions) / matches) / 3

    prefix = 0
    for char_a, char_b in zip(a[:WINKLER_MAX_PREFIX], b[:WINKLER_MAX_PREFIX]):
        if char_a != char_b:
            break
        prefix += 1

    return jaro + prefix * WINKLER_PREFIX_SCALE * (1 - jaro)


def ngrams(text: str, n: int = DEFAULT_NGRAM_SIZE) -> Set[str]:
    """Set of contiguous n-character substrings; empty when text is shorter than n."""
    if n < 1:
        raise ValueError("n must be at least 1")
    text = _require_str(text, "text")
    return {text[i:i + n] for i in range(len(text) - n + 1)}


def ngram_similarity(a: str, b: str, n: int = DEFAULT_NGRAM_SIZE) -> float:
    """Jaccard index of the n-gram sets of a and b (bigrams by default); 0.0 when both sets are empty."""
    grams_a = ngrams(a, n)
    grams_b = ngrams(b, n)
    union = grams_a | grams_b
    if not union:
        return 0.0
    return len(grams_a & grams_b) / len(union)


def similarity(a: str, b: str) -> float:
    """
    Weighted similarity used to rank catalog entries.

    0.5 * Jaro-Winkler + 0.25 * Levenshtein similarity + 0.25 * bigram
    similarity. Identical names score 1.0 outright; without that, one-letter
    names would lose the bigram quarter.
    """
    a = _require_str(a, "a")
    b = _require_str(b, "b")
    if a == b:
        return 1.0
    return (
        SIMILARITY_WEIGHTS["jaro_winkler"] * jaro_winkler(a, b)
        + SIMILARITY_WEIGHTS["levenshtein"] * levenshtein_similarity(a, b)
        + SIMILARITY_WEIGHTS["ngram"] * ngram_similarity(a, b)
    )
