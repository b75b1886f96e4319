"""Reconciles medications extracted from a prescription image against the drug catalog."""
import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ..secure_logging import get_secure_logger
from .fuzzy_matchers import FuzzyMatcher
from .models import CatalogEntry, ScoredCandidate

logger = get_secure_logger(__name__)

METHOD_EXACT = "exact"
METHOD_EXACT_NAME = "exact_name"
METHOD_FUZZY_AUTO = "fuzzy_auto"
METHOD_FUZZY_SUGGESTED = "fuzzy_suggested"
METHOD_UNMATCHED = "unmatched"

_CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


@dataclass
class ExtractedMedication:
    name: str
    strength: str = ""
    directions: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExtractedMedication":
        return cls(
            name=str(data.get("name") or "").strip(),
            strength=str(data.get("strength") or "").strip(),
            directions=str(data.get("directions") or "").strip(),
        )


@dataclass
class ReconciledMedication:
    name: str
    strength: str
    directions: str
    found: bool
    match_method: str
    original_name: str
    original_strength: str
    db_match: Optional[CatalogEntry] = None
    similarity_score: Optional[float] = None
    similar_matches: List[ScoredCandidate] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the camelCase keys the prescription review screen consumes."""
        result: Dict[str, Any] = {
            "name": self.name,
            "strength": self.strength,
            "directions": self.directions,
            "found": self.found,
            "matchMethod": self.match_method,
            "originalName": self.original_name,
            "originalStrength": self.original_strength,
        }
        if self.db_match is not None:
            result["dbMatch"] = self.db_match.to_dict()
        if self.similarity_score is not None:
            result["similarity"] = self.similarity_score
        if self.similar_matches:
            result["similarMatches"] = [candidate.to_dict() for candidate in self.similar_matches]
        return result


def parse_extraction_response(text: str) -> List[ExtractedMedication]:
    """
    Parse the text-extraction service's answer into medications.

    The service is asked for ``{"medications": [{"name", "strength",
    "directions"}]}`` but often wraps it in markdown code fences. Text that is
    still not valid JSON yields an empty list.
    """
    cleaned = _CODE_FENCE.sub("", text or "").strip()
    if not cleaned:
        logger.warning("Extraction response is empty.")
        return []

    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse extraction response as JSON: {e.msg} at position {e.pos}")
        return []

    if isinstance(payload, list):
        raw_items = payload
    elif isinstance(payload, dict):
        raw_items = payload.get("medications") or []
    else:
        logger.error(f"Unexpected extraction payload type: {type(payload).__name__}")
        return []

    medications = []
    for index, item in enumerate(raw_items):
        if not isinstance(item, dict):
            logger.warning(f"Skipping extracted item {index}: not an object.")
            continue
        medication = ExtractedMedication.from_dict(item)
        if not medication.name:
            logger.warning(f"Skipping extracted item {index}: no medication name.")
            continue
        medications.append(medication)

    logger.info(f"Parsed {len(medications)} medications from extraction response.")
    return medications


class MedicationReconciler:
    """
    Resolves extracted medications to catalog entries.

    Exact name and strength wins, then exact name alone, then the fuzzy
    matcher. Exact and auto-matched results take the catalog's canonical name
    and strength; suggestions keep what was extracted and list the candidates
    for a pharmacist to confirm.
    """

    def __init__(self, fuzzy_matcher: Optional[FuzzyMatcher] = None):
        self.fuzzy_matcher = fuzzy_matcher or FuzzyMatcher()

    @staticmethod
    def _find_exact(medication: ExtractedMedication, catalog: List[CatalogEntry]) -> Optional[CatalogEntry]:
        name = medication.name.lower()
        name_only_match = None
        for entry in catalog:
            if not isinstance(entry.name, str) or entry.name.lower() != name:
                continue
            if entry.strength == medication.strength:
                return entry
            if name_only_match is None:
                name_only_match = entry
        return name_only_match

    @staticmethod
    def _apply_match(medication: ExtractedMedication, entry: CatalogEntry, method: str,
                     score: Optional[float], similar: List[ScoredCandidate]) -> ReconciledMedication:
        return ReconciledMedication(
            name=entry.name,
            strength=entry.strength or medication.strength,
            directions=medication.directions,
            found=True,
            match_method=method,
            original_name=medication.name,
            original_strength=medication.strength,
            db_match=entry,
            similarity_score=score,
            similar_matches=similar,
        )

    def reconcile(self, medication: ExtractedMedication, catalog: List[CatalogEntry]) -> ReconciledMedication:
        exact = self._find_exact(medication, catalog)
        if exact is not None:
            method = METHOD_EXACT if exact.strength == medication.strength else METHOD_EXACT_NAME
            logger.debug(f"Exact catalog hit ({method}) for {logger.mask_value(medication.name)}")
            return self._apply_match(medication, exact, method, 1.0, [])

        result = self.fuzzy_matcher.match_medication(medication.name, catalog)
        if result.is_auto_matched:
            return self._apply_match(
                medication, result.matched, METHOD_FUZZY_AUTO, result.best.score, result.candidates,
            )

        return ReconciledMedication(
            name=medication.name,
            strength=medication.strength,
            directions=medication.directions,
            found=False,
            match_method=METHOD_FUZZY_SUGGESTED if result.candidates else METHOD_UNMATCHED,
            original_name=medication.name,
            original_strength=medication.strength,
            similarity_score=result.best.score if result.best else None,
            similar_matches=result.candidates,
        )

    def reconcile_all(self, medications: List[ExtractedMedication],
                      catalog: List[CatalogEntry]) -> List[ReconciledMedication]:
        reconciled = [self.reconcile(medication, catalog) for medication in medications]
        found_count = sum(1 for item in reconciled if item.found)
        logger.info(f"Reconciled {len(reconciled)} medications: {found_count} found in catalog.")
        return reconciled
