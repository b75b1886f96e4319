from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ..config import STATUS_AUTO_MATCHED, STATUS_SUGGESTED, STATUS_UNMATCHED


def _lookup(record: Mapping[str, Any], *keys: str) -> Any:
    """Case-insensitive lookup of the first key present in a catalog row."""
    lowered = {str(k).lower(): v for k, v in record.items()}
    for key in keys:
        if key.lower() in lowered:
            return lowered[key.lower()]
    return None


@dataclass(frozen=True)
class CatalogEntry:
    id: Any
    name: str
    strength: str = ""
    generic_name: str = ""

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "CatalogEntry":
        """Build an entry from a drug table row or JSON object."""
        name = _lookup(record, "name", "drug_name")
        strength = _lookup(record, "strength")
        generic_name = _lookup(record, "generic_name", "genericName", "generic")
        return cls(
            id=_lookup(record, "id", "drug_id"),
            name=name,
            strength="" if strength is None else str(strength).strip(),
            generic_name="" if generic_name is None else str(generic_name).strip(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "strength": self.strength,
            "generic_name": self.generic_name,
        }


@dataclass(frozen=True)
class ScoredCandidate:
    entry: CatalogEntry
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return {**self.entry.to_dict(), "similarity": self.score}


@dataclass
class MatchResult:
    matched: Optional[CatalogEntry] = None
    is_auto_matched: bool = False
    candidates: List[ScoredCandidate] = field(default_factory=list)

    @property
    def best(self) -> Optional[ScoredCandidate]:
        return self.candidates[0] if self.candidates else None

    @property
    def is_suggestion(self) -> bool:
        # Below the auto-match threshold but above the suggestion floor
        return not self.is_auto_matched and bool(self.candidates)

    @property
    def status(self) -> str:
        if self.is_auto_matched:
            return STATUS_AUTO_MATCHED
        if self.candidates:
            return STATUS_SUGGESTED
        return STATUS_UNMATCHED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matched": self.matched.to_dict() if self.matched else None,
            "is_auto_matched": self.is_auto_matched,
            "status": self.status,
            "candidates": [candidate.to_dict() for candidate in self.candidates],
        }
