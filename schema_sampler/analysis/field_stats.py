# ==============================================
# FieldStats
# ==============================================
#
# PURPOSE:
#   Evidence gathered about one field path across the sampled
#   documents: how often it appears, which types it takes, how many
#   distinct values it has.
#
# CLASS: FieldStats (dataclass)
# -----------------------------
#   Attributes:
#   - path: str                   → dot-notation path ("address.city")
#   - count: int                  → documents in which the path appeared
#   - type_counts: dict[str, int] → {"int": 45, "str": 3, "null": 2}
#   - null_count: int
#   - unique_values: set          → hashable values seen (capped)
#   - unhashable_count: int       → values that could not be hashed
#   - sample_values: list         → first few values, for inspection
#
#   Computed:
#   - dominant_type -> str | None
#   - type_stability -> float     (dominant type count / count)
#   - has_duplicates -> bool
#   - probability(total_documents) -> float
#
#   Methods:
#   - update(value, detected_type) -> None
#   - to_dict(total_documents) -> dict
#
# ==============================================

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set


@dataclass
class FieldStats:
    """Observed statistics for a single field path."""

    path: str
    depth: int = 0

    count: int = 0
    type_counts: Dict[str, int] = field(default_factory=dict)
    null_count: int = 0

    unique_values: Set[Any] = field(default_factory=set)
    max_unique_tracked: int = 1000
    unhashable_count: int = 0
    # Set once a tracked value repeats; values past the cap are not compared
    _saw_duplicate: bool = False

    sample_values: List[Any] = field(default_factory=list)
    max_samples: int = 5

    def __post_init__(self):
        self.depth = self.path.count(".")

    @property
    def name(self) -> str:
        """Last segment of the path."""
        return self.path.rsplit(".", 1)[-1]

    def update(self, value: Any, detected_type: str) -> None:
        """
        Record one observed value.

        Args:
            value: The field value from a sampled document
            detected_type: Type name from TypeDetector
        """
        self.count += 1
        self.type_counts[detected_type] = self.type_counts.get(detected_type, 0) + 1

        if value is None:
            self.null_count += 1
            return

        try:
            hash(value)
        except TypeError:
            self.unhashable_count += 1
        else:
            if value in self.unique_values:
                self._saw_duplicate = True
            elif len(self.unique_values) < self.max_unique_tracked:
                self.unique_values.add(value)

        if len(self.sample_values) < self.max_samples:
            self.sample_values.append(value)

    @property
    def dominant_type(self) -> Optional[str]:
        if not self.type_counts:
            return None
        return max(self.type_counts, key=self.type_counts.get)

    @property
    def type_stability(self) -> float:
        """Share of observations that had the dominant type (1.0 = never drifted)."""
        if self.count == 0:
            return 0.0
        return self.type_counts[self.dominant_type] / self.count

    @property
    def has_duplicates(self) -> bool:
        return self._saw_duplicate

    def probability(self, total_documents: int) -> float:
        """Share of sampled documents that contained this path."""
        if total_documents <= 0:
            return 0.0
        return self.count / total_documents

    def to_dict(self, total_documents: int) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "count": self.count,
            "probability": round(self.probability(total_documents), 4),
            "types": dict(sorted(self.type_counts.items(), key=lambda kv: (-kv[1], kv[0]))),
            "dominant_type": self.dominant_type,
            "type_stability": round(self.type_stability, 4),
            "null_count": self.null_count,
            "unique_count": len(self.unique_values) + self.unhashable_count,
            "has_duplicates": self.has_duplicates,
            "sample_values": list(self.sample_values),
        }
