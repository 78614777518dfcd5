# ==============================================
# SchemaAnalyzer
# ==============================================
#
# PURPOSE:
#   Default analyzer for the sampling pipeline. Walks each sampled
#   document, accumulates FieldStats per field path, and emits the
#   cumulative schema once the input is exhausted.
#
# CONTRACT WITH THE PIPELINE:
# ---------------------------
#   analyzer(records) -> iterator of
#     - Progress(document)   once per analyzed document
#     - schema dict          once, after the last document
#
#   Exceptions raised while analyzing propagate to the caller, which
#   reports them as an analysis failure.
#
# SCHEMA SHAPE:
# -------------
#   {
#     "count": 3,                      # documents analyzed
#     "fields": [                      # sorted by path
#       {"name": "city", "path": "address.city", "count": 2,
#        "probability": 0.6667, "types": {"str": 2}, ...},
#       ...
#     ]
#   }
#
# NESTING:
#   Embedded documents are flattened with dot notation
#   ({"address": {"city": "x"}} → "address" and "address.city").
#   Documents inside arrays contribute their fields under the
#   array's path. A path counts at most once per document.
#
# ==============================================

from typing import Any, Dict, Iterable, Iterator

from schema_sampler.sampling.stream import Progress

from .field_stats import FieldStats
from .type_detector import TypeDetector


class SchemaAnalyzer:
    """
    Observes sampled documents and accumulates field statistics.

    Calling the analyzer on an iterable of documents starts a fresh
    analysis, so one instance can serve many sampling runs.
    """

    def __init__(self, type_detector: TypeDetector = None):
        self.type_detector = type_detector or TypeDetector()
        self.stats: Dict[str, FieldStats] = {}
        self.total_documents: int = 0

    def __call__(self, records: Iterable[dict]) -> Iterator[Any]:
        self.reset()
        for document in records:
            self.analyze_document(document)
            yield Progress(document)
        yield self.to_schema()

    def analyze_document(self, document: dict) -> None:
        """
        Fold one document into the accumulated statistics.

        Args:
            document: A sampled document (nested dicts and lists allowed)
        """
        observed: Dict[str, Any] = {}
        self._walk(document, "", observed)

        for path, value in observed.items():
            if path not in self.stats:
                self.stats[path] = FieldStats(path=path)
            self.stats[path].update(value, self.type_detector.detect(value))

        self.total_documents += 1

    def _walk(self, document: dict, prefix: str, observed: Dict[str, Any]) -> None:
        for key, value in document.items():
            path = self._flatten_key(prefix, str(key))
            # Keep the first value seen for a path within one document
            observed.setdefault(path, value)

            if isinstance(value, dict):
                self._walk(value, path, observed)
            elif isinstance(value, list):
                for item in value:
                    if isinstance(item, dict):
                        self._walk(item, path, observed)

    def _flatten_key(self, prefix: str, key: str) -> str:
        if not prefix:
            return key
        return f"{prefix}.{key}"

    def to_schema(self) -> Dict[str, Any]:
        """Cumulative schema for everything analyzed so far."""
        return {
            "count": self.total_documents,
            "fields": [
                self.stats[path].to_dict(self.total_documents)
                for path in sorted(self.stats)
            ],
        }

    def reset(self) -> None:
        self.stats = {}
        self.total_documents = 0


def analyze_schema(records: Iterable[dict]) -> Iterator[Any]:
    """Analyze `records` with a fresh SchemaAnalyzer."""
    return SchemaAnalyzer()(records)
