# ==============================================
# ANALYSIS
# ==============================================
#
# Default schema analyzer plugged into the sampling pipeline.
#
# Modules:
# --------
# - type_detector.py   → Name the type of a sampled value
# - field_stats.py     → Statistics for one field path
# - schema_analyzer.py → Walk documents, emit progress and the schema
#
# ==============================================

from .field_stats import FieldStats
from .schema_analyzer import SchemaAnalyzer, analyze_schema
from .type_detector import TypeDetector

__all__ = ["FieldStats", "SchemaAnalyzer", "TypeDetector", "analyze_schema"]
