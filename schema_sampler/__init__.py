# ==============================================
# Schema Sampler
# ==============================================
#
# Package Structure:
#
# schema_sampler/
# ├── sampling/     # Core: progress policy, cancellable streams,
# │                 #       state machine, count → sample → analyze pipeline
# ├── analysis/     # Default schema analyzer (field statistics)
# ├── storage/      # MongoDB data service (count / $sample)
# ├── config.py     # Configuration management
# ├── sampler.py    # SchemaSampler orchestrator
# └── cli.py        # Command line entry point
#
# ==============================================

__version__ = "0.1.0"
