"""
Import pipeline stages.

grades -> merger -> simulator -> dedupe, driven by the orchestrator in
fixed-size batches (batching).
"""

from review_import.importing.batching import chunk, process_batches, process_batches_resilient
from review_import.importing.dedupe import DedupeResult, dedupe_records
from review_import.importing.grades import map_grade
from review_import.importing.merger import merge_reviews
from review_import.importing.orchestrator import ImportOrchestrator, determine_mode, import_reviews
from review_import.importing.simulator import SimulationResult, simulate_reviews

__all__ = [
    "chunk",
    "process_batches",
    "process_batches_resilient",
    "DedupeResult",
    "dedupe_records",
    "map_grade",
    "merge_reviews",
    "ImportOrchestrator",
    "determine_mode",
    "import_reviews",
    "SimulationResult",
    "simulate_reviews",
]
