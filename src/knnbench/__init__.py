from .dataset import load_vector_set, read_fvecs, read_fvecs_file, write_fvecs, write_fvecs_file
from .harness import DATUM_ID, BenchmarkHarness, result_identifier
from .metrics import calculate_recall, recall_hits
from .report import serialize_report, write_report
from .search import BoundedTopK, flat_query
from .stats import summarize
from .types import AttributeKind, AttributeValue, BenchmarkReport, StatsSummary, VectorSet

__all__ = [
    "AttributeKind",
    "AttributeValue",
    "BenchmarkHarness",
    "BenchmarkReport",
    "BoundedTopK",
    "DATUM_ID",
    "StatsSummary",
    "VectorSet",
    "calculate_recall",
    "flat_query",
    "load_vector_set",
    "read_fvecs",
    "read_fvecs_file",
    "recall_hits",
    "result_identifier",
    "serialize_report",
    "summarize",
    "write_fvecs",
    "write_fvecs_file",
    "write_report",
]
