"""Pure, pattern-based repository heuristics.

Every function here is deterministic and performs no I/O.
"""

from __future__ import annotations

from reposcope.heuristics.complexity import (
    detect_language,
    estimate_test_coverage,
    extract_functions,
    file_complexity,
)
from reposcope.heuristics.contributors import bus_factor, contribution_shares
from reposcope.heuristics.debt import scan_technical_debt
from reposcope.heuristics.endpoints import extract_api_endpoints
from reposcope.heuristics.engine import (
    HeuristicEngine,
    HeuristicResult,
    annotate_files,
    compute_metrics,
)
from reposcope.heuristics.imports import build_dependency_graph, parse_imports
from reposcope.heuristics.scoring import (
    find_hotspots,
    find_key_functions,
    performance_score,
)
from reposcope.heuristics.security import scan_security_issues

__all__ = [
    "HeuristicEngine",
    "HeuristicResult",
    "annotate_files",
    "build_dependency_graph",
    "bus_factor",
    "compute_metrics",
    "contribution_shares",
    "detect_language",
    "estimate_test_coverage",
    "extract_api_endpoints",
    "extract_functions",
    "file_complexity",
    "find_hotspots",
    "find_key_functions",
    "parse_imports",
    "performance_score",
    "scan_security_issues",
    "scan_technical_debt",
]
