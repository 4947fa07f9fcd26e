"""
Mark extraction from question-paper OCR text, and validation of
model-structured papers.
"""

from extraction.marks import (
    MarkExtractor,
    ExtractionResult,
    LayerOutput,
    scan_header_total,
    extract_tabular,
    extract_inline,
    extract_distribution,
    apply_known_layout,
    scan_dual_numbers,
)
from extraction.structured import (
    parse_structured_paper,
)

__all__ = [
    "MarkExtractor",
    "ExtractionResult",
    "LayerOutput",
    "scan_header_total",
    "extract_tabular",
    "extract_inline",
    "extract_distribution",
    "apply_known_layout",
    "scan_dual_numbers",
    "parse_structured_paper",
]
