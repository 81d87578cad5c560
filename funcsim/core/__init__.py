"""Function model, normalization and source parsing."""

from .function import FunctionDescriptor
from .normalizer import (
    EMPTY_STRUCTURAL_HASH,
    ControlSkeleton,
    NormalizedForm,
    extract_signature,
    normalize,
    parse_signature,
    structural_hash,
)
from .parser import FunctionCollector, ParseResult, parse_file, parse_files, parse_source

__all__ = [
    "EMPTY_STRUCTURAL_HASH",
    "ControlSkeleton",
    "FunctionCollector",
    "FunctionDescriptor",
    "NormalizedForm",
    "ParseResult",
    "extract_signature",
    "normalize",
    "parse_file",
    "parse_files",
    "parse_signature",
    "parse_source",
    "structural_hash",
]
