"""
Extraction of function descriptors from Python source.

Only explicitly given files are read; discovering files is left to the
caller. Files that cannot be read or parsed are reported and skipped.
"""

import ast
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ..errors import ParseError
from .function import FunctionDescriptor

logger = logging.getLogger(__name__)


@dataclass
class ParseResult:
    """Descriptors collected from a batch of files plus per-file failures."""

    functions: List[FunctionDescriptor] = field(default_factory=list)
    errors: List[ParseError] = field(default_factory=list)
    total_files: int = 0

    @property
    def successful_files(self) -> int:
        return self.total_files - len(self.errors)

    @property
    def failed_files(self) -> int:
        return len(self.errors)


class FunctionCollector(ast.NodeVisitor):
    """Collects module-level functions and methods from an AST."""

    def __init__(self, file: str):
        self.file = file
        self.functions: List[FunctionDescriptor] = []
        self.current_class: Optional[str] = None

    def visit_ClassDef(self, node: ast.ClassDef):
        """Track class context."""
        old_class = self.current_class
        self.current_class = (f"{old_class}.{node.name}" if old_class else node.name)
        self.generic_visit(node)
        self.current_class = old_class

    def visit_FunctionDef(self, node: ast.FunctionDef):
        """Record the function; nested functions stay part of their parent."""
        if self.current_class:
            full_name = f"{self.current_class}.{node.name}"
        else:
            full_name = node.name

        start_line = node.lineno
        # Decorators belong to the function's source span
        if node.decorator_list:
            start_line = min(start_line, min(d.lineno for d in node.decorator_list))
        end_line = node.end_lineno or node.lineno

        self.functions.append(FunctionDescriptor(
            file=self.file,
            name=full_name,
            start_line=start_line,
            end_line=end_line,
            tree=node,
        ))

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef):
        """Treat async functions the same as regular functions."""
        self.visit_FunctionDef(node)


def parse_source(source: str, filename: str = "<string>") -> List[FunctionDescriptor]:
    """
    Parse source text and return its functions.

    Raises:
        ParseError: If the source is not valid Python
    """
    try:
        tree = ast.parse(source, filename=filename)
    except (SyntaxError, ValueError) as e:
        raise ParseError(
            f"Cannot parse {filename}: {e}",
            file_path=filename,
            line_number=getattr(e, 'lineno', None),
        ) from e

    collector = FunctionCollector(filename)
    collector.visit(tree)
    return collector.functions


def parse_file(path: Union[str, Path]) -> List[FunctionDescriptor]:
    """
    Read and parse a single file.

    Raises:
        ParseError: If the file cannot be read or parsed
    """
    path = Path(path)
    try:
        source = path.read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(f"Cannot read {path}: {e}", file_path=str(path)) from e
    return parse_source(source, filename=str(path))


def parse_files(paths: Iterable[Union[str, Path]]) -> ParseResult:
    """Parse every file, collecting failures instead of aborting."""
    result = ParseResult()
    for path in paths:
        result.total_files += 1
        try:
            result.functions.extend(parse_file(path))
        except ParseError as e:
            logger.warning(f"Skipping {path}: {e.message}")
            result.errors.append(e)

    logger.info(
        f"Parsed {result.successful_files}/{result.total_files} files, "
        f"{len(result.functions)} functions"
    )
    return result
