"""Function descriptors with lazily derived, memoized structural views."""

import ast
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from .normalizer import (
    NormalizedForm,
    extract_signature,
    has_body,
    normalize,
    structural_hash,
)


@dataclass(frozen=True)
class FunctionDescriptor:
    """
    A single parsed function.

    Identity is ``(file, name, start_line, end_line)``; the syntax tree and
    the derived views do not take part in equality or hashing. Derived
    values are computed at most once per descriptor, even when several
    worker threads ask for them at the same time.
    """

    file: str
    name: str
    start_line: int
    end_line: int
    tree: Optional[ast.AST] = field(default=None, compare=False, repr=False)
    line_count: int = field(default=-1, compare=False)
    _derived: Dict[str, Any] = field(default_factory=dict, init=False,
                                     compare=False, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False,
                                   compare=False, repr=False)

    def __post_init__(self):
        if self.line_count < 0:
            object.__setattr__(self, 'line_count',
                               max(self.end_line - self.start_line + 1, 0))

    @property
    def identity(self):
        return (self.file, self.name, self.start_line, self.end_line)

    @property
    def qualified_location(self) -> str:
        return f"{self.file}:{self.start_line}:{self.name}"

    @property
    def has_body(self) -> bool:
        return has_body(self.tree)

    @property
    def normalized_form(self) -> NormalizedForm:
        return self._memo('normalized_form', lambda: normalize(self.tree))

    @property
    def structural_hash(self) -> str:
        return self._memo('structural_hash', lambda: structural_hash(self.normalized_form))

    @property
    def signature(self) -> str:
        return self._memo('signature', lambda: extract_signature(self.tree))

    def is_analyzable(self, min_lines: int) -> bool:
        """True when the function has a body and spans at least ``min_lines``."""
        return self.has_body and self.line_count >= min_lines

    def _memo(self, key: str, compute: Callable[[], Any]) -> Any:
        value = self._derived.get(key)
        if value is not None:
            return value
        with self._lock:
            value = self._derived.get(key)
            if value is None:
                value = compute()
                self._derived[key] = value
            return value

