"""
Tests for FunctionDescriptor identity and memoization.
"""

import ast
import threading
import time
from dataclasses import FrozenInstanceError
from unittest.mock import patch

import pytest

from funcsim.core import function as function_module
from funcsim.core.function import FunctionDescriptor
from funcsim.core.normalizer import EMPTY_STRUCTURAL_HASH, normalize


SOURCE = '''
def add(a, b):
    result = a + b
    return result
'''


def _descriptor(**overrides) -> FunctionDescriptor:
    tree = ast.parse(SOURCE).body[0]
    fields = dict(file="mod.py", name="add", start_line=2, end_line=4, tree=tree)
    fields.update(overrides)
    return FunctionDescriptor(**fields)


class TestIdentity:
    """Tests for equality and hashing."""

    def test_equality_ignores_tree(self):
        """Test that identity is (file, name, start_line, end_line)."""
        first = _descriptor()
        second = _descriptor(tree=None)

        assert first == second
        assert hash(first) == hash(second)
        assert len({first, second}) == 1

    def test_different_location_is_different(self):
        """Test that moving a function changes identity."""
        assert _descriptor() != _descriptor(start_line=10, end_line=12)

    def test_line_count_derived(self):
        """Test default line count."""
        assert _descriptor().line_count == 3
        assert _descriptor(line_count=7).line_count == 7

    def test_immutable(self):
        """Test that fields cannot be reassigned."""
        descriptor = _descriptor()

        with pytest.raises(FrozenInstanceError):
            descriptor.name = "other"


class TestDerivedViews:
    """Tests for lazily computed views."""

    def test_views_computed(self):
        """Test normalized form, hash and signature."""
        descriptor = _descriptor()

        assert not descriptor.normalized_form.is_empty
        assert len(descriptor.structural_hash) == 16
        assert descriptor.signature == "(_, _) -> _"

    def test_views_memoized(self):
        """Test that repeated access returns the same objects."""
        descriptor = _descriptor()

        assert descriptor.normalized_form is descriptor.normalized_form
        assert descriptor.structural_hash is descriptor.structural_hash

    def test_missing_tree_degrades_to_sentinel(self):
        """Test that a descriptor without a tree still hashes."""
        descriptor = _descriptor(tree=None)

        assert descriptor.structural_hash == EMPTY_STRUCTURAL_HASH
        assert not descriptor.has_body

    def test_concurrent_access_computes_once(self):
        """Test that racing threads trigger a single normalization."""
        descriptor = _descriptor()
        calls = []

        def slow_normalize(tree):
            calls.append(1)
            time.sleep(0.05)
            return normalize(tree)

        barrier = threading.Barrier(8)
        results = []

        def worker():
            barrier.wait()
            results.append(descriptor.structural_hash)

        with patch.object(function_module, "normalize", side_effect=slow_normalize):
            threads = [threading.Thread(target=worker) for _ in range(8)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        assert len(calls) == 1
        assert len(set(results)) == 1

    def test_is_analyzable(self):
        """Test the minimum-lines filter."""
        descriptor = _descriptor()

        assert descriptor.is_analyzable(3)
        assert not descriptor.is_analyzable(4)
        assert not _descriptor(tree=None).is_analyzable(0)
