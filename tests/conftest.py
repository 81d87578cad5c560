"""Shared fixtures for funcsim tests."""

import logging
import textwrap

import pytest

from funcsim.config import SimilarityConfig
from funcsim.core.parser import parse_source
from funcsim.similarity.detector import SimilarityDetector


@pytest.fixture
def make_function():
    """Build a FunctionDescriptor from the first function in a source snippet."""
    counter = {'n': 0}

    def factory(source: str, filename: str = None):
        counter['n'] += 1
        name = filename or f"snippet_{counter['n']}.py"
        return parse_source(textwrap.dedent(source), filename=name)[0]

    return factory


@pytest.fixture
def detector():
    return SimilarityDetector(SimilarityConfig())


@pytest.fixture
def function_sources():
    """A small corpus with two near-duplicates and unrelated functions."""
    return [
        '''
        def total_price(items):
            total = 0
            for item in items:
                total += item.price * item.quantity
            return total
        ''',
        '''
        def order_value(lines):
            value = 0
            for line in lines:
                value += line.price * line.quantity
            return value
        ''',
        '''
        def parse_header(text):
            name, _, value = text.partition(":")
            if not value:
                raise ValueError(text)
            return name.strip().lower(), value.strip()
        ''',
        '''
        def chunk(values, size):
            chunks = []
            for start in range(0, len(values), size):
                chunks.append(values[start:start + size])
            return chunks
        ''',
        '''
        def describe(user):
            parts = [user.first_name, user.last_name]
            if user.email:
                parts.append(f"<{user.email}>")
            return " ".join(parts)
        ''',
    ]


@pytest.fixture(autouse=True)
def reset_funcsim_logger():
    """Undo handlers installed by setup_logging so caplog keeps working."""
    yield
    logger = logging.getLogger("funcsim")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
