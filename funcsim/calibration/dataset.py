"""
Labeled function pairs used to calibrate and validate the scorer weights.

Each case holds two small Python functions and the similarity a reviewer
would assign to them.
"""

import textwrap
from dataclasses import dataclass
from typing import Dict, List, Tuple

from ..core.function import FunctionDescriptor
from ..core.parser import parse_source
from ..errors import ParseError

CATEGORIES = ("identical", "renamed", "refactored", "similar_pattern", "low_similar", "unrelated")


@dataclass(frozen=True)
class ValidationCase:
    """A pair of function sources with its expected similarity."""

    name: str
    source_a: str
    source_b: str
    expected_similarity: float
    category: str

    def create_function_pair(self) -> Tuple[FunctionDescriptor, FunctionDescriptor]:
        """Parse the first function of each source."""
        return (_first_function(self.source_a, f"{self.name}_a.py"),
                _first_function(self.source_b, f"{self.name}_b.py"))


def _first_function(source: str, filename: str) -> FunctionDescriptor:
    functions = parse_source(textwrap.dedent(source), filename=filename)
    if not functions:
        raise ParseError(f"No function found in {filename}", file_path=filename)
    return functions[0]


def group_by_category(cases: List[ValidationCase]) -> Dict[str, List[ValidationCase]]:
    groups: Dict[str, List[ValidationCase]] = {}
    for case in cases:
        groups.setdefault(case.category, []).append(case)
    return groups


def default_validation_suite() -> List[ValidationCase]:
    """Built-in suite covering every category."""
    return [
        ValidationCase(
            name="identical_sum",
            source_a='''
                def total(values):
                    result = 0
                    for value in values:
                        result += value
                    return result
            ''',
            source_b='''
                def total(values):
                    result = 0
                    for value in values:
                        result += value
                    return result
            ''',
            expected_similarity=1.0,
            category="identical",
        ),
        ValidationCase(
            name="identical_with_docstring",
            source_a='''
                def clamp(value, low, high):
                    if value < low:
                        return low
                    if value > high:
                        return high
                    return value
            ''',
            source_b='''
                def clamp(value, low, high):
                    """Keep value inside [low, high]."""
                    # bounds are inclusive
                    if value < low:
                        return low
                    if value > high:
                        return high
                    return value
            ''',
            expected_similarity=1.0,
            category="identical",
        ),
        ValidationCase(
            name="renamed_filter",
            source_a='''
                def active_users(users):
                    selected = []
                    for user in users:
                        if user.active:
                            selected.append(user)
                    return selected
            ''',
            source_b='''
                def enabled_accounts(accounts):
                    chosen = []
                    for account in accounts:
                        if account.active:
                            chosen.append(account)
                    return chosen
            ''',
            expected_similarity=0.95,
            category="renamed",
        ),
        ValidationCase(
            name="renamed_with_literals",
            source_a='''
                def retry_delay(attempt):
                    base = 0.5
                    delay = base * (2 ** attempt)
                    if delay > 30:
                        delay = 30
                    return delay
            ''',
            source_b='''
                def backoff(n):
                    start = 1.5
                    wait = start * (2 ** n)
                    if wait > 60:
                        wait = 60
                    return wait
            ''',
            expected_similarity=0.95,
            category="renamed",
        ),
        ValidationCase(
            name="refactored_comprehension",
            source_a='''
                def squares(numbers):
                    result = []
                    for number in numbers:
                        if number > 0:
                            result.append(number * number)
                    return result
            ''',
            source_b='''
                def squares(numbers):
                    result = [number * number for number in numbers if number > 0]
                    return result
            ''',
            expected_similarity=0.7,
            category="refactored",
        ),
        ValidationCase(
            name="refactored_extra_logging",
            source_a='''
                def load_settings(path):
                    with open(path) as handle:
                        data = handle.read()
                    settings = parse(data)
                    return settings
            ''',
            source_b='''
                def load_settings(path):
                    logger.debug("loading settings")
                    with open(path) as handle:
                        data = handle.read()
                    settings = parse(data)
                    logger.debug("loaded settings")
                    return settings
            ''',
            expected_similarity=0.85,
            category="refactored",
        ),
        ValidationCase(
            name="similar_pattern_lookup",
            source_a='''
                def find_user(users, user_id):
                    for user in users:
                        if user.id == user_id:
                            return user
                    return None
            ''',
            source_b='''
                def find_order(orders, reference):
                    for order in orders:
                        if order.reference == reference:
                            return order
                    raise KeyError(reference)
            ''',
            expected_similarity=0.75,
            category="similar_pattern",
        ),
        ValidationCase(
            name="similar_pattern_accumulate",
            source_a='''
                def word_counts(words):
                    counts = {}
                    for word in words:
                        counts[word] = counts.get(word, 0) + 1
                    return counts
            ''',
            source_b='''
                def group_lengths(words):
                    groups = {}
                    for word in words:
                        groups.setdefault(len(word), []).append(word)
                    return groups
            ''',
            expected_similarity=0.7,
            category="similar_pattern",
        ),
        ValidationCase(
            name="low_similar_validation",
            source_a='''
                def validate_email(address):
                    if "@" not in address:
                        return False
                    local, domain = address.split("@", 1)
                    return bool(local) and "." in domain
            ''',
            source_b='''
                def normalize_phone(number):
                    digits = [c for c in number if c.isdigit()]
                    if len(digits) < 10:
                        raise ValueError("too short")
                    return "".join(digits[-10:])
            ''',
            expected_similarity=0.4,
            category="low_similar",
        ),
        ValidationCase(
            name="low_similar_io",
            source_a='''
                def save_report(report, path):
                    with open(path, "w") as handle:
                        handle.write(report.render())
                    return path
            ''',
            source_b='''
                def read_lines(path):
                    lines = []
                    with open(path) as handle:
                        for line in handle:
                            lines.append(line.rstrip())
                    return lines
            ''',
            expected_similarity=0.4,
            category="low_similar",
        ),
        ValidationCase(
            name="unrelated_math_vs_http",
            source_a='''
                def mean(values: list) -> float:
                    if not values:
                        return 0.0
                    return sum(values) / len(values)
            ''',
            source_b='''
                async def fetch_all(session, urls: list, timeout: float = 10.0) -> dict:
                    responses = {}
                    for url in urls:
                        try:
                            async with session.get(url, timeout=timeout) as response:
                                responses[url] = await response.json()
                        except TimeoutError:
                            responses[url] = None
                    return responses
            ''',
            expected_similarity=0.1,
            category="unrelated",
        ),
        ValidationCase(
            name="unrelated_parser_vs_matrix",
            source_a='''
                def parse_pairs(text):
                    pairs = {}
                    for line in text.splitlines():
                        key, _, value = line.partition("=")
                        pairs[key.strip()] = value.strip()
                    return pairs
            ''',
            source_b='''
                def transpose(matrix: list) -> list:
                    rows = len(matrix)
                    cols = len(matrix[0]) if rows else 0
                    return [[matrix[r][c] for r in range(rows)] for c in range(cols)]
            ''',
            expected_similarity=0.1,
            category="unrelated",
        ),
    ]
