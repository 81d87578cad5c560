"""
Similarity primitives over normalized forms.

All functions return values in [0, 1] where 1 means identical, except
``tree_edit_distance`` which returns the raw edit distance.
"""

from collections import Counter
from difflib import SequenceMatcher
from typing import List, Sequence

from ..core.normalizer import ControlSkeleton, NormalizedForm, UNANNOTATED, parse_signature


def tree_edit_distance(postorder_a: Sequence[str], leftmost_a: Sequence[int],
                       postorder_b: Sequence[str], leftmost_b: Sequence[int]) -> int:
    """
    Zhang-Shasha ordered tree edit distance with unit costs.

    Trees are given as post-order label sequences together with the
    post-order index of every node's leftmost leaf descendant.
    """
    n, m = len(postorder_a), len(postorder_b)
    if n == 0 or m == 0:
        return n + m

    keyroots_a = _keyroots(leftmost_a)
    keyroots_b = _keyroots(leftmost_b)
    treedist = [[0] * m for _ in range(n)]

    for i in keyroots_a:
        for j in keyroots_b:
            li, lj = leftmost_a[i], leftmost_b[j]
            rows, cols = i - li + 2, j - lj + 2
            forest = [[0] * cols for _ in range(rows)]
            for x in range(1, rows):
                forest[x][0] = forest[x - 1][0] + 1
            for y in range(1, cols):
                forest[0][y] = forest[0][y - 1] + 1

            for x in range(1, rows):
                ix = li + x - 1
                for y in range(1, cols):
                    jy = lj + y - 1
                    delete = forest[x - 1][y] + 1
                    insert = forest[x][y - 1] + 1
                    if leftmost_a[ix] == li and leftmost_b[jy] == lj:
                        relabel = forest[x - 1][y - 1] + (postorder_a[ix] != postorder_b[jy])
                        forest[x][y] = min(delete, insert, relabel)
                        treedist[ix][jy] = forest[x][y]
                    else:
                        p = leftmost_a[ix] - li
                        q = leftmost_b[jy] - lj
                        forest[x][y] = min(delete, insert, forest[p][q] + treedist[ix][jy])

    return treedist[n - 1][m - 1]


def _keyroots(leftmost: Sequence[int]) -> List[int]:
    # Highest node index for every distinct leftmost leaf
    highest = {}
    for index, leaf in enumerate(leftmost):
        highest[leaf] = index
    return sorted(highest.values())


def tree_edit_similarity(a: NormalizedForm, b: NormalizedForm) -> float:
    """1 - TED / larger tree size."""
    largest = max(a.node_count, b.node_count)
    if largest == 0:
        return 1.0
    distance = tree_edit_distance(a.postorder, a.leftmost, b.postorder, b.leftmost)
    return min(max(1.0 - distance / largest, 0.0), 1.0)


def sequence_ratio(a: Sequence, b: Sequence) -> float:
    """Ratcliff/Obershelp ratio; two empty sequences are identical."""
    if not a and not b:
        return 1.0
    return SequenceMatcher(None, a, b, autojunk=False).ratio()


def multiset_dice(a: Sequence, b: Sequence) -> float:
    """Dice coefficient over token multisets, insensitive to ordering."""
    if not a and not b:
        return 1.0
    overlap = sum((Counter(a) & Counter(b)).values())
    return 2.0 * overlap / (len(a) + len(b))


def token_similarity(a: NormalizedForm, b: NormalizedForm) -> float:
    """Mean of ordered and unordered overlap of the two content-token streams."""
    return 0.5 * sequence_ratio(a.tokens, b.tokens) + 0.5 * multiset_dice(a.tokens, b.tokens)


def count_ratio(x: int, y: int) -> float:
    if x == y:
        return 1.0
    return min(x, y) / max(x, y)


def skeleton_similarity(a: ControlSkeleton, b: ControlSkeleton) -> float:
    """
    Average per-feature ratio of two control skeletons.

    Features absent from both functions carry no evidence and are skipped.
    """
    ratios = [count_ratio(x, y) for x, y in zip(a.as_tuple(), b.as_tuple()) if x or y]
    if not ratios:
        return 1.0
    return sum(ratios) / len(ratios)


def structural_similarity(a: NormalizedForm, b: NormalizedForm) -> float:
    """Control-flow shape plus the ordering of top-level statement kinds."""
    return 0.5 * skeleton_similarity(a.skeleton, b.skeleton) + \
        0.5 * sequence_ratio(a.statement_kinds, b.statement_kinds)


def signature_similarity(signature_a: str, signature_b: str) -> float:
    """
    Compare parameter and return types of two rendered signatures.

    Unannotated slots only match other unannotated slots.
    """
    if signature_a == signature_b:
        return 1.0
    params_a, returns_a = parse_signature(signature_a)
    params_b, returns_b = parse_signature(signature_b)
    return sequence_ratio(params_a + [f"-> {returns_a or UNANNOTATED}"],
                          params_b + [f"-> {returns_b or UNANNOTATED}"])
