"""
Structural normalization and hashing of Python functions.

A function is rewritten into a canonical form in which naming and literal
values no longer matter:

- the function name becomes ``FUNC``
- parameters become ``ARG0..ARGn`` in declaration order
- names bound inside the function become ``VAR0..VARn`` in first-seen order
- builtins are preserved, any other free name becomes ``NAME``
- attribute names, keyword argument names and type annotations are kept
- literals become typed placeholders (the literal *kind* survives)
- docstrings and decorators are dropped

Two functions that differ only in identifiers, literal values, comments or
formatting therefore share a canonical form and a structural hash.
"""

import ast
import builtins
import copy
import hashlib
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Set, Tuple

EMPTY_STRUCTURAL_HASH = "0" * 16
UNANNOTATED = "_"

PYTHON_BUILTINS = frozenset(dir(builtins))

FUNCTION_NODES = (ast.FunctionDef, ast.AsyncFunctionDef)

# Nodes that only qualify their parent and are folded into its label
_FOLDED_NODES = (ast.expr_context, ast.boolop, ast.operator, ast.unaryop, ast.cmpop)

_COMPOUND_STATEMENTS = (
    ast.If, ast.For, ast.AsyncFor, ast.While, ast.With, ast.AsyncWith,
    ast.Try, ast.TryStar, ast.Match,
)


@dataclass(frozen=True)
class ControlSkeleton:
    """Control-flow shape of a function body."""

    statements: int = 0
    branches: int = 0
    loops: int = 0
    switches: int = 0
    returns: int = 0
    calls: int = 0
    try_blocks: int = 0
    max_depth: int = 0

    def as_tuple(self) -> Tuple[int, ...]:
        return (self.statements, self.branches, self.loops, self.switches,
                self.returns, self.calls, self.try_blocks, self.max_depth)


@dataclass(frozen=True)
class NormalizedForm:
    """
    Canonical representation of a function.

    Attributes:
        tree: Canonical ``FunctionDef`` (None for a function without a body)
        dump: Field-less ``ast.dump`` of the canonical tree
        labels: Node labels in pre-order
        tokens: Labels that carry a name, operator or literal kind, in
            pre-order (bare node kinds are left out)
        postorder: Node labels in post-order, used for tree edit distance
        leftmost: Post-order index of each node's leftmost leaf descendant
        statement_kinds: Node types of the top-level body statements
        skeleton: Control-flow counts
    """

    tree: Optional[ast.AST] = field(default=None, compare=False, repr=False)
    dump: str = ""
    labels: Tuple[str, ...] = ()
    tokens: Tuple[str, ...] = ()
    postorder: Tuple[str, ...] = field(default=(), repr=False)
    leftmost: Tuple[int, ...] = field(default=(), repr=False)
    statement_kinds: Tuple[str, ...] = ()
    skeleton: ControlSkeleton = field(default_factory=ControlSkeleton)

    @property
    def is_empty(self) -> bool:
        return self.tree is None

    @property
    def node_count(self) -> int:
        return len(self.postorder)


EMPTY_FORM = NormalizedForm()


def has_body(tree: Optional[ast.AST]) -> bool:
    """True when ``tree`` is a function with at least one real statement."""
    if not isinstance(tree, FUNCTION_NODES):
        return False
    return any(not _is_placeholder_statement(stmt) for stmt in _strip_docstring(tree.body))


def normalize(tree: Optional[ast.AST]) -> NormalizedForm:
    """
    Build the canonical form of a function tree.

    The caller's tree is never modified. Anything that is not a function
    with a body normalizes to ``EMPTY_FORM``.
    """
    if not has_body(tree):
        return EMPTY_FORM

    canonical = copy.deepcopy(tree)
    canonical.name = "FUNC"
    canonical.decorator_list = []
    canonical.type_comment = None
    canonical.body = _strip_docstring(canonical.body)

    transformer = _CanonicalTransformer(
        params=_parameter_names(canonical.args),
        local_names=_bound_names(canonical),
    )
    transformer.visit(canonical.args)
    canonical.body = [transformer.visit(stmt) for stmt in canonical.body]
    ast.fix_missing_locations(canonical)

    preorder, postorder, leftmost = _flatten(canonical)
    return NormalizedForm(
        tree=canonical,
        dump=ast.dump(canonical, annotate_fields=False, include_attributes=False),
        labels=tuple(preorder),
        tokens=tuple(label for label in preorder if ":" in label),
        postorder=tuple(postorder),
        leftmost=tuple(leftmost),
        statement_kinds=tuple(type(stmt).__name__ for stmt in canonical.body),
        skeleton=_control_skeleton(canonical.body),
    )


def structural_hash(form: NormalizedForm) -> str:
    """First 16 hex digits of SHA-256 over the canonical dump."""
    if form.is_empty:
        return EMPTY_STRUCTURAL_HASH
    return hashlib.sha256(form.dump.encode()).hexdigest()[:16]


def extract_signature(tree: Optional[ast.AST]) -> str:
    """
    Render the type signature of a function, ignoring argument names.

    ``def f(a: int, *rest, key: str = "x") -> bool`` renders as
    ``(int, *_, str) -> bool``.
    """
    if not isinstance(tree, FUNCTION_NODES):
        return f"() -> {UNANNOTATED}"

    args = tree.args
    params = [_annotation(arg.annotation) for arg in args.posonlyargs + args.args]
    if args.vararg is not None:
        params.append("*" + _annotation(args.vararg.annotation))
    params.extend(_annotation(arg.annotation) for arg in args.kwonlyargs)
    if args.kwarg is not None:
        params.append("**" + _annotation(args.kwarg.annotation))

    return f"({', '.join(params)}) -> {_annotation(tree.returns)}"


def parse_signature(signature: str) -> Tuple[List[str], str]:
    """Split a rendered signature back into parameter types and return type."""
    head, sep, returns = signature.rpartition(" -> ")
    if not sep:
        head, returns = signature, UNANNOTATED
    head = head.strip()
    if head.startswith("(") and head.endswith(")"):
        head = head[1:-1]
    return _split_top_level(head), returns.strip() or UNANNOTATED


def _annotation(node: Optional[ast.AST]) -> str:
    if node is None:
        return UNANNOTATED
    return ast.unparse(node)


def _split_top_level(text: str) -> List[str]:
    """Split on commas that are not nested inside brackets."""
    parts: List[str] = []
    depth = 0
    current: List[str] = []
    for char in text:
        if char in "([{":
            depth += 1
        elif char in ")]}":
            depth -= 1
        if char == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    tail = "".join(current).strip()
    if tail or parts:
        parts.append(tail)
    return parts


def _strip_docstring(body: List[ast.stmt]) -> List[ast.stmt]:
    if (body and isinstance(body[0], ast.Expr)
            and isinstance(body[0].value, ast.Constant)
            and isinstance(body[0].value.value, str)):
        return body[1:]
    return body


def _is_placeholder_statement(stmt: ast.stmt) -> bool:
    if isinstance(stmt, ast.Pass):
        return True
    return (isinstance(stmt, ast.Expr)
            and isinstance(stmt.value, ast.Constant)
            and stmt.value.value is Ellipsis)


def _parameter_names(args: ast.arguments) -> List[str]:
    names = [arg.arg for arg in args.posonlyargs + args.args]
    if args.vararg is not None:
        names.append(args.vararg.arg)
    names.extend(arg.arg for arg in args.kwonlyargs)
    if args.kwarg is not None:
        names.append(args.kwarg.arg)
    return names


def _bound_names(func: ast.AST) -> Set[str]:
    """Names bound anywhere inside the function body, minus globals."""
    bound: Set[str] = set()
    declared_outer: Set[str] = set()

    for stmt in func.body:
        for node in ast.walk(stmt):
            if isinstance(node, ast.Name) and isinstance(node.ctx, (ast.Store, ast.Del)):
                bound.add(node.id)
            elif isinstance(node, ast.arg):
                bound.add(node.arg)
            elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
                bound.add(node.name)
            elif isinstance(node, (ast.Import, ast.ImportFrom)):
                for alias in node.names:
                    bound.add(alias.asname or alias.name.split(".")[0])
            elif isinstance(node, ast.ExceptHandler) and node.name:
                bound.add(node.name)
            elif isinstance(node, (ast.MatchAs, ast.MatchStar)) and node.name:
                bound.add(node.name)
            elif isinstance(node, ast.MatchMapping) and node.rest:
                bound.add(node.rest)
            elif isinstance(node, (ast.Global, ast.Nonlocal)):
                declared_outer.update(node.names)

    return bound - declared_outer


class _CanonicalTransformer(ast.NodeTransformer):
    """Rewrites identifiers and literals in place on a copied tree."""

    def __init__(self, params: List[str], local_names: Set[str]):
        self.mapping: Dict[str, str] = {name: f"ARG{i}" for i, name in enumerate(params)}
        self.local_names = local_names - set(params)
        self.var_counter = 0

    def name_for(self, name: str) -> str:
        if name in self.mapping:
            return self.mapping[name]
        if name in self.local_names:
            mapped = f"VAR{self.var_counter}"
            self.var_counter += 1
            self.mapping[name] = mapped
            return mapped
        if name in PYTHON_BUILTINS:
            return name
        return "NAME"

    def visit_Name(self, node: ast.Name) -> ast.Name:
        node.id = self.name_for(node.id)
        return node

    def visit_arg(self, node: ast.arg) -> ast.arg:
        # Annotations are kept verbatim
        node.arg = self.name_for(node.arg)
        return node

    def visit_AnnAssign(self, node: ast.AnnAssign) -> ast.AnnAssign:
        node.target = self.visit(node.target)
        if node.value is not None:
            node.value = self.visit(node.value)
        return node

    def visit_FunctionDef(self, node):
        node.name = self.name_for(node.name)
        node.decorator_list = [self.visit(d) for d in node.decorator_list]
        self.visit(node.args)
        node.body = [self.visit(stmt) for stmt in node.body]
        return node

    visit_AsyncFunctionDef = visit_FunctionDef

    def visit_ClassDef(self, node: ast.ClassDef) -> ast.ClassDef:
        node.name = self.name_for(node.name)
        return self.generic_visit(node)

    def visit_alias(self, node: ast.alias) -> ast.alias:
        if node.asname:
            node.asname = self.name_for(node.asname)
        return node

    def visit_Global(self, node: ast.Global) -> ast.Global:
        node.names = [self.name_for(name) for name in node.names]
        return node

    visit_Nonlocal = visit_Global

    def visit_ExceptHandler(self, node: ast.ExceptHandler) -> ast.ExceptHandler:
        if node.name:
            node.name = self.name_for(node.name)
        return self.generic_visit(node)

    def visit_MatchAs(self, node: ast.MatchAs) -> ast.MatchAs:
        if node.name:
            node.name = self.name_for(node.name)
        return self.generic_visit(node)

    def visit_MatchStar(self, node: ast.MatchStar) -> ast.MatchStar:
        if node.name:
            node.name = self.name_for(node.name)
        return node

    def visit_MatchMapping(self, node: ast.MatchMapping) -> ast.MatchMapping:
        if node.rest:
            node.rest = self.name_for(node.rest)
        return self.generic_visit(node)

    def visit_Constant(self, node: ast.Constant) -> ast.Constant:
        return ast.copy_location(ast.Constant(value=_placeholder(node.value)), node)

    def visit_JoinedStr(self, node: ast.JoinedStr) -> ast.Constant:
        # f-strings collapse to a plain string placeholder
        return ast.copy_location(ast.Constant(value="STR"), node)


def _placeholder(value):
    # bool is a subclass of int, check it first
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return 0
    if isinstance(value, float):
        return 0.0
    if isinstance(value, complex):
        return 0j
    if isinstance(value, str):
        return "STR"
    if isinstance(value, bytes):
        return b"BYTES"
    return value


def _label(node: ast.AST) -> str:
    kind = type(node).__name__
    if isinstance(node, ast.Name):
        return f"{kind}:{node.id}"
    if isinstance(node, ast.arg):
        return f"{kind}:{node.arg}"
    if isinstance(node, ast.Attribute):
        return f"{kind}:{node.attr}"
    if isinstance(node, ast.keyword):
        return f"{kind}:{node.arg}"
    if isinstance(node, ast.Constant):
        return f"{kind}:{type(node.value).__name__}"
    if isinstance(node, (ast.BinOp, ast.AugAssign, ast.UnaryOp, ast.BoolOp)):
        return f"{kind}:{type(node.op).__name__}"
    if isinstance(node, ast.Compare):
        return f"{kind}:{','.join(type(op).__name__ for op in node.ops)}"
    return kind


def _children(node: ast.AST) -> Iterator[ast.AST]:
    return (child for child in ast.iter_child_nodes(node)
            if not isinstance(child, _FOLDED_NODES))


def _flatten(root: ast.AST) -> Tuple[List[str], List[str], List[int]]:
    """Pre-order labels, post-order labels and leftmost-leaf indices."""
    preorder: List[str] = [_label(root)]
    postorder: List[str] = []
    leftmost: List[int] = []

    # The first node emitted in post-order within a subtree is its leftmost leaf
    stack = [(root, preorder[0], _children(root), 0)]
    while stack:
        node, label, children, start = stack[-1]
        child = next(children, None)
        if child is None:
            stack.pop()
            postorder.append(label)
            leftmost.append(start)
        else:
            child_label = _label(child)
            preorder.append(child_label)
            stack.append((child, child_label, _children(child), len(postorder)))

    return preorder, postorder, leftmost


def _control_skeleton(body: List[ast.stmt]) -> ControlSkeleton:
    counts: Counter = Counter()
    max_depth = 0

    stack = [(stmt, 0) for stmt in body]
    while stack:
        node, depth = stack.pop()
        if isinstance(node, ast.stmt):
            counts['statements'] += 1
        if isinstance(node, (ast.If, ast.IfExp)):
            counts['branches'] += 1
        elif isinstance(node, (ast.For, ast.AsyncFor, ast.While, ast.comprehension)):
            counts['loops'] += 1
        elif isinstance(node, ast.Match):
            counts['switches'] += 1
        elif isinstance(node, ast.Return):
            counts['returns'] += 1
        elif isinstance(node, ast.Call):
            counts['calls'] += 1
        elif isinstance(node, (ast.Try, ast.TryStar)):
            counts['try_blocks'] += 1

        child_depth = depth
        if isinstance(node, _COMPOUND_STATEMENTS):
            child_depth = depth + 1
            max_depth = max(max_depth, child_depth)
        stack.extend((child, child_depth) for child in ast.iter_child_nodes(node))

    return ControlSkeleton(max_depth=max_depth, **counts)
