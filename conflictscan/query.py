"""
Boolean Query Evaluator

Evaluates free-text boolean queries over a record set:

    shahed AND kharkiv              both terms
    shahed OR lancet                either term
    missile NOT cruise              first term, minus records with the second
    kinzhal AND (kharkiv OR kyiv)   grouping
    "hit and run" OR ambush         quoted phrases are plain literals

Operator words are reserved (whole words, any case). A query is split
in a fixed order: the leftmost top-level NOT first, then top-level OR,
then top-level AND, then a parenthesised group, and finally a literal.
NOT therefore binds loosest and AND tightest of the three:

    a OR b NOT c        ->  (a OR b) minus c
    a AND b OR c        ->  (a AND b) OR c
    a NOT b NOT c       ->  a minus (b minus c)

NOT is binary. An empty left side ("NOT drone") means every record.

A literal matches when it occurs, case-insensitively, anywhere in the
record's serialised fields. Set operations compare records by
identifier and results keep the input order.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from conflictscan.errors import MalformedQuery
from conflictscan.records import Record

logger = logging.getLogger(__name__)

OPERATORS = frozenset({"AND", "OR", "NOT"})

# Quoted phrase | parenthesis | run of anything else up to whitespace, quote or paren
_TOKEN = re.compile(r'"(?P<phrase>[^"]*)"|(?P<paren>[()])|(?P<word>[^\s()"]+)|(?P<quote>")')


# ============================================================
# AST
# ============================================================

@dataclass(frozen=True)
class Literal:
    text: str


@dataclass(frozen=True)
class Not:
    include: Optional["Node"]   # None means "all records"
    exclude: "Node"


@dataclass(frozen=True)
class And:
    operands: tuple["Node", ...]


@dataclass(frozen=True)
class Or:
    operands: tuple["Node", ...]


@dataclass(frozen=True)
class Group:
    expr: "Node"


Node = Union[Literal, Not, And, Or, Group]


# ============================================================
# TOKENIZER
# ============================================================

@dataclass(frozen=True)
class Token:
    kind: str       # "op" | "lparen" | "rparen" | "term" | "phrase"
    value: str
    start: int
    end: int


def tokenize(query: str) -> list[Token]:
    """Split a query into operator, parenthesis, term and phrase tokens."""
    tokens: list[Token] = []
    for m in _TOKEN.finditer(query):
        if m.group("quote") is not None:
            raise MalformedQuery("Unterminated quoted phrase", query, m.start())
        if m.group("phrase") is not None:
            tokens.append(Token("phrase", m.group("phrase"), m.start(), m.end()))
        elif m.group("paren") == "(":
            tokens.append(Token("lparen", "(", m.start(), m.end()))
        elif m.group("paren") == ")":
            tokens.append(Token("rparen", ")", m.start(), m.end()))
        else:
            word = m.group("word")
            if word.upper() in OPERATORS:
                tokens.append(Token("op", word.upper(), m.start(), m.end()))
            else:
                tokens.append(Token("term", word, m.start(), m.end()))
    return tokens


# ============================================================
# PARSER
# ============================================================

class _Parser:
    """Recursive descent over a token slice, splitting at depth-zero operators."""

    def __init__(self, query: str, tokens: list[Token]):
        self.query = query
        self.tokens = tokens
        self._depth = self._paren_depths()

    def _paren_depths(self) -> list[int]:
        """Nesting depth before each token; validates balance."""
        depths = []
        depth = 0
        for tok in self.tokens:
            if tok.kind == "rparen":
                depth -= 1
                if depth < 0:
                    raise MalformedQuery("Unbalanced ')'", self.query, tok.start)
            depths.append(depth)
            if tok.kind == "lparen":
                depth += 1
        if depth != 0:
            raise MalformedQuery("Unbalanced '('", self.query, len(self.query))
        return depths

    def parse(self) -> Node:
        return self._parse_not(0, len(self.tokens))

    def _top_level(self, lo: int, hi: int, op: str) -> list[int]:
        base = self._depth[lo] if lo < hi else 0
        return [
            i for i in range(lo, hi)
            if self.tokens[i].kind == "op"
            and self.tokens[i].value == op
            and self._depth[i] == base
        ]

    def _position(self, lo: int, hi: int) -> int:
        if lo < len(self.tokens):
            return self.tokens[lo].start
        return len(self.query)

    def _parse_not(self, lo: int, hi: int) -> Node:
        splits = self._top_level(lo, hi, "NOT")
        if not splits:
            return self._parse_or(lo, hi)
        i = splits[0]
        if i + 1 >= hi:
            raise MalformedQuery("Dangling NOT", self.query, self.tokens[i].start)
        include = self._parse_or(lo, i) if i > lo else None
        return Not(include=include, exclude=self._parse_not(i + 1, hi))

    def _parse_or(self, lo: int, hi: int) -> Node:
        return self._split(lo, hi, "OR", Or, self._parse_and)

    def _parse_and(self, lo: int, hi: int) -> Node:
        return self._split(lo, hi, "AND", And, self._parse_factor)

    def _split(self, lo, hi, op, node_type, parse_operand) -> Node:
        splits = self._top_level(lo, hi, op)
        if not splits:
            return parse_operand(lo, hi)
        operands = []
        bounds = [lo - 1] + splits + [hi]
        for start, end in zip(bounds, bounds[1:]):
            if end - start <= 1:
                raise MalformedQuery(
                    f"Missing operand for {op}", self.query, self._position(min(start + 1, hi), hi),
                )
            operands.append(parse_operand(start + 1, end))
        return node_type(tuple(operands))

    def _parse_factor(self, lo: int, hi: int) -> Node:
        if lo >= hi:
            raise MalformedQuery("Empty expression", self.query, self._position(lo, hi))

        first, last = self.tokens[lo], self.tokens[hi - 1]
        if first.kind == "lparen" and self._closing(lo) == hi - 1:
            if hi - lo == 2:
                raise MalformedQuery("Empty group", self.query, first.start)
            return Group(self._parse_not(lo + 1, hi - 1))

        if any(t.kind in ("lparen", "rparen") for t in self.tokens[lo:hi]):
            raise MalformedQuery(
                "Group must be joined to other terms with AND, OR or NOT",
                self.query, first.start,
            )

        if hi - lo == 1 and first.kind == "phrase":
            return Literal(first.value)
        if any(t.kind == "phrase" for t in self.tokens[lo:hi]):
            return Literal(" ".join(t.value for t in self.tokens[lo:hi]))
        # Unquoted multi-word literal keeps its original spacing
        return Literal(self.query[first.start:last.end])

    def _closing(self, lo: int) -> int:
        depth = 0
        for i in range(lo, len(self.tokens)):
            kind = self.tokens[i].kind
            if kind == "lparen":
                depth += 1
            elif kind == "rparen":
                depth -= 1
                if depth == 0:
                    return i
        return -1


def parse_query(query: str) -> Optional[Node]:
    """
    Parse a query string into an AST.

    Returns None for an empty or whitespace-only query.

    Raises:
        MalformedQuery: unbalanced parentheses, empty groups, dangling
            operators, unterminated quotes, or a group placed next to a
            term without an operator.
    """
    if query is None or not query.strip():
        return None
    tokens = tokenize(query)
    if not tokens:
        return None
    return _Parser(query, tokens).parse()


# ============================================================
# EVALUATION
# ============================================================

class QueryEvaluator:
    """Evaluates parsed queries over record sequences."""

    def evaluate(self, query: str, records: Sequence[Record]) -> list[Record]:
        """Records matching the query, in input order."""
        records = list(records)
        node = parse_query(query)
        if node is None:
            return records
        return self.evaluate_node(node, records)

    def evaluate_node(self, node: Node, records: list[Record]) -> list[Record]:
        ids = self._match_ids(node, records)
        return [r for r in records if r.record_id in ids]

    def _match_ids(self, node: Node, records: list[Record]) -> set[str]:
        if isinstance(node, Literal):
            needle = node.text.strip().lower()
            if not needle:
                return {r.record_id for r in records}
            return {r.record_id for r in records if needle in r.serialized()}

        if isinstance(node, Group):
            return self._match_ids(node.expr, records)

        if isinstance(node, Not):
            if node.include is None:
                included = {r.record_id for r in records}
            else:
                included = self._match_ids(node.include, records)
            return included - self._match_ids(node.exclude, records)

        if isinstance(node, Or):
            ids: set[str] = set()
            for operand in node.operands:
                ids |= self._match_ids(operand, records)
            return ids

        if isinstance(node, And):
            remaining = records
            ids = {r.record_id for r in records}
            for operand in node.operands:
                ids &= self._match_ids(operand, remaining)
                remaining = [r for r in remaining if r.record_id in ids]
            return ids

        raise TypeError(f"Unknown query node: {node!r}")


def literal_search(term: str, records: Sequence[Record]) -> list[Record]:
    """Plain case-insensitive substring search over serialised records."""
    needle = (term or "").strip().lower()
    if not needle:
        return list(records)
    return [r for r in records if needle in r.serialized()]


query_evaluator = QueryEvaluator()


def evaluate_query(query: str, records: Sequence[Record]) -> list[Record]:
    """Module-level entry point; raises MalformedQuery on unparsable input."""
    return query_evaluator.evaluate(query, records)
