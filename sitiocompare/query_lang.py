"""
Mini query language (comparison requests)
=========================================

The CLI `compare` command takes a one-line description of a comparison:

- compare "temporal sitio=12 years=2022,2023,2024 groups=demographics,utilities"
- compare "spatial sitios=3,7,9 year=2024 groups=livelihood"
- compare "aggregate level=barangay entities='Poblacion','Rang-ay' municipality=BANGA year=2024 groups=all"

This file provides:
- Tokenizer (turns text into tokens)
- Parser (comparison type + key=value,... assignments)
- `to_config`, which maps the parsed query onto a `ComparisonConfig`

Parsing only checks the *shape* of the query. Counts, limits and unknown
ids are left to the engine's validation so that every problem is reported
together.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
import re

from .engine import COMPARISON_TYPES, ComparisonConfig
from .indicators import METRIC_GROUPS

# query      := TYPE assignment*
# assignment := IDENT "=" value ("," value)*
# value      := NUMBER | quoted string | bareword

_TOKEN_RE = re.compile(
    r"""
    \s*(?:
        (?P<EQ>=) |
        (?P<COMMA>,) |
        (?P<NUMBER>-?\d+(?![A-Za-z_\-])) |
        (?P<STRING>"([^"\\]|\\.)*"|'([^'\\]|\\.)*') |
        (?P<IDENT>[A-Za-z_][A-Za-z0-9_\-.]*)
    )\s*
    """,
    re.VERBOSE,
)

# accepted spellings of each key
_KEYS = {
    "sitio": "sitios", "sitios": "sitios",
    "year": "years", "years": "years",
    "group": "groups", "groups": "groups",
    "level": "level",
    "entity": "entities", "entities": "entities",
    "municipality": "municipality",
}


@dataclass(frozen=True)
class Token:
    kind: str
    value: str


class ParseError(ValueError):
    pass


def tokenize(s: str) -> List[Token]:
    pos = 0
    out: List[Token] = []
    while pos < len(s):
        m = _TOKEN_RE.match(s, pos)
        if not m or m.end() == pos:
            raise ParseError(f"Unexpected character near: {s[pos:pos+20]!r}")
        pos = m.end()
        if m.group("STRING") is not None:
            out.append(Token("STRING", m.group("STRING")))
            continue
        for kind in ("EQ", "COMMA", "NUMBER", "IDENT"):
            if m.group(kind) is not None:
                out.append(Token(kind, m.group(kind)))
                break
    return out


@dataclass(frozen=True)
class Query:
    type: str
    params: Dict[str, Tuple[Any, ...]]


def parse(text: str) -> Query:
    toks = tokenize(text)
    p = _Parser(toks)
    q = p.parse_query()
    if not p.at_end():
        raise ParseError(f"Unexpected token: {p.peek().value}")
    return q


class _Parser:
    def __init__(self, toks: List[Token]) -> None:
        self.toks = toks
        self.i = 0

    def at_end(self) -> bool:
        return self.i >= len(self.toks)

    def peek(self) -> Token:
        return self.toks[self.i]

    def take(self, kind: str) -> Token:
        if self.at_end():
            raise ParseError(f"Expected {kind}, got end of input")
        t = self.peek()
        if t.kind != kind:
            raise ParseError(f"Expected {kind}, got {t.kind} ({t.value})")
        self.i += 1
        return t

    def match(self, *kinds: str) -> Optional[Token]:
        if self.at_end() or self.peek().kind not in kinds:
            return None
        t = self.peek()
        self.i += 1
        return t

    def parse_query(self) -> Query:
        ctype = self.take("IDENT").value.lower()
        if ctype not in COMPARISON_TYPES:
            raise ParseError(f"Comparison type must be one of: {', '.join(COMPARISON_TYPES)}")
        params: Dict[str, Tuple[Any, ...]] = {}
        while not self.at_end():
            raw = self.take("IDENT").value
            key = _KEYS.get(raw.lower())
            if key is None:
                raise ParseError(f"Unknown key: {raw}")
            if key in params:
                raise ParseError(f"Key given twice: {raw}")
            self.take("EQ")
            params[key] = tuple(self.parse_values())
        return Query(ctype, params)

    def parse_values(self) -> List[Any]:
        values = [self.parse_value()]
        while self.match("COMMA"):
            values.append(self.parse_value())
        return values

    def parse_value(self) -> Any:
        tok = self.match("NUMBER", "STRING", "IDENT")
        if not tok:
            raise ParseError("Expected a value after '='")
        return _coerce_value(tok)


def _coerce_value(tok: Token) -> Any:
    if tok.kind == "NUMBER":
        return int(tok.value)
    if tok.kind == "STRING":
        s = tok.value[1:-1]
        return s.encode("utf-8").decode("unicode_escape")
    return tok.value


def _ints(values: Tuple[Any, ...], key: str) -> Tuple[int, ...]:
    for v in values:
        if not isinstance(v, int):
            raise ParseError(f"{key} expects numbers, got {v!r}")
    return tuple(values)


def to_config(query: Query, default_groups: Tuple[str, ...] = METRIC_GROUPS) -> ComparisonConfig:
    """Map a parsed query onto a ComparisonConfig ("groups=all" selects every group)."""
    p = query.params
    groups = tuple(str(g) for g in p.get("groups", default_groups))
    if groups == ("all",):
        groups = METRIC_GROUPS
    level = p.get("level")
    municipality = p.get("municipality")
    return ComparisonConfig(
        type=query.type,
        sitio_ids=_ints(p.get("sitios", ()), "sitios"),
        years=_ints(p.get("years", ()), "years"),
        metric_groups=groups,
        aggregate_level=str(level[0]).lower() if level else None,
        aggregate_entities=tuple(str(e) for e in p.get("entities", ())),
        municipality_filter=str(municipality[0]) if municipality else None,
    )


def parse_config(text: str, default_groups: Tuple[str, ...] = METRIC_GROUPS) -> ComparisonConfig:
    return to_config(parse(text), default_groups)
