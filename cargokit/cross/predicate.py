"""
Platform predicate parsing and evaluation.

Configuration sections can be keyed by a predicate over platform attributes
instead of a concrete target triple:

    [target.'cfg(all(unix, target_arch = "x86_64"))']
    runner = "qemu-x86_64"

Grammar:
    predicate := name
               | name '=' "string"
               | 'all(' [predicate {',' predicate} [',']] ')'
               | 'any(' [predicate {',' predicate} [',']] ')'
               | 'not(' predicate ')'

A section key may wrap a single predicate in `cfg(...)`.

Predicates are immutable and evaluation has no side effects. Parsed
predicates are cached by source text.
"""

import functools
from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple

from cargokit.core.exceptions import InvalidPredicate, ParseError
from cargokit.cross.catalog import ATTRIBUTES, FAMILY_SHORTHANDS, KNOWN_FLAGS

# Flags the build tool never sets while evaluating target configuration.
_ALWAYS_FALSE_FLAGS = frozenset({"test", "debug_assertions", "proc_macro"})
_FUNCTIONS = ("all", "any", "not")


class AttributeSource(Protocol):
    """What a predicate needs from a target descriptor."""

    def values(self, key: str) -> Tuple[str, ...]: ...

    def has_flag(self, name: str) -> bool: ...


# ============================================================================
# AST
# ============================================================================


class Predicate:
    """Base class of predicate nodes."""

    def evaluate(self, target: AttributeSource) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class Flag(Predicate):
    """Bare name such as `unix` or `debug_assertions`."""

    name: str

    def evaluate(self, target: AttributeSource) -> bool:
        if self.name in _ALWAYS_FALSE_FLAGS:
            return False
        if self.name in FAMILY_SHORTHANDS:
            return self.name in target.values("target_family") or target.has_flag(
                self.name
            )
        return target.has_flag(self.name)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Equals(Predicate):
    """`name = "value"`; true if any value the target holds for `name` matches."""

    name: str
    value: str

    def evaluate(self, target: AttributeSource) -> bool:
        if self.name == "feature":
            return False
        raw_values = target.values(self.name)
        attribute = ATTRIBUTES.get(self.name)
        if attribute is None:
            return self.value in raw_values
        return any(v == self.value for v in attribute.from_values(raw_values))

    def __str__(self) -> str:
        return f'{self.name} = "{self.value}"'


@dataclass(frozen=True)
class All(Predicate):
    children: Tuple[Predicate, ...]

    def evaluate(self, target: AttributeSource) -> bool:
        return all(child.evaluate(target) for child in self.children)

    def __str__(self) -> str:
        return f"all({', '.join(str(c) for c in self.children)})"


@dataclass(frozen=True)
class Any(Predicate):
    children: Tuple[Predicate, ...]

    def evaluate(self, target: AttributeSource) -> bool:
        return any(child.evaluate(target) for child in self.children)

    def __str__(self) -> str:
        return f"any({', '.join(str(c) for c in self.children)})"


@dataclass(frozen=True)
class Not(Predicate):
    child: Predicate

    def evaluate(self, target: AttributeSource) -> bool:
        return not self.child.evaluate(target)

    def __str__(self) -> str:
        return f"not({self.child})"


@dataclass(frozen=True)
class Expression:
    """A parsed predicate together with the text it was parsed from."""

    source: str
    predicate: Predicate

    def matches(self, target: AttributeSource) -> bool:
        return self.predicate.evaluate(target)

    def __str__(self) -> str:
        return self.source


# ============================================================================
# Lexer
# ============================================================================

_IDENT, _STRING, _EQ, _LPAREN, _RPAREN, _COMMA = (
    "identifier",
    "string",
    "`=`",
    "`(`",
    "`)`",
    "`,`",
)
_PUNCT = {"=": _EQ, "(": _LPAREN, ")": _RPAREN, ",": _COMMA}


@dataclass(frozen=True)
class _Token:
    kind: str
    text: str
    position: int


def _tokenize(source: str) -> List[_Token]:
    tokens: List[_Token] = []
    i = 0
    length = len(source)
    while i < length:
        ch = source[i]
        if ch.isspace():
            i += 1
        elif ch in _PUNCT:
            tokens.append(_Token(_PUNCT[ch], ch, i))
            i += 1
        elif ch == '"':
            end = source.find('"', i + 1)
            if end == -1:
                raise ParseError("unclosed quotes", i, source)
            tokens.append(_Token(_STRING, source[i + 1 : end], i))
            i = end + 1
        elif ch.isalpha() or ch == "_":
            start = i
            while i < length and (source[i].isalnum() or source[i] == "_"):
                i += 1
            tokens.append(_Token(_IDENT, source[start:i], start))
        else:
            raise ParseError(f"unexpected character `{ch}`", i, source)
    return tokens


# ============================================================================
# Parser
# ============================================================================


class _Parser:
    def __init__(self, source: str):
        self.source = source
        self.tokens = _tokenize(source)
        self.index = 0

    def _peek(self) -> Optional[_Token]:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def _next(self) -> Optional[_Token]:
        token = self._peek()
        if token is not None:
            self.index += 1
        return token

    def _error(self, reason: str, position: int) -> ParseError:
        return ParseError(reason, position, self.source)

    def parse_root(self, allow_cfg: bool) -> Predicate:
        if not self.tokens:
            raise self._error("empty expression", 0)

        first = self.tokens[0]
        second = self.tokens[1] if len(self.tokens) > 1 else None
        if (
            allow_cfg
            and first.kind == _IDENT
            and first.text == "cfg"
            and second is not None
            and second.kind == _LPAREN
        ):
            self.index = 2
            children = self._parse_list(second)
            if len(children) != 1:
                raise self._error(
                    f"cfg() takes 1 predicate, found {len(children)}", first.position
                )
            predicate = children[0]
        else:
            predicate = self._parse_predicate()

        extra = self._peek()
        if extra is not None:
            if extra.kind == _RPAREN:
                raise self._error("unopened parens", extra.position)
            raise self._error("multiple root predicates", extra.position)
        return predicate

    def _parse_predicate(self) -> Predicate:
        token = self._next()
        if token is None:
            raise self._error("empty expression", len(self.source))
        if token.kind == _RPAREN:
            raise self._error("unopened parens", token.position)
        if token.kind != _IDENT:
            raise self._error(
                f"unexpected term {token.kind}, expected identifier", token.position
            )

        following = self._peek()
        if following is not None and following.kind == _LPAREN:
            if token.text not in _FUNCTIONS:
                raise self._error(
                    f"unknown predicate function `{token.text}`", token.position
                )
            self.index += 1
            children = self._parse_list(following)
            if token.text == "all":
                return All(tuple(children))
            if token.text == "any":
                return Any(tuple(children))
            if len(children) != 1:
                raise self._error(
                    f"not() takes 1 predicate, found {len(children)}", token.position
                )
            return Not(children[0])

        if following is not None and following.kind == _EQ:
            self.index += 1
            literal = self._next()
            if literal is None or literal.kind != _STRING:
                position = literal.position if literal else len(self.source)
                raise self._error("expected a string literal after `=`", position)
            return Equals(token.text, literal.text)

        return self._bare(token)

    def _bare(self, token: _Token) -> Predicate:
        name = token.text
        if name in KNOWN_FLAGS:
            return Flag(name)
        if name in ATTRIBUTES or name == "feature":
            raise InvalidPredicate(name, self.source)
        if name in _FUNCTIONS:
            raise self._error(f"expected `(` after `{name}`", token.position)
        raise self._error(f"unknown flag `{name}`", token.position)

    def _parse_list(self, opening: _Token) -> List[Predicate]:
        children: List[Predicate] = []
        while True:
            token = self._peek()
            if token is None:
                raise self._error("unclosed parens", opening.position)
            if token.kind == _RPAREN:
                self.index += 1
                return children
            children.append(self._parse_predicate())
            token = self._peek()
            if token is None:
                raise self._error("unclosed parens", opening.position)
            if token.kind == _COMMA:
                self.index += 1
            elif token.kind != _RPAREN:
                raise self._error(
                    f"unexpected term {token.kind}, expected `,` or `)`",
                    token.position,
                )


@functools.lru_cache(maxsize=1024)
def parse_predicate(source: str) -> Expression:
    """
    Parse a predicate; a surrounding `cfg(...)` is accepted.

    Args:
        source: Predicate text, e.g. 'all(unix, target_arch = "x86_64")'

    Returns:
        Parsed expression

    Raises:
        ParseError: Malformed nesting, unbalanced parentheses or quotes,
            empty input, or an unknown bare name
        InvalidPredicate: A valued attribute used as a bare name
    """
    return Expression(source, _Parser(source).parse_root(allow_cfg=True))


def is_cfg_key(key: str) -> bool:
    """Whether a `target.<key>` section is predicate-keyed."""
    return key.startswith("cfg(")


def parse_cfg_key(key: str) -> Expression:
    """Parse a `target.'cfg(...)'` section key."""
    if not is_cfg_key(key):
        raise ParseError("expected `cfg(`", 0, key)
    return parse_predicate(key)


def clear_predicate_cache() -> None:
    parse_predicate.cache_clear()


__all__ = [
    "AttributeSource",
    "Predicate",
    "Flag",
    "Equals",
    "All",
    "Any",
    "Not",
    "Expression",
    "parse_predicate",
    "parse_cfg_key",
    "is_cfg_key",
    "clear_predicate_cache",
]
