"""Grammar categories and input tokens.

Nonterminals are plain strings. A right-hand-side symbol is a terminal when
it never appears as a left-hand side; plain-string terminals match a token
whose payload is equal to them, while ``Terminal`` objects decide for
themselves via ``has_category``.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Hashable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

E = TypeVar("E")


class _StartSymbol:
    __slots__ = ()

    def __repr__(self) -> str:
        return "START"

    def __reduce__(self) -> str:
        return "START"


START = _StartSymbol()
"""Synthetic root category. Only the parser's own seed rule mentions it."""

Category = Hashable


@dataclass(frozen=True)
class Token(Generic[E]):
    """A typed input token wrapping an arbitrary payload."""

    obj: E

    def __str__(self) -> str:
        return str(self.obj)


def as_token(x: Any) -> Token:
    return x if isinstance(x, Token) else Token(x)


def tokenize(*objs: Any) -> list[Token]:
    """``tokenize("the", "boy", "left")`` -> three tokens."""
    return [as_token(o) for o in objs]


class Terminal(ABC):
    """A terminal category that decides membership of a token itself."""

    @abstractmethod
    def has_category(self, token: Token) -> bool: ...


@dataclass(frozen=True)
class ExactTerminal(Terminal):
    value: Any

    def has_category(self, token: Token) -> bool:
        return token.obj == self.value

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class CaseInsensitiveTerminal(Terminal):
    value: str

    def has_category(self, token: Token) -> bool:
        return isinstance(token.obj, str) and token.obj.casefold() == self.value.casefold()

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class RegexTerminal(Terminal):
    """Matches string payloads that fully match ``pattern``."""

    pattern: str
    flags: int = 0

    def has_category(self, token: Token) -> bool:
        return isinstance(token.obj, str) and re.fullmatch(self.pattern, token.obj, self.flags) is not None

    def __str__(self) -> str:
        return f"/{self.pattern}/"


@dataclass(frozen=True)
class AnyTerminal(Terminal):
    """Matches every token; the usual right-hand side of a lexical error rule."""

    def has_category(self, token: Token) -> bool:
        return True

    def __str__(self) -> str:
        return "*"


def matches(category: Category, token: Token) -> bool:
    if isinstance(category, Terminal):
        return category.has_category(token)
    return token.obj == category


def symbols(rhs: Iterable[Category]) -> str:
    return " ".join(str(c) for c in rhs) if rhs else "ε"
