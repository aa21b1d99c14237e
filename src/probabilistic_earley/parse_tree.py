"""Derivation trees reconstructed from Viterbi backpointers.

A tree is either a ``Leaf`` (a terminal category and the token it scanned)
or an ``Internal`` node (a nonterminal and its children, left to right).
Scores are not stored on trees; ``ParseTreeWithScore`` pairs the root with
the Viterbi score of the derivation it came from.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from .category import Category, Token
from .semiring import Semiring, Weight


@dataclass(frozen=True)
class Leaf:
    category: Category
    token: Token

    @property
    def children(self) -> tuple[()]:
        return ()

    def __str__(self) -> str:
        return to_bracketed(self)


@dataclass(frozen=True)
class Internal:
    category: Category
    children: tuple[ParseTree, ...] = ()

    def __str__(self) -> str:
        return to_bracketed(self)


ParseTree = Leaf | Internal


def to_bracketed(tree: ParseTree) -> str:
    """``[S[NP[Det[the]][N[boy]]][VP[left]]]`` for "the boy left"."""
    match tree:
        case Leaf(category=category):
            return f"[{category}]"
        case Internal(category=category, children=children):
            return f"[{category}{''.join(to_bracketed(c) for c in children)}]"
    raise TypeError(f"Not a parse tree: {tree!r}")


def leaves(tree: ParseTree) -> Iterator[Leaf]:
    match tree:
        case Leaf():
            yield tree
        case Internal(children=children):
            for child in children:
                yield from leaves(child)


def tokens(tree: ParseTree) -> list[Token]:
    """The scanned tokens under `tree`, left to right."""
    return [leaf.token for leaf in leaves(tree)]


@dataclass(frozen=True)
class ParseTreeWithScore:
    tree: ParseTree
    score: Weight
    semiring: Semiring

    @property
    def probability(self) -> float:
        return self.semiring.to_probability(self.score)

    def __str__(self) -> str:
        return f"{self.tree} ({self.probability:.6g})"
