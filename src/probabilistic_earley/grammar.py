from __future__ import annotations

import logging
import math
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field

from .category import START, Category, Terminal, symbols
from .closure import left_corner_closure, unit_star_closure
from .errors import GrammarError
from .semiring import LogSemiring, Semiring, Weight
from .transform import best_null_rules, eliminate_epsilon_rules, null_probabilities, nullable_nonterminals

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rule:
    lhs: Category
    rhs: tuple[Category, ...]
    probability: float
    weight: Weight
    # Set on the ε-free variants derived from a rule with nullable children.
    source: Rule | None = field(default=None, repr=False)
    nulled: tuple[int, ...] = field(default=(), repr=False)
    # Best single empty derivation of the nulled children, where `weight` sums them all.
    viterbi_weight: Weight | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        p = self.probability
        if not (math.isfinite(p) and 0.0 < p <= 1.0):
            raise GrammarError(f"Rule {self.lhs}->{self.rhs} must have 0<p<=1, got {p}")

    @classmethod
    def create(cls, semiring: Semiring, probability: float, lhs: Category, *rhs: Category) -> Rule:
        """A rule with `probability` given as a plain probability; `semiring` encodes the weight."""
        return cls(lhs, tuple(rhs), probability, semiring.from_probability(probability))

    @property
    def best_weight(self) -> Weight:
        """Viterbi weight: nulled children count with their best empty derivation only."""
        return self.weight if self.viterbi_weight is None else self.viterbi_weight

    def __str__(self) -> str:
        return f"{self.lhs} -> {symbols(self.rhs)} ({self.probability:.6f})"


@dataclass(frozen=True)
class LexicalErrorRule(Rule):
    """Low-probability catch-all letting a token be parsed at a steep cost.

    The parser treats it like any other rule; the subclass only lets callers
    spot error productions in a parse tree.
    """


class Grammar:
    """An immutable PCFG bound to one semiring.

    Terminals are symbols that never appear on the left-hand side (or
    `Terminal` objects). ε- and unit-productions are allowed: ε-rules are
    compiled away into weighted variants of the rules that use them, and
    the remaining unit and left-corner chains are summed in closed form
    once, here, so that the parser never iterates them. Repeated rules
    (same class, lhs and rhs) are merged by summing their probabilities.
    """

    def __init__(self, rules: Iterable[Rule], semiring: Semiring | None = None):
        self.semiring = semiring if semiring is not None else LogSemiring()
        self._source_rules: tuple[Rule, ...] = _merge_duplicates(rules, self.semiring)

        by_lhs: dict[Category, list[Rule]] = defaultdict(list)
        for r in self._source_rules:
            by_lhs[r.lhs].append(r)
        self._source_by_lhs = dict(by_lhs)
        self._lhs_set: frozenset = frozenset(self._source_by_lhs)

        self._nullable = nullable_nonterminals(self._source_by_lhs)
        self._null_probs = null_probabilities(self._source_by_lhs, self._nullable)
        self._best_null = best_null_rules(self._source_by_lhs, self._nullable)

        self._rules: dict[Category, list[Rule]] = {lhs: [] for lhs in self._source_by_lhs}
        for r in eliminate_epsilon_rules(
            self._source_rules, self._nullable, self._null_probs, self._best_null, self.semiring
        ):
            self._rules[r.lhs].append(r)

        nts = list(self._source_by_lhs)
        parse_rules = [r for rs in self._rules.values() for r in rs]
        is_nt = self.is_nonterminal
        self._left_star = self._encode(left_corner_closure(nts, parse_rules, is_nt))
        unit_star = self._encode(unit_star_closure(nts, parse_rules, is_nt))
        # Completion looks the unit closure up by its second argument.
        self._unit_star_into: dict[Category, list[tuple[Category, Weight]]] = defaultdict(list)
        for x, row in unit_star.items():
            for y, w in row.items():
                self._unit_star_into[y].append((x, w))
        self._unit_star = unit_star
        log.debug(
            "grammar: %d rules (%d after ε-elimination), %d nonterminals, %d nullable",
            len(self._source_rules), len(parse_rules), len(nts), len(self._nullable),
        )

    @classmethod
    def from_rules(
        cls,
        rules: Iterable[tuple[Category, Iterable[Category], float]],
        semiring: Semiring | None = None,
        *,
        normalize: bool = False,
    ) -> Grammar:
        """Build from (lhs, rhs, p) triples, e.g. ``("S", ["NP", "VP"], 1.0)``."""
        return GrammarBuilder(semiring, normalize=normalize).add_rules(rules).build()

    def _encode(self, closure: dict) -> dict:
        sr = self.semiring
        return {x: {y: sr.from_probability(p) for y, p in row.items()} for x, row in closure.items()}

    # -------------------- rule index --------------------
    def rules_for(self, lhs: Category) -> list[Rule]:
        """The ε-free rules the parser expands for `lhs`."""
        return self._rules.get(lhs, [])

    def source_rules_for(self, lhs: Category) -> list[Rule]:
        """The rules of `lhs` as they were given, ε-rules included."""
        return self._source_by_lhs.get(lhs, [])

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._source_rules

    @property
    def nonterminals(self) -> frozenset:
        return self._lhs_set

    def is_terminal(self, sym: Category) -> bool:
        return isinstance(sym, Terminal) or (sym is not START and sym not in self._lhs_set)

    def is_nonterminal(self, sym: Category) -> bool:
        return not isinstance(sym, Terminal) and sym in self._lhs_set

    def is_unit(self, rule: Rule) -> bool:
        return len(rule.rhs) == 1 and self.is_nonterminal(rule.rhs[0])

    # -------------------- closures --------------------
    def left_star_corners(self, x: Category) -> dict[Category, Weight]:
        """{Y: R_L(X, Y)} for every Y with a nonzero left-corner closure score."""
        return self._left_star.get(x, {})

    def left_star_score(self, x: Category, y: Category) -> Weight:
        return self._left_star.get(x, {}).get(y, self.semiring.zero())

    def unit_star_score(self, x: Category, y: Category) -> Weight:
        return self._unit_star.get(x, {}).get(y, self.semiring.zero())

    def unit_star_into(self, y: Category) -> list[tuple[Category, Weight]]:
        """[(Z, R_U(Z, Y))] for every Z that reaches `y` through unit productions."""
        return self._unit_star_into.get(y, [])

    # -------------------- empty derivations --------------------
    def is_nullable(self, x: Category) -> bool:
        return x in self._nullable

    def null_probability(self, x: Category) -> float:
        """P(x =>* ε) as a plain probability (0.0 when x is not nullable)."""
        return self._null_probs.get(x, 0.0)

    def best_null_rule(self, x: Category) -> Rule | None:
        """First rule of the most probable ε-derivation of `x`."""
        best = self._best_null.get(x)
        return best[1] if best is not None else None

    def best_null_probability(self, x: Category) -> float:
        best = self._best_null.get(x)
        return best[0] if best is not None else 0.0

    def __repr__(self) -> str:
        return f"Grammar({len(self._source_rules)} rules, {self.semiring!r})"


def _merge_duplicates(rules: Iterable[Rule], semiring: Semiring) -> tuple[Rule, ...]:
    """Collapse rules with the same class, lhs and rhs into one carrying their summed probability."""
    groups: dict[tuple, list[Rule]] = {}
    for r in rules:
        groups.setdefault((type(r), r.lhs, r.rhs), []).append(r)
    merged = []
    for (cls, lhs, rhs), rs in groups.items():
        if len(rs) == 1:
            merged.append(rs[0])
        else:
            log.debug("merging %d copies of %s -> %s", len(rs), lhs, symbols(rhs))
            merged.append(cls.create(semiring, math.fsum(r.probability for r in rs), lhs, *rhs))
    return tuple(merged)


class GrammarBuilder:
    """Collects rules and builds an immutable `Grammar`.

    ``normalize=True`` rescales each left-hand side's probabilities to sum to
    one. Identical (lhs, rhs) pairs are merged by summing their probabilities,
    which is what alternative derivations through either copy would add up to.
    """

    def __init__(self, semiring: Semiring | None = None, *, normalize: bool = False) -> None:
        self.semiring = semiring if semiring is not None else LogSemiring()
        self.normalize = normalize
        self._rules: dict[tuple[type, Category, tuple[Category, ...]], float] = {}

    def add_rule(self, probability: float, lhs: Category, *rhs: Category) -> GrammarBuilder:
        return self._add(Rule, probability, lhs, rhs)

    def add_lexical_error_rule(self, probability: float, lhs: Category, *rhs: Category) -> GrammarBuilder:
        return self._add(LexicalErrorRule, probability, lhs, rhs)

    def add_rules(self, rules: Iterable[tuple[Category, Iterable[Category], float]]) -> GrammarBuilder:
        for lhs, rhs, p in rules:
            self.add_rule(p, lhs, *rhs)
        return self

    def _add(self, cls: type, probability: float, lhs: Category, rhs: tuple) -> GrammarBuilder:
        if not (math.isfinite(probability) and 0.0 < probability <= 1.0):
            raise GrammarError(f"Rule {lhs}->{rhs} must have 0<p<=1, got {probability}")
        if lhs is START or START in rhs:
            raise GrammarError("The synthetic start symbol cannot appear in grammar rules")
        if isinstance(lhs, Terminal):
            raise GrammarError(f"Terminal {lhs} cannot be a left-hand side")
        key = (cls, lhs, rhs)
        self._rules[key] = self._rules.get(key, 0.0) + probability
        return self

    def build(self) -> Grammar:
        probs = dict(self._rules)
        if self.normalize:
            totals: dict[Category, float] = defaultdict(float)
            for (_cls, lhs, _rhs), p in probs.items():
                totals[lhs] += p
            probs = {key: p / totals[key[1]] for key, p in probs.items()}
        rules = [cls.create(self.semiring, p, lhs, *rhs) for (cls, lhs, rhs), p in probs.items()]
        return Grammar(rules, self.semiring)
