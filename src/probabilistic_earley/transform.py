import logging
import math
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import replace
from itertools import combinations

from .errors import GrammarError
from .semiring import Semiring

log = logging.getLogger(__name__)


def nullable_nonterminals(rules_by_lhs: Mapping) -> frozenset:
    """Nonterminals that can derive the empty string."""
    nullable: set = set()
    changed = True
    while changed:
        changed = False
        for lhs, rules in rules_by_lhs.items():
            if lhs in nullable:
                continue
            if any(all(s in nullable for s in r.rhs) for r in rules):
                nullable.add(lhs)
                changed = True
    return frozenset(nullable)


def null_probabilities(
    rules_by_lhs: Mapping, nullable: frozenset, tol: float = 1e-12, max_iter: int = 10_000
) -> dict:
    """P(X =>* ε) for every nullable X, by monotone fixpoint iteration.

    - Starts from e[X] = 0 and re-evaluates e[X] = sum P(X -> Y1..Yk) * prod e[Yi]
      over the all-nullable rules of X until no value moves by more than `tol`.
    - The system is polynomial (not linear) once ε-rules have several
      nullable children, so there is no closed form in general.

    Raises GrammarError if the iteration does not settle within `max_iter`
    rounds or a null probability exceeds one.
    """
    e = {x: 0.0 for x in nullable}
    for _ in range(max_iter):
        nxt = {
            x: sum(
                r.probability * math.prod(e[s] for s in r.rhs)
                for r in rules_by_lhs[x]
                if all(s in nullable for s in r.rhs)
            )
            for x in nullable
        }
        delta = max((abs(nxt[x] - e[x]) for x in nullable), default=0.0)
        e = nxt
        if delta <= tol:
            break
    else:
        raise GrammarError("Null probabilities did not converge; check grammar ε-cycles")
    for x, p in e.items():
        if p > 1.0 + 1e-9:
            raise GrammarError(f"Null probability of {x} is {p:.6f} > 1; grammar is improper")
    return e


def best_null_rules(rules_by_lhs: Mapping, nullable: frozenset) -> dict:
    """Best (Viterbi) ε-derivation of every nullable X as {X: (probability, rule)}.

    Relaxes until no derivation improves. Rule probabilities are at most one,
    so going round a cycle never improves a score and the loop settles.
    """
    best: dict = {}
    changed = True
    while changed:
        changed = False
        for x in (x for x in rules_by_lhs if x in nullable):
            for r in rules_by_lhs[x]:
                if not all(s in best for s in r.rhs):
                    continue
                cand = r.probability * math.prod(best[s][0] for s in r.rhs)
                if x not in best or cand > best[x][0]:
                    best[x] = (cand, r)
                    changed = True
    return best


def eliminate_epsilon_rules(
    rules: Sequence, nullable: frozenset, null_probs: Mapping, best_null: Mapping, semiring: Semiring
) -> list:
    """Return the ε-free rule set equivalent to `rules` on non-empty input.

    - Drops every ε-rule.
    - For every rule X -> Y1..Yk and every non-empty proper subset of its
      nullable positions, adds a variant without those symbols whose
      probability is scaled by their null probabilities. Its Viterbi weight
      is scaled by their best null derivations instead (see `best_null_rules`).
    - Variants remember their `source` rule and the `nulled` positions so
      parse trees can be reported in terms of the original rules.
    """
    out: list = []
    for r in rules:
        if not r.rhs:
            continue
        out.append(r)
        out.extend(_variants(r, nullable, null_probs, best_null, semiring))
    dropped = sum(1 for r in rules if not r.rhs)
    if dropped or len(out) != len(rules):
        log.debug("ε-elimination: dropped %d ε-rules, %d rules -> %d", dropped, len(rules), len(out))
    return out


def _variants(rule, nullable: frozenset, null_probs: Mapping, best_null: Mapping, semiring: Semiring) -> Iterator:
    positions = [i for i, s in enumerate(rule.rhs) if s in nullable]
    for k in range(1, len(positions) + 1):
        for omitted in combinations(positions, k):
            if len(omitted) == len(rule.rhs):
                continue
            p = rule.probability * math.prod(null_probs[rule.rhs[i]] for i in omitted)
            if p <= 0.0:
                continue
            best = rule.probability * math.prod(best_null[rule.rhs[i]][0] for i in omitted)
            yield replace(
                rule,
                rhs=tuple(s for i, s in enumerate(rule.rhs) if i not in omitted),
                probability=p,
                weight=semiring.from_probability(p),
                source=rule,
                nulled=omitted,
                viterbi_weight=semiring.from_probability(best),
            )
