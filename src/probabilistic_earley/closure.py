import logging
from collections.abc import Iterable, Sequence

import numpy as np

from .errors import GrammarError

log = logging.getLogger(__name__)


def _reachability(adj: np.ndarray) -> np.ndarray:
    """Reflexive-transitive closure of a boolean adjacency matrix."""
    n = adj.shape[0]
    reach = np.eye(n, dtype=bool) | adj
    step = adj.astype(np.int64)
    while True:
        nxt = reach | ((reach.astype(np.int64) @ step) > 0)
        if (nxt == reach).all():
            return reach
        reach = nxt


def star_closure(
    nonterminals: Sequence, edges: Iterable[tuple], what: str = "unit"
) -> dict:
    """Closed-form R = I + P + P^2 + ... = (I - P)^-1 over `nonterminals`.

    - `edges` yields (X, Y, p) triples; P[X, Y] is the sum of their p.
    - Entries are kept only where Y is reachable from X, so pairs unrelated by
      P stay absent instead of picking up round-off from the inversion.
    - Returns {X: {Y: R[X, Y]}} in probability space.

    Raises GrammarError if the series diverges (spectral radius of P >= 1),
    which is the case for a cycle carrying probability mass one.
    """
    nts = list(nonterminals)
    idx = {nt: i for i, nt in enumerate(nts)}
    n = len(nts)
    if n == 0:
        return {}

    P = np.zeros((n, n), dtype=float)
    for x, y, p in edges:
        P[idx[x], idx[y]] += p

    radius = float(np.max(np.abs(np.linalg.eigvals(P)))) if P.any() else 0.0
    if radius >= 1.0 - 1e-12:
        raise GrammarError(
            f"{what} closure diverges (spectral radius {radius:.6f}); check grammar {what} cycles"
        )
    try:
        R = np.linalg.inv(np.eye(n) - P)
    except np.linalg.LinAlgError as e:
        raise GrammarError(f"{what} closure is singular; check grammar {what} cycles") from e

    reach = _reachability(P > 0.0)
    closure: dict = {}
    for i, x in enumerate(nts):
        closure[x] = {nts[j]: float(R[i, j]) for j in np.flatnonzero(reach[i])}
    log.debug("%s closure over %d nonterminals: %d nonzero entries", what, n, int(reach.sum()))
    return closure


def left_corner_closure(nonterminals: Sequence, rules: Iterable, is_nonterminal) -> dict:
    """R_L: X =>*_L Y, summed over rules X -> Y ... with Y a nonterminal."""
    edges = ((r.lhs, r.rhs[0], r.probability) for r in rules if r.rhs and is_nonterminal(r.rhs[0]))
    return star_closure(nonterminals, edges, "left-corner")


def unit_star_closure(nonterminals: Sequence, rules: Iterable, is_nonterminal) -> dict:
    """R_U: X =>* Y through unit productions X -> Y only."""
    edges = ((r.lhs, r.rhs[0], r.probability) for r in rules if len(r.rhs) == 1 and is_nonterminal(r.rhs[0]))
    return star_closure(nonterminals, edges, "unit")
