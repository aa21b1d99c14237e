from __future__ import annotations

from collections import defaultdict

from .earley_core import EarleyChart, State
from .grammar import Grammar
from .semiring import Weight


class Chart(EarleyChart):
    """Extends the base chart with **forward (alpha)** and **inner (gamma)**.

    Scores are semiring elements of the grammar's semiring. A state reached by
    several derivations accumulates their scores with ⊕.
    """

    def __init__(self, grammar: Grammar) -> None:
        super().__init__(grammar.semiring)
        self.grammar = grammar
        self.alpha: list[dict[State, Weight]] = []
        self.gamma: list[dict[State, Weight]] = []

    def ensure_pos(self, k: int) -> None:
        while len(self.items) <= k:
            self.items.append({})
            self.waiting.append(defaultdict(list))
            self.alpha.append({})
            self.gamma.append({})

    def get_forward_score(self, state: State) -> Weight:
        if state.position >= len(self.alpha):
            return self.semiring.zero()
        return self.alpha[state.position].get(state, self.semiring.zero())

    def get_inner_score(self, state: State) -> Weight:
        if state.position >= len(self.gamma):
            return self.semiring.zero()
        return self.gamma[state.position].get(state, self.semiring.zero())

    def add_forward(self, state: State, contrib: Weight) -> None:
        self.add(state)
        cur = self.alpha[state.position].get(state, self.semiring.zero())
        self.alpha[state.position][state] = self.semiring.add(cur, contrib)

    def add_inner(self, state: State, contrib: Weight) -> None:
        self.add(state)
        cur = self.gamma[state.position].get(state, self.semiring.zero())
        self.gamma[state.position][state] = self.semiring.add(cur, contrib)
