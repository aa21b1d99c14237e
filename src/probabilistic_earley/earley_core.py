from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass

from .category import Category, Token, symbols
from .grammar import Rule
from .semiring import Semiring, Weight


@dataclass(frozen=True)
class State:
    """Earley item [lhs -> α • β, origin, position].

    Identity is exactly (rule, origin, position, dot); the scores of a state
    live in the chart that holds it.
    """

    rule: Rule
    origin: int
    position: int
    dot: int

    def __post_init__(self) -> None:
        if not 0 <= self.dot <= len(self.rule.rhs):
            raise ValueError(f"Dot {self.dot} outside rule {self.rule}")
        if not 0 <= self.origin <= self.position:
            raise ValueError(f"Origin {self.origin} after position {self.position}")

    def next_symbol(self) -> Category | None:
        return self.rule.rhs[self.dot] if self.dot < len(self.rule.rhs) else None

    def is_complete(self) -> bool:
        return self.dot >= len(self.rule.rhs)

    def advance(self, position: int) -> State:
        return State(self.rule, self.origin, position, self.dot + 1)

    def __str__(self) -> str:
        rhs = [str(c) for c in self.rule.rhs]
        rhs.insert(self.dot, "•")
        return f"[{self.rule.lhs} -> {symbols(rhs)}, {self.origin}, {self.position}]"


@dataclass(frozen=True)
class ViterbiScore:
    """Best derivation reaching a state and how it got there.

    kind is one of INIT (the seed), PRED (predicted; no predecessor), SCAN
    (`prev` advanced over `token`) or COMP (`prev` advanced over the complete
    state `completed`).
    """

    kind: str
    score: Weight
    prev: State | None
    completed: State | None = None
    token: Token | None = None


class EarleyChart:
    """State sets per position, with best Viterbi scores and backpointers."""

    def __init__(self, semiring: Semiring) -> None:
        self.semiring = semiring
        self.items: list[dict[State, ViterbiScore | None]] = []
        # position -> next nonterminal -> states waiting on it, in insertion order
        self.waiting: list[dict[Category, list[State]]] = []

    def ensure_pos(self, k: int) -> None:
        while len(self.items) <= k:
            self.items.append({})
            self.waiting.append(defaultdict(list))

    def __len__(self) -> int:
        return len(self.items)

    def add(self, state: State) -> bool:
        """Insert `state` into its state set; False if the identity was already there."""
        states = self.items[state.position]
        if state in states:
            return False
        states[state] = None
        nxt = state.next_symbol()
        if nxt is not None:
            self.waiting[state.position][nxt].append(state)
        return True

    def get_states(self, k: int):
        """The state set at position `k`, in insertion order."""
        return self.items[k].keys() if k < len(self.items) else {}.keys()

    def contains(self, state: State) -> bool:
        return state.position < len(self.items) and state in self.items[state.position]

    def waiting_on(self, k: int, category: Category) -> list[State]:
        return self.waiting[k].get(category, [])

    def get_completed_states(self, k: int, category: Category) -> list[State]:
        return [s for s in self.get_states(k) if s.is_complete() and s.rule.lhs == category]

    def get_viterbi_score(self, state: State) -> ViterbiScore | None:
        if state.position >= len(self.items):
            return None
        return self.items[state.position].get(state)

    def update_viterbi(self, state: State, candidate: ViterbiScore) -> bool:
        """Keep `candidate` if `state` has no derivation yet or it is strictly better."""
        self.add(state)
        cur = self.items[state.position][state]
        if cur is None or self.semiring.is_better(candidate.score, cur.score):
            self.items[state.position][state] = candidate
            return True
        return False
