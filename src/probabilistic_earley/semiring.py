"""Score algebras for the chart.

Every score the parser keeps (forward, inner, Viterbi, closure entries, rule
weights) is an element of one of these semirings. ``LogSemiring`` stores
natural-log probabilities so long derivations do not underflow and is the
default; ``ProbabilitySemiring`` works on plain probabilities and is handy
when reading charts by eye.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from functools import reduce

from .util import LOG_ZERO, LogProb, logprob, logsumexp

Weight = float


class Semiring(ABC):
    """⊕ (accumulate) and ⊗ (combine) over scores, plus probability conversions.

    ``add`` must be commutative and monotonic so that merging another
    derivation into a state never lowers its score. Both provided semirings
    order their elements like the probabilities they encode, so ``compare``
    defaults to numeric order.
    """

    @abstractmethod
    def zero(self) -> Weight: ...

    @abstractmethod
    def one(self) -> Weight: ...

    @abstractmethod
    def add(self, a: Weight, b: Weight) -> Weight: ...

    @abstractmethod
    def multiply(self, a: Weight, b: Weight) -> Weight: ...

    @abstractmethod
    def from_probability(self, p: float) -> Weight: ...

    @abstractmethod
    def to_probability(self, x: Weight) -> float: ...

    def times(self, *xs: Weight) -> Weight:
        return reduce(self.multiply, xs, self.one())

    def compare(self, a: Weight, b: Weight) -> int:
        """-1, 0 or 1 as ``a`` encodes a smaller, equal or greater probability than ``b``."""
        return (a > b) - (a < b)

    def is_better(self, a: Weight, b: Weight) -> bool:
        return self.compare(a, b) > 0

    def is_zero(self, x: Weight) -> bool:
        return x == self.zero()

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other)

    def __hash__(self) -> int:
        return hash(type(self))

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class ProbabilitySemiring(Semiring):
    """Plain probabilities: ⊕ is +, ⊗ is ×."""

    def zero(self) -> Weight:
        return 0.0

    def one(self) -> Weight:
        return 1.0

    def add(self, a: Weight, b: Weight) -> Weight:
        return a + b

    def multiply(self, a: Weight, b: Weight) -> Weight:
        return a * b

    def from_probability(self, p: float) -> Weight:
        return p

    def to_probability(self, x: Weight) -> float:
        return x


class LogSemiring(Semiring):
    """Log probabilities: ⊕ is log-sum-exp, ⊗ is +."""

    def zero(self) -> LogProb:
        return LOG_ZERO

    def one(self) -> LogProb:
        return 0.0

    def add(self, a: LogProb, b: LogProb) -> LogProb:
        return logsumexp(a, b)

    def multiply(self, a: LogProb, b: LogProb) -> LogProb:
        if a == LOG_ZERO or b == LOG_ZERO:
            return LOG_ZERO
        return a + b

    def from_probability(self, p: float) -> LogProb:
        return logprob(p)

    def to_probability(self, x: LogProb) -> float:
        return math.exp(x)
