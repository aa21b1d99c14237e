from __future__ import annotations

import math
from typing import Final

LogProb = float
LOG_ZERO: Final[LogProb] = -math.inf


def logsumexp(a: LogProb, b: LogProb) -> LogProb:
    if a < b:
        a, b = b, a
    if b == LOG_ZERO:
        return a
    return a + math.log1p(math.exp(b - a))


def logprob(p: float) -> LogProb:
    """Natural log of a probability, with log(0) mapped to ``LOG_ZERO``."""
    return math.log(p) if p > 0.0 else LOG_ZERO
