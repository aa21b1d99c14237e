class GrammarError(ValueError):
    """A grammar (or one of its rules) cannot be constructed.

    Raised for probabilities outside (0, 1], for rules that mention the
    synthetic start symbol, and for grammars whose unit, left-corner or
    null-derivation cycles carry too much probability mass to sum.
    """


class IssueRequest(RuntimeError):
    """Internal inconsistency: the caller or the parser broke an invariant.

    Never raised for ungrammatical input; a sentence without a parse is not
    an error.
    """


class AmbiguousParseError(IssueRequest):
    """More than one complete start state spans the whole input."""

    def __init__(self, count: int) -> None:
        self.count = count
        super().__init__(f"Expected one complete start state spanning the input, found {count}")
