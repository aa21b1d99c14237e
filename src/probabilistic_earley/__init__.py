from .category import (
    START,
    AnyTerminal,
    CaseInsensitiveTerminal,
    ExactTerminal,
    RegexTerminal,
    Terminal,
    Token,
    tokenize,
)
from .earley_core import State, ViterbiScore
from .errors import AmbiguousParseError, GrammarError, IssueRequest
from .grammar import Grammar, GrammarBuilder, LexicalErrorRule, Rule
from .parse_tree import Internal, Leaf, ParseTree, ParseTreeWithScore
from .probabilities import Chart
from .semiring import LogSemiring, ProbabilitySemiring, Semiring
from .stolcke_parser import StolckeParser, get_viterbi_parse, get_viterbi_parse_with_score, parse

__all__ = [
    "START",
    "Token",
    "tokenize",
    "Terminal",
    "ExactTerminal",
    "CaseInsensitiveTerminal",
    "RegexTerminal",
    "AnyTerminal",
    "Semiring",
    "ProbabilitySemiring",
    "LogSemiring",
    "Rule",
    "LexicalErrorRule",
    "Grammar",
    "GrammarBuilder",
    "State",
    "ViterbiScore",
    "Chart",
    "ParseTree",
    "Leaf",
    "Internal",
    "ParseTreeWithScore",
    "StolckeParser",
    "parse",
    "get_viterbi_parse",
    "get_viterbi_parse_with_score",
    "GrammarError",
    "IssueRequest",
    "AmbiguousParseError",
]
