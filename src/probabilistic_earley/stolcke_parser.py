from __future__ import annotations

import heapq
import logging
from collections import deque
from collections.abc import Iterable
from itertools import count

from .category import START, Category, Token, as_token, matches
from .earley_core import State, ViterbiScore
from .errors import AmbiguousParseError, GrammarError, IssueRequest
from .grammar import Grammar, Rule
from .parse_tree import Internal, Leaf, ParseTree, ParseTreeWithScore
from .probabilities import Chart

log = logging.getLogger(__name__)


class StolckeParser:
    """Stolcke (1995) probabilistic Earley with forward, inner and Viterbi scores.

    Tokens are consumed one at a time with `step`; after each step the chart
    holds, for every state, its forward (prefix) and inner probabilities and
    its best derivation. Prediction uses the grammar's left-corner closure
    and completion its unit closure, so neither left recursion nor unit
    cycles are iterated at parse time.
    """

    def __init__(self, grammar: Grammar, start_symbol: Category):
        if start_symbol is START:
            raise GrammarError("Parse from a grammar category, not the synthetic start symbol")
        self.G = grammar
        self.S = start_symbol
        self.semiring = grammar.semiring
        self._start_rule = Rule(START, (start_symbol,), 1.0, self.semiring.one())
        self.reset()

    def reset(self) -> None:
        sr = self.semiring
        self.chart = Chart(self.G)
        self.pos = 0
        self.chart.ensure_pos(0)
        seed = State(self._start_rule, 0, 0, 0)
        self.chart.add_forward(seed, sr.one())
        self.chart.add_inner(seed, sr.one())
        self.chart.update_viterbi(seed, ViterbiScore("INIT", sr.one(), None))
        if self.G.is_nullable(self.S):
            # The empty sentence: START -> S with S derived from nothing.
            e = self.G.null_probability(self.S)
            best = sr.from_probability(self.G.best_null_probability(self.S))
            rule = Rule(
                START, (), e, sr.from_probability(e), source=self._start_rule, nulled=(0,), viterbi_weight=best
            )
            empty = State(rule, 0, 0, 0)
            self.chart.add_forward(empty, rule.weight)
            self.chart.add_inner(empty, rule.weight)
            self.chart.update_viterbi(empty, ViterbiScore("INIT", rule.best_weight, None))
        self._predict(0)
        self._last_prefix = sr.one()

    def allowed_terminals(self) -> set[Category]:
        allowed: set[Category] = set()
        for st in self.chart.get_states(self.pos):
            nxt = st.next_symbol()
            if nxt is not None and self.G.is_terminal(nxt):
                allowed.add(nxt)
        return allowed

    def step(self, token) -> bool:
        """Scan `token` at the current position and close the next state set.

        Returns False, leaving the parser where it was, when no state can
        scan the token.
        """
        tok = as_token(token)
        k = self.pos
        self.chart.ensure_pos(k + 1)
        scanned = self._scan(k, tok)
        if not scanned:
            log.debug("position %d: no state scans %r", k, tok.obj)
            return False

        # Prefix probability at position k+1: sum of α over scanned states
        sr = self.semiring
        prefix = sr.zero()
        for st in scanned:
            prefix = sr.add(prefix, self.chart.get_forward_score(st))
        self._last_prefix = prefix

        self._complete(k + 1)
        self._predict(k + 1)
        self.pos += 1
        log.debug("position %d: %d states after %r", self.pos, len(self.chart.items[self.pos]), tok.obj)
        return True

    def prefix_probability(self) -> float:
        """P(tokens so far are a prefix of a sentence); 1.0 before the first step."""
        return self.semiring.to_probability(self._last_prefix)

    def final_states(self) -> list[State]:
        return [s for s in self.chart.get_completed_states(self.pos, START) if s.origin == 0]

    def accepted(self) -> bool:
        # Accept if START -> S • spanning [0,pos] exists
        return bool(self.final_states())

    def sentence_probability(self) -> float:
        """P(tokens so far) if they form a complete sentence; 0.0 otherwise."""
        sr = self.semiring
        total = sr.zero()
        for st in self.final_states():
            total = sr.add(total, self.chart.get_inner_score(st))
        return sr.to_probability(total)

    def viterbi_parse(self) -> ParseTreeWithScore | None:
        """Most probable parse of the tokens so far, or None if they are not a sentence."""
        return _best_parse(self.chart, self.pos)

    # -------------------- transitions --------------------
    def _scan(self, k: int, token: Token) -> list[State]:
        chart = self.chart
        scanned: list[State] = []
        for st in chart.get_states(k):
            nxt = st.next_symbol()
            if nxt is None or not self.G.is_terminal(nxt) or not matches(nxt, token):
                continue
            nst = st.advance(k + 1)
            # Stolcke scanning: α' = α ; γ' = γ
            chart.add_forward(nst, chart.get_forward_score(st))
            chart.add_inner(nst, chart.get_inner_score(st))
            v = chart.get_viterbi_score(st)
            if v is not None:
                chart.update_viterbi(nst, ViterbiScore("SCAN", v.score, st, token=token))
            scanned.append(nst)
        return scanned

    def _complete(self, i: int) -> None:
        chart = self.chart
        sr = self.semiring

        # α/γ: completed states are drained by decreasing origin. A state with
        # origin k only receives contributions from completed states with a
        # larger origin, so its γ is final by the time it is popped. Complete
        # unit productions are not propagated; R_U already sums their chains.
        heap: list[tuple[int, int, State]] = []
        seq = count()
        for st in chart.get_states(i):
            if st.is_complete() and st.origin < i and not self.G.is_unit(st.rule):
                heapq.heappush(heap, (-st.origin, next(seq), st))
        while heap:
            _, _, done = heapq.heappop(heap)
            g_done = chart.get_inner_score(done)
            for z, r_u in self.G.unit_star_into(done.rule.lhs):
                factor = sr.multiply(r_u, g_done)
                for pit in chart.waiting_on(done.origin, z):
                    nst = pit.advance(i)
                    is_new = chart.add(nst)
                    chart.add_forward(nst, sr.multiply(chart.get_forward_score(pit), factor))
                    chart.add_inner(nst, sr.multiply(chart.get_inner_score(pit), factor))
                    if is_new and nst.is_complete() and not self.G.is_unit(nst.rule):
                        heapq.heappush(heap, (-nst.origin, next(seq), nst))

        # Viterbi: plain completion over every complete state, unit productions
        # included, re-queued whenever a state's best derivation improves.
        queue = deque(st for st in chart.get_states(i) if st.is_complete() and st.origin < i)
        while queue:
            done = queue.popleft()
            v_done = chart.get_viterbi_score(done)
            if v_done is None:
                continue
            for pit in chart.waiting_on(done.origin, done.rule.lhs):
                v_pit = chart.get_viterbi_score(pit)
                if v_pit is None:
                    continue
                nst = pit.advance(i)
                cand = ViterbiScore("COMP", sr.multiply(v_pit.score, v_done.score), pit, done)
                if chart.update_viterbi(nst, cand) and nst.is_complete():
                    queue.append(nst)

    def _predict(self, k: int) -> None:
        chart = self.chart
        sr = self.semiring
        for st in list(chart.get_states(k)):
            # Predicted states are not predicted from again: the left-corner
            # closure already covers everything they would predict.
            if st.dot == 0 and st.rule.lhs is not START:
                continue
            z = st.next_symbol()
            if z is None or not self.G.is_nonterminal(z):
                continue
            a_cur = chart.get_forward_score(st)
            for y, r_l in self.G.left_star_corners(z).items():
                for r in self.G.rules_for(y):
                    nst = State(r, k, k, 0)
                    is_new = chart.add(nst)
                    chart.add_forward(nst, sr.times(a_cur, r_l, r.weight))
                    if is_new:
                        chart.add_inner(nst, r.weight)
                        chart.update_viterbi(nst, ViterbiScore("PRED", r.best_weight, None))


# -------------------- module-level entry points --------------------
def parse(start: Category, grammar: Grammar, tokens: Iterable) -> Chart:
    """Run the parser over `tokens` and return its chart (len(tokens) + 1 positions).

    A token no state can scan leaves that position and every later one empty.
    """
    toks = [as_token(t) for t in tokens]
    parser = StolckeParser(grammar, start)
    for tok in toks:
        if not parser.step(tok):
            break
    parser.chart.ensure_pos(len(toks))
    return parser.chart


def get_viterbi_parse(state: State, chart: Chart) -> ParseTree:
    """Rebuild the best derivation of `state` from its Viterbi backpointers.

    The synthetic start node is dropped: for a complete START state the tree
    is rooted at the grammar's start symbol.
    """
    if chart.get_viterbi_score(state) is None:
        raise IssueRequest(f"{state} has no derivation in this chart")
    tree = _tree(state, chart)
    if state.rule.lhs is START and state.is_complete():
        (tree,) = tree.children
    return tree


def get_viterbi_parse_with_score(start: Category, grammar: Grammar, tokens: Iterable) -> ParseTreeWithScore | None:
    """Best parse of `tokens` with its probability, or None if there is no parse.

    More than one complete start state spanning the input is reported as
    AmbiguousParseError rather than resolved here.
    """
    toks = [as_token(t) for t in tokens]
    return _best_parse(parse(start, grammar, toks), len(toks))


def _best_parse(chart: Chart, n: int) -> ParseTreeWithScore | None:
    finals = [s for s in chart.get_completed_states(n, START) if s.origin == 0]
    if not finals:
        return None
    if len(finals) > 1:
        raise AmbiguousParseError(len(finals))
    final = finals[0]
    return ParseTreeWithScore(get_viterbi_parse(final, chart), chart.get_viterbi_score(final).score, chart.semiring)


def _tree(state: State, chart: Chart) -> Internal:
    children: list[ParseTree] = []
    cur = state
    while cur.dot > 0:
        v = chart.get_viterbi_score(cur)
        if v is None or v.prev is None:
            raise IssueRequest(f"Broken backpointer chain at {cur}")
        if v.token is not None:
            children.append(Leaf(cur.rule.rhs[cur.dot - 1], v.token))
        else:
            children.append(_tree(v.completed, chart))
        cur = v.prev
    children.reverse()
    if not state.is_complete():
        return Internal(state.rule.lhs, tuple(children))
    return Internal(state.rule.lhs, _with_nulled(state.rule, children, chart.grammar))


def _with_nulled(rule: Rule, children: list[ParseTree], grammar: Grammar) -> tuple[ParseTree, ...]:
    """Put back the ε-derived children an ε-free rule variant left out."""
    if rule.source is None:
        return tuple(children)
    rest = iter(children)
    return tuple(
        _null_tree(sym, grammar) if i in rule.nulled else next(rest)
        for i, sym in enumerate(rule.source.rhs)
    )


def _null_tree(category: Category, grammar: Grammar) -> Internal:
    rule = grammar.best_null_rule(category)
    if rule is None:
        raise IssueRequest(f"{category} was skipped as empty but derives no empty string")
    return Internal(category, tuple(_null_tree(c, grammar) for c in rule.rhs))
