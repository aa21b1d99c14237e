import re

import pytest

from probabilistic_earley import (
    AnyTerminal,
    CaseInsensitiveTerminal,
    ExactTerminal,
    GrammarBuilder,
    LexicalErrorRule,
    RegexTerminal,
    StolckeParser,
    Token,
    get_viterbi_parse_with_score,
    tokenize,
)


def error_grammar(with_error_rule: bool):
    b = (
        GrammarBuilder()
        .add_rule(1.0, "S", "Det", "N")
        .add_rule(1.0, "Det", "the")
        .add_rule(1.0, "N", "boy")
    )
    if with_error_rule:
        b.add_lexical_error_rule(0.01, "N", AnyTerminal())
    return b.build()


def test_lexical_error_rule_parses_unknown_word():
    g = error_grammar(True)
    assert any(isinstance(r, LexicalErrorRule) for r in g.rules_for("N"))
    best = get_viterbi_parse_with_score("S", g, ["the", "zorb"])
    assert best.probability == pytest.approx(0.01)
    assert str(best.tree) == "[S[Det[the]][N[*]]]"


def test_unknown_word_without_error_rule():
    assert get_viterbi_parse_with_score("S", error_grammar(False), ["the", "zorb"]) is None


def test_error_rule_loses_to_real_word():
    g = error_grammar(True)
    p = StolckeParser(g, "S")
    assert p.step("the") and p.step("boy")
    assert p.sentence_probability() == pytest.approx(1.01)
    assert str(p.viterbi_parse().tree) == "[S[Det[the]][N[boy]]]"


def test_regex_and_case_insensitive_terminals():
    num = RegexTerminal(r"\d+")
    plus = CaseInsensitiveTerminal("plus")
    g = (
        GrammarBuilder()
        .add_rule(0.5, "E", "E", "Op", "N")
        .add_rule(0.5, "E", "N")
        .add_rule(1.0, "Op", plus)
        .add_rule(1.0, "N", num)
        .build()
    )
    p = StolckeParser(g, "E")
    assert p.allowed_terminals() == {num}
    assert not p.step("x")
    for t in ["12", "PLUS", "7"]:
        assert p.step(t), t
    assert p.accepted()
    assert p.sentence_probability() == pytest.approx(0.25)
    assert str(p.viterbi_parse().tree) == r"[E[E[N[/\d+/]]][Op[plus]][N[/\d+/]]]"
    assert RegexTerminal("abc", re.IGNORECASE).has_category(Token("ABC"))


def test_exact_terminal_and_token_payloads():
    g = GrammarBuilder().add_rule(1.0, "S", ExactTerminal(3), ExactTerminal(4)).build()
    best = get_viterbi_parse_with_score("S", g, tokenize(3, 4))
    assert best is not None
    assert [leaf.token for leaf in best.tree.children] == [Token(3), Token(4)]
    assert get_viterbi_parse_with_score("S", g, [3, 5]) is None
