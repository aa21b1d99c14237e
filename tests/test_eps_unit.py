import pytest

from probabilistic_earley import Grammar, GrammarError, StolckeParser, get_viterbi_parse_with_score


def test_epsilon_child_is_skipped_and_restored_in_tree():
    # S -> A 'b'; A -> 'a' (0.4) | ε (0.6)
    g = Grammar.from_rules([
        ("S", ["A", "b"], 1.0),
        ("A", ["a"], 0.4),
        ("A", [], 0.6),
    ])
    best = get_viterbi_parse_with_score("S", g, ["b"])
    assert best is not None
    assert abs(best.probability - 0.6) < 1e-9
    assert str(best.tree) == "[S[A][b]]"

    best = get_viterbi_parse_with_score("S", g, ["a", "b"])
    assert abs(best.probability - 0.4) < 1e-9
    assert str(best.tree) == "[S[A[a]][b]]"


def test_empty_input_with_nullable_start():
    # S -> ε (0.3) | 'a' S (0.7)
    g = Grammar.from_rules([
        ("S", [], 0.3),
        ("S", ["a", "S"], 0.7),
    ])
    p = StolckeParser(g, "S")
    assert p.accepted() is True
    assert abs(p.sentence_probability() - 0.3) < 1e-9

    best = get_viterbi_parse_with_score("S", g, [])
    assert str(best.tree) == "[S]"
    assert abs(best.probability - 0.3) < 1e-9

    best = get_viterbi_parse_with_score("S", g, ["a", "a"])
    assert abs(best.probability - 0.7 * 0.7 * 0.3) < 1e-9
    assert str(best.tree) == "[S[a][S[a][S]]]"


def test_empty_input_without_nullable_start_has_no_parse():
    g = Grammar.from_rules([("S", ["a"], 1.0)])
    assert get_viterbi_parse_with_score("S", g, []) is None


def test_null_probabilities_sum_over_empty_derivations():
    # A -> ε (0.5) | B B (0.5); B -> ε (0.4) | 'b' (0.6)
    g = Grammar.from_rules([
        ("A", [], 0.5),
        ("A", ["B", "B"], 0.5),
        ("B", [], 0.4),
        ("B", ["b"], 0.6),
    ])
    assert abs(g.null_probability("B") - 0.4) < 1e-12
    assert abs(g.null_probability("A") - (0.5 + 0.5 * 0.4 * 0.4)) < 1e-12
    assert g.best_null_rule("A").rhs == ()
    assert g.null_probability("b") == 0.0

    # "b" from A: A -> B B with either B empty
    p = StolckeParser(g, "A")
    assert p.step("b")
    assert abs(p.sentence_probability() - 2 * 0.5 * 0.6 * 0.4) < 1e-9


def test_improper_null_mass_rejected():
    with pytest.raises(GrammarError):
        Grammar.from_rules([
            ("A", [], 1.0),
            ("A", ["B"], 1.0),
            ("B", [], 1.0),
        ])


def test_unit_production_chain():
    # S -> A (1.0); A -> 'a' (1.0)
    g = Grammar.from_rules([
        ("S", ["A"], 1.0),
        ("A", ["a"], 1.0),
    ])
    p = StolckeParser(g, "S")

    assert p.allowed_terminals() == {"a"}
    assert p.step("a") is True
    assert p.accepted() is True
    assert str(p.viterbi_parse().tree) == "[S[A[a]]]"


def test_unit_cycle_is_summed_in_closed_form():
    # S -> S (0.5) | 'a' (0.5): P("a") = sum_n 0.5^n * 0.5 = 1
    g = Grammar.from_rules([
        ("S", ["S"], 0.5),
        ("S", ["a"], 0.5),
    ])
    p = StolckeParser(g, "S")
    assert p.step("a")
    assert abs(p.sentence_probability() - 1.0) < 1e-9

    best = p.viterbi_parse()
    assert str(best.tree) == "[S[a]]"
    assert abs(best.probability - 0.5) < 1e-9


def test_mutual_unit_recursion():
    # A -> B (0.5) | 'x' (0.5); B -> A (0.5) | 'y' (0.5)
    g = Grammar.from_rules([
        ("A", ["B"], 0.5),
        ("A", ["x"], 0.5),
        ("B", ["A"], 0.5),
        ("B", ["y"], 0.5),
    ])
    for tok, expected in (("x", 2 / 3), ("y", 1 / 3)):
        p = StolckeParser(g, "A")
        assert p.step(tok)
        assert abs(p.sentence_probability() - expected) < 1e-9


def test_divergent_unit_cycle_raises():
    # A -> B -> A with mass one never terminates
    with pytest.raises(ValueError):
        Grammar.from_rules([
            ("A", ["B"], 1.0),
            ("B", ["A"], 1.0),
        ])


def test_viterbi_score_uses_best_empty_derivation():
    # A has two empty derivations, A -> ε and A -> C -> ε, each worth 0.5
    g = Grammar.from_rules([
        ("S", ["A", "b"], 1.0),
        ("A", [], 0.5),
        ("A", ["C"], 0.5),
        ("C", [], 1.0),
    ])
    p = StolckeParser(g, "S")
    assert p.step("b")
    assert abs(p.sentence_probability() - 1.0) < 1e-9

    best = p.viterbi_parse()
    assert str(best.tree) == "[S[A][b]]"
    assert abs(best.probability - 0.5) < 1e-9


def test_best_empty_derivation_through_unit_rule():
    g = Grammar.from_rules([
        ("S", ["A", "b"], 1.0),
        ("A", [], 0.3),
        ("A", ["C"], 0.7),
        ("C", [], 1.0),
    ])
    best = get_viterbi_parse_with_score("S", g, ["b"])
    assert str(best.tree) == "[S[A[C]][b]]"
    assert abs(best.probability - 0.7) < 1e-9


def test_summed_empty_mass_does_not_outrank_a_better_tree():
    # Skipping A is worth 0.8 in total but 0.4 at best, so S -> E wins
    g = Grammar.from_rules([
        ("S", ["A", "b"], 0.5),
        ("S", ["E"], 0.5),
        ("A", [], 0.4),
        ("A", ["C"], 0.4),
        ("C", [], 1.0),
        ("E", ["b"], 0.5),
    ])
    p = StolckeParser(g, "S")
    assert p.step("b")
    assert abs(p.sentence_probability() - (0.5 * 0.8 + 0.5 * 0.5)) < 1e-9

    best = p.viterbi_parse()
    assert str(best.tree) == "[S[E[b]]]"
    assert abs(best.probability - 0.25) < 1e-9
