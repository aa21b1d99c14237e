from probabilistic_earley import Grammar, StolckeParser


def test_left_recursive_one_or_more_a():
    g = Grammar.from_rules([
        ("S", ["S", "a"], 0.4),
        ("S", ["a"], 0.6),
    ])
    p = StolckeParser(g, "S")

    # At start, only 'a' is allowed
    assert p.allowed_terminals() == {"a"}

    # Consume three 'a's; all steps should progress
    assert p.step("a") is True
    assert p.step("a") is True
    assert p.step("a") is True

    # After at least one 'a', the string can be accepted
    assert p.accepted() is True
    assert abs(p.sentence_probability() - 0.4 * 0.4 * 0.6) < 1e-9


def test_unknown_token_does_not_advance():
    g = Grammar.from_rules([("S", ["a"], 1.0)])
    p = StolckeParser(g, "S")

    assert p.step("b") is False
    assert p.pos == 0
    assert p.accepted() is False
    assert p.step("a") is True
    assert p.accepted() is True


def test_reset_starts_over():
    g = Grammar.from_rules([("S", ["a", "b"], 1.0)])
    p = StolckeParser(g, "S")
    assert p.step("a")
    assert p.allowed_terminals() == {"b"}

    p.reset()
    assert p.pos == 0
    assert p.allowed_terminals() == {"a"}
