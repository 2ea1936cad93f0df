import logging

import pytest

from cfgkit import (
    END_OF_INPUT,
    EPSILON,
    Grammar,
    GrammarNotLL1Error,
    LL1Parser,
    NoProductionError,
    ParseError,
    Parser,
    Tree,
    UnexpectedEndOfInputError,
    UnexpectedSymbolError,
    build_parse_tree,
    build_table,
    is_ll1,
    selection_sets,
)


def _tree(treeform) -> Tree:
    if isinstance(treeform, str):
        return Tree(treeform)
    else:
        assert isinstance(treeform, tuple)
        return Tree(treeform[0], [_tree(child) for child in treeform[1:]])


def _simple_grammar() -> Grammar:
    return Grammar(
        {"S", "A", "B"},
        {"a", "b"},
        [("S", ["A", "B"]), ("A", ["a"]), ("B", ["b"])],
        "S",
    )


def _optional_grammar() -> Grammar:
    return Grammar(
        {"S", "A", "B"},
        {"a", "b"},
        [("S", ["A", "B"]), ("A", ["a"]), ("A", [EPSILON]), ("B", ["b"])],
        "S",
    )


def _left_recursive_grammar() -> Grammar:
    return Grammar(
        {"S", "A", "B"},
        {"a", "b"},
        [
            ("S", ["A", "B"]),
            ("A", ["A", "a"]),
            ("A", [EPSILON]),
            ("B", ["b", "B"]),
            ("B", [EPSILON]),
        ],
        "S",
    )


def _expression_grammar() -> Grammar:
    return Grammar.from_text(
        """
        E  -> T E'
        E' -> + T E' | ε
        T  -> F T'
        T' -> * F T' | ε
        F  -> ( E ) | id
        """
    )


def test_selection_sets_basic():
    grammar = Grammar(
        {"S", "A", "B"},
        {"a", "b", "c"},
        [("S", ["A", "B"]), ("A", ["a"]), ("B", ["b"])],
        "S",
    )
    p = grammar.productions
    assert selection_sets(grammar) == {
        p[0]: {"a"},
        p[1]: {"a"},
        p[2]: {"b"},
    }


def test_selection_sets_epsilon():
    grammar = _optional_grammar()
    p = grammar.productions
    assert selection_sets(grammar) == {
        p[0]: {"a", "b"},
        p[1]: {"a"},
        p[2]: {"b"},
        p[3]: {"b"},
    }


def test_selection_sets_epsilon_and_cycles():
    grammar = _left_recursive_grammar()
    p = grammar.productions
    assert selection_sets(grammar) == {
        p[0]: {"a", "b", END_OF_INPUT},
        p[1]: {"a"},
        p[2]: {"a", "b", END_OF_INPUT},
        p[3]: {"b"},
        p[4]: {END_OF_INPUT},
    }


def test_table_with_epsilon():
    grammar = _optional_grammar()
    p = grammar.productions
    table = build_table(grammar)

    assert table.rows == {
        "S": {"a": {p[0]}, "b": {p[0]}},
        "A": {"a": {p[1]}, "b": {p[2]}},
        "B": {"b": {p[3]}},
    }
    assert table.is_ll1()
    assert table.conflicts() == []
    assert is_ll1(grammar)


def test_table_conflict():
    grammar = _left_recursive_grammar()
    p = grammar.productions
    table = build_table(grammar)

    assert table.get("A", "a") == {p[1], p[2]}
    assert not table.is_ll1()
    assert not is_ll1(grammar)

    conflicts = table.conflicts()
    assert len(conflicts) == 1
    assert conflicts[0].non_terminal == "A"
    assert conflicts[0].lookahead == "a"
    assert conflicts[0].productions == (p[1], p[2])
    assert str(conflicts[0]) == (
        "When expanding 'A' and seeing 'a' we don't know whether to use:\n"
        "- A -> A a\n"
        "- A -> ε"
    )


def test_table_select():
    grammar = _left_recursive_grammar()
    p = grammar.productions
    table = build_table(grammar)

    assert table.select("B", "b") == p[3]
    assert table.select("B", "a") is None
    assert table.select("nope", "a") is None
    with pytest.raises(GrammarNotLL1Error):
        table.select("A", "a")


def test_table_is_deterministic():
    grammar = _expression_grammar()
    assert build_table(grammar) == build_table(grammar)
    assert selection_sets(grammar) == selection_sets(grammar)


def test_table_format():
    table = build_table(_optional_grammar())
    lines = table.format().splitlines()
    assert len(lines) == 5
    assert lines[0].split() == ["|", "a", "b"]
    assert lines[2].split() == ["A", "|", "1", "2"]
    assert lines[3].split() == ["B", "|", "3"]


def test_expression_grammar_is_ll1():
    assert is_ll1(_expression_grammar())


def test_parse_simple():
    tree = LL1Parser(_simple_grammar()).parse(["a", "b"])
    assert tree == _tree(("S", ("A", "a"), ("B", "b")))
    assert tree.to_tuple() == ("S", ("A", "a"), ("B", "b"))


def test_parse_epsilon_leaf():
    tree = LL1Parser(_optional_grammar()).parse(["b"])
    assert tree == _tree(("S", ("A", EPSILON), ("B", "b")))
    assert tree.frontier() == ["b"]


def test_parse_expression():
    parser = LL1Parser(_expression_grammar())

    tree = parser.parse(["id", "+", "id"])
    assert tree.to_tuple() == (
        "E",
        ("T", ("F", "id"), ("T'", EPSILON)),
        ("E'", "+", ("T", ("F", "id"), ("T'", EPSILON)), ("E'", EPSILON)),
    )

    input = ["(", "id", "+", "id", ")", "*", "id"]
    assert parser.parse(input).frontier() == input


def test_parse_does_not_change_input():
    input = ["a", "b"]
    LL1Parser(_simple_grammar()).parse(input)
    assert input == ["a", "b"]


def test_parser_is_reusable():
    parser = LL1Parser(_expression_grammar())
    first = parser.parse(["id", "*", "id"])
    second = parser.parse(["id", "*", "id"])
    assert first == second
    assert first is not second


def test_derivation_is_leftmost():
    grammar = _expression_grammar()
    derivation = LL1Parser(grammar).derive(["id"])
    assert [str(p) for p in derivation] == [
        "E -> T E'",
        "T -> F T'",
        "F -> id",
        "T' -> ε",
        "E' -> ε",
    ]
    assert all(p in grammar.productions for p in derivation)


def test_parse_through_a_vanishing_prefix():
    """ε from X has to reach past S to the terminal that follows it, without
    making S itself look nullable.
    """
    grammar = Grammar(
        {"T", "S", "X"},
        {"w", "z"},
        [
            ("T", ["S", "w"]),
            ("T", ["w"]),
            ("S", ["X", "z"]),
            ("X", [EPSILON]),
        ],
        "T",
    )
    p = grammar.productions
    assert selection_sets(grammar)[p[0]] == {"z"}
    assert is_ll1(grammar)

    parser = LL1Parser(grammar)
    tree = parser.parse(["z", "w"])
    assert tree.to_tuple() == ("T", ("S", ("X", EPSILON), "z"), "w")
    assert tree.frontier() == ["z", "w"]
    assert parser.parse(["w"]).frontier() == ["w"]


def test_parse_empty_input():
    grammar = Grammar(
        {"S", "A"},
        {"a"},
        [("S", ["A", "A"]), ("A", ["a"]), ("A", [EPSILON])],
        "S",
    )
    assert EPSILON in grammar.first_map["S"]
    assert END_OF_INPUT in grammar.follow_map["S"]
    assert not is_ll1(grammar)

    grammar = Grammar({"S", "A"}, {"a"}, [("S", ["A"]), ("A", [EPSILON])], "S")
    tree = LL1Parser(grammar).parse([])
    assert tree == _tree(("S", ("A", EPSILON)))
    assert tree.frontier() == []


def test_unexpected_symbol():
    with pytest.raises(UnexpectedSymbolError) as e:
        LL1Parser(_simple_grammar()).parse(["a"])

    assert e.value.expected == "b"
    assert e.value.found == END_OF_INPUT
    assert e.value.position == 1
    assert str(e.value) == "Expected b but got $ at position 1"


def test_no_production():
    with pytest.raises(NoProductionError) as e:
        LL1Parser(_simple_grammar()).parse(["b"])

    assert e.value.non_terminal == "S"
    assert e.value.lookahead == "b"
    assert e.value.position == 0
    assert e.value.expected == "a"
    assert e.value.found == "b"


def test_no_production_unknown_symbol():
    with pytest.raises(NoProductionError) as e:
        LL1Parser(_optional_grammar()).parse(["a", "x"])

    assert e.value.non_terminal == "B"
    assert e.value.lookahead == "x"
    assert e.value.position == 1
    assert e.value.expected == "b"


def test_no_production_lists_what_was_expected():
    with pytest.raises(UnexpectedSymbolError) as e:
        LL1Parser(_expression_grammar()).parse(["+"])

    assert isinstance(e.value, NoProductionError)
    assert e.value.non_terminal == "E"
    assert e.value.expected == "one of (, id"
    assert str(e.value) == "Expected one of (, id but got + at position 0"


def test_trailing_input():
    with pytest.raises(UnexpectedEndOfInputError) as e:
        LL1Parser(_simple_grammar()).parse(["a", "b", "b"])

    assert e.value.position == 2


@pytest.mark.parametrize("symbol", [END_OF_INPUT, EPSILON])
def test_reserved_symbol_in_input(symbol):
    with pytest.raises(UnexpectedSymbolError) as e:
        LL1Parser(_simple_grammar()).parse(["a", symbol, "b"])

    assert e.value.found == symbol
    assert e.value.position == 1


@pytest.mark.parametrize("input", [[], ["b"], ["a", "b"], ["nope"]])
def test_not_ll1_never_parses(input):
    parser = LL1Parser(_left_recursive_grammar())

    with pytest.raises(GrammarNotLL1Error) as e:
        parser.parse(input)

    assert len(e.value.conflicts) == 1
    assert e.value.position == 0


def test_parse_errors_share_a_base():
    for input in (["a"], ["b"], ["a", "b", "b"]):
        with pytest.raises(ParseError):
            LL1Parser(_simple_grammar()).parse(input)


def test_parser_is_abstract():
    with pytest.raises(TypeError):
        Parser(_simple_grammar())  # type: ignore

    assert isinstance(LL1Parser(_simple_grammar()), Parser)


def test_parser_exposes_analysis():
    grammar = _optional_grammar()
    parser = LL1Parser(grammar)
    assert parser.grammar is grammar
    assert parser.selection_sets == selection_sets(grammar)
    assert parser.table == build_table(grammar)


def test_build_parse_tree_splices_in_order():
    """Expanding a node puts its children exactly where it was in the
    frontier, so the next production applies to the leftmost match.
    """
    grammar = Grammar.from_text(
        """
        S -> A A
        A -> a | b
        """
    )
    s, aa, ab = grammar.productions[0], grammar.productions[1], grammar.productions[2]
    tree = build_parse_tree("S", [s, ab, aa])
    assert tree.to_tuple() == ("S", ("A", "b"), ("A", "a"))


def test_build_parse_tree_bad_derivation():
    grammar = _simple_grammar()
    with pytest.raises(ValueError):
        build_parse_tree("S", [grammar.productions[1]])


def test_tree_format():
    tree = LL1Parser(_simple_grammar()).parse(["a", "b"])
    assert tree.format() == "S\n  A\n    a\n  B\n    b"


def test_parse_logs_actions(caplog):
    caplog.set_level(logging.INFO, logger="cfgkit.action")
    LL1Parser(_simple_grammar()).parse(["a", "b"])
    assert len(caplog.records) > 0
    assert all(r.name == "cfgkit.action" for r in caplog.records)
