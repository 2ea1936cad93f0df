"""Context-free grammar analysis and LL(1) parsing.

Build a Grammar, look at its FIRST and FOLLOW sets, build an LL(1) table to
see whether it has any conflicts, and parse with it:

    grammar = Grammar.from_text('''
        S -> A B
        A -> a | ε
        B -> b
    ''')
    tree = LL1Parser(grammar).parse(["a", "b"])
"""

from .grammar import (
    END_OF_INPUT,
    EPSILON,
    FirstInfo,
    FollowInfo,
    Grammar,
    Production,
    ValidationError,
)
from .ll1 import (
    Conflict,
    GrammarNotLL1Error,
    LL1Parser,
    LL1Table,
    build_table,
    is_ll1,
    selection_sets,
)
from .runtime import (
    NoProductionError,
    ParseError,
    Parser,
    Tree,
    UnexpectedEndOfInputError,
    UnexpectedSymbolError,
    build_parse_tree,
)
