"""LL(1) tables and the predictive parser that runs them.

The table for a grammar comes from the selection set of each production (the
"guideline symbols" in some texts): the lookaheads under which we should pick
that production. For `N -> body` the selection set is FIRST(body), except that
if the body can vanish we pick it on anything that can follow N instead.

Then table[N][a] holds every production for N whose selection set contains a.
If every cell holds at most one production the grammar is LL(1), and the
table tells the parser exactly what to do at every step. If some cell holds
more than one we have a first/first or first/follow conflict (we don't bother
to tell them apart) and we refuse to parse with it.
"""

import dataclasses
import logging
import typing

from .grammar import END_OF_INPUT, EPSILON, Grammar, Production
from .runtime import (
    NoProductionError,
    ParseError,
    Parser,
    Tree,
    UnexpectedEndOfInputError,
    UnexpectedSymbolError,
    build_parse_tree,
)
from .sets import add_all

action_log = logging.getLogger("cfgkit.action")


@dataclasses.dataclass(frozen=True)
class Conflict:
    non_terminal: str
    lookahead: str
    productions: typing.Tuple[Production, ...]

    def __str__(self):
        lines = [
            f"When expanding '{self.non_terminal}' and seeing '{self.lookahead}' we don't know whether to use:"
        ]
        lines.extend(f"- {production}" for production in self.productions)
        return "\n".join(lines)


class GrammarNotLL1Error(ParseError):
    conflicts: list[Conflict]

    def __init__(self, conflicts: list[Conflict], position: int = 0):
        super().__init__(f"Grammar is not LL(1): {len(conflicts)} conflicts", position)
        self.conflicts = conflicts

    def __str__(self):
        return f"{self.message}:\n\n" + "\n\n".join(str(c) for c in self.conflicts)


def selection_sets(grammar: Grammar) -> dict[Production, frozenset[str]]:
    """Compute the selection set of every production in the grammar."""
    result: dict[Production, frozenset[str]] = {}
    for production in grammar.productions:
        if production.is_epsilon:
            lookaheads = {EPSILON}
        else:
            lookaheads = set(grammar.firsts_of(production.body))

        if EPSILON in lookaheads:
            lookaheads.discard(EPSILON)
            add_all(lookaheads, grammar.follow_map[production.head])

        result[production] = frozenset(lookaheads)

    return result


@dataclasses.dataclass
class LL1Table:
    rows: dict[str, dict[str, frozenset[Production]]]

    @classmethod
    def from_selection_sets(
        cls,
        non_terminals: typing.Iterable[str],
        selections: dict[Production, frozenset[str]],
    ) -> "LL1Table":
        cells: dict[str, dict[str, set[Production]]] = {nt: {} for nt in non_terminals}
        for production, lookaheads in selections.items():
            row = cells[production.head]
            for lookahead in lookaheads:
                cell = row.get(lookahead)
                if cell is None:
                    cell = set()
                    row[lookahead] = cell
                cell.add(production)

        return LL1Table(
            rows={
                nt: {lookahead: frozenset(cell) for lookahead, cell in row.items()}
                for nt, row in cells.items()
            }
        )

    def get(self, non_terminal: str, lookahead: str) -> frozenset[Production]:
        row = self.rows.get(non_terminal)
        if row is None:
            return frozenset()
        return row.get(lookahead, frozenset())

    def conflicts(self) -> list[Conflict]:
        """Every cell with more than one production in it, in a stable order."""
        result = []
        for nt in sorted(self.rows):
            row = self.rows[nt]
            for lookahead in sorted(row):
                cell = row[lookahead]
                if len(cell) > 1:
                    result.append(
                        Conflict(
                            non_terminal=nt,
                            lookahead=lookahead,
                            productions=tuple(sorted(cell, key=lambda p: p.index)),
                        )
                    )
        return result

    def is_ll1(self) -> bool:
        return all(len(cell) <= 1 for row in self.rows.values() for cell in row.values())

    def select(self, non_terminal: str, lookahead: str) -> Production | None:
        """Return the production to use when expanding `non_terminal` on
        `lookahead`, or None if there isn't one.

        A cell with more than one production has no right answer, so rather
        than pick one we raise GrammarNotLL1Error for it.
        """
        cell = self.get(non_terminal, lookahead)
        if len(cell) == 0:
            return None
        if len(cell) > 1:
            raise GrammarNotLL1Error(
                [
                    Conflict(
                        non_terminal=non_terminal,
                        lookahead=lookahead,
                        productions=tuple(sorted(cell, key=lambda p: p.index)),
                    )
                ]
            )
        (production,) = cell
        return production

    def format(self) -> str:
        """Format the table so pretty. Cells hold production indices."""

        def format_cell(row: dict[str, frozenset[Production]], lookahead: str) -> str:
            cell = row.get(lookahead)
            if not cell:
                return ""
            return ",".join(str(p.index) for p in sorted(cell, key=lambda p: p.index))

        lookaheads = sorted({k for row in self.rows.values() for k in row.keys()})
        non_terminals = sorted(self.rows)
        width = max([len(nt) for nt in non_terminals] + [4])

        header = "{nt} | {las}".format(
            nt=" " * width,
            las=" ".join(f"{lookahead: <6}" for lookahead in lookaheads),
        )
        lines = [
            header,
            "-" * len(header),
        ] + [
            "{nt} | {cells}".format(
                nt=f"{nt: <{width}}",
                cells=" ".join(
                    "{0: <6}".format(format_cell(self.rows[nt], lookahead))
                    for lookahead in lookaheads
                ),
            )
            for nt in non_terminals
        ]
        return "\n".join(lines)


def build_table(grammar: Grammar) -> LL1Table:
    return LL1Table.from_selection_sets(grammar.non_terminals, selection_sets(grammar))


def is_ll1(grammar: Grammar) -> bool:
    """True if one token of lookahead is always enough to pick a production."""
    return build_table(grammar).is_ll1()


class LL1Parser(Parser):
    """A table-driven top-down parser.

    The selection sets and the table are built once, up front. A grammar that
    isn't LL(1) still gets a parser, but every call to `parse` on it raises
    GrammarNotLL1Error before looking at the input.

    Each call to `parse` has its own stack and derivation, so one parser can be
    used for as many inputs as you like.
    """

    selection_sets: dict[Production, frozenset[str]]
    table: LL1Table

    def __init__(self, grammar: Grammar):
        super().__init__(grammar)
        self.selection_sets = selection_sets(grammar)
        self.table = LL1Table.from_selection_sets(grammar.non_terminals, self.selection_sets)

    def derive(self, input: typing.Sequence[str]) -> list[Production]:
        """Run the parser over the input and return the leftmost derivation,
        the productions in the order they were applied.
        """
        conflicts = self.table.conflicts()
        if len(conflicts) > 0:
            raise GrammarNotLL1Error(conflicts)

        symbols = list(input)
        for position, symbol in enumerate(symbols):
            if symbol == END_OF_INPUT or symbol == EPSILON:
                raise UnexpectedSymbolError("a terminal", symbol, position)

        # The end marker sits at the bottom of the stack and at the end of
        # the input; matching them is the last thing that happens.
        stack = [END_OF_INPUT, self.grammar.start]
        position = 0
        derivation: list[Production] = []

        al = action_log
        while len(stack) > 0:
            top = stack.pop()
            lookahead = symbols[position] if position < len(symbols) else END_OF_INPUT

            if al.isEnabledFor(logging.INFO):
                al.info(
                    "{stack: <30} {input: <15} {top}".format(
                        stack=repr(stack[-5:]),
                        input=lookahead,
                        top=top,
                    )
                )

            if top == lookahead:
                # Consume a token.
                position += 1
                continue

            if top == END_OF_INPUT:
                raise UnexpectedEndOfInputError(
                    position, f"Expected end of input but got {lookahead}"
                )

            if self.grammar.is_terminal(top):
                raise UnexpectedSymbolError(top, lookahead, position)

            production = self.table.select(top, lookahead)
            if production is None:
                raise NoProductionError(
                    top, lookahead, position, self.table.rows.get(top, {}).keys()
                )

            derivation.append(production)
            if not production.is_epsilon:
                stack.extend(reversed(production.body))

        return derivation

    def parse(self, input: typing.Sequence[str]) -> Tree:
        """Parse the input into a concrete parse tree.

        Raises GrammarNotLL1Error if the grammar has conflicts, or one of the
        other ParseErrors at the first place the input goes wrong.
        """
        derivation = self.derive(input)
        return build_parse_tree(self.grammar.start, derivation)
