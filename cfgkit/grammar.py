"""The grammar model, along with the FIRST and FOLLOW computations that every
table generator needs.

A grammar here is deliberately plain: two alphabets of strings, a list of
productions, and a start symbol. Something like this:

    grammar = Grammar(
        non_terminals={"E", "E'", "T"},
        terminals={"+", "id"},
        productions=[
            ("E", ["T", "E'"]),
            ("E'", ["+", "T", "E'"]),
            ("E'", [EPSILON]),
            ("T", ["id"]),
        ],
        start="E",
    )

Construction validates the grammar and then computes FIRST and FOLLOW right
away, so that a Grammar you are holding is always both well formed and fully
analyzed. Nothing about it changes after that, so you can hand the same
Grammar to as many parsers as you like.

(FIRST and FOLLOW are covered in handout 7 of the Stanford CS143 notes, which
is where the shape of these algorithms comes from.)
"""

import dataclasses
import logging
import typing

from .sets import update_changed

EPSILON = "ε"
END_OF_INPUT = "$"

RESERVED_SYMBOLS = (EPSILON, END_OF_INPUT)

grammar_log = logging.getLogger("cfgkit.grammar")


@dataclasses.dataclass(frozen=True)
class Production:
    """A single production, `head -> body`.

    The index is the position of the production in its grammar. Two
    productions with the same head and body but different indices are
    different productions, which is what lets us use productions as keys in
    the selection sets and the parse table without any surprises.
    """

    head: str
    body: typing.Tuple[str, ...]
    index: int = -1

    @property
    def is_epsilon(self) -> bool:
        return len(self.body) == 1 and self.body[0] == EPSILON

    def __str__(self) -> str:
        return f"{self.head} -> {' '.join(self.body)}"


ProductionLike = Production | typing.Tuple[str, typing.Iterable[str]]


class ValidationError(ValueError):
    """Raised when the pieces handed to Grammar do not make a grammar."""

    symbol: str | None
    production: Production | None

    def __init__(
        self,
        message: str,
        symbol: str | None = None,
        production: Production | None = None,
    ):
        super().__init__(message)
        self.symbol = symbol
        self.production = production


@dataclasses.dataclass(frozen=True)
class FirstInfo:
    """The first sets of a grammar. (Or, as it is commonly styled in
    textbooks, FIRST.)

    firsts[s] is the set of terminals that can begin a string derived from s,
    plus EPSILON if s can derive the empty string. For a terminal t,
    firsts[t] is just {t}.

    For example, in this grammar:

        S -> A B
        A -> A a | ε
        B -> b B | ε

    FIRST['A'] is {a, ε}: the epsilon production puts ε in directly, and
    once it is there the left-recursive production gets to look past 'A' to
    'a'. FIRST['S'] is {a, b, ε}, since both 'A' and 'B' can vanish.
    """

    firsts: dict[str, frozenset[str]]
    passes: int

    @classmethod
    def from_grammar(
        cls,
        terminals: typing.Iterable[str],
        non_terminals: typing.Iterable[str],
        productions: typing.Sequence[Production],
    ) -> "FirstInfo":
        firsts: dict[str, set[str]] = {}
        for terminal in terminals:
            firsts[terminal] = {terminal}

        for non_terminal in non_terminals:
            firsts[non_terminal] = set()

        for production in productions:
            if production.is_epsilon:
                firsts[production.head].add(EPSILON)

        # Recursion here goes forever on left-recursive rules, so iterate to
        # a fixed point instead. Every set only ever grows and they are all
        # bounded by the terminals plus EPSILON, so this stops.
        rules = [p for p in productions if not p.is_epsilon]
        passes = 0
        changed = True
        while changed:
            changed = False
            passes += 1
            for production in rules:
                f = firsts[production.head]
                for symbol in production.body:
                    other_firsts = firsts[symbol]
                    # EPSILON only goes in when the whole body can vanish.
                    changed = update_changed(f, (s for s in other_firsts if s != EPSILON)) or changed
                    if EPSILON not in other_firsts:
                        break
                else:
                    # Every symbol in the body can vanish, so can the head.
                    if EPSILON not in f:
                        f.add(EPSILON)
                        changed = True

        grammar_log.debug("FIRST converged after %d passes", passes)
        return FirstInfo(
            firsts={symbol: frozenset(f) for symbol, f in firsts.items()},
            passes=passes,
        )

    def of(self, symbols: typing.Iterable[str]) -> frozenset[str]:
        """Compute FIRST of a string of symbols.

        This unions the first sets of the symbols from left to right, minus
        EPSILON, stopping at the first symbol that cannot vanish. If we make it
        all the way to the end then the whole string can vanish, and EPSILON is
        in the result. (So FIRST of the empty string is exactly {EPSILON}.)

        EPSILON itself vanishes. Any other symbol the grammar does not know
        about raises ValueError.
        """
        result: set[str] = set()
        for symbol in symbols:
            if symbol == EPSILON:
                continue

            first = self.firsts.get(symbol)
            if first is None:
                raise ValueError(f"{symbol!r} is not a symbol of this grammar")

            result.update(s for s in first if s != EPSILON)
            if EPSILON not in first:
                break
        else:
            result.add(EPSILON)

        return frozenset(result)


@dataclasses.dataclass(frozen=True)
class FollowInfo:
    """The follow sets of a grammar. (Again, as the textbooks would have it,
    FOLLOW.)

    The follow set of a non-terminal is the set of terminals that can come
    right after it in some sentence, plus END_OF_INPUT if it can come last.
    It never contains EPSILON.

    To find it we look at every place a non-terminal appears in a production
    body and take FIRST of whatever comes after it. If that rest can vanish
    (including when there is nothing after it at all) then whatever follows
    the head of the production can follow this symbol too.

    Consider:

        S -> A B
        A -> A a | ε
        B -> b B | ε

    FOLLOW['A'] is {a, b, $}. 'a' comes from `A -> A a`, 'b' from
    FIRST['B'] in `S -> A B`, and '$' because 'B' can vanish, which makes 'A'
    the last thing in 'S', and '$' follows 'S'.
    """

    follows: dict[str, frozenset[str]]
    passes: int

    @classmethod
    def from_grammar(
        cls,
        non_terminals: typing.Collection[str],
        productions: typing.Sequence[Production],
        start_symbol: str,
        firsts: FirstInfo,
    ) -> "FollowInfo":
        follows: dict[str, set[str]] = {nt: set() for nt in non_terminals}
        follows[start_symbol].add(END_OF_INPUT)

        # Same story as FirstInfo: iterate until nothing moves. FIRST is done
        # by now, so the FIRST of every suffix is fixed and we only pay for
        # computing it.
        passes = 0
        changed = True
        while changed:
            changed = False
            passes += 1
            for production in productions:
                if production.is_epsilon:
                    continue

                body = production.body
                for i, symbol in enumerate(body):
                    if symbol not in non_terminals:
                        continue

                    f = follows[symbol]
                    rest = firsts.of(body[i + 1 :])
                    changed = update_changed(f, (s for s in rest if s != EPSILON)) or changed
                    if EPSILON in rest:
                        changed = update_changed(f, follows[production.head]) or changed

        grammar_log.debug("FOLLOW converged after %d passes", passes)
        return FollowInfo(
            follows={symbol: frozenset(f) for symbol, f in follows.items()},
            passes=passes,
        )


def _parse_alternative(text: str) -> list[str]:
    symbols = text.split()
    if len(symbols) == 0:
        return [EPSILON]
    return symbols


class Grammar:
    """A context-free grammar: the alphabets, the productions, and the start
    symbol, along with FIRST and FOLLOW for all of it.

    Productions can be passed either as Production objects or as plain
    `(head, body)` pairs. Either way the grammar makes its own copies with
    `index` set to the position in the list, so the productions you get back
    out of `productions` are the ones that the selection sets, tables, and
    derivations refer to.

    An empty production is written as a body of exactly `[EPSILON]`.

    Any structural problem raises ValidationError, naming the offending
    symbol or production, before FIRST or FOLLOW are computed.
    """

    name: str
    non_terminals: frozenset[str]
    terminals: frozenset[str]
    productions: typing.Tuple[Production, ...]
    start: str

    _firsts: FirstInfo
    _follows: FollowInfo

    def __init__(
        self,
        non_terminals: typing.Iterable[str],
        terminals: typing.Iterable[str],
        productions: typing.Iterable[ProductionLike],
        start: str,
        *,
        name: str | None = None,
    ):
        if name is None:
            name = "unknown"

        self.name = name
        self.non_terminals = frozenset(non_terminals)
        self.terminals = frozenset(terminals)
        self.productions = tuple(
            _make_production(production, index)
            for index, production in enumerate(productions)
        )
        self.start = start

        self._validate()

        self._firsts = FirstInfo.from_grammar(
            self.terminals,
            self.non_terminals,
            self.productions,
        )
        self._follows = FollowInfo.from_grammar(
            self.non_terminals,
            self.productions,
            self.start,
            self._firsts,
        )

    @classmethod
    def from_text(cls, text: str, start: str | None = None, **kwargs) -> "Grammar":
        """Build a grammar from a little textual notation, one rule per line:

            S -> A B
            A -> a | ε
            B -> b

        Every head is a non-terminal and every other symbol is a terminal. An
        empty alternative means the same thing as ε. The start symbol is the
        first head unless you say otherwise.
        """
        productions: list[tuple[str, list[str]]] = []
        heads: dict[str, None] = {}
        for line_number, line in enumerate(text.splitlines(), start=1):
            line = line.strip()
            if len(line) == 0:
                continue

            head, sep, rest = line.partition("->")
            head = head.strip()
            if not sep or len(head.split()) != 1:
                raise ValidationError(f"Line {line_number} is not a rule: {line!r}")

            heads[head] = None
            for alternative in rest.split("|"):
                productions.append((head, _parse_alternative(alternative)))

        if len(heads) == 0:
            raise ValidationError("The grammar text does not contain any rules")

        terminals = {
            symbol
            for _, body in productions
            for symbol in body
            if symbol not in heads and symbol != EPSILON
        }
        if start is None:
            start = next(iter(heads))

        return cls(heads.keys(), terminals, productions, start, **kwargs)

    def _validate(self):
        for alphabet, kind in ((self.terminals, "terminal"), (self.non_terminals, "non-terminal")):
            for symbol in RESERVED_SYMBOLS:
                if symbol in alphabet:
                    raise ValidationError(
                        f"The reserved symbol {symbol!r} cannot be declared as a {kind}",
                        symbol=symbol,
                    )

        if self.start not in self.non_terminals:
            raise ValidationError(
                f"The start symbol {self.start!r} is not a non-terminal",
                symbol=self.start,
            )

        overlap = self.terminals & self.non_terminals
        if len(overlap) > 0:
            symbol = sorted(overlap)[0]
            raise ValidationError(
                f"{symbol!r} is declared as both a terminal and a non-terminal",
                symbol=symbol,
            )

        for production in self.productions:
            if production.head not in self.non_terminals:
                raise ValidationError(
                    f"The head of '{production}' is not a non-terminal",
                    symbol=production.head,
                    production=production,
                )

            if len(production.body) == 0:
                raise ValidationError(
                    f"The production for {production.head!r} has an empty body; use [EPSILON]",
                    symbol=production.head,
                    production=production,
                )

            for symbol in production.body:
                if symbol == EPSILON:
                    if not production.is_epsilon:
                        raise ValidationError(
                            f"EPSILON must be the whole body of a production, not part of '{production}'",
                            symbol=symbol,
                            production=production,
                        )
                elif symbol not in self.terminals and symbol not in self.non_terminals:
                    raise ValidationError(
                        f"The symbol {symbol!r} in '{production}' is not declared",
                        symbol=symbol,
                        production=production,
                    )

    @property
    def first_map(self) -> dict[str, frozenset[str]]:
        return self._firsts.firsts

    @property
    def follow_map(self) -> dict[str, frozenset[str]]:
        return self._follows.follows

    def firsts_of(self, symbols: typing.Iterable[str]) -> frozenset[str]:
        return self._firsts.of(symbols)

    def is_terminal(self, symbol: str) -> bool:
        return symbol in self.terminals

    def is_non_terminal(self, symbol: str) -> bool:
        return symbol in self.non_terminals

    def productions_for(self, head: str) -> list[Production]:
        return [p for p in self.productions if p.head == head]

    def format(self) -> str:
        """Format the grammar, one production per line, in grammar order."""
        return "\n".join(str(production) for production in self.productions)

    def __repr__(self) -> str:
        return f"<Grammar {self.name} start={self.start!r} productions={len(self.productions)}>"


def _make_production(production: ProductionLike, index: int) -> Production:
    if isinstance(production, Production):
        head, body = production.head, production.body
    else:
        head, body = production
    return Production(head=head, body=tuple(body), index=index)
