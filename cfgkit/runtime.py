import abc
import dataclasses
import typing

from .grammar import EPSILON, Grammar, Production


@dataclasses.dataclass
class Tree:
    value: str
    children: list["Tree"] = dataclasses.field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return len(self.children) == 0

    def leaves(self) -> list["Tree"]:
        result: list[Tree] = []
        stack = [self]
        while len(stack) > 0:
            node = stack.pop()
            if node.is_leaf:
                result.append(node)
            else:
                stack.extend(reversed(node.children))
        return result

    def frontier(self) -> list[str]:
        """The leaf symbols from left to right, without the EPSILON leaves.

        For a successful parse this is exactly the input.
        """
        return [leaf.value for leaf in self.leaves() if leaf.value != EPSILON]

    def to_tuple(self) -> "str | tuple":
        """Convert the tree into nested tuples, `(value, child, child, ...)`,
        with leaves as bare strings. Handy for comparing against.
        """
        if self.is_leaf:
            return self.value
        return (self.value,) + tuple(child.to_tuple() for child in self.children)

    def format_lines(self) -> list[str]:
        lines = []

        def format_node(node: Tree, indent: int):
            lines.append((" " * indent) + node.value)
            for child in node.children:
                format_node(child, indent + 2)

        format_node(self, 0)
        return lines

    def format(self) -> str:
        return "\n".join(self.format_lines())


class ParseError(Exception):
    """Something went wrong while parsing. `position` is the 0-based index in
    the input where it went wrong.
    """

    message: str
    position: int

    def __init__(self, message: str, position: int):
        super().__init__(message)
        self.message = message
        self.position = position

    def __str__(self):
        return f"{self.message} at position {self.position}"


class UnexpectedSymbolError(ParseError):
    expected: str
    found: str

    def __init__(self, expected: str, found: str, position: int):
        super().__init__(f"Expected {expected} but got {found}", position)
        self.expected = expected
        self.found = found


class NoProductionError(UnexpectedSymbolError):
    """There is nothing in the table for `non_terminal` on `lookahead`.

    `expected` lists the lookaheads that `non_terminal` would have accepted.
    """

    non_terminal: str
    lookahead: str

    def __init__(
        self,
        non_terminal: str,
        lookahead: str,
        position: int,
        expected: typing.Iterable[str] = (),
    ):
        accepted = sorted(expected)
        if len(accepted) == 0:
            expected_str = f"nothing for {non_terminal}"
        elif len(accepted) == 1:
            expected_str = accepted[0]
        else:
            expected_str = "one of " + ", ".join(accepted)

        super().__init__(expected_str, lookahead, position)
        self.non_terminal = non_terminal
        self.lookahead = lookahead


class UnexpectedEndOfInputError(ParseError):
    def __init__(self, position: int, message: str = "Unexpected end of input"):
        super().__init__(message, position)


class Parser(abc.ABC):
    """Something that can turn a sequence of terminals into a parse tree for
    a grammar. LL1Parser is the one we have.
    """

    grammar: Grammar

    def __init__(self, grammar: Grammar):
        self.grammar = grammar

    @abc.abstractmethod
    def parse(self, input: typing.Sequence[str]) -> Tree:
        """Parse the input into a tree, or raise a ParseError."""
        raise NotImplementedError()


def build_parse_tree(start: str, derivation: typing.Iterable[Production]) -> Tree:
    """Rebuild the parse tree from a leftmost derivation.

    We keep the frontier of the tree, the leaves from left to right. Each
    production in the derivation expands the leftmost leaf labelled with its
    head, and its children take that leaf's place in the frontier. This only
    works because the derivation is leftmost: the leaf a production applies to
    is always the first one with a matching label.

    EPSILON productions get a single EPSILON child, so every non-terminal in
    the tree has at least one child.
    """
    root = Tree(start)
    frontier = [root]

    for production in derivation:
        index = next(
            (i for i, node in enumerate(frontier) if node.value == production.head),
            None,
        )
        if index is None:
            raise ValueError(f"No {production.head} left in the frontier to expand with {production}")

        node = frontier[index]
        node.children = [Tree(symbol) for symbol in production.body]
        frontier[index : index + 1] = node.children

    return root
