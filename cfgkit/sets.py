"""Small set helpers shared by the fixed-point computations."""

import typing

T = typing.TypeVar("T")


def update_changed(items: set[T], other: typing.Iterable[T]) -> bool:
    """Merge the `other` set into the `items` set, and return True if this
    changed the items set.
    """
    old_len = len(items)
    items.update(other)
    return old_len != len(items)


def add_all(items: set[T], other: typing.Iterable[T]):
    for item in other:
        items.add(item)
