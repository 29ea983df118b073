from collections.abc import (
    Iterable,
    Iterator,
    MutableSet,
)
from typing import (
    Optional,
    TypeVar,
)

from more_itertools import (
    unique_everseen,
)

T = TypeVar('T')


class OrderedSet(MutableSet[T]):
    """
    A set that remembers the order in which its elements were first added.

    >>> s = OrderedSet(['b', 'a', 'b', 'c'])
    >>> s
    OrderedSet(['b', 'a', 'c'])

    >>> s.add('a')
    >>> s.discard('b')
    >>> s.discard('x')
    >>> list(s)
    ['a', 'c']

    Equality with other sets disregards order, just like it does for the
    built-in set types:

    >>> OrderedSet('ab') == OrderedSet('ba') == {'a', 'b'}
    True

    >>> 'c' in s, len(s)
    (True, 2)
    """

    def __init__(self, elements: Optional[Iterable[T]] = None) -> None:
        self._elements: dict[T, None] = {}
        if elements is not None:
            self.update(elements)

    def __contains__(self, element) -> bool:
        return element in self._elements

    def __iter__(self) -> Iterator[T]:
        return iter(self._elements)

    def __len__(self) -> int:
        return len(self._elements)

    def add(self, element: T) -> None:
        self._elements[element] = None

    def discard(self, element: T) -> None:
        self._elements.pop(element, None)

    def update(self, elements: Iterable[T]) -> None:
        for element in elements:
            self.add(element)

    def difference_update(self, elements: Iterable[T]) -> None:
        for element in elements:
            self.discard(element)

    def __repr__(self) -> str:
        return f'{type(self).__name__}({list(self._elements)!r})'


def unique(elements: Iterable[T]) -> list[T]:
    """
    The given elements in the order of their first occurrence, without
    duplicates.

    >>> unique([3, 1, 3, 2, 1])
    [3, 1, 2]

    >>> unique([])
    []
    """
    return list(unique_everseen(elements))
