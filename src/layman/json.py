from copy import (
    deepcopy,
)
from typing import (
    cast,
)

from layman.types import (
    JSON,
    MutableJSON,
)


def copy_json(o: JSON) -> MutableJSON:
    """
    Make a new, mutable copy of a JSON object.

    >>> a = {'a': [1, 2]}
    >>> b = copy_json(a)
    >>> b['a'].append(3)
    >>> b
    {'a': [1, 2, 3]}
    >>> a
    {'a': [1, 2]}
    """
    return cast(MutableJSON, deepcopy(o))


def json_dict(o, *path: str) -> JSON:
    """
    Return the given argument if it is a JSON object, an empty one if it is
    None, or raise an error mentioning the given path otherwise.

    >>> json_dict({'a': 1})
    {'a': 1}

    >>> json_dict(None)
    {}

    >>> json_dict([], 'functions', 'foo')
    Traceback (most recent call last):
    ...
    TypeError: ('Expected a JSON object', 'functions.foo', [])
    """
    if o is None:
        return {}
    elif isinstance(o, dict):
        return o
    else:
        raise TypeError('Expected a JSON object', '.'.join(path), o)


def json_str_list(o, *path: str) -> list[str]:
    """
    Return the given argument as a list of strings. A single string is
    promoted to a singleton list and None yields an empty list.

    >>> json_str_list(['a', 'b'])
    ['a', 'b']

    >>> json_str_list('a')
    ['a']

    >>> json_str_list(None)
    []

    >>> json_str_list(['a', 1], 'forceInclude')
    Traceback (most recent call last):
    ...
    TypeError: ('Expected a list of strings', 'forceInclude', ['a', 1])
    """
    if o is None:
        return []
    elif isinstance(o, str):
        return [o]
    elif isinstance(o, list) and all(isinstance(e, str) for e in o):
        return list(o)
    else:
        raise TypeError('Expected a list of strings', '.'.join(path), o)
