"""nuri.query
Bracket-notation query strings: the flat token form (a[b][]=1&a[c]=2) and the
nested tree form ({"a": {"b": ["1"], "c": "2"}}), and the codec between them.
"""

import dataclasses
import logging
import re

from typing import Any, Iterable, Self
from urllib.parse import quote_plus, unquote_plus

from .errors import InvalidField, InvalidStructure, TypeConflict

logger = logging.getLogger(__name__)

# A parsed tree only ever holds dict, list, str and None. Serialization also
# takes ints, floats and bools as scalars.
QueryTree = dict[str, "QueryTree"] | list["QueryTree"] | str | int | float | bool | None

# Pairs are delimited by "&", or by ";" as HTML 4.01 appendix B.2.2 suggests.
_SEPARATOR_PAT: re.Pattern[str] = re.compile(r"[&;]")

# name = *( "[" / "]" ) key *"]" suffix
_NAME_PAT: re.Pattern[str] = re.compile(r"\A[\[\]]*(?P<key>[^\[\]]+)\]*")

# suffix = "[]" "[" child "]" / "[]" rest
_LIST_ITEM_PAT: re.Pattern[str] = re.compile(r"\A\[\]\[(?P<child>[^\[\]]+)\]\Z|\A\[\](?P<rest>.+)\Z", re.DOTALL)

_BRACKETS_PAT: re.Pattern[str] = re.compile(r"[\[\]]+")


def encode(string: str) -> str:
    """application/x-www-form-urlencoded escaping of one token half.
    e.g. encode("cowboy hat?") == "cowboy+hat%3F"
    """
    return quote_plus(string, safe="")


def decode(string: str) -> str:
    """Inverse of encode. Malformed escapes like "%zz" are left as they are."""
    return unquote_plus(string)


def _format_scalar(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclasses.dataclass(frozen=True)
class QueryToken:
    """One decoded name=value pair. A value of None means there was no "=" at all."""

    name: str
    value: str | None = None

    def __str__(self: Self) -> str:
        if self.value is None:
            return encode(self.name)
        return f"{encode(self.name)}={encode(self.value)}"

    @classmethod
    def parse(cls, data: str) -> Self:
        name, equals, value = data.partition("=")
        return cls(decode(name), decode(value) if equals else None)

    @classmethod
    def coerce(cls, item: Any) -> Self:
        """Make a token out of a QueryToken, a raw "name=value" string or a (name, value) pair."""
        if isinstance(item, cls):
            return item
        if isinstance(item, str):
            return cls.parse(item)
        if isinstance(item, (list, tuple)) and len(item) == 2:
            name, value = item
            return cls(_format_scalar(name), None if value is None else _format_scalar(value))
        raise InvalidField(f"cannot make a query token out of {item!r}")


def split_query(string: str | None) -> list[QueryToken]:
    """Split a raw query string into tokens, skipping one leading "?" and empty pairs.
    e.g. split_query("?a=1&&b") == [QueryToken("a", "1"), QueryToken("b", None)]
    """
    if not string:
        return []
    string = string.removeprefix("?")
    return [QueryToken.parse(pair) for pair in _SEPARATOR_PAT.split(string) if len(pair) > 0]


def join_tokens(tokens: Iterable[QueryToken]) -> str:
    return "&".join(str(token) for token in tokens)


def serialize_tokens(tree: QueryTree, namespace: str | None = None) -> list[QueryToken]:
    """Flatten a query tree into bracket-notation tokens, in insertion order.

    Empty nested dicts and lists produce no token at all. A list needs a name to
    hang its "[]" on, so a list at the top level, or directly inside another
    list, raises InvalidStructure.
    """
    result: list[QueryToken] = []
    if isinstance(tree, dict):
        for key, value in tree.items():
            if isinstance(value, (dict, list, tuple)) and len(value) == 0:
                continue
            child: str = f"{namespace}[{key}]" if namespace else _format_scalar(key)
            result += serialize_tokens(value, child)
    elif isinstance(tree, (list, tuple)):
        if not namespace:
            raise InvalidStructure(f"cannot serialize {tree!r} without a parameter name")
        for item in tree:
            if isinstance(item, (list, tuple)):
                raise InvalidStructure(f"cannot serialize {item!r} as an element of {namespace!r}")
            result += serialize_tokens(item, f"{namespace}[]")
    elif namespace:
        result.append(QueryToken(namespace, _format_scalar(tree)))
    return result


def serialize_query(tree: QueryTree) -> str:
    """serialize_query({"q": [1, 2]}) == "q%5B%5D=1&q%5B%5D=2" """
    return join_tokens(serialize_tokens(tree))


def _kind(value: QueryTree) -> str:
    if isinstance(value, dict):
        return "Map"
    if isinstance(value, list):
        return "List"
    return "Scalar"


def _fetch(params: dict[str, QueryTree], key: str, kind: type) -> Any:
    """Return the container stored at key, creating it when nothing (or None) is there."""
    if params.get(key) is None:
        params[key] = kind()
    current = params[key]
    if not isinstance(current, kind):
        raise TypeConflict("Map" if kind is dict else "List", _kind(current), key)
    return current


def _has_path(params: dict[str, QueryTree], path: str) -> bool:
    """Whether every key of a path like "w" or "[v][w]" is already set. A path through a list never is."""
    if "[]" in path:
        return False
    current: QueryTree = params
    for part in _BRACKETS_PAT.split(path):
        if len(part) == 0:
            continue
        if not isinstance(current, dict) or part not in current:
            return False
        current = current[part]
    return True


def _normalize(params: dict[str, QueryTree], name: str, value: str | None) -> dict[str, QueryTree]:
    m: re.Match[str] | None = _NAME_PAT.match(name)
    if m is None:
        logger.debug("Discarding query parameter without a key: %r", name)
        return params
    key: str = m["key"]
    after: str = name[m.end() :]

    if after == "":
        params[key] = value
    elif after == "[":
        params[name] = value
    elif after == "[]":
        _fetch(params, key, list).append(value)
    else:
        item: re.Match[str] | None = _LIST_ITEM_PAT.match(after)
        if item is not None:
            child: str = item["child"] or item["rest"]
            items: list[QueryTree] = _fetch(params, key, list)
            # Keys keep filling the last map until one repeats, which starts the next map.
            if len(items) > 0 and isinstance(items[-1], dict) and not _has_path(items[-1], child):
                _normalize(items[-1], child, value)
            else:
                items.append(_normalize({}, child, value))
        else:
            _normalize(_fetch(params, key, dict), after, value)
    return params


def parse_tokens(tokens: Iterable[QueryToken]) -> dict[str, QueryTree]:
    """Build the nested tree from tokens, left to right.

    Plain keys are last-write-wins, "name[]" appends to a list, "name[key]"
    descends into a map, and "name[][key]" groups consecutive keys into the
    list's last map until a key repeats. Token order matters for that grouping.
    """
    result: dict[str, QueryTree] = {}
    for token in tokens:
        _normalize(result, token.name, token.value)
    return result


def parse_query(string: str | None) -> dict[str, QueryTree]:
    """parse_query("a[]=1&a[]=2&b[c]=3") == {"a": ["1", "2"], "b": {"c": "3"}}"""
    return parse_tokens(split_query(string))
