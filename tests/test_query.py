from urllib.parse import unquote_plus

import pytest

from nuri import InvalidField, InvalidStructure, QueryToken, TypeConflict
from nuri.query import (
    decode,
    encode,
    join_tokens,
    parse_query,
    parse_tokens,
    serialize_query,
    serialize_tokens,
    split_query,
)


def test_encode_uses_plus_and_uppercase_escapes():
    assert encode("cowboy hat?") == "cowboy+hat%3F"
    assert encode("a[]") == "a%5B%5D"
    assert encode("-_.~") == "-_.~"


def test_decode_is_lenient():
    assert decode("my+weird+field") == "my weird field"
    assert decode("%3d%3D") == "=="
    assert decode("%zz+1%") == "%zz 1%"


def test_token_to_string():
    assert str(QueryToken("a b", "c&d")) == "a+b=c%26d"
    assert str(QueryToken("flag")) == "flag"
    assert str(QueryToken("empty", "")) == "empty="


def test_token_parse_keeps_missing_value_distinct_from_empty():
    assert QueryToken.parse("foo") == QueryToken("foo", None)
    assert QueryToken.parse("foo=") == QueryToken("foo", "")
    assert QueryToken.parse("pid%3D1234=a=b") == QueryToken("pid=1234", "a=b")


def test_token_coerce():
    token = QueryToken("a", "1")
    assert QueryToken.coerce(token) is token
    assert QueryToken.coerce("a=1") == token
    assert QueryToken.coerce(("a", 1)) == token
    assert QueryToken.coerce(["a", None]) == QueryToken("a", None)
    assert QueryToken.coerce(("on", True)) == QueryToken("on", "true")
    with pytest.raises(InvalidField):
        QueryToken.coerce(42)


def test_split_query():
    assert split_query(None) == []
    assert split_query("") == []
    assert split_query("&foo=1&&bar=2") == [QueryToken("foo", "1"), QueryToken("bar", "2")]
    assert split_query("a=1;b") == [QueryToken("a", "1"), QueryToken("b", None)]
    assert split_query("?a=1") == [QueryToken("a", "1")]
    assert split_query("??a=1") == [QueryToken("?a", "1")]


def test_parse_query_ignores_leading_question_mark():
    assert parse_query("?a=1") == {"a": "1"}


def test_join_tokens_preserves_duplicates():
    tokens = [QueryToken("a", "1"), QueryToken("a", "1"), QueryToken("b")]
    assert join_tokens(tokens) == "a=1&a=1&b"


@pytest.mark.parametrize(
    "tree, expected",
    [
        ({"a": "b"}, "a=b"),
        ({"a": None}, "a="),
        (None, ""),
        ({}, ""),
        ({"b": 2, "a": 1}, "b=2&a=1"),
        ({"a": {"b": {"c": []}}}, ""),
        ({"a": {}, "b": []}, ""),
        ({"a": {"b": "c"}}, "a%5Bb%5D=c"),
        ({"q": [1, 2]}, "q%5B%5D=1&q%5B%5D=2"),
        ({"a": {"b": [1, 2]}}, "a%5Bb%5D%5B%5D=1&a%5Bb%5D%5B%5D=2"),
        ({"q": "cowboy hat?"}, "q=cowboy+hat%3F"),
        ({"a": True}, "a=true"),
        ({"a": False}, "a=false"),
        ({"a": [None, 0]}, "a%5B%5D=&a%5B%5D=0"),
        ({"f": ["b", 42, "your base"]}, "f%5B%5D=b&f%5B%5D=42&f%5B%5D=your+base"),
        ({"a[]": 1}, "a%5B%5D=1"),
        ({"a[b]": [1]}, "a%5Bb%5D%5B%5D=1"),
        ({"a": [1, 2], "b": "blah"}, "a%5B%5D=1&a%5B%5D=2&b=blah"),
    ],
)
def test_serialize_query(tree, expected):
    assert serialize_query(tree) == expected


def test_serialize_maps_inside_lists():
    tokens = serialize_tokens({"a": [1, {"c": 2, "b": 3}, 4]})
    assert tokens == [
        QueryToken("a[]", "1"),
        QueryToken("a[][c]", "2"),
        QueryToken("a[][b]", "3"),
        QueryToken("a[]", "4"),
    ]


def test_serialize_deep_tree_in_insertion_order():
    params = {"b": {"c": 3, "d": [4, 5], "e": {"x": [6], "y": 7, "z": [8, 9]}}}
    assert unquote_plus(serialize_query(params)) == (
        "b[c]=3&b[d][]=4&b[d][]=5&b[e][x][]=6&b[e][y]=7&b[e][z][]=8&b[e][z][]=9"
    )


def test_serialize_under_namespace():
    assert serialize_tokens({"x": "1"}, "filter") == [QueryToken("filter[x]", "1")]
    assert serialize_tokens("1", "x") == [QueryToken("x", "1")]
    assert serialize_tokens("1") == []


def test_serialize_rejects_top_level_list():
    with pytest.raises(InvalidStructure):
        serialize_query([1, 2])


def test_serialize_rejects_list_in_list():
    with pytest.raises(InvalidStructure):
        serialize_query({"a": [1, [2]]})


@pytest.mark.parametrize(
    "query, expected",
    [
        ("foo", {"foo": None}),
        ("foo=", {"foo": ""}),
        ("foo=bar", {"foo": "bar"}),
        ('foo="bar"', {"foo": '"bar"'}),
        ("foo=bar&foo=quux", {"foo": "quux"}),
        ("foo&foo=", {"foo": ""}),
        ("foo=1&bar=2", {"foo": "1", "bar": "2"}),
        ("&foo=1&&bar=2", {"foo": "1", "bar": "2"}),
        ("foo&bar=", {"foo": None, "bar": ""}),
        ("my+weird+field=q1%212%22%27w%245%267%2Fz8%29%3F", {"my weird field": "q1!2\"'w$5&7/z8)?"}),
        ("a=b&pid%3D1234=1023", {"a": "b", "pid=1234": "1023"}),
        ("foo[]", {"foo": [None]}),
        ("foo[]=", {"foo": [""]}),
        ("foo[]=bar", {"foo": ["bar"]}),
        ("foo[]=1&foo[]=2", {"foo": ["1", "2"]}),
        ("foo=bar&baz[]=1&baz[]=2&baz[]=3", {"foo": "bar", "baz": ["1", "2", "3"]}),
        ("x[y][z]=1", {"x": {"y": {"z": "1"}}}),
        ("x[y][z][]=1", {"x": {"y": {"z": ["1"]}}}),
        ("x[y][z]=1&x[y][z]=2", {"x": {"y": {"z": "2"}}}),
        ("x[y][z][]=1&x[y][z][]=2", {"x": {"y": {"z": ["1", "2"]}}}),
        ("x[y][][z]=1", {"x": {"y": [{"z": "1"}]}}),
        ("x[y][][z][]=1", {"x": {"y": [{"z": ["1"]}]}}),
        ("x[y][][z]=1&x[y][][w]=2", {"x": {"y": [{"z": "1", "w": "2"}]}}),
        ("x[y][][v][w]=1", {"x": {"y": [{"v": {"w": "1"}}]}}),
        ("x[y][][z]=1&x[y][][v][w]=2", {"x": {"y": [{"z": "1", "v": {"w": "2"}}]}}),
        ("x[y][][z]=1&x[y][][z]=2", {"x": {"y": [{"z": "1"}, {"z": "2"}]}}),
        ("a[=1", {"a[": "1"}),
        ("=1&[]=2&b=3", {"b": "3"}),
    ],
)
def test_parse_query(query, expected):
    assert parse_query(query) == expected


def test_parse_query_groups_repeated_keys_into_separate_maps():
    result = parse_query("x[y][][z]=1&x[y][][w]=a&x[y][][z]=2&x[y][][w]=3")
    assert result == {"x": {"y": [{"z": "1", "w": "a"}, {"z": "2", "w": "3"}]}}


def test_parse_query_repeated_nested_key_starts_a_new_map():
    result = parse_query("x[y][][v][w]=1&x[y][][v][w]=2")
    assert result == {"x": {"y": [{"v": {"w": "1"}}, {"v": {"w": "2"}}]}}


def test_parse_query_nested_keys_share_a_map_until_one_repeats():
    result = parse_query("x[y][][v][w]=1&x[y][][v][u]=2&x[y][][v][w]=3")
    assert result == {"x": {"y": [{"v": {"w": "1", "u": "2"}}, {"v": {"w": "3"}}]}}


def test_parse_query_nested_list_paths_keep_filling_the_last_map():
    assert parse_query("x[y][][z][]=1&x[y][][z][]=2") == {"x": {"y": [{"z": ["1", "2"]}]}}


def test_parse_query_grouping_depends_on_token_order():
    result = parse_query("x[y][][z]=1&x[y][][z]=2&x[y][][w]=a")
    assert result == {"x": {"y": [{"z": "1"}, {"z": "2", "w": "a"}]}}


def test_parse_query_keeps_key_order():
    assert list(parse_query("b=1&a=2&c[]=3")) == ["b", "a", "c"]


def test_parse_query_map_over_scalar_conflicts():
    with pytest.raises(TypeConflict) as exc_info:
        parse_query("x[y]=1&x[y]z=2")
    assert exc_info.value.key == "y"
    assert exc_info.value.expected == "Map"
    assert exc_info.value.actual == "Scalar"
    assert str(exc_info.value) == "expected Map (got Scalar) for param 'y'"


def test_parse_query_list_over_map_conflicts():
    with pytest.raises(TypeConflict) as exc_info:
        parse_query("x[y]=1&x[]=1")
    assert exc_info.value.key == "x"
    assert exc_info.value.expected == "List"
    assert exc_info.value.actual == "Map"


def test_parse_query_list_of_maps_over_scalar_conflicts():
    with pytest.raises(TypeConflict) as exc_info:
        parse_query("x[y]=1&x[y][][w]=2")
    assert exc_info.value.key == "y"
    assert exc_info.value.expected == "List"
    assert exc_info.value.actual == "Scalar"


def test_type_conflict_is_a_type_error():
    with pytest.raises(TypeError):
        parse_query("a[]=1&a[b]=2")


def test_bare_key_can_become_a_list():
    assert parse_query("foo&foo[]=1") == {"foo": ["1"]}


@pytest.mark.parametrize(
    "tree",
    [
        {"a": "b"},
        {"b": "2", "a": "1"},
        {"q": ["1", "2"], "r": {"s": "t"}},
        {"x": {"y": [{"z": "1", "w": "a"}, {"z": "2", "w": "3"}]}},
        {"b": {"c": "3", "d": ["4", "5"], "e": {"x": ["6"], "y": "7"}}},
        {"weird key&": ["a b", "c=d"]},
        {"x": {"y": [{"v": {"w": "1"}}, {"v": {"w": "2"}}]}},
    ],
)
def test_query_round_trip(tree):
    assert parse_tokens(serialize_tokens(tree)) == tree
    assert parse_query(serialize_query(tree)) == tree
