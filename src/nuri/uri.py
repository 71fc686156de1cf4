"""nuri.uri
A lenient, split-based URI model: parse, edit in place, serialize.
"""

import copy
import logging
import re

from typing import Any, Mapping, Self

from . import protocols
from .errors import FormattingError, InvalidField
from .query import QueryToken, QueryTree, join_tokens, parse_tokens, serialize_tokens, split_query

logger = logging.getLogger(__name__)

# ALPHA = %x41-5A / %x61-7A
_ALPHA: str = r"[A-Za-z]"

# DIGIT = %x30-39
_DIGIT: str = r"[0-9]"

# scheme = ALPHA *( ALPHA / DIGIT / "+" / "-" / "." )
_SCHEME_PAT: re.Pattern[str] = re.compile(rf"\A{_ALPHA}(?:{_ALPHA}|{_DIGIT}|[+\-.])*\Z")

# Delimiters that often come along with a protocol name: "http:", "http:/", "http://", "//"
_PROTOCOL_DELIMITER_PAT: re.Pattern[str] = re.compile(r":?/*\Z")


def _split_protocol(data: str) -> tuple[str | None, str]:
    """Take "proto://" or "//" off the front of data. "" stands for a protocol-relative reference."""
    protocol: str | None = None
    if "://" in data:
        protocol, _, data = data.partition(":")
    if data.startswith("//"):
        data = data[len("//") :]
        if protocol is None:
            protocol = ""
    return protocol, data


def _protocol_prefix(protocol: str | None) -> str:
    if protocol is None:
        return ""
    if len(protocol) == 0:
        return "//"
    return f"{protocol}://"


def _query_tokens_from(value: Any) -> list[QueryToken]:
    if value is None:
        return []
    if isinstance(value, str):
        return split_query(value)
    if isinstance(value, (list, tuple)):
        return [QueryToken.coerce(item) for item in value]
    raise InvalidField(f"query must be a str, list or dict, not {type(value).__name__}")


class URI:
    """A parsed URI. Use URI.parse() for strings, or URI() and the setters to build one.

    The query is held either as a flat list of tokens or as a nested tree,
    whichever was assigned last. Reading the other form derives it on the fly.
    """

    def __init__(self: Self) -> None:
        self._protocol: str | None = None
        self._username: str | None = None
        self._password: str | None = None
        self._host: str | None = None
        self._port: int | None = None
        self._path: str | None = None
        # list: the tokens are canonical. dict: the tree is.
        self._query: list[QueryToken] | dict[str, QueryTree] = []
        self._anchor: str | None = None

    @classmethod
    def parse(cls, data: str) -> Self:
        """Split data left to right: #anchor, ?query, protocol://, then authority and /path.
        Nothing is validated except the port.
        """
        result: Self = cls()
        data, hash_sign, anchor = data.partition("#")
        if len(hash_sign) > 0:
            result._anchor = anchor
        data, question_mark, query = data.partition("?")
        if len(question_mark) > 0:
            result._query = split_query(query)
        result._protocol, data = _split_protocol(data)
        authority, slash, path = data.partition("/")
        if len(slash) > 0:
            result._path = f"/{path}"
        result.authority = authority
        return result

    # ------------------------------------------------------------------ protocol

    @property
    def protocol(self: Self) -> str | None:
        return self._protocol

    @protocol.setter
    def protocol(self: Self, value: str | None) -> None:
        if value is not None:
            value = _PROTOCOL_DELIMITER_PAT.sub("", value, count=1)
            if len(value) > 0 and _SCHEME_PAT.match(value) is None:
                raise InvalidField(f"invalid protocol {value!r}")
        self._protocol = value

    @property
    def ssl(self: Self) -> bool:
        return protocols.is_secure(self._protocol)

    @ssl.setter
    def ssl(self: Self, value: bool) -> None:
        self._protocol = protocols.secure_counterpart(self._protocol, bool(value))

    # ------------------------------------------------------------------ authority

    @property
    def username(self: Self) -> str | None:
        return self._username

    @username.setter
    def username(self: Self, value: str | None) -> None:
        self._username = value

    @property
    def password(self: Self) -> str | None:
        return self._password

    @password.setter
    def password(self: Self, value: str | None) -> None:
        self._password = value

    @property
    def userinfo(self: Self) -> str | None:
        """username:password"""
        if self._username is None and self._password is None:
            return None
        result: str = self._username or ""
        if self._password is not None:
            result += f":{self._password}"
        return result

    @userinfo.setter
    def userinfo(self: Self, value: str | None) -> None:
        if value is None:
            self._username = self._password = None
            return
        username, colon, password = value.partition(":")
        self._username = username
        self._password = password if len(colon) > 0 else None

    @property
    def host(self: Self) -> str | None:
        return self._host

    @host.setter
    def host(self: Self, value: str | None) -> None:
        self._host = value or None

    @property
    def host_or_default(self: Self) -> str:
        return self._host or ""

    @property
    def port(self: Self) -> int | None:
        return self._port

    @port.setter
    def port(self: Self, value: int | str | None) -> None:
        if value is None or value == "":
            self._port = None
            return
        # port = *DIGIT
        if isinstance(value, str) and not (value.isascii() and value.isdigit()):
            raise InvalidField(f"invalid port {value!r}")
        try:
            port: int = int(value, base=10) if isinstance(value, str) else int(value)
        except (TypeError, ValueError) as e:
            raise InvalidField(f"invalid port {value!r}") from e
        if port <= 0:
            raise InvalidField(f"invalid port {value!r}")
        self._port = port

    @property
    def port_or_default(self: Self) -> int | None:
        """The explicit port, else the well-known port of the protocol."""
        if self._port is not None:
            return self._port
        return protocols.default_port(self._protocol)

    @property
    def authority(self: Self) -> str | None:
        """userinfo@host:port, with the port left out when it is the protocol's default."""
        if self._password is not None and self._username is None:
            raise FormattingError("cannot build a URI with a password but without a username")
        if self._host is None and self._port is not None:
            raise FormattingError("cannot build a URI with a port but without a host")
        result: str = ""
        if self._username is not None:
            result += f"{self.userinfo}@"
        if self._host is not None:
            result += self._host
            if self._port is not None and self._port != protocols.default_port(self._protocol):
                result += f":{self._port}"
        return result if len(result) > 0 else None

    @authority.setter
    def authority(self: Self, value: str | None) -> None:
        # An authority without a port leaves the current port alone.
        if value is None:
            self._username = self._password = self._host = self._port = None
            return
        userinfo, at_sign, hostport = value.partition("@")
        if len(at_sign) == 0:
            userinfo, hostport = None, value
        self.userinfo = userinfo
        host, colon, port = hostport.partition(":")
        if len(colon) > 0:
            self.port = port
        self.host = host

    @property
    def location(self: Self) -> str | None:
        """protocol://authority, or None when there is no authority."""
        authority: str | None = self.authority
        if authority is None:
            return None
        return _protocol_prefix(self._protocol) + authority

    @location.setter
    def location(self: Self, value: str | None) -> None:
        if value is None:
            self.protocol = None
            self.authority = None
            return
        protocol, authority = _split_protocol(value)
        self.protocol = protocol
        self.authority = authority

    # ------------------------------------------------------------------ path, query, anchor

    @property
    def path(self: Self) -> str | None:
        return self._path

    @path.setter
    def path(self: Self, value: str | None) -> None:
        if value is not None and len(value) > 0 and not value.startswith("/"):
            value = f"/{value}"
        self._path = value

    @property
    def path_or_default(self: Self) -> str:
        return self._path if self._path is not None else "/"

    @property
    def query(self: Self) -> dict[str, QueryTree]:
        """The query as a nested tree.

        When the tree is the canonical form, this is the live dict and may be
        edited in place. Otherwise it is derived from the tokens on every read.
        """
        if isinstance(self._query, dict):
            return self._query
        return parse_tokens(self._query)

    @query.setter
    def query(self: Self, value: Any) -> None:
        if isinstance(value, dict):
            logger.debug("Holding query as a tree with keys %s", list(value))
            self._query = copy.deepcopy(value)
        else:
            self._query = _query_tokens_from(value)

    @property
    def query_tokens(self: Self) -> list[QueryToken]:
        if isinstance(self._query, dict):
            return serialize_tokens(self._query)
        return list(self._query)

    @query_tokens.setter
    def query_tokens(self: Self, value: Any) -> None:
        self._query = _query_tokens_from(value)

    @property
    def query_string(self: Self) -> str:
        return join_tokens(self.query_tokens)

    @query_string.setter
    def query_string(self: Self, value: str | None) -> None:
        self._query = _query_tokens_from(value)

    def merge_query(self: Self, value: Any) -> Self:
        """Merge a dict into the top level of the tree, or append a string or list as extra tokens."""
        if isinstance(value, dict):
            merged: dict[str, QueryTree] = dict(self.query)
            merged.update(copy.deepcopy(value))
            self._query = merged
        else:
            self._query = self.query_tokens + _query_tokens_from(value)
        return self

    def _default_query(self: Self, value: Any) -> None:
        extra: dict[str, QueryTree] = value if isinstance(value, dict) else parse_tokens(_query_tokens_from(value))
        current: dict[str, QueryTree] = self.query
        missing: dict[str, QueryTree] = {key: item for key, item in extra.items() if key not in current}
        if len(missing) > 0:
            self.merge_query(missing)

    @property
    def anchor(self: Self) -> str | None:
        return self._anchor

    @anchor.setter
    def anchor(self: Self, value: str | None) -> None:
        self._anchor = value

    @property
    def request(self: Self) -> str:
        """/path?query"""
        result: str = self.path_or_default
        query_tokens: list[QueryToken] = self.query_tokens
        if len(query_tokens) > 0:
            result += f"?{join_tokens(query_tokens)}"
        return result

    @request.setter
    def request(self: Self, value: str | None) -> None:
        path, _, query = (value or "").partition("?")
        self.path = path or None
        self.query_string = query

    @property
    def resource(self: Self) -> str:
        """/path?query#anchor"""
        if self._anchor is None:
            return self.request
        return f"{self.request}#{self._anchor}"

    @resource.setter
    def resource(self: Self, value: str | None) -> None:
        request, hash_sign, anchor = (value or "").partition("#")
        self.request = request
        self._anchor = anchor if len(hash_sign) > 0 else None

    # ------------------------------------------------------------------ whole-URI operations

    def serialize(self: Self) -> str:
        result: str = _protocol_prefix(self._protocol)
        authority: str | None = self.authority
        if authority is not None:
            result += authority
        # With a host, a missing path stays missing ("example.com#top");
        # without one the path defaults to "/" so "?a=b" becomes "/?a=b".
        if self._host is not None:
            result += self._path or ""
        else:
            result += self.path_or_default
        query_tokens: list[QueryToken] = self.query_tokens
        if len(query_tokens) > 0:
            result += f"?{join_tokens(query_tokens)}"
        if self._anchor is not None:
            result += f"#{self._anchor}"
        return result

    def update(self: Self, parts: Mapping[str, Any]) -> Self:
        """Assign each named field in turn. Returns self."""
        for name, value in parts.items():
            _field(name).fset(self, value)
        return self

    def merge(self: Self, parts: Mapping[str, Any]) -> Self:
        """Like update, except that query values are merged in with merge_query."""
        for name, value in parts.items():
            field: property = _field(name)
            if field in _QUERY_FIELDS:
                self.merge_query(value)
            else:
                field.fset(self, value)
        return self

    def defaults(self: Self, parts: Mapping[str, Any]) -> Self:
        """Like update, but only fields that are still unset get assigned.

        An empty protocol counts as set, since it marks a protocol-relative URI.
        For the query, only top-level keys that are not there yet are added.
        """
        for name, value in parts.items():
            field: property = _field(name)
            if field in _QUERY_FIELDS:
                self._default_query(value)
                continue
            current: Any = field.fget(self)
            if current is None or current is False or (current == "" and field is not URI.protocol):
                field.fset(self, value)
        return self

    def clone(self: Self) -> Self:
        return copy.deepcopy(self)

    def _key(self: Self) -> tuple:
        return (
            self._protocol,
            self._username,
            self._password,
            self._host,
            self.port_or_default,
            self._path,
            self.query_tokens,
            self._anchor,
        )

    def __eq__(self: Self, other: object) -> bool:
        if not isinstance(other, URI):
            return NotImplemented
        return self._key() == other._key()

    def __str__(self: Self) -> str:
        return self.serialize()

    def __repr__(self: Self) -> str:
        return f"<{self.__class__.__name__} {self.serialize()!r}>"


# Every name update()/merge()/defaults() accept, aliases included.
_FIELDS: dict[str, property] = {
    "protocol": URI.protocol,
    "schema": URI.protocol,
    "scheme": URI.protocol,
    "ssl": URI.ssl,
    "secure": URI.ssl,
    "username": URI.username,
    "user": URI.username,
    "password": URI.password,
    "userinfo": URI.userinfo,
    "host": URI.host,
    "hostname": URI.host,
    "port": URI.port,
    "authority": URI.authority,
    "location": URI.location,
    "path": URI.path,
    "query": URI.query,
    "query_tokens": URI.query_tokens,
    "query_string": URI.query_string,
    "request": URI.request,
    "resource": URI.resource,
    "anchor": URI.anchor,
    "fragment": URI.anchor,
}

_QUERY_FIELDS: tuple[property, ...] = (URI.query, URI.query_tokens, URI.query_string)


def _field(name: str) -> property:
    try:
        return _FIELDS[name]
    except KeyError:
        raise InvalidField(f"unknown URI field {name!r}") from None


def parse(data: str) -> URI:
    return URI.parse(data)


def build(parts: Mapping[str, Any]) -> str:
    """build({"protocol": "https", "host": "example.com", "port": 8443}) == "https://example.com:8443" """
    return URI().update(parts).serialize()


def update(data: str, parts: Mapping[str, Any]) -> str:
    return URI.parse(data).update(parts).serialize()


def merge(data: str, parts: Mapping[str, Any]) -> str:
    return URI.parse(data).merge(parts).serialize()


def defaults(data: str, parts: Mapping[str, Any]) -> str:
    return URI.parse(data).defaults(parts).serialize()
