"""Default ports and security of well-known protocols."""

import dataclasses
import logging

from .errors import InvalidField

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class Protocol:
    port: int
    secure: bool = False


_PROTOCOLS: dict[str, Protocol] = {
    "http": Protocol(80),
    "https": Protocol(443, secure=True),
    "ftp": Protocol(21),
    "ftps": Protocol(990, secure=True),
    "tftp": Protocol(69),
    "sftp": Protocol(22, secure=True),
    "ssh": Protocol(22, secure=True),
    "svn+ssh": Protocol(22, secure=True),
    "telnet": Protocol(23),
    "nntp": Protocol(119),
    "gopher": Protocol(70),
    "wais": Protocol(210),
    "ldap": Protocol(389),
    "ldaps": Protocol(636, secure=True),
    "prospero": Protocol(1525),
    "ws": Protocol(80),
    "wss": Protocol(443, secure=True),
}

# plain protocol -> the same protocol over TLS
_SECURE_COUNTERPARTS: dict[str, str] = {
    "http": "https",
    "ws": "wss",
    "ftp": "ftps",
    "ldap": "ldaps",
}
_PLAIN_COUNTERPARTS: dict[str, str] = {secure: plain for plain, secure in _SECURE_COUNTERPARTS.items()}


def lookup(protocol: str | None) -> Protocol | None:
    if protocol is None:
        return None
    return _PROTOCOLS.get(protocol)


def default_port(protocol: str | None) -> int | None:
    """The well-known port of protocol, or None when it is unknown or absent."""
    entry: Protocol | None = lookup(protocol)
    return entry.port if entry is not None else None


def is_secure(protocol: str | None) -> bool:
    entry: Protocol | None = lookup(protocol)
    return entry is not None and entry.secure


def register_protocol(name: str, port: int, secure: bool = False) -> None:
    """Add or replace a protocol, e.g. register_protocol("redis", 6379)."""
    if port <= 0:
        raise InvalidField(f"invalid default port {port!r} for protocol {name!r}")
    logger.debug("Registering protocol %s (port %d, secure=%s)", name, port, secure)
    _PROTOCOLS[name] = Protocol(port, secure=secure)


def secure_counterpart(protocol: str | None, secure: bool) -> str:
    """The protocol to switch to when turning TLS on or off.
    e.g. secure_counterpart("ws", True) == "wss", secure_counterpart("https", False) == "http"
    Protocols already in the requested state are kept; anything else falls back to http(s).
    """
    if protocol and is_secure(protocol) == secure:
        return protocol
    if secure:
        return _SECURE_COUNTERPARTS.get(protocol or "", "https")
    return _PLAIN_COUNTERPARTS.get(protocol or "", "http")
