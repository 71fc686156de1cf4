__version__ = "0.1"

from .errors import FormattingError, InvalidField, InvalidStructure, NuriError, TypeConflict
from .protocols import default_port, is_secure, register_protocol
from .query import QueryToken, QueryTree, decode, encode, parse_query, parse_tokens, serialize_query, serialize_tokens, split_query
from .uri import URI, build, defaults, merge, parse, update
