"""Public parsing, encoding and integration API.

Key Components:
    parse / parse_file: Strict parsing that raises XmlError
    parse_string: Never-fail parsing returning a ParseResult
    encode / decode / decode_owned: Binary round trips
    get_adapter: Conversion to and from lxml and ElementTree
"""

from .adapters import (
    AdapterMetadata,
    AdapterRegistry,
    ConversionResult,
    ElementTreeAdapter,
    IntegrationAdapter,
    LxmlAdapter,
    get_adapter,
    list_available_adapters,
    register_adapter,
)
from .parser import decode, decode_owned, encode, parse, parse_file, parse_string

__all__ = [
    # Parsing
    "parse",
    "parse_file",
    "parse_string",

    # Binary format
    "decode",
    "decode_owned",
    "encode",

    # Adapters
    "AdapterMetadata",
    "AdapterRegistry",
    "ConversionResult",
    "ElementTreeAdapter",
    "IntegrationAdapter",
    "LxmlAdapter",
    "get_adapter",
    "list_available_adapters",
    "register_adapter",
]
