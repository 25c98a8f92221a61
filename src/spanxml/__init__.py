"""Span-preserving XML parser.

Parses XML into trees whose strings are spans into the source text, so every
node knows where it came from. Trees convert to owned copies, encode to a
compact binary format (with inline strings or a shared source header) and
render back to indented XML.

Progressive API Disclosure:
- Level 1: Simple functions - parse(), parse_string(), parse_file()
- Level 2: Documents - Document.parse(), to_owned(), to_bin(), to_xml()
- Level 3: Building blocks - XMLTokenizer, XMLTreeBuilder, Encoder/Decoder
"""

__version__ = "0.1.0"
__author__ = "spanxml developers"

# Level 1: Simple functions
from .api import decode, decode_owned, encode, parse, parse_file, parse_string

# Configuration and errors
from .shared import (
    BinDecodeError,
    BinEncodeError,
    ParseResult,
    SpanXmlConfig,
    SpanXmlError,
    XmlError,
    XmlErrorKind,
)

# Level 2: Documents and source handling
from .source import SourceArena, Span
from .tree import Document, OwnedDocument

__all__ = [
    # Version and metadata
    "__author__",
    "__version__",

    # Level 1: Simple functions
    "parse",
    "parse_string",
    "parse_file",
    "encode",
    "decode",
    "decode_owned",

    # Documents and source handling
    "Document",
    "OwnedDocument",
    "SourceArena",
    "Span",

    # Results, configuration and errors
    "ParseResult",
    "SpanXmlConfig",
    "SpanXmlError",
    "XmlError",
    "XmlErrorKind",
    "BinDecodeError",
    "BinEncodeError",
]
