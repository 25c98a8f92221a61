"""Binary and text serialization of documents.

The binary format stores a document either with inline strings or with the
source text as a header and spans as offsets into it. The XML writer renders
documents back to indented text.
"""

from .binary import MAGIC_HEADER, MAGIC_INLINE, Decoder, Encoder
from .tree_codec import decode_document, decode_owned, encode_document, encode_owned
from .xml_writer import XMLWriter, to_xml, write_xml

__all__ = [
    "MAGIC_HEADER",
    "MAGIC_INLINE",
    "Decoder",
    "Encoder",
    "XMLWriter",
    "decode_document",
    "decode_owned",
    "encode_document",
    "encode_owned",
    "to_xml",
    "write_xml",
]
