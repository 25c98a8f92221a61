"""Document containers for the borrowed and owned tree families.

A document holds an optional XML declaration, the nodes before the root
element (prolog), the root element itself and the nodes after it (epilog).
Prolog and epilog hold comments, CDATA sections, processing instructions and
DOCTYPE declarations but never elements.
"""

from dataclasses import dataclass, field
from typing import IO, List, Optional

from spanxml.shared.config import SpanXmlConfig
from spanxml.shared.errors import ArenaAllocationError, ErrorContext, XmlError, XmlErrorKind
from spanxml.source.arena import SourceArena
from spanxml.source.span import Span
from spanxml.tree.nodes import DeclarationNode, Node, NodeName, TagNode
from spanxml.tree.owned import OwnedDeclarationNode, OwnedNode, OwnedNodeName, OwnedTagNode


def _allocate_source(source: str, arena: Optional[SourceArena]) -> str:
    if arena is None:
        return source
    try:
        return arena.alloc(source)
    except (ArenaAllocationError, MemoryError) as e:
        raise XmlError(XmlErrorKind.ALLOCATION, ErrorContext(""), str(e)) from e


@dataclass
class Document:
    """A parsed document whose strings are spans into the source.

    All strings in the tree refer to the parsed source text, or to a decoder
    arena for documents read from inline binary data.
    """

    root: TagNode
    declaration: Optional[DeclarationNode] = None
    prolog: List[Node] = field(default_factory=list)
    epilog: List[Node] = field(default_factory=list)

    @classmethod
    def parse(
        cls,
        source: str,
        arena: Optional[SourceArena] = None,
        config: Optional[SpanXmlConfig] = None,
        correlation_id: Optional[str] = None
    ) -> "Document":
        """Parse ``source`` into a document.

        The parser does not try to recover from malformed markup: mismatched
        tags and elements left open below the root are errors. A root element
        still open at end of input becomes the root.

        Args:
            source: Complete XML text
            arena: Optional arena the source is allocated into first
            config: Optional configuration; tree limits and logging settings
                apply here
            correlation_id: Optional correlation ID for request tracking

        Returns:
            The parsed Document

        Raises:
            XmlError: If the XML is malformed or the arena is exhausted

        Example:
            >>> doc = Document.parse('<a x="1"><b>text</b></a>')
            >>> str(doc.root.name)
            'a'
        """
        from spanxml.tokenization import XMLTokenizer
        from spanxml.tree.builder import XMLTreeBuilder

        config = config or SpanXmlConfig()
        source = _allocate_source(source, arena)
        builder = XMLTreeBuilder(config.tree, correlation_id, config.global_)
        return builder.build(XMLTokenizer(source), source)

    @classmethod
    def new_empty(cls, arena: SourceArena, root_name: str) -> "Document":
        """Create a document with a 1.0 declaration and an empty root element.

        The strings are allocated in ``arena``; they stay there for the arena's
        lifetime even if later replaced in the document.
        """
        owned_name = OwnedNodeName.parse(root_name)
        name = NodeName(
            Span(arena.alloc(owned_name.local)),
            Span(arena.alloc(owned_name.prefix)) if owned_name.prefix else None,
        )
        return cls(
            TagNode(Span(), name),
            declaration=DeclarationNode(Span(), Span(arena.alloc("1.0"))),
        )

    def to_bin(
        self,
        source: Optional[str] = None,
        config: Optional[SpanXmlConfig] = None
    ) -> bytes:
        """Encode the document to the binary format.

        With ``source`` the text is stored once as a header and spans are
        written as offsets into it. The document must not have been modified
        since it was parsed from ``source``; otherwise decoding yields
        corrupted text (or fails, if offsets fall outside the header). Set
        ``binary.verify_header_spans`` in ``config`` to detect this while
        encoding.
        Without ``source`` every span carries its own text.
        """
        from spanxml.serialization.tree_codec import encode_document

        return encode_document(self, source, config)

    @classmethod
    def from_bin(
        cls,
        data: bytes,
        arena: Optional[SourceArena] = None,
        config: Optional[SpanXmlConfig] = None
    ) -> "Document":
        """Decode a document written by :meth:`to_bin`.

        Raises:
            BinDecodeError: If the data is truncated, corrupt or inconsistent
        """
        from spanxml.serialization.tree_codec import decode_document

        return decode_document(data, arena, config)

    def to_xml(
        self,
        indent: Optional[str] = None,
        config: Optional[SpanXmlConfig] = None
    ) -> str:
        """Render the document as indented XML text.

        ``indent`` overrides ``config.writer.indent``.
        """
        from spanxml.serialization.xml_writer import to_xml

        return to_xml(self, indent, config)

    def write_xml(
        self,
        stream: IO[str],
        indent: Optional[str] = None,
        config: Optional[SpanXmlConfig] = None
    ) -> None:
        """Write the document as indented XML text to ``stream``."""
        from spanxml.serialization.xml_writer import write_xml

        write_xml(stream, self, indent, config)

    def strip_metadata(self) -> None:
        """Move every span to offset 0, keeping its text.

        Makes inline binary output independent of where the document came
        from. Applying it twice has the same effect as applying it once.
        """
        if self.declaration is not None:
            self.declaration.strip_metadata()
        for item in self.prolog:
            item.strip_metadata()
        self.root.strip_metadata()
        for item in self.epilog:
            item.strip_metadata()

    def to_owned(self) -> "OwnedDocument":
        """Copy the document into plain strings, dropping positions."""
        return OwnedDocument(
            self.root.to_owned(),
            declaration=(
                self.declaration.to_owned() if self.declaration is not None else None
            ),
            prolog=[item.to_owned() for item in self.prolog],
            epilog=[item.to_owned() for item in self.epilog],
        )


@dataclass
class OwnedDocument:
    """A document holding plain strings, independent of any source text."""

    root: OwnedTagNode
    declaration: Optional[OwnedDeclarationNode] = None
    prolog: List[OwnedNode] = field(default_factory=list)
    epilog: List[OwnedNode] = field(default_factory=list)

    @classmethod
    def parse(
        cls,
        source: str,
        config: Optional[SpanXmlConfig] = None,
        correlation_id: Optional[str] = None
    ) -> "OwnedDocument":
        """Parse ``source`` and copy the result into an owned document."""
        return Document.parse(source, config=config, correlation_id=correlation_id).to_owned()

    @classmethod
    def new_empty(cls, root_name: str) -> "OwnedDocument":
        """Create a document with a 1.0 declaration and an empty root element."""
        return cls(
            OwnedTagNode(OwnedNodeName.parse(root_name)),
            declaration=OwnedDeclarationNode("1.0"),
        )

    def borrowed(self) -> Document:
        """View the document as a borrowed document with spans at offset 0."""
        return Document(
            self.root.borrowed(),
            declaration=(
                self.declaration.borrowed() if self.declaration is not None else None
            ),
            prolog=[item.borrowed() for item in self.prolog],
            epilog=[item.borrowed() for item in self.epilog],
        )

    def to_bin(self, config: Optional[SpanXmlConfig] = None) -> bytes:
        """Encode the document to the binary format using inline strings."""
        from spanxml.serialization.tree_codec import encode_owned

        return encode_owned(self, config)

    @classmethod
    def from_bin(
        cls, data: bytes, config: Optional[SpanXmlConfig] = None
    ) -> "OwnedDocument":
        """Decode a document from either binary string format."""
        from spanxml.serialization.tree_codec import decode_owned

        return decode_owned(data, config)

    def to_xml(
        self,
        indent: Optional[str] = None,
        config: Optional[SpanXmlConfig] = None
    ) -> str:
        """Render the document as indented XML text."""
        return self.borrowed().to_xml(indent, config)

    def write_xml(
        self,
        stream: IO[str],
        indent: Optional[str] = None,
        config: Optional[SpanXmlConfig] = None
    ) -> None:
        """Write the document as indented XML text to ``stream``."""
        self.borrowed().write_xml(stream, indent, config)
