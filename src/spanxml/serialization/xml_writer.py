"""Indented XML text output for borrowed documents.

Every node is written on its own line, indented by its depth. Element trees
are walked with an explicit stack, so arbitrarily deep documents can be
written. Names, attribute values and text are HTML-entity escaped, quotes
included.
"""

import html
import io
from typing import IO, List, Optional, Tuple, Union

from spanxml.shared.config import SpanXmlConfig, WriterConfig
from spanxml.shared.logging import get_logger
from spanxml.source.span import Span
from spanxml.tree.document import Document
from spanxml.tree.nodes import (
    CdataNode,
    CommentNode,
    DeclarationNode,
    DtdNode,
    EntityDefinitionKind,
    ExternalId,
    ExternalIdKind,
    Node,
    NodeName,
    ProcessingInstructionNode,
    TagNode,
    TextNode,
)

# A pending unit of output: a node to open, or the end tag of an element
_Task = Tuple[bool, Union[Node, TagNode], int]


def _escape(value: Union[Span, NodeName, str]) -> str:
    return html.escape(str(value), quote=True)


class XMLWriter:
    """Writes documents as indented XML text to a text stream."""

    def __init__(
        self,
        stream: IO[str],
        indent: Optional[str] = None,
        config: Optional[WriterConfig] = None
    ) -> None:
        """Initialize writer.

        Args:
            stream: Text stream receiving the output
            indent: Indentation unit repeated once per depth; overrides
                ``config.indent`` when given
            config: Writer settings, a tab indent by default
        """
        self.stream = stream
        config = config or WriterConfig()
        if indent is not None:
            config = WriterConfig(indent)
        self.indent = config.indent

    def write_document(self, document: Document) -> None:
        if document.declaration is not None:
            self._write_declaration(document.declaration)
        for item in document.prolog:
            self.write_node(item, 0)
        self.write_node(document.root, 0)
        for item in document.epilog:
            self.write_node(item, 0)

    def write_node(self, node: Node, depth: int) -> None:
        """Write ``node`` and, for elements, its whole subtree."""
        tasks: List[_Task] = [(False, node, depth)]
        while tasks:
            closing, current, level = tasks.pop()
            if closing:
                self._line(level, f"</{_escape(current.name)}>")
            elif isinstance(current, TagNode):
                self._write_start_tag(current, level)
                if current.children:
                    tasks.append((True, current, level))
                    for child in reversed(current.children):
                        tasks.append((False, child, level + 1))
            else:
                self._write_leaf(current, level)

    def _line(self, depth: int, content: str) -> None:
        self.stream.write(f"{self.indent * depth}{content}\n")

    def _write_declaration(self, declaration: DeclarationNode) -> None:
        parts = [f'<?xml version="{_escape(declaration.version)}"']
        if declaration.encoding is not None:
            parts.append(f' encoding="{_escape(declaration.encoding)}"')
        if declaration.standalone is not None:
            standalone = "true" if declaration.standalone else "false"
            parts.append(f' standalone="{standalone}"')
        parts.append(" ?>")
        self._line(0, "".join(parts))

    def _write_start_tag(self, tag: TagNode, depth: int) -> None:
        parts = [f"<{_escape(tag.name)}"]
        for attribute in tag.attributes:
            parts.append(f' {_escape(attribute.name)}="{_escape(attribute.value)}"')
        parts.append(">" if tag.children else " />")
        self._line(depth, "".join(parts))

    def _write_leaf(self, node: Node, depth: int) -> None:
        if isinstance(node, TextNode):
            self._line(depth, _escape(node.text))
        elif isinstance(node, CommentNode):
            self._line(depth, f"<!--{_escape(node.text)}-->")
        elif isinstance(node, CdataNode):
            self._line(depth, f"<![CDATA[{_escape(node.text)}]]>")
        elif isinstance(node, ProcessingInstructionNode):
            content = f" {_escape(node.content)}" if node.content is not None else ""
            self._line(depth, f"<?{_escape(node.target)}{content}?>")
        elif isinstance(node, DtdNode):
            self._write_dtd(node, depth)
        else:
            raise TypeError(f"Cannot write node of type {type(node).__name__}")

    def _write_dtd(self, dtd: DtdNode, depth: int) -> None:
        head = f"{self.indent * depth}<!DOCTYPE {_escape(dtd.name)}"
        if dtd.external_id is not None:
            head += _external_id(dtd.external_id)
        self.stream.write(head)

        if dtd.entities:
            self.stream.write(" [\n")
            for entity in dtd.entities:
                definition = entity.definition
                if definition.kind is EntityDefinitionKind.ENTITY_VALUE:
                    body = f' "{_escape(definition.value)}"'
                else:
                    body = _external_id(definition.external_id)
                self._line(depth + 1, f"<!ENTITY {_escape(entity.name)}{body}>")
            self.stream.write("]")
        self.stream.write(">\n")


def _external_id(external_id: ExternalId) -> str:
    system = _escape(external_id.system)
    if external_id.kind is ExternalIdKind.PUBLIC:
        return f' PUBLIC "{_escape(external_id.public)}" "{system}"'
    return f' SYSTEM "{system}"'


def write_xml(
    stream: IO[str],
    document: Document,
    indent: Optional[str] = None,
    config: Optional[SpanXmlConfig] = None
) -> None:
    """Write ``document`` as indented XML text to ``stream``.

    Args:
        stream: Text stream receiving the output
        document: Document to write
        indent: Indentation unit; defaults to ``config.writer.indent``
        config: Optional configuration for the writer and its logging
    """
    config = config or SpanXmlConfig()
    logger = get_logger(__name__, component="xml_writer", config=config.global_)

    XMLWriter(stream, indent, config.writer).write_document(document)
    logger.debug("Wrote document", extra={"root": str(document.root.name)})


def to_xml(
    document: Document,
    indent: Optional[str] = None,
    config: Optional[SpanXmlConfig] = None
) -> str:
    """Render ``document`` as an indented XML string."""
    buffer = io.StringIO()
    write_xml(buffer, document, indent, config)
    return buffer.getvalue()
