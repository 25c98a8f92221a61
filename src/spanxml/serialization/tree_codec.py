"""Binary encoding of whole documents.

Document layout after the stream magic (see :mod:`.binary` for primitives):

- declaration: optional(span, version span, optional(encoding span),
  optional(bool standalone))
- prolog: sequence of tagged nodes, never tags
- root: tag payload
- epilog: sequence of tagged nodes, never tags

A tagged node is a ``u8`` :class:`NodeKind` followed by its payload. A tag
payload is its span, name, attributes and the sequence of its tagged
children. Tag trees are walked with explicit stacks in both directions.
"""

from typing import Iterator, List, Optional

from spanxml.shared.config import SpanXmlConfig
from spanxml.shared.errors import BinDecodeError, BinDecodeErrorKind, BinEncodeError
from spanxml.shared.logging import get_logger
from spanxml.source.arena import SourceArena
from spanxml.serialization.binary import Decoder, Encoder
from spanxml.tree.document import Document, OwnedDocument
from spanxml.tree.nodes import (
    CdataNode,
    CommentNode,
    DeclarationNode,
    DtdEntity,
    DtdNode,
    EntityDefinition,
    EntityDefinitionKind,
    ExternalId,
    ExternalIdKind,
    Node,
    NodeAttribute,
    NodeKind,
    NodeName,
    ProcessingInstructionNode,
    TagNode,
    TextNode,
)

# Encoding

def encode_document(
    document: Document,
    source: Optional[str] = None,
    config: Optional[SpanXmlConfig] = None
) -> bytes:
    """Encode ``document``; header mode when ``source`` is given.

    Raises:
        BinEncodeError: If the prolog or epilog holds a tag, or header spans
            are verified and one no longer matches ``source``
    """
    config = config or SpanXmlConfig()
    logger = get_logger(__name__, component="tree_codec", config=config.global_)
    encoder = Encoder(source, config.binary)

    with logger.timed(
        "document encoding", {"string_format": encoder.string_format.name}
    ) as details:
        encoder.write_magic()
        _write_document(encoder, document)
        data = encoder.getvalue()
        details["size_bytes"] = len(data)

    return data


def encode_owned(document: OwnedDocument, config: Optional[SpanXmlConfig] = None) -> bytes:
    """Encode an owned document with inline strings."""
    return encode_document(document.borrowed(), None, config)


def _write_document(encoder: Encoder, document: Document) -> None:
    encoder.write_optional(document.declaration, lambda d: _write_declaration(encoder, d))
    encoder.write_sequence(document.prolog, lambda n: _write_misc_node(encoder, n, "prolog"))
    _write_tag(encoder, document.root)
    encoder.write_sequence(document.epilog, lambda n: _write_misc_node(encoder, n, "epilog"))


def _write_declaration(encoder: Encoder, declaration: DeclarationNode) -> None:
    encoder.write_span(declaration.span)
    encoder.write_span(declaration.version)
    encoder.write_optional(declaration.encoding, encoder.write_span)
    encoder.write_optional(declaration.standalone, encoder.write_bool)


def _write_misc_node(encoder: Encoder, node: Node, section: str) -> None:
    if isinstance(node, TagNode):
        raise BinEncodeError(f"Element <{node.name}> cannot be encoded in the {section}")
    encoder.write_u8(node.kind)
    _write_leaf(encoder, node)


def _write_tag(encoder: Encoder, root: TagNode) -> None:
    _write_tag_head(encoder, root)
    stack: List[Iterator[Node]] = [iter(root.children)]
    while stack:
        child = next(stack[-1], None)
        if child is None:
            stack.pop()
            continue

        encoder.write_u8(child.kind)
        if isinstance(child, TagNode):
            _write_tag_head(encoder, child)
            stack.append(iter(child.children))
        else:
            _write_leaf(encoder, child)


def _write_tag_head(encoder: Encoder, tag: TagNode) -> None:
    """Write everything of a tag up to and including its child count."""
    encoder.write_span(tag.span)
    _write_name(encoder, tag.name)
    encoder.write_sequence(tag.attributes, lambda a: _write_attribute(encoder, a))
    encoder.write_usize(len(tag.children))


def _write_name(encoder: Encoder, name: NodeName) -> None:
    encoder.write_optional(name.prefix, encoder.write_span)
    encoder.write_span(name.local)


def _write_attribute(encoder: Encoder, attribute: NodeAttribute) -> None:
    encoder.write_span(attribute.span)
    _write_name(encoder, attribute.name)
    encoder.write_span(attribute.value)


def _write_leaf(encoder: Encoder, node: Node) -> None:
    if isinstance(node, (TextNode, CommentNode, CdataNode)):
        encoder.write_span(node.span)
        encoder.write_span(node.text)
    elif isinstance(node, ProcessingInstructionNode):
        encoder.write_span(node.span)
        encoder.write_span(node.target)
        encoder.write_optional(node.content, encoder.write_span)
    elif isinstance(node, DtdNode):
        encoder.write_span(node.span)
        encoder.write_span(node.name)
        encoder.write_optional(node.external_id, lambda e: _write_external_id(encoder, e))
        encoder.write_sequence(node.entities, lambda e: _write_entity(encoder, e))
    else:
        raise TypeError(f"Cannot encode node of type {type(node).__name__}")


def _write_external_id(encoder: Encoder, external_id: ExternalId) -> None:
    encoder.write_u8(external_id.kind)
    if external_id.kind is ExternalIdKind.PUBLIC:
        encoder.write_span(external_id.public)
    encoder.write_span(external_id.system)


def _write_entity(encoder: Encoder, entity: DtdEntity) -> None:
    encoder.write_span(entity.span)
    encoder.write_span(entity.name)
    definition = entity.definition
    encoder.write_u8(definition.kind)
    if definition.kind is EntityDefinitionKind.ENTITY_VALUE:
        encoder.write_span(definition.value)
    else:
        _write_external_id(encoder, definition.external_id)


# Decoding

def decode_document(
    data: bytes,
    arena: Optional[SourceArena] = None,
    config: Optional[SpanXmlConfig] = None
) -> Document:
    """Decode a document from either string format.

    Decoding is all-or-nothing: any error aborts without a partial tree.

    Raises:
        BinDecodeError: If the data is truncated, corrupt or inconsistent
    """
    config = config or SpanXmlConfig()
    logger = get_logger(__name__, component="tree_codec", config=config.global_)
    decoder = Decoder(data, arena=arena, config=config.binary)

    with logger.timed("document decoding", {"size_bytes": len(data)}) as details:
        try:
            details["string_format"] = decoder.read_magic().name
            document = _read_document(decoder)
        except MemoryError as e:
            raise BinDecodeError(
                BinDecodeErrorKind.ALLOCATION, str(e) or "out of memory", decoder.cursor
            ) from e

    return document


def decode_owned(data: bytes, config: Optional[SpanXmlConfig] = None) -> OwnedDocument:
    """Decode a document and copy it into an owned document."""
    return decode_document(data, config=config).to_owned()


def _read_document(decoder: Decoder) -> Document:
    declaration = decoder.read_optional(lambda: _read_declaration(decoder))
    prolog = decoder.read_sequence(lambda: _read_misc_node(decoder, "prolog"))
    root = _read_tag(decoder)
    epilog = decoder.read_sequence(lambda: _read_misc_node(decoder, "epilog"))
    return Document(root, declaration=declaration, prolog=prolog, epilog=epilog)


def _read_declaration(decoder: Decoder) -> DeclarationNode:
    span = decoder.read_span()
    version = decoder.read_span()
    encoding = decoder.read_optional(decoder.read_span)
    standalone = decoder.read_optional(decoder.read_bool)
    return DeclarationNode(span, version, encoding, standalone)


def _read_misc_node(decoder: Decoder, section: str) -> Node:
    offset = decoder.cursor
    kind = decoder.read_enum(NodeKind)
    if kind is NodeKind.TAG:
        raise BinDecodeError(
            BinDecodeErrorKind.INVALID_ENUM_VARIANT,
            f"NodeKind value {kind.value} in the {section}",
            offset,
        )
    return _read_leaf(decoder, kind)


def _read_tag(decoder: Decoder) -> TagNode:
    max_depth = decoder.config.max_depth
    root, remaining = _read_tag_head(decoder)
    frames = [[root, remaining]]
    while frames:
        frame = frames[-1]
        if frame[1] == 0:
            frames.pop()
            continue
        frame[1] -= 1

        kind = decoder.read_enum(NodeKind)
        if kind is NodeKind.TAG:
            if max_depth is not None and len(frames) >= max_depth:
                raise BinDecodeError(
                    BinDecodeErrorKind.DEPTH_LIMIT_EXCEEDED,
                    f"limit is {max_depth}",
                    decoder.cursor,
                )
            tag, count = _read_tag_head(decoder)
            frame[0].children.append(tag)
            frames.append([tag, count])
        else:
            frame[0].children.append(_read_leaf(decoder, kind))
    return root


def _read_tag_head(decoder: Decoder) -> tuple:
    span = decoder.read_span()
    name = _read_name(decoder)
    attributes = decoder.read_sequence(lambda: _read_attribute(decoder))
    return TagNode(span, name, attributes), decoder.read_count()


def _read_name(decoder: Decoder) -> NodeName:
    prefix = decoder.read_optional(decoder.read_span)
    local = decoder.read_span()
    return NodeName(local, prefix)


def _read_attribute(decoder: Decoder) -> NodeAttribute:
    span = decoder.read_span()
    name = _read_name(decoder)
    value = decoder.read_span()
    return NodeAttribute(span, name, value)


def _read_leaf(decoder: Decoder, kind: NodeKind) -> Node:
    span = decoder.read_span()
    if kind is NodeKind.TEXT:
        return TextNode(span, decoder.read_span())
    if kind is NodeKind.COMMENT:
        return CommentNode(span, decoder.read_span())
    if kind is NodeKind.CDATA:
        return CdataNode(span, decoder.read_span())
    if kind is NodeKind.PROCESSING_INSTRUCTION:
        target = decoder.read_span()
        return ProcessingInstructionNode(span, target, decoder.read_optional(decoder.read_span))

    name = decoder.read_span()
    external_id = decoder.read_optional(lambda: _read_external_id(decoder))
    entities = decoder.read_sequence(lambda: _read_entity(decoder))
    return DtdNode(span, name, external_id, entities)


def _read_external_id(decoder: Decoder) -> ExternalId:
    kind = decoder.read_enum(ExternalIdKind)
    if kind is ExternalIdKind.PUBLIC:
        public = decoder.read_span()
        return ExternalId.public_id(public, decoder.read_span())
    return ExternalId.system_id(decoder.read_span())


def _read_entity(decoder: Decoder) -> DtdEntity:
    span = decoder.read_span()
    name = decoder.read_span()
    kind = decoder.read_enum(EntityDefinitionKind)
    if kind is EntityDefinitionKind.ENTITY_VALUE:
        definition = EntityDefinition.entity_value(decoder.read_span())
    else:
        definition = EntityDefinition.external(_read_external_id(decoder))
    return DtdEntity(span, name, definition)
