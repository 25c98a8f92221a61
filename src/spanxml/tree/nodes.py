"""Borrowed document tree nodes.

Every string in a borrowed node is a :class:`~spanxml.source.span.Span`
pointing into the parsed source (or a decoder arena), so nodes know exactly
where they came from. :mod:`spanxml.tree.owned` mirrors these classes with
plain strings and no positions.

Tag trees can be arbitrarily deep, so every whole-tree operation here walks
an explicit stack instead of recursing.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, Any, ClassVar, Iterator, List, Optional, Union

from spanxml.source.span import Span

if TYPE_CHECKING:
    from spanxml.source.arena import SourceArena
    from spanxml.tree.owned import (
        OwnedCdataNode,
        OwnedCommentNode,
        OwnedDeclarationNode,
        OwnedDtdEntity,
        OwnedDtdNode,
        OwnedEntityDefinition,
        OwnedExternalId,
        OwnedNodeAttribute,
        OwnedNodeName,
        OwnedProcessingInstructionNode,
        OwnedTagNode,
        OwnedTextNode,
    )


class NodeKind(IntEnum):
    """Node variants; the values are the binary format discriminants."""

    TAG = 0
    TEXT = 1
    COMMENT = 2
    PROCESSING_INSTRUCTION = 3
    DOCUMENT_TYPE = 4
    CDATA = 5


class ExternalIdKind(IntEnum):
    """External identifier variants; values are binary discriminants."""

    SYSTEM = 0
    PUBLIC = 1


class EntityDefinitionKind(IntEnum):
    """Entity definition variants; values are binary discriminants."""

    ENTITY_VALUE = 0
    EXTERNAL_ID = 1


def tags_equal(left: Any, right: Any) -> bool:
    """Compare two tag trees without recursion.

    Works for both the borrowed and owned families: tags are compared on
    everything except their children, and children pairwise.
    """
    stack = [(left, right)]
    while stack:
        a, b = stack.pop()
        if a.shallow_key() != b.shallow_key() or len(a.children) != len(b.children):
            return False
        for x, y in zip(a.children, b.children):
            if type(x) is not type(y):
                return False
            if hasattr(x, "children"):
                stack.append((x, y))
            elif x != y:
                return False
    return True


def _span_text(span: Optional[Span]) -> Optional[str]:
    return span.text if span is not None else None


def _strip(span: Optional[Span]) -> None:
    if span is not None:
        span.strip_offset()


@dataclass(eq=False)
class NodeName:
    """The name of a tag or attribute: ``prefix:local``.

    Two names are equal when their texts match; positions are ignored.
    """

    local: Span
    prefix: Optional[Span] = None

    @classmethod
    def from_unallocated(
        cls, arena: "SourceArena", prefix: Optional[str], local: str
    ) -> "NodeName":
        """Create a name whose strings are allocated in ``arena``."""
        return cls(
            Span(arena.alloc(local)),
            Span(arena.alloc(prefix)) if prefix is not None else None,
        )

    def equals(self, prefix: Optional[str], local: str) -> bool:
        """Compare with a prefix and local name."""
        return _span_text(self.prefix) == prefix and self.local.text == local

    def to_owned(self) -> "OwnedNodeName":
        from spanxml.tree.owned import OwnedNodeName

        return OwnedNodeName(self.local.text, _span_text(self.prefix))

    def strip_metadata(self) -> None:
        _strip(self.prefix)
        self.local.strip_offset()

    def __eq__(self, other: object) -> bool:
        if isinstance(other, NodeName):
            return self.equals(_span_text(other.prefix), other.local.text)
        if isinstance(other, str):
            return str(self) == other
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        if self.prefix is not None:
            return f"{self.prefix.text}:{self.local.text}"
        return self.local.text


@dataclass
class NodeAttribute:
    """An attribute of a tag: ``name="value"``."""

    span: Span
    name: NodeName
    value: Span

    @classmethod
    def from_unallocated(
        cls, arena: "SourceArena", prefix: Optional[str], local: str, value: str
    ) -> "NodeAttribute":
        """Create an attribute whose strings are allocated in ``arena``."""
        return cls(
            Span(), NodeName.from_unallocated(arena, prefix, local), Span(arena.alloc(value))
        )

    def to_owned(self) -> "OwnedNodeAttribute":
        from spanxml.tree.owned import OwnedNodeAttribute

        return OwnedNodeAttribute(self.name.to_owned(), self.value.text)

    def strip_metadata(self) -> None:
        self.span.strip_offset()
        self.name.strip_metadata()
        self.value.strip_offset()


@dataclass
class TextNode:
    """Non-empty character data, trimmed of surrounding whitespace."""

    kind: ClassVar[NodeKind] = NodeKind.TEXT

    span: Span
    text: Span

    def to_owned(self) -> "OwnedTextNode":
        from spanxml.tree.owned import OwnedTextNode

        return OwnedTextNode(self.text.text)

    def strip_metadata(self) -> None:
        self.span.strip_offset()
        self.text.strip_offset()


@dataclass
class CommentNode:
    """A comment: ``<!--text-->``."""

    kind: ClassVar[NodeKind] = NodeKind.COMMENT

    span: Span
    text: Span

    def to_owned(self) -> "OwnedCommentNode":
        from spanxml.tree.owned import OwnedCommentNode

        return OwnedCommentNode(self.text.text)

    def strip_metadata(self) -> None:
        self.span.strip_offset()
        self.text.strip_offset()


@dataclass
class CdataNode:
    """A CDATA section: ``<![CDATA[text]]>``."""

    kind: ClassVar[NodeKind] = NodeKind.CDATA

    span: Span
    text: Span

    def to_owned(self) -> "OwnedCdataNode":
        from spanxml.tree.owned import OwnedCdataNode

        return OwnedCdataNode(self.text.text)

    def strip_metadata(self) -> None:
        self.span.strip_offset()
        self.text.strip_offset()


@dataclass
class ProcessingInstructionNode:
    """A processing instruction: ``<?target content?>``."""

    kind: ClassVar[NodeKind] = NodeKind.PROCESSING_INSTRUCTION

    span: Span
    target: Span
    content: Optional[Span] = None

    def to_owned(self) -> "OwnedProcessingInstructionNode":
        from spanxml.tree.owned import OwnedProcessingInstructionNode

        return OwnedProcessingInstructionNode(self.target.text, _span_text(self.content))

    def strip_metadata(self) -> None:
        self.span.strip_offset()
        self.target.strip_offset()
        _strip(self.content)


@dataclass
class ExternalId:
    """A ``SYSTEM "uri"`` or ``PUBLIC "id" "uri"`` identifier."""

    kind: ExternalIdKind
    system: Span
    public: Optional[Span] = None

    def __post_init__(self) -> None:
        """Validate that the payload matches the variant."""
        if self.kind is ExternalIdKind.PUBLIC and self.public is None:
            raise ValueError("PUBLIC external id requires a public identifier")
        if self.kind is ExternalIdKind.SYSTEM and self.public is not None:
            raise ValueError("SYSTEM external id cannot carry a public identifier")

    @classmethod
    def system_id(cls, system: Span) -> "ExternalId":
        return cls(ExternalIdKind.SYSTEM, system)

    @classmethod
    def public_id(cls, public: Span, system: Span) -> "ExternalId":
        return cls(ExternalIdKind.PUBLIC, system, public)

    def to_owned(self) -> "OwnedExternalId":
        from spanxml.tree.owned import OwnedExternalId

        return OwnedExternalId(self.kind, self.system.text, _span_text(self.public))

    def strip_metadata(self) -> None:
        self.system.strip_offset()
        _strip(self.public)


@dataclass
class EntityDefinition:
    """The right-hand side of an ``<!ENTITY>`` declaration."""

    kind: EntityDefinitionKind
    value: Optional[Span] = None
    external_id: Optional[ExternalId] = None

    def __post_init__(self) -> None:
        """Validate that exactly the payload for the variant is present."""
        if self.kind is EntityDefinitionKind.ENTITY_VALUE:
            if self.value is None or self.external_id is not None:
                raise ValueError("ENTITY_VALUE definition requires only a value")
        elif self.external_id is None or self.value is not None:
            raise ValueError("EXTERNAL_ID definition requires only an external id")

    @classmethod
    def entity_value(cls, value: Span) -> "EntityDefinition":
        return cls(EntityDefinitionKind.ENTITY_VALUE, value=value)

    @classmethod
    def external(cls, external_id: ExternalId) -> "EntityDefinition":
        return cls(EntityDefinitionKind.EXTERNAL_ID, external_id=external_id)

    def to_owned(self) -> "OwnedEntityDefinition":
        from spanxml.tree.owned import OwnedEntityDefinition

        if self.external_id is not None:
            return OwnedEntityDefinition.external(self.external_id.to_owned())
        return OwnedEntityDefinition.entity_value(self.value.text)

    def strip_metadata(self) -> None:
        _strip(self.value)
        if self.external_id is not None:
            self.external_id.strip_metadata()


@dataclass
class DtdEntity:
    """An entity declared in a DTD internal subset."""

    span: Span
    name: Span
    definition: EntityDefinition

    def to_owned(self) -> "OwnedDtdEntity":
        from spanxml.tree.owned import OwnedDtdEntity

        return OwnedDtdEntity(self.name.text, self.definition.to_owned())

    def strip_metadata(self) -> None:
        self.span.strip_offset()
        self.name.strip_offset()
        self.definition.strip_metadata()


@dataclass
class DtdNode:
    """A ``<!DOCTYPE>`` declaration with its entity declarations."""

    kind: ClassVar[NodeKind] = NodeKind.DOCUMENT_TYPE

    span: Span
    name: Span
    external_id: Optional[ExternalId] = None
    entities: List[DtdEntity] = field(default_factory=list)

    def to_owned(self) -> "OwnedDtdNode":
        from spanxml.tree.owned import OwnedDtdNode

        return OwnedDtdNode(
            self.name.text,
            self.external_id.to_owned() if self.external_id is not None else None,
            [entity.to_owned() for entity in self.entities],
        )

    def strip_metadata(self) -> None:
        self.span.strip_offset()
        self.name.strip_offset()
        if self.external_id is not None:
            self.external_id.strip_metadata()
        for entity in self.entities:
            entity.strip_metadata()


@dataclass
class DeclarationNode:
    """The ``<?xml version="..." encoding="..." standalone="..."?>`` header."""

    span: Span
    version: Span
    encoding: Optional[Span] = None
    standalone: Optional[bool] = None

    def to_owned(self) -> "OwnedDeclarationNode":
        from spanxml.tree.owned import OwnedDeclarationNode

        return OwnedDeclarationNode(
            self.version.text, _span_text(self.encoding), self.standalone
        )

    def strip_metadata(self) -> None:
        self.span.strip_offset()
        self.version.strip_offset()
        _strip(self.encoding)


@dataclass(eq=False)
class TagNode:
    """An element: its name, attributes and children.

    The span covers the whole element, from ``<`` of the start tag to the
    ``>`` of the end tag (or of ``/>``).
    """

    kind: ClassVar[NodeKind] = NodeKind.TAG

    span: Span
    name: NodeName
    attributes: List[NodeAttribute] = field(default_factory=list)
    children: List["Node"] = field(default_factory=list)

    @classmethod
    def from_unallocated(
        cls, arena: "SourceArena", prefix: Optional[str], local: str
    ) -> "TagNode":
        """Create an empty element whose name is allocated in ``arena``."""
        return cls(Span(), NodeName.from_unallocated(arena, prefix, local))

    def get_attribute(
        self, local: str, prefix: Optional[str] = None
    ) -> Optional[NodeAttribute]:
        """Find an attribute by name.

        Attributes are searched from the end, so when a name is repeated the
        last occurrence wins.
        """
        for attribute in reversed(self.attributes):
            if attribute.name.equals(prefix, local):
                return attribute
        return None

    def descendants(self) -> Iterator["Node"]:
        """Yield every node below this tag in document order."""
        stack = [iter(self.children)]
        while stack:
            child = next(stack[-1], None)
            if child is None:
                stack.pop()
                continue
            yield child
            if isinstance(child, TagNode):
                stack.append(iter(child.children))

    def shallow_key(self) -> tuple:
        return (
            self.span,
            self.name,
            [(a.span, a.name, a.value) for a in self.attributes],
        )

    def to_owned(self) -> "OwnedTagNode":
        """Copy the tag tree into plain strings, dropping positions."""
        from spanxml.tree.owned import OwnedTagNode

        def shallow(tag: TagNode) -> OwnedTagNode:
            return OwnedTagNode(
                tag.name.to_owned(), [a.to_owned() for a in tag.attributes]
            )

        root = shallow(self)
        stack = [(self, root)]
        while stack:
            tag, owned = stack.pop()
            for child in tag.children:
                if isinstance(child, TagNode):
                    owned_child = shallow(child)
                    stack.append((child, owned_child))
                else:
                    owned_child = child.to_owned()
                owned.children.append(owned_child)
        return root

    def strip_metadata(self) -> None:
        """Move every span in the tree to offset 0, keeping the text."""
        stack = [self]
        while stack:
            tag = stack.pop()
            tag.span.strip_offset()
            tag.name.strip_metadata()
            for attribute in tag.attributes:
                attribute.strip_metadata()
            for child in tag.children:
                if isinstance(child, TagNode):
                    stack.append(child)
                else:
                    child.strip_metadata()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TagNode):
            return NotImplemented
        return tags_equal(self, other)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"TagNode(name={str(self.name)!r}, span_start={self.span.start}, "
            f"attributes={len(self.attributes)}, children={len(self.children)})"
        )


Node = Union[
    TagNode, TextNode, CommentNode, ProcessingInstructionNode, DtdNode, CdataNode
]
