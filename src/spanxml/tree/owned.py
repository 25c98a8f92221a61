"""Owned document tree nodes holding plain strings.

Owned nodes carry no position metadata and do not depend on any source text
or arena, so they can be built by hand, mutated freely and kept around after
the source is gone. ``borrowed()`` turns them back into span-based nodes whose
spans sit at offset 0.
"""

from dataclasses import dataclass, field
from typing import ClassVar, Iterator, List, Optional, Union

from spanxml.source.span import Span
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
    NodeAttribute,
    NodeKind,
    NodeName,
    ProcessingInstructionNode,
    TagNode,
    TextNode,
    tags_equal,
)


def _span(text: Optional[str]) -> Optional[Span]:
    return Span(text) if text is not None else None


@dataclass
class OwnedNodeName:
    """An owned ``prefix:local`` name."""

    local: str
    prefix: Optional[str] = None

    @classmethod
    def parse(cls, qualified: str) -> "OwnedNodeName":
        """Split ``prefix:local`` on its first colon."""
        prefix, sep, local = qualified.partition(":")
        if sep and prefix and local:
            return cls(local, prefix)
        return cls(qualified)

    def equals(self, prefix: Optional[str], local: str) -> bool:
        return self.prefix == prefix and self.local == local

    def borrowed(self) -> NodeName:
        return NodeName(Span(self.local), _span(self.prefix))

    def __str__(self) -> str:
        if self.prefix is not None:
            return f"{self.prefix}:{self.local}"
        return self.local


@dataclass
class OwnedNodeAttribute:
    name: OwnedNodeName
    value: str

    def borrowed(self) -> NodeAttribute:
        return NodeAttribute(Span(), self.name.borrowed(), Span(self.value))


@dataclass
class OwnedTextNode:
    kind: ClassVar[NodeKind] = NodeKind.TEXT

    text: str

    def borrowed(self) -> TextNode:
        return TextNode(Span(), Span(self.text))


@dataclass
class OwnedCommentNode:
    kind: ClassVar[NodeKind] = NodeKind.COMMENT

    text: str

    def borrowed(self) -> CommentNode:
        return CommentNode(Span(), Span(self.text))


@dataclass
class OwnedCdataNode:
    kind: ClassVar[NodeKind] = NodeKind.CDATA

    text: str

    def borrowed(self) -> CdataNode:
        return CdataNode(Span(), Span(self.text))


@dataclass
class OwnedProcessingInstructionNode:
    kind: ClassVar[NodeKind] = NodeKind.PROCESSING_INSTRUCTION

    target: str
    content: Optional[str] = None

    def borrowed(self) -> ProcessingInstructionNode:
        return ProcessingInstructionNode(Span(), Span(self.target), _span(self.content))


@dataclass
class OwnedExternalId:
    """Owned ``SYSTEM``/``PUBLIC`` identifier."""

    kind: ExternalIdKind
    system: str
    public: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate that the payload matches the variant."""
        if self.kind is ExternalIdKind.PUBLIC and self.public is None:
            raise ValueError("PUBLIC external id requires a public identifier")
        if self.kind is ExternalIdKind.SYSTEM and self.public is not None:
            raise ValueError("SYSTEM external id cannot carry a public identifier")

    @classmethod
    def system_id(cls, system: str) -> "OwnedExternalId":
        return cls(ExternalIdKind.SYSTEM, system)

    @classmethod
    def public_id(cls, public: str, system: str) -> "OwnedExternalId":
        return cls(ExternalIdKind.PUBLIC, system, public)

    def borrowed(self) -> ExternalId:
        return ExternalId(self.kind, Span(self.system), _span(self.public))


@dataclass
class OwnedEntityDefinition:
    """Owned right-hand side of an entity declaration."""

    kind: EntityDefinitionKind
    value: Optional[str] = None
    external_id: Optional[OwnedExternalId] = None

    def __post_init__(self) -> None:
        """Validate that exactly the payload for the variant is present."""
        if self.kind is EntityDefinitionKind.ENTITY_VALUE:
            if self.value is None or self.external_id is not None:
                raise ValueError("ENTITY_VALUE definition requires only a value")
        elif self.external_id is None or self.value is not None:
            raise ValueError("EXTERNAL_ID definition requires only an external id")

    @classmethod
    def entity_value(cls, value: str) -> "OwnedEntityDefinition":
        return cls(EntityDefinitionKind.ENTITY_VALUE, value=value)

    @classmethod
    def external(cls, external_id: OwnedExternalId) -> "OwnedEntityDefinition":
        return cls(EntityDefinitionKind.EXTERNAL_ID, external_id=external_id)

    def borrowed(self) -> EntityDefinition:
        if self.external_id is not None:
            return EntityDefinition.external(self.external_id.borrowed())
        return EntityDefinition.entity_value(Span(self.value))


@dataclass
class OwnedDtdEntity:
    name: str
    definition: OwnedEntityDefinition

    def borrowed(self) -> DtdEntity:
        return DtdEntity(Span(), Span(self.name), self.definition.borrowed())


@dataclass
class OwnedDtdNode:
    kind: ClassVar[NodeKind] = NodeKind.DOCUMENT_TYPE

    name: str
    external_id: Optional[OwnedExternalId] = None
    entities: List[OwnedDtdEntity] = field(default_factory=list)

    def borrowed(self) -> DtdNode:
        return DtdNode(
            Span(),
            Span(self.name),
            self.external_id.borrowed() if self.external_id is not None else None,
            [entity.borrowed() for entity in self.entities],
        )


@dataclass
class OwnedDeclarationNode:
    version: str = "1.0"
    encoding: Optional[str] = None
    standalone: Optional[bool] = None

    def borrowed(self) -> DeclarationNode:
        return DeclarationNode(
            Span(), Span(self.version), _span(self.encoding), self.standalone
        )


@dataclass(eq=False)
class OwnedTagNode:
    """An owned element with plain-string name, attributes and children."""

    kind: ClassVar[NodeKind] = NodeKind.TAG

    name: OwnedNodeName
    attributes: List[OwnedNodeAttribute] = field(default_factory=list)
    children: List["OwnedNode"] = field(default_factory=list)

    def get_attribute(
        self, local: str, prefix: Optional[str] = None
    ) -> Optional[OwnedNodeAttribute]:
        """Find an attribute by name; the last occurrence wins."""
        for attribute in reversed(self.attributes):
            if attribute.name.equals(prefix, local):
                return attribute
        return None

    def set_attribute(self, local: str, value: str, prefix: Optional[str] = None) -> None:
        """Overwrite the effective attribute value, or append a new attribute."""
        attribute = self.get_attribute(local, prefix)
        if attribute is not None:
            attribute.value = value
        else:
            self.attributes.append(
                OwnedNodeAttribute(OwnedNodeName(local, prefix), value)
            )

    def descendants(self) -> Iterator["OwnedNode"]:
        """Yield every node below this tag in document order."""
        stack = [iter(self.children)]
        while stack:
            child = next(stack[-1], None)
            if child is None:
                stack.pop()
                continue
            yield child
            if isinstance(child, OwnedTagNode):
                stack.append(iter(child.children))

    def shallow_key(self) -> tuple:
        return (self.name, list(self.attributes))

    def borrowed(self) -> TagNode:
        """Convert to a borrowed tag tree with spans at offset 0."""
        def shallow(tag: OwnedTagNode) -> TagNode:
            name = tag.name.borrowed()
            return TagNode(Span(), name, [a.borrowed() for a in tag.attributes])

        root = shallow(self)
        stack = [(self, root)]
        while stack:
            tag, borrowed = stack.pop()
            for child in tag.children:
                if isinstance(child, OwnedTagNode):
                    borrowed_child = shallow(child)
                    stack.append((child, borrowed_child))
                else:
                    borrowed_child = child.borrowed()
                borrowed.children.append(borrowed_child)
        return root

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OwnedTagNode):
            return NotImplemented
        return tags_equal(self, other)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"OwnedTagNode(name={str(self.name)!r}, "
            f"attributes={len(self.attributes)}, children={len(self.children)})"
        )


OwnedNode = Union[
    OwnedTagNode,
    OwnedTextNode,
    OwnedCommentNode,
    OwnedProcessingInstructionNode,
    OwnedDtdNode,
    OwnedCdataNode,
]
