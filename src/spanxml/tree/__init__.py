"""Document trees for span-preserving XML processing.

Key Components:
    XMLTreeBuilder: State machine turning token streams into documents
    Document: Borrowed document whose strings are spans into the source
    OwnedDocument: Document holding plain strings, free to outlive its source
    TagNode / OwnedTagNode: Elements with names, attributes and children
"""

from .builder import BuilderState, XMLTreeBuilder
from .document import Document, OwnedDocument
from .dtd import parse_dtd
from .nodes import (
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
from .owned import (
    OwnedCdataNode,
    OwnedCommentNode,
    OwnedDeclarationNode,
    OwnedDtdEntity,
    OwnedDtdNode,
    OwnedEntityDefinition,
    OwnedExternalId,
    OwnedNode,
    OwnedNodeAttribute,
    OwnedNodeName,
    OwnedProcessingInstructionNode,
    OwnedTagNode,
    OwnedTextNode,
)

__all__ = [
    # Building
    "BuilderState",
    "XMLTreeBuilder",
    "parse_dtd",

    # Documents
    "Document",
    "OwnedDocument",

    # Borrowed nodes
    "CdataNode",
    "CommentNode",
    "DeclarationNode",
    "DtdEntity",
    "DtdNode",
    "EntityDefinition",
    "EntityDefinitionKind",
    "ExternalId",
    "ExternalIdKind",
    "Node",
    "NodeAttribute",
    "NodeKind",
    "NodeName",
    "ProcessingInstructionNode",
    "TagNode",
    "TextNode",

    # Owned nodes
    "OwnedCdataNode",
    "OwnedCommentNode",
    "OwnedDeclarationNode",
    "OwnedDtdEntity",
    "OwnedDtdNode",
    "OwnedEntityDefinition",
    "OwnedExternalId",
    "OwnedNode",
    "OwnedNodeAttribute",
    "OwnedNodeName",
    "OwnedProcessingInstructionNode",
    "OwnedTagNode",
    "OwnedTextNode",
]
