"""Integration adapters for exchanging documents with other XML libraries.

Adapters convert documents into ``lxml.etree`` or ``xml.etree.ElementTree``
element trees and back. Namespace prefixes are resolved against ``xmlns``
declarations in scope, so converted elements carry Clark-notation
(``{uri}local``) names. Conversions never raise; failures are reported in
the returned :class:`ConversionResult`.
"""

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Type, Union

from spanxml.api.parser import parse
from spanxml.shared import (
    DiagnosticEntry,
    DiagnosticSeverity,
    ParseResult,
    XmlError,
    get_logger,
)
from spanxml.tree import (
    CdataNode,
    CommentNode,
    Document,
    NodeName,
    OwnedDocument,
    ProcessingInstructionNode,
    TagNode,
    TextNode,
)

XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"
MAX_RECORDED_TIMINGS = 1000

DocumentInput = Union[Document, OwnedDocument, ParseResult]


@dataclass
class AdapterMetadata:
    """Metadata about an integration adapter."""

    name: str
    version: str
    target_library: str
    description: str
    author: str = "spanxml"


@dataclass
class ConversionResult:
    """Result of a conversion operation."""

    success: bool
    converted_data: Any
    original_data: Any
    conversion_time_ms: float
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    diagnostics: List[DiagnosticEntry] = field(default_factory=list)


def _is_declaration(name: NodeName) -> bool:
    if name.prefix is None:
        return name.local.text == "xmlns"
    return name.prefix.text == "xmlns"


def _extend_scope(scope: Dict[str, str], tag: TagNode) -> Dict[str, str]:
    """Return the namespace bindings in effect inside ``tag``.

    The default namespace is bound under the empty prefix.
    """
    declared = {
        ("" if attribute.name.prefix is None else attribute.name.local.text): (
            attribute.value.text
        )
        for attribute in tag.attributes
        if _is_declaration(attribute.name)
    }
    if not declared:
        return scope
    extended = dict(scope)
    extended.update(declared)
    return extended


def _clark_name(name: NodeName, scope: Dict[str, str], is_attribute: bool) -> str:
    local = name.local.text
    if name.prefix is None:
        # Unprefixed attributes are never in a namespace
        uri = None if is_attribute else scope.get("")
    elif name.prefix.text == "xml":
        uri = XML_NAMESPACE
    else:
        uri = scope.get(name.prefix.text)
        if uri is None:
            raise ValueError(f"Unbound namespace prefix: {name.prefix.text}")
    return f"{{{uri}}}{local}" if uri else local


def _append_text(element: Any, last_child: Any, text: str) -> None:
    if last_child is None:
        element.text = (element.text or "") + text
    else:
        last_child.tail = (last_child.tail or "") + text


class IntegrationAdapter(ABC):
    """Abstract base class for all integration adapters.

    Subclasses name the element tree module they target through
    :meth:`_etree` and may customize element creation; the tree walk itself
    is shared.
    """

    # Whether prolog and epilog comments survive conversion
    _keeps_siblings = False

    def __init__(self, correlation_id: Optional[str] = None) -> None:
        """Initialize the integration adapter.

        Args:
            correlation_id: Optional correlation ID for request tracking
        """
        self.correlation_id = correlation_id
        self._logger = get_logger(__name__, correlation_id, self.__class__.__name__)
        self._timings: List[float] = []

    @property
    @abstractmethod
    def metadata(self) -> AdapterMetadata:
        """Get adapter metadata."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the target library can be imported."""

    @abstractmethod
    def _etree(self) -> Any:
        """Return the element tree module this adapter converts to."""

    def _create_element(
        self,
        etree: Any,
        parent: Any,
        tag: TagNode,
        scope: Dict[str, str],
        declared: Dict[str, str]
    ) -> Any:
        attrib = {
            _clark_name(attribute.name, scope, True): attribute.value.text
            for attribute in tag.attributes
            if not _is_declaration(attribute.name)
        }
        name = _clark_name(tag.name, scope, False)
        return self._new_element(etree, parent, name, attrib, declared)

    def _new_element(
        self,
        etree: Any,
        parent: Any,
        name: str,
        attrib: Dict[str, str],
        declared: Dict[str, str]
    ) -> Any:
        if parent is None:
            return etree.Element(name, attrib)
        return etree.SubElement(parent, name, attrib)

    def to_target(self, data: DocumentInput) -> ConversionResult:
        """Convert a document to the target library's root element.

        Args:
            data: A Document, OwnedDocument or successful ParseResult

        Returns:
            ConversionResult containing the root element
        """
        start_time = time.time()
        library = self.metadata.target_library

        try:
            document = self._document_of(data)
            if document is None:
                return self._create_error_result(
                    "ParseResult is not successful or has no document",
                    data,
                    (time.time() - start_time) * 1000
                )

            etree = self._etree()
            root = self._convert_tree(etree, document.root)
            self._attach_siblings(etree, root, document)
            skipped = len(document.prolog) + len(document.epilog)

            processing_time = (time.time() - start_time) * 1000
            self._record_performance(processing_time)

            result = ConversionResult(
                success=True,
                converted_data=root,
                original_data=data,
                conversion_time_ms=processing_time,
                metadata={"node_count": sum(1 for _ in root.iter())},
            )
            if skipped and not self._keeps_siblings:
                result.warnings.append(
                    f"{skipped} nodes outside the root element were not converted"
                )
            return result

        except Exception as e:
            processing_time = (time.time() - start_time) * 1000
            return self._create_error_result(
                f"Failed to convert to {library}: {e}",
                data,
                processing_time
            )

    def from_target(self, target_data: Any) -> ConversionResult:
        """Convert an element (or element tree) of the target library to a Document.

        The element is serialized by the target library and parsed again, so
        spans of the resulting document point into that serialized text.

        Args:
            target_data: Element or ElementTree of the target library

        Returns:
            ConversionResult containing the Document
        """
        start_time = time.time()
        library = self.metadata.target_library

        try:
            etree = self._etree()
            if hasattr(target_data, "getroot") and not self._keeps_siblings:
                target_data = target_data.getroot()
            if not hasattr(target_data, "tag") and not hasattr(target_data, "getroot"):
                return self._create_error_result(
                    f"Target data is not a valid {library} element",
                    target_data,
                    (time.time() - start_time) * 1000
                )

            xml_string = etree.tostring(target_data, encoding="unicode")
            document = parse(xml_string, correlation_id=self.correlation_id)

            processing_time = (time.time() - start_time) * 1000
            self._record_performance(processing_time)

            return ConversionResult(
                success=True,
                converted_data=document,
                original_data=target_data,
                conversion_time_ms=processing_time,
                metadata={"xml_length": len(xml_string), "source": xml_string},
            )

        except XmlError as e:
            processing_time = (time.time() - start_time) * 1000
            return self._create_error_result(
                f"Serialized {library} tree is not well-formed: {e.message}",
                target_data,
                processing_time
            )
        except Exception as e:
            processing_time = (time.time() - start_time) * 1000
            return self._create_error_result(
                f"Failed to convert from {library}: {e}",
                target_data,
                processing_time
            )

    def _attach_siblings(self, etree: Any, root: Any, document: Document) -> None:
        """Attach prolog and epilog nodes around the converted root, if supported."""

    def _document_of(self, data: DocumentInput) -> Optional[Document]:
        if isinstance(data, ParseResult):
            return data.document if data.success else None
        if isinstance(data, OwnedDocument):
            return data.borrowed()
        return data

    def _convert_tree(self, etree: Any, root: TagNode) -> Any:
        root_scope = _extend_scope({}, root)
        root_element = self._create_element(
            etree, None, root, root_scope, _declared(root, {})
        )
        pending = [(root, root_element, root_scope)]
        while pending:
            tag, element, scope = pending.pop()
            last_child = None
            for child in tag.children:
                if isinstance(child, TagNode):
                    child_scope = _extend_scope(scope, child)
                    last_child = self._create_element(
                        etree, element, child, child_scope, _declared(child, scope)
                    )
                    pending.append((child, last_child, child_scope))
                elif isinstance(child, (TextNode, CdataNode)):
                    _append_text(element, last_child, child.text.text)
                elif isinstance(child, CommentNode):
                    last_child = etree.Comment(child.text.text)
                    element.append(last_child)
                elif isinstance(child, ProcessingInstructionNode):
                    content = child.content.text if child.content is not None else None
                    last_child = etree.ProcessingInstruction(child.target.text, content)
                    element.append(last_child)
        return root_element

    def get_performance_stats(self) -> Dict[str, float]:
        """Get conversion timing statistics for this adapter."""
        if not self._timings:
            return {}
        return {
            "count": len(self._timings),
            "average_ms": sum(self._timings) / len(self._timings),
            "min_ms": min(self._timings),
            "max_ms": max(self._timings),
            "total_ms": sum(self._timings),
        }

    def _record_performance(self, operation_time_ms: float) -> None:
        self._timings.append(operation_time_ms)
        if len(self._timings) > MAX_RECORDED_TIMINGS:
            del self._timings[:-MAX_RECORDED_TIMINGS]

    def _create_error_result(
        self,
        error_message: str,
        original_data: Any,
        conversion_time_ms: float = 0.0
    ) -> ConversionResult:
        """Create a ConversionResult for error conditions."""
        self._logger.warning("Conversion failed", extra={"error": error_message})
        return ConversionResult(
            success=False,
            converted_data=None,
            original_data=original_data,
            conversion_time_ms=conversion_time_ms,
            errors=[error_message],
            diagnostics=[
                DiagnosticEntry(
                    severity=DiagnosticSeverity.ERROR,
                    message=error_message,
                    component=self.__class__.__name__,
                    correlation_id=self.correlation_id
                )
            ]
        )


def _declared(tag: TagNode, parent_scope: Dict[str, str]) -> Dict[str, str]:
    """Namespace bindings ``tag`` adds or changes relative to its parent."""
    scope = _extend_scope(parent_scope, tag)
    return {
        prefix: uri for prefix, uri in scope.items()
        if parent_scope.get(prefix) != uri
    }


class LxmlAdapter(IntegrationAdapter):
    """Adapter for bidirectional conversion with lxml.etree.

    Namespace declarations are kept as ``nsmap`` entries, and comments and
    processing instructions around the root element become its siblings.
    """

    _keeps_siblings = True

    @property
    def metadata(self) -> AdapterMetadata:
        """Get adapter metadata."""
        return AdapterMetadata(
            name="lxml",
            version="1.0.0",
            target_library="lxml",
            description="Bidirectional conversion between documents and lxml.etree"
        )

    def is_available(self) -> bool:
        """Check if lxml is available."""
        try:
            import lxml.etree  # noqa: F401
        except ImportError:
            return False
        return True

    def _etree(self) -> Any:
        from lxml import etree

        return etree

    def _new_element(
        self,
        etree: Any,
        parent: Any,
        name: str,
        attrib: Dict[str, str],
        declared: Dict[str, str]
    ) -> Any:
        nsmap = {(prefix or None): uri for prefix, uri in declared.items() if uri}
        if parent is None:
            return etree.Element(name, attrib, nsmap=nsmap)
        return etree.SubElement(parent, name, attrib, nsmap=nsmap)

    def _attach_siblings(self, etree: Any, root: Any, document: Document) -> None:
        for node in document.prolog:
            sibling = self._sibling(etree, node)
            if sibling is not None:
                root.addprevious(sibling)
        for node in reversed(document.epilog):
            sibling = self._sibling(etree, node)
            if sibling is not None:
                root.addnext(sibling)

    def _sibling(self, etree: Any, node: Any) -> Any:
        """Comments and processing instructions only; DOCTYPE and CDATA are dropped."""
        if isinstance(node, CommentNode):
            return etree.Comment(node.text.text)
        if isinstance(node, ProcessingInstructionNode):
            content = node.content.text if node.content is not None else None
            return etree.ProcessingInstruction(node.target.text, content)
        return None


class ElementTreeAdapter(IntegrationAdapter):
    """Adapter for bidirectional conversion with xml.etree.ElementTree."""

    @property
    def metadata(self) -> AdapterMetadata:
        """Get adapter metadata."""
        return AdapterMetadata(
            name="elementtree",
            version="1.0.0",
            target_library="xml.etree.ElementTree",
            description="Bidirectional conversion between documents and ElementTree"
        )

    def is_available(self) -> bool:
        """ElementTree ships with the standard library."""
        return True

    def _etree(self) -> Any:
        import xml.etree.ElementTree as ET

        return ET


class AdapterRegistry:
    """Registry for managing integration adapters."""

    def __init__(self) -> None:
        """Initialize the adapter registry."""
        self._adapters: Dict[str, Type[IntegrationAdapter]] = {}
        self._lock = threading.RLock()

    def register(self, adapter_class: Type[IntegrationAdapter]) -> None:
        """Register an adapter class under its metadata name."""
        with self._lock:
            self._adapters[adapter_class().metadata.name] = adapter_class

    def get_adapter(
        self,
        adapter_name: str,
        correlation_id: Optional[str] = None
    ) -> Optional[IntegrationAdapter]:
        """Get an adapter instance by name.

        Returns:
            Adapter instance if registered and available, None otherwise
        """
        with self._lock:
            adapter_class = self._adapters.get(adapter_name)
        if adapter_class is None:
            return None
        instance = adapter_class(correlation_id)
        return instance if instance.is_available() else None

    def list_available_adapters(self) -> List[AdapterMetadata]:
        """List metadata of all registered adapters whose library is importable."""
        with self._lock:
            adapter_classes = list(self._adapters.values())
        return [
            instance.metadata
            for instance in (adapter_class() for adapter_class in adapter_classes)
            if instance.is_available()
        ]


# Global adapter registry instance
_adapter_registry = AdapterRegistry()
_adapter_registry.register(LxmlAdapter)
_adapter_registry.register(ElementTreeAdapter)


def register_adapter(adapter_class: Type[IntegrationAdapter]) -> None:
    """Register an integration adapter globally."""
    _adapter_registry.register(adapter_class)


def get_adapter(
    adapter_name: str,
    correlation_id: Optional[str] = None
) -> Optional[IntegrationAdapter]:
    """Get a registered adapter instance.

    Args:
        adapter_name: Name of the adapter ("lxml" or "elementtree" built in)
        correlation_id: Optional correlation ID

    Returns:
        Adapter instance if available, None otherwise
    """
    return _adapter_registry.get_adapter(adapter_name, correlation_id)


def list_available_adapters() -> List[AdapterMetadata]:
    """List all available integration adapters."""
    return _adapter_registry.list_available_adapters()
