"""Tree builder turning a token stream into a borrowed :class:`Document`.

The builder is a state machine over four states (prolog, tag attributes, tag
children, epilog) with an explicit stack of open tags, so nesting depth is
bounded by memory rather than by the interpreter's recursion limit. Malformed
structure is never repaired: the first violation raises :class:`XmlError`
pointing at the offending span.
"""

from enum import Enum, auto
from typing import Iterable, Iterator, List, Optional

from spanxml.shared.config import GlobalConfig, TreeConfig
from spanxml.shared.errors import ErrorContext, XmlError, XmlErrorKind, XmlSyntaxError
from spanxml.shared.logging import get_logger
from spanxml.source.span import Span
from spanxml.tokenization import ElementEnd, Token, TokenType
from spanxml.tree.document import Document
from spanxml.tree.dtd import parse_dtd
from spanxml.tree.nodes import (
    CdataNode,
    CommentNode,
    DeclarationNode,
    Node,
    NodeAttribute,
    NodeName,
    ProcessingInstructionNode,
    TagNode,
    TextNode,
)


class BuilderState(Enum):
    """States of the tree building state machine."""

    PROLOG = auto()           # Before the root element
    TAG_ATTRIBUTES = auto()   # Inside a start tag, reading attributes
    TAG_CHILDREN = auto()     # Inside an element, reading content
    EPILOG = auto()           # After the root element has been closed


_MISC_TOKENS = (TokenType.COMMENT, TokenType.CDATA, TokenType.PROCESSING_INSTRUCTION)


class XMLTreeBuilder:
    """Builds borrowed document trees from token streams.

    A builder instance can be reused; all per-document state is reset at the
    start of :meth:`build`.
    """

    def __init__(
        self,
        config: Optional[TreeConfig] = None,
        correlation_id: Optional[str] = None,
        global_config: Optional[GlobalConfig] = None
    ) -> None:
        """Initialize tree builder.

        Args:
            config: Tree building limits
            correlation_id: Optional correlation ID for request tracking
            global_config: Optional logging settings
        """
        self.config = config or TreeConfig()
        self.correlation_id = correlation_id
        self.logger = get_logger(
            __name__, correlation_id, "xml_tree_builder", global_config
        )
        self._reset_state("")

    def _reset_state(self, source: str) -> None:
        self._source = source
        self._state = BuilderState.PROLOG
        self._stack: List[TagNode] = []
        self._declaration: Optional[DeclarationNode] = None
        self._prolog: List[Node] = []
        self._epilog: List[Node] = []
        self._root: Optional[TagNode] = None
        self.nodes_built = 0

    def build(self, tokens: Iterable[Token], source: str) -> Document:
        """Build a document from ``tokens`` lexed out of ``source``.

        Args:
            tokens: Token stream, typically an XMLTokenizer over ``source``
            source: The complete source text the token spans point into

        Returns:
            The parsed borrowed Document

        Raises:
            XmlError: If the token stream does not form a single well-nested
                document, or the tokenizer reports a lexical error
        """
        self._reset_state(source)
        token_iter = iter(tokens)

        with self.logger.timed("tree building", {"source_length": len(source)}) as details:
            try:
                document = self._build_document(token_iter)
            except XmlSyntaxError as e:
                line_end = source.find("\n", e.offset)
                if line_end == -1:
                    line_end = len(source)
                span = Span.from_source(source, min(e.offset, len(source)), line_end)
                raise XmlError(
                    XmlErrorKind.SYNTAX, ErrorContext(source, span), e.reason
                ) from e
            details["nodes_built"] = self.nodes_built

        return document

    def _build_document(self, tokens: Iterator[Token]) -> Document:
        handlers = {
            BuilderState.PROLOG: self._process_prolog_token,
            BuilderState.TAG_ATTRIBUTES: self._process_attribute_token,
            BuilderState.TAG_CHILDREN: self._process_child_token,
            BuilderState.EPILOG: self._process_epilog_token,
        }

        for token in tokens:
            handlers[self._state](token, tokens)

        return self._finish()

    def _finish(self) -> Document:
        # An open root at end of input is accepted; open children are not
        if self._root is None and len(self._stack) == 1:
            self._root = self._stack.pop()
            self.logger.debug("Root element left open", extra={"root": str(self._root.name)})
        if self._root is not None:
            return Document(
                self._root,
                declaration=self._declaration,
                prolog=self._prolog,
                epilog=self._epilog,
            )
        if self._stack:
            innermost = self._stack[-1]
            raise XmlError(
                XmlErrorKind.UNCLOSED_TAG,
                ErrorContext(self._source, innermost.span),
                str(innermost.name),
            )
        raise XmlError(
            XmlErrorKind.UNEXPECTED_EOF,
            ErrorContext(self._source, Span.end_of(self._source)),
        )

    # State handlers

    def _process_prolog_token(self, token: Token, tokens: Iterator[Token]) -> None:
        if token.type is TokenType.ELEMENT_START:
            self._open_tag(token)
        elif token.type in _MISC_TOKENS:
            self._prolog.append(self._misc_node(token))
        elif token.type is TokenType.DECLARATION:
            if self._prolog or self._declaration is not None:
                raise XmlError(
                    XmlErrorKind.DECLARATION_NOT_FIRST,
                    ErrorContext(self._source, token.span),
                )
            self._declaration = DeclarationNode(
                token.span, token.version, token.encoding, token.standalone
            )
            self.nodes_built += 1
        elif token.type in (TokenType.DTD_START, TokenType.EMPTY_DTD):
            self._prolog.append(parse_dtd(token, tokens, self._source))
            self.nodes_built += 1
        else:
            self._unexpected(token, "in prolog section")

    def _process_attribute_token(self, token: Token, tokens: Iterator[Token]) -> None:
        current = self._stack[-1]
        if token.type is TokenType.ATTRIBUTE:
            current.attributes.append(
                NodeAttribute(token.span, NodeName(token.local, token.prefix), token.value)
            )
        elif token.type is TokenType.COMMENT:
            current.children.append(self._misc_node(token))
        elif token.type is TokenType.ELEMENT_END and token.end is ElementEnd.OPEN:
            self._state = BuilderState.TAG_CHILDREN
        elif token.type is TokenType.ELEMENT_END and token.end is ElementEnd.EMPTY:
            tag = self._stack.pop()
            tag.span = tag.span.extend(token.span, self._source)
            self._complete_tag(tag)
        elif token.type is TokenType.TEXT:
            return
        else:
            self._unexpected(token, "in tag attributes")

    def _process_child_token(self, token: Token, tokens: Iterator[Token]) -> None:
        if token.type is TokenType.ELEMENT_START:
            self._open_tag(token)
        elif token.type in _MISC_TOKENS:
            self._stack[-1].children.append(self._misc_node(token))
        elif token.type is TokenType.TEXT:
            text = self._trimmed(token.value)
            if text is not None:
                self._stack[-1].children.append(TextNode(token.span, text))
                self.nodes_built += 1
        elif token.type is TokenType.ELEMENT_END and token.end is ElementEnd.CLOSE:
            tag = self._stack.pop()
            tag.span = tag.span.extend(token.span, self._source)
            prefix = token.prefix.text if token.prefix is not None else None
            if not tag.name.equals(prefix, token.local.text):
                raise XmlError(
                    XmlErrorKind.UNCLOSED_TAG,
                    ErrorContext(self._source, token.span),
                    str(tag.name),
                )
            self._complete_tag(tag)
        else:
            self._unexpected(token, "inside tag")

    def _process_epilog_token(self, token: Token, tokens: Iterator[Token]) -> None:
        if token.type in _MISC_TOKENS:
            self._epilog.append(self._misc_node(token))
        else:
            self._unexpected(token, "after root element")

    # Helpers

    def _open_tag(self, token: Token) -> None:
        max_depth = self.config.max_depth
        if max_depth is not None and len(self._stack) >= max_depth:
            raise XmlError(
                XmlErrorKind.DEPTH_LIMIT_EXCEEDED,
                ErrorContext(self._source, token.span),
                f"limit is {max_depth}",
            )
        self._stack.append(TagNode(token.span, NodeName(token.local, token.prefix)))
        self._state = BuilderState.TAG_ATTRIBUTES
        self.nodes_built += 1

    def _complete_tag(self, tag: TagNode) -> None:
        if self._stack:
            self._stack[-1].children.append(tag)
            self._state = BuilderState.TAG_CHILDREN
        else:
            self._root = tag
            self._state = BuilderState.EPILOG
            self.logger.debug("Root element completed", extra={"root": str(tag.name)})

    def _misc_node(self, token: Token) -> Node:
        self.nodes_built += 1
        if token.type is TokenType.COMMENT:
            return CommentNode(token.span, token.value)
        if token.type is TokenType.CDATA:
            return CdataNode(token.span, token.value)
        return ProcessingInstructionNode(token.span, token.local, token.value)

    def _trimmed(self, value: Span) -> Optional[Span]:
        """Return the span of ``value`` without surrounding whitespace, if any."""
        text = value.text
        stripped = text.strip()
        if not stripped:
            return None
        leading = len(text) - len(text.lstrip())
        begin = value.start + leading
        return Span.from_source(self._source, begin, begin + len(stripped))

    def _unexpected(self, token: Token, where: str) -> None:
        raise XmlError(
            XmlErrorKind.CUSTOM,
            ErrorContext(self._source, token.span),
            f"Unexpected {token.description} {where}",
        )
