"""Strict, forward-only XML tokenizer producing positioned tokens.

The tokenizer splits XML text into the lexical events consumed by the tree
builder. Every token carries :class:`~spanxml.source.span.Span` views into the
source so structure can be reported and re-serialized with exact offsets.
Well-formedness across tokens (matching tags, document structure) is the
builder's job; the tokenizer only rejects input it cannot lex.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, Optional, Tuple

from spanxml.shared.errors import XmlSyntaxError
from spanxml.source.span import Span

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"[ \t\r\n]*")
_NAME_RE = re.compile(r"(?:[^\W\d]|:)[\w.\-:·]*")

_COMMENT_OPEN = "<!--"
_COMMENT_CLOSE = "-->"
_CDATA_OPEN = "<![CDATA["
_CDATA_CLOSE = "]]>"
_PI_OPEN = "<?"
_PI_CLOSE = "?>"
_DOCTYPE_OPEN = "<!DOCTYPE"
_ENTITY_OPEN = "<!ENTITY"
_SKIPPED_DTD_MARKUP = ("<!ELEMENT", "<!ATTLIST", "<!NOTATION")


class TokenType(Enum):
    """XML token types produced by the tokenizer."""

    DECLARATION = auto()             # <?xml version="..." ?>
    PROCESSING_INSTRUCTION = auto()  # <?target content?>
    COMMENT = auto()                 # <!-- ... -->
    CDATA = auto()                   # <![CDATA[ ... ]]>
    DTD_START = auto()               # <!DOCTYPE name ... [
    EMPTY_DTD = auto()               # <!DOCTYPE name ... >
    ENTITY_DECLARATION = auto()      # <!ENTITY name ...> inside a DTD subset
    DTD_END = auto()                 # ]>
    ELEMENT_START = auto()           # <prefix:local
    ATTRIBUTE = auto()               # prefix:local="value"
    ELEMENT_END = auto()             # >, /> or </prefix:local>
    TEXT = auto()                    # Character data between tags


_TOKEN_DESCRIPTIONS = {
    TokenType.DECLARATION: "XML declaration",
    TokenType.PROCESSING_INSTRUCTION: "processing instruction",
    TokenType.COMMENT: "comment",
    TokenType.CDATA: "CDATA section",
    TokenType.DTD_START: "DOCTYPE declaration",
    TokenType.EMPTY_DTD: "DOCTYPE declaration",
    TokenType.ENTITY_DECLARATION: "entity declaration",
    TokenType.DTD_END: "end of DOCTYPE declaration",
    TokenType.ELEMENT_START: "element start",
    TokenType.ATTRIBUTE: "attribute",
    TokenType.ELEMENT_END: "element end",
    TokenType.TEXT: "text",
}


class ElementEnd(Enum):
    """How an element start or element is terminated."""

    OPEN = auto()    # '>' - children follow
    EMPTY = auto()   # '/>' - element has no children
    CLOSE = auto()   # '</name>' - closes an open element


class TokenizerState(Enum):
    """State machine states for XML tokenization."""

    CONTENT = auto()      # Between markup, inside or outside the root
    ATTRIBUTES = auto()   # After an element name, before '>' or '/>'
    DTD_SUBSET = auto()   # Inside the internal subset of a DOCTYPE


@dataclass
class Token:
    """A lexical event with the spans of its parts.

    Which optional fields are set depends on ``type``:

    - element start, attribute, close tag: ``prefix`` and ``local``
    - attribute: ``value``
    - text, comment, CDATA: ``value``
    - processing instruction: ``local`` (target) and ``value`` (content)
    - declaration: ``version``, ``encoding`` and ``standalone``
    - DOCTYPE: ``local`` (name), ``system_id`` and ``public_id``
    - entity declaration: ``local`` (name) and either ``value`` or the ids
    """

    type: TokenType
    span: Span
    prefix: Optional[Span] = None
    local: Optional[Span] = None
    value: Optional[Span] = None
    end: Optional[ElementEnd] = None
    version: Optional[Span] = None
    encoding: Optional[Span] = None
    standalone: Optional[bool] = None
    system_id: Optional[Span] = None
    public_id: Optional[Span] = None

    @property
    def description(self) -> str:
        """Human readable name of the token kind, for error messages."""
        if self.type is TokenType.ELEMENT_END and self.end is ElementEnd.CLOSE:
            return "closing tag"
        return _TOKEN_DESCRIPTIONS[self.type]


class XMLTokenizer:
    """Forward-only tokenizer over a complete XML source string.

    Iterating yields :class:`Token` objects in document order. Lexical errors
    raise :class:`XmlSyntaxError` carrying the offending offset, and so does
    running out of input inside a start tag. Running out of input between
    tokens simply ends the stream; deciding whether the document was complete
    is left to the consumer.
    """

    def __init__(self, source: str) -> None:
        self.source = source
        self.position = 0
        self.state = TokenizerState.CONTENT
        self.depth = 0
        self.tokens_generated = 0

    def __iter__(self) -> Iterator[Token]:
        return self._tokens()

    def _tokens(self) -> Iterator[Token]:
        source = self.source
        length = len(source)
        handlers = {
            TokenizerState.CONTENT: self._next_content_token,
            TokenizerState.ATTRIBUTES: self._next_attribute_token,
            TokenizerState.DTD_SUBSET: self._next_dtd_token,
        }

        logger.debug("Tokenizing source", extra={"content_length": length})

        while self.position < length:
            token = handlers[self.state]()
            if token is not None:
                self.tokens_generated += 1
                yield token

        if self.state is TokenizerState.ATTRIBUTES:
            raise XmlSyntaxError("Unexpected end of input in start tag", length)

        logger.debug(
            "Tokenization finished",
            extra={"tokens_generated": self.tokens_generated}
        )

    # Content

    def _next_content_token(self) -> Optional[Token]:
        source = self.source
        pos = self.position

        if source[pos] != "<":
            return self._text(pos)
        if source.startswith(_PI_OPEN, pos):
            return self._processing_instruction(pos)
        if source.startswith(_COMMENT_OPEN, pos):
            body, end = self._delimited(pos, _COMMENT_OPEN, _COMMENT_CLOSE, "comment")
            return Token(TokenType.COMMENT, self._span(pos, end), value=body)
        if source.startswith(_CDATA_OPEN, pos):
            body, end = self._delimited(pos, _CDATA_OPEN, _CDATA_CLOSE, "CDATA section")
            return Token(TokenType.CDATA, self._span(pos, end), value=body)
        if source.startswith(_DOCTYPE_OPEN, pos):
            return self._doctype(pos)
        if source.startswith("</", pos):
            return self._close_tag(pos)

        prefix, local, end = self._qualified_name(pos + 1)
        self.position = end
        self.state = TokenizerState.ATTRIBUTES
        return Token(
            TokenType.ELEMENT_START, self._span(pos, end), prefix=prefix, local=local
        )

    def _text(self, pos: int) -> Optional[Token]:
        end = self.source.find("<", pos)
        if end == -1:
            end = len(self.source)
        self.position = end

        if self.depth == 0:
            stripped = _WHITESPACE_RE.match(self.source, pos).end()
            if stripped < end:
                raise XmlSyntaxError("Unexpected text outside of the root element", stripped)
            return None

        span = self._span(pos, end)
        return Token(TokenType.TEXT, span, value=span)

    def _close_tag(self, pos: int) -> Token:
        prefix, local, end = self._qualified_name(pos + 2)
        end = self._skip_whitespace(end)
        end = self._expect(end, ">", "closing tag")
        self.position = end
        self.depth = max(self.depth - 1, 0)
        return Token(
            TokenType.ELEMENT_END,
            self._span(pos, end),
            prefix=prefix,
            local=local,
            end=ElementEnd.CLOSE,
        )

    def _processing_instruction(self, pos: int) -> Token:
        source = self.source
        close = source.find(_PI_CLOSE, pos + 2)
        if close == -1:
            raise XmlSyntaxError("Unterminated processing instruction", pos)

        target_match = _NAME_RE.match(source, pos + 2)
        if target_match is None:
            raise XmlSyntaxError("Expected a processing instruction target", pos + 2)
        target_end = target_match.end()

        if source[pos + 2:target_end] == "xml" and (
            target_end == close or source[target_end] in " \t\r\n"
        ):
            return self._declaration(pos, target_end)

        content_start = self._skip_whitespace(target_end)
        if content_start > close:
            content_start = close
        if content_start == target_end and target_end != close:
            raise XmlSyntaxError(
                "Expected whitespace after processing instruction target", target_end
            )

        end = close + len(_PI_CLOSE)
        self.position = end
        return Token(
            TokenType.PROCESSING_INSTRUCTION,
            self._span(pos, end),
            local=self._span(pos + 2, target_end),
            value=self._span(content_start, close) if content_start < close else None,
        )

    def _declaration(self, pos: int, cursor: int) -> Token:
        version, cursor = self._pseudo_attribute(cursor, "version", required=True)
        encoding, cursor = self._pseudo_attribute(cursor, "encoding", required=False)
        standalone_span, cursor = self._pseudo_attribute(
            cursor, "standalone", required=False
        )

        standalone = None
        if standalone_span is not None:
            if standalone_span.text not in ("yes", "no"):
                raise XmlSyntaxError(
                    "standalone must be 'yes' or 'no'", standalone_span.start
                )
            standalone = standalone_span.text == "yes"

        cursor = self._skip_whitespace(cursor)
        end = self._expect(cursor, _PI_CLOSE, "XML declaration")
        self.position = end
        return Token(
            TokenType.DECLARATION,
            self._span(pos, end),
            version=version,
            encoding=encoding,
            standalone=standalone,
        )

    def _pseudo_attribute(
        self, cursor: int, name: str, required: bool
    ) -> Tuple[Optional[Span], int]:
        start = self._skip_whitespace(cursor)
        if not self.source.startswith(name, start):
            if required:
                raise XmlSyntaxError(f"Expected '{name}' in XML declaration", start)
            return None, cursor
        if start == cursor:
            raise XmlSyntaxError(f"Expected whitespace before '{name}'", start)

        position = self._skip_whitespace(start + len(name))
        position = self._expect(position, "=", "XML declaration")
        position = self._skip_whitespace(position)
        return self._quoted(position)

    # Attributes

    def _next_attribute_token(self) -> Optional[Token]:
        source = self.source
        start = self.position
        pos = self._skip_whitespace(start)
        if pos >= len(source):
            raise XmlSyntaxError("Unexpected end of input in start tag", pos)

        if source.startswith("/>", pos):
            self.position = pos + 2
            self.state = TokenizerState.CONTENT
            return Token(TokenType.ELEMENT_END, self._span(pos, pos + 2), end=ElementEnd.EMPTY)
        if source[pos] == ">":
            self.position = pos + 1
            self.state = TokenizerState.CONTENT
            self.depth += 1
            return Token(TokenType.ELEMENT_END, self._span(pos, pos + 1), end=ElementEnd.OPEN)
        if pos == start:
            raise XmlSyntaxError("Expected whitespace before attribute", pos)

        prefix, local, cursor = self._qualified_name(pos)
        cursor = self._skip_whitespace(cursor)
        cursor = self._expect(cursor, "=", "attribute")
        cursor = self._skip_whitespace(cursor)
        value, end = self._quoted(cursor)
        if "<" in value.text:
            raise XmlSyntaxError(
                "Attribute value must not contain '<'", value.start + value.text.index("<")
            )

        self.position = end
        return Token(
            TokenType.ATTRIBUTE, self._span(pos, end), prefix=prefix, local=local, value=value
        )

    # DTD

    def _doctype(self, pos: int) -> Token:
        cursor = self._skip_whitespace(pos + len(_DOCTYPE_OPEN))
        if cursor == pos + len(_DOCTYPE_OPEN):
            raise XmlSyntaxError("Expected whitespace after DOCTYPE", cursor)

        name, cursor = self._name(cursor)
        cursor = self._skip_whitespace(cursor)
        system_id, public_id, cursor = self._external_id(cursor)
        cursor = self._skip_whitespace(cursor)

        if self.source.startswith("[", cursor):
            end = cursor + 1
            self.state = TokenizerState.DTD_SUBSET
            token_type = TokenType.DTD_START
        else:
            end = self._expect(cursor, ">", "DOCTYPE declaration")
            token_type = TokenType.EMPTY_DTD

        self.position = end
        return Token(
            token_type,
            self._span(pos, end),
            local=name,
            system_id=system_id,
            public_id=public_id,
        )

    def _external_id(
        self, cursor: int
    ) -> Tuple[Optional[Span], Optional[Span], int]:
        source = self.source
        if source.startswith("SYSTEM", cursor):
            position = self._require_whitespace(cursor + len("SYSTEM"))
            system_id, end = self._quoted(position)
            return system_id, None, end
        if source.startswith("PUBLIC", cursor):
            position = self._require_whitespace(cursor + len("PUBLIC"))
            public_id, position = self._quoted(position)
            position = self._require_whitespace(position)
            system_id, end = self._quoted(position)
            return system_id, public_id, end
        return None, None, cursor

    def _next_dtd_token(self) -> Optional[Token]:
        source = self.source
        pos = self._skip_whitespace(self.position)
        self.position = pos
        if pos >= len(source):
            return None

        if source[pos] == "]":
            cursor = self._skip_whitespace(pos + 1)
            end = self._expect(cursor, ">", "DOCTYPE declaration")
            self.position = end
            self.state = TokenizerState.CONTENT
            return Token(TokenType.DTD_END, self._span(pos, end))
        if source.startswith(_ENTITY_OPEN, pos):
            return self._entity(pos)
        if source.startswith(_COMMENT_OPEN, pos):
            _, self.position = self._delimited(pos, _COMMENT_OPEN, _COMMENT_CLOSE, "comment")
            return None
        if source.startswith(_PI_OPEN, pos):
            _, self.position = self._delimited(
                pos, _PI_OPEN, _PI_CLOSE, "processing instruction"
            )
            return None
        if source.startswith(_SKIPPED_DTD_MARKUP, pos):
            self.position = self._skip_markup_declaration(pos)
            return None
        if source[pos] == "%":
            # Parameter entity reference
            _, end = self._name(pos + 1)
            self.position = self._expect(end, ";", "parameter entity reference")
            return None

        raise XmlSyntaxError("Unexpected content in DOCTYPE internal subset", pos)

    def _entity(self, pos: int) -> Optional[Token]:
        cursor = self._require_whitespace(pos + len(_ENTITY_OPEN))
        if self.source.startswith("%", cursor):
            self.position = self._skip_markup_declaration(pos)
            return None

        name, cursor = self._name(cursor)
        cursor = self._require_whitespace(cursor)

        value = None
        system_id, public_id, after_id = self._external_id(cursor)
        if system_id is None:
            value, cursor = self._quoted(cursor)
        else:
            cursor = after_id
            ndata = self._skip_whitespace(cursor)
            if self.source.startswith("NDATA", ndata):
                _, cursor = self._name(self._require_whitespace(ndata + len("NDATA")))

        cursor = self._skip_whitespace(cursor)
        end = self._expect(cursor, ">", "entity declaration")
        self.position = end
        return Token(
            TokenType.ENTITY_DECLARATION,
            self._span(pos, end),
            local=name,
            value=value,
            system_id=system_id,
            public_id=public_id,
        )

    def _skip_markup_declaration(self, pos: int) -> int:
        """Skip a declaration up to its closing '>', honouring quoted literals."""
        source = self.source
        cursor = pos + 2
        while cursor < len(source):
            char = source[cursor]
            if char in "\"'":
                close = source.find(char, cursor + 1)
                if close == -1:
                    break
                cursor = close + 1
            elif char == ">":
                return cursor + 1
            else:
                cursor += 1
        raise XmlSyntaxError("Unterminated markup declaration", pos)

    # Lexical helpers

    def _span(self, begin: int, end: int) -> Span:
        return Span.from_source(self.source, begin, end)

    def _skip_whitespace(self, pos: int) -> int:
        return _WHITESPACE_RE.match(self.source, pos).end()

    def _require_whitespace(self, pos: int) -> int:
        end = self._skip_whitespace(pos)
        if end == pos:
            raise XmlSyntaxError("Expected whitespace", pos)
        return end

    def _expect(self, pos: int, literal: str, context: str) -> int:
        if not self.source.startswith(literal, pos):
            if pos >= len(self.source):
                raise XmlSyntaxError(f"Unexpected end of input in {context}", pos)
            raise XmlSyntaxError(f"Expected '{literal}' in {context}", pos)
        return pos + len(literal)

    def _name(self, pos: int) -> Tuple[Span, int]:
        match = _NAME_RE.match(self.source, pos)
        if match is None:
            raise XmlSyntaxError("Expected a name", pos)
        return self._span(pos, match.end()), match.end()

    def _qualified_name(self, pos: int) -> Tuple[Optional[Span], Span, int]:
        """Read a name and split it on its first colon into prefix and local."""
        name, end = self._name(pos)
        colon = name.text.find(":")
        if 0 < colon < len(name) - 1:
            return (
                self._span(pos, pos + colon),
                self._span(pos + colon + 1, end),
                end,
            )
        return None, name, end

    def _quoted(self, pos: int) -> Tuple[Span, int]:
        """Read a quoted literal; the returned span excludes the quotes."""
        source = self.source
        if pos >= len(source) or source[pos] not in "\"'":
            raise XmlSyntaxError("Expected a quoted value", pos)
        close = source.find(source[pos], pos + 1)
        if close == -1:
            raise XmlSyntaxError("Unterminated quoted value", pos)
        return self._span(pos + 1, close), close + 1

    def _delimited(
        self, pos: int, opening: str, closing: str, context: str
    ) -> Tuple[Span, int]:
        body_start = pos + len(opening)
        close = self.source.find(closing, body_start)
        if close == -1:
            raise XmlSyntaxError(f"Unterminated {context}", pos)
        end = close + len(closing)
        self.position = end
        return self._span(body_start, close), end
