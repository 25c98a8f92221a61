"""Tests for DOCTYPE parsing."""

import pytest

from spanxml.shared.errors import XmlError, XmlErrorKind
from spanxml.source.span import Span
from spanxml.tokenization import Token, TokenType, XMLTokenizer
from spanxml.tree import (
    Document,
    EntityDefinitionKind,
    ExternalIdKind,
    parse_dtd,
)


class TestDoctypeInDocuments:
    """Test suite for DOCTYPE declarations parsed as part of a document."""

    def test_entities(self):
        """Test internal and external entity declarations."""
        source = (
            '<!DOCTYPE note [\n'
            '  <!ENTITY writer "Jane">\n'
            '  <!ENTITY logo PUBLIC "-//L//EN" "logo.gif">\n'
            ']>\n'
            '<note/>'
        )
        dtd = Document.parse(source).prolog[0]

        assert dtd.name == "note"
        assert dtd.external_id is None
        assert dtd.span.text == source[:source.index("]>") + 2]

        writer, logo = dtd.entities
        assert writer.name == "writer"
        assert writer.definition.kind is EntityDefinitionKind.ENTITY_VALUE
        assert writer.definition.value == "Jane"
        assert logo.definition.kind is EntityDefinitionKind.EXTERNAL_ID
        assert logo.definition.external_id.kind is ExternalIdKind.PUBLIC
        assert logo.definition.external_id.public == "-//L//EN"
        assert logo.definition.external_id.system == "logo.gif"

    def test_system_identifier(self):
        """Test a DOCTYPE with only a system identifier."""
        dtd = Document.parse('<!DOCTYPE a SYSTEM "a.dtd"><a/>').prolog[0]

        assert dtd.external_id.kind is ExternalIdKind.SYSTEM
        assert dtd.external_id.system == "a.dtd"
        assert dtd.entities == []

    def test_doctype_after_root(self):
        """Test that a DOCTYPE after the root element is rejected."""
        with pytest.raises(XmlError, match="Unexpected DOCTYPE declaration after root element"):
            Document.parse("<a/><!DOCTYPE a>")


class TestParseDtd:
    """Test suite for the DOCTYPE sub-parser used directly."""

    def test_requires_dtd_start(self):
        """Test that parsing must begin at a DOCTYPE token."""
        source = "<a/>"
        start = next(iter(XMLTokenizer(source)))

        with pytest.raises(XmlError, match="Expected DTD start or empty DTD"):
            parse_dtd(start, iter([]), source)

    def test_unexpected_token_in_subset(self):
        """Test that only entity declarations may appear before the end."""
        source = "<!DOCTYPE a ["
        tokens = iter(XMLTokenizer(source))
        start = next(tokens)
        stray = Token(TokenType.COMMENT, Span.from_source(source, 0, 2))

        with pytest.raises(XmlError, match="Expected Entity or DTD end"):
            parse_dtd(start, iter([stray]), source)

    def test_eof_in_subset(self):
        """Test that the subset must be closed."""
        source = '<!DOCTYPE a [<!ENTITY e "v">'
        tokens = iter(XMLTokenizer(source))
        start = next(tokens)

        with pytest.raises(XmlError) as info:
            parse_dtd(start, tokens, source)

        assert info.value.kind is XmlErrorKind.UNEXPECTED_EOF
        assert info.value.context.offset == len(source) - 1
