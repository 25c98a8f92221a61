"""Tests for the strict XML tokenizer."""

import pytest

from spanxml.shared.errors import XmlSyntaxError
from spanxml.tokenization import ElementEnd, TokenType, XMLTokenizer


def tokenize(source):
    return list(XMLTokenizer(source))


def types(source):
    return [token.type for token in tokenize(source)]


class TestElements:
    """Test suite for element and attribute tokens."""

    def test_simple_element(self):
        """Test start, content and close tokens of a simple element."""
        tokens = tokenize("<root>text</root>")

        assert [t.type for t in tokens] == [
            TokenType.ELEMENT_START,
            TokenType.ELEMENT_END,
            TokenType.TEXT,
            TokenType.ELEMENT_END,
        ]
        assert tokens[0].local == "root"
        assert tokens[0].span.text == "<root"
        assert tokens[1].end is ElementEnd.OPEN
        assert tokens[2].value.text == "text"
        assert tokens[2].value.start == 6
        assert tokens[3].end is ElementEnd.CLOSE
        assert tokens[3].span.text == "</root>"

    def test_empty_element(self):
        """Test a self-closing element."""
        tokens = tokenize("<root/>")

        assert tokens[1].type is TokenType.ELEMENT_END
        assert tokens[1].end is ElementEnd.EMPTY
        assert tokens[1].span.text == "/>"

    def test_attributes(self):
        """Test attribute names, values and spans."""
        tokens = tokenize("<a x=\"1\" y = '2'/>")
        attributes = [t for t in tokens if t.type is TokenType.ATTRIBUTE]

        assert [a.local.text for a in attributes] == ["x", "y"]
        assert [a.value.text for a in attributes] == ["1", "2"]
        assert attributes[0].span.text == 'x="1"'
        assert attributes[1].value.start == 14

    def test_qualified_names(self):
        """Test splitting names on their first colon."""
        tokens = tokenize('<ns:root xml:lang="en"></ns:root>')

        assert tokens[0].prefix == "ns"
        assert tokens[0].local == "root"
        assert tokens[1].prefix == "xml"
        assert tokens[1].local == "lang"
        assert tokens[3].prefix == "ns"

    def test_name_with_edge_colon_is_unprefixed(self):
        """Test that a trailing colon does not produce a prefix."""
        token = tokenize("<a:/>")[0]

        assert token.prefix is None
        assert token.local == "a:"

    def test_attributes_need_whitespace(self):
        """Test that adjacent attributes are rejected."""
        with pytest.raises(XmlSyntaxError, match="Expected whitespace before attribute"):
            tokenize('<a x="1"y="2"/>')

    def test_lt_in_attribute_value(self):
        """Test that '<' inside an attribute value is rejected."""
        with pytest.raises(XmlSyntaxError, match="must not contain '<'") as info:
            tokenize('<a x="1<2"/>')
        assert info.value.offset == 7

    def test_unterminated_attribute_value(self):
        """Test a missing closing quote."""
        with pytest.raises(XmlSyntaxError, match="Unterminated quoted value"):
            tokenize('<a x="1/>')


class TestText:
    """Test suite for character data."""

    def test_whitespace_outside_root_is_skipped(self):
        """Test that whitespace around the root produces no tokens."""
        assert types("  \n<a/>\n  ") == [TokenType.ELEMENT_START, TokenType.ELEMENT_END]

    def test_text_outside_root_is_rejected(self):
        """Test that non-whitespace text before the root fails."""
        with pytest.raises(XmlSyntaxError, match="outside of the root element") as info:
            tokenize("  junk<a/>")
        assert info.value.offset == 2

    def test_text_is_not_unescaped(self):
        """Test that entity references are kept verbatim."""
        token = tokenize("<a>&amp;x</a>")[2]

        assert token.value.text == "&amp;x"


class TestMarkup:
    """Test suite for comments, CDATA, processing instructions and declarations."""

    def test_comment(self):
        """Test comment body and span."""
        token = tokenize("<!-- note --><a/>")[0]

        assert token.type is TokenType.COMMENT
        assert token.value.text == " note "
        assert token.span.text == "<!-- note -->"

    def test_cdata(self):
        """Test that CDATA content is taken literally."""
        token = tokenize("<a><![CDATA[<b>&]]></a>")[2]

        assert token.type is TokenType.CDATA
        assert token.value.text == "<b>&"

    def test_processing_instruction(self):
        """Test target and content of a processing instruction."""
        token = tokenize('<?xml-stylesheet href="s.css"?><a/>')[0]

        assert token.type is TokenType.PROCESSING_INSTRUCTION
        assert token.local.text == "xml-stylesheet"
        assert token.value.text == 'href="s.css"'

    def test_processing_instruction_without_content(self):
        """Test a processing instruction with only a target."""
        token = tokenize("<?page?><a/>")[0]

        assert token.local.text == "page"
        assert token.value is None

    def test_declaration(self):
        """Test the XML declaration pseudo-attributes."""
        token = tokenize('<?xml version="1.0" encoding="UTF-8" standalone="no"?><a/>')[0]

        assert token.type is TokenType.DECLARATION
        assert token.version.text == "1.0"
        assert token.encoding.text == "UTF-8"
        assert token.standalone is False

    def test_declaration_requires_version(self):
        """Test that the version pseudo-attribute is mandatory."""
        with pytest.raises(XmlSyntaxError, match="Expected 'version'"):
            tokenize('<?xml encoding="UTF-8"?><a/>')

    def test_declaration_standalone_values(self):
        """Test that standalone only accepts yes or no."""
        with pytest.raises(XmlSyntaxError, match="standalone must be 'yes' or 'no'"):
            tokenize('<?xml version="1.0" standalone="true"?><a/>')

    def test_unterminated_comment(self):
        """Test a comment without its terminator."""
        with pytest.raises(XmlSyntaxError, match="Unterminated comment"):
            tokenize("<a><!-- open</a>")


class TestDoctype:
    """Test suite for DOCTYPE declarations."""

    def test_empty_doctype(self):
        """Test a DOCTYPE without an internal subset."""
        token = tokenize('<!DOCTYPE html SYSTEM "about:legacy-compat"><html/>')[0]

        assert token.type is TokenType.EMPTY_DTD
        assert token.local.text == "html"
        assert token.system_id.text == "about:legacy-compat"
        assert token.public_id is None

    def test_public_identifier(self):
        """Test a PUBLIC external identifier."""
        token = tokenize('<!DOCTYPE a PUBLIC "-//X//EN" "a.dtd"><a/>')[0]

        assert token.public_id.text == "-//X//EN"
        assert token.system_id.text == "a.dtd"

    def test_internal_subset(self):
        """Test entity declarations inside the internal subset."""
        source = (
            '<!DOCTYPE a [\n'
            '  <!ELEMENT a (#PCDATA)>\n'
            '  <!-- skipped -->\n'
            '  <!ENTITY e "value">\n'
            '  <!ENTITY % p "param">\n'
            '  <!ENTITY ext SYSTEM "ext.xml">\n'
            ']><a/>'
        )
        tokens = tokenize(source)

        assert [t.type for t in tokens[:4]] == [
            TokenType.DTD_START,
            TokenType.ENTITY_DECLARATION,
            TokenType.ENTITY_DECLARATION,
            TokenType.DTD_END,
        ]
        assert tokens[1].local.text == "e"
        assert tokens[1].value.text == "value"
        assert tokens[2].local.text == "ext"
        assert tokens[2].system_id.text == "ext.xml"
        assert tokens[2].value is None

    def test_garbage_in_subset(self):
        """Test that unknown subset content is rejected."""
        with pytest.raises(XmlSyntaxError, match="Unexpected content in DOCTYPE"):
            tokenize("<!DOCTYPE a [ junk ]><a/>")


class TestTokenizerState:
    """Test suite for tokenizer bookkeeping."""

    def test_counts_tokens(self):
        """Test the generated token counter."""
        tokenizer = XMLTokenizer("<a><b/></a>")

        tokens = list(tokenizer)

        assert tokenizer.tokens_generated == len(tokens) == 5
        assert tokenizer.depth == 0

    def test_eof_between_tokens_ends_stream(self):
        """Test that truncated documents end the stream without error."""
        assert types("<a>") == [TokenType.ELEMENT_START, TokenType.ELEMENT_END]

    def test_eof_inside_token_fails(self):
        """Test that truncation inside a close tag is a syntax error."""
        with pytest.raises(XmlSyntaxError, match="Unexpected end of input in closing tag"):
            tokenize("<a></a")

    def test_eof_inside_start_tag_fails(self):
        """Test that truncation after an attribute or a tag name is a syntax error."""
        with pytest.raises(XmlSyntaxError, match="Unexpected end of input in start tag") as info:
            tokenize('<a x="1"')
        assert info.value.offset == 8

        with pytest.raises(XmlSyntaxError, match="Unexpected end of input in start tag"):
            tokenize("<a  ")
        with pytest.raises(XmlSyntaxError, match="Unexpected end of input in start tag"):
            tokenize("<a")

    def test_description_of_close_tag(self):
        """Test human readable token descriptions."""
        tokens = tokenize("<a></a>")

        assert tokens[0].description == "element start"
        assert tokens[2].description == "closing tag"
