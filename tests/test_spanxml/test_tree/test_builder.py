"""Tests for the tree builder state machine."""

import pytest

from spanxml.shared.config import TreeConfig
from spanxml.shared.errors import XmlError, XmlErrorKind
from spanxml.tokenization import XMLTokenizer
from spanxml.tree import (
    BuilderState,
    CdataNode,
    CommentNode,
    Document,
    DtdNode,
    ProcessingInstructionNode,
    TagNode,
    TextNode,
    XMLTreeBuilder,
)


def build(source, config=None):
    return XMLTreeBuilder(config).build(XMLTokenizer(source), source)


class TestWellFormedDocuments:
    """Test suite for documents that build successfully."""

    def test_nested_elements(self):
        """Test a small nested document."""
        doc = build("<root><child><leaf/></child></root>")

        assert isinstance(doc, Document)
        assert doc.root.name == "root"
        child = doc.root.children[0]
        assert isinstance(child, TagNode)
        assert child.name == "child"
        assert child.children[0].name == "leaf"
        assert child.children[0].children == []

    def test_element_spans_cover_whole_element(self):
        """Test that tag spans run from the start tag to the end tag."""
        source = '<root><a x="1">t</a><b/></root>'
        doc = build(source)

        assert doc.root.span.text == source
        assert doc.root.children[0].span.text == '<a x="1">t</a>'
        assert doc.root.children[0].span.start == 6
        assert doc.root.children[1].span.text == "<b/>"

    def test_duplicate_attributes_last_wins(self):
        """Test that repeated attributes are kept and the last one is effective."""
        doc = build('<root a="1" a="2"/>')

        assert doc.root.get_attribute("a").value == "2"
        assert [a.value.text for a in doc.root.attributes] == ["1", "2"]

    def test_whitespace_only_text_is_dropped(self):
        """Test that whitespace-only content produces no children."""
        doc = build("<root>   </root>")

        assert doc.root.children == []

    def test_text_is_trimmed(self):
        """Test that text nodes are trimmed but keep exact offsets."""
        doc = build("<a>  hi there \n</a>")
        text = doc.root.children[0]

        assert isinstance(text, TextNode)
        assert text.text == "hi there"
        assert text.text.start == 5
        assert text.span.text == "  hi there \n"

    def test_mixed_content(self):
        """Test text, comments, CDATA and processing instructions inside a tag."""
        doc = build("<a>one<!--c--><![CDATA[<x>]]><?pi data?>two</a>")
        kinds = [type(child) for child in doc.root.children]

        assert kinds == [TextNode, CommentNode, CdataNode, ProcessingInstructionNode, TextNode]
        assert doc.root.children[2].text == "<x>"
        assert doc.root.children[3].target == "pi"
        assert doc.root.children[3].content == "data"

    def test_prolog_and_epilog(self):
        """Test nodes before and after the root element."""
        doc = build(
            '<?xml version="1.0"?>\n<!--before--><!DOCTYPE root>\n<root/>\n<?after?>'
        )

        assert doc.declaration.version == "1.0"
        assert isinstance(doc.prolog[0], CommentNode)
        assert isinstance(doc.prolog[1], DtdNode)
        assert doc.prolog[1].name == "root"
        assert isinstance(doc.epilog[0], ProcessingInstructionNode)

    def test_prefixed_names(self):
        """Test that prefixed start and end tags match."""
        doc = build('<x:a xmlns:x="urn:x"><x:b/></x:a>')

        assert doc.root.name.prefix == "x"
        assert doc.root.name.local == "a"
        assert doc.root.get_attribute("x", "xmlns").value == "urn:x"

    def test_counts_nodes(self):
        """Test the nodes_built counter."""
        builder = XMLTreeBuilder()
        source = "<a><b/>text<!--c--></a>"

        builder.build(XMLTokenizer(source), source)

        assert builder.nodes_built == 4

    def test_builder_is_reusable(self):
        """Test that state is reset between builds."""
        builder = XMLTreeBuilder()
        first = "<a><b/></a>"
        second = "<c/>"

        builder.build(XMLTokenizer(first), first)
        doc = builder.build(XMLTokenizer(second), second)

        assert doc.root.name == "c"
        assert builder.nodes_built == 1

    def test_deep_nesting(self):
        """Test that 100,000 nested tags build without recursion."""
        depth = 100_000
        source = "<a>" * depth + "</a>" * depth

        doc = build(source)

        node = doc.root
        levels = 1
        while node.children:
            node = node.children[0]
            levels += 1
        assert levels == depth


class TestMalformedDocuments:
    """Test suite for structural errors."""

    def test_mismatched_close_tag(self):
        """Test that a missing end tag is reported at the mismatched close."""
        with pytest.raises(XmlError) as info:
            build("<a><b>x</a>")

        error = info.value
        assert error.kind is XmlErrorKind.UNCLOSED_TAG
        assert error.message == "Unclosed tag: b"
        assert error.context.span.text == "</a>"
        assert error.context.position() == (1, 8)

    def test_prefix_mismatch(self):
        """Test that end tags must repeat the prefix."""
        with pytest.raises(XmlError, match="Unclosed tag: x:a"):
            build("<x:a></y:a>")

    def test_unclosed_root_at_eof(self):
        """Test that a root element still open at end of input becomes the root."""
        doc = build("<root>")

        assert doc.root.name == "root"
        assert doc.root.children == []
        assert doc.epilog == []

    def test_unclosed_root_keeps_children(self):
        """Test that closed children of an open root are kept."""
        doc = build("<a><b></b>text")

        assert doc.root.name == "a"
        assert isinstance(doc.root.children[0], TagNode)
        assert isinstance(doc.root.children[1], TextNode)
        assert doc.root.children[1].text == "text"

    def test_unclosed_child_at_eof(self):
        """Test that an open element below the root at end of input is an error."""
        with pytest.raises(XmlError) as info:
            build("<a><b><c></c>")

        assert info.value.kind is XmlErrorKind.UNCLOSED_TAG
        assert info.value.message == "Unclosed tag: b"
        assert info.value.context.span.text == "<b"

    def test_eof_inside_start_tag(self):
        """Test that input ending inside a start tag stays a syntax error."""
        with pytest.raises(XmlError) as info:
            build('<a x="1"')

        assert info.value.kind is XmlErrorKind.SYNTAX
        assert info.value.message == "XML parser error: Unexpected end of input in start tag"

    def test_empty_input(self):
        """Test that a document needs a root element."""
        with pytest.raises(XmlError) as info:
            build("")

        assert info.value.kind is XmlErrorKind.UNEXPECTED_EOF
        assert str(info.value) == "= End of file reached unexpectedly"

    def test_prolog_only(self):
        """Test input that ends before the root element."""
        with pytest.raises(XmlError) as info:
            build("<!-- just a comment -->")

        assert info.value.kind is XmlErrorKind.UNEXPECTED_EOF

    def test_declaration_not_first(self):
        """Test that the XML declaration must precede everything else."""
        with pytest.raises(XmlError) as info:
            build('<!--c--><?xml version="1.0"?><a/>')

        assert info.value.kind is XmlErrorKind.DECLARATION_NOT_FIRST

    def test_second_root_element(self):
        """Test that only one root element is allowed."""
        with pytest.raises(XmlError, match="Unexpected element start after root element"):
            build("<a/><b/>")

    def test_close_tag_in_prolog(self):
        """Test a closing tag before any element."""
        with pytest.raises(XmlError, match="Unexpected closing tag in prolog section"):
            build("</a>")

    def test_lexical_errors_are_wrapped(self):
        """Test that tokenizer errors surface as syntax errors with a location."""
        with pytest.raises(XmlError) as info:
            build("<a>\n<b c=1/></a>")

        error = info.value
        assert error.kind is XmlErrorKind.SYNTAX
        assert error.message == "XML parser error: Expected a quoted value"
        assert error.context.position() == (2, 6)
        assert str(error).startswith("| 1/></a>\n= At 2:6\n")

    def test_depth_limit(self):
        """Test the configurable nesting limit."""
        with pytest.raises(XmlError) as info:
            build("<a><b><c/></b></a>", TreeConfig(max_depth=2))

        assert info.value.kind is XmlErrorKind.DEPTH_LIMIT_EXCEEDED
        assert info.value.message == "Maximum nesting depth exceeded: limit is 2"
        assert info.value.context.span.text == "<c"

    def test_depth_limit_allows_exact_depth(self):
        """Test that documents at the limit still build."""
        doc = build("<a><b/></a>", TreeConfig(max_depth=2))

        assert doc.root.children[0].name == "b"


def test_builder_states():
    """Test the state machine states."""
    assert [state.name for state in BuilderState] == [
        "PROLOG", "TAG_ATTRIBUTES", "TAG_CHILDREN", "EPILOG"
    ]
