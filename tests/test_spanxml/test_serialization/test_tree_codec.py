"""Tests for encoding and decoding whole documents."""

import logging

import pytest

from spanxml.serialization import (
    MAGIC_HEADER,
    MAGIC_INLINE,
    decode_document,
    decode_owned,
    encode_document,
    encode_owned,
)
from spanxml.shared.config import SpanXmlConfig
from spanxml.shared.errors import BinDecodeError, BinDecodeErrorKind, BinEncodeError
from spanxml.source.arena import SourceArena
from spanxml.tree import Document, NodeKind, OwnedDocument


SOURCE = (
    '<?xml version="1.0" encoding="UTF-8" standalone="no"?>\n'
    '<!DOCTYPE inventory PUBLIC "-//I//EN" "inv.dtd" [\n'
    '  <!ENTITY corp "Acme">\n'
    '  <!ENTITY logo SYSTEM "logo.png">\n'
    ']>\n'
    "<inventory xmlns:p=\"urn:p\">\n"
    '  <p:item sku="A1" qty="3">Widget</p:item>\n'
    "  <!-- restock soon -->\n"
    "  <?audit weekly?>\n"
    "  <![CDATA[<notes/>]]>\n"
    "</inventory>\n"
    "<!-- end -->"
)


class TestRoundTrip:
    """Test suite for lossless document round trips."""

    def test_header_mode(self):
        """Test encoding against the source text."""
        doc = Document.parse(SOURCE)

        data = encode_document(doc, SOURCE)

        assert data.startswith(MAGIC_HEADER)
        assert decode_document(data) == doc

    def test_inline_mode(self):
        """Test encoding with every string stored inline."""
        doc = Document.parse(SOURCE)

        data = encode_document(doc)

        assert data.startswith(MAGIC_INLINE)
        assert decode_document(data) == doc

    def test_header_mode_is_smaller_for_dense_trees(self):
        """Test that header mode stores each string once."""
        doc = Document.parse(SOURCE)

        assert len(encode_document(doc, SOURCE)) < len(encode_document(doc))

    def test_decoded_strings_live_in_arena(self):
        """Test that inline strings are allocated in the supplied arena."""
        arena = SourceArena()
        doc = Document.parse("<a>hi</a>")

        decoded = Document.from_bin(doc.to_bin(), arena)

        assert decoded == doc
        assert arena.size > 0

    def test_owned_round_trip(self):
        """Test owned documents through both encode paths."""
        doc = Document.parse(SOURCE)
        owned = doc.to_owned()

        assert decode_owned(encode_owned(owned)) == owned
        assert decode_owned(encode_document(doc, SOURCE)) == owned
        assert OwnedDocument.from_bin(doc.to_bin()) == owned

    def test_deep_tree(self):
        """Test that very deep trees encode and decode without recursion."""
        levels = 100_000
        source = "<d>" * levels + "</d>" * levels
        doc = Document.parse(source)

        decoded = Document.from_bin(doc.to_bin(source))

        depth, node = 1, decoded.root
        while node.children:
            node = node.children[0]
            depth += 1
        assert depth == levels


class TestHeaderHazard:
    """Test suite for documents mutated after parsing."""

    def test_mutation_is_not_detected_by_default(self):
        """Test that header mode writes stale offsets for mutated spans."""
        source = "<a>old</a>"
        doc = Document.parse(source)
        doc.root.children[0].text.set("new", SourceArena())

        decoded = Document.from_bin(doc.to_bin(source))

        assert decoded.root.children[0].text.text == "old"

    def test_verification_rejects_mutation(self):
        """Test that verified encoding refuses mutated spans."""
        source = "<a>old</a>"
        doc = Document.parse(source)
        doc.root.children[0].text.set("new", SourceArena())

        with pytest.raises(BinEncodeError):
            doc.to_bin(source, SpanXmlConfig().override(binary__verify_header_spans=True))

    def test_inline_mode_keeps_mutation(self):
        """Test that inline encoding is safe for mutated documents."""
        doc = Document.parse("<a>old</a>")
        doc.root.children[0].text.set("new", SourceArena())

        decoded = Document.from_bin(doc.to_bin())

        assert decoded.root.children[0].text.text == "new"


class TestDecodeErrors:
    """Test suite for corrupt and inconsistent binary data."""

    def test_header_shorter_than_offsets(self):
        """Test that spans outside a truncated header fail to decode."""
        doc = Document.parse(SOURCE)
        data = doc.to_bin(SOURCE[:20])

        with pytest.raises(BinDecodeError) as info:
            Document.from_bin(data)

        assert info.value.kind is BinDecodeErrorKind.SPAN_OUT_OF_RANGE

    def test_invalid_header(self):
        """Test that unknown magic bytes are rejected."""
        with pytest.raises(BinDecodeError) as info:
            decode_document(b"<a/>")

        assert info.value.kind is BinDecodeErrorKind.INVALID_HEADER

    def test_truncated_data(self):
        """Test that every truncation point fails cleanly."""
        data = Document.parse("<a x='1'><b/>t</a>").to_bin()

        for end in range(len(data)):
            with pytest.raises(BinDecodeError) as info:
                decode_document(data[:end])
            assert info.value.kind in (
                BinDecodeErrorKind.UNEXPECTED_EOF,
                BinDecodeErrorKind.INVALID_HEADER,
            )

    def test_trailing_bytes_are_ignored(self):
        """Test that data after the document does not affect decoding."""
        doc = Document.parse("<a/>")

        assert decode_document(doc.to_bin() + b"\x00\x01") == doc

    def test_invalid_node_kind(self):
        """Test that unknown node discriminants are rejected."""
        data = bytearray(Document.parse("<!--c--><a/>").to_bin())
        # magic, absent declaration flag, prolog count
        kind_offset = 4 + 1 + 8
        assert data[kind_offset] == NodeKind.COMMENT
        data[kind_offset] = 9

        with pytest.raises(BinDecodeError) as info:
            decode_document(bytes(data))

        assert info.value.kind is BinDecodeErrorKind.INVALID_ENUM_VARIANT
        assert info.value.offset == kind_offset

    def test_tag_in_prolog_is_rejected(self):
        """Test that a tag discriminant before the root element fails to decode."""
        data = bytearray(Document.parse("<!--c--><a/>").to_bin())
        kind_offset = 4 + 1 + 8
        data[kind_offset] = NodeKind.TAG

        with pytest.raises(BinDecodeError, match="NodeKind value 0 in the prolog") as info:
            decode_document(bytes(data))

        assert info.value.kind is BinDecodeErrorKind.INVALID_ENUM_VARIANT
        assert info.value.offset == kind_offset

    def test_tag_in_epilog_is_rejected(self):
        """Test that a tag discriminant after the root element fails to decode."""
        data = bytearray(Document.parse("<a/><!--c-->").to_bin())
        # magic, declaration flag, prolog count, root span "<a/>", prefix flag,
        # local name "a", attribute count, child count, epilog count
        kind_offset = 4 + 1 + 8 + (8 + 8 + 4) + 1 + (8 + 8 + 1) + 8 + 8 + 8
        assert data[kind_offset] == NodeKind.COMMENT
        data[kind_offset] = NodeKind.TAG

        with pytest.raises(BinDecodeError, match="NodeKind value 0 in the epilog") as info:
            decode_document(bytes(data))

        assert info.value.kind is BinDecodeErrorKind.INVALID_ENUM_VARIANT
        assert info.value.offset == kind_offset

    def test_depth_limit(self):
        """Test that nesting beyond the configured depth is rejected."""
        data = Document.parse("<a><b><c/></b></a>").to_bin()

        with pytest.raises(BinDecodeError) as info:
            decode_document(data, config=SpanXmlConfig().override(binary__max_depth=2))

        assert info.value.kind is BinDecodeErrorKind.DEPTH_LIMIT_EXCEEDED

    def test_depth_at_limit(self):
        """Test that nesting exactly at the limit decodes."""
        data = Document.parse("<a><b/></a>").to_bin()

        config = SpanXmlConfig().override(binary__max_depth=2)

        assert decode_document(data, config=config).root.name == "a"


class TestEncodeErrors:
    """Test suite for documents that cannot be encoded."""

    def test_tag_in_prolog_is_refused(self):
        """Test that an element placed in the prolog is not written."""
        doc = Document.parse("<a><b/></a>")
        doc.prolog.append(doc.root.children[0])

        with pytest.raises(BinEncodeError, match="Element <b> cannot be encoded in the prolog"):
            doc.to_bin()

    def test_tag_in_epilog_is_refused(self):
        """Test that an element placed in the epilog is not written."""
        source = "<a><p:b/></a>"
        doc = Document.parse(source)
        doc.epilog.append(doc.root.children[0])

        with pytest.raises(BinEncodeError, match="Element <p:b> cannot be encoded in the epilog"):
            doc.to_bin(source)


class TestCodecConfiguration:
    """Test suite for configuration applied through the document methods."""

    def test_untrusted_preset_verifies_header_spans(self):
        """Test that the untrusted preset rejects stale header spans."""
        config = SpanXmlConfig.untrusted_input()
        source = "<a>old</a>"
        doc = Document.parse(source, config=config)
        doc.root.children[0].text.set("new", SourceArena())

        with pytest.raises(BinEncodeError, match="no longer matches the source header"):
            doc.to_bin(source, config)

    def test_untrusted_preset_bounds_decode_depth(self):
        """Test that the preset's binary depth limit reaches the decoder."""
        levels = 4097
        source = "<d>" * levels + "</d>" * levels
        data = Document.parse(source).to_bin(source)

        with pytest.raises(BinDecodeError) as info:
            Document.from_bin(data, config=SpanXmlConfig.untrusted_input())

        assert info.value.kind is BinDecodeErrorKind.DEPTH_LIMIT_EXCEEDED

    def test_timing_is_logged(self, caplog):
        """Test that encoding and decoding report their duration."""
        doc = Document.parse("<a>t</a>")

        with caplog.at_level(logging.INFO, logger="spanxml.serialization.tree_codec"):
            Document.from_bin(doc.to_bin())

        messages = [r.getMessage() for r in caplog.records]
        assert messages == ["Completed document encoding", "Completed document decoding"]
        encoded, decoded = caplog.records
        assert encoded.string_format == "INLINE"
        assert encoded.size_bytes == decoded.size_bytes
        assert decoded.string_format == "INLINE"
        assert decoded.processing_time_ms >= 0

    def test_logging_level_from_config(self, caplog):
        """Test that the configured logging level silences codec records."""
        config = SpanXmlConfig().override(global___logging_level="WARNING")
        doc = Document.parse("<a/>")

        with caplog.at_level(logging.DEBUG, logger="spanxml.serialization.tree_codec"):
            Document.from_bin(doc.to_bin(config=config), config=config)

        assert not caplog.records
