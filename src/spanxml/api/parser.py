"""Module-level parsing and binary encoding API.

``parse`` and ``parse_file`` raise :class:`XmlError` on malformed input.
``parse_string`` never raises for bad input; it reports failures through a
:class:`ParseResult` with diagnostics and performance metrics.
"""

import logging
import time
from pathlib import Path
from typing import Optional, Tuple, Union

from spanxml.shared import (
    DiagnosticSeverity,
    ErrorContext,
    ParseResult,
    SpanXmlConfig,
    XmlError,
    XmlErrorKind,
    get_logger,
)
from spanxml.source import SourceArena
from spanxml.tokenization import XMLTokenizer
from spanxml.tree import Document, OwnedDocument, XMLTreeBuilder

PREVIEW_LENGTH = 100  # Max length for content preview in logs
MS_PER_SECOND = 1000  # Milliseconds per second conversion


def _check_input_size(source: str, config: SpanXmlConfig) -> None:
    limit = config.global_.max_input_chars
    if limit is not None and len(source) > limit:
        raise XmlError(
            XmlErrorKind.CUSTOM,
            ErrorContext(""),
            f"Input of {len(source)} characters exceeds max_input_chars={limit}",
        )


def _build(
    source: str, config: SpanXmlConfig, correlation_id: Optional[str]
) -> Tuple[Document, XMLTokenizer, XMLTreeBuilder]:
    _check_input_size(source, config)
    if config.arena.max_chars is not None:
        source = SourceArena(config.arena, correlation_id).try_alloc(source)
        if source is None:
            raise XmlError(
                XmlErrorKind.ALLOCATION,
                ErrorContext(""),
                f"source exceeds arena capacity of {config.arena.max_chars} characters",
            )

    tokenizer = XMLTokenizer(source)
    builder = XMLTreeBuilder(config.tree, correlation_id, config.global_)
    return builder.build(tokenizer, source), tokenizer, builder


def parse(
    source: str,
    config: Optional[SpanXmlConfig] = None,
    correlation_id: Optional[str] = None
) -> Document:
    """Parse XML text into a borrowed document.

    Args:
        source: Complete XML text
        config: Optional configuration (defaults to SpanXmlConfig())
        correlation_id: Optional correlation ID for request tracking

    Returns:
        The parsed Document; its spans point into ``source``

    Raises:
        XmlError: If the XML is malformed or exceeds configured limits

    Examples:
        >>> doc = parse('<root><item id="1">Hello</item></root>')
        >>> str(doc.root.children[0].get_attribute("id").value)
        '1'
    """
    config = config or SpanXmlConfig()
    logger = get_logger(__name__, correlation_id, "parse", config.global_)
    logger.info("Starting parse operation", extra={"content_length": len(source)})

    document, _, builder = _build(source, config, correlation_id)

    logger.info("Parse operation completed", extra={"nodes_built": builder.nodes_built})
    return document


def parse_string(
    xml_string: str,
    config: Optional[SpanXmlConfig] = None,
    correlation_id: Optional[str] = None
) -> ParseResult:
    """Parse XML text without raising on malformed input.

    Args:
        xml_string: XML content as string
        config: Optional configuration (defaults to SpanXmlConfig())
        correlation_id: Optional correlation ID for request tracking

    Returns:
        ParseResult holding the document on success, or the error and an
        ERROR diagnostic (CRITICAL for unexpected failures) otherwise

    Examples:
        >>> result = parse_string('<root><unclosed>content')
        >>> result.success
        False
        >>> result.diagnostics[0].message
        'Unclosed tag: unclosed'
    """
    start_time = time.time()
    config = config or SpanXmlConfig()
    logger = get_logger(__name__, correlation_id, "parse_string", config.global_)

    if logger.is_enabled_for(logging.INFO):
        logger.info(
            "Starting string parse operation",
            extra={
                "content_length": len(xml_string),
                "preview": (
                    xml_string[:PREVIEW_LENGTH] + "..."
                    if len(xml_string) > PREVIEW_LENGTH else xml_string
                )
            }
        )

    try:
        document, tokenizer, builder = _build(xml_string, config, correlation_id)
    except XmlError as e:
        processing_time = (time.time() - start_time) * MS_PER_SECOND
        logger.info(
            "String parse rejected malformed input",
            extra={"error_kind": e.kind.name, "processing_time_ms": processing_time}
        )
        result = ParseResult(success=False, error=e, correlation_id=correlation_id)
        row, column = e.context.position()
        result.add_diagnostic(
            DiagnosticSeverity.ERROR,
            e.message,
            "parser",
            position={"line": row, "column": column, "offset": e.context.offset},
            details={"error_kind": e.kind.name, "rendered": str(e)}
        )
        result.performance.processing_time_ms = processing_time
        result.performance.characters_processed = len(xml_string)
        return result
    except Exception as e:
        # Never-fail guarantee for parse_string
        processing_time = (time.time() - start_time) * MS_PER_SECOND
        logger.exception(
            "String parse operation failed",
            extra={"processing_time_ms": processing_time}
        )
        result = ParseResult(success=False, error=e, correlation_id=correlation_id)
        result.add_diagnostic(
            DiagnosticSeverity.CRITICAL,
            f"String parse failed: {e}",
            "parser",
            details={"exception_type": type(e).__name__}
        )
        result.performance.processing_time_ms = processing_time
        return result

    processing_time = (time.time() - start_time) * MS_PER_SECOND
    result = ParseResult(document=document, correlation_id=correlation_id)
    result.performance.processing_time_ms = processing_time
    result.performance.characters_processed = len(xml_string)
    result.performance.tokens_generated = tokenizer.tokens_generated
    result.performance.nodes_built = builder.nodes_built

    logger.info(
        "String parse operation completed",
        extra={
            "nodes_built": builder.nodes_built,
            "tokens_generated": tokenizer.tokens_generated,
            "processing_time_ms": processing_time
        }
    )
    return result


def parse_file(
    file_path: Union[str, Path],
    encoding: str = "utf-8",
    config: Optional[SpanXmlConfig] = None,
    correlation_id: Optional[str] = None
) -> Document:
    """Read and parse an XML file.

    Error contexts of the raised errors carry ``file_path``, so rendered
    messages read ``= At path:row:col``.

    Args:
        file_path: Path to XML file (string or Path object)
        encoding: Text encoding of the file
        config: Optional configuration (defaults to SpanXmlConfig())
        correlation_id: Optional correlation ID for request tracking

    Raises:
        XmlError: IO if the file cannot be read or decoded, otherwise any
            parse error
    """
    config = config or SpanXmlConfig()
    logger = get_logger(__name__, correlation_id, "parse_file", config.global_)
    path_obj = Path(file_path) if isinstance(file_path, str) else file_path

    logger.info(
        "Starting file parse operation",
        extra={"file_path": str(path_obj), "encoding": encoding}
    )

    try:
        with path_obj.open(encoding=encoding) as file:
            content = file.read()
    except OSError as e:
        raise XmlError.from_os_error(e, path_obj) from e
    except UnicodeDecodeError as e:
        raise XmlError(XmlErrorKind.IO, ErrorContext("", None, path_obj), str(e)) from e

    try:
        return parse(content, config, correlation_id)
    except XmlError as e:
        e.with_path(path_obj)
        raise


def encode(
    document: Document,
    source: Optional[str] = None,
    config: Optional[SpanXmlConfig] = None
) -> bytes:
    """Encode a document to bytes.

    With ``source`` (the text the document was parsed from) strings are
    stored as offsets into a single copy of it; otherwise inline. The
    ``binary`` settings of ``config`` apply, so passing the configuration a
    document was parsed with keeps header verification and depth limits in
    force.

    Raises:
        BinEncodeError: If header spans are verified and the tree was mutated,
            or the prolog or epilog holds an element
    """
    return document.to_bin(source, config)


def decode(
    data: bytes,
    arena: Optional[SourceArena] = None,
    config: Optional[SpanXmlConfig] = None
) -> Document:
    """Decode bytes produced by :func:`encode`, detecting the string format.

    Raises:
        BinDecodeError: If the data is truncated, corrupt or inconsistent
    """
    return Document.from_bin(data, arena, config)


def decode_owned(data: bytes, config: Optional[SpanXmlConfig] = None) -> OwnedDocument:
    """Decode bytes produced by :func:`encode` into an owned document."""
    return OwnedDocument.from_bin(data, config)
