"""Sub-parser for ``<!DOCTYPE>`` declarations and their entity subset."""

from typing import Iterator, Optional

from spanxml.shared.errors import ErrorContext, XmlError, XmlErrorKind
from spanxml.source.span import Span
from spanxml.tokenization import Token, TokenType
from spanxml.tree.nodes import DtdEntity, DtdNode, EntityDefinition, ExternalId


def external_id_from_token(token: Token) -> Optional[ExternalId]:
    """Build the external identifier carried by a DOCTYPE or entity token."""
    if token.system_id is None:
        return None
    if token.public_id is not None:
        return ExternalId.public_id(token.public_id, token.system_id)
    return ExternalId.system_id(token.system_id)


def parse_dtd(start: Token, tokens: Iterator[Token], source: str) -> DtdNode:
    """Parse a DOCTYPE starting at ``start``, pulling subset tokens as needed.

    Args:
        start: The DTD_START or EMPTY_DTD token that opened the declaration
        tokens: The token stream, positioned just after ``start``
        source: Full source text, for span extension and error context

    Returns:
        The completed DtdNode, its span covering the whole declaration

    Raises:
        XmlError: On any token other than an entity declaration or the end of
            the subset, or if the stream ends inside the subset
    """
    if start.type not in (TokenType.DTD_START, TokenType.EMPTY_DTD):
        raise XmlError(
            XmlErrorKind.CUSTOM,
            ErrorContext(source, start.span),
            "Expected DTD start or empty DTD",
        )

    dtd = DtdNode(start.span, start.local, external_id_from_token(start))
    if start.type is TokenType.EMPTY_DTD:
        return dtd

    for token in tokens:
        if token.type is TokenType.ENTITY_DECLARATION:
            external_id = external_id_from_token(token)
            if external_id is not None:
                definition = EntityDefinition.external(external_id)
            else:
                definition = EntityDefinition.entity_value(token.value)
            dtd.entities.append(DtdEntity(token.span, token.local, definition))
        elif token.type is TokenType.DTD_END:
            dtd.span = dtd.span.extend(token.span, source)
            return dtd
        else:
            raise XmlError(
                XmlErrorKind.CUSTOM,
                ErrorContext(source, token.span),
                "Expected Entity or DTD end",
            )

    raise XmlError(XmlErrorKind.UNEXPECTED_EOF, ErrorContext(source, Span.end_of(source)))
