"""Tokenization layer: converts XML source text into positioned tokens."""

from .tokenizer import (
    ElementEnd,
    Token,
    TokenizerState,
    TokenType,
    XMLTokenizer,
)

__all__ = [
    "ElementEnd",
    "Token",
    "TokenizerState",
    "TokenType",
    "XMLTokenizer",
]
