"""Shared utilities for span-preserving XML processing.

This module provides configuration objects, the error taxonomy, result types
and the correlation-aware logger used across all processing layers.
"""

from .config import (
    ArenaConfig,
    BinaryConfig,
    ConfigError,
    ConfigValidationError,
    GlobalConfig,
    SpanXmlConfig,
    StringFormat,
    TreeConfig,
    WriterConfig,
)
from .errors import (
    ArenaAllocationError,
    BinDecodeError,
    BinDecodeErrorKind,
    BinEncodeError,
    ErrorContext,
    SpanXmlError,
    XmlError,
    XmlErrorKind,
    XmlSyntaxError,
)
from .logging import (
    CorrelationLogger,
    get_logger,
)
from .result import (
    DiagnosticEntry,
    DiagnosticSeverity,
    ParseResult,
    PerformanceMetrics,
)

__all__ = [
    "ArenaConfig",
    "BinaryConfig",
    "ConfigError",
    "ConfigValidationError",
    "GlobalConfig",
    "SpanXmlConfig",
    "StringFormat",
    "TreeConfig",
    "WriterConfig",
    "ArenaAllocationError",
    "BinDecodeError",
    "BinDecodeErrorKind",
    "BinEncodeError",
    "ErrorContext",
    "SpanXmlError",
    "XmlError",
    "XmlErrorKind",
    "XmlSyntaxError",
    "CorrelationLogger",
    "get_logger",
    "DiagnosticEntry",
    "DiagnosticSeverity",
    "ParseResult",
    "PerformanceMetrics",
]
