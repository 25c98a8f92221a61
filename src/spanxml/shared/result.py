"""Result objects and diagnostic types for span-preserving XML parsing."""

import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional


class DiagnosticSeverity(Enum):
    """Severity levels for diagnostic entries."""

    DEBUG = auto()      # Debug-level information
    INFO = auto()       # Informational messages
    WARNING = auto()    # Warnings about potential issues
    ERROR = auto()      # Errors that stopped the operation
    CRITICAL = auto()   # Unexpected failures outside the XML error taxonomy


@dataclass
class DiagnosticEntry:
    """Single diagnostic entry with context information."""

    severity: DiagnosticSeverity
    message: str
    component: str
    position: Optional[Dict[str, int]] = None
    details: Optional[Dict[str, Any]] = None
    timestamp: float = field(default_factory=time.time)
    correlation_id: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate diagnostic entry."""
        if not self.message:
            raise ValueError("Diagnostic message cannot be empty")
        if not self.component:
            raise ValueError("Diagnostic component cannot be empty")


@dataclass
class PerformanceMetrics:
    """Performance metrics for parsing operations."""

    processing_time_ms: float = 0.0
    characters_processed: int = 0
    tokens_generated: int = 0
    nodes_built: int = 0

    @property
    def characters_per_second(self) -> float:
        """Calculate characters processed per second."""
        if self.processing_time_ms <= 0:
            return 0.0
        return (self.characters_processed * 1000.0) / self.processing_time_ms

    @property
    def tokens_per_second(self) -> float:
        """Calculate tokens generated per second."""
        if self.processing_time_ms <= 0:
            return 0.0
        return (self.tokens_generated * 1000.0) / self.processing_time_ms


@dataclass
class ParseResult:
    """Outcome of a parse that reports failure instead of raising.

    On success ``document`` holds the parsed tree; on failure ``error`` holds
    the exception and ``diagnostics`` records where and why parsing stopped.
    """

    document: Optional[Any] = None
    success: bool = True
    error: Optional[Exception] = None

    diagnostics: List[DiagnosticEntry] = field(default_factory=list)
    performance: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    correlation_id: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate result consistency."""
        if self.success and self.document is None:
            raise ValueError("Successful result requires a document")
        if not self.success and self.error is None:
            raise ValueError("Failed result requires an error")

    @property
    def processing_time_ms(self) -> float:
        """Get total processing time in milliseconds."""
        return self.performance.processing_time_ms

    def add_diagnostic(
        self,
        severity: DiagnosticSeverity,
        message: str,
        component: str,
        position: Optional[Dict[str, int]] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        """Add a diagnostic entry to the result."""
        self.diagnostics.append(
            DiagnosticEntry(
                severity=severity,
                message=message,
                component=component,
                position=position,
                details=details,
                correlation_id=self.correlation_id
            )
        )

    def get_diagnostics_by_severity(
        self, severity: DiagnosticSeverity
    ) -> List[DiagnosticEntry]:
        """Get diagnostics filtered by severity level."""
        return [d for d in self.diagnostics if d.severity == severity]

    @property
    def has_errors(self) -> bool:
        """Check if result contains error or critical diagnostics."""
        return any(
            d.severity in (DiagnosticSeverity.ERROR, DiagnosticSeverity.CRITICAL)
            for d in self.diagnostics
        )

    def summary(self) -> Dict[str, Any]:
        """Get a compact summary of the result."""
        return {
            "success": self.success,
            "error": str(self.error) if self.error is not None else None,
            "diagnostic_count": len(self.diagnostics),
            "processing_time_ms": self.performance.processing_time_ms,
            "characters_processed": self.performance.characters_processed,
            "tokens_generated": self.performance.tokens_generated,
            "nodes_built": self.performance.nodes_built,
            "correlation_id": self.correlation_id,
        }
