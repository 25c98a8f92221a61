"""Configuration classes for span-preserving XML parsing and binary coding.

Each processing layer has its own validated dataclass; :class:`SpanXmlConfig`
bundles them into one immutable object that can be overridden field by field
and round-tripped through JSON.
"""

import json
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Any, Dict, List, Optional

_INDENT_CHARACTERS = frozenset(" \t")


class StringFormat(Enum):
    """How span text is stored in the binary format."""

    HEADER = auto()   # Spans reference a source text stored once up front
    INLINE = auto()   # Every span carries its own text


@dataclass
class ArenaConfig:
    """Configuration for the source arena."""

    max_chars: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate arena configuration."""
        if self.max_chars is not None and self.max_chars <= 0:
            raise ValueError("max_chars must be > 0 or None")


@dataclass
class TreeConfig:
    """Configuration for tree building."""

    max_depth: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate tree configuration."""
        if self.max_depth is not None and self.max_depth <= 0:
            raise ValueError("max_depth must be > 0 or None")


@dataclass
class BinaryConfig:
    """Configuration for the binary encoder and decoder."""

    max_depth: Optional[int] = None
    verify_header_spans: bool = False

    def __post_init__(self) -> None:
        """Validate binary configuration."""
        if self.max_depth is not None and self.max_depth <= 0:
            raise ValueError("max_depth must be > 0 or None")


@dataclass
class WriterConfig:
    """Configuration for the XML writer."""

    indent: str = "\t"

    def __post_init__(self) -> None:
        """Validate writer configuration."""
        if not set(self.indent) <= _INDENT_CHARACTERS:
            raise ValueError("indent may only contain spaces and tabs")


@dataclass
class GlobalConfig:
    """Settings that apply across all components."""

    logging_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    enable_correlation_tracking: bool = True
    max_input_chars: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate global configuration."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.logging_level not in valid_levels:
            raise ValueError(f"logging_level must be one of {valid_levels}")
        if self.max_input_chars is not None and self.max_input_chars <= 0:
            raise ValueError("max_input_chars must be > 0 or None")


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigValidationError(ConfigError):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, field_name: Optional[str] = None,
                 suggestions: Optional[List[str]] = None):
        super().__init__(message)
        self.field_name = field_name
        self.suggestions = suggestions or []


_COMPONENTS = ("arena", "tree", "binary", "writer", "global_")


@dataclass(frozen=True)
class SpanXmlConfig:
    """Immutable configuration for every layer of the package.

    Thread-safe due to frozen dataclass implementation; derive variants with
    :meth:`override`.
    """

    arena: ArenaConfig = field(default_factory=ArenaConfig)
    tree: TreeConfig = field(default_factory=TreeConfig)
    binary: BinaryConfig = field(default_factory=BinaryConfig)
    writer: WriterConfig = field(default_factory=WriterConfig)
    global_: GlobalConfig = field(default_factory=GlobalConfig)

    version: str = "1.0.0"
    name: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate the complete configuration."""
        try:
            for component in _COMPONENTS:
                getattr(self, component).__post_init__()
        except ValueError as e:
            raise ConfigValidationError(str(e)) from e

        self._validate_cross_component_dependencies()

    def _validate_cross_component_dependencies(self) -> None:
        if (
            self.arena.max_chars is not None
            and self.global_.max_input_chars is not None
            and self.global_.max_input_chars > self.arena.max_chars
        ):
            raise ConfigValidationError(
                "Global input limit exceeds arena capacity",
                field_name="global_.max_input_chars",
                suggestions=["Reduce global_.max_input_chars",
                             "Increase arena.max_chars"]
            )

        if (
            self.tree.max_depth is not None
            and self.binary.max_depth is not None
            and self.binary.max_depth < self.tree.max_depth
        ):
            raise ConfigValidationError(
                f"binary.max_depth ({self.binary.max_depth}) is lower than "
                f"tree.max_depth ({self.tree.max_depth}); parsed documents "
                "could fail to decode",
                field_name="binary.max_depth",
                suggestions=["Raise binary.max_depth to at least tree.max_depth"]
            )

    def override(self, **kwargs: Any) -> "SpanXmlConfig":
        """Create a new configuration with specific overrides.

        Args:
            **kwargs: Fields to override; ``component__field`` addresses a
                field of a component configuration

        Returns:
            New SpanXmlConfig instance with overrides applied

        Example:
            >>> config = SpanXmlConfig()
            >>> strict = config.override(
            ...     tree__max_depth=512,
            ...     binary__verify_header_spans=True
            ... )
        """
        nested_overrides: Dict[str, Any] = {}
        for key, value in kwargs.items():
            if "__" in key:
                component, field_name = key.rsplit("__", 1)
                nested_overrides.setdefault(component, {})[field_name] = value
            else:
                nested_overrides[key] = value

        new_fields: Dict[str, Any] = {}
        try:
            for key, value in nested_overrides.items():
                if key in _COMPONENTS and isinstance(value, dict):
                    new_fields[key] = replace(getattr(self, key), **value)
                else:
                    new_fields[key] = value
            return replace(self, **new_fields)
        except ValueError as e:
            raise ConfigValidationError(str(e)) from e

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary format."""
        def _dataclass_to_dict(obj: Any) -> Any:
            if hasattr(obj, "__dataclass_fields__"):
                return {
                    name: _dataclass_to_dict(getattr(obj, name))
                    for name in obj.__dataclass_fields__
                }
            if isinstance(obj, Enum):
                return obj.name
            return obj

        result = _dataclass_to_dict(self)
        if not isinstance(result, dict):
            raise ConfigValidationError("Configuration serialization failed")
        return result

    def to_json(self, indent: int = 2) -> str:
        """Convert configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SpanXmlConfig":
        """Create configuration from dictionary.

        Unknown keys are rejected so that typos do not silently fall back to
        defaults.

        Args:
            data: Dictionary containing configuration data

        Returns:
            SpanXmlConfig instance created from dictionary
        """
        def _dict_to_dataclass(data_dict: Dict[str, Any], target_class: type) -> Any:
            known = target_class.__dataclass_fields__
            unknown = sorted(set(data_dict) - set(known))
            if unknown:
                raise ConfigValidationError(
                    f"Unknown configuration keys for {target_class.__name__}: "
                    f"{', '.join(unknown)}",
                    field_name=unknown[0],
                )

            field_values: Dict[str, Any] = {}
            for field_name, value in data_dict.items():
                field_type = known[field_name].type
                if hasattr(field_type, "__dataclass_fields__"):
                    field_values[field_name] = _dict_to_dataclass(value, field_type)
                elif hasattr(field_type, "__members__") and isinstance(value, str):
                    field_values[field_name] = field_type[value]
                else:
                    field_values[field_name] = value

            try:
                return target_class(**field_values)
            except (TypeError, ValueError) as e:
                raise ConfigValidationError(str(e)) from e

        result = _dict_to_dataclass(data, cls)
        if not isinstance(result, cls):
            raise ConfigValidationError(f"Failed to deserialize to {cls.__name__}")
        return result

    @classmethod
    def from_json(cls, json_str: str) -> "SpanXmlConfig":
        """Create configuration from JSON string."""
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def trusted_fast(cls) -> "SpanXmlConfig":
        """Create preset for documents produced by trusted writers."""
        return cls(
            binary=BinaryConfig(verify_header_spans=False),
            global_=GlobalConfig(enable_correlation_tracking=False),
            name="trusted_fast",
            description="No limits or extra verification; fastest round-trips"
        )

    @classmethod
    def untrusted_input(cls) -> "SpanXmlConfig":
        """Create preset bounding resources spent on hostile input."""
        return cls(
            arena=ArenaConfig(max_chars=64 * 1024 * 1024),
            tree=TreeConfig(max_depth=4096),
            binary=BinaryConfig(max_depth=4096, verify_header_spans=True),
            global_=GlobalConfig(max_input_chars=16 * 1024 * 1024),
            name="untrusted_input",
            description=(
                "Bounded nesting, arena capacity and input size for data from "
                "untrusted sources"
            )
        )
