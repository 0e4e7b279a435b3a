"""Layered YAML configuration: base document, local override, environment variables."""

from yamlenv.duration import Duration, format_duration, parse_duration
from yamlenv.errors import (
    ConfigurationError,
    DecodeError,
    SourceOpenError,
    SourceReadError,
    TypeCoercionError,
    UnsupportedTypeError,
    YamlEnvError,
)
from yamlenv.loader import LoaderOptions, YamlEnvLoader, load_config
from yamlenv.sources import FileSource, ReaderSource, ResourceSource

__all__ = [
    "ConfigurationError",
    "DecodeError",
    "Duration",
    "FileSource",
    "LoaderOptions",
    "ReaderSource",
    "ResourceSource",
    "SourceOpenError",
    "SourceReadError",
    "TypeCoercionError",
    "UnsupportedTypeError",
    "YamlEnvError",
    "YamlEnvLoader",
    "format_duration",
    "load_config",
    "parse_duration",
]
