from __future__ import annotations

from typing import Optional


class YamlEnvError(Exception):
    """Base class for every error raised while resolving configuration."""


class ConfigurationError(YamlEnvError, ValueError):
    """Invalid call-time setup. Raised before any source is opened."""


class LayerError(YamlEnvError):
    """A failure tied to one document layer and its source."""

    def __init__(self, message: str, *, source: str, layer: Optional[str] = None) -> None:
        super().__init__(message)
        self.source = source
        self.layer = layer


class SourceOpenError(LayerError):
    pass


class SourceReadError(LayerError):
    pass


class DecodeError(LayerError):
    """Malformed YAML, or a document value the destination field rejects."""

    def __init__(
        self,
        message: str,
        *,
        source: str,
        layer: Optional[str] = None,
        path: Optional[str] = None,
    ) -> None:
        super().__init__(message, source=source, layer=layer)
        self.path = path


class TypeCoercionError(YamlEnvError, ValueError):
    """An environment value cannot be parsed into its field's type."""

    def __init__(self, message: str, *, path: str, key: str) -> None:
        super().__init__(message)
        self.path = path
        self.key = key


class UnsupportedTypeError(YamlEnvError, TypeError):
    """The field type has no parsing rule for environment overrides."""

    def __init__(self, message: str, *, path: str, field_type: object) -> None:
        super().__init__(message)
        self.path = path
        self.field_type = field_type


def with_layer(exc: LayerError, layer: str) -> LayerError:
    """Return a copy of a layer error re-labelled for the given layer."""
    message = f"load {layer} config: {exc}"
    if isinstance(exc, DecodeError):
        return DecodeError(message, source=exc.source, layer=layer, path=exc.path)
    return type(exc)(message, source=exc.source, layer=layer)
