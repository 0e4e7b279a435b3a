from __future__ import annotations

from typing import IO, TYPE_CHECKING, Protocol

from pydantic import BaseModel

if TYPE_CHECKING:
    from yamlenv.loader import LoaderOptions


class ConfigSource(Protocol):
    """Produce a readable, closable stream holding one YAML document, or raise."""

    def __call__(self) -> IO:
        ...


class ConfigLoader(Protocol):
    """
    Resolves a destination model from layered sources.

    Precedence: environment > local override document > base document.
    """

    def load(self, options: "LoaderOptions") -> BaseModel:
        ...
