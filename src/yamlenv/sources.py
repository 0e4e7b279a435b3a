"""Byte-stream producers for configuration documents."""

from __future__ import annotations

import io
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import IO, Union


@dataclass(frozen=True, slots=True)
class FileSource:
    """Open a YAML document from the filesystem."""

    path: Union[str, Path]

    def __call__(self) -> IO[bytes]:
        return open(self.path, "rb")

    def __str__(self) -> str:
        return f"file:{self.path}"


@dataclass(frozen=True, slots=True)
class ResourceSource:
    """
    Open a YAML document shipped inside an installed Python package.

    `name` may contain "/" separators for files in sub-directories of the package.
    """

    package: str
    name: str

    def __call__(self) -> IO[bytes]:
        resource = resources.files(self.package)
        for part in self.name.split("/"):
            resource = resource.joinpath(part)
        return resource.open("rb")

    def __str__(self) -> str:
        return f"resource:{self.package}/{self.name}"


@dataclass(frozen=True, slots=True)
class ReaderSource:
    """
    Wrap in-memory data or an already-open stream.

    bytes and str produce a fresh stream on every call. A file-like object is
    handed out as-is and is closed by the loader once it has been read.
    """

    data: Union[bytes, str, IO]
    name: str = "reader"

    def __call__(self) -> IO:
        if isinstance(self.data, bytes):
            return io.BytesIO(self.data)
        if isinstance(self.data, str):
            return io.StringIO(self.data)
        return self.data

    def __str__(self) -> str:
        return self.name


def describe_source(source: object) -> str:
    """Human-readable identity of a source for errors and logs."""
    if isinstance(source, (FileSource, ResourceSource, ReaderSource)):
        return str(source)
    return getattr(source, "__qualname__", None) or repr(source)
