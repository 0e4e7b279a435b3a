"""
Declarative field registry for destination models.

Each pydantic model class is described once as an ordered tuple of FieldSpec
records (attribute, path segment, type kind, adapter). Both the document loader
and the environment walker visit this registry instead of inspecting the model
on every call. Registries are cached per class and never mutated.
"""

from __future__ import annotations

import types
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from typing import Annotated, Any, Literal, Optional, Tuple, Type, Union, get_args, get_origin

import annotated_types
from pydantic import BaseModel, BeforeValidator, TypeAdapter
from pydantic.fields import FieldInfo

from yamlenv.duration import coerce_duration
from yamlenv.errors import ConfigurationError

FieldKind = Literal["model", "str", "bool", "int", "float", "duration", "other"]

_UNION_TYPES = (Union, types.UnionType)


@dataclass(frozen=True, slots=True)
class FieldSpec:
    name: str
    segment: str
    kind: FieldKind
    annotation: Any
    adapter: TypeAdapter
    model: Optional[Type[BaseModel]] = None
    unsigned: bool = False
    nullable: bool = False

    def join(self, parent_path: str) -> str:
        return f"{parent_path}.{self.segment}" if parent_path else self.segment


def _accepts_none(annotation: Any) -> bool:
    if annotation is Any or annotation is None or annotation is type(None):
        return True
    if get_origin(annotation) is Annotated:
        return _accepts_none(get_args(annotation)[0])
    if get_origin(annotation) in _UNION_TYPES:
        return any(_accepts_none(arg) for arg in get_args(annotation))
    return False


def _strip_optional(annotation: Any) -> Any:
    if get_origin(annotation) in _UNION_TYPES:
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _classify(annotation: Any) -> Tuple[FieldKind, Optional[Type[BaseModel]]]:
    base = _strip_optional(annotation)
    if get_origin(base) is Annotated:
        base = get_args(base)[0]
    if not isinstance(base, type):
        return "other", None
    if issubclass(base, BaseModel):
        return "model", base
    # bool is a subclass of int, so it has to be tested first.
    if issubclass(base, bool):
        return "bool", None
    if issubclass(base, timedelta):
        return "duration", None
    if issubclass(base, int):
        return "int", None
    if issubclass(base, float):
        return "float", None
    if issubclass(base, str):
        return "str", None
    return "other", None


def _is_non_negative(metadata: list) -> bool:
    for item in metadata:
        if isinstance(item, annotated_types.Ge) and item.ge >= 0:
            return True
        if isinstance(item, annotated_types.Gt) and item.gt >= -1:
            return True
    return False


def _build_adapter(info: FieldInfo, kind: FieldKind) -> TypeAdapter:
    parts: list = [info.annotation, *info.metadata]
    if kind == "duration":
        parts.append(BeforeValidator(coerce_duration))
    if len(parts) == 1:
        return TypeAdapter(info.annotation)
    return TypeAdapter(Annotated[tuple(parts)])


def segment_for(name: str, info: FieldInfo) -> str:
    """Serialization name of a field: its alias when declared, else the lowercased name."""
    alias = info.serialization_alias or info.alias
    if alias:
        return alias
    return name.lower()


@lru_cache(maxsize=None)
def field_registry(model: Type[BaseModel]) -> Tuple[FieldSpec, ...]:
    """Return the ordered field specs of a model class, skipping excluded fields."""
    if model.model_config.get("frozen"):
        raise ConfigurationError(
            f"Target model {model.__name__} is frozen; configuration is written in place."
        )

    specs = []
    seen: dict[str, str] = {}
    for name, info in model.model_fields.items():
        if info.exclude is True:
            continue
        segment = segment_for(name, info)
        if segment in seen:
            raise ConfigurationError(
                f"Fields {seen[segment]!r} and {name!r} of {model.__name__} share the key {segment!r}."
            )
        seen[segment] = name

        kind, nested = _classify(info.annotation)
        if nested is not None:
            # Validate nested schemas eagerly so a bad model fails before any I/O.
            field_registry(nested)
        specs.append(
            FieldSpec(
                name=name,
                segment=segment,
                kind=kind,
                annotation=info.annotation,
                adapter=_build_adapter(info, kind),
                model=nested,
                unsigned=kind == "int" and _is_non_negative(info.metadata),
                nullable=_accepts_none(info.annotation),
            )
        )
    return tuple(specs)


def iter_paths(model: Type[BaseModel], parent_path: str = "") -> list[Tuple[str, FieldSpec]]:
    """Flatten a model class into (dotted path, leaf spec) pairs in pre-order."""
    out = []
    for spec in field_registry(model):
        path = spec.join(parent_path)
        if spec.kind == "model" and spec.model is not None:
            out.extend(iter_paths(spec.model, path))
        else:
            out.append((path, spec))
    return out
