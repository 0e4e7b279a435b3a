"""
Layered document loading.

A document is decoded straight onto the destination model: fields present in
the document overwrite the destination, absent fields keep whatever an earlier
layer (or the model default) put there. A null value (`key:` or `key: ~`)
counts as absent unless the field accepts None.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Union

import yaml
from pydantic import BaseModel, ValidationError
from yaml.constructor import SafeConstructor

from yamlenv.errors import DecodeError, LayerError, SourceOpenError, SourceReadError, with_layer
from yamlenv.interfaces import ConfigSource
from yamlenv.schema import FieldSpec, field_registry, segment_for
from yamlenv.sources import describe_source

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ScalarText:
    """A typed YAML scalar (int, float, bool, timestamp) with its source text."""

    value: Any
    text: str


class DocumentLoader(yaml.SafeLoader):
    """SafeLoader that keeps the literal text of non-string scalars."""


def _keep_text(construct):
    def constructor(loader: DocumentLoader, node: yaml.ScalarNode) -> ScalarText:
        return ScalarText(construct(loader, node), node.value)

    return constructor


for _tag, _construct in (
    ("tag:yaml.org,2002:bool", SafeConstructor.construct_yaml_bool),
    ("tag:yaml.org,2002:int", SafeConstructor.construct_yaml_int),
    ("tag:yaml.org,2002:float", SafeConstructor.construct_yaml_float),
    ("tag:yaml.org,2002:timestamp", SafeConstructor.construct_yaml_timestamp),
):
    DocumentLoader.add_constructor(_tag, _keep_text(_construct))


def plain_value(value: Any) -> Any:
    """Drop scalar source text, recursively: the typed value YAML resolved."""
    if isinstance(value, ScalarText):
        return value.value
    if isinstance(value, dict):
        return {_key_text(k): plain_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [plain_value(v) for v in value]
    return value


def _key_text(key: Any) -> Any:
    # Mapping keys match field names by their text ("on:", "1:").
    return key.text if isinstance(key, ScalarText) else key


def _text_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {_key_text(k): _text_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_text_keys(v) for v in value]
    return value


def read_source(source: ConfigSource, *, source_name: str) -> Union[bytes, str]:
    """Open, fully read and close a source."""
    try:
        stream = source()
    except Exception as exc:
        raise SourceOpenError(f"open config source {source_name}: {exc}", source=source_name) from exc

    try:
        return stream.read()
    except (OSError, ValueError) as exc:
        raise SourceReadError(f"read config data from {source_name}: {exc}", source=source_name) from exc
    finally:
        stream.close()


def decode_document(data: Union[bytes, str], *, source_name: str) -> dict[str, Any]:
    """
    Parse one YAML document into a mapping with text keys.

    Non-string scalar values stay wrapped in ScalarText so a str field can
    receive the literal text ("1.0", "no") instead of the resolved value.
    """
    try:
        document = yaml.load(data, Loader=DocumentLoader)
    except yaml.YAMLError as exc:
        raise DecodeError(f"parse YAML from {source_name}: {exc}", source=source_name) from exc
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise DecodeError(
            f"Top-level YAML must be a mapping, got: {type(plain_value(document)).__name__}",
            source=source_name,
        )
    return _text_keys(document)


def lowercase_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            (k.lower() if isinstance(k, str) else k): lowercase_keys(v) for k, v in value.items()
        }
    if isinstance(value, list):
        return [lowercase_keys(v) for v in value]
    return value


def _describe_validation_error(exc: ValidationError) -> str:
    return "; ".join(err["msg"] for err in exc.errors())


def _field_value(spec: FieldSpec, value: Any) -> Any:
    if spec.kind == "str" and isinstance(value, ScalarText):
        return value.text
    return plain_value(value)


def apply_document(
    target: BaseModel,
    document: Mapping[Any, Any],
    *,
    source_name: str,
    path: str = "",
    lower_keys: bool = False,
) -> None:
    """
    Write every field the document defines onto target, recursing into nested models.

    With `lower_keys` the document keys are expected in lowercase and field
    names and aliases are compared lowercased as well.
    """
    model = type(target)
    specs = field_registry(model)

    def key_for(segment: str) -> str:
        return segment.lower() if lower_keys else segment

    if model.model_config.get("extra") == "forbid":
        known = {key_for(segment_for(name, info)) for name, info in model.model_fields.items()}
        unknown = sorted(str(k) for k in document if k not in known)
        if unknown:
            where = path or "<root>"
            raise DecodeError(
                f"Unknown configuration keys at {where} in {source_name}: {', '.join(unknown)}",
                source=source_name,
                path=path or None,
            )

    for spec in specs:
        key = key_for(spec.segment)
        if key not in document:
            continue
        value = document[key]
        if value is None and not spec.nullable:
            continue
        field_path = spec.join(path)
        current = getattr(target, spec.name)

        if spec.kind == "model" and isinstance(value, Mapping) and isinstance(current, BaseModel):
            apply_document(current, value, source_name=source_name, path=field_path, lower_keys=lower_keys)
            continue

        try:
            parsed = spec.adapter.validate_python(_field_value(spec, value))
        except ValidationError as exc:
            raise DecodeError(
                f"decode {field_path} from {source_name}: {_describe_validation_error(exc)}",
                source=source_name,
                path=field_path,
            ) from exc
        setattr(target, spec.name, parsed)


def load_document(
    source: ConfigSource,
    target: BaseModel,
    *,
    layer: str,
    missing_ok: bool = False,
    force_lower_keys: bool = False,
) -> bool:
    """
    Load one layer onto target.

    Returns False when the source does not exist and `missing_ok` is set; the
    layer is skipped in that case. Every other failure raises a LayerError
    labelled with the layer name.
    """
    source_name = describe_source(source)
    try:
        data = read_source(source, source_name=source_name)
        document = decode_document(data, source_name=source_name)
        if force_lower_keys:
            document = lowercase_keys(document)
        apply_document(target, document, source_name=source_name, lower_keys=force_lower_keys)
    except SourceOpenError as exc:
        if missing_ok and isinstance(exc.__cause__, FileNotFoundError):
            logger.debug("config.layer_skipped reason=not_found layer=%s source=%s", layer, source_name)
            return False
        raise with_layer(exc, layer) from exc
    except LayerError as exc:
        raise with_layer(exc, layer) from exc

    logger.debug("config.layer_loaded layer=%s source=%s keys=%s", layer, source_name, len(document))
    return True
