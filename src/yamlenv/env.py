"""
Environment-variable overrides.

Every leaf of the destination model maps to one variable name:

    prefix.upper() + dotted_path.upper() with "." replaced by the delimiter

e.g. prefix "DEMO_" and delimiter "__" map `db.host` to `DEMO_DB__HOST`.
A variable that is present replaces the value produced by the YAML layers.
"""

from __future__ import annotations

import logging
import math
import os
import re
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from dotenv import dotenv_values
from pydantic import BaseModel, ValidationError

from yamlenv.duration import parse_duration
from yamlenv.errors import TypeCoercionError, UnsupportedTypeError
from yamlenv.schema import FieldSpec, field_registry

logger = logging.getLogger(__name__)

_TRUE_TOKENS = frozenset({"1", "t", "true"})
_FALSE_TOKENS = frozenset({"0", "f", "false"})
# ASCII digits only; unsigned values take no sign.
_INT_RE = re.compile(r"[+-]?[0-9]+")
_UINT_RE = re.compile(r"[0-9]+")

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
UINT64_MAX = 2**64 - 1


def build_environ(
    environ: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[Union[str, Path]] = None,
) -> dict[str, str]:
    """
    Snapshot the variables used for lookups.

    Values from a .env file sit below the given (or process) environment.
    The process environment itself is never modified.
    """
    data: dict[str, str] = {}
    if dotenv_path is not None and Path(dotenv_path).exists():
        file_values = dotenv_values(dotenv_path)
        data.update({k: v for k, v in file_values.items() if v is not None})
    data.update(os.environ if environ is None else environ)
    return data


def env_key(prefix: str, delimiter: str, path: str, normalize_dash: bool = False) -> str:
    env_path = path.upper()
    if delimiter:
        env_path = env_path.replace(".", delimiter)
    if normalize_dash:
        env_path = env_path.replace("-", "_")
    return prefix.upper() + env_path


def _parse_bool(raw: str) -> bool:
    token = raw.lower()
    if token in _TRUE_TOKENS:
        return True
    if token in _FALSE_TOKENS:
        return False
    raise ValueError(f"invalid boolean {raw!r}")


def _parse_int(raw: str, unsigned: bool) -> int:
    if not (_UINT_RE if unsigned else _INT_RE).fullmatch(raw):
        raise ValueError(f"invalid integer {raw!r}")
    value = int(raw, 10)
    low, high = (0, UINT64_MAX) if unsigned else (INT64_MIN, INT64_MAX)
    if not low <= value <= high:
        raise ValueError(f"integer {raw!r} out of range")
    return value


def _parse_float(raw: str) -> float:
    if raw != raw.strip() or "_" in raw:
        raise ValueError(f"invalid float {raw!r}")
    value = float(raw)
    if math.isinf(value) and "inf" not in raw.lower():
        raise ValueError(f"float {raw!r} out of range")
    return value


def parse_env_value(raw: str, spec: FieldSpec, *, path: str, key: str) -> Any:
    """Parse a variable's string value into the type declared by the field."""
    try:
        if spec.kind == "str":
            value: Any = raw
        elif spec.kind == "bool":
            value = _parse_bool(raw)
        elif spec.kind == "int":
            value = _parse_int(raw, spec.unsigned)
        elif spec.kind == "float":
            value = _parse_float(raw)
        elif spec.kind == "duration":
            value = parse_duration(raw)
        else:
            raise UnsupportedTypeError(
                f"set field {path}: unsupported field type {spec.annotation!r}",
                path=path,
                field_type=spec.annotation,
            )
    except ValueError as exc:
        raise TypeCoercionError(f"set field {path} from {key}: {exc}", path=path, key=key) from exc

    try:
        return spec.adapter.validate_python(value)
    except ValidationError as exc:
        messages = "; ".join(err["msg"] for err in exc.errors())
        raise TypeCoercionError(f"set field {path} from {key}: {messages}", path=path, key=key) from exc


def apply_env_overrides(
    target: BaseModel,
    *,
    prefix: str,
    delimiter: str,
    environ: Mapping[str, str],
    normalize_dash: bool = False,
    debug_keys: bool = False,
    path: str = "",
) -> int:
    """Walk target depth-first and apply matching variables. Returns the override count."""
    applied = 0
    for spec in field_registry(type(target)):
        field_path = spec.join(path)

        if spec.kind == "model":
            current = getattr(target, spec.name)
            if isinstance(current, BaseModel):
                applied += apply_env_overrides(
                    current,
                    prefix=prefix,
                    delimiter=delimiter,
                    environ=environ,
                    normalize_dash=normalize_dash,
                    debug_keys=debug_keys,
                    path=field_path,
                )
            continue

        key = env_key(prefix, delimiter, field_path, normalize_dash)
        raw = environ.get(key)
        if raw is None:
            continue

        logger.log(
            logging.INFO if debug_keys else logging.DEBUG,
            "config.env_override path=%s key=%s",
            field_path,
            key,
        )
        setattr(target, spec.name, parse_env_value(raw, spec, path=field_path, key=key))
        applied += 1
    return applied
