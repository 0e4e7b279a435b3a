from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from yamlenv.document import load_document
from yamlenv.env import apply_env_overrides, build_environ
from yamlenv.errors import ConfigurationError
from yamlenv.interfaces import ConfigSource
from yamlenv.schema import field_registry

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


@dataclass(frozen=True, slots=True)
class LoaderOptions:
    """
    Inputs for one configuration load.

    Precedence (low -> high): base document, local document, environment.

    `target` is either a model instance, which is written in place, or a model
    class, which is instantiated from its defaults first. With an `env_prefix`,
    `delimiter` must be non-empty so nesting levels stay distinguishable.
    """

    base_source: Optional[ConfigSource]
    target: Union[BaseModel, Type[BaseModel], None]
    local_source: Optional[ConfigSource] = None
    env_prefix: str = ""
    delimiter: str = "__"
    # Map "_" in variable names to "-" in YAML keys (kebab-case documents).
    normalize_dash: bool = False
    force_lower_keys: bool = False
    debug_keys: bool = False
    environ: Optional[Mapping[str, str]] = None
    dotenv_path: Optional[Union[str, Path]] = None


def _resolve_target(target: Union[BaseModel, Type[BaseModel], None]) -> BaseModel:
    if target is None:
        raise ConfigurationError("target cannot be None")
    if isinstance(target, type) and issubclass(target, BaseModel):
        try:
            instance = target()
        except ValidationError as exc:
            raise ConfigurationError(
                f"Target model {target.__name__} has fields without defaults; pass an instance instead."
            ) from exc
    elif isinstance(target, BaseModel):
        instance = target
    else:
        raise ConfigurationError(f"target must be a pydantic model, got: {type(target).__name__}")
    # Builds (and caches) the registry, rejecting frozen or ambiguous schemas.
    field_registry(type(instance))
    return instance


def validate_options(options: LoaderOptions) -> None:
    if options.env_prefix and not options.delimiter:
        raise ConfigurationError(
            "delimiter cannot be empty when env_prefix is provided - use a non-empty "
            "delimiter like '__' for proper environment variable mapping"
        )
    if options.base_source is None:
        raise ConfigurationError("base_source cannot be None")


def load_config(options: LoaderOptions) -> BaseModel:
    """
    Resolve the target from the base document, the optional local document and
    the environment, in that order.

    A local source that does not exist is skipped. On error the target's
    contents are unspecified.
    """
    validate_options(options)
    target = _resolve_target(options.target)

    load_document(
        options.base_source,
        target,
        layer="base",
        force_lower_keys=options.force_lower_keys,
    )
    if options.local_source is not None:
        load_document(
            options.local_source,
            target,
            layer="local",
            missing_ok=True,
            force_lower_keys=options.force_lower_keys,
        )

    environ = build_environ(options.environ, options.dotenv_path)
    applied = apply_env_overrides(
        target,
        prefix=options.env_prefix,
        delimiter=options.delimiter,
        environ=environ,
        normalize_dash=options.normalize_dash,
        debug_keys=options.debug_keys,
    )
    logger.debug(
        "config.resolved model=%s env_prefix=%s env_overrides=%s",
        type(target).__name__,
        options.env_prefix,
        applied,
    )
    return target


class YamlEnvLoader:
    def load(self, options: LoaderOptions) -> BaseModel:
        return load_config(options)

    def load_model(self, model: Type[T], base_source: ConfigSource, **kwargs) -> T:
        """Shortcut: build `model` from its defaults and resolve it."""
        return load_config(LoaderOptions(base_source=base_source, target=model, **kwargs))  # type: ignore[return-value]
