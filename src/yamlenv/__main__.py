from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional, Sequence

from yamlenv.duration import format_duration
from yamlenv.errors import YamlEnvError
from yamlenv.interfaces import ConfigLoader
from yamlenv.loader import LoaderOptions, YamlEnvLoader
from yamlenv.logging import init_logging
from yamlenv.models import DemoConfig
from yamlenv.sources import FileSource, ResourceSource

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="yamlenv-demo",
        description="Resolve the demo configuration from YAML files and environment variables",
    )
    parser.add_argument(
        "--base",
        default="config.yaml",
        help="Path to the base config (default: config.yaml)",
    )
    parser.add_argument(
        "--local",
        default="config.local.yaml",
        help="Path to the optional local override config (default: config.local.yaml)",
    )
    parser.add_argument(
        "--embedded",
        action="store_true",
        help="Read base and local configs bundled with the package instead of --base/--local",
    )
    parser.add_argument("--prefix", default="DEMO_", help="Environment variable prefix (default: DEMO_)")
    parser.add_argument("--delimiter", default="__", help="Nesting delimiter (default: __)")
    parser.add_argument(
        "--dotenv",
        default=".env",
        help="Path to a .env file read below the process environment (default: .env)",
    )
    parser.add_argument(
        "--no-dotenv",
        action="store_true",
        help="Disable loading .env (env overrides still apply)",
    )
    parser.add_argument("--debug-keys", action="store_true", help="Log every applied env override")
    return parser


def _build_options(args: argparse.Namespace) -> LoaderOptions:
    if args.embedded:
        base_source = ResourceSource("yamlenv", "configs/config.yaml")
        local_source = ResourceSource("yamlenv", "configs/config.local.yaml")
    else:
        base_source = FileSource(args.base)
        local_source = FileSource(args.local)
    return LoaderOptions(
        base_source=base_source,
        local_source=local_source,
        env_prefix=args.prefix,
        delimiter=args.delimiter,
        target=DemoConfig,
        debug_keys=args.debug_keys,
        dotenv_path=None if args.no_dotenv else args.dotenv,
    )


def render(config: DemoConfig) -> str:
    data = config.model_dump(mode="json")
    data["timeout"] = format_duration(config.timeout)
    return json.dumps(data, indent=2, sort_keys=True)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    if args.debug_keys:
        # Overrides are applied before the configured logging exists.
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    try:
        loader: ConfigLoader = YamlEnvLoader()
        config = loader.load(_build_options(args))
    except YamlEnvError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    init_logging(config.logging)
    logger.info("app.config_loaded app=%s port=%s", config.app.name, config.app.port)
    print(render(config))
    return 0


if __name__ == "__main__":
    sys.exit(main())
