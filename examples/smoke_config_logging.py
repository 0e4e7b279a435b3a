from __future__ import annotations

import logging

from yamlenv import FileSource, LoaderOptions, YamlEnvLoader
from yamlenv.logging import init_logging
from yamlenv.models import DemoConfig


def main() -> None:
    config = YamlEnvLoader().load(
        LoaderOptions(
            base_source=FileSource("examples/config.yaml"),
            local_source=FileSource("examples/config.local.yaml"),
            env_prefix="SAMPLE_",
            delimiter="__",
            target=DemoConfig,
        )
    )
    init_logging(config.logging)

    logger = logging.getLogger("smoke")
    logger.info("app.config_loaded app=%s port=%s", config.app.name, config.app.port)
    logger.info("app.database host=%s port=%s timeout=%s", config.db.host, config.db.port, config.timeout)
    logger.info("app.logging level=%s", config.logging.level)


if __name__ == "__main__":
    main()
