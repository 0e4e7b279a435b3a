from __future__ import annotations

import io
import os
import tempfile
import unittest
from datetime import timedelta
from pathlib import Path
from unittest.mock import patch

from pydantic import BaseModel, ConfigDict, Field

from yamlenv import (
    ConfigurationError,
    DecodeError,
    FileSource,
    LoaderOptions,
    ReaderSource,
    ResourceSource,
    SourceOpenError,
    YamlEnvLoader,
    load_config,
)
from yamlenv.models import DemoConfig


class _App(BaseModel):
    name: str = ""
    port: int = 0
    debug: bool = False


class _Db(BaseModel):
    host: str = ""
    port: int = 0


class _Config(BaseModel):
    app: _App = Field(default_factory=_App)
    db: _Db = Field(default_factory=_Db)
    version: str = ""
    timeout: timedelta = timedelta(0)


class _Required(BaseModel):
    name: str


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = ""


class _ClosingReader(io.BytesIO):
    closed_by_loader = False

    def close(self) -> None:
        self.closed_by_loader = True
        super().close()


BASE_YAML = """
app:
  name: baseapp
  port: 8080
  debug: false
db:
  host: localhost
  port: 5432
version: "1.0.0"
timeout: 30s
"""

LOCAL_YAML = """
app:
  name: localapp
  port: 3000
version: "1.1.0"
"""


class LoadConfigTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.dir = Path(self._tmp.name)

    def _write(self, name: str, text: str) -> Path:
        path = self.dir / name
        path.write_text(text, encoding="utf-8")
        return path

    def test_base_only(self) -> None:
        base = self._write("config.yaml", "app:\n  name: testapp\n  port: 8080\n")
        cfg = _Config()
        result = load_config(LoaderOptions(base_source=FileSource(base), target=cfg, environ={}))
        self.assertIs(result, cfg)
        self.assertEqual(cfg.app.name, "testapp")
        self.assertEqual(cfg.app.port, 8080)

    def test_local_overrides_base(self) -> None:
        base = self._write("config.yaml", BASE_YAML)
        local = self._write("config.local.yaml", LOCAL_YAML)
        cfg = _Config()
        load_config(
            LoaderOptions(base_source=FileSource(base), local_source=FileSource(local), target=cfg, environ={})
        )
        self.assertEqual(cfg.app.name, "localapp")
        self.assertEqual(cfg.app.port, 3000)
        self.assertEqual(cfg.version, "1.1.0")
        # Omitted from the local document: base values survive.
        self.assertFalse(cfg.app.debug)
        self.assertEqual(cfg.db.host, "localhost")
        self.assertEqual(cfg.timeout, timedelta(seconds=30))

    def test_environment_overrides_everything(self) -> None:
        base = self._write("config.yaml", BASE_YAML)
        local = self._write("config.local.yaml", LOCAL_YAML)
        cfg = _Config()
        load_config(
            LoaderOptions(
                base_source=FileSource(base),
                local_source=FileSource(local),
                env_prefix="PRIORITY_",
                delimiter="__",
                target=cfg,
                environ={"PRIORITY_APP__NAME": "envapp", "PRIORITY_VERSION": "2.0.0"},
            )
        )
        self.assertEqual(cfg.app.name, "envapp")
        self.assertEqual(cfg.version, "2.0.0")
        self.assertEqual(cfg.app.port, 3000)

    def test_scenario_prefix_and_delimiter(self) -> None:
        cfg = _Config()
        load_config(
            LoaderOptions(
                base_source=ReaderSource("app:\n  name: x\n"),
                env_prefix="PREFIX_",
                delimiter="__",
                target=cfg,
                environ={"PREFIX_APP__NAME": "y", "OTHER_APP__NAME": "z"},
            )
        )
        self.assertEqual(cfg.app.name, "y")

    def test_mismatched_prefix_is_ignored(self) -> None:
        cfg = _Config()
        load_config(
            LoaderOptions(
                base_source=ReaderSource("app:\n  name: x\n"),
                env_prefix="PREFIX_",
                target=cfg,
                environ={"PREFIXAPP__NAME": "y", "XPREFIX_APP__NAME": "z"},
            )
        )
        self.assertEqual(cfg.app.name, "x")

    def test_single_underscore_delimiter(self) -> None:
        cfg = _Config()
        load_config(
            LoaderOptions(
                base_source=ReaderSource(BASE_YAML),
                env_prefix="SVC",
                delimiter="_",
                target=cfg,
                environ={"SVCAPP_PORT": "9000", "SVCDB_HOST": "db"},
            )
        )
        self.assertEqual(cfg.app.port, 9000)
        self.assertEqual(cfg.db.host, "db")

    def test_no_prefix(self) -> None:
        cfg = _Config()
        load_config(
            LoaderOptions(
                base_source=ReaderSource(BASE_YAML),
                delimiter="__",
                target=cfg,
                environ={"APP__NAME": "bare"},
            )
        )
        self.assertEqual(cfg.app.name, "bare")

    def test_missing_base_file(self) -> None:
        with self.assertRaises(SourceOpenError) as ctx:
            load_config(LoaderOptions(base_source=FileSource(self.dir / "absent.yaml"), target=_Config(), environ={}))
        self.assertIn("load base config", str(ctx.exception))
        self.assertEqual(ctx.exception.layer, "base")

    def test_missing_local_file_is_skipped(self) -> None:
        base = self._write("config.yaml", BASE_YAML)
        cfg = _Config()
        load_config(
            LoaderOptions(
                base_source=FileSource(base),
                local_source=FileSource(self.dir / "absent.local.yaml"),
                target=cfg,
                environ={},
            )
        )
        self.assertEqual(cfg.app.name, "baseapp")

    def test_invalid_local_yaml(self) -> None:
        with self.assertRaises(DecodeError) as ctx:
            load_config(
                LoaderOptions(
                    base_source=ReaderSource(BASE_YAML),
                    local_source=ReaderSource("app: [broken\n"),
                    target=_Config(),
                    environ={},
                )
            )
        self.assertIn("load local config", str(ctx.exception))

    def test_type_mismatch_in_base(self) -> None:
        with self.assertRaises(DecodeError) as ctx:
            load_config(LoaderOptions(base_source=ReaderSource("app:\n  port: eighty\n"), target=_Config(), environ={}))
        self.assertEqual(ctx.exception.path, "app.port")

    def test_base_only_load_is_idempotent(self) -> None:
        first = load_config(LoaderOptions(base_source=ReaderSource(BASE_YAML), target=_Config, environ={}))
        second = load_config(LoaderOptions(base_source=ReaderSource(BASE_YAML), target=_Config, environ={}))
        self.assertIsNot(first, second)
        self.assertEqual(first, second)

    def test_absent_values_keep_defaults(self) -> None:
        cfg = load_config(LoaderOptions(base_source=ReaderSource("# empty\n"), target=_Config, environ={}))
        self.assertEqual(cfg, _Config())

    def test_null_in_local_keeps_base_value(self) -> None:
        base = self._write("config.yaml", "db:\n  host: base\n  port: 5432\n")
        local = self._write("config.local.yaml", "db:\n  host:\n  port: ~\n")
        cfg = _Config()
        load_config(
            LoaderOptions(base_source=FileSource(base), local_source=FileSource(local), target=cfg, environ={})
        )
        self.assertEqual(cfg.db.host, "base")
        self.assertEqual(cfg.db.port, 5432)

    def test_numeric_looking_strings(self) -> None:
        base = self._write("config.yaml", "app:\n  name: 12345\nversion: 1.0\ndb:\n  host: no\n")
        cfg = _Config()
        load_config(LoaderOptions(base_source=FileSource(base), target=cfg, environ={}))
        self.assertEqual(cfg.app.name, "12345")
        self.assertEqual(cfg.version, "1.0")
        self.assertEqual(cfg.db.host, "no")

    def test_streams_are_closed(self) -> None:
        good = _ClosingReader(BASE_YAML.encode("utf-8"))
        load_config(LoaderOptions(base_source=ReaderSource(good), target=_Config(), environ={}))
        self.assertTrue(good.closed_by_loader)

        bad = _ClosingReader(b"app: [\n")
        with self.assertRaises(DecodeError):
            load_config(LoaderOptions(base_source=ReaderSource(bad), target=_Config(), environ={}))
        self.assertTrue(bad.closed_by_loader)

    def test_process_environment_is_default(self) -> None:
        with patch.dict(os.environ, {"YAMLENV_LOADER_TEST_APP__NAME": "from-process"}):
            cfg = load_config(
                LoaderOptions(
                    base_source=ReaderSource(BASE_YAML),
                    env_prefix="YAMLENV_LOADER_TEST_",
                    target=_Config,
                )
            )
        self.assertEqual(cfg.app.name, "from-process")

    def test_dotenv_file(self) -> None:
        dotenv = self._write(".env", "DOT_DB__HOST=dotenv-db\nDOT_APP__PORT=1\n")
        cfg = load_config(
            LoaderOptions(
                base_source=ReaderSource(BASE_YAML),
                env_prefix="DOT_",
                target=_Config,
                environ={"DOT_APP__PORT": "2"},
                dotenv_path=dotenv,
            )
        )
        self.assertEqual(cfg.db.host, "dotenv-db")
        self.assertEqual(cfg.app.port, 2)

    def test_embedded_sources(self) -> None:
        cfg = YamlEnvLoader().load_model(
            DemoConfig,
            ResourceSource("yamlenv", "configs/config.yaml"),
            local_source=ResourceSource("yamlenv", "configs/config.local.yaml"),
            env_prefix="DEMO_",
            environ={"DEMO_DB__HOST": "override-db"},
        )
        self.assertEqual(cfg.app.name, "embed-app")
        self.assertEqual(cfg.app.port, 9090)
        self.assertEqual(cfg.db.port, 3306)
        self.assertEqual(cfg.db.username, "local-user")
        self.assertEqual(cfg.db.host, "override-db")
        self.assertEqual(cfg.timeout, timedelta(seconds=30))


class LoaderValidationTests(unittest.TestCase):
    def test_prefix_requires_delimiter(self) -> None:
        opened = []

        def base() -> io.BytesIO:
            opened.append(True)
            return io.BytesIO(b"")

        with self.assertRaises(ConfigurationError) as ctx:
            load_config(LoaderOptions(base_source=base, env_prefix="APP_", delimiter="", target=_Config(), environ={}))
        self.assertIn("delimiter cannot be empty", str(ctx.exception))
        self.assertEqual(opened, [])

    def test_empty_delimiter_allowed_without_prefix(self) -> None:
        cfg = load_config(
            LoaderOptions(
                base_source=ReaderSource(BASE_YAML), delimiter="", target=_Config, environ={"APP.NAME": "dotted"}
            )
        )
        self.assertEqual(cfg.app.name, "dotted")

    def test_missing_base_source(self) -> None:
        with self.assertRaises(ConfigurationError):
            load_config(LoaderOptions(base_source=None, target=_Config()))

    def test_invalid_targets(self) -> None:
        for target in [None, {"app": {}}, _Frozen(), _Required]:
            with self.subTest(target=target):
                with self.assertRaises(ConfigurationError):
                    load_config(LoaderOptions(base_source=ReaderSource(b""), target=target, environ={}))

    def test_model_instance_with_required_fields(self) -> None:
        cfg = load_config(
            LoaderOptions(base_source=ReaderSource("name: given\n"), target=_Required(name="placeholder"), environ={})
        )
        self.assertEqual(cfg.name, "given")


if __name__ == "__main__":
    unittest.main()
