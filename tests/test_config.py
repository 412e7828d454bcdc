"""
Layered configuration: files, .env, environment and overrides.
"""

import json
import logging

import pytest

from orderly.config import ConfigError, ConfigLoader, LifecycleConfig
from orderly.di import Container, ClassProvider, LifecycleState


def write_yaml(path, text):
    path.write_text(text)
    return str(path)


# ============================================================================
# LifecycleConfig
# ============================================================================

class TestLifecycleConfig:

    def test_defaults(self):
        config = LifecycleConfig()
        assert config.late_construction == "start"
        assert config.hook_conventions is True
        assert config.diagnostics is False
        assert config.log_level_value == logging.DEBUG

    def test_invalid_policy(self):
        with pytest.raises(ConfigError, match="late_construction"):
            LifecycleConfig(late_construction="ignore")

    def test_invalid_log_level(self):
        with pytest.raises(ConfigError, match="log_level"):
            LifecycleConfig(log_level="LOUD")

    def test_log_level_is_case_insensitive(self):
        assert LifecycleConfig(log_level="info").log_level_value == logging.INFO

    def test_from_dict_rejects_unknown_keys(self):
        with pytest.raises(ConfigError, match="timeout"):
            LifecycleConfig.from_dict({"timeout": 5})

    def test_from_dict_type_checks(self):
        with pytest.raises(ConfigError, match="boolean"):
            LifecycleConfig.from_dict({"diagnostics": "sometimes"})
        with pytest.raises(ConfigError, match="string"):
            LifecycleConfig.from_dict({"late_construction": 1})

    def test_round_trip(self):
        config = LifecycleConfig(late_construction="record", diagnostics=True)
        assert LifecycleConfig.from_dict(config.to_dict()) == config


# ============================================================================
# Loader
# ============================================================================

class TestConfigLoader:

    def test_yaml_file(self, tmp_path):
        path = write_yaml(
            tmp_path / "app.yaml",
            "lifecycle:\n  late_construction: reject\n  diagnostics: true\n",
        )
        loader = ConfigLoader.load(paths=[path], env_prefix="ORDERLY_TEST_")

        assert loader.get("lifecycle.late_construction") == "reject"
        config = loader.get_lifecycle_config()
        assert config.late_construction == "reject"
        assert config.diagnostics is True

    def test_json_file(self, tmp_path):
        path = tmp_path / "app.json"
        path.write_text(json.dumps({"lifecycle": {"hook_conventions": False}}))

        loader = ConfigLoader.load(paths=[str(path)], env_prefix="ORDERLY_TEST_")
        assert loader.get_lifecycle_config().hook_conventions is False

    def test_glob_pattern_merges_in_name_order(self, tmp_path):
        write_yaml(tmp_path / "10-base.yaml", "lifecycle:\n  late_construction: record\n")
        write_yaml(tmp_path / "20-local.yaml", "lifecycle:\n  late_construction: reject\n")

        loader = ConfigLoader.load(paths=[str(tmp_path / "*.yaml")], env_prefix="ORDERLY_TEST_")
        assert loader.get("lifecycle.late_construction") == "reject"

    def test_missing_file_is_skipped(self, tmp_path):
        loader = ConfigLoader.load(paths=[str(tmp_path / "absent.yaml")], env_prefix="ORDERLY_TEST_")
        assert loader.to_dict() == {}
        assert loader.get_lifecycle_config() == LifecycleConfig()

    def test_invalid_yaml(self, tmp_path):
        path = write_yaml(tmp_path / "bad.yaml", "lifecycle: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            ConfigLoader.load(paths=[path], env_prefix="ORDERLY_TEST_")

    def test_non_mapping_yaml(self, tmp_path):
        path = write_yaml(tmp_path / "list.yaml", "- one\n- two\n")
        with pytest.raises(ConfigError, match="mapping"):
            ConfigLoader.load(paths=[path], env_prefix="ORDERLY_TEST_")

    def test_unsupported_file_type(self, tmp_path):
        path = tmp_path / "app.toml"
        path.write_text("[lifecycle]\n")
        with pytest.raises(ConfigError, match="Unsupported"):
            ConfigLoader.load(paths=[str(path)], env_prefix="ORDERLY_TEST_")

    def test_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text(
            "ORDERLY_TEST_LIFECYCLE__DIAGNOSTICS=yes\n"
            "UNRELATED=1\n"
        )
        loader = ConfigLoader.load(env_prefix="ORDERLY_TEST_", env_file=str(env_file))

        assert loader.get("lifecycle.diagnostics") is True
        assert loader.get("unrelated") is None

    def test_environment_variables(self, monkeypatch):
        monkeypatch.setenv("ORDERLY_TEST_LIFECYCLE__LATE_CONSTRUCTION", "record")
        monkeypatch.setenv("ORDERLY_TEST_LIFECYCLE__HOOK_CONVENTIONS", "false")

        config = ConfigLoader.load(env_prefix="ORDERLY_TEST_").get_lifecycle_config()
        assert config.late_construction == "record"
        assert config.hook_conventions is False

    def test_precedence(self, tmp_path, monkeypatch):
        path = write_yaml(
            tmp_path / "app.yaml",
            "lifecycle:\n  late_construction: record\n  log_level: INFO\n  diagnostics: false\n",
        )
        env_file = tmp_path / ".env"
        env_file.write_text(
            "ORDERLY_TEST_LIFECYCLE__LOG_LEVEL=WARNING\n"
            "ORDERLY_TEST_LIFECYCLE__DIAGNOSTICS=true\n"
        )
        monkeypatch.setenv("ORDERLY_TEST_LIFECYCLE__LOG_LEVEL", "ERROR")

        loader = ConfigLoader.load(
            paths=[path],
            env_prefix="ORDERLY_TEST_",
            env_file=str(env_file),
            overrides={"lifecycle": {"late_construction": "reject"}},
        )
        config = loader.get_lifecycle_config()

        assert config.late_construction == "reject"  # override beats file
        assert config.log_level == "ERROR"  # environment beats .env and file
        assert config.diagnostics is True  # .env beats file

    def test_parse_value(self):
        loader = ConfigLoader()
        assert loader._parse_value("true") is True
        assert loader._parse_value("No") is False
        assert loader._parse_value("3") == 3
        assert loader._parse_value("0.5") == 0.5
        assert loader._parse_value('["a", "b"]') == ["a", "b"]
        assert loader._parse_value("start") == "start"

    def test_get_default(self):
        loader = ConfigLoader.load(overrides={"lifecycle": {}}, env_prefix="ORDERLY_TEST_")
        assert loader.get("lifecycle.late_construction", "start") == "start"
        assert loader.get("missing.path") is None

    def test_lifecycle_section_must_be_mapping(self):
        loader = ConfigLoader.load(overrides={"lifecycle": "start"}, env_prefix="ORDERLY_TEST_")
        with pytest.raises(ConfigError):
            loader.get_lifecycle_config()

    def test_invalid_value_from_environment(self, monkeypatch):
        monkeypatch.setenv("ORDERLY_TEST_LIFECYCLE__LATE_CONSTRUCTION", "later")
        loader = ConfigLoader.load(env_prefix="ORDERLY_TEST_")
        with pytest.raises(ConfigError):
            loader.get_lifecycle_config()


# ============================================================================
# Container wiring
# ============================================================================

class Conventional:
    def __init__(self):
        self.started = False

    def on_startup(self):
        self.started = True


class TestContainerConfig:

    def test_hook_conventions_disabled(self):
        container = Container(config=LifecycleConfig(hook_conventions=False))
        container.register(ClassProvider(Conventional))

        component = container.resolve(Conventional)
        container.start()

        assert component.started is False
        assert container.ledger.entry_for(component).has_hooks is False

    def test_hook_conventions_enabled(self):
        container = Container()
        container.register(ClassProvider(Conventional))

        component = container.resolve(Conventional)
        container.start()
        assert component.started is True

    def test_diagnostics_logging(self, caplog):
        container = Container(config=LifecycleConfig(diagnostics=True, log_level="INFO"))
        container.register(ClassProvider(Conventional))

        with caplog.at_level(logging.INFO, logger="orderly.di.diagnostics"):
            container.resolve(Conventional)
            container.start()
            container.stop()

        messages = [r.getMessage() for r in caplog.records if r.name == "orderly.di.diagnostics"]
        assert any("Constructed 'Conventional'" in m for m in messages)
        assert any("Lifecycle start" in m for m in messages)
        assert any("Lifecycle stop" in m for m in messages)

    def test_container_factory_fixture(self, container_factory):
        container = container_factory(late_construction="reject")
        assert container.config.late_construction == "reject"
        assert container.lifecycle.state is LifecycleState.NOT_STARTED
