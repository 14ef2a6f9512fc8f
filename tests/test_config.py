"""
Tests for configuration objects and configuration utilities.
"""

import json
from datetime import timedelta

import pytest

from grbac.core.config import (
    EngineConfig,
    RbacConfig,
    RemoteAuthConfig,
    layer_options,
    merge_headers,
)
from grbac.core.types import Effect
from grbac.errors import ConfigurationError
from grbac.util import (
    expand_config_variables,
    get_bool_config,
    get_config_value,
    load_config_file,
    merge_configs,
    parse_duration_string,
    parse_timeout,
)


class TestConfigUtilities:
    """Test environment and file helpers."""

    def test_env_values(self, monkeypatch):
        monkeypatch.setenv("GRBAC_REMOTE_URL", "http://auth.local")
        monkeypatch.setenv("GRBAC_STRICT_AND", "no")
        monkeypatch.setenv("GRBAC_PORT", "8080")

        assert get_config_value("remote_url") == "http://auth.local"
        assert get_bool_config("strict_and", True) is False
        assert get_config_value("port", cast_type=int) == 8080
        assert get_config_value("missing", 3, int) == 3

    @pytest.mark.parametrize("value, expected", [
        ("500ms", timedelta(milliseconds=500)),
        ("30s", timedelta(seconds=30)),
        ("5m", timedelta(minutes=5)),
        ("2h", timedelta(hours=2)),
    ])
    def test_durations(self, value, expected):
        assert parse_duration_string(value) == expected

    def test_timeouts(self):
        assert parse_timeout(None) is None
        assert parse_timeout(2) == 2.0
        assert parse_timeout("1.5") == 1.5
        assert parse_timeout("250ms") == 0.25
        assert parse_timeout(timedelta(seconds=3)) == 3.0
        with pytest.raises(ValueError):
            parse_timeout(True)
        with pytest.raises(ValueError):
            parse_timeout("soon")

    def test_merge_configs(self):
        merged = merge_configs({"a": 1, "remote": {"url": "x", "headers": {"A": "1"}}},
                               {"remote": {"headers": {"B": "2"}}}, None)
        assert merged == {"a": 1, "remote": {"url": "x", "headers": {"A": "1", "B": "2"}}}

    def test_expand_variables(self):
        config = {"remote": {"url": "${HOST}/authorize"}, "list": ["${MISSING}"]}
        expanded = expand_config_variables(config, {"HOST": "http://auth.local"})
        assert expanded == {"remote": {"url": "http://auth.local/authorize"}, "list": ["${MISSING}"]}

    def test_load_json_and_yaml(self, tmp_path):
        json_file = tmp_path / "rbac.json"
        json_file.write_text(json.dumps({"Strict-And": False}))
        yaml_file = tmp_path / "rbac.yaml"
        yaml_file.write_text("remote:\n  url: http://auth.local\n  timeout: 500ms\n")

        assert load_config_file(str(json_file)) == {"strict_and": False}
        assert load_config_file(str(yaml_file))["remote"]["timeout"] == "500ms"

    def test_load_errors(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config_file(str(tmp_path / "missing.json"))

        toml_file = tmp_path / "rbac.toml"
        toml_file.write_text("")
        with pytest.raises(ValueError):
            load_config_file(str(toml_file))

        list_file = tmp_path / "rbac.yml"
        list_file.write_text("- a\n- b\n")
        with pytest.raises(ValueError):
            load_config_file(str(list_file))

        empty_file = tmp_path / "empty.yml"
        empty_file.write_text("")
        assert load_config_file(str(empty_file)) == {}


class TestRemoteAuthConfig:
    """Test remote endpoint configuration."""

    def test_timeout_formats(self):
        assert RemoteAuthConfig(url="http://a", timeout="2s").timeout == 2.0
        assert RemoteAuthConfig(url="http://a", timeout=1).timeout == 1.0
        with pytest.raises(ConfigurationError):
            RemoteAuthConfig(url="http://a", timeout="later")

    def test_validate(self):
        with pytest.raises(ConfigurationError):
            RemoteAuthConfig(url="http://a", timeout=0).validate()
        with pytest.raises(ConfigurationError):
            RemoteAuthConfig.from_dict({"headers": {}}).validate()
        assert RemoteAuthConfig.from_dict({"url": "http://a"}).validate()


class TestRbacConfig:
    """Test flat and remote decision configuration."""

    def test_remote_mapping_is_converted(self):
        config = RbacConfig(remote={"url": "http://a", "timeout": "1s"})
        assert isinstance(config.remote, RemoteAuthConfig)
        assert config.is_remote
        assert config.validate()

    def test_merged_headers(self):
        config = RbacConfig(remote={"url": "http://a",
                                    "headers": {"X-A": "1", "Authorization": "a"}})
        merged = config.merged({"remote": {"headers": {"authorization": "b"}}})

        assert merged.remote.url == "http://a"
        assert merged.remote.headers == {"X-A": "1", "authorization": "b"}
        assert config.remote.headers == {"X-A": "1", "Authorization": "a"}

    def test_merged_validates(self):
        config = RbacConfig(get_permissions=lambda principal_id: [])
        with pytest.raises(ConfigurationError):
            config.merged({"get_permissions": None})
        with pytest.raises(ConfigurationError):
            config.merged({"strict_and": "yes"})

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("GRBAC_REMOTE_URL", "http://auth.local/authorize")
        monkeypatch.setenv("GRBAC_REMOTE_TIMEOUT", "2s")
        monkeypatch.setenv("GRBAC_REMOTE_AUTHORIZATION", "Bearer service")
        monkeypatch.setenv("GRBAC_STRICT_AND", "false")
        monkeypatch.setenv("GRBAC_REQ_ID_PATH", "principal.id")

        config = RbacConfig.from_env()
        assert config.remote.url == "http://auth.local/authorize"
        assert config.remote.timeout == 2.0
        assert config.remote.headers == {"Authorization": "Bearer service"}
        assert config.strict_and is False
        assert config.req_id_path == "principal.id"
        assert config.validate()

    def test_from_env_local(self, monkeypatch):
        monkeypatch.delenv("GRBAC_REMOTE_URL", raising=False)

        def check(principal_id, permissions, combinator):
            return True

        config = RbacConfig.from_env(check_permission=check)
        assert not config.is_remote
        assert config.check_permission is check

    def test_from_file(self, tmp_path):
        config_file = tmp_path / "rbac.yaml"
        config_file.write_text("remote:\n  url: http://auth.local\n  timeout: 500ms\nstrict-and: false\n")

        config = RbacConfig.from_file(str(config_file))
        assert config.remote.timeout == 0.5
        assert config.strict_and is False

        with pytest.raises(ConfigurationError):
            RbacConfig.from_file(str(tmp_path / "missing.yaml"))

        bad_file = tmp_path / "bad.json"
        bad_file.write_text(json.dumps({"remoteAuth": {}}))
        with pytest.raises(ConfigurationError):
            RbacConfig.from_file(str(bad_file))

    def test_merge_headers(self):
        assert merge_headers({"Accept": "a"}, None, {"accept": "b", "X": "1"}) == {"accept": "b", "X": "1"}

    def test_layer_options(self):
        base = RbacConfig(remote={"url": "http://a"})
        data = layer_options(base, {"strict_and": False})
        assert data["remote"]["url"] == "http://a"
        assert data["strict_and"] is False
        with pytest.raises(ConfigurationError):
            layer_options(base, ["not", "a", "mapping"])


class TestEngineConfig:
    """Test compiled-rule engine configuration."""

    def test_defaults(self):
        config = EngineConfig()
        assert config.permissions_group == "DEFAULT"
        assert config.missing_rule_effect is Effect.PERMIT
        assert config.validate()

    def test_effect_strings(self):
        assert EngineConfig(missing_rule_effect="DENY").missing_rule_effect is Effect.DENY
        with pytest.raises(ConfigurationError):
            EngineConfig(missing_rule_effect="maybe")

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("GRBAC_PERMISSIONS_GROUP", "Credentials")
        monkeypatch.setenv("GRBAC_CONJUNCTION", "true")
        monkeypatch.setenv("GRBAC_MISSING_RULE_EFFECT", "deny")
        monkeypatch.setenv("GRBAC_DENY_NEGATES", "1")

        config = EngineConfig.from_env()
        assert config.permissions_group == "Credentials"
        assert config.conjunction is True
        assert config.missing_rule_effect is Effect.DENY
        assert config.deny_negates is True
