"""Tests for config/loader.py module.

Covers:
- _load_yaml() function
- _deep_merge() function
- load_config() precedence
- get_artifact_paths() function
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from classmap.config.loader import (
    GLOBAL_CONFIG_PATH,
    _deep_merge,
    _load_yaml,
    get_artifact_paths,
    load_config,
)
from classmap.config.models import WorkerConfig
from classmap.core.errors import ConfigError, ErrorCode


class TestLoadYaml:
    """Tests for _load_yaml function."""

    def test_returns_empty_dict_for_missing_file(self, tmp_path: Path) -> None:
        """Returns empty dict when file doesn't exist."""
        assert _load_yaml(tmp_path / "nonexistent.yaml") == {}

    def test_loads_valid_yaml(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "classmap.yaml"
        yaml_file.write_text("worker:\n  batch_size: 50\n")

        assert _load_yaml(yaml_file) == {"worker": {"batch_size": 50}}

    def test_returns_empty_for_yaml_null(self, tmp_path: Path) -> None:
        """Returns empty dict for YAML containing null/None."""
        yaml_file = tmp_path / "null.yaml"
        yaml_file.write_text("null\n")

        assert _load_yaml(yaml_file) == {}

    def test_raises_config_error_for_invalid_yaml(self, tmp_path: Path) -> None:
        """Raises ConfigError for invalid YAML syntax."""
        yaml_file = tmp_path / "invalid.yaml"
        yaml_file.write_text("roots:\n  - path: [unclosed")

        with pytest.raises(ConfigError) as exc_info:
            _load_yaml(yaml_file)
        assert exc_info.value.code == ErrorCode.CONFIG_PARSE_ERROR

    def test_raises_config_error_for_non_mapping(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "list.yaml"
        yaml_file.write_text("- a\n- b\n")

        with pytest.raises(ConfigError):
            _load_yaml(yaml_file)


class TestDeepMerge:
    """Tests for _deep_merge function."""

    def test_override_wins(self) -> None:
        assert _deep_merge({"a": 1, "b": 2}, {"b": 3}) == {"a": 1, "b": 3}

    def test_nested_merge(self) -> None:
        """Nested dicts are merged recursively."""
        base = {"worker": {"batch_size": 10, "max_parallel": 2}}
        override = {"worker": {"batch_size": 20}}
        assert _deep_merge(base, override) == {"worker": {"batch_size": 20, "max_parallel": 2}}

    def test_override_replaces_non_dict(self) -> None:
        base: dict[str, Any] = {"roots": [{"path": "a"}]}
        override: dict[str, Any] = {"roots": [{"path": "b"}]}
        assert _deep_merge(base, override) == {"roots": [{"path": "b"}]}

    def test_does_not_mutate_base(self) -> None:
        base = {"a": 1}
        _deep_merge(base, {"b": 2})
        assert base == {"a": 1}


class TestLoadConfig:
    """Tests for load_config function."""

    def test_returns_default_config_when_no_files(self, tmp_path: Path) -> None:
        with patch("classmap.config.loader.GLOBAL_CONFIG_PATH", tmp_path / "none.yaml"):
            config = load_config(tmp_path)

        assert config.logging.level == "INFO"
        assert config.roots == []
        assert config.worker.max_passes is None

    def test_loads_project_config(self, tmp_path: Path) -> None:
        (tmp_path / "classmap.yaml").write_text(
            "roots:\n"
            "  - path: src\n"
            "    namespace: acme\n"
            "  - path: vendor/lib\n"
            "    kind: dependency\n"
            "    exclude: ''\n"
        )

        with patch("classmap.config.loader.GLOBAL_CONFIG_PATH", tmp_path / "none.yaml"):
            config = load_config(tmp_path)

        assert [r.path for r in config.roots] == ["src", "vendor/lib"]
        assert config.roots[0].namespace == "acme"
        assert config.roots[1].kind == "dependency"
        assert config.roots[1].exclude is None

    def test_project_config_overrides_global(self, tmp_path: Path) -> None:
        global_file = tmp_path / "global.yaml"
        global_file.write_text("worker:\n  batch_size: 5\n  max_parallel: 4\n")
        (tmp_path / "classmap.yaml").write_text("worker:\n  batch_size: 50\n")

        with patch("classmap.config.loader.GLOBAL_CONFIG_PATH", global_file):
            config = load_config(tmp_path)

        assert config.worker.batch_size == 50
        assert config.worker.max_parallel == 4

    def test_env_vars_override_yaml(self, tmp_path: Path) -> None:
        """Environment variables override YAML config."""
        (tmp_path / "classmap.yaml").write_text("logging:\n  level: INFO\n")

        with (
            patch("classmap.config.loader.GLOBAL_CONFIG_PATH", tmp_path / "none.yaml"),
            patch.dict(os.environ, {"CLASSMAP__LOGGING__LEVEL": "WARNING"}),
        ):
            config = load_config(tmp_path)

        assert config.logging.level == "WARNING"

    def test_kwargs_override_all(self, tmp_path: Path) -> None:
        """Keyword arguments override everything."""
        (tmp_path / "classmap.yaml").write_text("worker:\n  batch_size: 50\n")

        with patch("classmap.config.loader.GLOBAL_CONFIG_PATH", tmp_path / "none.yaml"):
            config = load_config(tmp_path, worker=WorkerConfig(batch_size=7))

        assert config.worker.batch_size == 7

    @pytest.mark.parametrize(
        "content",
        [
            "worker:\n  timeout_sec: -1\n",
            "worker:\n  max_passes: 0\n",
            "roots:\n  - path: src\n    namespace: 'not-valid'\n",
            "roots:\n  - path: src\n    exclude: '(unclosed'\n",
        ],
    )
    def test_raises_config_error_for_invalid_value(self, tmp_path: Path, content: str) -> None:
        """Raises ConfigError for invalid config values."""
        (tmp_path / "classmap.yaml").write_text(content)

        with (
            patch("classmap.config.loader.GLOBAL_CONFIG_PATH", tmp_path / "none.yaml"),
            pytest.raises(ConfigError) as exc_info,
        ):
            load_config(tmp_path)
        assert exc_info.value.code == ErrorCode.CONFIG_INVALID_VALUE


class TestGetArtifactPaths:
    """Tests for get_artifact_paths function."""

    def test_returns_default_paths(self, tmp_path: Path) -> None:
        with patch("classmap.config.loader.GLOBAL_CONFIG_PATH", tmp_path / "none.yaml"):
            config = load_config(tmp_path)

        class_map, hierarchy, scan_cache = get_artifact_paths(tmp_path, config)

        assert class_map == tmp_path / ".classmap" / "class_map.json"
        assert hierarchy == tmp_path / ".classmap" / "hierarchy.json"
        assert scan_cache == tmp_path / ".classmap" / "scan_cache.json"

    def test_respects_absolute_index_dir(self, tmp_path: Path) -> None:
        custom = tmp_path / "elsewhere"
        (tmp_path / "classmap.yaml").write_text(f"output:\n  index_dir: {custom}\n")

        with patch("classmap.config.loader.GLOBAL_CONFIG_PATH", tmp_path / "none.yaml"):
            config = load_config(tmp_path)

        assert get_artifact_paths(tmp_path, config)[0] == custom / "class_map.json"


class TestGlobalConfigPath:
    """Tests for GLOBAL_CONFIG_PATH constant."""

    def test_is_in_user_config(self) -> None:
        assert isinstance(GLOBAL_CONFIG_PATH, Path)
        assert "classmap" in str(GLOBAL_CONFIG_PATH)
