"""Tests for course_sync.config_loader: YAML discovery, includes, interpolation."""

import textwrap

import pytest
import yaml

from course_sync.config_loader import (
    _interpolate_recursive,
    _load_yaml_with_includes,
    discover_config_files,
    interpolate_env_vars,
    load_hierarchical_config,
)


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """CWD and HOME inside tmp_path, no COURSE_SYNC_CONFIG."""
    monkeypatch.delenv("COURSE_SYNC_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    return tmp_path


def _project_config(root, text, name="config.yml"):
    path = root / ".course_sync" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text))
    return path


# -------------------------------------------------------------------------
# Env var interpolation
# -------------------------------------------------------------------------


class TestInterpolateEnvVars:
    """Tests for ${VAR} and ${VAR:-default} substitution."""

    def test_replaces_set_var(self, monkeypatch):
        monkeypatch.setenv("COSMOS_HOST", "acct.documents.azure.com")
        assert interpolate_env_vars("https://${COSMOS_HOST}:443/") == (
            "https://acct.documents.azure.com:443/"
        )

    def test_unset_var_replaced_with_empty(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        assert interpolate_env_vars("${UNSET_VAR_XYZ}") == ""

    def test_default_used_when_unset_or_empty(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        monkeypatch.setenv("EMPTY_VAR", "")
        assert interpolate_env_vars("${UNSET_VAR_XYZ:-main}") == "main"
        assert interpolate_env_vars("${EMPTY_VAR:-main}") == "main"

    def test_default_ignored_when_set(self, monkeypatch):
        monkeypatch.setenv("DEVOPS_BRANCH_X", "release")
        assert interpolate_env_vars("${DEVOPS_BRANCH_X:-main}") == "release"

    def test_literal_dollar_brace_no_closing(self):
        assert interpolate_env_vars("${NO_CLOSE") == "${NO_CLOSE"

    def test_nested_structures(self, monkeypatch):
        monkeypatch.setenv("PAT", "secret")
        data = {"source": {"token": "${PAT}", "exclude": ["${PAT}/*", 3]}, "n": 4}
        assert _interpolate_recursive(data) == {
            "source": {"token": "secret", "exclude": ["secret/*", 3]},
            "n": 4,
        }


# -------------------------------------------------------------------------
# YAML !include support
# -------------------------------------------------------------------------


class TestIncludeDirective:
    """Tests for !include YAML loading via the ConfigLoader subclass."""

    def test_include_relative_file(self, tmp_path):
        (tmp_path / "secrets.yml").write_text("token: abc\n")
        main = tmp_path / "config.yml"
        main.write_text("source: !include secrets.yml\n")
        assert _load_yaml_with_includes(main) == {"source": {"token": "abc"}}

    def test_include_absolute_path(self, tmp_path):
        secrets = tmp_path / "abs.yml"
        secrets.write_text("key: k\n")
        main = tmp_path / "config.yml"
        main.write_text(f"documents: !include {secrets}\n")
        assert _load_yaml_with_includes(main) == {"documents": {"key": "k"}}

    def test_include_nonexistent_raises(self, tmp_path):
        main = tmp_path / "config.yml"
        main.write_text("data: !include missing.yml\n")
        with pytest.raises(FileNotFoundError, match="missing.yml"):
            _load_yaml_with_includes(main)

    def test_circular_include_raises(self, tmp_path):
        (tmp_path / "a.yml").write_text("x: !include b.yml\n")
        (tmp_path / "b.yml").write_text("y: !include a.yml\n")
        with pytest.raises(ValueError, match="Circular include"):
            _load_yaml_with_includes(tmp_path / "a.yml")

    def test_global_safe_loader_not_polluted(self, tmp_path):
        cfg = tmp_path / "test.yml"
        cfg.write_text("x: !include other.yml\n")
        with pytest.raises(yaml.constructor.ConstructorError):
            with open(cfg) as fh:
                yaml.safe_load(fh)


# -------------------------------------------------------------------------
# Discovery
# -------------------------------------------------------------------------


class TestDiscoverConfigFiles:
    """Tests for discover_config_files() precedence and filtering."""

    def test_empty_filesystem_returns_empty(self, isolated):
        assert discover_config_files() == []

    def test_env_var_takes_highest_precedence(self, isolated, monkeypatch):
        custom = isolated / "custom.yml"
        custom.write_text("sync: {}\n")
        project = _project_config(isolated, "sync: {}\n")
        monkeypatch.setenv("COURSE_SYNC_CONFIG", str(custom))

        result = discover_config_files()
        assert result == [custom.resolve(), project]

    def test_explicit_path_wins_over_env(self, isolated, monkeypatch):
        explicit = isolated / "explicit.yml"
        explicit.write_text("{}\n")
        monkeypatch.setenv("COURSE_SYNC_CONFIG", str(isolated / "other.yml"))
        assert discover_config_files(str(explicit))[0] == explicit.resolve()

    def test_explicit_missing_file_raises(self, isolated):
        with pytest.raises(FileNotFoundError):
            discover_config_files(str(isolated / "nope.yml"))

    def test_project_before_global(self, isolated):
        project = _project_config(isolated, "a: 1\n")
        global_cfg = isolated / "home" / ".config" / "course_sync" / "config.yml"
        global_cfg.parent.mkdir(parents=True)
        global_cfg.write_text("b: 2\n")

        result = discover_config_files()
        assert result.index(project) < result.index(global_cfg)

    def test_yaml_extension(self, isolated):
        path = _project_config(isolated, "a: 1\n", name="config.yaml")
        assert path in discover_config_files()


# -------------------------------------------------------------------------
# Hierarchical merge
# -------------------------------------------------------------------------


class TestLoadHierarchicalConfig:
    """Tests for load_hierarchical_config() merge and interpolation."""

    def test_zero_config_returns_empty_dict(self, isolated):
        assert load_hierarchical_config() == {}

    def test_project_replaces_global_section(self, isolated):
        global_cfg = isolated / "home" / ".config" / "course_sync" / "config.yml"
        global_cfg.parent.mkdir(parents=True)
        global_cfg.write_text(
            textwrap.dedent("""\
            source:
              url: https://dev.azure.com/global
              branch: main
            sync:
              max_parallel: 8
            """)
        )
        _project_config(
            isolated,
            """\
            source:
              url: https://dev.azure.com/project
            """,
        )

        result = load_hierarchical_config()
        assert result["source"] == {"url": "https://dev.azure.com/project"}
        assert result["sync"] == {"max_parallel": 8}

    def test_interpolation_after_merge(self, isolated, monkeypatch):
        monkeypatch.setenv("MY_PAT", "s3cret")
        _project_config(
            isolated,
            """\
            source:
              token: "${MY_PAT}"
            """,
        )
        assert load_hierarchical_config()["source"]["token"] == "s3cret"

    def test_non_dict_root_skipped(self, isolated):
        _project_config(isolated, "- item1\n- item2\n")
        assert load_hierarchical_config() == {}

    def test_include_within_project_config(self, isolated):
        path = _project_config(
            isolated,
            """\
            documents: !include cosmos.yml
            """,
        )
        (path.parent / "cosmos.yml").write_text("database: courses\n")
        assert load_hierarchical_config()["documents"] == {"database": "courses"}
