"""Tests for environment-driven configuration."""

import pytest

import env


class TestPaths:

    def test_data_root_from_env(self, isolated_env):
        assert env.get_data_root() == (isolated_env / "data").resolve()
        assert env.get_temp_root() == (isolated_env / "data" / "temp").resolve()
        assert env.get_observability_root() == (isolated_env / "data" / "observability").resolve()

    def test_explicit_roots_win(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HTMLTABLE_TEMP_ROOT", str(tmp_path / "t"))
        assert env.get_temp_root() == (tmp_path / "t").resolve()

    def test_default_resources_dir(self):
        assert env.get_resources_dir() == env.BASE_DIR / "resources"
        assert (env.get_resources_dir() / "mqxml2html_pass1.xsl").exists()

    def test_blank_value_ignored(self, monkeypatch):
        monkeypatch.setenv("HTMLTABLE_RESOURCES_DIR", "  ")
        assert env.get_resources_dir() == env.BASE_DIR / "resources"


class TestFlags:

    @pytest.mark.parametrize("raw", ["1", "true", "YES", " on "])
    def test_truthy(self, raw, monkeypatch):
        monkeypatch.setenv("HTMLTABLE_DEBUG", raw)
        assert env.get_debug_mode() is True

    @pytest.mark.parametrize("raw", ["0", "false", "No", "off"])
    def test_falsy(self, raw, monkeypatch):
        monkeypatch.setenv("HTMLTABLE_REPAIR_TOOL", raw)
        assert env.get_repair_tool_enabled() is False

    def test_unrecognized_value_uses_default(self, monkeypatch):
        monkeypatch.setenv("HTMLTABLE_CATEGORY_PASSTHROUGH", "maybe")
        assert env.get_category_passthrough() is True

    def test_defaults(self):
        assert env.get_debug_mode() is False
        assert env.get_numeric_entities() is True
        assert env.get_allow_table_tags() is True
        assert env.get_allow_paragraph() is True


class TestLogLevel:

    def test_default(self):
        assert env.get_log_level() == "INFO"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("HTMLTABLE_LOG_LEVEL", "warning")
        assert env.get_log_level() == "WARNING"

    def test_debug_mode_forces_debug(self, monkeypatch):
        monkeypatch.setenv("HTMLTABLE_LOG_LEVEL", "ERROR")
        monkeypatch.setenv("HTMLTABLE_DEBUG", "1")
        assert env.get_log_level() == "DEBUG"
