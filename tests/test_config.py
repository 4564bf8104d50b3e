"""Tests for drive-tree configuration management."""

import json
import os
import stat
import pytest
from pathlib import Path
from unittest.mock import patch

from drive_tree.config import (
    DriveConfig, ListingConfig, TreeConfig,
    get_config_dir, read_config_file, write_config_file,
    load_config, normalize_config, set_config_value,
    config_to_dict, config_from_dict,
)


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "drive-tree" / "config.json"
    with patch("drive_tree.config.get_config_path", return_value=path):
        yield path


class TestDataClasses:
    """Tests for config data classes."""

    def test_defaults(self):
        cfg = DriveConfig()
        assert cfg.api_url == "http://localhost:4023"
        assert cfg.access_token == ""
        assert cfg.request_timeout == 30.0
        assert cfg.tree.show_files is False
        assert cfg.listing.sort_by == "type"
        assert cfg.listing.reverse is False

    def test_mutable_defaults_isolated(self):
        a = DriveConfig()
        b = DriveConfig()
        a.listing.sort_by = "size"
        assert b.listing.sort_by == "type"

    def test_dict_roundtrip(self):
        cfg = DriveConfig(
            api_url="http://nas:4023",
            access_token="tok",
            request_timeout=5.0,
            tree=TreeConfig(show_files=True),
            listing=ListingConfig(sort_by="size", reverse=True),
        )
        assert config_from_dict(config_to_dict(cfg)) == cfg


class TestConfigDir:
    """Tests for XDG path resolution."""

    def test_honours_xdg_config_home(self, tmp_path):
        with patch.dict(os.environ, {"XDG_CONFIG_HOME": str(tmp_path)}):
            assert get_config_dir() == tmp_path / "drive-tree"

    def test_defaults_to_dot_config(self):
        env = {k: v for k, v in os.environ.items() if k != "XDG_CONFIG_HOME"}
        with patch.dict(os.environ, env, clear=True):
            assert get_config_dir() == Path(os.path.expanduser("~/.config")) / "drive-tree"


class TestReadWrite:
    """Tests for config.json IO."""

    def test_read_returns_none_when_missing(self, config_path):
        assert read_config_file() is None

    def test_read_returns_none_on_invalid_json(self, config_path):
        config_path.parent.mkdir(parents=True)
        config_path.write_text("{not json")
        assert read_config_file() is None

    def test_write_and_read_roundtrip(self, config_path):
        data = {"api_url": "http://nas:4023", "listing": {"sort_by": "name"}}
        write_config_file(data)
        assert read_config_file() == data

    def test_write_creates_parent_dirs(self, config_path):
        write_config_file({"api_url": "x"})
        assert config_path.exists()

    def test_write_enforces_600_permissions(self, config_path):
        write_config_file({"access_token": "secret"})
        mode = stat.S_IMODE(config_path.stat().st_mode)
        assert mode == 0o600

    def test_write_leaves_no_temp_file(self, config_path):
        write_config_file({"api_url": "x"})
        assert not config_path.with_suffix(".tmp").exists()


class TestLoadConfig:
    """Tests for resolution order and backfill."""

    def test_defaults_without_file(self, config_path):
        cfg = load_config()
        assert cfg == DriveConfig()
        assert not config_path.exists()

    def test_file_values_used(self, config_path):
        write_config_file({"api_url": "http://nas:4023/", "access_token": "abc"})
        cfg = load_config()
        assert cfg.api_url == "http://nas:4023"
        assert cfg.access_token == "abc"

    def test_cli_overrides_file(self, config_path):
        write_config_file({"api_url": "http://nas:4023", "access_token": "abc"})
        cfg = load_config(cli_api_url="http://other:9000", cli_token="xyz")
        assert cfg.api_url == "http://other:9000"
        assert cfg.access_token == "xyz"

    def test_normalize_backfills_missing_sections(self, config_path):
        write_config_file({"api_url": "http://nas:4023", "listing": {"sort_by": "size"}})

        assert normalize_config() is True

        data = json.loads(config_path.read_text())
        assert data["api_url"] == "http://nas:4023"
        assert data["listing"] == {"sort_by": "size", "reverse": False}
        assert data["tree"] == {"show_files": False}
        assert data["request_timeout"] == 30.0

    def test_normalize_noop_when_complete(self, config_path):
        write_config_file(config_to_dict(DriveConfig()))
        assert normalize_config() is False

    def test_normalize_without_file(self, config_path):
        assert normalize_config() is False


class TestSetConfigValue:
    """Tests for `drive-tree config --set`."""

    def test_set_nested_string(self, config_path):
        cfg = set_config_value("listing.sort_by", "size")
        assert cfg.listing.sort_by == "size"
        assert read_config_file()["listing"]["sort_by"] == "size"

    def test_set_bool(self, config_path):
        assert set_config_value("tree.show_files", "yes").tree.show_files is True
        assert set_config_value("tree.show_files", "off").tree.show_files is False

    def test_set_float(self, config_path):
        assert set_config_value("request_timeout", "2.5").request_timeout == 2.5

    def test_set_float_rejects_garbage(self, config_path):
        with pytest.raises(ValueError):
            set_config_value("request_timeout", "soon")

    @pytest.mark.parametrize("key", ["nope", "listing.nope", "listing", "api_url.x"])
    def test_unknown_key(self, config_path, key):
        with pytest.raises(KeyError):
            set_config_value(key, "1")
