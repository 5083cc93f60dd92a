# Copyright (c) 2025 Luc Vincent. All Rights Reserved.
"""
Tests for configuration loading and validation.
"""

import pytest
import yaml

from nas_slideshow.config import (
    PASSWORD_ENV_VAR, SlideshowConfig, config_to_dict, load_config,
    save_config, validate_config,
)


def write_config(temp_dir, data):
    config_path = temp_dir / "config.yaml"
    with open(config_path, 'w') as f:
        yaml.dump(data, f)
    return str(config_path)


class TestConfigLoading:
    """Test loading YAML into the config dataclasses."""

    def test_loads_values(self, sample_config_yaml):
        config = load_config(str(sample_config_yaml))

        assert config.nas.url == "https://nas.local:5001"
        assert config.nas.verify_ssl is False
        assert config.search.folders == ["/photo/2023", "/photo/2024"]
        assert config.search.sample_count == 5
        assert config.search.excluded_extensions == [".mp4", ".mov"]
        assert config.geolocation.use_mock is True
        assert config.config_path == str(sample_config_yaml)

    def test_missing_sections_use_defaults(self, temp_dir):
        config = load_config(write_config(temp_dir, {"nas": {"url": "http://nas"}}))

        assert config.search.max_poll_attempts == 10
        assert config.search.timeout_seconds == 120
        assert ".mkv" in config.search.excluded_extensions
        assert config.download.file_name == "photos.zip"
        assert config.web.photo_route == "/photos"

    def test_unknown_keys_ignored(self, temp_dir, sample_config_dict):
        sample_config_dict["search"]["no_such_option"] = True
        config = load_config(write_config(temp_dir, sample_config_dict))

        assert config.search.sample_count == 5

    def test_missing_file_gives_defaults(self, temp_dir):
        config = load_config(str(temp_dir / "absent.yaml"))

        assert config.config_path is None
        assert config.nas.url == ""

    def test_password_from_environment(self, sample_config_yaml, monkeypatch):
        monkeypatch.setenv(PASSWORD_ENV_VAR, "from-env")

        config = load_config(str(sample_config_yaml))

        assert config.account.password == "from-env"

    def test_save_and_reload(self, temp_dir, sample_config_yaml):
        config = load_config(str(sample_config_yaml))
        config.search.sample_count = 42

        saved_path = save_config(config, str(temp_dir / "out" / "config.yaml"))
        reloaded = load_config(saved_path)

        assert reloaded.search.sample_count == 42
        assert "config_path" not in config_to_dict(config)


class TestConfigValidation:
    """Test config validation logic."""

    def test_valid_config_passes(self, sample_config_yaml):
        """Valid config should load without errors."""
        config = load_config(str(sample_config_yaml))
        errors = validate_config(config)

        assert len(errors) == 0, f"Unexpected errors: {errors}"

    def test_defaults_are_invalid(self):
        errors = validate_config(SlideshowConfig())

        assert "No NAS URL configured." in errors
        assert "NAS account and password are required." in errors
        assert any("search folders" in e for e in errors)

    def test_url_scheme(self, temp_dir, sample_config_dict):
        sample_config_dict["nas"]["url"] = "nas.local:5001"
        errors = validate_config(load_config(write_config(temp_dir, sample_config_dict)))

        assert any("http://" in e for e in errors)

    def test_relative_folder(self, temp_dir, sample_config_dict):
        sample_config_dict["search"]["folders"] = ["/photo", "relative/path"]
        errors = validate_config(load_config(write_config(temp_dir, sample_config_dict)))

        assert "Search folder 2 must be an absolute NAS path" in errors

    @pytest.mark.parametrize("key,value,fragment", [
        ("sample_count", 0, "sample_count"),
        ("timeout_seconds", 0, "timeout_seconds"),
        ("max_poll_attempts", 0, "max_poll_attempts"),
        ("poll_delay_seconds", -1, "poll_delay_seconds"),
    ])
    def test_search_limits(self, temp_dir, sample_config_dict, key, value, fragment):
        sample_config_dict["search"][key] = value
        errors = validate_config(load_config(write_config(temp_dir, sample_config_dict)))

        assert any(fragment in e for e in errors)

    def test_file_name_with_directory(self, temp_dir, sample_config_dict):
        sample_config_dict["download"]["file_name"] = "sub/photos.zip"
        errors = validate_config(load_config(write_config(temp_dir, sample_config_dict)))

        assert any("file_name" in e for e in errors)

    def test_geolocation_needs_key(self, temp_dir, sample_config_dict):
        sample_config_dict["geolocation"]["use_mock"] = False
        errors = validate_config(load_config(write_config(temp_dir, sample_config_dict)))

        assert any("api_key" in e for e in errors)

    def test_web_port_range(self, temp_dir, sample_config_dict):
        sample_config_dict["web"]["port"] = 70000
        errors = validate_config(load_config(write_config(temp_dir, sample_config_dict)))

        assert any("port" in e for e in errors)
