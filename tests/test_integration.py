"""
Integration tests for podenv.
Tests complete workflows: lock file -> manifest -> queries, fragment
merging, and configuration driving the codec.
"""

import json

import pytest

from podenv.cli_config import (
    ComprehensiveConfig,
    get_config,
    load_config,
    load_environment_overrides,
    reset_config,
    validate_config_values,
)
from podenv.error_handling import ConflictError, ParseError
from podenv.registry import Registry, load, load_file, load_podfile_lock, merge_all, serialize


class TestEndToEnd:
    """Test complete manifest workflows."""

    def test_lock_to_manifest_to_queries(self, temp_dir, sample_podfile_lock):
        # Step 1: read the resolver's output
        registry = load_file(str(sample_podfile_lock))

        # Step 2: write the manifest
        header = temp_dir / "Pods-environment.h"
        header.write_text(serialize(registry))

        # Step 3: a build step consumes it
        consumed = load_file(str(header))
        assert consumed == registry
        assert consumed.is_available("TaylorSource/YapDatabase")
        assert consumed.version_of("HanekeSwift") == (0, 9, 1)
        assert consumed.meets_minimum("YapDatabaseExtensions", "1.5")

    def test_json_manifest_round_trip(self, temp_dir, sample_environment_header):
        registry = load_file(str(sample_environment_header))
        json_file = temp_dir / "environment.json"
        json_file.write_text(json.dumps(registry.to_dict()))

        assert load_file(str(json_file)) == registry

    def test_invalid_json_manifest(self, temp_dir):
        json_file = temp_dir / "environment.json"
        json_file.write_text("{not json")

        with pytest.raises(ParseError):
            load_file(str(json_file))

    def test_fragments_merge_and_conflict(self, yap_fragments, sample_environment_header):
        first, second = yap_fragments

        merged = merge_all(load_file(str(p)) for p in [first, sample_environment_header])
        assert len(merged) == 11

        with pytest.raises(ConflictError):
            merge_all(load_file(str(p)) for p in [first, second])

    def test_load_podfile_lock_text(self, sample_podfile_lock):
        registry = load_podfile_lock(sample_podfile_lock.read_text(), source_name="Podfile.lock")

        assert registry.version_of("CocoaLumberjack/Extensions") == (1, 9, 2)


class TestFileValidation:
    """Test input limits from the security config."""

    def test_missing_file(self, temp_dir):
        with pytest.raises(ValueError, match="does not exist"):
            load_file(str(temp_dir / "nope.h"))

    def test_directory_rejected(self, temp_dir):
        directory = temp_dir / "dir.h"
        directory.mkdir()

        with pytest.raises(ValueError, match="not a file"):
            load_file(str(directory))

    def test_disallowed_extension(self, temp_dir):
        other = temp_dir / "environment.yaml"
        other.write_text("")

        with pytest.raises(ValueError, match="not allowed"):
            load_file(str(other))

    def test_line_limit_is_an_error(self, temp_dir, monkeypatch, sample_environment_header):
        monkeypatch.setenv("PODENV_MAX_LINES_PER_FILE", "10")
        reset_config()

        with pytest.raises(ParseError, match="too many lines"):
            load_file(str(sample_environment_header))


class TestConfiguration:
    """Test configuration files and environment overrides."""

    def test_defaults(self):
        config = get_config()

        assert config.manifest.macro_prefix == "COCOAPODS"
        assert config.manifest.include_preamble is True
        assert validate_config_values(config) == []

    def test_toml_config_file(self):
        with open(".podenv.toml", "w", encoding="utf-8") as f:
            f.write('[manifest]\nmacro_prefix = "PODS"\ninclude_preamble = false\n')

        config = load_config()

        assert config.manifest.macro_prefix == "PODS"
        assert config.manifest.include_preamble is False

    def test_json_config_file_drives_codec(self):
        with open(".podenv.json", "w", encoding="utf-8") as f:
            json.dump({"manifest": {"macro_prefix": "PODS", "include_preamble": False}}, f)

        registry = Registry.from_versions([("Pod", "1.2.3")])
        text = serialize(registry)

        assert text.startswith("// Pod\n#define PODS_POD_AVAILABLE_Pod\n")
        assert load(text) == registry

    def test_environment_overrides_file(self, monkeypatch):
        with open(".podenv.json", "w", encoding="utf-8") as f:
            json.dump({"manifest": {"macro_prefix": "PODS"}}, f)
        monkeypatch.setenv("PODENV_MACRO_PREFIX", "VENDOR")
        monkeypatch.setenv("PODENV_LOG_LEVEL", "debug")

        config = load_config()

        assert config.manifest.macro_prefix == "VENDOR"
        assert config.logging.log_level == "DEBUG"

    def test_invalid_values_fall_back_to_defaults(self, monkeypatch):
        monkeypatch.setenv("PODENV_MACRO_PREFIX", "not an identifier")

        config = load_config()

        assert config.manifest.macro_prefix == "COCOAPODS"

    def test_invalid_integer_env_uses_default(self, monkeypatch):
        monkeypatch.setenv("PODENV_MAX_FILE_SIZE_MB", "lots")

        assert load_config().security.max_file_size_mb == 10

    def test_wrong_value_types_fall_back_to_defaults(self):
        with open(".podenv.json", "w", encoding="utf-8") as f:
            json.dump(
                {
                    "manifest": {"include_preamble": "no"},
                    "security": {"max_file_size_mb": "10"},
                    "logging": {"log_format": 42},
                },
                f,
            )

        config = load_config()

        assert config.manifest.include_preamble is True
        assert config.security.max_file_size_mb == 10
        assert validate_config_values(config) == []
        assert len(load("")) == 0

    def test_non_table_section_is_ignored(self):
        with open(".podenv.json", "w", encoding="utf-8") as f:
            json.dump({"security": 5, "manifest": {"macro_prefix": "PODS"}}, f)

        config = load_config()

        assert config.security.max_lines_per_file == 100000
        assert config.manifest.macro_prefix == "PODS"

    def test_zero_env_limit_reaches_validation(self, monkeypatch):
        monkeypatch.setenv("PODENV_MAX_FILE_SIZE_MB", "0")
        config = ComprehensiveConfig()

        load_environment_overrides(config)

        assert config.security.max_file_size_mb == 0
        assert "security.max_file_size_mb must be a positive integer" in (
            validate_config_values(config)
        )
        assert load_config().security.max_file_size_mb == 10

    def test_explicit_prefix_ignores_configured_prefix(self, sample_header_text):
        with open(".podenv.json", "w", encoding="utf-8") as f:
            json.dump({"manifest": {"macro_prefix": "PODS"}}, f)

        with pytest.raises(ParseError):
            load(sample_header_text)

        assert len(load(sample_header_text, macro_prefix="COCOAPODS")) == 11
