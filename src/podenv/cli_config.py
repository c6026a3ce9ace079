"""
Configuration management for podenv.

Settings for manifest rendering, input limits and logging, loaded from an
optional JSON or TOML config file and overridden by environment variables.
"""

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml
from rich.console import Console

console = Console(stderr=True)

_C_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


@dataclass
class ManifestConfig:
    """Manifest rendering configuration."""

    macro_prefix: str = "COCOAPODS"
    include_preamble: bool = True
    output_format: str = "console"


@dataclass
class SecurityConfig:
    """Input validation limits."""

    max_file_size_mb: int = 10
    max_lines_per_file: int = 100000
    allowed_file_extensions: List[str] = field(
        default_factory=lambda: [".h", ".lock", ".txt", ".json"]
    )

    @property
    def max_file_size_bytes(self) -> int:
        """Convert MB to bytes for internal use."""
        return self.max_file_size_mb * 1024 * 1024


@dataclass
class LoggingConfig:
    """Logging configuration."""

    log_level: str = "WARNING"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class ComprehensiveConfig:
    """Main configuration containing all subsections."""

    manifest: ManifestConfig = field(default_factory=ManifestConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Global configuration instance
_global_config: Optional[ComprehensiveConfig] = None


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_config_values(config: ComprehensiveConfig) -> List[str]:
    """
    Validate configuration values and return any errors.

    Values of the wrong type are reported like any other invalid value, so
    a bad config file can never make loading raise.

    Args:
        config: Configuration to validate

    Returns:
        List[str]: List of validation errors (empty if valid)
    """
    errors = []

    manifest = config.manifest
    if not isinstance(manifest.macro_prefix, str) or not _C_IDENTIFIER.fullmatch(
        manifest.macro_prefix
    ):
        errors.append("manifest.macro_prefix must be a C identifier")
    if not isinstance(manifest.include_preamble, bool):
        errors.append("manifest.include_preamble must be true or false")
    if manifest.output_format not in ("console", "json"):
        errors.append("manifest.output_format must be 'console' or 'json'")

    security = config.security
    if not _is_int(security.max_file_size_mb) or security.max_file_size_mb <= 0:
        errors.append("security.max_file_size_mb must be a positive integer")
    if not _is_int(security.max_lines_per_file) or security.max_lines_per_file <= 0:
        errors.append("security.max_lines_per_file must be a positive integer")
    if not isinstance(security.allowed_file_extensions, list):
        errors.append("security.allowed_file_extensions must be a list")
    else:
        for extension in security.allowed_file_extensions:
            if not isinstance(extension, str) or not extension.startswith("."):
                errors.append(
                    f"security.allowed_file_extensions entry {extension!r} must start with '.'"
                )

    if str(config.logging.log_level).upper() not in (
        "DEBUG",
        "INFO",
        "WARNING",
        "ERROR",
        "CRITICAL",
    ):
        errors.append(f"logging.log_level is not a valid level: {config.logging.log_level}")
    if not isinstance(config.logging.log_format, str) or not config.logging.log_format:
        errors.append("logging.log_format must be a non-empty string")

    return errors


def load_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """Load config from a JSON or TOML file."""
    if not config_path.exists():
        return None

    try:
        with open(config_path, encoding="utf-8") as f:
            if config_path.suffix.lower() == ".toml":
                return toml.load(f)
            elif config_path.suffix.lower() == ".json":
                return json.load(f)
    except (OSError, ValueError, toml.TomlDecodeError) as e:
        console.print(
            f"⚠️  Error loading config from {config_path}: {e}", style="yellow"
        )

    return None


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / ".podenv.json",
        Path.cwd() / ".podenv.toml",
        Path.home() / ".config" / "podenv" / "config.json",
        Path.home() / ".config" / "podenv" / "config.toml",
        Path.home() / ".podenv.json",
    ]

    for location in locations:
        if location.exists():
            return location

    return None


def load_environment_overrides(config: ComprehensiveConfig) -> None:
    """Load environment variable overrides."""

    def get_env_bool(key: str, default: bool = False) -> bool:
        value = os.environ.get(key, "").lower()
        return value in ["true", "1", "yes", "on"] if value else default

    def get_env_int(key: str, default: Optional[int] = None) -> Optional[int]:
        try:
            return int(os.environ[key]) if key in os.environ else default
        except ValueError:
            console.print(f"⚠️  Invalid integer value for {key}, using default", style="yellow")
            return default

    if macro_prefix := os.environ.get("PODENV_MACRO_PREFIX"):
        config.manifest.macro_prefix = macro_prefix
    config.manifest.include_preamble = get_env_bool(
        "PODENV_INCLUDE_PREAMBLE", config.manifest.include_preamble
    )
    if output_format := os.environ.get("PODENV_OUTPUT_FORMAT"):
        config.manifest.output_format = output_format.lower()

    if (max_file_size := get_env_int("PODENV_MAX_FILE_SIZE_MB")) is not None:
        config.security.max_file_size_mb = max_file_size
    if (max_lines := get_env_int("PODENV_MAX_LINES_PER_FILE")) is not None:
        config.security.max_lines_per_file = max_lines

    if log_level := os.environ.get("PODENV_LOG_LEVEL"):
        config.logging.log_level = log_level.upper()


def apply_config_section(
    config: Any, section_data: Dict[str, Any], section_name: str
) -> None:
    """Apply configuration from dictionary to config section."""
    for key, value in section_data.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            console.print(
                f"⚠️  Unknown config key in {section_name}: {key}", style="yellow"
            )


def apply_config_data(config: ComprehensiveConfig, file_config: Dict[str, Any]) -> None:
    """Apply every known section of a loaded config file."""
    for section_name in ("manifest", "security", "logging"):
        section_data = file_config.get(section_name)
        if section_data is None:
            continue
        if not isinstance(section_data, dict):
            console.print(
                f"⚠️  Config section {section_name} must be a table, ignoring it",
                style="yellow",
            )
            continue
        apply_config_section(getattr(config, section_name), section_data, section_name)


def load_config() -> ComprehensiveConfig:
    """Load configuration from file and environment."""
    global _global_config

    if _global_config is not None:
        return _global_config

    config = ComprehensiveConfig()

    config_file = find_config_file()
    if config_file:
        file_config = load_config_file(config_file)
        if isinstance(file_config, dict):
            apply_config_data(config, file_config)

    load_environment_overrides(config)

    validation_errors = validate_config_values(config)
    if validation_errors:
        console.print("⚠️  Configuration validation errors:", style="red")
        for error in validation_errors:
            console.print(f"  • {error}", style="red")
        console.print("Using default values for invalid settings.", style="yellow")
        config = _with_defaults_for_invalid(config)

    _global_config = config
    return config


def _with_defaults_for_invalid(config: ComprehensiveConfig) -> ComprehensiveConfig:
    """Reset every section that fails validation to its defaults."""
    defaults = ComprehensiveConfig()
    for section_name in ("manifest", "security", "logging"):
        candidate = ComprehensiveConfig()
        setattr(candidate, section_name, getattr(config, section_name))
        if validate_config_values(candidate):
            setattr(config, section_name, getattr(defaults, section_name))
    return config


def get_config() -> ComprehensiveConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _global_config
    _global_config = None


def create_sample_config() -> str:
    """Generate a sample JSON configuration."""
    sample_config = {
        "manifest": {
            "macro_prefix": "COCOAPODS",
            "include_preamble": True,
            "output_format": "console",
        },
        "security": {
            "max_file_size_mb": 10,
            "max_lines_per_file": 100000,
            "allowed_file_extensions": [".h", ".lock", ".txt", ".json"],
        },
        "logging": {
            "log_level": "WARNING",
            "log_format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        },
    }

    return json.dumps(sample_config, indent=2)
