# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
args_filter Settings

Centralized settings supporting:
- Environment variables (ARGSFILTER_*)
- Config files (~/.argsfilter/config.yaml, ./.argsfilter.yaml)
- Programmatic defaults
- Pydantic validation

These are the tool's own settings (logging, default rules file). The
args_filter rules themselves live in a separate rules file, see loader.py.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger("argsfilter.config")


# ============================================================================
# Configuration Models
# ============================================================================


class ObservabilityConfig(BaseModel):
    """Logging configuration"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: Optional[Path] = Field(
        default=None, description="Directory for the rotating log file"
    )
    file_logging: bool = Field(
        default=False, description="Write logs to log_dir as well as stderr"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator("log_dir", mode="before")
    @classmethod
    def ensure_path(cls, v):
        """Convert strings to Path objects"""
        if isinstance(v, str):
            return Path(v).expanduser()
        return v


class FiltersConfig(BaseModel):
    """Rules file configuration"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    config_file: Optional[Path] = Field(
        default=None, description="Default args_filter rules file"
    )

    @field_validator("config_file", mode="before")
    @classmethod
    def ensure_path(cls, v):
        if isinstance(v, str):
            return Path(v).expanduser()
        return v


class ArgsFilterConfig(BaseModel):
    """Complete args_filter settings"""

    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig, description="Logging configuration"
    )
    filters: FiltersConfig = Field(
        default_factory=FiltersConfig, description="Rules file configuration"
    )


# ============================================================================
# Configuration Loader
# ============================================================================


class ConfigLoader:
    """Load configuration from multiple sources"""

    @staticmethod
    def load_from_env() -> Dict[str, Any]:
        """Load configuration from environment variables"""
        config: Dict[str, Any] = {}

        log_level = os.getenv("ARGSFILTER_LOG_LEVEL")
        if log_level:
            config.setdefault("observability", {})["log_level"] = log_level

        log_dir = os.getenv("ARGSFILTER_LOG_DIR")
        if log_dir:
            config.setdefault("observability", {})["log_dir"] = log_dir

        file_logging = os.getenv("ARGSFILTER_FILE_LOGS")
        if file_logging:
            config.setdefault("observability", {})["file_logging"] = (
                file_logging.lower() == "true"
            )

        rules_file = os.getenv("ARGSFILTER_CONFIG")
        if rules_file:
            config.setdefault("filters", {})["config_file"] = rules_file

        return config

    @staticmethod
    def load_from_file(file_path: Path) -> Dict[str, Any]:
        """Load one YAML settings file; missing or unreadable files give {}"""
        if not file_path.exists():
            return {}

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load settings file {file_path}: {e}")
            return {}

        if data is None:
            return {}
        if not isinstance(data, dict):
            logger.error(f"Settings file {file_path} must contain a mapping, ignoring it")
            return {}

        logger.debug(f"Loaded settings from {file_path}")
        return data

    @staticmethod
    def merge_configs(*configs: Dict[str, Any]) -> Dict[str, Any]:
        """Layer configs left to right; nested sections merge key by key"""
        result: Dict[str, Any] = {}
        for config in configs:
            for key, value in config.items():
                current = result.get(key)
                if isinstance(current, dict) and isinstance(value, dict):
                    value = ConfigLoader.merge_configs(current, value)
                result[key] = value
        return result


def settings_files() -> List[Path]:
    """Settings files the tool reads, lowest precedence first"""
    return [
        Path.home() / ".argsfilter" / "config.yaml",
        Path.cwd() / ".argsfilter.yaml",
    ]


# ============================================================================
# Global Settings Instance
# ============================================================================

_config: Optional[ArgsFilterConfig] = None


def load_config(config_file: Optional[Path] = None) -> ArgsFilterConfig:
    """
    Build settings from settings_files(), then ``config_file``, then the
    ARGSFILTER_* environment. Later sources win.

    Invalid settings are logged and replaced by defaults so the CLI can
    still report on the rules file.
    """
    files = settings_files()
    if config_file is not None:
        files.append(config_file)

    layers = [ConfigLoader.load_from_file(path) for path in files]
    layers.append(ConfigLoader.load_from_env())

    try:
        return ArgsFilterConfig.model_validate(ConfigLoader.merge_configs(*layers))
    except ValidationError as e:
        logger.error(f"Invalid args_filter settings, using defaults: {e}")
        return ArgsFilterConfig()


def get_config() -> ArgsFilterConfig:
    """Process-wide settings, loaded on first use"""
    global _config

    if _config is None:
        _config = load_config()

    return _config


def reload_config() -> ArgsFilterConfig:
    """Drop cached settings and load them again"""
    global _config
    _config = load_config()
    logger.info("Configuration reloaded")
    return _config
