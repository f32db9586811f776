#!/usr/bin/env python3

"""
Configuration management for the isoform stack parser.

Centralized configuration with support for file-based configuration
and environment variable overrides.
"""

import os
import json
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any

import yaml

from .exceptions import ConfigurationError

DEFAULT_CHUNK_SIZE = 5242880  # 5 MiB
MAX_STACK_FILE_SIZE = 2147483648  # 2 GiB


@dataclass
class StackParserConfig:
    """Centralized configuration for stack file parsing."""

    # Streaming
    chunk_size: int = DEFAULT_CHUNK_SIZE
    encoding: str = "utf-8"

    # Input validation
    min_file_size: int = 10
    max_file_size: int = MAX_STACK_FILE_SIZE

    # Strand lookup service
    species: str = "human"
    use_grch37: bool = False
    ensembl_server: str = "https://rest.ensembl.org"
    ensembl_grch37_server: str = "https://grch37.rest.ensembl.org"
    lookup_timeout: float = 10.0
    enable_strand_lookup: bool = True

    # Transcript ordering
    reference_prefix: str = "ENS"

    # Monitoring
    memory_limit_mb: int = 4096
    enable_memory_monitoring: bool = True
    debug_mode: bool = False

    @classmethod
    def from_file(cls, config_path: str) -> 'StackParserConfig':
        """Load configuration from file (JSON or YAML)."""
        return cls.from_dict(read_config_file(config_path))

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'StackParserConfig':
        """Create configuration from dictionary."""
        # Filter out unknown keys
        known_keys = set(cls.__dataclass_fields__.keys())
        filtered_dict = {k: v for k, v in config_dict.items() if k in known_keys}

        try:
            return cls(**filtered_dict)
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration parameters: {e}")

    @classmethod
    def from_env(cls) -> 'StackParserConfig':
        """Load configuration from environment variables."""
        config = cls()

        def as_bool(value: str) -> bool:
            return value.lower() in ('true', '1', 'yes')

        env_mappings = {
            'ISOFORM_STACK_CHUNK_SIZE': ('chunk_size', int),
            'ISOFORM_STACK_ENCODING': ('encoding', str),
            'ISOFORM_STACK_SPECIES': ('species', str),
            'ISOFORM_STACK_USE_GRCH37': ('use_grch37', as_bool),
            'ISOFORM_STACK_ENSEMBL_SERVER': ('ensembl_server', str),
            'ISOFORM_STACK_LOOKUP_TIMEOUT': ('lookup_timeout', float),
            'ISOFORM_STACK_STRAND_LOOKUP': ('enable_strand_lookup', as_bool),
            'ISOFORM_STACK_MEMORY_LIMIT_MB': ('memory_limit_mb', int),
            'ISOFORM_STACK_DEBUG_MODE': ('debug_mode', as_bool),
        }

        for env_var, (field_name, converter) in env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value:
                try:
                    setattr(config, field_name, converter(env_value))
                except (ValueError, TypeError) as e:
                    raise ConfigurationError(f"Invalid environment variable {env_var}: {e}")

        config.validate()
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    def save_to_file(self, config_path: str) -> None:
        """Save configuration to file."""
        config_dict = self.to_dict()

        try:
            with open(config_path, 'w') as f:
                if config_path.lower().endswith(('.yaml', '.yml')):
                    yaml.safe_dump(config_dict, f, default_flow_style=False)
                else:
                    json.dump(config_dict, f, indent=2)
        except OSError as e:
            raise ConfigurationError(f"Error saving configuration: {e}")

    def validate(self) -> None:
        """Validate configuration parameters."""
        if self.chunk_size < 1:
            raise ConfigurationError("chunk_size must be >= 1")

        if self.min_file_size < 0:
            raise ConfigurationError("min_file_size must be >= 0")

        if self.max_file_size < self.min_file_size:
            raise ConfigurationError("max_file_size must be >= min_file_size")

        if not self.species:
            raise ConfigurationError("species must not be empty")

        if self.lookup_timeout <= 0:
            raise ConfigurationError("lookup_timeout must be > 0")

        if self.memory_limit_mb < 100:
            raise ConfigurationError("memory_limit_mb must be >= 100")

        try:
            "".encode(self.encoding)
        except LookupError:
            raise ConfigurationError(f"Unknown encoding: {self.encoding}")

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.validate()


def read_config_file(config_path: str) -> Dict[str, Any]:
    """Read the raw mapping of a JSON or YAML configuration file."""
    if not os.path.exists(config_path):
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, 'r') as f:
            if config_path.lower().endswith(('.yaml', '.yml')):
                config_data = yaml.safe_load(f)
            else:
                config_data = json.load(f)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Invalid configuration file format: {e}")
    except OSError as e:
        raise ConfigurationError(f"Error loading configuration: {e}")

    if not isinstance(config_data, dict):
        raise ConfigurationError(f"Configuration file must contain a mapping: {config_path}")

    return config_data


def load_config(config_path: Optional[str] = None,
                use_env: bool = True) -> StackParserConfig:
    """
    Load configuration with priority: file > environment > defaults.

    Args:
        config_path: Path to configuration file (optional)
        use_env: Whether to load environment variables

    Returns:
        StackParserConfig: Loaded configuration
    """
    config = StackParserConfig.from_env() if use_env else StackParserConfig()

    if config_path:
        # Only the keys present in the file override env values
        merged = config.to_dict()
        merged.update(read_config_file(config_path))
        config = StackParserConfig.from_dict(merged)

    config.validate()
    return config
