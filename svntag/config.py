#!/usr/bin/env python3

import os
import json
import tomllib
from pathlib import Path

import logging
import sys

import toml
import yaml

from .domain.tagging import DEFAULT_TAG_COMMENT, DEFAULT_DELETE_COMMENT
from .exit_codes import ConfigError, TemplateError
from .template import check_template

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stderr) # Default to stderr
    ]
)
logger = logging.getLogger("svntag")

CONFIG_FILENAMES = ['config.json', 'config.toml', 'config.yaml', 'config.yml']


def get_config_path():
    """Get the path to the configuration file.

    Checks in order:
    1. SVNTAG_CONFIG environment variable
    2. ~/.svntag/ directory
    """
    # Check for environment variable override
    if 'SVNTAG_CONFIG' in os.environ:
        path = Path(os.environ['SVNTAG_CONFIG']).expanduser()
        if path.exists():
            return path

    svntag_dir = Path.home() / '.svntag'
    for filename in CONFIG_FILENAMES:
        path = svntag_dir / filename
        if path.exists() and path.stat().st_size > 0:
            return path

    # If no file exists, return default path for saving
    return svntag_dir / 'config.json'


def load_config(config_path=None):
    """Load configuration from file.

    Raises:
        ConfigError: if the configuration file exists but cannot be parsed
    """
    config_path = Path(config_path) if config_path else get_config_path()

    # Start with default config
    config = get_default_config()

    # Load from file if it exists
    if config_path.exists():
        try:
            if config_path.suffix.lower() in ['.toml']:
                with open(config_path, 'rb') as f:
                    file_config = tomllib.load(f)
            elif config_path.suffix.lower() in ['.yaml', '.yml']:
                with open(config_path, 'r') as f:
                    file_config = yaml.safe_load(f) or {}
            else:
                # Default to JSON format
                with open(config_path, 'r') as f:
                    file_config = json.load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigError(f"Error loading config from {config_path}: {e}") from e

        if not isinstance(file_config, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping")

        # Merge file config with defaults
        config = merge_configs(config, file_config)
        logger.debug(f"Loaded configuration from {config_path}")

    # Apply environment variable overrides
    config = apply_env_overrides(config)

    return config


def save_config(config, config_path=None):
    """Save configuration to file."""
    config_path = Path(config_path) if config_path else get_config_path()

    # Create directory if it doesn't exist
    config_path.parent.mkdir(parents=True, exist_ok=True)

    if config_path.suffix.lower() in ['.toml']:
        # tomllib is read-only
        with open(config_path, 'w') as f:
            toml.dump(config, f)
    elif config_path.suffix.lower() in ['.yaml', '.yml']:
        with open(config_path, 'w') as f:
            yaml.safe_dump(config, f, default_flow_style=False)
    else:
        # Default to JSON format
        with open(config_path, 'w') as f:
            json.dump(config, f, indent=2)

    logger.info(f"Configuration saved to {config_path}")
    return config_path


def get_default_config():
    """Get default configuration."""
    return {
        "tag": {
            "tag_url": "",          # Template; absolute or relative to each module URL
            "comment": DEFAULT_TAG_COMMENT,
            "delete_comment": DEFAULT_DELETE_COMMENT,
            "peg_externals": False,
            "wait_seconds": 0,      # Pause once before the first copy
            "mkdir_comment": ""     # Non-empty: create tag parents by importing an empty dir
        },
        "ledger": {
            "path": "revision.txt"
        },
        "svn": {
            "executable": "svn",
            "username": "",
            "password": "",
            "config_dir": "",
            "non_interactive": True,
            "no_auth_cache": False,
            "timeout": 0            # Seconds; 0 waits forever
        },
        "template": {
            "properties": {}        # Extra values visible as ${sys['name']}
        },
        "logging": {
            "level": "INFO",
            "format": "%(levelname)s: %(message)s"
        }
    }


def validate_config(config):
    """
    Check the tag section of a configuration.

    The tag URL must be present, and every template must parse. References
    are not resolved here since they depend on the build.

    Raises:
        ConfigError: describing the first problem found
    """
    tag = config.get('tag', {}) or {}
    if not str(tag.get('tag_url') or '').strip():
        raise ConfigError("No tag URL configured (set tag.tag_url or pass --tag-url)")

    for key in ('tag_url', 'comment', 'delete_comment', 'mkdir_comment'):
        try:
            check_template(tag.get(key) or '')
        except TemplateError as e:
            raise ConfigError(f"Invalid template in tag.{key}: {e}") from e


def configure_logging(config, debug=False):
    """Apply the logging section of the configuration."""
    logging_config = config.get('logging', {}) or {}
    level = 'DEBUG' if debug else str(logging_config.get('level', 'INFO')).upper()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))
    fmt = logging_config.get('format')
    if fmt:
        for handler in root.handlers:
            handler.setFormatter(logging.Formatter(fmt))


def merge_configs(base_config, override_config):
    """
    Recursively merge two configuration dictionaries.

    Args:
        base_config (dict): Base configuration
        override_config (dict): Configuration to merge/override with

    Returns:
        dict: Merged configuration
    """
    merged = base_config.copy()

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            # Recursively merge nested dictionaries
            merged[key] = merge_configs(merged[key], value)
        else:
            # Override or add new key
            merged[key] = value

    return merged


def apply_env_overrides(config):
    """
    Apply environment variable overrides to configuration.
    Environment variables follow the pattern: SVNTAG_SECTION_KEY
    For example: SVNTAG_TAG_PEG_EXTERNALS=true or SVNTAG_SVN_USERNAME=builder
    """
    env_prefix = "SVNTAG_"

    for env_key, value in os.environ.items():
        if not env_key.startswith(env_prefix):
            continue

        key_parts = env_key[len(env_prefix):].lower().split('_')

        # Convert value
        if value.lower() in ('true', 'yes', 'on'):
            typed_value = True
        elif value.lower() in ('false', 'no', 'off'):
            typed_value = False
        elif value.isdigit():
            typed_value = int(value)
        else:
            typed_value = value

        current_level = config
        i = 0
        while i < len(key_parts):
            # Find the longest key in current_level that is a prefix of the remaining key_parts
            best_match_len = 0
            matched_key = None

            for config_key in current_level.keys():
                config_key_parts_from_key = config_key.split('_')
                if key_parts[i : i + len(config_key_parts_from_key)] == config_key_parts_from_key:
                    if len(config_key_parts_from_key) > best_match_len:
                        best_match_len = len(config_key_parts_from_key)
                        matched_key = config_key

            if matched_key:
                # If we are at the end of the env var, we have found the key to set
                if i + best_match_len == len(key_parts):
                    if isinstance(current_level[matched_key], str) and not isinstance(typed_value, str):
                        # Keep string settings (passwords, templates) as given
                        typed_value = value
                    current_level[matched_key] = typed_value
                    break

                # Otherwise, we descend into the dictionary
                if isinstance(current_level[matched_key], dict):
                    current_level = current_level[matched_key]
                    i += best_match_len
                else:
                    # Path conflict, e.g., env var is longer but we found a non-dict value
                    break
            else:
                # No match found
                break

    return config
