"""
Handles loading and validation of configuration settings.

This module is responsible for loading, merging, and validating configuration settings from:
1. The config.yaml file (primary configuration source)
2. Environment variables (for secrets and overrides)

It provides a unified configuration access mechanism through the get_config_value function,
ensures settings are validated against expected types and requirements, and makes the
configuration available throughout the application.

Key components:
- APP_CONFIG: The global configuration dictionary
- get_config_value: Function to retrieve values using dot notation
- validate_config: Validates configuration against expected structure and types
- load_app_config: Loads and merges configuration from all sources
"""

import json
import logging
import os
import sys
from typing import Any, Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load environment variables from .env file first
load_dotenv()

# Merged configuration from YAML, defaults and environment variables
APP_CONFIG: Dict[str, Any] = {}

__all__ = [
    "APP_CONFIG",
    "load_app_config",
    "get_config_value",
    "validate_config",
]

CONFIG_FILE_ENV_VAR = "INVITE_CONSOLE_CONFIG"

DEFAULT_CONFIG_STRUCTURE = {
    "console_settings": {
        "app_name": "Invite Review Console",
        "log_file_name": "invite_console.log",
        "db_file_name": "invite_console.db",
        "debug_mode": False,
        "log_level": "INFO",
    },
    "backend": {
        "base_url": None,  # Required, e.g. https://admin.example.com
        "api_prefix": "/api/v1/admin",  # Empty string for backends mounted at the root
        "request_timeout_seconds": 15,
        "login_timeout_seconds": 10,
        "user_agent": "Invite Review Console/1.0",
    },
    "session": {
        "credential_slot": "admin_session",  # sqlite row holding the session
    },
    "reviews": {
        "page_size": 20,
        "high_risk_threshold": 0.7,
        "medium_risk_threshold": 0.4,
        "require_reject_reason": True,  # Rejections need a reason unless disabled
    },
    "message_settings": {
        "templates_file": "message_templates.json",
    },
}

# (type, is_required, default_value)
EXPECTED_CONFIG: Dict[str, Tuple[type, bool, Any]] = {
    "console_settings.app_name": (str, False, "Invite Review Console"),
    "console_settings.log_file_name": (str, False, "invite_console.log"),
    "console_settings.db_file_name": (str, False, "invite_console.db"),
    "console_settings.debug_mode": (bool, False, False),
    "console_settings.log_level": (str, False, "INFO"),
    "backend.base_url": (str, True, None),
    "backend.api_prefix": (str, False, "/api/v1/admin"),
    "backend.request_timeout_seconds": (int, False, 15),
    "backend.login_timeout_seconds": (int, False, 10),
    "backend.user_agent": (str, False, "Invite Review Console/1.0"),
    "session.credential_slot": (str, False, "admin_session"),
    "reviews.page_size": (int, False, 20),
    "reviews.high_risk_threshold": (float, False, 0.7),
    "reviews.medium_risk_threshold": (float, False, 0.4),
    "reviews.require_reject_reason": (bool, False, True),
    "message_settings.templates_file": (str, False, "message_templates.json"),
}


def _load_yaml_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Loads configuration from a YAML file."""
    path = path or os.getenv(CONFIG_FILE_ENV_VAR, "config.yaml")
    try:
        if os.path.exists(path):
            with open(path, "r") as f:
                yaml_config = yaml.safe_load(f)
                logger.info(f"Successfully loaded configuration from {path}")
                return yaml_config or {}
        else:
            logger.warning(
                f"YAML configuration file not found at {path}. "
                "Ensure 'config.yaml' exists or all settings are provided via environment variables."
            )
            return {}
    except yaml.YAMLError as e:
        logger.error(f"Error parsing YAML configuration file {path}: {e}")
        sys.exit(f"Critical error: Could not parse {path}. Please check its syntax.")
    except OSError as e:
        logger.error(f"Unexpected error loading YAML configuration {path}: {e}")
        return {}


def _get_typed_env_var(key: str, default_value: Any, expected_type: type) -> Any:
    """Gets an environment variable and attempts to cast it to the expected type."""
    value = os.getenv(key)
    if value is None:
        return default_value

    try:
        if expected_type is bool:
            return value.lower() in ("true", "1", "t", "yes", "y")
        if expected_type is int:
            return int(value)
        if expected_type is float:
            return float(value)
        if expected_type is list:  # Expect comma-separated string for lists from env
            return [item.strip() for item in value.split(",") if item.strip()]
        if expected_type is dict:  # JSON string dicts from env
            return json.loads(value)
        return expected_type(value)
    except ValueError:
        logger.warning(
            f"Could not cast environment variable {key}='{value}' to {expected_type}. Using default: {default_value}"
        )
        return default_value


def _merge_configs(
    yaml_config: Dict[str, Any], defaults: Dict[str, Any]
) -> Dict[str, Any]:
    """Merges YAML config over the default structure, section by section."""
    merged_config = {}

    for section, section_defaults in defaults.items():
        merged_config[section] = section_defaults.copy()
        yaml_section = yaml_config.get(section, {})

        if isinstance(yaml_section, dict) and isinstance(merged_config[section], dict):
            for key, default_val in section_defaults.items():
                merged_config[section][key] = yaml_section.get(key, default_val)
        elif yaml_section is not None:
            merged_config[section] = yaml_section

    return merged_config


def _apply_env_vars_to_merged_config(
    config_dict: Dict[str, Any], defaults: Dict[str, Any]
):
    """Applies environment variables to the config_dict based on default structure.
    Environment variables are expected to be in format SECTION_KEY=value (e.g., BACKEND_BASE_URL=https://...).
    This will override values previously set by YAML or defaults if the env var is present.
    """
    for section_name, section_defaults in defaults.items():
        if section_name not in config_dict:
            config_dict[section_name] = {}
        for key_name, default_value in section_defaults.items():
            env_var_key = f"{section_name.upper()}_{key_name.upper()}"
            expected_type = type(default_value) if default_value is not None else str

            current_val_in_config = config_dict[section_name].get(
                key_name, default_value
            )
            env_val = _get_typed_env_var(
                env_var_key, current_val_in_config, expected_type
            )

            if os.getenv(env_var_key) is not None:
                config_dict[section_name][key_name] = env_val
                logger.debug(
                    f"Applied environment variable '{env_var_key}' to '{section_name}.{key_name}'"
                )


def load_app_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load application configuration from YAML and environment variables.

    The configuration loading follows this priority order:
    - Defaults from DEFAULT_CONFIG_STRUCTURE
    - Base settings from config.yaml (or the file named by INVITE_CONSOLE_CONFIG)
    - Overrides from environment variables

    Returns:
        Dict[str, Any]: The loaded configuration dictionary
    """
    global APP_CONFIG

    # Load YAML config first
    yaml_config = _load_yaml_config(path)

    # Merge the YAML config with the default structure for consistent access
    merged_config = _merge_configs(yaml_config, DEFAULT_CONFIG_STRUCTURE)

    # Apply any environment variable overrides
    _apply_env_vars_to_merged_config(merged_config, DEFAULT_CONFIG_STRUCTURE)

    # Set global APP_CONFIG
    APP_CONFIG = merged_config

    logger.debug(f"Configuration loaded with {len(APP_CONFIG)} top-level keys.")
    return APP_CONFIG


# Load configuration when this module is imported
load_app_config()


def get_config_value(path: str, default: Any = None) -> Any:
    """
    Retrieves a configuration value using dot notation path.

    Args:
        path: Dot-notation path to the configuration value (e.g., 'backend.base_url')
        default: Value to return if the path is not found

    Returns:
        The configuration value at the specified path, or the default if not found

    Examples:
        >>> get_config_value('console_settings.app_name', 'Console')
        'Invite Review Console'
        >>> get_config_value('nonexistent.path', 'fallback')
        'fallback'
    """
    # If APP_CONFIG is empty, try to load it
    if not APP_CONFIG:
        load_app_config()

    # Split the path into parts and navigate the config dict
    current = APP_CONFIG
    for part in path.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return default
    return current if current is not None else default


def validate_config() -> None:
    """
    Validates the loaded configuration against expected types and requirements.

    Warnings for non-critical issues are logged but allow the application to continue.

    Raises:
        SystemExit: If a critical configuration error is found
    """
    logger.info("Validating configuration...")
    valid = True

    for key, (p_type, is_required, _default) in EXPECTED_CONFIG.items():
        val = get_config_value(key)

        # 1. Check for presence if required
        if val is None:
            if is_required:
                logger.critical(
                    f"Config Error: Required key '{key}' is missing or not set."
                )
                valid = False
            continue

        # 2. Basic type validation
        type_valid = True
        if p_type is bool:
            type_valid = isinstance(val, bool)
        elif p_type is int:
            # bool is a subclass of int
            type_valid = isinstance(val, int) and not isinstance(val, bool)
        elif p_type is float:
            type_valid = isinstance(val, (int, float)) and not isinstance(val, bool)
        elif not isinstance(val, p_type):
            type_valid = False

        if not type_valid:
            logger.critical(
                f"Config Error: Key '{key}' (value: '{val}', type: {type(val).__name__}) must be of type {p_type.__name__}."
            )
            valid = False
            continue  # Skip content checks if basic type is wrong

        # 3. Specific content validations
        if key == "console_settings.log_level":
            if val.upper() not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
                logger.critical(
                    f"Config Error: '{key}' (value: {val}) must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL."
                )
                valid = False

        elif key.endswith("url") and val:
            if not (val.startswith("http://") or val.startswith("https://")):
                logger.warning(
                    f"Config Warning: Key '{key}' (value: {val}) does not appear to be a valid HTTP/HTTPS URL."
                )

        elif key.endswith("_seconds") or key == "reviews.page_size":
            if val <= 0:
                logger.critical(
                    f"Config Error: Key '{key}' (value: {val}) must be a positive integer."
                )
                valid = False

        elif key.endswith("_threshold"):
            if not 0.0 <= val <= 1.0:
                logger.critical(
                    f"Config Error: Key '{key}' (value: {val}) must be between 0 and 1."
                )
                valid = False

    # Risk bands must not overlap
    high = get_config_value("reviews.high_risk_threshold", 0.7)
    medium = get_config_value("reviews.medium_risk_threshold", 0.4)
    if isinstance(high, (int, float)) and isinstance(medium, (int, float)) and medium > high:
        logger.critical(
            "Config Error: 'reviews.medium_risk_threshold' must not exceed 'reviews.high_risk_threshold'."
        )
        valid = False

    if not valid:
        logger.critical(
            "Configuration validation failed. Please check your config.yaml and .env files, or console logs for details."
        )
        sys.exit(1)
    logger.info("Configuration validated successfully.")
