"""Configuration loader for backend connection and continuation polling"""

import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from hitl_assistant.models.configs import AssistantConfig

DEFAULT_CONFIG_PATH = Path("config/assistant_config.yaml")

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "HITL_BACKEND_URL": ("backend", "base_url"),
    "HITL_USER_ID": ("backend", "user_id"),
    "HITL_LOG_LEVEL": ("logging", "level"),
}


def load_config(config_path: Optional[Path] = None) -> AssistantConfig:
    """
    Load assistant configuration from YAML file.

    Values from the environment (and a .env file, if present) take precedence
    over the file.

    Args:
        config_path: Path to configuration file. If None, uses default.

    Returns:
        AssistantConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config_data = yaml.safe_load(f) or {}

    if not isinstance(config_data, dict):
        raise ValueError(f"Configuration root must be a mapping: {config_path}")

    load_dotenv()
    apply_env_overrides(config_data)

    return AssistantConfig(**config_data)


def apply_env_overrides(config_data: dict) -> dict:
    """
    Overlay environment variables onto raw config data in place.

    Args:
        config_data: Parsed YAML mapping

    Returns:
        The same mapping, for chaining
    """
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if not value:
            continue
        section_data = config_data.get(section)
        if not isinstance(section_data, dict):
            section_data = {}
            config_data[section] = section_data
        section_data[key] = value

    return config_data
