"""Configuration file lookup and YAML loading."""

import os
from pathlib import Path
from typing import Optional, Union

import yaml
from dotenv import load_dotenv

CONFIG_DIR_ENV = "FLOODWATCH_CONFIG_DIR"


def get_config_path(
    config_name: str,
    config_dir: Optional[Union[str, Path]] = None,
) -> Path:
    """Get path to a configuration file.

    Args:
        config_name: Name of config file (without path), e.g. "gateway.yaml".
        config_dir: Directory containing config files. If None, uses
            FLOODWATCH_CONFIG_DIR, then the 'config' directory at the repo root.

    Returns:
        Path to the configuration file (which may not exist).
    """
    if config_dir is None:
        config_dir = os.getenv(CONFIG_DIR_ENV) or Path(__file__).parent.parent.parent / "config"
    return Path(config_dir) / config_name


def resolve_config_path(
    config_path: Optional[Union[str, Path]],
    env_var: str,
    default_name: str,
) -> Optional[Path]:
    """Pick a service's config file.

    An explicit path wins, then the path in env_var, then default_name in
    the config directory. Returns None when the chosen file does not exist,
    meaning the service should run on defaults.
    """
    if config_path is None:
        config_path = os.getenv(env_var) or get_config_path(default_name)

    path = Path(config_path)
    return path if path.exists() else None


def load_yaml_config(
    config_path: Union[str, Path],
    load_env: bool = True,
) -> dict:
    """Load YAML configuration file.

    Args:
        config_path: Path to config file.
        load_env: Whether to load .env file first.

    Returns:
        Configuration dictionary.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        yaml.YAMLError: If config file is invalid YAML.
    """
    if load_env:
        # Credentials (store token, broker) come from .env
        load_dotenv()

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        return yaml.safe_load(f) or {}
