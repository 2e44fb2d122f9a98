"""Configuration loading and management."""

import os
from pathlib import Path
from typing import Dict, Any, Optional, Union

import yaml

from layoutran.core.config import PipelineConfig
from layoutran.core.exceptions import ConfigurationError

# Environment variable -> path in the configuration dictionary
ENV_MAPPINGS = {
    "LAYOUTRAN_TARGET_LANG": ["target_lang"],
    "LAYOUTRAN_BACKEND": ["translation", "backend"],
    "LIBRETRANSLATE_URL": ["translation", "endpoint"],
    "LIBRETRANSLATE_API_KEY": ["translation", "api_key"],
    "LAYOUTRAN_CACHE_DIR": ["translation", "cache_dir"],
}


def _default_paths():
    return [
        Path("configs/default.yaml"),
        Path(__file__).parent.parent.parent / "configs" / "default.yaml",
    ]


def load_config(config_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file (defaults to configs/default.yaml)

    Returns:
        Configuration dictionary with environment overrides applied

    Raises:
        FileNotFoundError: an explicit path does not exist
        ConfigurationError: the file is not a YAML mapping
    """
    if config_path is None:
        for path in _default_paths():
            if path.exists():
                config_path = path
                break
        else:
            return override_with_env(get_default_config())

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}")

    if not isinstance(config, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")

    return override_with_env(config)


def load_pipeline_config(config_path: Optional[Union[str, Path]] = None) -> PipelineConfig:
    """Load configuration and build a PipelineConfig from it."""
    return PipelineConfig.from_dict(load_config(config_path))


def save_config(config: Union[Dict[str, Any], PipelineConfig], config_path: Union[str, Path]) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: Configuration dictionary or PipelineConfig
        config_path: Output path
    """
    if isinstance(config, PipelineConfig):
        config = config.to_dict()
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False, allow_unicode=True)


def override_with_env(config: Dict[str, Any]) -> Dict[str, Any]:
    """Override config with environment variables."""
    for env_var, path in ENV_MAPPINGS.items():
        value = os.getenv(env_var)
        if value:
            current = config
            for key in path[:-1]:
                if not isinstance(current.get(key), dict):
                    current[key] = {}
                current = current[key]
            current[path[-1]] = value

    return config


def get_default_config() -> Dict[str, Any]:
    """Get default configuration."""
    return PipelineConfig().to_dict()
