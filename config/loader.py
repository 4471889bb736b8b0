"""Configuration loader for the OpenRouter translation proxy

Loads configuration from multiple sources with the following priority:
1. Environment variables (highest priority)
2. config.json file
3. Hardcoded defaults (lowest priority)
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, List

logger = logging.getLogger(__name__)


class ConfigLoader:
    """Resolves settings from the environment, config.json and defaults"""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize the config loader

        Args:
            config_path: Optional path to config.json file.
                        Defaults to 'config.json' in the current directory.
        """
        self.config_path = Path(config_path) if config_path else Path("config.json")
        self.config_data = self._load_config_file()

    def _load_config_file(self) -> Dict[str, Any]:
        if not self.config_path.exists():
            return {}
        try:
            with open(self.config_path, 'r') as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Failed to load {self.config_path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring {self.config_path}: top-level value must be an object")
            return {}
        return data

    def get(self, env_var: str, config_path: str, default: Any) -> Any:
        """Get a configuration value with priority: env > config.json > default

        Environment values are coerced to the type of ``default`` when it is a
        bool, int or float. Values that fail to coerce fall back to ``default``.

        Args:
            env_var: Environment variable name to check
            config_path: Dot-separated path in config.json (e.g., "server.port")
            default: Default value if not found elsewhere
        """
        env_value = os.getenv(env_var)
        if env_value is not None:
            if isinstance(default, bool):
                return env_value.lower() in ('true', '1', 'yes')
            elif isinstance(default, int):
                try:
                    return int(env_value)
                except ValueError:
                    logger.warning(f"{env_var}={env_value!r} is not an integer, using default {default}")
                    return default
            elif isinstance(default, float):
                try:
                    return float(env_value)
                except ValueError:
                    logger.warning(f"{env_var}={env_value!r} is not a number, using default {default}")
                    return default
            return env_value

        value = self._get_nested_value(self.config_data, config_path)
        if value is not None:
            return _expand_home(value)

        return _expand_home(default)

    def _get_nested_value(self, data: Dict[str, Any], path: str) -> Any:
        current: Any = data
        for key in path.split('.'):
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return None
        return current

    def get_all_config(self) -> Dict[str, Any]:
        """Get the entire loaded configuration"""
        return self.config_data.copy()


def _expand_home(value: Any) -> Any:
    if isinstance(value, str) and value.startswith("~/"):
        return str(Path(value).expanduser())
    return value


_config_loader = None


def get_config_loader() -> ConfigLoader:
    """Get or create the global ConfigLoader instance"""
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader()
    return _config_loader


def load_model_overrides(models_path: Optional[str] = None) -> List[Dict[str, Any]]:
    """Load static model capability overrides from models.json

    The file holds ``{"models": [{"id": ..., "context_length": ..., "supports_reasoning": ...}]}``.
    Entries seed the capability cache so those models never hit the catalog.

    Args:
        models_path: Optional path to models.json file.
                    Defaults to 'models.json' in the current directory.

    Returns:
        List of validated model entries. Returns an empty list if the file
        doesn't exist or can't be parsed.
    """
    path = Path(models_path) if models_path else Path("models.json")

    if not path.exists():
        logger.debug(f"Model overrides file not found: {path}")
        return []

    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse {path}: {e}")
        return []
    except IOError as e:
        logger.error(f"Failed to read {path}: {e}")
        return []

    models = data.get("models", []) if isinstance(data, dict) else None
    if not isinstance(models, list):
        logger.warning(f"Invalid models format in {path}: expected list, got {type(models)}")
        return []

    validated: List[Dict[str, Any]] = []
    for idx, model in enumerate(models):
        if not isinstance(model, dict):
            logger.warning(f"Skipping invalid model at index {idx}: not a dictionary")
            continue
        if not model.get("id"):
            logger.warning(f"Skipping model at index {idx}: missing required field 'id'")
            continue
        context_length = model.get("context_length", 200000)
        if not isinstance(context_length, int) or context_length <= 0:
            logger.warning(f"Skipping model {model['id']}: context_length must be a positive integer")
            continue

        validated.append({
            "id": model["id"],
            "context_length": context_length,
            "supports_reasoning": bool(model.get("supports_reasoning", False)),
        })

    logger.info(f"Loaded {len(validated)} model override(s) from {path}")
    return validated
