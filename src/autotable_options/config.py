"""Configuration management for table option normalization."""

import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional

from .normalizer import ResolutionContext


def load_yaml_file(file_path: Path) -> Dict[str, Any]:
    """Load a YAML file and return its contents."""
    if not file_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    with open(file_path, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f) or {}


def merge_dicts(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two dictionaries, overlay taking precedence."""
    result = base.copy()
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_dicts(result[key], value)
        else:
            result[key] = value
    return result


def load_options_file(file_path: Path) -> Dict[str, Any]:
    """Load a per-call option layer from a YAML file.

    Args:
        file_path: Path to a YAML mapping of table options

    Returns:
        The option mapping

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file does not contain a mapping
    """
    options = load_yaml_file(Path(file_path))
    if not isinstance(options, dict):
        raise ValueError(f"Options file must contain a mapping: {file_path}")
    return options


class Config:
    """Configuration manager that loads a settings file and its optional base file.

    The settings file provides the logging level, the session values used
    during normalization, and document-level default options:

        extends: base.yaml
        settings:
          logging:
            level: INFO
        session:
          scale_factor: 1
          page_margin: 40
        defaults:
          theme: striped
    """

    def __init__(self, config_path: str = 'autotable.yaml'):
        """Initialize configuration by loading the settings file and its base.

        Args:
            config_path: Path to main configuration file
        """
        self.config_path = Path(config_path)
        main_config = load_yaml_file(self.config_path)
        self._config = self._load_configuration(main_config, self.config_path.parent)
        self._setup_logging()

    @classmethod
    def from_dict(cls, main_config: Dict[str, Any], config_dir: Optional[Path] = None) -> "Config":
        """Create Config instance from an already loaded dictionary.

        Args:
            main_config: Configuration dictionary
            config_dir: Directory used to resolve the ``extends`` path

        Returns:
            Configured Config instance
        """
        config = cls.__new__(cls)
        config_dir = Path(config_dir) if config_dir is not None else Path.cwd()
        config.config_path = config_dir / "autotable.yaml"  # Virtual path
        config._config = config._load_configuration(main_config, config_dir)
        config._setup_logging()
        return config

    def _load_configuration(self, main_config: Dict[str, Any], config_dir: Path) -> Dict[str, Any]:
        """Merge the main configuration over its base file, if any.

        Args:
            main_config: Already loaded main configuration dictionary
            config_dir: Directory the ``extends`` path is relative to

        Returns:
            Merged configuration dictionary
        """
        base_name = main_config.get('extends')
        if not base_name:
            return main_config.copy()

        base_path = Path(base_name)
        if not base_path.is_absolute():
            base_path = config_dir / base_path

        # Base config is merged underneath, main config overlays
        base_config = load_yaml_file(base_path)
        merged = merge_dicts(base_config, main_config)
        merged.pop('extends', None)

        logging.debug(f"Loaded main config from: {self.config_path}")
        logging.debug(f"Loaded base config from: {base_path}")

        return merged

    def _setup_logging(self):
        """Setup logging based on configuration."""
        log_level = self.get('settings.logging.level', 'INFO')
        numeric_level = getattr(logging, str(log_level).upper(), logging.INFO)
        logging.basicConfig(
            level=numeric_level,
            format='%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'session.scale_factor')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def resolution_context(self) -> ResolutionContext:
        """Build the session context read by each normalization.

        Raises:
            ValueError: If the configured scale factor or margin is invalid
        """
        return ResolutionContext(
            scale_factor=self.get('session.scale_factor', 1.0),
            page_margin=self.get('session.page_margin', 40.0),
        )

    def default_options(self) -> Dict[str, Any]:
        """Get the document-level option layer (a copy)."""
        defaults = self.get('defaults', {})
        if not isinstance(defaults, dict):
            raise ValueError(f"'defaults' must be a mapping in {self.config_path}")
        return dict(defaults)
