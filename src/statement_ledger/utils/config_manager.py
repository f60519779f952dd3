"""Configuration management for the statement ledger."""

import json
import os
import yaml
from typing import Dict, Any, Optional
import logging

from ..models.core import ParserConfig, InstitutionConfig, GROUP_ROWS, GROUP_COLUMNS
from .calculator import MoneyContext


logger = logging.getLogger(__name__)


INSTITUTION_FIELDS = {
    'y_tolerance': (int, float),
    'x_tolerance': (int, float),
    'grouping': str,
    'start_markers': list,
    'start_inclusive': bool,
    'end_markers': list,
    'end_inclusive': bool,
}


class ConfigManager:
    """Manages loading and validation of parser configuration"""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration manager

        Args:
            config_path: Path to configuration file. If None, searches for default locations.
        """
        self.config_path = config_path
        self._config_cache: Optional[ParserConfig] = None

    def load_config(self, force_reload: bool = False) -> ParserConfig:
        """Load parser configuration from file or return default

        Args:
            force_reload: Force reload from file even if cached

        Returns:
            ParserConfig instance with loaded or default configuration
        """
        if self._config_cache is not None and not force_reload:
            return self._config_cache

        config_data = self._load_config_file()

        try:
            defaults = ParserConfig()
            self._config_cache = ParserConfig(
                default_y_tolerance=float(config_data.get('default_y_tolerance', defaults.default_y_tolerance)),
                default_x_tolerance=float(config_data.get('default_x_tolerance', defaults.default_x_tolerance)),
                decimal_places=config_data.get('decimal_places', defaults.decimal_places),
                rounding=config_data.get('rounding', defaults.rounding),
                currency=config_data.get('currency', defaults.currency),
                page_separator=config_data.get('page_separator', defaults.page_separator),
                log_directory=config_data.get('log_directory'),
                institutions=self._load_institution_configs(config_data.get('institutions', {})),
                category_rules=config_data.get('category_rules'),
            )

            logger.info(f"Configuration loaded successfully from {self.config_path or 'defaults'}")
            return self._config_cache

        except Exception as e:
            logger.warning(f"Error loading configuration: {e}. Using defaults.")
            self._config_cache = ParserConfig()
            return self._config_cache

    def _load_config_file(self) -> Dict[str, Any]:
        """Load configuration from file

        Returns:
            Dictionary with configuration data or empty dict if no file found
        """
        config_file = self._find_config_file()

        if not config_file or not os.path.exists(config_file):
            logger.info("No configuration file found, using defaults")
            return {}

        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                if config_file.endswith('.json'):
                    data = json.load(f)
                elif config_file.endswith(('.yml', '.yaml')):
                    data = yaml.safe_load(f)
                else:
                    logger.warning(f"Unsupported config file format: {config_file}")
                    return {}

            if data is None:
                data = {}
            self._validate_config_data(data)
            logger.info(f"Configuration loaded from {config_file}")
            return data

        except Exception as e:
            logger.error(f"Error reading configuration file {config_file}: {e}")
            return {}

    def _find_config_file(self) -> Optional[str]:
        """Find configuration file in standard locations"""
        if self.config_path:
            return self.config_path

        search_paths = [
            'statement_ledger.json',
            'statement_ledger.yml',
            'statement_ledger.yaml',
            'config/statement_ledger.json',
            'config/statement_ledger.yml',
            'config/statement_ledger.yaml',
            os.path.expanduser('~/.statement_ledger/config.json'),
            os.path.expanduser('~/.statement_ledger/config.yml'),
        ]

        for path in search_paths:
            if os.path.exists(path):
                return path

        return None

    def _validate_config_data(self, data: Dict[str, Any]) -> None:
        """Validate configuration data structure

        Raises:
            ValueError: If configuration data is invalid
        """
        if not isinstance(data, dict):
            raise ValueError("Configuration must be a dictionary")

        for tol_key in ['default_y_tolerance', 'default_x_tolerance']:
            if tol_key in data:
                value = data[tol_key]
                if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                    raise ValueError(f"{tol_key} must be a non-negative number")

        if 'decimal_places' in data or 'rounding' in data:
            places = data.get('decimal_places', 2)
            if isinstance(places, bool) or not isinstance(places, int):
                raise ValueError("decimal_places must be an integer")
            # MoneyContext rejects negative places and unknown rounding modes
            MoneyContext(places=places, rounding=str(data.get('rounding', 'ROUND_HALF_UP')))

        for str_key in ['currency', 'page_separator', 'log_directory']:
            if str_key in data and data[str_key] is not None and not isinstance(data[str_key], str):
                raise ValueError(f"{str_key} must be a string")

        if 'institutions' in data:
            if not isinstance(data['institutions'], dict):
                raise ValueError("institutions must be a dictionary")
            self._validate_institution_configs(data['institutions'])

        if 'category_rules' in data:
            self._validate_category_rules(data['category_rules'])

    def _validate_institution_configs(self, institutions: Dict[str, Any]) -> None:
        """Validate per-institution layout overrides

        Raises:
            ValueError: If institution configuration is invalid
        """
        for inst_name, inst_config in institutions.items():
            if not isinstance(inst_config, dict):
                raise ValueError(f"Institution config for {inst_name} must be a dictionary")

            for key, value in inst_config.items():
                expected = INSTITUTION_FIELDS.get(key)
                if expected is None:
                    raise ValueError(f"Unknown field for institution {inst_name}: {key}")
                if expected is not bool and isinstance(value, bool):
                    raise ValueError(f"{key} for {inst_name} has the wrong type")
                if not isinstance(value, expected):
                    raise ValueError(f"{key} for {inst_name} has the wrong type")

            if inst_config.get('grouping', GROUP_ROWS) not in (GROUP_ROWS, GROUP_COLUMNS):
                raise ValueError(f"Invalid grouping for {inst_name}: {inst_config['grouping']}")

            for marker_key in ['start_markers', 'end_markers']:
                for marker in inst_config.get(marker_key, []):
                    if not isinstance(marker, str):
                        raise ValueError(f"All {marker_key} for {inst_name} must be strings")

    def _validate_category_rules(self, rules: Any) -> None:
        if not isinstance(rules, list):
            raise ValueError("category_rules must be a list")
        for rule in rules:
            if not isinstance(rule, dict) or 'id' not in rule or 'keywords' not in rule:
                raise ValueError("Each category rule needs 'id' and 'keywords'")
            if not isinstance(rule['keywords'], list):
                raise ValueError(f"keywords of category rule {rule['id']} must be a list")

    def _load_institution_configs(self, institutions_data: Dict[str, Any]) -> Dict[str, InstitutionConfig]:
        """Turn the institutions section into InstitutionConfig overrides"""
        configs = {}

        for inst_name, inst_data in institutions_data.items():
            try:
                configs[inst_name.lower()] = InstitutionConfig(name=inst_name.lower(), **inst_data)
                logger.debug(f"Loaded configuration for institution: {inst_name}")
            except TypeError as e:
                logger.error(f"Error loading configuration for institution {inst_name}: {e}")

        return configs

    def get_institution_config(self, institution_id: str) -> Optional[InstitutionConfig]:
        return self.load_config().institutions.get(institution_id.lower())

    def save_config_template(self, output_path: str) -> None:
        """Generate and save a configuration file template

        Args:
            output_path: Path where to save the template
        """
        template = {
            "default_y_tolerance": 5.0,
            "default_x_tolerance": 5.0,
            "decimal_places": 2,
            "rounding": "ROUND_HALF_UP",
            "currency": "CNY",
            "page_separator": "--- PAGE BREAK ---",
            "log_directory": "logs",
            "institutions": {
                "icbc": {
                    "y_tolerance": 25.0,
                    "grouping": "rows",
                    "start_markers": ["交易日期"],
                    "start_inclusive": True,
                    "end_markers": ["本页支出算术合计"],
                    "end_inclusive": False
                },
                "minsheng": {
                    "y_tolerance": 5.0,
                    "start_markers": ["凭证类型"],
                    "end_markers": ["____", "支出交易总额"]
                }
            },
            "category_rules": [
                {"id": "pets", "name": "宠物", "keywords": ["宠物", "猫粮", "狗粮"]}
            ]
        }

        try:
            output_dir = os.path.dirname(output_path)
            if output_dir:
                os.makedirs(output_dir, exist_ok=True)

            with open(output_path, 'w', encoding='utf-8') as f:
                if output_path.endswith(('.yml', '.yaml')):
                    yaml.safe_dump(template, f, default_flow_style=False, indent=2, allow_unicode=True)
                else:
                    json.dump(template, f, indent=2, ensure_ascii=False)

            logger.info(f"Configuration template saved to {output_path}")

        except Exception as e:
            logger.error(f"Error saving configuration template: {e}")
            raise

    def reset_config(self) -> None:
        """Reset configuration cache, forcing reload on next access"""
        self._config_cache = None
        logger.debug("Configuration cache reset")


def get_default_config_manager() -> ConfigManager:
    """Get a default configuration manager instance"""
    return ConfigManager()
