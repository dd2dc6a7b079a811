#!/usr/bin/env python3
"""
Configuration Manager for the Practice Metrics dashboard

Handles configuration loading, validation, and defaults. The heuristic
tables used for report discovery and column inference live here so new
upstream field-name variants can be added from YAML without code changes.
"""

import copy
import logging
from pathlib import Path
from typing import Dict, Any, Optional, Union
import yaml


class ConfigManager:
    """
    Configuration manager with defaults and validation.

    Provides a unified interface for accessing configuration values
    with defaults and type validation.
    """

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to configuration file (YAML)
        """
        self.logger = logging.getLogger(__name__)
        self.config_path = Path(config_path) if config_path else None
        self._config = {}
        self._defaults = self._get_default_config()

        if self.config_path and self.config_path.exists():
            self._load_config()
        else:
            self.logger.info("Using default configuration (no config file provided)")
            self._config = copy.deepcopy(self._defaults)

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration."""
        return {
            'api': {
                'base_url': 'https://app.clio.com/api/v4',
                'timeout_seconds': 30,
                'max_retries': 3,
                'fetch_budget_seconds': 120,
                'retryable_statuses': [400, 404, 422]
            },

            # Report export candidates, tried in order
            'reports': {
                'revenue': {
                    'label': 'revenue report',
                    'paths': [
                        ['managed', 'revenue'],
                        ['billing', 'revenue'],
                        ['standard', 'revenue']
                    ],
                    'extras': [
                        {},
                        {'filters[date_range][name]': 'payment_date'}
                    ]
                },
                'productivity': {
                    'label': 'productivity report',
                    'paths': [
                        ['managed', 'productivity_by_user'],
                        ['managed', 'productivity_user'],
                        ['managed', 'productivity']
                    ],
                    'extras': [{}]
                },
                'time': {
                    'label': 'time entries report',
                    'paths': [
                        ['standard', 'time_entries'],
                        ['standard', 'time_entries_detail'],
                        ['managed', 'time_entries_detail']
                    ],
                    'extras': [
                        {},
                        {'detail': 'true'},
                        {'filters[group_by]': 'entry'}
                    ]
                }
            },

            # Date-range parameter names differ by deployment
            'date_param_variants': [
                ['filters[date_range][start]', 'filters[date_range][end]'],
                ['filters[date][start]', 'filters[date][end]'],
                ['filters[date_range][from]', 'filters[date_range][to]'],
                ['date[start]', 'date[end]'],
                ['start_date', 'end_date'],
                ['from', 'to'],
                ['filters[start_date]', 'filters[end_date]']
            ],

            # JSON collection endpoints used in collections mode
            'collections': {
                'time_entries': {
                    'endpoint': 'time_entries.json',
                    'params': {'fields': 'id,date,quantity,price,user{id,name}'}
                },
                'payments': {
                    'endpoint': 'payments.json',
                    'params': {}
                },
                'allocations': {
                    'endpoint': 'allocations.json',
                    'params': {}
                },
                'activities': {
                    'endpoint': 'activities.json',
                    'params': {'type': 'Payment'}
                }
            },

            'pagination': {
                'per_page': 200,
                'max_pages': 50
            },

            # Column inference tables
            'inference': {
                'attorney_preferences': [
                    ['timekeeper'],
                    ['user'],
                    ['attorney'],
                    ['responsible', 'attorney'],
                    ['originating', 'attorney'],
                    ['billing', 'attorney'],
                    ['lawyer'],
                    ['name']
                ],
                'revenue_date_preferences': [
                    ['payment', 'date'],
                    ['collection', 'date'],
                    ['collected', 'date'],
                    ['deposit', 'date'],
                    ['transaction', 'date'],
                    ['activity', 'date'],
                    ['invoice', 'date'],
                    ['applied', 'at'],
                    ['date']
                ],
                'time_date_preferences': [
                    ['entry', 'date'],
                    ['activity', 'date'],
                    ['work', 'date'],
                    ['date'],
                    ['month']
                ],
                'hours_column_preferences': [
                    ['billable', 'hours'],
                    ['billed', 'hours'],
                    ['hours', 'billed'],
                    ['hours', 'worked'],
                    ['worked', 'hours'],
                    ['recorded', 'hours'],
                    ['hours']
                ],
                # Exclusions match at word starts ("Updated" does not hit "date")
                'revenue_include': ['collect', 'payment', 'receipt', 'paid', 'deposit', 'revenue'],
                'revenue_exclude': ['uncollect', 'unpaid', 'outstanding', 'balance', 'writeoff',
                                    'discount', 'unbilled', 'date'],
                'revenue_fallback_include': ['total', 'amount'],
                'hours_include': ['hour'],
                'hours_exclude': ['rate', 'target', 'percent', 'percentage', 'utilization',
                                  'budget', 'capacity', 'goal'],
                'duration_include': ['duration', 'quantity'],
                'duration_exclude': ['rate', 'target', 'percent', 'percentage', 'utilization',
                                     'amount', 'value'],
                'sample_rows': 10,
                'sniff_threshold': 0.7
            },

            # Processing settings
            'source_mode': 'reports',
            'revenue_collection': 'payments',
            'duration_unit': 'hours',
            'zero_data_policy': 'show',
            'weekly_points': 12,
            'output_dir': 'output',
            'save_metadata': True,
            'log_level': 'INFO'
        }

    def _load_config(self):
        """Load configuration from YAML file."""
        try:
            self.logger.info(f"Loading configuration from {self.config_path}")

            with open(self.config_path, 'r', encoding='utf-8') as f:
                loaded_config = yaml.safe_load(f)

            if not isinstance(loaded_config, dict):
                raise ValueError("Configuration file must contain a dictionary")

            # Merge with defaults (loaded config takes precedence)
            self._config = copy.deepcopy(self._defaults)
            self._merge_config(self._config, loaded_config)

            self.logger.info("Configuration loaded successfully")

        except (OSError, ValueError, yaml.YAMLError) as e:
            self.logger.error(f"Failed to load configuration: {str(e)}")
            self.logger.info("Using default configuration")
            self._config = copy.deepcopy(self._defaults)

    def _merge_config(self, base: Dict, update: Dict):
        """Recursively merge configuration dictionaries."""
        for key, value in update.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._merge_config(base[key], value)
            else:
                base[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value with optional default.

        Args:
            key: Configuration key (supports dot notation for nested keys)
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = self._config
        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def set(self, key: str, value: Any):
        """
        Set configuration value.

        Args:
            key: Configuration key (supports dot notation)
            value: Value to set
        """
        keys = key.split('.')
        config = self._config

        # Navigate to parent dictionary
        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value

    def get_section(self, section: str) -> Dict[str, Any]:
        """Get entire configuration section."""
        return self.get(section, {})

    def validate(self) -> Dict[str, Any]:
        """
        Validate configuration and return validation results.

        Returns:
            Dictionary with validation results
        """
        issues = []
        warnings = []

        required_sections = ['api', 'reports', 'inference', 'pagination']
        for section in required_sections:
            if section not in self._config:
                issues.append(f"Missing required section: {section}")

        numeric_configs = {
            'api.timeout_seconds': (1, 600),
            'api.max_retries': (0, 10),
            'api.fetch_budget_seconds': (1, 3600),
            'pagination.per_page': (1, 1000),
            'pagination.max_pages': (1, 10000),
            'inference.sample_rows': (1, 1000),
            'inference.sniff_threshold': (0, 1)
        }

        for key, (min_val, max_val) in numeric_configs.items():
            value = self.get(key)
            if value is not None:
                if not isinstance(value, (int, float)) or isinstance(value, bool):
                    issues.append(f"{key} must be numeric, got {type(value).__name__}")
                elif not (min_val <= value <= max_val):
                    issues.append(f"{key} must be between {min_val} and {max_val}, got {value}")

        choices = {
            'source_mode': ['reports', 'collections'],
            'revenue_collection': ['payments', 'allocations', 'activities'],
            'duration_unit': ['hours', 'minutes', 'seconds', 'auto'],
            'zero_data_policy': ['show', 'sample']
        }
        for key, allowed in choices.items():
            value = self.get(key)
            if value not in allowed:
                issues.append(f"{key} must be one of {allowed}, got {value!r}")

        # Validate log level
        log_level = str(self.get('log_level', '')).upper()
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if log_level not in valid_levels:
            warnings.append(f"Invalid log level: {log_level}. Using INFO.")
            self.set('log_level', 'INFO')

        return {
            'is_valid': len(issues) == 0,
            'issues': issues,
            'warnings': warnings
        }

    def save(self, output_path: Optional[Union[str, Path]] = None):
        """
        Save current configuration to YAML file.

        Args:
            output_path: Path to save configuration (defaults to original path)
        """
        save_path = Path(output_path) if output_path else self.config_path

        if not save_path:
            raise ValueError("No output path specified and no original config path available")

        try:
            save_path.parent.mkdir(parents=True, exist_ok=True)

            with open(save_path, 'w', encoding='utf-8') as f:
                yaml.dump(self._config, f, default_flow_style=False, indent=2)

            self.logger.info(f"Configuration saved to {save_path}")

        except OSError as e:
            self.logger.error(f"Failed to save configuration: {str(e)}")
            raise

    def to_dict(self) -> Dict[str, Any]:
        """Get configuration as dictionary."""
        return copy.deepcopy(self._config)

    def __str__(self) -> str:
        """String representation of configuration."""
        return f"ConfigManager(path={self.config_path}, sections={list(self._config.keys())})"
