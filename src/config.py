"""
Configuration module for the prediction dice client
Centralizes all constants, settings, and configuration with validation
"""

import json
import logging
import os
import threading
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional, Union


class ConfigError(Exception):
    """Configuration validation error"""
    pass


def _safe_int_env(name: str, default: int, min_val: int = None, max_val: int = None) -> int:
    """
    Safely parse integer environment variable with bounds.
    Falls back to default on invalid values.
    """
    logger_local = logging.getLogger(__name__)
    try:
        value = int(os.getenv(name, str(default)))
        if min_val is not None:
            value = max(min_val, value)
        if max_val is not None:
            value = min(max_val, value)
        return value
    except (ValueError, TypeError):
        logger_local.warning(f"Invalid {name}, using default {default}")
        return default


def _safe_float_env(name: str, default: float) -> float:
    """Parse a non-negative float environment variable, falling back to default."""
    try:
        value = float(os.getenv(name, str(default)))
        return value if value >= 0 else default
    except (ValueError, TypeError):
        logging.getLogger(__name__).warning(f"Invalid {name}, using default {default}")
        return default


class Config:
    """
    Configuration management with:
    - Input validation
    - Environment variable support
    - Safe defaults
    """

    # ========== Financial Settings ==========
    FINANCIAL = {
        'min_bet': Decimal('0.001'),
        'default_bet': '0.01',
        'quick_bets': ('0.01', '0.05', '0.1'),
        'display_precision': 4,
    }

    # ========== Game Rules ==========
    GAME_RULES = {
        'min_number': 1,
        'max_number': 6,
        'recent_results_limit': 5,
    }

    # ========== Presentation Timing (seconds) ==========
    TIMING = {
        'rolling_duration': _safe_float_env('DICE_ROLLING_DURATION', 2.0),
        'display_window': _safe_float_env('DICE_DISPLAY_WINDOW', 5.0),
        'refresh_delay': _safe_float_env('DICE_REFRESH_DELAY', 1.0),
    }

    # ========== History View ==========
    HISTORY = {
        'page_size': 20,
        'page_increment': 20,
        'max_games': 1000,
    }

    # ========== File Settings ==========
    @classmethod
    def get_files_config(cls) -> dict:
        """Get file configuration with lazy initialization to avoid import issues"""
        return {
            'config_dir': Path(os.getenv(
                'DICE_CONFIG_DIR',
                str(Path.home() / '.prediction_dice')
            )),
            'log_dir': Path(os.getenv(
                'DICE_LOG_DIR',
                str(Path.home() / '.prediction_dice' / 'logs')
            )),
        }

    # ========== Ledger Settings (With Validation) ==========
    @classmethod
    def get_ledger_config(cls) -> dict:
        """Get ledger connection configuration from the environment"""
        return {
            'rpc_url': os.getenv('LEDGER_RPC_URL', 'http://127.0.0.1:8545'),
            'contract_address': os.getenv(
                'LEDGER_CONTRACT_ADDRESS', '0x5FbDB2315678afecb367f032d93F642f64180aa3'
            ),
            'chain_id': _safe_int_env('LEDGER_CHAIN_ID', 1337, 1),
            'from_block': _safe_int_env('LEDGER_FROM_BLOCK', 0, 0),
            'receipt_timeout': _safe_int_env('LEDGER_RECEIPT_TIMEOUT', 120, 1, 3600),
            'explorer_url': os.getenv('LEDGER_EXPLORER_URL', 'https://sepolia.etherscan.io'),
            'account': os.getenv('LEDGER_ACCOUNT'),
            'private_key': os.getenv('LEDGER_PRIVATE_KEY'),
        }

    LEDGER = property(lambda self: self.get_ledger_config())

    # ========== Logging Settings ==========
    LOGGING = {
        'level': os.getenv('LOG_LEVEL', 'INFO'),
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        'date_format': '%Y-%m-%d %H:%M:%S',
        'max_bytes': 5 * 1024 * 1024,
        'backup_count': 3,
        'console_output': True,
        'json_logs': os.getenv('DICE_JSON_LOGS', '').lower() in ('1', 'true', 'yes'),
    }

    def __init__(
        self,
        config_file: Optional[str] = None,
        validate: bool = True,
        ensure_directories: bool = True,
    ):
        """
        Initialize configuration with optional validation

        Args:
            config_file: Optional path to JSON config file
            validate: Whether to validate configuration on init
            ensure_directories: Create required directories on init
        """
        self._lock = threading.RLock()
        self._files_config: Optional[dict] = None
        self.config_file = config_file
        self._custom_settings = {}
        self._logger = None  # Will be set after logger initialization

        if ensure_directories:
            self.ensure_directories()

        if config_file:
            self.load_from_file(config_file)

        if validate:
            self.validate()

    @property
    def FILES(self) -> dict:
        """Cached file configuration"""
        with self._lock:
            if self._files_config is None:
                self._files_config = self.get_files_config()
            return self._files_config

    def ensure_directories(self) -> Dict[str, bool]:
        """Ensure all required directories exist, track success."""
        status: Dict[str, bool] = {}
        logger_local = self._logger or logging.getLogger(__name__)
        for key in ['config_dir', 'log_dir']:
            path = self.FILES[key]
            try:
                path.mkdir(parents=True, exist_ok=True)
                status[key] = path.exists() and path.is_dir()
            except OSError as e:
                logger_local.warning(f"Could not create {key}: {e}")
                status[key] = False
        self._directory_status = status
        return status

    def validate(self):
        """
        Validate all configuration values

        Raises:
            ConfigError: If configuration is invalid
        """
        errors = []

        min_bet = Decimal(str(self.get('financial', 'min_bet')))
        if min_bet <= 0:
            errors.append("min_bet must be positive")
        try:
            if Decimal(str(self.get('financial', 'default_bet'))) < min_bet:
                errors.append("default_bet must not be below min_bet")
        except ArithmeticError:
            errors.append("default_bet must be a decimal string")

        if self.get('game_rules', 'min_number') > self.get('game_rules', 'max_number'):
            errors.append("min_number must not exceed max_number")
        if self.get('game_rules', 'recent_results_limit') < 1:
            errors.append("recent_results_limit must be at least 1")

        for key in ('rolling_duration', 'display_window', 'refresh_delay'):
            if self.get('timing', key) < 0:
                errors.append(f"{key} cannot be negative")

        if self.get('history', 'page_size') < 1:
            errors.append("page_size must be at least 1")
        if self.get('history', 'page_increment') < 1:
            errors.append("page_increment must be at least 1")

        ledger = self.get_ledger_config()
        if not ledger['rpc_url']:
            errors.append("LEDGER_RPC_URL must not be empty")

        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if self.LOGGING['level'].upper() not in valid_levels:
            errors.append(f"Invalid log level: {self.LOGGING['level']}")

        if hasattr(self, '_directory_status'):
            for key, success in self._directory_status.items():
                if not success:
                    errors.append(f"Required directory {key} could not be created")

        if errors:
            raise ConfigError("Configuration validation failed:\n" + "\n".join(errors))

    def load_from_file(self, filepath: Union[str, Path]):
        """
        Load configuration from JSON file with validation

        Args:
            filepath: Path to JSON configuration file
        """
        filepath = Path(filepath)

        try:
            if not filepath.exists():
                if self._logger:
                    self._logger.warning(f"Config file not found: {filepath}")
                return

            with open(filepath, 'r') as f:
                data = json.load(f)

            # Only tunable sections; ledger settings come from the environment
            settings = {}
            for section in ['financial', 'game_rules', 'timing', 'history']:
                if section in data and isinstance(data[section], dict):
                    settings[section] = self._deserialize_dict(data[section])

            with self._lock:
                self._custom_settings = settings

            if self._logger:
                self._logger.info(f"Loaded configuration from {filepath}")

        except json.JSONDecodeError as e:
            error_msg = f"Invalid JSON in config file: {e}"
            if self._logger:
                self._logger.error(error_msg)
            raise ConfigError(error_msg)
        except OSError as e:
            error_msg = f"Error loading config file: {e}"
            if self._logger:
                self._logger.error(error_msg)
            raise ConfigError(error_msg)

    def save_to_file(self, filepath: Union[str, Path]):
        """
        Save current configuration to JSON file

        Args:
            filepath: Path where to save the configuration
        """
        filepath = Path(filepath)
        config_dict = self.to_dict()
        config_dict.pop('custom', None)

        with self._lock:
            custom_settings = self._custom_settings.copy()

        for section, values in custom_settings.items():
            if section in config_dict:
                config_dict[section].update(self._serialize_dict(values))
            else:
                config_dict[section] = self._serialize_dict(values)

        filepath.parent.mkdir(parents=True, exist_ok=True)

        with open(filepath, 'w') as f:
            json.dump(config_dict, f, indent=2, default=str)

        if self._logger:
            self._logger.info(f"Saved configuration to {filepath}")

    def _serialize_dict(self, d: dict) -> dict:
        """Serialize dict with type preservation"""
        result = {}
        for key, value in d.items():
            if isinstance(value, Decimal):
                result[key] = {'__decimal__': str(value)}
            elif isinstance(value, Path):
                result[key] = {'__path__': str(value)}
            else:
                result[key] = value
        return result

    def _deserialize_dict(self, d: dict) -> dict:
        """Deserialize dict with type restoration"""
        result = {}
        for key, value in d.items():
            if isinstance(value, dict):
                if '__decimal__' in value:
                    result[key] = Decimal(value['__decimal__'])
                elif '__path__' in value:
                    result[key] = Path(value['__path__'])
                else:
                    result[key] = value
            else:
                result[key] = value
        return result

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """
        Get configuration value with support for custom settings

        Args:
            section: Configuration section name
            key: Configuration key
            default: Default value if not found

        Returns:
            Configuration value or default
        """
        with self._lock:
            section_lower = section.lower()
            if section_lower in self._custom_settings:
                if key in self._custom_settings[section_lower]:
                    return self._custom_settings[section_lower][key]

            section_attr = section.upper()
            if hasattr(self, section_attr):
                section_dict = getattr(self, section_attr)
                if callable(section_dict):
                    section_dict = section_dict()
                if isinstance(section_dict, dict):
                    return section_dict.get(key, default)

        return default

    def set(self, section: str, key: str, value: Any):
        """
        Set a configuration value

        Args:
            section: Configuration section name
            key: Configuration key
            value: Value to set
        """
        with self._lock:
            section_lower = section.lower()
            if section_lower not in self._custom_settings:
                self._custom_settings[section_lower] = {}
            self._custom_settings[section_lower][key] = value

    def set_logger(self, logger):
        """Set logger instance after logger initialization"""
        self._logger = logger

    def to_dict(self) -> dict:
        """Export entire configuration as dictionary"""
        with self._lock:
            custom_settings = self._custom_settings.copy()

        return {
            'financial': self._serialize_dict(self.FINANCIAL),
            'game_rules': dict(self.GAME_RULES),
            'timing': dict(self.TIMING),
            'history': dict(self.HISTORY),
            'files': {k: str(v) for k, v in self.FILES.items()},
            'ledger': {k: v for k, v in self.get_ledger_config().items() if k != 'private_key'},
            'logging': dict(self.LOGGING),
            'custom': custom_settings,
        }


# Create global configuration instance.
#
# Keep this import side-effect free. Runtime initialization (logging
# configuration, directory creation, validation) happens in `src/main.py`.
config = Config(validate=False, ensure_directories=False)
