"""
Configuration Management
========================

Centralized configuration for the crypto price dashboard
"""

import os
import json
import logging
from logging.handlers import RotatingFileHandler
from typing import Optional


class Config:
    """Main configuration class"""

    # API Keys (set via environment variables or config file)
    API_KEYS = {
        'coingecko': os.getenv('COINGECKO_API_KEY', ''),
    }

    # CoinGecko API Settings
    API = {
        'base_url': 'https://api.coingecko.com/api/v3',
        'proxy_prefix': os.getenv('COINGECKO_PROXY', ''),  # Prepended to every request URL
        'timeout_seconds': 10,
        'history_days': 365
    }

    # Dashboard Settings
    DASHBOARD = {
        'default_asset': os.getenv('DASHBOARD_ASSET', 'bitcoin'),
        'assets': [
            'bitcoin',
            'ethereum',
            'solana',
            'ripple',
            'dogecoin',
            'cardano',
            'litecoin'
        ],
        'refresh_interval_ms': 60000,
        'render_interval_seconds': 5,  # How often the Streamlit page redraws the latest state
        'session_idle_timeout_seconds': 30,  # Stop polling once no page render has been seen for this long
        'discard_stale_results': True  # False = last write wins
    }

    # Prediction Settings
    PREDICTION = {
        'window': 30,  # Samples used for the regression
        'horizon_hours': 24,
        'centered': False  # Use the mean-centred regression variant
    }

    # Logging Settings
    LOGGING = {
        'level': os.getenv('LOG_LEVEL', 'INFO'),  # DEBUG, INFO, WARNING, ERROR
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        'file': 'logs/crypto_dashboard.log',
        'max_bytes': 10485760,  # 10MB
        'backup_count': 5
    }

    @classmethod
    def load_from_file(cls, filepath: str):
        """Load configuration from JSON file"""
        with open(filepath, 'r') as f:
            config_data = json.load(f)

        for key, value in config_data.items():
            if hasattr(cls, key):
                current = getattr(cls, key)
                if isinstance(current, dict) and isinstance(value, dict):
                    # Partial sections keep their unspecified defaults
                    merged = dict(current)
                    merged.update(value)
                    setattr(cls, key, merged)
                else:
                    setattr(cls, key, value)

    @classmethod
    def save_to_file(cls, filepath: str):
        """Save configuration to JSON file"""
        config_data = {}
        for key in dir(cls):
            if not key.startswith('_') and key.isupper():
                config_data[key] = getattr(cls, key)

        with open(filepath, 'w') as f:
            json.dump(config_data, f, indent=2)

    @classmethod
    def get_api_key(cls, service: str) -> str:
        """Get API key for a service"""
        return cls.API_KEYS.get(service, '')

    @classmethod
    def refresh_interval_seconds(cls) -> float:
        return cls.DASHBOARD['refresh_interval_ms'] / 1000.0


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None):
    """
    Configure root logging with a rotating file handler and console output

    Args:
        level: Log level name, defaults to Config.LOGGING['level']
        log_file: Log file path, defaults to Config.LOGGING['file']. Pass ''
            to log to the console only.
    """
    level = (level or Config.LOGGING['level']).upper()
    log_file = Config.LOGGING['file'] if log_file is None else log_file
    formatter = logging.Formatter(Config.LOGGING['format'])

    handlers = [logging.StreamHandler()]
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=Config.LOGGING['max_bytes'],
            backupCount=Config.LOGGING['backup_count']
        )
        handlers.append(file_handler)

    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=Config.LOGGING['format'],
        handlers=handlers,
        force=True
    )
