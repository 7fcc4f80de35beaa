"""Configuration loading and logging setup shared by every GameShelf entry point."""
import json
import logging
import os
from typing import Any, Dict

from dotenv import load_dotenv

DEFAULT_CONFIG: Dict[str, Any] = {
    'database_url': 'sqlite:///gameshelf.db',
    'rawg_api_key': '',
    'secret_key': '',
    'catalog_timeout': 10,
    'log_level': 'INFO',
    'log_file': 'logs/gameshelf.log',
    'host': '127.0.0.1',
    'port': 5000,
}

# Environment variable -> config key.  Environment wins over config.json.
ENV_OVERRIDES = {
    'DATABASE_URL': 'database_url',
    'RAWG_API_KEY': 'rawg_api_key',
    'GAMESHELF_SECRET_KEY': 'secret_key',
    'CATALOG_TIMEOUT': 'catalog_timeout',
    'GAMESHELF_LOG_LEVEL': 'log_level',
    'GAMESHELF_LOG_FILE': 'log_file',
    'GAMESHELF_HOST': 'host',
    'GAMESHELF_PORT': 'port',
}

_INT_KEYS = ('port',)
_FLOAT_KEYS = ('catalog_timeout',)


def setup_logging(level: str = 'WARNING') -> logging.Logger:
    """Configure the root GameShelf logger.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to WARNING so normal use is quiet.

    Returns:
        Configured logger instance.
    """
    numeric = getattr(logging, str(level).upper(), logging.WARNING)
    logger = logging.getLogger('gameshelf')
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('[%(levelname)s] %(name)s: %(message)s'))
        logger.addHandler(handler)
    logger.setLevel(numeric)
    return logger


def load_config(config_path: str = 'config.json') -> Dict[str, Any]:
    """Load configuration from a JSON file with environment variable support.

    A missing or unreadable file is not an error: the defaults apply.
    Values from ``.env`` / the process environment take precedence over
    the file (see ``ENV_OVERRIDES``).
    """
    load_dotenv()
    config = dict(DEFAULT_CONFIG)

    if config_path and os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                config.update(json.load(f))
        except (OSError, json.JSONDecodeError) as e:
            logging.getLogger('gameshelf.config').warning(
                "Could not load %s: %s", config_path, e)

    for env_name, key in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            config[key] = value

    for key in _INT_KEYS:
        config[key] = int(config[key])
    for key in _FLOAT_KEYS:
        config[key] = float(config[key])
    return config
