import os
import json
from pathlib import Path
from dotenv import load_dotenv
from .logging_config import setup_app_logging
import logging

# Load environment variables from .env file
load_dotenv()

# Get the config directory path (where this file is located)
CONFIG_DIR = Path(__file__).parent

PROJECT_ROOT = CONFIG_DIR.parent

# Load configuration from config.json
config_path = CONFIG_DIR / 'config.json'
with open(config_path, 'r', encoding='utf-8') as f:
    CONFIG = json.load(f)

CONFIG['project_root'] = str(PROJECT_ROOT)


def get_config_value(json_keys: list, env_var_name: str, default_value: any = None):
    """
    Retrieves a configuration value.
    Priority:
    1. Environment variable (if env_var_name is provided and variable is set).
    2. Value from CONFIG dictionary (using json_keys).
    3. default_value.
    """
    # Try environment variable first
    if env_var_name:
        env_value = os.getenv(env_var_name)
        if env_value is not None:
            # Attempt to match type of default_value if it's int, float or bool
            if isinstance(default_value, bool):
                if env_value.lower() == 'true': return True
                if env_value.lower() == 'false': return False
            elif isinstance(default_value, int):
                try:
                    return int(env_value)
                except ValueError:
                    pass # Fall through to JSON or default if not a valid int
            elif isinstance(default_value, float):
                try:
                    return float(env_value)
                except ValueError:
                    pass
            return env_value # Return as string if no type match

    # Try from CONFIG dictionary (loaded from JSON)
    current_level = CONFIG
    try:
        for key in json_keys:
            current_level = current_level[key]
        if isinstance(default_value, bool) and isinstance(current_level, bool):
            return current_level
        if isinstance(default_value, float) and isinstance(current_level, (int, float)):
            return float(current_level)
        if isinstance(current_level, (str, int, bool, float, list, dict)): # Check if it's a typical JSON type
             return current_level
    except (KeyError, TypeError):
        pass # Key not found or CONFIG structure not as expected, fall through to default

    # Fallback to default value
    return default_value


# --- Server ---
CONFIG['server'] = {
    'host': get_config_value(['server', 'host'], 'HOST', '0.0.0.0'),
    'port': get_config_value(['server', 'port'], 'PORT', 8080),
}

# --- Vendor endpoints ---
# Base URL and API key of every vendor come from the environment at process start.
# The defaults point at a locally running mock vendor.
CONFIG['vendors'] = {
    'sony': {
        'base_url': get_config_value(['vendors', 'sony', 'base_url'], 'SONY_API_URL', 'http://localhost:9000'),
        'api_key': get_config_value(['vendors', 'sony', 'api_key'], 'SONY_API_KEY', 'test-api-key'),
    },
}

# --- Resilient executor ---
CONFIG['retry'] = {
    'max_retries': get_config_value(['retry', 'max_retries'], 'VENDOR_MAX_RETRIES', 3),
    'base_delay_s': get_config_value(['retry', 'base_delay_s'], 'VENDOR_RETRY_BASE_DELAY_S', 0.1),
    'max_delay_s': get_config_value(['retry', 'max_delay_s'], 'VENDOR_RETRY_MAX_DELAY_S', 5.0),
}

# --- Per-operation deadlines (seconds) ---
CONFIG['timeouts'] = {
    'create_s': get_config_value(['timeouts', 'create_s'], 'VENDOR_CREATE_TIMEOUT_S', 30.0),
    'read_s': get_config_value(['timeouts', 'read_s'], 'VENDOR_READ_TIMEOUT_S', 15.0),
    'update_s': get_config_value(['timeouts', 'update_s'], 'VENDOR_UPDATE_TIMEOUT_S', 30.0),
    'delete_s': get_config_value(['timeouts', 'delete_s'], 'VENDOR_DELETE_TIMEOUT_S', 30.0),
    'health_s': get_config_value(['timeouts', 'health_s'], 'VENDOR_HEALTH_TIMEOUT_S', 5.0),
}


def validate_config():
    """Validate that every configured vendor has a usable base URL and API key."""
    for vendor, settings in CONFIG['vendors'].items():
        if not settings.get('base_url'):
            raise ValueError(f"Missing base URL for vendor: {vendor}")
        if not settings.get('api_key'):
            raise EnvironmentError(
                f"Missing API key for vendor: {vendor}\n"
                f"Please check your .env file."
            )
    if CONFIG['retry']['max_retries'] < 0:
        raise ValueError("retry.max_retries must not be negative")

# Validate configuration on module import
validate_config()

# --- Logging Configuration ---
# Environment variables take precedence over config.json.
CONFIG['logging'] = {
    'level': get_config_value(['logging', 'level'], 'LOG_LEVEL', 'INFO'),
    'file_path': get_config_value(['logging', 'file_path'], 'LOG_FILE_PATH', ''),
    'max_bytes': get_config_value(['logging', 'max_bytes'], 'LOG_MAX_BYTES', 5*1024*1024), # 5MB
    'backup_count': get_config_value(['logging', 'backup_count'], 'LOG_BACKUP_COUNT', 3),
    'date_format': get_config_value(
        ['logging', 'date_format'],
        'LOG_DATE_FORMAT',
        '%Y-%m-%d %H:%M:%S'
    )
}

# --- Setup Application Logging ---
setup_app_logging(config=CONFIG.get('logging'))

config_init_logger = logging.getLogger(__name__)
config_init_logger.info("[config_init] Logging initialized from config/__init__.py using setup_app_logging.")
