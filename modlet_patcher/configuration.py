"""
Configuration module for 7 Days to Die Modlet Patcher

This module contains global settings and decorator functions used throughout the package.
It also handles loading configuration values from a .env file.

Classes that use this module:
    - All classes in the project

Methods called from this module:
    - load_config: Called on import and again from the main script
    - get_config: Called wherever a tunable value is needed

Visual map:
[configuration.py] <- [All other modules]
"""

import os
from configparser import ConfigParser
from typing import Any, Dict


# Global variables
CONFIG_FILE = '.env'
SKIP_DIRECTORIES = ['.git', '__pycache__']

###### Modlet Layout ######
MODINFO_FILE = 'ModInfo.xml'
MODLET_CONFIG_DIR = 'Config'

###### Merge Settings ######
MERGE_POLICIES = ['strict', 'lenient', 'warn-only']

DEFAULT_CONFIG: Dict[str, str] = {
    'LOG_LEVEL': 'INFO',
    'LOG_FILE': 'modlet_patcher.log',
    'LOG_MAX_BYTES': str(1024 * 1024),
    'LOG_BACKUP_COUNT': '5',
    'LOG_MAX_AGE_DAYS': '30',
    'MERGE_POLICY': 'lenient',
    'MAX_WORKERS': '4',
    'OUTPUT_PATH': 'MergedConfig',
    'PRETTY_PRINT': 'true',
    'ADDITIONAL_SKIP_DIRECTORIES': '',
}


def versioned(version):
    """
    Decorator to track the version of the class.
    """
    def decorator(cls):
        cls._version = version
        return cls
    return decorator

def load_config(write_defaults: bool = False) -> None:
    """
    Load configuration from the .env file into the environment.

    Values already present in the environment are left alone so that
    exported variables override the file.

    Args:
        write_defaults (bool): Create the .env file with default values when it is missing.
    """
    config = ConfigParser(interpolation=None)  # Disable interpolation
    config.optionxform = str  # Keep key case
    if os.path.exists(CONFIG_FILE):
        with open(CONFIG_FILE) as f:
            # Read the file and add a default section
            config.read_string("[DEFAULT]\n" + f.read())
    else:
        config['DEFAULT'] = DEFAULT_CONFIG
        if write_defaults:
            with open(CONFIG_FILE, 'w') as configfile:
                for key, value in DEFAULT_CONFIG.items():
                    configfile.write(f"{key} = {value}\n")

    for key, value in config['DEFAULT'].items():
        os.environ.setdefault(key.upper(), value)

def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value from the environment.

    Args:
        key (str): The configuration key to retrieve.
        default (Any, optional): The default value if the key is not found.

    Returns:
        Any: The configuration value.
    """
    return os.environ.get(key, default)

def get_int_config(key: str, default: int) -> int:
    """Get a configuration value as an integer, falling back to the default on bad input."""
    try:
        return int(get_config(key, default))
    except (TypeError, ValueError):
        return default

def get_bool_config(key: str, default: bool = False) -> bool:
    value = get_config(key)
    if value is None:
        return default
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')

# Initialize configuration when this module is imported
load_config()
