"""
Utilities for 7 Days to Die Modlet Patcher

Small helpers shared by the CLI, the report tables and the writer.

Functions:
    - format_number: Thousands separators for table cells
    - shorten_text: Fit a path or detail message into one table cell
    - check_dependencies: Verify the third-party modules can be imported
    - is_readable_directory: Check an input folder before walking it
    - create_directory: Create an output folder
    - get_file_hash: SHA256 of a written file
"""

import hashlib
import importlib
import os
from .mc_logger import error

REQUIRED_MODULES = ['lxml.etree', 'tabulate']


def format_number(number: int) -> str:
    return f'{number:,}'

def shorten_text(value: str, max_length: int = 50) -> str:
    """
    Collapse a text to a single line of at most max_length characters.

    Args:
        value (str): The text; None is treated as empty
        max_length (int, optional): Maximum length of the result. Defaults to 50.

    Returns:
        str: The shortened text, ending in '...' when it was cut
    """
    value = ' '.join((value or '').split())
    if len(value) > max_length:
        value = value[:max_length - 3] + '...'
    return value

def check_dependencies() -> bool:
    """Check that every required module can be imported."""
    missing = []
    for module_name in REQUIRED_MODULES:
        try:
            importlib.import_module(module_name)
        except ImportError:
            missing.append(module_name)
    if missing:
        error(f"Required dependencies not found: {', '.join(missing)}")
        return False
    return True

def is_readable_directory(path: str) -> bool:
    return os.path.isdir(path) and os.access(path, os.R_OK)

def create_directory(path: str) -> bool:
    """
    Create a directory and its parents if they don't exist.

    Returns:
        bool: True if the directory exists afterwards
    """
    try:
        os.makedirs(path, exist_ok=True)
        return True
    except OSError as e:
        error(f"Failed to create directory {path}: {e}")
        return False

def get_file_hash(file_path: str) -> str:
    sha256_hash = hashlib.sha256()
    with open(file_path, "rb") as f:
        for block in iter(lambda: f.read(65536), b""):
            sha256_hash.update(block)
    return sha256_hash.hexdigest()
