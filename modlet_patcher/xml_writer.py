"""
XML Writer for 7 Days to Die Modlet Patcher

This class writes merged documents below the output folder. Content is checked with
lxml before it touches the disk and is written through a temporary file, so a failed
write never leaves a half-written config file behind.

Classes that call this class:
    - modletPatcher.py (main script)

Methods called from this class:
    - write: Called once per merged document
    - validate_all_files: Called after all files are written
    - get_summary: Called at the end of the run

Visual map:
modletPatcher
    |
    v
XMLWriter
    |
    |-- write
    |     |-- _is_well_formed
    |     |-- _replace_file
    |-- validate_all_files
    |-- get_file_hash
    |-- get_summary
"""

import os
from typing import Dict
from lxml import etree
from .configuration import versioned
from .mc_logger import debug, error
from .utilities import create_directory, format_number, get_file_hash


@versioned("1.0.0")
class XMLWriter:
    def __init__(self):
        self.total_size = 0
        self.written_files: Dict[str, int] = {}  # path -> size in bytes

    def write(self, file_path: str, content: bytes) -> bool:
        """
        Write a serialized XML document.

        Args:
            file_path (str): Destination path; missing folders are created
            content (bytes): Serialized XML document

        Returns:
            bool: True when the content is well-formed and was written
        """
        if not self._is_well_formed(content, file_path):
            return False

        directory = os.path.dirname(file_path)
        if directory and not create_directory(directory):
            return False

        if not self._replace_file(file_path, content):
            return False

        self.total_size += len(content) - self.written_files.get(file_path, 0)
        self.written_files[file_path] = len(content)
        debug(f"[XMLWriter] Wrote {format_number(len(content))} bytes to {file_path}")
        return True

    def _is_well_formed(self, content: bytes, label: str) -> bool:
        try:
            etree.fromstring(content, etree.XMLParser(resolve_entities=False, no_network=True))
            return True
        except (etree.XMLSyntaxError, ValueError) as e:
            error(f"[XMLWriter] Refusing to write invalid XML to {label}: {str(e)}")
            return False

    def _replace_file(self, file_path: str, content: bytes) -> bool:
        temp_path = f"{file_path}.tmp"
        try:
            with open(temp_path, 'wb') as f:
                f.write(content)
            os.replace(temp_path, file_path)
            return True
        except OSError as e:
            error(f"[XMLWriter] Error writing to file {file_path}: {str(e)}")
            if os.path.exists(temp_path):
                os.remove(temp_path)
            return False

    def validate_all_files(self) -> bool:
        """Re-read every written file and check it still parses."""
        valid = True
        for file_path in self.written_files:
            try:
                etree.parse(file_path)
            except (etree.XMLSyntaxError, OSError) as e:
                error(f"[XMLWriter] Invalid XML in file {file_path}: {str(e)}")
                valid = False
        return valid

    def get_file_hash(self, file_path: str) -> str:
        return get_file_hash(file_path)

    def get_summary(self) -> str:
        return f"[XMLWriter] Wrote {len(self.written_files)} file(s), {format_number(self.total_size)} bytes"
