"""
7 Days to Die Modlet Patcher

This package applies the XML patches shipped by 7 Days to Die modlets to the game's
XML configuration files and reports the outcome of every patch operation.

Modules:
    modletPatcher: Main script for patching the game configuration
    configuration: Handles configuration and versioning
    utilities: Utility functions used across the project
    mc_logger: Custom logging functionality
    exceptions: Error types
    document_model: In-memory XML tree with stable node ids
    path_resolver: Parses and evaluates patch path expressions
    patch_operations: Patch operation, patch document and outcome types
    patch_executor: Applies one operation to a document
    patch_loader: Parses and validates patch files
    merge_report: Per-run outcome report
    merge_orchestrator: Sequences patches per document, parallel across documents
    modlet_finder: Locates modlets in the specified directories
    file_locator: Locates base and patch files
    xml_writer: Handles XML file writing operations
"""

__version__ = "1.0.0"

from . import configuration
from . import mc_logger
from . import exceptions
from . import utilities
from . import document_model
from . import path_resolver
from . import patch_operations
from . import patch_executor
from . import patch_loader
from . import merge_report
from . import merge_orchestrator
from . import modlet_finder
from . import file_locator
from . import xml_writer
from . import modletPatcher

# Expose main function for easy access
main = modletPatcher.main
