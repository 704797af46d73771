"""
Exceptions for 7 Days to Die Modlet Patcher

NoMatch and Conflict are merge outcomes, not exceptions; only parse failures and
structurally invalid mutations are raised.

Visual map:
[exceptions.py] <- [document_model.py]
                <- [path_resolver.py]
                <- [patch_loader.py]
                <- [patch_executor.py]
                <- [merge_report.py]
"""

from typing import Optional


class ModletPatcherError(Exception):
    """Base exception for all patcher errors."""


class ParseError(ModletPatcherError):
    """Raised when XML or patch syntax cannot be parsed."""


class XMLParseError(ParseError):
    """Raised when a base document is not well-formed XML."""


class PathSyntaxError(ParseError):
    """Raised when a path expression does not follow the supported grammar."""

    def __init__(self, message: str, expression: str = ""):
        self.expression = expression
        super().__init__(message)


class PatchParseError(ParseError):
    """
    Raised when a patch document is malformed.

    Identifies the offending directive so the modder can find it without re-running.
    """

    def __init__(
        self,
        message: str,
        source_id: str = "",
        operation_index: Optional[int] = None,
        line: Optional[int] = None,
    ):
        self.reason = message
        self.source_id = source_id
        self.operation_index = operation_index
        self.line = line
        super().__init__(self._format())

    def _format(self) -> str:
        location = []
        if self.source_id:
            location.append(self.source_id)
        if self.operation_index is not None:
            location.append(f"operation {self.operation_index}")
        if self.line is not None:
            location.append(f"line {self.line}")
        if location:
            return f"{', '.join(location)}: {self.reason}"
        return self.reason


class StructuralError(ModletPatcherError):
    """Raised when a mutation would break the document tree (execution error)."""


class ReportSealedError(ModletPatcherError):
    """Raised when an outcome is recorded into a completed merge report."""
