"""
Patch Operations for 7 Days to Die Modlet Patcher

Value types shared by the loader, the executor and the merge orchestrator:
the operation vocabulary, a patch document, and the outcome of applying one
operation.

Visual map:
[patch_operations.py] <- [patch_loader.py]
                      <- [patch_executor.py]
                      <- [merge_report.py]
                      <- [merge_orchestrator.py]
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Tuple, Union
from .document_model import NodeTemplate
from .path_resolver import PathExpression, parse_path


class OperationKind(Enum):
    APPEND = 'append'
    INSERT_BEFORE = 'insertBefore'
    INSERT_AFTER = 'insertAfter'
    SET_ATTRIBUTE = 'setattribute'
    SET_TEXT = 'set'
    REMOVE = 'remove'
    REMOVE_ATTRIBUTE = 'removeattribute'
    CSV = 'csv'


CONTENT_KINDS = frozenset({OperationKind.APPEND, OperationKind.INSERT_BEFORE, OperationKind.INSERT_AFTER})
ATTRIBUTE_KINDS = frozenset({OperationKind.SET_ATTRIBUTE, OperationKind.REMOVE_ATTRIBUTE, OperationKind.CSV})


class CsvOp(Enum):
    ADD = 'add'
    REMOVE = 'remove'


class Outcome(Enum):
    APPLIED = 'applied'
    NO_MATCH = 'no_match'
    CONFLICT = 'conflict'
    ERROR = 'error'

    @property
    def label(self) -> str:
        return self.value.replace('_', ' ').title()


def _as_path(path: Union[PathExpression, str]) -> PathExpression:
    return parse_path(path) if isinstance(path, str) else path


@dataclass(frozen=True)
class PatchOperation:
    kind: OperationKind
    path: PathExpression
    content: Tuple[NodeTemplate, ...] = ()
    attribute: Optional[str] = None
    value: Optional[str] = None
    csv_op: Optional[CsvOp] = None
    delimiter: str = ','
    line: Optional[int] = None

    @classmethod
    def append(cls, path, *content: NodeTemplate, line: Optional[int] = None) -> 'PatchOperation':
        return cls(OperationKind.APPEND, _as_path(path), tuple(content), line=line)

    @classmethod
    def insert_before(cls, path, *content: NodeTemplate, line: Optional[int] = None) -> 'PatchOperation':
        return cls(OperationKind.INSERT_BEFORE, _as_path(path), tuple(content), line=line)

    @classmethod
    def insert_after(cls, path, *content: NodeTemplate, line: Optional[int] = None) -> 'PatchOperation':
        return cls(OperationKind.INSERT_AFTER, _as_path(path), tuple(content), line=line)

    @classmethod
    def set_attribute(cls, path, name: str, value: str, line: Optional[int] = None) -> 'PatchOperation':
        return cls(OperationKind.SET_ATTRIBUTE, _as_path(path), attribute=name, value=value, line=line)

    @classmethod
    def set_text(cls, path, text: str, line: Optional[int] = None) -> 'PatchOperation':
        return cls(OperationKind.SET_TEXT, _as_path(path), value=text, line=line)

    @classmethod
    def remove(cls, path, line: Optional[int] = None) -> 'PatchOperation':
        return cls(OperationKind.REMOVE, _as_path(path), line=line)

    @classmethod
    def remove_attribute(cls, path, name: str, line: Optional[int] = None) -> 'PatchOperation':
        return cls(OperationKind.REMOVE_ATTRIBUTE, _as_path(path), attribute=name, line=line)

    @classmethod
    def csv(cls, path, name: str, values: str, op: CsvOp = CsvOp.ADD, delimiter: str = ',',
            line: Optional[int] = None) -> 'PatchOperation':
        return cls(OperationKind.CSV, _as_path(path), attribute=name, value=values,
                   csv_op=op, delimiter=delimiter, line=line)

    def validate(self) -> Optional[str]:
        """
        Check the operation's structure without looking at any document.

        Returns:
            Optional[str]: The reason the operation is invalid, or None
        """
        if not self.path.segments:
            return f"{self.kind.value} has an empty path expression"
        if self.kind in CONTENT_KINDS:
            if not self.content:
                return f"{self.kind.value} requires at least one element to insert"
            if not all(isinstance(template, NodeTemplate) for template in self.content):
                return f"{self.kind.value} content must be XML elements"
        if self.kind in ATTRIBUTE_KINDS and not self.attribute:
            return f"{self.kind.value} requires a non-empty attribute name"
        if self.kind in (OperationKind.SET_ATTRIBUTE, OperationKind.SET_TEXT) and self.value is None:
            return f"{self.kind.value} requires a value"
        if self.kind is OperationKind.CSV:
            if self.csv_op is None:
                return "csv requires op='add' or op='remove'"
            if len(self.delimiter) != 1:
                return "csv delimiter must be a single character"
        return None

    def target(self) -> str:
        """The path text as written in the patch, attribute step included."""
        if self.attribute and self.kind is not OperationKind.SET_ATTRIBUTE:
            return f"{self.path}/@{self.attribute}"
        return str(self.path)

    def describe(self) -> str:
        if self.kind is OperationKind.SET_ATTRIBUTE:
            return f"{self.kind.value} {self.path} @{self.attribute}"
        return f"{self.kind.value} {self.target()}"


@dataclass(frozen=True)
class PatchDocument:
    source_id: str
    operations: Tuple[PatchOperation, ...] = ()
    modlet_name: str = ''

    def __post_init__(self):
        if not self.modlet_name:
            object.__setattr__(self, 'modlet_name', self.source_id.split('/', 1)[0])

    def __len__(self) -> int:
        return len(self.operations)

    def __iter__(self) -> Iterator[PatchOperation]:
        return iter(self.operations)


@dataclass(frozen=True)
class OperationResult:
    source_id: str
    operation_index: int
    kind: OperationKind
    path: str
    outcome: Outcome
    detail: str = ''
    node_paths: Tuple[str, ...] = ()
    line: Optional[int] = None
    modlet_name: str = ''

    def describe(self) -> str:
        location = f"{self.source_id}#{self.operation_index}"
        if self.line is not None:
            location += f" (line {self.line})"
        text = f"{location} {self.kind.value} {self.path}: {self.outcome.label}"
        if self.detail:
            text += f" - {self.detail}"
        return text
