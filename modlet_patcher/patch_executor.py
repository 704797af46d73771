"""
Patch Executor for 7 Days to Die Modlet Patcher

This class applies a single patch operation to a document and reports the outcome.

Every operation fans out: it is applied to each live node its path matches, not just
the first. A path that matches nothing is a NoMatch; a path whose every match was
removed earlier in the run is a Conflict. Structural problems become an Error outcome
instead of an exception so the orchestrator can apply the merge policy.

Classes that call this class:
    - MergeRun (merge_orchestrator.py)

Methods called from this class:
    - apply: Called once per operation, in order

Visual map:
[patch_executor.py] <- [merge_orchestrator.py]
                    -> [path_resolver.py]
                    -> [document_model.py]
"""

from typing import Callable, Dict, List, Tuple
from .configuration import versioned
from .document_model import DocumentModel
from .exceptions import StructuralError
from .mc_logger import debug
from .patch_operations import CsvOp, OperationKind, OperationResult, Outcome, PatchOperation
from .path_resolver import resolve

Handler = Callable[[DocumentModel, PatchOperation, List[int]], Tuple[Outcome, str]]


@versioned("1.0.0")
class PatchExecutor:
    def __init__(self):
        self._handlers: Dict[OperationKind, Handler] = {
            OperationKind.APPEND: self._append,
            OperationKind.INSERT_BEFORE: self._insert_before,
            OperationKind.INSERT_AFTER: self._insert_after,
            OperationKind.SET_ATTRIBUTE: self._set_attribute,
            OperationKind.SET_TEXT: self._set_text,
            OperationKind.REMOVE: self._remove,
            OperationKind.REMOVE_ATTRIBUTE: self._remove_attribute,
            OperationKind.CSV: self._csv,
        }

    def apply(self, document: DocumentModel, operation: PatchOperation, source_id: str = '',
              operation_index: int = 0, modlet_name: str = '') -> OperationResult:
        """
        Apply one operation to a document.

        Args:
            document (DocumentModel): The document to mutate
            operation (PatchOperation): The operation to apply
            source_id (str): Patch document the operation came from
            operation_index (int): Position of the operation in its patch document
            modlet_name (str): Modlet the patch document belongs to

        Returns:
            OperationResult: The outcome, with the matched node paths for diagnostics
        """
        def result(outcome: Outcome, detail: str, node_paths=()) -> OperationResult:
            return OperationResult(
                source_id=source_id,
                operation_index=operation_index,
                kind=operation.kind,
                path=operation.target(),
                outcome=outcome,
                detail=detail,
                node_paths=tuple(node_paths),
                line=operation.line,
                modlet_name=modlet_name,
            )

        reason = operation.validate()
        if reason:
            return result(Outcome.ERROR, reason)

        matches = resolve(document, operation.path)
        if not matches:
            return result(Outcome.NO_MATCH, "Path matched no nodes")

        node_paths = [document.node_path(node_id) for node_id in matches]
        live = [node_id for node_id in matches if not document.is_removed(node_id)]
        if not live:
            return result(Outcome.CONFLICT,
                          f"All {len(matches)} matched node(s) were removed earlier in this run", node_paths)

        try:
            outcome, detail = self._handlers[operation.kind](document, operation, live)
        except StructuralError as e:
            return result(Outcome.ERROR, str(e), node_paths)

        skipped = len(matches) - len(live)
        if skipped:
            detail += f"; skipped {skipped} removed node(s)"
        debug(f"[PatchExecutor] {operation.describe()}: {detail}")
        return result(outcome, detail, node_paths)

    def _append(self, document: DocumentModel, operation: PatchOperation, targets: List[int]):
        for target in targets:
            for template in operation.content:
                document.append_child(target, template)
        return Outcome.APPLIED, f"Appended {len(operation.content)} node(s) to {len(targets)} parent(s)"

    def _check_siblings(self, document: DocumentModel, targets: List[int]) -> None:
        if any(document.parent_of(target) is None for target in targets):
            raise StructuralError("Cannot insert a sibling of the document root")

    def _insert_before(self, document: DocumentModel, operation: PatchOperation, targets: List[int]):
        self._check_siblings(document, targets)
        for target in targets:
            parent_id = document.parent_of(target)
            index = document.index_of(target)
            for offset, template in enumerate(operation.content):
                document.insert_child_at(parent_id, index + offset, template)
        return Outcome.APPLIED, f"Inserted {len(operation.content)} node(s) before {len(targets)} node(s)"

    def _insert_after(self, document: DocumentModel, operation: PatchOperation, targets: List[int]):
        self._check_siblings(document, targets)
        for target in targets:
            parent_id = document.parent_of(target)
            index = document.index_of(target) + 1
            for offset, template in enumerate(operation.content):
                document.insert_child_at(parent_id, index + offset, template)
        return Outcome.APPLIED, f"Inserted {len(operation.content)} node(s) after {len(targets)} node(s)"

    def _set_attribute(self, document: DocumentModel, operation: PatchOperation, targets: List[int]):
        for target in targets:
            document.set_attribute(target, operation.attribute, operation.value)
        return Outcome.APPLIED, f"Set @{operation.attribute} on {len(targets)} node(s)"

    def _set_text(self, document: DocumentModel, operation: PatchOperation, targets: List[int]):
        for target in targets:
            document.set_text(target, operation.value)
        return Outcome.APPLIED, f"Set text on {len(targets)} node(s)"

    def _remove(self, document: DocumentModel, operation: PatchOperation, targets: List[int]):
        if document.root_id in targets:
            raise StructuralError("Cannot remove the document root")
        for target in targets:
            # An earlier target in this same operation may have been an ancestor
            if not document.is_removed(target):
                document.remove_node(target)
        return Outcome.APPLIED, f"Removed {len(targets)} node(s)"

    def _remove_attribute(self, document: DocumentModel, operation: PatchOperation, targets: List[int]):
        removed = sum(1 for target in targets if document.remove_attribute(target, operation.attribute))
        if not removed:
            return Outcome.NO_MATCH, f"No matched node carries @{operation.attribute}"
        return Outcome.APPLIED, f"Removed @{operation.attribute} from {removed} node(s)"

    def _csv(self, document: DocumentModel, operation: PatchOperation, targets: List[int]):
        delimiter = operation.delimiter
        values = [value.strip() for value in (operation.value or '').split(delimiter) if value.strip()]
        changed = 0
        for target in targets:
            current = document.node(target).get(operation.attribute)
            if current is None and operation.csv_op is CsvOp.REMOVE:
                continue
            items = [item.strip() for item in (current or '').split(delimiter) if item.strip()]
            if operation.csv_op is CsvOp.ADD:
                updated = items + [value for value in dict.fromkeys(values) if value not in items]
            else:
                updated = [item for item in items if item not in values]
            if updated != items or current is None:
                changed += 1
            document.set_attribute(target, operation.attribute, delimiter.join(updated))
        return Outcome.APPLIED, f"csv {operation.csv_op.value} on @{operation.attribute}: {changed} of {len(targets)} node(s) changed"
