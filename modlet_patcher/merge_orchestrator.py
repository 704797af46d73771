"""
Merge Orchestrator for 7 Days to Die Modlet Patcher

This module sequences patch documents against base documents.

Within one base document operations are applied strictly one at a time: patch
documents in the given priority order (modlet load order), operations in file order.
A later modlet therefore always sees the nodes an earlier one inserted, and a fixed
input order always gives the same output. Independent base documents are merged in
parallel on a thread pool; they share nothing but the logger.

The merge policy decides what happens after each outcome:
    strict    - abort the document's run on the first NoMatch, Conflict or Error
    lenient   - record every outcome and never abort
    warn-only - like lenient, but NoMatch is only logged and counted as suppressed

Classes that call this module:
    - modletPatcher.py (main script)

Visual map:
[merge_orchestrator.py] <- [modletPatcher.py]
                        -> [patch_executor.py]
                        -> [merge_report.py]
                        -> [document_model.py]
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from enum import Enum
from typing import Callable, FrozenSet, List, NamedTuple, Optional, Sequence, Tuple, Union
from .configuration import get_bool_config, get_config, get_int_config, versioned
from .document_model import DocumentModel
from .exceptions import XMLParseError
from .mc_logger import debug, error, info, warning
from .merge_report import MergeReport
from .patch_executor import PatchExecutor
from .patch_operations import OperationResult, Outcome, PatchDocument


class MergePolicy(Enum):
    STRICT = 'strict'
    LENIENT = 'lenient'
    WARN_ONLY = 'warn-only'

    @classmethod
    def from_string(cls, value: Union[str, 'MergePolicy']) -> 'MergePolicy':
        if isinstance(value, MergePolicy):
            return value
        normalized = str(value).strip().lower().replace('_', '-')
        for policy in cls:
            if policy.value == normalized:
                return policy
        choices = ', '.join(policy.value for policy in cls)
        raise ValueError(f"Unknown merge policy '{value}' (expected one of: {choices})")

    @property
    def aborts_on(self) -> FrozenSet[Outcome]:
        return POLICY_RULES[self][0]

    @property
    def suppresses(self) -> FrozenSet[Outcome]:
        return POLICY_RULES[self][1]


# policy -> (outcomes that abort the run, outcomes kept out of the report)
POLICY_RULES = {
    MergePolicy.STRICT: (frozenset({Outcome.NO_MATCH, Outcome.CONFLICT, Outcome.ERROR}), frozenset()),
    MergePolicy.LENIENT: (frozenset(), frozenset()),
    MergePolicy.WARN_ONLY: (frozenset(), frozenset({Outcome.NO_MATCH})),
}


class MergeState(Enum):
    IDLE = 'idle'
    APPLYING = 'applying'
    COMPLETE = 'complete'


class MergeJob(NamedTuple):
    """One base document and the patch documents to apply to it, in priority order."""
    name: str
    base: bytes
    patches: Sequence[PatchDocument]


class MergeJobResult(NamedTuple):
    name: str
    document: Optional[DocumentModel] = None
    report: Optional[MergeReport] = None
    output: Optional[bytes] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.report is not None and self.report.succeeded


class MergeRun:
    """A single merge run: one base document, applied once, Idle -> Applying -> Complete."""

    def __init__(self, document: DocumentModel, policy: MergePolicy, executor: PatchExecutor, name: str = ''):
        self.document = document
        self.policy = policy
        self.executor = executor
        self.name = name or 'document'
        self.report = MergeReport(name)
        self.state = MergeState.IDLE

    def execute(self, patch_documents: Sequence[PatchDocument]) -> MergeReport:
        if self.state is not MergeState.IDLE:
            raise RuntimeError(f"Merge run for {self.name} has already been executed")
        source_ids = [patch_document.source_id for patch_document in patch_documents]
        duplicates = sorted({source_id for source_id in source_ids if source_ids.count(source_id) > 1})
        if duplicates:
            # Outcomes are keyed by (source_id, operation index)
            raise ValueError(f"Duplicate patch source ids in merge of {self.name}: {', '.join(duplicates)}")

        self.state = MergeState.APPLYING
        try:
            for patch_document in patch_documents:
                if not self._apply_document(patch_document):
                    break
        finally:
            self.report.seal()
            self.state = MergeState.COMPLETE

        counts = self.report.counts()
        debug(f"[MergeRun] {self.name}: " + ', '.join(f"{outcome.label}={counts[outcome]}" for outcome in Outcome))
        return self.report

    def _apply_document(self, patch_document: PatchDocument) -> bool:
        for index, operation in enumerate(patch_document.operations):
            result = self.executor.apply(
                self.document, operation,
                source_id=patch_document.source_id,
                operation_index=index,
                modlet_name=patch_document.modlet_name,
            )
            if not self._handle(result):
                return False
        return True

    def _handle(self, result: OperationResult) -> bool:
        """Record an outcome under the run's policy; returns False when the run must stop."""
        if result.outcome in self.policy.suppresses:
            warning(f"[MergeRun] {self.name}: {result.describe()}")
            self.report.suppress(result)
        else:
            self.report.record(result)
            if result.outcome is Outcome.APPLIED:
                debug(f"[MergeRun] {self.name}: {result.describe()}")
            elif result.outcome is Outcome.ERROR:
                error(f"[MergeRun] {self.name}: {result.describe()}")
            else:
                warning(f"[MergeRun] {self.name}: {result.describe()}")

        if result.outcome in self.policy.aborts_on:
            error(f"[MergeRun] {self.name}: aborting merge under {self.policy.value} policy")
            self.report.mark_aborted()
            return False
        return True


@versioned("1.0.0")
class MergeOrchestrator:
    def __init__(self, policy: Union[MergePolicy, str, None] = None, max_workers: Optional[int] = None,
                 executor: Optional[PatchExecutor] = None, pretty_print: Optional[bool] = None):
        self.policy = MergePolicy.from_string(policy or get_config('MERGE_POLICY', 'lenient'))
        self.max_workers = max(1, max_workers or get_int_config('MAX_WORKERS', 4))
        self.executor = executor or PatchExecutor()
        self.pretty_print = get_bool_config('PRETTY_PRINT', True) if pretty_print is None else pretty_print

    def merge(self, base_document: Union[DocumentModel, bytes, str], patch_documents: Sequence[PatchDocument],
              name: str = '') -> Tuple[DocumentModel, MergeReport]:
        """
        Apply patch documents, in order, to one base document.

        Args:
            base_document (DocumentModel | bytes | str): The document to patch; raw XML is parsed first
            patch_documents (Sequence[PatchDocument]): Patches in priority order
            name (str): Name of the base document for diagnostics

        Returns:
            Tuple[DocumentModel, MergeReport]: The mutated document and the sealed report
        """
        if not isinstance(base_document, DocumentModel):
            base_document = DocumentModel.parse(base_document, source=name or '<memory>')

        run = MergeRun(base_document, self.policy, self.executor, name)
        report = run.execute(patch_documents)
        return base_document, report

    def _run_job(self, job: MergeJob) -> MergeJobResult:
        try:
            document = DocumentModel.parse(job.base, source=job.name)
        except XMLParseError as e:
            error(f"[MergeOrchestrator] Error parsing base document {job.name}: {str(e)}")
            return MergeJobResult(job.name, error=str(e))

        try:
            document, report = self.merge(document, job.patches, name=job.name)
            output = document.serialize(pretty_print=self.pretty_print)
        except Exception as e:
            # One broken document must not take its siblings down with it
            error(f"[MergeOrchestrator] Unexpected error merging {job.name}: {str(e)}", exc_info=True)
            return MergeJobResult(job.name, error=str(e))
        return MergeJobResult(job.name, document, report, output)

    def merge_batch(self, jobs: Sequence[MergeJob],
                    on_complete: Optional[Callable[[MergeJobResult], None]] = None) -> List[MergeJobResult]:
        """
        Merge independent base documents in parallel.

        Args:
            jobs (Sequence[MergeJob]): One job per base document
            on_complete (Callable, optional): Called from the calling thread as each job finishes

        Returns:
            List[MergeJobResult]: Results in job order
        """
        info(f"[MergeOrchestrator] Merging {len(jobs)} document(s) with {self.max_workers} worker(s), "
             f"{self.policy.value} policy")
        results: List[Optional[MergeJobResult]] = [None] * len(jobs)
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix='merge') as pool:
            futures = {pool.submit(self._run_job, job): position for position, job in enumerate(jobs)}
            for future in as_completed(futures):
                result = future.result()
                results[futures[future]] = result
                if on_complete is not None:
                    on_complete(result)
        return results
