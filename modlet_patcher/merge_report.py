"""
Merge Report for 7 Days to Die Modlet Patcher

This class collects the outcome of every operation of one merge run, in the order the
operations were attempted. It is sealed when the run completes and cannot be changed
afterwards.

Classes that call this class:
    - MergeRun (merge_orchestrator.py)
    - modletPatcher.py (main script) for the summary tables

Visual map:
[merge_report.py] <- [merge_orchestrator.py]
                  <- [modletPatcher.py]
                  -> [tabulate]
"""

from collections import OrderedDict
from typing import Dict, Iterable, Iterator, List, Optional, Tuple
from tabulate import tabulate
from .configuration import versioned
from .exceptions import ReportSealedError
from .patch_operations import OperationResult, Outcome
from .utilities import shorten_text

SUMMARY_HEADERS = ["Modlet", "Applied", "No Match", "Conflict", "Error"]
DETAIL_HEADERS = ["Source", "Op #", "Line", "Directive", "Path", "Outcome", "Nodes", "Detail"]


@versioned("1.0.0")
class MergeReport:
    def __init__(self, document_name: str = ''):
        self.document_name = document_name
        self._entries: List[OperationResult] = []
        self._index: Dict[Tuple[str, int], OperationResult] = {}
        self._sealed = False
        self.aborted = False
        self.suppressed = 0

    def _check_open(self) -> None:
        if self._sealed:
            raise ReportSealedError(f"Merge report for {self.document_name or 'document'} is complete")

    def record(self, result: OperationResult) -> None:
        self._check_open()
        self._entries.append(result)
        self._index[(result.source_id, result.operation_index)] = result

    def suppress(self, result: OperationResult) -> None:
        """Count an outcome that the merge policy keeps out of the report."""
        self._check_open()
        self.suppressed += 1

    def mark_aborted(self) -> None:
        self._check_open()
        self.aborted = True

    def seal(self) -> None:
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def entries(self) -> Tuple[OperationResult, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[OperationResult]:
        return iter(tuple(self._entries))

    def __eq__(self, other) -> bool:
        if not isinstance(other, MergeReport):
            return NotImplemented
        return (self.document_name, self._entries, self.aborted, self.suppressed) == \
            (other.document_name, other._entries, other.aborted, other.suppressed)

    __hash__ = None

    def outcome_of(self, source_id: str, operation_index: int) -> Optional[Outcome]:
        result = self._index.get((source_id, operation_index))
        return result.outcome if result else None

    def counts(self) -> Dict[Outcome, int]:
        counts = {outcome: 0 for outcome in Outcome}
        for result in self._entries:
            counts[result.outcome] += 1
        return counts

    def _group(self, key) -> Dict[str, List[OperationResult]]:
        groups: Dict[str, List[OperationResult]] = OrderedDict()
        for result in self._entries:
            groups.setdefault(key(result), []).append(result)
        return groups

    def by_source(self) -> Dict[str, List[OperationResult]]:
        return self._group(lambda result: result.source_id)

    def by_modlet(self) -> Dict[str, List[OperationResult]]:
        return self._group(lambda result: result.modlet_name or result.source_id)

    def problems(self) -> List[OperationResult]:
        return [result for result in self._entries if result.outcome is not Outcome.APPLIED]

    @property
    def succeeded(self) -> bool:
        """True when the run was not aborted and no operation ended in an error."""
        return not self.aborted and not any(result.outcome is Outcome.ERROR for result in self._entries)

    def summary_rows(self) -> List[List]:
        """Per-modlet outcome counts, one row per modlet in processing order."""
        return summary_rows([self])

    def format_summary(self, tablefmt: str = "grid") -> str:
        return tabulate(self.summary_rows(), headers=SUMMARY_HEADERS, tablefmt=tablefmt)

    def format_details(self, tablefmt: str = "grid", max_length: int = 60) -> str:
        rows = [
            [
                result.source_id,
                result.operation_index,
                result.line if result.line is not None else '',
                result.kind.value,
                shorten_text(result.path, max_length),
                result.outcome.label,
                shorten_text(', '.join(result.node_paths), max_length),
                shorten_text(result.detail, max_length),
            ]
            for result in self.problems()
        ]
        return tabulate(rows, headers=DETAIL_HEADERS, tablefmt=tablefmt)


def summary_rows(reports: Iterable[MergeReport]) -> List[List]:
    """Aggregate per-modlet counts across several reports."""
    totals: Dict[str, Dict[Outcome, int]] = OrderedDict()
    for report in reports:
        for modlet, results in report.by_modlet().items():
            counts = totals.setdefault(modlet, {outcome: 0 for outcome in Outcome})
            for result in results:
                counts[result.outcome] += 1
    return [
        [modlet] + [counts[outcome] for outcome in Outcome]
        for modlet, counts in totals.items()
    ]
