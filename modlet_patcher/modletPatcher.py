#!/usr/bin/env python3
"""
7 Days to Die Modlet Patcher

This script applies the XML patches of one or more 7 Days to Die modlets to the game's
configuration files and reports, per operation, what was applied, what matched nothing
and what conflicted.

Syntax: python -m modlet_patcher.modletPatcher [options] --game-config <Data/Config> <modlet or Mods folder>...
Usage: python -m modlet_patcher.modletPatcher --game-config "/games/7DTD/Data/Config" /games/7DTD/Mods
Examples:
    python -m modlet_patcher.modletPatcher --game-config ./Data/Config --policy strict ./Mods/MyModlet
    python -m modlet_patcher.modletPatcher --game-config ./Data/Config --dry-run --log-level DEBUG ./Mods

Logical Flow:
1. Parse command-line arguments (ArgumentParser)
2. Initialize logging (MC Logger)
3. Check dependencies (Utilities)
4. Find modlets in priority order (Modlet Finder)
5. Locate base and patch files (File Locator)
6. Load patch files in parallel (Patch Loader)
7. Merge each base file, in parallel across files (Merge Orchestrator)
8. Write merged files (XML Writer) and print the reports

Dependencies:
    See pyproject.toml for a full list of dependencies.
"""

import argparse
import os
import sys
from typing import Any, Dict, List, Optional, Tuple
from tabulate import tabulate
from .configuration import MERGE_POLICIES, get_config, get_int_config, load_config
from .file_locator import FileLocator
from .mc_logger import debug, delete_old_logs, error, info, set_log_level, warning
from .merge_orchestrator import MergeJob, MergeJobResult, MergeOrchestrator
from .merge_report import SUMMARY_HEADERS, summary_rows
from .modlet_finder import ModletFinder
from .patch_loader import PatchLoader, PatchSource
from .utilities import check_dependencies, format_number, is_readable_directory
from .xml_writer import XMLWriter


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function to run the 7 Days to Die Modlet Patcher.

    Returns:
        int: Process exit code, 0 when every document merged successfully
    """
    load_config(write_defaults=True)
    args = parse_arguments(argv)
    setup_logging(args['log_level'], args['debug'])

    if not check_dependencies():
        error("Missing dependencies. Please install required packages.")
        return 1

    try:
        exit_code = run_patcher(args)
    except Exception as e:
        error(f"An error occurred in main: {str(e)}", exc_info=True)
        exit_code = 1
    finally:
        cleanup_logs()

    info(f"7 Days to Die Modlet Patcher finished with exit code {exit_code}")
    return exit_code

def parse_arguments(argv: Optional[List[str]] = None) -> Dict[str, Any]:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="7 Days to Die Modlet Patcher")
    parser.add_argument('--game-config', type=str, required=True,
                        help="The game's Data/Config folder holding the base XML files")
    parser.add_argument('--policy', type=str, choices=MERGE_POLICIES, default=get_config('MERGE_POLICY', 'lenient'),
                        help='What to do about operations that match nothing, conflict or fail')
    parser.add_argument('--max-workers', type=int, default=get_int_config('MAX_WORKERS', 4),
                        help='Maximum number of files loaded or merged in parallel')
    parser.add_argument('--output', type=str, default=get_config('OUTPUT_PATH', 'MergedConfig'),
                        help='Folder the merged XML files are written to')
    parser.add_argument('--log-level', type=str, default=get_config('LOG_LEVEL', 'INFO').upper(),
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'], help='Logging level')
    parser.add_argument('--dry-run', action='store_true', help='Merge and report without writing files')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    parser.add_argument('modlet_paths', type=str, nargs='+',
                        help='Modlet folders, or folders of modlets, in load order')

    args = parser.parse_args(argv)
    if args.max_workers < 1:
        parser.error("--max-workers must be at least 1")
    return vars(args)

def setup_logging(log_level: str, debug_flag: bool) -> None:
    """Set up logging with the specified log level."""
    if debug_flag:
        log_level = 'DEBUG'
    set_log_level(log_level)
    info("7 Days to Die Modlet Patcher started")
    debug("Debug mode enabled")

def modlet_labels(modlets: List[Dict[str, str]]) -> List[str]:
    """
    One distinct label per modlet, used to name its patch sources in the reports.

    Modlets normally go by their descriptor Name. When several share a Name, the
    later ones are labelled Name#2, Name#3, ... in priority order.
    """
    labels = []
    seen: Dict[str, int] = {}
    for modlet in modlets:
        name = modlet['name']
        seen[name] = seen.get(name, 0) + 1
        label = name if seen[name] == 1 else f"{name}#{seen[name]}"
        while label in labels:
            seen[name] += 1
            label = f"{name}#{seen[name]}"
        if label != name:
            warning(f"Modlet name '{name}' is used more than once; reporting {modlet['path']} as '{label}'")
        labels.append(label)
    return labels

def collect_patch_sources(modlets: List[Dict[str, str]], locator: FileLocator) -> Tuple[List[PatchSource], Dict[str, str]]:
    """
    List every patch file of every modlet, in modlet priority order.

    Returns:
        Tuple[List[PatchSource], Dict[str, str]]: The sources, and the base file key of each source id
    """
    sources = []
    targets = {}
    for modlet, label in zip(modlets, modlet_labels(modlets)):
        for key, file_path in locator.locate_patch_files(modlet['path']).items():
            source_id = f"{label}/{key}"
            sources.append(PatchSource(source_id, path=file_path, modlet_name=label))
            targets[source_id] = key
    return sources, targets

def build_jobs(base_files: Dict[str, str], documents, targets: Dict[str, str]) -> List[MergeJob]:
    """Group loaded patch documents by the base file they target, keeping priority order."""
    patches_by_key: Dict[str, list] = {}
    for document in documents:
        key = targets[document.source_id]
        if key not in base_files:
            warning(f"No base file {key} for patch {document.source_id}, skipping")
            continue
        patches_by_key.setdefault(key, []).append(document)

    jobs = []
    for key in sorted(patches_by_key):
        with open(base_files[key], 'rb') as f:
            jobs.append(MergeJob(key, f.read(), patches_by_key[key]))
    return jobs

def run_patcher(args: Dict[str, Any]) -> int:
    """Run the main logic of the Modlet Patcher."""
    game_config = args['game_config']
    if not is_readable_directory(game_config):
        error(f"Game config folder not found or not readable: {game_config}")
        return 1

    modlet_finder = ModletFinder(args['modlet_paths'])
    modlets = modlet_finder.find_modlets()
    info(modlet_finder.get_summary())
    if not modlets:
        error("No modlets found")
        return 1

    locator = FileLocator()
    base_files = locator.locate_base_files(game_config)
    sources, targets = collect_patch_sources(modlets, locator)
    info(locator.get_summary())

    loaded = PatchLoader().load_all(sources, max_workers=args['max_workers'])
    jobs = build_jobs(base_files, loaded.documents, targets)

    orchestrator = MergeOrchestrator(args['policy'], max_workers=args['max_workers'])
    results = orchestrator.merge_batch(jobs, on_complete=lambda result: debug(
        f"Finished {result.name}: {'ok' if result.succeeded else 'failed'}"))

    if not args['dry_run']:
        write_results(results, args['output'])

    display_statistics(results, loaded.errors)

    failed = [result for result in results if not result.succeeded]
    return 1 if failed or loaded.errors else 0

def write_results(results: List[MergeJobResult], output_path: str) -> None:
    """Write every successfully merged document below the output folder."""
    xml_writer = XMLWriter()
    for result in results:
        if not result.succeeded:
            warning(f"Not writing {result.name}: merge did not succeed")
            continue
        file_path = os.path.join(output_path, *result.name.split('/'))
        if xml_writer.write(file_path, result.output):
            debug(f"Wrote {file_path} (sha256 {xml_writer.get_file_hash(file_path)})")
    if not xml_writer.validate_all_files():
        warning("One or more written files failed XML validation")
    info(xml_writer.get_summary())

def display_statistics(results: List[MergeJobResult], load_errors) -> None:
    """
    Display the merge reports.
    """
    document_rows = []
    for result in results:
        if result.report is None:
            document_rows.append([result.name, '-', '-', '-', '-', '-', f"FAILED ({result.error})"])
            continue
        counts = list(result.report.counts().values())
        status = 'OK' if result.succeeded else ('ABORTED' if result.report.aborted else 'ERRORS')
        document_rows.append([result.name] + [format_number(count) for count in counts]
                             + [result.report.suppressed, status])

    print("\nMerged Documents:")
    print(tabulate(document_rows, headers=["File"] + SUMMARY_HEADERS[1:] + ["Suppressed", "Status"],
                   tablefmt="grid"))

    reports = [result.report for result in results if result.report is not None]
    print("\nOutcomes per Modlet:")
    print(tabulate(summary_rows(reports), headers=SUMMARY_HEADERS, tablefmt="grid"))

    for report in reports:
        if report.problems():
            print(f"\nProblems in {report.document_name}:")
            print(report.format_details())

    if load_errors:
        print("\nPatch Files That Failed to Load:")
        print(tabulate([[e.source_id, e.operation_index if e.operation_index is not None else '',
                         e.line or '', e.reason] for e in load_errors],
                       headers=["Source", "Op #", "Line", "Reason"], tablefmt="grid"))

def cleanup_logs() -> None:
    """Prune rotated log files past LOG_MAX_AGE_DAYS."""
    deleted = delete_old_logs()
    if deleted:
        debug(f"Deleted {deleted} old log file(s)")

if __name__ == "__main__":
    sys.exit(main())
