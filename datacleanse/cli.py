"""
Command line interface for processing phone lists without the web app.
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from datacleanse import config, __version__
from datacleanse.database import Database
from datacleanse.errors import (
    HistoryResetRefused, InputFormatError, LedgerIOError, NormalizationFailure
)
from datacleanse.settings import EngineSettings
from datacleanse.api.processing_service import ProcessingService
from datacleanse.api.report_generator import generate_report_safely
from datacleanse.api.stats_extractor import render_stats_text

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_INPUT_FORMAT = 2
EXIT_LEDGER_ERROR = 3


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR):
        super().__init__(message)
        self.code = code


class DataCleanseArgumentParser(argparse.ArgumentParser):
    def error(self, message: str):
        raise CliError(message, EXIT_COMMAND_ERROR)


def build_parser() -> argparse.ArgumentParser:
    parser = DataCleanseArgumentParser(prog="datacleanse", description="Daily phone list deduplication.")
    parser.add_argument("--db", dest="database_path", help=f"SQLite database path (default: {config.DATABASE_PATH})")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    process = subparsers.add_parser("process", help="Clean one spreadsheet and update the phone history.")
    process.add_argument("input", help="Input .xlsx, .xls or .csv file")
    process.add_argument("-o", "--out", dest="out_dir", help="Output directory (default: next to the input)")
    process.add_argument("--threshold", type=int, help="Reject numbers kept this many times before")
    process.add_argument("--min-digits", dest="min_digits", type=int, help="Minimum digits for a phone number")
    process.add_argument("--removal-mode", dest="removal_mode", choices=["row", "cell"], help="Drop whole rows or blank cells")
    process.add_argument("--summary-sheet", dest="summary_sheet", action="store_true", help="Add a Processing_Summary sheet")
    process.add_argument("--report", action="store_true", help="Generate a narrative analysis")
    process.add_argument("--json", action="store_true", help="Write the stats payload as JSON to stdout")

    history = subparsers.add_parser("history", help="List recent runs.")
    history.add_argument("--limit", type=int, default=20, help="Number of runs to show")

    lookup = subparsers.add_parser("lookup", help="Show how often a number has been kept.")
    lookup.add_argument("number", help="Phone number in any format")

    reset = subparsers.add_parser("reset-history", help="Clear the phone history. Cannot be undone.")
    reset.add_argument("--yes", action="store_true", help="Confirm the reset")

    subparsers.add_parser("version", help="Print version")
    return parser


def settings_from_args(args: argparse.Namespace) -> EngineSettings:
    overrides = {}
    if args.threshold is not None:
        overrides["history_threshold"] = args.threshold
    if args.min_digits is not None:
        overrides["min_digits"] = args.min_digits
    if args.removal_mode:
        overrides["removal_mode"] = args.removal_mode
    if args.summary_sheet:
        overrides["include_summary_sheet"] = True
    try:
        return EngineSettings(**overrides)
    except ValueError as e:
        raise CliError(str(e), EXIT_COMMAND_ERROR)


def make_service(args: argparse.Namespace, output_folder: Optional[Path] = None) -> ProcessingService:
    database = Database(str(args.database_path or config.DATABASE_PATH))
    return ProcessingService(database, output_folder or Path.cwd())


def run_process(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    settings = settings_from_args(args)
    out_dir = Path(args.out_dir) if args.out_dir else input_path.resolve().parent
    service = make_service(args, out_dir)

    outcome = service.process_file(str(input_path), input_path.name, settings)
    payload = dict(outcome.stats)

    if args.report:
        report, report_error = generate_report_safely(outcome.stats)
        payload["report"] = report
        payload["reportError"] = report_error

    if args.json:
        print(json.dumps(payload, indent=2))
    else:
        print(render_stats_text(outcome.stats))
        print(f"Cleaned file: {outcome.output_path}")
        if args.report:
            print()
            print(payload["report"] or f"Report unavailable: {payload['reportError']}")
    return EXIT_SUCCESS


def run_history(args: argparse.Namespace) -> int:
    summary = make_service(args).history_summary(args.limit)
    print(f"Tracked numbers: {summary['trackedNumbers']:,}")
    for item in summary["items"]:
        stats = item["stats"]
        print(
            f"{item['processed_at']}  {item['file_name']}  "
            f"found {stats.get('totalNumbers', 0)}, kept {stats.get('validNumbers', 0)}"
        )
    return EXIT_SUCCESS


def run_lookup(args: argparse.Namespace) -> int:
    try:
        result = make_service(args).lookup_number(args.number)
    except NormalizationFailure as e:
        raise CliError(str(e), EXIT_COMMAND_ERROR)
    status = "limit reached" if result["limitReached"] else "below limit"
    print(f"{result['normalized']}: kept {result['occurrenceCount']} time(s), {status} ({result['historyThreshold']})")
    return EXIT_SUCCESS


def run_reset(args: argparse.Namespace) -> int:
    if not args.yes:
        raise CliError("Refusing to reset phone history without --yes", EXIT_COMMAND_ERROR)
    try:
        cleared = make_service(args).reset_history()
    except HistoryResetRefused as e:
        raise CliError(str(e), EXIT_COMMAND_ERROR)
    print(f"Phone history cleared ({cleared} numbers)")
    return EXIT_SUCCESS


def run_version() -> int:
    print(__version__)
    return EXIT_SUCCESS


def main(argv: Optional[List[str]] = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        logging.basicConfig(
            level=logging.DEBUG if args.verbose else getattr(logging, config.LOG_LEVEL, logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        if args.command == "process":
            return run_process(args)
        if args.command == "history":
            return run_history(args)
        if args.command == "lookup":
            return run_lookup(args)
        if args.command == "reset-history":
            return run_reset(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}")
    except CliError as e:
        print(f"error: {e}", file=sys.stderr)
        return e.code
    except InputFormatError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_INPUT_FORMAT
    except LedgerIOError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_LEDGER_ERROR


if __name__ == "__main__":
    sys.exit(main())
