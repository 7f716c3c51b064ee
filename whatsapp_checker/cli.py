"""Command line interface for verifying and reconciling WhatsApp numbers."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .client import VerificationClient
from .config import CheckerConfig, ConfigurationError, build_config, load_environment
from .ingestion import (
    RECONCILIATION_SHEET,
    RESULTS_SHEET,
    MissingColumnError,
    SpreadsheetSource,
    UnsupportedFileTypeError,
    output_path_for,
    report_path_for,
    write_output_table,
)
from .ledger import LedgerError, ResponseLedger, ledger_path_for
from .orchestrator import BatchRunner, ReconciliationPass, RunAborted
from .rate_limit import InterCallDelay

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_FATAL_API = -1

_STARTUP_ERRORS = (
    ConfigurationError,
    LedgerError,
    UnsupportedFileTypeError,
    MissingColumnError,
    FileNotFoundError,
)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--input-file",
        "--in",
        dest="input_file",
        required=True,
        help="Input spreadsheet (CSV or XLSX) containing the numbers to verify in a 'Phone' column",
    )
    parser.add_argument(
        "--output-file",
        "--out",
        dest="output_file",
        required=True,
        help="Output name; results are written as an .xlsx workbook derived from it",
    )
    parser.add_argument(
        "--source-number",
        "--number",
        dest="source_number",
        required=True,
        help="The number connected to 2Chat used to perform the verifications",
    )
    parser.add_argument("--config", help="Optional settings file (YAML or JSON)")
    parser.add_argument("--env-file", help="Path to a .env file providing API_KEY")
    parser.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds")
    parser.add_argument("--base-url", default=None, help="Override the check-number endpoint URL")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (e.g. DEBUG, INFO, WARNING)",
    )


def build_parser(prog: Optional[str] = None) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Verify phone numbers on WhatsApp using the 2Chat check-number API",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser("check", help="Verify every number of the input file")
    _add_common_arguments(check)
    check.add_argument("--delay", type=float, default=None, help="Seconds to wait after each API call")
    check.add_argument(
        "--resume",
        action="store_true",
        help="Keep the existing response log and skip numbers it already covers",
    )

    reconcile = subparsers.add_parser(
        "reconcile",
        help="Re-verify only the numbers missing from a previous run's response log",
    )
    _add_common_arguments(reconcile)
    reconcile.add_argument(
        "--ledger-file",
        help="Response log of the previous run (defaults to the one derived from --output-file)",
    )
    reconcile.add_argument("--delay", type=float, default=None, help="Seconds to wait after each fresh API call")
    reconcile.add_argument(
        "--update-ledger",
        action="store_true",
        help="Append fresh responses to the response log",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    try:
        load_environment(args.env_file)
        config = _config_from_args(args)
        source = SpreadsheetSource.from_file(args.input_file)
        LOGGER.info("Input file successfully processed (%s rows). Will check numbers now", len(source))
        if args.command == "check":
            return run_check(config, source, args.output_file, resume=args.resume)
        ledger_file = args.ledger_file or ledger_path_for(args.output_file)
        return run_reconcile(config, source, args.output_file, ledger_file, update_ledger=args.update_ledger)
    except _STARTUP_ERRORS as exc:
        LOGGER.error("%s", exc)
        return EXIT_ERROR


def _config_from_args(args: argparse.Namespace) -> CheckerConfig:
    delay_option = "delay_seconds" if args.command == "check" else "reconcile_delay_seconds"
    return build_config(
        source_number=args.source_number,
        config_path=args.config,
        timeout_seconds=args.timeout,
        base_url=args.base_url,
        **{delay_option: args.delay},
    )


def _build_client(config: CheckerConfig) -> VerificationClient:
    return VerificationClient(
        config.api_key,
        base_url=config.base_url,
        timeout=config.timeout_seconds,
        user_agent=config.user_agent,
    )


def run_check(config: CheckerConfig, source: SpreadsheetSource, output_file: str | Path, *, resume: bool = False) -> int:
    """Run the primary verification pass and write the results workbook."""

    ledger = ResponseLedger.open(ledger_path_for(output_file), resume=resume)
    with _build_client(config) as client:
        runner = BatchRunner(
            client,
            ledger,
            source_number=config.source_number,
            delay=InterCallDelay.seconds(config.delay_seconds),
            reuse_ledger=resume,
        )
        try:
            result = runner.run(source)
        except RunAborted as exc:
            LOGGER.error(
                "%s. %s rows were processed; responses so far are kept in %s",
                exc,
                len(exc.rows),
                ledger.path,
            )
            return EXIT_FATAL_API

    output_path = write_output_table(
        result.rows,
        output_path_for(output_file),
        input_columns=source.columns,
        sheet_name=RESULTS_SHEET,
    )
    LOGGER.info("Results written to %s", output_path.resolve())
    return EXIT_OK


def run_reconcile(
    config: CheckerConfig,
    source: SpreadsheetSource,
    output_file: str | Path,
    ledger_file: str | Path,
    *,
    update_ledger: bool = False,
) -> int:
    """Merge a previous response log with fresh checks for the missing numbers."""

    ledger = ResponseLedger.load(ledger_file)
    with _build_client(config) as client:
        reconciliation = ReconciliationPass.from_ledger(
            client,
            ledger,
            update_ledger=update_ledger,
            source_number=config.source_number,
            delay=InterCallDelay.seconds(config.reconcile_delay_seconds),
        )
        try:
            result = reconciliation.run(source)
        except RunAborted as exc:
            LOGGER.error("%s. %s rows were processed before the failure", exc, len(exc.rows))
            return EXIT_FATAL_API

    output_path = write_output_table(
        result.rows,
        report_path_for(output_file),
        input_columns=source.columns,
        sheet_name=RECONCILIATION_SHEET,
    )
    LOGGER.info("Results written to %s", output_path.resolve())
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
