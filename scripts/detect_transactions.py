#!/usr/bin/env python
"""Run transaction detectors over a JSON file of transaction events.

This script replays transaction records through the detectors with the
following features:
- Input validation with a per-record error summary
- One named detector or the full detector set
- Chain reads through a JSON-RPC node (CHAINSENTRY_RPC_URL)
- Findings export to parquet format and a markdown report

Example:
    # Run every detector
    $ python scripts/detect_transactions.py --input data/raw/transactions.json

    # Only the MEV detector, against a specific node
    $ python scripts/detect_transactions.py \
        --input data/raw/transactions.json \
        --detector mev \
        --rpc-url https://eth.example.org \
        --output data/results/mev_findings.parquet
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from chainsentry.config import DetectorSettings, load_settings
from chainsentry.dispatch import DETECTOR_NAMES, DetectionDispatcher, build_detectors
from chainsentry.gateway import ChainDataGateway, RpcChainGateway
from chainsentry.models.transaction import TransactionEvent
from chainsentry.reporting import DetectionReport
from chainsentry.validation import TransactionValidator

# Configure logging with structured format
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("scripts.detect_transactions")


def create_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        prog="detect_transactions",
        description="Run transaction pattern detectors over recorded transactions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --input data/raw/transactions.json
  %(prog)s -i transactions.json -d approval -o approval_findings.parquet
  %(prog)s -i transactions.json --env-file .env.mainnet --verbose
        """,
    )

    parser.add_argument(
        "--input",
        "-i",
        dest="input_path",
        type=str,
        default="data/raw/transactions.json",
        help="Input JSON file with a list of transaction records",
    )
    parser.add_argument(
        "--detector",
        "-d",
        choices=["all", *DETECTOR_NAMES],
        default="all",
        help="Detector to run (default: all)",
    )

    output_group = parser.add_argument_group("Output Options")
    output_group.add_argument(
        "--output",
        "-o",
        dest="output_path",
        type=str,
        default="data/results/findings.parquet",
        help="Output parquet file path (default: data/results/findings.parquet)",
    )
    output_group.add_argument(
        "--report",
        "-r",
        dest="report_path",
        type=str,
        default="data/results/DETECTION_REPORT.md",
        help="Detection report markdown file path",
    )

    chain_group = parser.add_argument_group("Chain Options")
    chain_group.add_argument(
        "--rpc-url",
        type=str,
        default=None,
        help="JSON-RPC endpoint (default: CHAINSENTRY_RPC_URL from environment)",
    )
    chain_group.add_argument(
        "--env-file",
        type=str,
        default=None,
        help="Path to a .env file with CHAINSENTRY_* settings",
    )

    logging_group = parser.add_argument_group("Logging Options")
    logging_group.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    logging_group.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Suppress non-error output",
    )

    return parser


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure logging level based on arguments."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Verbose logging enabled")
    elif quiet:
        logging.getLogger().setLevel(logging.WARNING)


def load_records(path: Path) -> list[dict[str, Any]]:
    """Load a JSON list of transaction records."""
    if not path.is_file():
        logger.error("Input file not found: %s", path)
        raise SystemExit(1)
    try:
        records = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        logger.error("Failed to parse JSON input: %s", e)
        raise SystemExit(1) from e
    if not isinstance(records, list):
        logger.error("Input must be a JSON list of transaction records")
        raise SystemExit(1)
    logger.info("Loaded %d records from %s", len(records), path)
    return records


def load_detector_settings(env_file: str | None, rpc_url: str | None) -> DetectorSettings:
    overrides = {"rpc_url": rpc_url} if rpc_url else {}
    try:
        settings = load_settings(env_file, **overrides)
    except ValidationError as e:
        logger.error("Invalid CHAINSENTRY_* configuration: %s", e)
        raise SystemExit(1) from e
    if not settings.rpc_url:
        logger.error("No RPC endpoint configured (use --rpc-url or CHAINSENTRY_RPC_URL)")
        raise SystemExit(1)
    return settings


async def run_detection(
    dispatcher: DetectionDispatcher,
    events: list[TransactionEvent],
    detector: str,
    report: DetectionReport,
    gateway: ChainDataGateway,
) -> None:
    """Run detectors over events in input order, recording findings."""
    try:
        for tx in events:
            if detector == "all":
                results = await dispatcher.detect_all(tx)
            else:
                results = {detector: await dispatcher.detect(detector, tx)}
            for name, findings in results.items():
                report.add_findings(name, tx.hash, findings)
            report.transactions_analyzed += 1
    finally:
        await gateway.close()


def save_outputs(report: DetectionReport, output_path: Path, report_path: Path) -> None:
    """Save findings parquet and markdown report."""
    df = report.to_dataframe()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_parquet(output_path, index=False)
    logger.info("Saved %d findings to %s", len(df), output_path)

    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(report.generate_markdown(), encoding="utf-8")
    logger.info("Report saved to %s", report_path)


def print_summary(report: DetectionReport, output_path: Path, elapsed_time: float) -> None:
    """Print detection summary to console."""
    summary = report.summary()
    print("\n" + "=" * 60)
    print("Transaction Detection Summary")
    print("=" * 60)
    print(f"Transactions:       {summary['transactions_analyzed']:,}")
    print(f"Findings:           {summary['total_findings']:,}")
    for severity, count in summary["by_severity"].items():
        print(f"  {severity:<17} {count:,}")
    print(f"Processing time:    {elapsed_time:.2f}s")
    print("-" * 60)
    print(f"Results file:       {output_path}")
    print("=" * 60 + "\n")


def main() -> int:
    """Main entry point for the detection script."""
    parser = create_parser()
    parsed = parser.parse_args()
    setup_logging(parsed.verbose, parsed.quiet)

    input_path = Path(parsed.input_path)
    output_path = Path(parsed.output_path)
    report_path = Path(parsed.report_path)

    records = load_records(input_path)
    events, validation = TransactionValidator().validate_records(records)
    logger.info(
        "Validation: %d/%d records valid (%.1f%%), %d duplicates dropped",
        validation.valid_records,
        validation.total_records,
        validation.success_rate,
        validation.duplicate_count,
    )
    for error in validation.validation_errors[:5]:
        logger.warning("  %s", error)

    settings = load_detector_settings(parsed.env_file, parsed.rpc_url)
    gateway = RpcChainGateway.from_endpoint(
        settings.rpc_url, timeout=settings.rpc_timeout, max_retries=settings.rpc_max_retries
    )
    dispatcher = DetectionDispatcher(build_detectors(gateway, settings))

    report = DetectionReport()
    report.add_validation_result(validation)

    start_time = time.time()
    asyncio.run(run_detection(dispatcher, events, parsed.detector, report, gateway))
    elapsed_time = time.time() - start_time
    logger.info("Detection complete in %.2f seconds", elapsed_time)

    save_outputs(report, output_path, report_path)

    if not parsed.quiet:
        print_summary(report, output_path, elapsed_time)

    return 0


if __name__ == "__main__":
    sys.exit(main())
