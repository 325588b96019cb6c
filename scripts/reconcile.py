#!/usr/bin/env python3
"""
PNRGOV Reconciliation Tool

Compares the passenger data sent into a PNRGOV/PAXLST pipeline with the data
it produced, and reports preserved, dropped, added and duplicated passengers
together with any flight mismatch. Supports:
- Folder comparison (input/ + output/ folders or legacy file names)
- Message extraction from application logs
- Multipart analysis without comparing
- Prometheus metrics export

Usage:
    ./scripts/reconcile.py compare /data/flights/EK0160
    ./scripts/reconcile.py compare /data/flights/EK0160 --strategy NAME_DOC_DOB --strict --rows
    ./scripts/reconcile.py extract app.log --out extracted/
    ./scripts/reconcile.py analyze /data/flights/EK0160
"""

import os
import sys
import argparse
import logging
import json
from typing import Any, Dict, Optional
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.edifact.multipart import MultipartAnalyzer
from src.edifact.scanner import MessageBoundaryScanner
from src.monitoring import ReconciliationMetrics
from src.reconciliation import PnrgovComparator, load_config
from src.reconciliation.config import ComparisonConfig
from src.reconciliation.discovery import FileDiscovery
from src.reconciliation.models import MatchingStrategy
from src.utils.errors import ComparisonError, OperationCancelled
from src.utils.logging_config import configure_logging

logger = logging.getLogger("src.cli")


def build_config(args) -> ComparisonConfig:
    """Load the YAML config and apply command line overrides."""
    config = load_config(getattr(args, "config", None))
    strategy = getattr(args, "strategy", None)

    return config.with_overrides(
        matching_strategy=MatchingStrategy.from_name(strategy) if strategy else None,
        strict_validation=True if getattr(args, "strict", False) else None,
    )


def run_compare(args) -> Dict[str, Any]:
    """Compare one folder and return the JSON report."""
    config = build_config(args)
    metrics = ReconciliationMetrics() if (args.metrics_file or args.pushgateway) else None
    comparator = PnrgovComparator(config, metrics=metrics)

    result = comparator.compare(args.folder)
    report = result.to_dict(include_rows=args.rows)

    if metrics is not None:
        if args.metrics_file:
            with open(args.metrics_file, 'w') as f:
                f.write(metrics.export_text())
            logger.info(f"Metrics written to {args.metrics_file}")
        if args.pushgateway:
            metrics.push(
                args.pushgateway,
                job_name="pnrgov_reconciliation",
                grouping_key={"folder": os.path.basename(os.path.normpath(args.folder))}
            )

    return report


def run_extract(args) -> Dict[str, Any]:
    """Extract every message of a log file into separate .edi files."""
    config = build_config(args)
    scanner = MessageBoundaryScanner(config.marker_rules)

    with open(args.logfile, 'r', encoding='utf-8-sig', errors='replace') as f:
        content = f.read()

    messages = scanner.scan_all(content)
    os.makedirs(args.out, exist_ok=True)
    stem = Path(args.logfile).stem

    written = []
    for number, message in enumerate(messages, start=1):
        target = os.path.join(args.out, f"{stem}_{number:03d}.edi")
        with open(target, 'w', encoding='utf-8') as f:
            f.write(message.full_text)
        written.append({
            "file": target,
            "marker": message.marker,
            "line": message.line_number,
            "complete": message.complete,
        })
        logger.debug(f"Wrote message from line {message.line_number} to {target}")

    return {
        "log_file": args.logfile,
        "messages_found": len(messages),
        "messages": written,
    }


def run_analyze(args) -> Dict[str, Any]:
    """Report multipart groups and single messages of both sides."""
    config = build_config(args)
    discovery = FileDiscovery(
        extensions=config.file_extensions,
        max_file_size=config.max_file_size,
        scanner=MessageBoundaryScanner(config.marker_rules),
    )
    analyzer = MultipartAnalyzer()
    discovered = discovery.discover(args.folder)

    report: Dict[str, Any] = {"folder": args.folder, "layout": discovered.layout}
    for side, paths in (("input", discovered.input_files), ("output", discovered.output_files)):
        loaded = discovery.load(paths)
        analysis = analyzer.analyze(loaded.messages, loaded.unreadable)
        report[side] = analysis.to_dict()
        report[side]["warnings"] = list(loaded.warnings)

    return report


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="PNRGOV Reconciliation Tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Compare command
    compare_parser = subparsers.add_parser("compare", help="Compare input and output of a folder")
    compare_parser.add_argument("folder", help="Comparison folder")
    compare_parser.add_argument(
        "--strategy",
        type=str.upper,
        choices=[strategy.value for strategy in MatchingStrategy],
        help="Passenger matching strategy"
    )
    compare_parser.add_argument("--strict", action="store_true", help="Fail on interchange reference mismatch")
    compare_parser.add_argument("--rows", action="store_true", help="Include per-passenger rows")
    compare_parser.add_argument("--metrics-file", help="Write Prometheus metrics to this file")
    compare_parser.add_argument("--pushgateway", help="Push metrics to this Pushgateway URL")

    # Extract command
    extract_parser = subparsers.add_parser("extract", help="Extract EDIFACT messages from a log file")
    extract_parser.add_argument("logfile", help="Application log file")
    extract_parser.add_argument("--out", required=True, help="Directory for extracted .edi files")

    # Analyze command
    analyze_parser = subparsers.add_parser("analyze", help="Show multipart groups of a folder")
    analyze_parser.add_argument("folder", help="Comparison folder")

    for sub in (compare_parser, extract_parser, analyze_parser):
        sub.add_argument("--config", help="YAML configuration file")

    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    parser.add_argument("--json-logs", action="store_true", help="Emit structured JSON logs")

    args = parser.parse_args(argv)

    configure_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        json_output=True if args.json_logs else None,
    )

    if not args.command:
        parser.print_help()
        return 1

    try:
        if args.command == "compare":
            output = run_compare(args)
        elif args.command == "extract":
            output = run_extract(args)
        else:
            output = run_analyze(args)

        print(json.dumps(output, indent=2))
        return 0

    except ComparisonError as e:
        print(json.dumps(e.to_dict(), indent=2))
        return 1

    except OperationCancelled as e:
        logger.error(f"Cancelled: {e}")
        return 1

    except (OSError, ValueError) as e:
        logger.error(f"Error: {e}", exc_info=args.verbose)
        return 1


if __name__ == "__main__":
    sys.exit(main())
