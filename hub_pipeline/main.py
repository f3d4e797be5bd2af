"""
Hub Overlap Pipeline Main Script

Runs the three steps of the Stargaze / Cosmos Hub overlap analysis:

    python -m hub_pipeline.main convert --input wallets.csv --output output.csv
    python -m hub_pipeline.main check --input output.csv --output hub.csv
    python -m hub_pipeline.main analyze --input hub.csv
"""
import os
import argparse
import asyncio
import signal
import sys

# Add parent directory to path to make imports work when run as a script
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from config.logging_config import setup_pipeline_logging
from config.settings import HUB_CONFIG, LOG_LEVEL, REPORT_SETTINGS, DATA_FILES, get_data_path, shutdown_flag
from hub_pipeline.analysis.overlap_report import compute_overlap_stats, load_enriched_records, render_report
from hub_pipeline.conversion.address_converter import convert_wallets_file
from hub_pipeline.enrichment.batch_orchestrator import run_enrichment
from hub_pipeline.exceptions import HubPipelineError, InputSourceError, SinkWriteError
from utils.base_helpers import clear_errors, print_error_summary, safe_print

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INPUT_ERROR = 2
EXIT_SINK_ERROR = 3

logger = setup_pipeline_logging(LOG_LEVEL)


def _request_shutdown(signum, frame):
    """Finish the batch in flight, then stop."""
    logger.warning("Interrupt received, stopping after the current batch")
    shutdown_flag.set()


def cmd_convert(args) -> int:
    count = convert_wallets_file(args.input, args.output)
    safe_print(f"Converted {count} addresses successfully.")
    safe_print(f"Output written to {args.output}")
    return EXIT_OK


def cmd_check(args) -> int:
    clear_errors()
    shutdown_flag.clear()
    signal.signal(signal.SIGINT, _request_shutdown)

    summary = asyncio.run(run_enrichment(
        input_path=args.input,
        output_path=args.output,
        endpoints=args.endpoint or None,
        batch_size=args.batch_size,
        batch_delay=args.batch_delay,
        timeout=args.timeout,
        resume=args.resume,
    ))

    safe_print(f"Completed processing {summary.processed} of {summary.total} addresses.")
    if summary.defaulted_balances or summary.defaulted_staking:
        safe_print(f"⚠️  {summary.defaulted_balances} balances and {summary.defaulted_staking} "
                   f"staking statuses fell back to defaults after failed lookups")
    print_error_summary()

    if summary.stopped_early:
        safe_print("Run interrupted; rerun with --resume to continue.")
        return EXIT_FAILURE
    return EXIT_OK


def cmd_analyze(args) -> int:
    records = load_enriched_records(args.input)
    stats = compute_overlap_stats(records, dust_threshold=args.dust_threshold)
    safe_print(render_report(stats))
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Stargaze / Cosmos Hub account overlap pipeline")
    subparsers = parser.add_subparsers(dest="command", required=True)

    convert = subparsers.add_parser("convert", help="Derive Cosmos Hub addresses from Stargaze addresses")
    convert.add_argument("--input", type=str, default=get_data_path(DATA_FILES["wallets"]),
                         help="CSV whose first column holds stars addresses")
    convert.add_argument("--output", type=str, default=get_data_path(DATA_FILES["pairs"]),
                         help="Address pair CSV to write")
    convert.set_defaults(func=cmd_convert)

    check = subparsers.add_parser("check", help="Fetch Hub balance and staking status for each pair")
    check.add_argument("--input", type=str, default=get_data_path(DATA_FILES["pairs"]),
                       help="Address pair CSV")
    check.add_argument("--output", type=str, default=get_data_path(DATA_FILES["enriched"]),
                       help="Enriched CSV to write")
    check.add_argument("--batch-size", type=int, default=HUB_CONFIG["batch_size"],
                       help="Addresses processed concurrently per batch")
    check.add_argument("--batch-delay", type=float, default=HUB_CONFIG["batch_delay"],
                       help="Seconds to wait between batches")
    check.add_argument("--timeout", type=float, default=HUB_CONFIG["request_timeout"],
                       help="Per-request timeout in seconds")
    check.add_argument("--endpoint", type=str, action="append", default=[],
                       help="REST endpoint to rotate through (repeatable)")
    check.add_argument("--resume", action="store_true",
                       help="Continue an interrupted run instead of starting over")
    check.set_defaults(func=cmd_check)

    analyze = subparsers.add_parser("analyze", help="Report cross-chain overlap statistics")
    analyze.add_argument("--input", type=str, default=get_data_path(DATA_FILES["enriched"]),
                         help="Enriched CSV")
    analyze.add_argument("--dust-threshold", type=float, default=REPORT_SETTINGS["dust_threshold"],
                         help="Balances at or below this are treated as dust")
    analyze.set_defaults(func=cmd_analyze)

    return parser


def main(argv=None) -> int:
    """Main entry point for the pipeline"""
    args = build_parser().parse_args(argv)

    try:
        return args.func(args)
    except InputSourceError as e:
        logger.error(f"Input error: {e}")
        return EXIT_INPUT_ERROR
    except SinkWriteError as e:
        logger.error(f"Output error at batch {e.batch_index}: {e}",
                     extra={'batch_index': e.batch_index, 'committed_rows': e.committed_rows})
        return EXIT_SINK_ERROR
    except HubPipelineError as e:
        logger.error(f"Pipeline error: {e}")
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
