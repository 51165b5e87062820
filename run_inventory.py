#!/usr/bin/env python3
"""
Structured-logging usage inventory for C# source trees.

Loads every ``.cs`` file under a directory, runs the call-site analyzers
over it and writes one JSON line per recognized logging call site plus a
JSON run report with statistics and a usage summary.

Usage:
    python run_inventory.py --source-dir ./src
    python run_inventory.py --source-dir ./src --output-file out/usage.jsonl --workers 4
    python run_inventory.py --source-dir ./src --config inventory.yml --strict-config
"""

import argparse
import logging
import os
import sys
import time
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from source_loading.workspace import LoadStats, iter_compilation_units
from usage_core.run_artifacts import write_jsonl, write_run_report
from usage_core.settings import (
    get_config_section,
    load_yaml_config,
    reject_unknown_keys,
    resolve_bool,
    resolve_int,
    resolve_strict_config_validation,
)
from usage_core.structured_logging import configure_structured_logging, phase_scope, set_run_id
from usage_extraction.config import load_error_handling_options
from usage_extraction.orchestrator import ExtractionAbortedError, ExtractionOrchestrator
from usage_extraction.summarizer import summarize_usage

logger = logging.getLogger(__name__)

_EXTRACTION_KEYS = {"max_workers", "fine_grained_cancellation"}


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        description="Structured-logging usage inventory for C# code",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python run_inventory.py --source-dir ./src\n"
            "  python run_inventory.py --source-dir ./src --config inventory.yml --workers 4\n"
        ),
    )
    parser.add_argument(
        "--source-dir",
        required=True,
        help="Path to the C# source directory to analyse.",
    )
    parser.add_argument(
        "--output-file",
        default="output/usage_records.jsonl",
        help="Path for the JSONL record dump. Default: output/usage_records.jsonl",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Optional YAML config with 'error_handling' and 'extraction' sections.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Compilation units analysed concurrently (overrides extraction.max_workers).",
    )
    parser.add_argument(
        "--report-dir",
        default="output/run_reports",
        help="Directory for the JSON run report. Default: output/run_reports",
    )
    parser.add_argument(
        "--strict-config",
        action="store_true",
        default=resolve_strict_config_validation(default=False),
        help="Fail fast on config parse/validation errors instead of using defaults.",
    )
    return parser.parse_args(argv)


def resolve_extraction_settings(config_path: Optional[str], workers: Optional[int], strict: bool) -> Dict[str, Any]:
    """Read orchestrator knobs from the ``extraction`` YAML section.

    A ``--workers`` value given on the command line wins over the file.
    """
    config = load_yaml_config(config_path, strict=strict)
    section = get_config_section(config, "extraction", strict=strict)
    reject_unknown_keys(section, _EXTRACTION_KEYS, "extraction", strict=strict)

    max_workers = resolve_int(section, "max_workers", 1, minimum=1, strict=strict)
    if workers is not None:
        max_workers = max(1, workers)
    return {
        "max_workers": max_workers,
        "fine_grained_cancellation": resolve_bool(
            section, "fine_grained_cancellation", False, strict=strict
        ),
    }


def _log_progress(done: int, total: Optional[int], path: str) -> None:
    logger.info("[%d/%s] %s", done, total if total is not None else "?", path)


def execute_inventory(
    source_dir: str,
    output_file: str,
    config_path: Optional[str] = None,
    workers: Optional[int] = None,
    strict_config: bool = False,
) -> Dict[str, Any]:
    """Run load -> extract -> write and return the run report body.

    Raises:
        FileNotFoundError: If source_dir does not exist.
        ExtractionAbortedError: If a failure aborts the run.
        ConfigValidationError: On config problems in strict mode.
    """
    if not os.path.isdir(source_dir):
        raise FileNotFoundError(f"Source directory not found: {source_dir}")

    options = load_error_handling_options(config_path, strict=strict_config)
    settings = resolve_extraction_settings(config_path, workers, strict_config)

    logger.info("Source directory : %s", os.path.abspath(source_dir))
    logger.info("Output file      : %s", os.path.abspath(output_file))
    logger.info("Options          : %s", options)
    logger.info("Workers          : %d", settings["max_workers"])

    report: Dict[str, Any] = {
        "source_dir": os.path.abspath(source_dir),
        "output_file": os.path.abspath(output_file),
        "status": "failed",
    }

    t0 = time.time()
    load_stats = LoadStats()
    orchestrator = ExtractionOrchestrator(
        options=options,
        max_workers=settings["max_workers"],
        fine_grained_cancellation=settings["fine_grained_cancellation"],
        progress_callback=_log_progress,
    )
    # Units are loaded on demand, so loading is logged under the extract phase
    units = iter_compilation_units(source_dir, continue_on_error=True, stats=load_stats)
    with phase_scope("extract"):
        model = orchestrator.run(units)
    report["loading"] = load_stats.to_dict()

    with phase_scope("write"):
        written = write_jsonl((record.to_dict() for record in model.records), output_file)
    logger.info("Wrote %d record(s) to %s", written, output_file)

    report.update({
        "status": "success" if load_stats.files_failed == 0 else "partial_success",
        "records_written": written,
        "statistics": model.statistics.to_dict(),
        "summary": summarize_usage(model).to_dict(),
        "elapsed_seconds": round(time.time() - t0, 3),
    })
    return report


def main(argv: Optional[list] = None) -> None:
    """Main entry point for the inventory runner."""
    configure_structured_logging(level=logging.INFO)
    # .env may set STRICT_CONFIG_VALIDATION before the flag default is read
    load_dotenv()
    args = parse_args(argv)
    run_id = set_run_id()

    run_report: Dict[str, Any] = {
        "run_id": run_id,
        "pipeline": "usage_inventory",
        "status": "failed",
    }
    try:
        result = execute_inventory(
            source_dir=args.source_dir,
            output_file=args.output_file,
            config_path=args.config,
            workers=args.workers,
            strict_config=args.strict_config,
        )
        run_report.update(result)
        report_path = write_run_report(run_report, run_id, output_dir=args.report_dir)
        logger.info("Run report written: %s", report_path)
    except ExtractionAbortedError as exc:
        run_report["error"] = str(exc)
        run_report["statistics"] = exc.model.statistics.to_dict()
        report_path = write_run_report(run_report, run_id, output_dir=args.report_dir)
        logger.info("Run report written: %s", report_path)
        logger.error("Extraction aborted: %s", exc)
        sys.exit(1)
    except FileNotFoundError as exc:
        run_report["error"] = str(exc)
        write_run_report(run_report, run_id, output_dir=args.report_dir)
        logger.error("File error: %s", exc)
        sys.exit(1)
    except Exception as exc:
        run_report["error"] = str(exc)
        report_path = write_run_report(run_report, run_id, output_dir=args.report_dir)
        logger.info("Run report written: %s", report_path)
        logger.error("Inventory run failed: %s", exc, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
