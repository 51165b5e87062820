"""JSON artifacts of an inventory run: the record dump and the run report."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any, Iterable

DEFAULT_REPORT_DIR = os.path.join("output", "run_reports")


def write_run_report(
    report: dict[str, Any],
    run_id: str,
    output_dir: str = DEFAULT_REPORT_DIR,
) -> str:
    """Write ``report`` to ``<output_dir>/<run_id>.json`` and return the path.

    ``run_id`` and a UTC ``timestamp_utc`` are filled in unless the report
    already has them. The JSON is written to a ``.partial`` sibling and
    renamed into place, so a reader never sees a truncated report.
    """
    os.makedirs(output_dir, exist_ok=True)
    payload = {"run_id": run_id, "timestamp_utc": datetime.now(timezone.utc).isoformat()}
    payload.update(report)

    path = os.path.join(output_dir, f"{run_id}.json")
    partial = f"{path}.partial"
    with open(partial, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)
    os.replace(partial, path)
    return path


def write_jsonl(rows: Iterable[dict[str, Any]], output_file: str) -> int:
    """Stream ``rows`` to ``output_file`` as JSON lines and return the count."""
    directory = os.path.dirname(os.path.abspath(output_file))
    os.makedirs(directory, exist_ok=True)
    written = 0
    with open(output_file, "w", encoding="utf-8") as f:
        for row in rows:
            f.write(json.dumps(row, ensure_ascii=False) + "\n")
            written += 1
    return written
