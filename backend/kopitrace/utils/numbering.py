"""Identifier generation for traceability artefacts.

Formats:
  batch:   BATCH-<epoch millis>-<land plot id>   (harvest pipeline batches)
  report:  TR-<batch id>-<epoch millis>          (traceability reports)

Batch identifiers are opaque strings: callers may also supply their own
when recording inventory by hand, so nothing here assumes uniqueness.
"""

import time


def epoch_millis(now: float | None = None) -> int:
    """Milliseconds since the Unix epoch (``now`` in seconds, default: current time)."""
    return int((time.time() if now is None else now) * 1000)


def generate_batch_id(land_plot_id: int, now: float | None = None) -> str:
    return f"BATCH-{epoch_millis(now)}-{land_plot_id}"


def generate_report_id(batch_id: str, now: float | None = None) -> str:
    return f"TR-{batch_id}-{epoch_millis(now)}"
