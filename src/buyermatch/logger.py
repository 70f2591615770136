"""
BuyerMatch structured logging - operator telemetry for scoring and dedupe runs.

Answers three questions:
1. What phase is the run in?
2. What was decided, and why?
3. What input was dropped along the way?
"""

import sys
from datetime import UTC, datetime

# Force line buffering for immediate output (important on Windows/PowerShell)
try:
    sys.stdout.reconfigure(line_buffering=True)  # type: ignore
except Exception:
    pass  # Fallback for non-reconfigurable streams


def _print(*args: object, **kwargs: object) -> None:
    """Print with immediate flush."""
    print(*args, **kwargs, flush=True)


def _eprint(*args: object, **kwargs: object) -> None:
    """Print to stderr with immediate flush."""
    print(*args, **kwargs, file=sys.stderr, flush=True)


class ProgressLogger:
    """
    Structured progress logger for BuyerMatch runs.

    Core functions take an optional logger; pass one in to see what the
    normalizer dropped and why a multiplier moved.
    """

    def __init__(self, run_id: str, verbose: bool = False):
        self.run_id = run_id
        self.verbose = verbose
        self.start_time = datetime.now(UTC)
        self.phase_times: dict[str, datetime] = {}

    def phase(self, name: str, detail: str = "") -> None:
        """Log a major phase transition."""
        now = datetime.now(UTC)
        self.phase_times[name] = now
        elapsed = (now - self.start_time).total_seconds()

        if detail:
            _print(f"[Phase] {name}: {detail} ({elapsed:.1f}s)")
        else:
            _print(f"[Phase] {name} ({elapsed:.1f}s)")

    def progress(
        self,
        item: str,
        current: int,
        total: int,
        detail: str = "",
    ) -> None:
        """Log a progress update (e.g., group 3/12)."""
        pct = (current / total * 100) if total > 0 else 0
        if detail:
            _print(f"  [{item} {current}/{total}] {detail} ({pct:.0f}%)")
        else:
            _print(f"  [{item} {current}/{total}] ({pct:.0f}%)")

    def info(self, msg: str) -> None:
        """Log a plain informational line."""
        _print(f"  {msg}")

    def decision(self, dimension: str, detail: str) -> None:
        """Log a scoring or weighting decision (verbose only)."""
        if self.verbose:
            _print(f"    [Decision] {dimension}: {detail}")

    def skip(self, reason: str, detail: str) -> None:
        """Log a skip/drop with reason (verbose only)."""
        if self.verbose:
            truncated = detail[:60] + "..." if len(detail) > 60 else detail
            _print(f"    [Skip] {reason}: {truncated}")

    def scored(self, total: int, disqualified: int) -> None:
        """Log a scoring summary."""
        _print(f"  [Scored] {total} buyers ({disqualified} disqualified)")

    def merged(self, groups: int, deleted: int, errors: int = 0) -> None:
        """Log merge results."""
        if errors > 0:
            _print(f"  [Merged] {groups} groups, {deleted} duplicates deleted, {errors} errors")
        else:
            _print(f"  [Merged] {groups} groups, {deleted} duplicates deleted")

    def finish(self, summary: str = "") -> None:
        """Log run completion."""
        elapsed = (datetime.now(UTC) - self.start_time).total_seconds()
        _print(f"\n[BuyerMatch] Run {self.run_id} complete in {elapsed:.1f}s")
        if summary:
            _print(f"  {summary}")

    def error(self, msg: str) -> None:
        """Log an error."""
        _eprint(f"[Error] {msg}")

    def warning(self, msg: str) -> None:
        """Log a warning."""
        _eprint(f"[Warning] {msg}")
