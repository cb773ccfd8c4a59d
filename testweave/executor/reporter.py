"""
Reporter.

Persists a run as a JSON report document and renders it as console text.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from loguru import logger

from testweave.executor.aggregator import group_by_category
from testweave.executor.types import OutcomeStatus, RunReport

REPORT_PREFIX = "test-report-"

STATUS_SYMBOLS = {
    OutcomeStatus.PASSED: "✅",
    OutcomeStatus.FAILED: "❌",
}


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class Reporter:
    """
    Writes JSON reports and renders console summaries.

    Example:
        reporter = Reporter("reports")
        path = reporter.write_json(report)
        print(reporter.render_console(report))
    """

    def __init__(self, report_dir: Union[str, Path] = "reports", keep_old: bool = False) -> None:
        self.report_dir = Path(report_dir)
        self.keep_old = keep_old

    def build_document(self, report: RunReport) -> Dict[str, Any]:
        """Build the JSON report document."""
        return {
            "timestamp": _iso_now(),
            "duration": report.duration_ms,
            "summary": report.summary.to_dict(),
            "results": [o.to_dict() for o in report.outcomes],
        }

    def clean_old_reports(self) -> int:
        """Remove previous report files, returning how many were removed."""
        if not self.report_dir.is_dir():
            return 0
        removed = 0
        for path in self.report_dir.glob(f"{REPORT_PREFIX}*.json"):
            try:
                path.unlink()
                removed += 1
            except OSError as e:
                logger.warning(f"Failed to remove old report {path}: {e}")
        if removed:
            logger.info(f"Removed {removed} old test report(s)")
        return removed

    def write_json(self, report: RunReport, timestamp: Optional[str] = None) -> Path:
        """
        Write the JSON report to ``report_dir``.

        Args:
            report: The run to persist.
            timestamp: File name timestamp; defaults to the current time.

        Returns:
            Path of the written report.
        """
        self.report_dir.mkdir(parents=True, exist_ok=True)
        if not self.keep_old:
            self.clean_old_reports()

        stamp = timestamp or _iso_now().replace(":", "-").replace(".", "-")
        path = self.report_dir / f"{REPORT_PREFIX}{stamp}.json"
        path.write_text(
            json.dumps(self.build_document(report), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        logger.info(f"JSON report written to {path}")
        return path

    def render_console(self, report: RunReport) -> str:
        """Render outcomes grouped by category followed by the summary."""
        lines: List[str] = ["=" * 60, "Test Report", "=" * 60]

        for category, outcomes in group_by_category(report.outcomes).items():
            lines.append("")
            lines.append(f"{category.upper()} tests:")
            lines.append("-" * 40)
            for outcome in outcomes:
                symbol = STATUS_SYMBOLS.get(outcome.status, "?")
                line = f"{symbol} {outcome.name} ({outcome.duration_ms}ms)"
                if outcome.retry_attempts:
                    line += f" [retried {outcome.retry_attempts}x]"
                lines.append(line)
                if outcome.error:
                    lines.append(f"   Error: {outcome.error.message}")

        summary = report.summary
        lines.append("")
        lines.append("=" * 60)
        lines.append(f"Pass rate: {summary.pass_rate:.2f}% ({summary.passed}/{summary.total})")
        lines.append(f"Duration: {report.duration_ms}ms")
        lines.append("=" * 60)
        return "\n".join(lines)

    def print_summary(self, report: RunReport) -> None:
        """Log the summary block."""
        summary = report.summary
        logger.info("=" * 50)
        logger.info("Test Summary")
        logger.info("=" * 50)
        logger.info(f"Total:    {summary.total}")
        logger.info(f"Passed:   {summary.passed}")
        logger.info(f"Failed:   {summary.failed}")
        logger.info(f"Duration: {report.duration_ms}ms")
        logger.info("=" * 50)
