"""Validation report model and writer.

Generates:
- <output>.json - Machine-readable validation report
- <output>.md - Human-readable summary
- An append to the CI job summary when one is configured
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from ..utils.report_base import BaseReporter

logger = logging.getLogger(__name__)

MAX_MARKDOWN_PAYLOAD_CHARS = 20000


class RunStatus(str, Enum):
    """Terminal status of a validation run."""

    SUCCESS = "success"
    VIOLATIONS = "violations"
    ERROR = "error"


class ResultSource(str, Enum):
    """Which feed produced the classified payload."""

    DEFINITION_ANALYSIS_RESULTS = "definitionAnalysisResults"
    ANALYZER_EXECUTIONS = "analyzerExecutions"
    SCRIPT_EXECUTION = "scriptExecution"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class ValidationReport:
    """Outcome of one validation run.

    Starts with placeholder values and is filled in as the run progresses.
    """

    run_id: str
    api_id: str
    version_id: str
    definition_id: str
    subscription_id: str
    resource_group: str
    service_name: str
    target_url: str
    analyzer_config: str
    status: RunStatus = RunStatus.ERROR
    has_violations: bool = False
    result_source: ResultSource | None = None
    spec_url: str | None = None
    message: str = "Run did not complete"
    started_utc: datetime = field(default_factory=utc_now)
    finished_utc: datetime | None = None
    payload: Any = None

    def finalize(self, finished: datetime | None = None) -> None:
        """Stamp the finish time (now unless given)."""
        self.finished_utc = finished or utc_now()

    @property
    def duration_seconds(self) -> float:
        """Get run duration in seconds."""
        end = self.finished_utc or utc_now()
        return (end - self.started_utc).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "runId": self.run_id,
            "apiId": self.api_id,
            "versionId": self.version_id,
            "definitionId": self.definition_id,
            "subscriptionId": self.subscription_id,
            "resourceGroup": self.resource_group,
            "serviceName": self.service_name,
            "targetUrl": self.target_url,
            "analyzerConfig": self.analyzer_config,
            "status": self.status.value,
            "hasViolations": self.has_violations,
            "resultSource": self.result_source.value if self.result_source else None,
            "specUrl": self.spec_url,
            "message": self.message,
            "startedUtc": _iso(self.started_utc),
            "finishedUtc": _iso(self.finished_utc),
            "payload": self.payload,
        }


class ReportWriter(BaseReporter):
    """Render a ValidationReport as JSON and markdown."""

    def __init__(self, report: ValidationReport) -> None:
        super().__init__(title="API Ruleset Validation Report")
        self.report = report

    def to_dict(self) -> dict[str, Any]:
        return self.report.to_dict()

    def to_markdown(self) -> str:
        report = self.report
        icon = {
            RunStatus.SUCCESS: "PASS",
            RunStatus.VIOLATIONS: "FAIL",
            RunStatus.ERROR: "ERROR",
        }[report.status]

        md = f"# {self.title}\n\n"
        md += f"**Result**: {icon} ({report.status.value})\n\n"
        md += f"{report.message}\n\n"

        rows = [
            ["Run ID", report.run_id],
            ["Target URL", report.target_url],
            ["Spec URL", report.spec_url or "-"],
            ["Service", f"{report.service_name} ({report.resource_group})"],
            ["Analyzer", report.analyzer_config],
            ["Disposable API", f"{report.api_id} / {report.version_id} / {report.definition_id}"],
            ["Has Violations", "yes" if report.has_violations else "no"],
            ["Result Source", report.result_source.value if report.result_source else "-"],
            ["Started (UTC)", _iso(report.started_utc) or "-"],
            ["Finished (UTC)", _iso(report.finished_utc) or "-"],
            ["Duration", f"{report.duration_seconds:.1f}s"],
        ]
        md += self.markdown_table(["Field", "Value"], rows)

        payload_text = json.dumps(report.payload, indent=2, default=str)
        if len(payload_text) > MAX_MARKDOWN_PAYLOAD_CHARS:
            payload_text = payload_text[:MAX_MARKDOWN_PAYLOAD_CHARS] + "\n... (truncated)"
        md += self.markdown_section(
            "Analysis Payload",
            self.markdown_code_block(payload_text, "json").rstrip(),
        )
        return md


def markdown_path_for(json_path: Path) -> Path:
    """Derive the markdown report path from the JSON report path.

    A JSON path that already ends in `.md` gets `.md` appended so the two
    reports never share a file.
    """
    markdown_path = json_path.with_suffix(".md")
    if markdown_path == json_path:
        markdown_path = json_path.with_suffix(json_path.suffix + ".md")
    return markdown_path


def emit_report(report: ValidationReport, json_path: Path) -> dict[str, Path]:
    """Write the report to disk and to the CI summary.

    Write failures are logged and swallowed.

    Returns:
        Dict mapping report type to file path for everything written
    """
    writer = ReportWriter(report)
    generated: dict[str, Path] = {}

    try:
        markdown_path = markdown_path_for(json_path)
        writer.generate_all(markdown_path, json_path)
        generated["json"] = json_path
        generated["markdown"] = markdown_path
    except OSError:
        logger.exception("Failed to write report to %s", json_path)

    try:
        summary_path = writer.append_step_summary()
        if summary_path:
            generated["summary"] = summary_path
    except OSError:
        logger.exception("Failed to append report to step summary")

    return generated
