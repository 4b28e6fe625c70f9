"""Base reporter class for validation report writers.

Provides abstract base class and common utilities for rendering a report as
JSON and markdown, and for publishing the markdown to a CI job summary.
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

STEP_SUMMARY_ENV = "GITHUB_STEP_SUMMARY"


class BaseReporter(ABC):
    """Abstract base class for report writers.

    Provides:
    - Dual format output (markdown + JSON)
    - Markdown table and section helpers
    - CI step summary publishing
    """

    def __init__(self, title: str) -> None:
        """Initialize the reporter.

        Args:
            title: Report title for display
        """
        self.title = title

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        """Convert report to dictionary format."""

    @abstractmethod
    def to_markdown(self) -> str:
        """Convert report to markdown format."""

    def generate_all(self, markdown_path: Path, json_path: Path) -> None:
        """Generate both markdown and JSON reports.

        Args:
            markdown_path: Where to write markdown report
            json_path: Where to write JSON report
        """
        self.generate_json(json_path)
        self.generate_markdown(markdown_path)

    def generate_markdown(self, path: Path) -> None:
        """Write markdown report to file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_markdown(), encoding="utf-8")
        logger.info("Generated markdown report: %s", path)

    def generate_json(self, path: Path) -> None:
        """Write JSON report to file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, default=str)
            f.write("\n")
        logger.info("Generated JSON report: %s", path)

    def append_step_summary(self, environ: dict[str, str] | None = None) -> Path | None:
        """Append the markdown rendering to the CI job summary, if configured.

        Returns:
            Summary file path, or None when no summary surface is configured
        """
        env = os.environ if environ is None else environ
        summary = env.get(STEP_SUMMARY_ENV)
        if not summary:
            return None

        path = Path(summary)
        with path.open("a", encoding="utf-8") as f:
            f.write(self.to_markdown())
            f.write("\n")
        logger.info("Appended report to step summary: %s", path)
        return path

    # Markdown helpers
    @staticmethod
    def markdown_section(title: str, content: str, level: int = 2) -> str:
        """Create a markdown section with heading and content."""
        heading = "#" * level
        return f"{heading} {title}\n\n{content}\n\n"

    @staticmethod
    def markdown_table(headers: list[str], rows: list[list[str]]) -> str:
        """Create a markdown table.

        Args:
            headers: Column headers
            rows: List of rows, each row is list of cell values

        Returns:
            Formatted markdown table
        """
        if not headers or not rows:
            return ""

        md = "| " + " | ".join(headers) + " |\n"
        md += "| " + " | ".join(["---"] * len(headers)) + " |\n"
        for row in rows:
            md += "| " + " | ".join(str(cell).replace("|", "\\|") for cell in row) + " |\n"

        return md + "\n"

    @staticmethod
    def markdown_code_block(content: str, language: str = "") -> str:
        """Wrap content in a fenced code block."""
        return f"```{language}\n{content}\n```\n\n"
