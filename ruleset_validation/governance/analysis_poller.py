"""Wait for rule analysis results on an imported definition.

Polls the definition's `analysisResults` feed at a fixed interval until it
returns a non-empty result list or the wall-clock deadline passes, then makes
exactly one query against the analyzer configuration's execution feed.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .classifier import canonical_json
from .exceptions import NoAnalysisResults
from .governance_client import GovernanceClient
from .report_generator import ResultSource

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 10.0

RESULT_LIST_KEYS = ("value", "results", "items")


@dataclass
class PollOutcome:
    """Payload used for classification and the feed that produced it."""

    payload: Any
    source: ResultSource


@dataclass
class PollerStats:
    """Statistics for one polling run."""

    primary_attempts: int = 0
    fallback_attempts: int = 0


def result_entries(payload: Any) -> list:
    """Extract the result list from a feed response.

    Accepts a bare list or an object wrapping one (`value`, `results`,
    `items`); anything else counts as no results.
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in RESULT_LIST_KEYS:
            entries = payload.get(key)
            if isinstance(entries, list):
                return entries
    return []


def filter_entries(entries: list, terms: list[str]) -> list:
    """Keep entries whose serialized text mentions any of the terms.

    Falls back to the full list when nothing matches.
    """
    matched = [
        entry
        for entry in entries
        if any(term and term in canonical_json(entry) for term in terms)
    ]
    return matched or entries


class AnalysisPoller:
    """Poll the governance service for analysis results.

    Uses a fixed interval (no backoff) bounded by a deadline on the injected
    clock, so runs are deterministic under a fake clock and sleep.
    """

    def __init__(
        self,
        client: GovernanceClient,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the poller.

        Args:
            client: Governance client used for authenticated calls
            poll_interval: Seconds between primary feed queries
            clock: Monotonic time source
            sleep: Sleep function
        """
        self.client = client
        self.poll_interval = poll_interval
        self.clock = clock
        self.sleep = sleep
        self.stats = PollerStats()

    def deadline_after(self, timeout_seconds: float) -> float:
        """Compute a deadline `timeout_seconds` from now on this poller's clock."""
        return self.clock() + timeout_seconds

    def poll_for_results(
        self,
        definition_scope: str,
        deadline: float,
        executions_scope: str,
        match_terms: list[str],
    ) -> PollOutcome:
        """Wait for definition results, falling back to analyzer executions.

        Args:
            definition_scope: Management URL of the imported definition
            deadline: Clock value after which the primary feed is abandoned
            executions_scope: Management URL of the analyzer execution feed
            match_terms: Literal strings identifying this run's entries in the
                execution feed (api id, definition id)

        Returns:
            PollOutcome tagged with the feed that produced the payload

        Raises:
            NoAnalysisResults: If both feeds stayed empty or unreachable
        """
        results_url = f"{definition_scope}/analysisResults"

        while self.clock() < deadline:
            self.stats.primary_attempts += 1
            payload = self.client.authenticated_json_call("GET", results_url)
            if result_entries(payload):
                logger.info(
                    "Definition analysis results available after %d attempt(s)",
                    self.stats.primary_attempts,
                )
                return PollOutcome(payload, ResultSource.DEFINITION_ANALYSIS_RESULTS)

            logger.info(
                "No definition analysis results yet (attempt %d); retrying in %ss",
                self.stats.primary_attempts,
                self.poll_interval,
            )
            self.sleep(self.poll_interval)

        logger.warning("Deadline reached; querying analyzer executions")
        return self._fallback(executions_scope, match_terms)

    def _fallback(self, executions_scope: str, match_terms: list[str]) -> PollOutcome:
        self.stats.fallback_attempts += 1
        payload = self.client.authenticated_json_call("GET", executions_scope)
        entries = result_entries(payload)
        if not entries:
            raise NoAnalysisResults(
                f"No results from {ResultSource.DEFINITION_ANALYSIS_RESULTS.value} "
                f"before the deadline and {ResultSource.ANALYZER_EXECUTIONS.value} "
                "returned nothing",
            )

        selected = filter_entries(entries, match_terms)
        logger.info("Selected %d of %d analyzer execution(s)", len(selected), len(entries))
        return PollOutcome(selected, ResultSource.ANALYZER_EXECUTIONS)
