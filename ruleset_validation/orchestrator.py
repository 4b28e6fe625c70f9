"""Run one ruleset validation against API Center.

Sequence: discover the target's API description, register it as a
disposable API/version/definition, import the document, request analysis,
poll for results, classify, then delete the disposable API and write the
report. Deletion and report emission run on every exit path.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .config import ValidationSettings
from .governance import (
    AnalysisPoller,
    CleanupFailed,
    CommandFailed,
    GovernanceClient,
    ResultSource,
    RunStatus,
    ServiceCoordinates,
    SpecDiscovery,
    ValidationReport,
    has_violations,
)
from .governance.report_generator import emit_report, utc_now

logger = logging.getLogger(__name__)

API_ID_PREFIX = "ruleset-test"
DEFINITION_ID = "openapi"


@dataclass(frozen=True)
class RunContext:
    """Identifiers for one validation attempt."""

    coordinates: ServiceCoordinates
    run_id: str
    api_id: str
    version_id: str
    definition_id: str = DEFINITION_ID

    @classmethod
    def create(cls, coordinates: ServiceCoordinates, now: datetime) -> "RunContext":
        """Derive run identifiers from a timestamp."""
        run_id = now.strftime("%Y%m%d%H%M%S")
        return cls(
            coordinates=coordinates,
            run_id=run_id,
            api_id=f"{API_ID_PREFIX}-{run_id}",
            version_id=now.strftime("%Y-%m-%d"),
        )

    @property
    def definition_scope(self) -> str:
        """Management URL of this run's definition."""
        return self.coordinates.definition_scope(
            self.api_id,
            self.version_id,
            self.definition_id,
        )


@dataclass
class DisposableApiEntity:
    """Catalog objects created for this run only.

    `cleanup_needed` is set as soon as the API itself exists and is the only
    state that decides whether deletion is attempted.
    """

    api_id: str
    version_id: str
    definition_id: str
    cleanup_needed: bool = False


def exit_code_for(report: ValidationReport, fail_on_violations: bool) -> int:
    """Map a finished report to a process exit code."""
    if report.status is RunStatus.SUCCESS:
        return 0
    if report.status is RunStatus.VIOLATIONS:
        return 1 if fail_on_violations else 0
    return 1


class RunOrchestrator:
    """Drive one validation run and own the disposable entity lifecycle."""

    def __init__(
        self,
        settings: ValidationSettings,
        client: GovernanceClient | None = None,
        discovery: SpecDiscovery | None = None,
        poller: AnalysisPoller | None = None,
        emitter: Callable[[ValidationReport], Any] | None = None,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            settings: Resolved run settings
            client: Governance client (built from settings if omitted)
            discovery: Spec discovery (default probe client if omitted)
            poller: Analysis poller (built from settings if omitted)
            emitter: Report sink (writes JSON/markdown to settings.output_path if omitted)
            now: UTC clock used for run identifiers and report timestamps
        """
        self.settings = settings
        self.now = now
        coordinates = ServiceCoordinates(
            subscription_id=settings.subscription_id,
            resource_group=settings.resource_group,
            service_name=settings.service_name,
        )
        self.client = client or GovernanceClient(coordinates, api_version=settings.api_version)
        self.discovery = discovery or SpecDiscovery()
        self.poller = poller or AnalysisPoller(
            self.client,
            poll_interval=settings.poll_interval_seconds,
        )
        self.emitter = emitter or (lambda report: emit_report(report, settings.output_path))
        self.started = now()
        self.context = RunContext.create(coordinates, self.started)
        self.entity = DisposableApiEntity(
            api_id=self.context.api_id,
            version_id=self.context.version_id,
            definition_id=self.context.definition_id,
        )
        self.cleanup_error: CleanupFailed | None = None

    def new_report(self) -> ValidationReport:
        """Create the placeholder report for this run."""
        return ValidationReport(
            run_id=self.context.run_id,
            api_id=self.context.api_id,
            version_id=self.context.version_id,
            definition_id=self.context.definition_id,
            subscription_id=self.settings.subscription_id,
            resource_group=self.settings.resource_group,
            service_name=self.settings.service_name,
            target_url=self.settings.target_url,
            analyzer_config=self.settings.analyzer_config,
            started_utc=self.started,
        )

    def run(self) -> ValidationReport:
        """Execute the run; always cleans up and emits the report."""
        report = self.new_report()
        logger.info("Starting ruleset validation run %s", self.context.run_id)

        try:
            self._execute(report)
        except Exception as e:
            logger.error("Validation run failed: %s", e)
            report.status = RunStatus.ERROR
            report.message = str(e)
            if report.payload is None:
                report.payload = {"error": str(e)}
            if report.result_source is None:
                report.result_source = ResultSource.SCRIPT_EXECUTION
        finally:
            if self.entity.cleanup_needed:
                self._cleanup()
            report.finalize(self.now())
            self.emitter(report)

        return report

    def _execute(self, report: ValidationReport) -> None:
        settings = self.settings
        context = self.context
        entity = self.entity

        logger.info("Discovering API description under %s", settings.target_url)
        spec = self.discovery.discover(settings.target_url)
        report.spec_url = spec.url

        logger.info("Creating disposable API %s", entity.api_id)
        self.client.create_api(entity.api_id, title=f"Ruleset test {context.run_id}")
        entity.cleanup_needed = True

        self.client.create_version(entity.api_id, entity.version_id, settings.lifecycle_stage)
        self.client.create_definition(entity.api_id, entity.version_id, entity.definition_id)

        logger.info("Importing %s into %s", spec.url, entity.definition_id)
        self.client.import_specification(
            entity.api_id,
            entity.version_id,
            entity.definition_id,
            spec.content,
        )

        self._request_analysis()

        deadline = self.poller.deadline_after(settings.timeout_seconds)
        outcome = self.poller.poll_for_results(
            context.definition_scope,
            deadline,
            executions_scope=context.coordinates.analyzer_executions_scope(
                settings.analyzer_config,
            ),
            match_terms=[entity.api_id, entity.definition_id],
        )
        report.payload = outcome.payload
        report.result_source = outcome.source
        report.has_violations = has_violations(outcome.payload)

        if report.has_violations:
            report.status = RunStatus.VIOLATIONS
            report.message = (
                f"Ruleset '{settings.analyzer_config}' reported violations "
                f"(source: {outcome.source.value})"
            )
        else:
            report.status = RunStatus.SUCCESS
            report.message = (
                f"No violations reported by ruleset '{settings.analyzer_config}' "
                f"(source: {outcome.source.value})"
            )
        logger.info(report.message)

    def _request_analysis(self) -> None:
        """Ask the service to refresh the definition's analysis state.

        Fire and forget: analysis may already run on import, so the response
        (or its absence) is discarded.
        """
        self.client.authenticated_json_call(
            "POST",
            f"{self.context.definition_scope}/updateAnalysisState",
        )

    def _cleanup(self) -> None:
        """Delete the disposable API once; failures are logged, never raised."""
        logger.info("Deleting disposable API %s", self.entity.api_id)
        try:
            self.client.delete_api(self.entity.api_id)
        except Exception as e:
            detail = e.output if isinstance(e, CommandFailed) and e.output else e
            self.cleanup_error = CleanupFailed(
                f"Could not delete disposable API {self.entity.api_id}: {detail}",
            )
            logger.warning("%s", self.cleanup_error)
