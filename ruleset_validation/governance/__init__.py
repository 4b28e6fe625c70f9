"""API Center governance integration.

Building blocks for validating a live service's API description against a
managed ruleset:
- Discovery of the OpenAPI/Swagger document served by the target
- Management-plane and REST access to the API Center service
- Polling for analysis results with an analyzer-execution fallback
- Schema-agnostic violation classification
- JSON/markdown report writing
"""

from .analysis_poller import AnalysisPoller, PollOutcome
from .classifier import has_violations
from .exceptions import (
    CleanupFailed,
    CommandFailed,
    ConfigurationError,
    NoAnalysisResults,
    RulesetValidationError,
    SpecNotFound,
)
from .governance_client import GovernanceClient, ServiceCoordinates
from .report_generator import ReportWriter, ResultSource, RunStatus, ValidationReport
from .spec_discovery import DiscoveredSpec, SpecDiscovery

__all__ = [
    "AnalysisPoller",
    "CleanupFailed",
    "CommandFailed",
    "ConfigurationError",
    "DiscoveredSpec",
    "GovernanceClient",
    "NoAnalysisResults",
    "PollOutcome",
    "ReportWriter",
    "ResultSource",
    "RulesetValidationError",
    "RunStatus",
    "ServiceCoordinates",
    "SpecDiscovery",
    "SpecNotFound",
    "ValidationReport",
    "has_violations",
]
