"""Exception hierarchy for ruleset validation runs."""


class RulesetValidationError(Exception):
    """Base exception for all ruleset validation errors."""


class ConfigurationError(RulesetValidationError):
    """Raised when required settings are missing or invalid."""


class SpecNotFound(RulesetValidationError):
    """Raised when no candidate URL served a recognizable API description."""

    def __init__(self, base_url: str, attempted: int) -> None:
        self.base_url = base_url
        self.attempted = attempted
        super().__init__(
            f"No OpenAPI/Swagger document found under {base_url} "
            f"({attempted} candidate URLs tried)",
        )


class CommandFailed(RulesetValidationError):
    """Raised when a management-plane command exits non-zero."""

    def __init__(self, command: str, output: str, return_code: int | None = None) -> None:
        self.command = command
        self.output = output
        self.return_code = return_code
        super().__init__(f"Command failed: {command}\n{output}".rstrip())


class NoAnalysisResults(RulesetValidationError):
    """Raised when neither result feed produced anything before the deadline."""


class CleanupFailed(RulesetValidationError):
    """Raised when the disposable API could not be deleted.

    Never propagated past the orchestrator.
    """
