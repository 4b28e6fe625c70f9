"""Azure API Center access for ruleset validation.

Uses two kinds of remote calls:
- Management-plane entity operations through the `az apic` CLI
  (create/delete the disposable API, version, definition; import a spec)
- Authenticated REST calls against arbitrary management URLs, returning
  parsed JSON or None
"""

import json
import logging
import os
import shlex
import subprocess
import tempfile
from dataclasses import dataclass
from typing import Any

import httpx

from .exceptions import CommandFailed

logger = logging.getLogger(__name__)

MANAGEMENT_ENDPOINT = "https://management.azure.com"
DEFAULT_API_VERSION = "2024-06-01-preview"
DEFAULT_WORKSPACE = "default"

# Specification kind for inline imports
OPENAPI_SPECIFICATION = {"name": "openapi", "version": "3.0.1"}


@dataclass
class CLIResult:
    """Result from CLI command execution."""

    success: bool
    output: str = ""
    error: str | None = None
    return_code: int = 0


@dataclass(frozen=True)
class ServiceCoordinates:
    """Location of the API Center service instance."""

    subscription_id: str
    resource_group: str
    service_name: str
    workspace: str = DEFAULT_WORKSPACE

    @property
    def workspace_scope(self) -> str:
        """Management URL of the service workspace."""
        return (
            f"{MANAGEMENT_ENDPOINT}/subscriptions/{self.subscription_id}"
            f"/resourceGroups/{self.resource_group}"
            f"/providers/Microsoft.ApiCenter/services/{self.service_name}"
            f"/workspaces/{self.workspace}"
        )

    def definition_scope(self, api_id: str, version_id: str, definition_id: str) -> str:
        """Management URL of an API definition."""
        return (
            f"{self.workspace_scope}/apis/{api_id}"
            f"/versions/{version_id}/definitions/{definition_id}"
        )

    def analyzer_executions_scope(self, analyzer_config: str) -> str:
        """Management URL of an analyzer configuration's execution feed."""
        return f"{self.workspace_scope}/analyzerConfigs/{analyzer_config}/analysisExecutions"


def format_command(args: list[str]) -> str:
    """Render an argument list as a copy-pasteable shell command."""
    return shlex.join(args)


class GovernanceClient:
    """Thin client over the API Center management plane.

    Provides:
    - `run_management_command` for `az` operations that must succeed
    - `authenticated_json_call` for soft-failing REST calls
    - Convenience wrappers for the disposable API lifecycle
    """

    def __init__(
        self,
        coordinates: ServiceCoordinates,
        api_version: str = DEFAULT_API_VERSION,
        executable: str = "az",
        timeout: int = 120,
        http_timeout: float = 30.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            coordinates: Subscription, resource group and service name
            api_version: Management REST API version
            executable: Azure CLI executable
            timeout: Command timeout in seconds
            http_timeout: REST call timeout in seconds
            http_client: HTTP client for REST calls (created if omitted)
        """
        self.coordinates = coordinates
        self.api_version = api_version
        self.executable = executable
        self.timeout = timeout
        self.http_timeout = http_timeout
        self.http_client = http_client or httpx.Client()
        self._access_token: str | None = None

    def _run_command(self, args: list[str]) -> CLIResult:
        """Run a CLI command and capture its output.

        Args:
            args: Command arguments (without executable)

        Returns:
            CLIResult with combined output or error
        """
        full_cmd = [self.executable, *args]
        logger.debug("Running: %s", format_command(full_cmd)[:500])

        try:
            process = subprocess.run(
                full_cmd,
                check=False,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            return CLIResult(
                success=False,
                error=f"Command timed out after {self.timeout} seconds",
                return_code=-1,
            )
        except FileNotFoundError:
            return CLIResult(
                success=False,
                error=f"CLI executable '{self.executable}' not found",
                return_code=-1,
            )
        except OSError as e:
            return CLIResult(
                success=False,
                error=f"Could not start '{self.executable}': {e}",
                return_code=-1,
            )

        stdout = (process.stdout or "").strip()
        stderr = (process.stderr or "").strip()
        combined = "\n".join(part for part in (stdout, stderr) if part)

        if process.returncode != 0:
            return CLIResult(
                success=False,
                output=combined,
                error=stderr or f"Command failed with code {process.returncode}",
                return_code=process.returncode,
            )

        return CLIResult(success=True, output=stdout, return_code=0)

    def run_management_command(self, args: list[str]) -> str:
        """Run a management-plane command that must succeed.

        Args:
            args: Command arguments (without executable)

        Returns:
            Command stdout

        Raises:
            CommandFailed: If the command exits non-zero or cannot be started
        """
        result = self._run_command(args)
        if not result.success:
            raise CommandFailed(
                format_command([self.executable, *args])[:500],
                result.output or result.error or "",
                result.return_code,
            )
        return result.output

    def _service_args(self) -> list[str]:
        """Arguments locating the API Center service."""
        return [
            "--subscription",
            self.coordinates.subscription_id,
            "--resource-group",
            self.coordinates.resource_group,
            "--service-name",
            self.coordinates.service_name,
        ]

    def create_api(self, api_id: str, title: str) -> str:
        """Create a REST API entity."""
        return self.run_management_command(
            [
                "apic",
                "api",
                "create",
                *self._service_args(),
                "--api-id",
                api_id,
                "--title",
                title,
                "--type",
                "rest",
            ],
        )

    def create_version(self, api_id: str, version_id: str, lifecycle_stage: str) -> str:
        """Create a version under an API."""
        return self.run_management_command(
            [
                "apic",
                "api",
                "version",
                "create",
                *self._service_args(),
                "--api-id",
                api_id,
                "--version-id",
                version_id,
                "--title",
                version_id,
                "--lifecycle-stage",
                lifecycle_stage,
            ],
        )

    def create_definition(self, api_id: str, version_id: str, definition_id: str) -> str:
        """Create a definition under an API version."""
        return self.run_management_command(
            [
                "apic",
                "api",
                "definition",
                "create",
                *self._service_args(),
                "--api-id",
                api_id,
                "--version-id",
                version_id,
                "--definition-id",
                definition_id,
                "--title",
                definition_id,
            ],
        )

    def import_specification(
        self,
        api_id: str,
        version_id: str,
        definition_id: str,
        content: str,
    ) -> str:
        """Import raw document text into a definition as an inline OpenAPI spec.

        The content is staged in a temporary file and passed as `@<path>`,
        which the CLI reads verbatim; a single argv entry is capped at
        128 KiB on Linux.
        """
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            suffix=".json",
            prefix="apic-import-",
            delete=False,
        ) as f:
            f.write(content)
            staged_path = f.name

        try:
            return self.run_management_command(
                [
                    "apic",
                    "api",
                    "definition",
                    "import-specification",
                    *self._service_args(),
                    "--api-id",
                    api_id,
                    "--version-id",
                    version_id,
                    "--definition-id",
                    definition_id,
                    "--format",
                    "inline",
                    "--value",
                    f"@{staged_path}",
                    "--specification",
                    json.dumps(OPENAPI_SPECIFICATION, separators=(",", ":")),
                ],
            )
        finally:
            os.unlink(staged_path)

    def delete_api(self, api_id: str) -> str:
        """Delete an API together with its versions and definitions."""
        return self.run_management_command(
            ["apic", "api", "delete", *self._service_args(), "--api-id", api_id, "--yes"],
        )

    def get_access_token(self) -> str:
        """Get a bearer token for the management endpoint (cached)."""
        if self._access_token is None:
            output = self.run_management_command(
                [
                    "account",
                    "get-access-token",
                    "--resource",
                    MANAGEMENT_ENDPOINT,
                    "--query",
                    "accessToken",
                    "--output",
                    "tsv",
                ],
            )
            self._access_token = output.strip()
        return self._access_token

    def authenticated_json_call(
        self,
        method: str,
        url: str,
        body: Any = None,
    ) -> Any:
        """Call a management URL and return its parsed JSON.

        Returns None on any failure: no token, transport error, non-success
        status or a body that is not JSON. Callers treat None as "nothing
        yet" rather than as a fatal error.
        """
        try:
            token = self.get_access_token()
        except CommandFailed as e:
            logger.warning("Could not obtain access token: %s", e.output or e)
            return None

        params = None if "api-version=" in url else {"api-version": self.api_version}

        try:
            response = self.http_client.request(
                method,
                url,
                params=params,
                json=body,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.http_timeout,
            )
        except httpx.HTTPError as e:
            logger.debug("%s %s failed: %s", method, url, e)
            return None

        if not response.is_success:
            logger.debug("%s %s returned %s", method, url, response.status_code)
            return None

        try:
            return response.json()
        except ValueError:
            logger.debug("%s %s returned a non-JSON body", method, url)
            return None
