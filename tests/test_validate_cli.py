"""Tests for the validate-ruleset command line entry point."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from ruleset_validation import validate
from ruleset_validation.governance import ResultSource, RunStatus, ValidationReport

REQUIRED = ["--subscription-id", "sub-1", "--resource-group", "rg-1", "--service-name", "apic-1"]


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Run from an empty directory with no config or CI environment."""
    monkeypatch.chdir(tmp_path)
    for var in (
        "AZURE_SUBSCRIPTION_ID",
        "APIC_RESOURCE_GROUP",
        "APIC_SERVICE_NAME",
        "RULESET_TARGET_URL",
        "GITHUB_STEP_SUMMARY",
    ):
        monkeypatch.delenv(var, raising=False)


def finished_report(status: RunStatus) -> ValidationReport:
    report = ValidationReport(
        run_id="20261017120000",
        api_id="ruleset-test-20261017120000",
        version_id="2026-10-17",
        definition_id="openapi",
        subscription_id="sub-1",
        resource_group="rg-1",
        service_name="apic-1",
        target_url="http://localhost:5000/api/v1",
        analyzer_config="spectral-openapi",
        status=status,
        has_violations=status is RunStatus.VIOLATIONS,
        result_source=ResultSource.DEFINITION_ANALYSIS_RESULTS,
        message="[done]",
    )
    report.finalize()
    return report


class TestMain:
    """Test argument handling and exit codes."""

    def test_missing_coordinates_is_configuration_error(self):
        assert validate.main([]) == 2

    def test_dry_run_makes_no_calls(self, capsys):
        with patch.object(validate, "RunOrchestrator") as orchestrator:
            exit_code = validate.main([*REQUIRED, "--target-url", "https://svc/api/v1", "--dry-run"])

        assert exit_code == 0
        orchestrator.assert_not_called()
        out = capsys.readouterr().out
        assert "https://svc/api/v1/v1/openapi/v1.json" in out
        assert "https://svc/api?format=swagger-link-json" in out

    @pytest.mark.parametrize(
        ("status", "flags", "expected"),
        [
            (RunStatus.SUCCESS, [], 0),
            (RunStatus.VIOLATIONS, [], 1),
            (RunStatus.VIOLATIONS, ["--no-fail-on-violations"], 0),
            (RunStatus.VIOLATIONS, ["--fail-on-violations"], 1),
            (RunStatus.ERROR, ["--no-fail-on-violations"], 1),
        ],
    )
    def test_exit_codes(self, status, flags, expected):
        with patch.object(validate, "RunOrchestrator") as orchestrator:
            orchestrator.return_value.run.return_value = finished_report(status)
            assert validate.main([*REQUIRED, *flags]) == expected

    def test_flags_reach_settings(self, tmp_path):
        with patch.object(validate, "RunOrchestrator") as orchestrator:
            orchestrator.return_value.run.return_value = finished_report(RunStatus.SUCCESS)
            validate.main(
                [
                    *REQUIRED,
                    "--target-url",
                    "https://orders.example.com",
                    "--analyzer-config",
                    "custom-rules",
                    "--timeout-seconds",
                    "60",
                    "--poll-interval-seconds",
                    "5",
                    "--lifecycle-stage",
                    "development",
                    "--output",
                    str(tmp_path / "out.json"),
                ],
            )

        settings = orchestrator.call_args[0][0]
        assert settings.target_url == "https://orders.example.com"
        assert settings.analyzer_config == "custom-rules"
        assert settings.timeout_seconds == 60
        assert settings.poll_interval_seconds == 5
        assert settings.lifecycle_stage == "development"
        assert settings.output_path == tmp_path / "out.json"

    def test_environment_supplies_coordinates(self, monkeypatch):
        monkeypatch.setenv("AZURE_SUBSCRIPTION_ID", "sub-env")
        monkeypatch.setenv("APIC_RESOURCE_GROUP", "rg-env")
        monkeypatch.setenv("APIC_SERVICE_NAME", "apic-env")

        with patch.object(validate, "RunOrchestrator") as orchestrator:
            orchestrator.return_value.run.return_value = finished_report(RunStatus.SUCCESS)
            assert validate.main([]) == 0

        assert orchestrator.call_args[0][0].service_name == "apic-env"
