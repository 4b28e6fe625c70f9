#!/usr/bin/env python3
"""API Center ruleset validation.

Discovers the OpenAPI document served by a running service, registers it as
a disposable API in Azure API Center, waits for ruleset analysis and writes a
pass/fail report. The disposable API is deleted on every exit path.

Usage:
    python -m ruleset_validation.validate --subscription-id ... \\
        --resource-group ... --service-name ...
    python -m ruleset_validation.validate --target-url https://svc/api/v1
    python -m ruleset_validation.validate --no-fail-on-violations
    python -m ruleset_validation.validate --dry-run   # List probe URLs only
"""

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import ValidationSettings, apply_env_overrides, build_settings, load_config
from .governance import ConfigurationError, RunStatus, ServiceCoordinates, ValidationReport
from .governance.report_generator import utc_now
from .governance.spec_discovery import build_candidate_urls
from .orchestrator import RunContext, RunOrchestrator, exit_code_for

console = Console()

STATUS_STYLES = {
    RunStatus.SUCCESS: "bold green",
    RunStatus.VIOLATIONS: "bold yellow",
    RunStatus.ERROR: "bold red",
}


def configure_logging(verbose: bool = False) -> None:
    """Route library log records through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate a live service's OpenAPI document against an API Center ruleset",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to YAML configuration (default: config/ruleset_validation.yaml)",
    )
    parser.add_argument("--subscription-id", help="Azure subscription ID")
    parser.add_argument("--resource-group", "-g", help="Resource group of the API Center service")
    parser.add_argument("--service-name", "-s", help="API Center service name")
    parser.add_argument("--target-url", "-u", help="Base URL of the service to validate")
    parser.add_argument(
        "--analyzer-config",
        help="Analyzer configuration name (default: spectral-openapi)",
    )
    parser.add_argument("--api-version", help="API Center management API version")
    parser.add_argument(
        "--timeout-seconds",
        type=float,
        help="Overall analysis polling timeout (default: 240)",
    )
    parser.add_argument(
        "--poll-interval-seconds",
        type=float,
        help="Seconds between analysis result polls (default: 10)",
    )
    parser.add_argument(
        "--fail-on-violations",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Exit non-zero when the ruleset reports violations (default: true)",
    )
    parser.add_argument("--lifecycle-stage", help="Lifecycle stage of the disposable version")
    parser.add_argument("--output", "-o", type=Path, help="Path of the JSON report")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show run identifiers and probe URLs without calling anything",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def resolve_settings(args: argparse.Namespace) -> ValidationSettings:
    """Combine config file, environment and flags into settings."""
    config = apply_env_overrides(load_config(args.config))
    return build_settings(
        config,
        subscription_id=args.subscription_id,
        resource_group=args.resource_group,
        service_name=args.service_name,
        target_url=args.target_url,
        analyzer_config=args.analyzer_config,
        api_version=args.api_version,
        timeout_seconds=args.timeout_seconds,
        poll_interval_seconds=args.poll_interval_seconds,
        fail_on_violations=args.fail_on_violations,
        lifecycle_stage=args.lifecycle_stage,
        output_path=args.output,
    )


def print_dry_run(settings: ValidationSettings) -> None:
    """List what a run would create and probe."""
    context = RunContext.create(
        ServiceCoordinates(
            settings.subscription_id,
            settings.resource_group,
            settings.service_name,
        ),
        utc_now(),
    )
    console.print("\n[yellow]Dry run - no requests will be made[/yellow]")
    console.print(f"  API:        {context.api_id}")
    console.print(f"  Version:    {context.version_id}")
    console.print(f"  Definition: {context.definition_id}")
    console.print("\n[blue]Discovery candidates (in probe order):[/blue]")
    for url in build_candidate_urls(settings.target_url):
        console.print(f"  {url}")


def print_summary(report: ValidationReport, exit_code: int) -> None:
    """Print run summary to console."""
    table = Table(title="Ruleset Validation Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Run ID", report.run_id)
    table.add_row("Target URL", report.target_url)
    table.add_row("Spec URL", report.spec_url or "-")
    table.add_row("Analyzer", report.analyzer_config)
    table.add_row("Status", f"[{STATUS_STYLES[report.status]}]{report.status.value}[/]")
    table.add_row("Has Violations", str(report.has_violations))
    table.add_row("Result Source", report.result_source.value if report.result_source else "-")
    table.add_row("Duration", f"{report.duration_seconds:.1f}s")
    table.add_row("Exit Code", str(exit_code))

    console.print(table)
    console.print(report.message, markup=False)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        settings = resolve_settings(args)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        return 2

    console.print("[bold blue]API Center Ruleset Validation[/bold blue]")
    console.print(f"  Service:  {settings.service_name} ({settings.resource_group})")
    console.print(f"  Target:   {settings.target_url}")
    console.print(f"  Analyzer: {settings.analyzer_config}")

    if args.dry_run:
        print_dry_run(settings)
        return 0

    report = RunOrchestrator(settings).run()
    exit_code = exit_code_for(report, settings.fail_on_violations)
    print_summary(report, exit_code)
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
