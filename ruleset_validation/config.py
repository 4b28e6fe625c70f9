"""Configuration loading for ruleset validation runs.

Precedence (lowest to highest): built-in defaults, YAML config file,
environment variables, command-line flags.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .governance.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/ruleset_validation.yaml")

DEFAULT_CONFIG: dict[str, Any] = {
    "service": {
        "subscription_id": "",
        "resource_group": "",
        "service_name": "",
        "api_version": "2024-06-01-preview",
    },
    "target": {
        "url": "http://localhost:5000/api/v1",
    },
    "analysis": {
        "analyzer_config": "spectral-openapi",
        "timeout_seconds": 240,
        "poll_interval_seconds": 10,
        "fail_on_violations": True,
        "lifecycle_stage": "testing",
    },
    "output": {
        "report": "reports/ruleset-validation-report.json",
    },
}

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "AZURE_SUBSCRIPTION_ID": ("service", "subscription_id"),
    "APIC_RESOURCE_GROUP": ("service", "resource_group"),
    "APIC_SERVICE_NAME": ("service", "service_name"),
    "RULESET_TARGET_URL": ("target", "url"),
}


@dataclass(frozen=True)
class ValidationSettings:
    """Resolved settings for one validation run."""

    subscription_id: str
    resource_group: str
    service_name: str
    target_url: str = "http://localhost:5000/api/v1"
    analyzer_config: str = "spectral-openapi"
    api_version: str = "2024-06-01-preview"
    timeout_seconds: float = 240
    poll_interval_seconds: float = 10
    fail_on_violations: bool = True
    lifecycle_stage: str = "testing"
    output_path: Path = Path("reports/ruleset-validation-report.json")


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        elif value is None and isinstance(result.get(key), dict):
            continue
        else:
            result[key] = value
    return result


def _section(config: dict, name: str) -> dict:
    """Get a config section, rejecting anything that is not a mapping."""
    section = config.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Config section '{name}' must be a mapping")
    return section


def load_config(config_path: Path | None = None) -> dict:
    """Load configuration from YAML file merged over the defaults."""
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        if config_path is not None:
            logger.warning("Config not found: %s, using defaults", path)
        return _deep_merge(DEFAULT_CONFIG, {})

    with path.open() as f:
        loaded = yaml.safe_load(f) or {}
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")

    logger.info("Loaded configuration from %s", path)
    return _deep_merge(DEFAULT_CONFIG, loaded.get("ruleset_validation", loaded))


def apply_env_overrides(config: dict, environ: dict[str, str] | None = None) -> dict:
    """Overlay non-empty environment variables onto a config dict."""
    env = os.environ if environ is None else environ
    overrides: dict[str, dict[str, str]] = {}
    for var, (section, key) in ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            overrides.setdefault(section, {})[key] = value
    return _deep_merge(config, overrides)


def build_settings(config: dict, **overrides: Any) -> ValidationSettings:
    """Resolve a config dict plus explicit overrides into ValidationSettings.

    Overrides whose value is None are ignored.

    Raises:
        ConfigurationError: If a section is not a mapping, service coordinates
            are missing or numbers are invalid
    """
    service = _section(config, "service")
    analysis = _section(config, "analysis")

    values: dict[str, Any] = {
        "subscription_id": service.get("subscription_id", ""),
        "resource_group": service.get("resource_group", ""),
        "service_name": service.get("service_name", ""),
        "api_version": service.get("api_version"),
        "target_url": _section(config, "target").get("url"),
        "analyzer_config": analysis.get("analyzer_config"),
        "timeout_seconds": analysis.get("timeout_seconds"),
        "poll_interval_seconds": analysis.get("poll_interval_seconds"),
        "fail_on_violations": analysis.get("fail_on_violations"),
        "lifecycle_stage": analysis.get("lifecycle_stage"),
        "output_path": _section(config, "output").get("report"),
    }
    values.update({key: value for key, value in overrides.items() if value is not None})

    missing = [
        name
        for name in ("subscription_id", "resource_group", "service_name")
        if not values.get(name)
    ]
    if missing:
        raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")

    try:
        timeout = float(values["timeout_seconds"])
        interval = float(values["poll_interval_seconds"])
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid timeout or poll interval: {e}") from e
    if timeout <= 0 or interval <= 0:
        raise ConfigurationError("Timeout and poll interval must be positive")

    return ValidationSettings(
        subscription_id=str(values["subscription_id"]),
        resource_group=str(values["resource_group"]),
        service_name=str(values["service_name"]),
        target_url=str(values["target_url"]),
        analyzer_config=str(values["analyzer_config"]),
        api_version=str(values["api_version"]),
        timeout_seconds=timeout,
        poll_interval_seconds=interval,
        fail_on_violations=bool(values["fail_on_violations"]),
        lifecycle_stage=str(values["lifecycle_stage"]),
        output_path=Path(values["output_path"]),
    )
