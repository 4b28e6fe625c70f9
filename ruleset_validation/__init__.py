"""Validate live REST services against an Azure API Center ruleset."""

__version__ = "1.0.0"
