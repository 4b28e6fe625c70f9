"""Utility modules for ruleset validation reports."""

from .report_base import BaseReporter

__all__ = ["BaseReporter"]
