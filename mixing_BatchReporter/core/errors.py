# mixing_BatchReporter/core/errors.py
from __future__ import annotations

class ReportError(Exception):
    """Base class for errors raised by the batch report."""

class ProviderUnavailable(ReportError):
    """The data provider could not deliver a snapshot of raw rows."""

class ConfigError(ReportError, ValueError):
    """A configuration value is missing its expected shape or range."""
