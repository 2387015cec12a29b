"""Validation of structured guard output."""

from .report import SCHEMA_PATH, validate_report

__all__ = ["SCHEMA_PATH", "validate_report"]
