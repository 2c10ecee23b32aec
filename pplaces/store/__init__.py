"""Report output."""

from .output import ReportFormatter, format_age

__all__ = ["ReportFormatter", "format_age"]
