"""Bulk address upload parsing."""

from backend_daimonitor.intake.parser import parse_address_line, parse_address_lines

__all__ = ["parse_address_line", "parse_address_lines"]
