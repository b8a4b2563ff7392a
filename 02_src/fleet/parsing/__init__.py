"""Parsing module."""

from .parser import normalize_action, normalize_text, parse_action

__all__ = ["normalize_action", "normalize_text", "parse_action"]
