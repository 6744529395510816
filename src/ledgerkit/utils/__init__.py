"""Utility functions for ledgerkit."""

from ledgerkit.utils.date_parser import parse_date, parse_datetime, ensure_utc
from ledgerkit.utils.slug import is_slug, slugify

__all__ = ["parse_date", "parse_datetime", "ensure_utc", "is_slug", "slugify"]
