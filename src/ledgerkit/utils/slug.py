"""Slug helpers used for account groups and path comparison."""

import re

_SLUG_RE = re.compile(r"^[a-z0-9_]{2,40}$")
_NON_SLUG_RE = re.compile(r"[^a-z0-9_]+")
_UNDERSCORES_RE = re.compile(r"_{2,}")

MAX_SLUG_LEN = 40


def is_slug(value: str) -> bool:
    """Return True if value matches ^[a-z0-9_]{2,40}$."""
    return bool(_SLUG_RE.match(value or ""))


def slugify(value: str) -> str:
    """Convert free text to a slug.

    Lowercases, replaces runs of characters outside [a-z0-9_] with a single
    underscore, collapses repeated underscores, truncates to 40 characters and
    trims leading/trailing underscores.

    Examples:
        >>> slugify("Monzo")
        'monzo'
        >>> slugify("  Joe's Coffee & Co ")
        'joe_s_coffee_co'
    """
    if not value:
        return ""
    slug = _NON_SLUG_RE.sub("_", value.lower())
    slug = _UNDERSCORES_RE.sub("_", slug)
    return slug[:MAX_SLUG_LEN].strip("_")
