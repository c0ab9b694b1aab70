"""Slug derivation for categories and subcategories."""

import re

_WHITESPACE = re.compile(r"\s+")
_INVALID = re.compile(r"[^a-z0-9-]")
_HYPHENS = re.compile(r"-+")


def slugify(name: str) -> str:
    """Kebab-case a display name.

    Lowercases, turns whitespace runs into hyphens, drops everything outside
    [a-z0-9-], collapses repeated hyphens and trims them from both ends.

    >>> slugify("Men's Wear")
    'mens-wear'
    """
    slug = _WHITESPACE.sub("-", name.strip().lower())
    slug = _INVALID.sub("", slug)
    slug = _HYPHENS.sub("-", slug)
    return slug.strip("-")


def resolve_slug(name: str, explicit: str | None = None) -> str:
    """Use the explicit slug when given, otherwise derive one from the name."""
    if explicit and explicit.strip():
        return explicit.strip()
    return slugify(name)
