"""Tests for slug derivation."""

import pytest

from catalog_admin.core.slugs import resolve_slug, slugify


class TestSlugify:
    """Tests for slugify."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Men's Wear", "mens-wear"),
            ("Summer Deals", "summer-deals"),
            ("  Home   &  Garden ", "home-garden"),
            ("T-Shirts", "t-shirts"),
            ("Kids -- Toys", "kids-toys"),
            ("ÄÖÜ", ""),
        ],
    )
    def test_slugify(self, name: str, expected: str):
        assert slugify(name) == expected

    def test_slug_is_kebab_case(self):
        slug = slugify("Running Shoes 2024!")
        assert slug == "running-shoes-2024"
        assert not slug.startswith("-")
        assert not slug.endswith("-")


class TestResolveSlug:
    """Tests for resolve_slug."""

    def test_explicit_slug_wins(self):
        assert resolve_slug("Men's Wear", "menswear") == "menswear"

    def test_blank_explicit_slug_is_ignored(self):
        assert resolve_slug("Men's Wear", "   ") == "mens-wear"

    def test_derived_when_missing(self):
        assert resolve_slug("Summer Deals") == "summer-deals"
