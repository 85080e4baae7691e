"""Tests for text modifiers."""

from __future__ import annotations

import pytest

from story_tables.engine.transforms import (
    apply_modifiers,
    capitalize,
    indefinite_article,
    pluralize,
    singularize,
)


class TestWordForms:
    """Tests for individual transforms."""

    @pytest.mark.parametrize(
        ("word", "plural"),
        [
            ("sword", "swords"),
            ("box", "boxes"),
            ("church", "churches"),
            ("city", "cities"),
            ("day", "days"),
            ("wolf", "wolves"),
            ("knife", "knives"),
        ],
    )
    def test_pluralize(self, word: str, plural: str) -> None:
        """Test regular plural rules."""
        assert pluralize(word) == plural

    @pytest.mark.parametrize(
        ("plural", "word"),
        [("swords", "sword"), ("boxes", "box"), ("cities", "city"), ("glass", "glass")],
    )
    def test_singularize(self, plural: str, word: str) -> None:
        """Test reversing plural rules."""
        assert singularize(plural) == word

    @pytest.mark.parametrize(
        ("word", "expected"),
        [("owl", "an owl"), ("raven", "a raven"), ("Eel", "an Eel")],
    )
    def test_indefinite_article(self, word: str, expected: str) -> None:
        """Test a/an selection by first letter."""
        assert indefinite_article(word) == expected

    def test_capitalize_lowers_rest(self) -> None:
        """Test capitalize lower-cases the remainder."""
        assert capitalize("sILVER") == "Silver"


class TestApplyModifiers:
    """Tests for modifier chains."""

    def test_order_matters(self) -> None:
        """Test modifiers run left to right."""
        assert apply_modifiers("owl", ["article", "uppercase"]) == "AN OWL"
        assert apply_modifiers("owl", ["uppercase", "article"]) == "an OWL"

    def test_unknown_ignored(self) -> None:
        """Test unknown names are skipped."""
        assert apply_modifiers("owl", ["glitter", "the"]) == "the owl"
