"""Text modifiers applied to resolved placeholders.

Modifiers run left to right, each receiving the previous one's output.
Unknown modifiers are ignored so a template typo never breaks resolution.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable


_VOWELS = "aeiou"
_SIBILANT_ENDINGS = ("s", "x", "z", "ch", "sh")


def _is_vowel(char: str) -> bool:
    return bool(char) and char.lower() in _VOWELS


def capitalize(text: str) -> str:
    """First character upper case, the rest lower case."""
    return text[:1].upper() + text[1:].lower()


def pluralize(text: str) -> str:
    """Pluralize a word with regular English suffix rules.

    Example:
        >>> pluralize("city"), pluralize("box"), pluralize("wolf")
        ('cities', 'boxes', 'wolves')
    """
    word = text.strip()
    if not word:
        return word
    if word.endswith(_SIBILANT_ENDINGS):
        return word + "es"
    if word.endswith("y") and len(word) > 1 and not _is_vowel(word[-2]):
        return word[:-1] + "ies"
    if word.endswith("fe"):
        return word[:-2] + "ves"
    if word.endswith("f"):
        return word[:-1] + "ves"
    return word + "s"


def singularize(text: str) -> str:
    """Reverse the regular plural suffix rules.

    Example:
        >>> singularize("cities"), singularize("boxes"), singularize("glass")
        ('city', 'box', 'glass')
    """
    word = text.strip()
    if word.endswith("ies"):
        return word[:-3] + "y"
    if word.endswith("ves"):
        return word[:-3] + "f"
    if word.endswith(tuple(f"{ending}es" for ending in _SIBILANT_ENDINGS)):
        return word[:-2]
    if word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def indefinite_article(text: str) -> str:
    """Prefix "a" or "an" depending on the first letter."""
    article = "an" if _is_vowel(text[:1]) else "a"
    return f"{article} {text}"


def definite_article(text: str) -> str:
    """Prefix "the"."""
    return f"the {text}"


TEXT_MODIFIERS: dict[str, Callable[[str], str]] = {
    "capitalize": capitalize,
    "uppercase": str.upper,
    "lowercase": str.lower,
    "plural": pluralize,
    "singular": singularize,
    "article": indefinite_article,
    "the": definite_article,
}
"""Text modifiers by name."""


def apply_modifiers(text: str, modifiers: Iterable[str]) -> str:
    """Apply text modifiers in order, skipping unknown names.

    Args:
        text: Resolved placeholder text.
        modifiers: Modifier names, left to right.

    Returns:
        The transformed text.
    """
    for name in modifiers:
        transform = TEXT_MODIFIERS.get(name.strip().lower())
        if transform is not None:
            text = transform(text)
    return text


__all__ = [
    "TEXT_MODIFIERS",
    "apply_modifiers",
    "capitalize",
    "pluralize",
    "singularize",
    "indefinite_article",
    "definite_article",
]
