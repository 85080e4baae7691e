"""Engine-wide constants for the story table engine.

This module defines the die size used for table lookups, the variables and
functions conditional expressions may reference, and the denylist that
screens expressions before they are parsed.
"""

from __future__ import annotations

import re

# =============================================================================
# Rolling
# =============================================================================

DIE_SIZE = 100
"""Faces of the die used for weighted table lookups (d100)."""

DEFAULT_ADVANTAGE_COUNT = 2
"""Dice rolled for advantage when a table does not say otherwise."""

DEFAULT_MAX_REROLLS = 3
"""Re-roll budget for the reroll strategy."""

DEFAULT_MAX_DEPTH = 10
"""Nesting limit for placeholder and relationship expansion."""

DEFAULT_STORY_ID = "default"
"""Story id used when a caller does not supply one."""

LINKED_MARKER = "[LINKED:{table}]"
"""Marker appended to a description whose entry links to another table."""

# =============================================================================
# Caching
# =============================================================================

CACHE_TTL_SECONDS = 5 * 60
"""Default lifetime of a cache entry."""

MAX_CACHE_SIZE = 1000
"""Default maximum entries per cache."""

CACHE_EVICTION_RATIO = 0.25
"""Fraction of a full cache evicted on insert."""

# =============================================================================
# Conditional Expressions
# =============================================================================

CONTEXT_VARIABLES: dict[str, str] = {
    # Character variables
    "character_level": "Character level (number)",
    "character_class": "Character class (string)",
    "party_size": "Number of party members (number)",
    # Story variables
    "story_progress": "Story progress percentage (0-100)",
    "current_season": "Current season (spring, summer, autumn, winter)",
    "location_type": "Type of current location (string)",
    # Roll context variables
    "roll_count": "Number of previous rolls in this context",
    "depth": "Current nesting depth of table rolls",
    "story_id": "Identifier of the current story",
    "last_result": "Description of the last table result",
    "last_table": "Name of the last table rolled on",
}
"""Documented variables available to conditional expressions."""

INJECTED_VARIABLES = frozenset(
    {"roll_count", "depth", "story_id", "last_result", "last_table"}
)
"""Variables the engine derives from the roll context itself."""

EXAMPLE_CONDITIONS: dict[str, str] = {
    "Simple Level Check": "character_level >= 5",
    "Class Condition": 'character_class === "wizard"',
    "Multiple Conditions": "character_level >= 10 && party_size > 2",
    "Season Check": 'current_season === "winter"',
    "Progress Gate": "story_progress >= 50",
    "Random Chance": "Math.random() < 0.3",
    "Complex Logic": (
        '(character_level >= 5 && current_season === "winter") || story_progress >= 75'
    ),
    "Previous Result": 'last_result.includes("sword")',
    "Roll Count": "roll_count < 3",
    "Location Check": 'location_type === "dungeon" || location_type === "cave"',
}
"""Sample expressions for condition builders."""

VALIDATION_CONTEXT: dict[str, object] = {
    "character_level": 1,
    "party_size": 4,
    "current_season": "spring",
    "story_progress": 0,
    "character_class": "fighter",
    "location_type": "tavern",
    "roll_count": 0,
    "depth": 0,
    "story_id": DEFAULT_STORY_ID,
    "last_result": "test",
    "last_table": "test",
    "roll_value": 50,
    "reroll_count": 0,
    "source_result": "test",
    "source_table": "test",
}
"""Dummy scope used to type-check expressions during validation."""

FORBIDDEN_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"eval\s*\("),
    re.compile(r"exec\s*\("),
    re.compile(r"Function\s*\("),
    re.compile(r"constructor"),
    re.compile(r"prototype"),
    re.compile(r"__"),
    re.compile(r"window"),
    re.compile(r"document"),
    re.compile(r"global"),
    re.compile(r"import"),
    re.compile(r"require\s*\("),
    re.compile(r"compile\s*\("),
    re.compile(r"open\s*\("),
    re.compile(r"process"),
    re.compile(r"subprocess"),
    re.compile(r"\bos\."),
    re.compile(r"\bsys\."),
    re.compile(r"setTimeout"),
    re.compile(r"setInterval"),
    re.compile(r"fetch"),
    re.compile(r"XMLHttpRequest"),
)
"""Host-escape patterns rejected before an expression is parsed."""


__all__ = [
    # Rolling
    "DIE_SIZE",
    "DEFAULT_ADVANTAGE_COUNT",
    "DEFAULT_MAX_REROLLS",
    "DEFAULT_MAX_DEPTH",
    "DEFAULT_STORY_ID",
    "LINKED_MARKER",
    # Caching
    "CACHE_TTL_SECONDS",
    "MAX_CACHE_SIZE",
    "CACHE_EVICTION_RATIO",
    # Expressions
    "CONTEXT_VARIABLES",
    "INJECTED_VARIABLES",
    "EXAMPLE_CONDITIONS",
    "VALIDATION_CONTEXT",
    "FORBIDDEN_PATTERNS",
]
