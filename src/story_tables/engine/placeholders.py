"""Template expansion for bracketed table references.

Placeholders take the forms ``{table}``, ``{table.modifier}`` and
``{table.mod1.mod2}``. Two inline forms roll dice without a table:
``{roll 2d6+3}`` (dice notation) and ``{rand 1-10}`` (uniform integer).
A ``pick N`` modifier draws N distinct entries joined with ", ".

Unknown tables and malformed inline rolls are left verbatim in the output;
unknown modifiers are ignored. Produced text is resolved again, one level
deeper, until no placeholders remain or the depth limit is reached.

Example:
    >>> resolver = PlaceholderResolver(registry, tracker, dice)
    >>> resolver.resolve("The {adjective.capitalize} {animal.capitalize}")
    'The Rusty Owl'
"""

from __future__ import annotations

import re
from collections.abc import Callable

from story_tables.core.constants import DEFAULT_MAX_DEPTH, DEFAULT_STORY_ID
from story_tables.core.exceptions import DiceRollError
from story_tables.core.logging import get_logger
from story_tables.engine.consumption import ConsumptionTracker
from story_tables.engine.dice import DiceRoller
from story_tables.engine.registry import TableRegistry
from story_tables.engine.transforms import apply_modifiers
from story_tables.models.tables import RandomTable


logger = get_logger(__name__)

PLACEHOLDER_RE = re.compile(r"\{([^{}]+)\}")
_ROLL_RE = re.compile(r"^roll\s+(.+)$", re.IGNORECASE)
_RAND_RE = re.compile(r"^rand\s+(-?\d+)\s*-\s*(-?\d+)$", re.IGNORECASE)
_PICK_RE = re.compile(r"^pick\s+(\d+)$", re.IGNORECASE)

CONSUMABLE_MODIFIER = "consumable"


class PlaceholderResolver:
    """Expands table placeholders in free text."""

    def __init__(
        self,
        registry: TableRegistry,
        tracker: ConsumptionTracker,
        dice: DiceRoller,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
        default_story_id: str = DEFAULT_STORY_ID,
        lookup: Callable[[str], RandomTable | None] | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            registry: Table lookup.
            tracker: Consumption records for consumable tables.
            dice: Random source.
            max_depth: Expansion depth at which text is returned unchanged.
            default_story_id: Story used when a call names none.
            lookup: Table lookup used for placeholders; defaults to the
                registry.
        """
        self._registry = registry
        self._find = lookup or registry.find
        self._tracker = tracker
        self._dice = dice
        self.max_depth = max_depth
        self.default_story_id = default_story_id

    def resolve(self, text: str, depth: int = 0, story_id: str | None = None) -> str:
        """Expand every placeholder in a text.

        Args:
            text: Text containing placeholders.
            depth: Current expansion depth.
            story_id: Story scoping consumable tables.

        Returns:
            The expanded text.
        """
        if depth >= self.max_depth:
            if PLACEHOLDER_RE.search(text):
                logger.warning("Maximum placeholder depth reached", depth=depth, text=text)
            return text

        story = story_id or self.default_story_id
        return PLACEHOLDER_RE.sub(
            lambda match: self._expand(match, depth, story),
            text,
        )

    def _expand(self, match: re.Match[str], depth: int, story_id: str) -> str:
        body = match.group(1).strip()

        if roll := _ROLL_RE.match(body):
            return self._inline_roll(match.group(0), roll.group(1))
        if rand := _RAND_RE.match(body):
            return str(self._dice.randint(int(rand.group(1)), int(rand.group(2))))

        name, *modifiers = [part.strip() for part in body.split(".")]
        table = self._find(name)
        if table is None:
            logger.warning("Placeholder table not found", table=name)
            return match.group(0)

        consumable = table.consumable or any(
            m.lower() == CONSUMABLE_MODIFIER for m in modifiers
        )
        text_modifiers = [m for m in modifiers if m.lower() != CONSUMABLE_MODIFIER]

        pick_count = 1
        remaining: list[str] = []
        for modifier in text_modifiers:
            if pick := _PICK_RE.match(modifier):
                pick_count = max(1, int(pick.group(1)))
            else:
                remaining.append(modifier)

        values = self._draw(table, story_id, count=pick_count, consumable=consumable)
        if not values:
            return match.group(0)
        self._registry.record_usage(table.name)

        produced = ", ".join(apply_modifiers(value, remaining) for value in values)
        return self.resolve(produced, depth + 1, story_id)

    def _draw(
        self,
        table: RandomTable,
        story_id: str,
        *,
        count: int,
        consumable: bool,
    ) -> list[str]:
        entries = table.entries
        if consumable:
            entries = self._tracker.available_entries(table.name, story_id, entries)
        if not entries:
            logger.warning("Placeholder table has no entries", table=table.name)
            return []

        chosen = [self._dice.choice(entries)] if count == 1 else self._dice.sample(entries, count)
        if consumable:
            for entry in chosen:
                self._tracker.mark_consumed(table.name, story_id, entry.consumption_value())
        return [entry.text() for entry in chosen]

    def _inline_roll(self, original: str, expression: str) -> str:
        try:
            return str(self._dice.roll(expression).total)
        except DiceRollError as exc:
            logger.warning("Inline dice roll failed", expression=expression, error=exc.message)
            return original

    def reset_consumption(self, table: str | None = None, story_id: str | None = None) -> int:
        """Clear consumption for one table, or every table of a story."""
        if table is not None:
            found = self._find(table)
            table = found.name if found is not None else table
        return self._tracker.reset(table, story_id or self.default_story_id)

    def consumed_items(self, table: str, story_id: str | None = None) -> list[str]:
        """Values a consumable table has produced for a story."""
        found = self._find(table)
        name = found.name if found is not None else table
        return self._tracker.consumed(name, story_id or self.default_story_id)


__all__ = [
    "PLACEHOLDER_RE",
    "PlaceholderResolver",
]
