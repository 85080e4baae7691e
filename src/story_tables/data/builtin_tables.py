"""Built-in tables shipped with the engine.

Custom tables supplied by the host take lookup precedence only when no
built-in matches, so these names are effectively reserved.
"""

from __future__ import annotations

from story_tables.models.options import AdvancedRollOptions, RollType
from story_tables.models.tables import (
    ConditionalModifier,
    ConditionalWeight,
    EntryMetadata,
    RandomTable,
    TableEntry,
    TableRelationship,
    WeightedModifier,
)


def _uniform(
    name: str,
    description: str,
    items: list[str],
    *,
    consumable: bool = False,
) -> RandomTable:
    return RandomTable(
        name=name,
        description=description,
        dice_formula=f"1d{len(items)}",
        entries=[
            TableEntry(min=index, max=index, description=item)
            for index, item in enumerate(items, start=1)
        ],
        consumable=consumable,
    )


WEATHER = RandomTable(
    name="Weather",
    description="Weather for the current scene",
    dice_formula="1d100",
    entries=[
        TableEntry(min=1, max=40, description="Clear skies"),
        TableEntry(min=41, max=65, description="Overcast and grey"),
        TableEntry(min=66, max=85, description="Steady rain"),
        TableEntry(min=86, max=95, description="A howling storm"),
        TableEntry(
            min=96,
            max=100,
            description="Heavy snow",
            modifiers=[ConditionalModifier(condition='current_season === "winter"')],
        ),
    ],
)

ADJECTIVE = _uniform(
    "Adjective",
    "Evocative adjectives for names",
    ["golden", "rusty", "silent", "laughing", "broken", "crimson", "wandering", "old"],
)

ANIMAL = _uniform(
    "Animal",
    "Animals for names",
    ["stag", "raven", "boar", "owl", "eel", "fox", "badger", "hound"],
)

TAVERN_NAME = _uniform(
    "Tavern Name",
    "Names for inns and taverns",
    [
        "The {adjective.capitalize} {animal.capitalize}",
        "The {animal.capitalize} and {animal.capitalize}",
        "{adjective.capitalize} {animal.capitalize} Inn",
    ],
)

NPC_NAME = _uniform(
    "NPC Name",
    "Given names; each is used once per story until all are drawn",
    ["Alda", "Bram", "Corin", "Dagny", "Eskil", "Fenna", "Garrick", "Hilde"],
    consumable=True,
)

TREASURE = RandomTable(
    name="Treasure",
    description="Loot with rarity weighting",
    dice_formula="1d100",
    entries=[
        TableEntry(
            description="a handful of copper coins",
            modifiers=[WeightedModifier(weight=6)],
            metadata=EntryMetadata(tags={"coin"}, category="currency", rarity="common"),
        ),
        TableEntry(
            description="a silver ring",
            modifiers=[WeightedModifier(weight=3)],
            metadata=EntryMetadata(tags={"jewelry"}, category="valuables", rarity="uncommon"),
        ),
        TableEntry(
            description="a potion of healing",
            modifiers=[WeightedModifier(weight=2)],
            metadata=EntryMetadata(
                tags={"potion", "magic"}, category="consumable", rarity="uncommon"
            ),
        ),
        TableEntry(
            description="a blade that hums in the dark",
            modifiers=[
                WeightedModifier(
                    weight=0.5,
                    conditional_weights=[
                        ConditionalWeight(condition="character_level >= 10", weight=2)
                    ],
                )
            ],
            metadata=EntryMetadata(tags={"weapon", "magic"}, category="weapon", rarity="rare"),
        ),
    ],
    default_roll_options=AdvancedRollOptions(roll_type=RollType.STANDARD),
)

ENCOUNTER = RandomTable(
    name="Encounter",
    description="Wilderness encounters; some bring treasure",
    dice_formula="1d100",
    entries=[
        TableEntry(min=1, max=50, description="Nothing stirs"),
        TableEntry(min=51, max=80, description="A wary band of travellers"),
        TableEntry(min=81, max=100, description="Bandits block the road"),
    ],
    relationships=[
        TableRelationship(
            source_table="Encounter",
            target_table="Treasure",
            condition='last_result.includes("Bandits")',
        )
    ],
)


BUILTIN_TABLES: dict[str, RandomTable] = {
    "weather": WEATHER,
    "adjective": ADJECTIVE,
    "animal": ANIMAL,
    "tavern_name": TAVERN_NAME,
    "npc_name": NPC_NAME,
    "treasure": TREASURE,
    "encounter": ENCOUNTER,
}
"""Built-in tables keyed by lookup key."""


__all__ = [
    "BUILTIN_TABLES",
]
