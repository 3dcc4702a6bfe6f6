"""
Data models for the FFXIV BiS Solver

Defines the core data structures for stats, slots, gear, materia, food
and the solved loadout.
"""

import math
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional, Dict, List, Tuple, FrozenSet


class Stat(IntEnum):
    """Attribute IDs matching the game's BaseParam keys."""
    STRENGTH = 1
    DEXTERITY = 2
    VITALITY = 3
    INTELLIGENCE = 4
    MIND = 5
    PIETY = 6
    HP = 7
    MP = 8
    GP = 10
    CP = 11
    PHYSICAL_DAMAGE = 12
    MAGIC_DAMAGE = 13
    TENACITY = 19
    DEFENSE = 21
    DIRECT_HIT_RATE = 22
    MAGIC_DEFENSE = 24
    CRITICAL_HIT = 27
    DETERMINATION = 44
    SKILL_SPEED = 45
    SPELL_SPEED = 46
    CRAFTSMANSHIP = 70
    CONTROL = 71
    GATHERING = 72
    PERCEPTION = 73


# Display names as they appear in game data and config files
STAT_NAMES = {
    Stat.STRENGTH: 'Strength',
    Stat.DEXTERITY: 'Dexterity',
    Stat.VITALITY: 'Vitality',
    Stat.INTELLIGENCE: 'Intelligence',
    Stat.MIND: 'Mind',
    Stat.PIETY: 'Piety',
    Stat.HP: 'HP',
    Stat.MP: 'MP',
    Stat.GP: 'GP',
    Stat.CP: 'CP',
    Stat.PHYSICAL_DAMAGE: 'Physical Damage',
    Stat.MAGIC_DAMAGE: 'Magic Damage',
    Stat.TENACITY: 'Tenacity',
    Stat.DEFENSE: 'Defense',
    Stat.DIRECT_HIT_RATE: 'Direct Hit Rate',
    Stat.MAGIC_DEFENSE: 'Magic Defense',
    Stat.CRITICAL_HIT: 'Critical Hit',
    Stat.DETERMINATION: 'Determination',
    Stat.SKILL_SPEED: 'Skill Speed',
    Stat.SPELL_SPEED: 'Spell Speed',
    Stat.CRAFTSMANSHIP: 'Craftsmanship',
    Stat.CONTROL: 'Control',
    Stat.GATHERING: 'Gathering',
    Stat.PERCEPTION: 'Perception',
}

_STAT_LOOKUP = {}
for _stat, _name in STAT_NAMES.items():
    _STAT_LOOKUP[_name.lower()] = _stat
    _STAT_LOOKUP[_stat.name.lower()] = _stat


def stat_from_name(name: str) -> Optional[Stat]:
    """Resolve a display name ("Critical Hit") or enum name ("CRITICAL_HIT")."""
    if not isinstance(name, str):
        return None
    return _STAT_LOOKUP.get(name.strip().lower())


class Slot(IntEnum):
    """Equipment slot categories matching EquipSlotCategory keys."""
    MAIN_HAND = 1
    OFF_HAND = 2
    HEAD = 3
    BODY = 4
    HANDS = 5
    WAIST = 6
    LEGS = 7
    FEET = 8
    EARS = 9
    NECK = 10
    WRISTS = 11
    RING = 12


SLOT_NAMES = {
    Slot.MAIN_HAND: 'Main Hand',
    Slot.OFF_HAND: 'Off Hand',
    Slot.HEAD: 'Head',
    Slot.BODY: 'Body',
    Slot.HANDS: 'Hands',
    Slot.WAIST: 'Waist',
    Slot.LEGS: 'Legs',
    Slot.FEET: 'Feet',
    Slot.EARS: 'Ears',
    Slot.NECK: 'Neck',
    Slot.WRISTS: 'Wrists',
    Slot.RING: 'Ring',
}

_SLOT_LOOKUP = {}
for _slot, _name in SLOT_NAMES.items():
    _SLOT_LOOKUP[_name.lower()] = _slot
    _SLOT_LOOKUP[_slot.name.lower()] = _slot


def slot_from_name(name: str) -> Optional[Slot]:
    if not isinstance(name, str):
        return None
    return _SLOT_LOOKUP.get(name.strip().lower())


# Rings are worn in pairs; every other slot takes exactly one item
SLOT_OCCUPANTS = {Slot.RING: 2}


def occupants(slot: Slot) -> int:
    """Number of items the slot must hold."""
    return SLOT_OCCUPANTS.get(slot, 1)


# Advanced melding raises an item's total meld capacity to this many slots
MAX_MELD_SLOTS = 5


@dataclass(frozen=True)
class ClassJob:
    """A class or job from the game data."""
    key: int
    abbreviation: str
    name: str


@dataclass(frozen=True)
class Item:
    """
    A candidate gear piece.

    Relic items replace part of their fixed stats with a discretionary
    budget that is capped by item level (see RelicCapTable in config).
    """
    id: int
    name: str
    slot: Slot
    item_level: int

    # Fixed stats granted when equipped
    stats: Dict[Stat, int] = field(default_factory=dict, compare=False)

    # Base materia slots, plus extra slots opened by advanced melding
    materia_slots: int = 0
    overmeld_slots: int = 0

    is_relic: bool = False

    # Unique items can't be worn twice (matters for the ring pair)
    is_unique: bool = False

    class_jobs: FrozenSet[str] = field(default_factory=frozenset, compare=False)

    # Per-stat ceiling for fixed stats + melds on this item
    meld_caps: Dict[Stat, int] = field(default_factory=dict, compare=False)

    # Stats a relic budget may go into (empty = any stat the job cares about)
    relic_stats: Tuple[Stat, ...] = field(default=(), compare=False)

    @property
    def meld_capacity(self) -> int:
        """Total materia-slot count, overmeld slots included."""
        return self.materia_slots + self.overmeld_slots

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Materia:
    """Grants `value` points of a single stat."""
    id: int
    name: str
    stat: Stat
    value: int
    tier: int  # 1-based: Materia I = 1

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class FoodBonus:
    """Percentage bonus with an absolute ceiling."""
    percent: float
    maximum: int

    def amount(self, base: float) -> int:
        """Bonus granted on top of `base`."""
        if base <= 0:
            return 0
        return min(int(math.floor(base * self.percent / 100 + 1e-9)), self.maximum)


@dataclass(frozen=True)
class Food:
    id: int
    name: str
    bonuses: Dict[Stat, FoodBonus] = field(default_factory=dict, compare=False)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class RoleProfile:
    """
    Stat priorities for a job.

    Weights drive the objective; requirements are hard floors on the
    final stats (food included).
    """
    job: str
    weights: Dict[Stat, float] = field(default_factory=dict, compare=False)
    requirements: Dict[Stat, int] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class CandidatePool:
    """
    Everything the model builder may choose from.

    `materia` maps each materia to whether it may go into an overmeld slot.
    """
    items: Tuple[Item, ...]
    materia: Dict[Materia, bool] = field(default_factory=dict)
    food: Tuple[Food, ...] = ()
    relic_caps: Dict[int, int] = field(default_factory=dict)

    def relic_cap(self, item: Item) -> int:
        """Discretionary points for a relic item (0 if its level has no cap)."""
        if not item.is_relic:
            return 0
        return self.relic_caps.get(item.item_level, 0)

    def items_for_slot(self, slot: Slot) -> List[Item]:
        return [item for item in self.items if item.slot == slot]

    @property
    def slots(self) -> List[Slot]:
        """Slots with at least one candidate, in slot order."""
        return sorted({item.slot for item in self.items})


# =============================================================================
# Solution
# =============================================================================

@dataclass(frozen=True)
class GearChoice:
    """An item and how many times it is worn in its slot."""
    item: Item
    count: int = 1


@dataclass(frozen=True)
class MeldAssignment:
    item: Item
    stat: Stat
    materia: Materia
    count: int


@dataclass(frozen=True)
class RelicAllocation:
    item: Item
    stat: Stat
    points: float


@dataclass(frozen=True)
class Solution:
    """
    A solved loadout.

    Built once by the solution extractor and never modified. The ring entry
    in `gear` is a multiset whose counts always add up to two.
    """
    gear: Dict[Slot, Tuple[GearChoice, ...]]
    melds: Tuple[MeldAssignment, ...]
    food: Optional[Food]
    relic: Tuple[RelicAllocation, ...]

    # Stats before food, and final stats with food
    allocatable_stats: Dict[Stat, float]
    total_stats: Dict[Stat, float]

    # Objective as reported by the solver vs. weighted sum recomputed here
    objective_value: float
    weight: float

    @property
    def items(self) -> List[Item]:
        """Every equipped item, repeated for each copy worn."""
        result = []
        for slot in sorted(self.gear):
            for choice in self.gear[slot]:
                result.extend([choice.item] * choice.count)
        return result

    def melds_for(self, item: Item) -> List[MeldAssignment]:
        return [m for m in self.melds if m.item == item]

    def occupants(self, slot: Slot) -> int:
        return sum(choice.count for choice in self.gear.get(slot, ()))

    @property
    def objective_gap(self) -> float:
        """Difference between the solver objective and the recomputed weight."""
        return abs(self.objective_value - self.weight)
