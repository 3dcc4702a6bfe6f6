"""
Item Database Loader

Loads the game data catalog (class/jobs, gear, materia and food) from a JSON
export and builds the candidate pool the model builder chooses from.
"""

import json
import sys
from pathlib import Path
from typing import Dict, Optional, List, Any, Iterable, Set

from errors import CatalogError
from models import (
    ClassJob, Item, Materia, Food, FoodBonus, CandidatePool, Stat,
    stat_from_name, slot_from_name, MAX_MELD_SLOTS,
)


# Default item level window below the max when no minimum is given
DEFAULT_ILVL_WINDOW = 20


class ItemDatabase:
    """
    Database of class/jobs, equipment, materia and food.

    Stat, slot and job names are resolved while loading; every unknown
    name in the file is reported in a single CatalogError.
    """

    def __init__(self):
        self.class_jobs: Dict[str, ClassJob] = {}
        self.items: Dict[int, Item] = {}
        self.items_by_name: Dict[str, Item] = {}
        self.materia: Dict[int, Materia] = {}
        self.food: Dict[int, Food] = {}
        self._errors: List[str] = []

    def load_from_json(self, path: str):
        """Load a game data export from disk."""
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except OSError as e:
            raise CatalogError(f"Could not read game data '{path}': {e}") from e
        except json.JSONDecodeError as e:
            raise CatalogError(f"Game data '{path}' is not valid JSON: {e}") from e
        self.load_from_dict(data)

    def load_from_dict(self, data: Dict[str, Any]):
        """Load game data from an already-parsed document."""
        if not isinstance(data, dict):
            raise CatalogError("Game data must be a JSON object")

        self._errors = []

        for raw in data.get('class_jobs', []):
            job = ClassJob(
                key=int(raw['key']),
                abbreviation=str(raw['abbreviation']),
                name=str(raw.get('name', raw['abbreviation'])),
            )
            self.class_jobs[job.abbreviation.upper()] = job

        for raw in data.get('items', []):
            item = self._create_item(raw)
            if item:
                self.items[item.id] = item
                self.items_by_name[item.name.lower()] = item

        for raw in data.get('materia', []):
            materia = self._create_materia(raw)
            if materia:
                self.materia[materia.id] = materia

        for raw in data.get('food', []):
            food = self._create_food(raw)
            if food:
                self.food[food.id] = food

        if self._errors:
            errors, self._errors = self._errors, []
            raise CatalogError("Invalid game data:\n  " + "\n  ".join(errors))

    # -------------------------------------------------------------------------
    # Entry parsing
    # -------------------------------------------------------------------------

    def _stat(self, name: str, context: str) -> Optional[Stat]:
        stat = stat_from_name(name)
        if stat is None:
            self._errors.append(f"{context}: unknown stat '{name}'")
        return stat

    def _stat_map(self, raw: Dict[str, Any], context: str) -> Dict[Stat, int]:
        result = {}
        for name, value in (raw or {}).items():
            stat = self._stat(name, context)
            if stat is not None:
                result[stat] = int(value)
        return result

    def _create_item(self, raw: Dict[str, Any]) -> Optional[Item]:
        context = f"item {raw.get('id', '?')}"
        try:
            slot = slot_from_name(raw['slot'])
            if slot is None:
                self._errors.append(f"{context}: unknown slot '{raw['slot']}'")
                return None

            materia_slots = int(raw.get('materia_slots', 0))
            overmeld_slots = 0
            if raw.get('advanced_melding', False):
                overmeld_slots = max(0, MAX_MELD_SLOTS - materia_slots)

            relic_stats = []
            for name in raw.get('relic_stats', []):
                stat = self._stat(name, context)
                if stat is not None:
                    relic_stats.append(stat)

            class_jobs = []
            for abbreviation in raw.get('class_jobs', []):
                if abbreviation.upper() not in self.class_jobs:
                    self._errors.append(f"{context}: unknown class/job '{abbreviation}'")
                class_jobs.append(abbreviation.upper())

            return Item(
                id=int(raw['id']),
                name=str(raw.get('name', f"Item_{raw['id']}")),
                slot=slot,
                item_level=int(raw.get('item_level', 0)),
                stats=self._stat_map(raw.get('stats'), context),
                materia_slots=materia_slots,
                overmeld_slots=overmeld_slots,
                is_relic=bool(raw.get('relic', False)),
                is_unique=bool(raw.get('unique', False)),
                class_jobs=frozenset(class_jobs),
                meld_caps=self._stat_map(raw.get('meld_caps'), context),
                relic_stats=tuple(relic_stats),
            )
        except (KeyError, TypeError, ValueError) as e:
            self._errors.append(f"{context}: malformed entry ({e!r})")
            return None

    def _create_materia(self, raw: Dict[str, Any]) -> Optional[Materia]:
        context = f"materia {raw.get('id', '?')}"
        try:
            stat = self._stat(raw['stat'], context)
            if stat is None:
                return None
            return Materia(
                id=int(raw['id']),
                name=str(raw.get('name', f"Materia_{raw['id']}")),
                stat=stat,
                value=int(raw['value']),
                tier=int(raw['tier']),
            )
        except (KeyError, TypeError, ValueError) as e:
            self._errors.append(f"{context}: malformed entry ({e!r})")
            return None

    def _create_food(self, raw: Dict[str, Any]) -> Optional[Food]:
        context = f"food {raw.get('id', '?')}"
        try:
            bonuses = {}
            for name, bonus in raw.get('bonuses', {}).items():
                stat = self._stat(name, context)
                if stat is not None:
                    bonuses[stat] = FoodBonus(
                        percent=float(bonus['percent']),
                        maximum=int(bonus['max']),
                    )
            return Food(
                id=int(raw['id']),
                name=str(raw.get('name', f"Food_{raw['id']}")),
                bonuses=bonuses,
            )
        except (KeyError, TypeError, ValueError) as e:
            self._errors.append(f"{context}: malformed entry ({e!r})")
            return None

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get_item(self, item_id: int) -> Optional[Item]:
        """Get item by ID."""
        return self.items.get(item_id)

    def require_item(self, item_id: int) -> Item:
        """Get item by ID, raising CatalogError when it doesn't exist."""
        item = self.items.get(item_id)
        if item is None:
            raise CatalogError(f"Unknown item id {item_id}")
        return item

    def get_item_by_name(self, name: str) -> Optional[Item]:
        """Get item by name (case-insensitive)."""
        return self.items_by_name.get(name.lower())

    def get_job(self, name: str) -> Optional[ClassJob]:
        """Find a class/job by abbreviation or full name (case-insensitive)."""
        if not isinstance(name, str):
            return None
        job = self.class_jobs.get(name.strip().upper())
        if job:
            return job
        name_lower = name.strip().lower()
        for job in self.class_jobs.values():
            if job.name.lower() == name_lower:
                return job
        return None

    def get_items_for_job(self, job: ClassJob) -> List[Item]:
        """All equipment the job can wear (items with no job list fit everyone)."""
        return [item for item in self.items.values()
                if not item.class_jobs or job.abbreviation.upper() in item.class_jobs]


# =============================================================================
# Candidate pool
# =============================================================================

def resolve_exclusions(db: ItemDatabase, excluded_ids: Iterable[int],
                       warnings: Optional[List[str]] = None) -> Set[int]:
    """
    Validate excluded item ids.

    Unknown ids are reported as warnings and ignored.
    """
    excluded = set()
    for item_id in excluded_ids:
        try:
            item = db.require_item(item_id)
        except CatalogError:
            message = f"Unknown id {item_id}, ignoring."
            print(f"⚠ {message}", file=sys.stderr)
            if warnings is not None:
                warnings.append(message)
            continue
        print(f"✓ Excluding {item}.")
        excluded.add(item.id)
    return excluded


def prune_materia(materia: Dict[Materia, bool]) -> Dict[Materia, bool]:
    """
    Drop materia that can never beat another materia of the same stat.

    Keeps the strongest materia per stat, plus the strongest one that is
    allowed in overmeld slots.
    """
    best: Dict[Stat, Materia] = {}
    best_overmeld: Dict[Stat, Materia] = {}

    def better(candidate: Materia, current: Optional[Materia]) -> bool:
        if current is None:
            return True
        return (candidate.value, -candidate.id) > (current.value, -current.id)

    for m, overmeld_ok in materia.items():
        if better(m, best.get(m.stat)):
            best[m.stat] = m
        if overmeld_ok and better(m, best_overmeld.get(m.stat)):
            best_overmeld[m.stat] = m

    keep = set(best.values()) | set(best_overmeld.values())
    return {m: ok for m, ok in materia.items() if m in keep}


def build_candidate_pool(db: ItemDatabase,
                         job: ClassJob,
                         min_item_level: Optional[int] = None,
                         max_item_level: Optional[int] = None,
                         excluded_ids: Iterable[int] = (),
                         max_overmeld_tier: Optional[int] = None,
                         relic_caps: Optional[Dict[int, int]] = None,
                         warnings: Optional[List[str]] = None) -> CandidatePool:
    """
    Filter the catalog down to what `job` may use.

    Args:
        db: Loaded item database
        job: Job to solve for
        min_item_level: Lowest item level considered (default: max - 20)
        max_item_level: Highest item level considered (default: best the job can wear)
        excluded_ids: Item ids to leave out of every slot
        max_overmeld_tier: Highest materia tier allowed in overmeld slots
            (None allows every tier)
        relic_caps: Item level -> discretionary relic points
        warnings: Optional list collecting warning messages

    Returns:
        CandidatePool for the model builder
    """
    relic_caps = dict(relic_caps or {})
    excluded = resolve_exclusions(db, excluded_ids, warnings)

    equip = [item for item in db.get_items_for_job(job) if item.id not in excluded]
    if not equip:
        raise CatalogError(f"No equipment usable by {job.abbreviation}")

    if max_item_level is None:
        max_item_level = max(item.item_level for item in equip)
    if min_item_level is None:
        min_item_level = max_item_level - DEFAULT_ILVL_WINDOW

    equip = [item for item in equip
             if min_item_level <= item.item_level <= max_item_level]
    if not equip:
        raise CatalogError(f"No equipment usable by {job.abbreviation} between "
                           f"item level {min_item_level} and {max_item_level}")
    equip.sort(key=lambda item: (item.slot, -item.item_level, item.id))

    for item in equip:
        if item.is_relic and item.item_level not in relic_caps:
            message = f"No relic cap configured for {item} (item level {item.item_level})."
            print(f"⚠ {message}", file=sys.stderr)
            if warnings is not None:
                warnings.append(message)

    materia = {
        m: max_overmeld_tier is None or m.tier <= max_overmeld_tier
        for m in db.materia.values()
    }

    return CandidatePool(
        items=tuple(equip),
        materia=prune_materia(materia),
        food=tuple(sorted(db.food.values(), key=lambda f: f.id)),
        relic_caps=relic_caps,
    )


def load_database(path: str) -> ItemDatabase:
    """Load a game data catalog from a JSON file."""
    db = ItemDatabase()
    db.load_from_json(str(Path(path)))
    return db
