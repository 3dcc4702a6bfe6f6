"""
Solution Extractor

Decodes a solver assignment into a Solution. Stats are recomputed from the
decoded choices rather than read back from the solver, so floating point
noise never leaks into the result. Integer variables must come back within
INTEGRALITY_TOLERANCE of an integer; anything else is a ConsistencyError.
"""

from collections import Counter, defaultdict
from typing import Dict, List, Optional, Tuple

from bis_model import (
    BisModel, GearVar, MeldVar, FoodVar, RelicVar, INTEGRAL_REFERENTS,
)
from errors import ConsistencyError, ModelError
from models import (
    Stat, Slot, Item, Materia, Food, GearChoice, MeldAssignment,
    RelicAllocation, Solution, occupants,
)
from solvers import SolveOutcome


INTEGRALITY_TOLERANCE = 1e-4

# Continuous values closer than this to an integer are snapped to it
SNAP_TOLERANCE = 1e-6

# Largest expected difference between solver objective and recomputed weight
OBJECTIVE_GAP_TOLERANCE = 1e-4


def _integral(name: str, value: float) -> int:
    rounded = round(value)
    if abs(value - rounded) > INTEGRALITY_TOLERANCE:
        raise ConsistencyError(f"Variable {name} should be integral but is {value}")
    return int(rounded)


def _snap(value: float) -> float:
    rounded = round(value)
    if abs(value - rounded) <= SNAP_TOLERANCE:
        return float(rounded)
    return value


def compute_stats(model: BisModel,
                  gear: Dict[Item, int],
                  melds: Dict[Tuple[Item, Materia], int],
                  relic: Dict[Tuple[Item, Stat], float],
                  food: Optional[Food]) -> Tuple[Dict[Stat, float], Dict[Stat, float]]:
    """
    Recompute (allocatable, total) stats for a decoded loadout.

    Fixed stats and melds of an item are clipped to its meld caps; food adds
    min(percent of the allocatable stat, maximum).
    """
    allocatable: Dict[Stat, float] = defaultdict(float)
    for stat, value in model.base_stats.items():
        allocatable[stat] += value

    melded: Dict[Item, Dict[Stat, int]] = defaultdict(lambda: defaultdict(int))
    for (item, materia), count in melds.items():
        melded[item][materia.stat] += materia.value * count

    for item, copies in gear.items():
        for stat in set(item.stats) | set(melded[item]):
            value = item.stats.get(stat, 0) * copies + melded[item][stat]
            cap = item.meld_caps.get(stat)
            if cap is not None:
                value = min(value, cap * copies)
            allocatable[stat] += value

    for (item, stat), points in relic.items():
        allocatable[stat] += points

    total = dict(allocatable)
    if food is not None:
        for stat, bonus in food.bonuses.items():
            total[stat] = total.get(stat, 0.0) + bonus.amount(allocatable.get(stat, 0.0))

    return dict(allocatable), total


def _reported_stats(model: BisModel, values: Dict[Stat, float]) -> Dict[Stat, float]:
    """Keep stats the job cares about plus any non-zero ones, in stat order."""
    keep = set(model.profile.weights) | set(model.profile.requirements)
    return {stat: _snap(values.get(stat, 0.0))
            for stat in sorted(set(values) | keep)
            if stat in keep or abs(values.get(stat, 0.0)) > SNAP_TOLERANCE}


def extract_solution(model: BisModel, outcome: SolveOutcome,
                     objective_value: Optional[float] = None) -> Solution:
    """
    Decode an optimal outcome into a Solution.

    Args:
        model: The model that was solved (supplies the variable index)
        outcome: Solver outcome; must be OPTIMAL
        objective_value: Objective to report instead of the outcome's own
            (the primary optimum when a secondary pass was run)

    Raises:
        ModelError: outcome is not optimal
        ConsistencyError: the assignment breaks integrality or a model invariant
    """
    if not outcome.is_optimal:
        raise ModelError(outcome.status, outcome.detail)

    assignment = outcome.assignment
    pool = model.pool

    occupant_counts: Counter = Counter()
    gear_by_slot: Dict[Slot, Counter] = defaultdict(Counter)
    melds: Dict[Tuple[Item, Materia], int] = defaultdict(int)
    overmelds: Dict[Item, int] = defaultdict(int)
    relic: Dict[Tuple[Item, Stat], float] = {}
    foods: List[Food] = []

    for name, referent in model.index.items():
        value = assignment.get(name, 0.0)
        if isinstance(referent, INTEGRAL_REFERENTS):
            count = _integral(name, value)
            if count < 0:
                raise ConsistencyError(f"Variable {name} is negative ({value})")
        else:
            count = None

        if isinstance(referent, GearVar):
            if count:
                occupant_counts[(referent.slot, referent.occupant)] += count
                gear_by_slot[referent.slot][referent.item] += count
        elif isinstance(referent, MeldVar):
            if count:
                melds[(referent.item, referent.materia)] += count
                if referent.is_overmeld and not pool.materia.get(referent.materia, False):
                    overmelds[referent.item] += count
        elif isinstance(referent, FoodVar):
            if count:
                foods.append(referent.food)
        elif isinstance(referent, RelicVar):
            points = _snap(value)
            if points > SNAP_TOLERANCE:
                relic[(referent.item, referent.stat)] = points

    # Invariants the solver should already have enforced
    for slot in pool.slots:
        for occupant in range(occupants(slot)):
            if occupant_counts[(slot, occupant)] != 1:
                raise ConsistencyError(
                    f"{slot.name} occupant {occupant} holds "
                    f"{occupant_counts[(slot, occupant)]} items")
    if len(foods) > 1:
        raise ConsistencyError(f"{len(foods)} foods chosen")

    copies: Dict[Item, int] = {}
    for slot_items in gear_by_slot.values():
        copies.update(slot_items)

    per_item_melds: Dict[Item, int] = defaultdict(int)
    for (item, _), count in melds.items():
        per_item_melds[item] += count
    for item, count in per_item_melds.items():
        if count > item.meld_capacity * copies.get(item, 0):
            raise ConsistencyError(f"{item} holds {count} materia over capacity")
    for item, count in overmelds.items():
        raise ConsistencyError(f"{item} has {count} materia above the overmeld tier")

    per_item_relic: Dict[Item, float] = defaultdict(float)
    for (item, _), points in relic.items():
        per_item_relic[item] += points
    for item, points in per_item_relic.items():
        cap = pool.relic_cap(item) * copies.get(item, 0)
        if points > cap + INTEGRALITY_TOLERANCE:
            raise ConsistencyError(f"{item} relic points {points} exceed cap {cap}")

    food = foods[0] if foods else None
    allocatable, total = compute_stats(model, copies, melds, relic, food)

    for stat, minimum in model.profile.requirements.items():
        if total.get(stat, 0.0) < minimum - INTEGRALITY_TOLERANCE:
            raise ConsistencyError(
                f"{stat.name} is {total.get(stat, 0.0)}, below the required {minimum}")

    weight = sum(w * total.get(stat, 0.0) for stat, w in model.profile.weights.items())

    if objective_value is None:
        objective_value = outcome.objective_value or 0.0

    gear = {
        slot: tuple(GearChoice(item, count)
                    for item, count in sorted(counts.items(), key=lambda kv: kv[0].id))
        for slot, counts in sorted(gear_by_slot.items())
    }
    meld_list = tuple(
        MeldAssignment(item=item, stat=materia.stat, materia=materia, count=count)
        for (item, materia), count in sorted(
            melds.items(), key=lambda kv: (kv[0][0].slot, kv[0][0].id, kv[0][1].id))
    )
    relic_list = tuple(
        RelicAllocation(item=item, stat=stat, points=points)
        for (item, stat), points in sorted(
            relic.items(), key=lambda kv: (kv[0][0].id, kv[0][1]))
    )

    return Solution(
        gear=gear,
        melds=meld_list,
        food=food,
        relic=relic_list,
        allocatable_stats=_reported_stats(model, allocatable),
        total_stats=_reported_stats(model, total),
        objective_value=float(objective_value),
        weight=float(weight),
    )
