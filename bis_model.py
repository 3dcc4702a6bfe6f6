"""
BiS Model Builder

Translates a job's stat priorities and a candidate pool into a mixed-integer
linear program (PuLP), plus an index from every variable name back to what
it stands for so the solution extractor can decode the solver's answer.

Variables:
  gear_<slot>_<occupant>_<item>       binary, item worn in a slot occupant
  meld_<item>_<materia>_<index>       integer, materia melded at a slot index
  food_<food>                         binary, food eaten
  foodbonus_<food>_<stat>             integer, bonus granted by that food
  relic_<item>_<stat>                 continuous, relic points allocated
  capped_<item>_<stat>                continuous, item stat after its meld cap

Stats are linear expressions:
  allocatable(s) = base + fixed gear stats + melds + relic points
  total(s)       = allocatable(s) + food bonus

The objective maximizes sum(weight(s) * total(s)). Stats without a weight can
be maximized as a secondary goal, either exactly (lexicographic, two solves)
or approximately (epsilon-weighted, one solve).
"""

import dataclasses
import math
from collections import defaultdict
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Dict, List, Optional, Set, Union, Any, Iterable

import pulp

from models import (
    Stat, Slot, Item, Materia, Food, RoleProfile, CandidatePool, occupants,
)


SECONDARY_LEXICOGRAPHIC = 'lexicographic'
SECONDARY_EPSILON = 'epsilon'
SECONDARY_MODES = (SECONDARY_LEXICOGRAPHIC, SECONDARY_EPSILON)

# Absolute slack when pinning the primary optimum for the secondary pass
PRIMARY_TOLERANCE = 1e-6

# Secondary stats may add at most this fraction of the weight resolution
EPSILON_SEPARATION = 1e-3

# Weights are read as fractions with at most this denominator
WEIGHT_DENOMINATOR = 10 ** 6


# =============================================================================
# VARIABLE REFERENTS
# =============================================================================

@dataclass(frozen=True)
class GearVar:
    slot: Slot
    occupant: int
    item: Item


@dataclass(frozen=True)
class MeldVar:
    item: Item
    materia: Materia
    index: int

    @property
    def is_overmeld(self) -> bool:
        return self.index >= self.item.materia_slots


@dataclass(frozen=True)
class FoodVar:
    food: Food


@dataclass(frozen=True)
class FoodBonusVar:
    food: Food
    stat: Stat


@dataclass(frozen=True)
class RelicVar:
    item: Item
    stat: Stat


@dataclass(frozen=True)
class CappedStatVar:
    item: Item
    stat: Stat


Referent = Union[GearVar, MeldVar, FoodVar, FoodBonusVar, RelicVar, CappedStatVar]

# Referents whose variables must come back integral
INTEGRAL_REFERENTS = (GearVar, MeldVar, FoodVar, FoodBonusVar)


# =============================================================================
# MODEL
# =============================================================================

@dataclass
class BisModel:
    """
    A built MILP and everything needed to interpret its solution.

    `problem` carries the objective of the current phase. For the
    lexicographic secondary pass, with_primary_floor() returns a second
    BisModel sharing the same variables.
    """
    problem: pulp.LpProblem
    profile: RoleProfile
    pool: CandidatePool
    base_stats: Dict[Stat, int]

    # Variable name -> domain referent
    index: Dict[str, Referent]
    variables: Dict[str, pulp.LpVariable]

    allocatable: Dict[Stat, pulp.LpAffineExpression]
    totals: Dict[Stat, pulp.LpAffineExpression]

    primary: pulp.LpAffineExpression
    secondary: Optional[pulp.LpAffineExpression] = None
    unweighted_stats: List[Stat] = field(default_factory=list)

    maximize_unweighted: bool = True
    secondary_mode: str = SECONDARY_LEXICOGRAPHIC
    epsilon: float = 0.0

    # 1 = primary objective, 2 = secondary pass under a primary floor
    phase: int = 1

    @property
    def needs_secondary_pass(self) -> bool:
        return (self.phase == 1
                and self.secondary is not None
                and self.secondary_mode == SECONDARY_LEXICOGRAPHIC)

    def with_primary_floor(self, optimum: float) -> 'BisModel':
        """
        Second lexicographic phase: keep the primary objective at its
        optimum and maximize the unweighted stats instead.
        """
        if self.secondary is None:
            raise ValueError("Model has no secondary objective")
        problem = self.problem.copy()
        problem.name = f"{self.problem.name}_secondary"
        if len(self.primary):
            problem += self.primary >= optimum - PRIMARY_TOLERANCE, "primary_floor"
        problem.setObjective(self.secondary)
        return dataclasses.replace(self, problem=problem, phase=2)

    def evaluate(self, expression: pulp.LpAffineExpression,
                 assignment: Dict[str, float]) -> float:
        """Value of an expression under a name -> value assignment."""
        total = float(expression.constant)
        for var, coef in expression.items():
            total += coef * assignment.get(var.name, 0.0)
        return total

    def evaluate_primary(self, assignment: Dict[str, float]) -> float:
        return self.evaluate(self.primary, assignment)


# =============================================================================
# BUILDER
# =============================================================================

class _ModelBuilder:
    """Accumulates variables, stat terms and constraints for one model."""

    def __init__(self, profile: RoleProfile, pool: CandidatePool,
                 base_stats: Dict[Stat, int], name: str):
        self.profile = profile
        self.pool = pool
        self.base_stats = dict(base_stats)
        self.problem = pulp.LpProblem(name, pulp.LpMaximize)
        self.index: Dict[str, Referent] = {}
        self.variables: Dict[str, pulp.LpVariable] = {}

        # Stat -> list of terms (numbers or LpAffineExpressions)
        self.allocatable_terms: Dict[Stat, List[Any]] = defaultdict(list)
        self.food_terms: Dict[Stat, List[Any]] = defaultdict(list)

        # Item -> gear variables across occupants
        self.gear_vars: Dict[Item, List[pulp.LpVariable]] = defaultdict(list)

    def variable(self, name: str, referent: Referent, **kwargs) -> pulp.LpVariable:
        var = pulp.LpVariable(name, **kwargs)
        self.index[var.name] = referent
        self.variables[var.name] = var
        return var

    def chosen(self, item: Item) -> pulp.LpAffineExpression:
        """How many copies of `item` are worn (0, 1, or 2 for rings)."""
        return pulp.lpSum(self.gear_vars[item])

    def max_copies(self, item: Item) -> int:
        return 1 if item.is_unique else occupants(item.slot)

    @property
    def relevant_stats(self) -> List[Stat]:
        stats = set(self.profile.weights) | set(self.profile.requirements)
        return sorted(stats)

    # -------------------------------------------------------------------------

    def add_gear(self):
        for slot in self.pool.slots:
            candidates = self.pool.items_for_slot(slot)
            slot_vars: List[List[pulp.LpVariable]] = []

            for occupant in range(occupants(slot)):
                occupant_vars = []
                for item in candidates:
                    var = self.variable(
                        f"gear_{slot.name}_{occupant}_{item.id}",
                        GearVar(slot, occupant, item),
                        cat=pulp.LpBinary,
                    )
                    occupant_vars.append(var)
                    self.gear_vars[item].append(var)
                self.problem += (pulp.lpSum(occupant_vars) == 1,
                                 f"slot_{slot.name}_{occupant}")
                slot_vars.append(occupant_vars)

            # Occupants are interchangeable: order them by candidate position
            for occupant in range(1, len(slot_vars)):
                previous = pulp.lpSum(i * var for i, var in enumerate(slot_vars[occupant - 1]))
                current = pulp.lpSum(i * var for i, var in enumerate(slot_vars[occupant]))
                self.problem += previous <= current, f"order_{slot.name}_{occupant}"

            if len(slot_vars) > 1:
                for item in candidates:
                    if item.is_unique:
                        self.problem += self.chosen(item) <= 1, f"unique_{item.id}"

    def add_item_stats(self):
        """Fixed stats and melds, applying per-item meld caps."""
        materia = sorted(self.pool.materia.items(), key=lambda kv: kv[0].id)

        for item in self.pool.items:
            chosen = self.chosen(item)
            meld_terms: Dict[Stat, List[Any]] = defaultdict(list)
            all_melds = []

            for index in range(item.meld_capacity):
                index_melds = []
                for m, overmeld_ok in materia:
                    var = self.variable(
                        f"meld_{item.id}_{m.id}_{index}",
                        MeldVar(item, m, index),
                        lowBound=0,
                        upBound=self.max_copies(item),
                        cat=pulp.LpInteger,
                    )
                    if index >= item.materia_slots and not overmeld_ok:
                        self.problem += var == 0, f"overmeld_tier_{item.id}_{m.id}_{index}"
                    index_melds.append(var)
                    meld_terms[m.stat].append(m.value * var)
                all_melds.extend(index_melds)
                if index_melds:
                    self.problem += (pulp.lpSum(index_melds) <= chosen,
                                     f"meld_slot_{item.id}_{index}")

            if all_melds:
                self.problem += (pulp.lpSum(all_melds) <= item.meld_capacity * chosen,
                                 f"meld_capacity_{item.id}")

            for stat in set(item.stats) | set(meld_terms):
                fixed = item.stats.get(stat, 0) * chosen
                uncapped = pulp.lpSum([fixed] + meld_terms[stat])
                cap = item.meld_caps.get(stat)
                if cap is None:
                    self.allocatable_terms[stat].append(uncapped)
                    continue
                capped = self.variable(
                    f"capped_{item.id}_{stat.name}",
                    CappedStatVar(item, stat),
                    lowBound=0,
                )
                self.problem += capped <= uncapped, f"meld_cap_sum_{item.id}_{stat.name}"
                self.problem += capped <= cap * chosen, f"meld_cap_{item.id}_{stat.name}"
                self.allocatable_terms[stat].append(capped)

    def add_relic(self):
        for item in self.pool.items:
            if not item.is_relic:
                continue
            stats = list(item.relic_stats) or self.relevant_stats
            if not stats:
                continue
            relic_vars = []
            for stat in stats:
                var = self.variable(
                    f"relic_{item.id}_{stat.name}",
                    RelicVar(item, stat),
                    lowBound=0,
                )
                relic_vars.append(var)
                self.allocatable_terms[stat].append(var)
            cap = self.pool.relic_cap(item)
            self.problem += (pulp.lpSum(relic_vars) <= cap * self.chosen(item),
                             f"relic_cap_{item.id}")

    def add_base_stats(self):
        for stat, value in self.base_stats.items():
            self.allocatable_terms[stat].append(value)

    def add_food(self, allocatable: Dict[Stat, pulp.LpAffineExpression]):
        food_vars = []
        for food in self.pool.food:
            eaten = self.variable(f"food_{food.id}", FoodVar(food), cat=pulp.LpBinary)
            food_vars.append(eaten)
            for stat, bonus in sorted(food.bonuses.items()):
                granted = self.variable(
                    f"foodbonus_{food.id}_{stat.name}",
                    FoodBonusVar(food, stat),
                    lowBound=0,
                    cat=pulp.LpInteger,
                )
                # Gate on the food being eaten, then cap by percent of the stat
                self.problem += (granted <= bonus.maximum * eaten,
                                 f"food_gate_{food.id}_{stat.name}")
                self.problem += (granted <= (bonus.percent / 100.0) * allocatable[stat],
                                 f"food_pct_{food.id}_{stat.name}")
                self.food_terms[stat].append(granted)
        if food_vars:
            self.problem += pulp.lpSum(food_vars) <= 1, "one_food"

    def stat_universe(self) -> Set[Stat]:
        stats = set(self.base_stats) | set(self.profile.weights) | set(self.profile.requirements)
        for item in self.pool.items:
            stats.update(item.stats)
            stats.update(item.relic_stats)
        for m in self.pool.materia:
            stats.add(m.stat)
        for food in self.pool.food:
            stats.update(food.bonuses)
        return stats


def secondary_bound(pool: CandidatePool, stats: Iterable[Stat],
                    base_stats: Dict[Stat, int]) -> float:
    """Upper bound on the summed total of `stats` over any loadout."""
    stats = set(stats)
    best_materia = max([m.value for m in pool.materia if m.stat in stats], default=0)
    bound = float(sum(base_stats.get(s, 0) for s in stats))

    for slot in pool.slots:
        best_item = 0.0
        for item in pool.items_for_slot(slot):
            value = sum(v for s, v in item.stats.items() if s in stats)
            value += item.meld_capacity * best_materia
            value += pool.relic_cap(item)
            best_item = max(best_item, value)
        bound += occupants(slot) * best_item

    bound += max([sum(b.maximum for s, b in food.bonuses.items() if s in stats)
                  for food in pool.food], default=0)
    return bound


def weight_resolution(weights: Iterable[float]) -> float:
    """
    Largest step every positive weight is an integer multiple of.

    Stats are integral, so two loadouts with different primary values
    differ by at least this much (0.15 and 0.22 give 0.01, since
    3 * 0.15 - 2 * 0.22 = 0.01).
    """
    resolution = Fraction(0)
    for weight in weights:
        if weight <= 0:
            continue
        step = Fraction(weight).limit_denominator(WEIGHT_DENOMINATOR)
        resolution = Fraction(
            math.gcd(resolution.numerator * step.denominator,
                     step.numerator * resolution.denominator),
            resolution.denominator * step.denominator,
        )
    return float(resolution)


def epsilon_coefficient(profile: RoleProfile, pool: CandidatePool,
                        stats: Iterable[Stat], base_stats: Dict[Stat, int]) -> float:
    """
    Coefficient for unweighted stats in the single-pass objective.

    The whole secondary term stays below EPSILON_SEPARATION times the weight
    resolution, which is smaller than any difference between two primary
    values. Trading weighted stats for unweighted ones never pays.
    """
    resolution = weight_resolution(profile.weights.values())
    bound = max(1.0, secondary_bound(pool, stats, base_stats))
    if not resolution:
        return 1.0 / bound
    return EPSILON_SEPARATION * resolution / bound


def build_model(profile: RoleProfile,
                pool: CandidatePool,
                base_stats: Optional[Dict[Stat, int]] = None,
                maximize_unweighted: bool = True,
                secondary_mode: str = SECONDARY_LEXICOGRAPHIC,
                name: str = 'bis') -> BisModel:
    """
    Build the MILP for one solve.

    Pure function of its inputs: no feasibility check is done here; an
    unreachable stat floor only shows up as an infeasible solver status.

    Args:
        profile: Stat weights and minimums for the job
        pool: Usable items, materia (with overmeld flag), food and relic caps
        base_stats: Character stats before gear
        maximize_unweighted: Also maximize stats missing from the weights
        secondary_mode: 'lexicographic' (two solves) or 'epsilon' (one solve)
        name: Problem name used in LP output

    Returns:
        BisModel with the problem and the variable index
    """
    if secondary_mode not in SECONDARY_MODES:
        raise ValueError(f"Unknown secondary mode '{secondary_mode}'")

    builder = _ModelBuilder(profile, pool, base_stats or {}, name)
    builder.add_gear()
    builder.add_item_stats()
    builder.add_relic()
    builder.add_base_stats()

    universe = sorted(builder.stat_universe())
    allocatable = {s: pulp.lpSum(builder.allocatable_terms[s]) for s in universe}
    builder.add_food(allocatable)
    totals = {s: pulp.lpSum([allocatable[s]] + builder.food_terms[s]) for s in universe}

    problem = builder.problem
    for stat, minimum in sorted(profile.requirements.items()):
        problem += totals[stat] >= minimum, f"min_{stat.name}"

    primary = pulp.lpSum(weight * totals[stat]
                         for stat, weight in sorted(profile.weights.items()) if weight)

    unweighted = [s for s in universe if s not in profile.weights]
    secondary = None
    epsilon = 0.0
    if maximize_unweighted and unweighted:
        secondary = pulp.lpSum(totals[s] for s in unweighted)

    if secondary is not None and secondary_mode == SECONDARY_EPSILON:
        epsilon = epsilon_coefficient(profile, pool, unweighted, builder.base_stats)
        problem.setObjective(primary + epsilon * secondary)
    else:
        problem.setObjective(primary)

    return BisModel(
        problem=problem,
        profile=profile,
        pool=pool,
        base_stats=builder.base_stats,
        index=builder.index,
        variables=builder.variables,
        allocatable=allocatable,
        totals=totals,
        primary=primary,
        secondary=secondary,
        unweighted_stats=unweighted,
        maximize_unweighted=maximize_unweighted,
        secondary_mode=secondary_mode,
        epsilon=epsilon,
    )
