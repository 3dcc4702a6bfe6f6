"""
Unit tests for models.py - name lookups, food bonuses and solution helpers.
"""
import pytest

from models import (
    Stat, Slot, Item, Materia, FoodBonus, GearChoice, MeldAssignment, Solution,
    stat_from_name, slot_from_name, occupants,
)


HAT = Item(id=1, name="Casting Hat", slot=Slot.HEAD, item_level=340, materia_slots=2)
RING = Item(id=2, name="Ring of Casting", slot=Slot.RING, item_level=340, materia_slots=1)
CRIT = Materia(id=10, name="Savage Might Materia V", stat=Stat.CRITICAL_HIT, value=12, tier=5)


def make_solution(objective_value=100.0, weight=100.0):
    return Solution(
        gear={Slot.RING: (GearChoice(RING, 2),), Slot.HEAD: (GearChoice(HAT),)},
        melds=(
            MeldAssignment(HAT, Stat.CRITICAL_HIT, CRIT, 2),
            MeldAssignment(RING, Stat.CRITICAL_HIT, CRIT, 2),
        ),
        food=None,
        relic=(),
        allocatable_stats={},
        total_stats={},
        objective_value=objective_value,
        weight=weight,
    )


class TestNameLookups:
    """Tests for stat and slot name resolution."""

    def test_stat_display_and_enum_names(self):
        assert stat_from_name("Critical Hit") == Stat.CRITICAL_HIT
        assert stat_from_name(" critical_hit ") == Stat.CRITICAL_HIT

    def test_unknown_stat(self):
        assert stat_from_name("Luck") is None
        assert stat_from_name(27) is None

    def test_slot_names(self):
        assert slot_from_name("Main Hand") == Slot.MAIN_HAND
        assert slot_from_name("RING") == Slot.RING
        assert slot_from_name("Tail") is None

    def test_ring_takes_two(self):
        assert occupants(Slot.RING) == 2
        assert occupants(Slot.HEAD) == 1


class TestFoodBonus:
    """Tests for FoodBonus.amount."""

    def test_percent_is_floored(self):
        assert FoodBonus(percent=10, maximum=100).amount(255) == 25

    def test_capped_at_maximum(self):
        assert FoodBonus(percent=10, maximum=30).amount(1000) == 30

    def test_no_bonus_without_base(self):
        assert FoodBonus(percent=10, maximum=30).amount(0) == 0
        assert FoodBonus(percent=10, maximum=30).amount(-5) == 0


class TestSolution:
    """Tests for the Solution helpers."""

    def test_items_in_slot_order_with_ring_twice(self):
        assert make_solution().items == [HAT, RING, RING]

    def test_melds_for_item(self):
        solution = make_solution()
        assert [m.item for m in solution.melds_for(HAT)] == [HAT]
        assert solution.melds_for(RING)[0].count == 2
        other = Item(id=3, name="Other", slot=Slot.FEET, item_level=340)
        assert solution.melds_for(other) == []

    def test_occupants(self):
        solution = make_solution()
        assert solution.occupants(Slot.RING) == 2
        assert solution.occupants(Slot.HEAD) == 1
        assert solution.occupants(Slot.FEET) == 0

    def test_objective_gap(self):
        assert make_solution().objective_gap == 0
        assert make_solution(100.0, 99.5).objective_gap == pytest.approx(0.5)
        assert make_solution(99.5, 100.0).objective_gap == pytest.approx(0.5)
