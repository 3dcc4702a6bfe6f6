"""
Report Formatter

Renders a Solution as a text report or as a plain dictionary. Both are
stateless views over the same immutable value.
"""

from typing import Dict, Any, List

from models import Solution, STAT_NAMES, SLOT_NAMES


def _fmt(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}"


def format_report(solution: Solution) -> str:
    """Text report: gear, melds, relic stats, food, stats, objective and weight."""
    lines: List[str] = []

    lines.append("Gear:")
    for slot, choices in solution.gear.items():
        for choice in choices:
            for _ in range(choice.count):
                lines.append(f"  {SLOT_NAMES[slot]:10s}: {choice.item} (i{choice.item.item_level})")

    lines.append("Materia:")
    if not solution.melds:
        lines.append("  None")
    # Each distinct item once, in gear order, even when worn twice
    for item in dict.fromkeys(solution.items):
        for meld in solution.melds_for(item):
            lines.append(f"  {item}: {STAT_NAMES[meld.stat]}")
            lines.append(f"      - Materia: {meld.materia}")
            lines.append(f"        Amount: {meld.count}")

    if solution.relic:
        lines.append("Relic stats:")
        for allocation in solution.relic:
            lines.append(f"  {allocation.item} - {STAT_NAMES[allocation.stat]}: "
                         f"{_fmt(allocation.points)}")

    lines.append("Food:")
    lines.append(f"  {solution.food if solution.food is not None else 'None'}")

    lines.append("Allocated stats:")
    for stat, value in solution.allocatable_stats.items():
        lines.append(f"  {STAT_NAMES[stat]:16s}: {_fmt(value)}")

    lines.append("Result stats with food:")
    for stat, value in solution.total_stats.items():
        lines.append(f"  {STAT_NAMES[stat]:16s}: {_fmt(value)}")

    lines.append(f"Objective value: {solution.objective_value:.4f}")
    lines.append(f"Result stat weight: {solution.weight:.4f}")
    return "\n".join(lines)


def solution_to_dict(solution: Solution) -> Dict[str, Any]:
    """JSON-friendly view of a Solution."""
    return {
        'gear': [
            {
                'slot': SLOT_NAMES[slot],
                'item_id': choice.item.id,
                'name': choice.item.name,
                'item_level': choice.item.item_level,
                'count': choice.count,
            }
            for slot, choices in solution.gear.items()
            for choice in choices
        ],
        'melds': [
            {
                'item_id': meld.item.id,
                'item': meld.item.name,
                'stat': STAT_NAMES[meld.stat],
                'materia': meld.materia.name,
                'count': meld.count,
            }
            for meld in solution.melds
        ],
        'relic': [
            {
                'item_id': allocation.item.id,
                'item': allocation.item.name,
                'stat': STAT_NAMES[allocation.stat],
                'points': allocation.points,
            }
            for allocation in solution.relic
        ],
        'food': (
            {'id': solution.food.id, 'name': solution.food.name}
            if solution.food is not None else None
        ),
        'allocatable_stats': {STAT_NAMES[s]: v for s, v in solution.allocatable_stats.items()},
        'total_stats': {STAT_NAMES[s]: v for s, v in solution.total_stats.items()},
        'objective_value': solution.objective_value,
        'weight': solution.weight,
    }
