"""
Shared pytest fixtures: a small game data export and matching config on disk.
"""
import json

import pytest


SAMPLE_GAME_DATA = {
    'class_jobs': [
        {'key': 25, 'abbreviation': 'BLM', 'name': 'Black Mage'},
        {'key': 24, 'abbreviation': 'WHM', 'name': 'White Mage'},
    ],
    'items': [
        {'id': 100, 'name': 'Casting Hat', 'slot': 'Head', 'item_level': 340,
         'stats': {'Intelligence': 100, 'Critical Hit': 20}, 'materia_slots': 2,
         'class_jobs': ['BLM']},
        {'id': 101, 'name': 'Swift Hat', 'slot': 'Head', 'item_level': 340,
         'stats': {'Intelligence': 90, 'Spell Speed': 40}, 'materia_slots': 2,
         'class_jobs': ['BLM']},
        {'id': 200, 'name': 'Ring of Casting', 'slot': 'Ring', 'item_level': 340,
         'stats': {'Intelligence': 30}, 'materia_slots': 1},
        {'id': 300, 'name': 'Relic Rod', 'slot': 'Main Hand', 'item_level': 340,
         'relic': True, 'relic_stats': ['Critical Hit', 'Spell Speed'],
         'stats': {'Intelligence': 200}, 'class_jobs': ['BLM']},
    ],
    'materia': [
        {'id': 1, 'name': 'Savage Aim Materia VI', 'stat': 'Critical Hit', 'value': 24, 'tier': 6},
        {'id': 2, 'name': 'Quicktongue Materia VI', 'stat': 'Spell Speed', 'value': 24, 'tier': 6},
    ],
    'food': [
        {'id': 700, 'name': 'Tsai tou Vounou',
         'bonuses': {'Critical Hit': {'percent': 10, 'max': 72}}},
    ],
}

SAMPLE_CONFIG = """
jobConfigs:
  BLM:
    weights:
      Intelligence: 1.0
      Critical Hit: 0.2
    statRequirements:
      Spell Speed: 60
relicCaps:
  340: 100
baseStats:
  Intelligence: 50
"""


@pytest.fixture
def game_files(tmp_path):
    """(game data path, config path) for the sample catalog."""
    game_path = tmp_path / 'gamedata.json'
    game_path.write_text(json.dumps(SAMPLE_GAME_DATA), encoding='utf-8')
    config_path = tmp_path / 'config.yaml'
    config_path.write_text(SAMPLE_CONFIG, encoding='utf-8')
    return str(game_path), str(config_path)
