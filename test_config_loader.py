"""
Unit tests for config_loader.py - YAML parsing and name resolution.
"""
import pytest

from config_loader import parse_config, resolve_config, load_config, load_raw_config
from errors import ConfigError
from item_database import ItemDatabase
from models import Stat, ClassJob


CONFIG_YAML = """
jobConfigs:
  BLM:
    weights:
      Intelligence: 1.0
      Critical Hit: 0.22
      DETERMINATION: 0.15
    statRequirements:
      Spell Speed: 1200
relicCaps:
  340: 300
baseStats:
  Intelligence: 292
"""


@pytest.fixture
def db():
    database = ItemDatabase()
    database.load_from_dict({
        'class_jobs': [
            {'key': 25, 'abbreviation': 'BLM', 'name': 'Black Mage'},
            {'key': 24, 'abbreviation': 'WHM', 'name': 'White Mage'},
        ],
    })
    return database


class TestParseConfig:
    """Tests for parse_config() (phase 1)."""

    def test_camel_case_keys(self):
        raw = parse_config(CONFIG_YAML)
        assert raw.job_configs['BLM'].weights['Critical Hit'] == 0.22
        assert raw.job_configs['BLM'].stat_requirements == {'Spell Speed': 1200}
        assert raw.relic_caps == {340: 300}
        assert raw.base_stats == {'Intelligence': 292}

    def test_snake_case_keys(self):
        raw = parse_config("""
job_configs:
  WHM:
    weights: {Mind: 1}
    stat_requirements: {Piety: 400}
relic_caps: {}
""")
        assert raw.job_configs['WHM'].weights == {'Mind': 1.0}
        assert raw.job_configs['WHM'].stat_requirements == {'Piety': 400}

    def test_empty_document(self):
        raw = parse_config("")
        assert raw.job_configs == {}

    def test_malformed_yaml(self):
        with pytest.raises(ConfigError):
            parse_config("jobConfigs: [unclosed")

    def test_non_mapping_section(self):
        with pytest.raises(ConfigError):
            parse_config("jobConfigs:\n  - BLM\n")

    def test_non_numeric_weight(self):
        with pytest.raises(ConfigError):
            parse_config("jobConfigs:\n  BLM:\n    weights:\n      Intelligence: lots\n")

    def test_negative_weight(self):
        with pytest.raises(ConfigError):
            parse_config("jobConfigs:\n  BLM:\n    weights:\n      Intelligence: -1\n")


class TestResolveConfig:
    """Tests for resolve_config() (phase 2)."""

    def test_resolves_stats_and_jobs(self, db):
        config = resolve_config(parse_config(CONFIG_YAML), db)
        profile = config.job_configs['BLM']
        assert profile.weights == {
            Stat.INTELLIGENCE: 1.0,
            Stat.CRITICAL_HIT: 0.22,
            Stat.DETERMINATION: 0.15,
        }
        assert profile.requirements == {Stat.SPELL_SPEED: 1200}
        assert config.base_stats == {Stat.INTELLIGENCE: 292}
        assert config.relic_caps == {340: 300}

    def test_collects_every_unresolved_name(self, db):
        raw = parse_config("""
jobConfigs:
  XYZ:
    weights: {Wisdom: 1}
  BLM:
    weights: {Intelligence: 1, Luck: 2}
    statRequirements: {Haste: 10}
baseStats:
  Charm: 5
""")
        with pytest.raises(ConfigError) as exc_info:
            resolve_config(raw, db)
        names = exc_info.value.names
        assert "job: XYZ" in names
        assert "XYZ weights: Wisdom" in names
        assert "BLM weights: Luck" in names
        assert "BLM statRequirements: Haste" in names
        assert "baseStats: Charm" in names

    def test_job_by_full_name(self, db):
        config = resolve_config(parse_config("jobConfigs:\n  White Mage:\n    weights: {Mind: 1}\n"), db)
        assert 'WHM' in config.job_configs

    def test_profile_for_missing_job(self, db):
        config = resolve_config(parse_config(CONFIG_YAML), db)
        with pytest.raises(ConfigError):
            config.profile_for(ClassJob(key=24, abbreviation='WHM', name='White Mage'))


class TestLoadConfig:
    """Tests for reading config files."""

    def test_load_from_file(self, db, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text(CONFIG_YAML, encoding='utf-8')
        config = load_config(str(path), db)
        assert config.job_configs['BLM'].requirements == {Stat.SPELL_SPEED: 1200}

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_raw_config(str(tmp_path / 'nope.yaml'))
