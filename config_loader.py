"""
Configuration Loader

Reads the YAML solver configuration in two phases:

1. parse_config(): YAML text -> RawConfig with plain string keys
2. resolve_config(): RawConfig -> AppConfig with typed jobs and stats,
   resolved against the game data catalog

Phase 2 collects every unresolved name before failing so a config with
several typos is fixed in one pass.

Example:

    jobConfigs:
      BLM:
        weights:
          Intelligence: 1.0
          Critical Hit: 0.22
        statRequirements:
          Spell Speed: 1200
    relicCaps:
      340: 300
    baseStats:
      Intelligence: 292
"""

from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional

import yaml

from errors import ConfigError
from item_database import ItemDatabase
from models import ClassJob, RoleProfile, Stat, stat_from_name


DEFAULT_CONFIG_PATH = 'config.yaml'


@dataclass
class RawJobConfig:
    weights: Dict[str, float] = field(default_factory=dict)
    stat_requirements: Dict[str, int] = field(default_factory=dict)


@dataclass
class RawConfig:
    """Config as written, before names are resolved."""
    job_configs: Dict[str, RawJobConfig] = field(default_factory=dict)
    relic_caps: Dict[int, int] = field(default_factory=dict)
    base_stats: Dict[str, int] = field(default_factory=dict)


@dataclass
class AppConfig:
    """Config with every job and stat resolved."""
    job_configs: Dict[str, RoleProfile] = field(default_factory=dict)
    relic_caps: Dict[int, int] = field(default_factory=dict)
    base_stats: Dict[Stat, int] = field(default_factory=dict)

    def profile_for(self, job: ClassJob) -> RoleProfile:
        profile = self.job_configs.get(job.abbreviation.upper())
        if profile is None:
            raise ConfigError(f"No configuration for job {job.abbreviation}")
        return profile


# =============================================================================
# Phase 1: parse
# =============================================================================

def _get(mapping: Dict[str, Any], *keys: str) -> Any:
    """First present key; accepts both camelCase and snake_case spellings."""
    for key in keys:
        if key in mapping:
            return mapping[key]
    return None


def _mapping(value: Any, where: str) -> Dict[Any, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{where}' must be a mapping, got {type(value).__name__}")
    return value


def _number(value: Any, where: str, cast=float):
    if isinstance(value, bool):
        raise ConfigError(f"'{where}' must be a number, got {value!r}")
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise ConfigError(f"'{where}' must be a number, got {value!r}") from None


def parse_config(text: str) -> RawConfig:
    """Parse YAML text into a RawConfig. Structure errors raise ConfigError."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed configuration: {e}") from e

    data = _mapping(data, 'config')
    raw = RawConfig()

    job_configs = _mapping(_get(data, 'jobConfigs', 'job_configs'), 'jobConfigs')
    for job_name, job_data in job_configs.items():
        job_data = _mapping(job_data, f'jobConfigs.{job_name}')
        weights = _mapping(_get(job_data, 'weights'), f'jobConfigs.{job_name}.weights')
        requirements = _mapping(
            _get(job_data, 'statRequirements', 'stat_requirements'),
            f'jobConfigs.{job_name}.statRequirements',
        )
        raw_job = RawJobConfig()
        for stat_name, weight in weights.items():
            where = f'jobConfigs.{job_name}.weights.{stat_name}'
            weight = _number(weight, where)
            if weight < 0:
                raise ConfigError(f"'{where}' must not be negative")
            raw_job.weights[str(stat_name)] = weight
        for stat_name, minimum in requirements.items():
            where = f'jobConfigs.{job_name}.statRequirements.{stat_name}'
            raw_job.stat_requirements[str(stat_name)] = _number(minimum, where, int)
        raw.job_configs[str(job_name)] = raw_job

    relic_caps = _mapping(_get(data, 'relicCaps', 'relic_caps'), 'relicCaps')
    for ilvl, cap in relic_caps.items():
        raw.relic_caps[_number(ilvl, 'relicCaps', int)] = _number(cap, f'relicCaps.{ilvl}', int)

    base_stats = _mapping(_get(data, 'baseStats', 'base_stats'), 'baseStats')
    for stat_name, value in base_stats.items():
        raw.base_stats[str(stat_name)] = _number(value, f'baseStats.{stat_name}', int)

    return raw


def load_raw_config(path: str) -> RawConfig:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            text = f.read()
    except OSError as e:
        raise ConfigError(f"Could not read configuration '{path}': {e}") from e
    return parse_config(text)


# =============================================================================
# Phase 2: resolve
# =============================================================================

def resolve_config(raw: RawConfig, db: ItemDatabase) -> AppConfig:
    """
    Resolve job and stat names against the catalog.

    Raises:
        ConfigError listing every name that could not be resolved
    """
    unresolved: List[str] = []

    def resolve_stats(values: Dict[str, Any], where: str) -> Dict[Stat, Any]:
        result = {}
        for name, value in values.items():
            stat = stat_from_name(name)
            if stat is None:
                unresolved.append(f"{where}: {name}")
            else:
                result[stat] = value
        return result

    config = AppConfig(relic_caps=dict(raw.relic_caps))

    for job_name, raw_job in raw.job_configs.items():
        weights = resolve_stats(raw_job.weights, f"{job_name} weights")
        requirements = resolve_stats(raw_job.stat_requirements, f"{job_name} statRequirements")
        job: Optional[ClassJob] = db.get_job(job_name)
        if job is None:
            unresolved.append(f"job: {job_name}")
            continue
        config.job_configs[job.abbreviation.upper()] = RoleProfile(
            job=job.abbreviation,
            weights=weights,
            requirements=requirements,
        )

    config.base_stats = resolve_stats(raw.base_stats, "baseStats")

    if unresolved:
        raise ConfigError("Unresolved names in configuration", unresolved)

    return config


def load_config(path: str, db: ItemDatabase) -> AppConfig:
    """Load and resolve a configuration file."""
    return resolve_config(load_raw_config(path), db)
