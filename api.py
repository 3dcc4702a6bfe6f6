#!/usr/bin/env python3
"""
FFXIV BiS Solver - FastAPI Backend

Provides REST API endpoints around the same build -> solve -> extract
pipeline the command line uses.

Game data and configuration paths are read from the BIS_GAME_DATA and
BIS_CONFIG environment variables on first use, or set with load_state().
"""

import os
from typing import Dict, List, Optional, Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from bis_model import SECONDARY_LEXICOGRAPHIC
from bis_solver import solve_loadout, objective_gap_warning
from config_loader import AppConfig, load_config, DEFAULT_CONFIG_PATH
from errors import BisSolverError, ModelError, CatalogError
from item_database import ItemDatabase, load_database, build_candidate_pool
from models import STAT_NAMES
from report import solution_to_dict
from solvers import DEFAULT_SOLVER, SOLVERS


app = FastAPI(
    title="FFXIV BiS Solver",
    description="Best-in-slot gear, materia and food via mixed-integer programming",
    version="1.0.0"
)

# CORS middleware for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# =============================================================================
# Application State
# =============================================================================

class AppState:
    """Global application state."""
    def __init__(self):
        self.db: Optional[ItemDatabase] = None
        self.config: Optional[AppConfig] = None
        self.game_data_path: str = ""
        self.config_path: str = ""
        self.error: str = ""

state = AppState()


def load_state(game_data_path: str, config_path: str = DEFAULT_CONFIG_PATH):
    """Load game data and configuration into the global state."""
    db = load_database(game_data_path)
    config = load_config(config_path, db)
    state.db = db
    state.config = config
    state.game_data_path = game_data_path
    state.config_path = config_path
    state.error = ""


def _ensure_loaded() -> bool:
    if state.db is not None and state.config is not None:
        return True
    game_data_path = os.environ.get('BIS_GAME_DATA')
    if not game_data_path:
        state.error = "No game data loaded (set BIS_GAME_DATA)"
        return False
    try:
        load_state(game_data_path, os.environ.get('BIS_CONFIG', DEFAULT_CONFIG_PATH))
    except BisSolverError as e:
        state.error = str(e)
        return False
    return True

# =============================================================================
# Pydantic Models for API
# =============================================================================

class StatusResponse(BaseModel):
    status: str
    game_data_loaded: bool
    game_data_path: str
    config_loaded: bool
    config_path: str
    item_count: int
    solvers: List[str]
    error: Optional[str] = None

class JobInfo(BaseModel):
    abbreviation: str
    name: str
    weights: Dict[str, float]
    requirements: Dict[str, int]

class SolveRequest(BaseModel):
    job: str
    min_item_level: Optional[int] = None
    max_item_level: Optional[int] = None
    exclude: List[int] = []
    max_overmeld_tier: Optional[int] = None
    maximize_unweighted: bool = True
    secondary_mode: str = SECONDARY_LEXICOGRAPHIC
    solver: str = DEFAULT_SOLVER
    time_limit: Optional[float] = None

class SolveResponse(BaseModel):
    success: bool
    status: str
    solution: Optional[Dict[str, Any]] = None
    warnings: List[str] = []
    error: Optional[str] = None

# =============================================================================
# API Endpoints
# =============================================================================

@app.get("/api/status", response_model=StatusResponse)
def get_status():
    """Get the current application status."""
    loaded = _ensure_loaded()
    return StatusResponse(
        status="ready" if loaded else "not_loaded",
        game_data_loaded=state.db is not None,
        game_data_path=state.game_data_path,
        config_loaded=state.config is not None,
        config_path=state.config_path,
        item_count=len(state.db.items) if state.db else 0,
        solvers=sorted(SOLVERS),
        error=state.error or None,
    )


@app.get("/api/jobs", response_model=List[JobInfo])
def get_jobs():
    """Jobs with a configuration entry."""
    if not _ensure_loaded():
        return []
    jobs = []
    for abbreviation, profile in sorted(state.config.job_configs.items()):
        job = state.db.get_job(abbreviation)
        jobs.append(JobInfo(
            abbreviation=abbreviation,
            name=job.name if job else abbreviation,
            weights={STAT_NAMES[s]: w for s, w in profile.weights.items()},
            requirements={STAT_NAMES[s]: v for s, v in profile.requirements.items()},
        ))
    return jobs


@app.post("/api/solve", response_model=SolveResponse)
def solve(request: SolveRequest):
    """
    Solve a loadout.

    An infeasible request still succeeds, with status "infeasible".
    """
    if not _ensure_loaded():
        return SolveResponse(success=False, status="not_loaded", error=state.error)

    warnings: List[str] = []
    try:
        job = state.db.get_job(request.job)
        if job is None:
            raise CatalogError(f"Unknown job '{request.job}'")
        profile = state.config.profile_for(job)
        pool = build_candidate_pool(
            state.db, job,
            min_item_level=request.min_item_level,
            max_item_level=request.max_item_level,
            excluded_ids=request.exclude,
            max_overmeld_tier=request.max_overmeld_tier,
            relic_caps=state.config.relic_caps,
            warnings=warnings,
        )
        solution = solve_loadout(
            profile, pool, state.config.base_stats,
            solver_name=request.solver,
            maximize_unweighted=request.maximize_unweighted,
            secondary_mode=request.secondary_mode,
            time_limit=request.time_limit,
        )
        warning = objective_gap_warning(solution)
        if warning:
            warnings.append(warning)
    except ModelError as e:
        return SolveResponse(success=True, status=e.status.value,
                             warnings=warnings, error=str(e))
    except (BisSolverError, ValueError) as e:
        return SolveResponse(success=False, status="error",
                             warnings=warnings, error=str(e))

    return SolveResponse(
        success=True,
        status="optimal",
        solution=solution_to_dict(solution),
        warnings=warnings,
    )
