#!/usr/bin/env python3
"""
FFXIV BiS Solver

Finds the best-in-slot gear, melds and food for a job by solving a
mixed-integer linear program.

Usage:
    python bis_solver.py <job> -p GAME_DATA [-c CONFIG] [options]

Example:
    python bis_solver.py BLM -p gamedata.json -M 350 -T 6 -X 12345
"""

import argparse
import sys
from pathlib import Path
from typing import Dict, List, Optional

from bis_model import build_model, BisModel, SECONDARY_MODES, SECONDARY_LEXICOGRAPHIC
from config_loader import load_config, DEFAULT_CONFIG_PATH
from errors import (
    BisSolverError, UsageError, ModelError, BackendError, CatalogError,
)
from item_database import load_database, build_candidate_pool
from models import CandidatePool, RoleProfile, Solution, Stat
from report import format_report
from solution_extractor import extract_solution, OBJECTIVE_GAP_TOLERANCE
from solvers import SOLVERS, DEFAULT_SOLVER, SolveOutcome, SolverStatus, get_solver, write_lp


EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2
EXIT_INFEASIBLE = 3

DEBUG_MODEL_PATH = 'model.lp'


def _check_outcome(outcome: SolveOutcome):
    if outcome.status == SolverStatus.BACKEND_ERROR:
        raise BackendError(outcome.backend, outcome.detail)
    if not outcome.is_optimal:
        raise ModelError(outcome.status, outcome.detail)


def objective_gap_warning(solution: Solution) -> Optional[str]:
    """Message when the solver objective and the recomputed weight disagree."""
    if solution.objective_gap <= OBJECTIVE_GAP_TOLERANCE:
        return None
    return (f"Solver objective {solution.objective_value:.4f} differs from "
            f"recomputed weight {solution.weight:.4f}")


def _secondary_path(path: str) -> str:
    p = Path(path)
    return str(p.with_name(f"{p.stem}_secondary{p.suffix}"))


def solve_loadout(profile: RoleProfile,
                  pool: CandidatePool,
                  base_stats: Optional[Dict[Stat, int]] = None,
                  solver_name: str = DEFAULT_SOLVER,
                  maximize_unweighted: bool = True,
                  secondary_mode: str = SECONDARY_LEXICOGRAPHIC,
                  time_limit: Optional[float] = None,
                  debug_path: Optional[str] = None) -> Solution:
    """
    Build, solve and decode one loadout.

    With lexicographic secondary maximization this runs two solve requests:
    the primary optimum first, then the unweighted stats under that optimum.

    Raises:
        ModelError: no feasible (or a non-finite) loadout
        BackendError: the solver failed
        ConsistencyError: the solver's answer breaks a model invariant
    """
    solver = get_solver(solver_name)
    model: BisModel = build_model(
        profile, pool, base_stats,
        maximize_unweighted=maximize_unweighted,
        secondary_mode=secondary_mode,
    )

    if debug_path:
        write_lp(model, debug_path)

    outcome = solver.solve(model, time_limit)
    _check_outcome(outcome)
    # Epsilon mode folds the secondary term into the objective; report primary only
    objective_value = model.evaluate_primary(outcome.assignment)

    if model.needs_secondary_pass:
        model = model.with_primary_floor(objective_value)
        if debug_path:
            write_lp(model, _secondary_path(debug_path))
        outcome = solver.solve(model, time_limit)
        _check_outcome(outcome)

    return extract_solution(model, outcome, objective_value=objective_value)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Find the best-in-slot gear, materia and food for a job',
    )
    parser.add_argument('job', help='Job abbreviation to solve for (e.g. BLM)')
    parser.add_argument('-p', '--game-path', required=True,
                        help='Path to the game data JSON export')
    parser.add_argument('-c', '--config-path', default=DEFAULT_CONFIG_PATH,
                        help=f'Path to configuration YAML file (default: {DEFAULT_CONFIG_PATH})')
    parser.add_argument('-X', '--exclude', type=int, action='append', default=[],
                        metavar='ITEM_ID', help='Item id to exclude from solving (repeatable)')
    parser.add_argument('-m', '--min-itemlevel', type=int, default=None,
                        help='Minimum item level of items to consider (default: max - 20)')
    parser.add_argument('-M', '--max-itemlevel', type=int, default=None,
                        help='Maximum item level of items to consider')
    parser.add_argument('-T', '--max-overmeld-tier', type=int, default=None,
                        help='Highest materia tier allowed in overmeld slots')
    parser.add_argument('--no-maximize-unweighted', action='store_true',
                        help="Don't maximize stats without a weight (usually accuracy)")
    parser.add_argument('--secondary-mode', choices=SECONDARY_MODES,
                        default=SECONDARY_LEXICOGRAPHIC,
                        help='How unweighted stats are maximized (default: lexicographic)')
    parser.add_argument('-s', '--solver', type=str.lower, choices=sorted(SOLVERS),
                        default=DEFAULT_SOLVER, help=f'Solver to use (default: {DEFAULT_SOLVER})')
    parser.add_argument('--time-limit', type=float, default=None,
                        help='Give up after this many seconds per solve')
    parser.add_argument('-d', '--debug', action='store_true',
                        help=f'Write the model to {DEBUG_MODEL_PATH} in the current directory')
    return parser


def run(args: argparse.Namespace) -> Solution:
    if (args.min_itemlevel is not None and args.max_itemlevel is not None
            and args.min_itemlevel > args.max_itemlevel):
        raise UsageError("--min-itemlevel must not exceed --max-itemlevel")

    db = load_database(args.game_path)
    print(f"✓ Loaded {len(db.items)} items, {len(db.materia)} materia, "
          f"{len(db.food)} food from {args.game_path}")

    job = db.get_job(args.job)
    if job is None:
        raise CatalogError(f"Unknown job '{args.job}'")

    config = load_config(args.config_path, db)
    profile = config.profile_for(job)

    pool = build_candidate_pool(
        db, job,
        min_item_level=args.min_itemlevel,
        max_item_level=args.max_itemlevel,
        excluded_ids=args.exclude,
        max_overmeld_tier=args.max_overmeld_tier,
        relic_caps=config.relic_caps,
    )
    print(f"✓ Solving {job.abbreviation} over {len(pool.items)} items "
          f"with {args.solver}")

    solution = solve_loadout(
        profile, pool, config.base_stats,
        solver_name=args.solver,
        maximize_unweighted=not args.no_maximize_unweighted,
        secondary_mode=args.secondary_mode,
        time_limit=args.time_limit,
        debug_path=DEBUG_MODEL_PATH if args.debug else None,
    )

    warning = objective_gap_warning(solution)
    if warning:
        print(f"⚠ {warning}", file=sys.stderr)
    return solution


def main(argv: Optional[List[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        solution = run(args)
    except UsageError as e:
        parser.print_usage(sys.stderr)
        print(f"✗ {e}", file=sys.stderr)
        return EXIT_USAGE
    except ModelError as e:
        print(f"✗ {e}", file=sys.stderr)
        return EXIT_INFEASIBLE
    except BisSolverError as e:
        print(f"✗ {e}", file=sys.stderr)
        return EXIT_ERROR

    print()
    print(format_report(solution))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
